"""LinkOtp model: one row per passcode issued for a share link."""

import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database import Base


class LinkOtp(Base):
    """Hashed one-time passcode and the viewer session it unlocked."""

    __tablename__ = "link_otps"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    link_id = Column(String, ForeignKey("proposal_links.id", ondelete="CASCADE"), nullable=False, index=True)
    code = Column(String, nullable=False)  # SHA-256 hex, never the plaintext
    expires_at = Column(DateTime(timezone=True), nullable=False)
    is_used = Column(Boolean, nullable=False, default=False)
    attempts = Column(Integer, nullable=False, default=0)
    session_token = Column(String, nullable=True, index=True)
    session_expires_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    link = relationship("ProposalLink", back_populates="otps")
