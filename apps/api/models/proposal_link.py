"""ProposalLink model for tokenized client share links."""

import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database import Base


class ProposalLink(Base):
    """Revocable, optionally expiring share link for one proposal."""

    __tablename__ = "proposal_links"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    proposal_id = Column(String, ForeignKey("proposals.id", ondelete="CASCADE"), nullable=False, index=True)
    token = Column(String, nullable=False, unique=True, index=True)
    recipient_email = Column(String, nullable=False)
    recipient_name = Column(String, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    allow_download = Column(Boolean, nullable=False, default=True)
    sent_at = Column(DateTime(timezone=True), server_default=func.now())
    sent_by = Column(String, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    proposal = relationship("Proposal", back_populates="links")
    sender = relationship("User", back_populates="proposal_links")
    otps = relationship("LinkOtp", back_populates="link", cascade="all, delete-orphan")
    views = relationship("LinkView", back_populates="link", cascade="all, delete-orphan")
