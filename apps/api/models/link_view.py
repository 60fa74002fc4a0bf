"""LinkView model: one row per visitor page-load of a share link."""

import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database import Base


class LinkView(Base):
    """Viewer session grouping slide analytics for one visit."""

    __tablename__ = "link_views"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    link_id = Column(String, ForeignKey("proposal_links.id", ondelete="CASCADE"), nullable=False, index=True)
    viewer_ip = Column(String, nullable=True)
    user_agent = Column(String, nullable=True)
    device_type = Column(String, nullable=True)  # mobile, tablet, desktop
    referrer = Column(String, nullable=True)
    is_unique_visitor = Column(Boolean, nullable=False, default=True)
    session_id = Column(String, nullable=True, index=True)  # per-tab fingerprint
    started_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    ended_at = Column(DateTime(timezone=True), nullable=True)

    link = relationship("ProposalLink", back_populates="views")
    slide_events = relationship("SlideAnalytic", back_populates="view", cascade="all, delete-orphan")
