"""Proposal model (read-only collaborator for the viewer flow)."""

from sqlalchemy import Column, String, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from database import Base


class Proposal(Base):
    """Client proposal deck assembled by an adviser."""

    __tablename__ = "proposals"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    advisor_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    client_name = Column(String, nullable=False)
    status = Column(String, default="draft")  # draft, generated, sent, approved, rejected
    slide_order = Column(JSON, nullable=True)  # [{"id", "label", "image_path"}]
    disabled_slides = Column(JSON, nullable=True)  # ["slide-id", ...]
    pdf_path = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    advisor = relationship("User", back_populates="proposals")
    links = relationship("ProposalLink", back_populates="proposal", cascade="all, delete-orphan")
