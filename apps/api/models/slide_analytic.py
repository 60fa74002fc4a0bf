"""SlideAnalytic model: dwell time of one slide impression."""

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database import Base


class SlideAnalytic(Base):
    """Slide enter/exit event within a viewer session."""

    __tablename__ = "slide_analytics"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    view_id = Column(String, ForeignKey("link_views.id", ondelete="CASCADE"), nullable=False, index=True)
    link_id = Column(String, ForeignKey("proposal_links.id", ondelete="CASCADE"), nullable=False, index=True)
    slide_index = Column(Integer, nullable=False)
    slide_title = Column(String, nullable=True)
    time_entered = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    time_exited = Column(DateTime(timezone=True), nullable=True)
    duration_seconds = Column(Numeric(10, 2), nullable=True)

    view = relationship("LinkView", back_populates="slide_events")
