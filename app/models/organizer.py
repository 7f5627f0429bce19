"""
Organizer model
"""

from sqlalchemy import Column, Integer, String
from sqlalchemy.orm import relationship

from app.core.db import Base
from app.models.mixins import ArchivableMixin, TimestampMixin, new_id


class Organizer(ArchivableMixin, TimestampMixin, Base):
    __tablename__ = "organizers"

    id = Column(String(36), primary_key=True, default=new_id)
    slug = Column(String(100), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    sort_order = Column(Integer, default=0)
    layout_url = Column(String(1024), nullable=True)

    # Relationships
    events = relationship("Event", back_populates="organizer")
