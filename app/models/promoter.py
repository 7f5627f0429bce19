"""
Promoter model
"""

from sqlalchemy import Column, ForeignKey, String, Text
from sqlalchemy.orm import relationship

from app.core.db import Base
from app.models.mixins import ArchivableMixin, TimestampMixin, new_id


class Promoter(ArchivableMixin, TimestampMixin, Base):
    __tablename__ = "promoters"

    id = Column(String(36), primary_key=True, default=new_id)
    person_id = Column(String(36), ForeignKey("persons.id"), nullable=False)
    organizer_id = Column(String(36), ForeignKey("organizers.id"), nullable=True)
    code = Column(String(50), nullable=True)
    instagram = Column(String(100), nullable=True)
    tiktok = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)

    # Relationships
    person = relationship("Person")
