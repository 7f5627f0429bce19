"""
Event model
"""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from app.core.db import Base
from app.models.mixins import ArchivableMixin, TimestampMixin, new_id


class Event(ArchivableMixin, TimestampMixin, Base):
    __tablename__ = "events"

    id = Column(String(36), primary_key=True, default=new_id)
    organizer_id = Column(String(36), ForeignKey("organizers.id"), nullable=True, index=True)
    name = Column(String(255), nullable=False)
    starts_at = Column(DateTime(timezone=True), nullable=False)
    location = Column(String(255), nullable=True)
    capacity = Column(Integer, default=0)
    header_image = Column(String(1024), nullable=True)
    entry_limit = Column(String(5), default="23:30")
    event_prefix = Column(String(50), nullable=True)
    closed_at = Column(DateTime(timezone=True), nullable=True)
    closed_by = Column(String(36), nullable=True)
    close_reason = Column(Text, nullable=True)

    # Relationships
    organizer = relationship("Organizer", back_populates="events")
    codes = relationship("Code", back_populates="event")
    messages = relationship("EventMessage", back_populates="event", cascade="all, delete-orphan")


class EventMessage(TimestampMixin, Base):
    """Keyed content attached to an event (cover image, notes)"""
    __tablename__ = "event_messages"

    id = Column(String(36), primary_key=True, default=new_id)
    event_id = Column(String(36), ForeignKey("events.id"), nullable=False, index=True)
    key = Column(String(100), nullable=False)
    value_text = Column(Text, nullable=True)

    # Relationships
    event = relationship("Event", back_populates="messages")

    __table_args__ = (UniqueConstraint("event_id", "key", name="uq_event_messages_event_key"),)
