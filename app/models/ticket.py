"""
Ticket model
"""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String
from sqlalchemy.orm import relationship

from app.core.db import Base
from app.models.mixins import ArchivableMixin, TimestampMixin, new_id


class Ticket(ArchivableMixin, TimestampMixin, Base):
    __tablename__ = "tickets"

    id = Column(String(36), primary_key=True, default=new_id)
    event_id = Column(String(36), ForeignKey("events.id"), nullable=False, index=True)
    code_id = Column(String(36), ForeignKey("codes.id"), nullable=True, index=True)
    person_id = Column(String(36), ForeignKey("persons.id"), nullable=True, index=True)
    promoter_id = Column(String(36), ForeignKey("promoters.id"), nullable=True)
    table_id = Column(String(36), ForeignKey("tables.id"), nullable=True)
    table_reservation_id = Column(String(36), ForeignKey("table_reservations.id"), nullable=True, index=True)
    qr_token = Column(String(64), unique=True, nullable=False, index=True)
    doc_type = Column(String(20), default="dni")
    document = Column(String(20), nullable=True)
    dni = Column(String(8), nullable=True)
    full_name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    used = Column(Boolean, default=False)
    used_at = Column(DateTime(timezone=True), nullable=True)
    used_by = Column(String(36), nullable=True)

    # Relationships
    event = relationship("Event")
    code = relationship("Code")
    person = relationship("Person")
    table = relationship("Table")
