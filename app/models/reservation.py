"""
Table reservation model
"""

from sqlalchemy import JSON, Column, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from app.core.db import Base
from app.models.mixins import ArchivableMixin, TimestampMixin, new_id


class TableReservation(ArchivableMixin, TimestampMixin, Base):
    __tablename__ = "table_reservations"

    id = Column(String(36), primary_key=True, default=new_id)
    table_id = Column(String(36), ForeignKey("tables.id"), nullable=False, index=True)
    event_id = Column(String(36), ForeignKey("events.id"), nullable=True, index=True)
    product_id = Column(String(36), ForeignKey("table_products.id"), nullable=True)
    ticket_id = Column(String(36), nullable=True, index=True)
    promoter_id = Column(String(36), ForeignKey("promoters.id"), nullable=True)
    full_name = Column(String(255), nullable=False)
    doc_type = Column(String(20), default="dni")
    document = Column(String(20), nullable=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    voucher_url = Column(String(1024), nullable=True)
    status = Column(String(20), default="pending", index=True)
    ticket_quantity = Column(Integer, nullable=True)
    codes = Column(JSON, nullable=True)
    notes = Column(Text, nullable=True)
    created_by_staff_id = Column(String(36), nullable=True)

    # Relationships
    table = relationship("Table", back_populates="reservations")
    event = relationship("Event")
    product = relationship("TableProduct")
