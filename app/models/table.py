"""
Table, availability and product models
"""

from sqlalchemy import JSON, Boolean, Column, Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from app.core.db import Base
from app.models.mixins import ArchivableMixin, TimestampMixin, new_id


class Table(ArchivableMixin, TimestampMixin, Base):
    __tablename__ = "tables"

    id = Column(String(36), primary_key=True, default=new_id)
    organizer_id = Column(String(36), ForeignKey("organizers.id"), nullable=True, index=True)
    event_id = Column(String(36), ForeignKey("events.id"), nullable=True, index=True)
    name = Column(String(100), nullable=False)
    ticket_count = Column(Integer, default=1)
    min_consumption = Column(Float, nullable=True)
    price = Column(Float, nullable=True)
    notes = Column(Text, nullable=True)
    # Layout position (percent of the floor plan)
    pos_x = Column(Float, nullable=True)
    pos_y = Column(Float, nullable=True)
    pos_w = Column(Float, nullable=True)
    pos_h = Column(Float, nullable=True)

    # Relationships
    products = relationship("TableProduct", back_populates="table")
    reservations = relationship("TableReservation", back_populates="table")


class TableAvailability(ArchivableMixin, TimestampMixin, Base):
    __tablename__ = "table_availability"

    id = Column(String(36), primary_key=True, default=new_id)
    table_id = Column(String(36), ForeignKey("tables.id"), nullable=False, index=True)
    event_id = Column(String(36), ForeignKey("events.id"), nullable=False, index=True)
    is_available = Column(Boolean, default=True)
    custom_price = Column(Float, nullable=True)
    custom_min_consumption = Column(Float, nullable=True)
    notes = Column(Text, nullable=True)

    # Relationships
    table = relationship("Table")

    __table_args__ = (UniqueConstraint("table_id", "event_id", name="uq_table_availability_table_event"),)


class TableProduct(ArchivableMixin, TimestampMixin, Base):
    __tablename__ = "table_products"

    id = Column(String(36), primary_key=True, default=new_id)
    table_id = Column(String(36), ForeignKey("tables.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    items = Column(JSON, nullable=True)
    price = Column(Float, nullable=True)
    tickets_included = Column(Integer, nullable=True)
    sort_order = Column(Integer, default=0)

    # Relationships
    table = relationship("Table", back_populates="products")
