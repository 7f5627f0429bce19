"""
Payment and webhook event models
"""

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, Text

from app.core.db import Base
from app.models.mixins import TimestampMixin, new_id


class Payment(TimestampMixin, Base):
    __tablename__ = "payments"

    id = Column(String(36), primary_key=True, default=new_id)
    provider = Column(String(20), default="culqi")
    reservation_id = Column(String(36), ForeignKey("table_reservations.id"), nullable=True, index=True)
    event_id = Column(String(36), ForeignKey("events.id"), nullable=True)
    idempotency_key = Column(String(255), unique=True, nullable=True)
    order_id = Column(String(255), unique=True, nullable=True, index=True)
    charge_id = Column(String(255), nullable=True)
    amount = Column(Integer, nullable=False)
    currency_code = Column(String(3), default="PEN")
    status = Column(String(20), default="pending")
    customer_email = Column(String(255), nullable=True)
    customer_name = Column(String(255), nullable=True)
    customer_phone = Column(String(50), nullable=True)
    metadata_json = Column("metadata", JSON, nullable=True)
    provider_payload = Column(JSON, nullable=True)
    receipt_number = Column(String(50), nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    refunded_at = Column(DateTime(timezone=True), nullable=True)


class PaymentWebhookEvent(TimestampMixin, Base):
    __tablename__ = "payment_webhook_events"

    id = Column(String(36), primary_key=True, default=new_id)
    provider = Column(String(20), default="culqi")
    event_key = Column(String(255), unique=True, nullable=False)
    event_name = Column(String(100), nullable=True)
    signature = Column(String(512), nullable=True)
    payload = Column(JSON, nullable=True)
    status = Column(String(20), default="received")
    error_message = Column(Text, nullable=True)
    processed_at = Column(DateTime(timezone=True), nullable=True)
