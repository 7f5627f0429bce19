"""
Tests for Culqi orders, webhooks, receipts and refunds
"""

import asyncio
import json

import pytest
from datetime import datetime, timezone
from fastapi import HTTPException
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.core.config import settings
from app.core.db import Base
from app.models import Event, Payment, PaymentWebhookEvent, ProcessLog, Table, TableReservation
from app.schemas.settings import CulqiOrderCreate, CulqiRefund
from app.services.payment_service import PaymentService

# Test database setup
SQLALCHEMY_DATABASE_URL = "sqlite:///./test_payments.db"
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

@pytest.fixture
def db_session():
    """Create test database session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)

@pytest.fixture
def payments_enabled(monkeypatch):
    monkeypatch.setattr(settings, "ENABLE_PAYMENTS", True)

@pytest.fixture
def reservation(db_session):
    event = Event(name="Baby Deluxe", starts_at=datetime(2099, 12, 21, 3, 0, tzinfo=timezone.utc), capacity=100)
    db_session.add(event)
    db_session.flush()
    table = Table(event_id=event.id, name="Mesa 1", ticket_count=4)
    db_session.add(table)
    db_session.flush()
    reservation = TableReservation(
        table_id=table.id,
        event_id=event.id,
        full_name="Ana María Ruiz",
        email="ana@example.com",
        phone="999888777",
        status="pending",
    )
    db_session.add(reservation)
    db_session.commit()
    db_session.refresh(reservation)
    return reservation


def webhook_body(order_id="ord_1", status="paid", event_id="evt_1", reservation_id=None):
    return json.dumps(
        {
            "id": event_id,
            "type": "order.status.changed",
            "data": {
                "object": {
                    "id": order_id,
                    "status": status,
                    "amount": 15000,
                    "currency_code": "PEN",
                    "charge_id": "chr_1",
                    "metadata": {"reservation_id": reservation_id} if reservation_id else {},
                }
            },
        }
    ).encode()


def add_payment(db, reservation, **fields):
    payment = Payment(
        reservation_id=reservation.id,
        event_id=reservation.event_id,
        order_id=fields.pop("order_id", "ord_1"),
        amount=fields.pop("amount", 15000),
        **fields,
    )
    db.add(payment)
    db.commit()
    db.refresh(payment)
    return payment


def test_payments_disabled(db_session):
    with pytest.raises(HTTPException) as exc_info:
        PaymentService.handle_webhook(db_session, b"{}")
    assert exc_info.value.status_code == 503
    assert exc_info.value.detail == "payments_module_disabled"

    with pytest.raises(HTTPException):
        PaymentService.get_receipt(db_session, payment_id="x")


# -------- Orders --------

def test_create_order(db_session, reservation, payments_enabled, monkeypatch):
    sent = []

    async def fake_order(payload):
        sent.append(payload)
        return {"id": "ord_new", "state": "pending"}

    monkeypatch.setattr("app.services.payment_service.create_culqi_order", fake_order)
    body = CulqiOrderCreate(reservation_id=reservation.id, amount=15000)
    result = asyncio.run(PaymentService.create_order(db_session, body, "idem-1"))

    assert result["orderId"] == "ord_new"
    assert result["amount"] == 15000
    assert sent[0]["client_details"]["first_name"] == "Ana María"
    assert sent[0]["client_details"]["last_name"] == "Ruiz"
    assert sent[0]["metadata"]["reservation_id"] == reservation.id

    again = asyncio.run(PaymentService.create_order(db_session, body, "idem-1"))
    assert again["existing"] is True
    assert again["paymentId"] == result["paymentId"]
    assert len(sent) == 1


@pytest.mark.parametrize(
    "fields,header,message",
    [
        ({"amount": 100}, None, "reservation_id es requerido"),
        ({"reservation_id": "r", "amount": 100}, None, "idempotency_key es requerido"),
        ({"reservation_id": "r", "amount": 10.5}, "k", "amount debe venir en centimos y ser entero > 0"),
    ],
)
def test_create_order_validation(db_session, payments_enabled, fields, header, message):
    with pytest.raises(HTTPException) as exc_info:
        asyncio.run(PaymentService.create_order(db_session, CulqiOrderCreate(**fields), header))
    assert exc_info.value.detail == message


def test_create_order_rejected_reservation(db_session, reservation, payments_enabled):
    reservation.status = "rejected"
    db_session.commit()
    body = CulqiOrderCreate(reservation_id=reservation.id, amount=15000, idempotency_key="idem-2")
    with pytest.raises(HTTPException) as exc_info:
        asyncio.run(PaymentService.create_order(db_session, body))
    assert exc_info.value.detail == "La reserva fue rechazada y no puede pagarse"


# -------- Webhooks --------

def test_paid_webhook_approves_reservation(db_session, reservation, payments_enabled):
    add_payment(db_session, reservation, status="pending")
    result = PaymentService.handle_webhook(db_session, webhook_body(), "sig-1")

    assert result == {"event": "order.status.changed", "orderId": "ord_1", "status": "paid"}
    payment = db_session.query(Payment).one()
    assert payment.status == "paid"
    assert payment.charge_id == "chr_1"
    assert payment.paid_at is not None
    assert payment.receipt_number.startswith("BC-")
    db_session.refresh(reservation)
    assert reservation.status == "approved"

    event = db_session.query(PaymentWebhookEvent).one()
    assert event.status == "processed"
    assert event.event_key == "culqi:evt_1"
    assert event.signature == "sig-1"


def test_webhook_links_reservation_from_metadata(db_session, reservation, payments_enabled):
    PaymentService.handle_webhook(db_session, webhook_body(order_id="ord_meta", reservation_id=reservation.id))
    payment = db_session.query(Payment).one()
    assert payment.reservation_id == reservation.id
    db_session.refresh(reservation)
    assert reservation.status == "approved"


def test_duplicate_webhook(db_session, reservation, payments_enabled):
    PaymentService.handle_webhook(db_session, webhook_body())
    duplicate = PaymentService.handle_webhook(db_session, webhook_body())
    assert duplicate == {"duplicated": True, "eventKey": "culqi:evt_1"}
    assert db_session.query(PaymentWebhookEvent).count() == 1


def test_invalid_webhook_payload(db_session, payments_enabled):
    with pytest.raises(HTTPException) as exc_info:
        PaymentService.handle_webhook(db_session, b"not json")
    assert exc_info.value.detail == "Invalid webhook payload"


# -------- Receipts / refunds --------

def test_receipt(db_session, reservation, payments_enabled):
    PaymentService.handle_webhook(db_session, webhook_body(reservation_id=reservation.id))
    receipt = PaymentService.get_receipt(db_session, order_id="ord_1")

    assert receipt["status"] == "paid"
    assert receipt["amount"] == 15000
    assert receipt["reservation"]["full_name"] == "Ana María Ruiz"
    assert receipt["event"]["name"] == "Baby Deluxe"

    with pytest.raises(HTTPException) as exc_info:
        PaymentService.get_receipt(db_session)
    assert exc_info.value.detail == "payment_id o order_id es requerido"
    with pytest.raises(HTTPException) as exc_info:
        PaymentService.get_receipt(db_session, payment_id="missing")
    assert exc_info.value.status_code == 404


def test_refund(db_session, reservation, payments_enabled, monkeypatch):
    calls = []

    async def fake_refund(charge_id, amount, reason, metadata):
        calls.append((charge_id, amount, reason))
        return {"id": "ref_1"}

    monkeypatch.setattr("app.services.payment_service.create_culqi_refund", fake_refund)
    payment = add_payment(db_session, reservation, status="paid", charge_id="chr_9")

    result = asyncio.run(PaymentService.refund(db_session, CulqiRefund(payment_id=payment.id), "staff-1"))

    assert result["status"] == "refunded"
    assert calls == [("chr_9", 15000, "solicitud_comprador")]
    db_session.refresh(reservation)
    assert reservation.status == "rejected"
    assert db_session.query(ProcessLog).one().action == "refund"


def test_refund_requires_paid_charge(db_session, reservation, payments_enabled):
    pending = add_payment(db_session, reservation, status="pending")
    with pytest.raises(HTTPException) as exc_info:
        asyncio.run(PaymentService.refund(db_session, CulqiRefund(payment_id=pending.id)))
    assert exc_info.value.detail == "Solo se pueden devolver pagos confirmados"

    no_charge = add_payment(db_session, reservation, order_id="ord_2", status="paid")
    with pytest.raises(HTTPException) as exc_info:
        asyncio.run(PaymentService.refund(db_session, CulqiRefund(payment_id=no_charge.id)))
    assert "charge_id" in exc_info.value.detail
