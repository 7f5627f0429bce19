"""
Tests for Culqi payload helpers
"""

import hashlib
from datetime import datetime, timezone

from app.services.culqi import (
    build_culqi_order_payload,
    build_receipt_number,
    build_webhook_event_key,
    normalize_culqi_status,
    resolve_culqi_event_id,
    resolve_culqi_event_name,
    resolve_culqi_order,
    split_name,
)
from app.services.payment_service import clamp_expiration, parse_amount


def test_normalize_status():
    assert normalize_culqi_status("order.status.paid") == "paid"
    assert normalize_culqi_status("refunded") == "refunded"
    assert normalize_culqi_status("Declined") == "failed"
    assert normalize_culqi_status("failed") == "failed"
    assert normalize_culqi_status("expired") == "expired"
    assert normalize_culqi_status("cancelled") == "canceled"
    assert normalize_culqi_status("created") == "pending"
    assert normalize_culqi_status(None) == "pending"


def test_split_name():
    assert split_name("  Ana   María  Pérez ") == ("Ana María", "Pérez")
    assert split_name("Ana") == ("Ana", "BabyClub")
    assert split_name("") == ("Cliente", "BabyClub")


def test_order_payload_shape():
    payload = build_culqi_order_payload(
        amount=15000,
        description="Reserva",
        order_number="BC-1",
        first_name="Ana",
        last_name="Pérez",
        email="ana@example.com",
        phone_number="999888777",
        expiration_date_unix=1700000000,
    )
    assert payload["amount"] == 15000
    assert payload["currency_code"] == "PEN"
    assert payload["confirm"] is False
    assert payload["client_details"]["email"] == "ana@example.com"
    assert payload["metadata"] == {}


def test_event_name_and_id():
    payload = {"type": "order.status.changed", "data": {"object": {"id": "ord_1"}}}
    assert resolve_culqi_event_name(payload) == "order.status.changed"
    assert resolve_culqi_event_id(payload) == "ord_1"
    assert resolve_culqi_event_id({"id": "evt_9", "data": {"id": "x"}}) == "evt_9"
    assert resolve_culqi_event_id({}) is None


def test_resolve_order():
    payload = {
        "data": {
            "object": {
                "id": "ord_1",
                "status": "paid",
                "amount": 15000,
                "currency_code": "PEN",
                "charge_id": "chr_1",
                "client_details": {"first_name": "Ana", "last_name": "Pérez", "email": "ana@example.com"},
                "metadata": {"reservation_id": "res-1"},
            }
        }
    }
    order = resolve_culqi_order(payload)
    assert order["order_id"] == "ord_1"
    assert order["charge_id"] == "chr_1"
    assert order["status_raw"] == "paid"
    assert order["amount"] == 15000
    assert order["customer_name"] == "Ana Pérez"
    assert order["metadata"] == {"reservation_id": "res-1"}


def test_resolve_order_ignores_bad_amount():
    order = resolve_culqi_order({"order_id": "ord_2", "amount": "100", "status": "pending"})
    assert order["order_id"] == "ord_2"
    assert order["amount"] is None
    assert order["metadata"] == {}


def test_webhook_event_key():
    assert build_webhook_event_key("culqi", b"{}", "evt_1") == "culqi:evt_1"
    digest = hashlib.sha256(b'{"a":1}').hexdigest()
    assert build_webhook_event_key("culqi", b'{"a":1}', None) == f"culqi:sha256:{digest}"


def test_receipt_number():
    now = datetime(2026, 3, 5, 12, 0, tzinfo=timezone.utc)
    assert build_receipt_number("ord_live_abc123xyz", now) == "BC-20260305-BC123XYZ"
    assert build_receipt_number("ord-1", now) == "BC-20260305-ORD1"
    assert build_receipt_number("", now).startswith("BC-20260305-")


def test_parse_amount():
    assert parse_amount(15000) == 15000
    assert parse_amount("2500") == 2500
    assert parse_amount(10.5) is None
    assert parse_amount(0) is None
    assert parse_amount(-5) is None
    assert parse_amount(True) is None
    assert parse_amount("abc") is None


def test_clamp_expiration():
    assert clamp_expiration(None) == 20
    assert clamp_expiration(1) == 5
    assert clamp_expiration(90) == 60
    assert clamp_expiration("15") == 15
    assert clamp_expiration("soon") == 20
