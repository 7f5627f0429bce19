"""
Culqi payments: order creation, webhook processing, receipts and refunds
"""

import json
import logging
import math
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.models import Event, Payment, PaymentWebhookEvent, TableReservation
from app.schemas.settings import CulqiOrderCreate, CulqiRefund
from app.services.culqi import (
    CulqiError,
    build_culqi_order_payload,
    build_receipt_number,
    build_webhook_event_key,
    create_culqi_order,
    create_culqi_refund,
    normalize_culqi_status,
    resolve_culqi_event_id,
    resolve_culqi_event_name,
    resolve_culqi_order,
    split_name,
)
from app.services.process_log import log_process_event
from app.utils.lima_time import iso_or_none
from app.utils.responses import api_error, bad_request, not_found_error
from app.utils.supabase_errors import is_unique_violation

logger = logging.getLogger(__name__)

PROVIDER = "culqi"
DEFAULT_DESCRIPTION = "Reserva de evento BabyClub"
DEFAULT_EXPIRATION_MINUTES = 20


def ensure_payments_enabled() -> None:
    if not settings.ENABLE_PAYMENTS:
        api_error("payments_module_disabled", 503)


def parse_amount(value: Any) -> Optional[int]:
    """Integer céntimos > 0, else None"""
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number) or not number.is_integer() or number <= 0:
        return None
    return int(number)


def clamp_expiration(value: Any) -> int:
    try:
        minutes = float(value if value is not None else DEFAULT_EXPIRATION_MINUTES)
    except (TypeError, ValueError):
        return DEFAULT_EXPIRATION_MINUTES
    if not math.isfinite(minutes):
        return DEFAULT_EXPIRATION_MINUTES
    return int(min(max(minutes, 5), 60))


class PaymentService:
    """Service for Culqi payments"""

    @staticmethod
    async def create_order(db: Session, body: CulqiOrderCreate, idempotency_header: Optional[str] = None) -> Dict[str, Any]:
        ensure_payments_enabled()
        reservation_id = (body.reservation_id or "").strip()
        idempotency_key = (idempotency_header or "").strip() or (body.idempotency_key or "").strip()
        if not reservation_id:
            bad_request("reservation_id es requerido")
        if not idempotency_key:
            bad_request("idempotency_key es requerido")
        amount = parse_amount(body.amount)
        if amount is None:
            bad_request("amount debe venir en centimos y ser entero > 0")

        existing = db.query(Payment).filter(Payment.idempotency_key == idempotency_key).first()
        if existing and existing.order_id:
            return {
                "existing": True,
                "orderId": existing.order_id,
                "paymentId": existing.id,
                "status": existing.status,
                "amount": existing.amount,
                "currencyCode": existing.currency_code,
            }

        reservation = db.query(TableReservation).filter(TableReservation.id == reservation_id).first()
        if not reservation:
            not_found_error("Reserva no encontrada")
        if reservation.status == "rejected":
            bad_request("La reserva fue rechazada y no puede pagarse")

        first_name, last_name = split_name(reservation.full_name or "")
        timestamp_ms = int(time.time() * 1000)
        order_number = (body.order_number or "").strip() or f"BC-{timestamp_ms}-{reservation.id[:6].upper()}"
        expiration_unix = (timestamp_ms + clamp_expiration(body.expiration_minutes) * 60_000) // 1000
        currency_code = "PEN"
        metadata = {"reservation_id": reservation.id, "event_id": reservation.event_id}
        payload = build_culqi_order_payload(
            amount=amount,
            description=(body.description or "").strip() or DEFAULT_DESCRIPTION,
            order_number=order_number,
            first_name=first_name,
            last_name=last_name,
            email=reservation.email or "no-email@babyclub.local",
            phone_number=reservation.phone or "999999999",
            expiration_date_unix=expiration_unix,
            currency_code=currency_code,
            metadata=metadata,
        )

        try:
            order = await create_culqi_order(payload)
        except CulqiError as exc:
            api_error(str(exc) or "No se pudo crear orden en Culqi", 502)
        order_id = order.get("id") if isinstance(order.get("id"), str) else None
        if not order_id:
            api_error("Respuesta invalida de Culqi (sin order id)", 502)

        payment = Payment(
            provider=PROVIDER,
            status="pending",
            order_id=order_id,
            event_id=reservation.event_id,
            reservation_id=reservation.id,
            amount=amount,
            currency_code=currency_code,
            customer_email=reservation.email,
            customer_name=reservation.full_name,
            customer_phone=reservation.phone,
            idempotency_key=idempotency_key,
            metadata_json={**metadata, "order_number": order_number},
            provider_payload=order,
        )
        db.add(payment)
        db.commit()
        db.refresh(payment)
        logger.info("Culqi order %s created for reservation %s", order_id, reservation.id)
        return {
            "orderId": order_id,
            "paymentId": payment.id,
            "status": payment.status,
            "amount": amount,
            "currencyCode": currency_code,
            "expirationDateUnix": expiration_unix,
        }

    @staticmethod
    def handle_webhook(db: Session, raw_body: bytes, signature: Optional[str] = None) -> Dict[str, Any]:
        ensure_payments_enabled()
        try:
            payload = json.loads(raw_body or b"")
        except ValueError:
            bad_request("Invalid webhook payload")

        event_name = resolve_culqi_event_name(payload) or "unknown"
        event_key = build_webhook_event_key(PROVIDER, raw_body, resolve_culqi_event_id(payload))
        # Signature is stored for traceability only
        webhook_event = PaymentWebhookEvent(
            provider=PROVIDER,
            event_name=event_name,
            event_key=event_key,
            signature=signature,
            payload=payload,
            status="received",
        )
        db.add(webhook_event)
        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            if is_unique_violation(exc):
                return {"duplicated": True, "eventKey": event_key}
            raise

        order = resolve_culqi_order(payload)
        status = normalize_culqi_status(order["status_raw"])
        try:
            if order["order_id"]:
                PaymentService._apply_order(db, order, status, payload)
            webhook_event.status = "processed"
            webhook_event.processed_at = datetime.now(timezone.utc)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("Webhook %s failed: %s", event_key, exc)
            webhook_event.status = "error"
            webhook_event.error_message = str(exc) or "unknown_error"
            webhook_event.processed_at = datetime.now(timezone.utc)
            db.commit()
            api_error("Error procesando webhook", 500)

        return {"event": event_name, "orderId": order["order_id"], "status": status}

    @staticmethod
    def _apply_order(db: Session, order: Dict[str, Any], status: str, payload: Any) -> None:
        now = datetime.now(timezone.utc)
        payment = db.query(Payment).filter(Payment.order_id == order["order_id"]).first()
        if not payment:
            payment = Payment(provider=PROVIDER, order_id=order["order_id"])
            db.add(payment)
        payment.status = status
        payment.charge_id = order["charge_id"] or payment.charge_id
        payment.amount = order["amount"] if order["amount"] is not None else (payment.amount or 0)
        payment.currency_code = order["currency_code"] or "PEN"
        payment.customer_email = order["customer_email"] or payment.customer_email
        payment.customer_name = order["customer_name"] or payment.customer_name
        payment.customer_phone = order["customer_phone"] or payment.customer_phone
        payment.metadata_json = order["metadata"] or payment.metadata_json
        payment.provider_payload = payload
        if status == "paid":
            payment.paid_at = now
            if not payment.receipt_number:
                payment.receipt_number = build_receipt_number(order["order_id"], now)
        if status == "refunded":
            payment.refunded_at = now

        meta_reservation = order["metadata"].get("reservation_id") if order["metadata"] else None
        reservation_id = payment.reservation_id or (meta_reservation if isinstance(meta_reservation, str) else None)
        if status == "paid" and reservation_id:
            reservation = db.query(TableReservation).filter(TableReservation.id == reservation_id).first()
            if reservation:
                reservation.status = "approved"
                payment.reservation_id = reservation.id
        db.flush()

    @staticmethod
    def get_receipt(db: Session, payment_id: Optional[str] = None, order_id: Optional[str] = None) -> Dict[str, Any]:
        ensure_payments_enabled()
        payment_id = (payment_id or "").strip()
        order_id = (order_id or "").strip()
        if not payment_id and not order_id:
            bad_request("payment_id o order_id es requerido")
        query = db.query(Payment)
        payment = (
            query.filter(Payment.id == payment_id).first() if payment_id else query.filter(Payment.order_id == order_id).first()
        )
        if not payment:
            not_found_error("Comprobante no encontrado")

        reservation = None
        if payment.reservation_id:
            reservation = db.query(TableReservation).filter(TableReservation.id == payment.reservation_id).first()
        event_id = (reservation.event_id if reservation else None) or payment.event_id
        event = db.query(Event).filter(Event.id == event_id).first() if event_id else None
        return {
            "payment_id": payment.id,
            "provider": payment.provider,
            "status": payment.status,
            "amount": payment.amount,
            "currency_code": payment.currency_code,
            "receipt_number": payment.receipt_number,
            "issued_at": iso_or_none(payment.paid_at or payment.created_at),
            "customer_name": payment.customer_name,
            "customer_email": payment.customer_email,
            "customer_phone": payment.customer_phone,
            "reservation": {"id": reservation.id, "full_name": reservation.full_name, "event_id": reservation.event_id}
            if reservation
            else None,
            "event": {
                "id": event.id,
                "name": event.name,
                "starts_at": iso_or_none(event.starts_at),
                "location": event.location,
            }
            if event
            else None,
        }

    @staticmethod
    async def refund(db: Session, body: CulqiRefund, staff_id: Optional[str] = None) -> Dict[str, Any]:
        ensure_payments_enabled()
        payment_id = (body.payment_id or "").strip()
        if not payment_id:
            bad_request("payment_id es requerido")
        payment = db.query(Payment).filter(Payment.id == payment_id).first()
        if not payment:
            not_found_error("Pago no encontrado")
        if payment.status != "paid":
            bad_request("Solo se pueden devolver pagos confirmados")
        if not payment.charge_id:
            bad_request("Este pago no tiene charge_id. Gestiona devolución desde CulqiPanel o espera conciliación.")
        amount = parse_amount(body.amount) if body.amount is not None else payment.amount
        if not amount:
            bad_request("amount debe estar en centimos y ser entero > 0")
        reason = (body.reason or "").strip() or "solicitud_comprador"

        try:
            refund = await create_culqi_refund(
                payment.charge_id,
                amount,
                reason,
                {**(body.metadata or {}), "payment_id": payment.id, "order_id": payment.order_id},
            )
        except CulqiError as exc:
            api_error(str(exc) or "No se pudo crear devolución en Culqi", 502)

        payment.status = "refunded"
        payment.refunded_at = datetime.now(timezone.utc)
        if payment.reservation_id:
            reservation = db.query(TableReservation).filter(TableReservation.id == payment.reservation_id).first()
            if reservation:
                reservation.status = "rejected"
        db.commit()

        log_process_event(
            db,
            category="payments",
            action="refund",
            status="success",
            message=f"Devolución de {amount} céntimos",
            provider=PROVIDER,
            provider_id=refund.get("id") if isinstance(refund, dict) else None,
            reservation_id=payment.reservation_id,
            meta={"payment_id": payment.id, "staff_id": staff_id, "reason": reason},
        )
        return {"paymentId": payment.id, "status": "refunded", "amount": amount, "refund": refund}
