"""
Transactional email via Resend, bodies rendered from Jinja2 templates
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import resend
from jinja2 import Environment, FileSystemLoader, select_autoescape
from sqlalchemy.orm import Session

from app.core.config import settings
from app.models import Code, Event, Table, Ticket
from app.services.process_log import log_process_event
from app.services.qr_service import QRService
from app.utils.lima_time import format_lima_from_db, to_lima_parts_from_db

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates" / "email"

templates = Environment(
    loader=FileSystemLoader(str(TEMPLATE_DIR)),
    autoescape=select_autoescape(["html"]),
)


class EmailError(Exception):
    """Email could not be sent"""


def email_configured() -> bool:
    return bool(settings.RESEND_API_KEY)


def validate_from_address(from_address: str) -> None:
    if settings.EMAIL_ALLOWED_DOMAIN not in from_address:
        raise EmailError(f"RESEND_FROM must be an address at {settings.EMAIL_ALLOWED_DOMAIN}")


def send_email(
    to: Union[str, List[str]],
    subject: str,
    html: Optional[str] = None,
    text: Optional[str] = None,
    reply_to: Optional[str] = None,
) -> Optional[str]:
    """Send one email; returns the provider message id"""
    if not settings.RESEND_API_KEY:
        raise EmailError("Missing RESEND_API_KEY")
    validate_from_address(settings.RESEND_FROM)

    resend.api_key = settings.RESEND_API_KEY
    params: Dict[str, Any] = {
        "from": settings.RESEND_FROM,
        "to": to if isinstance(to, list) else [to],
        "subject": subject,
    }
    if html:
        params["html"] = html
    if text:
        params["text"] = text
    if reply_to:
        params["reply_to"] = reply_to

    try:
        result = resend.Emails.send(params)
    except Exception as exc:
        raise EmailError(str(exc) or "Error enviando correo") from exc
    return result.get("id") if isinstance(result, dict) else getattr(result, "id", None)


def render(template_name: str, **context: Any) -> str:
    return templates.get_template(template_name).render(**context)


def _safe_date_label(starts_at) -> Optional[str]:
    if not starts_at:
        return None
    try:
        return format_lima_from_db(starts_at)
    except ValueError:
        return None


def _send_and_log(
    db: Session,
    action: str,
    to_email: str,
    subject: str,
    html: str,
    text: str,
    reservation_id: Optional[str] = None,
    ticket_id: Optional[str] = None,
    meta: Optional[dict] = None,
) -> Optional[str]:
    try:
        provider_id = send_email(to=to_email, subject=subject, html=html, text=text)
    except EmailError as exc:
        logger.warning("Email %s to %s failed: %s", action, to_email, exc)
        log_process_event(
            db,
            category="email",
            action=action,
            status="error",
            message=str(exc) or "No se pudo enviar correo",
            to_email=to_email,
            provider="resend",
            reservation_id=reservation_id,
            ticket_id=ticket_id,
            meta=meta,
        )
        raise

    logger.info("Email %s sent to %s (%s)", action, to_email, provider_id)
    log_process_event(
        db,
        category="email",
        action=action,
        status="success",
        message=subject,
        to_email=to_email,
        provider="resend",
        provider_id=provider_id,
        reservation_id=reservation_id,
        ticket_id=ticket_id,
        meta=meta,
    )
    return provider_id


def send_reservation_approved_email(
    db: Session,
    reservation_id: str,
    full_name: str,
    email: str,
    phone: Optional[str],
    codes: List[str],
    table_name: Optional[str] = None,
    event: Optional[Event] = None,
    pack: Optional[str] = None,
    ticket_id: Optional[str] = None,
) -> Optional[str]:
    """Reservation confirmation with one QR per code"""
    context = {
        "full_name": full_name,
        "phone": phone,
        "table_name": table_name,
        "event_name": event.name if event else None,
        "date_label": _safe_date_label(event.starts_at if event else None),
        "location": event.location if event else None,
        "pack": pack,
        "codes": [{"code": code, "qr_url": QRService.external_qr_url(code)} for code in codes],
        "ticket_url": QRService.ticket_url(ticket_id) if ticket_id else None,
    }
    subject = "Reserva aprobada - códigos y QR"
    return _send_and_log(
        db,
        action="reservation_approved",
        to_email=email,
        subject=subject,
        html=render("reservation_approved.html", **context),
        text=render("reservation_approved.txt", **context),
        reservation_id=reservation_id,
        meta={"codes_count": len(codes)},
    )


def ticket_warnings(code: Optional[Code]) -> List[str]:
    if not code:
        return []
    warnings = []
    is_general = (code.type or "").lower() == "general"
    if is_general:
        if code.expires_at:
            parts = to_lima_parts_from_db(code.expires_at)
            label = f"{parts.hour12:02d}:{parts.minute:02d} {parts.ampm}"
            warnings.append(f"QR libre con hora límite: puedes ingresar hasta las {label}.")
        else:
            warnings.append("QR libre con hora límite configurable. Llega temprano para asegurar tu ingreso.")
    if code.promoter_id and not is_general:
        warnings.append("QR de promotor: no tiene límite de hora de ingreso. Coordina con tu promotor.")
    return warnings


def send_ticket_email(db: Session, ticket: Ticket, to_email: str) -> Optional[str]:
    """Ticket email with its QR and a link to the ticket page"""
    if not email_configured():
        raise EmailError("Correo no disponible: configura RESEND_API_KEY")

    event = ticket.event
    code = ticket.code
    table = db.query(Table).filter(Table.id == ticket.table_id).first() if ticket.table_id else None
    doc_value = ticket.document or ticket.dni or ""
    doc_type = (ticket.doc_type or ("dni" if ticket.dni else "")).upper()
    document_label = f"{doc_type} {doc_value}".strip() if doc_value else "—"

    context = {
        "event_name": event.name if event else None,
        "date_label": _safe_date_label(event.starts_at if event else None),
        "location": event.location if event else None,
        "full_name": ticket.full_name,
        "document_label": document_label,
        "code": code.code if code else None,
        "phone": ticket.phone,
        "table_name": table.name if table else None,
        "qr_url": QRService.ticket_qr_url(ticket.id),
        "ticket_url": QRService.ticket_url(ticket.id),
        "warnings": ticket_warnings(code),
    }
    subject = f"BABY - Entrada {event.name if event else 'evento'}"
    return _send_and_log(
        db,
        action="ticket_send",
        to_email=to_email,
        subject=subject,
        html=render("ticket.html", **context),
        text=render("ticket.txt", **context),
        ticket_id=ticket.id,
        meta={"event": event.name if event else None},
    )
