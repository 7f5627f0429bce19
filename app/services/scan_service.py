"""
Door scanning: code / QR validation and entry confirmation
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from app.models import Code, Event, ScanLog, Ticket
from app.services.repositories import active_query, get_active
from app.utils.entry_limit import is_past_cutoff
from app.utils.lima_time import as_utc, iso_or_none, to_utc_iso
from app.utils.responses import api_error, bad_request, not_found_error

logger = logging.getLogger(__name__)


def code_is_exhausted(code: Code) -> bool:
    return code.max_uses is not None and (code.uses or 0) >= code.max_uses


def code_is_expired(code: Code, now: datetime) -> bool:
    return bool(code.expires_at) and as_utc(code.expires_at) < now


def _person(ticket: Ticket) -> Dict[str, Optional[str]]:
    return {"full_name": ticket.full_name, "dni": ticket.dni, "email": ticket.email, "phone": ticket.phone}


class ScanService:
    """Service for door validation"""

    @staticmethod
    def record(db: Session, event_id: str, result: str, code_id=None, ticket_id=None, raw_value=None, staff_id=None):
        db.add(
            ScanLog(
                event_id=event_id,
                code_id=code_id,
                ticket_id=ticket_id,
                raw_value=raw_value,
                result=result,
                scanned_by_staff_id=staff_id,
            )
        )
        db.commit()

    @staticmethod
    def scan(
        db: Session,
        code_value: str,
        event_id: str,
        staff_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """Classify a scanned value without consuming it"""
        code_value = (code_value or "").strip()
        event_id = (event_id or "").strip()
        if not code_value or not event_id:
            bad_request("code y event_id son requeridos")

        current = now or datetime.now(timezone.utc)
        event = get_active(db, Event, event_id)
        if not event:
            not_found_error("Evento no encontrado")

        past_cutoff, cutoff = is_past_cutoff(event.starts_at, event.entry_limit, current)
        cutoff_iso = to_utc_iso(cutoff.cutoff) if cutoff else None

        result = "not_found"
        reason = None
        match_type = "none"
        code_id = ticket_id = code_type = None
        person = None
        ticket_used = False
        other_event = None

        code = (
            active_query(db, Code)
            .filter(Code.event_id == event_id, Code.code == code_value)
            .first()
        )
        if code:
            match_type = "code"
            code_id = code.id
            code_type = (code.type or "").lower() or None
            if not code.is_active:
                result = "inactive"
            elif code_is_expired(code, current):
                result = "expired"
            elif code_is_exhausted(code):
                result = "exhausted"
            else:
                result = "valid"
                if code_type == "general" and past_cutoff:
                    result = "expired"
                    reason = "entry_cutoff"

            ticket = (
                active_query(db, Ticket)
                .filter(Ticket.code_id == code.id, Ticket.event_id == event_id)
                .order_by(Ticket.created_at.desc())
                .first()
            )
            if ticket:
                ticket_id = ticket.id
                ticket_used = bool(ticket.used)
                person = _person(ticket)
                if ticket_used:
                    result = "duplicate"
                    reason = None
        else:
            ticket = (
                active_query(db, Ticket)
                .filter(Ticket.qr_token == code_value, Ticket.event_id == event_id)
                .first()
            )
            if ticket:
                match_type = "ticket"
                ticket_id = ticket.id
                code_id = ticket.code_id
                code_type = ((ticket.code.type if ticket.code else "") or "").lower() or None
                ticket_used = bool(ticket.used)
                person = _person(ticket)
                if ticket_used:
                    result = "duplicate"
                elif code_type == "general" and past_cutoff:
                    result = "expired"
                    reason = "entry_cutoff"
                else:
                    result = "valid"
            else:
                other = (
                    active_query(db, Code).filter(Code.code == code_value, Code.event_id != event_id).first()
                    or active_query(db, Ticket).filter(Ticket.qr_token == code_value, Ticket.event_id != event_id).first()
                )
                if other:
                    other_event = {"id": other.event_id, "name": other.event.name if other.event else None}
                    result = "invalid"
                    reason = "event_mismatch"
                else:
                    reason = "not_found"

        ScanService.record(db, event_id, result, code_id, ticket_id, code_value, staff_id)
        logger.info("Scan %s on event %s -> %s", code_value, event_id, result)

        return {
            "result": result,
            "reason": reason,
            "match_type": match_type,
            "other_event": other_event,
            "code_id": code_id,
            "ticket_id": ticket_id,
            "code_type": code_type,
            "uses": code.uses if code else 0,
            "max_uses": code.max_uses if code else None,
            "expired_at": cutoff_iso if reason == "entry_cutoff" else (iso_or_none(code.expires_at) if code else None),
            "entry_cutoff": cutoff_iso,
            "person": person,
            "ticket_used": ticket_used,
        }

    @staticmethod
    def _check_cutoff(db: Session, code: Optional[Code], event_id: str, now: datetime) -> None:
        if not code or (code.type or "").lower() != "general":
            return
        event = db.query(Event).filter(Event.id == event_id).first()
        if not event:
            return
        past, info = is_past_cutoff(event.starts_at, event.entry_limit, now)
        if past:
            api_error(
                "Fuera de hora de ingreso",
                400,
                result="expired",
                reason="entry_cutoff",
                expired_at=to_utc_iso(info.cutoff),
            )

    @staticmethod
    def confirm(
        db: Session,
        code_id: Optional[str] = None,
        ticket_id: Optional[str] = None,
        staff_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """Consume an entry: mark the ticket used, or count one use of a bare code"""
        if not code_id and not ticket_id:
            bad_request("code_id o ticket_id es requerido")
        current = now or datetime.now(timezone.utc)

        query = active_query(db, Ticket)
        query = query.filter(Ticket.id == ticket_id) if ticket_id else query.filter(Ticket.code_id == code_id)
        ticket = query.order_by(Ticket.created_at.desc()).first()

        if ticket:
            if ticket.used:
                bad_request("Este ticket ya fue usado", result="duplicate")
            ScanService._check_cutoff(db, ticket.code, ticket.event_id, current)

            ticket.used = True
            ticket.used_at = current
            ticket.used_by = staff_id
            db.commit()
            ScanService.record(db, ticket.event_id, "valid", ticket.code_id, ticket.id, ticket.id, staff_id)
            return {"result": "confirmed", "ticket_id": ticket.id, "code_id": ticket.code_id, "ticket_used": True}

        if not code_id:
            api_error("Ticket no encontrado", 404, result="not_found")

        code = get_active(db, Code, code_id)
        if not code:
            api_error("Código no encontrado", 404, result="not_found")
        if not code.is_active:
            bad_request("Código inactivo", result="inactive")
        ScanService._check_cutoff(db, code, code.event_id, current)
        if code_is_expired(code, current):
            bad_request("Código expirado", result="expired")
        if code_is_exhausted(code):
            bad_request("Código sin cupos", result="exhausted")

        code.uses = (code.uses or 0) + 1
        db.commit()
        ScanService.record(db, code.event_id, "valid", code.id, None, code.id, staff_id)
        return {"result": "confirmed", "code_id": code.id, "uses": code.uses, "max_uses": code.max_uses}
