"""
Tickets: landing registration with a code, ticket pages, backoffice listing and archive
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from app.models import Code, Person, Promoter, Table, TableReservation, Ticket
from app.schemas.ticket import TicketCreate
from app.services.email_service import EmailError, send_ticket_email
from app.services.export_service import ExportService
from app.services.reniec_service import is_adult, parse_birthdate
from app.services.repositories import active_query, archive, get_active
from app.services.scan_service import code_is_exhausted, code_is_expired
from app.services.table_service import ACTIVE_STATUSES
from app.utils.documents import normalize_document, validate_document
from app.utils.entry_limit import get_entry_cutoff_display
from app.utils.lima_time import format_lima_from_db, iso_or_none
from app.utils.responses import api_error, bad_request, not_found_error

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = [
    "ticket_id",
    "event",
    "full_name",
    "doc_type",
    "document",
    "email",
    "phone",
    "code",
    "code_type",
    "promoter",
    "table",
    "used",
    "created_at",
]


def _clean(value: Optional[str]) -> str:
    return value.strip() if isinstance(value, str) else ""


def serialize_ticket(ticket: Ticket) -> Dict[str, Any]:
    code = ticket.code
    return {
        "id": ticket.id,
        "event_id": ticket.event_id,
        "event_name": ticket.event.name if ticket.event else None,
        "code_id": ticket.code_id,
        "code": code.code if code else None,
        "code_type": code.type if code else None,
        "person_id": ticket.person_id,
        "promoter_id": ticket.promoter_id,
        "table_id": ticket.table_id,
        "table_reservation_id": ticket.table_reservation_id,
        "qr_token": ticket.qr_token,
        "doc_type": ticket.doc_type,
        "document": ticket.document,
        "dni": ticket.dni,
        "full_name": ticket.full_name,
        "email": ticket.email,
        "phone": ticket.phone,
        "used": bool(ticket.used),
        "used_at": iso_or_none(ticket.used_at),
        "is_active": ticket.is_active,
        "created_at": iso_or_none(ticket.created_at),
    }


def _lima_label(value) -> Optional[str]:
    if not value:
        return None
    try:
        return format_lima_from_db(value)
    except ValueError:
        return None


class TicketService:
    """Service for ticket operations"""

    @staticmethod
    def register(db: Session, body: TicketCreate, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Landing registration: validates person and code, returns the existing ticket for the event if any"""
        doc_type, document = normalize_document(body.doc_type, body.document or body.dni)
        normalized_document = document.lower()
        dni = document if doc_type == "dni" else None
        first_name = _clean(body.nombre)
        last_name = " ".join(part for part in [_clean(body.apellido_paterno), _clean(body.apellido_materno)] if part)
        email = _clean(body.email) or None
        phone = _clean(body.telefono) or None
        code_value = _clean(body.code)

        if not validate_document(doc_type, document):
            bad_request("Documento inválido")
        if not first_name or not last_name:
            bad_request("nombre y apellido son requeridos")
        birthdate = None
        if _clean(body.birthdate):
            birthdate = parse_birthdate(body.birthdate)
            if not birthdate:
                bad_request("birthdate inválida")
            if not is_adult(birthdate):
                api_error("Solo mayores de 18", 403)
        if not code_value:
            bad_request("code is required")

        current = now or datetime.now(timezone.utc)
        code = active_query(db, Code).filter(Code.code == code_value).first()
        if not code:
            not_found_error("Código inválido")
        if code.is_active is False:
            bad_request("Código inactivo")
        if code_is_expired(code, current):
            bad_request("Código expirado")
        if code_is_exhausted(code):
            bad_request("Código sin cupos")

        conditions = [func.lower(Person.document) == normalized_document]
        if dni:
            conditions.append(Person.dni == dni)
        person = db.query(Person).filter(or_(*conditions)).first()
        if not person:
            person = Person()
            db.add(person)
        person.dni = dni
        person.doc_type = doc_type
        person.document = normalized_document
        person.first_name = first_name
        person.last_name = last_name
        person.email = email
        person.phone = phone
        person.birthdate = birthdate
        db.flush()

        existing = (
            active_query(db, Ticket)
            .filter(Ticket.event_id == code.event_id, Ticket.person_id == person.id)
            .first()
        )
        if existing:
            db.commit()
            return {"existing": True, "ticketId": existing.id, "qr": existing.qr_token}

        ticket = Ticket(
            event_id=code.event_id,
            code_id=code.id,
            person_id=person.id,
            promoter_id=_clean(body.promoter_id) or code.promoter_id,
            qr_token=str(uuid.uuid4()),
            dni=dni,
            document=normalized_document,
            doc_type=doc_type,
            full_name=f"{first_name} {last_name}".strip(),
            email=email,
            phone=phone,
        )
        db.add(ticket)
        code.uses = (code.uses or 0) + 1
        db.commit()
        db.refresh(ticket)
        logger.info("Ticket %s issued with code %s", ticket.id, code.code)
        return {"ticketId": ticket.id, "qr": ticket.qr_token, "code": code.code, "eventId": code.event_id}

    @staticmethod
    def get_public_ticket(db: Session, ticket_id: str) -> Dict[str, Any]:
        """Ticket page data: event, Lima date, entry cutoff, table / reservation"""
        ticket = get_active(db, Ticket, ticket_id)
        if not ticket:
            not_found_error("Ticket no encontrado")
        event = ticket.event
        code = ticket.code

        reservation = None
        if ticket.table_reservation_id:
            reservation = get_active(db, TableReservation, ticket.table_reservation_id)
        if not reservation:
            reservation = active_query(db, TableReservation).filter(TableReservation.ticket_id == ticket.id).first()
        table = ticket.table or (reservation.table if reservation else None)

        return {
            "ticket": {
                "id": ticket.id,
                "qr_token": ticket.qr_token,
                "full_name": ticket.full_name,
                "doc_type": ticket.doc_type,
                "document": ticket.document or ticket.dni,
                "email": ticket.email,
                "phone": ticket.phone,
                "used": bool(ticket.used),
            },
            "event": {
                "id": event.id,
                "name": event.name,
                "location": event.location,
                "starts_at": iso_or_none(event.starts_at),
                "date_label": _lima_label(event.starts_at),
                "entry_cutoff": get_entry_cutoff_display(event.starts_at, event.entry_limit),
            }
            if event
            else None,
            "code": {"code": code.code, "type": code.type, "expires_at": iso_or_none(code.expires_at)} if code else None,
            "table": {"id": table.id, "name": table.name} if table else None,
            "reservation": {
                "id": reservation.id,
                "status": reservation.status,
                "codes": reservation.codes or [],
                "product": reservation.product.name if reservation.product else None,
            }
            if reservation
            else None,
        }

    @staticmethod
    def get_qr_token(db: Session, ticket_id: str) -> str:
        ticket = get_active(db, Ticket, ticket_id)
        if not ticket:
            not_found_error("Ticket no encontrado")
        return ticket.qr_token

    # -------- Backoffice --------

    @staticmethod
    def _filtered(db: Session, event_id: Optional[str] = None, code_type: Optional[str] = None, q: Optional[str] = None):
        query = active_query(db, Ticket)
        if event_id:
            query = query.filter(Ticket.event_id == event_id)
        if code_type:
            query = query.join(Code, Code.id == Ticket.code_id).filter(Code.type == code_type)
        term = _clean(q)
        if term:
            like = f"%{term.lower()}%"
            query = query.filter(
                or_(
                    func.lower(Ticket.full_name).like(like),
                    func.lower(Ticket.email).like(like),
                    Ticket.phone.like(f"%{term}%"),
                    Ticket.document.like(f"%{term.lower()}%"),
                    Ticket.dni.like(f"%{term}%"),
                )
            )
        return query.order_by(Ticket.created_at.desc())

    @staticmethod
    def list_tickets(
        db: Session,
        event_id: Optional[str] = None,
        code_type: Optional[str] = None,
        q: Optional[str] = None,
        page: int = 1,
        page_size: int = 50,
    ) -> Dict[str, Any]:
        page = max(page, 1)
        page_size = max(1, min(page_size, 500))
        query = TicketService._filtered(db, event_id, code_type, q)
        total = query.count()
        rows = query.offset((page - 1) * page_size).limit(page_size).all()
        return {"data": [serialize_ticket(t) for t in rows], "total": total, "page": page, "pageSize": page_size}

    @staticmethod
    def get_ticket(db: Session, ticket_id: str) -> Dict[str, Any]:
        ticket = get_active(db, Ticket, ticket_id)
        if not ticket:
            not_found_error("Ticket no encontrado")
        return serialize_ticket(ticket)

    @staticmethod
    def delete_ticket(db: Session, ticket_id: Optional[str], staff_id: Optional[str]) -> int:
        """Archive the ticket and release same-event reservations held by its email / phone"""
        ticket_id = _clean(ticket_id)
        if not ticket_id:
            bad_request("id requerido")
        ticket = get_active(db, Ticket, ticket_id)
        if not ticket:
            not_found_error("Ticket no encontrado")
        archive(db, ticket, staff_id, commit=False)

        released = 0
        contacts = []
        if ticket.email:
            contacts.append(TableReservation.email == ticket.email)
        if ticket.phone:
            contacts.append(TableReservation.phone == ticket.phone)
        if contacts and ticket.event_id:
            released = (
                active_query(db, TableReservation)
                .filter(
                    TableReservation.event_id == ticket.event_id,
                    TableReservation.status.in_(ACTIVE_STATUSES),
                    or_(*contacts),
                )
                .update({"status": "rejected"}, synchronize_session=False)
            )
        db.commit()
        logger.info("Ticket %s archived by %s (%s reservations released)", ticket_id, staff_id, released)
        return released

    @staticmethod
    def export_tickets(db: Session, event_id: Optional[str], fmt: Optional[str], code_type: Optional[str] = None, q: Optional[str] = None):
        rows = []
        for ticket in TicketService._filtered(db, event_id, code_type, q).all():
            rows.append(TicketService.report_row(db, ticket))
        return ExportService.build(fmt, "tickets", rows, EXPORT_COLUMNS, sheet_name="Tickets")

    @staticmethod
    def report_row(db: Session, ticket: Ticket) -> Dict[str, Any]:
        code = ticket.code
        promoter_id = ticket.promoter_id or (code.promoter_id if code else None)
        promoter_label = None
        if promoter_id:
            promoter = db.query(Promoter).filter(Promoter.id == promoter_id).first()
            if promoter:
                promoter_label = (promoter.person.full_name if promoter.person else None) or promoter.code
        table = db.query(Table).filter(Table.id == ticket.table_id).first() if ticket.table_id else None
        return {
            "ticket_id": ticket.id,
            "event": ticket.event.name if ticket.event else None,
            "full_name": ticket.full_name,
            "doc_type": ticket.doc_type,
            "document": ticket.document or ticket.dni,
            "email": ticket.email,
            "phone": ticket.phone,
            "code": code.code if code else None,
            "code_type": code.type if code else None,
            "promoter": promoter_label,
            "table": table.name if table else None,
            "used": "si" if ticket.used else "no",
            "created_at": _lima_label(ticket.created_at),
        }

    @staticmethod
    def send_email(db: Session, ticket_id: Optional[str], email: Optional[str] = None) -> Dict[str, Any]:
        """Explicit send: failures surface to the caller"""
        ticket = get_active(db, Ticket, _clean(ticket_id))
        if not ticket:
            not_found_error("Ticket no encontrado")
        to_email = _clean(email) or ticket.email
        if not to_email:
            bad_request("El ticket no tiene email")
        try:
            provider_id = send_ticket_email(db, ticket, to_email)
        except EmailError as exc:
            bad_request(str(exc) or "No se pudo enviar correo")
        return {"sent": True, "providerId": provider_id, "to": to_email}
