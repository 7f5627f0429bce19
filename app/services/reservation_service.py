"""
Table reservations: staff and landing creation, approval / rejection, archive
"""

import logging
import re
import secrets
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import and_, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models import Code, Event, Table, TableProduct, TableReservation, Ticket
from app.schemas.reservation import ReservationAdminCreate, ReservationPublicCreate, ReservationUpdate
from app.services.email_service import EmailError, email_configured, send_reservation_approved_email
from app.services.person_service import PersonService
from app.services.repositories import active_query, archive, archive_query, get_active
from app.services.table_service import ensure_table_free
from app.utils.documents import normalize_document, validate_document
from app.utils.friendly_codes import add_suffix_if_needed, clean_token, generate_reservation_codes, strip_accents
from app.utils.lima_time import iso_or_none
from app.utils.responses import bad_request, not_found_error
from app.utils.supabase_errors import is_unique_violation

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
ADMIN_STATUSES = ["pending", "approved", "rejected"]
COURTESY_ATTEMPTS = 5


def _clean(value: Optional[str]) -> str:
    return value.strip() if isinstance(value, str) else ""


def _random_digits(length: int = 6) -> str:
    return "".join(str(secrets.randbelow(10)) for _ in range(length))


def sanitize_base(value: Optional[str]) -> str:
    return clean_token(value or "", 12) or "mesa"


def courtesy_prefix(event_name: Optional[str]) -> str:
    """First four letters of the event name padded with "mesa" """
    letters = re.sub(r"[^a-z]", "", strip_accents(event_name or "").lower())
    return (letters + "mesa")[:4]


def serialize_reservation(reservation: TableReservation) -> Dict[str, Any]:
    table = reservation.table
    event = reservation.event
    product = reservation.product
    return {
        "id": reservation.id,
        "table_id": reservation.table_id,
        "table_name": table.name if table else None,
        "event_id": reservation.event_id,
        "event_name": event.name if event else None,
        "product_id": reservation.product_id,
        "product_name": product.name if product else None,
        "ticket_id": reservation.ticket_id,
        "promoter_id": reservation.promoter_id,
        "full_name": reservation.full_name,
        "doc_type": reservation.doc_type,
        "document": reservation.document,
        "email": reservation.email,
        "phone": reservation.phone,
        "voucher_url": reservation.voucher_url,
        "status": reservation.status,
        "ticket_quantity": reservation.ticket_quantity,
        "codes": reservation.codes or [],
        "notes": reservation.notes,
        "created_at": iso_or_none(reservation.created_at),
    }


def create_ticket_for_reservation(
    db: Session,
    reservation: TableReservation,
    event_id: str,
    code: Optional[Code],
    person=None,
) -> Ticket:
    doc_type, document = normalize_document(reservation.doc_type, reservation.document)
    ticket = Ticket(
        event_id=event_id,
        code_id=code.id if code else None,
        person_id=person.id if person else None,
        promoter_id=reservation.promoter_id,
        table_id=reservation.table_id,
        table_reservation_id=reservation.id,
        qr_token=str(uuid.uuid4()),
        doc_type=doc_type,
        document=document or None,
        dni=document if doc_type == "dni" and document else None,
        full_name=reservation.full_name,
        email=reservation.email,
        phone=reservation.phone,
    )
    db.add(ticket)
    db.flush()
    return ticket


def ensure_code_for_ticket(db: Session, event_id: str, table_name: Optional[str], candidate: Optional[Code] = None) -> Code:
    """Reuse an active candidate code or mint a single-use courtesy code"""
    if candidate and candidate.is_active and candidate.deleted_at is None:
        return candidate
    base = sanitize_base(table_name)
    value = f"{base}-{_random_digits()}"
    while db.query(Code.id).filter(Code.code == value).first():
        value = f"{base}-{_random_digits()}"
    code = Code(code=value, event_id=event_id, type="courtesy", max_uses=1, uses=0)
    db.add(code)
    db.flush()
    return code


def create_reservation_codes(
    db: Session,
    reservation: TableReservation,
    event: Event,
    table: Table,
    quantity: int,
) -> List[str]:
    """Per-seat BC-... codes linked to the reservation"""
    prefix = event.event_prefix or clean_token(event.name, 8).upper() or "EVT"
    values = []
    for index, base in enumerate(generate_reservation_codes(prefix, table.name, quantity), start=1):
        attempt = 1
        value = base
        while db.query(Code.id).filter(Code.code == value).first():
            attempt += 1
            value = add_suffix_if_needed(base, attempt)
        db.add(
            Code(
                code=value,
                event_id=event.id,
                type="table",
                max_uses=1,
                uses=0,
                table_reservation_id=reservation.id,
                person_index=index,
                promoter_id=reservation.promoter_id,
            )
        )
        values.append(value)
    db.flush()
    return values


def _pack_label(reservation: TableReservation) -> Optional[str]:
    product = reservation.product
    if not product:
        return None
    if product.price is not None:
        return f"{product.name} - S/ {product.price:g}"
    return product.name


class ReservationService:
    """Service for table reservations"""

    @staticmethod
    def _load_table(db: Session, table_id: Optional[str], event_id: Optional[str]) -> Table:
        table_id = _clean(table_id)
        if not table_id:
            bad_request("table_id es requerido")
        table = get_active(db, Table, table_id)
        if not table:
            not_found_error("Mesa no encontrada")
        if not table.is_active:
            bad_request("Mesa inactiva")
        if event_id and table.event_id and table.event_id != event_id:
            bad_request("La mesa pertenece a otro evento")
        return table

    @staticmethod
    def _check_product(db: Session, product_id: Optional[str], table: Table) -> Optional[TableProduct]:
        product_id = _clean(product_id)
        if not product_id:
            return None
        product = get_active(db, TableProduct, product_id)
        if not product or product.table_id != table.id:
            bad_request("El producto no pertenece a la mesa seleccionada")
        return product

    @staticmethod
    def _find_existing_ticket(db: Session, body: ReservationAdminCreate, event_id: Optional[str]) -> Optional[Ticket]:
        if _clean(body.ticket_id):
            return get_active(db, Ticket, _clean(body.ticket_id))
        _, document = normalize_document(body.doc_type, body.document)
        query = active_query(db, Ticket)
        if event_id:
            query = query.filter(Ticket.event_id == event_id)
        for column, value in (
            (Ticket.document, document),
            (Ticket.dni, document),
            (Ticket.email, _clean(body.email)),
            (Ticket.phone, _clean(body.phone)),
        ):
            if value:
                ticket = query.filter(column == value).order_by(Ticket.created_at.desc()).first()
                if ticket:
                    return ticket
        return None

    @staticmethod
    def create_admin(db: Session, body: ReservationAdminCreate, staff_id: Optional[str] = None) -> Dict[str, Any]:
        """Staff-created reservation for a new customer or an existing ticket holder"""
        event_id = _clean(body.event_id) or None
        table = ReservationService._load_table(db, body.table_id, event_id)
        event_id = event_id or table.event_id
        product = ReservationService._check_product(db, body.product_id, table)
        ensure_table_free(db, table.id)

        status = _clean(body.status).lower() or "approved"
        if status not in ADMIN_STATUSES:
            status = "approved"
        doc_type, document = normalize_document(body.doc_type, body.document)
        email = _clean(body.email) or None
        if email and not EMAIL_RE.match(email):
            bad_request("Email inválido")
        quantity = body.ticket_quantity or (product.tickets_included if product else None) or table.ticket_count or 1

        if body.mode == "existing_ticket":
            ticket = ReservationService._find_existing_ticket(db, body, event_id)
            if not ticket:
                not_found_error("Ticket no encontrado")
            event_id = event_id or ticket.event_id
            event = get_active(db, Event, event_id)
            if not event:
                bad_request("Evento requerido")
            reservation = TableReservation(
                table_id=table.id,
                event_id=event.id,
                product_id=product.id if product else None,
                ticket_id=ticket.id,
                promoter_id=_clean(body.promoter_id) or ticket.promoter_id,
                full_name=_clean(body.full_name) or ticket.full_name or "Invitado",
                doc_type=ticket.doc_type or doc_type,
                document=ticket.document or ticket.dni or document or None,
                email=email or ticket.email,
                phone=_clean(body.phone) or ticket.phone,
                status=status,
                ticket_quantity=quantity,
                notes=_clean(body.notes) or None,
                created_by_staff_id=staff_id,
            )
            db.add(reservation)
            db.flush()
            ticket.table_id = table.id
            ticket.table_reservation_id = reservation.id
        else:
            full_name = _clean(body.full_name)
            if not full_name:
                bad_request("full_name es requerido")
            if not event_id:
                bad_request("event_id es requerido")
            event = get_active(db, Event, event_id)
            if not event:
                not_found_error("Evento no encontrado")
            if not validate_document(doc_type, document):
                bad_request("Documento inválido")

            person = PersonService.ensure_person(db, full_name, doc_type, document, email, _clean(body.phone))
            reservation = TableReservation(
                table_id=table.id,
                event_id=event.id,
                product_id=product.id if product else None,
                promoter_id=_clean(body.promoter_id) or None,
                full_name=full_name,
                doc_type=doc_type,
                document=document,
                email=email,
                phone=_clean(body.phone) or None,
                status=status,
                ticket_quantity=quantity,
                notes=_clean(body.notes) or None,
                created_by_staff_id=staff_id,
            )
            db.add(reservation)
            db.flush()
            code = ensure_code_for_ticket(db, event.id, table.name)
            ticket = create_ticket_for_reservation(db, reservation, event.id, code, person)
            code.uses = (code.uses or 0) + 1
            reservation.ticket_id = ticket.id

        reservation.codes = create_reservation_codes(db, reservation, event, table, quantity)
        db.commit()
        db.refresh(reservation)
        logger.info("Reservation %s created on table %s (%s)", reservation.id, table.name, status)

        email_sent = False
        email_error = None
        if status == "approved" and reservation.email:
            try:
                send_reservation_approved_email(
                    db,
                    reservation_id=reservation.id,
                    full_name=reservation.full_name,
                    email=reservation.email,
                    phone=reservation.phone,
                    codes=reservation.codes or [],
                    table_name=table.name,
                    event=event,
                    pack=_pack_label(reservation),
                    ticket_id=reservation.ticket_id,
                )
                email_sent = True
            except EmailError as exc:
                email_error = str(exc)

        return {
            "reservationId": reservation.id,
            "ticketId": reservation.ticket_id,
            "codes": reservation.codes or [],
            "emailSent": email_sent,
            "emailError": email_error,
        }

    @staticmethod
    def _resolve_public_event(db: Session, table: Table, body: ReservationPublicCreate) -> Optional[Event]:
        """Table's event, then the body, then the code's event, then the nearest active event"""
        for candidate in (table.event_id, _clean(body.event_id)):
            if candidate:
                event = get_active(db, Event, candidate)
                if event:
                    return event
        code_value = _clean(body.code)
        if code_value:
            code = active_query(db, Code).filter(Code.code == code_value).first()
            if code:
                event = get_active(db, Event, code.event_id)
                if event:
                    return event
        return (
            active_query(db, Event)
            .filter(Event.is_active.is_(True), Event.closed_at.is_(None))
            .order_by(Event.starts_at.asc())
            .first()
        )

    @staticmethod
    def create_public(db: Session, body: ReservationPublicCreate) -> Dict[str, Any]:
        """Landing request: pending reservation with courtesy codes for the rest of the table"""
        full_name = _clean(body.full_name)
        voucher_url = _clean(body.voucher_url)
        doc_type, document = normalize_document(body.doc_type, body.document)
        if not _clean(body.table_id):
            bad_request("table_id es requerido")
        if not full_name:
            bad_request("full_name es requerido")
        if not voucher_url:
            bad_request("voucher_url es requerido")
        if not validate_document(doc_type, document):
            bad_request("Documento inválido")
        email = _clean(body.email) or None
        if email and not EMAIL_RE.match(email):
            bad_request("Email inválido")

        table = ReservationService._load_table(db, body.table_id, None)
        product = ReservationService._check_product(db, body.product_id, table)
        event = ReservationService._resolve_public_event(db, table, body)
        ensure_table_free(db, table.id)

        ticket_count = table.ticket_count or 1
        reservation = TableReservation(
            table_id=table.id,
            event_id=event.id if event else None,
            product_id=product.id if product else None,
            promoter_id=_clean(body.promoter_id) or None,
            full_name=full_name,
            doc_type=doc_type,
            document=document,
            email=email,
            phone=_clean(body.phone) or None,
            voucher_url=voucher_url,
            status="pending",
            ticket_quantity=ticket_count,
        )
        db.add(reservation)
        db.commit()
        db.refresh(reservation)

        codes: List[str] = []
        if event and ticket_count > 1:
            codes = ReservationService._insert_courtesy_codes(db, reservation, event, ticket_count - 1)
        logger.info("Public reservation %s on table %s", reservation.id, table.name)
        return {
            "reservationId": reservation.id,
            "codes": codes,
            "eventId": event.id if event else None,
            "ticketCount": ticket_count,
        }

    @staticmethod
    def _insert_courtesy_codes(db: Session, reservation: TableReservation, event: Event, quantity: int) -> List[str]:
        prefix = courtesy_prefix(event.name)
        for attempt in range(1, COURTESY_ATTEMPTS + 1):
            values = [f"{prefix}-{secrets.token_hex(3).upper()}" for _ in range(quantity)]
            db.add_all(
                Code(
                    code=value,
                    event_id=event.id,
                    type="courtesy",
                    max_uses=1,
                    uses=0,
                    table_reservation_id=reservation.id,
                )
                for value in values
            )
            reservation.codes = values
            try:
                db.commit()
                return values
            except IntegrityError as exc:
                db.rollback()
                if not is_unique_violation(exc):
                    raise
                logger.warning("Courtesy code collision for reservation %s (attempt %s)", reservation.id, attempt)
        bad_request("No se pudieron generar códigos de cortesía")

    @staticmethod
    def list_reservations(db: Session, event_id: Optional[str] = None, status: Optional[str] = None) -> List[Dict[str, Any]]:
        query = active_query(db, TableReservation)
        if event_id:
            query = query.filter(TableReservation.event_id == event_id)
        if status:
            query = query.filter(TableReservation.status == status)
        return [serialize_reservation(r) for r in query.order_by(TableReservation.created_at.desc()).all()]

    @staticmethod
    def get_reservation(db: Session, reservation_id: str) -> Dict[str, Any]:
        reservation = get_active(db, TableReservation, reservation_id)
        if not reservation:
            not_found_error("Reserva no encontrada")
        data = serialize_reservation(reservation)
        tickets = active_query(db, Ticket).filter(Ticket.table_reservation_id == reservation.id).all()
        data["tickets"] = [
            {"id": t.id, "full_name": t.full_name, "used": bool(t.used), "code_id": t.code_id} for t in tickets
        ]
        return data

    @staticmethod
    def _reservation_codes(db: Session, reservation: TableReservation) -> List[Code]:
        conditions = [Code.table_reservation_id == reservation.id]
        if reservation.codes:
            conditions.append(Code.code.in_(reservation.codes))
        return active_query(db, Code).filter(or_(*conditions)).all()

    @staticmethod
    def _approve(db: Session, reservation: TableReservation, trace: List[str]) -> None:
        """Issue one ticket per seat, reusing the reservation's unused codes first"""
        quantity = reservation.ticket_quantity or 1
        trace.append(f"ticketQty:{quantity}")
        existing = active_query(db, Ticket).filter(Ticket.table_reservation_id == reservation.id).count()
        used_code_ids = {
            row.code_id
            for row in active_query(db, Ticket).filter(Ticket.table_reservation_id == reservation.id).all()
            if row.code_id
        }
        candidates = [
            code
            for code in ReservationService._reservation_codes(db, reservation)
            if code.is_active and code.id not in used_code_ids
        ]
        table = reservation.table
        person = PersonService.ensure_person(
            db, reservation.full_name, reservation.doc_type, reservation.document, reservation.email, reservation.phone
        )
        codes = list(reservation.codes or [])
        for _ in range(max(quantity - existing, 0)):
            candidate = candidates.pop(0) if candidates else None
            code = ensure_code_for_ticket(db, reservation.event_id, table.name if table else None, candidate)
            ticket = create_ticket_for_reservation(db, reservation, reservation.event_id, code, person)
            code.uses = (code.uses or 0) + 1
            if not reservation.ticket_id:
                reservation.ticket_id = ticket.id
            if code.code not in codes:
                codes.append(code.code)
        reservation.codes = codes
        trace.append(f"codes:{len(codes)}")

    @staticmethod
    def _reject(db: Session, reservation: TableReservation) -> None:
        """Deactivate every code and ticket tied to the reservation"""
        codes = ReservationService._reservation_codes(db, reservation)
        code_ids = [code.id for code in codes]
        for code in codes:
            code.is_active = False
        conditions = [Ticket.table_reservation_id == reservation.id]
        if code_ids:
            conditions.append(Ticket.code_id.in_(code_ids))
        if reservation.event_id:
            conditions.append(and_(Ticket.table_id == reservation.table_id, Ticket.event_id == reservation.event_id))
        active_query(db, Ticket).filter(or_(*conditions)).update({"is_active": False}, synchronize_session=False)

    @staticmethod
    def update_reservation(db: Session, body: ReservationUpdate) -> Dict[str, Any]:
        reservation_id = _clean(body.id)
        if not reservation_id:
            bad_request("id es requerido")
        reservation = get_active(db, TableReservation, reservation_id)
        if not reservation:
            not_found_error("Reserva no encontrada")

        changes: Dict[str, Any] = {}
        status = _clean(body.status).lower()
        if status in ADMIN_STATUSES:
            changes["status"] = status
        if body.full_name is not None and _clean(body.full_name):
            changes["full_name"] = _clean(body.full_name)
        if body.email is not None:
            email = _clean(body.email)
            if email and not EMAIL_RE.match(email):
                bad_request("Email inválido")
            changes["email"] = email or None
        if body.phone is not None:
            changes["phone"] = _clean(body.phone) or None
        if body.notes is not None:
            changes["notes"] = _clean(body.notes) or None
        if body.ticket_quantity is not None and body.ticket_quantity > 0:
            changes["ticket_quantity"] = body.ticket_quantity
        if not changes:
            bad_request("Nada para actualizar")

        approving = changes.get("status") == "approved" and reservation.status != "approved"
        if approving:
            if not email_configured():
                bad_request("Correo no disponible: configura RESEND_API_KEY")
            if not changes.get("email", reservation.email):
                bad_request("La reserva no tiene email de contacto")
            if not reservation.event_id:
                bad_request("La reserva no tiene evento asociado")

        for key, value in changes.items():
            setattr(reservation, key, value)

        trace = [f"eventId:{reservation.event_id}"]
        if approving:
            ReservationService._approve(db, reservation, trace)
        elif changes.get("status") == "rejected":
            ReservationService._reject(db, reservation)
            trace.append("rejected")
        db.commit()
        db.refresh(reservation)

        email_sent = False
        email_error = None
        if approving:
            try:
                send_reservation_approved_email(
                    db,
                    reservation_id=reservation.id,
                    full_name=reservation.full_name,
                    email=reservation.email,
                    phone=reservation.phone,
                    codes=reservation.codes or [],
                    table_name=reservation.table.name if reservation.table else None,
                    event=reservation.event,
                    pack=_pack_label(reservation),
                    ticket_id=reservation.ticket_id,
                )
                email_sent = True
                trace.append("email:sent")
            except EmailError as exc:
                email_error = str(exc)
                trace.append("email:error")

        return {
            "reservation": serialize_reservation(reservation),
            "emailSent": email_sent,
            "emailError": email_error,
            "trace": trace,
        }

    @staticmethod
    def delete_reservation(db: Session, reservation_id: Optional[str], staff_id: Optional[str]) -> None:
        reservation = get_active(db, TableReservation, _clean(reservation_id))
        if not reservation:
            not_found_error("Reserva no encontrada")
        for code in ReservationService._reservation_codes(db, reservation):
            code.is_active = False
        archive_query(active_query(db, Ticket).filter(Ticket.table_reservation_id == reservation.id), staff_id)
        archive(db, reservation, staff_id, status="archived")
        logger.info("Reservation %s archived by %s", reservation.id, staff_id)

    @staticmethod
    def resend_email(db: Session, reservation_id: str) -> Dict[str, Any]:
        """Explicit send: failures surface to the caller"""
        reservation = get_active(db, TableReservation, reservation_id)
        if not reservation:
            not_found_error("Reserva no encontrada")
        if not reservation.email:
            bad_request("La reserva no tiene email de contacto")
        if not email_configured():
            bad_request("Correo no disponible: configura RESEND_API_KEY")
        try:
            provider_id = send_reservation_approved_email(
                db,
                reservation_id=reservation.id,
                full_name=reservation.full_name,
                email=reservation.email,
                phone=reservation.phone,
                codes=reservation.codes or [],
                table_name=reservation.table.name if reservation.table else None,
                event=reservation.event,
                pack=_pack_label(reservation),
                ticket_id=reservation.ticket_id,
            )
        except EmailError as exc:
            bad_request(str(exc) or "No se pudo enviar correo")
        return {"sent": True, "providerId": provider_id, "sentAt": datetime.now(timezone.utc).isoformat()}
