"""
Event lifecycle: create / update with general code, close, archive, per-event tables
"""

import logging
import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.models import Code, Event, EventMessage, Organizer, Table, TableAvailability, TableReservation
from app.schemas.event import EventPayload, EventTablePayload
from app.services.process_log import log_process_event
from app.services.repositories import active_query, archive, archive_query, get_active
from app.services.rpc import RpcError, set_event_general_code
from app.utils.entry_limit import DEFAULT_ENTRY_LIMIT, get_entry_cutoff_display, normalize_entry_limit
from app.utils.lima_time import iso_or_none, parse_date_to_lima
from app.utils.responses import bad_request, not_found_error
from app.utils.supabase_errors import UNIQUE_VIOLATION

logger = logging.getLogger(__name__)

COVER_KEY = "cover_image"


def _clean(value: Optional[str]) -> str:
    return value.strip() if isinstance(value, str) else ""


def _number(value: Any) -> Optional[float]:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def build_event_fields(body: EventPayload) -> Dict[str, Any]:
    """Validate a create/update body; raises 400 with the first problem"""
    name = _clean(body.name)
    starts_at = parse_date_to_lima(body.starts_at or body.date)
    capacity = _number(body.capacity)
    entry_limit = normalize_entry_limit(_clean(body.entry_limit) or DEFAULT_ENTRY_LIMIT)
    code = _clean(body.code)

    if not name:
        bad_request("name is required")
    if not starts_at:
        bad_request("date must be a valid date")
    if capacity is None or capacity < 10:
        bad_request("capacity must be >= 10")
    if not entry_limit:
        bad_request("entry_limit inválido")
    if not code:
        bad_request("code is required")

    return {
        "name": name,
        "location": _clean(body.location),
        "starts_at": starts_at.astimezone(timezone.utc),
        "entry_limit": entry_limit,
        "capacity": int(capacity),
        "header_image": _clean(body.header_image) or None,
        "is_active": body.is_active if isinstance(body.is_active, bool) else True,
        "event_prefix": _clean(body.event_prefix) or None,
        "code": code,
        "cover_image": _clean(body.cover_image),
    }


def general_code_error(exc: RpcError) -> str:
    if exc.code == UNIQUE_VIOLATION:
        return "Ese código ya está asignado a otro evento"
    return exc.message or "Código no disponible"


def serialize_event(db: Session, event: Event) -> Dict[str, Any]:
    general = (
        active_query(db, Code)
        .filter(Code.event_id == event.id, Code.type == "general", Code.is_active.is_(True))
        .first()
    )
    cover = db.query(EventMessage).filter(EventMessage.event_id == event.id, EventMessage.key == COVER_KEY).first()
    return {
        "id": event.id,
        "organizer_id": event.organizer_id,
        "name": event.name,
        "starts_at": iso_or_none(event.starts_at),
        "location": event.location,
        "capacity": event.capacity,
        "entry_limit": event.entry_limit,
        "event_prefix": event.event_prefix,
        "header_image": event.header_image,
        "cover_image": cover.value_text if cover else None,
        "is_active": event.is_active,
        "closed_at": iso_or_none(event.closed_at),
        "code": general.code if general else None,
        "entry_cutoff": get_entry_cutoff_display(event.starts_at, event.entry_limit),
        "created_at": iso_or_none(event.created_at),
    }


class EventService:
    """Service for event operations"""

    @staticmethod
    def list_events(db: Session, organizer_id: Optional[str] = None) -> List[Dict[str, Any]]:
        query = active_query(db, Event)
        if organizer_id:
            query = query.filter(Event.organizer_id == organizer_id)
        events = query.order_by(Event.starts_at.desc()).all()
        return [serialize_event(db, event) for event in events]

    @staticmethod
    def resolve_organizer_id(db: Session, requested: Optional[str], existing: Optional[str] = None) -> str:
        candidate = _clean(requested) or existing or settings.DEFAULT_ORGANIZER_ID
        if not candidate:
            first = (
                active_query(db, Organizer)
                .filter(Organizer.is_active.is_(True))
                .order_by(Organizer.sort_order, Organizer.name)
                .first()
            )
            if not first:
                bad_request("No hay organizador configurado")
            return first.id
        if not get_active(db, Organizer, candidate):
            bad_request("Organizador inválido")
        return candidate

    @staticmethod
    def upsert_cover(db: Session, event_id: str, cover_url: str) -> None:
        message = db.query(EventMessage).filter(EventMessage.event_id == event_id, EventMessage.key == COVER_KEY).first()
        if cover_url:
            if message:
                message.value_text = cover_url
            else:
                db.add(EventMessage(event_id=event_id, key=COVER_KEY, value_text=cover_url))
        elif message:
            db.delete(message)
        db.commit()

    @staticmethod
    def create_event(db: Session, body: EventPayload) -> str:
        fields = build_event_fields(body)
        organizer_id = EventService.resolve_organizer_id(db, body.organizer_id)
        code = fields.pop("code")
        cover_image = fields.pop("cover_image")

        event = Event(organizer_id=organizer_id, **fields)
        db.add(event)
        db.commit()
        db.refresh(event)

        try:
            ok = set_event_general_code(db, event.id, code, fields["capacity"])
        except RpcError as exc:
            db.delete(event)
            db.commit()
            bad_request(general_code_error(exc))
        if not ok:
            db.delete(event)
            db.commit()
            bad_request("No se pudo guardar el código del evento")

        if cover_image:
            EventService.upsert_cover(db, event.id, cover_image)
        logger.info("Event %s created (%s)", event.id, event.name)
        return event.id

    @staticmethod
    def update_event(db: Session, body: EventPayload) -> str:
        event_id = _clean(body.id)
        if not event_id:
            bad_request("id is required")
        fields = build_event_fields(body)
        event = get_active(db, Event, event_id)
        if not event:
            not_found_error("Evento no encontrado")

        organizer_id = EventService.resolve_organizer_id(db, body.organizer_id, event.organizer_id)
        code = fields.pop("code")
        cover_image = fields.pop("cover_image")
        for key, value in fields.items():
            setattr(event, key, value)
        event.organizer_id = organizer_id
        db.commit()

        try:
            ok = set_event_general_code(db, event.id, code, fields["capacity"])
        except RpcError as exc:
            bad_request(general_code_error(exc))
        if not ok:
            bad_request("No se pudo guardar el código del evento")

        EventService.upsert_cover(db, event.id, cover_image)
        return event.id

    @staticmethod
    def close_event(db: Session, event_id: Optional[str], reason: Optional[str], staff_id: Optional[str]) -> Dict[str, Any]:
        """Deactivate codes, archive reservations and mark the event closed"""
        event_id = _clean(event_id)
        if not event_id:
            bad_request("id is required")
        event = get_active(db, Event, event_id)
        if not event:
            not_found_error("Evento no encontrado")

        closed_at = datetime.now(timezone.utc)
        active_codes = active_query(db, Code).filter(Code.event_id == event_id, Code.is_active.is_(True))
        disabled_codes = active_codes.count()
        active_codes.update({"is_active": False}, synchronize_session=False)

        reservations = active_query(db, TableReservation).filter(TableReservation.event_id == event_id)
        archived_reservations = reservations.count()
        reservations.update({"deleted_at": closed_at, "status": "archived"}, synchronize_session=False)

        event.is_active = False
        event.closed_at = closed_at
        event.closed_by = staff_id
        event.close_reason = _clean(reason) or None
        db.commit()

        log_process_event(
            db,
            category="events",
            action="close_event",
            status="success",
            message=(
                f"Evento {event.name or event_id} cerrado: {disabled_codes} códigos desactivados, "
                f"{archived_reservations} reservaciones archivadas"
            ),
            meta={
                "event_id": event_id,
                "disabled_codes": disabled_codes,
                "archived_reservations": archived_reservations,
                "reason": event.close_reason,
            },
        )
        return {
            "closed": True,
            "event": {"id": event.id, "name": event.name, "closed_at": iso_or_none(closed_at)},
            "disabled_codes": disabled_codes,
            "archived_reservations": archived_reservations,
        }

    @staticmethod
    def delete_event(db: Session, event_id: Optional[str], staff_id: Optional[str]) -> None:
        event = get_active(db, Event, _clean(event_id))
        if not event:
            not_found_error("Evento no encontrado")
        archive_query(active_query(db, Code).filter(Code.event_id == event.id), staff_id)
        archive(db, event, staff_id)
        logger.info("Event %s archived by %s", event.id, staff_id)

    # -------- Per-event table availability --------

    @staticmethod
    def list_event_tables(db: Session, event_id: str) -> List[Dict[str, Any]]:
        rows = (
            active_query(db, TableAvailability)
            .join(Table, Table.id == TableAvailability.table_id)
            .filter(TableAvailability.event_id == event_id, Table.deleted_at.is_(None))
            .order_by(Table.name)
            .all()
        )
        result = []
        for row in rows:
            table = row.table
            result.append(
                {
                    "id": row.id,
                    "tableId": table.id,
                    "name": table.name,
                    "ticket_count": table.ticket_count,
                    "is_available": row.is_available,
                    "price": table.price,
                    "min_consumption": table.min_consumption,
                    "custom_price": row.custom_price,
                    "custom_min_consumption": row.custom_min_consumption,
                    "finalPrice": row.custom_price if row.custom_price is not None else table.price,
                    "finalMinConsumption": (
                        row.custom_min_consumption if row.custom_min_consumption is not None else table.min_consumption
                    ),
                    "hasCustomPrice": row.custom_price is not None,
                    "hasCustomMinConsumption": row.custom_min_consumption is not None,
                    "notes": row.notes,
                }
            )
        return result

    @staticmethod
    def upsert_event_table(db: Session, event_id: str, body: EventTablePayload) -> str:
        table_id = _clean(body.tableId)
        if not table_id:
            bad_request("tableId es requerido")
        if not get_active(db, Event, event_id):
            not_found_error("Evento no encontrado")
        if not get_active(db, Table, table_id):
            not_found_error("Mesa no encontrada")

        row = (
            db.query(TableAvailability)
            .filter(TableAvailability.event_id == event_id, TableAvailability.table_id == table_id)
            .first()
        )
        if not row:
            row = TableAvailability(event_id=event_id, table_id=table_id)
            db.add(row)
        row.is_available = body.is_available
        row.custom_price = body.custom_price
        row.custom_min_consumption = body.custom_min_consumption
        row.notes = body.notes
        # Re-adding a previously removed table restores the row
        row.deleted_at = None
        row.deleted_by = None
        row.is_active = True
        db.commit()
        return row.id

    @staticmethod
    def remove_event_table(db: Session, event_id: str, table_id: Optional[str], staff_id: Optional[str]) -> None:
        table_id = _clean(table_id)
        if not table_id:
            bad_request("tableId es requerido")
        row = (
            active_query(db, TableAvailability)
            .filter(TableAvailability.event_id == event_id, TableAvailability.table_id == table_id)
            .first()
        )
        if not row:
            not_found_error("Mesa no asignada al evento")
        archive(db, row, staff_id)
