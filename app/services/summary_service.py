"""
Dashboard summaries (QR by type, promoters) and the event report export
"""

from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models import Code, Event, Promoter, TableReservation, Ticket
from app.services.export_service import ExportService
from app.services.repositories import active_query, get_active
from app.services.reservation_service import serialize_reservation
from app.services.ticket_service import EXPORT_COLUMNS, TicketService
from app.utils.lima_time import iso_or_none
from app.utils.responses import bad_request, not_found_error

DIRECT_PROMOTER_ID = "direct"
DIRECT_PROMOTER_LABEL = "Invitacion directa"
UNKNOWN_TYPE = "desconocido"

RESERVATION_COLUMNS = [
    "id",
    "table_name",
    "full_name",
    "document",
    "email",
    "phone",
    "status",
    "ticket_quantity",
    "product_name",
    "created_at",
]


def promoter_label(promoter: Promoter) -> str:
    person = promoter.person
    full_name = person.full_name if person else ""
    if full_name:
        return full_name
    if promoter.code:
        return promoter.code
    return f"Promotor {promoter.id[:6]}"


def upcoming_events(db: Session, now: Optional[datetime] = None) -> List[Event]:
    current = now or datetime.now(timezone.utc)
    return (
        active_query(db, Event)
        .filter(Event.is_active.is_(True), Event.closed_at.is_(None), Event.starts_at >= current)
        .order_by(Event.starts_at.asc())
        .all()
    )


class SummaryService:
    """Service for dashboard aggregates"""

    @staticmethod
    def qr_summary(db: Session, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
        result = []
        for event in upcoming_events(db, now):
            rows = (
                active_query(db, Ticket)
                .outerjoin(Code, Code.id == Ticket.code_id)
                .filter(Ticket.event_id == event.id)
                .with_entities(Code.type, func.count(Ticket.id))
                .group_by(Code.type)
                .all()
            )
            by_type: Dict[str, int] = defaultdict(int)
            for code_type, count in rows:
                by_type[(code_type or UNKNOWN_TYPE).lower()] += count
            result.append(
                {
                    "event_id": event.id,
                    "name": event.name,
                    "date": iso_or_none(event.starts_at),
                    "total_qr": sum(by_type.values()),
                    "by_type": [{"type": key, "count": value} for key, value in sorted(by_type.items())],
                }
            )
        return result

    @staticmethod
    def promoter_summary(db: Session, top_limit: int = 10, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
        """Tickets per promoter for each upcoming event; the ticket's promoter wins over the code's"""
        result = []
        names: Dict[str, str] = {DIRECT_PROMOTER_ID: DIRECT_PROMOTER_LABEL}
        for event in upcoming_events(db, now):
            counts: Dict[str, int] = defaultdict(int)
            tickets = active_query(db, Ticket).filter(Ticket.event_id == event.id).all()
            for ticket in tickets:
                code_promoter = ticket.code.promoter_id if ticket.code else None
                counts[ticket.promoter_id or code_promoter or DIRECT_PROMOTER_ID] += 1

            missing = [pid for pid in counts if pid not in names]
            if missing:
                for promoter in db.query(Promoter).filter(Promoter.id.in_(missing)).all():
                    names[promoter.id] = promoter_label(promoter)

            promoters = sorted(
                (
                    {
                        "promoter_id": pid,
                        "name": names.get(pid) or f"Promotor {pid[:6]}",
                        "tickets": count,
                    }
                    for pid, count in counts.items()
                ),
                key=lambda row: row["tickets"],
                reverse=True,
            )[:top_limit]
            result.append(
                {
                    "event_id": event.id,
                    "name": event.name,
                    "date": iso_or_none(event.starts_at),
                    "total_tickets": sum(counts.values()),
                    "promoters": promoters,
                }
            )
        return result

    @staticmethod
    def export_report(db: Session, event_id: Optional[str], fmt: Optional[str]):
        """Tickets report; xlsx adds a reservations sheet"""
        if not event_id:
            bad_request("event_id es requerido")
        event = get_active(db, Event, event_id)
        if not event:
            not_found_error("Evento no encontrado")
        tickets = active_query(db, Ticket).filter(Ticket.event_id == event.id).order_by(Ticket.created_at).all()
        rows = [TicketService.report_row(db, ticket) for ticket in tickets]
        reservations = [
            {key: value for key, value in serialize_reservation(r).items() if key in RESERVATION_COLUMNS}
            for r in active_query(db, TableReservation).filter(TableReservation.event_id == event.id).all()
        ]
        return ExportService.build(
            fmt,
            f"reporte-{event.id}",
            rows,
            EXPORT_COLUMNS,
            sheet_name="Tickets",
            extra_sheets={"Reservas": (reservations, RESERVATION_COLUMNS)},
        )
