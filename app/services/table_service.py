"""
Table inventory, products and reservation-state lookup
"""

import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.models import Table, TableProduct, TableReservation
from app.schemas.table import TablePayload, TableProductPayload
from app.services.repositories import active_query, archive, get_active
from app.utils.lima_time import as_utc
from app.utils.responses import bad_request, conflict_error, not_found_error

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = ["pending", "approved", "confirmed", "paid"]
RELEASED_STATUSES = ["rejected", "cancelled", "canceled"]
RESERVATION_HOLD = timedelta(hours=72)

NUMERIC_FIELDS = ["min_consumption", "price", "pos_x", "pos_y", "pos_w", "pos_h"]


def finite_or_none(value: Any) -> Optional[float]:
    """Non-finite or unparsable numbers are stored as null"""
    if value is None or value == "":
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def serialize_product(product: TableProduct) -> Dict[str, Any]:
    return {
        "id": product.id,
        "table_id": product.table_id,
        "name": product.name,
        "description": product.description,
        "items": product.items or [],
        "price": product.price,
        "tickets_included": product.tickets_included,
        "sort_order": product.sort_order,
        "is_active": product.is_active,
    }


def active_products(db: Session, table_id: str) -> List[TableProduct]:
    return (
        active_query(db, TableProduct)
        .filter(TableProduct.table_id == table_id)
        .order_by(TableProduct.sort_order, TableProduct.name)
        .all()
    )


def serialize_table(db: Session, table: Table) -> Dict[str, Any]:
    return {
        "id": table.id,
        "organizer_id": table.organizer_id,
        "event_id": table.event_id,
        "name": table.name,
        "ticket_count": table.ticket_count,
        "min_consumption": table.min_consumption,
        "price": table.price,
        "notes": table.notes,
        "is_active": table.is_active,
        "pos_x": table.pos_x,
        "pos_y": table.pos_y,
        "pos_w": table.pos_w,
        "pos_h": table.pos_h,
        "products": [serialize_product(p) for p in active_products(db, table.id)],
    }


def table_is_reserved(db: Session, table: Table, event_id: Optional[str], now: Optional[datetime] = None) -> bool:
    """A recent, non-released reservation for this event (or with no event) holds the table"""
    current = now or datetime.now(timezone.utc)
    query = active_query(db, TableReservation).filter(
        TableReservation.table_id == table.id,
        TableReservation.status.notin_(RELEASED_STATUSES),
    )
    if event_id:
        query = query.filter(or_(TableReservation.event_id == event_id, TableReservation.event_id.is_(None)))
    for reservation in query.all():
        created = as_utc(reservation.created_at)
        if created is None or current - created <= RESERVATION_HOLD:
            return True
    return False


def ensure_table_free(db: Session, table_id: str) -> None:
    """Refuse a second active reservation on the same table"""
    existing = (
        active_query(db, TableReservation)
        .filter(TableReservation.table_id == table_id, TableReservation.status.in_(ACTIVE_STATUSES))
        .first()
    )
    if existing:
        conflict_error("La mesa ya tiene una reserva activa")


class TableService:
    """Service for table and product operations"""

    @staticmethod
    def list_tables(db: Session, organizer_id: Optional[str] = None, event_id: Optional[str] = None) -> List[Dict[str, Any]]:
        query = active_query(db, Table)
        if organizer_id:
            query = query.filter(Table.organizer_id == organizer_id)
        if event_id:
            query = query.filter(Table.event_id == event_id)
        return [serialize_table(db, t) for t in query.order_by(Table.name).all()]

    @staticmethod
    def list_public_tables(db: Session, event_id: Optional[str] = None, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
        """Landing view: active tables with reservation state and layout position"""
        query = active_query(db, Table).filter(Table.is_active.is_(True))
        if event_id:
            query = query.filter(Table.event_id == event_id)
        tables = query.order_by(Table.name).all()
        result = []
        for table in tables:
            data = serialize_table(db, table)
            data["is_reserved"] = table_is_reserved(db, table, event_id, now)
            result.append(data)
        return result

    @staticmethod
    def _apply_table(table: Table, body: TablePayload) -> None:
        name = (body.name or "").strip()
        if not name:
            bad_request("name es requerido")
        table.name = name
        ticket_count = finite_or_none(body.ticket_count)
        table.ticket_count = int(ticket_count) if ticket_count and ticket_count > 0 else 1
        for field in NUMERIC_FIELDS:
            setattr(table, field, finite_or_none(getattr(body, field)))
        table.notes = (body.notes or "").strip() or None
        table.organizer_id = body.organizer_id or table.organizer_id
        table.event_id = body.event_id or None
        if body.is_active is not None:
            table.is_active = body.is_active

    @staticmethod
    def create_table(db: Session, body: TablePayload) -> Dict[str, Any]:
        table = Table()
        TableService._apply_table(table, body)
        db.add(table)
        db.commit()
        db.refresh(table)
        return serialize_table(db, table)

    @staticmethod
    def update_table(db: Session, body: TablePayload) -> Dict[str, Any]:
        table = get_active(db, Table, body.id)
        if not table:
            not_found_error("Mesa no encontrada")
        TableService._apply_table(table, body)
        db.commit()
        return serialize_table(db, table)

    @staticmethod
    def delete_table(db: Session, table_id: Optional[str], staff_id: Optional[str]) -> None:
        table = get_active(db, Table, table_id)
        if not table:
            not_found_error("Mesa no encontrada")
        has_active = (
            active_query(db, TableReservation)
            .filter(TableReservation.table_id == table.id, TableReservation.status.in_(ACTIVE_STATUSES))
            .first()
        )
        if has_active:
            conflict_error("La mesa tiene reservas activas")
        archive(db, table, staff_id)

    # -------- Products --------

    @staticmethod
    def _apply_product(product: TableProduct, body: TableProductPayload) -> None:
        name = (body.name or "").strip()
        if not name:
            bad_request("name es requerido")
        product.name = name
        product.description = (body.description or "").strip() or None
        product.items = [item.strip() for item in (body.items or []) if item and item.strip()]
        product.price = finite_or_none(body.price)
        tickets = finite_or_none(body.tickets_included)
        product.tickets_included = int(tickets) if tickets is not None else None
        if body.sort_order is not None:
            product.sort_order = body.sort_order
        if body.is_active is not None:
            product.is_active = body.is_active

    @staticmethod
    def create_product(db: Session, body: TableProductPayload) -> Dict[str, Any]:
        if not body.table_id:
            bad_request("table_id es requerido")
        if not get_active(db, Table, body.table_id):
            not_found_error("Mesa no encontrada")
        product = TableProduct(table_id=body.table_id)
        TableService._apply_product(product, body)
        db.add(product)
        db.commit()
        db.refresh(product)
        return serialize_product(product)

    @staticmethod
    def update_product(db: Session, body: TableProductPayload) -> Dict[str, Any]:
        product = get_active(db, TableProduct, body.id)
        if not product:
            not_found_error("Producto no encontrado")
        TableService._apply_product(product, body)
        db.commit()
        return serialize_product(product)

    @staticmethod
    def delete_product(db: Session, product_id: Optional[str], staff_id: Optional[str]) -> None:
        product = get_active(db, TableProduct, product_id)
        if not product:
            not_found_error("Producto no encontrado")
        archive(db, product, staff_id)
