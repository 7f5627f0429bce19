"""
Access codes: batch generation, batch lifecycle, listing / export and landing lookups
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.models import CODE_TYPES, Code, CodeBatch, Event, Ticket
from app.schemas.code import BatchGenerate
from app.services.export_service import ExportService
from app.services.repositories import active_query, archive_query, get_active
from app.services.rpc import RpcError, generate_codes_batch
from app.utils.lima_time import as_utc, iso_or_none, parse_iso
from app.utils.responses import bad_request, not_found_error

logger = logging.getLogger(__name__)

BATCH_TYPES = [t for t in CODE_TYPES if t != "general"]
MAX_BATCH_QUANTITY = 500
CODE_STATUSES = ["all", "active", "inactive", "expired"]
EXPORT_COLUMNS = [
    "code",
    "type",
    "event_id",
    "event_name",
    "promoter_id",
    "promoter_code",
    "promoter_name",
    "is_active",
    "uses",
    "max_uses",
    "remaining",
    "expires_at",
    "created_at",
    "batch_id",
]


def clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


def parse_int(value: Any, fallback: int) -> int:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return fallback


def parse_expires_at(value: Optional[str]) -> Optional[datetime]:
    """Unparsable values become None"""
    if not value or not str(value).strip():
        return None
    try:
        return parse_iso(str(value).strip()).astimezone(timezone.utc)
    except ValueError:
        return None


def codes_from_rpc(rows: List[Dict[str, Any]]) -> List[str]:
    return [row.get("generated_code") or row.get("code") for row in rows if row.get("generated_code") or row.get("code")]


def serialize_code(code: Code) -> Dict[str, Any]:
    promoter = code.promoter
    person = promoter.person if promoter else None
    remaining = None
    if code.max_uses is not None:
        remaining = max(code.max_uses - (code.uses or 0), 0)
    return {
        "id": code.id,
        "code": code.code,
        "type": code.type,
        "event_id": code.event_id,
        "event_name": code.event.name if code.event else None,
        "promoter_id": code.promoter_id,
        "promoter_code": promoter.code if promoter else None,
        "promoter_name": person.full_name if person else None,
        "is_active": code.is_active,
        "uses": code.uses or 0,
        "max_uses": code.max_uses,
        "remaining": remaining,
        "expires_at": iso_or_none(code.expires_at),
        "created_at": iso_or_none(code.created_at),
        "batch_id": code.batch_id,
    }


class CodeService:
    """Service for access codes and batches"""

    @staticmethod
    def generate_batch(db: Session, body: BatchGenerate) -> Dict[str, Any]:
        event_id = (body.event_id or "").strip()
        code_type = (body.type or "").strip().lower()
        promoter_id = (body.promoter_id or "").strip() or None
        if not event_id or not code_type:
            bad_request("event_id y type son requeridos")
        if code_type not in BATCH_TYPES:
            bad_request("type inválido")
        if code_type == "promoter" and not promoter_id:
            bad_request("promoter_id es requerido para type promoter")

        quantity = clamp(parse_int(body.quantity, 1), 1, MAX_BATCH_QUANTITY)
        max_uses = max(1, parse_int(body.max_uses, 1))
        try:
            rows = generate_codes_batch(
                db,
                event_id=event_id,
                type=code_type,
                quantity=quantity,
                promoter_id=promoter_id,
                expires_at=parse_expires_at(body.expires_at),
                max_uses=max_uses,
                prefix=(body.prefix or "").strip() or None,
                notes=(body.notes or "").strip() or None,
            )
        except RpcError as exc:
            bad_request(exc.message)
        return {"batch_id": rows[0].get("batch_id") if rows else None, "codes": codes_from_rpc(rows)}

    @staticmethod
    def deactivate_batch(db: Session, batch_id: Optional[str]) -> int:
        batch_id = (batch_id or "").strip()
        if not batch_id:
            bad_request("batch_id es requerido")
        affected = (
            active_query(db, Code)
            .filter(Code.batch_id == batch_id)
            .update({"is_active": False}, synchronize_session=False)
        )
        db.commit()
        logger.info("Batch %s deactivated (%s codes)", batch_id, affected)
        return affected

    @staticmethod
    def delete_batch(db: Session, batch_id: Optional[str], staff_id: Optional[str]) -> int:
        batch_id = (batch_id or "").strip()
        if not batch_id:
            bad_request("batch_id es requerido")
        deleted = archive_query(db.query(Code).filter(Code.batch_id == batch_id), staff_id)
        archive_query(db.query(CodeBatch).filter(CodeBatch.id == batch_id), staff_id)
        db.commit()
        return deleted

    @staticmethod
    def _filtered(
        db: Session,
        event_id: Optional[str],
        type: Optional[str] = None,
        promoter_id: Optional[str] = None,
        batch_id: Optional[str] = None,
        status: str = "all",
        now: Optional[datetime] = None,
    ):
        if not event_id:
            bad_request("event_id es requerido")
        current = now or datetime.now(timezone.utc)
        query = active_query(db, Code).filter(Code.event_id == event_id)
        if type:
            query = query.filter(Code.type == type)
        if promoter_id:
            query = query.filter(Code.promoter_id == promoter_id)
        if batch_id:
            query = query.filter(Code.batch_id == batch_id)
        if status == "active":
            query = query.filter(Code.is_active.is_(True), or_(Code.expires_at.is_(None), Code.expires_at > current))
        elif status == "inactive":
            query = query.filter(Code.is_active.is_(False))
        elif status == "expired":
            query = query.filter(Code.expires_at < current)
        return query.order_by(Code.created_at.desc())

    @staticmethod
    def list_codes(
        db: Session,
        event_id: Optional[str],
        type: Optional[str] = None,
        promoter_id: Optional[str] = None,
        batch_id: Optional[str] = None,
        status: str = "all",
        page: int = 1,
        page_size: int = 50,
    ) -> Dict[str, Any]:
        page = clamp(page, 1, 100000)
        page_size = clamp(page_size, 1, 500)
        query = CodeService._filtered(db, event_id, type, promoter_id, batch_id, status)
        total = query.count()
        rows = query.offset((page - 1) * page_size).limit(page_size).all()
        return {"data": [serialize_code(c) for c in rows], "total": total, "page": page, "pageSize": page_size}

    @staticmethod
    def export_codes(db: Session, event_id: Optional[str], fmt: Optional[str], **filters: Any):
        rows = [serialize_code(c) for c in CodeService._filtered(db, event_id, **filters).all()]
        for row in rows:
            row["is_active"] = 1 if row["is_active"] else 0
        return ExportService.build(fmt, "codes", rows, EXPORT_COLUMNS, sheet_name="Codigos")

    # -------- Landing --------

    @staticmethod
    def get_code_info(db: Session, code_value: Optional[str]) -> Dict[str, Any]:
        code_value = (code_value or "").strip()
        if not code_value:
            bad_request("code es requerido")
        code = active_query(db, Code).filter(Code.code == code_value).first()
        if not code:
            not_found_error("Código no encontrado")
        return {
            "code": code.code,
            "type": code.type,
            "promoter_id": code.promoter_id,
            "event_id": code.event_id,
            "is_active": code.is_active,
            "expires_at": iso_or_none(code.expires_at),
        }

    @staticmethod
    def get_aforo(db: Session, code_value: Optional[str]) -> Dict[str, Any]:
        """Capacity for a code: its max_uses, else the event capacity"""
        code_value = (code_value or "").strip()
        if not code_value:
            bad_request("code es requerido")
        code = active_query(db, Code).filter(Code.code == code_value).first()
        if not code:
            not_found_error("Código no encontrado")
        event = get_active(db, Event, code.event_id)
        capacity = code.max_uses or (event.capacity if event else 0) or 0
        used = active_query(db, Ticket).filter(Ticket.code_id == code.id).count()
        percent = min(round(used / capacity * 100), 100) if capacity > 0 else 0
        return {
            "code": code.code,
            "event_id": code.event_id,
            "capacity": capacity,
            "used": used,
            "available": max(capacity - used, 0),
            "percent": percent,
            "expires_at": iso_or_none(as_utc(code.expires_at)),
        }
