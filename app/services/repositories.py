"""
Repository helpers shared by services: soft delete filters and archival.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional, Type

from sqlalchemy.orm import Query, Session


def build_archive_payload(staff_id: Optional[str] = None) -> Dict[str, Any]:
    return {
        "deleted_at": datetime.now(timezone.utc),
        "deleted_by": staff_id,
        "is_active": False,
    }


def not_deleted(query: Query, model: Type) -> Query:
    """Apply ``deleted_at IS NULL``; every read goes through this"""
    return query.filter(model.deleted_at.is_(None))


def active_query(db: Session, model: Type) -> Query:
    return not_deleted(db.query(model), model)


def get_active(db: Session, model: Type, row_id: Optional[str]):
    """Fetch a non-archived row by id"""
    if not row_id:
        return None
    return active_query(db, model).filter(model.id == row_id).first()


def apply_payload(row, payload: Dict[str, Any]) -> None:
    for key, value in payload.items():
        setattr(row, key, value)


def archive(db: Session, row, staff_id: Optional[str] = None, commit: bool = True, **extra: Any):
    """Mark a row archived; it stays in the table for audit"""
    apply_payload(row, {**build_archive_payload(staff_id), **extra})
    if commit:
        db.commit()
        db.refresh(row)
    return row


def archive_query(query: Query, staff_id: Optional[str] = None, **extra: Any) -> int:
    """Archive every row matched by ``query``; returns the row count"""
    return query.update({**build_archive_payload(staff_id), **extra}, synchronize_session=False)
