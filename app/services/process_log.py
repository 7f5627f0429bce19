"""
Operator-facing audit log stored in process_logs
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models import ProcessLog

logger = logging.getLogger(__name__)


def log_process_event(
    db: Session,
    category: str,
    action: str,
    status: str,
    message: Optional[str] = None,
    to_email: Optional[str] = None,
    provider: Optional[str] = None,
    provider_id: Optional[str] = None,
    reservation_id: Optional[str] = None,
    ticket_id: Optional[str] = None,
    meta: Optional[Dict[str, Any]] = None,
) -> None:
    """Write one row; a failure here is logged and never reaches the caller"""
    try:
        db.add(
            ProcessLog(
                category=category,
                action=action,
                status=status,
                message=message,
                to_email=to_email,
                provider=provider,
                provider_id=provider_id,
                reservation_id=reservation_id,
                ticket_id=ticket_id,
                meta=meta,
            )
        )
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.warning("Could not write process log %s/%s: %s", category, action, exc)


def list_process_logs(
    db: Session,
    category: Optional[str] = None,
    status: Optional[str] = None,
    limit: int = 100,
) -> List[Dict[str, Any]]:
    query = db.query(ProcessLog)
    if category:
        query = query.filter(ProcessLog.category == category)
    if status:
        query = query.filter(ProcessLog.status == status)
    rows = query.order_by(ProcessLog.created_at.desc()).limit(max(1, min(limit, 500))).all()
    return [
        {
            "id": row.id,
            "category": row.category,
            "action": row.action,
            "status": row.status,
            "message": row.message,
            "to_email": row.to_email,
            "provider": row.provider,
            "provider_id": row.provider_id,
            "reservation_id": row.reservation_id,
            "ticket_id": row.ticket_id,
            "meta": row.meta,
            "created_at": row.created_at.isoformat() if row.created_at else None,
        }
        for row in rows
    ]
