"""
Stored procedure calls (bodies live in the database migrations)
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.utils.supabase_errors import error_code, sanitize_supabase_error_message

logger = logging.getLogger(__name__)


class RpcError(Exception):
    """A stored procedure failed; ``code`` is the SQLSTATE when known"""

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code


def _raise_rpc_error(name: str, exc: SQLAlchemyError):
    orig = getattr(exc, "orig", None)
    message = sanitize_supabase_error_message(str(orig) if orig is not None else str(exc))
    code = error_code(exc) if isinstance(exc, DBAPIError) else None
    logger.error("RPC %s failed (%s): %s", name, code, message)
    raise RpcError(message, code) from exc


def generate_codes_batch(
    db: Session,
    event_id: str,
    type: str,
    quantity: int,
    promoter_id: Optional[str] = None,
    expires_at: Optional[datetime] = None,
    max_uses: int = 1,
    prefix: Optional[str] = None,
    notes: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """Create ``quantity`` codes in a new batch; returns rows with batch_id and the code"""
    statement = text(
        "SELECT * FROM generate_codes_batch("
        ":p_event_id, :p_promoter_id, :p_type, :p_quantity, :p_expires_at, :p_max_uses, :p_prefix, :p_notes)"
    )
    params = {
        "p_event_id": event_id,
        "p_promoter_id": promoter_id,
        "p_type": type,
        "p_quantity": quantity,
        "p_expires_at": expires_at,
        "p_max_uses": max_uses,
        "p_prefix": prefix,
        "p_notes": notes,
    }
    try:
        rows = [dict(row) for row in db.execute(statement, params).mappings().all()]
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        _raise_rpc_error("generate_codes_batch", exc)
    logger.info("Generated %s %s codes for event %s", len(rows), type, event_id)
    return rows


def set_event_general_code(db: Session, event_id: str, code: str, capacity: int) -> bool:
    """Make ``code`` the single active general code of the event"""
    statement = text("SELECT set_event_general_code(:p_event_id, :p_code, :p_capacity)")
    try:
        result = db.execute(statement, {"p_event_id": event_id, "p_code": code, "p_capacity": capacity}).scalar()
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        _raise_rpc_error("set_event_general_code", exc)
    return bool(result)
