"""
Tests for table availability on the landing and table archive
"""

import pytest
from datetime import datetime, timedelta, timezone
from fastapi import HTTPException
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.core.db import Base
from app.models import Event, Table, TableReservation
from app.services.table_service import TableService, table_is_reserved

# Test database setup
SQLALCHEMY_DATABASE_URL = "sqlite:///./test_tables.db"
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

NOW = datetime(2099, 12, 20, 18, 0, tzinfo=timezone.utc)

@pytest.fixture
def db_session():
    """Create test database session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)

@pytest.fixture
def event(db_session):
    event = Event(name="Baby Deluxe", starts_at=datetime(2099, 12, 21, 3, 0, tzinfo=timezone.utc), capacity=100)
    db_session.add(event)
    db_session.commit()
    db_session.refresh(event)
    return event

@pytest.fixture
def table(db_session, event):
    table = Table(event_id=event.id, name="Mesa 1", ticket_count=3)
    db_session.add(table)
    db_session.commit()
    db_session.refresh(table)
    return table


def reserve(db, table, event_id, hours_ago=1, **fields):
    reservation = TableReservation(
        table_id=table.id,
        event_id=event_id,
        full_name="Ana Ruiz",
        status=fields.pop("status", "pending"),
        created_at=NOW - timedelta(hours=hours_ago),
        **fields,
    )
    db.add(reservation)
    db.commit()
    return reservation


def test_recent_reservation_holds_table(db_session, event, table):
    reserve(db_session, table, event.id, hours_ago=71)
    assert table_is_reserved(db_session, table, event.id, NOW) is True


def test_hold_expires_after_72_hours(db_session, event, table):
    reserve(db_session, table, event.id, hours_ago=73)
    assert table_is_reserved(db_session, table, event.id, NOW) is False


@pytest.mark.parametrize("status", ["rejected", "cancelled", "canceled"])
def test_released_statuses_free_table(db_session, event, table, status):
    reserve(db_session, table, event.id, status=status)
    assert table_is_reserved(db_session, table, event.id, NOW) is False


def test_reservation_scoped_to_event(db_session, event, table):
    other = Event(name="Otra Noche", starts_at=datetime(2099, 12, 28, 3, 0, tzinfo=timezone.utc))
    db_session.add(other)
    db_session.commit()
    reserve(db_session, table, other.id)
    assert table_is_reserved(db_session, table, event.id, NOW) is False
    assert table_is_reserved(db_session, table, other.id, NOW) is True


def test_reservation_without_event_holds_table(db_session, event, table):
    reserve(db_session, table, None)
    assert table_is_reserved(db_session, table, event.id, NOW) is True


def test_archived_reservation_is_ignored(db_session, event, table):
    reserve(db_session, table, event.id, deleted_at=NOW)
    assert table_is_reserved(db_session, table, event.id, NOW) is False


def test_list_public_tables(db_session, event, table):
    free = Table(event_id=event.id, name="Mesa 2", ticket_count=2)
    hidden = Table(event_id=event.id, name="Mesa 3", ticket_count=2, is_active=False)
    db_session.add_all([free, hidden])
    db_session.commit()
    reserve(db_session, table, event.id, status="approved")

    tables = TableService.list_public_tables(db_session, event.id, now=NOW)
    assert [(t["name"], t["is_reserved"]) for t in tables] == [("Mesa 1", True), ("Mesa 2", False)]


# -------- Archive --------

def test_delete_table_with_active_reservation(db_session, event, table):
    reservation = reserve(db_session, table, event.id, status="approved")
    with pytest.raises(HTTPException) as exc_info:
        TableService.delete_table(db_session, table.id, "staff-1")
    assert exc_info.value.status_code == 409
    assert exc_info.value.detail == "La mesa tiene reservas activas"

    reservation.status = "rejected"
    db_session.commit()
    TableService.delete_table(db_session, table.id, "staff-1")
    db_session.refresh(table)
    assert table.deleted_at is not None
    assert TableService.list_tables(db_session, event_id=event.id) == []


def test_delete_missing_table(db_session):
    with pytest.raises(HTTPException) as exc_info:
        TableService.delete_table(db_session, "missing", "staff-1")
    assert exc_info.value.status_code == 404
