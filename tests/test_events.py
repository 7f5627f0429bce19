"""
Tests for event lifecycle: create, close, archive and per-event tables
"""

import pytest
from datetime import datetime, timezone
from fastapi import HTTPException
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.core.config import settings
from app.core.db import Base
from app.models import Code, Event, Organizer, ProcessLog, Table, TableReservation
from app.schemas.event import EventPayload, EventTablePayload
from app.services.event_service import EventService
from app.services.rpc import RpcError
from app.utils.lima_time import as_utc

# Test database setup
SQLALCHEMY_DATABASE_URL = "sqlite:///./test_events.db"
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

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

@pytest.fixture(autouse=True)
def no_default_organizer(monkeypatch):
    monkeypatch.setattr(settings, "DEFAULT_ORGANIZER_ID", None)

@pytest.fixture
def organizer(db_session):
    organizer = Organizer(slug="babyclub", name="BabyClub")
    db_session.add(organizer)
    db_session.commit()
    db_session.refresh(organizer)
    return organizer

@pytest.fixture
def general_code_rpc(monkeypatch):
    """Stand-in for the stored procedure: stores the general code as a plain row"""

    def set_general(db, event_id, code, capacity):
        db.add(Code(code=code, event_id=event_id, type="general", max_uses=capacity))
        db.commit()
        return True

    monkeypatch.setattr("app.services.event_service.set_event_general_code", set_general)

@pytest.fixture
def event(db_session, organizer):
    event = Event(
        organizer_id=organizer.id,
        name="Baby Deluxe",
        starts_at=datetime(2025, 12, 21, 3, 0, tzinfo=timezone.utc),
        capacity=100,
    )
    db_session.add(event)
    db_session.commit()
    db_session.refresh(event)
    return event


def payload(**fields):
    data = {
        "name": "Fiesta",
        "starts_at": "2025-12-20T22:00",
        "capacity": "150",
        "code": "FIESTA-1220",
        "location": "Miraflores",
    }
    data.update(fields)
    return EventPayload(**data)


# -------- Create / update --------

def test_create_event(db_session, organizer, general_code_rpc):
    event_id = EventService.create_event(db_session, payload())

    event = db_session.query(Event).filter(Event.id == event_id).one()
    assert event.organizer_id == organizer.id
    assert as_utc(event.starts_at) == datetime(2025, 12, 21, 3, 0, tzinfo=timezone.utc)
    assert event.capacity == 150
    assert event.entry_limit == "23:30"

    listed = EventService.list_events(db_session)
    assert listed[0]["code"] == "FIESTA-1220"
    assert listed[0]["entry_cutoff"]["cutoffIso"] == "2025-12-21T04:30:00.000Z"


def test_create_event_with_cover(db_session, organizer, general_code_rpc):
    EventService.create_event(db_session, payload(cover_image="https://cdn.example.com/cover.jpg"))
    assert EventService.list_events(db_session)[0]["cover_image"] == "https://cdn.example.com/cover.jpg"


@pytest.mark.parametrize(
    "fields,message",
    [
        ({"name": " "}, "name is required"),
        ({"starts_at": "mañana"}, "date must be a valid date"),
        ({"capacity": "5"}, "capacity must be >= 10"),
        ({"capacity": "many"}, "capacity must be >= 10"),
        ({"entry_limit": "25:00"}, "entry_limit inválido"),
        ({"code": ""}, "code is required"),
    ],
)
def test_create_event_validation(db_session, organizer, general_code_rpc, fields, message):
    with pytest.raises(HTTPException) as exc_info:
        EventService.create_event(db_session, payload(**fields))
    assert exc_info.value.status_code == 400
    assert exc_info.value.detail == message


def test_create_event_rolls_back_on_code_conflict(db_session, organizer, monkeypatch):
    def conflict(db, event_id, code, capacity):
        raise RpcError("duplicate key value violates unique constraint", "23505")

    monkeypatch.setattr("app.services.event_service.set_event_general_code", conflict)
    with pytest.raises(HTTPException) as exc_info:
        EventService.create_event(db_session, payload())
    assert exc_info.value.detail == "Ese código ya está asignado a otro evento"
    assert db_session.query(Event).count() == 0


def test_create_event_requires_organizer(db_session, general_code_rpc):
    with pytest.raises(HTTPException) as exc_info:
        EventService.create_event(db_session, payload())
    assert exc_info.value.detail == "No hay organizador configurado"


def test_update_event(db_session, event, general_code_rpc):
    EventService.update_event(db_session, payload(id=event.id, name="Baby Deluxe II", code="BABY-1220"))
    db_session.refresh(event)
    assert event.name == "Baby Deluxe II"
    assert event.location == "Miraflores"

    with pytest.raises(HTTPException) as exc_info:
        EventService.update_event(db_session, payload())
    assert exc_info.value.detail == "id is required"


# -------- Close / archive --------

def test_close_event(db_session, event):
    table = Table(event_id=event.id, name="Mesa 1")
    db_session.add(table)
    db_session.flush()
    db_session.add_all(
        [
            Code(code="a", event_id=event.id, type="general"),
            Code(code="b", event_id=event.id, type="courtesy"),
            Code(code="c", event_id=event.id, type="courtesy", is_active=False),
            TableReservation(table_id=table.id, event_id=event.id, full_name="Ana Ruiz", status="approved"),
        ]
    )
    db_session.commit()

    result = EventService.close_event(db_session, event.id, " fin de temporada ", "staff-1")

    assert result["closed"] is True
    assert result["disabled_codes"] == 2
    assert result["archived_reservations"] == 1
    assert result["event"]["id"] == event.id

    db_session.expire_all()
    closed = db_session.query(Event).one()
    assert closed.is_active is False
    assert closed.closed_by == "staff-1"
    assert closed.close_reason == "fin de temporada"
    assert db_session.query(Code).filter(Code.is_active.is_(True)).count() == 0

    reservation = db_session.query(TableReservation).one()
    assert reservation.status == "archived"
    assert reservation.deleted_at is not None

    log = db_session.query(ProcessLog).one()
    assert log.category == "events"
    assert log.action == "close_event"
    assert log.meta["disabled_codes"] == 2


def test_close_missing_event(db_session):
    with pytest.raises(HTTPException) as exc_info:
        EventService.close_event(db_session, "missing", None, "staff-1")
    assert exc_info.value.status_code == 404


def test_delete_event_archives_codes(db_session, event):
    db_session.add(Code(code="a", event_id=event.id, type="general"))
    db_session.commit()

    EventService.delete_event(db_session, event.id, "staff-1")

    assert EventService.list_events(db_session) == []
    code = db_session.query(Code).one()
    assert code.deleted_at is not None
    assert code.deleted_by == "staff-1"


# -------- Per-event tables --------

def test_event_tables(db_session, event):
    table = Table(name="Mesa VIP", ticket_count=6, price=900, min_consumption=600)
    db_session.add(table)
    db_session.commit()

    EventService.upsert_event_table(db_session, event.id, EventTablePayload(tableId=table.id, custom_price=1200))
    rows = EventService.list_event_tables(db_session, event.id)
    assert len(rows) == 1
    assert rows[0]["finalPrice"] == 1200
    assert rows[0]["hasCustomPrice"] is True
    assert rows[0]["finalMinConsumption"] == 600

    EventService.remove_event_table(db_session, event.id, table.id, "staff-1")
    assert EventService.list_event_tables(db_session, event.id) == []

    EventService.upsert_event_table(db_session, event.id, EventTablePayload(tableId=table.id))
    restored = EventService.list_event_tables(db_session, event.id)
    assert restored[0]["hasCustomPrice"] is False


def test_event_table_requires_table(db_session, event):
    with pytest.raises(HTTPException) as exc_info:
        EventService.upsert_event_table(db_session, event.id, EventTablePayload())
    assert exc_info.value.detail == "tableId es requerido"
