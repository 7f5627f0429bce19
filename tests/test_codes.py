"""
Tests for code batches, code listing and promoter code generation
"""

import pytest
from datetime import datetime, timedelta, timezone
from fastapi import HTTPException
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.core.db import Base
from app.models import Code, Event, Person, Promoter, Ticket
from app.schemas.code import BatchGenerate, PromoterCodesGenerate, PromoterPayload
from app.services.code_service import CodeService
from app.services.promoter_service import PromoterService, promoter_prefix
from app.services.rpc import RpcError

# Test database setup
SQLALCHEMY_DATABASE_URL = "sqlite:///./test_codes.db"
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

@pytest.fixture
def event(db_session):
    event = Event(name="Baby Deluxe", starts_at=datetime(2099, 12, 21, 3, 0, tzinfo=timezone.utc), capacity=100)
    db_session.add(event)
    db_session.commit()
    db_session.refresh(event)
    return event

@pytest.fixture
def promoter(db_session):
    person = Person(first_name="Juan", last_name="Pérez", dni="12345678", document="12345678")
    db_session.add(person)
    db_session.flush()
    promoter = Promoter(person_id=person.id, code="JP")
    db_session.add(promoter)
    db_session.commit()
    db_session.refresh(promoter)
    return promoter

@pytest.fixture
def fake_rpc(monkeypatch):
    """Replace the stored procedure; records the arguments it was called with"""
    calls = []

    def generate(db, **kwargs):
        calls.append(kwargs)
        return [{"batch_id": "batch-1", "generated_code": f"code-{i}"} for i in range(3)]

    monkeypatch.setattr("app.services.code_service.generate_codes_batch", generate)
    monkeypatch.setattr("app.services.promoter_service.generate_codes_batch", generate)
    return calls


def add_code(db, event, value, **fields):
    code = Code(code=value, event_id=event.id, type=fields.pop("type", "courtesy"), **fields)
    db.add(code)
    db.commit()
    db.refresh(code)
    return code


# -------- Batches --------

def test_generate_batch_clamps_values(db_session, event, fake_rpc):
    """Quantity is capped at 500 and max_uses is at least 1"""
    body = BatchGenerate(event_id=event.id, type="Courtesy", quantity=9999, max_uses="0", expires_at="nope")
    result = CodeService.generate_batch(db_session, body)

    assert result == {"batch_id": "batch-1", "codes": ["code-0", "code-1", "code-2"]}
    assert fake_rpc[0]["quantity"] == 500
    assert fake_rpc[0]["max_uses"] == 1
    assert fake_rpc[0]["type"] == "courtesy"
    assert fake_rpc[0]["expires_at"] is None


def test_generate_batch_minimum_quantity(db_session, event, fake_rpc):
    CodeService.generate_batch(db_session, BatchGenerate(event_id=event.id, type="table", quantity=-4))
    assert fake_rpc[0]["quantity"] == 1


@pytest.mark.parametrize(
    "body,message",
    [
        (BatchGenerate(type="courtesy"), "event_id y type son requeridos"),
        (BatchGenerate(event_id="e", type="general"), "type inválido"),
        (BatchGenerate(event_id="e", type="promoter"), "promoter_id es requerido para type promoter"),
    ],
)
def test_generate_batch_validation(db_session, fake_rpc, body, message):
    with pytest.raises(HTTPException) as exc_info:
        CodeService.generate_batch(db_session, body)
    assert exc_info.value.status_code == 400
    assert exc_info.value.detail == message
    assert fake_rpc == []


def test_generate_batch_rpc_error(db_session, event, monkeypatch):
    def failing(db, **kwargs):
        raise RpcError("duplicate key value", "23505")

    monkeypatch.setattr("app.services.code_service.generate_codes_batch", failing)
    with pytest.raises(HTTPException) as exc_info:
        CodeService.generate_batch(db_session, BatchGenerate(event_id=event.id, type="courtesy", quantity=2))
    assert exc_info.value.detail == "duplicate key value"


def test_deactivate_and_delete_batch(db_session, event):
    add_code(db_session, event, "a-1", batch_id="batch-1")
    add_code(db_session, event, "a-2", batch_id="batch-1")
    add_code(db_session, event, "other", batch_id="batch-2")

    assert CodeService.deactivate_batch(db_session, "batch-1") == 2
    db_session.expire_all()
    assert db_session.query(Code).filter(Code.code == "a-1").one().is_active is False
    assert db_session.query(Code).filter(Code.code == "other").one().is_active is True

    assert CodeService.delete_batch(db_session, "batch-1", "staff-1") == 2
    listing = CodeService.list_codes(db_session, event.id)
    assert [row["code"] for row in listing["data"]] == ["other"]

    archived = db_session.query(Code).filter(Code.code == "a-2").one()
    assert archived.deleted_at is not None
    assert archived.deleted_by == "staff-1"


def test_deactivate_batch_ignores_archived_codes(db_session, event):
    add_code(db_session, event, "b-1", batch_id="batch-1")
    add_code(db_session, event, "b-2", batch_id="batch-1", deleted_at=datetime.now(timezone.utc))
    assert CodeService.deactivate_batch(db_session, "batch-1") == 1


def test_batch_id_required(db_session):
    with pytest.raises(HTTPException):
        CodeService.deactivate_batch(db_session, " ")
    with pytest.raises(HTTPException):
        CodeService.delete_batch(db_session, None, "staff-1")


# -------- Listing --------

def test_list_codes_status_filters(db_session, event):
    past = datetime.now(timezone.utc) - timedelta(days=1)
    add_code(db_session, event, "live", max_uses=3, uses=1)
    add_code(db_session, event, "off", is_active=False)
    add_code(db_session, event, "old", expires_at=past)

    def codes(status):
        return sorted(row["code"] for row in CodeService.list_codes(db_session, event.id, status=status)["data"])

    assert codes("all") == ["live", "off", "old"]
    assert codes("active") == ["live"]
    assert codes("inactive") == ["off"]
    assert codes("expired") == ["old"]

    live = CodeService.list_codes(db_session, event.id, status="active")["data"][0]
    assert live["remaining"] == 2


def test_list_codes_pagination(db_session, event):
    for i in range(5):
        add_code(db_session, event, f"p-{i}")
    page = CodeService.list_codes(db_session, event.id, page=2, page_size=2)
    assert page["total"] == 5
    assert page["page"] == 2
    assert page["pageSize"] == 2
    assert len(page["data"]) == 2


def test_list_codes_requires_event(db_session):
    with pytest.raises(HTTPException) as exc_info:
        CodeService.list_codes(db_session, None)
    assert exc_info.value.detail == "event_id es requerido"


def test_export_codes_csv(db_session, event):
    add_code(db_session, event, "csv-1", max_uses=2)
    content, media_type, filename = CodeService.export_codes(db_session, event.id, "csv")
    text = content.decode("utf-8-sig")
    assert media_type.startswith("text/csv")
    assert filename == "codes.csv"
    assert text.splitlines()[0].startswith("code,type,event_id")
    assert "csv-1" in text


# -------- Landing lookups --------

def test_code_info(db_session, event):
    add_code(db_session, event, "info-1", type="promoter")
    info = CodeService.get_code_info(db_session, " info-1 ")
    assert info["type"] == "promoter"
    assert info["event_id"] == event.id

    with pytest.raises(HTTPException) as exc_info:
        CodeService.get_code_info(db_session, "missing")
    assert exc_info.value.status_code == 404
    assert exc_info.value.detail == "Código no encontrado"


def test_aforo_uses_code_capacity(db_session, event):
    code = add_code(db_session, event, "aforo-1", max_uses=10)
    for i in range(2):
        db_session.add(Ticket(event_id=event.id, code_id=code.id, qr_token=f"qr-{i}"))
    db_session.commit()

    aforo = CodeService.get_aforo(db_session, "aforo-1")
    assert aforo["capacity"] == 10
    assert aforo["used"] == 2
    assert aforo["available"] == 8
    assert aforo["percent"] == 20


def test_aforo_falls_back_to_event_capacity(db_session, event):
    code = add_code(db_session, event, "general-1", type="general", max_uses=None)
    assert code.max_uses is None
    assert CodeService.get_aforo(db_session, "general-1")["capacity"] == 100


# -------- Promoters --------

def test_create_promoter_requires_valid_dni(db_session):
    with pytest.raises(HTTPException) as exc_info:
        PromoterService.create_promoter(db_session, PromoterPayload(first_name="Ana", last_name="Ruiz", dni="123"))
    assert exc_info.value.detail == "DNI inválido"


def test_create_promoter_reuses_person(db_session, promoter):
    created = PromoterService.create_promoter(
        db_session, PromoterPayload(first_name="Juan", last_name="Pérez", dni="12345678", code="JP2")
    )
    assert created["person"]["id"] == promoter.person_id
    assert db_session.query(Person).count() == 1


def test_delete_promoter_keeps_person(db_session, promoter):
    PromoterService.delete_promoter(db_session, promoter.id, "staff-1")
    assert PromoterService.list_promoters(db_session) == []
    assert db_session.query(Person).count() == 1


def test_public_promoters(db_session, promoter):
    assert PromoterService.list_public(db_session) == [{"id": promoter.id, "name": "Juan Pérez"}]


def test_promoter_prefix(db_session, event, promoter):
    assert promoter_prefix(event, promoter) == "baby-delux-jp"
    assert promoter_prefix(event, promoter, "Noche VIP") == "noche-vip"


def test_promoter_generate_codes_clamps(db_session, event, promoter, fake_rpc):
    body = PromoterCodesGenerate(promoter_id=promoter.id, event_id=event.id, quantity=800, max_uses=99)
    result = PromoterService.generate_codes(db_session, body)

    assert result["prefix"] == "baby-delux-jp"
    assert result["codes"] == ["code-0", "code-1", "code-2"]
    assert fake_rpc[0]["quantity"] == 500
    assert fake_rpc[0]["max_uses"] == 50
    assert fake_rpc[0]["type"] == "promoter"
    assert fake_rpc[0]["promoter_id"] == promoter.id


def test_promoter_generate_codes_inactive_event(db_session, event, promoter, fake_rpc):
    event.is_active = False
    db_session.commit()
    body = PromoterCodesGenerate(promoter_id=promoter.id, event_id=event.id, quantity=5)
    with pytest.raises(HTTPException) as exc_info:
        PromoterService.generate_codes(db_session, body)
    assert exc_info.value.detail == "El evento está inactivo"
    assert fake_rpc == []
