"""
HTTP-level tests: response shape, staff guard and rate limiting
"""

import pytest
from datetime import datetime, timezone
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.core.config import settings
from app.core.db import Base, get_db
from app.models import Code, Event, Staff, StaffRole
from app.utils.security import StaffContext, get_staff_context, rate_limiter
from main import app

# Test database setup
SQLALCHEMY_DATABASE_URL = "sqlite:///./test_api.db"
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


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
def client(db_session):
    rate_limiter.reset()
    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()
    rate_limiter.reset()

def login_as(role):
    """Skip Supabase and act as a staff member with ``role``"""
    staff = Staff(id=f"staff-{role}", auth_user_id=f"auth-{role}")
    app.dependency_overrides[get_staff_context] = lambda: StaffContext(
        staff=staff, auth_user_id=staff.auth_user_id, role=role
    )

@pytest.fixture
def event(db_session):
    event = Event(name="Baby Deluxe", starts_at=datetime(2099, 12, 21, 3, 0, tzinfo=timezone.utc), capacity=100)
    db_session.add(event)
    db_session.flush()
    db_session.add(Code(code="promo-1", event_id=event.id, type="promoter", max_uses=10))
    db_session.commit()
    db_session.refresh(event)
    return event


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"success": True, "status": "ok"}


def test_admin_requires_token(client):
    response = client.get("/admin/users")
    assert response.status_code == 401
    assert response.json() == {"success": False, "error": "Auth requerido"}


def test_admin_role_guard(client):
    login_as("door")
    response = client.get("/admin/users")
    assert response.status_code == 403
    assert response.json()["error"] == "Rol sin permisos"


def test_admin_lists_roles(client, db_session):
    db_session.add_all([StaffRole(id=1, code="admin", name="Administrador"), StaffRole(id=2, code="door", name="Puerta")])
    db_session.commit()
    login_as("admin")

    response = client.get("/admin/users/roles")
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert [role["code"] for role in body["roles"]] == ["admin", "door"]


def test_public_branding(client):
    response = client.get("/api/branding")
    assert response.json() == {"success": True, "logo_url": None}


def test_validation_error_shape(client):
    response = client.post("/api/tickets", json=["not", "an", "object"])
    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert isinstance(body["error"], str)


def test_not_found_shape(client):
    response = client.get("/api/codes/info", params={"code": "missing"})
    assert response.status_code == 404
    assert response.json() == {"success": False, "error": "Código no encontrado"}


def test_register_and_fetch_qr(client, event):
    response = client.post(
        "/api/tickets",
        json={"code": "promo-1", "document": "12345678", "nombre": "Ana", "apellido_paterno": "Ruiz"},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["eventId"] == event.id

    qr = client.get(f"/api/tickets/{body['ticketId']}/qr.png")
    assert qr.status_code == 200
    assert qr.headers["content-type"] == "image/png"
    assert qr.headers["cache-control"] == "no-store"
    assert qr.content.startswith(b"\x89PNG")


def test_public_rate_limit(client, monkeypatch):
    monkeypatch.setattr(settings, "RATE_LIMIT_PUBLIC_PER_MIN", 1)
    first = client.post("/api/tickets", json={})
    assert first.status_code == 400

    second = client.post("/api/tickets", json={})
    assert second.status_code == 429
    assert second.json()["error"] == "rate_limited"
    assert "retryAfterMs" in second.json()
    assert second.headers["X-RateLimit-Limit"] == "1"
    assert "Retry-After" in second.headers


def test_door_can_scan(client, event):
    login_as("door")
    response = client.post("/admin/scan", json={"code": "promo-1", "event_id": event.id})
    assert response.status_code == 200
    assert response.json()["result"] == "valid"

    confirm = client.post("/admin/scan/confirm", json={"code_id": response.json()["code_id"]})
    assert confirm.status_code == 200
    assert confirm.json()["uses"] == 1


def test_door_cannot_manage_events(client):
    login_as("door")
    response = client.post("/admin/events/close", json={"id": "x"})
    assert response.status_code == 403
