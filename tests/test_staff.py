"""
Tests for staff creation against a fake Supabase auth admin
"""

import pytest
from types import SimpleNamespace
from fastapi import HTTPException
from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from app.core.db import Base
from app.models import Staff, StaffRole
from app.schemas.staff import StaffCreate
from app.services.staff_service import StaffService

# Test database setup
SQLALCHEMY_DATABASE_URL = "sqlite:///./test_staff.db"
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

@pytest.fixture
def db_session():
    """Create test database session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    db.add(StaffRole(id=1, code="door", name="Puerta"))
    db.commit()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


class FakeAuthAdmin:
    def __init__(self):
        self.deleted = []

    def create_user(self, attributes):
        return SimpleNamespace(user=SimpleNamespace(id="auth-new"))

    def delete_user(self, user_id):
        self.deleted.append(user_id)


@pytest.fixture
def auth_admin(monkeypatch):
    admin = FakeAuthAdmin()
    client = SimpleNamespace(auth=SimpleNamespace(admin=admin))
    monkeypatch.setattr("app.services.staff_service.get_supabase_client", lambda: client)
    return admin


def staff_body(**fields):
    data = {
        "dni": "12345678",
        "first_name": "Luis",
        "last_name": "Soto",
        "email": "luis@example.com",
        "password": "secreto123",
        "role_code": "door",
    }
    data.update(fields)
    return StaffCreate(**data)


def test_create_staff(db_session, auth_admin):
    created = StaffService.create_staff(db_session, staff_body())
    assert created["auth_user_id"] == "auth-new"
    assert created["role"]["code"] == "door"
    assert created["person"]["dni"] == "12345678"
    assert auth_admin.deleted == []


def test_failed_staff_insert_removes_auth_user(db_session, auth_admin, monkeypatch):
    commits = []
    original_commit = db_session.commit

    def commit():
        commits.append(1)
        if len(commits) == 2:
            raise SQLAlchemyError("insert failed")
        original_commit()

    monkeypatch.setattr(db_session, "commit", commit)

    with pytest.raises(HTTPException) as exc_info:
        StaffService.create_staff(db_session, staff_body())
    assert exc_info.value.detail == "No se pudo crear staff"
    assert auth_admin.deleted == ["auth-new"]
    assert db_session.query(Staff).count() == 0


def test_create_staff_requires_fields(db_session, auth_admin):
    with pytest.raises(HTTPException) as exc_info:
        StaffService.create_staff(db_session, staff_body(password=""))
    assert exc_info.value.detail == "Faltan campos requeridos"
