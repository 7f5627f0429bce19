"""
Staff users: staff rows backed by Supabase auth users
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models import Staff, StaffRole
from app.schemas.staff import StaffCreate, StaffUpdate
from app.services.person_service import PersonService, serialize_person
from app.services.repositories import active_query, archive, get_active
from app.services.supabase_client import get_supabase_client
from app.utils.lima_time import iso_or_none
from app.utils.responses import bad_request, not_found_error
from app.utils.supabase_errors import sanitize_supabase_error_message

logger = logging.getLogger(__name__)


def _clean(value: Optional[str]) -> str:
    return value.strip() if isinstance(value, str) else ""


def serialize_staff(staff: Staff) -> Dict[str, Any]:
    role = staff.role
    return {
        "id": staff.id,
        "auth_user_id": staff.auth_user_id,
        "is_active": staff.is_active,
        "created_at": iso_or_none(staff.created_at),
        "role": {"id": role.id, "code": role.code, "name": role.name} if role else None,
        "person": serialize_person(staff.person),
    }


def find_auth_user_id_by_email(client, email: str) -> Optional[str]:
    try:
        users = client.auth.admin.list_users(page=1, per_page=1000)
    except Exception as exc:
        logger.warning("Could not list auth users: %s", exc)
        return None
    for user in users or []:
        if (getattr(user, "email", "") or "").lower() == email.lower():
            return str(user.id)
    return None


class StaffService:
    """Service for staff users"""

    @staticmethod
    def list_roles(db: Session) -> List[Dict[str, Any]]:
        return [{"id": r.id, "code": r.code, "name": r.name} for r in db.query(StaffRole).order_by(StaffRole.id).all()]

    @staticmethod
    def list_staff(db: Session) -> List[Dict[str, Any]]:
        return [serialize_staff(s) for s in active_query(db, Staff).order_by(Staff.created_at.desc()).all()]

    @staticmethod
    def _role(db: Session, role_code: str) -> StaffRole:
        role = db.query(StaffRole).filter(StaffRole.code == role_code).first()
        if not role:
            bad_request("Rol no encontrado")
        return role

    @staticmethod
    def create_staff(db: Session, body: StaffCreate) -> Dict[str, Any]:
        dni = _clean(body.dni)
        first_name = _clean(body.first_name)
        last_name = _clean(body.last_name)
        email = _clean(body.email)
        password = body.password or ""
        role_code = _clean(body.role_code)
        if not (dni and first_name and last_name and email and password and role_code):
            bad_request("Faltan campos requeridos")

        role = StaffService._role(db, role_code)
        person = PersonService.upsert_by_dni(
            db, dni, first_name=first_name, last_name=last_name, email=email, phone=_clean(body.phone) or None
        )
        db.commit()

        client = get_supabase_client()
        created_auth_user = False
        try:
            response = client.auth.admin.create_user({"email": email, "password": password, "email_confirm": True})
            auth_user_id = str(response.user.id) if response and response.user else None
            created_auth_user = bool(auth_user_id)
        except Exception as exc:
            # Existing auth accounts are reused
            auth_user_id = find_auth_user_id_by_email(client, email)
            if not auth_user_id:
                bad_request(sanitize_supabase_error_message(str(exc)) or "No se pudo crear usuario")
        if not auth_user_id:
            bad_request("No se pudo obtener auth_user_id")

        staff = db.query(Staff).filter(Staff.auth_user_id == auth_user_id).first()
        try:
            if staff:
                staff.person_id = person.id
                staff.role_id = role.id
                staff.is_active = True
                staff.deleted_at = None
                staff.deleted_by = None
            else:
                staff = Staff(auth_user_id=auth_user_id, person_id=person.id, role_id=role.id, is_active=True)
                db.add(staff)
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            if created_auth_user:
                logger.warning("Staff insert failed, removing auth user %s", auth_user_id)
                client.auth.admin.delete_user(auth_user_id)
            bad_request("No se pudo crear staff")
        db.refresh(staff)
        logger.info("Staff %s created with role %s", staff.id, role.code)
        return serialize_staff(staff)

    @staticmethod
    def update_staff(db: Session, body: StaffUpdate) -> Dict[str, Any]:
        staff_id = _clean(body.id) or _clean(body.staff_id)
        role_code = _clean(body.role_code)
        if not staff_id or not role_code:
            bad_request("staff_id y role_code requeridos")
        role = StaffService._role(db, role_code)
        staff = get_active(db, Staff, staff_id)
        if not staff:
            not_found_error("Staff no encontrado")

        first_name = _clean(body.first_name)
        last_name = _clean(body.last_name)
        dni = _clean(body.dni)
        email = _clean(body.email)
        person = staff.person
        if person and first_name and last_name:
            person.first_name = first_name
            person.last_name = last_name
            if dni:
                person.dni = dni
            person.email = email or person.email
            person.phone = _clean(body.phone) or person.phone

        if (email or body.password) and staff.auth_user_id:
            attributes: Dict[str, Any] = {}
            if email:
                attributes["email"] = email
            if body.password:
                attributes["password"] = body.password
            try:
                get_supabase_client().auth.admin.update_user_by_id(staff.auth_user_id, attributes)
            except Exception as exc:
                db.rollback()
                bad_request(sanitize_supabase_error_message(str(exc)))

        staff.role_id = role.id
        staff.is_active = body.is_active if body.is_active is not None else True
        db.commit()
        return serialize_staff(staff)

    @staticmethod
    def delete_staff(db: Session, staff_id: Optional[str], actor_id: Optional[str]) -> None:
        """Archive the staff row and remove the auth account"""
        staff = get_active(db, Staff, _clean(staff_id))
        if not staff:
            not_found_error("Staff no encontrado")
        if actor_id and staff.id == actor_id:
            bad_request("No puedes eliminar tu propio usuario")
        auth_user_id = staff.auth_user_id
        archive(db, staff, actor_id)
        if auth_user_id:
            try:
                get_supabase_client().auth.admin.delete_user(auth_user_id)
            except Exception as exc:
                logger.warning("Auth user %s could not be deleted: %s", auth_user_id, exc)
