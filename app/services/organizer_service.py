"""
Organizer (tenant) management
"""

from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models import Organizer
from app.schemas.event import OrganizerPayload
from app.services.repositories import active_query, archive, get_active
from app.utils.friendly_codes import clean_token
from app.utils.responses import bad_request, not_found_error
from app.utils.supabase_errors import is_unique_violation


def serialize_organizer(organizer: Organizer) -> Dict[str, Any]:
    return {
        "id": organizer.id,
        "slug": organizer.slug,
        "name": organizer.name,
        "sort_order": organizer.sort_order,
        "is_active": organizer.is_active,
        "layout_url": organizer.layout_url,
    }


class OrganizerService:
    """Service for organizer operations"""

    @staticmethod
    def list_organizers(db: Session) -> List[Dict[str, Any]]:
        organizers = (
            active_query(db, Organizer)
            .filter(Organizer.is_active.is_(True))
            .order_by(Organizer.sort_order, Organizer.name)
            .all()
        )
        return [serialize_organizer(o) for o in organizers]

    @staticmethod
    def _apply(organizer: Organizer, body: OrganizerPayload) -> None:
        name = (body.name or "").strip()
        if not name:
            bad_request("name es requerido")
        organizer.name = name
        organizer.slug = clean_token(body.slug or name, 60)
        if not organizer.slug:
            bad_request("slug inválido")
        if body.sort_order is not None:
            organizer.sort_order = body.sort_order
        if body.is_active is not None:
            organizer.is_active = body.is_active

    @staticmethod
    def _commit(db: Session) -> None:
        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            if is_unique_violation(exc):
                bad_request("Slug ya existe")
            raise

    @staticmethod
    def create_organizer(db: Session, body: OrganizerPayload) -> Dict[str, Any]:
        organizer = Organizer()
        OrganizerService._apply(organizer, body)
        db.add(organizer)
        OrganizerService._commit(db)
        db.refresh(organizer)
        return serialize_organizer(organizer)

    @staticmethod
    def update_organizer(db: Session, body: OrganizerPayload) -> Dict[str, Any]:
        organizer = get_active(db, Organizer, body.id)
        if not organizer:
            not_found_error("Organizador no encontrado")
        OrganizerService._apply(organizer, body)
        OrganizerService._commit(db)
        return serialize_organizer(organizer)

    @staticmethod
    def delete_organizer(db: Session, organizer_id: Optional[str], staff_id: Optional[str]) -> None:
        organizer = get_active(db, Organizer, organizer_id)
        if not organizer:
            not_found_error("Organizador no encontrado")
        archive(db, organizer, staff_id)

    @staticmethod
    def set_layout(db: Session, organizer_id: str, layout_url: Optional[str]) -> Dict[str, Any]:
        organizer = get_active(db, Organizer, organizer_id)
        if not organizer:
            not_found_error("Organizador no encontrado")
        organizer.layout_url = (layout_url or "").strip() or None
        db.commit()
        return serialize_organizer(organizer)
