"""
Promoter management and promoter code batches
"""

import logging
import re
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from app.models import Event, Promoter
from app.schemas.code import PromoterCodesGenerate, PromoterPayload
from app.services.code_service import clamp, codes_from_rpc, parse_expires_at, parse_int
from app.services.person_service import PersonService, serialize_person
from app.services.repositories import active_query, archive, get_active
from app.services.rpc import RpcError, generate_codes_batch
from app.utils.friendly_codes import clean_token
from app.utils.lima_time import iso_or_none
from app.utils.responses import bad_request, not_found_error

logger = logging.getLogger(__name__)

DNI_RE = re.compile(r"^\d{8}$")
MAX_QUANTITY = 500
MAX_USES = 50


def _clean(value: Optional[str]) -> Optional[str]:
    if not isinstance(value, str):
        return None
    return value.strip() or None


def serialize_promoter(promoter: Promoter) -> Dict[str, Any]:
    return {
        "id": promoter.id,
        "code": promoter.code,
        "instagram": promoter.instagram,
        "tiktok": promoter.tiktok,
        "notes": promoter.notes,
        "is_active": promoter.is_active,
        "organizer_id": promoter.organizer_id,
        "person": serialize_person(promoter.person),
        "created_at": iso_or_none(promoter.created_at),
    }


def promoter_prefix(event: Event, promoter: Promoter, requested: Optional[str] = None) -> str:
    """event token + promoter token, e.g. love-0227-jperez"""
    person = promoter.person
    event_token = clean_token(event.event_prefix or event.name or "evento", 10)
    promoter_token = clean_token(
        promoter.code or f"{person.first_name if person else ''} {person.last_name if person else ''}",
        12,
    )
    suggested = "-".join(token for token in [event_token, promoter_token] if token) or "courtesy"
    return clean_token(requested or suggested, 28) or "courtesy"


class PromoterService:
    """Service for promoter operations"""

    @staticmethod
    def list_promoters(db: Session, organizer_id: Optional[str] = None) -> List[Dict[str, Any]]:
        query = active_query(db, Promoter)
        if organizer_id:
            query = query.filter(Promoter.organizer_id == organizer_id)
        return [serialize_promoter(p) for p in query.order_by(Promoter.created_at.desc()).all()]

    @staticmethod
    def list_public(db: Session) -> List[Dict[str, str]]:
        promoters = active_query(db, Promoter).filter(Promoter.is_active.is_(True)).all()
        result = []
        for promoter in promoters:
            name = promoter.person.full_name if promoter.person else ""
            result.append({"id": promoter.id, "name": name or promoter.code or "Promotor"})
        return sorted(result, key=lambda row: row["name"].lower())

    @staticmethod
    def create_promoter(db: Session, body: PromoterPayload) -> Dict[str, Any]:
        first_name = _clean(body.first_name)
        last_name = _clean(body.last_name)
        dni = _clean(body.dni)
        if not first_name or not last_name or not dni:
            bad_request("first_name, last_name y dni son requeridos")
        if not DNI_RE.match(dni):
            bad_request("DNI inválido")

        person = PersonService.upsert_by_dni(
            db, dni, first_name=first_name, last_name=last_name, email=_clean(body.email), phone=_clean(body.phone)
        )
        promoter = Promoter(
            person_id=person.id,
            organizer_id=_clean(body.organizer_id),
            code=_clean(body.code),
            instagram=_clean(body.instagram),
            tiktok=_clean(body.tiktok),
            notes=_clean(body.notes),
            is_active=body.is_active if body.is_active is not None else True,
        )
        db.add(promoter)
        db.commit()
        db.refresh(promoter)
        logger.info("Promoter %s created for person %s", promoter.id, person.id)
        return serialize_promoter(promoter)

    @staticmethod
    def update_promoter(db: Session, body: PromoterPayload) -> Dict[str, Any]:
        promoter = get_active(db, Promoter, _clean(body.id))
        if not promoter:
            not_found_error("Promotor no encontrado")
        person = promoter.person
        if person:
            for field in ["first_name", "last_name", "email", "phone"]:
                value = _clean(getattr(body, field))
                if value is not None:
                    setattr(person, field, value)
            dni = _clean(body.dni)
            if dni:
                if not DNI_RE.match(dni):
                    bad_request("DNI inválido")
                person.dni = dni
        for field in ["code", "instagram", "tiktok", "notes", "organizer_id"]:
            if getattr(body, field) is not None:
                setattr(promoter, field, _clean(getattr(body, field)))
        if body.is_active is not None:
            promoter.is_active = body.is_active
        db.commit()
        return serialize_promoter(promoter)

    @staticmethod
    def delete_promoter(db: Session, promoter_id: Optional[str], staff_id: Optional[str]) -> None:
        """Archive only; the person row is shared and stays"""
        promoter = get_active(db, Promoter, _clean(promoter_id))
        if not promoter:
            not_found_error("Promotor no encontrado")
        archive(db, promoter, staff_id)

    @staticmethod
    def generate_codes(db: Session, body: PromoterCodesGenerate) -> Dict[str, Any]:
        promoter_id = _clean(body.promoter_id)
        event_id = _clean(body.event_id)
        quantity = clamp(parse_int(body.quantity, 0), 1, MAX_QUANTITY)
        max_uses = clamp(parse_int(body.max_uses, 1), 1, MAX_USES)
        if not promoter_id or not event_id:
            bad_request("promoter_id, event_id y cantidad son requeridos")
        expires_at = parse_expires_at(body.expires_at)
        if _clean(body.expires_at) and not expires_at:
            bad_request("expires_at inválido")

        promoter = get_active(db, Promoter, promoter_id)
        if not promoter:
            not_found_error("Promotor no encontrado")
        event = get_active(db, Event, event_id)
        if not event:
            not_found_error("Evento no encontrado")
        if event.is_active is False:
            bad_request("El evento está inactivo")

        prefix = promoter_prefix(event, promoter, _clean(body.prefix))
        try:
            rows = generate_codes_batch(
                db,
                event_id=event.id,
                type="promoter",
                quantity=quantity,
                promoter_id=promoter.id,
                expires_at=expires_at,
                max_uses=max_uses,
                prefix=prefix,
                notes=_clean(body.notes),
            )
        except RpcError as exc:
            bad_request(exc.message)
        return {
            "batch_id": rows[0].get("batch_id") if rows else None,
            "prefix": prefix,
            "codes": codes_from_rpc(rows),
        }
