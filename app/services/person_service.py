"""
Person lookup and upsert shared by tickets, reservations, promoters and staff
"""

import re
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from app.models import Person
from app.utils.documents import normalize_document


def split_full_name(full_name: str) -> Tuple[str, str]:
    parts = (full_name or "").split()
    if not parts:
        return "Invitado", "Reserva"
    return parts[0], " ".join(parts[1:]) or "Reserva"


def serialize_person(person: Optional[Person]) -> Optional[Dict[str, Any]]:
    if not person:
        return None
    return {
        "id": person.id,
        "first_name": person.first_name,
        "last_name": person.last_name,
        "full_name": person.full_name,
        "doc_type": person.doc_type,
        "document": person.document,
        "dni": person.dni,
        "email": person.email,
        "phone": person.phone,
        "birthdate": person.birthdate.isoformat() if person.birthdate else None,
    }


class PersonService:
    """Service for person records"""

    @staticmethod
    def find_person(
        db: Session,
        document: Optional[str] = None,
        dni: Optional[str] = None,
        email: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> Optional[Person]:
        """First match by document, then dni, email and phone"""
        for column, value in (
            (Person.document, document),
            (Person.dni, dni),
            (Person.email, email),
            (Person.phone, phone),
        ):
            value = (value or "").strip()
            if value:
                person = db.query(Person).filter(column == value).first()
                if person:
                    return person
        return None

    @staticmethod
    def ensure_person(
        db: Session,
        full_name: str,
        doc_type: Optional[str] = None,
        document: Optional[str] = None,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        dni: Optional[str] = None,
    ) -> Person:
        doc_type, document = normalize_document(doc_type, document)
        if not dni and doc_type == "dni" and document:
            dni = document
        person = PersonService.find_person(db, document, dni, email, phone)
        if person:
            return person

        first, last = split_full_name(full_name)
        person = Person(
            doc_type=doc_type,
            document=document or None,
            dni=(dni or "").strip() or None,
            first_name=first,
            last_name=last,
            email=(email or "").strip() or None,
            phone=(phone or "").strip() or None,
        )
        db.add(person)
        db.flush()
        return person

    @staticmethod
    def upsert_by_dni(db: Session, dni: str, **fields: Any) -> Person:
        """Insert or update the person with this DNI; None values are left untouched"""
        person = db.query(Person).filter(Person.dni == dni).first()
        if not person:
            person = Person(dni=dni, doc_type="dni", document=dni, first_name=fields.get("first_name") or "")
            db.add(person)
        for key, value in fields.items():
            if value is not None:
                setattr(person, key, value)
        db.flush()
        return person

    @staticmethod
    def search(db: Session, q: Optional[str], limit: int = 20) -> List[Dict[str, Any]]:
        term = (q or "").strip()
        if len(term) < 2:
            return []
        like = f"%{term.lower()}%"
        conditions = [
            func.lower(Person.first_name).like(like),
            func.lower(Person.last_name).like(like),
            func.lower(Person.email).like(like),
            Person.phone.like(f"%{term}%"),
        ]
        if re.match(r"^[A-Za-z0-9]+$", term):
            conditions.append(Person.document.like(f"{term}%"))
            conditions.append(Person.dni.like(f"{term}%"))
        rows = db.query(Person).filter(or_(*conditions)).order_by(Person.first_name).limit(limit).all()
        return [serialize_person(p) for p in rows]
