"""
Person model
"""

from sqlalchemy import Column, Date, String

from app.core.db import Base
from app.models.mixins import TimestampMixin, new_id


class Person(TimestampMixin, Base):
    __tablename__ = "persons"

    id = Column(String(36), primary_key=True, default=new_id)
    doc_type = Column(String(20), default="dni")
    document = Column(String(20), nullable=True, index=True)
    dni = Column(String(8), unique=True, nullable=True, index=True)
    first_name = Column(String(255), nullable=False)
    last_name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True, index=True)
    phone = Column(String(50), nullable=True)
    birthdate = Column(Date, nullable=True)

    @property
    def full_name(self) -> str:
        return " ".join(part for part in [self.first_name, self.last_name] if part).strip()
