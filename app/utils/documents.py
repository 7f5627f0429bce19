"""
Identity document validation
"""

import re
from typing import Optional, Tuple

DOCUMENT_TYPES = [
    {"value": "dni", "label": "DNI"},
    {"value": "ce", "label": "Carné de extranjería"},
    {"value": "pasaporte", "label": "Pasaporte"},
    {"value": "ruc", "label": "RUC"},
    {"value": "otro", "label": "Otro"},
]

ONLY_DIGITS = re.compile(r"^\d+$")
ALPHA_NUM = re.compile(r"^[A-Za-z0-9]+$")


def validate_document(doc_type: str, value: Optional[str]) -> bool:
    v = (value or "").strip()
    if not v:
        return False
    if doc_type == "dni":
        return len(v) == 8 and bool(ONLY_DIGITS.match(v))
    if doc_type == "ce":
        return 9 <= len(v) <= 12 and bool(ALPHA_NUM.match(v))
    if doc_type == "pasaporte":
        return 6 <= len(v) <= 12 and bool(ALPHA_NUM.match(v))
    if doc_type == "ruc":
        return len(v) == 11 and bool(ONLY_DIGITS.match(v))
    return len(v) <= 20


def normalize_document(doc_type: Optional[str], document: Optional[str]) -> Tuple[str, str]:
    return (doc_type or "dni").lower(), (document or "").strip()
