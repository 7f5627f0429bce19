"""
National ID (DNI) lookup through apiperu.dev
"""

import logging
import re
from datetime import date, datetime
from typing import Any, Dict, Optional

import httpx
from fastapi import HTTPException

from app.core.config import settings
from app.utils.responses import api_error

logger = logging.getLogger(__name__)

DNI_RE = re.compile(r"^\d{8}$")


def parse_birthdate(value: Any) -> Optional[date]:
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    raw = str(value).strip()
    for fmt in ("%Y-%m-%d", "%d/%m/%Y"):
        try:
            return datetime.strptime(raw[:10], fmt).date()
        except ValueError:
            continue
    return None


def is_adult(birthdate: Any, today: Optional[date] = None) -> bool:
    """Unparsable birthdates are not treated as minors"""
    dob = parse_birthdate(birthdate)
    if not dob:
        return True
    current = today or date.today()
    age = current.year - dob.year - ((current.month, current.day) < (dob.month, dob.day))
    return age >= 18


async def lookup_dni(dni: str) -> Dict[str, Any]:
    """Resolve a DNI to names; raises HTTPException with the mapped status"""
    if not dni or not DNI_RE.match(dni):
        api_error("DNI inválido", 400)
    if not settings.API_PERU_TOKEN:
        api_error("API_PERU_TOKEN no configurado", 501)

    url = f"{settings.API_PERU_BASE_URL.rstrip('/')}/dni/{dni}"
    try:
        async with httpx.AsyncClient(timeout=10) as client:
            response = await client.get(
                url,
                headers={"Accept": "application/json", "Authorization": f"Bearer {settings.API_PERU_TOKEN}"},
            )
    except httpx.HTTPError as exc:
        logger.error("API Peru request failed: %s", exc)
        raise HTTPException(status_code=500, detail=str(exc) or "Error DNI")

    try:
        payload = response.json()
    except ValueError:
        payload = {}
    if not isinstance(payload, dict):
        payload = {}

    if response.status_code >= 400 or payload.get("success") is False:
        message = payload.get("message") or "No se encontró DNI"
        status = response.status_code if response.status_code in (401, 404) else 400
        api_error(f"API Peru: {message}", status)

    data = payload.get("data") or payload
    birthdate = data.get("fecha_nacimiento") or data.get("fechaNacimiento")
    if birthdate and not is_adult(birthdate):
        api_error("Solo mayores de 18", 403)

    return {
        "dni": dni,
        "nombres": data.get("nombres") or "",
        "apellidoPaterno": data.get("apellido_paterno") or data.get("apellidoPaterno") or "",
        "apellidoMaterno": data.get("apellido_materno") or data.get("apellidoMaterno") or "",
        "birthdate": birthdate,
    }
