"""
Culqi payment gateway client and payload helpers
"""

import hashlib
import logging
import re
import secrets
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

import httpx

from app.core.config import settings

logger = logging.getLogger(__name__)

PAYMENT_STATUSES = ["pending", "paid", "failed", "refunded", "expired", "canceled"]


class CulqiError(Exception):
    """Culqi answered with an error or could not be reached"""


def get_culqi_config() -> Tuple[str, str]:
    if not settings.CULQI_SECRET_KEY:
        raise CulqiError("Missing CULQI_SECRET_KEY")
    return settings.CULQI_SECRET_KEY, settings.CULQI_API_BASE_URL.rstrip("/")


def split_name(full_name: str) -> Tuple[str, str]:
    cleaned = re.sub(r"\s+", " ", full_name or "").strip()
    if not cleaned:
        return "Cliente", "BabyClub"
    chunks = cleaned.split(" ")
    if len(chunks) == 1:
        return chunks[0], "BabyClub"
    return " ".join(chunks[:-1]), chunks[-1]


def build_culqi_order_payload(
    amount: int,
    description: str,
    order_number: str,
    first_name: str,
    last_name: str,
    email: str,
    phone_number: str,
    expiration_date_unix: int,
    currency_code: str = "PEN",
    metadata: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    return {
        "amount": amount,
        "currency_code": currency_code or "PEN",
        "description": description,
        "order_number": order_number,
        "client_details": {
            "first_name": first_name,
            "last_name": last_name,
            "email": email,
            "phone_number": phone_number,
        },
        "expiration_date": expiration_date_unix,
        "confirm": False,
        "metadata": metadata or {},
    }


def normalize_culqi_status(raw_value: Optional[str]) -> str:
    raw = (raw_value or "").lower()
    if "paid" in raw:
        return "paid"
    if "refund" in raw:
        return "refunded"
    if "fail" in raw or "declin" in raw:
        return "failed"
    if "expir" in raw:
        return "expired"
    if "cancel" in raw:
        return "canceled"
    return "pending"


def _dig(payload: Any, *path: str) -> Any:
    current = payload
    for key in path:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def resolve_culqi_event_name(payload: Any) -> str:
    return _dig(payload, "event_name") or _dig(payload, "event") or _dig(payload, "type") or ""


def resolve_culqi_event_id(payload: Any) -> Optional[str]:
    return (
        _dig(payload, "id")
        or _dig(payload, "event_id")
        or _dig(payload, "data", "id")
        or _dig(payload, "data", "object", "id")
        or None
    )


def resolve_culqi_order(payload: Any) -> Dict[str, Any]:
    """Flatten the order object out of a webhook payload"""
    obj = _dig(payload, "data", "object") or _dig(payload, "data") or payload or {}
    if not isinstance(obj, dict):
        obj = {}
    metadata = obj.get("metadata") if isinstance(obj.get("metadata"), dict) else {}
    client = obj.get("client_details") if isinstance(obj.get("client_details"), dict) else {}

    if client.get("first_name") and client.get("last_name"):
        customer_name = f"{client['first_name']} {client['last_name']}".strip()
    else:
        customer_name = obj.get("full_name")

    amount = obj.get("amount")
    return {
        "order_id": obj.get("id") or obj.get("order_id") or _dig(payload, "order_id"),
        "charge_id": obj.get("charge_id") or _dig(payload, "charge_id"),
        "status_raw": obj.get("status") or _dig(payload, "status") or "",
        "amount": amount if isinstance(amount, int) and not isinstance(amount, bool) else None,
        "currency_code": obj.get("currency_code") if isinstance(obj.get("currency_code"), str) else "PEN",
        "customer_email": client.get("email") or obj.get("email"),
        "customer_name": customer_name,
        "customer_phone": client.get("phone_number") or obj.get("phone_number"),
        "metadata": metadata,
    }


def build_webhook_event_key(provider: str, raw_body: bytes, event_id: Optional[str]) -> str:
    if event_id:
        return f"{provider}:{event_id}"
    digest = hashlib.sha256(raw_body).hexdigest()
    return f"{provider}:sha256:{digest}"


def build_receipt_number(seed: str, now: Optional[datetime] = None) -> str:
    """BC-YYYYMMDD-<last 8 alphanumerics of seed>"""
    current = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    suffix = re.sub(r"[^a-zA-Z0-9]", "", seed or "")[-8:].upper() or secrets.token_hex(4).upper()
    return f"BC-{current.strftime('%Y%m%d')}-{suffix}"


async def _post(path: str, payload: Dict[str, Any], fallback: str) -> Dict[str, Any]:
    secret_key, base_url = get_culqi_config()
    try:
        async with httpx.AsyncClient(timeout=15) as client:
            response = await client.post(
                f"{base_url}{path}",
                json=payload,
                headers={"Authorization": f"Bearer {secret_key}"},
            )
    except httpx.HTTPError as exc:
        logger.error("Culqi request %s failed: %s", path, exc)
        raise CulqiError(fallback) from exc

    try:
        data = response.json()
    except ValueError:
        data = None

    if response.status_code >= 400:
        error = data if isinstance(data, dict) else {}
        message = error.get("merchant_message") or error.get("user_message") or f"{fallback} ({response.status_code})"
        logger.warning("Culqi %s answered %s: %s", path, response.status_code, message)
        raise CulqiError(message)
    return data or {}


async def create_culqi_order(payload: Dict[str, Any]) -> Dict[str, Any]:
    return await _post("/orders", payload, "Culqi order error")


async def create_culqi_refund(
    charge_id: str,
    amount: int,
    reason: str,
    metadata: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    payload = {"charge_id": charge_id, "amount": amount, "reason": reason, "metadata": metadata or {}}
    return await _post("/refunds", payload, "Culqi refund error")
