"""
Uploads to the Supabase storage bucket
"""

import logging
from typing import Iterable, Optional

from fastapi import HTTPException, UploadFile

from app.core.config import settings
from app.services.supabase_client import get_supabase_client
from app.utils.supabase_errors import sanitize_supabase_error_message

logger = logging.getLogger(__name__)

IMAGE_TYPES = ["image/png", "image/jpeg", "image/webp"]
LOGO_TYPES = IMAGE_TYPES + ["image/svg+xml"]
MANIFEST_TYPES = IMAGE_TYPES + ["application/pdf"]

EXTENSIONS = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/webp": "webp",
    "image/svg+xml": "svg",
    "application/pdf": "pdf",
}


async def read_upload(file: Optional[UploadFile], allowed_types: Iterable[str]) -> bytes:
    """Validate type and size; returns the file content"""
    if file is None or not file.filename:
        raise HTTPException(status_code=400, detail="Archivo requerido")
    if file.content_type not in allowed_types:
        raise HTTPException(status_code=400, detail="Tipo de archivo no permitido")
    content = await file.read()
    if not content:
        raise HTTPException(status_code=400, detail="Archivo requerido")
    if len(content) > settings.MAX_UPLOAD_SIZE:
        raise HTTPException(status_code=413, detail="Archivo demasiado grande")
    return content


def extension_for(content_type: Optional[str], default: str = "bin") -> str:
    return EXTENSIONS.get(content_type or "", default)


def upload_bytes(path: str, content: bytes, content_type: str) -> str:
    """Upload (upsert) into the bucket and return the public URL"""
    bucket = get_supabase_client().storage.from_(settings.STORAGE_BUCKET)
    try:
        bucket.upload(path, content, {"content-type": content_type, "upsert": "true"})
    except Exception as exc:
        logger.error("Storage upload %s failed: %s", path, exc)
        raise HTTPException(status_code=500, detail=sanitize_supabase_error_message(exc))
    url = bucket.get_public_url(path)
    logger.info("Uploaded %s (%s bytes)", path, len(content))
    return url
