"""
Tests for upload validation
"""

import asyncio
import io

import pytest
from fastapi import HTTPException, UploadFile
from starlette.datastructures import Headers

from app.core.config import settings
from app.services.storage_service import IMAGE_TYPES, extension_for, read_upload


def make_upload(content=b"\x89PNG data", filename="voucher.png", content_type="image/png"):
    return UploadFile(file=io.BytesIO(content), filename=filename, headers=Headers({"content-type": content_type}))


def test_read_upload_returns_content():
    assert asyncio.run(read_upload(make_upload(), IMAGE_TYPES)) == b"\x89PNG data"


@pytest.mark.parametrize(
    "upload,status,message",
    [
        (None, 400, "Archivo requerido"),
        (make_upload(filename=""), 400, "Archivo requerido"),
        (make_upload(content=b""), 400, "Archivo requerido"),
        (make_upload(filename="notes.txt", content_type="text/plain"), 400, "Tipo de archivo no permitido"),
    ],
)
def test_read_upload_rejects(upload, status, message):
    with pytest.raises(HTTPException) as exc_info:
        asyncio.run(read_upload(upload, IMAGE_TYPES))
    assert exc_info.value.status_code == status
    assert exc_info.value.detail == message


def test_read_upload_too_large(monkeypatch):
    monkeypatch.setattr(settings, "MAX_UPLOAD_SIZE", 4)
    with pytest.raises(HTTPException) as exc_info:
        asyncio.run(read_upload(make_upload(content=b"12345"), IMAGE_TYPES))
    assert exc_info.value.status_code == 413


def test_extension_for():
    assert extension_for("image/jpeg") == "jpg"
    assert extension_for("text/plain") == "bin"
