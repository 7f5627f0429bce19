"""
QR code generation service
"""

import io
from urllib.parse import quote

import qrcode

from app.core.config import settings

EXTERNAL_QR_BASE = "https://api.qrserver.com/v1/create-qr-code/?size=240x240&format=jpg&color=000000&bgcolor=ffffff&data="


class QRService:
    """Service for generating QR codes"""

    @staticmethod
    def generate_qr_png(data: str, format: str = 'PNG') -> bytes:
        """Generate a QR image for an arbitrary payload (ticket qr_token, code)"""
        qr = qrcode.QRCode(
            version=1,
            error_correction=qrcode.constants.ERROR_CORRECT_M,
            box_size=10,
            border=4,
        )
        qr.add_data(data)
        qr.make(fit=True)

        img = qr.make_image(fill_color="black", back_color="white")

        # Convert to bytes
        buffer = io.BytesIO()
        img.save(buffer, format=format)

        return buffer.getvalue()

    @staticmethod
    def ticket_url(ticket_id: str) -> str:
        """Landing page of a ticket"""
        return f"{settings.BASE_URL.rstrip('/')}/ticket/{ticket_id}"

    @staticmethod
    def ticket_qr_url(ticket_id: str) -> str:
        return f"{settings.BASE_URL.rstrip('/')}/api/tickets/{ticket_id}/qr.png"

    @staticmethod
    def external_qr_url(value: str) -> str:
        """Hosted QR image for codes that have no ticket page"""
        return f"{EXTERNAL_QR_BASE}{quote(value, safe='')}"
