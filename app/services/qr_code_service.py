"""
QR Code Service

Renders credentials into PNG QR codes and stores them under the media root.
"""

import base64
import logging
import os
from io import BytesIO

import qrcode

from app.core.config import settings

logger = logging.getLogger(__name__)


def generate_qr_png(data: str) -> bytes:
    qr = qrcode.QRCode(
        version=1,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=10,
        border=4,
    )
    qr.add_data(data)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")
    buffer = BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()


def to_data_url(png_bytes: bytes) -> str:
    return f"data:image/png;base64,{base64.b64encode(png_bytes).decode('utf-8')}"


def save_qr_image(png_bytes: bytes, qr_token: str) -> str:
    """Write the PNG under ``MEDIA_ROOT/qr`` and return its media-relative key."""
    directory = os.path.join(settings.MEDIA_ROOT, "qr")
    os.makedirs(directory, exist_ok=True)

    key = f"qr/{qr_token}.png"
    with open(os.path.join(settings.MEDIA_ROOT, key), "wb") as f:
        f.write(png_bytes)
    logger.debug(f"QR image stored at {key}")
    return key


def discard_qr_image(key: str) -> None:
    """Remove a stored QR image whose registration was never committed."""
    path = os.path.join(settings.MEDIA_ROOT, key)
    try:
        os.remove(path)
    except FileNotFoundError:
        return
    logger.debug(f"QR image {key} discarded")


def media_url(key):
    """Absolute URL for a stored media key; URLs pass through untouched."""
    if not key:
        return None
    if key.startswith("http://") or key.startswith("https://") or key.startswith("data:"):
        return key
    return f"{settings.media_url}/{key.lstrip('/')}"
