from pydantic import BaseModel, validator
from typing import Optional, Dict, Any
from app.services.checkin_engine import ScanMode

# Older scanner apps send their scanner type: 0 checks in, 1 checks out
LEGACY_SCAN_MODES = {"0": ScanMode.CHECK_IN, "1": ScanMode.CHECK_OUT}

def parse_scan_mode(value) -> ScanMode:
    if isinstance(value, ScanMode):
        return value
    if isinstance(value, bool):
        raise ValueError("scan_mode must be check_in, check_out, 0 or 1")
    text = str(value).strip().lower()
    if text in LEGACY_SCAN_MODES:
        return LEGACY_SCAN_MODES[text]
    try:
        return ScanMode(text)
    except ValueError:
        raise ValueError("scan_mode must be check_in, check_out, 0 or 1")

class QRScanRequest(BaseModel):
    scan_mode: ScanMode
    qr_payload: str

    @validator('scan_mode', pre=True)
    def normalize_scan_mode(cls, v):
        return parse_scan_mode(v)

class ScanMedia(BaseModel):
    face_image_url: Optional[str] = None
    qr_image_url: Optional[str] = None

class ScanResponse(BaseModel):
    status: str
    message: str
    color_hint: str
    reason: Optional[str] = None
    similarity: Optional[float] = None
    participant: Optional[Dict[str, Any]] = None
    event: Optional[Dict[str, Any]] = None
    media: ScanMedia = ScanMedia()
