from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session
from app.db.database import get_db
from app.core.deps import get_face_matcher
from app.core.errors import ValidationError
from app.schemas.scan import QRScanRequest, ScanResponse, parse_scan_mode
from app.services.checkin_engine import ScanOutcome, checkin_engine
from app.services.face_matching import FaceMatcher, validate_face_image
from app.services.registration_service import build_event_summary, build_media, build_participant_summary

router = APIRouter()

def scan_response(outcome: ScanOutcome) -> ScanResponse:
    response = ScanResponse(
        status=outcome.status.value,
        message=outcome.message,
        color_hint=outcome.color_hint.value,
        reason=outcome.reason,
        similarity=outcome.similarity,
    )
    registration = outcome.registration
    if registration is not None:
        response.participant = build_participant_summary(registration)
        response.event = build_event_summary(registration.event)
        response.media = build_media(registration)
    return response

@router.post("/qr", response_model=ScanResponse)
def scan_qr(request: QRScanRequest, db: Session = Depends(get_db)):
    """Check a participant in or out from a scanned QR code"""
    outcome = checkin_engine.scan_qr(db, qr_payload=request.qr_payload, mode=request.scan_mode)
    return scan_response(outcome)

@router.post("/face", response_model=ScanResponse)
async def scan_face(
    scan_mode: str = Form(...),
    event_id: int = Form(...),
    image: UploadFile = File(...),
    db: Session = Depends(get_db),
    matcher: FaceMatcher = Depends(get_face_matcher),
):
    """Check a participant in or out by matching a live face capture against the event"""
    try:
        mode = parse_scan_mode(scan_mode)
    except ValueError as e:
        raise ValidationError(str(e))
    content = validate_face_image(await image.read())

    outcome = await checkin_engine.scan_face(
        db, event_id=event_id, image=content, mode=mode, matcher=matcher
    )
    return await run_in_threadpool(scan_response, outcome)
