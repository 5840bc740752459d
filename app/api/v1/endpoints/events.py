from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel
from sqlalchemy.orm import Session
from typing import Optional
from app.db.database import get_db
from app.core.deps import get_face_matcher
from app.schemas.registration import InstantRegistration, RegistrationResponse
from app.schemas.scan import ScanResponse
from app.services.checkin_engine import ScanMode, checkin_engine
from app.services.face_matching import FaceMatcher, decode_face_image
from app.services.registration_service import RegistrationResult, registration_service
from app.api.v1.endpoints.registrations import registration_response
from app.api.v1.endpoints.scans import scan_response

router = APIRouter()

class InstantRegistrationResponse(BaseModel):
    registration: RegistrationResponse
    scan: Optional[ScanResponse] = None

def instant_registration_response(db: Session, result: RegistrationResult, check_in: bool) -> InstantRegistrationResponse:
    scan = None
    if check_in:
        outcome = checkin_engine.apply_scan(db, registration=result.registration, mode=ScanMode.CHECK_IN)
        scan = scan_response(outcome)
    return InstantRegistrationResponse(registration=registration_response(result), scan=scan)

@router.post("/{event_id}/instant-registrations", response_model=InstantRegistrationResponse)
async def instant_registration(
    event_id: int,
    request: InstantRegistration,
    db: Session = Depends(get_db),
    matcher: FaceMatcher = Depends(get_face_matcher),
):
    """On-site registration with the event's default ticket, optionally checking in right away"""
    face_image = decode_face_image(request.face_image_base64) if request.face_image_base64 else None
    result = await registration_service.instant_register(
        db,
        event_id=event_id,
        payload=request.dict(),
        face_image=face_image,
        matcher=matcher,
    )
    return await run_in_threadpool(instant_registration_response, db, result, request.check_in)
