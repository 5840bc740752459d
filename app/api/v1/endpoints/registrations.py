from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session
from app.db.database import get_db
from app.core.deps import get_face_matcher
from app.schemas.registration import (
    RegistrationSubmit, CheckEmailRequest, BlockStatusUpdate, RegistrationRecord,
    RegistrationResponse, RegistrationDetail, CheckEmailResponse, BlockStatusResponse,
)
from app.services.face_matching import FaceMatcher, decode_face_image
from app.services.registration_service import (
    RegistrationResult, registration_service, build_media, build_participant_summary,
)
import logging

logger = logging.getLogger(__name__)
router = APIRouter()

def registration_response(result: RegistrationResult) -> RegistrationResponse:
    registration = result.registration
    return RegistrationResponse(
        registration=RegistrationRecord.model_validate(registration),
        state=registration.lifecycle_state.value,
        created=result.created,
        credential=result.credential,
        qr_data_url=result.qr_data_url,
        media=build_media(registration),
        message="Registration successful" if result.created else "You are already registered",
    )

@router.post("", response_model=RegistrationResponse)
async def submit_registration(
    request: RegistrationSubmit,
    db: Session = Depends(get_db),
    matcher: FaceMatcher = Depends(get_face_matcher),
):
    """Submit a registration form for an event (and optionally a ticket)"""
    face_image = decode_face_image(request.face_image_base64) if request.face_image_base64 else None
    result = await registration_service.register(
        db,
        event_id=request.event_id,
        ticket_id=request.ticket_id,
        payload=request.dict(),
        face_image=face_image,
        matcher=matcher,
    )
    return await run_in_threadpool(registration_response, result)

@router.post("/check-email", response_model=CheckEmailResponse)
def check_email(request: CheckEmailRequest, db: Session = Depends(get_db)):
    """Check capacity, per-person limit and existing registration before showing the form"""
    result = registration_service.check_email(db, email=request.email, ticket_id=request.ticket_id)
    registration = result["registration"]
    return CheckEmailResponse(
        email=result["email"],
        event_id=result["event_id"],
        ticket_id=result["ticket_id"],
        already_registered=result["already_registered"],
        registration=RegistrationRecord.model_validate(registration) if registration else None,
    )

@router.get("/{registration_id}", response_model=RegistrationDetail)
def get_registration(registration_id: int, db: Session = Depends(get_db)):
    registration = registration_service.get_registration(db, registration_id=registration_id)
    return RegistrationDetail(
        registration=RegistrationRecord.model_validate(registration),
        state=registration.lifecycle_state.value,
        participant=build_participant_summary(registration),
        media=build_media(registration),
    )

@router.patch("/{registration_id}/block", response_model=BlockStatusResponse)
def toggle_block(
    registration_id: int,
    request: BlockStatusUpdate = BlockStatusUpdate(),
    db: Session = Depends(get_db),
):
    """Block or unblock a participant for this event; an empty body flips the flag"""
    registration = registration_service.set_block_status(
        db, registration_id=registration_id, blocked=request.blocked
    )
    blocked = not registration.approved
    return BlockStatusResponse(
        registration_id=registration.id,
        blockStatus=blocked,
        message="Participant blocked" if blocked else "Participant unblocked",
    )
