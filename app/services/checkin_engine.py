"""
Check-In/Check-Out Engine

Resolves a scan (QR credential or live face capture) to a registration and applies
the check-in/check-out state machine:

    registered --check_in--> in --check_out--> out --check_in--> in ...

Soft outcomes (blocked, already in, not checked in, not registered) come back as a
``ScanOutcome`` for the scanner to render; only hard failures raise.
Status writes are guarded by the registration's version column, so two scanners
hitting the same participant cannot both record the first check-in.
"""

import enum
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from app import crud
from app.core.config import settings
from app.core.encryption import CredentialCodec, credential_codec
from app.core.errors import ExternalServiceError, InvalidCredential, NotFound, ScanConflict, ValidationError
from app.models.base import utcnow
from app.models.event_registration import CheckStatus, EventRegistration
from app.services.face_matching import FaceMatch, FaceMatcher, search_faces

logger = logging.getLogger(__name__)


class ScanMode(str, enum.Enum):
    CHECK_IN = "check_in"
    CHECK_OUT = "check_out"


class ScanStatus(str, enum.Enum):
    WELCOMED = "welcomed"
    ALREADY_IN = "already_in"
    FAREWELL = "farewell"
    REJECTED = "rejected"
    BLOCKED = "blocked"
    NOT_REGISTERED = "not_registered"


class ColorHint(str, enum.Enum):
    GREEN = "green"
    YELLOW = "yellow"
    RED = "red"


@dataclass
class ScanOutcome:
    status: ScanStatus
    message: str
    color_hint: ColorHint
    reason: Optional[str] = None
    registration: Optional[EventRegistration] = None
    similarity: Optional[float] = None


def blocked_outcome() -> ScanOutcome:
    return ScanOutcome(ScanStatus.BLOCKED, "Participant is blocked from this event", ColorHint.RED)


def not_registered_outcome() -> ScanOutcome:
    return ScanOutcome(ScanStatus.NOT_REGISTERED, "You have not registered yet!", ColorHint.RED)


def decide(registration: EventRegistration, mode: ScanMode) -> Tuple[ScanOutcome, Optional[Dict[str, Any]]]:
    """Pure transition function: the outcome plus the column values to write, if any."""
    identity = registration.identity
    if not registration.approved or (identity is not None and identity.is_blocked):
        return blocked_outcome(), None

    checked_in = registration.status == CheckStatus.IN.value
    if mode == ScanMode.CHECK_IN:
        if checked_in:
            return ScanOutcome(ScanStatus.ALREADY_IN, "You are already in the event", ColorHint.YELLOW), None
        return (
            ScanOutcome(ScanStatus.WELCOMED, "We welcome you", ColorHint.GREEN),
            {"status": CheckStatus.IN.value, "checkin_time": utcnow()},
        )

    if not checked_in:
        return (
            ScanOutcome(
                ScanStatus.REJECTED,
                "You can't check out without checking in",
                ColorHint.RED,
                reason="not_checked_in",
            ),
            None,
        )
    return (
        ScanOutcome(ScanStatus.FAREWELL, "You are now checked out from the event", ColorHint.GREEN),
        {"status": CheckStatus.OUT.value, "checkout_time": utcnow()},
    )


def extract_credential(qr_payload: str) -> str:
    """QR codes carry the bare credential; scanners may also wrap it as ``{"credential": ...}``."""
    payload = (qr_payload or "").strip()
    if not payload:
        raise ValidationError("QR payload is required")
    if not payload.startswith("{"):
        return payload
    try:
        data = json.loads(payload)
    except json.JSONDecodeError:
        raise ValidationError("QR payload is not valid JSON")
    credential = data.get("credential") if isinstance(data, dict) else None
    if not isinstance(credential, str) or not credential:
        raise ValidationError("QR payload has no credential")
    return credential.strip()


class CheckInEngine:
    def __init__(self, codec: Optional[CredentialCodec] = None):
        self.codec = codec or credential_codec

    def apply_scan(self, db: Session, *, registration: EventRegistration, mode: ScanMode) -> ScanOutcome:
        """Read-decide-write with optimistic retries on the version column."""
        attempts = max(1, settings.STATUS_UPDATE_RETRIES)
        for attempt in range(attempts):
            outcome, values = decide(registration, mode)
            outcome.registration = registration
            if values is None:
                logger.info(f"Scan {mode.value} on registration {registration.id}: {outcome.status.value}")
                return outcome
            if crud.event_registration.apply_status_change(db, registration=registration, values=values):
                logger.info(f"✅ Registration {registration.id} {outcome.status.value} ({mode.value})")
                return outcome
            logger.info(
                f"Registration {registration.id} changed during scan, re-evaluating "
                f"(attempt {attempt + 1}/{attempts})"
            )
        raise ScanConflict()

    def scan_qr(self, db: Session, *, qr_payload: str, mode: ScanMode) -> ScanOutcome:
        credential = extract_credential(qr_payload)
        try:
            resolved = self.codec.resolve(credential)
        except InvalidCredential as e:
            logger.warning(f"Rejected QR credential: {e.message}")
            raise NotFound("Invalid QR code")

        registration = crud.event_registration.get_by_qr_token(db, qr_token=resolved.subject_token)
        if not registration or str(registration.event_id) != resolved.event_ref:
            raise NotFound("Registration not found for this QR code")
        return self.apply_scan(db, registration=registration, mode=mode)

    def _face_candidates(self, db: Session, event_id: int) -> List[Tuple[int, str]]:
        event = crud.event.get(db, id=event_id)
        if not event:
            raise NotFound("Event not found")
        return [
            (registration.id, registration.face_ref)
            for registration in crud.event_registration.get_face_candidates(db, event_id=event.id)
        ]

    def _apply_face_match(self, db: Session, match: FaceMatch, mode: ScanMode) -> ScanOutcome:
        registration = crud.event_registration.get(db, id=match.key)
        if not registration:
            return not_registered_outcome()
        logger.info(f"Face scan matched registration {registration.id} at {match.similarity:.1f}%")

        outcome = self.apply_scan(db, registration=registration, mode=mode)
        outcome.similarity = match.similarity
        return outcome

    async def scan_face(
        self,
        db: Session,
        *,
        event_id: int,
        image: bytes,
        mode: ScanMode,
        matcher: FaceMatcher,
    ) -> ScanOutcome:
        candidates = await run_in_threadpool(self._face_candidates, db, event_id)
        if not candidates:
            logger.info(f"Face scan for event {event_id}: no enrolled faces")
            return not_registered_outcome()
        if not matcher.is_configured:
            raise ExternalServiceError("Face matching service is not configured")

        match = await search_faces(
            matcher,
            image,
            candidates,
            threshold=settings.FACE_MATCH_THRESHOLD,
            timeout=settings.FACE_MATCH_TIMEOUT_SECONDS,
            concurrency=settings.FACE_MATCH_CONCURRENCY,
            strategy=settings.FACE_MATCH_STRATEGY,
        )
        if match is None:
            logger.info(f"Face scan for event {event_id}: no match among {len(candidates)} candidates")
            return not_registered_outcome()
        return await run_in_threadpool(self._apply_face_match, db, match, mode)


checkin_engine = CheckInEngine()
