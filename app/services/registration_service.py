"""
Registration Service

Creates or reuses the per-event registration of a participant: resolves the identity,
enforces capacity, allocates the badge number, indexes the face and issues the QR
credential. Also hosts the small registration-level operations (e-mail pre-check,
block toggle, package enrolment, instant registration) and the read-side summaries
returned to scanners.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from fastapi.concurrency import run_in_threadpool
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app import crud
from app.core.config import settings
from app.core.encryption import CredentialCodec, credential_codec
from app.core.errors import AllocationError, Blocked, LimitReached, NotFound, ScanConflict, ValidationError
from app.core.identity_keys import normalize_email
from app.models.event import Event
from app.models.event_registration import EventRegistration, RegistrationSource
from app.models.participant_identity import ParticipantIdentity
from app.models.ticket import Ticket
from app.services.face_matching import FaceMatcher
from app.services.identity_resolver import (
    IdentityResolver, collect_form_fields, identity_resolver, prepare_identity_fields,
)
from app.services.qr_code_service import discard_qr_image, generate_qr_png, media_url, save_qr_image, to_data_url
from app.services.sequence_allocator import SequenceAllocator, sequence_allocator

logger = logging.getLogger(__name__)


@dataclass
class RegistrationResult:
    registration: EventRegistration
    created: bool
    credential: str
    qr_data_url: str


def build_media(registration: EventRegistration) -> Dict[str, Optional[str]]:
    return {
        "face_image_url": media_url(registration.face_image),
        "qr_image_url": media_url(registration.qr_image),
    }


def build_event_summary(event: Optional[Event]) -> Optional[Dict[str, Any]]:
    if event is None:
        return None
    return {
        "id": event.id,
        "title": event.title,
        "slug": event.slug,
        "start_date": event.start_date.isoformat() if event.start_date else None,
        "end_date": event.end_date.isoformat() if event.end_date else None,
        "event_logo": media_url(event.event_logo),
    }


def _mapped_value(fields: Dict[str, Any], field_map: Dict[str, str], key: str) -> Optional[str]:
    value = fields.get(field_map.get(key, key))
    if value is None and key in field_map:
        value = fields.get(key)
    if value is None or value == "":
        return None
    return str(value).strip() or None


def build_participant_summary(registration: EventRegistration) -> Dict[str, Any]:
    """Identity fields overlaid with the form answers, plus a display name.

    The ticket's ``field_map`` tells which form field holds ``first_name``,
    ``last_name`` or ``full_name`` for forms with generated field names.
    """
    identity = registration.identity
    fields = {**((identity.dynamic_fields if identity else None) or {}), **(registration.form_data or {})}
    field_map = (registration.ticket.field_map if registration.ticket else None) or {}

    full_name = _mapped_value(fields, field_map, "full_name")
    if not full_name:
        parts = [_mapped_value(fields, field_map, "first_name"), _mapped_value(fields, field_map, "last_name")]
        full_name = " ".join(p for p in parts if p) or _mapped_value(fields, field_map, "name")

    return {
        "registration_id": registration.id,
        "identity_id": registration.identity_id,
        "email": identity.email if identity else None,
        "full_name": full_name,
        "registration_number": registration.registration_number,
        "ticket_id": registration.ticket_id,
        "ticket_name": registration.ticket.name if registration.ticket else None,
        "status": registration.lifecycle_state.value,
        "blockStatus": not registration.approved,
        "checkin_time": registration.checkin_time,
        "checkout_time": registration.checkout_time,
        "fields": fields,
    }


class RegistrationService:
    def __init__(
        self,
        resolver: Optional[IdentityResolver] = None,
        allocator: Optional[SequenceAllocator] = None,
        codec: Optional[CredentialCodec] = None,
    ):
        self.resolver = resolver or identity_resolver
        self.allocator = allocator or sequence_allocator
        self.codec = codec or credential_codec

    def _load_event_and_ticket(self, db: Session, event_id: int, ticket_id: Optional[int]):
        event = crud.event.get(db, id=event_id)
        if not event:
            raise NotFound("Event not found")
        ticket = None
        if ticket_id is not None:
            ticket = crud.ticket.get_for_event(db, event_id=event.id, ticket_id=ticket_id)
            if not ticket:
                raise NotFound("Ticket not found for this event")
        return event, ticket

    def _check_capacity(self, db: Session, event: Event, ticket: Optional[Ticket]) -> None:
        capacity = event.participant_capacity or 0
        if capacity <= 0:
            return
        if ticket is not None:
            taken = crud.event_registration.count_for_ticket(db, ticket_id=ticket.id)
        else:
            taken = crud.event_registration.count_for_event(db, event_id=event.id)
        if taken >= capacity:
            raise LimitReached("Event participant capacity reached")

    def credential_for(self, registration: EventRegistration) -> str:
        return self.codec.issue(registration.qr_token, registration.event_id)

    async def _index_face(self, matcher: Optional[FaceMatcher], face_image: Optional[bytes]) -> Optional[str]:
        if not face_image:
            return None
        if matcher is None:
            raise ValidationError("Face image supplied but face matching is unavailable")
        face_ref = await matcher.index(face_image)
        logger.info(f"Face indexed as {face_ref}")
        return face_ref

    def _result(self, registration: EventRegistration, created: bool) -> RegistrationResult:
        credential = self.credential_for(registration)
        return RegistrationResult(
            registration=registration,
            created=created,
            credential=credential,
            qr_data_url=to_data_url(generate_qr_png(credential)),
        )

    def _reuse(
        self,
        db: Session,
        registration: EventRegistration,
        form_data: Dict[str, Any],
        face_ref: Optional[str],
        face_image_key: Optional[str],
    ) -> RegistrationResult:
        registration.form_data = {**(registration.form_data or {}), **form_data}
        if face_ref:
            registration.face_ref = face_ref
        if face_image_key:
            registration.face_image = face_image_key
        db.add(registration)
        db.commit()
        db.refresh(registration)
        logger.info(f"Registration {registration.id} reused for identity {registration.identity_id}")
        return self._result(registration, created=False)

    def register_identity(
        self,
        db: Session,
        *,
        identity: ParticipantIdentity,
        event: Event,
        ticket: Optional[Ticket],
        form_data: Dict[str, Any],
        source: RegistrationSource = RegistrationSource.FORM,
        face_ref: Optional[str] = None,
        face_image_key: Optional[str] = None,
        approved: Optional[bool] = None,
    ) -> RegistrationResult:
        """Create-or-reuse the registration of an already resolved identity."""
        ticket_id = ticket.id if ticket else None
        existing = crud.event_registration.get_for_identity(
            db, identity_id=identity.id, event_id=event.id, ticket_id=ticket_id
        )
        if existing:
            return self._reuse(db, existing, form_data, face_ref, face_image_key)

        if identity.is_blocked:
            raise Blocked("Participant is blocked from registering")

        if approved is None:
            approved = bool(ticket.auto_approve) if ticket is not None else True

        registration_number = None
        if ticket is not None:
            try:
                registration_number = self.allocator.allocate(
                    db, event_id=event.id, ticket_id=ticket.id, commit=False
                )
            except AllocationError:
                if settings.REQUIRE_REGISTRATION_NUMBER:
                    db.rollback()
                    raise
                logger.warning(f"Registering identity {identity.id} for event {event.id} without a number")

        # Count under the event row lock so concurrent inserts cannot overshoot capacity;
        # the lock and the counter advance are released together at commit or rollback
        if (event.participant_capacity or 0) > 0:
            crud.event.lock(db, event_id=event.id)
            try:
                self._check_capacity(db, event, ticket)
            except LimitReached:
                db.rollback()
                raise

        qr_token = uuid.uuid4().hex
        credential = self.codec.issue(qr_token, event.id)
        qr_png = generate_qr_png(credential)
        qr_image = save_qr_image(qr_png, qr_token)

        registration = EventRegistration(
            identity_id=identity.id,
            event_id=event.id,
            ticket_id=ticket_id,
            dedupe_key=EventRegistration.build_dedupe_key(identity.id, event.id, ticket_id),
            registration_number=registration_number,
            form_data=dict(form_data),
            source=source.value,
            face_ref=face_ref,
            face_image=face_image_key,
            qr_token=qr_token,
            qr_image=qr_image,
            approved=approved,
            version=0,
        )
        db.add(registration)
        try:
            db.commit()
        except IntegrityError:
            # Lost a race with a concurrent submission of the same triple; the counter
            # advance rolls back with it
            db.rollback()
            discard_qr_image(qr_image)
            existing = crud.event_registration.get_for_identity(
                db, identity_id=identity.id, event_id=event.id, ticket_id=ticket_id
            )
            if not existing:
                raise
            return self._reuse(db, existing, form_data, face_ref, face_image_key)
        except SQLAlchemyError:
            db.rollback()
            discard_qr_image(qr_image)
            raise
        db.refresh(registration)

        logger.info(
            f"✅ Registration {registration.id} created: identity={identity.id} event={event.id} "
            f"ticket={ticket_id} number={registration_number} source={source.value}"
        )
        return RegistrationResult(
            registration=registration,
            created=True,
            credential=credential,
            qr_data_url=to_data_url(qr_png),
        )

    async def register(
        self,
        db: Session,
        *,
        event_id: int,
        payload: Dict[str, Any],
        ticket_id: Optional[int] = None,
        face_image: Optional[bytes] = None,
        matcher: Optional[FaceMatcher] = None,
        source: RegistrationSource = RegistrationSource.FORM,
        approved: Optional[bool] = None,
    ) -> RegistrationResult:
        event, ticket = await run_in_threadpool(self._load_event_and_ticket, db, event_id, ticket_id)
        email, form_data = prepare_identity_fields(collect_form_fields(payload), payload.get("email"))
        identity = await run_in_threadpool(
            self.resolver.resolve_or_create, db, fields=form_data, email=email
        )

        face_ref = await self._index_face(matcher, face_image)
        return await run_in_threadpool(
            self.register_identity,
            db,
            identity=identity,
            event=event,
            ticket=ticket,
            form_data=form_data,
            source=source,
            face_ref=face_ref,
            face_image_key=payload.get("face_image"),
            approved=approved,
        )

    def _load_package_targets(self, db: Session, package_id: int):
        package = crud.event_package.get(db, id=package_id)
        if not package:
            raise NotFound("Package not found")
        entries = package.entries or []
        if not entries:
            raise ValidationError("Package has no events")

        targets = []
        for entry in entries:
            event = crud.event.get(db, id=entry.get("event_id"))
            if not event:
                raise NotFound(f"Event {entry.get('event_id')} of this package not found")
            ticket_id = entry.get("ticket_id") or event.default_ticket_id
            _, ticket = self._load_event_and_ticket(db, event.id, ticket_id)
            targets.append((event, ticket))
        return package, targets

    async def enroll_package(
        self,
        db: Session,
        *,
        package_id: int,
        payload: Dict[str, Any],
        face_image: Optional[bytes] = None,
        matcher: Optional[FaceMatcher] = None,
    ) -> List[RegistrationResult]:
        package, targets = await run_in_threadpool(self._load_package_targets, db, package_id)
        email, form_data = prepare_identity_fields(collect_form_fields(payload), payload.get("email"))
        identity = await run_in_threadpool(
            self.resolver.resolve_or_create, db, fields=form_data, email=email
        )
        face_ref = await self._index_face(matcher, face_image)

        results = []
        for event, ticket in targets:
            result = await run_in_threadpool(
                self.register_identity,
                db,
                identity=identity,
                event=event,
                ticket=ticket,
                form_data=form_data,
                source=RegistrationSource.PACKAGE,
                face_ref=face_ref,
                face_image_key=payload.get("face_image"),
            )
            results.append(result)
        logger.info(f"📦 Identity {identity.id} enrolled in package {package.id} ({len(results)} events)")
        return results

    async def instant_register(
        self,
        db: Session,
        *,
        event_id: int,
        payload: Dict[str, Any],
        face_image: Optional[bytes] = None,
        matcher: Optional[FaceMatcher] = None,
    ) -> RegistrationResult:
        event = await run_in_threadpool(crud.event.get, db, id=event_id)
        if not event:
            raise NotFound("Event not found")
        return await self.register(
            db,
            event_id=event.id,
            ticket_id=event.default_ticket_id,
            payload=payload,
            face_image=face_image,
            matcher=matcher,
            source=RegistrationSource.INSTANT,
            approved=True,
        )

    def check_email(self, db: Session, *, email: str, ticket_id: int) -> Dict[str, Any]:
        """Pre-check before showing a form: capacity, per-person limit, existing record."""
        email = normalize_email(email)
        if not email:
            raise ValidationError("Email is required")
        ticket = crud.ticket.get(db, id=ticket_id)
        if not ticket:
            raise NotFound("Ticket not found")
        event = crud.event.get(db, id=ticket.event_id)
        if not event:
            raise NotFound("Event not found")

        identity = crud.participant_identity.get_by_email(db, email=email)
        registration = None
        count = 0
        if identity:
            count = crud.event_registration.count_for_identity_ticket(
                db, identity_id=identity.id, ticket_id=ticket.id
            )
            registration = crud.event_registration.get_for_identity(
                db, identity_id=identity.id, event_id=event.id, ticket_id=ticket.id
            )

        if not count:
            self._check_capacity(db, event, ticket)
        limit = ticket.buy_limit_max or 0
        if limit > 0 and count >= limit:
            raise LimitReached("You have already registered for this ticket")

        return {
            "email": email,
            "event_id": event.id,
            "ticket_id": ticket.id,
            "already_registered": registration is not None,
            "registration": registration,
        }

    def get_registration(self, db: Session, *, registration_id: int) -> EventRegistration:
        registration = crud.event_registration.get(db, id=registration_id)
        if not registration:
            raise NotFound("Registration not found")
        return registration

    def set_block_status(
        self, db: Session, *, registration_id: int, blocked: Optional[bool] = None
    ) -> EventRegistration:
        """Set, or flip when ``blocked`` is None, the approval flag of one registration."""
        registration = self.get_registration(db, registration_id=registration_id)
        for _ in range(max(1, settings.STATUS_UPDATE_RETRIES)):
            approved = (not blocked) if blocked is not None else (not registration.approved)
            if crud.event_registration.apply_status_change(
                db, registration=registration, values={"approved": approved}
            ):
                logger.info(f"🚫 Registration {registration.id} blockStatus={not approved}")
                return registration
        raise ScanConflict("Registration changed concurrently, please retry")


registration_service = RegistrationService()
