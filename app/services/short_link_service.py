"""
Short Link Service

Mints short, expiring links that carry encrypted device or form data. Minting is
idempotent per (event, device key) and (event, form id) while a mapping is live.
"""

import logging
import secrets
import uuid
from datetime import timedelta
from typing import Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app import crud
from app.core.config import settings
from app.core.encryption import CredentialCodec, credential_codec
from app.core.errors import AllocationError, NotFound, ValidationError
from app.models.base import utcnow
from app.models.short_link import ShortLink, ShortLinkKind

logger = logging.getLogger(__name__)

SHORT_ID_ATTEMPTS = 10


def generate_short_id() -> str:
    return secrets.token_hex(4)


class ShortLinkService:
    def __init__(self, codec: Optional[CredentialCodec] = None):
        self.codec = codec or credential_codec

    def _create(self, db: Session, **values) -> ShortLink:
        expires_at = utcnow() + timedelta(days=settings.SHORT_LINK_TTL_DAYS)
        for _ in range(SHORT_ID_ATTEMPTS):
            short_id = generate_short_id()
            if crud.short_link.get_by_short_id(db, short_id=short_id):
                continue
            link = ShortLink(short_id=short_id, expires_at=expires_at, **values)
            db.add(link)
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                logger.warning(f"Short id {short_id} collided on insert, retrying")
                continue
            db.refresh(link)
            return link
        raise AllocationError("Unable to generate a unique short link")

    def mint_device_link(self, db: Session, *, event_id: int, device_type: str) -> Tuple[ShortLink, bool]:
        """Return ``(link, created)`` for the tenant's active scanner device of ``device_type``."""
        event = crud.event.get(db, id=event_id)
        if not event:
            raise NotFound("Event not found")
        if not event.tenant_id:
            raise ValidationError("Event has no tenant assigned")

        device = crud.scanner_device.get_active(db, tenant_id=event.tenant_id, device_type=device_type)
        if not device:
            raise NotFound("No active device found for this tenant and device type")

        # Deterministic encryption lets the ciphertext double as the lookup key
        encrypted_key = self.codec.issue(device.device_key, device.device_type)
        existing = crud.short_link.find_device_mapping(db, event_id=event.id, device_key=encrypted_key)
        if existing:
            return existing, False

        link = self._create(
            db,
            kind=ShortLinkKind.DEVICE.value,
            event_id=event.id,
            event_slug=event.slug,
            device_key=encrypted_key,
        )
        logger.info(f"🔗 Device link {link.short_id} minted for event {event.id} ({device.device_type})")
        return link, True

    def mint_form_link(self, db: Session, *, event_id: int, form_id: str) -> Tuple[ShortLink, bool]:
        event = crud.event.get(db, id=event_id)
        if not event:
            raise NotFound("Event not found")
        form_id = (form_id or "").strip()
        if not form_id:
            raise ValidationError("form_id is required")

        existing = crud.short_link.find_form_mapping(db, event_id=event.id, form_id=form_id)
        if existing:
            return existing, False

        link = self._create(
            db,
            kind=ShortLinkKind.FORM.value,
            event_id=event.id,
            event_slug=event.slug,
            form_id=form_id,
            encrypted_event_data=self.codec.issue(uuid.uuid4().hex, event.slug),
        )
        logger.info(f"🔗 Form link {link.short_id} minted for event {event.id} form {form_id}")
        return link, True

    def resolve(self, db: Session, *, short_id: str) -> ShortLink:
        link = crud.short_link.get_active(db, short_id=short_id)
        if not link:
            raise NotFound("Invalid or expired link")
        return link


short_link_service = ShortLinkService()
