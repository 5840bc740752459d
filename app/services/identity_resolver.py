"""
Identity Resolver

Finds the participant identity behind a submitted e-mail (root field or one of the
alias fields inside the dynamic data) or creates it, merging submitted fields.
"""

import json
import logging
from typing import Any, Dict, Optional, Tuple

from sqlalchemy.orm import Session

from app import crud
from app.core.errors import DuplicateIdentity, ValidationError
from app.core.identity_keys import EMAIL_FIELD, EMAIL_FIELD_ALIASES, extract_email, normalize_email
from app.models.participant_identity import ParticipantIdentity

logger = logging.getLogger(__name__)

# Request keys that describe the submission itself, never the participant
SYSTEM_FIELDS = frozenset({
    "event_id",
    "ticket_id",
    "package_id",
    "user_token",
    "form_type",
    "image_url",
    "face_id",
    "face_ref",
    "face_image",
    "face_image_base64",
    "dynamic_form_data",
    "check_in",
})


def collect_form_fields(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Flatten a submission into participant fields.

    ``dynamic_form_data`` may arrive as a JSON string (multipart forms) or an object;
    when present it is the source of truth, otherwise every non-system key is used.
    """
    raw = payload.get("dynamic_form_data")
    if isinstance(raw, str) and raw.strip():
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError:
            raise ValidationError("dynamic_form_data is not valid JSON")
    if raw:
        if not isinstance(raw, dict):
            raise ValidationError("dynamic_form_data must be an object")
        fields = dict(raw)
        if EMAIL_FIELD not in fields and payload.get(EMAIL_FIELD):
            fields[EMAIL_FIELD] = payload[EMAIL_FIELD]
    else:
        fields = {k: v for k, v in payload.items() if k not in SYSTEM_FIELDS and v is not None}

    return {k: v for k, v in fields.items() if k not in SYSTEM_FIELDS}


def prepare_identity_fields(
    fields: Dict[str, Any], email: Optional[str] = None
) -> Tuple[str, Dict[str, Any]]:
    """Normalize every e-mail field and make sure the canonical one is set."""
    email = normalize_email(email) or extract_email(fields)
    if not email:
        raise ValidationError("Email is required to identify the participant")

    fields = dict(fields)
    for key in EMAIL_FIELD_ALIASES:
        if isinstance(fields.get(key), str):
            fields[key] = normalize_email(fields[key])
    fields[EMAIL_FIELD] = email
    return email, fields


class IdentityResolver:
    def resolve_or_create(
        self, db: Session, *, fields: Dict[str, Any], email: Optional[str] = None
    ) -> ParticipantIdentity:
        email, fields = prepare_identity_fields(fields, email)

        # One retry: a concurrent insert for the same e-mail turns into lookup-and-merge
        for attempt in range(2):
            identity = crud.participant_identity.get_by_email(db, email=email)
            if identity:
                logger.info(f"Identity {identity.id} matched for {email}, merging {len(fields)} fields")
                return crud.participant_identity.merge_fields(db, identity=identity, fields=fields)
            try:
                identity = crud.participant_identity.create_identity(db, email=email, fields=fields)
                logger.info(f"✅ Identity {identity.id} created for {email}")
                return identity
            except DuplicateIdentity:
                if attempt:
                    raise
                logger.info(f"Retrying identity lookup for {email} after concurrent insert")
        raise DuplicateIdentity()


identity_resolver = IdentityResolver()
