from typing import Any, Dict, Optional
from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from app.crud.base import CRUDBase
from app.core.errors import ConcurrentUpdate, DuplicateIdentity
from app.core.identity_keys import EMAIL_FIELD_ALIASES, EMAIL_FIELD
from app.models.participant_identity import ParticipantIdentity
import logging

logger = logging.getLogger(__name__)


class CRUDParticipantIdentity(CRUDBase[ParticipantIdentity]):

    def get_by_email(self, db: Session, *, email: str) -> Optional[ParticipantIdentity]:
        """Match the root email column or any alias stored in the dynamic fields."""
        conditions = [ParticipantIdentity.email == email]
        for key in (EMAIL_FIELD,) + EMAIL_FIELD_ALIASES:
            conditions.append(ParticipantIdentity.dynamic_fields[key].as_string() == email)
        return (
            db.query(ParticipantIdentity)
            .filter(or_(*conditions))
            .order_by(ParticipantIdentity.id)
            .first()
        )

    def create_identity(self, db: Session, *, email: str, fields: Dict[str, Any]) -> ParticipantIdentity:
        """Insert a new identity; the unique email column settles creation races."""
        identity = ParticipantIdentity(email=email, dynamic_fields=dict(fields), is_blocked=False)
        db.add(identity)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.warning(f"Identity insert lost a race for {email}")
            raise DuplicateIdentity()
        db.refresh(identity)
        return identity

    def merge_fields(
        self, db: Session, *, identity: ParticipantIdentity, fields: Dict[str, Any], attempts: int = 5
    ) -> ParticipantIdentity:
        """Overlay ``fields`` on the stored ones without dropping keys written concurrently.

        The write only lands if the version is unchanged; otherwise the row is re-read
        and merged again.
        """
        for _ in range(max(1, attempts)):
            merged = {**(identity.dynamic_fields or {}), **fields}
            result = db.execute(
                update(ParticipantIdentity)
                .where(
                    ParticipantIdentity.id == identity.id,
                    ParticipantIdentity.version == identity.version,
                )
                .values(dynamic_fields=merged, version=ParticipantIdentity.version + 1)
                .execution_options(synchronize_session=False)
            )
            db.commit()
            db.refresh(identity)
            if result.rowcount == 1:
                return identity
            logger.info(f"Identity {identity.id} changed during merge, merging again")
        raise ConcurrentUpdate("Participant record changed concurrently, please retry")


participant_identity = CRUDParticipantIdentity(ParticipantIdentity)
