from typing import Any, Dict, List, Optional
from sqlalchemy import update, func
from sqlalchemy.orm import Session
from app.crud.base import CRUDBase
from app.models.event_registration import EventRegistration
import logging

logger = logging.getLogger(__name__)


class CRUDEventRegistration(CRUDBase[EventRegistration]):

    def get_by_dedupe_key(self, db: Session, *, dedupe_key: str) -> Optional[EventRegistration]:
        return db.query(EventRegistration).filter(EventRegistration.dedupe_key == dedupe_key).first()

    def get_by_qr_token(self, db: Session, *, qr_token: str) -> Optional[EventRegistration]:
        return db.query(EventRegistration).filter(EventRegistration.qr_token == qr_token).first()

    def get_for_identity(
        self, db: Session, *, identity_id: int, event_id: int, ticket_id: Optional[int]
    ) -> Optional[EventRegistration]:
        return self.get_by_dedupe_key(
            db, dedupe_key=EventRegistration.build_dedupe_key(identity_id, event_id, ticket_id)
        )

    def count_for_ticket(self, db: Session, *, ticket_id: int) -> int:
        return (
            db.query(func.count(EventRegistration.id))
            .filter(EventRegistration.ticket_id == ticket_id)
            .scalar()
        ) or 0

    def count_for_event(self, db: Session, *, event_id: int) -> int:
        return (
            db.query(func.count(EventRegistration.id))
            .filter(EventRegistration.event_id == event_id)
            .scalar()
        ) or 0

    def count_for_identity_ticket(self, db: Session, *, identity_id: int, ticket_id: int) -> int:
        return (
            db.query(func.count(EventRegistration.id))
            .filter(
                EventRegistration.identity_id == identity_id,
                EventRegistration.ticket_id == ticket_id,
            )
            .scalar()
        ) or 0

    def get_face_candidates(self, db: Session, *, event_id: int) -> List[EventRegistration]:
        """Registrations of an event that carry a face descriptor."""
        return (
            db.query(EventRegistration)
            .filter(
                EventRegistration.event_id == event_id,
                EventRegistration.face_ref.isnot(None),
                EventRegistration.face_ref != "",
            )
            .order_by(EventRegistration.id)
            .all()
        )

    def get_highest_sequence(
        self, db: Session, *, event_id: int, ticket_id: int, prefix: str
    ) -> Optional[int]:
        """Largest numeric suffix already issued under ``prefix`` for this event and ticket."""
        numbers = (
            db.query(EventRegistration.registration_number)
            .filter(
                EventRegistration.event_id == event_id,
                EventRegistration.ticket_id == ticket_id,
                EventRegistration.registration_number.startswith(prefix, autoescape=True),
            )
            .all()
        )
        highest = None
        for (number,) in numbers:
            suffix = number[len(prefix):]
            if suffix.isdigit():
                value = int(suffix)
                if highest is None or value > highest:
                    highest = value
        return highest

    def apply_status_change(
        self,
        db: Session,
        *,
        registration: EventRegistration,
        values: Dict[str, Any],
    ) -> bool:
        """Write ``values`` only if nobody else changed the row since it was read.

        Returns False when the version moved on; the caller re-reads and decides again.
        """
        result = db.execute(
            update(EventRegistration)
            .where(
                EventRegistration.id == registration.id,
                EventRegistration.version == registration.version,
            )
            .values(version=EventRegistration.version + 1, **values)
            .execution_options(synchronize_session=False)
        )
        db.commit()
        db.refresh(registration)
        return result.rowcount == 1


event_registration = CRUDEventRegistration(EventRegistration)
