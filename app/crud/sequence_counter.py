from typing import Optional
from sqlalchemy import update, case
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from app.crud.base import CRUDBase
from app.models.sequence_counter import SequenceCounter
import logging

logger = logging.getLogger(__name__)


class CRUDSequenceCounter(CRUDBase[SequenceCounter]):

    def get_for_ticket(self, db: Session, *, event_id: int, ticket_id: int) -> Optional[SequenceCounter]:
        return (
            db.query(SequenceCounter)
            .filter(SequenceCounter.event_id == event_id, SequenceCounter.ticket_id == ticket_id)
            .first()
        )

    def seed(
        self, db: Session, *, event_id: int, ticket_id: int, prefix: str, last_value: int, width: int
    ) -> None:
        """Create the counter row unless a concurrent request already did."""
        db.add(SequenceCounter(
            event_id=event_id,
            ticket_id=ticket_id,
            prefix=prefix,
            last_value=last_value,
            width=width,
        ))
        try:
            db.commit()
            logger.info(f"Sequence counter seeded: event={event_id} ticket={ticket_id} last={last_value}")
        except IntegrityError:
            db.rollback()
            logger.debug(f"Sequence counter for event={event_id} ticket={ticket_id} already seeded")

    def advance(self, db: Session, *, event_id: int, ticket_id: int, floor: int) -> Optional[int]:
        """Atomically move the counter to ``max(last + 1, floor)`` and return the new value.

        The row stays locked by the surrounding transaction until the caller commits.
        """
        next_value = case(
            (SequenceCounter.last_value + 1 < floor, floor),
            else_=SequenceCounter.last_value + 1,
        )
        result = db.execute(
            update(SequenceCounter)
            .where(SequenceCounter.event_id == event_id, SequenceCounter.ticket_id == ticket_id)
            .values(last_value=next_value)
            .returning(SequenceCounter.last_value)
            .execution_options(synchronize_session=False)
        )
        return result.scalar_one_or_none()


sequence_counter = CRUDSequenceCounter(SequenceCounter)
