"""
Sequence Allocator

Hands out badge numbers such as ``MSF-001`` per (event, ticket). A counter row is
seeded lazily from the highest number already issued, then advanced with a single
atomic UPDATE so concurrent registrations never receive the same number.
"""

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app import crud
from app.core.errors import AllocationError, NotFound

logger = logging.getLogger(__name__)

DEFAULT_START_COUNT = "1"


def format_registration_number(prefix: str, value: int, width: int) -> str:
    return f"{prefix}{str(value).zfill(width)}"


class SequenceAllocator:
    def allocate(
        self, db: Session, *, event_id: int, ticket_id: int, commit: bool = True
    ) -> Optional[str]:
        """Return the next registration number, or None when the ticket has no prefix.

        With ``commit=False`` the counter update stays in the caller's transaction and
        is committed together with the registration that uses the number.
        """
        ticket = crud.ticket.get_for_event(db, event_id=event_id, ticket_id=ticket_id)
        if not ticket:
            raise NotFound("Ticket not found for this event")

        prefix = ticket.serial_no_prefix
        if not prefix:
            return None

        start_raw = (ticket.start_count or DEFAULT_START_COUNT).strip() or DEFAULT_START_COUNT
        if not start_raw.isdigit():
            raise AllocationError(f"Ticket start count '{start_raw}' is not numeric")
        start = int(start_raw)
        width = len(start_raw)

        try:
            counter = crud.sequence_counter.get_for_ticket(db, event_id=event_id, ticket_id=ticket_id)
            if counter is None:
                highest = crud.event_registration.get_highest_sequence(
                    db, event_id=event_id, ticket_id=ticket_id, prefix=prefix
                )
                crud.sequence_counter.seed(
                    db,
                    event_id=event_id,
                    ticket_id=ticket_id,
                    prefix=prefix,
                    last_value=highest if highest is not None else start - 1,
                    width=width,
                )

            value = crud.sequence_counter.advance(db, event_id=event_id, ticket_id=ticket_id, floor=start)
            if value is None:
                raise AllocationError()
            if commit:
                db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"❌ Sequence allocation failed for event={event_id} ticket={ticket_id}: {e}")
            raise AllocationError()
        except AllocationError:
            db.rollback()
            raise

        number = format_registration_number(prefix, value, width)
        logger.info(f"Allocated registration number {number} (event={event_id}, ticket={ticket_id})")
        return number


sequence_allocator = SequenceAllocator()
