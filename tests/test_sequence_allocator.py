import threading

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.core.errors import AllocationError, NotFound
from app.db.database import Base
from app.models.event import Event
from app.models.sequence_counter import SequenceCounter
from app.models.ticket import Ticket
from app.services.sequence_allocator import format_registration_number, sequence_allocator


def allocate(db, ticket):
    return sequence_allocator.allocate(db, event_id=ticket.event_id, ticket_id=ticket.id)


def test_numbers_start_at_start_count_and_keep_its_width(db, make_event, make_ticket):
    ticket = make_ticket(make_event(), serial_no_prefix="REG-", start_count="001")
    assert [allocate(db, ticket) for _ in range(3)] == ["REG-001", "REG-002", "REG-003"]


def test_width_grows_past_the_start_count_digits(db, make_event, make_ticket):
    ticket = make_ticket(make_event(), serial_no_prefix="A", start_count="9")
    assert allocate(db, ticket) == "A9"
    assert allocate(db, ticket) == "A10"


def test_missing_start_count_counts_from_one(db, make_event, make_ticket):
    ticket = make_ticket(make_event(), serial_no_prefix="VIP")
    assert allocate(db, ticket) == "VIP1"


def test_ticket_without_prefix_gets_no_number(db, make_event, make_ticket):
    ticket = make_ticket(make_event(), start_count="001")
    assert allocate(db, ticket) is None
    assert db.query(SequenceCounter).count() == 0


def test_counter_is_seeded_from_numbers_already_issued(db, make_event, make_ticket, make_registration):
    event = make_event()
    ticket = make_ticket(event, serial_no_prefix="REG-", start_count="001")
    make_registration(event, ticket, registration_number="REG-041")
    make_registration(event, ticket, registration_number="REG-007")
    make_registration(event, ticket, registration_number="REG-XYZ")

    assert allocate(db, ticket) == "REG-042"


def test_start_count_raised_above_counter_wins(db, make_event, make_ticket):
    ticket = make_ticket(make_event(), serial_no_prefix="REG-", start_count="001")
    assert allocate(db, ticket) == "REG-001"

    ticket.start_count = "500"
    db.commit()
    assert allocate(db, ticket) == "REG-500"


def test_non_numeric_start_count_is_an_allocation_error(db, make_event, make_ticket):
    ticket = make_ticket(make_event(), serial_no_prefix="REG-", start_count="abc")
    with pytest.raises(AllocationError):
        allocate(db, ticket)


def test_unknown_ticket_is_not_found(db, make_event, make_ticket):
    event = make_event()
    other = make_ticket(make_event(), serial_no_prefix="X")
    with pytest.raises(NotFound):
        sequence_allocator.allocate(db, event_id=event.id, ticket_id=other.id)


def test_counters_are_independent_per_ticket(db, make_event, make_ticket):
    event = make_event()
    first = make_ticket(event, serial_no_prefix="R-", start_count="01")
    second = make_ticket(event, name="VIP", serial_no_prefix="R-", start_count="01")
    assert allocate(db, first) == "R-01"
    assert allocate(db, second) == "R-01"
    assert allocate(db, first) == "R-02"


def test_format_registration_number():
    assert format_registration_number("REG-", 7, 3) == "REG-007"
    assert format_registration_number("", 1234, 3) == "1234"


def test_concurrent_allocations_never_collide(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'sequence.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    with Session() as setup:
        event = Event(title="Load test", slug="load-test")
        setup.add(event)
        setup.commit()
        ticket = Ticket(event_id=event.id, name="General", serial_no_prefix="REG-", start_count="001")
        setup.add(ticket)
        setup.commit()
        event_id, ticket_id = event.id, ticket.id

    workers = 12
    barrier = threading.Barrier(workers)
    numbers = []
    errors = []
    lock = threading.Lock()

    def worker():
        session = Session()
        try:
            barrier.wait()
            number = sequence_allocator.allocate(session, event_id=event_id, ticket_id=ticket_id)
            with lock:
                numbers.append(number)
        except Exception as e:  # collected and asserted below
            with lock:
                errors.append(e)
        finally:
            session.close()

    threads = [threading.Thread(target=worker) for _ in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    engine.dispose()

    assert errors == []
    assert len(set(numbers)) == workers
    assert sorted(numbers) == [f"REG-{n:03d}" for n in range(1, workers + 1)]
