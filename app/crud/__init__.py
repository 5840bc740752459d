from .event import event, ticket, scanner_device, event_package
from .participant_identity import participant_identity
from .event_registration import event_registration
from .sequence_counter import sequence_counter
from .short_link import short_link

__all__ = [
    "event", "ticket", "scanner_device", "event_package",
    "participant_identity", "event_registration", "sequence_counter", "short_link",
]
