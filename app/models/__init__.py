from .base import BaseModel
from .tenant import Tenant
from .event import Event
from .ticket import Ticket
from .participant_identity import ParticipantIdentity
from .event_registration import EventRegistration, CheckStatus, LifecycleState, RegistrationSource
from .sequence_counter import SequenceCounter
from .short_link import ShortLink, ShortLinkKind
from .scanner_device import ScannerDevice
from .event_package import EventPackage

__all__ = [
    "BaseModel", "Tenant", "Event", "Ticket", "ParticipantIdentity",
    "EventRegistration", "CheckStatus", "LifecycleState", "RegistrationSource",
    "SequenceCounter", "ShortLink", "ShortLinkKind", "ScannerDevice", "EventPackage",
]
