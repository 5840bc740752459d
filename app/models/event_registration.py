from sqlalchemy import Column, String, Integer, ForeignKey, DateTime, Boolean, JSON
from sqlalchemy.orm import relationship
from app.models.base import BaseModel
import enum

class CheckStatus(str, enum.Enum):
    """Stored lifecycle marker; a NULL status means registered but never scanned."""
    IN = "in"
    OUT = "out"

class LifecycleState(str, enum.Enum):
    REGISTERED = "registered"
    CHECKED_IN = "checked_in"
    CHECKED_OUT = "checked_out"

class RegistrationSource(str, enum.Enum):
    FORM = "form"
    PACKAGE = "package"
    INSTANT = "instant"

class EventRegistration(BaseModel):
    __tablename__ = "event_registrations"
    
    identity_id = Column(Integer, ForeignKey("participant_identities.id"), nullable=False, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    ticket_id = Column(Integer, ForeignKey("tickets.id"), nullable=True, index=True)
    # "<identity>:<event>:<ticket or ->", unique even when ticket_id is NULL
    dedupe_key = Column(String(100), unique=True, nullable=False)
    
    registration_number = Column(String(100), nullable=True, index=True)
    form_data = Column(JSON, nullable=False, default=dict)
    source = Column(String(20), default=RegistrationSource.FORM.value)
    
    # Face matching / credentials
    face_ref = Column(String(255), nullable=True)  # descriptor handle in the face matcher
    face_image = Column(String(500), nullable=True)
    qr_token = Column(String(64), unique=True, nullable=False)
    qr_image = Column(String(500), nullable=True)
    
    # Check-in lifecycle
    approved = Column(Boolean, default=True)  # False means blocked
    status = Column(String(10), nullable=True)
    checkin_time = Column(DateTime, nullable=True)
    checkout_time = Column(DateTime, nullable=True)
    version = Column(Integer, nullable=False, default=0)
    
    # Relationships
    identity = relationship("ParticipantIdentity", back_populates="registrations")
    event = relationship("Event", back_populates="registrations")
    ticket = relationship("Ticket")

    @property
    def lifecycle_state(self) -> LifecycleState:
        if self.status == CheckStatus.IN.value:
            return LifecycleState.CHECKED_IN
        if self.status == CheckStatus.OUT.value:
            return LifecycleState.CHECKED_OUT
        return LifecycleState.REGISTERED

    @staticmethod
    def build_dedupe_key(identity_id: int, event_id: int, ticket_id=None) -> str:
        return f"{identity_id}:{event_id}:{ticket_id if ticket_id is not None else '-'}"
