from sqlalchemy import Column, String, Boolean, Integer, JSON
from sqlalchemy.orm import relationship
from app.models.base import BaseModel

class ParticipantIdentity(BaseModel):
    """One person across events, keyed by normalized email."""
    __tablename__ = "participant_identities"
    
    email = Column(String(255), unique=True, nullable=False, index=True)
    dynamic_fields = Column(JSON, nullable=False, default=dict)
    is_blocked = Column(Boolean, default=False)
    version = Column(Integer, nullable=False, default=0)  # bumped by every field merge
    
    registrations = relationship("EventRegistration", back_populates="identity")
