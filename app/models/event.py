from sqlalchemy import Column, String, Integer, ForeignKey, Date
from sqlalchemy.orm import relationship
from app.models.base import BaseModel

class Event(BaseModel):
    __tablename__ = "events"
    
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=True)
    title = Column(String(255), nullable=False)
    slug = Column(String(150), unique=True, nullable=False, index=True)
    participant_capacity = Column(Integer, default=0)  # 0 means unlimited
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    event_logo = Column(String(500), nullable=True)
    event_image = Column(String(500), nullable=True)
    # Ticket used for instant on-site registration and package entries without a ticket
    default_ticket_id = Column(Integer, nullable=True)
    
    # Relationships
    tenant = relationship("Tenant", back_populates="events")
    tickets = relationship("Ticket", back_populates="event", cascade="all, delete-orphan")
    registrations = relationship("EventRegistration", back_populates="event")
