from sqlalchemy import Column, String, Integer, ForeignKey, Boolean, JSON
from sqlalchemy.orm import relationship
from app.models.base import BaseModel

class Ticket(BaseModel):
    __tablename__ = "tickets"
    
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    ticket_category = Column(String(100), nullable=True)
    
    # Badge numbering: "<prefix><start_count padded to len(start_count)>"
    serial_no_prefix = Column(String(50), nullable=True)
    start_count = Column(String(20), nullable=True)  # kept as text, "001" pads to 3 digits
    
    auto_approve = Column(Boolean, default=True)  # approval flag given to new registrations
    buy_limit_max = Column(Integer, default=1)  # registrations allowed per email
    field_map = Column(JSON, nullable=True)  # canonical key -> form field name
    
    # Relationships
    event = relationship("Event", back_populates="tickets")
