from sqlalchemy import Column, String, Integer, ForeignKey, UniqueConstraint
from app.models.base import BaseModel

class SequenceCounter(BaseModel):
    """Last badge number issued for one (event, ticket)."""
    __tablename__ = "sequence_counters"
    __table_args__ = (
        UniqueConstraint("event_id", "ticket_id", name="uq_sequence_counter_event_ticket"),
    )
    
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False)
    ticket_id = Column(Integer, ForeignKey("tickets.id"), nullable=False)
    prefix = Column(String(50), nullable=False)
    last_value = Column(Integer, nullable=False)
    width = Column(Integer, nullable=False, default=1)
