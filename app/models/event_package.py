from sqlalchemy import Column, String, Integer, ForeignKey, JSON
from app.models.base import BaseModel

class EventPackage(BaseModel):
    """Bundle of events; enrolling once registers the participant for every entry."""
    __tablename__ = "event_packages"
    
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=True)
    name = Column(String(255), nullable=False)
    entries = Column(JSON, nullable=False, default=list)  # [{"event_id": 1, "ticket_id": 2}, ...]
