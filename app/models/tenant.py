from sqlalchemy import Column, String, Boolean
from sqlalchemy.orm import relationship
from app.models.base import BaseModel

class Tenant(BaseModel):
    """Company that owns events and scanner devices."""
    __tablename__ = "tenants"
    
    name = Column(String(255), nullable=False)
    slug = Column(String(100), unique=True, nullable=False, index=True)
    is_active = Column(Boolean, default=True)

    events = relationship("Event", back_populates="tenant")
    scanner_devices = relationship("ScannerDevice", back_populates="tenant")
