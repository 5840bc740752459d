from sqlalchemy import Column, String, Integer, ForeignKey, DateTime
from sqlalchemy.orm import relationship
from app.models.base import BaseModel

class ScannerDevice(BaseModel):
    __tablename__ = "scanner_devices"
    
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    device_type = Column(String(50), nullable=False)
    device_key = Column(String(255), nullable=False)
    expires_at = Column(DateTime, nullable=True)

    tenant = relationship("Tenant", back_populates="scanner_devices")
