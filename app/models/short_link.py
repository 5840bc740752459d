from sqlalchemy import Column, String, Integer, ForeignKey, DateTime, Text
from app.models.base import BaseModel
import enum

class ShortLinkKind(str, enum.Enum):
    DEVICE = "device"
    FORM = "form"

class ShortLink(BaseModel):
    __tablename__ = "short_links"
    
    short_id = Column(String(32), unique=True, nullable=False, index=True)
    kind = Column(String(10), nullable=False)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    event_slug = Column(String(150), nullable=False)
    device_key = Column(Text, nullable=True)  # encrypted "device_key:device_type"
    form_id = Column(String(100), nullable=True)
    encrypted_event_data = Column(Text, nullable=True)
    expires_at = Column(DateTime, nullable=False, index=True)
