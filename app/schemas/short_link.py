from pydantic import BaseModel
from typing import Optional
from datetime import datetime

class DeviceUrlRequest(BaseModel):
    event_id: int
    device_type: str

class FormUrlRequest(BaseModel):
    event_id: int
    form_id: str

class ShortLinkResponse(BaseModel):
    short_id: str
    kind: str
    event_id: int
    event_slug: str
    device_key: Optional[str] = None  # encrypted device key
    form_id: Optional[str] = None
    encrypted_event_data: Optional[str] = None
    expires_at: datetime
    created: Optional[bool] = None

    class Config:
        from_attributes = True
