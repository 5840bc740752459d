from pydantic import BaseModel, validator
from typing import Optional, Dict, Any, List, Union
from datetime import datetime

class RegistrationSubmit(BaseModel):
    """Form submission. Any extra keys are participant fields and are kept as-is."""
    event_id: int
    ticket_id: Optional[int] = None
    email: Optional[str] = None
    dynamic_form_data: Optional[Union[str, Dict[str, Any]]] = None
    face_image_base64: Optional[str] = None  # captured face, enrolled with the face matcher
    face_image: Optional[str] = None  # stored image key, surfaced as a media URL

    class Config:
        extra = "allow"

class PackageEnroll(BaseModel):
    email: Optional[str] = None
    dynamic_form_data: Optional[Union[str, Dict[str, Any]]] = None
    face_image_base64: Optional[str] = None
    face_image: Optional[str] = None

    class Config:
        extra = "allow"

class InstantRegistration(PackageEnroll):
    check_in: bool = False

class CheckEmailRequest(BaseModel):
    email: str
    ticket_id: int

    @validator('email')
    def email_not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError('email is required')
        return v

class BlockStatusUpdate(BaseModel):
    """``blocked`` omitted flips the current flag."""
    blocked: Optional[bool] = None

class RegistrationRecord(BaseModel):
    id: int
    identity_id: int
    event_id: int
    ticket_id: Optional[int] = None
    registration_number: Optional[str] = None
    source: Optional[str] = None
    approved: bool
    status: Optional[str] = None
    checkin_time: Optional[datetime] = None
    checkout_time: Optional[datetime] = None
    form_data: Dict[str, Any] = {}
    created_at: datetime

    class Config:
        from_attributes = True

class RegistrationMedia(BaseModel):
    face_image_url: Optional[str] = None
    qr_image_url: Optional[str] = None

class RegistrationResponse(BaseModel):
    registration: RegistrationRecord
    state: str
    created: bool
    credential: str
    qr_data_url: str
    media: RegistrationMedia
    message: str

class RegistrationDetail(BaseModel):
    registration: RegistrationRecord
    state: str
    participant: Dict[str, Any]
    media: RegistrationMedia

class PackageEnrollResponse(BaseModel):
    package_id: int
    registrations: List[RegistrationResponse]

class CheckEmailResponse(BaseModel):
    email: str
    event_id: int
    ticket_id: int
    already_registered: bool
    registration: Optional[RegistrationRecord] = None

class BlockStatusResponse(BaseModel):
    registration_id: int
    blockStatus: bool
    message: str
