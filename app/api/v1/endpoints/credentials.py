from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from app.db.database import get_db
from app.schemas.short_link import DeviceUrlRequest, FormUrlRequest, ShortLinkResponse
from app.services.short_link_service import short_link_service

router = APIRouter()

def _link_response(link, created: bool) -> ShortLinkResponse:
    response = ShortLinkResponse.model_validate(link)
    response.created = created
    return response

@router.post("/device-url", response_model=ShortLinkResponse)
def mint_device_url(request: DeviceUrlRequest, db: Session = Depends(get_db)):
    """Short link that configures a scanner device for an event"""
    link, created = short_link_service.mint_device_link(
        db, event_id=request.event_id, device_type=request.device_type
    )
    return _link_response(link, created)

@router.post("/form-url", response_model=ShortLinkResponse)
def mint_form_url(request: FormUrlRequest, db: Session = Depends(get_db)):
    """Short link to a registration form of an event"""
    link, created = short_link_service.mint_form_link(db, event_id=request.event_id, form_id=request.form_id)
    return _link_response(link, created)
