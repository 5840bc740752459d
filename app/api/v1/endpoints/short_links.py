from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from app.db.database import get_db
from app.schemas.short_link import ShortLinkResponse
from app.services.short_link_service import short_link_service

router = APIRouter()

@router.get("/{short_id}", response_model=ShortLinkResponse)
def resolve_short_link(short_id: str, db: Session = Depends(get_db)):
    return short_link_service.resolve(db, short_id=short_id)
