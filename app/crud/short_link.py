from typing import Optional
from sqlalchemy.orm import Session
from app.crud.base import CRUDBase
from app.models.short_link import ShortLink, ShortLinkKind
from app.models.base import utcnow


class CRUDShortLink(CRUDBase[ShortLink]):

    def get_by_short_id(self, db: Session, *, short_id: str) -> Optional[ShortLink]:
        return db.query(ShortLink).filter(ShortLink.short_id == short_id).first()

    def get_active(self, db: Session, *, short_id: str) -> Optional[ShortLink]:
        return (
            db.query(ShortLink)
            .filter(ShortLink.short_id == short_id, ShortLink.expires_at > utcnow())
            .first()
        )

    def find_device_mapping(self, db: Session, *, event_id: int, device_key: str) -> Optional[ShortLink]:
        return (
            db.query(ShortLink)
            .filter(
                ShortLink.kind == ShortLinkKind.DEVICE.value,
                ShortLink.event_id == event_id,
                ShortLink.device_key == device_key,
                ShortLink.expires_at > utcnow(),
            )
            .first()
        )

    def find_form_mapping(self, db: Session, *, event_id: int, form_id: str) -> Optional[ShortLink]:
        return (
            db.query(ShortLink)
            .filter(
                ShortLink.kind == ShortLinkKind.FORM.value,
                ShortLink.event_id == event_id,
                ShortLink.form_id == form_id,
                ShortLink.expires_at > utcnow(),
            )
            .first()
        )


short_link = CRUDShortLink(ShortLink)
