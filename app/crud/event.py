# File: app/crud/event.py
from typing import Optional
from sqlalchemy import update
from sqlalchemy.orm import Session
from app.crud.base import CRUDBase
from app.models.event import Event
from app.models.ticket import Ticket
from app.models.scanner_device import ScannerDevice
from app.models.event_package import EventPackage
from app.models.base import utcnow

class CRUDEvent(CRUDBase[Event]):

    def lock(self, db: Session, *, event_id: int) -> None:
        """Take the event row's write lock for the rest of the current transaction."""
        db.execute(
            update(Event)
            .where(Event.id == event_id)
            .values(participant_capacity=Event.participant_capacity)
            .execution_options(synchronize_session=False)
        )

class CRUDTicket(CRUDBase[Ticket]):

    def get_for_event(self, db: Session, *, ticket_id: int, event_id: int) -> Optional[Ticket]:
        return db.query(Ticket).filter(Ticket.id == ticket_id, Ticket.event_id == event_id).first()

class CRUDScannerDevice(CRUDBase[ScannerDevice]):

    def get_active(self, db: Session, *, tenant_id: int, device_type: str) -> Optional[ScannerDevice]:
        """Device of the given type for a tenant, skipping expired ones."""
        now = utcnow()
        return (
            db.query(ScannerDevice)
            .filter(
                ScannerDevice.tenant_id == tenant_id,
                ScannerDevice.device_type == str(device_type),
            )
            .filter((ScannerDevice.expires_at.is_(None)) | (ScannerDevice.expires_at > now))
            .order_by(ScannerDevice.id)
            .first()
        )

event = CRUDEvent(Event)
ticket = CRUDTicket(Ticket)
scanner_device = CRUDScannerDevice(ScannerDevice)
event_package = CRUDBase(EventPackage)
