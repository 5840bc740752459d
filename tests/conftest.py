import asyncio
import os

os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app import models  # noqa: F401  registers every table on Base.metadata
from app.core.config import settings
from app.core.deps import get_face_matcher
from app.core.encryption import credential_codec
from app.core.errors import ExternalServiceError
from app.db.database import Base, get_db
from app.main import app as fastapi_app
from app.models.event import Event
from app.models.event_package import EventPackage
from app.models.event_registration import EventRegistration
from app.models.participant_identity import ParticipantIdentity
from app.models.scanner_device import ScannerDevice
from app.models.tenant import Tenant
from app.models.ticket import Ticket
from app.services.face_matching import FaceComparison, FaceMatcher



class FakeFaceMatcher(FaceMatcher):
    """Scripted matcher: similarity per stored reference, optional delays and failures."""

    def __init__(self):
        self.similarities = {}
        self.delays = {}
        self.failures = set()
        self.indexed = []
        self.compared = []
        self.cancelled = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def compare(self, source_image, target_ref, threshold):
        self.compared.append(target_ref)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(target_ref, 0))
        except asyncio.CancelledError:
            self.cancelled.append(target_ref)
            raise
        finally:
            self.in_flight -= 1
        if target_ref in self.failures:
            raise ExternalServiceError("matcher unavailable")
        similarity = self.similarities.get(target_ref, 0.0)
        return FaceComparison(matched=similarity >= threshold, similarity=similarity)

    async def index(self, image):
        self.indexed.append(image)
        return f"face-{len(self.indexed)}"


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def media_root(tmp_path, monkeypatch):
    root = tmp_path / "uploads"
    monkeypatch.setattr(settings, "MEDIA_ROOT", str(root))
    return root


@pytest.fixture
def face_matcher():
    return FakeFaceMatcher()


@pytest.fixture
def client(session_factory, face_matcher):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    fastapi_app.dependency_overrides[get_db] = override_get_db
    fastapi_app.dependency_overrides[get_face_matcher] = lambda: face_matcher
    with TestClient(fastapi_app) as test_client:
        yield test_client
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def make_event(db):
    counter = {"n": 0}

    def _make_event(tenant=None, **values):
        counter["n"] += 1
        event = Event(
            title=values.pop("title", f"Summit {counter['n']}"),
            slug=values.pop("slug", f"summit-{counter['n']}"),
            tenant_id=tenant.id if tenant else None,
            **values,
        )
        db.add(event)
        db.commit()
        db.refresh(event)
        return event

    return _make_event


@pytest.fixture
def make_ticket(db):
    def _make_ticket(event, **values):
        values.setdefault("name", "General")
        ticket = Ticket(event_id=event.id, **values)
        db.add(ticket)
        db.commit()
        db.refresh(ticket)
        return ticket

    return _make_ticket


@pytest.fixture
def make_tenant(db):
    def _make_tenant(slug="acme"):
        tenant = Tenant(name=slug.title(), slug=slug)
        db.add(tenant)
        db.commit()
        db.refresh(tenant)
        return tenant

    return _make_tenant


@pytest.fixture
def make_device(db):
    def _make_device(tenant, device_type="entry", device_key="dev-key-1", expires_at=None):
        device = ScannerDevice(
            tenant_id=tenant.id, device_type=device_type, device_key=device_key, expires_at=expires_at
        )
        db.add(device)
        db.commit()
        db.refresh(device)
        return device

    return _make_device


@pytest.fixture
def make_package(db):
    def _make_package(entries, name="Conference pass"):
        package = EventPackage(name=name, entries=entries)
        db.add(package)
        db.commit()
        db.refresh(package)
        return package

    return _make_package


@pytest.fixture
def make_registration(db):
    """Insert a registration directly, bypassing the registration flow."""
    counter = {"n": 0}

    def _make_registration(event, ticket=None, email=None, **values):
        counter["n"] += 1
        identity = ParticipantIdentity(
            email=email or f"person{counter['n']}@example.com",
            dynamic_fields=values.pop("fields", {"first_name": "Ada", "last_name": "Lovelace"}),
        )
        db.add(identity)
        db.commit()
        ticket_id = ticket.id if ticket else None
        registration = EventRegistration(
            identity_id=identity.id,
            event_id=event.id,
            ticket_id=ticket_id,
            dedupe_key=EventRegistration.build_dedupe_key(identity.id, event.id, ticket_id),
            qr_token=values.pop("qr_token", f"token{counter['n']:04d}"),
            form_data=values.pop("form_data", {}),
            **values,
        )
        db.add(registration)
        db.commit()
        db.refresh(registration)
        return registration

    return _make_registration


@pytest.fixture
def credential_for():
    def _credential_for(registration):
        return credential_codec.issue(registration.qr_token, registration.event_id)

    return _credential_for
