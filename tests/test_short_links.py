from datetime import timedelta

import pytest

from app.core.encryption import credential_codec
from app.core.errors import AllocationError, NotFound, ValidationError
from app.models.base import utcnow
from app.models.short_link import ShortLink
from app.services import short_link_service as service_module
from app.services.short_link_service import short_link_service


def test_device_link_is_minted_once_per_event_and_device(db, make_tenant, make_event, make_device):
    tenant = make_tenant()
    event = make_event(tenant=tenant)
    make_device(tenant, device_type="entry", device_key="gate-7")

    link, created = short_link_service.mint_device_link(db, event_id=event.id, device_type="entry")
    again, created_again = short_link_service.mint_device_link(db, event_id=event.id, device_type="entry")

    assert created is True and created_again is False
    assert again.short_id == link.short_id
    assert db.query(ShortLink).count() == 1
    assert len(link.short_id) == 8
    assert link.event_slug == event.slug
    assert credential_codec.resolve(link.device_key) == ("gate-7", "entry")
    assert timedelta(days=29) < link.expires_at - utcnow() <= timedelta(days=30)


def test_device_link_needs_an_active_device_of_that_type(db, make_tenant, make_event, make_device):
    tenant = make_tenant()
    event = make_event(tenant=tenant)
    make_device(tenant, device_type="exit", device_key="old", expires_at=utcnow() - timedelta(days=1))

    with pytest.raises(NotFound):
        short_link_service.mint_device_link(db, event_id=event.id, device_type="exit")
    with pytest.raises(NotFound):
        short_link_service.mint_device_link(db, event_id=event.id, device_type="entry")


def test_device_link_for_other_tenant_device_is_not_found(db, make_tenant, make_event, make_device):
    event = make_event(tenant=make_tenant("acme"))
    make_device(make_tenant("globex"), device_type="entry")
    with pytest.raises(NotFound):
        short_link_service.mint_device_link(db, event_id=event.id, device_type="entry")


def test_device_link_needs_event_tenant(db, make_event):
    event = make_event()
    with pytest.raises(ValidationError):
        short_link_service.mint_device_link(db, event_id=event.id, device_type="entry")
    with pytest.raises(NotFound):
        short_link_service.mint_device_link(db, event_id=999, device_type="entry")


def test_form_link_is_idempotent_per_form(db, make_event):
    event = make_event()

    link, created = short_link_service.mint_form_link(db, event_id=event.id, form_id="form-1")
    again, created_again = short_link_service.mint_form_link(db, event_id=event.id, form_id="form-1")
    other, _ = short_link_service.mint_form_link(db, event_id=event.id, form_id="form-2")

    assert created and not created_again
    assert again.id == link.id
    assert other.short_id != link.short_id
    assert credential_codec.resolve(link.encrypted_event_data).event_ref == event.slug


def test_form_link_requires_form_id(db, make_event):
    with pytest.raises(ValidationError):
        short_link_service.mint_form_link(db, event_id=make_event().id, form_id="  ")


def test_resolve_known_unknown_and_expired(db, make_event):
    event = make_event()
    link, _ = short_link_service.mint_form_link(db, event_id=event.id, form_id="form-1")

    assert short_link_service.resolve(db, short_id=link.short_id).id == link.id
    with pytest.raises(NotFound):
        short_link_service.resolve(db, short_id="deadbeef")

    link.expires_at = utcnow() - timedelta(seconds=1)
    db.commit()
    with pytest.raises(NotFound):
        short_link_service.resolve(db, short_id=link.short_id)


def test_expired_mapping_is_replaced_by_a_new_one(db, make_event):
    event = make_event()
    link, _ = short_link_service.mint_form_link(db, event_id=event.id, form_id="form-1")
    link.expires_at = utcnow() - timedelta(seconds=1)
    db.commit()

    fresh, created = short_link_service.mint_form_link(db, event_id=event.id, form_id="form-1")
    assert created
    assert fresh.short_id != link.short_id


def test_short_id_collisions_are_retried(db, make_event, monkeypatch):
    event = make_event()
    first, _ = short_link_service.mint_form_link(db, event_id=event.id, form_id="form-1")

    ids = iter([first.short_id, first.short_id, "c0ffee00"])
    monkeypatch.setattr(service_module, "generate_short_id", lambda: next(ids))
    second, _ = short_link_service.mint_form_link(db, event_id=event.id, form_id="form-2")
    assert second.short_id == "c0ffee00"


def test_short_id_space_exhaustion_is_an_allocation_error(db, make_event, monkeypatch):
    event = make_event()
    first, _ = short_link_service.mint_form_link(db, event_id=event.id, form_id="form-1")
    monkeypatch.setattr(service_module, "generate_short_id", lambda: first.short_id)
    with pytest.raises(AllocationError):
        short_link_service.mint_form_link(db, event_id=event.id, form_id="form-2")
