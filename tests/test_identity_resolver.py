import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app import crud
from app.core.errors import ValidationError
from app.db.database import Base
from app.models.participant_identity import ParticipantIdentity
from app.services.identity_resolver import collect_form_fields, identity_resolver


def test_merge_keeps_existing_fields(db):
    identity_resolver.resolve_or_create(db, fields={"email": "a@x.com", "phone": "111"})
    identity = identity_resolver.resolve_or_create(db, fields={"email": "a@x.com", "name": "Sam"})

    assert db.query(ParticipantIdentity).count() == 1
    assert identity.dynamic_fields == {"email": "a@x.com", "phone": "111", "name": "Sam"}


def test_incoming_fields_overwrite(db):
    identity_resolver.resolve_or_create(db, fields={"email": "a@x.com", "phone": "111"})
    identity = identity_resolver.resolve_or_create(db, fields={"email": "a@x.com", "phone": "222"})
    assert identity.dynamic_fields["phone"] == "222"


def test_email_is_normalized(db):
    first = identity_resolver.resolve_or_create(db, fields={"email": "  Sam@Example.COM "})
    second = identity_resolver.resolve_or_create(db, fields={"email": "sam@example.com"})
    assert first.id == second.id
    assert first.email == "sam@example.com"


def test_alias_only_submission_populates_canonical_email(db):
    identity = identity_resolver.resolve_or_create(db, fields={"email_address": "b@x.com", "name": "Bo"})
    assert identity.email == "b@x.com"
    assert identity.dynamic_fields["email"] == "b@x.com"
    assert identity.dynamic_fields["email_address"] == "b@x.com"


def test_lookup_matches_alias_stored_in_dynamic_fields(db):
    legacy = ParticipantIdentity(
        email="primary@x.com",
        dynamic_fields={"personal_email": "home@x.com", "city": "Nairobi"},
    )
    db.add(legacy)
    db.commit()

    identity = identity_resolver.resolve_or_create(db, fields={"email": "home@x.com", "phone": "5"})
    assert identity.id == legacy.id
    assert identity.dynamic_fields["city"] == "Nairobi"
    assert identity.dynamic_fields["phone"] == "5"
    assert db.query(ParticipantIdentity).count() == 1


def test_missing_email_is_a_validation_error(db):
    with pytest.raises(ValidationError):
        identity_resolver.resolve_or_create(db, fields={"name": "Nobody"})
    with pytest.raises(ValidationError):
        identity_resolver.resolve_or_create(db, fields={"email": "   "})


def test_lost_creation_race_is_retried_as_merge(db, monkeypatch):
    existing = identity_resolver.resolve_or_create(db, fields={"email": "race@x.com", "phone": "1"})

    real_lookup = crud.participant_identity.get_by_email
    calls = {"n": 0}

    def stale_first_lookup(db, *, email):
        calls["n"] += 1
        if calls["n"] == 1:
            return None  # the concurrent insert is not visible yet
        return real_lookup(db, email=email)

    monkeypatch.setattr(crud.participant_identity, "get_by_email", stale_first_lookup)
    identity = identity_resolver.resolve_or_create(db, fields={"email": "race@x.com", "name": "Late"})

    assert calls["n"] == 2
    assert identity.id == existing.id
    assert identity.dynamic_fields == {"email": "race@x.com", "phone": "1", "name": "Late"}


def test_concurrent_merges_keep_both_sides(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'identity.db'}", connect_args={"check_same_thread": False, "timeout": 30}
    )
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    with Session() as setup:
        identity_resolver.resolve_or_create(setup, fields={"email": "a@x.com"})

    first, second = Session(), Session()
    try:
        seen_by_first = crud.participant_identity.get_by_email(first, email="a@x.com")
        seen_by_second = crud.participant_identity.get_by_email(second, email="a@x.com")

        crud.participant_identity.merge_fields(first, identity=seen_by_first, fields={"phone": "111"})
        merged = crud.participant_identity.merge_fields(second, identity=seen_by_second, fields={"name": "Sam"})

        assert merged.dynamic_fields == {"email": "a@x.com", "phone": "111", "name": "Sam"}
        assert merged.version == 2
    finally:
        first.close()
        second.close()
        engine.dispose()


def test_collect_form_fields_drops_system_keys():
    fields = collect_form_fields({
        "event_id": 1,
        "ticket_id": 2,
        "email": "a@x.com",
        "first_name": "Ada",
        "face_image_base64": "abc",
        "nickname": None,
    })
    assert fields == {"email": "a@x.com", "first_name": "Ada"}


def test_collect_form_fields_prefers_dynamic_form_data():
    fields = collect_form_fields({
        "event_id": 1,
        "email": "a@x.com",
        "first_name": "ignored",
        "dynamic_form_data": '{"f_1": "Ada", "event_id": 9}',
    })
    assert fields == {"f_1": "Ada", "email": "a@x.com"}


def test_collect_form_fields_rejects_broken_json():
    with pytest.raises(ValidationError):
        collect_form_fields({"dynamic_form_data": "{not json"})
    with pytest.raises(ValidationError):
        collect_form_fields({"dynamic_form_data": "[1, 2]"})
