"""Integration tests for core repository methods."""
import uuid
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import Text, literal, select, update
from sqlalchemy.dialects import postgresql

from db import get_db
from db.models import Contact, PipelineRecord
from db.repositories import attendees as attendees_repo
from db.repositories import contacts as contacts_repo
from db.repositories import events as events_repo
from db.repositories import pipeline as pipeline_repo
from services.errors import NotFoundError


# ---------------------------------------------------------------------------
# Contacts
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_contact_upsert_and_dedup(org):
    """Upserting the same email twice returns the existing contact, not a new one."""
    email = f"Jo-{uuid.uuid4().hex[:8]}@Example.org"
    async with get_db() as session:
        c1 = await contacts_repo.upsert(session, org.id, {"email": email, "first_name": "Jo"})
        c2 = await contacts_repo.upsert(
            session, org.id, {"email": email.lower(), "first_name": "", "last_name": "Smith"}
        )
    assert c1.id == c2.id, "Upsert on same email must return same contact"
    assert c2.first_name == "Jo", "Empty values must not overwrite stored ones"
    assert c2.last_name == "Smith"
    assert c2.email == email.lower()


@pytest.mark.asyncio
async def test_contact_lookup_is_org_scoped(org, other_org, make_contacts):
    """find_by_id never returns another organization's contact."""
    (contact_id,) = await make_contacts(org.id, 1)
    async with get_db() as session:
        assert await contacts_repo.find_by_id(session, org.id, contact_id) is not None
        assert await contacts_repo.find_by_id(session, other_org.id, contact_id) is None


@pytest.mark.asyncio
async def test_find_by_tags_matches_any(org, make_contacts):
    """Contacts carrying any requested tag are returned."""
    volunteers = await make_contacts(org.id, 2, tags=["volunteer"])
    board = await make_contacts(org.id, 1, tags=["board", "donor"])
    await make_contacts(org.id, 1, tags=["alumni"])
    async with get_db() as session:
        found = await contacts_repo.find_by_tags(session, org.id, ["volunteer", "donor"])
    assert {c.id for c in found} == set(volunteers + board)


def test_tag_match_uses_jsonb_any_operator_on_postgres():
    stmt = select(Contact.id).where(contacts_repo.has_any_tag(["volunteer", "donor"]))
    sql = str(stmt.compile(dialect=postgresql.dialect()))
    assert "?|" in sql
    assert "ARRAY[" in sql


@pytest.mark.asyncio
async def test_add_tags_only_adds_missing(org, make_contacts):
    (contact_id,) = await make_contacts(org.id, 1, tags=["donor"])
    async with get_db() as session:
        contact = await contacts_repo.find_by_id(session, org.id, contact_id)
        added = await contacts_repo.add_tags(session, contact, ["donor", "event:x"])
    assert added == ["event:x"]
    async with get_db() as session:
        contact = await contacts_repo.find_by_id(session, org.id, contact_id)
    assert contact.tags == ["donor", "event:x"]


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_event_stage_configuration(org):
    """Configured stages are normalized; unconfigured events use the defaults."""
    async with get_db() as session:
        custom = await events_repo.create(
            session, org.id, "Golf Outing", stages=["in_funnel", "soft_commit", "paid", "attended"]
        )
        plain = await events_repo.create(session, org.id, "Pancake Breakfast")
    async with get_db() as session:
        assert await events_repo.get_stages_for_event(session, custom.id) == [
            "in_funnel", "rsvped", "paid", "attended",
        ]
        assert await events_repo.get_stages_for_event(session, plain.id) == ["member", "rsvped", "paid"]


@pytest.mark.asyncio
async def test_event_for_other_org_not_found(event, other_org):
    async with get_db() as session:
        with pytest.raises(NotFoundError):
            await events_repo.get_for_org(session, other_org.id, event.id)
        with pytest.raises(NotFoundError):
            await events_repo.get_stages_for_event(session, uuid.uuid4())


# ---------------------------------------------------------------------------
# Pipeline records
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_pipeline_create_duplicate_returns_none(org, event, make_contacts):
    """A second create for the same four-tuple is reported as None, not raised."""
    (contact_id,) = await make_contacts(org.id, 1)
    async with get_db() as session:
        first = await pipeline_repo.create(session, org.id, event.id, contact_id, "org_member", "member")
        second = await pipeline_repo.create(session, org.id, event.id, contact_id, "org_member", "member")
        other_segment = await pipeline_repo.create(
            session, org.id, event.id, contact_id, "friend_spouse", "member"
        )
    assert first is not None
    assert second is None
    assert other_segment is not None
    async with get_db() as session:
        records = await pipeline_repo.find(session, event_id=event.id, contact_id=contact_id)
    assert len(records) == 2


@pytest.mark.asyncio
async def test_find_or_create(org, event, make_contacts):
    (contact_id,) = await make_contacts(org.id, 1)
    async with get_db() as session:
        record, created = await pipeline_repo.find_or_create(
            session, org.id, event.id, contact_id, "org_member", "member", source="admin_add"
        )
        again, created_again = await pipeline_repo.find_or_create(
            session, org.id, event.id, contact_id, "org_member", "rsvped"
        )
    assert created is True
    assert created_again is False
    assert again.id == record.id
    assert again.stage == "member"


@pytest.mark.asyncio
async def test_legacy_stage_rows_match_canonical_filter(org, event, make_contacts):
    """Rows stored under a legacy alias load, filter and count as the canonical stage."""
    contact_ids = await make_contacts(org.id, 2)
    async with get_db() as session:
        legacy = await pipeline_repo.create(session, org.id, event.id, contact_ids[0], "org_member", "member")
        await pipeline_repo.create(session, org.id, event.id, contact_ids[1], "org_member", "rsvped")
    async with get_db() as session:
        # Bypass the column type to write the raw legacy value
        await session.execute(
            update(PipelineRecord.__table__)
            .where(PipelineRecord.__table__.c.id == legacy.id)
            .values(stage=literal("soft_commit", Text))
        )

    async with get_db() as session:
        rsvped = await pipeline_repo.list_by_event_and_stage(session, event.id, stage="rsvped")
        counts = await pipeline_repo.stage_counts(session, event.id)
    assert {r.contact_id for r in rsvped} == set(contact_ids)
    assert all(r.stage == "rsvped" for r in rsvped)
    assert counts == {"rsvped": 2}


@pytest.mark.asyncio
async def test_list_filters_by_audience(org, event, make_contacts):
    contact_ids = await make_contacts(org.id, 2)
    async with get_db() as session:
        await pipeline_repo.create(session, org.id, event.id, contact_ids[0], "org_member", "member")
        await pipeline_repo.create(session, org.id, event.id, contact_ids[1], "champion", "member")
    async with get_db() as session:
        champions = await pipeline_repo.list_by_event_and_stage(session, event.id, audience_type="champion")
        counts = await pipeline_repo.stage_counts(session, event.id, audience_type="org_member")
    assert [r.contact_id for r in champions] == [contact_ids[1]]
    assert counts == {"member": 1}


# ---------------------------------------------------------------------------
# Attendee records
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_attendee_upsert_updates_existing(org, event, make_contacts):
    (contact_id,) = await make_contacts(org.id, 1)
    async with get_db() as session:
        attendee, created = await attendees_repo.upsert(
            session, org.id, event.id, contact_id,
            create_fields={"audience_type": "org_member", "paid": True},
            update_fields={"paid": True},
        )
        again, created_again = await attendees_repo.upsert(
            session, org.id, event.id, contact_id,
            create_fields={"audience_type": "champion"},
            update_fields={"payment_method": "check"},
        )
    assert created is True
    assert created_again is False
    assert again.id == attendee.id
    assert again.audience_type == "org_member"
    assert again.payment_method == "check"
    async with get_db() as session:
        assert len(await attendees_repo.list_by_event(session, event.id)) == 1


@pytest.mark.asyncio
async def test_attendee_insert_race_falls_back_to_update(org, event, make_contacts):
    """An attendee inserted by a concurrent graduation is updated, not duplicated."""
    (contact_id,) = await make_contacts(org.id, 1)
    async with get_db() as session:
        existing, _ = await attendees_repo.upsert(
            session, org.id, event.id, contact_id,
            create_fields={"audience_type": "org_member", "paid": True},
            update_fields={"paid": True},
        )

    real_find_one = attendees_repo.find_one
    calls = {"n": 0}

    async def stale_find_one(*args, **kwargs):
        # The first lookup misses, as if the other writer had not committed yet
        calls["n"] += 1
        if calls["n"] == 1:
            return None
        return await real_find_one(*args, **kwargs)

    with patch("db.repositories.attendees.find_one", new=AsyncMock(side_effect=stale_find_one)):
        async with get_db() as session:
            attendee, created = await attendees_repo.upsert(
                session, org.id, event.id, contact_id,
                create_fields={"audience_type": "champion", "paid": True},
                update_fields={"payment_method": "check"},
            )
    assert calls["n"] == 2
    assert created is False
    assert attendee.id == existing.id
    assert attendee.audience_type == "org_member"
    assert attendee.payment_method == "check"

    async with get_db() as session:
        (stored,) = await attendees_repo.list_by_event(session, event.id)
    assert stored.payment_method == "check"
