"""Shared fixtures: a throwaway sqlite+aiosqlite database per test.

db.connection is bound to the test engine, so tests use get_db() exactly
like service code does.
"""
import uuid

import pytest
import pytest_asyncio

from db.connection import configure, create_sqlite_engine, dispose_engine, get_db
from db.models import Base, Contact, Organization
from db.repositories import events as events_repo


@pytest_asyncio.fixture
async def engine(tmp_path, monkeypatch):
    monkeypatch.delenv("PIPELINE_DEFAULT_STAGES", raising=False)
    engine = create_sqlite_engine(f"sqlite+aiosqlite:///{tmp_path / 'pipeline.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    configure(engine)
    yield engine
    await dispose_engine()


@pytest_asyncio.fixture
async def org(engine):
    async with get_db() as session:
        org = Organization(name="Riverside Rotary")
        session.add(org)
    return org


@pytest_asyncio.fixture
async def other_org(engine):
    async with get_db() as session:
        org = Organization(name="Hillside Lions")
        session.add(org)
    return org


@pytest_asyncio.fixture
async def event(org):
    async with get_db() as session:
        event = await events_repo.create(session, org.id, "Spring Gala")
    return event


async def add_contacts(org_id, count, tags=None) -> list[uuid.UUID]:
    """Insert count contacts into org_id and return their ids."""
    ids = []
    async with get_db() as session:
        for i in range(count):
            contact = Contact(
                org_id=org_id,
                first_name=f"Pat{i}",
                last_name="Member",
                email=f"pat{i}-{uuid.uuid4().hex[:6]}@example.org",
                tags=list(tags or []),
            )
            session.add(contact)
            await session.flush()
            ids.append(contact.id)
    return ids


@pytest.fixture
def make_contacts(engine):
    return add_contacts
