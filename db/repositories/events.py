"""Event repository: lookup and per-event stage configuration."""
import logging
from datetime import date
from typing import Iterable, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import Event
from services.errors import NotFoundError
from services.stages import normalize_stages, resolve_stages

logger = logging.getLogger(__name__)


async def get_by_id(session: AsyncSession, event_id: UUID) -> Optional[Event]:
    """Return the Event with this id, or None."""
    return await session.get(Event, event_id)


async def get_for_org(session: AsyncSession, org_id: UUID, event_id: UUID) -> Event:
    """Return the event if it belongs to org_id; raise NotFoundError otherwise."""
    event = await get_by_id(session, event_id)
    if event is None or event.org_id != org_id:
        raise NotFoundError("Event", event_id)
    return event


async def create(
    session: AsyncSession,
    org_id: UUID,
    name: str,
    stages: Optional[Iterable[str]] = None,
    event_date: Optional[date] = None,
) -> Event:
    """Create an event. stages=None leaves it on the default stage list."""
    event = Event(
        org_id=org_id,
        name=name,
        event_date=event_date,
        stages=normalize_stages(stages) if stages else None,
    )
    session.add(event)
    await session.flush()
    return event


def stages_for(event: Event) -> list[str]:
    """Effective, canonical stage list of an already-loaded event."""
    return resolve_stages(event.stages)


async def get_stages_for_event(session: AsyncSession, event_id: UUID) -> list[str]:
    """Return the event's configured stages, falling back to the defaults."""
    event = await get_by_id(session, event_id)
    if event is None:
        raise NotFoundError("Event", event_id)
    return stages_for(event)
