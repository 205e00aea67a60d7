"""Pipeline record store: one record per (org, event, contact, audience type).

The unique constraint on that four-tuple is the only backstop against
concurrent pushes, so inserts run inside a savepoint and a conflict is
reported back to the caller instead of poisoning the session.
"""
import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import Text, func, select, type_coerce
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import PipelineRecord
from services.errors import PersistenceError
from services.stages import stage_variants

logger = logging.getLogger(__name__)


def _stage_filter(stage: str):
    # Compare raw column text so rows still stored under a legacy alias match
    return type_coerce(PipelineRecord.stage, Text).in_(stage_variants(stage))


async def get_by_id(session: AsyncSession, pipeline_id: UUID) -> Optional[PipelineRecord]:
    """Return the PipelineRecord with this id, or None."""
    return await session.get(PipelineRecord, pipeline_id)


async def find(
    session: AsyncSession,
    *,
    org_id: Optional[UUID] = None,
    event_id: Optional[UUID] = None,
    contact_id: Optional[UUID] = None,
    audience_type: Optional[str] = None,
    stage: Optional[str] = None,
) -> list[PipelineRecord]:
    """Return records matching every filter given."""
    stmt = select(PipelineRecord)
    if org_id is not None:
        stmt = stmt.where(PipelineRecord.org_id == org_id)
    if event_id is not None:
        stmt = stmt.where(PipelineRecord.event_id == event_id)
    if contact_id is not None:
        stmt = stmt.where(PipelineRecord.contact_id == contact_id)
    if audience_type is not None:
        stmt = stmt.where(PipelineRecord.audience_type == audience_type)
    if stage is not None:
        stmt = stmt.where(_stage_filter(stage))
    result = await session.execute(stmt.order_by(PipelineRecord.created_at, PipelineRecord.id))
    return list(result.scalars().all())


async def find_one(
    session: AsyncSession,
    org_id: UUID,
    event_id: UUID,
    contact_id: UUID,
    audience_type: str,
) -> Optional[PipelineRecord]:
    """Return the record for the four-tuple dedup key, or None."""
    result = await session.execute(
        select(PipelineRecord)
        .where(PipelineRecord.org_id == org_id)
        .where(PipelineRecord.event_id == event_id)
        .where(PipelineRecord.contact_id == contact_id)
        .where(PipelineRecord.audience_type == audience_type)
    )
    return result.scalar_one_or_none()


async def create(
    session: AsyncSession,
    org_id: UUID,
    event_id: UUID,
    contact_id: UUID,
    audience_type: str,
    stage: str,
    **fields,
) -> Optional[PipelineRecord]:
    """Insert a new record inside a savepoint.

    Returns None when a record for the dedup key already exists (including
    one inserted concurrently). Any other failure raises PersistenceError.
    """
    record = PipelineRecord(
        org_id=org_id,
        event_id=event_id,
        contact_id=contact_id,
        audience_type=audience_type,
        stage=stage,
        **fields,
    )
    try:
        async with session.begin_nested():
            session.add(record)
    except IntegrityError as exc:
        existing = await find_one(session, org_id, event_id, contact_id, audience_type)
        if existing is not None:
            logger.info(
                "Pipeline record already exists for contact=%s event=%s audience=%s",
                contact_id, event_id, audience_type,
            )
            return None
        raise PersistenceError(f"Could not create pipeline record: {exc.orig}") from exc
    except SQLAlchemyError as exc:
        raise PersistenceError(f"Could not create pipeline record: {exc}") from exc
    return record


async def find_or_create(
    session: AsyncSession,
    org_id: UUID,
    event_id: UUID,
    contact_id: UUID,
    audience_type: str,
    stage: str,
    **fields,
) -> tuple[PipelineRecord, bool]:
    """Return (record, created). Handles the insert race by re-fetching."""
    existing = await find_one(session, org_id, event_id, contact_id, audience_type)
    if existing is not None:
        return existing, False
    record = await create(
        session, org_id, event_id, contact_id, audience_type, stage, **fields
    )
    if record is None:
        existing = await find_one(session, org_id, event_id, contact_id, audience_type)
        return existing, False
    return record, True


async def update(session: AsyncSession, record: PipelineRecord, **fields) -> PipelineRecord:
    """Apply field changes to a record and flush."""
    for key, value in fields.items():
        setattr(record, key, value)
    try:
        await session.flush()
    except SQLAlchemyError as exc:
        raise PersistenceError(f"Could not update pipeline record {record.id}: {exc}") from exc
    return record


async def list_by_event_and_stage(
    session: AsyncSession,
    event_id: UUID,
    audience_type: Optional[str] = None,
    stage: Optional[str] = None,
) -> list[PipelineRecord]:
    """Return an event's records, optionally narrowed to one segment and stage."""
    return await find(session, event_id=event_id, audience_type=audience_type, stage=stage)


async def stage_counts(
    session: AsyncSession, event_id: UUID, audience_type: Optional[str] = None
) -> dict[str, int]:
    """Return {canonical stage: record count} for an event."""
    stmt = (
        select(PipelineRecord.stage, func.count(PipelineRecord.id))
        .where(PipelineRecord.event_id == event_id)
        .group_by(PipelineRecord.stage)
    )
    if audience_type is not None:
        stmt = stmt.where(PipelineRecord.audience_type == audience_type)
    result = await session.execute(stmt)
    counts: dict[str, int] = {}
    # Legacy aliases load as their canonical name, so merge their counts
    for stage, count in result.all():
        counts[stage] = counts.get(stage, 0) + count
    return counts
