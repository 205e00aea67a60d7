"""Attendee record store: one permanent record per (org, event, contact)."""
import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import AttendeeRecord
from services.errors import PersistenceError

logger = logging.getLogger(__name__)


async def get_by_id(session: AsyncSession, attendee_id: UUID) -> Optional[AttendeeRecord]:
    return await session.get(AttendeeRecord, attendee_id)


async def find_one(
    session: AsyncSession, org_id: UUID, event_id: UUID, contact_id: UUID
) -> Optional[AttendeeRecord]:
    """Return the attendee for (org, event, contact), or None."""
    result = await session.execute(
        select(AttendeeRecord)
        .where(AttendeeRecord.org_id == org_id)
        .where(AttendeeRecord.event_id == event_id)
        .where(AttendeeRecord.contact_id == contact_id)
    )
    return result.scalar_one_or_none()


async def list_by_event(session: AsyncSession, event_id: UUID) -> list[AttendeeRecord]:
    result = await session.execute(
        select(AttendeeRecord)
        .where(AttendeeRecord.event_id == event_id)
        .order_by(AttendeeRecord.registered_date, AttendeeRecord.id)
    )
    return list(result.scalars().all())


async def upsert(
    session: AsyncSession,
    org_id: UUID,
    event_id: UUID,
    contact_id: UUID,
    create_fields: dict,
    update_fields: dict,
) -> tuple[AttendeeRecord, bool]:
    """Insert or update the attendee for (org, event, contact).

    create_fields are used for a brand new row; update_fields are applied
    to an existing one (including one inserted concurrently by another
    caller). Returns (attendee, created).
    """
    attendee = await find_one(session, org_id, event_id, contact_id)
    if attendee is None:
        attendee = AttendeeRecord(
            org_id=org_id, event_id=event_id, contact_id=contact_id, **create_fields
        )
        try:
            async with session.begin_nested():
                session.add(attendee)
            return attendee, True
        except IntegrityError as exc:
            attendee = await find_one(session, org_id, event_id, contact_id)
            if attendee is None:
                raise PersistenceError(f"Could not create attendee record: {exc.orig}") from exc
            logger.info(
                "Attendee for contact=%s event=%s created concurrently; updating instead",
                contact_id, event_id,
            )

    for key, value in update_fields.items():
        setattr(attendee, key, value)
    try:
        await session.flush()
    except SQLAlchemyError as exc:
        raise PersistenceError(f"Could not update attendee record {attendee.id}: {exc}") from exc
    return attendee, False
