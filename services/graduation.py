"""Graduation: turn a paid pipeline record into a permanent attendee record.

Safe to call speculatively after any transition: an unpaid record is a
no-op, and replaying on a paid one updates the existing attendee instead of
creating a second.
"""
import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

import db.repositories.attendees as attendee_repo
import db.repositories.contacts as contact_repo
import db.repositories.pipeline as pipeline_repo
from db.models import AttendeeRecord, Contact, PipelineRecord
from services.errors import NotFoundError
from services.ids import require_id
from services.stages import PAID

logger = logging.getLogger(__name__)


def is_graduation_ready(record: PipelineRecord) -> bool:
    return bool(record.paid) or record.stage == PAID


def participation_tags(attendee: AttendeeRecord) -> list[str]:
    """Tags recorded on the contact for taking part in an event."""
    base = f"event:{attendee.event_id}"
    tags = [base]
    if attendee.paid:
        tags.append(f"{base}:paid")
    if attendee.attended:
        tags.append(f"{base}:attended")
    return tags


async def graduate(
    session: AsyncSession,
    pipeline_id,
    *,
    payment_method: Optional[str] = None,
) -> Optional[AttendeeRecord]:
    """Graduate the pipeline record with this id.

    Raises MissingParameterError for an empty id and NotFoundError if the
    record does not exist (a malformed id included); returns None if it is
    not paid yet.
    """
    record_id = require_id(pipeline_id, "pipelineId", "PipelineRecord")
    record = await pipeline_repo.get_by_id(session, record_id)
    if record is None:
        raise NotFoundError("PipelineRecord", pipeline_id)
    return await graduate_record(session, record, payment_method=payment_method)


async def graduate_record(
    session: AsyncSession,
    record: PipelineRecord,
    *,
    payment_method: Optional[str] = None,
) -> Optional[AttendeeRecord]:
    """Upsert the attendee for an already-loaded pipeline record."""
    if not is_graduation_ready(record):
        logger.info("Pipeline record %s not paid; skipping graduation", record.id)
        return None

    create_fields = {
        "pipeline_record_id": record.id,
        "audience_type": record.audience_type,
        "paid": True,
        "amount": record.amount,
        "payment_date": record.payment_date,
        "payment_method": payment_method,
        "attended": False,
        "source": record.source,
        "engagement_score": record.engagement_score,
        "tags": list(record.tags or []),
        "notes": record.notes,
    }
    # attended/attendance_date belong to check-in and are never overwritten here
    update_fields = {"pipeline_record_id": record.id, "paid": True}
    if record.amount is not None:
        update_fields["amount"] = record.amount
    if record.payment_date is not None:
        update_fields["payment_date"] = record.payment_date
    if payment_method is not None:
        update_fields["payment_method"] = payment_method

    attendee, created = await attendee_repo.upsert(
        session,
        record.org_id,
        record.event_id,
        record.contact_id,
        create_fields=create_fields,
        update_fields=update_fields,
    )
    logger.info(
        "%s attendee %s from pipeline record %s (event=%s contact=%s)",
        "Created" if created else "Updated",
        attendee.id, record.id, record.event_id, record.contact_id,
    )

    await sync_attendee_to_contact(session, attendee)
    return attendee


async def sync_attendee_to_contact(session: AsyncSession, attendee: AttendeeRecord) -> list[str]:
    """Add event participation tags to the attendee's contact. Returns tags added."""
    contact = await session.get(Contact, attendee.contact_id)
    if contact is None:
        logger.warning(
            "Contact %s for attendee %s no longer exists; tags not synced",
            attendee.contact_id, attendee.id,
        )
        return []
    return await contact_repo.add_tags(session, contact, participation_tags(attendee))
