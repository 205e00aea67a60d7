"""Bulk push: add a batch of contacts to an event pipeline.

Whole-operation preconditions (org, event, stage, audience, source) are
checked up front and raise. After that every contact id is handled on its
own: not-found ids become error entries, contacts already in the pipeline
become skipped entries, and each created record is committed before moving
on, so a later failure never undoes an earlier success.
"""
import logging
from typing import Iterable, Optional, Sequence
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

import db.repositories.contacts as contact_repo
import db.repositories.events as event_repo
import db.repositories.pipeline as pipeline_repo
from schemas.pipeline import PushError, PushReport, PushSkip, PushSuccess
from services import graduation
from services.errors import (
    InvalidAudienceError,
    InvalidSourceError,
    MissingParameterError,
    PipelineError,
)
from services.ids import as_uuid, require_id
from services.stages import (
    AUDIENCE_TYPES,
    DEFAULT_AUDIENCE_TYPE,
    PAID,
    SOURCES,
    is_valid_audience,
)
from services.transitions import derived_fields, validate_stage

logger = logging.getLogger(__name__)

NOT_FOUND = "not found"
ALREADY_IN_PIPELINE = "already in pipeline"


def pipeline_tags(source: str, audience_type: str) -> list[str]:
    return [f"source:{source}", f"audience:{audience_type}"]


async def _prepare(
    session: AsyncSession,
    org_id,
    event_id,
    audience_type: Optional[str],
    stage: Optional[str],
    source: str,
) -> tuple[UUID, UUID, str, str]:
    """Validate whole-batch preconditions. Returns (org, event, audience, stage)."""
    org_uuid = require_id(org_id, "orgId", "Organization")
    event_uuid = require_id(event_id, "eventId", "Event")

    audience_type = audience_type or DEFAULT_AUDIENCE_TYPE
    if not is_valid_audience(audience_type):
        raise InvalidAudienceError(audience_type, AUDIENCE_TYPES)
    if source not in SOURCES:
        raise InvalidSourceError(source, SOURCES)

    event = await event_repo.get_for_org(session, org_uuid, event_uuid)
    stages = event_repo.stages_for(event)
    # An omitted stage means the entry stage of this event's configuration
    canonical = validate_stage(stage, stages) if stage else stages[0]
    return org_uuid, event_uuid, audience_type, canonical


async def _push(
    session: AsyncSession,
    org_id: UUID,
    event_id: UUID,
    contact_ids: Sequence,
    audience_type: str,
    stage: str,
    source: str,
) -> PushReport:
    logger.info(
        "Pushing %d contacts to event %s (audience=%s stage=%s source=%s)",
        len(contact_ids), event_id, audience_type, stage, source,
    )
    report = PushReport()

    for raw_id in contact_ids:
        key = str(raw_id)
        contact_id = as_uuid(raw_id)
        try:
            contact = (
                await contact_repo.find_by_id(session, org_id, contact_id)
                if contact_id is not None
                else None
            )
            if contact is None:
                logger.warning("Contact %s not found in org %s", key, org_id)
                report.errors.append(PushError(contact_id=key, error=NOT_FOUND))
                continue
            email, name = contact.email, contact.full_name

            record, created = await pipeline_repo.find_or_create(
                session,
                org_id,
                event_id,
                contact.id,
                audience_type,
                stage,
                source=source,
                tags=pipeline_tags(source, audience_type),
                **derived_fields(None, stage),
            )
            if not created:
                report.skipped.append(
                    PushSkip(
                        contact_id=key,
                        reason=ALREADY_IN_PIPELINE,
                        pipeline_id=str(record.id) if record is not None else None,
                        email=email,
                    )
                )
                continue

            if stage == PAID:
                await graduation.graduate_record(session, record)
            pipeline_id = str(record.id)
            await session.commit()
        except (PipelineError, SQLAlchemyError) as exc:
            await session.rollback()
            logger.warning("Push failed for contact %s: %s", key, exc)
            report.errors.append(PushError(contact_id=key, error=str(exc)))
            continue

        report.success.append(
            PushSuccess(contact_id=key, pipeline_id=pipeline_id, email=email, name=name)
        )

    logger.info(
        "Push to event %s done: success=%d errors=%d skipped=%d",
        event_id, len(report.success), len(report.errors), len(report.skipped),
    )
    return report


async def push_contacts(
    session: AsyncSession,
    org_id,
    event_id,
    contact_ids: Optional[Iterable],
    audience_type: Optional[str] = DEFAULT_AUDIENCE_TYPE,
    stage: Optional[str] = None,
    source: str = "admin_add",
) -> PushReport:
    """Push specific contacts into an event pipeline.

    Never raises for a single contact's problem; those are reported in the
    returned PushReport.
    """
    ids = list(contact_ids or [])
    org_uuid, event_uuid, audience_type, stage = await _prepare(
        session, org_id, event_id, audience_type, stage, source
    )
    if not ids:
        raise MissingParameterError("supporterIds")
    return await _push(session, org_uuid, event_uuid, ids, audience_type, stage, source)


async def push_all(
    session: AsyncSession,
    org_id,
    event_id,
    audience_type: Optional[str] = DEFAULT_AUDIENCE_TYPE,
    stage: Optional[str] = None,
    source: str = "bulk_import",
) -> PushReport:
    """Push every contact of the organization into the event pipeline."""
    org_uuid, event_uuid, audience_type, stage = await _prepare(
        session, org_id, event_id, audience_type, stage, source
    )
    contacts = await contact_repo.find_all_by_org(session, org_uuid)
    ids = [c.id for c in contacts]
    return await _push(session, org_uuid, event_uuid, ids, audience_type, stage, source)


async def push_by_tag(
    session: AsyncSession,
    org_id,
    event_id,
    tags: Optional[Iterable[str]],
    audience_type: Optional[str] = DEFAULT_AUDIENCE_TYPE,
    stage: Optional[str] = None,
    source: str = "tag_filter",
) -> PushReport:
    """Push contacts carrying any of tags into the event pipeline."""
    tags = [t for t in (tags or []) if t]
    org_uuid, event_uuid, audience_type, stage = await _prepare(
        session, org_id, event_id, audience_type, stage, source
    )
    if not tags:
        raise MissingParameterError("tags")
    contacts = await contact_repo.find_by_tags(session, org_uuid, tags)
    ids = [c.id for c in contacts]
    return await _push(session, org_uuid, event_uuid, ids, audience_type, stage, source)
