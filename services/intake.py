"""Landing-form intake: a public form submission enters the pipeline.

The contact is found or created by email, the pipeline record is found or
created for the submitted audience, and an existing record only ever moves
forward in the event's stage order (a repeat RSVP never pulls a paid
record back).
"""
import logging
from typing import Any, Mapping, Optional

from sqlalchemy.ext.asyncio import AsyncSession

import db.repositories.contacts as contact_repo
import db.repositories.events as event_repo
import db.repositories.pipeline as pipeline_repo
from services import graduation
from services.bulk_push import pipeline_tags
from services.errors import InvalidAudienceError, MissingParameterError
from services.ids import require_id
from services.notes import PipelineNotes
from services.stages import (
    AUDIENCE_TYPES,
    DEFAULT_AUDIENCE_TYPE,
    PAID,
    RSVPED,
    is_valid_audience,
    stage_rank,
)
from services.transitions import TransitionResult, derived_fields, transition, validate_stage

logger = logging.getLogger(__name__)

FORM_SOURCE = "landing_form"


async def submit_form(
    session: AsyncSession,
    org_id,
    event_id,
    *,
    email: str,
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
    phone: Optional[str] = None,
    stage: Optional[str] = None,
    audience_type: str = DEFAULT_AUDIENCE_TYPE,
    answers: Optional[Mapping[str, Any]] = None,
) -> TransitionResult:
    """Record a form submission against an event pipeline.

    Without an explicit stage a submission counts as an RSVP, or lands at
    the event's first stage when the event does not use rsvped.
    """
    org_uuid = require_id(org_id, "orgId", "Organization")
    event_uuid = require_id(event_id, "eventId", "Event")
    if not email or not email.strip():
        raise MissingParameterError("email")
    if not is_valid_audience(audience_type):
        raise InvalidAudienceError(audience_type, AUDIENCE_TYPES)

    event = await event_repo.get_for_org(session, org_uuid, event_uuid)
    stages = event_repo.stages_for(event)
    if stage:
        target = validate_stage(stage, stages)
    else:
        target = RSVPED if RSVPED in stages else stages[0]

    contact = await contact_repo.upsert(
        session,
        org_uuid,
        {"email": email, "first_name": first_name, "last_name": last_name, "phone": phone},
    )
    notes = PipelineNotes.from_answers(answers)

    record, created = await pipeline_repo.find_or_create(
        session,
        org_uuid,
        event_uuid,
        contact.id,
        audience_type,
        target,
        source=FORM_SOURCE,
        tags=pipeline_tags(FORM_SOURCE, audience_type),
        form_notes=None if notes.is_empty() else notes.model_dump(exclude_none=True),
        **derived_fields(None, target),
    )

    if created:
        logger.info("Form created pipeline record %s at %s for %s", record.id, target, contact.email)
        attendee = None
        if target == PAID:
            attendee = await graduation.graduate_record(session, record)
        return TransitionResult(record=record, attendee=attendee)

    if not notes.is_empty():
        await pipeline_repo.update(session, record, form_notes=notes.merged_over(record.form_notes))

    if stage_rank(target, stages) > stage_rank(record.stage, stages):
        return await transition(session, record, target)

    logger.info(
        "Pipeline record %s already at %s; not moving back to %s", record.id, record.stage, target
    )
    attendee = None
    if graduation.is_graduation_ready(record):
        attendee = await graduation.graduate_record(session, record)
    return TransitionResult(record=record, attendee=attendee)
