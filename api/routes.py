"""Pipeline HTTP routes.

Thin handlers: parse the body, call the service, commit, serialize. Domain
errors are mapped to status codes by the handlers registered in api.app.
"""
import logging
from typing import AsyncIterator, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

import db.repositories.events as event_repo
import db.repositories.pipeline as pipeline_repo
from db.connection import get_db
from schemas.pipeline import (
    AttendeeOut,
    FormSubmissionRequest,
    MoveStageRequest,
    PipelineListResponse,
    PipelineRecordOut,
    PipelineUpdateRequest,
    PipelineUpdateResponse,
    PushAllRequest,
    PushByTagRequest,
    PushReport,
    PushRequest,
)
from services import bulk_push, graduation, intake, transitions
from services.ids import as_uuid, require_id
from services.transitions import TransitionResult

logger = logging.getLogger(__name__)

router = APIRouter(tags=["pipeline"])


async def get_session() -> AsyncIterator[AsyncSession]:
    async with get_db() as session:
        yield session


def _update_response(result: TransitionResult) -> PipelineUpdateResponse:
    return PipelineUpdateResponse(
        pipeline_record=PipelineRecordOut.model_validate(result.record),
        attendee=AttendeeOut.model_validate(result.attendee) if result.attendee else None,
        graduated=result.graduated,
    )


@router.get("/health")
async def health():
    return {"ok": True, "service": "event-pipeline"}


@router.post("/events/{event_id}/pipeline/push", response_model=PushReport)
async def push_contacts(
    event_id: str, body: PushRequest, session: AsyncSession = Depends(get_session)
):
    report = await bulk_push.push_contacts(
        session,
        body.org_id,
        event_id,
        body.supporter_ids,
        audience_type=body.audience_type,
        stage=body.stage,
        source=body.source,
    )
    await session.commit()
    return report


@router.post("/events/{event_id}/pipeline/push-all", response_model=PushReport)
async def push_all(
    event_id: str, body: PushAllRequest, session: AsyncSession = Depends(get_session)
):
    report = await bulk_push.push_all(
        session, body.org_id, event_id, audience_type=body.audience_type, stage=body.stage
    )
    await session.commit()
    return report


@router.post("/events/{event_id}/pipeline/push-by-tag", response_model=PushReport)
async def push_by_tag(
    event_id: str, body: PushByTagRequest, session: AsyncSession = Depends(get_session)
):
    report = await bulk_push.push_by_tag(
        session,
        body.org_id,
        event_id,
        body.tags,
        audience_type=body.audience_type,
        stage=body.stage,
    )
    await session.commit()
    return report


@router.post("/events/{event_id}/pipeline/move", response_model=PushReport)
async def move_stage(
    event_id: str, body: MoveStageRequest, session: AsyncSession = Depends(get_session)
):
    report = await transitions.move_stage(
        session,
        body.org_id,
        event_id,
        body.from_stage,
        body.to_stage,
        audience_type=body.audience_type,
    )
    await session.commit()
    return report


@router.get("/events/{event_id}/pipeline", response_model=PipelineListResponse)
async def list_pipeline(
    event_id: str,
    audience_type: Optional[str] = Query(None, alias="audienceType"),
    stage: Optional[str] = Query(None),
    session: AsyncSession = Depends(get_session),
):
    event_uuid = require_id(event_id, "eventId", "Event")
    stages = await event_repo.get_stages_for_event(session, event_uuid)
    records = await pipeline_repo.list_by_event_and_stage(
        session, event_uuid, audience_type=audience_type, stage=stage
    )
    counts = await pipeline_repo.stage_counts(session, event_uuid, audience_type=audience_type)
    return PipelineListResponse(
        event_id=event_uuid,
        stages=stages,
        counts=counts,
        records=[PipelineRecordOut.model_validate(r) for r in records],
    )


@router.patch("/pipeline/{pipeline_id}", response_model=PipelineUpdateResponse)
async def update_pipeline_record(
    pipeline_id: str, body: PipelineUpdateRequest, session: AsyncSession = Depends(get_session)
):
    result = await transitions.update_record(
        session,
        pipeline_id,
        stage=body.stage,
        rsvp=body.rsvp,
        tags=body.tags,
        amount=body.amount,
        payment_method=body.payment_method,
        notes=body.notes,
    )
    await session.commit()
    return _update_response(result)


@router.post("/pipeline/{pipeline_id}/graduate", response_model=PipelineUpdateResponse)
async def graduate_pipeline_record(
    pipeline_id: str, session: AsyncSession = Depends(get_session)
):
    attendee = await graduation.graduate(session, pipeline_id)
    await session.commit()
    record = await pipeline_repo.get_by_id(session, as_uuid(pipeline_id))
    return _update_response(TransitionResult(record=record, attendee=attendee))


@router.post("/events/{event_id}/pipeline/form", response_model=PipelineUpdateResponse)
async def submit_form(
    event_id: str, body: FormSubmissionRequest, session: AsyncSession = Depends(get_session)
):
    result = await intake.submit_form(
        session,
        body.org_id,
        event_id,
        email=body.email,
        first_name=body.first_name,
        last_name=body.last_name,
        phone=body.phone,
        stage=body.stage,
        audience_type=body.audience_type,
        answers=body.answers,
    )
    await session.commit()
    return _update_response(result)
