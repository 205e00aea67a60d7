"""Stage transition engine.

Any configured stage is reachable from any other; there is no enforced
order. Entering rsvped/paid/attended sets the matching flag and date, and
those flags are never cleared by a later transition. Clearing is only done
through clear_flags().
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Iterable, Optional, Union
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

import db.repositories.events as event_repo
import db.repositories.pipeline as pipeline_repo
from db.models import AttendeeRecord, PipelineRecord
from schemas.pipeline import PushError, PushReport, PushSkip, PushSuccess
from services import graduation
from services.errors import InvalidAmountError, InvalidStageError, NotFoundError, PipelineError
from services.ids import require_id
from services.stages import ATTENDED, PAID, RSVPED, normalize_stage

logger = logging.getLogger(__name__)

Amount = Union[Decimal, int, float, str]


@dataclass
class TransitionResult:
    record: PipelineRecord
    attendee: Optional[AttendeeRecord] = None

    @property
    def graduated(self) -> bool:
        return self.attendee is not None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_decimal(amount: Amount) -> Decimal:
    try:
        value = amount if isinstance(amount, Decimal) else Decimal(str(amount).strip())
    except InvalidOperation:
        raise InvalidAmountError(amount) from None
    if not value.is_finite() or value < 0:
        raise InvalidAmountError(amount)
    return value


def validate_stage(stage: Optional[str], stages: list[str]) -> str:
    """Return the canonical stage if it is configured, else raise InvalidStageError."""
    if not stage or not str(stage).strip():
        raise InvalidStageError(str(stage), stages)
    canonical = normalize_stage(stage)
    if canonical not in stages:
        raise InvalidStageError(stage, stages)
    return canonical


def derived_fields(
    record: Optional[PipelineRecord],
    stage: str,
    *,
    amount: Optional[Amount] = None,
    now: Optional[datetime] = None,
) -> dict:
    """Flag/date fields implied by entering stage.

    record=None means a brand new record. Dates already set are kept.
    """
    now = now or _utcnow()
    fields: dict = {}
    if stage == RSVPED:
        fields["rsvp"] = True
        if record is None or record.rsvp_date is None:
            fields["rsvp_date"] = now
    elif stage == PAID:
        fields["paid"] = True
        if record is None or record.payment_date is None:
            fields["payment_date"] = now
        if amount is not None:
            fields["amount"] = _to_decimal(amount)
    elif stage == ATTENDED:
        fields["attended"] = True
        if record is None or record.attendance_date is None:
            fields["attendance_date"] = now
    return fields


async def transition(
    session: AsyncSession,
    record: PipelineRecord,
    target_stage: str,
    *,
    amount: Optional[Amount] = None,
    payment_method: Optional[str] = None,
) -> TransitionResult:
    """Move record to target_stage and apply its side effects.

    Entering "paid" graduates the record. An invalid stage raises
    InvalidStageError before anything on the record changes.
    """
    stages = await event_repo.get_stages_for_event(session, record.event_id)
    stage = validate_stage(target_stage, stages)

    previous = record.stage
    changes = {"stage": stage, **derived_fields(record, stage, amount=amount)}
    await pipeline_repo.update(session, record, **changes)
    logger.info("Pipeline record %s moved %s -> %s", record.id, previous, stage)

    attendee = None
    if stage == PAID:
        attendee = await graduation.graduate_record(session, record, payment_method=payment_method)
    return TransitionResult(record=record, attendee=attendee)


async def _load(session: AsyncSession, pipeline_id) -> PipelineRecord:
    record_id = require_id(pipeline_id, "pipelineId", "PipelineRecord")
    record = await pipeline_repo.get_by_id(session, record_id)
    if record is None:
        raise NotFoundError("PipelineRecord", pipeline_id)
    return record


async def transition_by_id(
    session: AsyncSession,
    pipeline_id: Union[UUID, str],
    target_stage: str,
    *,
    amount: Optional[Amount] = None,
    payment_method: Optional[str] = None,
) -> TransitionResult:
    record = await _load(session, pipeline_id)
    return await transition(
        session, record, target_stage, amount=amount, payment_method=payment_method
    )


async def clear_flags(
    session: AsyncSession,
    pipeline_id: Union[UUID, str],
    *,
    rsvp: bool = False,
    paid: bool = False,
    attended: bool = False,
) -> PipelineRecord:
    """Explicitly clear forward-stage flags (and their dates) on a record.

    The stage itself and any graduated attendee record are left alone.
    """
    record = await _load(session, pipeline_id)
    changes: dict = {}
    if rsvp:
        changes.update(rsvp=False, rsvp_date=None)
    if paid:
        changes.update(paid=False, payment_date=None)
    if attended:
        changes.update(attended=False, attendance_date=None)
    if changes:
        await pipeline_repo.update(session, record, **changes)
        logger.info("Cleared flags %s on pipeline record %s", sorted(changes), record.id)
    return record


async def update_record(
    session: AsyncSession,
    pipeline_id: Union[UUID, str],
    *,
    stage: Optional[str] = None,
    rsvp: Optional[bool] = None,
    tags: Optional[Iterable[str]] = None,
    amount: Optional[Amount] = None,
    payment_method: Optional[str] = None,
    notes: Optional[str] = None,
) -> TransitionResult:
    """Apply a partial update: optional stage move, rsvp set/clear, tags, notes.

    rsvp=False is an explicit clear. If the record ends up paid, it is
    graduated and the attendee is returned with it.
    """
    record = await _load(session, pipeline_id)

    attendee = None
    if stage is not None:
        result = await transition(
            session, record, stage, amount=amount, payment_method=payment_method
        )
        attendee = result.attendee

    changes: dict = {}
    if tags is not None:
        changes["tags"] = list(dict.fromkeys(tags))
    if notes is not None:
        changes["notes"] = notes
    if rsvp is True:
        changes["rsvp"] = True
        if record.rsvp_date is None:
            changes["rsvp_date"] = _utcnow()
    if amount is not None and stage is None and record.paid:
        changes["amount"] = _to_decimal(amount)
    if changes:
        await pipeline_repo.update(session, record, **changes)

    if rsvp is False and record.rsvp:
        await clear_flags(session, record.id, rsvp=True)

    if attendee is None and graduation.is_graduation_ready(record):
        attendee = await graduation.graduate_record(
            session, record, payment_method=payment_method
        )
    return TransitionResult(record=record, attendee=attendee)


async def move_stage(
    session: AsyncSession,
    org_id,
    event_id,
    from_stage: str,
    to_stage: str,
    audience_type: Optional[str] = None,
) -> PushReport:
    """Move every record of an event at from_stage to to_stage.

    Each record goes through transition() on its own and is committed on
    its own; one failure does not stop or undo the others.
    """
    org_uuid = require_id(org_id, "orgId", "Organization")
    event_uuid = require_id(event_id, "eventId", "Event")
    event = await event_repo.get_for_org(session, org_uuid, event_uuid)
    stages = event_repo.stages_for(event)
    target = validate_stage(to_stage, stages)
    source_stage = normalize_stage(from_stage)

    records = await pipeline_repo.find(
        session,
        org_id=org_uuid,
        event_id=event_uuid,
        audience_type=audience_type,
        stage=source_stage,
    )
    targets = [(r.id, str(r.contact_id)) for r in records]
    logger.info(
        "Moving %d records of event %s from %s to %s", len(targets), event_uuid, source_stage, target
    )

    report = PushReport()
    for record_id, contact_key in targets:
        if source_stage == target:
            report.skipped.append(
                PushSkip(contact_id=contact_key, reason="already at stage", pipeline_id=str(record_id))
            )
            continue
        try:
            await transition_by_id(session, record_id, target)
            await session.commit()
        except (PipelineError, SQLAlchemyError) as exc:
            await session.rollback()
            logger.warning("Could not move pipeline record %s: %s", record_id, exc)
            report.errors.append(PushError(contact_id=contact_key, error=str(exc)))
            continue
        report.success.append(PushSuccess(contact_id=contact_key, pipeline_id=str(record_id)))
    return report
