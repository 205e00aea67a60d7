"""Event Pipeline: command-line entry point.

Runs the pipeline operations directly against DATABASE_URL, without the
HTTP layer. Every command prints its result as JSON.

Usage:
  # Push specific contacts into an event at its first stage
  python cli.py push --org-id <org> --event-id <event> --contact-id <c1> --contact-id <c2>

  # Push everyone in the organization, or everyone carrying a tag
  python cli.py push-all --org-id <org> --event-id <event> --stage rsvped
  python cli.py push-by-tag --org-id <org> --event-id <event> --tag volunteers

  # Move one record, or a whole stage
  python cli.py transition --pipeline-id <id> --stage paid --amount 25
  python cli.py move --org-id <org> --event-id <event> --from member --to rsvped

  # Graduate a paid record, list an event pipeline
  python cli.py graduate --pipeline-id <id>
  python cli.py list --event-id <event> --stage paid
"""
import argparse
import asyncio
import json
import logging
import os
import sys

from dotenv import load_dotenv

load_dotenv()

import db.repositories.events as event_repo
import db.repositories.pipeline as pipeline_repo
from db.connection import dispose_engine, get_db
from schemas.pipeline import AttendeeOut, PipelineRecordOut
from services import bulk_push, graduation, transitions
from services.errors import PipelineError
from services.ids import require_id

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO"),
    format="%(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def _emit(payload) -> None:
    print(json.dumps(payload, indent=2, default=str))


async def _run(args: argparse.Namespace) -> None:
    try:
        async with get_db() as session:
            if args.command == "push":
                report = await bulk_push.push_contacts(
                    session, args.org_id, args.event_id, args.contact_id,
                    audience_type=args.audience_type, stage=args.stage, source=args.source,
                )
                _emit(report.model_dump(by_alias=True))

            elif args.command == "push-all":
                report = await bulk_push.push_all(
                    session, args.org_id, args.event_id,
                    audience_type=args.audience_type, stage=args.stage,
                )
                _emit(report.model_dump(by_alias=True))

            elif args.command == "push-by-tag":
                report = await bulk_push.push_by_tag(
                    session, args.org_id, args.event_id, args.tag,
                    audience_type=args.audience_type, stage=args.stage,
                )
                _emit(report.model_dump(by_alias=True))

            elif args.command == "move":
                report = await transitions.move_stage(
                    session, args.org_id, args.event_id, args.from_stage, args.to_stage,
                    audience_type=args.audience_type,
                )
                _emit(report.model_dump(by_alias=True))

            elif args.command == "transition":
                result = await transitions.transition_by_id(
                    session, args.pipeline_id, args.stage,
                    amount=args.amount, payment_method=args.payment_method,
                )
                _emit({
                    "pipelineRecord": PipelineRecordOut.model_validate(result.record).model_dump(by_alias=True),
                    "graduated": result.graduated,
                })

            elif args.command == "graduate":
                attendee = await graduation.graduate(
                    session, args.pipeline_id, payment_method=args.payment_method
                )
                _emit({
                    "graduated": attendee is not None,
                    "attendee": AttendeeOut.model_validate(attendee).model_dump(by_alias=True)
                    if attendee else None,
                })

            elif args.command == "list":
                event_id = require_id(args.event_id, "eventId", "Event")
                records = await pipeline_repo.list_by_event_and_stage(
                    session, event_id, audience_type=args.audience_type, stage=args.stage
                )
                _emit({
                    "stages": await event_repo.get_stages_for_event(session, event_id),
                    "counts": await pipeline_repo.stage_counts(
                        session, event_id, audience_type=args.audience_type
                    ),
                    "records": [
                        PipelineRecordOut.model_validate(r).model_dump(by_alias=True)
                        for r in records
                    ],
                })
    except PipelineError as e:
        logger.error("%s failed: %s", args.command, e)
        sys.exit(2)
    finally:
        await dispose_engine()


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Event attendee pipeline")
    sub = parser.add_subparsers(dest="command")

    def _push_options(p: argparse.ArgumentParser) -> None:
        p.add_argument("--org-id", required=True)
        p.add_argument("--event-id", required=True)
        p.add_argument("--audience-type", default="org_member")
        p.add_argument("--stage", default=None, help="Stage new records start at (default: the event's first stage)")

    push = sub.add_parser("push", help="Push specific contacts into an event pipeline")
    _push_options(push)
    push.add_argument("--contact-id", action="append", default=[], help="Repeat for each contact")
    push.add_argument("--source", default="admin_add")

    push_all = sub.add_parser("push-all", help="Push every contact of the organization")
    _push_options(push_all)

    push_tag = sub.add_parser("push-by-tag", help="Push contacts carrying any of the tags")
    _push_options(push_tag)
    push_tag.add_argument("--tag", action="append", default=[], help="Repeat for each tag")

    move = sub.add_parser("move", help="Move every record at one stage to another")
    move.add_argument("--org-id", required=True)
    move.add_argument("--event-id", required=True)
    move.add_argument("--from", dest="from_stage", required=True)
    move.add_argument("--to", dest="to_stage", required=True)
    move.add_argument("--audience-type", default=None)

    trans = sub.add_parser("transition", help="Move a single pipeline record")
    trans.add_argument("--pipeline-id", required=True)
    trans.add_argument("--stage", required=True)
    trans.add_argument("--amount", default=None, help="Payment amount when moving to paid")
    trans.add_argument("--payment-method", default=None)

    grad = sub.add_parser("graduate", help="Graduate a paid pipeline record to an attendee")
    grad.add_argument("--pipeline-id", required=True)
    grad.add_argument("--payment-method", default=None)

    lst = sub.add_parser("list", help="List an event pipeline")
    lst.add_argument("--event-id", required=True)
    lst.add_argument("--audience-type", default=None)
    lst.add_argument("--stage", default=None)

    return parser


if __name__ == "__main__":
    parser = _build_arg_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    asyncio.run(_run(args))
