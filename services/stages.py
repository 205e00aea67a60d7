"""Canonical pipeline vocabulary: stages, aliases, audience types, sources.

Stages are plain strings, not a Postgres ENUM. Each event may configure its
own ordered stage list; events without one use DEFAULT_STAGES.
"""
import os
from typing import Iterable, Optional

# Canonical stage names with engine side effects
MEMBER = "member"
RSVPED = "rsvped"
PAID = "paid"
ATTENDED = "attended"

_FALLBACK_STAGES = (MEMBER, RSVPED, PAID)

# Old/deprecated stage names -> canonical names
STAGE_ALIASES: dict[str, str] = {
    "soft_commit": RSVPED,
    "rsvp": RSVPED,
    "sop_entry": "in_funnel",
}

AUDIENCE_TYPES = (
    "org_member",
    "friend_spouse",
    "community_partner",
    "business_sponsor",
    "champion",
)
DEFAULT_AUDIENCE_TYPE = "org_member"

SOURCES = (
    "csv",
    "admin_add",
    "bulk_import",
    "tag_filter",
    "landing_form",
)


def normalize_stage(stage: str) -> str:
    """Map a stage name (possibly a legacy alias) to its canonical name."""
    key = stage.strip().lower()
    return STAGE_ALIASES.get(key, key)


def stage_variants(stage: str) -> list[str]:
    """Return the canonical name plus every alias that maps to it.

    Used to match rows persisted under an older vocabulary.
    """
    canonical = normalize_stage(stage)
    return [canonical] + sorted(k for k, v in STAGE_ALIASES.items() if v == canonical)


def normalize_stages(stages: Iterable[str]) -> list[str]:
    """Normalize a stage list, dropping duplicates while keeping order."""
    out: list[str] = []
    for s in stages:
        canonical = normalize_stage(s)
        if canonical and canonical not in out:
            out.append(canonical)
    return out


def default_stages() -> list[str]:
    """Return the default stage list (PIPELINE_DEFAULT_STAGES overrides)."""
    raw = os.environ.get("PIPELINE_DEFAULT_STAGES", "")
    configured = normalize_stages(s for s in raw.split(",") if s.strip())
    return configured or list(_FALLBACK_STAGES)


def resolve_stages(configured: Optional[Iterable[str]]) -> list[str]:
    """Return an event's effective stage list."""
    if configured:
        stages = normalize_stages(configured)
        if stages:
            return stages
    return default_stages()


def stage_rank(stage: str, stages: list[str]) -> int:
    """Position of stage within stages, -1 if absent."""
    canonical = normalize_stage(stage)
    return stages.index(canonical) if canonical in stages else -1


def is_valid_audience(audience_type: str) -> bool:
    return audience_type in AUDIENCE_TYPES
