"""Rewrite legacy stage aliases on pipeline records to canonical names.

Revision ID: 002
Revises: 001
Create Date: 2026-10-19
"""
from alembic import op

revision = "002"
down_revision = "001"
branch_labels = None
depends_on = None

# legacy value -> canonical value
_RENAMES = (
    ("soft_commit", "rsvped"),
    ("rsvp", "rsvped"),
    ("sop_entry", "in_funnel"),
)


def upgrade() -> None:
    for legacy, canonical in _RENAMES:
        op.execute(
            f"UPDATE crm.pipeline_records SET stage = '{canonical}' WHERE stage = '{legacy}'"
        )


def downgrade() -> None:
    # Aliases collapse onto one name; there is nothing to restore.
    pass
