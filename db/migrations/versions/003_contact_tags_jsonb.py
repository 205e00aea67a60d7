"""Store contact tags as JSONB with a GIN index for tag lookups.

Revision ID: 003
Revises: 002
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "003"
down_revision = "002"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.alter_column(
        "contacts",
        "tags",
        type_=postgresql.JSONB,
        postgresql_using="tags::jsonb",
        server_default=sa.text("'[]'::jsonb"),
        schema="crm",
    )
    op.create_index(
        "ix_contacts_tags", "contacts", ["tags"], postgresql_using="gin", schema="crm"
    )


def downgrade() -> None:
    op.drop_index("ix_contacts_tags", table_name="contacts", schema="crm")
    op.alter_column(
        "contacts",
        "tags",
        type_=sa.JSON,
        postgresql_using="tags::json",
        server_default=sa.text("'[]'"),
        schema="crm",
    )
