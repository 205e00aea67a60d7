"""Initial schema: crm organizations, events, contacts, pipeline and attendee records.

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute("CREATE SCHEMA IF NOT EXISTS crm")

    op.create_table(
        "organizations",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        schema="crm",
    )

    op.create_table(
        "events",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("org_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column("event_date", sa.Date, nullable=True),
        sa.Column("stages", sa.JSON, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("org_id", "name", name="uq_event_org_name"),
        sa.ForeignKeyConstraint(["org_id"], ["crm.organizations.id"], name="fk_event_org", ondelete="CASCADE"),
        schema="crm",
    )

    op.create_table(
        "contacts",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("org_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("first_name", sa.Text, nullable=True),
        sa.Column("last_name", sa.Text, nullable=True),
        sa.Column("email", sa.Text, nullable=False),
        sa.Column("phone", sa.Text, nullable=True),
        sa.Column("tags", sa.JSON, nullable=False, server_default=sa.text("'[]'")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("org_id", "email", name="uq_contact_org_email"),
        sa.ForeignKeyConstraint(["org_id"], ["crm.organizations.id"], name="fk_contact_org", ondelete="CASCADE"),
        schema="crm",
    )
    op.create_index("ix_contacts_org_id", "contacts", ["org_id"], schema="crm")

    op.create_table(
        "pipeline_records",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("org_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("event_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("contact_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("audience_type", sa.Text, nullable=False),
        sa.Column("stage", sa.Text, nullable=False),
        sa.Column("source", sa.Text, nullable=True),
        sa.Column("rsvp", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("rsvp_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("paid", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("payment_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("amount", sa.Numeric(10, 2), nullable=True),
        sa.Column("attended", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("attendance_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("engagement_score", sa.Integer, nullable=True),
        sa.Column("tags", sa.JSON, nullable=False, server_default=sa.text("'[]'")),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("form_notes", sa.JSON, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint(
            "org_id", "event_id", "contact_id", "audience_type",
            name="uq_pipeline_org_event_contact_audience",
        ),
        sa.CheckConstraint(
            "audience_type IN ('org_member','friend_spouse','community_partner',"
            "'business_sponsor','champion')",
            name="ck_pipeline_audience_type",
        ),
        sa.CheckConstraint(
            "source IS NULL OR source IN ('csv','admin_add','bulk_import','tag_filter','landing_form')",
            name="ck_pipeline_source",
        ),
        sa.ForeignKeyConstraint(["org_id"], ["crm.organizations.id"], name="fk_pipeline_org", ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["event_id"], ["crm.events.id"], name="fk_pipeline_event", ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["contact_id"], ["crm.contacts.id"], name="fk_pipeline_contact", ondelete="CASCADE"),
        schema="crm",
    )
    op.create_index("ix_pipeline_records_org_id", "pipeline_records", ["org_id"], schema="crm")
    op.create_index("ix_pipeline_records_event_id", "pipeline_records", ["event_id"], schema="crm")

    op.create_table(
        "attendee_records",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("org_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("event_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("contact_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("pipeline_record_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("audience_type", sa.Text, nullable=False),
        sa.Column("ticket_type", sa.Text, nullable=False, server_default="standard"),
        sa.Column("registered_date", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("paid", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("amount", sa.Numeric(10, 2), nullable=True),
        sa.Column("payment_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("payment_method", sa.Text, nullable=True),
        sa.Column("attended", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("attendance_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("source", sa.Text, nullable=True),
        sa.Column("engagement_score", sa.Integer, nullable=True),
        sa.Column("tags", sa.JSON, nullable=False, server_default=sa.text("'[]'")),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("org_id", "event_id", "contact_id", name="uq_attendee_org_event_contact"),
        sa.CheckConstraint(
            "ticket_type IN ('standard', 'vip', 'comp', 'sponsor')",
            name="ck_attendee_ticket_type",
        ),
        sa.ForeignKeyConstraint(["org_id"], ["crm.organizations.id"], name="fk_attendee_org", ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["event_id"], ["crm.events.id"], name="fk_attendee_event", ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["contact_id"], ["crm.contacts.id"], name="fk_attendee_contact", ondelete="CASCADE"),
        schema="crm",
    )
    op.create_index("ix_attendee_records_org_id", "attendee_records", ["org_id"], schema="crm")
    op.create_index("ix_attendee_records_event_id", "attendee_records", ["event_id"], schema="crm")


def downgrade() -> None:
    op.drop_index("ix_attendee_records_event_id", table_name="attendee_records", schema="crm")
    op.drop_index("ix_attendee_records_org_id", table_name="attendee_records", schema="crm")
    op.drop_index("ix_pipeline_records_event_id", table_name="pipeline_records", schema="crm")
    op.drop_index("ix_pipeline_records_org_id", table_name="pipeline_records", schema="crm")
    op.drop_index("ix_contacts_org_id", table_name="contacts", schema="crm")
    # Drop in reverse dependency order
    op.drop_table("attendee_records", schema="crm")
    op.drop_table("pipeline_records", schema="crm")
    op.drop_table("contacts", schema="crm")
    op.drop_table("events", schema="crm")
    op.drop_table("organizations", schema="crm")
