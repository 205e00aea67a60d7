"""SQLAlchemy 2.0 ORM models for the event attendee pipeline.

Covers 5 tables in the crm schema:
  organizations, events, contacts, pipeline_records, attendee_records
"""

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    JSON,
    Numeric,
    Text,
    TypeDecorator,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from services.stages import AUDIENCE_TYPES, SOURCES, normalize_stage


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Shared base
# ---------------------------------------------------------------------------


class Base(DeclarativeBase):
    pass


class StageName(TypeDecorator):
    """Text column that stores and loads canonical stage names.

    Legacy aliases (e.g. 'soft_commit') are rewritten on the way in and on
    the way out, so ORM objects only ever carry canonical names.
    """

    impl = Text
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return normalize_stage(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return normalize_stage(value)


def _in_check(column: str, values) -> str:
    return f"{column} IN (" + ", ".join(f"'{v}'" for v in values) + ")"


# ===========================================================================
# Schema: crm
# ===========================================================================


class Organization(Base):
    """crm.organizations: tenant-owned organization running events."""

    __tablename__ = "organizations"
    __table_args__ = {"schema": "crm"}

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )

    # Relationships
    events: Mapped[list["Event"]] = relationship(
        "Event", back_populates="organization", cascade="all, delete-orphan"
    )
    contacts: Mapped[list["Contact"]] = relationship(
        "Contact", back_populates="organization"
    )


class Event(Base):
    """crm.events: an event with its own funnel stage configuration."""

    __tablename__ = "events"
    __table_args__ = (
        UniqueConstraint("org_id", "name", name="uq_event_org_name"),
        {"schema": "crm"},
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    org_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("crm.organizations.id"), nullable=False
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    event_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    # NULL means "use the default stage list"
    stages: Mapped[Optional[list[str]]] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )

    organization: Mapped["Organization"] = relationship(
        "Organization", back_populates="events"
    )


class Contact(Base):
    """crm.contacts: a person known to an organization."""

    __tablename__ = "contacts"
    __table_args__ = (
        UniqueConstraint("org_id", "email", name="uq_contact_org_email"),
        Index("ix_contacts_tags", "tags", postgresql_using="gin"),
        {"schema": "crm"},
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    org_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("crm.organizations.id"), nullable=False, index=True
    )
    first_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    email: Mapped[str] = mapped_column(Text, nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    tags: Mapped[list[str]] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"), default=list, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        server_default=func.now(),
        nullable=False,
    )

    organization: Mapped["Organization"] = relationship(
        "Organization", back_populates="contacts"
    )

    @property
    def full_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.last_name) if p)


class PipelineRecord(Base):
    """crm.pipeline_records: a contact's position in one event funnel segment."""

    __tablename__ = "pipeline_records"
    __table_args__ = (
        UniqueConstraint(
            "org_id", "event_id", "contact_id", "audience_type",
            name="uq_pipeline_org_event_contact_audience",
        ),
        CheckConstraint(_in_check("audience_type", AUDIENCE_TYPES), name="ck_pipeline_audience_type"),
        CheckConstraint(
            "source IS NULL OR " + _in_check("source", SOURCES), name="ck_pipeline_source"
        ),
        {"schema": "crm"},
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    org_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("crm.organizations.id"), nullable=False, index=True
    )
    event_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("crm.events.id"), nullable=False, index=True
    )
    contact_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("crm.contacts.id"), nullable=False
    )
    audience_type: Mapped[str] = mapped_column(Text, nullable=False)
    stage: Mapped[str] = mapped_column(StageName, nullable=False)
    source: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    rsvp: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false", nullable=False)
    rsvp_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    paid: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false", nullable=False)
    payment_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    attended: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default="false", nullable=False
    )
    attendance_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    engagement_score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    tags: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # Structured form answers, see services.notes.PipelineNotes
    form_notes: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        server_default=func.now(),
        nullable=False,
    )

    contact: Mapped["Contact"] = relationship("Contact")
    event: Mapped["Event"] = relationship("Event")


class AttendeeRecord(Base):
    """crm.attendee_records: permanent record of a graduated (paid) contact."""

    __tablename__ = "attendee_records"
    __table_args__ = (
        UniqueConstraint("org_id", "event_id", "contact_id", name="uq_attendee_org_event_contact"),
        CheckConstraint(
            "ticket_type IN ('standard', 'vip', 'comp', 'sponsor')",
            name="ck_attendee_ticket_type",
        ),
        {"schema": "crm"},
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    org_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("crm.organizations.id"), nullable=False, index=True
    )
    event_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("crm.events.id"), nullable=False, index=True
    )
    contact_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("crm.contacts.id"), nullable=False
    )
    # Loose reference to the record that last graduated this attendee
    pipeline_record_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    audience_type: Mapped[str] = mapped_column(Text, nullable=False)
    ticket_type: Mapped[str] = mapped_column(
        Text, default="standard", server_default="standard", nullable=False
    )
    registered_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )
    paid: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false", nullable=False)
    amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    payment_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    payment_method: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # Owned by the check-in flow; graduation never writes these after creation
    attended: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default="false", nullable=False
    )
    attendance_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    source: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    engagement_score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    tags: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        server_default=func.now(),
        nullable=False,
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

__all__ = [
    "Base",
    "StageName",
    "Organization",
    "Event",
    "Contact",
    "PipelineRecord",
    "AttendeeRecord",
]
