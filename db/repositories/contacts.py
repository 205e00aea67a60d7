"""Contact repository: org-scoped lookups, dedup by email, tag maintenance."""
import logging
from typing import Iterable, Optional
from uuid import UUID

from sqlalchemy import select, type_coerce
from sqlalchemy.dialects.postgresql import JSONB, array
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import Contact

logger = logging.getLogger(__name__)


def _normalize_email(email: str) -> str:
    return email.lower().strip()


async def find_by_id(
    session: AsyncSession, org_id: UUID, contact_id: UUID
) -> Optional[Contact]:
    """Return the Contact with this id inside org_id, or None."""
    result = await session.execute(
        select(Contact).where(Contact.id == contact_id).where(Contact.org_id == org_id)
    )
    return result.scalar_one_or_none()


async def find_all_by_org(session: AsyncSession, org_id: UUID) -> list[Contact]:
    """Return every contact of an organization, oldest first."""
    result = await session.execute(
        select(Contact).where(Contact.org_id == org_id).order_by(Contact.created_at, Contact.id)
    )
    return list(result.scalars().all())


def has_any_tag(tags: Iterable[str]):
    """JSONB `?|` predicate: the contact carries at least one of tags."""
    return type_coerce(Contact.tags, JSONB).has_any(array(sorted(tags)))


async def find_by_tags(
    session: AsyncSession, org_id: UUID, tags: Iterable[str]
) -> list[Contact]:
    """Return contacts of org_id carrying any of the given tags.

    On Postgres the match runs in SQL against the JSONB tags column. Other
    backends store plain JSON, so the org's contacts are filtered after loading.
    """
    wanted = {t for t in tags if t}
    if not wanted:
        return []
    if session.get_bind().dialect.name == "postgresql":
        result = await session.execute(
            select(Contact)
            .where(Contact.org_id == org_id)
            .where(has_any_tag(wanted))
            .order_by(Contact.created_at, Contact.id)
        )
        return list(result.scalars().all())
    contacts = await find_all_by_org(session, org_id)
    return [c for c in contacts if wanted.intersection(c.tags or [])]


async def get_by_email(
    session: AsyncSession, org_id: UUID, email: str
) -> Optional[Contact]:
    """Return the Contact with this email in org_id, or None."""
    result = await session.execute(
        select(Contact)
        .where(Contact.org_id == org_id)
        .where(Contact.email == _normalize_email(email))
    )
    return result.scalar_one_or_none()


async def upsert(session: AsyncSession, org_id: UUID, data: dict) -> Contact:
    """Insert or update a contact by (org_id, email) (dedup key).

    data dict keys: email, first_name, last_name, phone, tags.
    Empty values never overwrite stored ones.
    """
    email = _normalize_email(data["email"])
    fields = {k: v for k, v in data.items() if k != "email" and v not in (None, "")}

    contact = await get_by_email(session, org_id, email)
    if contact is None:
        contact = Contact(org_id=org_id, email=email, **fields)
        try:
            async with session.begin_nested():
                session.add(contact)
            return contact
        except IntegrityError:
            # Lost a race with a concurrent insert of the same email
            contact = await get_by_email(session, org_id, email)
            if contact is None:
                raise

    for key, value in fields.items():
        setattr(contact, key, value)
    await session.flush()
    return contact


async def add_tags(session: AsyncSession, contact: Contact, tags: Iterable[str]) -> list[str]:
    """Append tags the contact does not have yet. Returns the tags added."""
    current = list(contact.tags or [])
    added = [t for t in tags if t not in current]
    if added:
        # Reassign so the JSON column is flagged dirty
        contact.tags = current + added
        await session.flush()
    return added
