"""Identifier coercion for ids arriving as request strings."""
from typing import Optional
from uuid import UUID

from services.errors import MissingParameterError, NotFoundError


def as_uuid(value) -> Optional[UUID]:
    """Return value as a UUID, or None if it is not a well-formed id."""
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value).strip())
    except (TypeError, ValueError):
        return None


def require_id(value, name: str, kind: str) -> UUID:
    """Coerce a required id; missing -> MissingParameterError, malformed -> NotFoundError."""
    if value is None or (isinstance(value, str) and not value.strip()):
        raise MissingParameterError(name)
    parsed = as_uuid(value)
    if parsed is None:
        raise NotFoundError(kind, value)
    return parsed
