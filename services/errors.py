"""Pipeline engine exceptions.

There is no duplicate-entry error: a push that finds the
contact already in the pipeline reports it as skipped.
"""
from typing import Iterable, Optional


class PipelineError(Exception):
    """Base class for all pipeline engine errors."""


class NotFoundError(PipelineError):
    """A referenced contact, event, or pipeline record does not exist."""

    def __init__(self, kind: str, identifier) -> None:
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} {identifier} not found")


class InvalidStageError(PipelineError):
    """Requested stage is not in the event's configured stage list."""

    def __init__(self, stage: str, allowed: Optional[Iterable[str]] = None) -> None:
        self.stage = stage
        self.allowed = list(allowed or [])
        msg = f"Invalid stage '{stage}'"
        if self.allowed:
            msg += f"; expected one of: {', '.join(self.allowed)}"
        super().__init__(msg)


class InvalidAudienceError(PipelineError):
    def __init__(self, audience_type: str, allowed: Iterable[str]) -> None:
        self.audience_type = audience_type
        self.allowed = list(allowed)
        super().__init__(
            f"Invalid audience type '{audience_type}'; expected one of: {', '.join(self.allowed)}"
        )


class MissingParameterError(PipelineError, ValueError):
    """A whole-operation precondition failed (raised before any item work)."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"{name} is required")


class PersistenceError(PipelineError):
    """Underlying store failure other than the expected uniqueness conflict."""


class InvalidSourceError(PipelineError):
    def __init__(self, source: str, allowed: Iterable[str]) -> None:
        self.source = source
        self.allowed = list(allowed)
        super().__init__(f"Invalid source '{source}'; expected one of: {', '.join(self.allowed)}")


class InvalidAmountError(PipelineError):
    """Payment amount is not a finite, non-negative number."""

    def __init__(self, amount) -> None:
        self.amount = amount
        super().__init__(f"Invalid amount '{amount}'")
