"""Structured notes parsed from landing-form answers.

Forms post free-form answers keyed by whatever the form builder named the
question. Only three facts are ever read back, so they are pulled into a
fixed struct instead of keeping the open mapping around.
"""
import logging
from typing import Any, Literal, Mapping, Optional

from pydantic import BaseModel

logger = logging.getLogger(__name__)

_BRINGING_KEYS = ("bringing_m", "will_bring_spouse", "bringing_spouse")
_PARTY_SIZE_KEYS = ("how_many_in_party", "party_size", "partySize")
_LIKELIHOOD_KEYS = ("how_likely_to_attend", "likelihood_to_attend", "likelihood")

# Phrase -> likelihood id (1 = committed, 2 = probable, 4 = supporting remotely).
# Checked in order; first match wins.
LIKELIHOOD_PHRASES: tuple[tuple[str, int], ...] = (
    ("i'm in", 1),
    ("planning to be there", 1),
    ("im in", 1),
    ("most likely", 2),
    ("confirming logistics", 2),
    ("probably yes", 2),
    ("chaos intervenes", 2),
    ("probably", 2),
    ("morale support", 4),
    ("just here for", 4),
    ("support from afar", 4),
)
DEFAULT_LIKELIHOOD = 2


def _first(answers: Mapping[str, Any], keys: tuple[str, ...]) -> Optional[Any]:
    for key in keys:
        value = answers.get(key)
        if value not in (None, ""):
            return value
    return None


class PipelineNotes(BaseModel):
    spouse_or_other: Optional[Literal["spouse", "solo"]] = None
    how_many_in_party: Optional[int] = None
    likelihood_to_attend: Optional[int] = None

    @classmethod
    def from_answers(cls, answers: Optional[Mapping[str, Any]]) -> "PipelineNotes":
        if not answers:
            return cls()

        notes = cls()
        bringing = _first(answers, _BRINGING_KEYS)
        if bringing is not None:
            notes.spouse_or_other = "spouse" if "yes" in str(bringing).lower() else "solo"

        party = _first(answers, _PARTY_SIZE_KEYS)
        if party is not None:
            try:
                notes.how_many_in_party = int(str(party).strip())
            except ValueError:
                logger.warning("Ignoring non-numeric party size answer: %r", party)

        likelihood = _first(answers, _LIKELIHOOD_KEYS)
        if likelihood is not None:
            text = str(likelihood).lower()
            notes.likelihood_to_attend = next(
                (value for phrase, value in LIKELIHOOD_PHRASES if phrase in text),
                DEFAULT_LIKELIHOOD,
            )
        return notes

    def is_empty(self) -> bool:
        return not any(v is not None for v in self.model_dump().values())

    def merged_over(self, existing: Optional[Mapping[str, Any]]) -> dict[str, Any]:
        """Return existing notes with this submission's answered fields on top."""
        merged = dict(existing or {})
        merged.update(self.model_dump(exclude_none=True))
        return merged
