"""Pydantic models for weeks, timeslots and selection requests.

All data structures use Pydantic v2 for validation, serialization, and type safety.
"""

from enum import Enum

from pydantic import BaseModel, Field, field_validator


class Timeslot(BaseModel):
    """One bookable column on a week's poll page.

    Built from a ``.results thead th`` header; availability comes from the
    public results table, selection from the caller's edit-link page.
    """

    id: str  # Column header id, e.g. "C0"
    datetime: str  # Header title, e.g. "Mo 02.06.2025 17:00"
    available: bool = False  # Some row marks the column "yes"
    selected: bool = False  # Checked "yes" in the caller's own row


class WeekResult(BaseModel):
    """One open week as returned by a scrape.

    Constructed fresh per request and never persisted; only ``edit_link``
    comes from the edit-link store.
    """

    week_number: int
    link: str
    edit_link: str | None = None
    timeslots: list[Timeslot] = Field(default_factory=list)


class SelectionRequest(BaseModel):
    """Desired selection for one week, replacing any previous one."""

    week_link: str = Field(min_length=1)
    ids: frozenset[str]

    @field_validator("ids")
    @classmethod
    def _ids_not_blank(cls, ids: frozenset[str]) -> frozenset[str]:
        cleaned = frozenset(i.strip() for i in ids)
        if "" in cleaned:
            raise ValueError("timeslot ids must not be blank")
        return cleaned


class Strategy(str, Enum):
    CLAIM = "claim"  # first-time claim through the public form
    RESUBMIT = "resubmit"  # reset-and-reselect through the edit link


class SubmissionResult(BaseModel):
    """Outcome of a submission.

    ``edit_link`` is the link the selection was written through (resubmit) or
    the one issued by the site (claim); it is None when a claim went through
    but the site never handed back a link.
    """

    strategy: Strategy
    week_link: str
    selected_ids: frozenset[str]
    cleared_ids: frozenset[str] = frozenset()
    edit_link: str | None = None
