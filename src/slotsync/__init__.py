"""Scraper and submitter for a password-protected weekly sign-up poll.

Reads availability and the caller's own selection from each open week, and
replaces that selection through the site's vote forms.
"""

from src.slotsync.models import SubmissionResult, Timeslot, WeekResult
from src.slotsync.service import Reconciler

__all__ = [
    "Reconciler",
    "Timeslot",
    "WeekResult",
    "SubmissionResult",
]
