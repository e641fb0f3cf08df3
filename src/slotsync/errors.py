"""Error hierarchy for credential checks, scraping and submission.

Transient failures (should retry) are kept apart from permanent ones (should
not retry) so tenacity can classify them:

    AsyncRetrying(retry=retry_if_exception_type(TransientError), ...)

Submission errors are never retried automatically: a half-applied remote
mutation has to reach the caller as-is.
"""


class SlotSyncError(Exception):
    """Base exception for all slotsync errors."""

    pass


class TransientError(SlotSyncError):
    """Temporary failure that may succeed on retry."""

    pass


class UpstreamUnavailable(TransientError):
    """Remote site unreachable, or an expected element never appeared.

    Also raised when the browser itself cannot be provisioned.
    """

    pass


class PermanentError(SlotSyncError):
    """Failure that won't succeed on retry."""

    pass


class AuthenticationError(PermanentError):
    """Caller credential rejected by the gate."""

    pass


class MissingCredential(AuthenticationError):
    pass


class InvalidCredential(AuthenticationError):
    pass


class ServerMisconfigured(PermanentError):
    """No usable reference hash is configured on this side."""

    pass


class NoEditLinkOnRecord(PermanentError):
    """The store has no edit link for the requested (week, email) pair."""

    pass


class InvalidEditLink(PermanentError):
    """A manually supplied edit link does not look like one the site issues."""

    pass


class InvalidWeekLink(PermanentError):
    """A week link has no path segment to identify the poll by."""

    pass


class StoreCorrupt(SlotSyncError):
    """A persisted edit-link record could not be parsed.

    Absorbed by the store, which treats the record as empty.
    """

    pass


class SubmissionError(PermanentError):
    """A selection could not be submitted; nothing was changed remotely."""

    def __init__(self, message: str, *, week_link: str, phase: str) -> None:
        super().__init__(message)
        self.week_link = week_link
        self.phase = phase


class PartialSubmission(SubmissionError):
    """The old selection was cleared remotely but the new one was not committed.

    Attributes:
        cleared_ids: Slot ids that were deselected before the failure.
        desired_ids: Slot ids that should have been selected.
    """

    def __init__(
        self,
        message: str,
        *,
        week_link: str,
        phase: str,
        cleared_ids: frozenset[str],
        desired_ids: frozenset[str],
    ) -> None:
        super().__init__(message, week_link=week_link, phase=phase)
        self.cleared_ids = cleared_ids
        self.desired_ids = desired_ids
