"""Selection submission against the poll's replace-only vote form.

The form stores whatever radios are checked when it is submitted; there is
no "add one slot" or "remove one slot". Two strategies follow from that:

ClaimSubmission (no edit link on record)
    LOAD_PUBLIC_PAGE -> APPLY_SELECTION -> SUBMIT_FORM -> REQUEST_EDIT_LINK
    -> PERSIST_EDIT_LINK -> DONE

ResubmitSubmission (edit link on record)
    LOAD_EDIT_PAGE -> READ_CURRENT_SELECTION -> DESELECT -> SUBMIT_CLEAR
    -> RELOAD_EDIT_PAGE -> SELECT -> SUBMIT_COMMIT -> DONE

Each run walks its phases strictly in order. A failure before anything was
committed raises SubmissionError; a failure after SUBMIT_CLEAR raises
PartialSubmission, since the remote selection is then empty.
"""

from enum import Enum
from typing import TYPE_CHECKING

from playwright.async_api import Error as PlaywrightError

from src.slotsync.errors import PartialSubmission, SubmissionError, UpstreamUnavailable
from src.slotsync.logging import get_logger
from src.slotsync.models import SelectionRequest, Strategy, SubmissionResult, Timeslot
from src.slotsync.pages.poll import PollPage
from src.slotsync.rules import SiteRules

if TYPE_CHECKING:
    from src.slotsync.browser import BrowserProvider
    from src.slotsync.store import EditLinkStore

logger = get_logger(__name__)


class Phase(str, Enum):
    LOAD_PUBLIC_PAGE = "load_public_page"
    APPLY_SELECTION = "apply_selection"
    SUBMIT_FORM = "submit_form"
    REQUEST_EDIT_LINK = "request_edit_link"
    PERSIST_EDIT_LINK = "persist_edit_link"

    LOAD_EDIT_PAGE = "load_edit_page"
    READ_CURRENT_SELECTION = "read_current_selection"
    DESELECT = "deselect"
    SUBMIT_CLEAR = "submit_clear"
    RELOAD_EDIT_PAGE = "reload_edit_page"
    SELECT = "select"
    SUBMIT_COMMIT = "submit_commit"

    DONE = "done"


class _Submission:
    """Shared phase bookkeeping for both strategies."""

    strategy: Strategy
    phases: tuple[Phase, ...] = ()

    def __init__(
        self,
        provider: "BrowserProvider",
        rules: SiteRules,
        request: SelectionRequest,
        password: str,
    ) -> None:
        self.provider = provider
        self.rules = rules
        self.request = request
        self.password = password
        self.phase: Phase | None = None
        self.history: list[Phase] = []

    def _enter(self, phase: Phase) -> None:
        expected = self.phases[len(self.history)]
        if phase is not expected:
            raise RuntimeError(
                f"{self.strategy.value}: expected {expected.value}, got {phase.value}"
            )
        self.phase = phase
        self.history.append(phase)
        logger.info(
            "submission_phase",
            strategy=self.strategy.value,
            phase=phase.value,
            week_link=self.request.week_link,
        )

    def _check_known(self, timeslots: list[Timeslot]) -> None:
        """Refuse ids the page does not offer before anything is changed."""
        unknown = self.request.ids - {slot.id for slot in timeslots}
        if unknown:
            raise SubmissionError(
                f"Unknown timeslot ids: {', '.join(sorted(unknown))}",
                week_link=self.request.week_link,
                phase=self.phase.value if self.phase else "",
            )

    def _failed(self, error: Exception) -> SubmissionError:
        phase = self.phase.value if self.phase else ""
        logger.error(
            "submission_failed",
            strategy=self.strategy.value,
            phase=phase,
            week_link=self.request.week_link,
            error=str(error),
        )
        return SubmissionError(
            f"Submission failed during {phase}: {error}",
            week_link=self.request.week_link,
            phase=phase,
        )


class ClaimSubmission(_Submission):
    """First-time claim through the public vote form."""

    strategy = Strategy.CLAIM
    phases = (
        Phase.LOAD_PUBLIC_PAGE,
        Phase.APPLY_SELECTION,
        Phase.SUBMIT_FORM,
        Phase.REQUEST_EDIT_LINK,
        Phase.PERSIST_EDIT_LINK,
        Phase.DONE,
    )

    def __init__(
        self,
        provider: "BrowserProvider",
        rules: SiteRules,
        store: "EditLinkStore",
        request: SelectionRequest,
        password: str,
        username: str,
        email: str,
    ) -> None:
        super().__init__(provider, rules, request, password)
        self.store = store
        self.username = username
        self.email = email

    async def run(self) -> SubmissionResult:
        """Claim the requested slots and persist the issued edit link.

        Returns:
            Result whose ``edit_link`` is None if the site never issued one;
            in that case nothing is persisted and the next submit claims again.

        Raises:
            SubmissionError: If the claim could not be made.
        """
        if not self.request.ids:
            raise SubmissionError(
                "Nothing to claim: no timeslot ids given",
                week_link=self.request.week_link,
                phase="",
            )

        async with self.provider.page() as page:
            poll = PollPage(page, self.rules)
            try:
                self._enter(Phase.LOAD_PUBLIC_PAGE)
                await poll.open(self.request.week_link, self.password)
                self._check_known(await poll.timeslots())

                # All controls start unclaimed, so only the yes side is touched
                self._enter(Phase.APPLY_SELECTION)
                await poll.mark(self.request.ids, yes=True)
                await poll.fill_identity(self.username, self.email)

                self._enter(Phase.SUBMIT_FORM)
                await poll.submit(self.rules.claim_submit)
            except (UpstreamUnavailable, PlaywrightError) as e:
                raise self._failed(e) from e

            # The claim is committed; from here a browser failure only costs the link
            self._enter(Phase.REQUEST_EDIT_LINK)
            try:
                edit_link = await poll.request_edit_link(self.email)
            except PlaywrightError as e:
                logger.warning("edit_link_request_failed", error=str(e))
                edit_link = None

        result = SubmissionResult(
            strategy=self.strategy,
            week_link=self.request.week_link,
            selected_ids=self.request.ids,
            edit_link=edit_link,
        )
        if edit_link is None:
            logger.warning(
                "claim_without_edit_link",
                week_link=self.request.week_link,
                phase=self.phase.value,
            )
            return result

        self._enter(Phase.PERSIST_EDIT_LINK)
        await self.store.put(self.request.week_link, self.email, edit_link)

        self._enter(Phase.DONE)
        return result


class ResubmitSubmission(_Submission):
    """Reset-and-reselect through the caller's edit link."""

    strategy = Strategy.RESUBMIT
    phases = (
        Phase.LOAD_EDIT_PAGE,
        Phase.READ_CURRENT_SELECTION,
        Phase.DESELECT,
        Phase.SUBMIT_CLEAR,
        Phase.RELOAD_EDIT_PAGE,
        Phase.SELECT,
        Phase.SUBMIT_COMMIT,
        Phase.DONE,
    )

    def __init__(
        self,
        provider: "BrowserProvider",
        rules: SiteRules,
        request: SelectionRequest,
        password: str,
        edit_link: str,
    ) -> None:
        super().__init__(provider, rules, request, password)
        self.edit_link = edit_link

    async def run(self) -> SubmissionResult:
        """Replace the caller's selection with the requested one.

        Raises:
            SubmissionError: If the old selection could not be cleared
                (nothing changed remotely).
            PartialSubmission: If the old selection was cleared but the new
                one was not committed.
        """
        async with self.provider.page() as page:
            poll = PollPage(page, self.rules)
            try:
                self._enter(Phase.LOAD_EDIT_PAGE)
                await poll.open(self.edit_link, self.password)

                self._enter(Phase.READ_CURRENT_SELECTION)
                current = frozenset(await poll.selected_ids())
                self._check_known(await poll.timeslots())

                self._enter(Phase.DESELECT)
                await poll.mark(current, yes=False)

                self._enter(Phase.SUBMIT_CLEAR)
                await poll.submit(self.rules.edit_submit)
            except (UpstreamUnavailable, PlaywrightError) as e:
                raise self._failed(e) from e

            logger.info(
                "selection_cleared",
                week_link=self.request.week_link,
                cleared=sorted(current),
            )

            try:
                # The password prompt comes back after a full navigation
                self._enter(Phase.RELOAD_EDIT_PAGE)
                await poll.open(self.edit_link, self.password)

                self._enter(Phase.SELECT)
                await poll.mark(self.request.ids, yes=True)

                self._enter(Phase.SUBMIT_COMMIT)
                await poll.submit(self.rules.edit_submit)
            except (UpstreamUnavailable, PlaywrightError) as e:
                logger.error(
                    "submission_partial",
                    week_link=self.request.week_link,
                    phase=self.phase.value,
                    cleared=sorted(current),
                    desired=sorted(self.request.ids),
                    error=str(e),
                )
                raise PartialSubmission(
                    f"Selection cleared but not re-set (failed during {self.phase.value}): {e}",
                    week_link=self.request.week_link,
                    phase=self.phase.value,
                    cleared_ids=current,
                    desired_ids=self.request.ids,
                ) from e

        self._enter(Phase.DONE)
        return SubmissionResult(
            strategy=self.strategy,
            week_link=self.request.week_link,
            selected_ids=self.request.ids,
            cleared_ids=current,
            edit_link=self.edit_link,
        )
