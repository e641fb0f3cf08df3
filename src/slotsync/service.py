"""Request-level entry points: scrape, submit, set and read edit links.

Every call passes the credential gate before any browser work starts.
"""

import asyncio
import re

from pydantic import ValidationError

from src.slotsync.auth import CredentialGate
from src.slotsync.browser import BrowserProvider
from src.slotsync.config import SlotSyncConfig
from src.slotsync.errors import (
    InvalidEditLink,
    InvalidWeekLink,
    NoEditLinkOnRecord,
    SubmissionError,
)
from src.slotsync.logging import get_logger
from src.slotsync.models import SelectionRequest, SubmissionResult, WeekResult
from src.slotsync.pages.overview import discover_weeks
from src.slotsync.scraper import scrape_week
from src.slotsync.store import EditLinkStore, week_key
from src.slotsync.submitter import ClaimSubmission, ResubmitSubmission

logger = get_logger(__name__)


class Reconciler:
    """Composes gate, discovery, scraper, submitter and store per request.

    Args:
        config: Runtime configuration.
        provider: Page source; any object with an async ``page()`` context
            manager yielding a Playwright-compatible page.
        store: Edit-link store. Defaults to one under ``config.edit_link_dir``.
    """

    def __init__(
        self,
        config: SlotSyncConfig,
        provider: BrowserProvider,
        store: EditLinkStore | None = None,
    ) -> None:
        self.config = config
        self.provider = provider
        self.store = store or EditLinkStore(config.edit_link_dir)
        self.gate = CredentialGate(config.password_hash)

    async def scrape(self, credential: str | None, email: str) -> list[WeekResult]:
        """Scrape every open week for this caller.

        Returns:
            One result per open week, sorted by week number. An empty list
            means no week is open.

        Raises:
            AuthenticationError: If the credential is missing or wrong.
            ServerMisconfigured: If no password hash is configured.
            UpstreamUnavailable: If the overview page cannot be loaded.
        """
        self.gate.verify(credential)
        rules = self.config.rules

        weeks = await discover_weeks(self.provider, self.config.site_url, rules)
        if not weeks:
            logger.info("no_weeks_open")
            return []

        ordered = sorted(weeks.items())
        edit_links = [await self._stored_link(link, email) for _, link in ordered]

        timeslot_lists = await asyncio.gather(
            *(
                scrape_week(
                    self.provider,
                    rules,
                    link,
                    credential,
                    edit_link,
                    attempts=self.config.scrape_attempts,
                    retry_wait=self.config.scrape_retry_wait,
                )
                for (_, link), edit_link in zip(ordered, edit_links)
            )
        )

        results = [
            WeekResult(
                week_number=week_number,
                link=link,
                edit_link=edit_link,
                timeslots=timeslots,
            )
            for (week_number, link), edit_link, timeslots in zip(
                ordered, edit_links, timeslot_lists
            )
        ]
        logger.info("scrape_completed", weeks=[r.week_number for r in results])
        return results

    async def _stored_link(self, week_link: str, email: str) -> str | None:
        try:
            return await self.store.get(week_link, email)
        except ValueError:
            logger.warning("week_link_unkeyable", week_link=week_link)
            return None

    async def submit(
        self,
        credential: str | None,
        email: str,
        username: str,
        week_link: str,
        ids: list[str],
    ) -> SubmissionResult:
        """Make ``ids`` the caller's complete selection for ``week_link``.

        Claims through the public form when no edit link is stored, otherwise
        resets and reselects through the stored edit link.

        Raises:
            AuthenticationError: If the credential is missing or wrong.
            InvalidWeekLink: If ``week_link`` names no poll.
            SubmissionError: If nothing could be submitted.
            PartialSubmission: If the old selection was cleared but the new
                one was not committed.
        """
        self.gate.verify(credential)
        _check_week_link(week_link)
        try:
            request = SelectionRequest(week_link=week_link, ids=frozenset(ids))
        except ValidationError as e:
            raise SubmissionError(
                f"Invalid selection: {e}", week_link=week_link, phase=""
            ) from e

        edit_link = await self.store.get(request.week_link, email)
        if edit_link is None:
            logger.info("submit_routed", strategy="claim", week_link=week_link)
            submission = ClaimSubmission(
                self.provider,
                self.config.rules,
                self.store,
                request,
                credential,
                username,
                email,
            )
        else:
            logger.info("submit_routed", strategy="resubmit", week_link=week_link)
            submission = ResubmitSubmission(
                self.provider, self.config.rules, request, credential, edit_link
            )

        result = await submission.run()
        logger.info(
            "submit_completed",
            strategy=result.strategy.value,
            week_link=week_link,
            selected=sorted(result.selected_ids),
        )
        return result

    async def set_edit_link(
        self, credential: str | None, email: str, week_link: str, edit_link: str
    ) -> None:
        """Store an edit link by hand, replacing any previous one.

        Raises:
            InvalidEditLink: If the link does not match ``edit_link_pattern``.
            InvalidWeekLink: If ``week_link`` names no poll.
        """
        self.gate.verify(credential)
        _check_week_link(week_link)
        edit_link = edit_link.strip()
        if not re.match(self.config.edit_link_pattern, edit_link):
            logger.info("edit_link_rejected", week_link=week_link)
            raise InvalidEditLink(f"Invalid edit link format: {edit_link!r}")
        await self.store.put(week_link, email, edit_link)

    async def edit_link_for(
        self, credential: str | None, email: str, week_link: str
    ) -> str:
        """Return the stored edit link.

        Raises:
            NoEditLinkOnRecord: If none is stored for (week, email).
            InvalidWeekLink: If ``week_link`` names no poll.
        """
        self.gate.verify(credential)
        _check_week_link(week_link)
        edit_link = await self.store.get(week_link, email)
        if edit_link is None:
            raise NoEditLinkOnRecord(f"No edit link stored for {week_link}")
        return edit_link


def _check_week_link(week_link: str) -> None:
    try:
        week_key(week_link)
    except ValueError as e:
        raise InvalidWeekLink(str(e)) from e
