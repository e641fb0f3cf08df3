"""PollPage - one week's sign-up poll on the scheduling site.

The same page object serves the public poll URL and a personal edit link
(``<poll>/vote/<vote>``); both may sit behind a shared password prompt.

The vote form is a row of radio pairs, one pair per timeslot column
(value 2 = yes, value 0 = no). Submitting the form stores exactly what is
checked, so a selection can only be replaced as a whole.
"""

from collections.abc import Iterable

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page, TimeoutError as PlaywrightTimeoutError

from src.slotsync.errors import UpstreamUnavailable
from src.slotsync.logging import get_logger
from src.slotsync.models import Timeslot
from src.slotsync.rules import (
    SiteRules,
    extract_available_ids,
    extract_edit_link,
    extract_selected_ids,
    extract_timeslots,
)

log = get_logger(__name__)


class PollPage:
    """A week's poll, public or opened through an edit link."""

    def __init__(self, page: Page, rules: SiteRules) -> None:
        self.page = page
        self.rules = rules

    async def open(self, url: str, password: str) -> None:
        """Navigate to ``url``, unlock it if prompted and wait for the results.

        Raises:
            UpstreamUnavailable: If the page fails to load or the results
                table never renders (including a rejected password).
        """
        try:
            await self.page.goto(url, wait_until="networkidle")
        except PlaywrightError as e:
            raise UpstreamUnavailable(f"Poll page failed to load: {e}") from e

        try:
            if await self.page.query_selector(self.rules.password_input):
                await self.page.fill(self.rules.password_input, password)
                await self.page.click(self.rules.password_submit)
                log.debug("poll_password_submitted", url=url)
        except PlaywrightError as e:
            raise UpstreamUnavailable(f"Password prompt on {url} failed: {e}") from e

        try:
            await self.page.wait_for_selector(self.rules.results_table)
        except PlaywrightTimeoutError as e:
            raise UpstreamUnavailable(f"Results table never appeared on {url}") from e
        except PlaywrightError as e:
            raise UpstreamUnavailable(f"Poll page {url} broke while loading: {e}") from e

        log.debug("poll_page_opened", url=url)

    async def _html(self) -> str:
        return await self.page.content()

    async def timeslots(self) -> list[Timeslot]:
        """Column headers as unselected, unavailable timeslots, in page order."""
        return [
            Timeslot(id=slot_id, datetime=label)
            for slot_id, label in extract_timeslots(await self._html(), self.rules)
        ]

    async def available_ids(self) -> set[str]:
        return extract_available_ids(await self._html(), self.rules)

    async def selected_ids(self) -> set[str]:
        """Ids checked "yes" in the caller's own row (edit-link pages only)."""
        return extract_selected_ids(await self._html(), self.rules)

    async def _require(self, selector: str, what: str) -> None:
        if await self.page.query_selector(selector) is None:
            raise UpstreamUnavailable(f"{what} not found ({selector})")

    async def _fill(self, selector: str, value: str) -> None:
        try:
            await self.page.fill(selector, value)
        except PlaywrightError as e:
            raise UpstreamUnavailable(f"Could not fill {selector}: {e}") from e

    async def _check(self, selector: str) -> None:
        try:
            await self.page.check(selector)
        except PlaywrightError as e:
            raise UpstreamUnavailable(f"Could not check {selector}: {e}") from e

    async def mark(self, ids: Iterable[str], *, yes: bool) -> None:
        """Check the yes (or no) control of every given timeslot.

        Raises:
            UpstreamUnavailable: If a timeslot has no control on this page or
                the control cannot be checked.
        """
        template = self.rules.yes_control if yes else self.rules.no_control
        ids = sorted(ids)
        for slot_id in ids:
            selector = template.format(slot_id=slot_id)
            await self._require(selector, f"Control for timeslot {slot_id}")
            await self._check(selector)
        log.debug("timeslots_marked", ids=ids, yes=yes)

    async def fill_identity(self, name: str, email: str) -> None:
        await self._require(self.rules.name_input, "Name field")
        await self._fill(self.rules.name_input, name)
        await self._fill(self.rules.email_input, email)

    async def submit(self, selector: str) -> None:
        """Click a submit control and wait for the resulting navigation.

        Raises:
            UpstreamUnavailable: If the control is missing, cannot be
                clicked, or the navigation does not finish.
        """
        await self._require(selector, "Submit control")
        try:
            async with self.page.expect_navigation(wait_until="networkidle"):
                await self.page.click(selector)
        except PlaywrightError as e:
            raise UpstreamUnavailable(f"Form submission via {selector} failed: {e}") from e
        log.debug("form_submitted", control=selector)

    async def request_edit_link(self, email: str) -> str | None:
        """Ask the site for a personal edit link on the post-claim page.

        Returns:
            The issued edit link, or None if the request form or the
            confirmation banner is missing, or the request itself fails.
        """
        if await self.page.query_selector(self.rules.edit_link_email_input) is None:
            log.warning("edit_link_form_missing")
            return None
        try:
            await self._fill(self.rules.edit_link_email_input, email)
            await self.submit(self.rules.edit_link_request)
        except UpstreamUnavailable as e:
            log.warning("edit_link_request_failed", error=str(e))
            return None
        return extract_edit_link(await self._html(), self.rules)
