"""OverviewPage - lists the currently open sign-up weeks.

The university sports page links every open week's poll as
``a.ext_link[title*="Zur Trainingsanmeldung"]`` with a label like "KW 23".
A privacy consent modal may cover the page on first visit.
"""

from typing import TYPE_CHECKING

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page, TimeoutError as PlaywrightTimeoutError

from src.slotsync.errors import UpstreamUnavailable
from src.slotsync.logging import get_logger
from src.slotsync.rules import SiteRules, extract_weeks

if TYPE_CHECKING:
    from src.slotsync.browser import BrowserProvider

log = get_logger(__name__)


class OverviewPage:
    """Overview page holding the links to each week's poll."""

    def __init__(self, page: Page, rules: SiteRules) -> None:
        self.page = page
        self.rules = rules

    async def navigate(self, url: str) -> None:
        """Load the overview page and wait for its main content.

        Raises:
            UpstreamUnavailable: If the page or its main content never loads.
        """
        try:
            await self.page.goto(url, wait_until="networkidle")
        except PlaywrightError as e:
            raise UpstreamUnavailable(f"Overview page failed to load: {e}") from e

        await self.dismiss_consent()

        try:
            await self.page.wait_for_selector(self.rules.main_content)
        except PlaywrightTimeoutError as e:
            raise UpstreamUnavailable("Overview page has no main content") from e

        log.info("overview_page_navigated", url=url)

    async def dismiss_consent(self) -> None:
        """Accept the privacy modal if it is showing. Never fails."""
        try:
            if not await self.page.is_visible(self.rules.consent_modal):
                log.debug("consent_modal_absent")
                return
            await self.page.click(self.rules.consent_accept)
            log.debug("consent_modal_dismissed")
        except PlaywrightError as e:
            log.debug("consent_dismiss_skipped", error=str(e))

    async def weeks(self) -> dict[int, str]:
        """Map week number -> poll link for every open week."""
        weeks = extract_weeks(await self.page.content(), self.rules)
        log.info("weeks_extracted", weeks=sorted(weeks))
        return weeks


async def discover_weeks(
    provider: "BrowserProvider", site_url: str, rules: SiteRules
) -> dict[int, str]:
    """List all open weeks.

    Returns:
        ``{}`` when the page loads but no week is open.

    Raises:
        UpstreamUnavailable: If the overview page cannot be loaded.
    """
    async with provider.page() as page:
        overview = OverviewPage(page, rules)
        await overview.navigate(site_url)
        return await overview.weeks()
