"""Per-week scraping: availability from the public poll, selection from the
caller's edit link.

A failing week never takes its siblings down: transient errors are retried,
anything left over is logged and the week comes back with no timeslots.
"""

from typing import TYPE_CHECKING

from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from src.slotsync.errors import TransientError
from src.slotsync.logging import get_logger
from src.slotsync.models import Timeslot
from src.slotsync.pages.poll import PollPage
from src.slotsync.rules import SiteRules

if TYPE_CHECKING:
    from src.slotsync.browser import BrowserProvider

logger = get_logger(__name__)


async def _scrape_once(
    provider: "BrowserProvider",
    rules: SiteRules,
    week_link: str,
    password: str,
    edit_link: str | None,
) -> list[Timeslot]:
    async with provider.page() as page:
        poll = PollPage(page, rules)
        await poll.open(week_link, password)

        timeslots = await poll.timeslots()
        available = await poll.available_ids()
        for slot in timeslots:
            slot.available = slot.id in available

        if edit_link is None:
            return timeslots

        # Same page, now on the caller's personal link
        await poll.open(edit_link, password)
        selected = await poll.selected_ids()
        for slot in timeslots:
            slot.selected = slot.id in selected
            if slot.selected and not slot.available:
                logger.debug("own_slot_unavailable", week_link=week_link, id=slot.id)

        unknown = selected - {slot.id for slot in timeslots}
        if unknown:
            logger.warning(
                "selected_ids_not_on_public_page",
                week_link=week_link,
                ids=sorted(unknown),
            )
        return timeslots


async def scrape_week(
    provider: "BrowserProvider",
    rules: SiteRules,
    week_link: str,
    password: str,
    edit_link: str | None = None,
    *,
    attempts: int = 2,
    retry_wait: float = 2.0,
) -> list[Timeslot]:
    """Build the ordered timeslot list for one week.

    Args:
        provider: Source of isolated pages.
        rules: Site selectors and extraction rules.
        week_link: Public poll URL.
        password: Password typed into the poll's prompt, if shown.
        edit_link: The caller's stored edit link, if any.
        attempts: Tries on transient errors before giving up.
        retry_wait: Seconds between tries.

    Returns:
        Timeslots in column order, or an empty list if the week could not
        be scraped.
    """
    try:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(attempts),
            wait=wait_fixed(retry_wait),
            retry=retry_if_exception_type(TransientError),
            reraise=True,
        ):
            with attempt:
                timeslots = await _scrape_once(
                    provider, rules, week_link, password, edit_link
                )
    except Exception as e:
        logger.error(
            "week_scrape_failed",
            week_link=week_link,
            error=str(e),
            type=type(e).__name__,
        )
        return []

    logger.info(
        "week_scraped",
        week_link=week_link,
        timeslots=len(timeslots),
        available=sum(slot.available for slot in timeslots),
        selected=sum(slot.selected for slot in timeslots),
    )
    return timeslots
