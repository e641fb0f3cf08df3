import pytest

from src.slotsync.errors import UpstreamUnavailable
from src.slotsync.pages.overview import OverviewPage, discover_weeks
from src.slotsync.rules import SiteRules
from tests.fakes import OVERVIEW_URL, SLOTS

RULES = SiteRules()


async def test_lists_open_weeks(site, provider):
    first = site.add_week("Kw23AbCdEf", 23, SLOTS)
    second = site.add_week("Kw24GhIjKl", 24, SLOTS)

    weeks = await discover_weeks(provider, OVERVIEW_URL, RULES)

    assert weeks == {23: first.url, 24: second.url}
    assert provider.pages[0].consent_dismissed
    assert provider.open_pages == []


async def test_no_weeks_is_empty_mapping(site, provider):
    assert await discover_weeks(provider, OVERVIEW_URL, RULES) == {}


async def test_non_numeric_labels_are_skipped(site, provider):
    poll = site.add_week("Kw23AbCdEf", 23, SLOTS)
    site.links.append((poll.url + "x", "Zur Trainingsanmeldung", "KW ausgebucht"))

    assert await discover_weeks(provider, OVERVIEW_URL, RULES) == {23: poll.url}


async def test_consent_already_dismissed_is_fine(site, provider):
    site.add_week("Kw23AbCdEf", 23, SLOTS)
    async with provider.page() as page:
        page.consent_dismissed = True
        overview = OverviewPage(page, RULES)
        await overview.navigate(OVERVIEW_URL)
        assert list(await overview.weeks()) == [23]


async def test_unreachable_overview_raises(site, provider):
    site.overview_down = True

    with pytest.raises(UpstreamUnavailable):
        await discover_weeks(provider, OVERVIEW_URL, RULES)
    assert provider.open_pages == []
