import pytest

from src.slotsync.errors import (
    InvalidCredential,
    InvalidEditLink,
    InvalidWeekLink,
    MissingCredential,
    NoEditLinkOnRecord,
    PartialSubmission,
    ServerMisconfigured,
    SubmissionError,
    UpstreamUnavailable,
)
from src.slotsync.models import Strategy
from src.slotsync.service import Reconciler
from tests.fakes import PASSWORD, SLOTS, FakeBrowserProvider

EMAIL = "sam@example.org"


def _selected(week) -> set[str]:
    return {slot.id for slot in week.timeslots if slot.selected}


async def test_scrape_reports_each_open_week(site, reconciler, store):
    week5 = site.add_week("Kw05AbCdEf", 5, SLOTS, free={"C1", "C3"})
    week6 = site.add_week("Kw06GhIjKl", 6, SLOTS[:2])
    vote = site.add_vote(week5, "Sam", EMAIL, {"C0", "C2"})
    await store.put(week5.url, EMAIL, week5.edit_url(vote.vote_id))

    weeks = await reconciler.scrape(PASSWORD, EMAIL)

    assert [w.week_number for w in weeks] == [5, 6]
    first, second = weeks
    assert first.link == week5.url
    assert first.edit_link == week5.edit_url(vote.vote_id)
    assert _selected(first) == {"C0", "C2"}
    assert {s.id for s in first.timeslots if s.available} == {"C1", "C3"}
    assert second.edit_link is None
    assert [s.id for s in second.timeslots] == ["C0", "C1"]
    assert _selected(second) == set()


async def test_scrape_with_no_open_weeks_is_empty(reconciler):
    assert await reconciler.scrape(PASSWORD, EMAIL) == []


async def test_one_failing_week_does_not_abort_others(site, reconciler, provider):
    site.add_week("Kw05AbCdEf", 5, SLOTS, broken=True)
    site.add_week("Kw06GhIjKl", 6, SLOTS)

    weeks = await reconciler.scrape(PASSWORD, EMAIL)

    assert [len(w.timeslots) for w in weeks] == [0, 4]
    assert provider.open_pages == []


async def test_scrape_overview_down_raises(site, reconciler):
    site.overview_down = True

    with pytest.raises(UpstreamUnavailable):
        await reconciler.scrape(PASSWORD, EMAIL)


async def test_scrape_browser_unavailable_raises(config, site, store):
    reconciler = Reconciler(config, FakeBrowserProvider(site, broken=True), store)

    with pytest.raises(UpstreamUnavailable):
        await reconciler.scrape(PASSWORD, EMAIL)


@pytest.mark.parametrize(
    "credential, error",
    [(None, MissingCredential), ("", MissingCredential), ("guess", InvalidCredential)],
)
async def test_gate_runs_before_browser_work(reconciler, provider, credential, error):
    with pytest.raises(error):
        await reconciler.scrape(credential, EMAIL)
    with pytest.raises(error):
        await reconciler.submit(credential, EMAIL, "Sam", "https://x.org/W", ["C0"])

    assert provider.pages == []


async def test_missing_hash_is_server_misconfiguration(config, provider, store):
    config.password_hash = ""
    reconciler = Reconciler(config, provider, store)

    with pytest.raises(ServerMisconfigured):
        await reconciler.scrape(PASSWORD, EMAIL)


async def test_first_submit_claims_then_resubmits(site, reconciler, store):
    poll = site.add_week("Kw05AbCdEf", 5, SLOTS)

    first = await reconciler.submit(PASSWORD, EMAIL, "Sam", poll.url, ["C0", "C2"])

    assert first.strategy is Strategy.CLAIM
    assert [a[0] for a in site.actions].count("claim") == 1
    assert await store.get(poll.url, EMAIL) == first.edit_link

    site.actions.clear()
    second = await reconciler.submit(PASSWORD, EMAIL, "Sam", poll.url, ["C1"])

    assert second.strategy is Strategy.RESUBMIT
    assert "claim" not in [a[0] for a in site.actions]
    assert len(poll.votes) == 1


async def test_scrape_submit_scrape_round_trip(site, reconciler):
    poll = site.add_week("Kw05AbCdEf", 5, SLOTS)
    await reconciler.submit(PASSWORD, EMAIL, "Sam", poll.url, ["C0", "C3"])

    (week,) = await reconciler.scrape(PASSWORD, EMAIL)
    assert _selected(week) == {"C0", "C3"}

    await reconciler.submit(PASSWORD, EMAIL, "Sam", poll.url, ["C1"])

    (week,) = await reconciler.scrape(PASSWORD, EMAIL)
    assert _selected(week) == {"C1"}


async def test_selection_is_per_email(site, reconciler):
    poll = site.add_week("Kw05AbCdEf", 5, SLOTS)
    await reconciler.submit(PASSWORD, EMAIL, "Sam", poll.url, ["C0"])
    await reconciler.submit(PASSWORD, "alex@example.org", "Alex", poll.url, ["C2"])

    (sam,) = await reconciler.scrape(PASSWORD, EMAIL)
    (alex,) = await reconciler.scrape(PASSWORD, "alex@example.org")

    assert _selected(sam) == {"C0"}
    assert _selected(alex) == {"C2"}


async def test_partial_submission_surfaces_to_caller(site, reconciler, store):
    poll = site.add_week("Kw05AbCdEf", 5, SLOTS, edit_saves_left=1)
    vote = site.add_vote(poll, "Sam", EMAIL, {"C0"})
    await store.put(poll.url, EMAIL, poll.edit_url(vote.vote_id))

    with pytest.raises(PartialSubmission):
        await reconciler.submit(PASSWORD, EMAIL, "Sam", poll.url, ["C1"])


async def test_set_and_read_edit_link(reconciler, store):
    week = "https://terminplaner4.dfn.de/Kw05AbCdEf"
    link = "https://terminplaner4.dfn.de/Kw05AbCdEf/vote/q8Zr2LmN"

    await reconciler.set_edit_link(PASSWORD, EMAIL, week, f"  {link} ")

    assert await store.get(week, EMAIL) == link
    assert await reconciler.edit_link_for(PASSWORD, EMAIL, week) == link


@pytest.mark.parametrize(
    "link",
    [
        "https://evil.example.org/Kw05/vote/abc",
        "https://terminplaner4.dfn.de/Kw05AbCdEf",
        "not a link",
    ],
)
async def test_set_edit_link_rejects_foreign_links(reconciler, store, link):
    week = "https://terminplaner4.dfn.de/Kw05AbCdEf"

    with pytest.raises(InvalidEditLink):
        await reconciler.set_edit_link(PASSWORD, EMAIL, week, link)
    assert await store.get(week, EMAIL) is None


async def test_edit_link_for_unknown_week(reconciler):
    with pytest.raises(NoEditLinkOnRecord):
        await reconciler.edit_link_for(
            PASSWORD, EMAIL, "https://terminplaner4.dfn.de/Kw05AbCdEf"
        )


@pytest.mark.parametrize("week_link", ["https://terminplaner4.dfn.de/", ""])
async def test_week_link_without_poll_is_rejected(reconciler, provider, week_link):
    with pytest.raises(InvalidWeekLink):
        await reconciler.submit(PASSWORD, EMAIL, "Sam", week_link, ["C0"])
    with pytest.raises(InvalidWeekLink):
        await reconciler.edit_link_for(PASSWORD, EMAIL, week_link)
    with pytest.raises(InvalidWeekLink):
        await reconciler.set_edit_link(
            PASSWORD, EMAIL, week_link, "https://terminplaner4.dfn.de/Kw05/vote/abc"
        )

    assert provider.pages == []


async def test_blank_slot_id_is_a_submission_error(site, reconciler, provider):
    poll = site.add_week("Kw05AbCdEf", 5, SLOTS)

    with pytest.raises(SubmissionError):
        await reconciler.submit(PASSWORD, EMAIL, "Sam", poll.url, ["C0", "  "])
    assert provider.pages == []


async def test_browser_error_after_clear_surfaces_as_partial(site, reconciler, store):
    poll = site.add_week("Kw05AbCdEf", 5, SLOTS)
    vote = site.add_vote(poll, "Sam", EMAIL, {"C0", "C2"})
    await store.put(poll.url, EMAIL, poll.edit_url(vote.vote_id))
    site.stuck_controls.add("[value='2']")

    with pytest.raises(PartialSubmission) as excinfo:
        await reconciler.submit(PASSWORD, EMAIL, "Sam", poll.url, ["C1"])

    assert excinfo.value.cleared_ids == {"C0", "C2"}
    assert vote.yes == set()
