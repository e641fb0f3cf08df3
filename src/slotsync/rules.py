"""Declarative extraction rules for the sign-up site.

A RecordRule selects elements with a CSS selector and reads one or more
named fields from each match (an attribute, or the element text when no
attribute is given), optionally narrowed by a regex whose first group is
kept. Records where any field is missing or fails its pattern are dropped.

Rules run against serialized page HTML (``await page.content()``), so they
can be exercised with fixture HTML and no browser.

DOM shape (overview page, university sports site):
  main.hsmw-main
    a.ext_link[href*=terminplaner][title*="Zur Trainingsanmeldung"] -> "KW 23"

DOM shape (poll page, terminplaner4.dfn.de):
  form input#password + .btn-success         (only while password-protected)
  table.results
    thead th#C0[title="Mo 02.06.2025 17:00"] ...
    tbody tr -> td[headers=C0] > span.yes | span.no        (existing rows)
    tbody tr.edit-row -> td[headers=C0] input[type=radio][value=2|0]
  .alert-success a[href*="/vote/"]           (edit link confirmation)
"""

import re

from bs4 import BeautifulSoup, Tag
from pydantic import BaseModel

from src.slotsync.logging import get_logger

log = get_logger(__name__)


class FieldRule(BaseModel):
    """How to read one value out of a matched element."""

    attribute: str | None = None  # None reads the element's text
    pattern: str | None = None  # regex; group 1 (or the whole match) is kept

    model_config = {"frozen": True}

    def read(self, element: Tag) -> str | None:
        if self.attribute is None:
            raw = element.get_text(" ", strip=True)
        else:
            raw = element.get(self.attribute)
            # bs4 returns multi-valued attributes (class, headers) as lists
            if isinstance(raw, list):
                raw = " ".join(raw)
        if raw is None:
            return None
        raw = raw.strip()
        if not raw:
            return None
        if self.pattern is None:
            return raw
        match = re.search(self.pattern, raw)
        if match is None:
            return None
        return match.group(1) if match.groups() else match.group(0)


class RecordRule(BaseModel):
    """Selector plus the named fields read from every matching element."""

    selector: str
    columns: dict[str, FieldRule]

    model_config = {"frozen": True}

    def extract(self, html: str) -> list[dict[str, str]]:
        """Apply the rule to an HTML document.

        Returns:
            One dict per matching element, in document order.
        """
        soup = BeautifulSoup(html, "html.parser")
        records: list[dict[str, str]] = []
        dropped = 0
        for element in soup.select(self.selector):
            record: dict[str, str] = {}
            for name, field in self.columns.items():
                value = field.read(element)
                if value is None:
                    break
                record[name] = value
            else:
                records.append(record)
                continue
            dropped += 1

        if dropped:
            log.debug("records_dropped", selector=self.selector, dropped=dropped)
        return records

    def first(self, html: str) -> dict[str, str] | None:
        records = self.extract(html)
        return records[0] if records else None


def _id_rule(selector: str) -> RecordRule:
    return RecordRule(selector=selector, columns={"id": FieldRule(attribute="headers")})


class SiteRules(BaseModel):
    """Every selector and extraction rule that depends on the remote DOM.

    Overridable from the environment via ``RULES__<FIELD>`` (see config).
    Control selectors containing ``{slot_id}`` are formatted per timeslot.
    """

    # Overview page
    consent_modal: str = "#privacySettingsModal"
    consent_accept: str = "#hsmwPrivacyAcceptAllButton"
    main_content: str = ".hsmw-main"
    week_links: RecordRule = RecordRule(
        selector=(
            "a.ext_link[href*='terminplaner']"
            "[title*='Zur Trainingsanmeldung']"
        ),
        columns={
            "link": FieldRule(attribute="href"),
            "week_number": FieldRule(pattern=r"(\d+)\s*$"),
        },
    )

    # Poll page: password prompt
    password_input: str = "#password"
    password_submit: str = ".btn-success"
    results_table: str = ".results"

    # Poll page: reads
    timeslots: RecordRule = RecordRule(
        selector=".results thead th[id][title]",
        columns={
            "id": FieldRule(attribute="id"),
            "datetime": FieldRule(attribute="title"),
        },
    )
    available: RecordRule = _id_rule(".results tbody td[headers]:has(.yes)")
    selected: RecordRule = _id_rule(
        ".results tbody td[headers]:has(input[type='radio'][value='2'][checked])"
    )
    edit_link: RecordRule = RecordRule(
        selector=".alert-success a[href*='/vote/']",
        columns={"link": FieldRule(attribute="href")},
    )

    # Poll page: controls
    yes_control: str = "td[headers='{slot_id}'] input[type='radio'][value='2']"
    no_control: str = "td[headers='{slot_id}'] input[type='radio'][value='0']"
    name_input: str = "#name"
    email_input: str = "#mail"
    claim_submit: str = "button[name='save']"
    edit_link_email_input: str = "#email"
    edit_link_request: str = "button[name='send_edit_link_by_mail']"
    edit_submit: str = "button[name='edit_vote']"

    model_config = {"frozen": True}


def extract_weeks(html: str, rules: SiteRules) -> dict[int, str]:
    """Map week number -> week link from the overview page.

    Labels without a trailing number never make it past the rule's pattern.
    """
    weeks: dict[int, str] = {}
    for record in rules.week_links.extract(html):
        weeks[int(record["week_number"])] = record["link"]
    return weeks


def extract_timeslots(html: str, rules: SiteRules) -> list[tuple[str, str]]:
    """Return (id, datetime label) pairs in column order."""
    seen: set[str] = set()
    slots: list[tuple[str, str]] = []
    for record in rules.timeslots.extract(html):
        if record["id"] in seen:
            continue
        seen.add(record["id"])
        slots.append((record["id"], record["datetime"]))
    return slots


def extract_available_ids(html: str, rules: SiteRules) -> set[str]:
    return {record["id"] for record in rules.available.extract(html)}


def extract_selected_ids(html: str, rules: SiteRules) -> set[str]:
    """Ids checked "yes" in the caller's own (editable) row."""
    return {record["id"] for record in rules.selected.extract(html)}


def extract_edit_link(html: str, rules: SiteRules) -> str | None:
    record = rules.edit_link.first(html)
    return record["link"] if record else None
