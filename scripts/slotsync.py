"""Scrape open sign-up weeks or submit a selection from the command line.

Run with: python scripts/slotsync.py scrape
Debug:    python scripts/slotsync.py --headed scrape
Table:    python scripts/slotsync.py scrape --table
Submit:   python scripts/slotsync.py submit --week-link URL --ids C0 C2
Clear:    python scripts/slotsync.py submit --week-link URL
Set link: python scripts/slotsync.py set-edit-link --week-link URL --edit-link URL
Show:     python scripts/slotsync.py show-edit-link --week-link URL
Hash:     python scripts/slotsync.py hash-password

Identity comes from --email/--name or SLOTSYNC_EMAIL/SLOTSYNC_NAME; the
access password from SLOTSYNC_PASSWORD (prompted for when unset).

Exit codes:
  0 = success (JSON or table on stdout)
  1 = error (message on stderr)
  2 = selection cleared but new one not committed
"""

import argparse
import asyncio
import getpass
import json
import os
import sys

from dotenv import load_dotenv

load_dotenv()

# Add project root to path for src imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from src.slotsync.auth import hash_password  # noqa: E402
from src.slotsync.browser import BrowserProvider  # noqa: E402
from src.slotsync.config import get_config  # noqa: E402
from src.slotsync.errors import PartialSubmission  # noqa: E402
from src.slotsync.logging import setup_logging  # noqa: E402
from src.slotsync.models import WeekResult  # noqa: E402
from src.slotsync.service import Reconciler  # noqa: E402


def _log(msg: str) -> None:
    """Write diagnostic messages to stderr so stdout stays clean for JSON."""
    print(msg, file=sys.stderr)


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Scrape or update your selection on the weekly sign-up polls.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--headed",
        action="store_true",
        help="Launch browser in headed mode (visible window).",
    )
    parser.add_argument(
        "--email",
        default=os.getenv("SLOTSYNC_EMAIL", ""),
        help="Your email address (default: $SLOTSYNC_EMAIL).",
    )
    parser.add_argument(
        "--name",
        default=os.getenv("SLOTSYNC_NAME", ""),
        help="Name shown on the poll (default: $SLOTSYNC_NAME).",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    scrape = sub.add_parser("scrape", help="List open weeks with availability.")
    scrape.add_argument(
        "--table",
        action="store_true",
        help="Human-readable table grouped by day instead of JSON.",
    )

    submit = sub.add_parser("submit", help="Replace your selection for a week.")
    submit.add_argument("--week-link", required=True)
    submit.add_argument(
        "--ids",
        nargs="*",
        default=[],
        help="Timeslot ids to select; omit to clear the selection.",
    )

    set_link = sub.add_parser("set-edit-link", help="Store an edit link by hand.")
    set_link.add_argument("--week-link", required=True)
    set_link.add_argument("--edit-link", required=True)

    show_link = sub.add_parser("show-edit-link", help="Print the stored edit link.")
    show_link.add_argument("--week-link", required=True)

    sub.add_parser(
        "hash-password", help="Print a bcrypt hash for the PASSWORD_HASH setting."
    )

    return parser.parse_args()


def _day_of(label: str) -> str:
    """Leading day part of a timeslot label ("Mo 02.06.2025 17:00" -> "Mo 02.06.2025")."""
    parts = label.rsplit(" ", 1)
    return parts[0] if len(parts) == 2 else label


def _format_table(weeks: list[WeekResult]) -> str:
    """Weeks as text, one block per day; adjacent slots share a day."""
    if not weeks:
        return "(no weeks open)"

    lines: list[str] = []
    for week in weeks:
        lines.append(f"Week {week.week_number}  {week.link}")
        if week.edit_link:
            lines.append(f"  edit link: {week.edit_link}")
        if not week.timeslots:
            lines.append("  (could not be scraped)")
        current_day = None
        for slot in week.timeslots:
            day = _day_of(slot.datetime)
            if day != current_day:
                lines.append(f"  {day}")
                current_day = day
            mark = "x" if slot.selected else " "
            state = "free" if slot.available else "-"
            lines.append(f"    [{mark}] {slot.id:<6} {slot.datetime:<24} {state}")
        lines.append("")
    return "\n".join(lines).rstrip()


async def main(args: argparse.Namespace) -> int:
    config = get_config()
    setup_logging(json_output=config.log_json, log_level=config.log_level)

    if args.command == "hash-password":
        print(hash_password(getpass.getpass("Password to hash: ")))
        return 0

    if not args.email:
        _log("ERROR: no email given (--email or SLOTSYNC_EMAIL)")
        return 1
    password = os.getenv("SLOTSYNC_PASSWORD") or getpass.getpass("Password: ")

    async with BrowserProvider(
        headless=config.headless and not args.headed,
        timeout_ms=config.page_timeout_ms,
        block_resources=config.block_resources,
    ) as provider:
        reconciler = Reconciler(config, provider)

        if args.command == "scrape":
            weeks = await reconciler.scrape(password, args.email)
            if not weeks:
                _log("No weeks open")
            if args.table:
                print(_format_table(weeks))
            else:
                output = [week.model_dump(mode="json") for week in weeks]
                print(json.dumps(output, indent=2, ensure_ascii=False))

        elif args.command == "submit":
            if not args.name:
                _log("ERROR: no name given (--name or SLOTSYNC_NAME)")
                return 1
            try:
                result = await reconciler.submit(
                    password, args.email, args.name, args.week_link, args.ids
                )
            except PartialSubmission as e:
                _log(f"ERROR: {e}")
                _log(f"  cleared: {sorted(e.cleared_ids)}")
                _log(f"  not set: {sorted(e.desired_ids)}")
                return 2
            print(json.dumps(result.model_dump(mode="json"), indent=2))

        elif args.command == "set-edit-link":
            await reconciler.set_edit_link(
                password, args.email, args.week_link, args.edit_link
            )
            _log("Edit link stored")

        elif args.command == "show-edit-link":
            print(await reconciler.edit_link_for(password, args.email, args.week_link))

    return 0


if __name__ == "__main__":
    args = _parse_args()
    try:
        sys.exit(asyncio.run(main(args)))
    except Exception as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)
