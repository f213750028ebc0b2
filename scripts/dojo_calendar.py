"""Show a city's resolved class calendar, month overview or next class.

Reads the JSON documents under DOJO_DATA_DIR and prints JSON (default) or a
human-readable table. Never writes anything.

Run with: python scripts/dojo_calendar.py --city Springfield
Range:    python scripts/dojo_calendar.py --city Springfield --from 2026-10-19 --to 2026-10-31
Table:    python scripts/dojo_calendar.py --city Springfield --table
Month:    python scripts/dojo_calendar.py --city Springfield --month 2026-11
Next:     python scripts/dojo_calendar.py --city Springfield --next-class
Student:  python scripts/dojo_calendar.py --student abc123 --next-class

Exit codes:
  0 = success (JSON or table on stdout)
  1 = error, e.g. unknown city (message on stderr)
"""

import argparse
import json
import os
import sys
from datetime import date, timedelta

from dotenv import load_dotenv

load_dotenv()

# Add project root to path for src imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from src.dojo.config import get_config  # noqa: E402
from src.dojo.logging import setup_logging_from_config  # noqa: E402
from src.dojo.models import Occurrence  # noqa: E402
from src.dojo.schedule import WEEKDAY_NAMES  # noqa: E402
from src.dojo.services import build_services  # noqa: E402
from src.dojo.timeutils import format_date_br, local_now, local_today  # noqa: E402

DEFAULT_RANGE_DAYS = 6


def _log(msg: str) -> None:
    """Write diagnostic messages to stderr so stdout stays clean for JSON."""
    print(msg, file=sys.stderr)


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments using argparse."""
    parser = argparse.ArgumentParser(
        description="Show a city's class calendar, month overview or next class.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--city", type=str, help="City id (as listed by /cidades).")
    target.add_argument(
        "--student",
        type=str,
        help="Student id; the city is read from the student's profile.",
    )

    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--next-class",
        action="store_true",
        help="Print only the next upcoming class.",
    )
    mode.add_argument(
        "--month",
        type=str,
        default=None,
        help="Print the day status of every day in YYYY-MM.",
    )

    parser.add_argument(
        "--from",
        dest="from_date",
        type=date.fromisoformat,
        default=None,
        help="First date of the range (default: today).",
    )
    parser.add_argument(
        "--to",
        dest="to_date",
        type=date.fromisoformat,
        default=None,
        help=f"Last date of the range (default: first date + {DEFAULT_RANGE_DAYS} days).",
    )
    parser.add_argument(
        "--table",
        action="store_true",
        help="Output a human-readable table instead of JSON.",
    )
    return parser.parse_args(argv)


def _format_table(headers: list[str], rows: list[list[str]]) -> str:
    widths = [len(h) for h in headers]
    for row in rows:
        for i, cell in enumerate(row):
            widths[i] = max(widths[i], len(cell))

    header_line = " | ".join(h.ljust(widths[i]) for i, h in enumerate(headers))
    separator = "-+-".join("-" * w for w in widths)
    row_lines = [
        " | ".join(cell.ljust(widths[i]) for i, cell in enumerate(row)) for row in rows
    ]
    return "\n".join([header_line, separator, *row_lines])


def _occurrence_rows(occurrences: list[Occurrence]) -> list[list[str]]:
    return [
        [
            format_date_br(o.date),
            WEEKDAY_NAMES[(o.date.weekday() + 1) % 7],
            o.time_range,
            o.class_type,
            o.source_kind.value,
        ]
        for o in occurrences
    ]


def main(args: argparse.Namespace) -> int:
    config = get_config()
    setup_logging_from_config(config)
    services = build_services(config)

    city_id = args.city
    if args.student:
        city_id = services.students.get(args.student).city_id
        _log(f"dojo_calendar: student {args.student} -> city {city_id}")
    elif services.cities.get_city(city_id) is None:
        _log(f"ERROR: unknown city {city_id!r} (not listed by /cidades)")
        return 1

    now = local_now(config.tz)

    if args.next_class:
        occurrence = services.next_class.find_next_class(city_id, now)
        if occurrence is None:
            _log(f"  No class in the next {config.next_class_horizon_days} days")
            print("null" if not args.table else "(no upcoming class)")
            return 0
        if args.table:
            print(_format_table(["Data", "Dia", "Horário", "Aula", "Origem"], _occurrence_rows([occurrence])))
        else:
            print(json.dumps(occurrence.model_dump(mode="json"), indent=2, ensure_ascii=False))
        return 0

    if args.month:
        year, month = (int(part) for part in args.month.split("-"))
        days = services.schedule.month_calendar(city_id, year, month)
        if args.table:
            rows = [[format_date_br(d.date), WEEKDAY_NAMES[d.weekday], d.status.value] for d in days]
            print(_format_table(["Data", "Dia", "Status"], rows))
        else:
            print(json.dumps([d.model_dump(mode="json") for d in days], indent=2, ensure_ascii=False))
        return 0

    from_date = args.from_date or local_today(config.tz)
    to_date = args.to_date or from_date + timedelta(days=DEFAULT_RANGE_DAYS)
    occurrences = services.resolver.resolve(city_id, from_date, to_date)
    _log(f"  {len(occurrences)} classes in {city_id} from {from_date} to {to_date}")

    if args.table:
        print(_format_table(["Data", "Dia", "Horário", "Aula", "Origem"], _occurrence_rows(occurrences)))
    else:
        print(json.dumps([o.model_dump(mode="json") for o in occurrences], indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    args = _parse_args()
    try:
        sys.exit(main(args))
    except Exception as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)
