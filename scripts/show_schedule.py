"""Print a student's day: every block with what occupies it, as JSON or table.

Standalone CLI script. Assignments come from a JSON file (a list of
ClassAssignment objects, each with a "parity" key) and are loaded into an
in-memory store, so no remote store is needed.

Run with: python scripts/show_schedule.py --assignments data/classes.json
Table:    python scripts/show_schedule.py --assignments data/classes.json --table
Date:     python scripts/show_schedule.py --date 2025-09-15 --table
Override: python scripts/show_schedule.py --override data/assembly-day.json

The override file is a DayOverride (camelCase keys); it is published to the
in-memory store for its day before the schedule is resolved.

Exit codes:
  0 = success (JSON or table on stdout)
  1 = error (message on stderr)
"""

import argparse
import asyncio
import json
import sys
from datetime import date, datetime
from pathlib import Path

from dotenv import load_dotenv

from schoolday.assignments import AssignmentRepository
from schoolday.config import get_config
from schoolday.logging import configure_from
from schoolday.models import ClassAssignment, DayOverride, Parity, format_clock
from schoolday.service import Schoolday
from schoolday.store import InMemoryRecordStore
from schoolday.timegrid import parity_for

load_dotenv()

CLI_USER = "cli"


def _log(msg: str) -> None:
    """Write diagnostic messages to stderr so stdout stays clean for JSON."""
    print(msg, file=sys.stderr)


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Resolve a student's school day block by block.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--date",
        type=date.fromisoformat,
        default=None,
        help="Day to resolve (YYYY-MM-DD). Defaults to today in the school's time zone.",
    )
    parser.add_argument(
        "--assignments",
        type=Path,
        default=None,
        help="JSON file with the student's class assignments.",
    )
    parser.add_argument(
        "--override",
        type=Path,
        default=None,
        help="JSON file with a DayOverride to apply.",
    )
    parser.add_argument(
        "--table",
        action="store_true",
        help="Print a human-readable table instead of JSON.",
    )
    return parser.parse_args()


async def _seed(store: InMemoryRecordStore, path: Path) -> int:
    raw = json.loads(path.read_text(encoding="utf-8"))
    repo = AssignmentRepository(store)
    for item in raw:
        parity = Parity(item.pop("parity"))
        await repo.save_assignment(CLI_USER, parity, ClassAssignment.model_validate(item))
    return len(raw)


def _describe(occupant) -> str:
    if occupant.kind == "class":
        a = occupant.assignment
        return f"{a.class_name} ({a.teacher_name}, {a.room})" if a.room else a.class_name
    if occupant.kind == "activity":
        return occupant.label
    return "Free"


def _format_table(rows: list[dict]) -> str:
    headers = ["Block", "Start", "End", "Occupant"]
    table = [[r["block"], r["start"], r["end"], r["occupant"]] for r in rows]
    widths = [len(h) for h in headers]
    for row in table:
        for i, cell in enumerate(row):
            widths[i] = max(widths[i], len(cell))

    header_line = " | ".join(h.ljust(widths[i]) for i, h in enumerate(headers))
    separator = "-+-".join("-" * w for w in widths)
    row_lines = [" | ".join(cell.ljust(widths[i]) for i, cell in enumerate(row)) for row in table]
    return "\n".join([header_line, separator, *row_lines])


async def main(args: argparse.Namespace) -> None:
    config = get_config()
    configure_from(config, stream=sys.stderr)

    store = InMemoryRecordStore()
    if args.assignments is not None:
        count = await _seed(store, args.assignments)
        _log(f"  Loaded {count} assignments from {args.assignments}")

    engine = await Schoolday.for_user(store, CLI_USER, config=config)
    if args.override is not None:
        override = DayOverride.model_validate_json(args.override.read_text(encoding="utf-8"))
        await engine.overrides.publish_override(override)
        _log(f"  Applied override {override.title!r} for {override.day}")

    day = args.date or engine.now().date()
    parity = parity_for(day)
    _log(f"show_schedule: {day} ({parity.label} week)")

    rows = []
    for block in await engine.day_blocks(day):
        # Resolve each block at its own start instant.
        at = datetime.combine(day, block.start, tzinfo=config.zone)
        occupant = await engine.projection.occupant_for(block, at, parity, engine.context)
        rows.append(
            {
                "block": block.label,
                "start": format_clock(block.start),
                "end": format_clock(block.end),
                "occupant": _describe(occupant),
            }
        )

    if not rows:
        _log("  No blocks on this day")
    if args.table:
        print(_format_table(rows))
    else:
        print(json.dumps(rows, indent=2))


if __name__ == "__main__":
    args = _parse_args()
    try:
        asyncio.run(main(args))
    except Exception as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)
