"""
Turn a saved schedule-photo transcription into validated bell blocks.

Reads the raw text the image transcriber returned (markdown fences and all),
validates every day, and prints the blocks as JSON. With --day, prints a
DayOverride candidate for that date instead, ready for review and publishing.

Usage:
    python scripts/parse_transcription.py response.txt
    python scripts/parse_transcription.py response.txt --day 2025-10-03 --title "Assembly Day"
"""

import argparse
import json
import sys
from datetime import date
from pathlib import Path

from schoolday.errors import ScheduleValidationError
from schoolday.transcription import (
    override_from_transcription,
    parse_schedule_json,
    validate_transcription,
)


def main():
    parser = argparse.ArgumentParser(description="Validate a schedule transcription")
    parser.add_argument("response", type=Path, help="File with the transcriber's raw output")
    parser.add_argument("--day", type=date.fromisoformat, default=None, help="Build an override for this date")
    parser.add_argument("--title", default="Special Schedule", help="Override title")
    parser.add_argument("--created-by", default="admin", help="Override author")
    args = parser.parse_args()

    if not args.response.exists():
        print(f"Error: response file not found at {args.response}", file=sys.stderr)
        return 1

    try:
        result = parse_schedule_json(args.response.read_text(encoding="utf-8"))
        validate_transcription(result)
        if args.day is not None:
            override = override_from_transcription(result, args.day, args.title, args.created_by)
            print(override.model_dump_json(by_alias=True, indent=2))
            return 0
    except ScheduleValidationError as e:
        print(f"Invalid transcription: {e}", file=sys.stderr)
        return 1

    output = {
        weekday.value: [block.model_dump(mode="json") for block in blocks]
        for weekday, blocks in result.items()
    }
    print(json.dumps(output, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
