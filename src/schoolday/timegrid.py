"""Bell schedule tables and block lookup.

The two rotations (Red = parity A, White = parity B) each map a weekday to an
ordered list of TimeBlock. Times are written the way the printed bell schedule
writes them: compact ``H:MM`` where 1:00-3:59 means afternoon.

Block labels:
  "A".."G"   lettered class periods (period 1..7)
  "Ax".."Gx" X sub-blocks, attached to the block with the same letter
  anything else is a named non-class period (see ACTIVITY_LABELS)
"""

from collections.abc import Sequence
from datetime import date, datetime, timedelta

from schoolday.errors import ScheduleValidationError
from schoolday.models import ActivityKind, Parity, TimeBlock, Weekday


def _b(label: str, start: str, end: str) -> TimeBlock:
    return TimeBlock(label=label, start=start, end=end)


_MONDAY = (
    _b("Ax", "8:00", "8:25"),
    _b("A", "8:25", "9:05"),
    _b("F", "9:10", "9:50"),
    _b("Break", "9:55", "10:10"),
    _b("G", "10:15", "10:55"),
    _b("D", "11:00", "11:40"),
    _b("Dx", "11:40", "12:05"),
    _b("Lunch", "12:05", "12:55"),
    _b("Ex", "12:55", "1:20"),
    _b("E", "1:20", "2:00"),
    _b("C", "2:05", "2:45"),
    _b("Senate", "2:50", "3:30"),
)

_TUESDAY = (
    _b("Gx", "8:00", "8:25"),
    _b("G", "8:25", "9:05"),
    _b("CommT", "9:10", "9:50"),
    _b("C", "11:00", "11:40"),
    _b("Cx", "11:40", "12:05"),
    _b("Lunch", "12:05", "12:55"),
    _b("F", "12:55", "1:35"),
    _b("D", "1:40", "2:20"),
    _b("B", "2:25", "3:05"),
    _b("Meet", "3:10", "3:30"),
)

_THURSDAY = (
    _b("FacMtg", "8:30", "9:25"),
    _b("Ex", "9:30", "9:55"),
    _b("E", "9:55", "10:35"),
    _b("G", "10:40", "11:20"),
    _b("B", "11:25", "12:05"),
    _b("Lunch", "12:05", "12:55"),
    _b("Ax", "12:55", "1:20"),
    _b("A", "1:20", "2:00"),
    _b("C", "2:05", "2:45"),
    _b("Cx", "2:45", "3:10"),
    _b("Meet", "3:15", "3:40"),
)

# Chapel Chorus runs until lunch starts at 12:05.
_FRIDAY = (
    _b("Bx", "8:00", "8:25"),
    _b("B", "8:25", "9:05"),
    _b("D", "9:10", "9:50"),
    _b("Announ", "9:55", "10:25"),
    _b("E", "10:30", "11:10"),
    _b("ChChor", "11:15", "12:05"),
    _b("Lunch", "12:05", "12:55"),
    _b("Fx", "12:55", "1:20"),
    _b("F", "1:20", "2:00"),
    _b("A", "2:05", "2:45"),
    _b("Meet", "2:50", "3:15"),
)

RED_WEEK: dict[Weekday, tuple[TimeBlock, ...]] = {
    Weekday.MONDAY: _MONDAY,
    Weekday.TUESDAY: _TUESDAY,
    Weekday.WEDNESDAY: (
        _b("Fx", "8:00", "8:25"),
        _b("F", "8:25", "9:05"),
        _b("E", "9:10", "9:50"),
        _b("Chapel", "9:55", "10:35"),
        _b("B", "10:40", "11:20"),
        _b("Bx", "11:20", "11:45"),
        _b("Lunch", "11:45", "12:15"),
        _b("Athlet", "1:30", "3:30"),
    ),
    Weekday.THURSDAY: _THURSDAY,
    Weekday.FRIDAY: _FRIDAY,
    Weekday.SATURDAY: (
        _b("Dx", "8:45", "9:10"),
        _b("D", "9:10", "9:50"),
        _b("C", "9:55", "10:35"),
        _b("G", "10:40", "11:20"),
        _b("Gx", "11:20", "11:45"),
        _b("Lunch", "11:45", "12:30"),
        _b("Athlet", "1:30", "3:30"),
    ),
}

WHITE_WEEK: dict[Weekday, tuple[TimeBlock, ...]] = {
    Weekday.MONDAY: _MONDAY,
    Weekday.TUESDAY: _TUESDAY,
    Weekday.WEDNESDAY: (
        _b("Dx", "8:00", "8:25"),
        _b("D", "8:25", "9:05"),
        _b("C", "9:10", "9:50"),
        _b("Chapel", "9:55", "10:35"),
        _b("G", "10:40", "11:20"),
        _b("Gx", "11:20", "11:45"),
        _b("Lunch", "11:45", "12:15"),
        _b("Athlet", "1:30", "3:30"),
    ),
    Weekday.THURSDAY: _THURSDAY,
    Weekday.FRIDAY: _FRIDAY,
    Weekday.SATURDAY: (
        _b("Fx", "8:45", "9:10"),
        _b("F", "9:10", "9:50"),
        _b("E", "9:55", "10:35"),
        _b("B", "10:40", "11:20"),
        _b("Bx", "11:20", "11:45"),
        _b("Lunch", "11:45", "12:30"),
        _b("Athlet", "1:30", "3:30"),
    ),
}

STANDARD_TABLES: dict[Parity, dict[Weekday, tuple[TimeBlock, ...]]] = {
    Parity.A: RED_WEEK,
    Parity.B: WHITE_WEEK,
}

# Bell-table labels (and plain names used by overrides) for non-class periods.
ACTIVITY_LABELS: dict[str, ActivityKind] = {
    "lunch": ActivityKind.LUNCH,
    "assembly": ActivityKind.ASSEMBLY,
    "chapel": ActivityKind.CHAPEL,
    "athlet": ActivityKind.ATHLETICS,
    "athletics": ActivityKind.ATHLETICS,
    "commt": ActivityKind.COMMUNITY_TIME,
    "community time": ActivityKind.COMMUNITY_TIME,
    "facmtg": ActivityKind.FACULTY_MEETING,
    "faculty meeting": ActivityKind.FACULTY_MEETING,
    "announ": ActivityKind.ANNOUNCEMENTS,
    "announcements": ActivityKind.ANNOUNCEMENTS,
    "break": ActivityKind.BREAK,
    "senate": ActivityKind.SENATE,
    "meet": ActivityKind.GENERAL_MEETING,
    "general meeting": ActivityKind.GENERAL_MEETING,
    "chchor": ActivityKind.CHAPEL_CHORUS,
    "chapel chorus": ActivityKind.CHAPEL_CHORUS,
}

ACTIVITY_COLORS: dict[ActivityKind, str] = {
    ActivityKind.LUNCH: "#FF9500",
    ActivityKind.BREAK: "#5AC8FA",
    ActivityKind.GENERAL_MEETING: "#AF52DE",
    ActivityKind.CHAPEL: "#FFD60A",
    ActivityKind.SENATE: "#BF5AF2",
    ActivityKind.ATHLETICS: "#32D74B",
    ActivityKind.COMMUNITY_TIME: "#0A84FF",
    ActivityKind.ANNOUNCEMENTS: "#FF453A",
    ActivityKind.CHAPEL_CHORUS: "#FFD60A",
    ActivityKind.FACULTY_MEETING: "#8E8E93",
    ActivityKind.ASSEMBLY: "#C8102E",
}


def activity_for_label(label: str) -> ActivityKind | None:
    """Return the non-class period a block label names, if any."""
    key = " ".join(label.replace("-", " ").split()).lower()
    return ACTIVITY_LABELS.get(key)


def week_of_year(day: date) -> int:
    """Sunday-first week number where week 1 is the week containing January 1.

    The last days of December fall in week 1 when their week contains the
    next January 1. Differs from the ISO week in years starting on Friday or Saturday.
    """
    week_start = day - timedelta(days=day.isoweekday() % 7)
    if (week_start + timedelta(days=6)).year > day.year:
        return 1
    jan1 = date(day.year, 1, 1)
    return (day.timetuple().tm_yday - 1 + jan1.isoweekday() % 7) // 7 + 1


def parity_for(day: date) -> Parity:
    """Red week on even week numbers, White week on odd ones (see week_of_year)."""
    return Parity.A if week_of_year(day) % 2 == 0 else Parity.B


def validate_blocks(blocks: Sequence[TimeBlock]) -> None:
    """Check that blocks are ordered by start time and do not overlap.

    Raises:
        ScheduleValidationError: Naming the first offending block.
    """
    previous: TimeBlock | None = None
    for block in blocks:
        if block.end <= block.start:
            raise ScheduleValidationError(
                f"Block {block.label!r} ends at {block.end} before it starts at {block.start}"
            )
        if previous is not None:
            if block.start < previous.start:
                raise ScheduleValidationError(
                    f"Block {block.label!r} starts before {previous.label!r}"
                )
            if block.start < previous.end:
                raise ScheduleValidationError(
                    f"Block {block.label!r} overlaps {previous.label!r}"
                )
        previous = block


class TimeGrid:
    """Day-of-week x parity lookup over the standard bell tables."""

    def __init__(
        self,
        tables: dict[Parity, dict[Weekday, tuple[TimeBlock, ...]]] | None = None,
    ) -> None:
        self.tables = tables if tables is not None else STANDARD_TABLES

    def schedule_for(
        self,
        day: date,
        parity: Parity,
        override: Sequence[TimeBlock] | None = None,
    ) -> tuple[TimeBlock, ...]:
        """Ordered blocks for a day.

        A non-empty override replaces the table lookup entirely. Days without a
        table entry (Sunday) have no blocks.
        """
        if override:
            return tuple(override)
        return self.tables.get(parity, {}).get(Weekday.of(day), ())

    def current_block(
        self,
        now: datetime,
        parity: Parity,
        override: Sequence[TimeBlock] | None = None,
    ) -> TimeBlock | None:
        """First block with start <= now < end.

        At an exact boundary the block that is starting wins over the one ending.
        """
        for block in self.schedule_for(now.date(), parity, override):
            if block.contains(now):
                return block
        return None

    def next_block(
        self,
        now: datetime,
        parity: Parity,
        override: Sequence[TimeBlock] | None = None,
    ) -> TimeBlock | None:
        """First block, in list order, that starts after now."""
        for block in self.schedule_for(now.date(), parity, override):
            if block.starts_at(now) > now:
                return block
        return None
