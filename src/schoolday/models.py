"""Pydantic models for bell schedules, assignments, votes and live status.

All data structures use Pydantic v2 for validation, serialization, and type safety.
Stored models use camelCase aliases (``className``, ``voteCount``) so records keep
the field names the remote store has always used.
"""

import re
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator
from pydantic.alias_generators import to_camel

from schoolday.errors import ScheduleValidationError

BLOCK_LETTERS = "ABCDEFG"
BlockLetter = Literal["A", "B", "C", "D", "E", "F", "G"]

DEFAULT_CLASS_COLOR = "#C8102E"

_CLOCK_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*$")


def new_id() -> str:
    return str(uuid4())


def parse_clock(value: str) -> time:
    """Parse a compact ``H:MM`` bell-table time.

    Hours 1-3 are read as PM ("1:20" is 13:20). Every other hour is taken as
    written, so "8:00" is 08:00 and "12:05" is 12:05.

    Raises:
        ScheduleValidationError: If the string is not a valid ``H:MM`` time.
    """
    match = _CLOCK_RE.match(value)
    if not match:
        raise ScheduleValidationError(f"Invalid clock time {value!r}, expected H:MM")
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        raise ScheduleValidationError(f"Clock time {value!r} out of range")
    if 1 <= hour <= 3:
        hour += 12
    return time(hour, minute)


def format_clock(value: time) -> str:
    """Inverse of parse_clock: 13:20 -> "1:20", 08:05 -> "8:05"."""
    hour = value.hour - 12 if 13 <= value.hour <= 15 else value.hour
    return f"{hour}:{value.minute:02d}"


class Parity(str, Enum):
    """The two alternating week rotations."""

    A = "A"
    B = "B"

    @property
    def label(self) -> str:
        return "Red" if self is Parity.A else "White"

    @property
    def other(self) -> "Parity":
        return Parity.B if self is Parity.A else Parity.A


class Weekday(str, Enum):
    """Day names numbered 1..7 from Sunday, independent of locale."""

    SUNDAY = "Sunday"
    MONDAY = "Monday"
    TUESDAY = "Tuesday"
    WEDNESDAY = "Wednesday"
    THURSDAY = "Thursday"
    FRIDAY = "Friday"
    SATURDAY = "Saturday"

    @property
    def number(self) -> int:
        return list(Weekday).index(self) + 1

    @classmethod
    def from_number(cls, number: int) -> "Weekday":
        """Map 1..7 (Sunday first) to a weekday; anything else is Monday."""
        members = list(cls)
        if 1 <= number <= len(members):
            return members[number - 1]
        return cls.MONDAY

    @classmethod
    def of(cls, day: date) -> "Weekday":
        # isoweekday: Monday=1 .. Sunday=7 -> Sunday-first 1..7
        return cls.from_number(day.isoweekday() % 7 + 1)


def canonical_days(days) -> list[str]:
    """Sorted day names, the stable encoding used for exact-set matching."""
    return [day.value for day in sorted({Weekday(d) for d in days}, key=lambda d: d.number)]


class ActivityKind(str, Enum):
    """Closed set of non-academic periods that can fill a block."""

    LUNCH = "lunch"
    ASSEMBLY = "assembly"
    CHAPEL = "chapel"
    ATHLETICS = "athletics"
    COMMUNITY_TIME = "community-time"
    FACULTY_MEETING = "faculty-meeting"
    ANNOUNCEMENTS = "announcements"
    BREAK = "break"
    SENATE = "senate"
    GENERAL_MEETING = "general-meeting"
    CHAPEL_CHORUS = "chapel-chorus"

    @property
    def opt_in(self) -> bool:
        """Only students who belong to the group attend these periods."""
        return self in (ActivityKind.SENATE, ActivityKind.CHAPEL_CHORUS)


class RecordModel(BaseModel):
    """Base for models that cross the record store boundary."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TimeBlock(RecordModel):
    """A named period with a start and end time of day.

    Times are accepted as ``datetime.time`` or as compact ``H:MM`` strings
    (see parse_clock) and are stored back in the compact form.
    """

    model_config = ConfigDict(frozen=True)

    label: str
    start: time
    end: time

    @field_validator("start", "end", mode="before")
    @classmethod
    def _parse_compact_clock(cls, value):
        if isinstance(value, str):
            return parse_clock(value)
        return value

    @field_serializer("start", "end")
    def _serialize_clock(self, value: time) -> str:
        return format_clock(value)

    @property
    def letter(self) -> str:
        return self.label[:1].upper()

    @property
    def is_extension(self) -> bool:
        """True for X sub-blocks such as "Ax"."""
        return len(self.label) > 1 and self.label[-1].lower() == "x"

    def starts_at(self, now: datetime) -> datetime:
        return datetime.combine(now.date(), self.start, tzinfo=now.tzinfo)

    def ends_at(self, now: datetime) -> datetime:
        return datetime.combine(now.date(), self.end, tzinfo=now.tzinfo)

    def contains(self, now: datetime) -> bool:
        return self.starts_at(now) <= now < self.ends_at(now)

    def progress(self, now: datetime) -> float:
        start = self.starts_at(now)
        total = max((self.ends_at(now) - start).total_seconds(), 1.0)
        elapsed = (now - start).total_seconds()
        return min(max(elapsed / total, 0.0), 1.0)

    def time_remaining(self, now: datetime) -> timedelta:
        return max(self.ends_at(now) - now, timedelta(0))


class DayOverride(RecordModel):
    """Administrator-supplied replacement for one calendar day's blocks."""

    id: str = Field(default_factory=new_id)
    day: date
    title: str
    blocks: tuple[TimeBlock, ...]
    created_by: str
    created_at: datetime
    active: bool = True


class ClassAssignment(RecordModel):
    """A student's class in one lettered block.

    ``x_days_parity_a``/``x_days_parity_b`` are None when the student never
    configured X-block days; an empty set means the class never uses its X block.
    """

    model_config = ConfigDict(frozen=True)

    block_letter: BlockLetter
    class_name: str
    teacher_name: str
    room: str = ""
    color_hex: str = DEFAULT_CLASS_COLOR
    x_days_parity_a: frozenset[Weekday] | None = None
    x_days_parity_b: frozenset[Weekday] | None = None

    @field_serializer("x_days_parity_a", "x_days_parity_b")
    def _serialize_days(self, days: frozenset[Weekday] | None) -> list[str] | None:
        return None if days is None else canonical_days(days)

    @property
    def period(self) -> int:
        return BLOCK_LETTERS.index(self.block_letter) + 1

    def x_days(self, parity: Parity) -> frozenset[Weekday] | None:
        return self.x_days_parity_a if parity is Parity.A else self.x_days_parity_b


class XBlockConsensusRecord(RecordModel):
    """One crowd-sourced X-block day set and its running vote tally."""

    id: str = Field(default_factory=new_id)
    class_name: str
    teacher_name: str
    parity: Parity
    x_days: frozenset[Weekday]
    vote_count: int = Field(default=1, ge=1)
    submitted_by: str
    submitted_at: datetime

    @field_serializer("x_days")
    def _serialize_days(self, days: frozenset[Weekday]) -> list[str]:
        return canonical_days(days)


class SenatePosition(str, Enum):
    CLASS_PRESIDENT = "Class President"
    DORM_REPRESENTATIVE = "Dorm Representative"
    NONE = "Not in Senate"


class ExtracurricularProfile(RecordModel):
    """Which opt-in periods a student attends."""

    in_small_chorus: bool = False
    in_chapel_chorus: bool = False
    senate_position: SenatePosition = SenatePosition.NONE

    def participates_in(self, activity: ActivityKind) -> bool:
        if activity is ActivityKind.SENATE:
            return self.senate_position is not SenatePosition.NONE
        if activity is ActivityKind.CHAPEL_CHORUS:
            return self.in_chapel_chorus
        return True


# --- Live status: personal class variant ---


class LivePhase(str, Enum):
    PUBLISHING = "publishing"
    ENDED = "ended"


class ClassLiveContent(BaseModel):
    """Mutable part of a class live status, recomputed as time passes."""

    model_config = ConfigDict(frozen=True)

    time_remaining: float  # seconds
    progress: float = Field(ge=0.0, le=1.0)
    as_of: datetime


class ClassLiveStatus(RecordModel):
    """The one live status a device broadcasts for its current block."""

    model_config = ConfigDict(frozen=True)

    activity_id: str = Field(default_factory=new_id)
    class_name: str
    teacher: str = ""
    room: str = ""
    block: str
    start_time: str  # "8:25", as printed on the bell table
    end_time: str
    color_hex: str = DEFAULT_CLASS_COLOR
    start_instant: datetime
    end_instant: datetime
    phase: LivePhase = LivePhase.PUBLISHING
    dismiss_at: datetime | None = None

    def content_at(self, now: datetime) -> ClassLiveContent:
        start = min(self.start_instant, self.end_instant)
        total = max((self.end_instant - start).total_seconds(), 1.0)
        elapsed = (now - start).total_seconds()
        return ClassLiveContent(
            time_remaining=max((self.end_instant - now).total_seconds(), 0.0),
            progress=min(max(elapsed / total, 0.0), 1.0),
            as_of=now,
        )


# --- Live status: sports variant ---


class SportType(str, Enum):
    SOCCER = "soccer"
    FOOTBALL = "football"
    CROSS_COUNTRY = "crossCountry"

    @property
    def display_name(self) -> str:
        return {
            SportType.SOCCER: "Soccer",
            SportType.FOOTBALL: "Football",
            SportType.CROSS_COUNTRY: "Cross Country",
        }[self]


class GameStatus(str, Enum):
    UPCOMING = "upcoming"
    LIVE = "live"
    FINAL = "final"


class TeamSide(str, Enum):
    HOME = "home"
    OPPONENT = "opponent"


class Finisher(RecordModel):
    model_config = ConfigDict(frozen=True)

    position: int
    name: str
    school: str
    finish_time: str


class TeamResult(RecordModel):
    model_config = ConfigDict(frozen=True)

    position: int
    school: str
    points: int


class SportsLiveStatus(RecordModel):
    """Broadcast content for one followed sports event.

    The game clock is stored as remaining seconds as of ``clock_last_updated``;
    readers derive the running value with current_clock_remaining().
    """

    model_config = ConfigDict(frozen=True)

    event_id: str
    sport_type: SportType
    status: GameStatus = GameStatus.UPCOMING
    home_score: int | None = None
    away_score: int | None = None
    period_label: str | None = None
    clock_remaining: float | None = None
    clock_last_updated: datetime | None = None
    possession: TeamSide | None = None
    last_event_summary: str | None = None
    last_event_detail: str | None = None
    top_finishers: tuple[Finisher, ...] = ()
    team_results: tuple[TeamResult, ...] = ()
    reporter_name: str | None = None
    updated_at: datetime

    def current_clock_remaining(self, now: datetime) -> float | None:
        if self.clock_remaining is None:
            return None
        if self.clock_last_updated is None or self.status is not GameStatus.LIVE:
            return max(self.clock_remaining, 0.0)
        elapsed = (now - self.clock_last_updated).total_seconds()
        if elapsed <= 0:
            return max(self.clock_remaining, 0.0)
        return max(self.clock_remaining - elapsed, 0.0)

    def formatted_clock(self, now: datetime) -> str | None:
        remaining = self.current_clock_remaining(now)
        if remaining is None:
            return None
        minutes, seconds = divmod(int(remaining), 60)
        return f"{minutes}:{seconds:02d}"

    def same_content(self, other: "SportsLiveStatus") -> bool:
        """Equal apart from the updated_at stamp."""
        return self.model_dump(exclude={"updated_at"}) == other.model_dump(
            exclude={"updated_at"}
        )


class SportsStatusPatch(BaseModel):
    """Partial reporter edit; only fields explicitly set are merged."""

    model_config = ConfigDict(extra="forbid")

    status: GameStatus | None = None
    home_score: int | None = None
    away_score: int | None = None
    period_label: str | None = None
    clock_remaining: float | None = None
    clock_last_updated: datetime | None = None
    possession: TeamSide | None = None
    last_event_summary: str | None = None
    last_event_detail: str | None = None
    top_finishers: tuple[Finisher, ...] | None = None
    team_results: tuple[TeamResult, ...] | None = None

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)


class SportsLiveUpdate(RecordModel):
    """One published sports status, as persisted in the store."""

    id: str = Field(default_factory=new_id)
    event_id: str
    status: SportsLiveStatus
    summary: str | None = None
    reporter_id: str | None = None
    created_at: datetime


class SportsEvent(RecordModel):
    """A scheduled game or meet that students can follow."""

    event_id: str
    sport_type: SportType
    opponent: str
    location: str = ""
    starts_at: datetime
    is_home: bool = True
    home_score: int | None = None
    away_score: int | None = None


class ClaimStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    RELEASED = "released"


class ReporterClaim(RecordModel):
    """Time-boxed right to push manual updates for one event.

    The record id is the event id, so there is at most one claim record per event.
    """

    id: str
    event_id: str
    reporter_id: str
    reporter_name: str
    claimed_at: datetime
    expires_at: datetime
    status: ClaimStatus = ClaimStatus.ACTIVE

    def is_active(self, now: datetime) -> bool:
        return self.status is ClaimStatus.ACTIVE and self.expires_at > now


class LiveSubscription(RecordModel):
    """A device's push token for one followed event."""

    id: str
    event_id: str
    user_id: str
    sport_type: SportType
    push_token: str  # base64
    device_name: str = ""
    created_at: datetime
