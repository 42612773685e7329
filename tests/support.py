"""Shared builders and fakes for the test suite."""

from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from schoolday.errors import TransientStoreError
from schoolday.models import ClassAssignment
from schoolday.store import InMemoryRecordStore

ZONE = ZoneInfo("America/New_York")

# Week-of-year 38 (even) is a Red week, week 39 (odd) a White week.
RED_MONDAY = date(2025, 9, 15)
RED_TUESDAY = date(2025, 9, 16)
RED_THURSDAY = date(2025, 9, 18)
RED_FRIDAY = date(2025, 9, 19)
WHITE_MONDAY = date(2025, 9, 22)
SUNDAY = date(2025, 9, 21)


def at(day: date, hour: int, minute: int, second: int = 0) -> datetime:
    return datetime.combine(day, time(hour, minute, second), tzinfo=ZONE)


def assignment(letter: str, class_name: str, teacher: str = "Ms. Rivera", **kwargs) -> ClassAssignment:
    return ClassAssignment(block_letter=letter, class_name=class_name, teacher_name=teacher, **kwargs)


class FakeClock:
    """Settable clock; call it to read the current instant."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


class FakeMonotonic:
    def __init__(self) -> None:
        self.value = 1000.0

    def __call__(self) -> float:
        return self.value


class CountingStore(InMemoryRecordStore):
    """In-memory store that counts queries."""

    def __init__(self) -> None:
        super().__init__()
        self.queries = 0

    async def query(self, record_type, predicates=(), sort=None, limit=None):
        self.queries += 1
        return await super().query(record_type, predicates, sort, limit)


class FlakyStore(CountingStore):
    """Fails the first ``failures`` queries with ``error``."""

    def __init__(self, failures: int, error: Exception | None = None) -> None:
        super().__init__()
        self.failures = failures
        self.error = error or TransientStoreError("store unreachable")

    async def query(self, record_type, predicates=(), sort=None, limit=None):
        if self.failures > 0:
            self.failures -= 1
            self.queries += 1
            raise self.error
        return await super().query(record_type, predicates, sort, limit)


class RecordingPush:
    """PushChannel that records what it was asked to deliver."""

    def __init__(self) -> None:
        self.deliveries: list[tuple[dict, float]] = []

    async def deliver_silent(self, payload: dict, after_seconds: float) -> None:
        self.deliveries.append((payload, after_seconds))
