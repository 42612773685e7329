"""Global test configuration and fixtures."""

import pytest

from schoolday.assignments import AssignmentBook, StudentContext
from schoolday.config import SchooldayConfig
from schoolday.models import Parity
from schoolday.store import InMemoryRecordStore
from tests.support import assignment


@pytest.fixture
def store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def config() -> SchooldayConfig:
    """Defaults, pinned so a developer's .env cannot change test behavior."""
    return SchooldayConfig(
        _env_file=None,
        timezone="America/New_York",
        boundary_padding_seconds=1.0,
        end_of_block_dismissal_seconds=30.0,
        sports_dismissal_seconds=60.0,
        consensus_vote_threshold=3,
        reporter_claim_window_hours=3.0,
        reporter_debounce_seconds=0.05,
        store_read_attempts=3,
        store_read_wait_seconds=0.0,
    )


@pytest.fixture
def book() -> AssignmentBook:
    """A Red-week timetable: Geometry in A, History in C, Biology in D."""
    return AssignmentBook(
        [
            (Parity.A, assignment("A", "Geometry", room="M204", color_hex="#0A84FF")),
            (Parity.A, assignment("C", "History", "Mr. Chen")),
            (Parity.A, assignment("D", "Biology", "Dr. Okafor")),
            (Parity.B, assignment("A", "Geometry", room="M204")),
        ]
    )


@pytest.fixture
def context(book: AssignmentBook) -> StudentContext:
    return StudentContext("student-1", book)
