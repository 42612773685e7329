"""X-block day resolution.

Which weekdays a class meets in its X sub-block is decided by three sources,
in strict priority order with no merging between them:

  1. Personal  - the student's own setting for this parity, if configured at all
                 (an empty set is a real answer: "never").
  2. Consensus - the crowd-sourced day set, once it has enough votes.
  3. Standard  - the school's published X-block table for the block letter.

Consensus lookups are cached per (class, teacher, parity) for a short TTL so the
once-a-second live-status check does not query the store every tick. When the
store is unreachable the last cached answer (or the standard table) stands.
"""

import time
from collections.abc import Callable, Iterable

from schoolday.consensus import ConsensusStore
from schoolday.errors import StoreError
from schoolday.logging import get_logger
from schoolday.models import ClassAssignment, Parity, Weekday

log = get_logger(__name__)

_MON, _TUE, _WED, _THU, _FRI, _SAT = (
    Weekday.MONDAY,
    Weekday.TUESDAY,
    Weekday.WEDNESDAY,
    Weekday.THURSDAY,
    Weekday.FRIDAY,
    Weekday.SATURDAY,
)

# Published X-block days by block letter (Red = A, White = B).
STANDARD_XBLOCK_TABLE: dict[str, dict[Parity, frozenset[Weekday]]] = {
    "A": {Parity.A: frozenset({_MON, _THU}), Parity.B: frozenset({_MON, _THU})},
    "B": {Parity.A: frozenset({_WED, _FRI}), Parity.B: frozenset({_FRI, _SAT})},
    "C": {Parity.A: frozenset({_TUE, _THU}), Parity.B: frozenset({_TUE, _THU})},
    "D": {Parity.A: frozenset({_MON, _SAT}), Parity.B: frozenset({_MON, _WED})},
    "E": {Parity.A: frozenset({_MON, _THU}), Parity.B: frozenset({_MON, _THU})},
    "F": {Parity.A: frozenset({_WED, _FRI}), Parity.B: frozenset({_FRI, _SAT})},
    "G": {Parity.A: frozenset({_TUE, _SAT}), Parity.B: frozenset({_TUE, _WED})},
}


def standard_xblock_days(block_letter: str, parity: Parity) -> frozenset[Weekday]:
    return STANDARD_XBLOCK_TABLE.get(block_letter.upper(), {}).get(parity, frozenset())


_CacheKey = tuple[str, str, Parity]


class XBlockResolver:
    """Three-tier X-block day lookup for a student's class."""

    def __init__(
        self,
        consensus: ConsensusStore | None = None,
        *,
        cache_ttl_seconds: float = 300.0,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self.consensus = consensus
        self.cache_ttl_seconds = cache_ttl_seconds
        self._monotonic = monotonic
        self._cache: dict[_CacheKey, tuple[float, frozenset[Weekday] | None]] = {}

    async def resolve(
        self,
        assignment: ClassAssignment | None,
        block_letter: str,
        parity: Parity,
    ) -> frozenset[Weekday]:
        """Weekdays on which the X block applies for this class and parity."""
        if assignment is not None:
            personal = assignment.x_days(parity)
            if personal is not None:
                return personal

            crowd = await self._consensus_days(
                assignment.class_name, assignment.teacher_name, parity
            )
            if crowd is not None:
                return crowd

        return standard_xblock_days(block_letter, parity)

    async def uses_xblock(
        self,
        assignment: ClassAssignment | None,
        block_letter: str,
        day: Weekday,
        parity: Parity,
    ) -> bool:
        return day in await self.resolve(assignment, block_letter, parity)

    async def popular_days(
        self, class_name: str, teacher_name: str, parity: Parity
    ) -> frozenset[Weekday] | None:
        """Crowd-sourced days for pre-populating a picker; bypasses the cache."""
        return await self._refresh((class_name, teacher_name, parity))

    async def prefetch(self, assignments: Iterable[ClassAssignment], parity: Parity) -> None:
        """Warm the consensus cache for classes without a personal setting."""
        for assignment in assignments:
            if assignment.x_days(parity) is None:
                await self._refresh((assignment.class_name, assignment.teacher_name, parity))

    async def _consensus_days(
        self, class_name: str, teacher_name: str, parity: Parity
    ) -> frozenset[Weekday] | None:
        key = (class_name, teacher_name, parity)
        cached = self._cache.get(key)
        if cached is not None and self._monotonic() - cached[0] < self.cache_ttl_seconds:
            return cached[1]
        return await self._refresh(key)

    async def _refresh(self, key: _CacheKey) -> frozenset[Weekday] | None:
        if self.consensus is None:
            return None

        class_name, teacher_name, parity = key
        try:
            days = await self.consensus.auto_populate_candidate(class_name, teacher_name, parity)
        except StoreError as e:
            cached = self._cache.get(key)
            log.warning(
                "xblock_consensus_unavailable",
                class_name=class_name,
                parity=parity.value,
                error=str(e),
                using_cached=cached is not None,
            )
            return cached[1] if cached is not None else None

        self._cache[key] = (self._monotonic(), days)
        return days
