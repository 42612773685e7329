"""Tests for three-tier X-block resolution."""

import pytest

from schoolday.consensus import ConsensusStore
from schoolday.errors import TransientStoreError
from schoolday.models import Parity, Weekday
from schoolday.xblock import XBlockResolver, standard_xblock_days
from tests.support import CountingStore, FakeMonotonic, FlakyStore, assignment

MON, TUE, WED, THU = Weekday.MONDAY, Weekday.TUESDAY, Weekday.WEDNESDAY, Weekday.THURSDAY


async def _vote(consensus: ConsensusStore, days, voters=("s1", "s2", "s3")) -> None:
    for voter in voters:
        await consensus.submit_or_increment("Geometry", "Ms. Rivera", Parity.A, days, voter)


class TestStandardTable:
    def test_a_block_meets_monday_and_thursday(self):
        assert standard_xblock_days("A", Parity.A) == frozenset({MON, THU})

    def test_unknown_letter_has_no_days(self):
        assert standard_xblock_days("Z", Parity.A) == frozenset()


class TestResolve:
    @pytest.mark.asyncio
    async def test_personal_setting_wins(self, store):
        consensus = ConsensusStore(store)
        await _vote(consensus, [TUE])
        resolver = XBlockResolver(consensus)
        geometry = assignment("A", "Geometry", x_days_parity_a=frozenset({WED}))
        assert await resolver.resolve(geometry, "A", Parity.A) == frozenset({WED})

    @pytest.mark.asyncio
    async def test_empty_personal_set_means_never(self, store):
        """An explicitly empty set is an answer, not a fall-through."""
        resolver = XBlockResolver(ConsensusStore(store))
        geometry = assignment("A", "Geometry", x_days_parity_a=frozenset())
        assert await resolver.resolve(geometry, "A", Parity.A) == frozenset()
        assert not await resolver.uses_xblock(geometry, "A", MON, Parity.A)

    @pytest.mark.asyncio
    async def test_consensus_over_standard_once_threshold_met(self, store):
        consensus = ConsensusStore(store, vote_threshold=3)
        await _vote(consensus, [TUE])
        resolver = XBlockResolver(consensus)
        assert await resolver.resolve(assignment("A", "Geometry"), "A", Parity.A) == frozenset({TUE})

    @pytest.mark.asyncio
    async def test_below_threshold_uses_standard(self, store):
        consensus = ConsensusStore(store, vote_threshold=3)
        await _vote(consensus, [TUE], voters=("s1", "s2"))
        resolver = XBlockResolver(consensus)
        assert await resolver.resolve(assignment("A", "Geometry"), "A", Parity.A) == frozenset({MON, THU})

    @pytest.mark.asyncio
    async def test_personal_setting_is_per_parity(self):
        geometry = assignment("A", "Geometry", x_days_parity_a=frozenset({WED}))
        resolver = XBlockResolver()
        assert await resolver.resolve(geometry, "A", Parity.B) == frozenset({MON, THU})

    @pytest.mark.asyncio
    async def test_no_assignment_uses_standard(self):
        assert await XBlockResolver().resolve(None, "C", Parity.A) == frozenset({TUE, THU})

    @pytest.mark.asyncio
    async def test_store_failure_falls_back_to_standard(self):
        store = FlakyStore(failures=10, error=TransientStoreError("offline"))
        resolver = XBlockResolver(ConsensusStore(store))
        assert await resolver.resolve(assignment("A", "Geometry"), "A", Parity.A) == frozenset({MON, THU})


class TestConsensusCache:
    @pytest.mark.asyncio
    async def test_lookups_reuse_cache_within_ttl(self, store):
        consensus = ConsensusStore(store)
        await _vote(consensus, [TUE])
        clock = FakeMonotonic()
        resolver = XBlockResolver(consensus, cache_ttl_seconds=300, monotonic=clock)
        geometry = assignment("A", "Geometry")

        assert await resolver.resolve(geometry, "A", Parity.A) == frozenset({TUE})
        await _vote(consensus, [WED], voters=("s4", "s5", "s6", "s7"))
        clock.value += 10
        assert await resolver.resolve(geometry, "A", Parity.A) == frozenset({TUE})

        clock.value += 300
        assert await resolver.resolve(geometry, "A", Parity.A) == frozenset({WED})

    @pytest.mark.asyncio
    async def test_failed_refresh_keeps_cached_answer(self):
        store = FlakyStore(failures=0)
        consensus = ConsensusStore(store)
        await _vote(consensus, [TUE])
        clock = FakeMonotonic()
        resolver = XBlockResolver(consensus, cache_ttl_seconds=300, monotonic=clock)
        geometry = assignment("A", "Geometry")
        assert await resolver.resolve(geometry, "A", Parity.A) == frozenset({TUE})

        store.failures = 5
        clock.value += 600
        assert await resolver.resolve(geometry, "A", Parity.A) == frozenset({TUE})

    @pytest.mark.asyncio
    async def test_popular_days_bypasses_cache(self, store):
        consensus = ConsensusStore(store)
        await _vote(consensus, [TUE])
        resolver = XBlockResolver(consensus, monotonic=FakeMonotonic())
        geometry = assignment("A", "Geometry")
        await resolver.resolve(geometry, "A", Parity.A)

        await _vote(consensus, [WED], voters=("s4", "s5", "s6", "s7"))
        assert await resolver.popular_days("Geometry", "Ms. Rivera", Parity.A) == frozenset({WED})
        assert await resolver.resolve(geometry, "A", Parity.A) == frozenset({WED})

    @pytest.mark.asyncio
    async def test_prefetch_skips_personal_settings_and_warms_cache(self):
        store = CountingStore()
        consensus = ConsensusStore(store)
        await _vote(consensus, [TUE])
        resolver = XBlockResolver(consensus, monotonic=FakeMonotonic())
        geometry = assignment("A", "Geometry")
        personal = assignment("C", "History", x_days_parity_a=frozenset({THU}))

        store.queries = 0
        await resolver.prefetch([geometry, personal], Parity.A)
        assert store.queries == 1

        assert await resolver.resolve(geometry, "A", Parity.A) == frozenset({TUE})
        assert store.queries == 1
