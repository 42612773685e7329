"""Tests for crowd-sourced X-block votes."""

import pytest

from schoolday.consensus import RECORD_TYPE, ConsensusStore
from schoolday.models import Parity, Weekday

MON, TUE, THU = Weekday.MONDAY, Weekday.TUESDAY, Weekday.THURSDAY


class TestSubmitOrIncrement:
    @pytest.mark.asyncio
    async def test_first_vote_creates_record(self, store):
        consensus = ConsensusStore(store)
        record = await consensus.submit_or_increment("Geometry", "Ms. Rivera", Parity.A, [MON, THU], "s1")
        assert record.vote_count == 1
        assert record.x_days == frozenset({MON, THU})
        assert len(await store.query(RECORD_TYPE)) == 1

    @pytest.mark.asyncio
    async def test_same_set_increments_regardless_of_order(self, store):
        consensus = ConsensusStore(store)
        await consensus.submit_or_increment("Geometry", "Ms. Rivera", Parity.A, [THU, MON], "s1")
        record = await consensus.submit_or_increment("Geometry", "Ms. Rivera", Parity.A, [MON, THU], "s2")
        assert record.vote_count == 2
        assert len(await store.query(RECORD_TYPE)) == 1

    @pytest.mark.asyncio
    async def test_different_set_gets_its_own_tally(self, store):
        """Votes for overlapping but different sets never merge."""
        consensus = ConsensusStore(store)
        await consensus.submit_or_increment("Geometry", "Ms. Rivera", Parity.A, [MON, THU], "s1")
        await consensus.submit_or_increment("Geometry", "Ms. Rivera", Parity.A, [MON], "s2")
        records = await store.query(RECORD_TYPE)
        assert len(records) == 2
        assert all(r.fields["voteCount"] == 1 for r in records)

    @pytest.mark.asyncio
    async def test_parity_and_teacher_are_part_of_the_key(self, store):
        consensus = ConsensusStore(store)
        await consensus.submit_or_increment("Geometry", "Ms. Rivera", Parity.A, [MON], "s1")
        await consensus.submit_or_increment("Geometry", "Ms. Rivera", Parity.B, [MON], "s2")
        await consensus.submit_or_increment("Geometry", "Mr. Chen", Parity.A, [MON], "s3")
        assert len(await store.query(RECORD_TYPE)) == 3


class TestMostVoted:
    @pytest.mark.asyncio
    async def test_highest_tally_wins(self, store):
        consensus = ConsensusStore(store)
        await consensus.submit_or_increment("Geometry", "Ms. Rivera", Parity.A, [MON], "s1")
        for voter in ("s2", "s3"):
            await consensus.submit_or_increment("Geometry", "Ms. Rivera", Parity.A, [TUE, THU], voter)

        popular = await consensus.most_voted("Geometry", "Ms. Rivera", Parity.A)
        assert popular.x_days == frozenset({TUE, THU})
        assert popular.vote_count == 2

    @pytest.mark.asyncio
    async def test_split_vote_offers_no_candidate(self, store):
        """Two camps with two votes each: both tallies stay at 2, below the threshold."""
        consensus = ConsensusStore(store, vote_threshold=3)
        for voter in ("s1", "s2"):
            await consensus.submit_or_increment("Geometry", "Ms. Rivera", Parity.A, [MON, THU], voter)
        for voter in ("s3", "s4"):
            await consensus.submit_or_increment("Geometry", "Ms. Rivera", Parity.A, [TUE], voter)

        records = await store.query(RECORD_TYPE)
        assert sorted(r.fields["voteCount"] for r in records) == [2, 2]
        assert await consensus.auto_populate_candidate("Geometry", "Ms. Rivera", Parity.A) is None

    @pytest.mark.asyncio
    async def test_no_votes(self, store):
        assert await ConsensusStore(store).most_voted("Geometry", "Ms. Rivera", Parity.A) is None

    @pytest.mark.asyncio
    async def test_candidate_requires_threshold(self, store):
        consensus = ConsensusStore(store, vote_threshold=3)
        for voter in ("s1", "s2"):
            await consensus.submit_or_increment("Geometry", "Ms. Rivera", Parity.A, [TUE], voter)
        assert await consensus.auto_populate_candidate("Geometry", "Ms. Rivera", Parity.A) is None

        await consensus.submit_or_increment("Geometry", "Ms. Rivera", Parity.A, [TUE], "s3")
        assert await consensus.auto_populate_candidate("Geometry", "Ms. Rivera", Parity.A) == frozenset({TUE})
