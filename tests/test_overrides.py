"""Tests for the per-day override cache."""

from datetime import datetime, timezone

import pytest

from schoolday.errors import PermanentStoreError
from schoolday.models import DayOverride, TimeBlock
from schoolday.overrides import OverrideProvider
from tests.support import RED_MONDAY, RED_TUESDAY, ZONE, CountingStore, FlakyStore, at


def _assembly_day(day=RED_MONDAY, active=True) -> DayOverride:
    return DayOverride(
        day=day,
        title="Assembly Day",
        blocks=(
            TimeBlock(label="A", start="8:00", end="9:00"),
            TimeBlock(label="Assembly", start="9:05", end="10:00"),
        ),
        created_by="dean",
        created_at=datetime(2025, 9, 10, tzinfo=timezone.utc),
        active=active,
    )


def _provider(store, **kwargs) -> OverrideProvider:
    return OverrideProvider(store, zone=ZONE, read_wait_seconds=0, **kwargs)


class TestOverrideProvider:
    @pytest.mark.asyncio
    async def test_finds_published_override(self):
        store = CountingStore()
        await _provider(store).publish_override(_assembly_day())

        override = await _provider(store).for_day(RED_MONDAY)
        assert override.title == "Assembly Day"
        assert [b.label for b in override.blocks] == ["A", "Assembly"]

    @pytest.mark.asyncio
    async def test_fetches_once_per_day(self):
        """Repeated checks on the same day hit the cache, including a cached miss."""
        store = CountingStore()
        provider = _provider(store)
        for _ in range(5):
            assert await provider.for_day(RED_TUESDAY) is None
        assert store.queries == 1
        assert provider.is_cached(RED_TUESDAY)

    @pytest.mark.asyncio
    async def test_inactive_override_ignored(self):
        store = CountingStore()
        await _provider(store).publish_override(_assembly_day(active=False))
        assert await _provider(store).for_day(RED_MONDAY) is None

    @pytest.mark.asyncio
    async def test_transient_failure_retried(self):
        store = FlakyStore(failures=2)
        await _provider(store).publish_override(_assembly_day())
        override = await _provider(store, read_attempts=3).for_day(RED_MONDAY)
        assert override is not None
        assert store.queries == 3

    @pytest.mark.asyncio
    async def test_exhausted_retries_fall_back_and_are_not_cached(self):
        store = FlakyStore(failures=3)
        provider = _provider(store, read_attempts=3)
        assert await provider.for_day(RED_MONDAY) is None
        assert not provider.is_cached(RED_MONDAY)

    @pytest.mark.asyncio
    async def test_permanent_failure_not_retried(self):
        store = FlakyStore(failures=5, error=PermanentStoreError("denied"))
        assert await _provider(store, read_attempts=3).for_day(RED_MONDAY) is None
        assert store.queries == 1

    @pytest.mark.asyncio
    async def test_purge_drops_old_days(self):
        provider = _provider(CountingStore(), max_age_days=1)
        await provider.for_day(RED_MONDAY)
        await provider.for_day(RED_TUESDAY)

        removed = provider.purge(at(RED_TUESDAY, 12, 0))
        assert removed == 1
        assert not provider.is_cached(RED_MONDAY)
        assert provider.is_cached(RED_TUESDAY)

