"""Day overrides: administrator-published replacements for a day's bell schedule.

Overrides are fetched at most once per calendar day and cached keyed by the
day's local midnight. A day with no override is cached too, so the once-a-second
status check does not go back to the store. Entries older than
``max_age_days`` are dropped by purge().
"""

from datetime import date, datetime, time, timedelta, tzinfo

from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from schoolday.errors import StoreError, TransientStoreError
from schoolday.logging import get_logger
from schoolday.models import DayOverride
from schoolday.store import RecordStore, StoredRecord, decode_all, encode_record, where

log = get_logger(__name__)

RECORD_TYPE = "SpecialSchedule"


class OverrideProvider:
    """Fetch-once-per-day cache in front of the override records."""

    def __init__(
        self,
        store: RecordStore,
        *,
        zone: tzinfo,
        max_age_days: int = 1,
        read_attempts: int = 3,
        read_wait_seconds: float = 0.2,
    ) -> None:
        self.store = store
        self.zone = zone
        self.max_age_days = max_age_days
        self.read_attempts = read_attempts
        self.read_wait_seconds = read_wait_seconds
        self._cache: dict[datetime, DayOverride | None] = {}

    def _midnight(self, day: date) -> datetime:
        return datetime.combine(day, time.min, tzinfo=self.zone)

    def cached(self, day: date) -> DayOverride | None:
        return self._cache.get(self._midnight(day))

    def is_cached(self, day: date) -> bool:
        return self._midnight(day) in self._cache

    def purge(self, now: datetime) -> int:
        """Drop cache entries whose day is older than max_age_days.

        Returns:
            Number of entries removed.
        """
        cutoff = now - timedelta(days=self.max_age_days)
        stale = [key for key in self._cache if key < cutoff]
        for key in stale:
            del self._cache[key]
        if stale:
            log.debug("override_cache_purged", removed=len(stale))
        return len(stale)

    async def for_day(self, day: date) -> DayOverride | None:
        """Active override for a date, or None to use the standard tables.

        A failed fetch is logged and not cached, so the next check tries again;
        until then the standard schedule applies.
        """
        key = self._midnight(day)
        if key in self._cache:
            return self._cache[key]

        try:
            records = await self._query(day)
        except StoreError as e:
            log.warning("override_fetch_failed", day=day.isoformat(), error=str(e))
            return None

        active = [o for o in decode_all(DayOverride, records) if o.active]
        override = active[0] if active else None
        self._cache[key] = override
        if override is not None:
            log.info(
                "override_found",
                day=day.isoformat(),
                title=override.title,
                blocks=len(override.blocks),
            )
        return override

    async def _query(self, day: date) -> list[StoredRecord]:
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(TransientStoreError),
            stop=stop_after_attempt(self.read_attempts),
            wait=wait_fixed(self.read_wait_seconds),
            reraise=True,
        ):
            with attempt:
                return await self.store.query(
                    RECORD_TYPE,
                    [where("day", "==", day), where("active", "==", True)],
                )
        return []

    async def publish_override(self, override: DayOverride) -> None:
        """Administrator write path; the local cache is updated on success."""
        await self.store.save(encode_record(RECORD_TYPE, override.id, override))
        self._cache[self._midnight(override.day)] = override if override.active else None
        log.info(
            "override_published",
            day=override.day.isoformat(),
            title=override.title,
            created_by=override.created_by,
        )
