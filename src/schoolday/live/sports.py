"""Sports live status: followed events, reporter updates and push registration.

Unlike the personal class status, any number of sports events can be on air at
once; they are keyed by event id. Content comes from one claimed reporter per
event: their edits are merged into the current status and stored as
SportsLiveUpdate records, which followers pick up on a silent push.

The game clock is never ticked into the store. Readers derive the running value
from ``clock_remaining`` and ``clock_last_updated``.
"""

import asyncio
import base64
import contextlib
from collections.abc import AsyncIterable, Callable
from datetime import datetime, timedelta

from pydantic import BaseModel

from schoolday.config import SchooldayConfig
from schoolday.errors import RecordNotFoundError, StoreError
from schoolday.logging import get_logger
from schoolday.live.channel import BroadcastChannel, EventKind, LiveStatusEvent
from schoolday.live.claims import ClaimResult, Claimed, NotClaimHolder, ReporterClaims
from schoolday.live.timers import Debouncer
from schoolday.models import (
    GameStatus,
    LiveSubscription,
    SportsEvent,
    SportsLiveStatus,
    SportsLiveUpdate,
    SportsStatusPatch,
    SportType,
    new_id,
)
from schoolday.store import RecordStore, decode_all, encode_record, where

log = get_logger(__name__)

UPDATE_RECORD_TYPE = "SportsLiveUpdate"
SUBSCRIPTION_RECORD_TYPE = "SportsLiveSubscription"


class FollowedEvent(BaseModel):
    event: SportsEvent
    status: SportsLiveStatus
    stale_at: datetime


def starts_label(starts_at: datetime, zone) -> str:
    """``Starts 3:30 PM`` in the school's local time."""
    local = starts_at.astimezone(zone)
    hour = local.hour % 12 or 12
    suffix = "AM" if local.hour < 12 else "PM"
    return f"Starts {hour}:{local.minute:02d} {suffix}"


def merge_patch(current: SportsLiveStatus, patch: SportsStatusPatch, now: datetime) -> SportsLiveStatus:
    """Apply the fields a reporter actually set; everything else carries over.

    Setting the clock without a reference instant anchors it at ``now``. A status
    change re-anchors it too: going live starts the clock running from ``now``,
    and leaving live freezes it at the value it had reached.
    """
    changes = patch.changes()
    status = changes.get("status", current.status)
    if status is not current.status and "clock_remaining" not in changes:
        if current.status is GameStatus.LIVE:
            changes["clock_remaining"] = current.current_clock_remaining(now)
            changes["clock_last_updated"] = now
        elif status is GameStatus.LIVE:
            changes.setdefault("clock_last_updated", now)
    if "clock_remaining" in changes and "clock_last_updated" not in changes:
        changes["clock_last_updated"] = now
    return SportsLiveStatus.model_validate(
        {**current.model_dump(), **changes, "updated_at": now}
    )


class SportsLiveCoordinator:
    """Followed sports events and the reporter write path for this device."""

    def __init__(
        self,
        store: RecordStore,
        claims: ReporterClaims,
        channel: BroadcastChannel,
        config: SchooldayConfig,
        *,
        user_id: str = "",
        device_name: str = "",
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self.claims = claims
        self.channel = channel
        self.config = config
        self.user_id = user_id
        self.device_name = device_name
        self._clock = clock or (lambda: datetime.now(config.zone))
        self._following: dict[str, FollowedEvent] = {}
        self._token_tasks: dict[str, asyncio.Task] = {}
        self._lock = asyncio.Lock()

    def is_following(self, event_id: str) -> bool:
        return event_id in self._following

    def status(self, event_id: str) -> SportsLiveStatus | None:
        followed = self._following.get(event_id)
        return followed.status if followed else None

    def is_stale(self, event_id: str, now: datetime | None = None) -> bool:
        followed = self._following.get(event_id)
        return followed is not None and (now or self._clock()) >= followed.stale_at

    @property
    def followed_event_ids(self) -> list[str]:
        return list(self._following)

    async def latest_update(self, event_id: str) -> SportsLiveUpdate | None:
        records = await self.store.query(
            UPDATE_RECORD_TYPE,
            [where("eventId", "==", event_id)],
            sort=[("createdAt", False)],
            limit=1,
        )
        updates = decode_all(SportsLiveUpdate, records)
        return updates[0] if updates else None

    async def follow(self, event: SportsEvent) -> SportsLiveStatus:
        """Start broadcasting an event, seeded from its latest stored update."""
        async with self._lock:
            existing = self._following.get(event.event_id)
            if existing is not None:
                log.debug("sports_already_following", event_id=event.event_id)
                return existing.status

            now = self._clock()
            try:
                latest = await self.latest_update(event.event_id)
            except StoreError as e:
                log.warning("sports_seed_fetch_failed", event_id=event.event_id, error=str(e))
                latest = None

            if latest is not None:
                status = latest.status
            else:
                status = SportsLiveStatus(
                    event_id=event.event_id,
                    sport_type=event.sport_type,
                    status=GameStatus.UPCOMING,
                    home_score=event.home_score,
                    away_score=event.away_score,
                    period_label=starts_label(event.starts_at, self.config.zone),
                    updated_at=now,
                )

            if status.reporter_name is None:
                claim = await self.claims.active_claim(event.event_id, now)
                if claim is not None:
                    status = status.model_copy(update={"reporter_name": claim.reporter_name})

            self._following[event.event_id] = FollowedEvent(
                event=event,
                status=status,
                stale_at=event.starts_at + timedelta(hours=self.config.sports_stale_after_hours),
            )
            await self.channel.publish(
                LiveStatusEvent(kind=EventKind.STARTED, key=event.event_id, status=status, at=now)
            )
            log.info(
                "sports_follow_started",
                event_id=event.event_id,
                sport=event.sport_type.value,
                seeded=latest is not None,
            )
            return status

    async def stop_following(self, event_id: str) -> None:
        """End an event's broadcast after the dismissal delay and drop its push subscription."""
        async with self._lock:
            followed = self._following.pop(event_id, None)
            if followed is None:
                return
            self._cancel_token_task(event_id)

            now = self._clock()
            await self.channel.publish(
                LiveStatusEvent(
                    kind=EventKind.ENDED,
                    key=event_id,
                    status=followed.status,
                    dismiss_at=now + timedelta(seconds=self.config.sports_dismissal_seconds),
                    at=now,
                )
            )
            log.info("sports_follow_stopped", event_id=event_id)

        if self.user_id:
            try:
                await self.store.delete(SUBSCRIPTION_RECORD_TYPE, f"{event_id}-{self.user_id}")
            except RecordNotFoundError:
                log.debug("sports_subscription_absent", event_id=event_id)
            except StoreError as e:
                log.warning("sports_unsubscribe_failed", event_id=event_id, error=str(e))

    async def publish_reporter_update(
        self,
        event_id: str,
        reporter_id: str,
        patch: SportsStatusPatch,
        *,
        summary: str | None = None,
        sport_type: SportType = SportType.SOCCER,
    ) -> SportsLiveStatus | NotClaimHolder:
        """Merge a reporter's edit and publish it if anything changed.

        ``sport_type`` only matters for the first update of an event nobody
        has published or followed yet.

        Returns:
            The resulting status, or NotClaimHolder if the caller does not hold
            the event's active claim.
        """
        held = await self.claims.check_holder(event_id, reporter_id)
        if isinstance(held, NotClaimHolder):
            log.warning("sports_update_rejected", event_id=event_id, reporter_id=reporter_id)
            return held

        async with self._lock:
            now = self._clock()
            followed = self._following.get(event_id)
            if followed is not None:
                current = followed.status
            else:
                latest = await self.latest_update(event_id)
                current = latest.status if latest else None

            if current is None:
                current = SportsLiveStatus(event_id=event_id, sport_type=sport_type, updated_at=now)

            merged = merge_patch(current, patch, now)
            if held.reporter_name != merged.reporter_name:
                merged = merged.model_copy(update={"reporter_name": held.reporter_name})
            if merged.same_content(current):
                log.debug("sports_update_unchanged", event_id=event_id)
                return current

            update = SportsLiveUpdate(
                id=new_id(),
                event_id=event_id,
                status=merged,
                summary=summary or merged.last_event_summary,
                reporter_id=reporter_id,
                created_at=now,
            )
            await self.store.save(encode_record(UPDATE_RECORD_TYPE, update.id, update))

            if followed is not None:
                self._following[event_id] = followed.model_copy(update={"status": merged})
                await self.channel.publish(
                    LiveStatusEvent(kind=EventKind.UPDATED, key=event_id, status=merged, at=now)
                )
            log.info(
                "sports_update_published",
                event_id=event_id,
                status=merged.status.value,
                home=merged.home_score,
                away=merged.away_score,
            )
            return merged

    async def refresh_from_store(self, event_id: str) -> SportsLiveStatus | None:
        """Pull the latest stored update for a followed event (silent-push path)."""
        if event_id not in self._following:
            return None
        try:
            latest = await self.latest_update(event_id)
        except StoreError as e:
            log.warning("sports_refresh_failed", event_id=event_id, error=str(e))
            return None

        async with self._lock:
            followed = self._following.get(event_id)
            if followed is None or latest is None:
                return None
            if latest.status.same_content(followed.status):
                return followed.status
            self._following[event_id] = followed.model_copy(update={"status": latest.status})
            await self.channel.publish(
                LiveStatusEvent(
                    kind=EventKind.UPDATED, key=event_id, status=latest.status, at=self._clock()
                )
            )
            log.info("sports_refreshed", event_id=event_id)
            return latest.status

    async def claim_reporter(self, event_id: str, reporter_id: str, reporter_name: str) -> ClaimResult:
        result = await self.claims.claim(event_id, reporter_id, reporter_name)
        if isinstance(result, Claimed):
            await self._set_reporter_name(event_id, reporter_name)
        return result

    async def release_reporter(self, event_id: str) -> None:
        try:
            await self.claims.release(event_id)
        except StoreError as e:
            log.warning("reporter_release_failed", event_id=event_id, error=str(e))
            return
        await self._set_reporter_name(event_id, None)

    async def _set_reporter_name(self, event_id: str, name: str | None) -> None:
        async with self._lock:
            followed = self._following.get(event_id)
            if followed is None or followed.status.reporter_name == name:
                return
            now = self._clock()
            status = followed.status.model_copy(update={"reporter_name": name, "updated_at": now})
            self._following[event_id] = followed.model_copy(update={"status": status})
            await self.channel.publish(
                LiveStatusEvent(kind=EventKind.UPDATED, key=event_id, status=status, at=now)
            )

    # --- push tokens ---

    def listen_for_push_tokens(
        self, event_id: str, sport_type: SportType, tokens: AsyncIterable[bytes]
    ) -> asyncio.Task:
        """Register each push token the device issues for an event.

        Replaces any listener already running for the event.
        """
        self._cancel_token_task(event_id)
        task = asyncio.create_task(self._register_tokens(event_id, sport_type, tokens))
        self._token_tasks[event_id] = task
        return task

    async def _register_tokens(
        self, event_id: str, sport_type: SportType, tokens: AsyncIterable[bytes]
    ) -> None:
        async for token in tokens:
            # Tokens arrive before sign-in too; they are drained but not registered.
            if not self.user_id:
                continue
            subscription = LiveSubscription(
                id=f"{event_id}-{self.user_id}",
                event_id=event_id,
                user_id=self.user_id,
                sport_type=sport_type,
                push_token=base64.b64encode(token).decode("ascii"),
                device_name=self.device_name,
                created_at=self._clock(),
            )
            try:
                await self.store.save(
                    encode_record(SUBSCRIPTION_RECORD_TYPE, subscription.id, subscription)
                )
                log.info("sports_subscription_registered", event_id=event_id, user_id=self.user_id)
            except StoreError as e:
                log.warning("sports_subscription_failed", event_id=event_id, error=str(e))

    def _cancel_token_task(self, event_id: str) -> None:
        task = self._token_tasks.pop(event_id, None)
        if task is not None and not task.done():
            task.cancel()

    async def shutdown(self) -> None:
        tasks = list(self._token_tasks.values())
        for event_id in list(self._token_tasks):
            self._cancel_token_task(event_id)
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task


class ReporterConsole:
    """A reporter's draft for one event, auto-published after a quiet period.

    Each edit restarts the debounce timer, so a burst of taps (score +1, +1,
    clock) goes out as a single update.
    """

    def __init__(
        self,
        coordinator: SportsLiveCoordinator,
        event_id: str,
        reporter_id: str,
        *,
        debounce_seconds: float = 0.4,
    ) -> None:
        self.coordinator = coordinator
        self.event_id = event_id
        self.reporter_id = reporter_id
        self._draft: dict = {}
        self._debouncer = Debouncer(debounce_seconds, self._publish, name=f"reporter:{event_id}")
        self.last_result: SportsLiveStatus | NotClaimHolder | None = None

    @property
    def pending(self) -> bool:
        return self._debouncer.pending

    def edit(self, **changes) -> None:
        """Stage field changes (SportsStatusPatch field names) and restart the timer."""
        draft = {**self._draft, **changes}
        SportsStatusPatch(**draft)
        self._draft = draft
        self._debouncer.trigger()

    async def flush(self) -> None:
        await self._debouncer.flush()

    def discard(self) -> None:
        self._debouncer.cancel()
        self._draft = {}

    async def _publish(self) -> None:
        if not self._draft:
            return
        patch = SportsStatusPatch(**self._draft)
        self._draft = {}
        self.last_result = await self.coordinator.publish_reporter_update(
            self.event_id, self.reporter_id, patch
        )
