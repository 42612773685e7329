"""The engine wired together for one student on one device.

Schoolday owns the components and their shared settings; callers (an app
shell, the CLI script, tests) talk to it instead of assembling the pieces.
"""

from collections.abc import AsyncIterator, Callable, Iterable
from datetime import date, datetime
from typing import Any

from schoolday.assignments import AssignmentRepository, StudentContext
from schoolday.config import SchooldayConfig, get_config
from schoolday.consensus import ConsensusStore
from schoolday.live.channel import LiveStatusEvent, LiveStatusFeed, PushChannel
from schoolday.live.claims import ClaimResult, NotClaimHolder, ReporterClaims
from schoolday.live.classes import ClassLiveStatusMachine, Transition
from schoolday.live.sports import ReporterConsole, SportsLiveCoordinator
from schoolday.live.timers import Ticker
from schoolday.logging import bind_student, get_logger
from schoolday.models import (
    ExtracurricularProfile,
    Parity,
    SportsEvent,
    SportsLiveStatus,
    SportsStatusPatch,
    TimeBlock,
    Weekday,
    XBlockConsensusRecord,
)
from schoolday.overrides import OverrideProvider
from schoolday.projection import CurrentBlockView, Projection, ScheduleProjection
from schoolday.store import RecordStore
from schoolday.timegrid import TimeGrid, parity_for
from schoolday.xblock import XBlockResolver

log = get_logger(__name__)


class Schoolday:
    """Schedule projection and live status for a single student."""

    def __init__(
        self,
        store: RecordStore,
        context: StudentContext,
        *,
        config: SchooldayConfig | None = None,
        push: PushChannel | None = None,
        grid: TimeGrid | None = None,
        device_name: str = "",
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.config = config or get_config()
        self.store = store
        self.context = context
        self._clock = clock or (lambda: datetime.now(self.config.zone))

        self.grid = grid or TimeGrid()
        self.consensus = ConsensusStore(
            store, vote_threshold=self.config.consensus_vote_threshold, clock=self._clock
        )
        self.resolver = XBlockResolver(
            self.consensus, cache_ttl_seconds=self.config.consensus_cache_ttl_seconds
        )
        self.overrides = OverrideProvider(
            store,
            zone=self.config.zone,
            max_age_days=self.config.override_cache_max_age_days,
            read_attempts=self.config.store_read_attempts,
            read_wait_seconds=self.config.store_read_wait_seconds,
        )
        self.projection = ScheduleProjection(self.grid, self.resolver)

        self.live_feed = LiveStatusFeed("class")
        self.sports_feed = LiveStatusFeed("sports")
        self.live = ClassLiveStatusMachine(
            self.projection,
            context,
            self.live_feed,
            self.config,
            overrides=self.overrides,
            store=store,
            push=push,
            clock=self._clock,
        )
        self.claims = ReporterClaims(
            store, window_hours=self.config.reporter_claim_window_hours, clock=self._clock
        )
        self.sports = SportsLiveCoordinator(
            store,
            self.claims,
            self.sports_feed,
            self.config,
            user_id=context.user_id,
            device_name=device_name,
            clock=self._clock,
        )
        self._ticker = Ticker(self.config.tick_interval_seconds, self._tick_quietly, name="live_status")

    @classmethod
    async def for_user(
        cls,
        store: RecordStore,
        user_id: str,
        *,
        profile: ExtracurricularProfile | None = None,
        **kwargs: Any,
    ) -> "Schoolday":
        """Build an engine for a student whose assignments live in the store."""
        book = await AssignmentRepository(store).load(user_id)
        return cls(store, StudentContext(user_id, book, profile), **kwargs)

    # --- schedule ---

    def now(self) -> datetime:
        return self._clock()

    async def day_blocks(self, day: date) -> tuple[TimeBlock, ...]:
        """Blocks for a calendar day, honoring any published override."""
        override = await self.overrides.for_day(day)
        return self.grid.schedule_for(day, parity_for(day), override.blocks if override else None)

    async def get_projection(self, now: datetime | None = None) -> Projection:
        now = now or self._clock()
        override = await self.overrides.for_day(now.date())
        return await self.projection.project(
            now, parity_for(now.date()), self.context, override.blocks if override else None
        )

    async def current_view(self, now: datetime | None = None) -> CurrentBlockView:
        now = now or self._clock()
        override = await self.overrides.for_day(now.date())
        return await self.projection.view(
            now, parity_for(now.date()), self.context, override.blocks if override else None
        )

    async def submit_xblock_vote(
        self,
        class_name: str,
        teacher_name: str,
        parity: Parity,
        x_days: Iterable[Weekday],
    ) -> XBlockConsensusRecord:
        record = await self.consensus.submit_or_increment(
            class_name, teacher_name, parity, x_days, self.context.user_id
        )
        # Refresh the cached consensus so this device sees its own vote count.
        await self.resolver.popular_days(class_name, teacher_name, parity)
        return record

    # --- live status ---

    def live_status_stream(self) -> AsyncIterator[LiveStatusEvent]:
        return self.live_feed.stream()

    def sports_status_stream(self) -> AsyncIterator[LiveStatusEvent]:
        return self.sports_feed.stream()

    async def tick(self) -> Transition:
        self.overrides.purge(self._clock())
        return await self.live.on_tick()

    async def _tick_quietly(self) -> None:
        await self.tick()

    async def on_foreground(self) -> Transition:
        return await self.live.on_foreground()

    async def on_push_wake(self, payload: dict[str, Any] | None = None) -> Transition | SportsLiveStatus | None:
        """Route a silent push: sports payloads carry an eventId, boundary wakes do not."""
        event_id = (payload or {}).get("eventId")
        if event_id:
            return await self.sports.refresh_from_store(event_id)
        return await self.live.on_push_wake(payload)

    async def start(self) -> None:
        """Adopt any status left on air, reconcile, and start the 1-second tick."""
        bind_student(self.context.user_id)
        await self.live.restore_from_store()
        await self.live.on_foreground()
        self._ticker.start()
        log.info("schoolday_started", user_id=self.context.user_id)

    async def stop(self) -> None:
        await self._ticker.stop()
        await self.live.shutdown()
        await self.sports.shutdown()
        log.info("schoolday_stopped", user_id=self.context.user_id)

    # --- sports ---

    async def follow_event(self, event: SportsEvent) -> SportsLiveStatus:
        return await self.sports.follow(event)

    async def stop_following(self, event_id: str) -> None:
        await self.sports.stop_following(event_id)

    async def claim_reporter(self, event_id: str, reporter_name: str) -> ClaimResult:
        return await self.sports.claim_reporter(event_id, self.context.user_id, reporter_name)

    async def release_reporter(self, event_id: str) -> None:
        await self.sports.release_reporter(event_id)

    async def publish_reporter_update(
        self, event_id: str, patch: SportsStatusPatch, *, summary: str | None = None
    ) -> SportsLiveStatus | NotClaimHolder:
        return await self.sports.publish_reporter_update(
            event_id, self.context.user_id, patch, summary=summary
        )

    def reporter_console(self, event_id: str) -> ReporterConsole:
        return ReporterConsole(
            self.sports,
            event_id,
            self.context.user_id,
            debounce_seconds=self.config.reporter_debounce_seconds,
        )
