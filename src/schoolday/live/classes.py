"""Personal class live status: the state machine behind "what's on now".

States::

    Idle --start--> Publishing --end--> Ended(dismiss_at) --dismissed--> Idle
                        |  ^
                        +--+  drift correction (end immediately, start the right one)

Every entry point (the 1-second foreground tick, app foreground, the one-shot
boundary timer and a silent push wake) goes through reconcile(), which runs
under a single asyncio.Lock. Reconciling with an unchanged projection writes
nothing, so ticks never flicker the broadcast.

Store writes of the live record are fire-and-forget: failures are logged, never
retried, and never block a transition. flush() awaits whatever is in flight.
"""

import asyncio
from collections.abc import Callable, Coroutine
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any

from schoolday.assignments import StudentContext
from schoolday.config import SchooldayConfig
from schoolday.logging import get_logger
from schoolday.live.channel import (
    BroadcastChannel,
    EventKind,
    LiveStatusEvent,
    PushChannel,
)
from schoolday.live.timers import OneShotTimer
from schoolday.models import (
    ClassLiveContent,
    ClassLiveStatus,
    LivePhase,
    Parity,
    RecordModel,
    format_clock,
)
from schoolday.overrides import OverrideProvider
from schoolday.projection import (
    ActivityOccupant,
    ClassOccupant,
    Projection,
    ScheduleProjection,
)
from schoolday.store import RecordStore, decode_all, encode_record, where
from schoolday.timegrid import ACTIVITY_COLORS, parity_for

log = get_logger(__name__)

RECORD_TYPE = "ClassLiveActivity"


class MachineState(str, Enum):
    IDLE = "idle"
    PUBLISHING = "publishing"
    ENDED = "ended"


class Transition(str, Enum):
    NOOP = "noop"
    STARTED = "started"
    CORRECTED = "corrected"
    ENDED = "ended"
    DISMISSED = "dismissed"


class StoredClassLiveStatus(RecordModel):
    user_id: str
    status: ClassLiveStatus


def live_status_for(projection: Projection, now: datetime) -> ClassLiveStatus | None:
    """The status that should be on air for a projection, if any."""
    current = projection.current
    if current is None:
        return None
    block, occupant = current

    if isinstance(occupant, ClassOccupant):
        assignment = occupant.assignment
        return ClassLiveStatus(
            class_name=assignment.class_name,
            teacher=assignment.teacher_name,
            room=assignment.room,
            block=block.label,
            start_time=format_clock(block.start),
            end_time=format_clock(block.end),
            color_hex=assignment.color_hex,
            start_instant=block.starts_at(now),
            end_instant=block.ends_at(now),
        )
    if isinstance(occupant, ActivityOccupant):
        return ClassLiveStatus(
            class_name=occupant.label,
            block=block.label,
            start_time=format_clock(block.start),
            end_time=format_clock(block.end),
            color_hex=ACTIVITY_COLORS.get(occupant.activity, "#C8102E"),
            start_instant=block.starts_at(now),
            end_instant=block.ends_at(now),
        )
    return None


def same_occupant(a: ClassLiveStatus, b: ClassLiveStatus) -> bool:
    return (a.class_name, a.block, a.start_instant) == (b.class_name, b.block, b.start_instant)


class ClassLiveStatusMachine:
    """Keeps at most one class live status published for a student."""

    def __init__(
        self,
        projection: ScheduleProjection,
        context: StudentContext,
        channel: BroadcastChannel,
        config: SchooldayConfig,
        *,
        overrides: OverrideProvider | None = None,
        store: RecordStore | None = None,
        push: PushChannel | None = None,
        clock: Callable[[], datetime] | None = None,
        parity_of: Callable[[date], Parity] = parity_for,
    ) -> None:
        self.projection = projection
        self.context = context
        self.channel = channel
        self.config = config
        self.overrides = overrides
        self.store = store
        self.push = push
        self._clock = clock or (lambda: datetime.now(config.zone))
        self._parity_of = parity_of

        self._lock = asyncio.Lock()
        self._state = MachineState.IDLE
        self._current: ClassLiveStatus | None = None
        self._boundary = OneShotTimer("live_status_boundary")
        self._boundary_at: datetime | None = None
        self._writes: set[asyncio.Task] = set()

    @property
    def state(self) -> MachineState:
        return self._state

    @property
    def current(self) -> ClassLiveStatus | None:
        """The published status, or the ended one awaiting dismissal."""
        return self._current

    def content(self, now: datetime | None = None) -> ClassLiveContent | None:
        """Progress snapshot for display; computing it never writes."""
        if self._state is not MachineState.PUBLISHING or self._current is None:
            return None
        return self._current.content_at(now or self._clock())

    # --- entry points ---

    async def on_tick(self) -> Transition:
        return await self.reconcile(trigger="tick")

    async def on_foreground(self) -> Transition:
        return await self.reconcile(trigger="foreground")

    async def on_push_wake(self, payload: dict[str, Any] | None = None) -> Transition:
        log.debug("live_status_push_wake", payload=payload or {})
        return await self.reconcile(trigger="push")

    async def reconcile(self, now: datetime | None = None, *, trigger: str = "tick") -> Transition:
        """Bring the published status in line with the schedule projection."""
        async with self._lock:
            now = now or self._clock()
            parity = self._parity_of(now.date())
            override = await self.overrides.for_day(now.date()) if self.overrides else None
            projection = await self.projection.project(
                now, parity, self.context, override.blocks if override else None
            )
            transition = await self._apply(now, projection)
            if transition is not Transition.NOOP:
                log.info(
                    "live_status_transition",
                    transition=transition.value,
                    trigger=trigger,
                    state=self._state.value,
                    block=self._current.block if self._current else None,
                )
            return transition

    async def restore(self, existing: ClassLiveStatus, now: datetime | None = None) -> None:
        """Adopt a status that was already on air when the process started.

        An expired one is ended immediately; reconcile() then decides what
        should replace it.
        """
        async with self._lock:
            now = now or self._clock()
            self._current = existing
            self._state = MachineState.PUBLISHING
            if existing.end_instant <= now:
                log.info("live_status_restore_expired", activity_id=existing.activity_id)
                await self._end(now, grace_seconds=0)
            else:
                log.info("live_status_restored", activity_id=existing.activity_id)
                self._arm_boundary(now, existing.end_instant)

    async def restore_from_store(self, now: datetime | None = None) -> ClassLiveStatus | None:
        """Find this student's last published status in the store and adopt it."""
        if self.store is None:
            return None
        records = await self.store.query(
            RECORD_TYPE, [where("userId", "==", self.context.user_id)]
        )
        publishing = [
            stored.status
            for stored in decode_all(StoredClassLiveStatus, records)
            if stored.status.phase is LivePhase.PUBLISHING
        ]
        if not publishing:
            return None
        latest = max(publishing, key=lambda s: s.start_instant)
        await self.restore(latest, now)
        return latest

    async def flush(self) -> None:
        """Wait for fire-and-forget writes still in flight."""
        if self._writes:
            await asyncio.gather(*list(self._writes), return_exceptions=True)

    async def shutdown(self) -> None:
        self._boundary.cancel()
        await self.flush()

    # --- transitions ---

    async def _apply(self, now: datetime, projection: Projection) -> Transition:
        target = live_status_for(projection, now)

        dismissed = False
        if self._state is MachineState.ENDED and self._current is not None:
            if self._current.dismiss_at is None or self._current.dismiss_at <= now:
                self._state = MachineState.IDLE
                self._current = None
                dismissed = True

        if self._state is MachineState.PUBLISHING and self._current is not None:
            current = self._current
            block_over = now >= current.end_instant

            if target is None:
                grace = self.config.end_of_block_dismissal_seconds if block_over else 0
                await self._end(now, grace_seconds=grace)
                self._arm_next(now, projection)
                return Transition.ENDED

            if same_occupant(current, target):
                return Transition.NOOP

            if block_over:
                await self._end(now, grace_seconds=self.config.end_of_block_dismissal_seconds)
                await self._start(now, target)
                return Transition.STARTED

            log.warning(
                "live_status_drift",
                published=current.class_name,
                expected=target.class_name,
                block=target.block,
            )
            await self._end(now, grace_seconds=0)
            await self._start(now, target)
            return Transition.CORRECTED

        if target is None:
            self._arm_next(now, projection)
            return Transition.DISMISSED if dismissed else Transition.NOOP

        await self._start(now, target)
        return Transition.STARTED

    async def _start(self, now: datetime, status: ClassLiveStatus) -> None:
        self._current = status
        self._state = MachineState.PUBLISHING
        await self.channel.publish(
            LiveStatusEvent(kind=EventKind.STARTED, key=status.activity_id, status=status, at=now)
        )
        self._persist(status)
        self._arm_boundary(now, status.end_instant)
        log.info(
            "live_status_started",
            activity_id=status.activity_id,
            class_name=status.class_name,
            block=status.block,
            ends=status.end_time,
        )

    async def _end(self, now: datetime, *, grace_seconds: float) -> None:
        if self._current is None:
            return
        ended = self._current.model_copy(
            update={
                "phase": LivePhase.ENDED,
                "dismiss_at": now + timedelta(seconds=grace_seconds),
            }
        )
        self._current = ended
        self._state = MachineState.ENDED
        self._boundary.cancel()
        self._boundary_at = None
        await self.channel.publish(
            LiveStatusEvent(
                kind=EventKind.ENDED,
                key=ended.activity_id,
                status=ended,
                dismiss_at=ended.dismiss_at,
                at=now,
            )
        )
        self._persist(ended)
        log.info(
            "live_status_ended",
            activity_id=ended.activity_id,
            class_name=ended.class_name,
            grace_seconds=grace_seconds,
        )

    # --- timers and background writes ---

    def _arm_next(self, now: datetime, projection: Projection) -> None:
        if projection.next_block is not None:
            self._arm_boundary(now, projection.next_block.starts_at(now))

    def _arm_boundary(self, now: datetime, at: datetime) -> None:
        if self._boundary.armed and self._boundary_at == at:
            return
        delay = (at - now).total_seconds() + self.config.boundary_padding_seconds
        self._boundary_at = at
        self._boundary.arm(delay, self._on_boundary)
        if self.push is not None:
            payload = {"reason": "block-boundary", "userId": self.context.user_id, "at": at.isoformat()}
            self._spawn(self.push.deliver_silent(payload, delay), "push_schedule")

    async def _on_boundary(self) -> None:
        self._boundary_at = None
        await self.reconcile(trigger="boundary")

    def _persist(self, status: ClassLiveStatus) -> None:
        if self.store is None:
            return
        stored = StoredClassLiveStatus(user_id=self.context.user_id, status=status)
        record = encode_record(RECORD_TYPE, status.activity_id, stored)
        self._spawn(self.store.save(record), "live_status_persist")

    def _spawn(self, coro: Coroutine, what: str) -> None:
        task = asyncio.create_task(self._guarded(coro, what))
        self._writes.add(task)
        task.add_done_callback(self._writes.discard)

    async def _guarded(self, coro: Coroutine, what: str) -> None:
        try:
            await coro
        except Exception as e:
            log.warning("live_status_write_failed", operation=what, error=str(e))
