"""Outbound channels for live status.

LiveStatusFeed is what the presentation layer subscribes to; anything that
implements BroadcastChannel (a lock-screen bridge, a websocket fan-out) can be
handed to the state machines instead. PushChannel is the external silent-push
service used to wake a backgrounded device at a block boundary.
"""

import asyncio
from collections import deque
from collections.abc import AsyncIterator
from datetime import datetime
from enum import Enum
from typing import Any, Protocol

from pydantic import BaseModel

from schoolday.logging import get_logger
from schoolday.models import ClassLiveStatus, SportsLiveStatus

log = get_logger(__name__)


class EventKind(str, Enum):
    STARTED = "started"
    UPDATED = "updated"
    ENDED = "ended"


class LiveStatusEvent(BaseModel):
    """One publish write: a live status started, changed or ended."""

    kind: EventKind
    key: str  # activity id for classes, event id for sports
    status: ClassLiveStatus | SportsLiveStatus
    dismiss_at: datetime | None = None
    at: datetime


class BroadcastChannel(Protocol):
    async def publish(self, event: LiveStatusEvent) -> None: ...


class PushChannel(Protocol):
    async def deliver_silent(self, payload: dict[str, Any], after_seconds: float) -> None: ...


class LiveStatusFeed:
    """In-process observable of live status events.

    Each subscriber gets its own queue. The most recent events are kept in
    ``history`` for late joiners and diagnostics.
    """

    def __init__(self, name: str, *, history_size: int = 100) -> None:
        self.name = name
        self.history: deque[LiveStatusEvent] = deque(maxlen=history_size)
        self._subscribers: set[asyncio.Queue] = set()

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue()
        self._subscribers.add(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        self._subscribers.discard(queue)

    async def publish(self, event: LiveStatusEvent) -> None:
        self.history.append(event)
        for queue in self._subscribers:
            queue.put_nowait(event)
        log.debug("live_event_published", feed=self.name, kind=event.kind.value, key=event.key)

    async def stream(self) -> AsyncIterator[LiveStatusEvent]:
        queue = self.subscribe()
        try:
            while True:
                yield await queue.get()
        finally:
            self.unsubscribe(queue)
