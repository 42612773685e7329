"""Live status publishing: the personal class status and followed sports events."""

from schoolday.live.channel import EventKind, LiveStatusEvent, LiveStatusFeed
from schoolday.live.claims import AlreadyClaimed, Claimed, NotClaimHolder, ReporterClaims
from schoolday.live.classes import ClassLiveStatusMachine, MachineState, Transition
from schoolday.live.sports import ReporterConsole, SportsLiveCoordinator
from schoolday.live.timers import Debouncer, OneShotTimer, Ticker

__all__ = [
    "AlreadyClaimed",
    "Claimed",
    "ClassLiveStatusMachine",
    "Debouncer",
    "EventKind",
    "LiveStatusEvent",
    "LiveStatusFeed",
    "MachineState",
    "NotClaimHolder",
    "OneShotTimer",
    "ReporterClaims",
    "ReporterConsole",
    "SportsLiveCoordinator",
    "Ticker",
    "Transition",
]
