"""Schedule projection: what is happening now, and what comes next.

Combines the bell tables (or today's override), a student's assignments, their
extracurricular profile and the X-block resolver into a single answer for an
instant: the current block and who or what occupies it, plus the next block.
"""

from collections.abc import Sequence
from datetime import datetime
from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

from schoolday.assignments import StudentContext
from schoolday.logging import get_logger
from schoolday.models import (
    BLOCK_LETTERS,
    ActivityKind,
    ClassAssignment,
    Parity,
    TimeBlock,
    Weekday,
)
from schoolday.timegrid import TimeGrid, activity_for_label
from schoolday.xblock import XBlockResolver

log = get_logger(__name__)


class ClassOccupant(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["class"] = "class"
    assignment: ClassAssignment


class ActivityOccupant(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["activity"] = "activity"
    activity: ActivityKind
    label: str  # as written in the schedule, e.g. "CommT"


class FreeOccupant(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["free"] = "free"


Occupant = Annotated[
    ClassOccupant | ActivityOccupant | FreeOccupant, Field(discriminator="kind")
]

FREE = FreeOccupant()


class Projection(BaseModel):
    """Current block with its occupant (both None outside any block) and the next block."""

    model_config = ConfigDict(frozen=True)

    current_block: TimeBlock | None = None
    occupant: Occupant | None = None
    next_block: TimeBlock | None = None

    @property
    def current(self) -> tuple[TimeBlock, Occupant] | None:
        if self.current_block is None or self.occupant is None:
            return None
        return self.current_block, self.occupant


class LiveKind(str, Enum):
    CLASS = "class"
    ACTIVITY = "activity"
    UPCOMING = "upcoming"
    IDLE = "idle"


class CurrentBlockView(BaseModel):
    """Projection flattened for display."""

    kind: LiveKind
    block: TimeBlock | None = None
    occupant: Occupant | None = None
    next_block: TimeBlock | None = None
    progress: float = 0.0
    time_remaining: float = 0.0  # seconds


class ScheduleProjection:
    """Resolves the occupant of the block active at a given instant."""

    def __init__(self, grid: TimeGrid, resolver: XBlockResolver) -> None:
        self.grid = grid
        self.resolver = resolver

    async def project(
        self,
        now: datetime,
        parity: Parity,
        context: StudentContext,
        override: Sequence[TimeBlock] | None = None,
    ) -> Projection:
        current = self.grid.current_block(now, parity, override)
        upcoming = self.grid.next_block(now, parity, override)
        if current is None:
            return Projection(next_block=upcoming)

        occupant = await self.occupant_for(current, now, parity, context)
        return Projection(current_block=current, occupant=occupant, next_block=upcoming)

    async def occupant_for(
        self,
        block: TimeBlock,
        now: datetime,
        parity: Parity,
        context: StudentContext,
    ) -> Occupant:
        activity = activity_for_label(block.label)
        if activity is not None:
            if activity.opt_in and not context.profile.participates_in(activity):
                return FREE
            return ActivityOccupant(activity=activity, label=block.label)

        letter = block.letter
        if len(letter) != 1 or letter not in BLOCK_LETTERS:
            return FREE

        assignment = context.assignment_for(letter, parity)
        if assignment is None:
            return FREE

        # The X sub-block shares its letter with the main block but only
        # meets on the class's X days.
        if block.is_extension:
            today = Weekday.of(now.date())
            if not await self.resolver.uses_xblock(assignment, letter, today, parity):
                log.debug(
                    "xblock_not_in_session",
                    block=block.label,
                    class_name=assignment.class_name,
                    day=today.value,
                )
                return FREE

        return ClassOccupant(assignment=assignment)

    async def view(
        self,
        now: datetime,
        parity: Parity,
        context: StudentContext,
        override: Sequence[TimeBlock] | None = None,
    ) -> CurrentBlockView:
        projection = await self.project(now, parity, context, override)
        block, occupant = projection.current_block, projection.occupant

        if block is not None and isinstance(occupant, (ClassOccupant, ActivityOccupant)):
            kind = LiveKind.CLASS if isinstance(occupant, ClassOccupant) else LiveKind.ACTIVITY
            return CurrentBlockView(
                kind=kind,
                block=block,
                occupant=occupant,
                next_block=projection.next_block,
                progress=block.progress(now),
                time_remaining=block.time_remaining(now).total_seconds(),
            )

        kind = LiveKind.UPCOMING if projection.next_block is not None else LiveKind.IDLE
        return CurrentBlockView(
            kind=kind,
            block=block,
            occupant=occupant,
            next_block=projection.next_block,
        )
