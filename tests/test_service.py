"""End-to-end tests through the Schoolday facade."""

import pytest
import pytest_asyncio

from schoolday.assignments import AssignmentRepository, StudentContext
from schoolday.live.claims import AlreadyClaimed, Claimed
from schoolday.live.classes import Transition
from schoolday.models import (
    ActivityKind,
    DayOverride,
    Parity,
    SportsEvent,
    SportsStatusPatch,
    SportType,
    TimeBlock,
    Weekday,
)
from schoolday.service import Schoolday
from tests.support import RED_MONDAY, FakeClock, assignment, at


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(at(RED_MONDAY, 8, 10))


@pytest_asyncio.fixture
async def engine(store, context, config, clock):
    engine = Schoolday(store, context, config=config, clock=clock)
    yield engine
    await engine.stop()


class TestProjection:
    @pytest.mark.asyncio
    async def test_projection_uses_standard_x_days(self, engine):
        projection = await engine.get_projection()
        block, occupant = projection.current
        assert block.label == "Ax"
        assert occupant.assignment.class_name == "Geometry"

    @pytest.mark.asyncio
    async def test_override_applies(self, engine, clock):
        await engine.overrides.publish_override(
            DayOverride(
                day=RED_MONDAY,
                title="Assembly Day",
                blocks=(
                    TimeBlock(label="A", start="8:00", end="9:00"),
                    TimeBlock(label="Assembly", start="9:05", end="10:00"),
                ),
                created_by="dean",
                created_at=clock.now,
            )
        )
        projection = await engine.get_projection(at(RED_MONDAY, 9, 30))
        assert projection.occupant.activity is ActivityKind.ASSEMBLY
        assert [b.label for b in await engine.day_blocks(RED_MONDAY)] == ["A", "Assembly"]

    @pytest.mark.asyncio
    async def test_consensus_votes_change_resolution(self, engine):
        """Three classmates agreeing on Tuesday moves the X block off Monday."""
        for _ in range(3):
            await engine.submit_xblock_vote("Geometry", "Ms. Rivera", Parity.A, [Weekday.TUESDAY])
        view = await engine.current_view()
        assert view.occupant.kind == "free"

    @pytest.mark.asyncio
    async def test_for_user_loads_assignments(self, store, config, clock):
        await AssignmentRepository(store).save_assignment("s9", Parity.A, assignment("A", "Physics"))
        engine = await Schoolday.for_user(store, "s9", config=config, clock=clock)
        projection = await engine.get_projection()
        assert projection.occupant.assignment.class_name == "Physics"


class TestLive:
    @pytest.mark.asyncio
    async def test_tick_starts_live_status(self, engine):
        assert await engine.tick() is Transition.STARTED
        assert engine.live_feed.history[0].status.class_name == "Geometry"

    @pytest.mark.asyncio
    async def test_push_wake_without_event_reconciles(self, engine):
        assert await engine.on_push_wake({"reason": "block-boundary"}) is Transition.STARTED

    @pytest.mark.asyncio
    async def test_start_and_stop(self, engine):
        await engine.start()
        assert engine.live.current.class_name == "Geometry"
        await engine.stop()


class TestSports:
    @pytest.mark.asyncio
    async def test_reporter_flow(self, engine, clock, store, config):
        event = SportsEvent(
            event_id="game-1",
            sport_type=SportType.FOOTBALL,
            opponent="Groton",
            starts_at=at(RED_MONDAY, 15, 30),
        )
        await engine.follow_event(event)
        assert isinstance(await engine.claim_reporter("game-1", "Sam"), Claimed)

        rival = Schoolday(store, StudentContext("s2"), config=config, clock=clock)
        assert isinstance(await rival.claim_reporter("game-1", "Alex"), AlreadyClaimed)

        status = await engine.publish_reporter_update("game-1", SportsStatusPatch(home_score=7))
        assert status.home_score == 7

        refreshed = await engine.on_push_wake({"eventId": "game-1"})
        assert refreshed.home_score == 7

        await engine.release_reporter("game-1")
        assert engine.sports.status("game-1").reporter_name is None
        await rival.stop()

    @pytest.mark.asyncio
    async def test_claims_and_votes_use_engine_clock(self, engine, clock, store, config):
        claimed = await engine.claim_reporter("game-1", "Sam")
        assert claimed.claim.claimed_at == clock.now

        rival = Schoolday(store, StudentContext("s2"), config=config, clock=clock)
        clock.advance(config.reporter_claim_window_hours * 3600 + 1)
        assert isinstance(await rival.claim_reporter("game-1", "Alex"), Claimed)

        vote = await engine.submit_xblock_vote("Geometry", "Ms. Rivera", Parity.A, [Weekday.TUESDAY])
        assert vote.submitted_at == clock.now
        await rival.stop()
