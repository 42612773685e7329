"""Reporter claims: who may push manual updates for a sports event.

One claim record per event (its id is the event id). A claim lasts for a fixed
window; past ``expires_at`` it reads as released even if nobody released it.
Losing a race is an expected outcome, so claim() returns a typed result rather
than raising.
"""

from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from pydantic import BaseModel, ConfigDict

from schoolday.errors import RecordConflictError
from schoolday.logging import get_logger
from schoolday.models import ClaimStatus, ReporterClaim
from schoolday.store import RecordStore, decode_record, encode_record

log = get_logger(__name__)

RECORD_TYPE = "SportsReporterClaim"


class Claimed(BaseModel):
    model_config = ConfigDict(frozen=True)

    claim: ReporterClaim


class AlreadyClaimed(BaseModel):
    model_config = ConfigDict(frozen=True)

    by: ReporterClaim


class NotClaimHolder(BaseModel):
    """The caller tried to act on an event whose active claim is someone else's."""

    model_config = ConfigDict(frozen=True)

    holder: ReporterClaim | None


ClaimResult = Claimed | AlreadyClaimed


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ReporterClaims:
    def __init__(
        self,
        store: RecordStore,
        *,
        window_hours: float = 3,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self.window = timedelta(hours=window_hours)
        self._clock = clock

    async def _load(self, event_id: str) -> ReporterClaim | None:
        return decode_record(ReporterClaim, await self.store.fetch(RECORD_TYPE, event_id))

    async def active_claim(self, event_id: str, now: datetime | None = None) -> ReporterClaim | None:
        """The unexpired active claim for an event, if any."""
        claim = await self._load(event_id)
        if claim is None or not claim.is_active(now or self._clock()):
            return None
        return claim

    async def claim(self, event_id: str, reporter_id: str, reporter_name: str) -> ClaimResult:
        """Take the reporter slot for an event.

        Re-claiming by the current holder extends the window. A released or
        expired record is overwritten; a missing one is created, and losing
        that create race reports the winner.
        """
        now = self._clock()
        candidate = ReporterClaim(
            id=event_id,
            event_id=event_id,
            reporter_id=reporter_id,
            reporter_name=reporter_name,
            claimed_at=now,
            expires_at=now + self.window,
        )
        record = encode_record(RECORD_TYPE, event_id, candidate)

        existing = await self._load(event_id)
        if existing is not None and existing.is_active(now) and existing.reporter_id != reporter_id:
            log.info(
                "reporter_claim_rejected",
                event_id=event_id,
                reporter_id=reporter_id,
                held_by=existing.reporter_id,
            )
            return AlreadyClaimed(by=existing)

        if existing is None:
            try:
                await self.store.create(record)
            except RecordConflictError:
                winner = await self._load(event_id)
                if winner is not None and winner.is_active(now) and winner.reporter_id != reporter_id:
                    log.info("reporter_claim_race_lost", event_id=event_id, held_by=winner.reporter_id)
                    return AlreadyClaimed(by=winner)
                await self.store.save(record)
        else:
            await self.store.save(record)

        log.info(
            "reporter_claimed",
            event_id=event_id,
            reporter_id=reporter_id,
            expires_at=candidate.expires_at.isoformat(),
        )
        return Claimed(claim=candidate)

    async def release(self, event_id: str) -> ReporterClaim | None:
        """Mark an event's claim released. Returns the released claim, if one existed."""
        claim = await self._load(event_id)
        if claim is None:
            return None
        released = claim.model_copy(update={"status": ClaimStatus.RELEASED})
        await self.store.save(encode_record(RECORD_TYPE, event_id, released))
        log.info("reporter_released", event_id=event_id, reporter_id=claim.reporter_id)
        return released

    async def check_holder(self, event_id: str, reporter_id: str) -> ReporterClaim | NotClaimHolder:
        """The caller's active claim, or NotClaimHolder naming who holds it instead."""
        claim = await self.active_claim(event_id)
        if claim is None or claim.reporter_id != reporter_id:
            return NotClaimHolder(holder=claim)
        return claim
