"""Crowd-sourced X-block day sets.

Students submit the weekdays their class actually meets in its X block. Each
distinct day set for a (class, teacher, parity) key is its own record with its
own tally, so two camps never merge their votes. Once the leading set reaches
the vote threshold it is offered to everyone else in that class.

The read-increment-save in submit_or_increment is not atomic: concurrent
submitters can lose a vote under the store's last-writer-wins rule.
"""

from collections.abc import Callable, Iterable
from datetime import datetime, timezone

from schoolday.logging import get_logger
from schoolday.models import Parity, Weekday, XBlockConsensusRecord, canonical_days
from schoolday.store import RecordStore, decode_all, encode_record, where

log = get_logger(__name__)

RECORD_TYPE = "XBlockMapping"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConsensusStore:
    """Vote tallies for X-block day sets, backed by a RecordStore."""

    def __init__(
        self,
        store: RecordStore,
        *,
        vote_threshold: int = 3,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self.vote_threshold = vote_threshold
        self._clock = clock

    def _key_predicates(self, class_name: str, teacher_name: str, parity: Parity):
        return [
            where("className", "==", class_name),
            where("teacherName", "==", teacher_name),
            where("parity", "==", parity),
        ]

    async def submit_or_increment(
        self,
        class_name: str,
        teacher_name: str,
        parity: Parity,
        x_days: Iterable[Weekday],
        submitted_by: str,
    ) -> XBlockConsensusRecord:
        """Add one vote for an exact day set, creating its record on first vote.

        Returns:
            The record as saved, with its updated vote count.
        """
        days = canonical_days(x_days)
        predicates = self._key_predicates(class_name, teacher_name, parity)
        predicates.append(where("xDays", "==", days))

        existing = decode_all(
            XBlockConsensusRecord,
            await self.store.query(RECORD_TYPE, predicates, limit=1),
        )
        if existing:
            record = existing[0].model_copy(update={"vote_count": existing[0].vote_count + 1})
            log.info(
                "xblock_vote_incremented",
                class_name=class_name,
                parity=parity.value,
                x_days=days,
                vote_count=record.vote_count,
            )
        else:
            record = XBlockConsensusRecord(
                class_name=class_name,
                teacher_name=teacher_name,
                parity=parity,
                x_days=frozenset(Weekday(d) for d in days),
                vote_count=1,
                submitted_by=submitted_by,
                submitted_at=self._clock(),
            )
            log.info(
                "xblock_vote_created",
                class_name=class_name,
                parity=parity.value,
                x_days=days,
            )

        await self.store.save(encode_record(RECORD_TYPE, record.id, record))
        return record

    async def most_voted(
        self, class_name: str, teacher_name: str, parity: Parity
    ) -> XBlockConsensusRecord | None:
        """Highest-tally record for the key; ties are broken arbitrarily."""
        records = decode_all(
            XBlockConsensusRecord,
            await self.store.query(
                RECORD_TYPE,
                self._key_predicates(class_name, teacher_name, parity),
                sort=[("voteCount", False)],
            ),
        )
        if not records:
            return None
        return max(records, key=lambda r: r.vote_count)

    async def auto_populate_candidate(
        self, class_name: str, teacher_name: str, parity: Parity
    ) -> frozenset[Weekday] | None:
        """The leading day set, only once it has reached the vote threshold."""
        popular = await self.most_voted(class_name, teacher_name, parity)
        if popular is not None and popular.vote_count >= self.vote_threshold:
            return popular.x_days
        return None
