"""A student's class assignments and the context object the engine runs against.

Each parity has its own map from block letter to ClassAssignment. A letter with
no entry is a free period.
"""

from collections.abc import Iterable

from schoolday.errors import RecordNotFoundError
from schoolday.logging import get_logger
from schoolday.models import (
    BLOCK_LETTERS,
    ClassAssignment,
    ExtracurricularProfile,
    Parity,
    RecordModel,
)
from schoolday.store import RecordStore, decode_all, encode_record, where

log = get_logger(__name__)

RECORD_TYPE = "UserClass"


class AssignmentBook:
    """Per-parity block-letter -> class maps, at most one class per letter."""

    def __init__(self, assignments: Iterable[tuple[Parity, ClassAssignment]] = ()) -> None:
        self._maps: dict[Parity, dict[str, ClassAssignment]] = {Parity.A: {}, Parity.B: {}}
        for parity, assignment in assignments:
            self.set(assignment, parity)

    def set(self, assignment: ClassAssignment, parity: Parity) -> None:
        self._maps[parity][assignment.block_letter] = assignment

    def remove(self, block_letter: str, parity: Parity) -> ClassAssignment | None:
        return self._maps[parity].pop(block_letter.upper(), None)

    def get(self, block_letter: str, parity: Parity) -> ClassAssignment | None:
        return self._maps[parity].get(block_letter.upper())

    def get_with_fallback(self, block_letter: str, parity: Parity) -> ClassAssignment | None:
        """Look in the other parity's map when this one has nothing for the letter."""
        return self.get(block_letter, parity) or self.get(block_letter, parity.other)

    def for_period(self, period: int, parity: Parity) -> ClassAssignment | None:
        if not 1 <= period <= len(BLOCK_LETTERS):
            return None
        return self.get(BLOCK_LETTERS[period - 1], parity)

    def assignments(self, parity: Parity) -> list[ClassAssignment]:
        return [self._maps[parity][letter] for letter in sorted(self._maps[parity])]

    def clear(self) -> None:
        for mapping in self._maps.values():
            mapping.clear()


class StudentContext:
    """Everything about one student the projection and live status need.

    Passed explicitly to constructors; there is no process-wide preferences object.
    """

    def __init__(
        self,
        user_id: str,
        assignments: AssignmentBook | None = None,
        profile: ExtracurricularProfile | None = None,
        *,
        fallback_to_other_parity: bool = False,
    ) -> None:
        self.user_id = user_id
        self.assignments = assignments if assignments is not None else AssignmentBook()
        self.profile = profile if profile is not None else ExtracurricularProfile()
        self.fallback_to_other_parity = fallback_to_other_parity

    def assignment_for(self, block_letter: str, parity: Parity) -> ClassAssignment | None:
        if self.fallback_to_other_parity:
            return self.assignments.get_with_fallback(block_letter, parity)
        return self.assignments.get(block_letter, parity)


class StoredAssignment(RecordModel):
    user_id: str
    parity: Parity
    assignment: ClassAssignment


def _record_id(user_id: str, parity: Parity, block_letter: str) -> str:
    return f"{user_id}-{parity.value}-{block_letter.upper()}"


class AssignmentRepository:
    """Persists a student's AssignmentBook through the record store."""

    def __init__(self, store: RecordStore) -> None:
        self.store = store

    async def save_assignment(
        self, user_id: str, parity: Parity, assignment: ClassAssignment
    ) -> None:
        stored = StoredAssignment(user_id=user_id, parity=parity, assignment=assignment)
        record_id = _record_id(user_id, parity, assignment.block_letter)
        await self.store.save(encode_record(RECORD_TYPE, record_id, stored))
        log.info(
            "assignment_saved",
            user_id=user_id,
            parity=parity.value,
            block_letter=assignment.block_letter,
        )

    async def remove_assignment(self, user_id: str, parity: Parity, block_letter: str) -> None:
        try:
            await self.store.delete(RECORD_TYPE, _record_id(user_id, parity, block_letter))
        except RecordNotFoundError:
            log.debug("assignment_already_absent", user_id=user_id, block_letter=block_letter)
            return
        log.info(
            "assignment_removed",
            user_id=user_id,
            parity=parity.value,
            block_letter=block_letter,
        )

    async def load(self, user_id: str) -> AssignmentBook:
        records = await self.store.query(RECORD_TYPE, [where("userId", "==", user_id)])
        stored = decode_all(StoredAssignment, records)
        log.info("assignments_loaded", user_id=user_id, count=len(stored))
        return AssignmentBook((s.parity, s.assignment) for s in stored)
