"""Record store boundary.

The remote store is an external collaborator: the engine only needs the
RecordStore protocol below. Typed models cross the boundary through
encode_record()/decode_record(); decoding fails closed, so a malformed record
reads as absent instead of half-populated.

InMemoryRecordStore is the reference implementation used by tests and scripts.
"""

import asyncio
import operator
from collections.abc import Sequence
from typing import Any, Protocol, TypeVar

from pydantic import BaseModel, Field, ValidationError

from schoolday.errors import RecordConflictError, RecordNotFoundError
from schoolday.logging import get_logger

log = get_logger(__name__)

M = TypeVar("M", bound=BaseModel)

_OPERATORS = {
    "==": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}


class StoredRecord(BaseModel):
    """A record as the store sees it: a type, an id and named fields."""

    record_type: str
    record_id: str
    fields: dict[str, Any] = Field(default_factory=dict)


class Predicate(BaseModel):
    """``field <op> value`` filter term; terms in a query are AND-ed."""

    field: str
    op: str = "=="
    value: Any = None

    def matches(self, record: StoredRecord) -> bool:
        if self.field not in record.fields:
            return False
        try:
            return bool(_OPERATORS[self.op](record.fields[self.field], self.value))
        except TypeError:
            return False


def where(field: str, op: str, value: Any) -> Predicate:
    if op not in _OPERATORS:
        raise ValueError(f"Unsupported operator {op!r}. Valid: {list(_OPERATORS)}")
    return Predicate(field=field, op=op, value=value)


class RecordStore(Protocol):
    async def query(
        self,
        record_type: str,
        predicates: Sequence[Predicate] = (),
        sort: Sequence[tuple[str, bool]] | None = None,
        limit: int | None = None,
    ) -> list[StoredRecord]: ...

    async def fetch(self, record_type: str, record_id: str) -> StoredRecord | None: ...

    async def create(self, record: StoredRecord) -> StoredRecord: ...

    async def save(self, record: StoredRecord) -> StoredRecord: ...

    async def delete(self, record_type: str, record_id: str) -> None: ...


def encode_record(
    record_type: str, record_id: str, model: BaseModel
) -> StoredRecord:
    """Flatten a model into store fields using its camelCase aliases."""
    return StoredRecord(
        record_type=record_type,
        record_id=record_id,
        fields=model.model_dump(mode="python", by_alias=True),
    )


def decode_record(model_cls: type[M], record: StoredRecord | None) -> M | None:
    """Rebuild a model from a stored record, or None if it is malformed."""
    if record is None:
        return None
    try:
        return model_cls.model_validate(record.fields)
    except ValidationError as e:
        log.warning(
            "malformed_record",
            record_type=record.record_type,
            record_id=record.record_id,
            errors=e.error_count(),
        )
        return None


def decode_all(model_cls: type[M], records: Sequence[StoredRecord]) -> list[M]:
    """Decode a query result, dropping malformed records."""
    decoded = (decode_record(model_cls, record) for record in records)
    return [model for model in decoded if model is not None]


class InMemoryRecordStore:
    """Dict-backed RecordStore with last-writer-wins saves.

    Records are copied on the way in and out so callers never share state
    with the store, as with a real remote database.
    """

    def __init__(self) -> None:
        self._records: dict[tuple[str, str], StoredRecord] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._records)

    async def query(
        self,
        record_type: str,
        predicates: Sequence[Predicate] = (),
        sort: Sequence[tuple[str, bool]] | None = None,
        limit: int | None = None,
    ) -> list[StoredRecord]:
        async with self._lock:
            matches = [
                record.model_copy(deep=True)
                for (rtype, _), record in self._records.items()
                if rtype == record_type and all(p.matches(record) for p in predicates)
            ]
        # Apply sort keys last-to-first so the first key is the primary order.
        for field, ascending in reversed(list(sort or ())):
            matches.sort(
                key=lambda r: (r.fields.get(field) is None, r.fields.get(field)),
                reverse=not ascending,
            )
        if limit is not None:
            matches = matches[:limit]
        return matches

    async def fetch(self, record_type: str, record_id: str) -> StoredRecord | None:
        async with self._lock:
            record = self._records.get((record_type, record_id))
            return record.model_copy(deep=True) if record else None

    async def create(self, record: StoredRecord) -> StoredRecord:
        key = (record.record_type, record.record_id)
        async with self._lock:
            if key in self._records:
                raise RecordConflictError(record.record_type, record.record_id)
            self._records[key] = record.model_copy(deep=True)
        log.debug("record_created", record_type=record.record_type, record_id=record.record_id)
        return record

    async def save(self, record: StoredRecord) -> StoredRecord:
        async with self._lock:
            self._records[(record.record_type, record.record_id)] = record.model_copy(
                deep=True
            )
        log.debug("record_saved", record_type=record.record_type, record_id=record.record_id)
        return record

    async def delete(self, record_type: str, record_id: str) -> None:
        async with self._lock:
            if self._records.pop((record_type, record_id), None) is None:
                raise RecordNotFoundError(record_type, record_id)
        log.debug("record_deleted", record_type=record_type, record_id=record_id)
