"""Tests for the record store boundary."""

import pytest

from schoolday.errors import RecordConflictError, RecordNotFoundError
from schoolday.models import ReporterClaim
from schoolday.store import (
    InMemoryRecordStore,
    StoredRecord,
    decode_all,
    decode_record,
    encode_record,
    where,
)
from tests.support import RED_MONDAY, at


def _record(record_id: str, **fields) -> StoredRecord:
    return StoredRecord(record_type="Thing", record_id=record_id, fields=fields)


class TestInMemoryRecordStore:
    @pytest.mark.asyncio
    async def test_create_rejects_existing_id(self, store):
        """create() is insert-only; the second create conflicts."""
        await store.create(_record("t1", n=1))
        with pytest.raises(RecordConflictError):
            await store.create(_record("t1", n=2))
        assert (await store.fetch("Thing", "t1")).fields["n"] == 1

    @pytest.mark.asyncio
    async def test_save_is_last_writer_wins(self, store):
        await store.save(_record("t1", n=1))
        await store.save(_record("t1", n=2))
        assert (await store.fetch("Thing", "t1")).fields["n"] == 2
        assert len(store) == 1

    @pytest.mark.asyncio
    async def test_query_filters_sorts_and_limits(self, store):
        for i, team in enumerate(["red", "blue", "red", "red"]):
            await store.save(_record(f"t{i}", team=team, score=i))

        result = await store.query(
            "Thing", [where("team", "==", "red")], sort=[("score", False)], limit=2
        )
        assert [r.record_id for r in result] == ["t3", "t2"]

    @pytest.mark.asyncio
    async def test_query_ignores_other_record_types(self, store):
        await store.save(_record("t1", n=1))
        await store.save(StoredRecord(record_type="Other", record_id="o1", fields={"n": 1}))
        assert len(await store.query("Thing")) == 1

    @pytest.mark.asyncio
    async def test_incomparable_predicate_does_not_match(self, store):
        await store.save(_record("t1", n="text"))
        assert await store.query("Thing", [where("n", ">", 3)]) == []

    @pytest.mark.asyncio
    async def test_delete_missing_raises(self, store):
        with pytest.raises(RecordNotFoundError):
            await store.delete("Thing", "nope")

    @pytest.mark.asyncio
    async def test_returned_records_are_copies(self, store):
        await store.save(_record("t1", tags=["a"]))
        fetched = await store.fetch("Thing", "t1")
        fetched.fields["tags"].append("b")
        assert (await store.fetch("Thing", "t1")).fields["tags"] == ["a"]


class TestCodec:
    def test_encode_uses_camel_case(self):
        claim = ReporterClaim(
            id="e1",
            event_id="e1",
            reporter_id="r1",
            reporter_name="Sam",
            claimed_at=at(RED_MONDAY, 15, 0),
            expires_at=at(RED_MONDAY, 18, 0),
        )
        record = encode_record("SportsReporterClaim", "e1", claim)
        assert record.fields["reporterName"] == "Sam"
        assert decode_record(ReporterClaim, record) == claim

    def test_malformed_record_decodes_as_absent(self):
        """A record missing required fields reads as None instead of half-populated."""
        record = StoredRecord(
            record_type="SportsReporterClaim", record_id="e1", fields={"eventId": "e1"}
        )
        assert decode_record(ReporterClaim, record) is None
        assert decode_all(ReporterClaim, [record]) == []

    def test_where_rejects_unknown_operator(self):
        with pytest.raises(ValueError):
            where("n", "~", 1)


def test_in_memory_store_starts_empty():
    assert len(InMemoryRecordStore()) == 0
