"""Tests for turning transcribed schedule JSON into blocks."""

from datetime import time

import pytest

from schoolday.errors import ScheduleValidationError
from schoolday.models import Parity, Weekday
from schoolday.transcription import (
    override_from_transcription,
    parse_schedule_json,
    strip_code_fence,
    transcribe_schedule,
    validate_transcription,
)
from tests.support import RED_MONDAY, RED_TUESDAY

FENCED = """```json
{
  "Monday": [
    {"block": "A", "startTime": "08:00", "endTime": "08:50"},
    {"block": "Lunch", "startTime": "12:05", "endTime": "12:55"},
    {"block": "X", "startTime": "08:55", "endTime": "10:25"}
  ]
}
```"""


class TestParse:
    def test_strips_fence_and_sorts(self):
        result = parse_schedule_json(FENCED)
        monday = result[Weekday.MONDAY]
        assert [b.label for b in monday] == ["A", "X", "Lunch"]
        assert monday[0].start == time(8, 0)

    def test_plain_json_accepted(self):
        text = '{"tuesday": [{"block": "E", "startTime": "1:20", "endTime": "2:00"}]}'
        result = parse_schedule_json(text)
        assert result[Weekday.TUESDAY][0].start == time(13, 20)

    def test_bare_fence_stripped(self):
        assert strip_code_fence("```\n{}\n```") == "{}"

    def test_not_json(self):
        with pytest.raises(ScheduleValidationError, match="not valid JSON"):
            parse_schedule_json("Sorry, I can't read that image.")

    def test_wrong_shape(self):
        with pytest.raises(ScheduleValidationError, match="wrong shape"):
            parse_schedule_json('{"Monday": [{"block": "A"}]}')

    def test_unknown_weekday(self):
        with pytest.raises(ScheduleValidationError, match="Unknown weekday"):
            parse_schedule_json('{"Funday": []}')

    def test_bad_time(self):
        with pytest.raises(ScheduleValidationError):
            parse_schedule_json('{"Monday": [{"block": "A", "startTime": "8am", "endTime": "9"}]}')


class TestValidate:
    def test_overlap_names_the_day(self):
        text = (
            '{"Friday": [{"block": "A", "startTime": "8:00", "endTime": "9:00"},'
            ' {"block": "B", "startTime": "8:30", "endTime": "9:30"}]}'
        )
        with pytest.raises(ScheduleValidationError, match="Friday"):
            validate_transcription(parse_schedule_json(text))

    def test_empty_rejected(self):
        with pytest.raises(ScheduleValidationError):
            validate_transcription({})

    def test_valid(self):
        validate_transcription(parse_schedule_json(FENCED))


class TestOverride:
    def test_builds_candidate_for_matching_weekday(self):
        override = override_from_transcription(
            parse_schedule_json(FENCED), RED_MONDAY, "Assembly Day", "dean"
        )
        assert override.day == RED_MONDAY
        assert [b.label for b in override.blocks] == ["A", "X", "Lunch"]
        assert override.active

    def test_missing_weekday(self):
        with pytest.raises(ScheduleValidationError, match="Tuesday"):
            override_from_transcription(parse_schedule_json(FENCED), RED_TUESDAY, "t", "dean")


class TestTransformer:
    @pytest.mark.asyncio
    async def test_transcribe_runs_parse_and_validate(self):
        class CannedTransformer:
            def __init__(self) -> None:
                self.labels: list[str] = []

            async def transcribe(self, image: bytes, parity_label: str) -> str:
                self.labels.append(parity_label)
                return FENCED

        transformer = CannedTransformer()
        result = await transcribe_schedule(transformer, b"\x89PNG", Parity.B)
        assert Weekday.MONDAY in result
        assert transformer.labels == ["White"]
