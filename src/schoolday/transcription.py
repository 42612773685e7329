"""Turning a photographed schedule into bell blocks.

The image-to-text step is an external service behind ScheduleImageTransformer.
What comes back is JSON keyed by weekday name::

    {"Monday": [{"block": "A", "startTime": "08:00", "endTime": "08:50"}, ...]}

often wrapped in a markdown code fence. Everything here is about getting from
that text to validated TimeBlocks.
"""

import json
from collections.abc import Sequence
from datetime import date, datetime, timezone
from typing import Protocol

from pydantic import TypeAdapter, ValidationError

from schoolday.errors import ScheduleValidationError
from schoolday.logging import get_logger
from schoolday.models import DayOverride, Parity, RecordModel, TimeBlock, Weekday
from schoolday.timegrid import validate_blocks

log = get_logger(__name__)

Transcription = dict[Weekday, tuple[TimeBlock, ...]]


class ScheduleImageTransformer(Protocol):
    async def transcribe(self, image: bytes, parity_label: str) -> str:
        """Return the raw model response for a photo of the Red or White week schedule."""
        ...


class TranscribedBlock(RecordModel):
    block: str
    start_time: str
    end_time: str


_payload_adapter = TypeAdapter(dict[str, list[TranscribedBlock]])


def strip_code_fence(text: str) -> str:
    cleaned = text.strip()
    if cleaned.startswith("```"):
        first_newline = cleaned.find("\n")
        cleaned = cleaned[first_newline + 1 :] if first_newline != -1 else cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    return cleaned.strip()


def parse_schedule_json(text: str) -> Transcription:
    """Parse a transcription response into blocks per weekday.

    Blocks within a day are sorted by start time; transcriptions do not
    reliably keep the printed order.

    Raises:
        ScheduleValidationError: If the text is not JSON of the expected shape,
            names an unknown weekday, or contains an unreadable time.
    """
    try:
        raw = json.loads(strip_code_fence(text))
        payload = _payload_adapter.validate_python(raw)
    except json.JSONDecodeError as e:
        raise ScheduleValidationError(f"Transcription is not valid JSON: {e.msg}") from e
    except ValidationError as e:
        raise ScheduleValidationError(
            f"Transcription has the wrong shape ({e.error_count()} errors)"
        ) from e

    result: Transcription = {}
    for day_name, entries in payload.items():
        try:
            weekday = Weekday(day_name.strip().capitalize())
        except ValueError as e:
            raise ScheduleValidationError(f"Unknown weekday {day_name!r}") from e
        try:
            blocks = [
                TimeBlock(label=entry.block.strip(), start=entry.start_time, end=entry.end_time)
                for entry in entries
            ]
        except ValidationError as e:
            raise ScheduleValidationError(f"Unreadable time on {weekday.value}") from e
        result[weekday] = tuple(sorted(blocks, key=lambda b: b.start))

    log.info(
        "transcription_parsed",
        days=len(result),
        blocks=sum(len(blocks) for blocks in result.values()),
    )
    return result


def validate_transcription(result: Transcription) -> None:
    """Structural checks on every day of a transcription.

    Raises:
        ScheduleValidationError: For an empty result or the first invalid day.
    """
    if not result:
        raise ScheduleValidationError("Transcription contains no days")
    for weekday, blocks in result.items():
        try:
            validate_blocks(blocks)
        except ScheduleValidationError as e:
            raise ScheduleValidationError(f"{weekday.value}: {e}") from e


def override_from_transcription(
    result: Transcription,
    day: date,
    title: str,
    created_by: str,
    *,
    created_at: datetime | None = None,
) -> DayOverride:
    """Build an override candidate for ``day`` from the matching weekday's blocks.

    The candidate is not published; an administrator reviews it first.

    Raises:
        ScheduleValidationError: If the transcription has no blocks for that weekday.
    """
    weekday = Weekday.of(day)
    blocks: Sequence[TimeBlock] = result.get(weekday, ())
    if not blocks:
        raise ScheduleValidationError(f"Transcription has no blocks for {weekday.value}")
    validate_blocks(blocks)
    return DayOverride(
        day=day,
        title=title,
        blocks=tuple(blocks),
        created_by=created_by,
        created_at=created_at or datetime.now(timezone.utc),
    )


async def transcribe_schedule(
    transformer: ScheduleImageTransformer, image: bytes, parity: Parity
) -> Transcription:
    """Run the external transformer for one rotation and validate what it returns."""
    text = await transformer.transcribe(image, parity.label)
    log.debug("transcription_received", parity=parity, chars=len(text))
    result = parse_schedule_json(text)
    validate_transcription(result)
    return result
