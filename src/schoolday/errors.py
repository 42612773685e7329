"""Error hierarchy for record store access and schedule validation.

Store errors are split the same way the retry decorators classify them:
transient failures (worth another read attempt) vs permanent failures.

Example usage with tenacity:
    @retry(retry=retry_if_exception_type(TransientStoreError), stop=stop_after_attempt(3))
    async def fetch_override(day: date):
        ...

Conflicts a user must see (a reporter slot already taken) are returned as typed
results from ``schoolday.live.claims`` rather than raised.
"""


class SchooldayError(Exception):
    """Base exception for all engine errors."""

    pass


class StoreError(SchooldayError):
    """Base exception for remote record store failures."""

    pass


class TransientStoreError(StoreError):
    """Temporary store failure that may succeed on retry.

    Examples: network timeouts, throttling, service briefly unavailable.
    """

    pass


class PermanentStoreError(StoreError):
    """Store failure that won't succeed on retry.

    Examples: rejected write, schema mismatch, missing permissions.
    """

    pass


class RecordConflictError(PermanentStoreError):
    """A create was attempted for a record id that already exists."""

    def __init__(self, record_type: str, record_id: str) -> None:
        super().__init__(f"{record_type} record {record_id!r} already exists")
        self.record_type = record_type
        self.record_id = record_id


class RecordNotFoundError(PermanentStoreError):
    """A record addressed by id does not exist."""

    def __init__(self, record_type: str, record_id: str) -> None:
        super().__init__(f"{record_type} record {record_id!r} not found")
        self.record_type = record_type
        self.record_id = record_id


class ScheduleValidationError(SchooldayError, ValueError):
    """A block list is structurally invalid.

    Examples: unparseable time string, block ending before it starts,
    blocks out of order or overlapping.

    Also a ValueError, so pydantic validators report it as a field error.
    """

    pass
