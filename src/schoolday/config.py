"""Engine configuration loaded from environment variables.

Every component receives the config object through its constructor; nothing
below this module reads the singleton on its own.
"""

from zoneinfo import ZoneInfo

from pydantic import Field
from pydantic_settings import BaseSettings


class SchooldayConfig(BaseSettings):
    """Schedule and live-status settings loaded from environment variables.

    Settings are loaded from ``SCHOOLDAY_``-prefixed environment variables with
    sensible defaults. For local development, create a .env file in the project root.
    """

    timezone: str = Field(
        default="America/New_York",
        description="IANA time zone the bell schedule is expressed in",
    )

    # Logging
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format (for production)",
    )
    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    # Live status timing
    tick_interval_seconds: float = Field(
        default=1.0,
        description="Cadence of the foreground re-check that refreshes progress",
    )
    boundary_padding_seconds: float = Field(
        default=1.0,
        description="Delay past a block's end before the boundary re-check fires",
    )
    end_of_block_dismissal_seconds: float = Field(
        default=30.0,
        description="Grace period an ended class status stays visible",
    )
    sports_dismissal_seconds: float = Field(
        default=60.0,
        description="Grace period an unfollowed sports status stays visible",
    )
    sports_stale_after_hours: float = Field(
        default=4.0,
        description="Hours after an event's start when its live status goes stale",
    )

    # Crowd consensus
    consensus_vote_threshold: int = Field(
        default=3,
        description="Votes a shared X-block day set needs before it is auto-populated",
    )
    consensus_cache_ttl_seconds: float = Field(
        default=300.0,
        description="How long a consensus lookup is reused before re-querying the store",
    )

    # Sports reporters
    reporter_claim_window_hours: float = Field(
        default=3.0,
        description="Lifetime of a reporter claim before it self-expires",
    )
    reporter_debounce_seconds: float = Field(
        default=0.4,
        description="Quiet period before reporter console edits are published",
    )

    # Overrides and store reads
    override_cache_max_age_days: int = Field(
        default=1,
        description="Cached day overrides older than this many days are purged",
    )
    store_read_attempts: int = Field(
        default=3,
        description="Attempts for store reads that gate a user-visible decision",
    )
    store_read_wait_seconds: float = Field(
        default=0.2,
        description="Fixed wait between store read attempts",
    )

    model_config = {
        "env_prefix": "SCHOOLDAY_",
        "case_sensitive": False,
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def zone(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


# Singleton pattern
_config: SchooldayConfig | None = None


def get_config() -> SchooldayConfig:
    """Get the engine configuration singleton.

    Returns:
        SchooldayConfig: Engine configuration instance
    """
    global _config
    if _config is None:
        _config = SchooldayConfig()
    return _config
