from datetime import UTC, datetime
from pathlib import Path
from zoneinfo import ZoneInfo

from pydantic_settings import BaseSettings


def utcnow() -> datetime:
    """Return the current UTC time as a naive datetime.

    Every timestamp the store keeps is naive UTC so snapshots round-trip
    through SQLite (which doesn't store tz info) unchanged.
    """
    return datetime.now(UTC).replace(tzinfo=None)


class Settings(BaseSettings):
    app_name: str = "LeeCo Flashcards"
    database_url: str = f"sqlite+aiosqlite:///{Path(__file__).resolve().parent.parent / 'data' / 'flashcards.db'}"
    snapshot_key: str = "flashcards"
    timezone: str = ""  # IANA name; empty means the system local zone
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-20250514"
    anthropic_max_retries: int = 3
    anthropic_rate_limit_rpm: int = 50
    generation_max_cards: int = 10
    debug: bool = False

    model_config = {"env_prefix": "LEECO_", "env_file": ".env"}


settings = Settings()


def local_midnight(now: datetime | None = None, tz_name: str | None = None) -> datetime:
    """Return the most recent local midnight as a naive UTC datetime.

    Args:
        now: Reference instant in naive UTC (defaults to utcnow).
        tz_name: IANA zone name; falls back to ``settings.timezone`` and then
            to the system local zone.
    """
    now = now or utcnow()
    name = tz_name if tz_name is not None else settings.timezone
    tz = ZoneInfo(name) if name else None
    local = now.replace(tzinfo=UTC).astimezone(tz)
    midnight = local.replace(hour=0, minute=0, second=0, microsecond=0)
    return midnight.astimezone(UTC).replace(tzinfo=None)
