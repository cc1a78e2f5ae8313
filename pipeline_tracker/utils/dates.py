"""Date/time normalization helpers.

Timestamps are persisted at millisecond precision in the `...T12:00:00.000Z`
shape, so `utc_now()` truncates to milliseconds: a value stamped in memory
compares equal to the same value read back from disk.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from pipeline_tracker.logging_config import get_logger

logger = get_logger(__name__)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive values as already UTC; convert aware ones to UTC."""
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value.astimezone(timezone.utc)


def utc_now() -> datetime:
    """Current UTC time at persisted (millisecond) precision."""
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=(now.microsecond // 1000) * 1000)


def format_iso_datetime(value: datetime) -> str:
    """Serialize a datetime as ISO-8601 UTC with millisecond precision and a `Z` suffix."""
    return ensure_utc(value).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_iso_datetime(value: object) -> datetime | None:
    """Read a `startedAt` / `completedAt` value back as an aware UTC datetime.

    Accepts the `Z` suffix written by `format_iso_datetime` and any offset.
    Anything unparseable yields None, which record validation reports.
    """
    if isinstance(value, datetime):
        return ensure_utc(value)
    if value is None:
        return None
    if not isinstance(value, str):
        logger.debug("timestamp is not a string", value_type=type(value).__name__)
        return None

    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        return ensure_utc(datetime.fromisoformat(text))
    except ValueError:
        logger.debug("timestamp is not ISO-8601", value=value)
        return None


def format_duration(elapsed: timedelta) -> str:
    """Render an elapsed time as `<minutes>m <seconds>s` (negative spans clamp to zero)."""
    total_seconds = max(0, int(elapsed.total_seconds()))
    minutes, seconds = divmod(total_seconds, 60)
    return f"{minutes}m {seconds}s"
