"""
Timestamp parsing and formatting utilities.

Sources hand us timestamps in several shapes (ISO strings, epoch seconds or
milliseconds, Firestore-style {"seconds", "nanoseconds"} objects); everything
is normalised to timezone-aware UTC datetimes here.
"""

from datetime import datetime

import pytz

# Numbers below this are epoch seconds, above are epoch milliseconds (2000-01-01 in ms)
_EPOCH_MS_THRESHOLD = 946684800000


def utc_now() -> datetime:
    return datetime.now(pytz.UTC)


def ensure_utc(dt: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if dt.tzinfo is None:
        return pytz.UTC.localize(dt)
    return dt.astimezone(pytz.UTC)


def _from_epoch(seconds: float) -> datetime | None:
    # Out-of-range, NaN and platform-unsupported values
    try:
        return datetime.fromtimestamp(seconds, pytz.UTC)
    except (ValueError, OverflowError, OSError):
        return None


def parse_source_timestamp(value) -> datetime | None:
    """
    Parse a timestamp from an external source.

    Returns None for missing or unparseable values.
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        return ensure_utc(value)

    if isinstance(value, dict):
        seconds = value.get("seconds", value.get("_seconds"))
        if not isinstance(seconds, (int, float)):
            return None
        nanos = value.get("nanoseconds", value.get("_nanoseconds")) or 0
        if not isinstance(nanos, (int, float)):
            nanos = 0
        return _from_epoch(seconds + nanos / 1e9)

    if isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        if value < _EPOCH_MS_THRESHOLD:
            return _from_epoch(value)
        return _from_epoch(value / 1000)

    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return ensure_utc(datetime.fromisoformat(text))
        except ValueError:
            return None

    return None

