"""
Apple epoch conversion for message-store timestamps.

The message store counts from 2001-01-01T00:00:00Z instead of the Unix epoch.
Older databases store seconds, newer ones nanoseconds; both are accepted.
"""

from datetime import UTC, datetime

APPLE_EPOCH_OFFSET_SECONDS = 978307200
NANOSECONDS_PER_SECOND = 1_000_000_000

# A seconds value this large would be ~3000 years after 2001
_SECONDS_MAGNITUDE_LIMIT = 100_000_000_000


def apple_time_to_datetime(value: int | float | None) -> datetime | None:
    """Convert an Apple-epoch timestamp to an aware UTC datetime."""
    if value is None:
        return None

    seconds = value if abs(value) < _SECONDS_MAGNITUDE_LIMIT else value / NANOSECONDS_PER_SECOND
    return datetime.fromtimestamp(seconds + APPLE_EPOCH_OFFSET_SECONDS, tz=UTC)


def datetime_to_apple_time(value: datetime, *, nanoseconds: bool = True) -> int:
    """Convert a datetime to an Apple-epoch timestamp. Naive values are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)

    seconds = value.timestamp() - APPLE_EPOCH_OFFSET_SECONDS
    if nanoseconds:
        return round(seconds * NANOSECONDS_PER_SECOND)
    return int(seconds)
