"""Time helpers.

The graph store persists instants as integer epoch milliseconds; models
carry timezone-aware UTC datetimes.
"""

from datetime import UTC, datetime, timedelta

MS_PER_DAY = 24 * 60 * 60 * 1000

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
_ONE_MS = timedelta(milliseconds=1)


def utc_now() -> datetime:
    """Return current UTC time."""
    return datetime.now(UTC)


def to_epoch_ms(value: datetime) -> int:
    """Convert a datetime to integer epoch milliseconds (floored).

    Naive datetimes are interpreted as UTC.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return (value - _EPOCH) // _ONE_MS


def from_epoch_ms(value: int | float) -> datetime:
    """Convert epoch milliseconds to a UTC datetime."""
    return _EPOCH + timedelta(milliseconds=value)
