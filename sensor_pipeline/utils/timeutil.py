"""Timestamp helpers shared by models and storage backends."""

from datetime import date, datetime, timezone

EPOCH = datetime(1970, 1, 1, 0, 0, 0)


def utc_now() -> datetime:
    """Current UTC time as a naive datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive values pass through unchanged."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def as_datetime(value) -> datetime:
    """Coerce a driver-returned date, datetime or ISO string into a naive datetime."""
    if isinstance(value, datetime):
        return to_naive_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        return to_naive_utc(datetime.fromisoformat(value))
    raise TypeError(f"Cannot convert {type(value).__name__} to datetime")
