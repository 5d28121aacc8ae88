# storefront/core/timeutil.py
from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """
    Attach UTC to naive datetimes.

    SQLite hands timestamps back without tzinfo, and browsers may send
    local-cart timestamps without an offset; both are UTC by convention.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
