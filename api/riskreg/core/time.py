"""Time helpers shared by models, routers and the report scheduler.

Timestamps are stored as naive UTC values (TIMESTAMP WITHOUT TIME ZONE).
"""
from datetime import date, datetime, timezone


def utc_now() -> datetime:
    """
    Return current UTC time as a naive datetime object.

    Avoids the deprecated datetime.utcnow() while staying comparable with
    the naive DateTime columns used throughout the schema.

    Returns:
        datetime: Current UTC time as a naive datetime object
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def month_start(value: date) -> datetime:
    """Midnight of the first day of the month containing ``value``."""
    return datetime(value.year, value.month, 1)
