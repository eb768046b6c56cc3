"""
Date coercion helpers shared by the time-range filters and time series.
Dataset records carry dates as ISO strings, date/datetime objects or epoch ms.
"""

from datetime import date, datetime, time
from typing import Any, Optional

from dateutil import parser as date_parser


def to_datetime(value: Any) -> Optional[datetime]:
    """
    Coerce a loosely-typed record value to a naive local datetime.

    Args:
        value: datetime, date, ISO-8601 string or epoch milliseconds

    Returns:
        Naive datetime, or None when the value is missing or unparsable
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        return datetime.combine(value, time.min)
    elif isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        if not value.strip():
            return None
        try:
            parsed = date_parser.isoparse(value)
        except ValueError:
            try:
                parsed = date_parser.parse(value)
            except (ValueError, OverflowError):
                return None
    else:
        return None

    # Aware values are compared in local wall-clock time
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)

    return parsed


def start_of_day(moment: datetime) -> datetime:
    return datetime.combine(moment.date(), time.min)


def end_of_day(moment: datetime) -> datetime:
    return datetime.combine(moment.date(), time.max)
