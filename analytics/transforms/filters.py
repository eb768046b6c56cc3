"""
Filter and time-range pipeline.
Pure functions - records are never mutated, results are new lists.
"""

from datetime import datetime, timedelta
from typing import Any, Iterable, List, Optional, Sequence, Tuple

from analytics.transforms.dates import end_of_day, start_of_day, to_datetime
from analytics.models import FilterOperator, MetricFilter, Record, TimeRange


_SEQUENCE_TYPES = (list, tuple, set, frozenset)

_DAYS_BACK = {
    TimeRange.LAST_7_DAYS: 7,
    TimeRange.LAST_30_DAYS: 30,
    TimeRange.LAST_90_DAYS: 90,
}


def get_nested_value(record: Any, path: str) -> Any:
    """
    Resolve a dot-path (e.g. 'owner.profile.name') against a record.

    Args:
        record: Mapping record
        path: Dot-separated key path

    Returns:
        The value, or None as soon as any intermediate key is missing
    """
    current = record
    for part in path.split('.'):
        if current is None:
            return None
        try:
            current = current.get(part)
        except AttributeError:
            return None
    return current


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, _SEQUENCE_TYPES):
        return ','.join(_stringify(v) for v in value)
    return str(value)


def _strict_equals(left: Any, right: Any) -> bool:
    # bool is an int subclass: True never equals 1
    if isinstance(left, bool) or isinstance(right, bool):
        return type(left) is type(right) and left == right
    if isinstance(left, (int, float)) and isinstance(right, (int, float)):
        return left == right
    if isinstance(left, str) and isinstance(right, str):
        return left == right
    return type(left) is type(right) and left == right


def _compare(left: Any, right: Any, op: str) -> bool:
    try:
        if op == FilterOperator.GT:
            return left > right
        if op == FilterOperator.LT:
            return left < right
        if op == FilterOperator.GTE:
            return left >= right
        return left <= right
    except TypeError:
        # Missing field or mixed types never match an ordering operator
        return False


def evaluate_filter(record: Record, metric_filter: MetricFilter) -> bool:
    """
    Evaluate a single filter against a record.

    Unknown operators fail open (evaluate to True).

    Args:
        record: Dataset record
        metric_filter: Filter to evaluate

    Returns:
        True if the record satisfies the filter
    """
    field_value = get_nested_value(record, metric_filter.field)
    filter_value = metric_filter.value
    op = metric_filter.operator

    if op == FilterOperator.EQ:
        return _strict_equals(field_value, filter_value)
    if op == FilterOperator.NE:
        return not _strict_equals(field_value, filter_value)
    if op in (FilterOperator.GT, FilterOperator.LT, FilterOperator.GTE, FilterOperator.LTE):
        return _compare(field_value, filter_value, op)
    if op == FilterOperator.IN:
        if not isinstance(filter_value, _SEQUENCE_TYPES):
            return False
        return any(_strict_equals(field_value, v) for v in filter_value)
    if op == FilterOperator.CONTAINS:
        if field_value is None:
            return False
        return _stringify(filter_value).lower() in _stringify(field_value).lower()
    if op == FilterOperator.BETWEEN:
        if not isinstance(filter_value, (list, tuple)) or len(filter_value) < 2:
            return False
        return (_compare(field_value, filter_value[0], FilterOperator.GTE) and
                _compare(field_value, filter_value[1], FilterOperator.LTE))

    return True


def apply_filters(data: Iterable[Record], filters: Optional[Sequence[MetricFilter]]) -> List[Record]:
    """
    Keep records for which every filter holds.

    A filter's logic_operator ('OR') is accepted but inert: evaluation is
    always conjunctive.

    Args:
        data: Records to filter
        filters: Filters to apply (None or empty keeps everything)

    Returns:
        New list of matching records
    """
    if not filters:
        return list(data)

    return [
        record for record in data
        if all(evaluate_filter(record, f) for f in filters)
    ]


def resolve_time_range(
    time_range: Any,
    custom_range: Optional[Sequence[Any]] = None,
    now: Optional[datetime] = None
) -> Optional[Tuple[datetime, datetime]]:
    """
    Resolve a named or custom time range to a (start, end) pair.

    Args:
        time_range: '7d', '30d', '90d', 'ytd' or 'custom'
        custom_range: (start, end) pair, required for 'custom'
        now: Reference instant (defaults to now)

    Returns:
        (start, end) datetimes, or None when the range cannot be resolved
    """
    if now is None:
        now = datetime.now()

    try:
        time_range = TimeRange(time_range)
    except ValueError:
        return None

    if time_range == TimeRange.CUSTOM:
        if not custom_range:
            return None
        start, end = to_datetime(custom_range[0]), to_datetime(custom_range[1])
        if start is None or end is None:
            return None
        return start, end

    if time_range == TimeRange.YEAR_TO_DATE:
        return datetime(now.year, 1, 1), now

    return now - timedelta(days=_DAYS_BACK[time_range]), now


def previous_period(
    time_range: Any,
    custom_range: Optional[Sequence[Any]] = None,
    now: Optional[datetime] = None
) -> Optional[Tuple[datetime, datetime]]:
    """
    Window of the same calendar-day length immediately before the resolved range.

    Year-to-date has no comparable previous window and returns None.
    """
    if time_range == TimeRange.YEAR_TO_DATE:
        return None

    window = resolve_time_range(time_range, custom_range, now)
    if window is None:
        return None

    start, end = window
    span_days = (end.date() - start.date()).days + 1
    return start - timedelta(days=span_days), start - timedelta(days=1)


def filter_by_window(
    data: Iterable[Record],
    start: datetime,
    end: datetime,
    date_field: str = 'createdAt'
) -> List[Record]:
    """
    Keep records whose date field lies within [start of day, end of day].

    Records with a missing or unparsable date are dropped.
    """
    lower = start_of_day(start)
    upper = end_of_day(end)

    result = []
    for record in data:
        moment = to_datetime(get_nested_value(record, date_field))
        if moment is not None and lower <= moment <= upper:
            result.append(record)
    return result


def filter_by_time_range(
    data: Iterable[Record],
    time_range: Any,
    custom_range: Optional[Sequence[Any]] = None,
    date_field: str = 'createdAt',
    now: Optional[datetime] = None
) -> List[Record]:
    """
    Filter records to a named or custom time window.

    Args:
        data: Records to filter
        time_range: '7d', '30d', '90d', 'ytd' or 'custom'
        custom_range: (start, end) pair for 'custom'
        date_field: Record field holding the date
        now: Reference instant (defaults to now)

    Returns:
        Records inside the window; the data unfiltered when the range
        cannot be resolved
    """
    window = resolve_time_range(time_range, custom_range, now)
    if window is None:
        return list(data)

    return filter_by_window(data, window[0], window[1], date_field)
