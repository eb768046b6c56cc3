"""
Shared helpers for the built-in calculators.
Builds MetricValue objects and runs time-windowed computations with trends.
"""

from datetime import datetime
from typing import Any, Callable, List, Optional, Sequence, Tuple, Union

from analytics.transforms.aggregations import calculate_trend
from analytics.transforms.filters import (
    apply_filters,
    filter_by_window,
    previous_period,
    resolve_time_range,
)
from analytics.models import MetricFilter, MetricValue, Record, Trend


COMPARISON_PERIOD = 'previous period'

Compute = Callable[[List[Record]], Tuple[Union[int, float, str], str]]


def create_metric_value(
    value: Union[int, float, str],
    label: str,
    previous_value: Optional[Union[int, float]] = None
) -> MetricValue:
    """
    Wrap a computed value as a MetricValue.

    A trend block is attached only when a previous-period value is supplied
    and the current value is numeric.

    Args:
        value: Display value
        label: Human-readable label
        previous_value: Same metric over the previous period (optional)

    Returns:
        MetricValue stamped with the current time
    """
    trend = None
    if previous_value is not None and _is_numeric(value):
        comparison = calculate_trend(value, previous_value)
        trend = Trend(
            direction=comparison['direction'],
            percentage=comparison['percentage'],
            comparison_period=COMPARISON_PERIOD,
        )

    return MetricValue(
        value=value,
        label=label,
        timestamp=datetime.now().isoformat(),
        trend=trend,
    )


def format_number(value: Union[int, float]) -> str:
    """Render integral floats without a trailing '.0' for labels."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def select(
    records: Sequence[Record],
    filters: Optional[Sequence[MetricFilter]] = None,
    predicate: Optional[Callable[[Record], bool]] = None
) -> List[Record]:
    """Pre-filter by a calculator predicate, then apply the caller's filters."""
    if predicate is not None:
        records = [r for r in records if predicate(r)]
    return apply_filters(records, filters)


def windowed_metric(
    records: Sequence[Record],
    compute: Compute,
    time_range: Any = None,
    custom_range: Optional[Sequence[Any]] = None,
    now: Optional[datetime] = None
) -> MetricValue:
    """
    Compute a metric over the requested time window, with a trend when possible.

    Without a resolvable time range the whole slice is used and no trend is
    attached. Otherwise the same computation runs over the preceding window
    of equal length and the two numeric values are compared.

    Args:
        records: Already filtered records
        compute: Function returning (value, label) for a record list
        time_range: Named time range or 'custom'
        custom_range: (start, end) pair for 'custom'
        now: Reference instant (defaults to now)

    Returns:
        MetricValue for the current window
    """
    if not time_range:
        value, label = compute(list(records))
        return create_metric_value(value, label)

    if now is None:
        now = datetime.now()

    window = resolve_time_range(time_range, custom_range, now)
    if window is None:
        value, label = compute(list(records))
        return create_metric_value(value, label)

    value, label = compute(filter_by_window(records, window[0], window[1]))

    previous_value = None
    prior = previous_period(time_range, custom_range, now)
    if prior is not None:
        prior_value, _ = compute(filter_by_window(records, prior[0], prior[1]))
        if _is_numeric(prior_value):
            previous_value = prior_value

    return create_metric_value(value, label, previous_value)


def _is_numeric(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)
