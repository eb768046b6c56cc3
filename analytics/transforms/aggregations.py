"""
Aggregation, grouping and series utilities.
Pure, total functions over their inputs - safe to call concurrently.
"""

import math
from functools import cmp_to_key
from typing import Any, Dict, List, Sequence, Union

import numpy as np
import pandas as pd

from analytics.transforms.dates import to_datetime
from analytics.transforms.filters import get_nested_value
from analytics.models import Record, TrendDirection


Number = Union[int, float]


def round_half_up(value: float) -> int:
    """Round .5 away from the lower integer (dashboard rounding, not banker's)."""
    return int(math.floor(value + 0.5))


def to_number(value: Any) -> float:
    """
    Coerce a loosely-typed field value to a number.

    Numbers pass through, booleans count as 1/0, numeric strings are parsed,
    everything else (including NaN) becomes 0.
    """
    if isinstance(value, bool):
        return 1 if value else 0
    if isinstance(value, (int, float)):
        return 0 if isinstance(value, float) and math.isnan(value) else value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0
        try:
            parsed = float(text)
        except ValueError:
            return 0
        return 0 if math.isnan(parsed) else parsed
    return 0


def aggregate(values: Sequence[Number], kind: str) -> Number:
    """
    Aggregate a numeric sequence.

    Args:
        values: Numbers to aggregate
        kind: 'sum', 'average', 'min', 'max' or 'count'

    Returns:
        Aggregated value; 0 for an empty sequence or an unknown kind
    """
    if len(values) == 0:
        return 0

    if kind == 'sum':
        return sum(values)
    if kind == 'average':
        return sum(values) / len(values)
    if kind == 'min':
        return min(values)
    if kind == 'max':
        return max(values)
    if kind == 'count':
        return len(values)
    return 0


def calculate_percentage(value: Number, total: Number) -> int:
    """Rounded percentage of value over total; 0 when total is 0."""
    if total == 0:
        return 0
    return round_half_up((value / total) * 100)


def calculate_trend(current: Number, previous: Number) -> Dict[str, Any]:
    """
    Compare a value to its previous-period counterpart.

    Args:
        current: Current period value
        previous: Previous period value

    Returns:
        Dictionary with 'direction' (TrendDirection) and 'percentage'
        (absolute rounded relative change). A zero previous value is
        reported as stable / 0.
    """
    if previous == 0:
        return {'direction': TrendDirection.STABLE, 'percentage': 0}

    diff = current - previous
    percentage = round_half_up((diff / previous) * 100)

    if diff > 0:
        direction = TrendDirection.UP
    elif diff < 0:
        direction = TrendDirection.DOWN
    else:
        direction = TrendDirection.STABLE

    return {'direction': direction, 'percentage': abs(percentage)}


def group_by(data: Sequence[Record], field: str) -> Dict[str, List[Record]]:
    """Group records by the string form of a field value, in first-seen order."""
    groups: Dict[str, List[Record]] = {}
    for record in data:
        key = str(get_nested_value(record, field))
        groups.setdefault(key, []).append(record)
    return groups


def sort_by(data: Sequence[Record], field: str, order: str = 'asc') -> List[Record]:
    """
    Return a new list sorted by a field.

    Pairs that cannot be ordered (missing values, mixed types) compare equal,
    so the sort never raises.
    """
    sign = 1 if order == 'asc' else -1

    def compare(a: Record, b: Record) -> int:
        a_val = get_nested_value(a, field)
        b_val = get_nested_value(b, field)
        try:
            if a_val < b_val:
                return -sign
            if a_val > b_val:
                return sign
        except TypeError:
            pass
        return 0

    return sorted(data, key=cmp_to_key(compare))


def top_n(data: Sequence[Any], n: int) -> List[Any]:
    return list(data[:n])


def pivot(
    data: Sequence[Record],
    row_field: str,
    column_field: str,
    value_field: str,
    agg: str = 'sum'
) -> Dict[str, Dict[str, float]]:
    """
    Pivot records into a row -> column -> value table.

    Args:
        data: Records to pivot
        row_field: Field whose values become rows
        column_field: Field whose values become columns
        value_field: Numeric field aggregated into each cell
        agg: 'sum', 'average' or 'count'

    Returns:
        Nested dictionary keyed by stringified row and column values
    """
    sums: Dict[str, Dict[str, float]] = {}
    counts: Dict[str, Dict[str, int]] = {}

    for record in data:
        row = str(get_nested_value(record, row_field))
        col = str(get_nested_value(record, column_field))
        value = to_number(get_nested_value(record, value_field))

        row_sums = sums.setdefault(row, {})
        row_counts = counts.setdefault(row, {})
        row_sums[col] = row_sums.get(col, 0) + value
        row_counts[col] = row_counts.get(col, 0) + 1

    if agg == 'count':
        return counts
    if agg == 'average':
        return {
            row: {col: total / counts[row][col] for col, total in cols.items()}
            for row, cols in sums.items()
        }
    return sums


def moving_average(values: Sequence[Number], window_size: int) -> List[float]:
    """
    Trailing moving average; early positions average over what is available.

    Example:
        moving_average([2, 4, 6, 8], 2) -> [2.0, 3.0, 5.0, 7.0]
    """
    if len(values) == 0:
        return []

    window_size = max(1, int(window_size))
    arr = np.asarray(values, dtype=float)
    cumulative = np.concatenate(([0.0], np.cumsum(arr)))

    result = []
    for i in range(len(arr)):
        start = max(0, i - window_size + 1)
        result.append(float((cumulative[i + 1] - cumulative[start]) / (i + 1 - start)))
    return result


def normalize(values: Sequence[Number]) -> List[float]:
    """Scale values onto 0-100; a constant series maps to all zeros."""
    if len(values) == 0:
        return []

    arr = np.asarray(values, dtype=float)
    low, high = arr.min(), arr.max()
    spread = high - low

    if spread == 0:
        return [0.0] * len(arr)

    return [float(v) for v in (arr - low) / spread * 100]


def create_time_series(
    data: Sequence[Record],
    date_field: str,
    value_field: str,
    bucket: str = 'day'
) -> List[Dict[str, Any]]:
    """
    Bucket records by date and sum a value field per bucket.

    Args:
        data: Records to bucket
        date_field: Field holding the record date
        value_field: Numeric field summed per bucket
        bucket: 'day' (YYYY-MM-DD), 'week' (Sunday start date) or 'month' (YYYY-MM)

    Returns:
        List of {'date': bucket_key, 'value': total} sorted by bucket key;
        records without a parsable date are skipped
    """
    rows = []
    for record in data:
        moment = to_datetime(get_nested_value(record, date_field))
        if moment is None:
            continue
        rows.append({
            'moment': moment,
            'value': to_number(get_nested_value(record, value_field)),
        })

    if not rows:
        return []

    frame = pd.DataFrame(rows)
    moments = pd.to_datetime(frame['moment'])

    if bucket == 'week':
        # Weeks start on Sunday
        offsets = pd.to_timedelta((moments.dt.dayofweek + 1) % 7, unit='D')
        frame['bucket'] = (moments.dt.normalize() - offsets).dt.strftime('%Y-%m-%d')
    elif bucket == 'month':
        frame['bucket'] = moments.dt.strftime('%Y-%m')
    else:
        frame['bucket'] = moments.dt.strftime('%Y-%m-%d')

    totals = frame.groupby('bucket')['value'].sum().sort_index()

    return [{'date': key, 'value': float(total)} for key, total in totals.items()]


def detect_outliers(values: Sequence[Number]) -> Dict[str, List[Any]]:
    """
    Flag outliers with Tukey fences (1.5 x IQR).

    Q1 and Q3 are read at sorted indices floor(n * 0.25) and floor(n * 0.75).

    Args:
        values: Numeric series

    Returns:
        Dictionary with 'outliers' (values) and 'indices' (their positions)
    """
    if len(values) == 0:
        return {'outliers': [], 'indices': []}

    ordered = np.sort(np.asarray(values, dtype=float))
    q1 = ordered[int(math.floor(len(ordered) * 0.25))]
    q3 = ordered[int(math.floor(len(ordered) * 0.75))]
    iqr = q3 - q1

    lower_bound = q1 - 1.5 * iqr
    upper_bound = q3 + 1.5 * iqr

    outliers = []
    indices = []
    for idx, value in enumerate(values):
        if value < lower_bound or value > upper_bound:
            outliers.append(value)
            indices.append(idx)

    return {'outliers': outliers, 'indices': indices}
