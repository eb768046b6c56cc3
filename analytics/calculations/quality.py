"""
Quality calculators.
"""

from typing import Any, List, Optional, Sequence

from analytics.calculations.base import select, windowed_metric
from analytics.models import AnalyticsData, MetricFilter, MetricValue, Record


def calculate_documentation_completeness(
    data: AnalyticsData,
    filters: Optional[Sequence[MetricFilter]] = None,
    time_range: Any = None,
    custom_range: Optional[Sequence[Any]] = None
) -> MetricValue:
    """
    Average documents per task, rendered with one decimal (e.g. '2.5').

    Filters and time range narrow the tasks only; every document in the
    snapshot counts toward the numerator.
    """
    total_docs = len(data.documents)

    def compute(tasks: List[Record]):
        avg_docs = f"{total_docs / len(tasks):.1f}" if tasks else '0'
        return avg_docs, f"{avg_docs} docs/task average"

    return windowed_metric(select(data.tasks, filters), compute, time_range, custom_range)
