"""
Financial calculators - budget adherence, labor hours and cost efficiency.
Hours come from the task fields estimatedHours / actualHours.
"""

from typing import Any, List, Optional, Sequence

from analytics.calculations.base import format_number, select, windowed_metric
from analytics.transforms.aggregations import calculate_percentage, round_half_up, to_number
from analytics.models import AnalyticsData, MetricFilter, MetricValue, Record


def calculate_budget_adherence(
    data: AnalyticsData,
    filters: Optional[Sequence[MetricFilter]] = None,
    time_range: Any = None,
    custom_range: Optional[Sequence[Any]] = None
) -> MetricValue:
    """
    Percentage of estimated tasks whose actual hours stayed within estimate.

    Only tasks with both a non-zero estimate and non-zero actual hours count.
    """
    def compute(tasks: List[Record]):
        tracked = [
            t for t in tasks
            if to_number(t.get('estimatedHours')) and to_number(t.get('actualHours'))
        ]
        within = sum(
            1 for t in tracked
            if to_number(t.get('actualHours')) <= to_number(t.get('estimatedHours'))
        )
        total = len(tracked)
        return calculate_percentage(within, total), f"{within}/{total} within budget"

    return windowed_metric(select(data.tasks, filters), compute, time_range, custom_range)


def calculate_total_labor_hours(
    data: AnalyticsData,
    filters: Optional[Sequence[MetricFilter]] = None,
    time_range: Any = None,
    custom_range: Optional[Sequence[Any]] = None
) -> MetricValue:
    """Sum of actual hours logged."""
    def compute(tasks: List[Record]):
        total = sum(to_number(t.get('actualHours')) for t in tasks)
        return total, f"{format_number(total)} hours logged"

    return windowed_metric(select(data.tasks, filters), compute, time_range, custom_range)


def calculate_cost_efficiency(
    data: AnalyticsData,
    filters: Optional[Sequence[MetricFilter]] = None,
    time_range: Any = None,
    custom_range: Optional[Sequence[Any]] = None
) -> MetricValue:
    """Estimated over actual hours as a percentage; above 100 is under budget."""
    def compute(tasks: List[Record]):
        estimated = sum(to_number(t.get('estimatedHours')) for t in tasks)
        actual = sum(to_number(t.get('actualHours')) for t in tasks)

        efficiency = round_half_up((estimated / actual) * 100) if actual > 0 else 100
        return efficiency, 'Under budget' if efficiency >= 100 else 'Over budget'

    return windowed_metric(select(data.tasks, filters), compute, time_range, custom_range)
