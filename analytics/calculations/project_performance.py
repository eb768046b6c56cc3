"""
Project performance calculators - task completion, delivery and flow.
"""

from typing import Any, List, Optional, Sequence

from analytics.calculations.base import select, windowed_metric
from analytics.transforms.aggregations import calculate_percentage, round_half_up
from analytics.transforms.dates import end_of_day, to_datetime
from analytics.models import AnalyticsData, MetricFilter, MetricValue, Record


# Velocity is averaged over a fixed four-week horizon
VELOCITY_WEEKS = 4


def _is_completed(task: Record) -> bool:
    return task.get('status') == 'completed'


def _delivered_on_time(task: Record) -> bool:
    """
    A completed task is on time when it finished by the end of its due day.

    Tasks missing a due date or a completion timestamp count as on time.
    """
    due = to_datetime(task.get('dueDate'))
    completed_at = to_datetime(task.get('completedAt'))
    if due is None or completed_at is None:
        return True
    return completed_at <= end_of_day(due)


def calculate_completion_rate(
    data: AnalyticsData,
    filters: Optional[Sequence[MetricFilter]] = None,
    time_range: Any = None,
    custom_range: Optional[Sequence[Any]] = None
) -> MetricValue:
    """Percentage of completed tasks vs total tasks."""
    def compute(tasks: List[Record]):
        total = len(tasks)
        completed = sum(1 for t in tasks if _is_completed(t))
        return calculate_percentage(completed, total), f"{completed}/{total} tasks completed"

    return windowed_metric(select(data.tasks, filters), compute, time_range, custom_range)


def calculate_on_time_delivery(
    data: AnalyticsData,
    filters: Optional[Sequence[MetricFilter]] = None,
    time_range: Any = None,
    custom_range: Optional[Sequence[Any]] = None
) -> MetricValue:
    """Percentage of completed tasks delivered by their due date."""
    def compute(tasks: List[Record]):
        total = len(tasks)
        on_time = sum(1 for t in tasks if _delivered_on_time(t))
        return calculate_percentage(on_time, total), f"{on_time}/{total} tasks on time"

    completed = select(data.tasks, filters, predicate=_is_completed)
    return windowed_metric(completed, compute, time_range, custom_range)


def calculate_velocity(
    data: AnalyticsData,
    filters: Optional[Sequence[MetricFilter]] = None,
    time_range: Any = None,
    custom_range: Optional[Sequence[Any]] = None
) -> MetricValue:
    """Average completed tasks per week."""
    def compute(tasks: List[Record]):
        per_week = round_half_up(len(tasks) / VELOCITY_WEEKS)
        return per_week, f"{per_week} tasks/week average"

    completed = select(data.tasks, filters, predicate=_is_completed)
    return windowed_metric(completed, compute, time_range, custom_range)


def calculate_blocked_tasks(
    data: AnalyticsData,
    filters: Optional[Sequence[MetricFilter]] = None,
    time_range: Any = None,
    custom_range: Optional[Sequence[Any]] = None
) -> MetricValue:
    """Number of blocked tasks, labelled with their share of the total."""
    def compute(tasks: List[Record]):
        total = len(tasks)
        blocked = sum(1 for t in tasks if t.get('status') == 'blocked')
        percentage = calculate_percentage(blocked, total)
        return blocked, f"{blocked} blocked ({percentage}% of total)"

    return windowed_metric(select(data.tasks, filters), compute, time_range, custom_range)
