"""
Team calculators over the users slice.
"""

from typing import Any, Optional, Sequence

from analytics.calculations.base import create_metric_value, select
from analytics.transforms.aggregations import round_half_up, to_number
from analytics.models import AnalyticsData, MetricFilter, MetricValue


def calculate_team_utilization(
    data: AnalyticsData,
    filters: Optional[Sequence[MetricFilter]] = None,
    time_range: Any = None,
    custom_range: Optional[Sequence[Any]] = None
) -> MetricValue:
    """Average workload (0-100) across members with a recorded workload."""
    users = select(data.users, filters)

    workloads = [to_number(u.get('workload')) for u in users]
    workloads = [w for w in workloads if w > 0]

    avg_utilization = round_half_up(sum(workloads) / len(workloads)) if workloads else 0

    return create_metric_value(avg_utilization, f"{avg_utilization}% average capacity")


def calculate_active_team_members(
    data: AnalyticsData,
    filters: Optional[Sequence[MetricFilter]] = None,
    time_range: Any = None,
    custom_range: Optional[Sequence[Any]] = None
) -> MetricValue:
    users = select(data.users, filters)

    available = sum(1 for u in users if u.get('availability') == 'available')

    return create_metric_value(available, f"{available}/{len(users)} available")
