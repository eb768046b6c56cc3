"""
Equipment resource calculators.
"""

from typing import Any, Optional, Sequence

from analytics.calculations.base import create_metric_value, select
from analytics.transforms.aggregations import calculate_percentage
from analytics.models import AnalyticsData, MetricFilter, MetricValue


def calculate_resource_utilization(
    data: AnalyticsData,
    filters: Optional[Sequence[MetricFilter]] = None,
    time_range: Any = None,
    custom_range: Optional[Sequence[Any]] = None
) -> MetricValue:
    """Percentage of resources currently in use."""
    resources = select(data.resources, filters)

    total = len(resources)
    in_use = sum(1 for r in resources if r.get('availability') == 'in_use')
    rate = calculate_percentage(in_use, total)

    return create_metric_value(rate, f"{in_use}/{total} resources in use")


def calculate_available_resources(
    data: AnalyticsData,
    filters: Optional[Sequence[MetricFilter]] = None,
    time_range: Any = None,
    custom_range: Optional[Sequence[Any]] = None
) -> MetricValue:
    resources = select(data.resources, filters)

    available = sum(1 for r in resources if r.get('availability') == 'available')

    return create_metric_value(available, f"{available} resources ready")
