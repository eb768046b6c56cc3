"""
Site operations calculators - uptime, health, battery and compliance.
Site metrics describe current state, so time ranges are not applied.
"""

from typing import Any, Optional, Sequence

from analytics.calculations.base import create_metric_value, select
from analytics.transforms.aggregations import calculate_percentage, round_half_up, to_number
from analytics.models import AnalyticsData, MetricFilter, MetricValue


LOW_BATTERY_THRESHOLD = 20


def calculate_site_uptime(
    data: AnalyticsData,
    filters: Optional[Sequence[MetricFilter]] = None,
    time_range: Any = None,
    custom_range: Optional[Sequence[Any]] = None
) -> MetricValue:
    """Percentage of sites online."""
    sites = select(data.sites, filters)

    total = len(sites)
    online = sum(1 for s in sites if s.get('status') == 'online')
    uptime = round(float(calculate_percentage(online, total)), 2)

    return create_metric_value(uptime, f"{online}/{total} sites online")


def calculate_average_health_score(
    data: AnalyticsData,
    filters: Optional[Sequence[MetricFilter]] = None,
    time_range: Any = None,
    custom_range: Optional[Sequence[Any]] = None
) -> MetricValue:
    """Average health score across sites that report one."""
    sites = select(data.sites, filters)

    scores = [to_number(s.get('healthScore')) for s in sites]
    scores = [score for score in scores if score > 0]

    avg_score = round_half_up(sum(scores) / len(scores)) if scores else 0

    return create_metric_value(avg_score, f"Average: {avg_score}/100")


def calculate_low_battery_sites(
    data: AnalyticsData,
    filters: Optional[Sequence[MetricFilter]] = None,
    time_range: Any = None,
    custom_range: Optional[Sequence[Any]] = None
) -> MetricValue:
    """Sites with battery level below the threshold."""
    sites = select(data.sites, filters)

    low_battery = 0
    for site in sites:
        level = site.get('batteryLevel')
        # Unknown battery level is not reported as low
        if level is not None and to_number(level) < LOW_BATTERY_THRESHOLD:
            low_battery += 1

    label = 'All sites healthy' if low_battery == 0 else f"{low_battery} sites need attention"
    return create_metric_value(low_battery, label)


def calculate_compliance_rate(
    data: AnalyticsData,
    filters: Optional[Sequence[MetricFilter]] = None,
    time_range: Any = None,
    custom_range: Optional[Sequence[Any]] = None
) -> MetricValue:
    """Percentage of sites in compliance."""
    sites = select(data.sites, filters)

    total = len(sites)
    compliant = sum(1 for s in sites if s.get('complianceStatus') == 'compliant')
    rate = calculate_percentage(compliant, total)

    return create_metric_value(rate, f"{compliant}/{total} sites compliant")
