"""
Metric registry - fixed table of built-in KPI definitions.
Populated once at import; read-only afterwards.
"""

from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Union

from analytics.calculations.financial import (
    calculate_budget_adherence,
    calculate_cost_efficiency,
    calculate_total_labor_hours,
)
from analytics.calculations.project_performance import (
    calculate_blocked_tasks,
    calculate_completion_rate,
    calculate_on_time_delivery,
    calculate_velocity,
)
from analytics.calculations.quality import calculate_documentation_completeness
from analytics.calculations.resources import (
    calculate_available_resources,
    calculate_resource_utilization,
)
from analytics.calculations.site_operations import (
    calculate_average_health_score,
    calculate_compliance_rate,
    calculate_low_battery_sites,
    calculate_site_uptime,
)
from analytics.calculations.team import (
    calculate_active_team_members,
    calculate_team_utilization,
)
from analytics.models import ChartType, MetricCategory, MetricDefinition, MetricFormat


_DEFINITIONS = [
    # Project performance
    MetricDefinition(
        id='completion_rate',
        name='Completion Rate',
        description='Percentage of completed tasks vs total tasks',
        category=MetricCategory.PROJECT_PERFORMANCE,
        calculator=calculate_completion_rate,
        format=MetricFormat.PERCENTAGE,
        unit='%',
        target=80,
        default_visualization=ChartType.GAUGE,
    ),
    MetricDefinition(
        id='on_time_delivery',
        name='On-Time Delivery',
        description='Percentage of tasks completed by due date',
        category=MetricCategory.PROJECT_PERFORMANCE,
        calculator=calculate_on_time_delivery,
        format=MetricFormat.PERCENTAGE,
        unit='%',
        target=90,
        default_visualization=ChartType.GAUGE,
    ),
    MetricDefinition(
        id='velocity',
        name='Project Velocity',
        description='Average tasks completed per week',
        category=MetricCategory.PROJECT_PERFORMANCE,
        calculator=calculate_velocity,
        format=MetricFormat.NUMBER,
        unit='tasks/week',
        default_visualization=ChartType.LINE,
    ),
    MetricDefinition(
        id='blocked_tasks',
        name='Blocked Tasks',
        description='Number and percentage of blocked tasks',
        category=MetricCategory.PROJECT_PERFORMANCE,
        calculator=calculate_blocked_tasks,
        format=MetricFormat.NUMBER,
        default_visualization=ChartType.NUMBER,
    ),

    # Site operations
    MetricDefinition(
        id='site_uptime',
        name='Network Uptime',
        description='Percentage of sites online and operational',
        category=MetricCategory.SITE_OPERATIONS,
        calculator=calculate_site_uptime,
        format=MetricFormat.PERCENTAGE,
        unit='%',
        target=99.9,
        default_visualization=ChartType.GAUGE,
    ),
    MetricDefinition(
        id='avg_health_score',
        name='Average Health Score',
        description='Average health score across all sites',
        category=MetricCategory.SITE_OPERATIONS,
        calculator=calculate_average_health_score,
        format=MetricFormat.NUMBER,
        unit='/100',
        target=85,
        default_visualization=ChartType.GAUGE,
    ),
    MetricDefinition(
        id='low_battery_sites',
        name='Low Battery Sites',
        description='Sites with battery level below 20%',
        category=MetricCategory.SITE_OPERATIONS,
        calculator=calculate_low_battery_sites,
        format=MetricFormat.NUMBER,
        default_visualization=ChartType.NUMBER,
    ),
    MetricDefinition(
        id='compliance_rate',
        name='Compliance Rate',
        description='Percentage of sites in compliance',
        category=MetricCategory.SITE_OPERATIONS,
        calculator=calculate_compliance_rate,
        format=MetricFormat.PERCENTAGE,
        unit='%',
        target=100,
        default_visualization=ChartType.GAUGE,
    ),

    # Financial
    MetricDefinition(
        id='budget_adherence',
        name='Budget Adherence',
        description='Percentage of projects within budget',
        category=MetricCategory.FINANCIAL,
        calculator=calculate_budget_adherence,
        format=MetricFormat.PERCENTAGE,
        unit='%',
        target=95,
        default_visualization=ChartType.GAUGE,
    ),
    MetricDefinition(
        id='total_labor_hours',
        name='Total Labor Hours',
        description='Sum of all actual hours worked',
        category=MetricCategory.FINANCIAL,
        calculator=calculate_total_labor_hours,
        format=MetricFormat.NUMBER,
        unit='hours',
        default_visualization=ChartType.NUMBER,
    ),
    MetricDefinition(
        id='cost_efficiency',
        name='Cost Efficiency',
        description='Ratio of estimated to actual hours (>100% is good)',
        category=MetricCategory.FINANCIAL,
        calculator=calculate_cost_efficiency,
        format=MetricFormat.PERCENTAGE,
        unit='%',
        target=100,
        default_visualization=ChartType.GAUGE,
    ),

    # Team
    MetricDefinition(
        id='team_utilization',
        name='Team Utilization',
        description='Average workload across team members',
        category=MetricCategory.TEAM,
        calculator=calculate_team_utilization,
        format=MetricFormat.PERCENTAGE,
        unit='%',
        target=80,
        default_visualization=ChartType.GAUGE,
    ),
    MetricDefinition(
        id='active_team_members',
        name='Active Team Members',
        description='Number of available team members',
        category=MetricCategory.TEAM,
        calculator=calculate_active_team_members,
        format=MetricFormat.NUMBER,
        default_visualization=ChartType.NUMBER,
    ),

    # Resources
    MetricDefinition(
        id='resource_utilization',
        name='Resource Utilization',
        description='Percentage of resources currently in use',
        category=MetricCategory.RESOURCES,
        calculator=calculate_resource_utilization,
        format=MetricFormat.PERCENTAGE,
        unit='%',
        target=70,
        default_visualization=ChartType.GAUGE,
    ),
    MetricDefinition(
        id='available_resources',
        name='Available Resources',
        description='Number of resources ready for assignment',
        category=MetricCategory.RESOURCES,
        calculator=calculate_available_resources,
        format=MetricFormat.NUMBER,
        default_visualization=ChartType.NUMBER,
    ),

    # Quality
    MetricDefinition(
        id='documentation_completeness',
        name='Documentation Completeness',
        description='Average documents per task',
        category=MetricCategory.QUALITY,
        calculator=calculate_documentation_completeness,
        format=MetricFormat.NUMBER,
        default_visualization=ChartType.NUMBER,
    ),
]


METRICS_REGISTRY: Mapping[str, MetricDefinition] = MappingProxyType(
    {definition.id: definition for definition in _DEFINITIONS}
)


def get_metric(metric_id: str) -> Optional[MetricDefinition]:
    return METRICS_REGISTRY.get(metric_id)


def get_metrics_by_category(category: Union[MetricCategory, str]) -> List[MetricDefinition]:
    """All registered metrics in a category, in registration order."""
    return [m for m in METRICS_REGISTRY.values() if m.category == category]


def list_metric_ids() -> List[str]:
    return list(METRICS_REGISTRY.keys())


def group_by_category(registry: Mapping[str, MetricDefinition]) -> Dict[str, List[MetricDefinition]]:
    grouped: Dict[str, List[MetricDefinition]] = {}
    for definition in registry.values():
        grouped.setdefault(definition.category.value, []).append(definition)
    return grouped
