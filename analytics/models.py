"""
Data model for the analytics engine.
Dataset snapshot, filters, time ranges, metric definitions and values.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, NamedTuple, Optional, Sequence, Tuple, Union


class FilterOperator(str, Enum):
    """Operators understood by the filter pipeline."""
    EQ = 'eq'
    NE = 'ne'
    GT = 'gt'
    LT = 'lt'
    GTE = 'gte'
    LTE = 'lte'
    IN = 'in'
    CONTAINS = 'contains'
    BETWEEN = 'between'


class LogicOperator(str, Enum):
    AND = 'AND'
    OR = 'OR'


class TimeRange(str, Enum):
    """Named time windows; CUSTOM needs an explicit CustomRange."""
    LAST_7_DAYS = '7d'
    LAST_30_DAYS = '30d'
    LAST_90_DAYS = '90d'
    YEAR_TO_DATE = 'ytd'
    CUSTOM = 'custom'


class MetricCategory(str, Enum):
    PROJECT_PERFORMANCE = 'project_performance'
    SITE_OPERATIONS = 'site_operations'
    FINANCIAL = 'financial'
    TEAM = 'team'
    RESOURCES = 'resources'
    QUALITY = 'quality'


class MetricFormat(str, Enum):
    NUMBER = 'number'
    PERCENTAGE = 'percentage'
    CURRENCY = 'currency'
    DURATION = 'duration'
    TEXT = 'text'


class ChartType(str, Enum):
    """Default visualization hint handed to the presentation layer."""
    NUMBER = 'number'
    LINE = 'line'
    BAR = 'bar'
    AREA = 'area'
    PIE = 'pie'
    DONUT = 'donut'
    GAUGE = 'gauge'
    HEATMAP = 'heatmap'
    SCATTER = 'scatter'
    WATERFALL = 'waterfall'
    GANTT = 'gantt'
    BURNDOWN = 'burndown'
    MAP = 'map'
    TABLE = 'table'


class CalculationType(str, Enum):
    COUNT = 'count'
    SUM = 'sum'
    AVERAGE = 'average'
    MIN = 'min'
    MAX = 'max'
    PERCENTAGE = 'percentage'
    FORMULA = 'formula'


class TrendDirection(str, Enum):
    UP = 'up'
    DOWN = 'down'
    STABLE = 'stable'


Record = Mapping[str, Any]


class CustomRange(NamedTuple):
    """Explicit [start, end] window used with TimeRange.CUSTOM."""
    start: Union[datetime, str]
    end: Union[datetime, str]


# Data source names accepted by custom metrics ('team' is the dashboard's name for users)
DATA_SOURCES = {
    'tasks': 'tasks',
    'sites': 'sites',
    'team': 'users',
    'users': 'users',
    'resources': 'resources',
    'documents': 'documents',
}


@dataclass(frozen=True)
class AnalyticsData:
    """
    Immutable dataset snapshot supplied fresh by the caller per calculation.

    Each entity kind is a tuple of loosely-typed records (mappings keyed by
    the dashboard's own field names, e.g. 'assigneeId', 'createdAt').
    """
    tasks: Tuple[Record, ...] = ()
    sites: Tuple[Record, ...] = ()
    users: Tuple[Record, ...] = ()
    resources: Tuple[Record, ...] = ()
    documents: Tuple[Record, ...] = ()

    def __post_init__(self):
        # Freeze whatever sequence type the caller passed
        for kind in ('tasks', 'sites', 'users', 'resources', 'documents'):
            object.__setattr__(self, kind, tuple(getattr(self, kind) or ()))

    @classmethod
    def from_dict(cls, raw: Mapping[str, Sequence[Record]]) -> 'AnalyticsData':
        """Build a snapshot from plain lists; missing kinds become empty."""
        return cls(
            tasks=raw.get('tasks') or (),
            sites=raw.get('sites') or (),
            users=raw.get('users') or raw.get('team') or (),
            resources=raw.get('resources') or (),
            documents=raw.get('documents') or (),
        )

    def source(self, name: str) -> Tuple[Record, ...]:
        """
        Return the record slice for a data source name.

        Raises:
            KeyError: If the name is not a known data source
        """
        return getattr(self, DATA_SOURCES[name])


@dataclass(frozen=True)
class MetricFilter:
    """Single field/operator/value predicate; filters combine conjunctively."""
    field: str
    operator: Union[FilterOperator, str]
    value: Any = None
    logic_operator: Optional[Union[LogicOperator, str]] = None

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> 'MetricFilter':
        return cls(
            field=raw['field'],
            operator=raw['operator'],
            value=raw.get('value'),
            logic_operator=raw.get('logicOperator', raw.get('logic_operator')),
        )

    def to_dict(self) -> Dict[str, Any]:
        """JSON shape used in cache keys; logicOperator only when set."""
        result = {
            'field': self.field,
            'operator': self.operator,
            'value': self.value,
        }
        if self.logic_operator is not None:
            result['logicOperator'] = self.logic_operator
        return result


@dataclass(frozen=True)
class Trend:
    direction: TrendDirection
    percentage: float
    comparison_period: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'direction': self.direction.value,
            'percentage': self.percentage,
            'comparison_period': self.comparison_period,
        }


@dataclass(frozen=True)
class MetricValue:
    """
    A computed metric: display value, human-readable label and optional trend.

    `trend` is only present when a previous-period value was compared.
    """
    value: Union[int, float, str]
    label: str
    timestamp: str
    trend: Optional[Trend] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            'value': self.value,
            'label': self.label,
            'timestamp': self.timestamp,
        }
        if self.trend is not None:
            result['trend'] = self.trend.to_dict()
        return result


Calculator = Callable[..., MetricValue]


@dataclass(frozen=True)
class MetricDefinition:
    """Registered KPI: identity, a pure calculator and presentation metadata."""
    id: str
    name: str
    description: str
    category: MetricCategory
    calculator: Calculator
    default_visualization: ChartType
    format: Optional[MetricFormat] = None
    unit: Optional[str] = None
    target: Optional[float] = None

    def metadata(self) -> Dict[str, Any]:
        """Everything except the calculator, for building UI controls."""
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'category': self.category.value,
            'format': self.format.value if self.format else None,
            'unit': self.unit,
            'target': self.target,
            'default_visualization': self.default_visualization.value,
        }


@dataclass
class FilterState:
    """UI-level filter selections, converted to MetricFilters by the engine."""
    status: List[str] = field(default_factory=list)
    priority: List[str] = field(default_factory=list)
    assignee: List[str] = field(default_factory=list)
    site: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    custom_filters: List[MetricFilter] = field(default_factory=list)


@dataclass
class CustomMetric:
    """
    User-authored metric evaluated through the generic pipeline.

    sum/average/min/max aggregate the explicit `value_field` dot-path. A percentage
    metric with `numerator_filters` reports the share of the slice matching
    them; without them it reports 100 for a non-empty slice and 0 otherwise.
    """
    id: str
    name: str
    data_source: str
    calculation_type: Union[CalculationType, str]
    formula: Optional[str] = None
    filters: List[MetricFilter] = field(default_factory=list)
    time_range: Optional[Union[TimeRange, str]] = None
    custom_range: Optional[CustomRange] = None
    value_field: Optional[str] = None
    numerator_filters: Optional[List[MetricFilter]] = None
    description: Optional[str] = None

    def __post_init__(self):
        """Validate the definition."""
        if not self.id or not isinstance(self.id, str):
            raise ValueError("id must be non-empty string")

        try:
            self.calculation_type = CalculationType(self.calculation_type)
        except ValueError:
            raise ValueError(f"Unknown calculation type: {self.calculation_type}")

        aggregations = (CalculationType.SUM, CalculationType.AVERAGE,
                        CalculationType.MIN, CalculationType.MAX)
        if self.calculation_type in aggregations and not self.value_field:
            raise ValueError(
                f"{self.calculation_type.value} metrics require an explicit value_field"
            )

        if self.calculation_type == CalculationType.FORMULA and not (self.formula or '').strip():
            raise ValueError("formula metrics require a formula")

        if self.time_range == TimeRange.CUSTOM and self.custom_range is None:
            raise ValueError("custom time range requires custom_range")

        if self.custom_range is not None and not isinstance(self.custom_range, CustomRange):
            start, end = self.custom_range
            self.custom_range = CustomRange(start, end)

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> 'CustomMetric':
        """Build from the dashboard's camelCase JSON shape."""
        custom_range = raw.get('customTimeRange') or raw.get('custom_range')
        if isinstance(custom_range, Mapping):
            custom_range = CustomRange(custom_range['start'], custom_range['end'])

        numerator = raw.get('numeratorFilters', raw.get('numerator_filters'))

        return cls(
            id=raw['id'],
            name=raw.get('name', raw['id']),
            data_source=raw.get('dataSource', raw.get('data_source')),
            calculation_type=raw.get('calculationType', raw.get('calculation_type')),
            formula=raw.get('formula'),
            filters=[_as_filter(f) for f in raw.get('filters') or []],
            time_range=raw.get('timeRange', raw.get('time_range')),
            custom_range=custom_range,
            value_field=raw.get('valueField', raw.get('field')),
            numerator_filters=[_as_filter(f) for f in numerator] if numerator else None,
            description=raw.get('description'),
        )


@dataclass
class CacheEntry:
    """Cached value with its store time and TTL, both in seconds on the cache clock."""
    key: str
    value: Any
    timestamp: float
    ttl: float


def _as_filter(raw: Union[MetricFilter, Mapping[str, Any]]) -> MetricFilter:
    return raw if isinstance(raw, MetricFilter) else MetricFilter.from_dict(raw)
