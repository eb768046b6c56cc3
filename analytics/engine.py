"""
Analytics engine - orchestrates cached metric computation.
Resolves metric ids through the registry, runs calculators over the
caller's snapshot and memoizes results in a CacheManager.
"""

import json
import logging
import re
from typing import Any, Dict, List, Mapping, Optional, Sequence

from analytics.cache_manager import CacheManager
from analytics.calculations.base import create_metric_value
from analytics.config import AnalyticsSettings, load_settings
from analytics.formula import evaluate_formula
from analytics.registry import METRICS_REGISTRY, group_by_category
from analytics.transforms.aggregations import aggregate, calculate_percentage, to_number
from analytics.transforms.filters import apply_filters, filter_by_time_range, get_nested_value
from analytics.models import (
    AnalyticsData,
    CalculationType,
    CustomMetric,
    FilterOperator,
    FilterState,
    LogicOperator,
    MetricDefinition,
    MetricFilter,
    MetricValue,
)


logger = logging.getLogger(__name__)


DEFAULT_METRIC_TTL_S = 5 * 60

CACHE_KEY_PREFIX = 'metric:'

# FilterState attribute -> record field
_FILTER_STATE_FIELDS = (
    ('status', 'status'),
    ('priority', 'priority'),
    ('assignee', 'assigneeId'),
    ('site', 'siteId'),
)


def build_cache_key(
    metric_id: str,
    filters: Optional[Sequence[MetricFilter]] = None,
    time_range: Any = None,
    custom_range: Optional[Sequence[Any]] = None
) -> str:
    """
    Deterministic cache key for a metric request.

    Format: metric:{id}:{compact JSON of filters and timeRange}. Absent
    filters and time range serialize as null. A custom range is appended
    as "customRange" only when given.
    """
    params: Dict[str, Any] = {
        'filters': [f.to_dict() for f in filters] if filters else None,
        'timeRange': time_range,
    }
    if custom_range is not None:
        params['customRange'] = list(custom_range)

    return f"{CACHE_KEY_PREFIX}{metric_id}:{json.dumps(params, separators=(',', ':'), default=str)}"


class AnalyticsEngine:
    """
    Computes registered and custom metrics over caller-supplied snapshots.

    Unknown metric ids and calculator failures never raise; they are logged
    and reported as None.

    Without an explicit cache the engine builds and starts its own
    CacheManager; call engine.cache.destroy() to stop its sweep thread.
    """

    def __init__(
        self,
        cache: Optional[CacheManager] = None,
        registry: Optional[Mapping[str, MetricDefinition]] = None,
        metric_ttl: float = DEFAULT_METRIC_TTL_S
    ) -> None:
        if cache is None:
            cache = CacheManager()
            cache.start()
        self.cache = cache
        self.registry = registry if registry is not None else METRICS_REGISTRY
        self.metric_ttl = metric_ttl

    def calculate_metric(
        self,
        metric_id: str,
        data: AnalyticsData,
        filters: Optional[Sequence[MetricFilter]] = None,
        time_range: Any = None,
        custom_range: Optional[Sequence[Any]] = None
    ) -> Optional[MetricValue]:
        """
        Compute one registered metric, serving from cache when possible.

        Args:
            metric_id: Registered metric id
            data: Dataset snapshot
            filters: Optional filters applied by the calculator
            time_range: Optional named time range
            custom_range: (start, end) pair for a custom time range

        Returns:
            MetricValue, or None for an unknown id or a failing calculator
        """
        cache_key = build_cache_key(metric_id, filters, time_range, custom_range)

        cached = self.cache.get(cache_key)
        if cached is not None:
            logger.debug("Cache hit for %s", cache_key)
            return cached

        metric = self.registry.get(metric_id)
        if metric is None:
            logger.error("Metric %s not found in registry", metric_id)
            return None

        try:
            result = metric.calculator(data, filters, time_range, custom_range)
        except Exception:
            logger.exception("Error calculating metric %s", metric_id)
            return None

        self.cache.set(cache_key, result, self.metric_ttl)
        return result

    def convert_filter_state(self, filter_state: Optional[FilterState]) -> List[MetricFilter]:
        """
        Translate UI filter selections into MetricFilters.

        Each tag becomes a 'contains' filter annotated OR; the annotation is
        carried through but evaluation stays conjunctive.
        """
        if filter_state is None:
            return []

        filters: List[MetricFilter] = []

        for attribute, record_field in _FILTER_STATE_FIELDS:
            selected = getattr(filter_state, attribute)
            if selected:
                filters.append(MetricFilter(
                    field=record_field,
                    operator=FilterOperator.IN.value,
                    value=list(selected),
                ))

        for tag in filter_state.tags or []:
            filters.append(MetricFilter(
                field='tags',
                operator=FilterOperator.CONTAINS.value,
                value=tag,
                logic_operator=LogicOperator.OR.value,
            ))

        filters.extend(filter_state.custom_filters or [])
        return filters

    def calculate_metrics(
        self,
        metric_ids: Sequence[str],
        data: AnalyticsData,
        filter_state: Optional[FilterState] = None,
        time_range: Any = None
    ) -> Dict[str, MetricValue]:
        """
        Compute several metrics with shared filters.

        Returns:
            Dictionary of metric id -> MetricValue; failed or unknown ids are
            left out
        """
        filters = self.convert_filter_state(filter_state)
        results: Dict[str, MetricValue] = {}

        for metric_id in metric_ids:
            result = self.calculate_metric(metric_id, data, filters, time_range)
            if result is not None:
                results[metric_id] = result

        return results

    def calculate_custom_metric(self, metric: CustomMetric, data: AnalyticsData) -> Optional[MetricValue]:
        """
        Evaluate a user-defined metric through the generic pipeline.

        Custom metrics are not cached.

        Args:
            metric: Custom metric definition
            data: Dataset snapshot

        Returns:
            MetricValue labelled with the metric name, or None if the data
            source is unknown or the computation fails
        """
        try:
            try:
                records = data.source(metric.data_source)
            except KeyError:
                logger.error("Unknown data source %r for custom metric %s", metric.data_source, metric.id)
                return None

            records = apply_filters(records, metric.filters)

            if metric.time_range:
                records = filter_by_time_range(records, metric.time_range, metric.custom_range)

            value = self._compute_custom_value(metric, records)
            return create_metric_value(value, metric.name)

        except Exception:
            logger.exception("Error calculating custom metric %s", metric.id)
            return None

    def _compute_custom_value(self, metric: CustomMetric, records: List[Any]) -> Any:
        calculation = metric.calculation_type

        if calculation == CalculationType.COUNT:
            return len(records)

        if calculation in (CalculationType.SUM, CalculationType.AVERAGE,
                           CalculationType.MIN, CalculationType.MAX):
            values = [to_number(get_nested_value(r, metric.value_field)) for r in records]
            return aggregate(values, calculation.value)

        if calculation == CalculationType.PERCENTAGE:
            if metric.numerator_filters:
                matches = apply_filters(records, metric.numerator_filters)
                return calculate_percentage(len(matches), len(records))
            return 100 if records else 0

        if calculation == CalculationType.FORMULA:
            return evaluate_formula(metric.formula, records)

        return 0

    def invalidate_metric_cache(self, metric_id: Optional[str] = None) -> int:
        """
        Drop cached results for one metric, or for every metric.

        Returns:
            Number of cache entries removed
        """
        if metric_id:
            pattern = f"^{re.escape(CACHE_KEY_PREFIX + metric_id)}:"
        else:
            pattern = f"^{re.escape(CACHE_KEY_PREFIX)}"

        removed = self.cache.invalidate_pattern(pattern)
        logger.debug("Invalidated %d cached results for %s", removed, metric_id or 'all metrics')
        return removed

    def refresh_all_metrics(self, data: AnalyticsData) -> Dict[str, MetricValue]:
        """Invalidate every cached metric and recompute all registered metrics unfiltered."""
        self.invalidate_metric_cache()
        return self.calculate_metrics(list(self.registry.keys()), data)

    def get_available_metrics(self) -> Dict[str, List[Dict[str, Any]]]:
        """Registered metric metadata grouped by category, without calculators."""
        grouped = group_by_category(self.registry)
        return {
            category: [definition.metadata() for definition in definitions]
            for category, definitions in grouped.items()
        }

    def get_metric_metadata(self, metric_id: str) -> Optional[Dict[str, Any]]:
        metric = self.registry.get(metric_id)
        return metric.metadata() if metric else None


def create_engine(settings: Optional[AnalyticsSettings] = None) -> AnalyticsEngine:
    """
    Build an engine around a started CacheManager.

    Args:
        settings: AnalyticsSettings (defaults to load_settings())

    Returns:
        Ready AnalyticsEngine; call engine.cache.destroy() when done
    """
    if settings is None:
        settings = load_settings()

    cache = CacheManager(
        default_ttl=settings.cache_default_ttl_s,
        max_size=settings.cache_max_size,
        cleanup_interval=settings.cache_cleanup_interval_s,
    )
    cache.start()

    return AnalyticsEngine(cache=cache, metric_ttl=settings.metric_ttl_s)
