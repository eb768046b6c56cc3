"""
Tests for the filter and time-range pipeline.
Fixed reference instants keep the window arithmetic hand-verifiable.
"""

import pytest
from datetime import datetime, timedelta

from analytics.transforms.filters import (
    get_nested_value,
    evaluate_filter,
    apply_filters,
    resolve_time_range,
    previous_period,
    filter_by_window,
    filter_by_time_range
)
from analytics.models import FilterOperator, LogicOperator, MetricFilter, TimeRange


NOW = datetime(2025, 6, 15, 12, 0, 0)


@pytest.fixture
def tasks():
    """Small task slice covering statuses, tags and nested owners."""
    return [
        {'id': 't1', 'status': 'completed', 'priority': 'high', 'tags': ['urgent', 'field'],
         'estimatedHours': 8, 'owner': {'profile': {'name': 'Ana'}}},
        {'id': 't2', 'status': 'in_progress', 'priority': 'low', 'tags': ['office'],
         'estimatedHours': 3, 'owner': {'profile': {'name': 'Ben'}}},
        {'id': 't3', 'status': 'blocked', 'priority': 'high', 'tags': [],
         'estimatedHours': 5},
        {'id': 't4', 'status': 'completed', 'priority': 'medium', 'tags': ['Urgent'],
         'estimatedHours': None},
    ]


class TestGetNestedValue:
    """Tests for dot-path resolution."""

    def test_top_level_key(self):
        """Test plain key lookup."""
        assert get_nested_value({'status': 'open'}, 'status') == 'open'

    def test_nested_path(self, tasks):
        """Test multi-level dot path."""
        assert get_nested_value(tasks[0], 'owner.profile.name') == 'Ana'

    def test_missing_intermediate_is_none(self, tasks):
        """Test that a missing intermediate key yields None instead of raising."""
        assert get_nested_value(tasks[2], 'owner.profile.name') is None

    def test_non_mapping_intermediate_is_none(self):
        """Test walking into a scalar value."""
        assert get_nested_value({'owner': 'Ana'}, 'owner.profile') is None


class TestEvaluateFilter:
    """Tests for single-filter evaluation."""

    def test_eq_and_ne(self, tasks):
        """Test equality operators."""
        eq = MetricFilter('status', 'eq', 'completed')
        ne = MetricFilter('status', 'ne', 'completed')

        assert evaluate_filter(tasks[0], eq)
        assert not evaluate_filter(tasks[1], eq)
        assert evaluate_filter(tasks[1], ne)

    def test_eq_does_not_mix_booleans_and_numbers(self):
        """Test True never equals 1 and False never equals 0."""
        assert not evaluate_filter({'flag': True}, MetricFilter('flag', 'eq', 1))
        assert not evaluate_filter({'flag': 0}, MetricFilter('flag', 'eq', False))
        assert evaluate_filter({'flag': True}, MetricFilter('flag', 'eq', True))
        assert evaluate_filter({'flag': 1}, MetricFilter('flag', 'ne', True))

    def test_eq_across_int_and_float(self):
        """Test numerically equal ints and floats match."""
        assert evaluate_filter({'hours': 2}, MetricFilter('hours', 'eq', 2.0))

    def test_eq_does_not_coerce_strings(self):
        """Test '1' is not equal to 1."""
        assert not evaluate_filter({'code': '1'}, MetricFilter('code', 'eq', 1))
        assert evaluate_filter({'code': '1'}, MetricFilter('code', 'ne', 1))

    def test_ordering_operators(self, tasks):
        """Test gt/lt/gte/lte against a numeric field."""
        assert evaluate_filter(tasks[0], MetricFilter('estimatedHours', 'gt', 5))
        assert evaluate_filter(tasks[1], MetricFilter('estimatedHours', 'lt', 5))
        assert evaluate_filter(tasks[2], MetricFilter('estimatedHours', 'gte', 5))
        assert evaluate_filter(tasks[2], MetricFilter('estimatedHours', 'lte', 5))

    def test_ordering_on_missing_field_is_false(self, tasks):
        """Test that None never satisfies an ordering comparison."""
        assert not evaluate_filter(tasks[3], MetricFilter('estimatedHours', 'gt', 0))
        assert not evaluate_filter(tasks[3], MetricFilter('estimatedHours', 'lt', 100))

    def test_in_operator(self, tasks):
        """Test membership in a list."""
        f = MetricFilter('priority', 'in', ['high', 'medium'])

        assert evaluate_filter(tasks[0], f)
        assert not evaluate_filter(tasks[1], f)

    def test_in_uses_strict_membership(self):
        """Test False is not a member of [0] and 1 is not a member of [True]."""
        assert not evaluate_filter({'flag': False}, MetricFilter('flag', 'in', [0]))
        assert not evaluate_filter({'flag': 1}, MetricFilter('flag', 'in', [True, 'x']))
        assert evaluate_filter({'flag': 0}, MetricFilter('flag', 'in', [0]))

    def test_in_with_non_list_value_is_false(self, tasks):
        """Test that 'in' needs a list-like filter value."""
        assert not evaluate_filter(tasks[0], MetricFilter('priority', 'in', 'high'))

    def test_contains_is_case_insensitive(self, tasks):
        """Test substring match on stringified values."""
        f = MetricFilter('tags', 'contains', 'urgent')

        assert evaluate_filter(tasks[0], f)
        assert evaluate_filter(tasks[3], f)  # 'Urgent'
        assert not evaluate_filter(tasks[1], f)

    def test_contains_on_missing_field_is_false(self, tasks):
        """Test that a missing field never contains anything."""
        assert not evaluate_filter(tasks[2], MetricFilter('category', 'contains', 'x'))

    def test_between_is_inclusive(self, tasks):
        """Test inclusive range bounds."""
        f = MetricFilter('estimatedHours', 'between', [3, 5])

        assert evaluate_filter(tasks[1], f)  # 3
        assert evaluate_filter(tasks[2], f)  # 5
        assert not evaluate_filter(tasks[0], f)  # 8

    def test_enum_operator(self, tasks):
        """Test FilterOperator members work like their string values."""
        assert evaluate_filter(tasks[0], MetricFilter('status', FilterOperator.EQ, 'completed'))

    def test_unknown_operator_fails_open(self, tasks):
        """Test that an unrecognised operator lets every record through."""
        assert evaluate_filter(tasks[1], MetricFilter('status', 'regex', '^done$'))


class TestApplyFilters:
    """Tests for conjunctive filter application."""

    def test_no_filters_returns_copy(self, tasks):
        """Test that empty filters keep everything in a new list."""
        result = apply_filters(tasks, None)

        assert result == tasks
        assert result is not tasks

    def test_filters_are_conjunctive(self, tasks):
        """Test that every filter must hold."""
        filters = [
            MetricFilter('status', 'eq', 'completed'),
            MetricFilter('priority', 'eq', 'high'),
        ]

        result = apply_filters(tasks, filters)

        assert [t['id'] for t in result] == ['t1']

    def test_or_annotation_is_inert(self, tasks):
        """Test that OR-tagged filters still combine with AND."""
        filters = [
            MetricFilter('tags', 'contains', 'urgent', LogicOperator.OR),
            MetricFilter('tags', 'contains', 'office', LogicOperator.OR),
        ]

        assert apply_filters(tasks, filters) == []

    def test_boolean_field_is_not_matched_by_number(self):
        """Test an eq 1 filter keeps the numeric record only."""
        records = [{'flag': True}, {'flag': 1}]

        result = apply_filters(records, [MetricFilter('flag', 'eq', 1)])

        assert result == [{'flag': 1}]
        assert result[0] is records[1]

    def test_conjunction_equals_sequential_application(self, tasks):
        """Test filter(A and B) == filter(filter(A), B)."""
        a = MetricFilter('priority', 'in', ['high', 'medium'])
        b = MetricFilter('tags', 'contains', 'urgent')

        assert apply_filters(tasks, [a, b]) == apply_filters(apply_filters(tasks, [a]), [b])

    def test_records_are_not_mutated(self, tasks):
        """Test input records are untouched."""
        before = [dict(t) for t in tasks]
        apply_filters(tasks, [MetricFilter('status', 'eq', 'blocked')])

        assert tasks == before


class TestResolveTimeRange:
    """Tests for named and custom range resolution."""

    def test_relative_ranges(self):
        """Test 7d/30d/90d windows end at the reference instant."""
        assert resolve_time_range('7d', now=NOW) == (NOW - timedelta(days=7), NOW)
        assert resolve_time_range('30d', now=NOW) == (NOW - timedelta(days=30), NOW)
        assert resolve_time_range(TimeRange.LAST_90_DAYS, now=NOW) == (NOW - timedelta(days=90), NOW)

    def test_year_to_date(self):
        """Test ytd starts at January 1st."""
        assert resolve_time_range('ytd', now=NOW) == (datetime(2025, 1, 1), NOW)

    def test_custom_range(self):
        """Test custom ranges parse their endpoints."""
        start, end = resolve_time_range('custom', ('2025-03-01', '2025-03-31'), now=NOW)

        assert start == datetime(2025, 3, 1)
        assert end == datetime(2025, 3, 31)

    def test_custom_without_range_is_unresolved(self):
        """Test custom without endpoints resolves to None."""
        assert resolve_time_range('custom', None, now=NOW) is None

    def test_unknown_range_is_unresolved(self):
        """Test unknown names resolve to None."""
        assert resolve_time_range('1y', now=NOW) is None


class TestPreviousPeriod:
    """Tests for the comparison window."""

    def test_previous_7d_window(self):
        """Test the window of equal calendar length right before 7d."""
        start, end = previous_period('7d', now=NOW)

        # 7d spans June 8-15 (8 calendar days)
        assert start == NOW - timedelta(days=7) - timedelta(days=8)
        assert end == NOW - timedelta(days=8)

    def test_ytd_has_no_previous_period(self):
        """Test year-to-date is not compared."""
        assert previous_period('ytd', now=NOW) is None

    def test_custom_previous_period(self):
        """Test custom range shifts back by its own length."""
        start, end = previous_period('custom', ('2025-03-11', '2025-03-20'), now=NOW)

        assert start == datetime(2025, 3, 1)
        assert end == datetime(2025, 3, 10)


class TestFilterByTimeRange:
    """Tests for date-windowed filtering."""

    @pytest.fixture
    def dated_tasks(self):
        """Tasks created 1, 10, 45 and 200 days before NOW plus one undated."""
        return [
            {'id': 'd1', 'createdAt': (NOW - timedelta(days=1)).isoformat()},
            {'id': 'd10', 'createdAt': (NOW - timedelta(days=10)).isoformat()},
            {'id': 'd45', 'createdAt': (NOW - timedelta(days=45)).isoformat()},
            {'id': 'd200', 'createdAt': (NOW - timedelta(days=200)).isoformat()},
            {'id': 'undated'},
        ]

    def test_7d_window(self, dated_tasks):
        """Test that only recent records are kept."""
        result = filter_by_time_range(dated_tasks, '7d', now=NOW)

        assert [t['id'] for t in result] == ['d1']

    def test_30d_contains_7d(self, dated_tasks):
        """Test that a longer window is a superset of a shorter one."""
        last_7 = filter_by_time_range(dated_tasks, '7d', now=NOW)
        last_30 = filter_by_time_range(dated_tasks, '30d', now=NOW)

        assert all(t in last_30 for t in last_7)
        assert [t['id'] for t in last_30] == ['d1', 'd10']

    def test_ytd_window(self, dated_tasks):
        """Test year-to-date excludes last year's records."""
        result = filter_by_time_range(dated_tasks, 'ytd', now=NOW)

        assert [t['id'] for t in result] == ['d1', 'd10', 'd45']

    def test_unknown_range_returns_all(self, dated_tasks):
        """Test unresolvable range leaves data unfiltered."""
        assert filter_by_time_range(dated_tasks, 'forever', now=NOW) == dated_tasks

    def test_custom_date_field(self):
        """Test filtering on a non-default date field."""
        records = [
            {'id': 'a', 'dueDate': '2025-06-14'},
            {'id': 'b', 'dueDate': '2025-01-14'},
        ]

        result = filter_by_time_range(records, '7d', date_field='dueDate', now=NOW)

        assert [r['id'] for r in result] == ['a']

    def test_window_boundaries_cover_whole_days(self):
        """Test that start and end days are fully included."""
        records = [
            {'id': 'early', 'createdAt': '2025-03-01T00:00:00'},
            {'id': 'late', 'createdAt': '2025-03-02T23:59:59'},
            {'id': 'after', 'createdAt': '2025-03-03T00:00:00'},
        ]

        result = filter_by_window(records, datetime(2025, 3, 1, 15), datetime(2025, 3, 2, 8))

        assert [r['id'] for r in result] == ['early', 'late']
