"""
Custom metric formula evaluator.

Formulas combine three aggregate functions over the filtered record slice
with plain arithmetic, e.g. "SUM(actualHours) / COUNT()".

Evaluation runs in two steps:
1. COUNT(), SUM(field) and AVG(field) are substituted with their numeric
   results (case-insensitive).
2. The remaining text is parsed with `ast` and walked by a tiny evaluator
   that only understands numeric literals, unary +/-, binary + - * / and
   parentheses. Nothing is ever passed to eval().
"""

import ast
import logging
import math
import operator
import re
from typing import Any, List, Mapping, Sequence

from analytics.transforms.aggregations import to_number
from analytics.transforms.filters import get_nested_value


logger = logging.getLogger(__name__)


class FormulaError(Exception):
    """Raised when a formula cannot be evaluated."""
    pass


_COUNT_PATTERN = re.compile(r'COUNT\(\)', re.IGNORECASE)
_SUM_PATTERN = re.compile(r'SUM\(([^)]+)\)', re.IGNORECASE)
_AVG_PATTERN = re.compile(r'AVG\(([^)]+)\)', re.IGNORECASE)

_BINARY_OPERATORS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
}

_UNARY_OPERATORS = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
}


def _field_values(records: Sequence[Mapping[str, Any]], field: str) -> List[float]:
    return [to_number(get_nested_value(record, field.strip())) for record in records]


def substitute_aggregates(formula: str, records: Sequence[Mapping[str, Any]]) -> str:
    """
    Replace COUNT(), SUM(field) and AVG(field) with their values over records.

    Args:
        formula: Formula text
        records: Filtered record slice

    Returns:
        Formula text containing only numbers and arithmetic
    """
    def sum_of(match: re.Match) -> str:
        return repr(float(sum(_field_values(records, match.group(1)))))

    def avg_of(match: re.Match) -> str:
        values = _field_values(records, match.group(1))
        return repr(float(sum(values) / len(values))) if values else '0'

    processed = _COUNT_PATTERN.sub(str(len(records)), formula)
    processed = _SUM_PATTERN.sub(sum_of, processed)
    processed = _AVG_PATTERN.sub(avg_of, processed)
    return processed


def _evaluate_node(node: ast.AST) -> float:
    if isinstance(node, ast.Expression):
        return _evaluate_node(node.body)

    if isinstance(node, ast.Constant):
        if isinstance(node.value, bool) or not isinstance(node.value, (int, float)):
            raise FormulaError(f"Unsupported literal: {node.value!r}")
        return node.value

    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPERATORS:
        return _UNARY_OPERATORS[type(node.op)](_evaluate_node(node.operand))

    if isinstance(node, ast.BinOp) and type(node.op) in _BINARY_OPERATORS:
        left = _evaluate_node(node.left)
        right = _evaluate_node(node.right)
        try:
            return _BINARY_OPERATORS[type(node.op)](left, right)
        except ZeroDivisionError:
            raise FormulaError("Division by zero")

    raise FormulaError(f"Unsupported expression element: {type(node).__name__}")


def evaluate_expression(expression: str) -> float:
    """
    Evaluate a purely arithmetic expression.

    Raises:
        FormulaError: On syntax errors, unsupported tokens, division by zero
            or a non-finite result
    """
    try:
        tree = ast.parse(expression.strip(), mode='eval')
    except (SyntaxError, ValueError, RecursionError) as e:
        raise FormulaError(f"Invalid formula syntax: {e}")

    try:
        result = float(_evaluate_node(tree))
    except (OverflowError, RecursionError) as e:
        raise FormulaError(f"Formula could not be evaluated: {e}")

    if not math.isfinite(result):
        raise FormulaError(f"Formula produced a non-finite result: {result}")
    return result


def evaluate_formula_strict(formula: str, records: Sequence[Mapping[str, Any]]) -> float:
    """
    Evaluate a formula over records, raising on any failure.

    Args:
        formula: Formula text, e.g. "SUM(actualHours) / COUNT()"
        records: Filtered record slice

    Returns:
        Numeric result

    Raises:
        FormulaError: If the formula cannot be evaluated
    """
    if not formula or not formula.strip():
        raise FormulaError("Empty formula")

    return evaluate_expression(substitute_aggregates(formula, records))


def evaluate_formula(formula: str, records: Sequence[Mapping[str, Any]]) -> float:
    """
    Evaluate a formula over records; any failure degrades to 0.

    A failed formula is indistinguishable from one that evaluates to zero;
    use evaluate_formula_strict to tell them apart.
    """
    try:
        return evaluate_formula_strict(formula, records)
    except FormulaError as e:
        logger.warning("Formula evaluation failed for %r: %s", formula, e)
        return 0.0
