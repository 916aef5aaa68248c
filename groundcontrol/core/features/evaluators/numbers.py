"""
Numeric condition evaluator.

Both operands are coerced to float. Numeric strings parse (including
scientific notation); booleans, non-numeric strings and other types do
not, and yield no match. NaN follows IEEE-754: every ordered comparison
and EQUALS is False.
"""

from typing import Any

from groundcontrol.core.exceptions import UnsupportedOperatorError

from ..enums import DataType, Operator
from ..interfaces import ConditionEvaluator
from ..registry import EvaluatorRegistry


def to_number(value: Any) -> float | None:
    """Coerce to float, or None when not numeric."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            return float(value)
        except OverflowError:
            return None
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


@EvaluatorRegistry.builtin
class NumericEvaluator(ConditionEvaluator):
    """Evaluates NUMBER conditions."""

    data_type = DataType.NUMBER
    operators = frozenset({
        Operator.EQUALS,
        Operator.NOT_EQUALS,
        Operator.GREATER_THAN,
        Operator.GREATER_EQUAL,
        Operator.LESS_THAN,
        Operator.LESS_EQUAL,
    })

    def evaluate(self, attribute_value: Any, condition_value: Any, operator: Operator) -> bool:
        if operator not in self.operators:
            raise UnsupportedOperatorError("numeric", operator)

        actual = to_number(attribute_value)
        expected = to_number(condition_value)
        if actual is None or expected is None:
            return False

        if operator == Operator.EQUALS:
            return actual == expected
        if operator == Operator.NOT_EQUALS:
            return actual != expected
        if operator == Operator.GREATER_THAN:
            return actual > expected
        if operator == Operator.GREATER_EQUAL:
            return actual >= expected
        if operator == Operator.LESS_THAN:
            return actual < expected
        return actual <= expected
