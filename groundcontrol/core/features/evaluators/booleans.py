"""
Boolean condition evaluator.
"""

from typing import Any

from groundcontrol.core.exceptions import UnsupportedOperatorError

from ..enums import DataType, Operator
from ..interfaces import ConditionEvaluator
from ..registry import EvaluatorRegistry

TRUE_STRINGS = frozenset({"true", "1", "yes", "on"})
FALSE_STRINGS = frozenset({"false", "0", "no", "off"})


def to_boolean(value: Any) -> bool | None:
    """
    Coerce to bool, or None when unconvertible.

    - bool: as is
    - str: true/1/yes/on, false/0/no/off (case-insensitive)
    - number: nonzero is True (NaN included)
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.lower()
        if lowered in TRUE_STRINGS:
            return True
        if lowered in FALSE_STRINGS:
            return False
        return None
    if isinstance(value, (int, float)):
        return value != 0
    return None


@EvaluatorRegistry.builtin
class BooleanEvaluator(ConditionEvaluator):
    """Evaluates BOOLEAN conditions."""

    data_type = DataType.BOOLEAN
    operators = frozenset({Operator.EQUALS, Operator.NOT_EQUALS})

    def evaluate(self, attribute_value: Any, condition_value: Any, operator: Operator) -> bool:
        if operator not in self.operators:
            raise UnsupportedOperatorError("boolean", operator)

        actual = to_boolean(attribute_value)
        expected = to_boolean(condition_value)
        if actual is None or expected is None:
            return False

        if operator == Operator.EQUALS:
            return actual == expected
        return actual != expected
