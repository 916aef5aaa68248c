"""
Array condition evaluator.

The condition value is the list; the attribute is tested for membership.
"""

from typing import Any

from groundcontrol.core.exceptions import UnsupportedOperatorError

from ..enums import DataType, Operator
from ..interfaces import ConditionEvaluator
from ..registry import EvaluatorRegistry


def to_list(value: Any) -> list[Any] | None:
    """
    Coerce the condition value to a list.

    Lists and tuples drop None entries; strings are split on commas
    and trimmed. Anything else is unconvertible.
    """
    if isinstance(value, (list, tuple)):
        return [item for item in value if item is not None]
    if isinstance(value, str):
        return [part.strip() for part in value.split(",")]
    return None


@EvaluatorRegistry.builtin
class ArrayEvaluator(ConditionEvaluator):
    """Evaluates ARRAY conditions."""

    data_type = DataType.ARRAY
    operators = frozenset({Operator.IN, Operator.NOT_IN})

    def evaluate(self, attribute_value: Any, condition_value: Any, operator: Operator) -> bool:
        if operator not in self.operators:
            raise UnsupportedOperatorError("array", operator)

        values = to_list(condition_value)
        if values is None:
            return False

        if operator == Operator.IN:
            return attribute_value in values
        return attribute_value not in values
