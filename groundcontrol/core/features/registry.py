"""
Condition evaluator registry.

Built-in evaluators register their class with a decorator. A registry
instance owns one evaluator per data type and an index from
(operator, data type) to the evaluator that claims it.

Usage:
    @EvaluatorRegistry.builtin
    class StringEvaluator(ConditionEvaluator):
        data_type = DataType.STRING
        ...

    registry = EvaluatorRegistry.default(regex_timeout_ms=100)
    evaluator = registry.get(Operator.CONTAINS, DataType.STRING)
"""

from typing import Any, Iterable, Type

from groundcontrol.core.exceptions import EvaluatorNotFoundError

from .enums import DataType, Operator
from .interfaces import ConditionEvaluator


class EvaluatorRegistry:
    """
    Dispatches conditions to evaluators by (operator, data type).

    The set of data types is closed; there is no plugin loading. A pair
    no evaluator claims is a configuration error, raised loudly by get().
    """

    _builtin: dict[DataType, Type[ConditionEvaluator]] = {}

    def __init__(self, evaluators: Iterable[ConditionEvaluator]):
        self._evaluators = list(evaluators)
        self._index: dict[tuple[Operator, DataType], ConditionEvaluator] = {}

        for data_type in DataType:
            for operator in Operator:
                for evaluator in self._evaluators:
                    if evaluator.can_handle(operator, data_type):
                        self._index[(operator, data_type)] = evaluator
                        break

    # ============================================================
    # REGISTRATION
    # ============================================================

    @classmethod
    def builtin(cls, evaluator_class: Type[ConditionEvaluator]) -> Type[ConditionEvaluator]:
        """Decorator registering a built-in evaluator class for its data type."""
        cls._builtin[evaluator_class.data_type] = evaluator_class
        return evaluator_class

    @classmethod
    def default(cls, **kwargs: Any) -> "EvaluatorRegistry":
        """
        Registry with every built-in evaluator.

        Args:
            **kwargs: Passed to each evaluator constructor
                (e.g. regex_max_length, regex_timeout_ms)
        """
        from . import evaluators  # noqa: F401  (registers built-ins)

        return cls(evaluator_class(**kwargs) for evaluator_class in cls._builtin.values())

    # ============================================================
    # LOOKUP
    # ============================================================

    def find(self, operator: Operator, data_type: DataType) -> ConditionEvaluator | None:
        """Evaluator for the pair, or None."""
        return self._index.get((operator, data_type))

    def get(self, operator: Operator, data_type: DataType) -> ConditionEvaluator:
        """
        Evaluator for the pair.

        Raises:
            EvaluatorNotFoundError: nothing handles the pair
        """
        evaluator = self.find(operator, data_type)
        if evaluator is None:
            raise EvaluatorNotFoundError(operator, data_type)
        return evaluator

    # ============================================================
    # INTROSPECTION
    # ============================================================

    def has(self, operator: Operator, data_type: DataType) -> bool:
        return (operator, data_type) in self._index

    def supported_pairs(self) -> list[tuple[Operator, DataType]]:
        """All (operator, data type) pairs some evaluator handles."""
        return list(self._index.keys())

    @property
    def evaluators(self) -> list[ConditionEvaluator]:
        return list(self._evaluators)
