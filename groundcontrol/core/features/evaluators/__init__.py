"""
Built-in condition evaluators, one per data type.

- STRING: equality, substring family, guarded regex
- NUMBER: float comparisons
- BOOLEAN: equality with lenient coercion
- ARRAY: list membership
- DATE: instant comparisons

Importing this package registers them with EvaluatorRegistry.
"""

from .strings import StringEvaluator
from .numbers import NumericEvaluator
from .booleans import BooleanEvaluator
from .arrays import ArrayEvaluator
from .dates import DateEvaluator

__all__ = [
    "StringEvaluator",
    "NumericEvaluator",
    "BooleanEvaluator",
    "ArrayEvaluator",
    "DateEvaluator",
]
