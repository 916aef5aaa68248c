"""
String condition evaluator.

EQUALS / NOT_EQUALS compare case-sensitively, while CONTAINS, STARTS_WITH
and ENDS_WITH ignore case. Existing rules depend on this asymmetry.

REGEX_MATCH is a full match of the attribute. Patterns are guarded
against catastrophic backtracking:
- longer than regex_max_length characters -> no match
- containing a known-dangerous construct -> no match
- invalid -> no match
- running longer than regex_timeout_ms -> no match
"""

from typing import Any

import regex
import structlog

from groundcontrol.core.exceptions import UnsupportedOperatorError

from ..enums import DataType, Operator
from ..interfaces import ConditionEvaluator
from ..registry import EvaluatorRegistry

logger = structlog.get_logger()

MAX_REGEX_LENGTH = 1000
REGEX_TIMEOUT_MS = 100

DANGEROUS_REGEX_PATTERNS = (
    "(.*)*",
    "(.+)+",
    "(.{1,}){1,}",
    "(a|a)*",
    "(a*)*",
    "(x+x+)+y",
    "(\\w+)+",
    "([a-zA-Z]+)*",
    "(a|ab)*",
)


def to_text(value: Any) -> str:
    """Natural string form; booleans render as JSON does."""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


@EvaluatorRegistry.builtin
class StringEvaluator(ConditionEvaluator):
    """Evaluates STRING conditions."""

    data_type = DataType.STRING
    operators = frozenset({
        Operator.EQUALS,
        Operator.NOT_EQUALS,
        Operator.CONTAINS,
        Operator.STARTS_WITH,
        Operator.ENDS_WITH,
        Operator.REGEX_MATCH,
    })

    def __init__(
        self,
        regex_max_length: int = MAX_REGEX_LENGTH,
        regex_timeout_ms: int = REGEX_TIMEOUT_MS,
        **kwargs: Any,
    ):
        self.regex_max_length = regex_max_length
        self.regex_timeout_ms = regex_timeout_ms

    def evaluate(self, attribute_value: Any, condition_value: Any, operator: Operator) -> bool:
        actual = to_text(attribute_value)
        expected = to_text(condition_value)

        if operator == Operator.EQUALS:
            return actual == expected
        if operator == Operator.NOT_EQUALS:
            return actual != expected
        if operator == Operator.CONTAINS:
            return expected.lower() in actual.lower()
        if operator == Operator.STARTS_WITH:
            return actual.lower().startswith(expected.lower())
        if operator == Operator.ENDS_WITH:
            return actual.lower().endswith(expected.lower())
        if operator == Operator.REGEX_MATCH:
            return self.matches_regex(actual, expected)

        raise UnsupportedOperatorError("string", operator)

    def matches_regex(self, value: str, pattern: str) -> bool:
        """Full-match value against pattern; every failure is a non-match."""
        if len(pattern) > self.regex_max_length:
            logger.warning(
                "Regex pattern rejected: too long",
                pattern_length=len(pattern),
                max_length=self.regex_max_length,
            )
            return False

        if any(dangerous in pattern for dangerous in DANGEROUS_REGEX_PATTERNS):
            logger.warning("Regex pattern rejected: potentially dangerous", pattern=pattern)
            return False

        # The regex engine checks the timeout while matching and raises
        # TimeoutError itself.
        try:
            return regex.fullmatch(
                pattern, value, timeout=self.regex_timeout_ms / 1000
            ) is not None
        except TimeoutError:
            logger.warning(
                "Regex evaluation timed out",
                pattern=pattern,
                timeout_ms=self.regex_timeout_ms,
            )
            return False
        except regex.error as e:
            logger.warning("Invalid regex pattern", pattern=pattern, error=str(e))
            return False
