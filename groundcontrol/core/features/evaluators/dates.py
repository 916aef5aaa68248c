"""
Date condition evaluator.

Operands are normalized to aware UTC datetimes before comparing.
GREATER_* read as "after", LESS_* as "before".

Accepted inputs:
- datetime (naive is taken as UTC)
- date (midnight UTC)
- int/float epoch milliseconds
- strings, tried in order:
    2024-08-16T10:15:30.123Z     ISO instant (Z or offset)
    2024-08-16T10:15:30          ISO local date-time
    2024-08-16                   ISO local date
    2024-08-16 10:15:30
    08/16/2024
    16-08-2024
"""

from datetime import date, datetime, timedelta
from functools import partial
from typing import Any, Callable

from groundcontrol.core.exceptions import UnsupportedOperatorError
from groundcontrol.utils.timezone import UTC, to_utc

from ..enums import DataType, Operator
from ..interfaces import ConditionEvaluator
from ..registry import EvaluatorRegistry

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def _parse_iso_instant(text: str) -> datetime:
    if "T" not in text and "t" not in text:
        raise ValueError("not an instant")
    if text[-1] in ("Z", "z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        raise ValueError("instant requires an offset")
    return parsed.astimezone(UTC)


def _parse_iso_local_datetime(text: str) -> datetime:
    if "T" not in text:
        raise ValueError("not a local date-time")
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is not None:
        raise ValueError("local date-time has an offset")
    return parsed.replace(tzinfo=UTC)


def _parse_iso_local_date(text: str) -> datetime:
    parsed = date.fromisoformat(text)
    return datetime(parsed.year, parsed.month, parsed.day, tzinfo=UTC)


def _parse_pattern(fmt: str, text: str) -> datetime:
    return datetime.strptime(text, fmt).replace(tzinfo=UTC)


_PARSERS: tuple[Callable[[str], datetime], ...] = (
    _parse_iso_instant,
    _parse_iso_local_datetime,
    _parse_iso_local_date,
    partial(_parse_pattern, "%Y-%m-%d %H:%M:%S"),
    partial(_parse_pattern, "%Y-%m-%d"),
    partial(_parse_pattern, "%m/%d/%Y"),
    partial(_parse_pattern, "%d-%m-%Y"),
)


def parse_instant(text: str) -> datetime | None:
    """First parser in the chain that accepts text, or None."""
    for parser in _PARSERS:
        try:
            return parser(text)
        except ValueError:
            continue
    return None


def to_instant(value: Any) -> datetime | None:
    """Normalize a date-like value to an aware UTC datetime, or None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return to_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=UTC)
    if isinstance(value, (int, float)):
        try:
            return EPOCH + timedelta(milliseconds=int(value))
        except (OverflowError, ValueError):
            return None
    if isinstance(value, str):
        return parse_instant(value.strip())
    return None


@EvaluatorRegistry.builtin
class DateEvaluator(ConditionEvaluator):
    """Evaluates DATE conditions."""

    data_type = DataType.DATE
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
            raise UnsupportedOperatorError("date", operator)

        actual = to_instant(attribute_value)
        expected = to_instant(condition_value)
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
