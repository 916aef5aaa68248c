"""
Feature flag enumerations.
"""

from enum import Enum


class FlagType(str, Enum):
    """Declared type of a flag's value and of every rule value on it."""
    BOOLEAN = "BOOLEAN"
    STRING = "STRING"
    INT = "INT"
    PERCENTAGE = "PERCENTAGE"


class DataType(str, Enum):
    """Data type of a condition attribute. Selects the evaluator."""
    STRING = "STRING"
    NUMBER = "NUMBER"
    BOOLEAN = "BOOLEAN"
    DATE = "DATE"
    ARRAY = "ARRAY"


class Operator(str, Enum):
    """Comparison operators usable in rule conditions."""
    EQUALS = "EQUALS"
    NOT_EQUALS = "NOT_EQUALS"
    GREATER_THAN = "GREATER_THAN"
    GREATER_EQUAL = "GREATER_EQUAL"
    LESS_THAN = "LESS_THAN"
    LESS_EQUAL = "LESS_EQUAL"
    IN = "IN"
    NOT_IN = "NOT_IN"
    CONTAINS = "CONTAINS"
    STARTS_WITH = "STARTS_WITH"
    ENDS_WITH = "ENDS_WITH"
    REGEX_MATCH = "REGEX_MATCH"


class Reason(str, Enum):
    """
    Why an evaluation produced its value.

    MANUAL is reserved for manual overrides and is never produced
    by the evaluation engine.
    """
    FLAG_DISABLED = "FLAG_DISABLED"
    FLAG_EXPIRED = "FLAG_EXPIRED"
    DEFAULT = "DEFAULT"
    RULE_MATCH = "RULE_MATCH"
    MANUAL = "MANUAL"
