"""
Feature Flag Interfaces - Core abstractions.

Domain values handed to the evaluation engine are frozen dataclasses:
the engine reads a snapshot and never mutates it. Updates go through
``with_updates()`` which returns a new value plus a changed-fields diff.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, fields, replace
from datetime import datetime
from typing import Any, Callable, Mapping
from uuid import UUID

from groundcontrol.core.exceptions import ValidationError
from groundcontrol.utils.timezone import ensure_utc

from .enums import DataType, FlagType, Operator, Reason

FLAG_CODE_PATTERN = re.compile(r"^[a-zA-Z0-9_-]+$")
FLAG_CODE_MAX_LENGTH = 50
FLAG_NAME_MAX_LENGTH = 100


def compute_changes(old: Any, new: Any) -> dict[str, dict[str, Any]]:
    """
    Compute the differences between two dataclass instances.

    Returns a dict of changed fields with old and new values.
    """
    changes = {}
    for f in fields(old):
        old_value = getattr(old, f.name)
        new_value = getattr(new, f.name)
        if old_value != new_value:
            changes[f.name] = {"old": old_value, "new": new_value}
    return changes


# ============================================================
# RULES
# ============================================================

@dataclass(frozen=True)
class Condition:
    """
    One attribute comparison inside a rollout rule.

    ``data_type`` selects the evaluator; ``operator`` must be one that
    evaluator supports.
    """
    attribute: str
    operator: Operator
    value: Any
    data_type: DataType

    def __post_init__(self) -> None:
        object.__setattr__(self, "operator", Operator(self.operator))
        object.__setattr__(self, "data_type", DataType(self.data_type))

    def to_dict(self) -> dict[str, Any]:
        return {
            "attribute": self.attribute,
            "operator": self.operator.value,
            "value": self.value,
            "data_type": self.data_type.value,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Condition":
        return cls(
            attribute=data["attribute"],
            operator=data["operator"],
            value=data.get("value"),
            data_type=data.get("data_type") or data["dataType"],
        )


@dataclass(frozen=True)
class RolloutRule:
    """
    Prioritized, conditional override of a flag's default value.

    Attributes:
        id: Opaque identifier (addressing only)
        priority: Lower is evaluated first; None sorts as 0
        active: Inactive rules are never evaluated
        start_at / end_at: Optional eligibility window
        conditions: ALL must pass (empty means always eligible)
        percentage: Optional rollout gate in [0, 100]
        distribution_key_attribute: Context attribute used for bucketing
            instead of the subject id
        value_*: Typed rule value; see rule_value() for precedence
        variant_name: Label surfaced in results for experiment attribution
    """
    id: UUID | None = None
    priority: int | None = 0
    active: bool = True
    percentage: float | None = None
    distribution_key_attribute: str | None = None
    value_bool: bool | None = None
    value_string: str | None = None
    value_int: int | None = None
    value_percentage: float | None = None
    variant_name: str | None = None
    start_at: datetime | None = None
    end_at: datetime | None = None
    conditions: tuple[Condition, ...] = ()
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "conditions", tuple(self.conditions))
        object.__setattr__(self, "start_at", ensure_utc(self.start_at))
        object.__setattr__(self, "end_at", ensure_utc(self.end_at))

        if self.start_at is not None and self.end_at is not None:
            if not self.start_at < self.end_at:
                raise ValidationError("start_at must be before end_at")

        if self.percentage is not None and not 0.0 <= self.percentage <= 100.0:
            raise ValidationError(
                f"Percentage must be between 0.0 and 100.0, got: {self.percentage}"
            )

    def rule_value(self) -> Any:
        """
        Value returned when this rule matches.

        Precedence: value_bool > value_string > value_int > value_percentage,
        falling back to True when none is set.
        """
        if self.value_bool is not None:
            return self.value_bool
        if self.value_string is not None:
            return self.value_string
        if self.value_int is not None:
            return self.value_int
        if self.value_percentage is not None:
            return self.value_percentage
        return True

    def has_conditions(self) -> bool:
        return len(self.conditions) > 0

    def with_updates(self, **updates: Any) -> tuple["RolloutRule", dict[str, dict[str, Any]]]:
        """Return (updated rule, changes). Unknown fields are ignored."""
        known = {f.name for f in fields(self)}
        updated = replace(self, **{k: v for k, v in updates.items() if k in known})
        return updated, compute_changes(self, updated)


# ============================================================
# FLAGS
# ============================================================

@dataclass(frozen=True)
class FeatureFlag:
    """
    Feature flag definition with its rollout rules attached.

    The evaluation engine only reads code, enabled, value_type, value,
    due_at and rollout_rules. The rest is management metadata.
    """
    code: str
    name: str
    value_type: FlagType
    value: Any = None
    enabled: bool = False
    description: str | None = None
    due_at: datetime | None = None
    rollout_rules: tuple[RolloutRule, ...] = ()
    id: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "value_type", FlagType(self.value_type))
        object.__setattr__(self, "rollout_rules", tuple(self.rollout_rules))
        object.__setattr__(self, "due_at", ensure_utc(self.due_at))

        if not isinstance(self.code, str) or not FLAG_CODE_PATTERN.fullmatch(self.code):
            raise ValidationError(
                "Feature flag code must contain only letters, numbers, hyphens, or underscores."
            )
        if len(self.code) > FLAG_CODE_MAX_LENGTH:
            raise ValidationError(
                f"Feature flag code cannot exceed {FLAG_CODE_MAX_LENGTH} characters."
            )
        if not self.name or not self.name.strip():
            raise ValidationError("Feature flag name cannot be blank.")
        if len(self.name) > FLAG_NAME_MAX_LENGTH:
            raise ValidationError(
                f"Feature flag name cannot exceed {FLAG_NAME_MAX_LENGTH} characters."
            )

    def is_expired(self, now: datetime) -> bool:
        """True when due_at is set and strictly before now."""
        return self.due_at is not None and self.due_at < now

    def with_updates(self, **updates: Any) -> tuple["FeatureFlag", dict[str, dict[str, Any]]]:
        """
        Return (updated flag, changes).

        Rules are managed separately and cannot be replaced here.
        """
        known = {f.name for f in fields(self)} - {"rollout_rules", "id", "created_at"}
        updated = replace(self, **{k: v for k, v in updates.items() if k in known})
        return updated, compute_changes(self, updated)

    def with_rules(self, rules: "list[RolloutRule] | tuple[RolloutRule, ...]") -> "FeatureFlag":
        return replace(self, rollout_rules=tuple(rules))


# ============================================================
# EVALUATION
# ============================================================

@dataclass(frozen=True)
class EvaluationContext:
    """
    Caller-supplied subject identity and attribute bag.

    subject_id may be None (anonymous evaluation); percentage rules then
    need a distribution_key_attribute that resolves in attributes.
    """
    subject_id: str | None = None
    attributes: Mapping[str, Any] = field(default_factory=dict)

    def distribution_key(self, attribute_name: str | None) -> str | None:
        """
        Key used for percentage bucketing.

        The named attribute (as a string) when present and not None,
        otherwise the subject id.
        """
        if attribute_name is None:
            return self.subject_id
        value = self.attributes.get(attribute_name)
        if value is None:
            return self.subject_id
        return str(value)


@dataclass(frozen=True)
class EvaluationResult:
    """
    Result of a feature flag evaluation.

    Pure output value, never mutated after construction.
    """
    enabled: bool
    reason: Reason
    value: Any = None
    value_type: FlagType | None = None
    variant: str | None = None

    @classmethod
    def disabled(cls) -> "EvaluationResult":
        return cls(enabled=False, value=None, reason=Reason.FLAG_DISABLED)

    @classmethod
    def expired(cls) -> "EvaluationResult":
        return cls(enabled=False, value=None, reason=Reason.FLAG_EXPIRED)


@dataclass
class BulkEvaluationResult:
    """
    Per-code results and errors for one shared context.

    Counters count attempts, so a code requested twice counts twice.
    """
    results: dict[str, EvaluationResult] = field(default_factory=dict)
    errors: dict[str, str] = field(default_factory=dict)
    requested: int = 0
    successful: int = 0
    failed: int = 0

    def summary(self) -> dict[str, int]:
        return {
            "requested": self.requested,
            "successful": self.successful,
            "failed": self.failed,
        }


# ============================================================
# EVALUATOR CONTRACT
# ============================================================

class ConditionEvaluator(ABC):
    """
    Base class for per-data-type condition evaluators.

    Subclasses declare the data type and operators they handle;
    the registry dispatches on (operator, data_type).
    """

    data_type: DataType
    operators: frozenset[Operator] = frozenset()

    def __init__(self, **kwargs: Any):
        pass

    def can_handle(self, operator: Operator, data_type: DataType) -> bool:
        """Check if this evaluator handles the (operator, data type) pair."""
        return data_type == self.data_type and operator in self.operators

    @abstractmethod
    def evaluate(self, attribute_value: Any, condition_value: Any, operator: Operator) -> bool:
        """
        Compare an attribute value against a condition value.

        Returns False for operands that cannot be coerced.

        Raises:
            UnsupportedOperatorError: operator not in self.operators
        """
        pass


# ============================================================
# STORAGE CONTRACT
# ============================================================

class FeatureBackend(ABC):
    """
    Abstract backend for feature flag storage.

    Implementations:
    - MemoryFeatureBackend: In-memory (dev/testing)
    - DatabaseFeatureBackend: SQLAlchemy (PostgreSQL, SQLite for tests)

    Flags returned by get_flag() carry their rules, ordered by priority.
    """

    @abstractmethod
    async def get_flag(self, code: str) -> FeatureFlag | None:
        """Get a flag (with rules) by code."""
        pass

    @abstractmethod
    async def get_flags(self, codes: list[str]) -> list[FeatureFlag]:
        """Get all flags whose code is in codes. Missing codes are skipped."""
        pass

    @abstractmethod
    async def list_flags(self, page: int = 1, per_page: int = 20) -> tuple[list[FeatureFlag], int]:
        """List flags (most recently updated first) and the total count."""
        pass

    @abstractmethod
    async def create_flag(self, flag: FeatureFlag) -> FeatureFlag:
        """
        Persist a new flag.

        Raises:
            ConflictError: code already exists
        """
        pass

    @abstractmethod
    async def save_flag(self, code: str, flag: FeatureFlag) -> FeatureFlag | None:
        """
        Overwrite the scalar fields of the flag stored under code.

        flag.code may differ from code (rename).

        Raises:
            ConflictError: renamed to an existing code
        """
        pass

    @abstractmethod
    async def delete_flag(self, code: str) -> bool:
        """Delete a flag and its rules."""
        pass

    @abstractmethod
    async def add_rule(self, code: str, rule: RolloutRule) -> RolloutRule | None:
        """Attach a new rule to a flag. Returns None if flag is missing."""
        pass

    @abstractmethod
    async def get_rule(self, code: str, rule_id: UUID) -> RolloutRule | None:
        """Get one rule of a flag."""
        pass

    @abstractmethod
    async def save_rule(self, code: str, rule: RolloutRule) -> RolloutRule | None:
        """Overwrite a rule (matched by rule.id) of a flag."""
        pass

    @abstractmethod
    async def delete_rule(self, code: str, rule_id: UUID) -> bool:
        """Delete one rule of a flag."""
        pass

    @abstractmethod
    async def set_priorities(self, code: str, priorities: dict[UUID, int]) -> None:
        """Assign new priorities to rules of a flag."""
        pass

    def after_commit(self, callback: Callable[[], None]) -> None:
        """
        Run callback once the current write is durable.

        Backends without transactions have already persisted the write,
        so the default runs it immediately.
        """
        callback()
