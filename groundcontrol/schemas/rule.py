"""
Rollout rule schemas.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from groundcontrol.core.features.enums import DataType, Operator
from groundcontrol.core.features.interfaces import Condition

RULE_VALUE_FIELDS = ("value_bool", "value_string", "value_int", "value_percentage")


class ConditionSchema(BaseModel):
    """One attribute comparison."""
    model_config = ConfigDict(from_attributes=True)

    attribute: str = Field(min_length=1, max_length=100)
    operator: Operator
    value: Any = None
    data_type: DataType

    def to_domain(self) -> Condition:
        return Condition(
            attribute=self.attribute,
            operator=self.operator,
            value=self.value,
            data_type=self.data_type,
        )


class _RuleFields(BaseModel):
    priority: int | None = Field(0, ge=0)
    active: bool = True
    percentage: float | None = Field(None, ge=0.0, le=100.0)
    distribution_key_attribute: str | None = Field(None, max_length=100)
    value_bool: bool | None = None
    value_string: str | None = None
    value_int: int | None = None
    value_percentage: float | None = Field(None, ge=0.0, le=100.0)
    variant_name: str | None = Field(None, max_length=100)
    start_at: datetime | None = None
    end_at: datetime | None = None
    conditions: list[ConditionSchema] = []

    @model_validator(mode="after")
    def check_rule(self):
        values_set = [f for f in RULE_VALUE_FIELDS if getattr(self, f) is not None]
        if len(values_set) > 1:
            raise ValueError(f"At most one rule value may be set, got: {values_set}")
        if self.start_at and self.end_at and not self.start_at < self.end_at:
            raise ValueError("start_at must be before end_at")
        return self

    def domain_fields(self, only_set: bool = False) -> dict[str, Any]:
        """Keyword arguments for the service, conditions as domain values."""
        data = self.model_dump(exclude_unset=only_set, exclude={"conditions"})
        if not only_set or "conditions" in self.model_fields_set:
            data["conditions"] = [c.to_domain() for c in self.conditions]
        return data


class RuleCreate(_RuleFields):
    """Rule creation schema."""


class RuleUpdate(_RuleFields):
    """
    Rule update schema.

    Partial: only fields present in the request body are applied.
    """
    active: bool | None = None

    @model_validator(mode="after")
    def no_null_active(self):
        if "active" in self.model_fields_set and self.active is None:
            raise ValueError("active cannot be null")
        return self


class RuleReorder(BaseModel):
    """Full ordering of a flag's rule ids, highest priority first."""
    rule_ids: list[UUID]


class RuleResponse(BaseModel):
    """Rule response schema."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    priority: int | None = None
    active: bool
    percentage: float | None = None
    distribution_key_attribute: str | None = None
    value_bool: bool | None = None
    value_string: str | None = None
    value_int: int | None = None
    value_percentage: float | None = None
    variant_name: str | None = None
    start_at: datetime | None = None
    end_at: datetime | None = None
    conditions: list[ConditionSchema] = []
    created_at: datetime | None = None
    updated_at: datetime | None = None
