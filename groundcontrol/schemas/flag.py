"""
Feature flag schemas.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from groundcontrol.core.features.enums import FlagType

from .rule import RuleResponse

CODE_PATTERN = r"^[a-zA-Z0-9_-]+$"


class FlagCreate(BaseModel):
    """Flag creation schema."""
    code: str = Field(min_length=1, max_length=50, pattern=CODE_PATTERN)
    name: str = Field(min_length=1, max_length=100)
    value_type: FlagType
    value: Any = None
    enabled: bool = False
    description: str | None = Field(None, max_length=1000)
    due_at: datetime | None = None


class FlagUpdate(BaseModel):
    """
    Flag update schema.

    Only fields present in the request body are applied; description,
    due_at and value may be cleared with an explicit null.
    """
    code: str | None = Field(None, min_length=1, max_length=50, pattern=CODE_PATTERN)
    name: str | None = Field(None, min_length=1, max_length=100)
    description: str | None = Field(None, max_length=1000)
    due_at: datetime | None = None
    value: Any = None

    @field_validator("code", "name")
    @classmethod
    def not_null(cls, v: str | None) -> str:
        if v is None:
            raise ValueError("cannot be null")
        return v


class FlagStateChange(BaseModel):
    """Enable or disable a flag."""
    enabled: bool


class FlagResponse(BaseModel):
    """Flag response schema, rules included."""
    model_config = ConfigDict(from_attributes=True)

    id: int | None = None
    code: str
    name: str
    description: str | None = None
    value_type: FlagType
    value: Any = None
    enabled: bool
    due_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    rollout_rules: list[RuleResponse] = []


class FlagListResponse(BaseModel):
    """Paginated flag list response."""
    flags: list[FlagResponse]
    total: int
    page: int
    per_page: int


class FlagsByCodesResponse(BaseModel):
    """Flags found for a set of codes, plus the codes that were not."""
    flags: list[FlagResponse]
    not_found: list[str]
