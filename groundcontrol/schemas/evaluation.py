"""
Evaluation schemas.
"""

from typing import Any

from pydantic import BaseModel, Field

from groundcontrol.core.features.enums import FlagType, Reason
from groundcontrol.core.features.interfaces import EvaluationContext, EvaluationResult


class EvaluationRequest(BaseModel):
    """Subject and attributes to evaluate against."""
    subject_id: str | None = Field(None, max_length=255)
    attributes: dict[str, Any] = {}

    def to_context(self) -> EvaluationContext:
        return EvaluationContext(subject_id=self.subject_id, attributes=dict(self.attributes))


class BulkEvaluationRequest(EvaluationRequest):
    """Several flag codes evaluated against one context."""
    flag_codes: list[str] = Field(min_length=1)


class EvaluationResponse(BaseModel):
    """Outcome of one flag evaluation."""
    flag_code: str
    enabled: bool
    value: Any = None
    value_type: FlagType | None = None
    variant: str | None = None
    reason: Reason

    @classmethod
    def from_result(cls, flag_code: str, result: EvaluationResult) -> "EvaluationResponse":
        return cls(
            flag_code=flag_code,
            enabled=result.enabled,
            value=result.value,
            value_type=result.value_type,
            variant=result.variant,
            reason=result.reason,
        )


class BulkEvaluationSummary(BaseModel):
    requested: int
    successful: int
    failed: int


class BulkEvaluationResponse(BaseModel):
    """Per-code results and errors."""
    results: dict[str, EvaluationResponse]
    errors: dict[str, str]
    summary: BulkEvaluationSummary
