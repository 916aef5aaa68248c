"""
Flag evaluation routes.
"""

from fastapi import APIRouter

from groundcontrol.core.config import settings
from groundcontrol.core.exceptions import ValidationError
from groundcontrol.core.features.dependencies import FeatureFlags
from groundcontrol.schemas.evaluation import (
    BulkEvaluationRequest,
    BulkEvaluationResponse,
    BulkEvaluationSummary,
    EvaluationRequest,
    EvaluationResponse,
)

router = APIRouter()


@router.post("/bulk", response_model=BulkEvaluationResponse)
async def evaluate_bulk(data: BulkEvaluationRequest, service: FeatureFlags):
    """
    Evaluate several flags against one context.

    Per-flag failures are reported in errors and do not fail the request.
    """
    limit = settings.features.bulk_max_flags
    if len(data.flag_codes) > limit:
        raise ValidationError(f"At most {limit} flag codes can be evaluated at once")

    bulk = await service.evaluate_bulk(data.flag_codes, data.to_context())
    return BulkEvaluationResponse(
        results={
            code: EvaluationResponse.from_result(code, result)
            for code, result in bulk.results.items()
        },
        errors=bulk.errors,
        summary=BulkEvaluationSummary(**bulk.summary()),
    )


@router.post("/{code}", response_model=EvaluationResponse)
async def evaluate_flag(code: str, data: EvaluationRequest, service: FeatureFlags):
    """Evaluate one flag."""
    result = await service.evaluate(code, data.to_context())
    return EvaluationResponse.from_result(code, result)
