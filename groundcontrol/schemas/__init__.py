from .evaluation import (
    BulkEvaluationRequest,
    BulkEvaluationResponse,
    EvaluationRequest,
    EvaluationResponse,
)
from .flag import (
    FlagCreate,
    FlagListResponse,
    FlagResponse,
    FlagsByCodesResponse,
    FlagStateChange,
    FlagUpdate,
)
from .rule import ConditionSchema, RuleCreate, RuleReorder, RuleResponse, RuleUpdate

__all__ = [
    "BulkEvaluationRequest",
    "BulkEvaluationResponse",
    "ConditionSchema",
    "EvaluationRequest",
    "EvaluationResponse",
    "FlagCreate",
    "FlagListResponse",
    "FlagResponse",
    "FlagStateChange",
    "FlagsByCodesResponse",
    "FlagUpdate",
    "RuleCreate",
    "RuleReorder",
    "RuleResponse",
    "RuleUpdate",
]
