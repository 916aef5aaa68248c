"""
Feature flags: domain model, evaluation engine and management service.

FastAPI wiring lives in ``groundcontrol.core.features.dependencies``.
"""

from .cache import FlagCache
from .engine import EvaluationEngine
from .enums import DataType, FlagType, Operator, Reason
from .interfaces import (
    BulkEvaluationResult,
    Condition,
    ConditionEvaluator,
    EvaluationContext,
    EvaluationResult,
    FeatureBackend,
    FeatureFlag,
    RolloutRule,
)
from .registry import EvaluatorRegistry
from .service import FeatureFlagService

__all__ = [
    "BulkEvaluationResult",
    "Condition",
    "ConditionEvaluator",
    "DataType",
    "EvaluationContext",
    "EvaluationEngine",
    "EvaluationResult",
    "EvaluatorRegistry",
    "FeatureBackend",
    "FeatureFlag",
    "FeatureFlagService",
    "FlagCache",
    "FlagType",
    "Operator",
    "Reason",
    "RolloutRule",
]
