"""
FastAPI dependencies for feature flags.

Usage:
    from groundcontrol.core.features.dependencies import FeatureFlags

    @router.post("/evaluations/{code}")
    async def evaluate(code: str, service: FeatureFlags):
        return await service.evaluate(code, EvaluationContext(subject_id="u1"))
"""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from groundcontrol.api.dependencies.database import get_db
from groundcontrol.core.config import settings

from .backends.database import DatabaseFeatureBackend
from .backends.memory import MemoryFeatureBackend
from .cache import FlagCache
from .engine import EvaluationEngine
from .interfaces import FeatureBackend
from .registry import EvaluatorRegistry
from .service import FeatureFlagService


# ============================================================
# SINGLETONS
# ============================================================

# In-memory backend singleton (for development)
_memory_backend: MemoryFeatureBackend | None = None


def get_memory_backend() -> MemoryFeatureBackend:
    """Get or create memory backend singleton."""
    global _memory_backend
    if _memory_backend is None:
        _memory_backend = MemoryFeatureBackend()
    return _memory_backend


@lru_cache
def get_evaluation_engine() -> EvaluationEngine:
    """Process-wide engine; evaluators are stateless."""
    registry = EvaluatorRegistry.default(
        regex_max_length=settings.features.regex_max_length,
        regex_timeout_ms=settings.features.regex_timeout_ms,
    )
    return EvaluationEngine(registry)


@lru_cache
def get_flag_cache() -> FlagCache:
    """Process-wide flag lookup cache."""
    return FlagCache(ttl=settings.features.cache_ttl)


# ============================================================
# REQUEST DEPENDENCIES
# ============================================================

async def get_feature_backend(
    db: AsyncSession = Depends(get_db),
) -> FeatureBackend:
    """
    Get feature backend based on configuration.

    Uses FEATURE_BACKEND setting:
    - "database": PostgreSQL (default, production)
    - "memory": In-memory (development/testing)
    """
    if settings.features.backend == "memory":
        return get_memory_backend()
    return DatabaseFeatureBackend(db)


async def get_feature_service(
    backend: FeatureBackend = Depends(get_feature_backend),
) -> FeatureFlagService:
    """Get feature flag service."""
    return FeatureFlagService(
        backend=backend,
        engine=get_evaluation_engine(),
        cache=get_flag_cache(),
    )


FeatureFlags = Annotated[FeatureFlagService, Depends(get_feature_service)]
