"""
API routes aggregation.
"""

from fastapi import APIRouter

from .evaluations import router as evaluations_router
from .flags import router as flags_router
from .rules import router as rules_router

router = APIRouter()

router.include_router(flags_router, prefix="/v1/flags", tags=["flags"])
router.include_router(rules_router, prefix="/v1/flags/{code}/rules", tags=["rules"])
router.include_router(evaluations_router, prefix="/v1/evaluations", tags=["evaluations"])
