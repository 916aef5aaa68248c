"""
Feature flag management routes.
"""

from fastapi import APIRouter, Query, Response, status

from groundcontrol.core.features.dependencies import FeatureFlags
from groundcontrol.schemas.flag import (
    FlagCreate,
    FlagListResponse,
    FlagResponse,
    FlagsByCodesResponse,
    FlagStateChange,
    FlagUpdate,
)

router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED, response_model=FlagResponse)
async def create_flag(data: FlagCreate, service: FeatureFlags):
    """Create a new feature flag."""
    flag = await service.create_flag(**data.model_dump())
    return FlagResponse.model_validate(flag)


@router.get("", response_model=FlagListResponse)
async def list_flags(
    service: FeatureFlags,
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
):
    """List feature flags, most recently updated first."""
    flags, total = await service.list_flags(page=page, per_page=per_page)
    return FlagListResponse(
        flags=[FlagResponse.model_validate(f) for f in flags],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.get("/by-codes", response_model=FlagsByCodesResponse)
async def get_flags_by_codes(
    service: FeatureFlags,
    codes: list[str] = Query(..., min_length=1),
):
    """Fetch several flags at once; unknown codes are listed in not_found."""
    flags, not_found = await service.get_flags_by_codes(codes)
    return FlagsByCodesResponse(
        flags=[FlagResponse.model_validate(f) for f in flags],
        not_found=not_found,
    )


@router.get("/{code}", response_model=FlagResponse)
async def get_flag(code: str, service: FeatureFlags):
    """Get a flag with its rules."""
    flag = await service.get_flag(code)
    return FlagResponse.model_validate(flag)


@router.put("/{code}", status_code=status.HTTP_204_NO_CONTENT)
async def update_flag(code: str, data: FlagUpdate, service: FeatureFlags):
    """Update flag details. Only fields present in the body change."""
    await service.update_flag(code, **data.model_dump(exclude_unset=True))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.patch("/{code}/change-state", status_code=status.HTTP_204_NO_CONTENT)
async def change_flag_state(code: str, data: FlagStateChange, service: FeatureFlags):
    """Enable or disable a flag."""
    await service.set_flag_state(code, data.enabled)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/{code}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_flag(code: str, service: FeatureFlags):
    """Delete a flag and its rules."""
    await service.delete_flag(code)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
