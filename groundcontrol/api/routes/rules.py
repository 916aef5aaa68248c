"""
Rollout rule routes, nested under a flag.
"""

from uuid import UUID

from fastapi import APIRouter, Response, status

from groundcontrol.core.features.dependencies import FeatureFlags
from groundcontrol.schemas.rule import RuleCreate, RuleReorder, RuleResponse, RuleUpdate

router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED, response_model=RuleResponse)
async def create_rule(code: str, data: RuleCreate, service: FeatureFlags):
    """Attach a rollout rule to a flag."""
    rule = await service.create_rule(code, **data.domain_fields())
    return RuleResponse.model_validate(rule)


@router.get("", response_model=list[RuleResponse])
async def list_rules(code: str, service: FeatureFlags):
    """All rules of a flag, ordered by priority."""
    rules = await service.list_rules(code)
    return [RuleResponse.model_validate(r) for r in rules]


# Declared before /{rule_id} so "reorder" is not parsed as an id
@router.post("/reorder", status_code=status.HTTP_204_NO_CONTENT)
async def reorder_rules(code: str, data: RuleReorder, service: FeatureFlags):
    """Reassign priorities in the given order."""
    await service.reorder_rules(code, data.rule_ids)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{rule_id}", response_model=RuleResponse)
async def get_rule(code: str, rule_id: UUID, service: FeatureFlags):
    rule = await service.get_rule(code, rule_id)
    return RuleResponse.model_validate(rule)


@router.put("/{rule_id}", response_model=RuleResponse)
async def update_rule(code: str, rule_id: UUID, data: RuleUpdate, service: FeatureFlags):
    """Partially update a rule."""
    rule, _ = await service.update_rule(code, rule_id, **data.domain_fields(only_set=True))
    return RuleResponse.model_validate(rule)


@router.delete("/{rule_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_rule(code: str, rule_id: UUID, service: FeatureFlags):
    await service.delete_rule(code, rule_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
