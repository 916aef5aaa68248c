"""
Database backend for feature flags.

Uses PostgreSQL for persistent storage (SQLite in tests).
"""

from typing import Callable
from uuid import UUID

from sqlalchemy import delete, event, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session, selectinload

from groundcontrol.core.exceptions import ConflictError
from groundcontrol.utils.timezone import ensure_utc, utc_now

from ..interfaces import Condition, FeatureBackend, FeatureFlag, RolloutRule
from ..models import FeatureFlagModel, RolloutRuleModel


class DatabaseFeatureBackend(FeatureBackend):
    """
    PostgreSQL-backed feature flag storage.

    Flags are loaded with their rules in one extra SELECT (selectin).
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    # ============================================================
    # FLAG OPERATIONS
    # ============================================================

    async def get_flag(self, code: str) -> FeatureFlag | None:
        """Get a feature flag (with rules) by code."""
        model = await self._get_model(code)
        if not model:
            return None
        return self._model_to_flag(model)

    async def get_flags(self, codes: list[str]) -> list[FeatureFlag]:
        if not codes:
            return []
        query = (
            select(FeatureFlagModel)
            .where(FeatureFlagModel.code.in_(list(set(codes))))
            .options(selectinload(FeatureFlagModel.rules))
            .order_by(FeatureFlagModel.code)
        )
        result = await self.db.execute(query)
        return [self._model_to_flag(m) for m in result.scalars().all()]

    async def list_flags(self, page: int = 1, per_page: int = 20) -> tuple[list[FeatureFlag], int]:
        """List feature flags, most recently updated first."""
        total = await self.db.scalar(select(func.count()).select_from(FeatureFlagModel))

        query = (
            select(FeatureFlagModel)
            .options(selectinload(FeatureFlagModel.rules))
            .order_by(FeatureFlagModel.updated_at.desc(), FeatureFlagModel.id.desc())
            .offset((page - 1) * per_page)
            .limit(per_page)
        )
        result = await self.db.execute(query)
        return [self._model_to_flag(m) for m in result.scalars().all()], total or 0

    async def create_flag(self, flag: FeatureFlag) -> FeatureFlag:
        """Create a new feature flag."""
        if await self._code_exists(flag.code):
            raise ConflictError(f"Feature flag with code '{flag.code}' already exists")

        model = FeatureFlagModel(
            code=flag.code,
            name=flag.name,
            description=flag.description,
            enabled=flag.enabled,
            value_type=flag.value_type.value,
            value=flag.value,
            due_at=flag.due_at,
        )
        if flag.created_at:
            model.created_at = flag.created_at
        if flag.updated_at:
            model.updated_at = flag.updated_at

        self.db.add(model)
        await self.db.flush()

        return await self.get_flag(flag.code)

    async def save_flag(self, code: str, flag: FeatureFlag) -> FeatureFlag | None:
        """Overwrite a flag's scalar fields (rename allowed)."""
        model = await self._get_model(code)
        if not model:
            return None

        if flag.code != code and await self._code_exists(flag.code):
            raise ConflictError(f"Feature flag with code '{flag.code}' already exists")

        model.code = flag.code
        model.name = flag.name
        model.description = flag.description
        model.enabled = flag.enabled
        model.value_type = flag.value_type.value
        model.value = flag.value
        model.due_at = flag.due_at
        model.updated_at = flag.updated_at or utc_now()

        await self.db.flush()
        return await self.get_flag(flag.code)

    async def delete_flag(self, code: str) -> bool:
        """Delete a feature flag and its rules."""
        flag_id = await self.db.scalar(
            select(FeatureFlagModel.id).where(FeatureFlagModel.code == code)
        )
        if flag_id is None:
            return False

        await self.db.execute(delete(RolloutRuleModel).where(RolloutRuleModel.flag_id == flag_id))
        await self.db.execute(delete(FeatureFlagModel).where(FeatureFlagModel.id == flag_id))
        await self.db.flush()
        return True

    # ============================================================
    # RULE OPERATIONS
    # ============================================================

    async def add_rule(self, code: str, rule: RolloutRule) -> RolloutRule | None:
        flag_id = await self.db.scalar(
            select(FeatureFlagModel.id).where(FeatureFlagModel.code == code)
        )
        if flag_id is None:
            return None

        model = RolloutRuleModel(flag_id=flag_id)
        if rule.id is not None:
            model.id = rule.id
        self._apply_rule(model, rule)
        if rule.created_at:
            model.created_at = rule.created_at

        self.db.add(model)
        await self.db.flush()
        await self.db.refresh(model)
        return self._model_to_rule(model)

    async def get_rule(self, code: str, rule_id: UUID) -> RolloutRule | None:
        model = await self._get_rule_model(code, rule_id)
        if not model:
            return None
        return self._model_to_rule(model)

    async def save_rule(self, code: str, rule: RolloutRule) -> RolloutRule | None:
        model = await self._get_rule_model(code, rule.id)
        if not model:
            return None

        self._apply_rule(model, rule)
        await self.db.flush()
        await self.db.refresh(model)
        return self._model_to_rule(model)

    async def delete_rule(self, code: str, rule_id: UUID) -> bool:
        model = await self._get_rule_model(code, rule_id)
        if not model:
            return False

        await self.db.delete(model)
        await self.db.flush()
        return True

    async def set_priorities(self, code: str, priorities: dict[UUID, int]) -> None:
        flag_id = await self.db.scalar(
            select(FeatureFlagModel.id).where(FeatureFlagModel.code == code)
        )
        if flag_id is None:
            return

        now = utc_now()
        for rule_id, priority in priorities.items():
            await self.db.execute(
                update(RolloutRuleModel)
                .where(RolloutRuleModel.id == rule_id, RolloutRuleModel.flag_id == flag_id)
                .values(priority=priority, updated_at=now)
            )
        await self.db.flush()

    # ============================================================
    # TRANSACTION HOOKS
    # ============================================================

    def after_commit(self, callback: Callable[[], None]) -> None:
        """Run callback after the session's next successful commit."""

        def on_commit(session: Session) -> None:
            callback()

        event.listen(self.db.sync_session, "after_commit", on_commit, once=True)

    # ============================================================
    # HELPERS
    # ============================================================

    async def _get_model(self, code: str) -> FeatureFlagModel | None:
        query = (
            select(FeatureFlagModel)
            .where(FeatureFlagModel.code == code)
            .options(selectinload(FeatureFlagModel.rules))
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def _get_rule_model(self, code: str, rule_id: UUID) -> RolloutRuleModel | None:
        query = (
            select(RolloutRuleModel)
            .join(FeatureFlagModel, RolloutRuleModel.flag_id == FeatureFlagModel.id)
            .where(FeatureFlagModel.code == code, RolloutRuleModel.id == rule_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def _code_exists(self, code: str) -> bool:
        found = await self.db.scalar(
            select(FeatureFlagModel.id).where(FeatureFlagModel.code == code)
        )
        return found is not None

    @staticmethod
    def _apply_rule(model: RolloutRuleModel, rule: RolloutRule) -> None:
        model.priority = rule.priority
        model.active = rule.active
        model.start_at = rule.start_at
        model.end_at = rule.end_at
        model.percentage = rule.percentage
        model.distribution_key_attribute = rule.distribution_key_attribute
        model.value_bool = rule.value_bool
        model.value_string = rule.value_string
        model.value_int = rule.value_int
        model.value_percentage = rule.value_percentage
        model.variant_name = rule.variant_name
        model.conditions = [c.to_dict() for c in rule.conditions]
        model.updated_at = rule.updated_at or utc_now()

    @staticmethod
    def _model_to_rule(model: RolloutRuleModel) -> RolloutRule:
        return RolloutRule(
            id=model.id,
            priority=model.priority,
            active=model.active,
            percentage=model.percentage,
            distribution_key_attribute=model.distribution_key_attribute,
            value_bool=model.value_bool,
            value_string=model.value_string,
            value_int=model.value_int,
            value_percentage=model.value_percentage,
            variant_name=model.variant_name,
            start_at=ensure_utc(model.start_at),
            end_at=ensure_utc(model.end_at),
            conditions=tuple(Condition.from_dict(c) for c in model.conditions or []),
            created_at=ensure_utc(model.created_at),
            updated_at=ensure_utc(model.updated_at),
        )

    def _model_to_flag(self, model: FeatureFlagModel) -> FeatureFlag:
        """Convert database model to domain object."""
        rules = sorted(
            (self._model_to_rule(r) for r in model.rules),
            key=lambda rule: (rule.priority or 0, rule.created_at, rule.id),
        )
        return FeatureFlag(
            id=model.id,
            code=model.code,
            name=model.name,
            description=model.description,
            enabled=model.enabled,
            value_type=model.value_type,
            value=model.value,
            due_at=ensure_utc(model.due_at),
            rollout_rules=tuple(rules),
            created_at=ensure_utc(model.created_at),
            updated_at=ensure_utc(model.updated_at),
        )
