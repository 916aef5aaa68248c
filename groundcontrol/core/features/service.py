"""
Feature Flag Service - flag/rule management and evaluation entry point.

Loads flag snapshots from the backend (through the lookup cache) and
hands them to the synchronous EvaluationEngine. Every write evicts the
affected flag from the cache, before and after its commit.
"""

from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

import structlog

from groundcontrol.core.exceptions import (
    FlagNotFoundError,
    RuleNotFoundError,
    ValidationError,
)
from groundcontrol.utils.timezone import utc_now

from .cache import FlagCache
from .engine import EvaluationEngine
from .enums import FlagType
from .interfaces import (
    BulkEvaluationResult,
    Condition,
    EvaluationContext,
    EvaluationResult,
    FeatureBackend,
    FeatureFlag,
    RolloutRule,
)

logger = structlog.get_logger()

FLAG_UPDATABLE_FIELDS = frozenset({"name", "code", "description", "due_at", "value"})
RULE_UPDATABLE_FIELDS = frozenset({
    "percentage",
    "priority",
    "active",
    "distribution_key_attribute",
    "value_bool",
    "value_string",
    "value_int",
    "value_percentage",
    "variant_name",
    "start_at",
    "end_at",
    "conditions",
})


class FeatureFlagService:
    """
    Feature flag management and evaluation.

    Usage:
        service = FeatureFlagService(MemoryFeatureBackend())
        await service.create_flag(code="new_checkout", name="New checkout",
                                  value_type=FlagType.BOOLEAN, value=False,
                                  enabled=True)
        result = await service.evaluate("new_checkout",
                                        EvaluationContext(subject_id="u1"))
    """

    def __init__(
        self,
        backend: FeatureBackend,
        engine: EvaluationEngine | None = None,
        cache: FlagCache | None = None,
    ):
        self.backend = backend
        self.engine = engine or EvaluationEngine()
        self.cache = cache or FlagCache(ttl=0)

    # ============================================================
    # EVALUATION
    # ============================================================

    async def evaluate(
        self,
        code: str,
        context: EvaluationContext,
        now: datetime | None = None,
    ) -> EvaluationResult:
        """
        Evaluate one flag.

        Raises:
            FlagNotFoundError: no flag with this code
            EvaluatorNotFoundError: flag has a condition nothing can evaluate
        """
        flag = await self.get_flag(code)
        return self.engine.evaluate(flag, context, now=now)

    async def evaluate_bulk(
        self,
        codes: list[str],
        context: EvaluationContext,
        now: datetime | None = None,
    ) -> BulkEvaluationResult:
        """
        Evaluate many flags against one context.

        Failures are isolated per code: a missing flag is reported as
        "Flag not found", any other failure by its message.
        """
        log = logger.bind(subject_id=context.subject_id, flag_count=len(codes))
        log.info("Bulk evaluation started", flags=codes)

        bulk = BulkEvaluationResult(requested=len(codes))
        not_found = 0

        for code in codes:
            try:
                bulk.results[code] = await self.evaluate(code, context, now=now)
                bulk.successful += 1
            except FlagNotFoundError:
                not_found += 1
                bulk.errors[code] = "Flag not found"
                log.debug("Bulk evaluation: flag not found", flag_code=code)
            except Exception as e:
                bulk.errors[code] = str(e) or "Evaluation error"
                log.warning("Bulk evaluation: flag error", flag_code=code, error=str(e))

        bulk.failed = bulk.requested - bulk.successful
        log.info(
            "Bulk evaluation completed",
            successful=bulk.successful,
            not_found=not_found,
            errors=bulk.failed - not_found,
        )
        return bulk

    # ============================================================
    # FLAGS
    # ============================================================

    async def create_flag(
        self,
        code: str,
        name: str,
        value_type: FlagType,
        value: Any = None,
        enabled: bool = False,
        description: str | None = None,
        due_at: datetime | None = None,
    ) -> FeatureFlag:
        """
        Create a new feature flag.

        Raises:
            ValidationError: invalid code or name
            ConflictError: code already exists
        """
        now = utc_now()
        flag = FeatureFlag(
            code=code,
            name=name,
            value_type=value_type,
            value=value,
            enabled=enabled,
            description=description,
            due_at=due_at,
            created_at=now,
            updated_at=now,
        )
        created = await self.backend.create_flag(flag)
        self._evict(code)
        logger.info("Feature flag created", flag_code=code, enabled=enabled)
        return created

    async def get_flag(self, code: str) -> FeatureFlag:
        """
        Get a flag with its rules.

        Raises:
            FlagNotFoundError: no flag with this code
        """
        cached = self.cache.get(code)
        if cached is not None:
            return cached

        generation = self.cache.generation
        flag = await self.backend.get_flag(code)
        if flag is None:
            raise FlagNotFoundError(code)

        self.cache.set(flag, generation)
        return flag

    async def list_flags(self, page: int = 1, per_page: int = 20) -> tuple[list[FeatureFlag], int]:
        """List flags, most recently updated first."""
        return await self.backend.list_flags(page=page, per_page=per_page)

    async def get_flags_by_codes(self, codes: list[str]) -> tuple[list[FeatureFlag], list[str]]:
        """Return (found flags, codes that were not found)."""
        flags = await self.backend.get_flags(codes)
        found = {flag.code for flag in flags}
        return flags, [code for code in codes if code not in found]

    async def update_flag(self, code: str, **updates: Any) -> tuple[FeatureFlag, dict[str, dict[str, Any]]]:
        """
        Update flag details (name, code, description, due_at, value).

        Returns (updated flag, changes). updated_at only moves when
        something actually changed.

        Raises:
            FlagNotFoundError: no flag with this code
            ValidationError: invalid field value
            ConflictError: renamed onto an existing code
        """
        unknown = set(updates) - FLAG_UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Fields cannot be updated: {sorted(unknown)}")

        flag = await self._load_flag(code)
        updated, changes = flag.with_updates(**updates)
        if not changes:
            return flag, changes

        updated, _ = updated.with_updates(updated_at=utc_now())
        saved = await self._save_flag(code, updated)

        logger.info("Feature flag updated", flag_code=code, changed=sorted(changes))
        return saved, changes

    async def set_flag_state(self, code: str, enabled: bool) -> FeatureFlag:
        """
        Enable or disable a flag.

        Raises:
            FlagNotFoundError: no flag with this code
        """
        flag = await self._load_flag(code)
        if flag.enabled == enabled:
            return flag

        updated, _ = flag.with_updates(enabled=enabled, updated_at=utc_now())
        saved = await self._save_flag(code, updated)

        logger.info("Feature flag state changed", flag_code=code, enabled=enabled)
        return saved

    async def delete_flag(self, code: str) -> None:
        """
        Delete a flag and its rules.

        Raises:
            FlagNotFoundError: no flag with this code
        """
        if not await self.backend.delete_flag(code):
            raise FlagNotFoundError(code)
        self._evict(code)
        logger.info("Feature flag deleted", flag_code=code)

    # ============================================================
    # RULES
    # ============================================================

    async def create_rule(
        self,
        code: str,
        *,
        priority: int | None = 0,
        active: bool = True,
        percentage: float | None = None,
        distribution_key_attribute: str | None = None,
        value_bool: bool | None = None,
        value_string: str | None = None,
        value_int: int | None = None,
        value_percentage: float | None = None,
        variant_name: str | None = None,
        start_at: datetime | None = None,
        end_at: datetime | None = None,
        conditions: list[Condition] | None = None,
    ) -> RolloutRule:
        """
        Attach a rollout rule to a flag.

        Raises:
            FlagNotFoundError: no flag with this code
            ValidationError: invalid window or percentage
        """
        now = utc_now()
        rule = RolloutRule(
            id=uuid4(),
            priority=priority,
            active=active,
            percentage=percentage,
            distribution_key_attribute=distribution_key_attribute,
            value_bool=value_bool,
            value_string=value_string,
            value_int=value_int,
            value_percentage=value_percentage,
            variant_name=variant_name,
            start_at=start_at,
            end_at=end_at,
            conditions=tuple(conditions or ()),
            created_at=now,
            updated_at=now,
        )

        created = await self.backend.add_rule(code, rule)
        if created is None:
            raise FlagNotFoundError(code)

        self._evict(code)
        logger.info("Rollout rule created", flag_code=code, rule_id=str(created.id))
        return created

    async def list_rules(self, code: str) -> list[RolloutRule]:
        """
        All rules of a flag (inactive included), ordered by priority.

        Raises:
            FlagNotFoundError: no flag with this code
        """
        flag = await self._load_flag(code)
        return sorted(flag.rollout_rules, key=lambda rule: rule.priority or 0)

    async def get_rule(self, code: str, rule_id: UUID) -> RolloutRule:
        """
        Raises:
            FlagNotFoundError: no flag with this code
            RuleNotFoundError: flag has no such rule
        """
        await self._load_flag(code)
        rule = await self.backend.get_rule(code, rule_id)
        if rule is None:
            raise RuleNotFoundError(rule_id)
        return rule

    async def update_rule(
        self,
        code: str,
        rule_id: UUID,
        **updates: Any,
    ) -> tuple[RolloutRule, dict[str, dict[str, Any]]]:
        """
        Partially update a rule.

        Returns (updated rule, changes).

        Raises:
            FlagNotFoundError / RuleNotFoundError
            ValidationError: unknown field, invalid window or percentage
        """
        unknown = set(updates) - RULE_UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Fields cannot be updated: {sorted(unknown)}")
        if "conditions" in updates:
            updates["conditions"] = tuple(updates["conditions"] or ())

        rule = await self.get_rule(code, rule_id)
        updated, changes = rule.with_updates(**updates)
        if not changes:
            return rule, changes

        updated, _ = updated.with_updates(updated_at=utc_now())
        saved = await self.backend.save_rule(code, updated)
        if saved is None:
            raise RuleNotFoundError(rule_id)

        self._evict(code)
        logger.info(
            "Rollout rule updated",
            flag_code=code,
            rule_id=str(rule_id),
            changed=sorted(changes),
        )
        return saved, changes

    async def delete_rule(self, code: str, rule_id: UUID) -> None:
        """
        Raises:
            FlagNotFoundError / RuleNotFoundError
        """
        await self._load_flag(code)
        if not await self.backend.delete_rule(code, rule_id):
            raise RuleNotFoundError(rule_id)

        self._evict(code)
        logger.info("Rollout rule deleted", flag_code=code, rule_id=str(rule_id))

    async def reorder_rules(self, code: str, rule_ids: list[UUID]) -> list[RolloutRule]:
        """
        Reassign priorities so rules evaluate in the given order.

        rule_ids must be exactly the flag's rule ids; the rule at index i
        gets priority i.

        Raises:
            FlagNotFoundError: no flag with this code
            ValidationError: ids do not match the flag's rules
        """
        flag = await self._load_flag(code)
        existing = {rule.id for rule in flag.rollout_rules}

        if len(rule_ids) != len(existing):
            raise ValidationError(
                "Must provide all rule IDs for reordering. "
                f"Expected {len(existing)} rule IDs, but got {len(rule_ids)}"
            )

        invalid = [str(rule_id) for rule_id in rule_ids if rule_id not in existing]
        if invalid:
            raise ValidationError(f"Invalid rule IDs: {invalid}")

        if len(set(rule_ids)) != len(rule_ids):
            raise ValidationError("Duplicate rule IDs in reorder request")

        await self.backend.set_priorities(
            code,
            {rule_id: index for index, rule_id in enumerate(rule_ids)},
        )
        self._evict(code)

        logger.info("Rollout rules reordered", flag_code=code, rule_count=len(rule_ids))
        return await self.list_rules(code)

    # ============================================================
    # HELPERS
    # ============================================================

    async def _load_flag(self, code: str) -> FeatureFlag:
        """Uncached load, used before writes."""
        flag = await self.backend.get_flag(code)
        if flag is None:
            raise FlagNotFoundError(code)
        return flag

    async def _save_flag(self, code: str, flag: FeatureFlag) -> FeatureFlag:
        saved = await self.backend.save_flag(code, flag)
        if saved is None:
            raise FlagNotFoundError(code)
        self._evict(code, flag.code)
        return saved

    def _evict(self, *codes: str) -> None:
        """
        Evict now and again once the write commits.

        A concurrent lookup between the write and its commit still reads
        the old row; the second eviction drops whatever it cached.
        """
        self.cache.evict(*codes)
        self.backend.after_commit(lambda: self.cache.evict(*codes))
