"""
Feature flag service tests (memory backend).
"""

from datetime import timedelta
from uuid import uuid4

import pytest

from groundcontrol.core.exceptions import (
    ConflictError,
    EvaluatorNotFoundError,
    FlagNotFoundError,
    RuleNotFoundError,
    ValidationError,
)
from groundcontrol.core.features.backends.memory import MemoryFeatureBackend
from groundcontrol.core.features.cache import FlagCache
from groundcontrol.core.features.enums import DataType, FlagType, Operator, Reason
from groundcontrol.core.features.interfaces import EvaluationContext, FeatureFlag
from groundcontrol.core.features.service import FeatureFlagService

from conftest import NOW, cond


@pytest.fixture
def service() -> FeatureFlagService:
    return FeatureFlagService(MemoryFeatureBackend(), cache=FlagCache(ttl=60))


async def create(service, code="checkout", **kwargs):
    kwargs.setdefault("name", "New checkout")
    kwargs.setdefault("value_type", FlagType.BOOLEAN)
    kwargs.setdefault("value", False)
    kwargs.setdefault("enabled", True)
    return await service.create_flag(code=code, **kwargs)


# ============ Flags ============


class TestFlags:
    """Flag management."""

    @pytest.mark.asyncio
    async def test_create_and_get(self, service):
        created = await create(service, description="Rewrite")

        flag = await service.get_flag("checkout")

        assert flag.id == created.id
        assert flag.description == "Rewrite"
        assert flag.created_at is not None

    @pytest.mark.asyncio
    async def test_duplicate_code_conflicts(self, service):
        await create(service)

        with pytest.raises(ConflictError):
            await create(service)

    @pytest.mark.asyncio
    async def test_invalid_code_rejected(self, service):
        with pytest.raises(ValidationError):
            await create(service, code="bad code!")

    @pytest.mark.asyncio
    async def test_get_missing_raises(self, service):
        with pytest.raises(FlagNotFoundError):
            await service.get_flag("nope")

    @pytest.mark.asyncio
    async def test_update_returns_changes(self, service):
        await create(service)

        flag, changes = await service.update_flag("checkout", name="Checkout v2")

        assert flag.name == "Checkout v2"
        assert changes == {"name": {"old": "New checkout", "new": "Checkout v2"}}

    @pytest.mark.asyncio
    async def test_update_without_changes_keeps_timestamp(self, service):
        created = await create(service)

        flag, changes = await service.update_flag("checkout", name="New checkout")

        assert changes == {}
        assert flag.updated_at == created.updated_at

    @pytest.mark.asyncio
    async def test_rename(self, service):
        await create(service)

        await service.update_flag("checkout", code="checkout_v2")

        assert (await service.get_flag("checkout_v2")).name == "New checkout"
        with pytest.raises(FlagNotFoundError):
            await service.get_flag("checkout")

    @pytest.mark.asyncio
    async def test_rename_onto_existing_conflicts(self, service):
        await create(service, code="a")
        await create(service, code="b")

        with pytest.raises(ConflictError):
            await service.update_flag("a", code="b")

    @pytest.mark.asyncio
    async def test_unknown_update_field_rejected(self, service):
        await create(service)

        with pytest.raises(ValidationError):
            await service.update_flag("checkout", enabled=False)

    @pytest.mark.asyncio
    async def test_set_state(self, service):
        await create(service, enabled=False)

        flag = await service.set_flag_state("checkout", True)

        assert flag.enabled is True

    @pytest.mark.asyncio
    async def test_delete(self, service):
        await create(service)

        await service.delete_flag("checkout")

        with pytest.raises(FlagNotFoundError):
            await service.get_flag("checkout")
        with pytest.raises(FlagNotFoundError):
            await service.delete_flag("checkout")

    @pytest.mark.asyncio
    async def test_get_by_codes(self, service):
        await create(service, code="a")
        await create(service, code="b")

        flags, not_found = await service.get_flags_by_codes(["a", "b", "c"])

        assert {f.code for f in flags} == {"a", "b"}
        assert not_found == ["c"]

    @pytest.mark.asyncio
    async def test_list_paginates(self, service):
        for i in range(5):
            await create(service, code=f"flag_{i}")

        page, total = await service.list_flags(page=2, per_page=2)

        assert total == 5
        assert len(page) == 2


# ============ Rules ============


class TestRules:
    """Rule management."""

    @pytest.mark.asyncio
    async def test_create_and_list_by_priority(self, service):
        await create(service)
        second = await service.create_rule("checkout", priority=5, value_bool=True)
        first = await service.create_rule("checkout", priority=1, value_bool=False)

        rules = await service.list_rules("checkout")

        assert [r.id for r in rules] == [first.id, second.id]

    @pytest.mark.asyncio
    async def test_create_rule_on_missing_flag(self, service):
        with pytest.raises(FlagNotFoundError):
            await service.create_rule("nope", value_bool=True)

    @pytest.mark.asyncio
    async def test_invalid_window_rejected(self, service):
        await create(service)

        with pytest.raises(ValidationError):
            await service.create_rule("checkout", start_at=NOW, end_at=NOW)

    @pytest.mark.asyncio
    async def test_get_missing_rule(self, service):
        await create(service)

        with pytest.raises(RuleNotFoundError):
            await service.get_rule("checkout", uuid4())

    @pytest.mark.asyncio
    async def test_partial_update(self, service):
        await create(service)
        rule = await service.create_rule("checkout", percentage=10, variant_name="a")

        updated, changes = await service.update_rule("checkout", rule.id, percentage=20)

        assert updated.percentage == 20
        assert updated.variant_name == "a"
        assert set(changes) == {"percentage"}

    @pytest.mark.asyncio
    async def test_update_window_is_validated_against_stored_rule(self, service):
        await create(service)
        rule = await service.create_rule("checkout", end_at=NOW)

        with pytest.raises(ValidationError):
            await service.update_rule("checkout", rule.id, start_at=NOW + timedelta(days=1))

    @pytest.mark.asyncio
    async def test_delete_rule(self, service):
        await create(service)
        rule = await service.create_rule("checkout")

        await service.delete_rule("checkout", rule.id)

        assert await service.list_rules("checkout") == []
        with pytest.raises(RuleNotFoundError):
            await service.delete_rule("checkout", rule.id)


# ============ Reorder ============


class TestReorder:
    """Rule reordering."""

    async def three_rules(self, service):
        await create(service)
        return [
            await service.create_rule("checkout", priority=p, value_string=str(p))
            for p in (0, 1, 2)
        ]

    @pytest.mark.asyncio
    async def test_reorder_assigns_index_priorities(self, service):
        a, b, c = await self.three_rules(service)

        rules = await service.reorder_rules("checkout", [c.id, a.id, b.id])

        assert [r.id for r in rules] == [c.id, a.id, b.id]
        assert [r.priority for r in rules] == [0, 1, 2]

    @pytest.mark.asyncio
    async def test_reorder_count_mismatch(self, service):
        a, b, _ = await self.three_rules(service)

        with pytest.raises(ValidationError, match="Expected 3"):
            await service.reorder_rules("checkout", [a.id, b.id])

    @pytest.mark.asyncio
    async def test_reorder_unknown_id(self, service):
        a, b, _ = await self.three_rules(service)

        with pytest.raises(ValidationError, match="Invalid rule IDs"):
            await service.reorder_rules("checkout", [a.id, b.id, uuid4()])

    @pytest.mark.asyncio
    async def test_reorder_duplicate_id(self, service):
        a, b, _ = await self.three_rules(service)

        with pytest.raises(ValidationError):
            await service.reorder_rules("checkout", [a.id, b.id, b.id])


# ============ Evaluation ============


class TestEvaluation:
    """Evaluation through the service."""

    @pytest.mark.asyncio
    async def test_evaluate(self, service):
        await create(service)
        await service.create_rule(
            "checkout",
            value_bool=True,
            variant_name="beta",
            conditions=[cond("plan", Operator.EQUALS, "pro", DataType.STRING)],
        )

        pro = await service.evaluate("checkout", EvaluationContext("u1", {"plan": "pro"}), now=NOW)
        free = await service.evaluate("checkout", EvaluationContext("u1", {"plan": "free"}), now=NOW)

        assert (pro.value, pro.variant, pro.reason) == (True, "beta", Reason.RULE_MATCH)
        assert (free.value, free.reason) == (False, Reason.DEFAULT)

    @pytest.mark.asyncio
    async def test_evaluate_missing_flag(self, service):
        with pytest.raises(FlagNotFoundError):
            await service.evaluate("nope", EvaluationContext("u1"))

    @pytest.mark.asyncio
    async def test_bulk_isolates_errors(self, service):
        await create(service, code="good")
        await create(service, code="broken")
        await service.create_rule(
            "broken",
            conditions=[cond("age", Operator.CONTAINS, "1", DataType.NUMBER)],
        )

        bulk = await service.evaluate_bulk(
            ["good", "missing", "broken"],
            EvaluationContext("u1", {"age": 10}),
            now=NOW,
        )

        assert set(bulk.results) == {"good"}
        assert bulk.errors["missing"] == "Flag not found"
        assert "No evaluator found" in bulk.errors["broken"]
        assert bulk.summary() == {"requested": 3, "successful": 1, "failed": 2}

    @pytest.mark.asyncio
    async def test_missing_evaluator_propagates_from_single_evaluate(self, service):
        await create(service)
        await service.create_rule(
            "checkout",
            conditions=[cond("age", Operator.CONTAINS, "1", DataType.NUMBER)],
        )

        with pytest.raises(EvaluatorNotFoundError):
            await service.evaluate("checkout", EvaluationContext("u1", {"age": 10}))


# ============ Cache ============


class TestCache:
    """Lookup cache eviction on writes."""

    @pytest.mark.asyncio
    async def test_lookup_is_cached(self, service):
        await create(service)
        await service.get_flag("checkout")

        assert service.cache.get("checkout") is not None

    @pytest.mark.asyncio
    async def test_state_change_evicts(self, service):
        await create(service)
        await service.evaluate("checkout", EvaluationContext("u1"), now=NOW)

        await service.set_flag_state("checkout", False)
        result = await service.evaluate("checkout", EvaluationContext("u1"), now=NOW)

        assert result.reason == Reason.FLAG_DISABLED

    @pytest.mark.asyncio
    async def test_rule_write_evicts(self, service):
        await create(service)
        await service.evaluate("checkout", EvaluationContext("u1"), now=NOW)

        await service.create_rule("checkout", value_bool=True)
        result = await service.evaluate("checkout", EvaluationContext("u1"), now=NOW)

        assert result.reason == Reason.RULE_MATCH

    @pytest.mark.asyncio
    async def test_rename_evicts_both_codes(self, service):
        await create(service, code="old")
        await service.get_flag("old")

        await service.update_flag("old", code="new")

        assert service.cache.get("old") is None
        with pytest.raises(FlagNotFoundError):
            await service.get_flag("old")

    def test_zero_ttl_disables_cache(self):
        cache = FlagCache(ttl=0)

        assert not cache.enabled
        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_clear(self, service):
        await create(service)
        await service.get_flag("checkout")

        service.cache.clear()

        assert len(service.cache) == 0

    def test_set_with_stale_generation_is_dropped(self):
        cache = FlagCache(ttl=60)
        generation = cache.generation

        cache.evict("checkout")
        cache.set(FeatureFlag(code="checkout", name="Checkout", value_type=FlagType.BOOLEAN), generation)

        assert cache.get("checkout") is None

    @pytest.mark.asyncio
    async def test_lookup_overlapping_a_write_is_not_cached(self):
        backend = EvictingBackend()
        service = FeatureFlagService(backend, cache=FlagCache(ttl=60))
        await create(service)
        backend.cache = service.cache

        flag = await service.get_flag("checkout")

        assert flag.code == "checkout"
        assert service.cache.get("checkout") is None


class EvictingBackend(MemoryFeatureBackend):
    """Evicts while a lookup is in flight, as a concurrent write would."""

    cache: FlagCache | None = None

    async def get_flag(self, code):
        flag = await super().get_flag(code)
        if self.cache is not None:
            self.cache.evict(code)
        return flag
