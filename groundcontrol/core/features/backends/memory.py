"""
In-memory backend for feature flags.

For development and testing. Data is lost on restart.
"""

from dataclasses import replace
from datetime import datetime
from uuid import UUID

from groundcontrol.core.exceptions import ConflictError
from groundcontrol.utils.timezone import UTC

from ..interfaces import FeatureBackend, FeatureFlag, RolloutRule

_EPOCH = datetime.min.replace(tzinfo=UTC)


def _by_priority(rules: tuple[RolloutRule, ...] | list[RolloutRule]) -> tuple[RolloutRule, ...]:
    return tuple(sorted(rules, key=lambda rule: rule.priority or 0))


class MemoryFeatureBackend(FeatureBackend):
    """
    In-memory feature flag storage.

    Useful for:
    - Development without database
    - Unit testing
    """

    def __init__(self):
        self._flags: dict[str, FeatureFlag] = {}
        self._next_id = 1

    # ============================================================
    # FLAG OPERATIONS
    # ============================================================

    async def get_flag(self, code: str) -> FeatureFlag | None:
        """Get a feature flag by code."""
        return self._flags.get(code)

    async def get_flags(self, codes: list[str]) -> list[FeatureFlag]:
        wanted = set(codes)
        return [flag for code, flag in self._flags.items() if code in wanted]

    async def list_flags(self, page: int = 1, per_page: int = 20) -> tuple[list[FeatureFlag], int]:
        """List feature flags, most recently updated first."""
        flags = sorted(
            self._flags.values(),
            key=lambda flag: flag.updated_at or _EPOCH,
            reverse=True,
        )
        start = (page - 1) * per_page
        return flags[start:start + per_page], len(flags)

    async def create_flag(self, flag: FeatureFlag) -> FeatureFlag:
        """Create a new feature flag."""
        if flag.code in self._flags:
            raise ConflictError(f"Feature flag with code '{flag.code}' already exists")

        stored = replace(flag, id=self._next_id)
        self._next_id += 1
        self._flags[stored.code] = stored
        return stored

    async def save_flag(self, code: str, flag: FeatureFlag) -> FeatureFlag | None:
        """Overwrite a flag's fields, keeping its id and rules."""
        current = self._flags.get(code)
        if current is None:
            return None
        if flag.code != code and flag.code in self._flags:
            raise ConflictError(f"Feature flag with code '{flag.code}' already exists")

        stored = replace(flag, id=current.id, rollout_rules=current.rollout_rules)
        del self._flags[code]
        self._flags[stored.code] = stored
        return stored

    async def delete_flag(self, code: str) -> bool:
        """Delete a feature flag."""
        if code in self._flags:
            del self._flags[code]
            return True
        return False

    # ============================================================
    # RULE OPERATIONS
    # ============================================================

    async def add_rule(self, code: str, rule: RolloutRule) -> RolloutRule | None:
        flag = self._flags.get(code)
        if flag is None:
            return None
        self._flags[code] = flag.with_rules(_by_priority(flag.rollout_rules + (rule,)))
        return rule

    async def get_rule(self, code: str, rule_id: UUID) -> RolloutRule | None:
        flag = self._flags.get(code)
        if flag is None:
            return None
        for rule in flag.rollout_rules:
            if rule.id == rule_id:
                return rule
        return None

    async def save_rule(self, code: str, rule: RolloutRule) -> RolloutRule | None:
        flag = self._flags.get(code)
        if flag is None or all(r.id != rule.id for r in flag.rollout_rules):
            return None

        rules = [rule if r.id == rule.id else r for r in flag.rollout_rules]
        self._flags[code] = flag.with_rules(_by_priority(rules))
        return rule

    async def delete_rule(self, code: str, rule_id: UUID) -> bool:
        flag = self._flags.get(code)
        if flag is None:
            return False

        rules = [r for r in flag.rollout_rules if r.id != rule_id]
        if len(rules) == len(flag.rollout_rules):
            return False

        self._flags[code] = flag.with_rules(rules)
        return True

    async def set_priorities(self, code: str, priorities: dict[UUID, int]) -> None:
        flag = self._flags.get(code)
        if flag is None:
            return

        rules = []
        for rule in flag.rollout_rules:
            if rule.id in priorities:
                rule, _ = rule.with_updates(priority=priorities[rule.id])
            rules.append(rule)
        self._flags[code] = flag.with_rules(_by_priority(rules))
