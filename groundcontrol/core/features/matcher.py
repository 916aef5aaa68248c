"""
Rule matcher - decides whether one rollout rule applies to a context.

Checks, in order (all must pass):
1. Time window (start_at <= now <= end_at, either bound optional)
2. Conditions (AND, via the evaluator registry)
3. Percentage rollout (via bucketing)
"""

from datetime import datetime
from typing import Any

from groundcontrol.core.exceptions import EvaluatorNotFoundError

from .bucketing import bucket_for
from .interfaces import Condition, EvaluationContext, RolloutRule
from .registry import EvaluatorRegistry


class RuleMatcher:
    """
    Stateless per-rule eligibility check.

    Logging fields are carried on the ``log`` argument (a bound structlog
    logger); nothing is read from thread or task context.
    """

    def __init__(self, registry: EvaluatorRegistry):
        self.registry = registry

    def matches(
        self,
        rule: RolloutRule,
        flag_code: str,
        context: EvaluationContext,
        now: datetime,
        log: Any,
    ) -> bool:
        """
        True when every check passes.

        Raises:
            EvaluatorNotFoundError: a condition uses an unhandled
                (operator, data type) pair
        """
        log = log.bind(rule_id=str(rule.id) if rule.id else None, priority=rule.priority)

        if rule.start_at is not None and now < rule.start_at:
            log.debug("Rule skipped: not started", start_at=rule.start_at.isoformat())
            return False
        if rule.end_at is not None and now > rule.end_at:
            log.debug("Rule skipped: ended", end_at=rule.end_at.isoformat())
            return False

        if rule.has_conditions():
            if not self.conditions_match(rule, context, log):
                log.debug("Rule skipped: conditions failed")
                return False
        else:
            log.debug("Rule has no conditions")

        if rule.percentage is not None:
            if not self.passes_percentage(rule, flag_code, context, log):
                log.debug("Rule skipped: outside percentage", percentage=rule.percentage)
                return False

        return True

    # ============================================================
    # CONDITIONS
    # ============================================================

    def conditions_match(self, rule: RolloutRule, context: EvaluationContext, log: Any) -> bool:
        """
        AND over all conditions.

        Every condition is evaluated so each result is logged.
        """
        results = [self.condition_matches(c, context, log) for c in rule.conditions]
        passed = sum(1 for r in results if r)
        log.debug(
            "Conditions evaluated",
            total=len(results),
            passed=passed,
            result=passed == len(results),
        )
        return all(results)

    def condition_matches(self, condition: Condition, context: EvaluationContext, log: Any) -> bool:
        """
        Evaluate one condition.

        A missing attribute is False without consulting the registry.
        An evaluator fault is False. A missing evaluator raises.
        """
        attribute_value = context.attributes.get(condition.attribute)
        if attribute_value is None:
            log.debug(
                "Condition failed: missing attribute",
                attribute=condition.attribute,
                operator=condition.operator.value,
            )
            return False

        try:
            evaluator = self.registry.get(condition.operator, condition.data_type)
        except EvaluatorNotFoundError:
            log.error(
                "No evaluator for condition",
                operator=condition.operator.value,
                data_type=condition.data_type.value,
            )
            raise

        try:
            result = evaluator.evaluate(attribute_value, condition.value, condition.operator)
        except Exception as e:
            log.warning(
                "Condition evaluator error",
                attribute=condition.attribute,
                operator=condition.operator.value,
                error=str(e),
            )
            return False

        log.debug(
            "Condition evaluated",
            attribute=condition.attribute,
            operator=condition.operator.value,
            expected=condition.value,
            actual=attribute_value,
            result=result,
        )
        return result

    # ============================================================
    # PERCENTAGE ROLLOUT
    # ============================================================

    def passes_percentage(
        self,
        rule: RolloutRule,
        flag_code: str,
        context: EvaluationContext,
        log: Any,
    ) -> bool:
        """Bucket the distribution key; no key means the rule cannot pass."""
        key = context.distribution_key(rule.distribution_key_attribute)
        if key is None:
            log.debug("Percentage check skipped: no distribution key")
            return False

        bucket = bucket_for(flag_code, key)
        passes = bucket < rule.percentage
        log.debug(
            "Percentage check",
            bucket=bucket,
            percentage=rule.percentage,
            passes=passes,
        )
        return passes
