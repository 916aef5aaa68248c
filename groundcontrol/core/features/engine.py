"""
Evaluation Engine - decides a flag's value for one context.

Evaluation order:
1. Flag disabled          -> FLAG_DISABLED
2. Flag expired (due_at)  -> FLAG_EXPIRED
3. Active rules by priority, first match wins -> RULE_MATCH
4. Nothing matched        -> DEFAULT (the flag's own value)

The engine is synchronous and pure: it reads the clock once per call,
performs no I/O and keeps no state between calls, so it is safe to
share across threads and tasks.
"""

import time
from datetime import datetime
from typing import Callable

import structlog

from groundcontrol.utils.timezone import to_utc, utc_now

from .enums import Reason
from .interfaces import EvaluationContext, EvaluationResult, FeatureFlag, RolloutRule
from .matcher import RuleMatcher
from .registry import EvaluatorRegistry

logger = structlog.get_logger()


def ordered_rules(rules: tuple[RolloutRule, ...] | list[RolloutRule]) -> list[RolloutRule]:
    """Active rules, stable-sorted by priority (None as 0)."""
    active = [rule for rule in rules if rule.active]
    return sorted(active, key=lambda rule: rule.priority or 0)


class EvaluationEngine:
    """
    Rule-based flag evaluation.

    Usage:
        engine = EvaluationEngine()
        result = engine.evaluate(flag, EvaluationContext(subject_id="u1"))
    """

    def __init__(
        self,
        registry: EvaluatorRegistry | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.registry = registry or EvaluatorRegistry.default()
        self.matcher = RuleMatcher(self.registry)
        self.clock = clock

    def evaluate(
        self,
        flag: FeatureFlag,
        context: EvaluationContext,
        now: datetime | None = None,
    ) -> EvaluationResult:
        """
        Evaluate a flag for a context.

        Args:
            flag: Fully loaded flag snapshot (rules attached)
            context: Subject id and attributes
            now: Evaluation instant; defaults to the engine clock

        Raises:
            EvaluatorNotFoundError: a condition uses an unhandled
                (operator, data type) pair
        """
        started = time.perf_counter()
        now = to_utc(now) if now is not None else self.clock()
        log = logger.bind(flag_code=flag.code, subject_id=context.subject_id)

        log.debug("Starting flag evaluation", attribute_count=len(context.attributes))

        if not flag.enabled:
            log.info("Flag evaluation: disabled", reason=Reason.FLAG_DISABLED.value)
            return EvaluationResult.disabled()

        if flag.is_expired(now):
            log.warning(
                "Flag evaluation: expired",
                reason=Reason.FLAG_EXPIRED.value,
                due_at=flag.due_at.isoformat(),
            )
            return EvaluationResult.expired()

        rules = ordered_rules(flag.rollout_rules)
        log.debug(
            "Evaluating rules",
            active_rules=len(rules),
            total_rules=len(flag.rollout_rules),
        )

        try:
            for rule in rules:
                if self.matcher.matches(rule, flag.code, context, now, log):
                    result = EvaluationResult(
                        enabled=True,
                        value=rule.rule_value(),
                        value_type=flag.value_type,
                        variant=rule.variant_name,
                        reason=Reason.RULE_MATCH,
                    )
                    log.info(
                        "Flag evaluation: rule match",
                        reason=Reason.RULE_MATCH.value,
                        rule_id=str(rule.id) if rule.id else None,
                        variant=rule.variant_name,
                        duration_ms=_elapsed_ms(started),
                    )
                    return result
        except Exception as e:
            log.error(
                "Flag evaluation failed",
                error=str(e),
                duration_ms=_elapsed_ms(started),
            )
            raise

        log.info(
            "Flag evaluation: default",
            reason=Reason.DEFAULT.value,
            value=flag.value,
            duration_ms=_elapsed_ms(started),
        )
        return EvaluationResult(
            enabled=True,
            value=flag.value,
            value_type=flag.value_type,
            reason=Reason.DEFAULT,
        )


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)
