"""Attribute-based policy evaluation with deny-override combination.

Applicable policies are evaluated in priority order, DENY policies first. The
first DENY whose condition holds decides the request. Otherwise every ALLOW
policy is evaluated so that obligations from all matching ALLOW policies can
be collected. With no matching ALLOW the request is denied.

A condition that fails to parse or raises while being evaluated counts as a
non-match for its policy. Failing to load policies at all is a
``PolicyEvaluationError`` and denies the request.
"""

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Set

from ....config.constants import (
    RISK_DENY_DECISION,
    RISK_HIGH_SENSITIVITY,
    RISK_INDETERMINATE,
    RISK_MAX,
    RISK_POLICY_OUTSIDE_HOURS,
    Sensitivity,
)
from ....core.exceptions import PolicyEvaluationError
from ..conditions import ConditionEvaluator
from ..entities import (
    Decision,
    Policy,
    PolicyEffect,
    PolicyEvaluationContext,
    PolicyEvaluationResult,
    PolicyOutcome,
    PolicyStore,
)

logger = logging.getLogger(__name__)


def calculate_risk_score(context: PolicyEvaluationContext, decision: Decision) -> int:
    """Combine the environment baseline with decision and resource factors."""
    score = context.environment.risk_score or 0
    if decision == Decision.DENY:
        score += RISK_DENY_DECISION
    if context.resource.sensitivity in (Sensitivity.HIGH, Sensitivity.CRITICAL):
        score += RISK_HIGH_SENSITIVITY
    if not context.environment.is_business_hours:
        score += RISK_POLICY_OUTSIDE_HOURS
    return max(0, min(score, RISK_MAX))


class PolicyEngine:
    """Evaluates the active policy set for a request context."""

    def __init__(
        self,
        policy_store: PolicyStore,
        evaluator: Optional[ConditionEvaluator] = None,
        store_timeout: float = 2.0,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._policy_store = policy_store
        self._evaluator = evaluator or ConditionEvaluator()
        self._store_timeout = store_timeout
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._pending_writes: Set[asyncio.Task] = set()

    async def _load_policies(self) -> List[Policy]:
        try:
            return await asyncio.wait_for(self._policy_store.list_active_policies(), timeout=self._store_timeout)
        except asyncio.TimeoutError as e:
            logger.error(f"Policy store timed out after {self._store_timeout}s")
            raise PolicyEvaluationError("policy_store_timeout") from e
        except Exception as e:
            logger.error(f"Policy store failure: {e}")
            raise PolicyEvaluationError("policy_store_error", {"error": str(e)}) from e

    @staticmethod
    def select_applicable(
        policies: Iterable[Policy],
        context: PolicyEvaluationContext,
        required_policies: Sequence[str] = (),
    ) -> List[Policy]:
        """Filter effective policies by scope, sorted by priority.

        A domain-scoped policy applies when its domain is either the
        user's own domain or the domain of the resource being accessed.
        Policies named in ``required_policies`` are included whatever their
        resource/action scope, as long as they are effective and their
        domain matches.
        """
        now = context.environment.current_time
        domains = {context.user.domain_id, context.resource.domain_id}
        required = set(required_policies)

        applicable = []
        for policy in policies:
            if not policy.is_effective(now) or not any(policy.applies_to_domain(d) for d in domains):
                continue
            if policy.name in required or policy.applies_to(context.resource.type, context.action):
                applicable.append(policy)
        return sorted(applicable, key=lambda p: (p.priority, p.name))

    async def evaluate(
        self,
        context: PolicyEvaluationContext,
        required_policies: Sequence[str] = (),
    ) -> PolicyEvaluationResult:
        """Evaluate every applicable policy and combine with deny-override.

        Raises:
            PolicyEvaluationError: if policies cannot be loaded
        """
        started = time.perf_counter()
        policies = await self._load_policies()
        applicable = self.select_applicable(policies, context, required_policies)

        def elapsed_ms() -> float:
            return (time.perf_counter() - started) * 1000

        missing = sorted(set(required_policies) - {policy.name for policy in applicable})
        if missing:
            logger.warning(f"Required policies not effective for this request: {missing}")
            return PolicyEvaluationResult(
                decision=Decision.DENY,
                reason=f"Required policy not applicable: {', '.join(missing)}",
                risk_score=calculate_risk_score(context, Decision.DENY),
                applied_policies=[policy.name for policy in applicable],
                evaluation_time_ms=elapsed_ms(),
            )

        if not applicable:
            logger.debug(f"No applicable policies for {context.resource.type}:{context.action}")
            return PolicyEvaluationResult(
                decision=Decision.INDETERMINATE,
                reason="No applicable policies found",
                risk_score=RISK_INDETERMINATE,
                evaluation_time_ms=elapsed_ms(),
            )

        outcomes: List[PolicyOutcome] = []
        evaluated: List[Policy] = []
        decision: Optional[Decision] = None
        reason = ""
        deciding_policy: Optional[str] = None
        obligations: Dict[str, Any] = {}

        for policy in (p for p in applicable if p.effect == PolicyEffect.DENY):
            outcome = self._evaluate_policy(policy, context)
            outcomes.append(outcome)
            evaluated.append(policy)
            if outcome.matched:
                decision = Decision.DENY
                deciding_policy = policy.name
                reason = f"Access denied by policy: {policy.name}"
                break

        if decision is None:
            matched_allows: List[Policy] = []
            for policy in (p for p in applicable if p.effect == PolicyEffect.ALLOW):
                outcome = self._evaluate_policy(policy, context)
                outcomes.append(outcome)
                evaluated.append(policy)
                if outcome.matched:
                    matched_allows.append(policy)

            if matched_allows:
                decision = Decision.ALLOW
                deciding_policy = matched_allows[0].name
                reason = f"Access granted by policy: {deciding_policy}"
                # Higher-priority policies win on obligation name clashes
                for policy in matched_allows:
                    for name, parameters in policy.obligations.items():
                        obligations.setdefault(name, parameters)
            else:
                decision = Decision.DENY
                reason = "No applicable allow policy"

        self._persist_counters(evaluated)

        result = PolicyEvaluationResult(
            decision=decision,
            reason=reason,
            risk_score=calculate_risk_score(context, decision),
            deciding_policy=deciding_policy,
            applied_policies=[policy.name for policy in evaluated],
            outcomes=outcomes,
            obligations=obligations,
            evaluation_time_ms=elapsed_ms(),
        )
        logger.debug(
            f"Policy decision {result.decision.value} for user {context.user.id} on "
            f"{context.resource.type}:{context.action} ({result.reason})"
        )
        return result

    def _evaluate_policy(self, policy: Policy, context: PolicyEvaluationContext) -> PolicyOutcome:
        errored = False
        try:
            matched = self._evaluator.evaluate(policy.condition, context)
            reason = "condition matched" if matched else "condition not matched"
        except Exception as e:
            logger.warning(f"Error evaluating policy {policy.name}: {e}")
            matched = False
            errored = True
            reason = f"Policy evaluation error: {e}"

        policy.record_evaluation(matched, now=self._clock(), errored=errored)
        return PolicyOutcome(
            policy_id=policy.id,
            policy_name=policy.name,
            effect=policy.effect,
            matched=matched,
            errored=errored,
            reason=reason,
        )

    def _persist_counters(self, policies: List[Policy]) -> None:
        if not policies:
            return
        task = asyncio.create_task(self._policy_store.record_evaluations(list(policies)))
        self._pending_writes.add(task)
        task.add_done_callback(self._on_write_done)

    def _on_write_done(self, task: asyncio.Task) -> None:
        self._pending_writes.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Failed to persist policy counters: {error}")

    async def drain(self) -> None:
        """Wait for pending counter writes."""
        if self._pending_writes:
            await asyncio.gather(*list(self._pending_writes), return_exceptions=True)
