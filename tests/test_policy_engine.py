"""Tests for the policy engine."""

import asyncio
from dataclasses import replace
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from pbx_authz.config.constants import Sensitivity
from pbx_authz.core.exceptions import PolicyEvaluationError
from pbx_authz.features.policies import (
    Decision,
    InMemoryPolicyStore,
    Policy,
    PolicyEffect,
    PolicyEngine,
    PolicyEvaluationContext,
    PolicyStatus,
    ResourceAttributes,
    calculate_risk_score,
)

from .conftest import AFTER_HOURS_NOW, BUSINESS_HOURS_NOW, make_context


def allow(name, condition="", **kwargs):
    return Policy(name=name, effect=PolicyEffect.ALLOW, condition=condition, **kwargs)


def deny(name, condition="", **kwargs):
    return Policy(name=name, effect=PolicyEffect.DENY, condition=condition, **kwargs)


def engine_for(*policies):
    store = InMemoryPolicyStore(policies)
    return PolicyEngine(store, clock=lambda: BUSINESS_HOURS_NOW), store


class TestPolicyEngine:
    """Test policy combination and applicability."""

    @pytest.mark.asyncio
    async def test_no_applicable_policies_is_indeterminate(self):
        engine, _ = engine_for(allow("billing-only", resources=["billing"]))

        result = await engine.evaluate(make_context(resource_type="extensions"))

        assert result.decision == Decision.INDETERMINATE
        assert result.reason == "No applicable policies found"
        assert result.risk_score == 50

    @pytest.mark.asyncio
    async def test_matching_allow(self):
        engine, _ = engine_for(allow("operators", "hasRole('operator')", obligations={"log": {"level": "info"}}))

        result = await engine.evaluate(make_context())

        assert result.is_allowed
        assert result.deciding_policy == "operators"
        assert result.obligations == {"log": {"level": "info"}}
        assert result.applied_policies == ["operators"]

    @pytest.mark.asyncio
    async def test_no_matching_allow_is_deny(self):
        engine, _ = engine_for(allow("admins", "hasRole('admin')"))

        result = await engine.evaluate(make_context(roles=("viewer",)))

        assert result.is_denied
        assert result.reason == "No applicable allow policy"

    @pytest.mark.asyncio
    async def test_deny_overrides_allow(self):
        engine, _ = engine_for(
            allow("everyone", priority=0),
            deny("no-viewers", "hasRole('viewer')", priority=100),
        )

        result = await engine.evaluate(make_context(roles=("viewer",)))

        assert result.is_denied
        assert result.deciding_policy == "no-viewers"
        assert result.reason == "Access denied by policy: no-viewers"

    @pytest.mark.asyncio
    async def test_first_matching_deny_short_circuits(self):
        first = deny("first", priority=10)
        second = deny("second", priority=20)
        engine, _ = engine_for(second, first)

        result = await engine.evaluate(make_context())

        assert result.deciding_policy == "first"
        assert result.applied_policies == ["first"]
        assert second.evaluation_count == 0

    @pytest.mark.asyncio
    async def test_domain_scoped_deny_outside_business_hours(self):
        engine, _ = engine_for(
            Policy.for_domain(
                "acme-after-hours",
                domain_id="acme",
                condition="environment.isBusinessHours == false",
                resources=["*"],
                actions=["*"],
                effect=PolicyEffect.DENY,
            ),
            allow("unrestricted"),
        )

        after_hours = await engine.evaluate(make_context(domain_id="acme", now=AFTER_HOURS_NOW))
        other_domain = await engine.evaluate(make_context(domain_id="globex", now=AFTER_HOURS_NOW))
        in_hours = await engine.evaluate(make_context(domain_id="acme", now=BUSINESS_HOURS_NOW))

        assert after_hours.is_denied
        assert after_hours.deciding_policy == "acme-after-hours"
        assert other_domain.is_allowed
        assert in_hours.is_allowed

    @pytest.mark.asyncio
    async def test_user_domain_policies_follow_the_user_across_domains(self):
        engine, store = engine_for(
            Policy.for_domain(
                "acme-lock", domain_id="acme", condition="true", resources=["*"], actions=["*"],
                effect=PolicyEffect.DENY,
            ),
            Policy.for_domain("globex-open", domain_id="globex", condition="", resources=["*"], actions=["*"]),
            allow("unrestricted"),
        )
        context = make_context(domain_id="acme")
        context = replace(context, resource=ResourceAttributes(type="extensions", domain_id="globex"))

        applicable = engine.select_applicable(await store.list_active_policies(), context)
        result = await engine.evaluate(context)

        assert {policy.name for policy in applicable} == {"acme-lock", "globex-open", "unrestricted"}
        assert result.is_denied
        assert result.deciding_policy == "acme-lock"

    @pytest.mark.asyncio
    async def test_obligations_merged_by_priority(self):
        engine, _ = engine_for(
            allow("low", priority=100, obligations={"notify": "low", "watermark": True}),
            allow("high", priority=10, obligations={"notify": "high"}),
        )

        result = await engine.evaluate(make_context())

        assert result.deciding_policy == "high"
        assert result.obligations == {"notify": "high", "watermark": True}

    @pytest.mark.asyncio
    async def test_broken_condition_is_non_match(self):
        broken = allow("broken", "hasRole(", priority=0)
        engine, _ = engine_for(broken, allow("fallback", priority=50))

        result = await engine.evaluate(make_context())

        assert result.is_allowed
        assert result.deciding_policy == "fallback"
        outcome = next(o for o in result.outcomes if o.policy_name == "broken")
        assert outcome.errored
        assert not outcome.matched
        assert broken.failure_count == 1
        assert broken.error_count == 1

    @pytest.mark.asyncio
    async def test_broken_deny_does_not_deny(self):
        engine, _ = engine_for(deny("broken-deny", "user.domainId =="), allow("everyone"))

        result = await engine.evaluate(make_context())

        assert result.is_allowed

    @pytest.mark.asyncio
    async def test_inactive_and_expired_policies_ignored(self):
        engine, _ = engine_for(
            deny("draft", status=PolicyStatus.DRAFT),
            Policy.time_based(
                "expired",
                condition="",
                effect=PolicyEffect.DENY,
                start=BUSINESS_HOURS_NOW - timedelta(days=2),
                end=BUSINESS_HOURS_NOW - timedelta(days=1),
            ),
            allow("everyone"),
        )

        result = await engine.evaluate(make_context())

        assert result.is_allowed
        assert result.applied_policies == ["everyone"]

    @pytest.mark.asyncio
    async def test_required_policy_included_outside_scope(self):
        engine, _ = engine_for(allow("business-hours", "environment.isBusinessHours", resources=["billing"]))

        without = await engine.evaluate(make_context(resource_type="extensions"))
        required = await engine.evaluate(make_context(resource_type="extensions"), required_policies=["business-hours"])

        assert without.is_indeterminate
        assert required.is_allowed

    @pytest.mark.asyncio
    async def test_missing_required_policy_denies(self):
        engine, _ = engine_for(allow("everyone"))

        result = await engine.evaluate(make_context(), required_policies=["DomainIsolation"])

        assert result.is_denied
        assert "DomainIsolation" in result.reason

    @pytest.mark.asyncio
    async def test_evaluation_is_idempotent(self):
        engine, _ = engine_for(
            deny("after-hours", "!environment.isBusinessHours"),
            allow("operators", "hasRole('operator')"),
        )
        context = make_context()

        first = await engine.evaluate(context)
        second = await engine.evaluate(context)

        assert (first.decision, first.deciding_policy, first.risk_score) == (
            second.decision, second.deciding_policy, second.risk_score
        )

    @pytest.mark.asyncio
    async def test_counters_updated_and_persisted(self):
        policy = allow("operators", "hasRole('operator')")
        engine, store = engine_for(policy)

        await engine.evaluate(make_context(roles=("operator",)))
        await engine.evaluate(make_context(roles=("viewer",)))
        await engine.drain()

        assert policy.evaluation_count == 2
        assert policy.success_count == 1
        assert policy.failure_count == 1
        assert policy.last_evaluated == BUSINESS_HOURS_NOW
        assert store.persisted_counters[policy.id]["evaluation_count"] == 2

    @pytest.mark.asyncio
    async def test_counter_persistence_failure_is_not_fatal(self):
        store = AsyncMock()
        store.list_active_policies.return_value = [allow("everyone")]
        store.record_evaluations.side_effect = RuntimeError("write failed")
        engine = PolicyEngine(store)

        result = await engine.evaluate(make_context())
        await engine.drain()

        assert result.is_allowed

    @pytest.mark.asyncio
    async def test_store_error_raises_evaluation_error(self):
        store = AsyncMock()
        store.list_active_policies.side_effect = ConnectionError("db down")
        engine = PolicyEngine(store)

        with pytest.raises(PolicyEvaluationError) as exc_info:
            await engine.evaluate(make_context())

        assert exc_info.value.reason == "policy_store_error"
        assert exc_info.value.error_code == "POLICY_EVALUATION_ERROR"

    @pytest.mark.asyncio
    async def test_store_timeout_raises_evaluation_error(self):
        async def slow():
            await asyncio.sleep(1)
            return []

        store = AsyncMock()
        store.list_active_policies.side_effect = slow
        engine = PolicyEngine(store, store_timeout=0.05)

        with pytest.raises(PolicyEvaluationError) as exc_info:
            await engine.evaluate(make_context())

        assert exc_info.value.reason == "policy_store_timeout"


class TestRiskScore:
    """Test risk score calculation."""

    def test_components(self):
        context = make_context(now=AFTER_HOURS_NOW, risk_score=30)
        sensitive = PolicyEvaluationContext(
            user=context.user,
            resource=ResourceAttributes(type="recordings", sensitivity=Sensitivity.HIGH),
            environment=context.environment,
            action="read",
        )

        assert calculate_risk_score(context, Decision.ALLOW) == 40
        assert calculate_risk_score(context, Decision.DENY) == 60
        assert calculate_risk_score(sensitive, Decision.DENY) == 75

    def test_clamped_to_100(self):
        context = make_context(now=AFTER_HOURS_NOW, risk_score=95)

        assert calculate_risk_score(context, Decision.DENY) == 100
