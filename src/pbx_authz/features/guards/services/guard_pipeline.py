"""Per-request authorization pipeline.

Stages run in a fixed order and the first denial ends the request:

    public check -> authenticate -> roles/permissions -> rate limit
    -> policy evaluation -> sensitive-operation validation -> allow

Every stage leaves with either success or one of the typed request-time
errors. Anything else raised inside a stage becomes
``AuthorizationCheckFailed``. Every decision is handed to the audit recorder
without waiting for delivery.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from ....core.exceptions import (
    AuthorizationCheckFailed,
    PbxAuthzError,
    PolicyDenied,
    RateLimitExceeded,
)
from ...audit.entities import AuditEvent
from ...audit.services import AuditRecorder
from ...identity.services import IdentityResolver
from ...policies.conditions import ip_in_ranges
from ...policies.entities import PolicyEvaluationContext
from ...policies.services import PolicyEngine
from ...rate_limit.services import RateLimiter, build_rate_limit_key, classify_operation
from ...roles.services import RoleHierarchyResolver
from ..entities import (
    GuardDecision,
    GuardRequest,
    PipelineState,
    RouteRegistry,
    RouteRequirements,
)
from .context_builder import ContextBuilder, infer_resource_type

logger = logging.getLogger(__name__)

ALLOWED_IP_RANGES_ATTRIBUTE = "allowed_ip_ranges"


class GuardPipeline:
    """Runs every authorization stage for one request."""

    def __init__(
        self,
        identity_resolver: IdentityResolver,
        role_resolver: RoleHierarchyResolver,
        rate_limiter: RateLimiter,
        policy_engine: PolicyEngine,
        context_builder: ContextBuilder,
        audit_recorder: Optional[AuditRecorder] = None,
        registry: Optional[RouteRegistry] = None,
        sensitive_max_risk_score: int = 90,
        require_explicit_policy_for_sensitive: bool = True,
    ):
        self.identity_resolver = identity_resolver
        self.role_resolver = role_resolver
        self.rate_limiter = rate_limiter
        self.policy_engine = policy_engine
        self.context_builder = context_builder
        self.audit_recorder = audit_recorder
        self.registry = registry or RouteRegistry()
        self._max_risk_score = sensitive_max_risk_score
        self._explicit_policy_for_sensitive = require_explicit_policy_for_sensitive

    async def enforce(
        self,
        request: GuardRequest,
        requirements: Optional[RouteRequirements] = None,
    ) -> GuardDecision:
        """Run the pipeline and raise the denial error, if any."""
        decision = await self.evaluate(request, requirements)
        if not decision.allowed:
            raise decision.error
        return decision

    async def evaluate(
        self,
        request: GuardRequest,
        requirements: Optional[RouteRequirements] = None,
    ) -> GuardDecision:
        """Run the pipeline and return the decision. Only cancellation propagates."""
        if requirements is None:
            requirements = self.registry.lookup(request.method, request.endpoint)

        decision = GuardDecision(allowed=False, state=PipelineState.AUTHENTICATING)
        if requirements.public:
            self._advance(decision, PipelineState.PUBLIC)
            self._advance(decision, PipelineState.ALLOWED)
            decision.allowed = True
            return decision

        context: Optional[PolicyEvaluationContext] = None
        try:
            context = await self._run(request, requirements, decision)
        except asyncio.CancelledError:
            logger.warning(f"Authorization cancelled for {request.method} {request.path} during {decision.state.value}")
            self._record(AuditEvent.access_denied(
                error_kind="CancelledError",
                reason="Request cancelled",
                stage=decision.state.value,
                **self._envelope(request, requirements, decision),
            ))
            raise
        except PbxAuthzError as e:
            self._deny(request, requirements, decision, e)
            return decision
        except Exception as e:
            logger.error(f"Unexpected error during {decision.state.value}: {e}")
            self._deny(request, requirements, decision, AuthorizationCheckFailed(decision.state.value.lower(), e))
            return decision

        self._advance(decision, PipelineState.ALLOWED)
        decision.allowed = True
        policy_result = decision.policy_result
        risk_score = policy_result.risk_score
        self._record(AuditEvent.access_granted(
            risk_score=risk_score,
            deciding_policy=policy_result.deciding_policy,
            obligations=decision.obligations,
            **self._envelope(request, requirements, decision, context),
        ))
        logger.debug(f"Access granted to {decision.principal.id} for {request.method} {request.path}")
        return decision

    async def _run(
        self,
        request: GuardRequest,
        requirements: RouteRequirements,
        decision: GuardDecision,
    ) -> Optional[PolicyEvaluationContext]:
        self._advance(decision, PipelineState.AUTHENTICATING)
        principal = await self.identity_resolver.resolve(request.credentials)
        decision.principal = principal
        self._advance(decision, PipelineState.AUTHENTICATED)

        self._advance(decision, PipelineState.AUTHORIZING_ROLE)
        access = await self.role_resolver.resolve(principal)
        decision.access = access
        self.role_resolver.check(access, tuple(requirements.roles), tuple(requirements.permissions))
        self.role_resolver.check_domain_access(principal, access, request.domain_id)

        self._advance(decision, PipelineState.RATE_CHECKING)
        self._check_rate_limit(request, requirements, decision)

        # Policies apply to every principal, the bypass role included
        context = await self.context_builder.build(request, principal, access, requirements)
        self._advance(decision, PipelineState.AUTHORIZING_POLICY)
        await self._check_policies(request, requirements, decision, context)

        if requirements.sensitive:
            self._advance(decision, PipelineState.SECURITY_VALIDATING)
            self._validate_sensitive(request, requirements, decision, context)

        return context

    def _check_rate_limit(
        self,
        request: GuardRequest,
        requirements: RouteRequirements,
        decision: GuardDecision,
    ) -> None:
        if requirements.skip_rate_limit or not self.rate_limiter.enabled:
            return

        principal = decision.principal
        operation_class = requirements.operation_class or classify_operation(request.method, request.endpoint)
        config = self.rate_limiter.resolve_config(requirements.rate_limit, operation_class, principal.primary_role)
        key = build_rate_limit_key(request.method, request.endpoint, principal.id, request.client_ip)

        result = self.rate_limiter.check(key, config)
        decision.rate_limit = result
        if not result.allowed:
            raise self.rate_limiter.exceeded_error(result)
        if result.warning:
            logger.info(f"Rate limit warning for {key}: {result.count}/{result.limit}")
            self._record(AuditEvent.rate_limit_warning(
                count=result.count,
                limit=result.limit,
                window_ms=config.window_ms,
                tier=config.name,
                **self._envelope(request, requirements, decision),
            ))

    async def _check_policies(
        self,
        request: GuardRequest,
        requirements: RouteRequirements,
        decision: GuardDecision,
        context: PolicyEvaluationContext,
    ) -> None:
        result = await self.policy_engine.evaluate(context, requirements.policies)
        decision.policy_result = result
        self._record(AuditEvent.policy_evaluated(
            decision=result.decision.value,
            applied_policies=result.applied_policies,
            risk_score=result.risk_score,
            evaluation_time_ms=result.evaluation_time_ms,
            reason=result.reason,
            **self._envelope(request, requirements, decision, context),
        ))

        if result.is_denied:
            raise PolicyDenied(result.reason, policy_name=result.deciding_policy, risk_score=result.risk_score)

        if result.is_indeterminate and self._requires_explicit_policy(request, requirements):
            raise PolicyDenied(
                result.reason,
                risk_score=result.risk_score,
                details={"decision": result.decision.value},
            )

    def _requires_explicit_policy(self, request: GuardRequest, requirements: RouteRequirements) -> bool:
        if requirements.policies or requirements.require_explicit_policy:
            return True
        return requirements.sensitive and self._explicit_policy_for_sensitive

    def _validate_sensitive(
        self,
        request: GuardRequest,
        requirements: RouteRequirements,
        decision: GuardDecision,
        context: PolicyEvaluationContext,
    ) -> None:
        risk_score = decision.policy_result.risk_score
        self._record(AuditEvent.sensitive_operation(
            risk_score=risk_score,
            **self._envelope(request, requirements, decision, context),
        ))

        allowed_ranges = context.user.attributes.get(ALLOWED_IP_RANGES_ATTRIBUTE)
        if allowed_ranges:
            if isinstance(allowed_ranges, str):
                allowed_ranges = [allowed_ranges]
            if not ip_in_ranges(request.client_ip, allowed_ranges):
                raise PolicyDenied(
                    "Client IP not in allowed ranges",
                    risk_score=risk_score,
                    details={"client_ip": request.client_ip},
                )

        if risk_score >= self._max_risk_score:
            raise PolicyDenied(
                f"Risk score {risk_score} exceeds the limit for sensitive operations",
                risk_score=risk_score,
                details={"max_risk_score": self._max_risk_score},
            )

    def _advance(self, decision: GuardDecision, state: PipelineState) -> None:
        decision.state = state
        decision.trace.append(state)

    def _deny(
        self,
        request: GuardRequest,
        requirements: RouteRequirements,
        decision: GuardDecision,
        error: PbxAuthzError,
    ) -> None:
        stage = decision.state
        self._advance(decision, PipelineState.DENIED)
        decision.allowed = False
        decision.error = error

        actor = decision.principal.id if decision.principal else "anonymous"
        logger.warning(
            f"Access denied for {actor} on {request.method} {request.path} "
            f"at {stage.value}: {error.error_code} ({error.message})"
        )

        envelope = self._envelope(request, requirements, decision)
        if isinstance(error, RateLimitExceeded):
            self._record(AuditEvent.rate_limit_exceeded(
                limit=error.limit,
                window_ms=error.window_ms,
                retry_after=error.retry_after,
                tier=error.details.get("tier"),
                **envelope,
            ))
            return

        self._record(AuditEvent.access_denied(
            error_kind=type(error).__name__,
            reason=error.message,
            stage=stage.value,
            details=error.details,
            risk_score=getattr(error, "risk_score", None),
            **envelope,
        ))

    def _envelope(
        self,
        request: GuardRequest,
        requirements: RouteRequirements,
        decision: GuardDecision,
        context: Optional[PolicyEvaluationContext] = None,
    ) -> Dict[str, Any]:
        principal = decision.principal
        if context is not None:
            resource_type = context.resource.type
        else:
            resource_type = requirements.resource_type or infer_resource_type(request.endpoint)
        return {
            "actor_id": principal.id if principal else None,
            "actor_username": principal.username if principal else None,
            "domain_id": request.domain_id or (principal.domain_id if principal else None),
            "resource_type": resource_type,
            "resource_id": request.resource_id,
            "request_method": request.method.upper(),
            "request_path": request.path,
            "client_ip": request.client_ip,
            "user_agent": request.user_agent,
        }

    def _record(self, event: AuditEvent) -> None:
        if self.audit_recorder is None:
            return
        try:
            self.audit_recorder.record(event)
        except Exception as e:
            logger.error(f"Failed to queue audit event {event.action.value}: {e}")

