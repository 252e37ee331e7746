"""Runtime wiring for the authorization pipeline.

``AuthzRuntime`` builds every component from ``AuthzSettings`` and the
injected stores, and owns the background lifecycles (rate limit sweep,
audit delivery).
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Callable, Optional

from .api.dependencies import AuthzDependencies
from .config.settings import AuthzSettings, get_settings
from .features.audit import AuditRecorder, AuditSink, InMemoryAuditSink, LoggingAuditSink
from .features.guards import ContextBuilder, GuardPipeline, RouteRegistry, RouteRequirements
from .features.identity import (
    IdentityResolver,
    InMemorySessionStore,
    InMemoryUserStore,
    SessionStore,
    TokenValidator,
    UserStore,
)
from .features.policies import (
    AttributeStore,
    InMemoryAttributeStore,
    InMemoryPolicyStore,
    PolicyEngine,
    PolicyStore,
)
from .features.rate_limit import RateLimiter, RateLimitStore
from .features.roles import InMemoryRoleStore, RoleHierarchyResolver, RoleStore

logger = logging.getLogger(__name__)


class AuthzRuntime:
    """Builds and owns the components of the authorization pipeline."""

    def __init__(
        self,
        user_store: UserStore,
        policy_store: PolicyStore,
        session_store: Optional[SessionStore] = None,
        role_store: Optional[RoleStore] = None,
        attribute_store: Optional[AttributeStore] = None,
        audit_sink: Optional[AuditSink] = None,
        settings: Optional[AuthzSettings] = None,
        registry: Optional[RouteRegistry] = None,
        clock: Optional[Callable[[], datetime]] = None,
        monotonic_clock: Optional[Callable[[], float]] = None,
    ):
        self.settings = settings or get_settings()
        settings = self.settings
        if settings.uses_default_jwt_secret:
            logger.warning("Using the default JWT secret; set PBX_AUTHZ_JWT_SECRET before deploying")

        self.user_store = user_store
        self.session_store = session_store
        self.role_store = role_store
        self.policy_store = policy_store
        self.attribute_store = attribute_store
        self.audit_sink = audit_sink or LoggingAuditSink()

        self.token_validator = TokenValidator(
            secret=settings.jwt_secret.get_secret_value(),
            algorithms=[settings.jwt_algorithm],
            issuer=settings.jwt_issuer,
            audience=settings.jwt_audience,
            leeway_seconds=settings.jwt_leeway_seconds,
        )
        self.identity_resolver = IdentityResolver(
            user_store=user_store,
            token_validator=self.token_validator,
            session_store=session_store,
            timeout=settings.identity_timeout_seconds,
            clock=clock,
        )
        self.role_resolver = RoleHierarchyResolver(
            role_store=role_store,
            bypass_role=settings.bypass_role,
            store_timeout=settings.store_timeout_seconds,
        )
        self.rate_limit_store = RateLimitStore(
            shards=settings.rate_limit_shards,
            sweep_interval_seconds=settings.rate_limit_sweep_interval_seconds,
            grace_seconds=settings.rate_limit_grace_seconds,
            clock=monotonic_clock,
        )
        self.rate_limiter = RateLimiter(
            store=self.rate_limit_store,
            warning_ratio=settings.rate_limit_warning_ratio,
            enabled=settings.rate_limit_enabled,
        )
        self.policy_engine = PolicyEngine(
            policy_store=policy_store,
            store_timeout=settings.store_timeout_seconds,
            clock=clock,
        )
        self.context_builder = ContextBuilder(
            attribute_store=attribute_store,
            business_hours_start=settings.business_hours_start,
            business_hours_end=settings.business_hours_end,
            timezone_name=settings.timezone,
            store_timeout=settings.store_timeout_seconds,
            clock=clock,
        )
        self.audit_recorder = AuditRecorder(
            sink=self.audit_sink,
            max_queue_size=settings.audit_queue_size,
            overflow_policy=settings.audit_overflow_policy,
            put_timeout=settings.audit_put_timeout_seconds,
            drain_timeout=settings.audit_drain_timeout_seconds,
        )
        self.registry = registry or RouteRegistry()
        self.pipeline = GuardPipeline(
            identity_resolver=self.identity_resolver,
            role_resolver=self.role_resolver,
            rate_limiter=self.rate_limiter,
            policy_engine=self.policy_engine,
            context_builder=self.context_builder,
            audit_recorder=self.audit_recorder,
            registry=self.registry,
            sensitive_max_risk_score=settings.sensitive_max_risk_score,
            require_explicit_policy_for_sensitive=settings.require_explicit_policy_for_sensitive,
        )
        self.dependencies = AuthzDependencies(
            self.pipeline,
            session_cookie_name=settings.session_cookie_name,
            session_header_name=settings.session_header_name,
            trusted_proxies=settings.trusted_proxies,
        )

    @classmethod
    def in_memory(cls, settings: Optional[AuthzSettings] = None, **kwargs) -> "AuthzRuntime":
        """Runtime backed by in-memory stores, for development and tests.

        Any store passed in ``kwargs`` replaces the in-memory default.
        """
        kwargs.setdefault("user_store", InMemoryUserStore())
        kwargs.setdefault("session_store", InMemorySessionStore())
        kwargs.setdefault("role_store", InMemoryRoleStore())
        kwargs.setdefault("policy_store", InMemoryPolicyStore())
        kwargs.setdefault("attribute_store", InMemoryAttributeStore())
        kwargs.setdefault("audit_sink", InMemoryAuditSink())
        return cls(settings=settings, **kwargs)

    async def start(self) -> None:
        """Start background tasks."""
        await self.rate_limit_store.start()
        self.audit_recorder.start()
        logger.info("Authorization runtime started")

    async def stop(self) -> None:
        """Flush pending work and stop background tasks."""
        await self.policy_engine.drain()
        await self.identity_resolver.drain()
        await self.audit_recorder.stop()
        await self.rate_limit_store.stop()
        logger.info("Authorization runtime stopped")

    @asynccontextmanager
    async def lifespan(self, app=None):
        """FastAPI lifespan handler."""
        await self.start()
        try:
            yield
        finally:
            await self.stop()

    def require(self, requirements: Optional[RouteRequirements] = None) -> Callable:
        """FastAPI dependency enforcing ``requirements`` for a route."""
        return self.dependencies.require(requirements)

    def invalidate_roles(self) -> None:
        """Drop cached role permissions after role data changes."""
        self.role_resolver.invalidate()
