"""pbx-authz - authorization and policy-gating core for the PBX admin backend.

Every inbound request passes identity resolution, role and permission
checks, rate limiting, attribute-based policy evaluation and sensitive
operation validation before reaching business logic, and every decision is
audited.
"""

# Initialize logging configuration on import
from .config.logging_config import setup_logging
setup_logging()

from .__version__ import __version__

from .config import AuthzSettings, AuditOverflowPolicy, get_settings

from .core.exceptions import (
    PbxAuthzError,
    ConfigurationError,
    Unauthenticated,
    Forbidden,
    PolicyDenied,
    PolicyEvaluationError,
    RateLimitExceeded,
    AuthorizationCheckFailed,
    ConditionSyntaxError,
    RoleHierarchyError,
)

from .features.identity import Principal, CredentialMaterial, IdentityResolver
from .features.roles import Role, PermissionCode, RoleHierarchyResolver
from .features.policies import Policy, PolicyEffect, PolicyEngine, Decision, lint_condition
from .features.rate_limit import RateLimitConfig, RateLimiter, RateLimitStore
from .features.audit import AuditEvent, AuditRecorder
from .features.guards import (
    RouteRequirements,
    RouteRegistry,
    GuardRequest,
    GuardDecision,
    GuardPipeline,
)

from .factory import AuthzRuntime

__all__ = [
    "__version__",
    # Configuration
    "AuthzSettings",
    "AuditOverflowPolicy",
    "get_settings",
    # Exceptions
    "PbxAuthzError",
    "ConfigurationError",
    "Unauthenticated",
    "Forbidden",
    "PolicyDenied",
    "PolicyEvaluationError",
    "RateLimitExceeded",
    "AuthorizationCheckFailed",
    "ConditionSyntaxError",
    "RoleHierarchyError",
    # Components
    "Principal",
    "CredentialMaterial",
    "IdentityResolver",
    "Role",
    "PermissionCode",
    "RoleHierarchyResolver",
    "Policy",
    "PolicyEffect",
    "PolicyEngine",
    "Decision",
    "lint_condition",
    "RateLimitConfig",
    "RateLimiter",
    "RateLimitStore",
    "AuditEvent",
    "AuditRecorder",
    "RouteRequirements",
    "RouteRegistry",
    "GuardRequest",
    "GuardDecision",
    "GuardPipeline",
    "AuthzRuntime",
]
