"""Authentication and authorization exceptions for pbx-authz."""

from typing import Any, Dict, Iterable, Optional

from .base import PbxAuthzError


class Unauthenticated(PbxAuthzError):
    """Raised when no valid identity can be resolved for a request.

    Every identity failure (expired or malformed token, unknown or inactive
    user, domain mismatch, store timeout) surfaces as this one kind. The
    precise reason lives in ``details["reason"]``.
    """

    public_message = "Authentication required"

    def __init__(self, reason: str, details: Optional[Dict[str, Any]] = None):
        merged = dict(details or {})
        merged["reason"] = reason
        super().__init__(f"Authentication failed: {reason}", error_code="UNAUTHENTICATED", details=merged)
        self.reason = reason


class Forbidden(PbxAuthzError):
    """Raised when role, permission or domain requirements are not met."""

    public_message = "Insufficient permissions"

    def __init__(
        self,
        message: str = "Role or permission requirements not met",
        missing_roles: Iterable[str] = (),
        missing_permissions: Iterable[str] = (),
        details: Optional[Dict[str, Any]] = None,
    ):
        self.missing_roles = sorted(missing_roles)
        self.missing_permissions = sorted(missing_permissions)
        merged = dict(details or {})
        merged.update({
            "missing_roles": self.missing_roles,
            "missing_permissions": self.missing_permissions,
        })
        super().__init__(message, error_code="FORBIDDEN", details=merged)


class PolicyDenied(PbxAuthzError):
    """Raised when the policy engine denies a request."""

    public_message = "Access denied by policy"

    def __init__(
        self,
        reason: str,
        policy_name: Optional[str] = None,
        risk_score: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
        error_code: str = "POLICY_DENIED",
    ):
        self.reason = reason
        self.policy_name = policy_name
        self.risk_score = risk_score
        merged = dict(details or {})
        merged.update({"reason": reason, "policy_name": policy_name, "risk_score": risk_score})
        super().__init__(f"Policy denied: {reason}", error_code=error_code, details=merged)


class PolicyEvaluationError(PolicyDenied):
    """Raised when policies could not be evaluated at all.

    The request is denied (fail-closed) just like a policy denial, but the
    engine failure is logged separately at ERROR level.
    """

    def __init__(self, reason: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(reason, risk_score=100, details=details, error_code="POLICY_EVALUATION_ERROR")


class RateLimitExceeded(PbxAuthzError):
    """Raised when a request exceeds its rate limit."""

    public_message = "Too many requests"

    def __init__(
        self,
        retry_after: int,
        limit: int,
        window_ms: int,
        key: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.retry_after = retry_after
        self.limit = limit
        self.window_ms = window_ms
        merged = dict(details or {})
        merged.update({"retry_after": retry_after, "limit": limit, "window_ms": window_ms, "key": key})
        super().__init__(
            f"Rate limit exceeded: {limit} requests per {window_ms} ms",
            error_code="RATE_LIMIT_EXCEEDED",
            details=merged,
        )


class AuthorizationCheckFailed(PbxAuthzError):
    """Raised when an authorization stage fails unexpectedly.

    Always treated as a denial.
    """

    public_message = "Authorization check failed"

    def __init__(self, stage: str, cause: Optional[BaseException] = None):
        self.stage = stage
        details = {"stage": stage}
        if cause is not None:
            details["cause"] = f"{type(cause).__name__}: {cause}"
        super().__init__(f"Authorization check failed during {stage}", error_code="AUTHZ_CHECK_FAILED", details=details)


class ConditionSyntaxError(PbxAuthzError):
    """Raised when a policy condition cannot be parsed."""

    def __init__(self, message: str, expression: str, position: Optional[int] = None):
        self.expression = expression
        self.position = position
        super().__init__(
            message,
            error_code="CONDITION_SYNTAX_ERROR",
            details={"expression": expression, "position": position},
        )


class RoleHierarchyError(PbxAuthzError):
    """Raised when the role hierarchy table is invalid (e.g. cyclic)."""
    pass
