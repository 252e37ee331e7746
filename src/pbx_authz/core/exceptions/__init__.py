"""Exception hierarchy for pbx-authz."""

from .base import (
    PbxAuthzError,
    ConfigurationError,
    get_http_status_code,
    create_error_response,
)
from .auth import (
    Unauthenticated,
    Forbidden,
    PolicyDenied,
    PolicyEvaluationError,
    RateLimitExceeded,
    AuthorizationCheckFailed,
    ConditionSyntaxError,
    RoleHierarchyError,
)
from .http_mapping import HTTP_STATUS_MAP

__all__ = [
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
    "HTTP_STATUS_MAP",
    "get_http_status_code",
    "create_error_response",
]
