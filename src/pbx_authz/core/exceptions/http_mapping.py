"""HTTP status code mapping for pbx-authz exceptions."""

from typing import Dict, Type

from .base import PbxAuthzError, ConfigurationError
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


HTTP_STATUS_MAP: Dict[Type[Exception], int] = {
    # 401 Unauthorized
    Unauthenticated: 401,

    # 403 Forbidden
    Forbidden: 403,
    PolicyDenied: 403,
    PolicyEvaluationError: 403,
    AuthorizationCheckFailed: 403,

    # 429 Too Many Requests
    RateLimitExceeded: 429,

    # 500 Internal Server Error
    ConditionSyntaxError: 500,
    RoleHierarchyError: 500,
    ConfigurationError: 500,
    PbxAuthzError: 500,
}


def get_http_status_code(exception: Exception) -> int:
    """Resolve the status code, walking the MRO for subclasses."""
    for klass in type(exception).__mro__:
        if klass in HTTP_STATUS_MAP:
            return HTTP_STATUS_MAP[klass]
    return 500
