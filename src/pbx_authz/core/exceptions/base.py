"""Base exceptions for pbx-authz.

Every error raised by the library inherits from ``PbxAuthzError`` and carries
an error code plus a ``details`` mapping. Details hold the precise reason for
a denial and are meant for server-side logs and audit only; the client-facing
response built by ``create_error_response`` never includes them.
"""

from typing import Any, Dict, Optional


class PbxAuthzError(Exception):
    """Base exception for all pbx-authz errors."""

    # Message returned to clients; subclasses override it
    public_message = "Request could not be processed"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        *args,
        **kwargs
    ):
        super().__init__(message, *args, **kwargs)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}


class ConfigurationError(PbxAuthzError):
    """Raised when settings or component wiring are invalid."""
    pass


def get_http_status_code(exception: Exception) -> int:
    """Get HTTP status code for an exception.

    Args:
        exception: The exception instance

    Returns:
        HTTP status code
    """
    from .http_mapping import get_http_status_code as _mapped_status_code
    return _mapped_status_code(exception)


def create_error_response(exception: PbxAuthzError) -> Dict[str, Any]:
    """Create the client-facing error body for an exception.

    Only the error code and the generic public message are exposed.

    Args:
        exception: The pbx-authz exception

    Returns:
        Error response dictionary
    """
    body: Dict[str, Any] = {
        "error": {
            "code": exception.error_code,
            "message": exception.public_message,
            "type": exception.__class__.__name__,
        }
    }
    retry_after = getattr(exception, "retry_after", None)
    if retry_after is not None:
        body["error"]["retry_after"] = retry_after
    return body
