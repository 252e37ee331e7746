"""FastAPI integration for pbx-authz."""

from .dependencies import AuthzDependencies, get_client_ip, to_http_exception
from .exception_handlers import register_exception_handlers

__all__ = [
    "AuthzDependencies",
    "get_client_ip",
    "to_http_exception",
    "register_exception_handlers",
]
