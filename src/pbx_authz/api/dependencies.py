"""FastAPI dependencies that run the guard pipeline."""

import logging
from typing import Annotated, Callable, Dict, Iterable, Optional

from fastapi import Depends, HTTPException, Request, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..core.exceptions import PbxAuthzError, create_error_response, get_http_status_code
from ..features.guards import GuardDecision, GuardPipeline, GuardRequest, RouteRequirements
from ..features.identity import CredentialMaterial
from ..features.policies.conditions import ip_in_ranges
from .exception_handlers import error_headers

logger = logging.getLogger(__name__)

# Missing or non-bearer Authorization headers are left to the pipeline
bearer_scheme = HTTPBearer(auto_error=False)

RESOURCE_ID_PARAMS = ("id", "user_id", "call_id", "recording_id", "extension_id")


def get_client_ip(request: Request, trusted_proxies: Iterable[str] = ()) -> Optional[str]:
    """Extract client IP address.

    ``X-Forwarded-For`` and ``X-Real-IP`` are only honoured when the direct
    peer is inside one of ``trusted_proxies``; otherwise the peer address is
    the client.
    """
    peer = request.client.host if request.client else None
    if not ip_in_ranges(peer, trusted_proxies):
        return peer

    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip

    return peer


def to_http_exception(exc: PbxAuthzError, headers: Optional[Dict[str, str]] = None) -> HTTPException:
    """Generic client-facing HTTP error for a denial."""
    merged = dict(headers or {})
    merged.update(error_headers(exc))
    return HTTPException(
        status_code=get_http_status_code(exc),
        detail=create_error_response(exc)["error"],
        headers=merged or None,
    )


class AuthzDependencies:
    """Factory for per-route FastAPI authorization dependencies."""

    def __init__(
        self,
        pipeline: GuardPipeline,
        session_cookie_name: str = "pbx_session",
        session_header_name: str = "X-Session-Id",
        trusted_proxies: Iterable[str] = (),
    ):
        self.pipeline = pipeline
        self.session_cookie_name = session_cookie_name
        self.session_header_name = session_header_name
        self.trusted_proxies = tuple(trusted_proxies)

    def build_request(
        self,
        request: Request,
        credentials: Optional[HTTPAuthorizationCredentials] = None,
    ) -> GuardRequest:
        """Translate a starlette request into a ``GuardRequest``."""
        session_handle = (
            request.cookies.get(self.session_cookie_name)
            or request.headers.get(self.session_header_name)
        )
        route = request.scope.get("route")
        path_params = request.path_params or {}

        resource_id = None
        for name in RESOURCE_ID_PARAMS:
            if path_params.get(name):
                resource_id = str(path_params[name])
                break

        return GuardRequest(
            method=request.method,
            path=request.url.path,
            route_path=getattr(route, "path", None),
            headers=dict(request.headers),
            client_ip=get_client_ip(request, self.trusted_proxies),
            user_agent=request.headers.get("user-agent"),
            credentials=CredentialMaterial(
                bearer_token=credentials.credentials if credentials else None,
                session_handle=session_handle or None,
            ),
            resource_id=resource_id,
            domain_id=path_params.get("domain_id"),
        )

    def require(self, requirements: Optional[RouteRequirements] = None) -> Callable:
        """Dependency enforcing ``requirements`` (or the registry entry) for a route."""

        async def dependency(
            request: Request,
            response: Response,
            credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(bearer_scheme)],
        ) -> GuardDecision:
            decision = await self.pipeline.evaluate(self.build_request(request, credentials), requirements)
            request.state.authz_decision = decision
            request.state.principal = decision.principal
            rate_headers = decision.rate_limit.headers if decision.rate_limit else {}
            if not decision.allowed:
                raise to_http_exception(decision.error, rate_headers)
            response.headers.update(rate_headers)
            return decision

        return dependency
