"""FastAPI exception handlers for pbx-authz errors."""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ..core.exceptions import (
    PbxAuthzError,
    RateLimitExceeded,
    create_error_response,
    get_http_status_code,
)

logger = logging.getLogger(__name__)


def error_headers(exc: PbxAuthzError) -> dict:
    """Response headers for an error (``Retry-After`` on rate limiting)."""
    if isinstance(exc, RateLimitExceeded):
        return {"Retry-After": str(exc.retry_after)}
    return {}


def register_exception_handlers(app: FastAPI) -> None:
    """Map pbx-authz errors raised by handlers or dependencies to responses.

    The body carries only the error code and a generic message; the reason
    recorded in ``details`` stays in server-side logs.
    """

    @app.exception_handler(PbxAuthzError)
    async def pbx_authz_exception_handler(request: Request, exc: PbxAuthzError):
        status_code = get_http_status_code(exc)
        if status_code >= 500:
            logger.error(f"{exc.error_code} on {request.method} {request.url.path}: {exc.message}")
        else:
            logger.debug(f"{exc.error_code} on {request.method} {request.url.path}: {exc.message}")
        return JSONResponse(
            status_code=status_code,
            content=create_error_response(exc),
            headers=error_headers(exc),
        )
