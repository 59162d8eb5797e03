"""Authentication middleware and utilities."""

import hmac
from typing import Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from weave_toolkit.config.loader import get_settings
from weave_toolkit.mcp.errors import AuthenticationError
from weave_toolkit.mcp.jsonrpc import error_response
from weave_toolkit.utils.logging import get_logger

logger = get_logger(__name__)


def verify_api_key(key: str | None) -> bool:
    """
    Verify an API key.

    Returns True if:
    - Auth is disabled (no MCP_API_KEY set)
    - Key matches the configured MCP_API_KEY
    """
    settings = get_settings()

    # If no API key configured, allow all
    if not settings.auth_enabled:
        return True

    if key is None:
        return False

    return hmac.compare_digest(key.encode(), settings.api_key.encode())


def extract_bearer_token(authorization: str | None) -> str | None:
    """Extract token from Authorization header."""
    if authorization is None:
        return None

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None

    return parts[1]


def extract_api_key(request: Request) -> str | None:
    """Read the key from a Bearer Authorization header or X-API-Key."""
    token = extract_bearer_token(request.headers.get("Authorization"))
    if token is not None:
        return token
    return request.headers.get("X-API-Key")


class AuthMiddleware(BaseHTTPMiddleware):
    """Middleware to enforce authentication on protected endpoints."""

    # Paths that require authentication (when enabled)
    PROTECTED_PATHS = ["/mcp", "/stats"]

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Response]
    ) -> Response:
        settings = get_settings()
        if not settings.auth_enabled:
            return await call_next(request)

        path = request.url.path
        # CORS preflight carries no credentials
        if request.method == "OPTIONS":
            return await call_next(request)

        if any(path == p or path.startswith(p + "/") for p in self.PROTECTED_PATHS):
            if not verify_api_key(extract_api_key(request)):
                logger.warning("Unauthorized access attempt", path=path)
                error = AuthenticationError()
                return JSONResponse(
                    status_code=error.http_status,
                    content=error_response(error).model_dump(),
                )

        return await call_next(request)
