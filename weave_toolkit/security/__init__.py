"""Security modules: API key authentication."""

from weave_toolkit.security.auth import AuthMiddleware, verify_api_key

__all__ = ["AuthMiddleware", "verify_api_key"]
