"""JSON-RPC 2.0 error codes and the toolkit exception hierarchy."""

from typing import Any

# Standard JSON-RPC 2.0 error codes
PARSE_ERROR = -32700  # Invalid JSON was received
INVALID_REQUEST = -32600  # The JSON sent is not a valid Request object
INTERNAL_ERROR = -32603  # Internal error, also used for method/tool failures

# Custom error codes (server-defined, must be between -32000 and -32099)
CAPACITY_ERROR = -32000  # Connection pool exhausted or server draining
AUTHENTICATION_ERROR = -32001  # Authentication required or failed
RATE_LIMIT_ERROR = -32002  # Category rate limit exceeded


def error_message(code: int) -> str:
    """Get the standard message for a JSON-RPC error code."""
    messages = {
        PARSE_ERROR: "Parse error",
        INVALID_REQUEST: "Invalid Request",
        INTERNAL_ERROR: "Internal error",
        CAPACITY_ERROR: "Capacity exceeded",
        AUTHENTICATION_ERROR: "Authentication required",
        RATE_LIMIT_ERROR: "Rate limit exceeded",
    }
    return messages.get(code, "Unknown error")


def make_error_data(code: int, message: str | None = None, data: Any = None) -> dict[str, Any]:
    """Create an error object for JSON-RPC response."""
    error: dict[str, Any] = {
        "code": code,
        "message": message or error_message(code),
    }
    if data is not None:
        error["data"] = data
    return error


class ToolkitError(Exception):
    """Base class for errors surfaced to callers as JSON-RPC error envelopes."""

    code: int = INTERNAL_ERROR
    http_status: int = 400

    def __init__(self, message: str | None = None):
        self.message = message or error_message(self.code)
        super().__init__(self.message)

    def to_error_data(self) -> dict[str, Any]:
        return make_error_data(self.code, self.message)


# Protocol errors


class ParseError(ToolkitError):
    code = PARSE_ERROR


class InvalidRequest(ToolkitError):
    code = INVALID_REQUEST


class InvalidParams(ToolkitError):
    """Malformed params for a known method."""


class MethodNotSupported(ToolkitError):
    pass


# Registry errors


class CategoryNotFound(ToolkitError):
    def __init__(self, category: str):
        super().__init__(f"category not found: {category}")
        self.category = category


class CategoryDisabled(ToolkitError):
    def __init__(self, category: str):
        super().__init__(f"category is disabled: {category}")
        self.category = category


class CategoryFull(ToolkitError):
    def __init__(self, category: str, max_tools: int):
        super().__init__(
            f"category {category} reached maximum tools limit: {max_tools}"
        )
        self.category = category
        self.max_tools = max_tools


class ToolNotFound(ToolkitError):
    def __init__(self, name: str):
        super().__init__(f"tool not found: {name}")
        self.name = name


class ToolExecutionError(ToolkitError):
    """Raised by tools for domain failures; the message reaches the caller as is."""


class ToolTimeout(ToolkitError):
    def __init__(self, name: str, timeout: float):
        super().__init__(f"tool execution timed out after {timeout:g}s: {name}")
        self.name = name
        self.timeout = timeout


class RateLimitExceeded(ToolkitError):
    code = RATE_LIMIT_ERROR
    http_status = 429

    def __init__(self, category: str, limit: int):
        super().__init__(
            f"rate limit exceeded for category {category}: {limit} calls per minute"
        )
        self.category = category
        self.limit = limit


# Capacity and lifecycle errors


class PoolExhausted(ToolkitError):
    code = CAPACITY_ERROR

    def __init__(self, max_size: int):
        super().__init__(f"connection pool exhausted, max size: {max_size}")
        self.max_size = max_size


class ServiceUnavailable(ToolkitError):
    code = CAPACITY_ERROR
    http_status = 503

    def __init__(self, message: str = "Service unavailable - server is shutting down"):
        super().__init__(message)


class AuthenticationError(ToolkitError):
    code = AUTHENTICATION_ERROR
    http_status = 401
