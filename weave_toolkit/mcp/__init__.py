"""MCP (Model Context Protocol) implementation with JSON-RPC 2.0."""

from weave_toolkit.mcp.models import (
    Category,
    ClientInfo,
    ConnectionHandle,
    JsonRpcRequest,
    JsonRpcResponse,
    JsonRpcError,
    StreamEvent,
    StreamEventKind,
    TextContent,
    ToolCallResult,
    ToolInfo,
)
from weave_toolkit.mcp.errors import (
    PARSE_ERROR,
    INVALID_REQUEST,
    INTERNAL_ERROR,
    CAPACITY_ERROR,
    ToolkitError,
)

__all__ = [
    "Category",
    "ClientInfo",
    "ConnectionHandle",
    "JsonRpcRequest",
    "JsonRpcResponse",
    "JsonRpcError",
    "StreamEvent",
    "StreamEventKind",
    "TextContent",
    "ToolCallResult",
    "ToolInfo",
    "PARSE_ERROR",
    "INVALID_REQUEST",
    "INTERNAL_ERROR",
    "CAPACITY_ERROR",
    "ToolkitError",
]
