"""Pydantic models for the MCP JSON-RPC 2.0 protocol."""

from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field


# =============================================================================
# JSON-RPC 2.0 Base Models
# =============================================================================


class JsonRpcRequest(BaseModel):
    """JSON-RPC 2.0 request object."""

    jsonrpc: str | None = None
    id: Any = None
    method: str
    params: Any = None


class JsonRpcError(BaseModel):
    """JSON-RPC 2.0 error object."""

    code: int
    message: str
    data: Any = None


class JsonRpcResponse(BaseModel):
    """JSON-RPC 2.0 response object."""

    jsonrpc: Literal["2.0"] = "2.0"
    id: Any = None
    result: Any = None
    error: JsonRpcError | None = None

    def model_dump(self, **kwargs: Any) -> dict[str, Any]:
        """Emit either result or error, never both."""
        data: dict[str, Any] = {"jsonrpc": self.jsonrpc}
        if self.error is not None:
            data["error"] = self.error.model_dump(exclude_none=True)
        else:
            data["result"] = self.result
        data["id"] = self.id
        return data


# =============================================================================
# Tool Models
# =============================================================================


class Category(str, Enum):
    """Administrative tool groupings, in lookup precedence order."""

    MATH = "math"
    AI = "ai"
    SYSTEM = "system"
    UTILITY = "utility"


class TextContent(BaseModel):
    """Text content returned by tools."""

    type: Literal["text"] = "text"
    text: str


class ToolCallResult(BaseModel):
    """Result of a tool call."""

    content: list[TextContent]
    isError: bool = False


class ToolInfo(BaseModel):
    """Public metadata of a registered tool."""

    name: str
    description: str
    category: Category
    enabled: bool = True
    inputSchema: dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )

    def to_mcp_tool(self) -> dict[str, Any]:
        """Shape used by tools/list responses."""
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.inputSchema,
        }


class ToolCallParams(BaseModel):
    """Parameters for tools/call request."""

    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


# =============================================================================
# MCP Protocol Models
# =============================================================================


class ClientInfo(BaseModel):
    """Client information sent with requests."""

    name: str = "unknown"
    version: str = "1.0.0"


class ServerInfo(BaseModel):
    """Server information returned during initialization."""

    name: str
    version: str


class CapabilityFlags(BaseModel):
    listChanged: bool = False


class Capabilities(BaseModel):
    """Server capabilities."""

    roots: CapabilityFlags = Field(default_factory=CapabilityFlags)
    resources: CapabilityFlags = Field(default_factory=CapabilityFlags)
    tools: CapabilityFlags = Field(default_factory=CapabilityFlags)
    prompts: CapabilityFlags = Field(default_factory=CapabilityFlags)


class InitializeResult(BaseModel):
    """Result of initialize request."""

    protocolVersion: str
    serverInfo: ServerInfo
    capabilities: Capabilities = Field(default_factory=Capabilities)


# =============================================================================
# Streaming and Introspection Models
# =============================================================================


class StreamEventKind(str, Enum):
    TOOL_CALL = "tool/call"
    CONTENT = "content"
    DONE = "done"
    ERROR = "error"


TERMINAL_EVENTS = frozenset({StreamEventKind.DONE, StreamEventKind.ERROR})


class StreamEvent(BaseModel):
    """A single server-sent event of a streaming tool call."""

    kind: StreamEventKind
    data: dict[str, Any]

    @property
    def is_terminal(self) -> bool:
        return self.kind in TERMINAL_EVENTS


class PoolStats(BaseModel):
    """Read-only snapshot of the connection pool."""

    max_size: int
    active: int
    idle: int
    available: int


class ConnectionHandle(BaseModel):
    """A logical session slot handed out by the connection pool."""

    id: str
    client: ClientInfo
    created_at: datetime
    last_active: datetime
    session: dict[str, Any] = Field(default_factory=dict)
