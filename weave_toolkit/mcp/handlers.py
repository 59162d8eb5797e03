"""MCP method handlers for JSON-RPC requests."""

import logging
from typing import Any

from weave_toolkit.config.loader import get_settings
from weave_toolkit.mcp.errors import InvalidParams, MethodNotSupported
from weave_toolkit.mcp.models import InitializeResult, ServerInfo, ToolCallParams
from weave_toolkit.mcp.registry import ToolRegistry
from weave_toolkit.tools.base import CallContext

logger = logging.getLogger(__name__)

# MCP protocol version we announce
PROTOCOL_VERSION = "2025-06-18"

METHOD_INITIALIZE = "initialize"
METHOD_INITIALIZED = "notifications/initialized"
METHOD_TOOLS_LIST = "tools/list"
METHOD_TOOLS_CALL = "tools/call"
METHOD_RESOURCES_LIST = "resources/list"
METHOD_RESOURCES_READ = "resources/read"
METHOD_PROMPTS_LIST = "prompts/list"
METHOD_PROMPTS_GET = "prompts/get"
METHOD_ROOTS_LIST = "roots/list"


def parse_tool_call_params(params: Any) -> ToolCallParams:
    """Validate tools/call params: {name: str, arguments: object}."""
    if not isinstance(params, dict):
        raise InvalidParams("invalid params")
    name = params.get("name")
    if not isinstance(name, str):
        raise InvalidParams("missing or invalid tool name")
    arguments = params.get("arguments")
    if arguments is None:
        arguments = {}
    if not isinstance(arguments, dict):
        raise InvalidParams("invalid arguments: expected an object")
    return ToolCallParams(name=name, arguments=arguments)


def require_string_param(params: Any, key: str, label: str) -> str:
    if not isinstance(params, dict):
        raise InvalidParams("invalid params")
    value = params.get(key)
    if not isinstance(value, str):
        raise InvalidParams(f"missing or invalid {label}")
    return value


class MCPHandlers:
    """Handlers for MCP protocol methods."""

    def __init__(self, registry: ToolRegistry):
        self.registry = registry

    async def handle_initialize(self, ctx: CallContext, params: Any) -> dict[str, Any]:
        """Handle the initialize request."""
        settings = get_settings()
        result = InitializeResult(
            protocolVersion=PROTOCOL_VERSION,
            serverInfo=ServerInfo(
                name=settings.server_name,
                version=settings.server_version,
            ),
        )
        return result.model_dump()

    async def handle_initialized(self, ctx: CallContext, params: Any) -> dict[str, Any]:
        """Handle the notifications/initialized notification."""
        logger.info("Client confirmed initialization")
        return {}

    async def handle_tools_list(self, ctx: CallContext, params: Any) -> dict[str, Any]:
        """Handle the tools/list request."""
        tools = self.registry.list_tools()
        return {"tools": [tool.to_mcp_tool() for tool in tools]}

    async def handle_tools_call(self, ctx: CallContext, params: Any) -> dict[str, Any]:
        """Handle the tools/call request."""
        call_params = parse_tool_call_params(params)
        logger.info(f"Calling tool: {call_params.name}")
        result = await self.registry.invoke(ctx, call_params.name, call_params.arguments)
        return result.model_dump()

    # Reserved extension points: nothing is published, so lookups always miss
    async def handle_resources_list(self, ctx: CallContext, params: Any) -> dict[str, Any]:
        return {"resources": []}

    async def handle_resources_read(self, ctx: CallContext, params: Any) -> dict[str, Any]:
        uri = require_string_param(params, "uri", "uri")
        raise InvalidParams(f"failed to read resource: resource not found: {uri}")

    async def handle_prompts_list(self, ctx: CallContext, params: Any) -> dict[str, Any]:
        return {"prompts": []}

    async def handle_prompts_get(self, ctx: CallContext, params: Any) -> dict[str, Any]:
        name = require_string_param(params, "name", "prompt name")
        raise InvalidParams(f"prompt not found: {name}")

    async def handle_roots_list(self, ctx: CallContext, params: Any) -> dict[str, Any]:
        return {"roots": []}

    async def dispatch(self, ctx: CallContext, method: str, params: Any) -> Any:
        """
        Dispatch a method call to the appropriate handler.

        Raises ToolkitError subclasses for every failure the caller should see.
        """
        handlers = {
            METHOD_INITIALIZE: self.handle_initialize,
            METHOD_INITIALIZED: self.handle_initialized,
            METHOD_TOOLS_LIST: self.handle_tools_list,
            METHOD_TOOLS_CALL: self.handle_tools_call,
            METHOD_RESOURCES_LIST: self.handle_resources_list,
            METHOD_RESOURCES_READ: self.handle_resources_read,
            METHOD_PROMPTS_LIST: self.handle_prompts_list,
            METHOD_PROMPTS_GET: self.handle_prompts_get,
            METHOD_ROOTS_LIST: self.handle_roots_list,
        }

        handler = handlers.get(method)
        if handler is None:
            raise MethodNotSupported(f"unsupported method: {method}")
        return await handler(ctx, params)
