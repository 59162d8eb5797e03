"""JSON-RPC 2.0 message processing."""

import json
from typing import Any

from pydantic import ValidationError

from weave_toolkit.mcp.errors import InvalidRequest, ParseError, ToolkitError
from weave_toolkit.mcp.handlers import MCPHandlers
from weave_toolkit.mcp.models import (
    ClientInfo,
    ConnectionHandle,
    JsonRpcError,
    JsonRpcRequest,
    JsonRpcResponse,
)
from weave_toolkit.mcp.pool import ConnectionPool
from weave_toolkit.tools.base import CallContext
from weave_toolkit.utils.logging import get_logger, get_request_id

logger = get_logger(__name__)


def extract_client_info(params: Any) -> ClientInfo:
    """Read params.clientInfo, falling back to an anonymous client."""
    client = ClientInfo()
    if isinstance(params, dict):
        info = params.get("clientInfo")
        if isinstance(info, dict):
            if isinstance(info.get("name"), str):
                client.name = info["name"]
            if isinstance(info.get("version"), str):
                client.version = info["version"]
    return client


def reject_constant(name: str) -> Any:
    """NaN and Infinity are not JSON."""
    raise ValueError(f"non-standard constant {name}")


def success_response(request_id: Any, result: Any) -> JsonRpcResponse:
    return JsonRpcResponse(id=request_id, result=result)


def error_response(error: ToolkitError) -> JsonRpcResponse:
    """Error envelopes never echo the request id."""
    return JsonRpcResponse(id=None, error=JsonRpcError(**error.to_error_data()))


class RequestRouter:
    """Parse JSON-RPC envelopes, hold a pooled connection and dispatch."""

    def __init__(
        self,
        handlers: MCPHandlers,
        pool: ConnectionPool,
        tool_timeout: float = 0.0,
        max_request_size: int = 0,
    ):
        self.handlers = handlers
        self.pool = pool
        self.tool_timeout = tool_timeout
        self.max_request_size = max_request_size

    def parse_request(self, raw_data: str | bytes) -> JsonRpcRequest:
        """
        Parse a JSON-RPC request from raw data.

        Raises:
            ParseError: The body is not valid JSON.
            InvalidRequest: The body is too large, not an object, or has no
                string ``method``.
        """
        if self.max_request_size and len(raw_data) > self.max_request_size:
            raise InvalidRequest("request body too large")

        try:
            if isinstance(raw_data, bytes):
                raw_data = raw_data.decode("utf-8")
            data = json.loads(raw_data, parse_constant=reject_constant)
        except ValueError as e:
            raise ParseError(f"Invalid JSON: {e}") from e

        if not isinstance(data, dict):
            raise InvalidRequest("Missing or invalid method")
        try:
            return JsonRpcRequest.model_validate(data)
        except ValidationError as e:
            raise InvalidRequest("Missing or invalid method") from e

    def new_context(self, conn: ConnectionHandle | None = None) -> CallContext:
        return CallContext.with_timeout(
            self.tool_timeout, connection=conn, request_id=get_request_id()
        )

    async def process_request(self, request: JsonRpcRequest) -> JsonRpcResponse:
        """Run a parsed request while holding a pooled connection."""
        with self.pool.connection(extract_client_info(request.params)) as conn:
            result = await self.handlers.dispatch(
                self.new_context(conn), request.method, request.params
            )
        return success_response(request.id, result)

    async def handle_message(self, raw_data: str | bytes) -> tuple[int, dict[str, Any]]:
        """
        Handle a raw JSON-RPC message end-to-end.

        Returns the HTTP status and the response envelope.
        """
        try:
            request = self.parse_request(raw_data)
            response = await self.process_request(request)
        except ToolkitError as e:
            logger.warning(
                "Request failed", error_code=e.code, error=e.message
            )
            return e.http_status, error_response(e).model_dump()

        return 200, response.model_dump()
