"""SSE (Server-Sent Events) streaming of tool calls."""

import asyncio
import json
from typing import Any, AsyncGenerator, AsyncIterator

from sse_starlette import EventSourceResponse, ServerSentEvent
from starlette.background import BackgroundTask

from weave_toolkit.mcp.errors import InvalidRequest, ToolkitError
from weave_toolkit.mcp.handlers import METHOD_TOOLS_CALL, parse_tool_call_params
from weave_toolkit.mcp.jsonrpc import RequestRouter, extract_client_info
from weave_toolkit.mcp.models import StreamEvent, StreamEventKind
from weave_toolkit.mcp.registry import ToolRegistry
from weave_toolkit.tools.base import CallContext
from weave_toolkit.utils.logging import get_logger

logger = get_logger(__name__)


def tool_started(name: str) -> StreamEvent:
    return StreamEvent(
        kind=StreamEventKind.TOOL_CALL, data={"tool": name, "status": "started"}
    )


def content_event(content: str, index: int) -> StreamEvent:
    return StreamEvent(
        kind=StreamEventKind.CONTENT,
        data={"type": "text", "content": content, "index": index},
    )


def error_event(message: str) -> StreamEvent:
    return StreamEvent(kind=StreamEventKind.ERROR, data={"message": message})


class StreamDispatcher:
    """Turns a streaming tools/call into an ordered sequence of events.

    The sequence always starts with ``tool/call`` (once the request is
    valid) and always ends with exactly one ``done`` or ``error``.
    """

    def __init__(self, registry: ToolRegistry, router: RequestRouter):
        self.registry = registry
        self.router = router

    async def stream(self, raw_data: str | bytes) -> AsyncGenerator[StreamEvent, None]:
        """Parse a raw request and stream its events."""
        try:
            request = self.router.parse_request(raw_data)
            if request.method != METHOD_TOOLS_CALL:
                raise InvalidRequest("Streaming only supported for tools/call method")
            params = parse_tool_call_params(request.params)
            conn = self.router.pool.acquire(extract_client_info(request.params))
        except ToolkitError as e:
            logger.warning("Stream request rejected", error_code=e.code, error=e.message)
            yield error_event(e.message)
            return

        events = self.events(self.router.new_context(conn), params.name, params.arguments)
        try:
            async for event in events:
                yield event
        finally:
            self.router.pool.release(conn)
            await events.aclose()

    async def events(
        self, ctx: CallContext, name: str, arguments: dict[str, Any]
    ) -> AsyncGenerator[StreamEvent, None]:
        """Run one streaming invocation and yield its events in order."""
        queue: asyncio.Queue[StreamEvent] = asyncio.Queue()
        finished = False

        async def emit(content: str, index: int) -> None:
            # Anything emitted after the terminal event is dropped
            if not finished:
                await queue.put(content_event(content, index))

        async def run() -> None:
            nonlocal finished
            try:
                result = await self.registry.invoke_stream(ctx, name, arguments, emit)
                terminal = StreamEvent(
                    kind=StreamEventKind.DONE, data={"result": result.model_dump()}
                )
            except ToolkitError as e:
                terminal = error_event(e.message)
            except Exception as e:
                logger.exception("Unexpected error in streaming tool call", tool=name)
                terminal = error_event(str(e) or type(e).__name__)
            finished = True
            await queue.put(terminal)

        yield tool_started(name)
        task = asyncio.create_task(run())
        try:
            while True:
                event = await queue.get()
                yield event
                if event.is_terminal:
                    break
        finally:
            if not task.done():
                task.cancel()


def to_sse(event: StreamEvent) -> ServerSentEvent:
    return ServerSentEvent(
        event=event.kind.value,
        data=json.dumps(event.data, ensure_ascii=False),
        sep="\n",
    )


def create_sse_response(
    events: AsyncIterator[StreamEvent],
    background: BackgroundTask | None = None,
    shutdown_grace_period: float = 0,
) -> EventSourceResponse:
    """
    Create an SSE response that writes each event as soon as it is produced.

    When the server begins to exit, an open stream keeps running for up to
    shutdown_grace_period seconds so the call can reach its done or error
    event before the stream is cancelled.
    """

    async def event_generator() -> AsyncGenerator[ServerSentEvent, None]:
        try:
            async for event in events:
                yield to_sse(event)
        except asyncio.CancelledError:
            logger.info("SSE stream cancelled")
            raise

    return EventSourceResponse(
        event_generator(),
        sep="\n",
        background=background,
        shutdown_grace_period=shutdown_grace_period,
    )
