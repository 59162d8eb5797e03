"""FastAPI MCP Server - Main application entrypoint."""

import asyncio
import math
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, AsyncGenerator

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.background import BackgroundTask

from weave_toolkit.config.loader import (
    Settings,
    ToolManagerConfig,
    get_settings,
    load_tool_config,
)
from weave_toolkit.mcp.errors import ServiceUnavailable, ToolkitError
from weave_toolkit.mcp.handlers import PROTOCOL_VERSION, MCPHandlers
from weave_toolkit.mcp.jsonrpc import RequestRouter, error_response
from weave_toolkit.mcp.models import StreamEvent
from weave_toolkit.mcp.pool import ConnectionPool
from weave_toolkit.mcp.registry import ToolRegistry
from weave_toolkit.mcp.shutdown import Admission, ShutdownCoordinator
from weave_toolkit.mcp.streaming import StreamDispatcher, create_sse_response
from weave_toolkit.security.auth import AuthMiddleware
from weave_toolkit.utils.logging import get_logger, set_request_id, setup_logging

logger = get_logger(__name__)


@dataclass
class Services:
    """Everything the endpoints need, built once per application start."""

    settings: Settings
    registry: ToolRegistry
    pool: ConnectionPool
    coordinator: ShutdownCoordinator
    router: RequestRouter
    dispatcher: StreamDispatcher


def build_services(
    settings: Settings | None = None, tool_config: ToolManagerConfig | None = None
) -> Services:
    """Create the registry, load providers and assemble the request pipeline."""
    settings = settings or get_settings()
    tool_config = tool_config or load_tool_config()

    registry = ToolRegistry(tool_config)
    results = registry.load_providers(settings.enabled_providers)
    for provider, success in results.items():
        if success:
            logger.info("Loaded provider", provider=provider)
        else:
            logger.warning("Failed to load provider", provider=provider)

    pool = ConnectionPool(settings.max_connections)
    router = RequestRouter(
        MCPHandlers(registry),
        pool,
        tool_timeout=settings.tool_timeout,
        max_request_size=settings.max_request_size,
    )
    return Services(
        settings=settings,
        registry=registry,
        pool=pool,
        coordinator=ShutdownCoordinator(),
        router=router,
        dispatcher=StreamDispatcher(registry, router),
    )


def get_services(request: Request) -> Services:
    return request.app.state.services


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    # Startup
    setup_logging()
    settings = get_settings()
    logger.info(
        "Starting MCP server",
        server_name=settings.server_name,
        version=settings.server_version,
        auth_enabled=settings.auth_enabled,
    )

    services = build_services(settings)
    app.state.services = services
    logger.info(
        "Tool registry ready",
        tool_count=services.registry.tool_count,
        max_connections=settings.max_connections,
    )

    yield

    # Shutdown
    logger.info("Shutting down MCP server")
    drained = await services.coordinator.shutdown(settings.shutdown_grace_period)
    logger.info("Server stopped", drained=drained)


# Create FastAPI app
app = FastAPI(
    title="Weave Toolkit MCP Server",
    description="Categorized tool registry served over MCP JSON-RPC and SSE",
    version="1.0.0",
    lifespan=lifespan,
)

# Add middleware in reverse order (last added = first to process incoming requests)
app.add_middleware(AuthMiddleware)

# CORS must be added LAST so it processes incoming requests FIRST (handles OPTIONS preflight)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        origin.strip() for origin in get_settings().cors_origin.split(",") if origin.strip()
    ],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-API-Key", "X-Request-ID"],
    expose_headers=["X-Request-ID"],
)


# Request ID and access log middleware
@app.middleware("http")
async def add_request_id_middleware(request: Request, call_next):
    """Add request ID to all requests and log each one."""
    request_id = request.headers.get("X-Request-ID") or set_request_id()
    set_request_id(request_id)

    start = time.perf_counter()
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id

    logger.info(
        "HTTP request",
        method=request.method,
        path=request.url.path,
        status=response.status_code,
        client_ip=request.client.host if request.client else "unknown",
        user_agent=request.headers.get("User-Agent", ""),
        latency=round(time.perf_counter() - start, 6),
    )
    return response


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Anything that escapes the router becomes an internal error envelope."""
    logger.exception("Unhandled error", path=request.url.path)
    error = ToolkitError(str(exc) or None)
    return JSONResponse(status_code=500, content=error_response(error).model_dump())


def unavailable_response(error: ServiceUnavailable) -> JSONResponse:
    return JSONResponse(
        status_code=error.http_status, content=error_response(error).model_dump()
    )


# =============================================================================
# Health and Info Endpoints
# =============================================================================


@app.get("/health")
async def health(request: Request) -> JSONResponse:
    """Liveness probe; reports draining once shutdown has begun."""
    if not get_services(request).coordinator.is_accepting:
        return JSONResponse(status_code=503, content={"status": "draining"})
    return JSONResponse(content={"status": "healthy"})


@app.get("/stats")
async def stats(request: Request) -> dict[str, Any]:
    """Operational snapshot: connections, categories and in-flight requests."""
    services = get_services(request)
    settings = services.settings
    return {
        "server_info": {
            "name": settings.server_name,
            "version": settings.server_version,
        },
        "connections": services.pool.stats().model_dump(),
        "categories": services.registry.categories(),
        "tools_available": services.registry.tool_count,
        "in_flight": services.coordinator.in_flight,
        "state": services.coordinator.state.value,
        "timestamp": datetime.now(timezone.utc).isoformat(timespec="seconds"),
    }


@app.get("/")
async def root(request: Request) -> dict[str, Any]:
    """Root endpoint with server info."""
    services = get_services(request)
    return {
        "name": services.settings.server_name,
        "version": services.settings.server_version,
        "endpoints": {
            "health": "/health",
            "stats": "/stats",
            "mcp": "/mcp",
            "stream": "/mcp/stream",
        },
        "tools_available": services.registry.tool_count,
        "mcp_protocol_version": PROTOCOL_VERSION,
    }


# =============================================================================
# MCP Endpoints
# =============================================================================


@app.post("/mcp")
async def mcp_endpoint(request: Request) -> JSONResponse:
    """
    JSON-RPC endpoint.

    Accepts one JSON-RPC 2.0 message per request and returns its response.
    """
    services = get_services(request)
    try:
        admission = services.coordinator.admit()
    except ServiceUnavailable as e:
        logger.warning("Request refused while shutting down", path=request.url.path)
        return unavailable_response(e)

    with admission:
        body = await request.body()
        status, payload = await services.router.handle_message(body)
    return JSONResponse(status_code=status, content=payload)


@app.post("/mcp/stream")
async def mcp_stream_endpoint(request: Request):
    """
    Streaming tools/call endpoint.

    Returns an SSE stream: tool/call, then content events as the tool
    produces them, then exactly one done or error event.
    """
    services = get_services(request)
    try:
        admission = services.coordinator.admit()
    except ServiceUnavailable as e:
        logger.warning("Stream refused while shutting down", path=request.url.path)
        return unavailable_response(e)

    try:
        body = await request.body()
    except Exception:
        admission.release()
        raise

    return create_sse_response(
        admitted_events(services.dispatcher, body, admission),
        background=BackgroundTask(admission.release),
        shutdown_grace_period=services.settings.shutdown_grace_period,
    )


async def admitted_events(
    dispatcher: StreamDispatcher, body: bytes, admission: Admission
) -> AsyncGenerator[StreamEvent, None]:
    """Stream events, counting the request in-flight until the stream ends."""
    try:
        async for event in dispatcher.stream(body):
            yield event
    finally:
        admission.release()


# =============================================================================
# Main Entry Point
# =============================================================================


class DrainingServer(uvicorn.Server):
    """Uvicorn server that starts draining as soon as a stop signal arrives.

    Uvicorn waits for open connections before running the lifespan shutdown;
    requests arriving in that window are refused.
    """

    def __init__(self, config: uvicorn.Config, grace_period: float):
        super().__init__(config)
        self.grace_period = grace_period
        self._loop: asyncio.AbstractEventLoop | None = None
        self._drain_task: asyncio.Future | None = None

    async def serve(self, sockets=None) -> None:
        self._loop = asyncio.get_running_loop()
        await super().serve(sockets=sockets)

    def handle_exit(self, sig, frame) -> None:
        if self._loop is not None and not self.should_exit:
            logger.info("Shutdown signal received", signal=sig)
            self._loop.call_soon_threadsafe(self._begin_drain)
        super().handle_exit(sig, frame)

    def _begin_drain(self) -> None:
        services: Services | None = getattr(app.state, "services", None)
        if services is not None:
            self._drain_task = asyncio.ensure_future(
                services.coordinator.shutdown(self.grace_period)
            )


def main() -> None:
    """Run the server with uvicorn."""
    settings = get_settings()
    config = uvicorn.Config(
        app,
        host=settings.host,
        port=settings.port,
        timeout_keep_alive=settings.idle_timeout,
        # Outlasts the streams' own grace period so they can finish first
        timeout_graceful_shutdown=math.ceil(settings.shutdown_grace_period) + 1,
        log_config=None,
    )
    server = DrainingServer(config, grace_period=settings.shutdown_grace_period)
    server.run()


if __name__ == "__main__":
    main()
