"""Pytest configuration and fixtures."""

import json

import pytest
from fastapi.testclient import TestClient
from httpx import AsyncClient, ASGITransport
from sse_starlette.sse import AppStatus

from weave_toolkit.config.loader import ToolManagerConfig, get_settings
from weave_toolkit.main import app
from weave_toolkit.mcp.registry import ToolRegistry


@pytest.fixture
def client():
    """Synchronous test client for FastAPI app, with lifespan events."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
async def async_client():
    """Async test client for FastAPI app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture(autouse=True)
def reset_sse_exit_flag():
    """sse-starlette keeps the server exit flag at class level."""
    AppStatus.should_exit = False
    yield
    AppStatus.should_exit = False


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Let tests change MCP_* environment variables."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def tool_config():
    """Small category config: math and utility enabled."""
    return ToolManagerConfig.model_validate(
        {
            "categories": {
                "math": {"enabled": True, "max_tools": 2, "timeout": 5},
                "ai": {"enabled": False, "max_tools": 5},
                "system": {"enabled": False, "max_tools": 5},
                "utility": {"enabled": True, "max_tools": 5, "timeout": 5},
            },
            "global": {"default_timeout": 30},
        }
    )


@pytest.fixture
def registry(tool_config):
    """A fresh tool registry built from the test config."""
    return ToolRegistry(tool_config)


@pytest.fixture
def settings():
    """Get application settings."""
    return get_settings()


@pytest.fixture
def sample_jsonrpc_request():
    """Sample JSON-RPC request factory."""
    def _make_request(method: str, params: dict = None, id: int = 1):
        return {
            "jsonrpc": "2.0",
            "id": id,
            "method": method,
            "params": params or {},
        }
    return _make_request


@pytest.fixture
def parse_sse():
    """Split an SSE body into (event, data) pairs."""
    def _parse(body: str) -> list[tuple[str, dict]]:
        events = []
        for frame in body.replace("\r\n", "\n").split("\n\n"):
            kind, data = None, None
            for line in frame.split("\n"):
                if line.startswith("event:"):
                    kind = line[len("event:"):].strip()
                elif line.startswith("data:"):
                    data = json.loads(line[len("data:"):].strip())
            if kind is not None:
                events.append((kind, data))
        return events
    return _parse
