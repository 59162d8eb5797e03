"""Tests for the categorized tool registry."""

import asyncio
from typing import Any

import pytest

from weave_toolkit.config.loader import CategoryConfig, ToolManagerConfig
from weave_toolkit.mcp.errors import (
    CategoryDisabled,
    CategoryFull,
    CategoryNotFound,
    RateLimitExceeded,
    ToolExecutionError,
    ToolNotFound,
    ToolTimeout,
)
from weave_toolkit.mcp.models import Category
from weave_toolkit.mcp.registry import ToolRegistry, effective_timeout, render_output
from weave_toolkit.tools.base import CallContext, Tool


class EchoTool(Tool):
    """Returns its arguments, tagged with the category it was registered under."""

    description = "Echo arguments"

    def __init__(self, name: str, category: Category, delay: float = 0):
        self.name = name
        self.category = category
        self.delay = delay

    async def execute(self, ctx: CallContext, arguments: dict[str, Any]) -> Any:
        if self.delay:
            await asyncio.sleep(self.delay)
        return {"category": self.category.value, "arguments": arguments}


class TestRegistration:
    def test_register_and_list(self, registry):
        registry.register(EchoTool("echo", Category.UTILITY))

        tools = registry.list_tools()
        assert [t.name for t in tools] == ["echo"]
        assert tools[0].category is Category.UTILITY
        assert registry.tool_count == 1

    def test_register_into_disabled_category(self, registry):
        with pytest.raises(CategoryDisabled) as exc_info:
            registry.register(EchoTool("think", Category.AI))
        assert exc_info.value.message == "category is disabled: ai"

    def test_category_capacity(self, registry):
        registry.register(EchoTool("one", Category.MATH))
        registry.register(EchoTool("two", Category.MATH))

        with pytest.raises(CategoryFull) as exc_info:
            registry.register(EchoTool("three", Category.MATH))
        assert exc_info.value.message == "category math reached maximum tools limit: 2"

    def test_overwrite_does_not_use_capacity(self, registry):
        registry.register(EchoTool("one", Category.MATH))
        registry.register(EchoTool("two", Category.MATH))
        replacement = EchoTool("two", Category.MATH)
        registry.register(replacement)

        assert registry.lookup("two") is replacement
        assert registry.categories()["math"]["tool_count"] == 2

    def test_every_category_exists(self):
        registry = ToolRegistry(ToolManagerConfig())
        snapshot = registry.categories()
        assert list(snapshot) == ["math", "ai", "system", "utility"]
        assert not any(c["enabled"] for c in snapshot.values())

    def test_unknown_config_category_is_skipped(self):
        config = ToolManagerConfig.model_validate(
            {"categories": {"weather": {"enabled": True, "max_tools": 1}}}
        )
        registry = ToolRegistry(config)
        assert "weather" not in registry.categories()

    def test_unknown_category(self, registry):
        with pytest.raises(CategoryNotFound) as exc_info:
            registry.set_category_enabled("weather", True)
        assert exc_info.value.message == "category not found: weather"


class TestAdministration:
    def test_disabled_category_hides_tools(self, registry):
        registry.register(EchoTool("echo", Category.UTILITY))
        registry.set_category_enabled(Category.UTILITY, False)

        assert registry.lookup("echo") is None
        assert registry.list_tools() == []
        assert registry.tool_count == 0

        registry.set_category_enabled("utility", True)
        assert registry.lookup("echo") is not None

    def test_update_config_keeps_enabled_flag(self, registry):
        registry.update_category_config("math", CategoryConfig(enabled=False, max_tools=7))

        math = registry.categories()["math"]
        assert math["enabled"] is True
        assert math["max_tools"] == 7

    def test_list_tools_for_one_category(self, registry):
        registry.register(EchoTool("add", Category.MATH))
        registry.register(EchoTool("echo", Category.UTILITY))

        assert [t.name for t in registry.list_tools("utility")] == ["echo"]

    def test_list_tools_precedence_then_name(self, registry):
        registry.register(EchoTool("zeta", Category.UTILITY))
        registry.register(EchoTool("beta", Category.MATH))
        registry.register(EchoTool("alpha", Category.UTILITY))

        assert [t.name for t in registry.list_tools()] == ["beta", "alpha", "zeta"]


class TestLookup:
    def test_earlier_category_wins(self, registry):
        registry.register(EchoTool("dup", Category.UTILITY))
        registry.register(EchoTool("dup", Category.MATH))

        assert registry.lookup("dup").category is Category.MATH

    def test_shadowed_tool_visible_when_winner_disabled(self, registry):
        registry.register(EchoTool("dup", Category.UTILITY))
        registry.register(EchoTool("dup", Category.MATH))
        registry.set_category_enabled("math", False)

        assert registry.lookup("dup").category is Category.UTILITY

    def test_lookup_missing(self, registry):
        assert registry.lookup("nothing") is None


class TestInvocation:
    @pytest.mark.asyncio
    async def test_invoke_renders_json(self, registry):
        registry.register(EchoTool("echo", Category.UTILITY))

        result = await registry.invoke(CallContext(), "echo", {"x": 1})
        assert result.isError is False
        assert result.content[0].text == '{"category":"utility","arguments":{"x":1}}'

    @pytest.mark.asyncio
    async def test_invoke_missing_tool(self, registry):
        with pytest.raises(ToolNotFound) as exc_info:
            await registry.invoke(CallContext(), "foo", {})
        assert exc_info.value.message == "tool not found: foo"

    @pytest.mark.asyncio
    async def test_invoke_disabled_tool(self, registry):
        registry.register(EchoTool("echo", Category.UTILITY))
        registry.set_category_enabled("utility", False)

        with pytest.raises(ToolNotFound):
            await registry.invoke(CallContext(), "echo", {})

    @pytest.mark.asyncio
    async def test_category_timeout(self, registry):
        registry.update_category_config("utility", CategoryConfig(max_tools=5, timeout=0.05))
        registry.register(EchoTool("slow", Category.UTILITY, delay=1))

        with pytest.raises(ToolTimeout) as exc_info:
            await registry.invoke(CallContext(), "slow", {})
        assert exc_info.value.message == "tool execution timed out after 0.05s: slow"

    @pytest.mark.asyncio
    async def test_caller_deadline_is_honored(self, registry):
        registry.register(EchoTool("slow", Category.UTILITY, delay=1))

        with pytest.raises(ToolTimeout):
            await registry.invoke(CallContext.with_timeout(0.05), "slow", {})

    @pytest.mark.asyncio
    async def test_expired_deadline_times_out(self, registry):
        registry.register(EchoTool("slow", Category.UTILITY, delay=0.5))
        ctx = CallContext(deadline=0.0)

        with pytest.raises(ToolTimeout):
            await registry.invoke(ctx, "slow", {})

    @pytest.mark.asyncio
    async def test_tool_error_propagates(self, registry):
        class FailingTool(Tool):
            name = "fail"
            description = "Always fails"
            category = Category.UTILITY

            async def execute(self, ctx, arguments):
                raise ToolExecutionError("nope")

        registry.register(FailingTool())
        with pytest.raises(ToolExecutionError, match="nope"):
            await registry.invoke(CallContext(), "fail", {})

    @pytest.mark.asyncio
    async def test_rate_limit(self, registry):
        registry.update_category_config("math", CategoryConfig(max_tools=2, rate_limit=1))
        registry.register(EchoTool("add", Category.MATH))

        await registry.invoke(CallContext(), "add", {})
        with pytest.raises(RateLimitExceeded) as exc_info:
            await registry.invoke(CallContext(), "add", {})
        assert exc_info.value.http_status == 429

    @pytest.mark.asyncio
    async def test_invoke_stream_falls_back_to_execute(self, registry):
        registry.register(EchoTool("echo", Category.UTILITY))
        emitted = []

        async def emit(content, index):
            emitted.append((content, index))

        result = await registry.invoke_stream(CallContext(), "echo", {}, emit)
        assert emitted == []
        assert '"category":"utility"' in result.content[0].text

    @pytest.mark.asyncio
    async def test_concurrent_call_limit(self):
        config = ToolManagerConfig.model_validate(
            {
                "categories": {"utility": {"enabled": True, "max_tools": 1}},
                "global": {"max_concurrent_calls": 1},
            }
        )
        registry = ToolRegistry(config)
        registry.register(EchoTool("slow", Category.UTILITY, delay=0.05))

        loop = asyncio.get_running_loop()
        start = loop.time()
        await asyncio.gather(
            registry.invoke(CallContext(), "slow", {}),
            registry.invoke(CallContext(), "slow", {}),
        )
        assert loop.time() - start >= 0.1


    @pytest.mark.asyncio
    async def test_waiting_for_a_slot_counts_against_deadline(self):
        config = ToolManagerConfig.model_validate(
            {
                "categories": {"utility": {"enabled": True, "max_tools": 1}},
                "global": {"max_concurrent_calls": 1},
            }
        )
        registry = ToolRegistry(config)
        registry.register(EchoTool("slow", Category.UTILITY, delay=0.5))

        holder = asyncio.create_task(registry.invoke(CallContext(), "slow", {}))
        await asyncio.sleep(0.01)

        loop = asyncio.get_running_loop()
        start = loop.time()
        with pytest.raises(ToolTimeout):
            await registry.invoke(CallContext.with_timeout(0.1), "slow", {})
        assert loop.time() - start < 0.4

        await holder


class TestProviders:
    def test_load_bundled_providers(self, registry):
        results = registry.load_providers(["calculator", "text"])
        assert results == {"calculator": True, "text": True}
        assert registry.lookup("calculator") is not None
        assert registry.lookup("stream_text_processor") is not None

    def test_load_missing_provider(self, registry):
        assert registry.load_provider("does_not_exist") is False

    def test_provider_in_disabled_category(self):
        registry = ToolRegistry(ToolManagerConfig())
        assert registry.load_provider("calculator") is False


@pytest.mark.parametrize(
    "caller,category,expected",
    [
        (None, None, None),
        (None, 0, None),
        (None, 10.0, 10.0),
        (5.0, 10.0, 5.0),
        (20.0, 10.0, 10.0),
        (3.0, 0, 3.0),
        (0.0, 10.0, 0.0),
        (-1.0, None, 0.0),
    ],
)
def test_effective_timeout(caller, category, expected):
    assert effective_timeout(caller, category) == expected


def test_render_output():
    assert render_output("plain") == "plain"
    assert render_output(b"bytes") == "bytes"
    assert render_output({"a": [1, 2]}) == '{"a":[1,2]}'
    assert render_output("ünïcode") == "ünïcode"


def test_render_output_rejects_non_finite_numbers():
    with pytest.raises(ToolExecutionError, match="failed to serialize result"):
        render_output({"result": float("nan")})
