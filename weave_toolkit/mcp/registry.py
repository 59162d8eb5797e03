"""Categorized tool registry."""

import asyncio
import contextlib
import importlib
import json
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from weave_toolkit.config.loader import CategoryConfig, ToolManagerConfig
from weave_toolkit.mcp.errors import (
    CategoryDisabled,
    CategoryFull,
    CategoryNotFound,
    RateLimitExceeded,
    ToolExecutionError,
    ToolkitError,
    ToolNotFound,
    ToolTimeout,
)
from weave_toolkit.mcp.models import Category, TextContent, ToolCallResult, ToolInfo
from weave_toolkit.tools.base import CallContext, EmitCallback, StreamingTool, Tool
from weave_toolkit.utils.logging import get_logger
from weave_toolkit.utils.rate_limit import RateLimiter

logger = get_logger(__name__)


def effective_timeout(caller: float | None, category: float | None) -> float | None:
    """Combine the caller's remaining time with the category timeout.

    ``caller`` is the time left before the caller's deadline (None when the
    caller has none, 0 when it already passed). A category timeout of 0 or
    None means the category imposes none. The sooner limit wins.
    """
    limits = []
    if caller is not None:
        limits.append(max(caller, 0.0))
    if category:
        limits.append(category)
    return min(limits) if limits else None


def render_output(output: Any) -> str:
    """Serialize raw tool output into the text of a result envelope."""
    if isinstance(output, bytes):
        return output.decode("utf-8")
    if isinstance(output, str):
        return output
    try:
        return json.dumps(
            output, ensure_ascii=False, separators=(",", ":"), allow_nan=False
        )
    except (TypeError, ValueError) as e:
        raise ToolExecutionError(f"failed to serialize result: {e}") from e


def parse_category(category: Category | str) -> Category:
    try:
        return Category(category)
    except ValueError:
        raise CategoryNotFound(str(category)) from None


@dataclass
class CategoryState:
    """Runtime state of one category."""

    name: Category
    enabled: bool
    config: CategoryConfig
    tools: dict[str, Tool] = field(default_factory=dict)


@dataclass(frozen=True)
class ResolvedTool:
    """What an invocation needs, copied out from under the registry lock."""

    tool: Tool
    category: Category
    timeout: float | None


class ToolRegistry:
    """Registry of tools grouped into categories.

    A single lock guards the category maps. It is held for lookups and
    mutations only, never while a tool runs.
    """

    def __init__(
        self,
        config: ToolManagerConfig | None = None,
        rate_limiter: RateLimiter | None = None,
    ) -> None:
        config = config or ToolManagerConfig()
        self._lock = threading.RLock()
        self._categories: dict[Category, CategoryState] = {}
        self._rate_limiter = rate_limiter or RateLimiter()
        self._default_timeout = config.global_.default_timeout
        max_calls = config.global_.max_concurrent_calls
        self._call_slots = asyncio.Semaphore(max_calls) if max_calls > 0 else None
        self._init_categories(config)

    def _init_categories(self, config: ToolManagerConfig) -> None:
        for name, category_config in config.categories.items():
            try:
                category = Category(name)
            except ValueError:
                logger.warning("Unknown category in config, skipping", category=name)
                continue
            self._categories[category] = CategoryState(
                name=category,
                enabled=category_config.enabled,
                config=category_config.model_copy(),
            )

        # Every predefined category exists; missing ones start disabled
        for category in Category:
            if category not in self._categories:
                self._categories[category] = CategoryState(
                    name=category, enabled=False, config=CategoryConfig()
                )

    def _category(self, category: Category | str) -> CategoryState:
        state = self._categories.get(parse_category(category))
        if state is None:
            raise CategoryNotFound(str(category))
        return state

    # -------------------------------------------------------------------------
    # Registration and administration
    # -------------------------------------------------------------------------

    def register(self, tool: Tool) -> None:
        """Register a tool under its declared category."""
        with self._lock:
            state = self._category(tool.category)
            if not state.enabled:
                raise CategoryDisabled(state.name.value)

            replacing = tool.name in state.tools
            if not replacing and len(state.tools) >= state.config.max_tools:
                raise CategoryFull(state.name.value, state.config.max_tools)

            shadowed = [
                other.name.value
                for other in self._categories.values()
                if other is not state and tool.name in other.tools
            ]
            state.tools[tool.name] = tool

        if replacing:
            logger.warning(
                "Tool already registered, overwriting",
                tool=tool.name,
                category=state.name.value,
            )
        if shadowed:
            logger.warning(
                "Tool name also registered in other categories",
                tool=tool.name,
                category=state.name.value,
                other_categories=shadowed,
            )
        logger.info("Tool registered", tool=tool.name, category=state.name.value)

    def set_category_enabled(self, category: Category | str, enabled: bool) -> None:
        """Enable or disable a category for subsequent lookups."""
        with self._lock:
            state = self._category(category)
            state.enabled = enabled
        logger.info(
            "Category enabled" if enabled else "Category disabled",
            category=state.name.value,
        )

    def update_category_config(
        self, category: Category | str, config: CategoryConfig
    ) -> None:
        """Replace max_tools, rate_limit and timeout of a category.

        The enabled flag is left alone; use set_category_enabled for that.
        """
        with self._lock:
            state = self._category(category)
            state.config = config.model_copy(update={"enabled": state.enabled})
        logger.info(
            "Category config updated",
            category=state.name.value,
            config=config.model_dump(exclude={"enabled"}),
        )

    def load_provider(self, provider_name: str) -> bool:
        """
        Load a provider module and register its tools.

        Providers live in weave_toolkit/tools/<provider_name>/tools.py and
        expose a register_tools(registry) function.
        """
        module_path = f"weave_toolkit.tools.{provider_name}.tools"
        try:
            module = importlib.import_module(module_path)
        except ImportError as e:
            logger.warning("Could not import provider", provider=provider_name, error=str(e))
            return False

        register_tools = getattr(module, "register_tools", None)
        if register_tools is None:
            logger.warning("Provider has no register_tools function", provider=provider_name)
            return False

        try:
            register_tools(self)
        except ToolkitError as e:
            logger.warning(
                "Provider tools not registered", provider=provider_name, error=e.message
            )
            return False
        return True

    def load_providers(self, provider_names: list[str]) -> dict[str, bool]:
        """Load multiple providers, returning success status for each."""
        return {name: self.load_provider(name) for name in provider_names}

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def list_tools(self, category: Category | str | None = None) -> list[ToolInfo]:
        """Snapshot of the tools in enabled categories."""
        with self._lock:
            if category is None:
                states = [self._categories[c] for c in Category]
            else:
                states = [self._category(category)]

            tools = []
            for state in states:
                if not state.enabled:
                    continue
                for name in sorted(state.tools):
                    tool = state.tools[name]
                    tools.append(
                        ToolInfo(
                            name=tool.name,
                            description=tool.description,
                            category=state.name,
                            enabled=True,
                            inputSchema=dict(tool.input_schema),
                        )
                    )
            return tools

    def lookup(self, name: str) -> Tool | None:
        """Find a tool in enabled categories; earlier categories win."""
        with self._lock:
            found = self._find(name)
            return found.tools[name] if found else None

    def _find(self, name: str) -> CategoryState | None:
        for category in Category:
            state = self._categories[category]
            if state.enabled and name in state.tools:
                return state
        return None

    def categories(self) -> dict[str, dict[str, Any]]:
        """Snapshot of every category's policy and size."""
        with self._lock:
            snapshot = {}
            for category in Category:
                state = self._categories[category]
                snapshot[category.value] = {
                    "enabled": state.enabled,
                    "max_tools": state.config.max_tools,
                    "rate_limit": state.config.rate_limit,
                    "timeout": state.config.timeout,
                    "tool_count": len(state.tools),
                }
            return snapshot

    @property
    def tool_count(self) -> int:
        """Return the number of tools visible to callers."""
        with self._lock:
            return sum(
                len(state.tools) for state in self._categories.values() if state.enabled
            )

    # -------------------------------------------------------------------------
    # Invocation
    # -------------------------------------------------------------------------

    def _resolve(self, name: str) -> ResolvedTool:
        with self._lock:
            state = self._find(name)
            if state is None:
                logger.error("Tool not found", tool=name)
                raise ToolNotFound(name)

            limit = state.config.rate_limit
            allowed, _ = self._rate_limiter.is_allowed(state.name.value, limit)
            if not allowed:
                logger.warning(
                    "Category rate limit exceeded", tool=name, category=state.name.value
                )
                raise RateLimitExceeded(state.name.value, limit)

            return ResolvedTool(
                tool=state.tools[name],
                category=state.name,
                timeout=state.config.timeout or self._default_timeout or None,
            )

    async def invoke(
        self, ctx: CallContext, name: str, arguments: dict[str, Any]
    ) -> ToolCallResult:
        """Call a tool and wrap its output in a text result envelope."""
        resolved = self._resolve(name)
        return await self._run(
            ctx, resolved, arguments, lambda: resolved.tool.execute(ctx, arguments)
        )

    async def invoke_stream(
        self,
        ctx: CallContext,
        name: str,
        arguments: dict[str, Any],
        emit: EmitCallback,
    ) -> ToolCallResult:
        """Call a tool in streaming mode, falling back to invoke semantics."""
        resolved = self._resolve(name)
        tool = resolved.tool
        if not isinstance(tool, StreamingTool):
            logger.warning(
                "Tool does not support streaming, returning regular execution result",
                tool=name,
            )
            return await self._run(
                ctx, resolved, arguments, lambda: tool.execute(ctx, arguments)
            )

        return await self._run(
            ctx,
            resolved,
            arguments,
            lambda: tool.execute_stream(ctx, arguments, emit),
            streaming=True,
        )

    async def _run(
        self,
        ctx: CallContext,
        resolved: ResolvedTool,
        arguments: dict[str, Any],
        call: Callable[[], Awaitable[Any]],
        streaming: bool = False,
    ) -> ToolCallResult:
        name = resolved.tool.name
        category = resolved.category.value
        label = "Stream tool call" if streaming else "Tool call"
        timeout = effective_timeout(ctx.remaining(), resolved.timeout)

        logger.info(
            f"{label} started",
            tool=name,
            category=category,
            args=arguments,
            timeout=timeout,
        )

        async def run_in_slot() -> Any:
            async with self._slot():
                return await call()

        start = time.perf_counter()
        try:
            # Waiting for a free slot counts against the timeout
            output = await asyncio.wait_for(run_in_slot(), timeout)
        except asyncio.TimeoutError:
            logger.error(
                f"{label} timed out",
                tool=name,
                category=category,
                duration=time.perf_counter() - start,
            )
            raise ToolTimeout(name, timeout or 0.0) from None
        except Exception as e:
            logger.error(
                f"{label} failed",
                tool=name,
                category=category,
                duration=time.perf_counter() - start,
                error=str(e),
            )
            raise

        logger.info(
            f"{label} completed successfully",
            tool=name,
            category=category,
            duration=time.perf_counter() - start,
        )
        return ToolCallResult(content=[TextContent(text=render_output(output))])

    def _slot(self) -> contextlib.AbstractAsyncContextManager:
        if self._call_slots is None:
            return contextlib.nullcontext()
        return self._call_slots
