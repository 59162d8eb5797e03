"""Capability contract every tool implements."""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from weave_toolkit.mcp.models import Category, ConnectionHandle

# emit(content, index) pushes one incremental result to the caller
EmitCallback = Callable[[str, int], Awaitable[None]]


@dataclass
class CallContext:
    """Per-call state handed to tools.

    ``deadline`` is an absolute ``time.monotonic()`` value chosen by the
    caller; None means the caller imposes no deadline.
    """

    deadline: float | None = None
    connection: ConnectionHandle | None = None
    request_id: str = ""
    values: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def with_timeout(cls, timeout: float | None, **kwargs: Any) -> "CallContext":
        deadline = time.monotonic() + timeout if timeout else None
        return cls(deadline=deadline, **kwargs)

    def remaining(self) -> float | None:
        """Seconds left before the deadline, never negative."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())


class Tool(ABC):
    """Base class for tool implementations.

    Tools are stateless with respect to a call and may be invoked
    concurrently.
    """

    name: str
    description: str
    category: Category
    input_schema: dict[str, Any] = {"type": "object", "properties": {}}

    @abstractmethod
    async def execute(self, ctx: CallContext, arguments: dict[str, Any]) -> Any:
        """Run the tool and return a JSON-serializable result or a string.

        Raise ToolExecutionError for failures the caller should see.
        """


class StreamingTool(Tool):
    """A tool that can report progress while it runs."""

    @abstractmethod
    async def execute_stream(
        self, ctx: CallContext, arguments: dict[str, Any], emit: EmitCallback
    ) -> Any:
        """Like execute, awaiting emit() for each incremental result."""
