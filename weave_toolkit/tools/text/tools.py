"""Text processing provider with streaming progress output."""

import asyncio
from typing import Any

from weave_toolkit.mcp.errors import ToolExecutionError
from weave_toolkit.mcp.models import Category
from weave_toolkit.mcp.registry import ToolRegistry
from weave_toolkit.tools.base import CallContext, EmitCallback, StreamingTool

DEFAULT_OPERATION = "analyze"
OPERATIONS = ("split", "reverse", "count", "analyze")


def parse_arguments(arguments: dict[str, Any]) -> tuple[str, str]:
    """Return (text, operation); operation defaults to analyze."""
    text = arguments.get("text")
    if not isinstance(text, str):
        text = ""
    operation = arguments.get("operation")
    if not isinstance(operation, str):
        operation = DEFAULT_OPERATION

    if not text:
        raise ToolExecutionError("text parameter is required")
    return text, operation


def line_count(text: str) -> int:
    return text.count("\n") + 1


def process_text(text: str, operation: str) -> Any:
    if operation == "split":
        return text.split()
    if operation == "reverse":
        return text[::-1]
    if operation == "count":
        return {
            "characters": len(text),
            "words": len(text.split()),
            "lines": line_count(text),
        }
    if operation == "analyze":
        return {
            "length": len(text),
            "word_count": len(text.split()),
            "line_count": line_count(text),
            "has_uppercase": text.lower() != text,
            "has_lowercase": text.upper() != text,
        }
    raise ToolExecutionError(f"unsupported operation: {operation}")


class StreamTextProcessor(StreamingTool):
    name = "stream_text_processor"
    description = "Process text with streaming output (split, reverse, count, analyze)"
    category = Category.UTILITY
    input_schema = {
        "type": "object",
        "properties": {
            "text": {"type": "string", "description": "The text to process"},
            "operation": {
                "type": "string",
                "enum": list(OPERATIONS),
                "default": DEFAULT_OPERATION,
            },
        },
        "required": ["text"],
    }

    def __init__(self, step_delay: float = 0.1):
        self.step_delay = step_delay

    async def execute(self, ctx: CallContext, arguments: dict[str, Any]) -> dict[str, Any]:
        text, operation = parse_arguments(arguments)
        return {
            "original_text": text,
            "result": process_text(text, operation),
            "operation": operation,
        }

    async def execute_stream(
        self, ctx: CallContext, arguments: dict[str, Any], emit: EmitCallback
    ) -> dict[str, Any]:
        text, operation = parse_arguments(arguments)

        await emit("Starting text processing...", 0)
        await self._pause()
        await emit(f"Input text length: {len(text)} characters", 1)
        await self._pause()
        await emit(f"Operation: {operation}", 2)
        await self._pause()

        try:
            output = await self.execute(ctx, arguments)
        except ToolExecutionError as e:
            await emit(f"Processing failed: {e.message}", 3)
            raise

        result = output["result"]
        if operation == "split":
            await emit("Splitting text...", 3)
            for i, word in enumerate(result):
                await emit(f"Word {i + 1}: {word}", 4 + i)
                await self._pause(0.3)
            await emit("Text split complete", 4 + len(result))
        elif operation == "reverse":
            await emit("Reversing text...", 3)
            await self._pause(2)
            await emit("Text reversal complete", 4)
            await emit(f"Result: {result}", 5)
        elif operation == "count":
            await emit("Counting text statistics...", 3)
            await self._pause(2)
            await emit(
                f"Count complete: {result['characters']} characters, "
                f"{result['words']} words, {result['lines']} lines",
                4,
            )
        else:
            await emit("Analyzing text features...", 3)
            await self._pause(2)
            await emit("Text analysis complete", 4)

        await emit("Processing complete!", 100)
        return output

    async def _pause(self, factor: float = 1.0) -> None:
        if self.step_delay > 0:
            await asyncio.sleep(self.step_delay * factor)


def register_tools(registry: ToolRegistry) -> None:
    """Register the text provider's tools with the registry."""
    registry.register(StreamTextProcessor())
