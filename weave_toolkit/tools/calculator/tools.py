"""Calculator provider - four-function arithmetic."""

import math
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError

from weave_toolkit.mcp.errors import ToolExecutionError
from weave_toolkit.mcp.models import Category
from weave_toolkit.mcp.registry import ToolRegistry
from weave_toolkit.tools.base import CallContext, Tool


class CalculatorArgs(BaseModel):
    """Accepts {operation, a, b} or {operation, operands: [a, b]}."""

    # Numbers must be JSON numbers; "10" and true are rejected
    model_config = ConfigDict(strict=True)

    operation: str = ""
    a: float = 0.0
    b: float = 0.0
    operands: list[float] = []

    def pair(self) -> tuple[float, float]:
        if len(self.operands) >= 2:
            return self.operands[0], self.operands[1]
        return self.a, self.b


def calculate(operation: str, a: float, b: float) -> float:
    if operation == "add":
        return a + b
    if operation == "subtract":
        return a - b
    if operation == "multiply":
        return a * b
    if operation == "divide":
        if b == 0:
            raise ToolExecutionError("division by zero")
        return a / b
    raise ToolExecutionError(f"unsupported operation: {operation}")


class CalculatorTool(Tool):
    name = "calculator"
    description = "Perform basic arithmetic operations (add, subtract, multiply, divide)"
    category = Category.MATH
    input_schema = {
        "type": "object",
        "properties": {
            "operation": {
                "type": "string",
                "enum": ["add", "subtract", "multiply", "divide"],
            },
            "a": {"type": "number"},
            "b": {"type": "number"},
            "operands": {
                "type": "array",
                "items": {"type": "number"},
                "description": "Alternative to a and b; the first two are used",
            },
        },
        "required": ["operation"],
    }

    async def execute(self, ctx: CallContext, arguments: dict[str, Any]) -> dict[str, Any]:
        try:
            args = CalculatorArgs.model_validate(arguments)
        except ValidationError as e:
            raise ToolExecutionError(f"invalid arguments: {e}") from e

        result = float(calculate(args.operation, *args.pair()))
        if not math.isfinite(result):
            raise ToolExecutionError(f"result is not a finite number: {result}")
        # Whole numbers are reported without a fractional part: 30, not 30.0
        if result.is_integer():
            return {"result": int(result)}
        return {"result": result}


def register_tools(registry: ToolRegistry) -> None:
    """Register the calculator provider's tools with the registry."""
    registry.register(CalculatorTool())
