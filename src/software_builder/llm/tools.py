"""Tools the model can call, and the registry that dispatches them."""

import inspect
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

from ..errors import ValidationError
from ..models import ToolCall, ToolResult

logger = logging.getLogger(__name__)


class Tool(ABC):
    """Base interface for all tools."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique tool name."""
        ...

    @property
    @abstractmethod
    def description(self) -> str:
        """Tool description for the model."""
        ...

    @property
    @abstractmethod
    def parameters(self) -> dict[str, Any]:
        """JSON Schema for tool parameters."""
        ...

    @abstractmethod
    async def execute(self, **kwargs: Any) -> str:
        """Run the tool and return its textual result."""
        ...

    def get_schema(self) -> dict[str, Any]:
        """Get tool schema for function calling."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }

    def validate_args(self, args: dict[str, Any]) -> str | None:
        """Check arguments against the schema. Returns an error message or None."""
        required = self.parameters.get("required", [])
        properties = self.parameters.get("properties", {})

        for field in required:
            if field not in args:
                return f"Missing required argument: {field}"

        for key, value in args.items():
            if key not in properties:
                continue
            expected_type = properties[key].get("type")
            if expected_type == "string" and not isinstance(value, str):
                return f"Argument '{key}' must be a string"
            if expected_type == "integer" and (isinstance(value, bool) or not isinstance(value, int)):
                return f"Argument '{key}' must be an integer"
            if expected_type == "boolean" and not isinstance(value, bool):
                return f"Argument '{key}' must be a boolean"

        return None


class FunctionTool(Tool):
    """Tool backed by a plain function, sync or async.

    Example:
        tool = FunctionTool(
            "word_count",
            "Count words in a text",
            {"type": "object", "properties": {"text": {"type": "string"}}},
            lambda text: str(len(text.split())),
        )
    """

    def __init__(
        self,
        name: str,
        description: str,
        parameters: dict[str, Any] | None,
        fn: Callable[..., Any],
    ) -> None:
        if not name or not name.strip():
            raise ValidationError("Tool name required")
        self._name = name
        self._description = description
        self._parameters = parameters or {"type": "object", "properties": {}}
        self._fn = fn

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str:
        return self._description

    @property
    def parameters(self) -> dict[str, Any]:
        return self._parameters

    async def execute(self, **kwargs: Any) -> str:
        result = self._fn(**kwargs)
        if inspect.isawaitable(result):
            result = await result
        return "" if result is None else str(result)


class ToolRegistry:
    """Registry for available tools."""

    def __init__(self) -> None:
        self._tools: dict[str, Tool] = {}

    def register(self, tool: Tool) -> None:
        """Register a tool."""
        if tool.name in self._tools:
            raise ValidationError(f"Tool '{tool.name}' already registered")
        self._tools[tool.name] = tool

    def unregister(self, name: str) -> None:
        self._tools.pop(name, None)

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def list_tools(self) -> list[str]:
        """List all registered tool names."""
        return list(self._tools.keys())

    def get_tools_schema(self) -> list[dict[str, Any]]:
        """Schemas for all tools, in registration order."""
        return [tool.get_schema() for tool in self._tools.values()]

    async def dispatch(
        self,
        tool_name: str,
        args: dict[str, Any],
        tool_call_id: str | None = None,
    ) -> ToolResult:
        """Run a tool by name. Failures come back as ToolResult.error, never raised."""
        tool = self._tools.get(tool_name)
        if tool is None:
            return ToolResult(tool_call_id=tool_call_id, error=f"Unknown tool: {tool_name}")

        error = tool.validate_args(args)
        if error:
            return ToolResult(tool_call_id=tool_call_id, error=error)

        try:
            output = await tool.execute(**args)
        except Exception as e:
            logger.warning("Tool %s failed: %s", tool_name, e)
            return ToolResult(tool_call_id=tool_call_id, error=f"Tool execution failed: {e}")
        return ToolResult(tool_call_id=tool_call_id, result=output)

    async def execute_call(self, call: ToolCall) -> ToolResult:
        """Dispatch a ToolCall parsed from a completion result."""
        return await self.dispatch(call.name, call.arguments, tool_call_id=call.id)
