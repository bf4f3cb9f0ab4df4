"""Completion backend interface.

This module defines the core abstractions:
- CompletionOptions: Generation parameters for one request
- CompletionResult: Outcome of a request, success or failure
- StreamChunk: A piece of a streamed response
- CompletionClient: Abstract base class for all backends

Backends never raise across ``complete``: transport and HTTP failures
come back as a CompletionResult with ``error`` set, so callers can always
render something instead of crashing.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..errors import RequestTimeoutError
from ..models import ToolCall, ToolResult

DEFAULT_MAX_TOKENS = 1024
DEFAULT_TEMPERATURE = 0.7


class ErrorKind(Enum):
    """Classification of a failed completion."""

    HTTP = "http"
    TIMEOUT = "timeout"
    NETWORK = "network"
    PROTOCOL = "protocol"
    CONFIG = "config"


@dataclass(frozen=True)
class CompletionOptions:
    max_tokens: int = DEFAULT_MAX_TOKENS
    temperature: float = DEFAULT_TEMPERATURE

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "CompletionOptions":
        data = data or {}
        return cls(
            max_tokens=data.get("max_tokens", DEFAULT_MAX_TOKENS),
            temperature=data.get("temperature", DEFAULT_TEMPERATURE),
        )


@dataclass
class CompletionResult:
    """Result of a completion request.

    On success ``content`` and ``model`` are set; on failure ``error`` is
    set, with ``status`` for HTTP errors.
    """

    content: str | None = None
    role: str = "assistant"
    tool_calls: list[ToolCall] = field(default_factory=list)
    usage: dict[str, Any] = field(default_factory=dict)
    finish_reason: str | None = None
    model: str | None = None
    error: str | None = None
    status: int | None = None
    error_kind: ErrorKind | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failure(
        cls,
        error: str,
        kind: ErrorKind,
        status: int | None = None,
    ) -> "CompletionResult":
        return cls(error=error, error_kind=kind, status=status)

    @classmethod
    def from_exception(cls, error: Exception) -> "CompletionResult":
        """Failure result for an exception raised while talking to a backend."""
        if isinstance(error, RequestTimeoutError):
            return cls.failure(str(error), ErrorKind.TIMEOUT)
        return cls.failure(str(error), ErrorKind.NETWORK)


@dataclass(frozen=True)
class StreamChunk:
    """A streamed piece of a response; ``type`` is "content" or "done"."""

    type: str
    data: str | None = None


ChunkCallback = Callable[[StreamChunk], None]


class CompletionClient(ABC):
    """Base interface for all completion backends."""

    @property
    @abstractmethod
    def model(self) -> str:
        """Model identifier requests are sent with."""
        ...

    @abstractmethod
    async def complete(
        self,
        messages: list[dict[str, Any]],
        options: CompletionOptions | None = None,
    ) -> CompletionResult:
        """Send a chat completion request."""
        ...

    @abstractmethod
    def supported_models(self) -> list[str]:
        """Model identifiers this backend accepts."""
        ...

    @abstractmethod
    def validate_config(self) -> str | None:
        """Return None when the configuration is usable, else the reason it isn't."""
        ...

    async def complete_stream(
        self,
        messages: list[dict[str, Any]],
        options: CompletionOptions | None,
        on_chunk: ChunkCallback,
    ) -> CompletionResult:
        """Streaming variant of ``complete``.

        Backends without true streaming deliver the whole content as one
        chunk, followed by a "done" chunk.
        """
        result = await self.complete(messages, options)
        if result.content:
            on_chunk(StreamChunk(type="content", data=result.content))
        on_chunk(StreamChunk(type="done"))
        return result


def build_messages(
    history: list[dict[str, Any]],
    system_prompt: str | None = None,
) -> list[dict[str, Any]]:
    """Prepend an optional system prompt to {role, content} history."""
    messages: list[dict[str, Any]] = []

    if system_prompt:
        messages.append({"role": "system", "content": system_prompt})

    messages.extend({"role": m["role"], "content": m["content"]} for m in history)
    return messages


def format_tool_result_for_llm(result: ToolResult) -> dict[str, Any]:
    """Tool-role message carrying a tool's output (or its error) back to the model."""
    return {
        "role": "tool",
        "tool_call_id": result.tool_call_id,
        "content": result.result or result.error or "No result",
    }
