"""Completion backends."""

from .base import (
    CompletionClient,
    CompletionOptions,
    CompletionResult,
    ErrorKind,
    StreamChunk,
    build_messages,
    format_tool_result_for_llm,
)
from .factory import create_client
from .groq_client import GroqCompletionClient
from .http_client import HTTPClientConfig, HTTPCompletionClient
from .tools import FunctionTool, Tool, ToolRegistry

__all__ = [
    "CompletionClient",
    "CompletionOptions",
    "CompletionResult",
    "ErrorKind",
    "FunctionTool",
    "GroqCompletionClient",
    "HTTPClientConfig",
    "HTTPCompletionClient",
    "StreamChunk",
    "Tool",
    "ToolRegistry",
    "build_messages",
    "create_client",
    "format_tool_result_for_llm",
]
