"""Completion client backed by the Groq SDK."""

import json
import logging
from typing import Any

import groq
from groq import AsyncGroq

from ..models import ToolCall
from .base import CompletionClient, CompletionOptions, CompletionResult, ErrorKind

logger = logging.getLogger(__name__)

DEFAULT_GROQ_MODEL = "llama-3.1-70b-versatile"

GROQ_MODELS = [
    "llama-3.1-70b-versatile",
    "llama-3.1-8b-instant",
    "llama-3.3-70b-versatile",
    "mixtral-8x7b-32768",
]


class GroqCompletionClient(CompletionClient):
    """CompletionClient implementation that wraps AsyncGroq.

    Example:
        from groq import AsyncGroq

        client = GroqCompletionClient(AsyncGroq(api_key="..."), model="llama-3.1-8b-instant")
        result = await client.complete([{"role": "user", "content": "Hi"}])
    """

    def __init__(
        self,
        client: AsyncGroq,
        model: str = DEFAULT_GROQ_MODEL,
        api_key: str | None = None,
    ) -> None:
        """Initialize the Groq client wrapper.

        Args:
            client: The AsyncGroq client instance to wrap.
            model: The model to use for completions.
            api_key: Key the client was built with, checked by validate_config.
        """
        self._client = client
        self._model = model
        self._api_key = api_key

    @property
    def model(self) -> str:
        """Return the model being used."""
        return self._model

    def supported_models(self) -> list[str]:
        return list(GROQ_MODELS)

    def validate_config(self) -> str | None:
        if self._api_key is not None and not self._api_key.strip():
            return "API token is required"
        if not self._model:
            return "Model is required"
        return None

    async def complete(
        self,
        messages: list[dict[str, Any]],
        options: CompletionOptions | None = None,
    ) -> CompletionResult:
        """Complete a conversation and return the assistant turn."""
        options = options or CompletionOptions()

        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=[{"role": m["role"], "content": m["content"]} for m in messages],
                max_tokens=options.max_tokens,
                temperature=options.temperature,
                stream=False,
            )
        except groq.APITimeoutError:
            return CompletionResult.failure("Request timed out", ErrorKind.TIMEOUT)
        except groq.APIStatusError as e:
            return CompletionResult.failure(
                f"HTTP {e.status_code}", ErrorKind.HTTP, status=e.status_code
            )
        except groq.APIConnectionError as e:
            logger.warning("Groq connection failed: %s", e)
            return CompletionResult.failure(f"Request failed: {e}", ErrorKind.NETWORK)
        except groq.APIError as e:
            logger.warning("Unexpected Groq response: %s", e)
            return CompletionResult.failure(f"Malformed response: {e}", ErrorKind.PROTOCOL)

        if not response.choices:
            return CompletionResult.failure("Malformed response: no choices", ErrorKind.PROTOCOL)

        choice = response.choices[0]
        message = choice.message
        tool_calls = []
        for tc in message.tool_calls or []:
            try:
                arguments = json.loads(tc.function.arguments)
            except (json.JSONDecodeError, TypeError):
                arguments = {}
            tool_calls.append(ToolCall(id=tc.id, name=tc.function.name, arguments=arguments))

        usage = response.usage.model_dump() if response.usage is not None else {}
        return CompletionResult(
            content=message.content or "",
            role=message.role or "assistant",
            tool_calls=tool_calls,
            usage=usage,
            finish_reason=choice.finish_reason,
            model=response.model or self._model,
        )
