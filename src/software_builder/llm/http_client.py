"""Completion client for OpenAI-compatible chat-completion endpoints over HTTP."""

import json
import logging
from dataclasses import dataclass
from typing import Any

import httpx

from ..errors import CompletionError, NetworkError, RequestTimeoutError
from ..models import ToolCall
from .base import CompletionClient, CompletionOptions, CompletionResult, ErrorKind

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://router.huggingface.co"
DEFAULT_PROVIDER = "hyperbolic"
DEFAULT_TIMEOUT = 30.0

# Model ids served by the default provider.
SUPPORTED_MODELS = [
    "meta-llama/Meta-Llama-3.1-8B-Instruct",
    "meta-llama/Meta-Llama-3.1-70B-Instruct",
    "meta-llama/Llama-3.3-70B-Instruct",
    "meta-llama/Llama-3.2-3B-Instruct",
    "mistralai/Pixtral-12B-2409",
    "deepseek-ai/DeepSeek-V3",
    "deepseek-ai/DeepSeek-R1",
    "Qwen/Qwen2.5-Coder-32B-Instruct",
    "Qwen/Qwen2.5-72B-Instruct",
    "Qwen/QwQ-32B",
]


@dataclass
class HTTPClientConfig:
    """Configuration for the HTTP completion client.

    Attributes:
        api_token: Bearer token sent with every request.
        model: Model identifier.
        provider: Path segment selecting the inference provider.
        base_url: Router base URL.
        timeout: Request timeout in seconds.
    """

    api_token: str | None = None
    model: str | None = None
    provider: str = DEFAULT_PROVIDER
    base_url: str = DEFAULT_BASE_URL
    timeout: float = DEFAULT_TIMEOUT

    @property
    def url(self) -> str:
        return f"{self.base_url.rstrip('/')}/{self.provider}/chat/completions"


def _parse_tool_calls(raw: list[dict[str, Any]] | None) -> list[ToolCall]:
    if raw is not None and not isinstance(raw, list):
        raise ValueError("tool_calls is not a list")
    calls = []
    for tc in raw or []:
        if not isinstance(tc, dict) or not isinstance(tc.get("function") or {}, dict):
            raise ValueError("tool call is not an object")
        function = tc.get("function") or {}
        try:
            arguments = json.loads(function.get("arguments") or "{}")
        except json.JSONDecodeError:
            arguments = {}
        calls.append(ToolCall(id=tc.get("id"), name=function.get("name", ""), arguments=arguments))
    return calls


class HTTPCompletionClient(CompletionClient):
    """CompletionClient that POSTs JSON to ``<base>/<provider>/chat/completions``.

    Example:
        config = HTTPClientConfig(api_token="hf_...", model="Qwen/QwQ-32B")
        client = HTTPCompletionClient(config)
        result = await client.complete([{"role": "user", "content": "Hi"}])
    """

    def __init__(
        self,
        config: HTTPClientConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            config: Endpoint, credentials and timeout.
            transport: Optional httpx transport, used to stub the network.
        """
        self.config = config
        self._transport = transport

    @property
    def model(self) -> str:
        return self.config.model or ""

    def supported_models(self) -> list[str]:
        return list(SUPPORTED_MODELS)

    def validate_config(self) -> str | None:
        if not self.config.api_token or not self.config.api_token.strip():
            return "API token is required"
        if not self.config.model or not self.config.model.strip():
            return "Model is required"
        return None

    def _request_body(
        self,
        messages: list[dict[str, Any]],
        options: CompletionOptions,
    ) -> dict[str, Any]:
        return {
            "model": self.config.model,
            "messages": [{"role": m["role"], "content": m["content"]} for m in messages],
            "max_tokens": options.max_tokens,
            "temperature": options.temperature,
            "stream": False,
        }

    def _parse_response(self, data: dict[str, Any]) -> CompletionResult:
        """Build a result from a decoded response body.

        Raises:
            ValueError: If the body does not have the chat-completion shape.
        """
        if not isinstance(data, dict):
            raise ValueError("response body is not an object")
        choice = data["choices"][0]
        if not isinstance(choice, dict):
            raise ValueError("choice is not an object")
        message = choice.get("message") or {}
        if not isinstance(message, dict):
            raise ValueError("message is not an object")
        return CompletionResult(
            content=message.get("content"),
            role=message.get("role") or "assistant",
            tool_calls=_parse_tool_calls(message.get("tool_calls")),
            usage=data.get("usage") or {},
            finish_reason=choice.get("finish_reason"),
            model=data.get("model") or self.config.model,
        )

    async def _post(self, headers: dict[str, str], body: dict[str, Any]) -> httpx.Response:
        """POST the request body.

        Raises:
            RequestTimeoutError: If no response arrives within the timeout.
            NetworkError: On any other transport failure.
        """
        try:
            async with httpx.AsyncClient(
                timeout=self.config.timeout,
                transport=self._transport,
            ) as client:
                return await client.post(self.config.url, headers=headers, json=body)
        except httpx.TimeoutException as e:
            raise RequestTimeoutError(f"Request timed out after {self.config.timeout}s") from e
        except httpx.RequestError as e:
            raise NetworkError(f"Request failed: {e}") from e

    async def complete(
        self,
        messages: list[dict[str, Any]],
        options: CompletionOptions | None = None,
    ) -> CompletionResult:
        """Send a chat completion request and map every failure to a result."""
        error = self.validate_config()
        if error:
            return CompletionResult.failure(error, ErrorKind.CONFIG)

        options = options or CompletionOptions()
        headers = {
            "Authorization": f"Bearer {self.config.api_token}",
            "Content-Type": "application/json",
        }

        try:
            response = await self._post(headers, self._request_body(messages, options))
        except CompletionError as e:
            logger.warning("Completion request failed: %s", e)
            return CompletionResult.from_exception(e)

        if not response.is_success:
            return CompletionResult.failure(
                f"HTTP {response.status_code}", ErrorKind.HTTP, status=response.status_code
            )

        try:
            return self._parse_response(response.json())
        except (ValueError, KeyError, IndexError, TypeError) as e:
            logger.warning("Malformed completion response: %s", e)
            return CompletionResult.failure(
                f"Malformed response: {e}", ErrorKind.PROTOCOL, status=response.status_code
            )
