"""Tests for HTTPCompletionClient."""

import json

import httpx
import pytest

from software_builder.llm import (
    CompletionOptions,
    ErrorKind,
    HTTPClientConfig,
    HTTPCompletionClient,
    StreamChunk,
)
from software_builder.llm.http_client import SUPPORTED_MODELS

MESSAGES = [{"role": "user", "content": "Hello"}]


def make_config(**overrides) -> HTTPClientConfig:
    fields = {"api_token": "hf_test", "model": "Qwen/QwQ-32B"}
    fields.update(overrides)
    return HTTPClientConfig(**fields)


def ok_body(content: str = "Hi there!") -> dict:
    return {
        "model": "Qwen/QwQ-32B",
        "choices": [
            {
                "message": {"role": "assistant", "content": content},
                "finish_reason": "stop",
            }
        ],
        "usage": {"prompt_tokens": 5, "completion_tokens": 3, "total_tokens": 8},
    }


def make_client(handler, **overrides) -> HTTPCompletionClient:
    return HTTPCompletionClient(make_config(**overrides), transport=httpx.MockTransport(handler))


class TestConfig:
    def test_url(self):
        config = HTTPClientConfig(base_url="https://router.huggingface.co/", provider="together")
        assert config.url == "https://router.huggingface.co/together/chat/completions"

    def test_defaults(self):
        config = HTTPClientConfig()
        assert config.provider == "hyperbolic"
        assert config.timeout == 30.0

    def test_validate_ok(self):
        assert HTTPCompletionClient(make_config()).validate_config() is None

    @pytest.mark.parametrize("token", [None, "", "  "])
    def test_validate_missing_token(self, token):
        client = HTTPCompletionClient(make_config(api_token=token))
        assert client.validate_config() == "API token is required"

    def test_validate_missing_model(self):
        client = HTTPCompletionClient(make_config(model=""))
        assert client.validate_config() == "Model is required"

    def test_supported_models(self):
        client = HTTPCompletionClient(make_config())
        assert "Qwen/Qwen2.5-Coder-32B-Instruct" in client.supported_models()
        assert client.supported_models() == SUPPORTED_MODELS


class TestComplete:
    @pytest.mark.asyncio
    async def test_request_shape(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=ok_body())

        client = make_client(handler)
        await client.complete(MESSAGES, CompletionOptions(max_tokens=64, temperature=0.2))

        request = seen[0]
        assert request.method == "POST"
        assert str(request.url) == "https://router.huggingface.co/hyperbolic/chat/completions"
        assert request.headers["Authorization"] == "Bearer hf_test"
        body = json.loads(request.content)
        assert body == {
            "model": "Qwen/QwQ-32B",
            "messages": MESSAGES,
            "max_tokens": 64,
            "temperature": 0.2,
            "stream": False,
        }

    @pytest.mark.asyncio
    async def test_default_options(self):
        bodies: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json=ok_body())

        await make_client(handler).complete(MESSAGES)
        assert bodies[0]["max_tokens"] == 1024
        assert bodies[0]["temperature"] == 0.7

    @pytest.mark.asyncio
    async def test_success(self):
        client = make_client(lambda request: httpx.Response(200, json=ok_body()))
        result = await client.complete(MESSAGES)

        assert result.ok
        assert result.content == "Hi there!"
        assert result.role == "assistant"
        assert result.model == "Qwen/QwQ-32B"
        assert result.finish_reason == "stop"
        assert result.usage["total_tokens"] == 8

    @pytest.mark.asyncio
    async def test_tool_calls_parsed(self):
        body = ok_body(content=None)
        body["choices"][0]["message"]["tool_calls"] = [
            {
                "id": "call_1",
                "type": "function",
                "function": {"name": "read_file", "arguments": '{"path": "a.py"}'},
            }
        ]
        client = make_client(lambda request: httpx.Response(200, json=body))
        result = await client.complete(MESSAGES)

        assert result.tool_calls[0].name == "read_file"
        assert result.tool_calls[0].arguments == {"path": "a.py"}

    @pytest.mark.asyncio
    async def test_http_error(self):
        client = make_client(lambda request: httpx.Response(500, text="boom"))
        result = await client.complete(MESSAGES)

        assert not result.ok
        assert result.error == "HTTP 500"
        assert result.status == 500
        assert result.error_kind is ErrorKind.HTTP

    @pytest.mark.asyncio
    async def test_unauthorized(self):
        client = make_client(lambda request: httpx.Response(401))
        result = await client.complete(MESSAGES)
        assert result.error == "HTTP 401"

    @pytest.mark.asyncio
    async def test_timeout(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        result = await make_client(handler).complete(MESSAGES)

        assert not result.ok
        assert result.error_kind is ErrorKind.TIMEOUT
        assert result.status is None

    @pytest.mark.asyncio
    async def test_connection_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        result = await make_client(handler).complete(MESSAGES)
        assert result.error_kind is ErrorKind.NETWORK

    @pytest.mark.asyncio
    async def test_malformed_body(self):
        client = make_client(lambda request: httpx.Response(200, text="not json"))
        result = await client.complete(MESSAGES)
        assert result.error_kind is ErrorKind.PROTOCOL

    @pytest.mark.asyncio
    async def test_missing_choices(self):
        client = make_client(lambda request: httpx.Response(200, json={"choices": []}))
        result = await client.complete(MESSAGES)
        assert result.error_kind is ErrorKind.PROTOCOL

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "body",
        [
            {"choices": [None]},
            {"choices": ["x"]},
            {"choices": [{"message": "hi"}]},
            {"choices": [{"message": {"content": None, "tool_calls": "grep"}}]},
            {"choices": [{"message": {"content": None, "tool_calls": [{"function": "grep"}]}}]},
            ["not", "an", "object"],
        ],
    )
    async def test_wrong_shape_is_protocol_error(self, body):
        client = make_client(lambda request: httpx.Response(200, json=body))
        result = await client.complete(MESSAGES)

        assert not result.ok
        assert result.error_kind is ErrorKind.PROTOCOL
        assert result.status == 200

    @pytest.mark.asyncio
    async def test_invalid_config_skips_request(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, json=ok_body())

        result = await make_client(handler, api_token=None).complete(MESSAGES)

        assert calls == []
        assert result.error == "API token is required"
        assert result.error_kind is ErrorKind.CONFIG


class TestStream:
    @pytest.mark.asyncio
    async def test_chunks(self):
        chunks: list[StreamChunk] = []
        client = make_client(lambda request: httpx.Response(200, json=ok_body("abc")))

        result = await client.complete_stream(MESSAGES, None, chunks.append)

        assert result.content == "abc"
        assert chunks == [StreamChunk(type="content", data="abc"), StreamChunk(type="done")]

    @pytest.mark.asyncio
    async def test_failure_still_sends_done(self):
        chunks: list[StreamChunk] = []
        client = make_client(lambda request: httpx.Response(503))

        result = await client.complete_stream(MESSAGES, None, chunks.append)

        assert result.status == 503
        assert chunks == [StreamChunk(type="done")]
