"""Tests for GroqCompletionClient."""

from unittest.mock import AsyncMock, MagicMock

import groq
import httpx
import pytest

from software_builder.llm import CompletionOptions, ErrorKind, GroqCompletionClient

MESSAGES = [{"role": "user", "content": "Hello"}]
REQUEST = httpx.Request("POST", "https://api.groq.com/openai/v1/chat/completions")


def mock_response(content: str | None = "LLM response") -> MagicMock:
    response = MagicMock()
    response.model = "test-model"
    response.usage.model_dump.return_value = {"total_tokens": 7}
    choice = MagicMock()
    choice.message.content = content
    choice.message.role = "assistant"
    choice.message.tool_calls = None
    choice.finish_reason = "stop"
    response.choices = [choice]
    return response


def mock_groq(**create_kwargs) -> MagicMock:
    client = MagicMock()
    client.chat.completions.create = AsyncMock(**create_kwargs)
    return client


class TestGroqCompletionClient:
    """Tests for the Groq wrapper."""

    def test_stores_model(self) -> None:
        client = GroqCompletionClient(MagicMock(), model="test-model")
        assert client.model == "test-model"

    def test_default_model(self) -> None:
        client = GroqCompletionClient(MagicMock())
        assert client.model == "llama-3.1-70b-versatile"
        assert client.model in client.supported_models()

    def test_validate_blank_key(self) -> None:
        client = GroqCompletionClient(MagicMock(), api_key=" ")
        assert client.validate_config() == "API token is required"

    def test_validate_ok(self) -> None:
        assert GroqCompletionClient(MagicMock(), api_key="gsk_x").validate_config() is None

    @pytest.mark.asyncio
    async def test_complete(self) -> None:
        groq_client = mock_groq(return_value=mock_response())
        client = GroqCompletionClient(groq_client, model="test-model")

        result = await client.complete(MESSAGES, CompletionOptions(max_tokens=10, temperature=0.1))

        assert result.ok
        assert result.content == "LLM response"
        assert result.model == "test-model"
        assert result.usage == {"total_tokens": 7}
        groq_client.chat.completions.create.assert_called_once_with(
            model="test-model",
            messages=MESSAGES,
            max_tokens=10,
            temperature=0.1,
            stream=False,
        )

    @pytest.mark.asyncio
    async def test_none_content_becomes_empty(self) -> None:
        client = GroqCompletionClient(mock_groq(return_value=mock_response(content=None)))
        result = await client.complete(MESSAGES)
        assert result.content == ""

    @pytest.mark.asyncio
    async def test_tool_calls(self) -> None:
        response = mock_response(content=None)
        tool_call = MagicMock()
        tool_call.id = "call_1"
        tool_call.function.name = "grep"
        tool_call.function.arguments = '{"pattern": "TODO"}'
        response.choices[0].message.tool_calls = [tool_call]

        result = await GroqCompletionClient(mock_groq(return_value=response)).complete(MESSAGES)

        assert result.tool_calls[0].id == "call_1"
        assert result.tool_calls[0].arguments == {"pattern": "TODO"}

    @pytest.mark.asyncio
    async def test_timeout(self) -> None:
        groq_client = mock_groq(side_effect=groq.APITimeoutError(request=REQUEST))
        result = await GroqCompletionClient(groq_client).complete(MESSAGES)
        assert result.error_kind is ErrorKind.TIMEOUT

    @pytest.mark.asyncio
    async def test_status_error(self) -> None:
        error = groq.APIStatusError(
            "server error", response=httpx.Response(500, request=REQUEST), body=None
        )
        result = await GroqCompletionClient(mock_groq(side_effect=error)).complete(MESSAGES)

        assert result.error == "HTTP 500"
        assert result.status == 500
        assert result.error_kind is ErrorKind.HTTP

    @pytest.mark.asyncio
    async def test_empty_choices(self) -> None:
        response = mock_response()
        response.choices = []
        result = await GroqCompletionClient(mock_groq(return_value=response)).complete(MESSAGES)

        assert not result.ok
        assert result.error_kind is ErrorKind.PROTOCOL

    @pytest.mark.asyncio
    async def test_response_validation_error(self) -> None:
        error = groq.APIResponseValidationError(
            response=httpx.Response(200, request=REQUEST), body={"choices": "x"}
        )
        result = await GroqCompletionClient(mock_groq(side_effect=error)).complete(MESSAGES)

        assert not result.ok
        assert result.error_kind is ErrorKind.PROTOCOL

    @pytest.mark.asyncio
    async def test_missing_tool_arguments(self) -> None:
        response = mock_response(content=None)
        tool_call = MagicMock()
        tool_call.id = "call_1"
        tool_call.function.name = "ls"
        tool_call.function.arguments = None
        response.choices[0].message.tool_calls = [tool_call]

        result = await GroqCompletionClient(mock_groq(return_value=response)).complete(MESSAGES)

        assert result.tool_calls[0].arguments == {}

    @pytest.mark.asyncio
    async def test_connection_error(self) -> None:
        groq_client = mock_groq(side_effect=groq.APIConnectionError(request=REQUEST))
        result = await GroqCompletionClient(groq_client).complete(MESSAGES)
        assert result.error_kind is ErrorKind.NETWORK
