"""Shared fixtures."""

import asyncio
import io
from pathlib import Path
from typing import Any

import pytest

from software_builder.chat import Console
from software_builder.llm import CompletionClient, CompletionOptions, CompletionResult
from software_builder.logging import JSONLLogger, configure_logger
from software_builder.memory import MemoryManager
from software_builder.session import SessionManager
from software_builder.store import Store


class ScriptedClient(CompletionClient):
    """Completion client that replays canned results.

    If ``gate`` is set, each request waits for it before answering, which
    lets a test keep a request in flight.
    """

    def __init__(self, results: list[CompletionResult] | None = None, model: str = "test-model"):
        self.results = list(results or [])
        self.calls: list[dict[str, Any]] = []
        self.gate: asyncio.Event | None = None
        self._model = model

    @property
    def model(self) -> str:
        return self._model

    def supported_models(self) -> list[str]:
        return [self._model]

    def validate_config(self) -> str | None:
        return None

    async def complete(
        self,
        messages: list[dict[str, Any]],
        options: CompletionOptions | None = None,
    ) -> CompletionResult:
        self.calls.append({"messages": messages, "options": options})
        if self.gate is not None:
            await self.gate.wait()
        if self.results:
            return self.results.pop(0)
        return CompletionResult(content="ok", model=self._model)


@pytest.fixture(autouse=True)
def event_log(tmp_path: Path) -> JSONLLogger:
    """Point the global event log at a temporary directory."""
    return configure_logger(tmp_path / "logs")


@pytest.fixture
def store(tmp_path: Path) -> Store:
    """Create a Store with a temporary database."""
    store = Store(tmp_path / "test.db")
    store.init_db()
    yield store
    store.close()


@pytest.fixture
def sessions(store: Store, event_log: JSONLLogger) -> SessionManager:
    return SessionManager(store, event_log=event_log)


@pytest.fixture
def memories(store: Store, event_log: JSONLLogger) -> MemoryManager:
    return MemoryManager(store, event_log=event_log)


@pytest.fixture
def console() -> Console:
    return Console(out=io.StringIO(), color=False)


@pytest.fixture
def scripted_client() -> ScriptedClient:
    return ScriptedClient()


@pytest.fixture
def make_client():
    """Factory for ScriptedClient with canned results."""
    return ScriptedClient
