"""Interactive chat loop: input -> persistence -> completion -> persistence -> render."""

from __future__ import annotations

import asyncio
import logging
import signal
import threading
import time
from dataclasses import dataclass
from enum import Enum

from ..config import ChatConfig
from ..errors import CompletionError, UnknownCommandError, ValidationError
from ..llm import CompletionClient, CompletionOptions, CompletionResult, ErrorKind, build_messages
from ..logging import JSONLLogger, get_logger
from ..models import Role
from ..session import SessionManager
from .render import Console, Spinner

logger = logging.getLogger(__name__)


class ChatState(Enum):
    """States of the chat loop."""

    IDLE = "idle"
    AWAITING_COMPLETION = "awaiting_completion"
    QUIT = "quit"


@dataclass
class ChatContext:
    """Store handle and bound session, passed explicitly to the orchestrator."""

    sessions: SessionManager
    session_id: str


@dataclass(frozen=True)
class InputEvent:
    line: str


@dataclass(frozen=True)
class CompletionEvent:
    """A finished completion, tagged with the epoch and session that issued it."""

    epoch: int
    session_id: str
    result: CompletionResult
    duration_ms: float


@dataclass(frozen=True)
class QuitEvent:
    reason: str = "eof"


ChatEvent = InputEvent | CompletionEvent | QuitEvent


class ChatOrchestrator:
    """Single-threaded event loop driving one session.

    All orchestrator state is owned by the asyncio loop. Completion
    requests run as tasks and only post CompletionEvents to ``queue``;
    the loop applies them. Each event carries the epoch it was issued
    in, and the epoch is bumped on quit and on session switch, so late
    results never touch torn-down state.
    """

    BUSY_MESSAGE = "⏳ Still waiting for the previous reply. Try again when it arrives."

    def __init__(
        self,
        context: ChatContext,
        client: CompletionClient | None = None,
        config: ChatConfig | None = None,
        options: CompletionOptions | None = None,
        console: Console | None = None,
        event_log: JSONLLogger | None = None,
    ) -> None:
        self.context = context
        self.client = client
        self.config = config or ChatConfig()
        self.options = options or CompletionOptions()
        self.console = console or Console()
        self.event_log = event_log or get_logger()
        self.state = ChatState.IDLE
        self.epoch = 0
        self.last_error: str | None = None
        self.queue: asyncio.Queue[ChatEvent] = asyncio.Queue()
        self.spinner = Spinner(self.console)
        self._tasks: set[asyncio.Task] = set()
        self._stop_reading = threading.Event()
        self._commands = {
            "/quit": self._cmd_quit,
            "/q": self._cmd_quit,
            "/help": self._cmd_help,
            "/h": self._cmd_help,
            "/history": self._cmd_history,
            "/clear": self._cmd_clear,
            "/new": self._cmd_new,
        }

    @property
    def sessions(self) -> SessionManager:
        return self.context.sessions

    @property
    def session_id(self) -> str:
        return self.context.session_id

    # Input

    async def handle_input(self, line: str) -> None:
        """Dispatch one line of user input."""
        text = line.strip()
        if not text or self.state is ChatState.QUIT:
            return

        if text.startswith("/"):
            try:
                self.handle_command(text)
            except UnknownCommandError as e:
                self.last_error = str(e)
                self.console.error(str(e))
                self.console.print("Type /help for available commands", "white")
            return

        self.submit(text)

    def handle_command(self, text: str) -> ChatState:
        """Run a slash-command synchronously. Never starts a completion."""
        name = text.split()[0].lower()
        handler = self._commands.get(name)
        if handler is None:
            raise UnknownCommandError(name)

        self.event_log.log("command", session_id=self.session_id, command=name)
        handler()
        return self.state

    def _cmd_quit(self) -> None:
        self.console.notice("Goodbye!")
        self.quit("command")

    def _cmd_help(self) -> None:
        self.console.help()

    def _cmd_history(self) -> None:
        self.console.history(self.sessions.get_session_messages(self.session_id))
        self.console.stats(self.sessions.session_stats(self.session_id))

    def _cmd_clear(self) -> None:
        self.console.clear()

    def _cmd_new(self) -> None:
        old = self.sessions.require_session(self.session_id)
        self.sessions.archive_session(old.id)
        new_id = self.sessions.create_session(old.project_path)
        self.bind_session(new_id)
        self.event_log.log("session_reset", old_session_id=old.id, session_id=new_id)
        self.console.notice(f"✓ Archived {old.id}. New session: {new_id}")

    # Session binding

    def bind_session(self, session_id: str) -> None:
        """Switch the loop to another session, discarding in-flight results."""
        self.sessions.require_session(session_id)
        self.epoch += 1
        self.spinner.stop()
        self.context.session_id = session_id
        self.state = ChatState.IDLE
        self.last_error = None
        self.event_log.set_session_id(session_id)

    def quit(self, reason: str = "command") -> None:
        """Enter the terminal state without waiting for in-flight requests."""
        if self.state is ChatState.QUIT:
            return
        self.state = ChatState.QUIT
        self.epoch += 1
        self._stop_reading.set()
        self.spinner.stop()
        self.event_log.log("chat_quit", session_id=self.session_id, reason=reason)

    # Completion

    def submit(self, text: str) -> bool:
        """Persist a user message, then request a completion for it.

        Returns:
            True if a completion request was started.
        """
        if self.state is ChatState.AWAITING_COMPLETION:
            self.console.warning(self.BUSY_MESSAGE)
            return False

        # The user message is durable before anything is sent.
        self.sessions.store_message(self.session_id, Role.USER, text)

        if self.client is None:
            self.console.warning("Completion disabled (no API token configured). Message stored.")
            return False

        history = self.sessions.get_history(self.session_id, limit=self.config.history_limit)
        messages = build_messages(history, self.config.system_prompt)

        self.last_error = None
        self.state = ChatState.AWAITING_COMPLETION
        self.event_log.log_completion_request(
            self.client.model, len(messages), session_id=self.session_id, epoch=self.epoch
        )
        task = asyncio.create_task(self._request(self.epoch, self.session_id, messages))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        self.spinner.start()
        return True

    async def _request(self, epoch: int, session_id: str, messages: list[dict]) -> None:
        """Worker: run the request and post the outcome back to the loop."""
        assert self.client is not None
        start_time = time.monotonic()
        try:
            result = await self.client.complete(messages, self.options)
        except CompletionError as e:
            result = CompletionResult.from_exception(e)
        except Exception as e:
            logger.exception("Completion client raised")
            result = CompletionResult.failure(f"Completion failed: {e}", ErrorKind.NETWORK)
        duration_ms = (time.monotonic() - start_time) * 1000
        self.queue.put_nowait(CompletionEvent(epoch, session_id, result, duration_ms))

    def is_stale(self, event: CompletionEvent) -> bool:
        return (
            self.state is not ChatState.AWAITING_COMPLETION
            or event.epoch != self.epoch
            or event.session_id != self.session_id
        )

    def apply_completion(self, event: CompletionEvent) -> bool:
        """Apply a finished completion to the current session.

        Returns:
            False if the event was stale and discarded.
        """
        if self.is_stale(event):
            logger.debug("Discarding stale completion (epoch %d, current %d)", event.epoch, self.epoch)
            self.event_log.log(
                "stale_completion_discarded",
                session_id=event.session_id,
                epoch=event.epoch,
                current_epoch=self.epoch,
            )
            return False

        self.spinner.stop()
        result = event.result
        self.event_log.log_completion_result(
            result.ok,
            session_id=event.session_id,
            model=result.model,
            duration_ms=event.duration_ms,
            status=result.status,
            error=result.error,
            finish_reason=result.finish_reason,
        )

        if result.ok:
            message_id = self.sessions.store_message(
                self.session_id,
                Role.ASSISTANT,
                result.content or "",
                model=result.model,
                tool_call=result.tool_calls[0] if result.tool_calls else None,
                token_count=result.usage.get("total_tokens"),
            )
            stored = self.sessions.get_session_messages(self.session_id, limit=1)
            if stored and stored[-1].id == message_id:
                self.console.message(stored[-1])
        else:
            self.last_error = result.error
            self.console.error(f"Completion failed: {result.error}")

        self.state = ChatState.IDLE
        return True

    # Event loop

    async def dispatch(self, event: ChatEvent) -> None:
        if isinstance(event, InputEvent):
            await self.handle_input(event.line)
        elif isinstance(event, CompletionEvent):
            self.apply_completion(event)
        elif isinstance(event, QuitEvent):
            if self.state is not ChatState.QUIT:
                self.console.notice("\nGoodbye!")
            self.quit(event.reason)

    async def process_next_event(self) -> ChatEvent:
        """Wait for the next event on the queue and apply it."""
        event = await self.queue.get()
        await self.dispatch(event)
        return event

    def _start_reader(self, loop: asyncio.AbstractEventLoop) -> threading.Thread:
        """Read terminal lines on a daemon thread and post them to the queue."""

        def read_lines() -> None:
            while not self._stop_reading.is_set():
                try:
                    line = input(self.console.prompt())
                except EOFError:
                    loop.call_soon_threadsafe(self.queue.put_nowait, QuitEvent("eof"))
                    return
                loop.call_soon_threadsafe(self.queue.put_nowait, InputEvent(line))

        thread = threading.Thread(target=read_lines, name="chat-input", daemon=True)
        thread.start()
        return thread

    async def run(self, interactive: bool = True) -> None:
        """Run until the loop reaches QUIT.

        Args:
            interactive: Read stdin and handle Ctrl+C. When False, events
                must be fed through ``queue`` by the caller.
        """
        loop = asyncio.get_running_loop()
        session = self.sessions.require_session(self.session_id)
        self.event_log.set_session_id(session.id)
        self.event_log.log("chat_start", session_id=session.id)

        self.console.header(session)
        self.console.help()
        self.console.history(self.sessions.get_session_messages(session.id))

        handles_sigint = False
        if interactive:
            try:
                loop.add_signal_handler(
                    signal.SIGINT, lambda: self.queue.put_nowait(QuitEvent("interrupt"))
                )
                handles_sigint = True
            except (NotImplementedError, RuntimeError, ValueError):
                logger.debug("SIGINT handler not available on this platform")
            self._start_reader(loop)

        try:
            while self.state is not ChatState.QUIT:
                try:
                    await self.process_next_event()
                except ValidationError as e:
                    self.last_error = str(e)
                    self.console.error(str(e))
        finally:
            if handles_sigint:
                loop.remove_signal_handler(signal.SIGINT)
