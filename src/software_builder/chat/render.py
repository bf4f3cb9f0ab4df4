"""Terminal rendering for the chat loop.

All calendar formatting lives here; the rest of the code only handles
aware datetimes and float durations.
"""

import asyncio
import shutil
import sys
from datetime import datetime
from typing import TextIO

from ..models import Message, Role, Session, SessionStats

RESET = "\033[0m"
BOLD = "\033[1m"

COLORS = {
    "red": "\033[31m",
    "green": "\033[32m",
    "yellow": "\033[33m",
    "blue": "\033[34m",
    "magenta": "\033[35m",
    "cyan": "\033[36m",
    "white": "\033[37m",
}

ROLE_STYLES = {
    Role.USER: ("green", "User"),
    Role.ASSISTANT: ("blue", "Assistant"),
    Role.SYSTEM: ("yellow", "System"),
    Role.TOOL: ("magenta", "Tool"),
}

HELP_TEXT = """
Commands:
  /quit or /q   - Exit the chat
  /help or /h   - Show this help
  /history      - Show message history
  /clear        - Clear the screen
  /new          - Archive this session and start a fresh one
"""

SPINNER_FRAMES = "⠋⠙⠹⠸⠼⠴⠦⠧⠇⠏"


def format_timestamp(value: datetime) -> str:
    """Local wall-clock time for display."""
    return value.astimezone().strftime("%H:%M:%S")


def format_datetime(value: datetime | None) -> str:
    if value is None:
        return "-"
    return value.astimezone().strftime("%Y-%m-%d %H:%M:%S")


def truncate(text: str, max_length: int = 50) -> str:
    """Truncate text to max_length characters, marking the cut with '...'."""
    if len(text) <= max_length:
        return text
    return text[:max_length] + "..."


class Console:
    """Writes styled chat output to a text stream."""

    def __init__(self, out: TextIO | None = None, color: bool | None = None) -> None:
        self.out = out or sys.stdout
        if color is None:
            color = hasattr(self.out, "isatty") and self.out.isatty()
        self.color = color

    def style(self, text: str, fg: str | None = None, bold: bool = False) -> str:
        if not self.color:
            return text
        prefix = (BOLD if bold else "") + (COLORS.get(fg, "") if fg else "")
        return f"{prefix}{text}{RESET}" if prefix else text

    def print(self, text: str = "", fg: str | None = None, bold: bool = False) -> None:
        self.out.write(self.style(text, fg, bold) + "\n")
        self.out.flush()

    def header(self, session: Session) -> None:
        width = min(shutil.get_terminal_size((80, 24)).columns, 80)
        line = "─" * width
        self.print(line, "cyan", bold=True)
        self.print(f"  Session: {session.title}", "cyan", bold=True)
        self.print(f"  ID:      {session.id}", "cyan")
        self.print(line, "cyan", bold=True)

    def help(self) -> None:
        self.print(HELP_TEXT, "yellow")

    def message(self, message: Message) -> None:
        fg, name = ROLE_STYLES.get(message.role, ("white", message.role.value))
        prefix = self.style(f"[{format_timestamp(message.timestamp)}] ", "white")
        label = self.style(f"{name}: ", fg, bold=True)
        suffix = self.style(f"  ({message.model})", "white") if message.model else ""
        self.out.write(f"{prefix}{label}{message.content}{suffix}\n")
        self.out.flush()

    def history(self, messages: list[Message]) -> None:
        if not messages:
            self.print("  (No messages yet)", "white")
            return
        self.print("\n─── Message History ───", "cyan", bold=True)
        for message in messages:
            self.message(message)

    def stats(self, stats: SessionStats) -> None:
        self.print(
            f"  {stats.total} messages ({stats.user} user, {stats.assistant} assistant, "
            f"{stats.tool_calls} tool calls)",
            "white",
        )

    def notice(self, text: str) -> None:
        self.print(text, "green")

    def warning(self, text: str) -> None:
        self.print(f"⚠ {text}", "yellow")

    def error(self, text: str) -> None:
        self.print(f"❌ {text}", "red")

    def clear(self) -> None:
        self.out.write("\033[2J\033[H")
        self.out.flush()

    def prompt(self) -> str:
        return "\n> "


class Spinner:
    """Animated 'thinking' indicator shown while a completion is in flight."""

    def __init__(self, console: Console, label: str = "Thinking...", interval: float = 0.1) -> None:
        self.console = console
        self.label = label
        self.interval = interval
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if not self.console.color or self.running:
            return
        self._task = asyncio.create_task(self._animate())

    def stop(self) -> None:
        if self._task is None:
            return
        if not self._task.done():
            self._task.cancel()
            self.console.out.write("\r\033[K")
            self.console.out.flush()
        self._task = None

    async def _animate(self) -> None:
        frame = 0
        while True:
            glyph = SPINNER_FRAMES[frame % len(SPINNER_FRAMES)]
            self.console.out.write(f"\r{self.console.style(glyph, 'cyan')} {self.label}")
            self.console.out.flush()
            frame += 1
            await asyncio.sleep(self.interval)
