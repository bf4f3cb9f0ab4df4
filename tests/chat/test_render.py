"""Tests for terminal rendering."""

import asyncio
import io
from datetime import datetime, timezone

import pytest

from software_builder.chat import Console
from software_builder.chat.render import Spinner, format_datetime, format_timestamp, truncate
from software_builder.models import Message, Role, Session, SessionStats


def make_message(**overrides) -> Message:
    fields = {
        "id": "m1",
        "session_id": "s1",
        "role": Role.ASSISTANT,
        "content": "Hi there!",
        "sequence": 0,
    }
    fields.update(overrides)
    return Message(**fields)


class TestFormatting:
    def test_truncate_short(self):
        assert truncate("hello") == "hello"

    def test_truncate_exact_length(self):
        assert truncate("x" * 50) == "x" * 50

    def test_truncate_long(self):
        assert truncate("x" * 60) == "x" * 50 + "..."

    def test_format_timestamp(self):
        value = datetime(2026, 3, 1, 12, 30, 5, tzinfo=timezone.utc)
        assert format_timestamp(value) == value.astimezone().strftime("%H:%M:%S")

    def test_format_datetime_none(self):
        assert format_datetime(None) == "-"


class TestConsole:
    def test_plain_output_has_no_escape_codes(self, console: Console):
        console.message(make_message(model="m-1"))
        text = console.out.getvalue()
        assert "Assistant: Hi there!" in text
        assert "(m-1)" in text
        assert "\033[" not in text

    def test_color_output(self):
        console = Console(out=io.StringIO(), color=True)
        console.error("boom")
        assert "\033[31m" in console.out.getvalue()

    def test_non_tty_defaults_to_plain(self):
        assert Console(out=io.StringIO()).color is False

    def test_empty_history(self, console: Console):
        console.history([])
        assert "(No messages yet)" in console.out.getvalue()

    def test_history_in_order(self, console: Console):
        console.history([
            make_message(role=Role.USER, content="first", sequence=0),
            make_message(content="second", sequence=1),
        ])
        text = console.out.getvalue()
        assert text.index("User: first") < text.index("Assistant: second")

    def test_header(self, console: Console):
        console.header(Session(id="abc", project_path="/p", title="Session at /p"))
        text = console.out.getvalue()
        assert "Session at /p" in text
        assert "abc" in text

    def test_stats(self, console: Console):
        console.stats(SessionStats(session_id="s1", title="t", total=3, user=2, assistant=1))
        assert "3 messages (2 user, 1 assistant, 0 tool calls)" in console.out.getvalue()


class TestSpinner:
    @pytest.mark.asyncio
    async def test_disabled_without_color(self, console: Console):
        spinner = Spinner(console)
        spinner.start()
        assert not spinner.running
        spinner.stop()

    @pytest.mark.asyncio
    async def test_start_and_stop(self):
        console = Console(out=io.StringIO(), color=True)
        spinner = Spinner(console, interval=0.01)
        spinner.start()
        assert spinner.running
        await asyncio.sleep(0.05)
        spinner.stop()
        assert not spinner.running
        assert "Thinking..." in console.out.getvalue()
