"""Tests for data models and their persisted payloads."""

import json

import pytest

from software_builder.errors import StorageError, ValidationError
from software_builder.models import (
    PAYLOAD_VERSION,
    Message,
    Role,
    Session,
    SessionMeta,
    ToolCall,
    ToolResult,
    parse_uuid,
)


class TestParseUuid:
    def test_valid(self):
        value = "0b2f7a4e-8c1d-4a57-9a51-2f1f0d7f8c11"
        assert parse_uuid(value) == value

    def test_normalizes_case_and_whitespace(self):
        assert parse_uuid("  0B2F7A4E-8C1D-4A57-9A51-2F1F0D7F8C11 ") == (
            "0b2f7a4e-8c1d-4a57-9a51-2f1f0d7f8c11"
        )

    @pytest.mark.parametrize("value", ["", "not-a-uuid", "1234"])
    def test_invalid(self, value: str):
        with pytest.raises(ValidationError):
            parse_uuid(value)


class TestRole:
    def test_parse_string(self):
        assert Role.parse("assistant") is Role.ASSISTANT

    def test_parse_invalid(self):
        with pytest.raises(ValidationError):
            Role.parse("robot")


class TestPayloads:
    def test_tool_call_is_versioned(self):
        data = ToolCall(id="c1", name="grep", arguments={"q": "x"}).to_dict()
        assert data["version"] == PAYLOAD_VERSION

    def test_unknown_version_rejected(self):
        with pytest.raises(StorageError):
            ToolResult.from_dict({"version": 99, "tool_call_id": "c1"})

    def test_missing_version_rejected(self):
        with pytest.raises(StorageError):
            SessionMeta.from_dict({"git_branch": "main"})

    def test_session_record_round_trip(self):
        session = Session(
            id="s1",
            project_path="/tmp/p",
            title="t",
            meta=SessionMeta(git_branch="main", active_files=["a.py"]),
            tags=frozenset({"auth", "bug-fix"}),
        )
        restored = Session.from_record(session.to_record())
        assert restored == session
        assert json.loads(session.to_record()["meta"])["version"] == PAYLOAD_VERSION

    def test_message_for_llm(self):
        message = Message(id="m1", session_id="s1", role=Role.USER, content="hi", sequence=0)
        assert message.for_llm() == {"role": "user", "content": "hi"}

    def test_corrupt_payload_raises_storage_error(self):
        record = Message(
            id="m1", session_id="s1", role=Role.USER, content="hi", sequence=0
        ).to_record()
        record["tool_call"] = "{not json"
        with pytest.raises(StorageError):
            Message.from_record(record)
