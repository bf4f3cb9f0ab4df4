"""Data models for sessions, messages and memories."""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from .errors import StorageError, ValidationError

# Version stamped on every structured payload persisted as JSON.
PAYLOAD_VERSION = 1


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


def parse_uuid(value: str) -> str:
    """Normalize a UUID string, raising ValidationError if it is malformed."""
    try:
        return str(uuid.UUID(value.strip()))
    except (ValueError, AttributeError) as e:
        raise ValidationError(f"Invalid UUID: {value}") from e


def _dt_to_text(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _dt_from_text(value: str | None) -> datetime | None:
    if value is None:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _check_version(data: dict[str, Any], kind: str) -> None:
    version = data.get("version")
    if version != PAYLOAD_VERSION:
        raise StorageError(f"Unsupported {kind} payload version: {version!r}")


def _load_payload(text: str | None) -> dict[str, Any] | None:
    if text is None:
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise StorageError(f"Corrupt payload: {e}") from e


class SessionStatus(Enum):
    """Lifecycle of a session. Sessions are archived, never deleted."""

    ACTIVE = "active"
    PAUSED = "paused"
    ARCHIVED = "archived"


class Role(Enum):
    """Author of a message."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"
    TOOL = "tool"

    @classmethod
    def parse(cls, value: Role | str) -> Role:
        if isinstance(value, Role):
            return value
        try:
            return cls(value)
        except ValueError as e:
            raise ValidationError(f"Invalid role: {value!r}") from e


class ContentType(Enum):
    TEXT = "text"
    CODE = "code"
    TOOL_CALL = "tool_call"
    TOOL_RESULT = "tool_result"


class MemoryType(Enum):
    """Kinds of memory, each with its own default decay rate."""

    INTERACTION = "interaction"
    EPISODE = "episode"
    THEME = "theme"
    ARCHETYPE = "archetype"
    FACT = "fact"
    PREFERENCE = "preference"


@dataclass(frozen=True)
class SessionMeta:
    """Editor context attached to a session."""

    git_branch: str | None = None
    active_files: list[str] = field(default_factory=list)
    tool_registry: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": PAYLOAD_VERSION,
            "git_branch": self.git_branch,
            "active_files": list(self.active_files),
            "tool_registry": list(self.tool_registry),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SessionMeta:
        _check_version(data, "session meta")
        return cls(
            git_branch=data.get("git_branch"),
            active_files=list(data.get("active_files", [])),
            tool_registry=list(data.get("tool_registry", [])),
        )


@dataclass(frozen=True)
class ToolCall:
    """A function call requested by the model.

    Attributes:
        id: Identifier assigned by the backend.
        name: Name of the tool to call.
        arguments: Decoded JSON arguments.
    """

    id: str | None
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": PAYLOAD_VERSION,
            "id": self.id,
            "name": self.name,
            "arguments": self.arguments,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ToolCall:
        _check_version(data, "tool call")
        return cls(
            id=data.get("id"),
            name=data["name"],
            arguments=dict(data.get("arguments") or {}),
        )


@dataclass(frozen=True)
class ToolResult:
    """Outcome of executing a tool call."""

    tool_call_id: str | None
    result: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": PAYLOAD_VERSION,
            "tool_call_id": self.tool_call_id,
            "result": self.result,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ToolResult:
        _check_version(data, "tool result")
        return cls(
            tool_call_id=data.get("tool_call_id"),
            result=data.get("result"),
            error=data.get("error"),
        )


@dataclass(frozen=True)
class Session:
    """A conversation thread scoped to one working directory."""

    id: str
    project_path: str
    title: str
    status: SessionStatus = SessionStatus.ACTIVE
    created_at: datetime = field(default_factory=utcnow)
    ended_at: datetime | None = None
    meta: SessionMeta = field(default_factory=SessionMeta)
    tags: frozenset[str] = frozenset()

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "project_path": self.project_path,
            "title": self.title,
            "status": self.status.value,
            "created_at": _dt_to_text(self.created_at),
            "ended_at": _dt_to_text(self.ended_at),
            "meta": json.dumps(self.meta.to_dict()),
            "tags": json.dumps(sorted(self.tags)),
        }

    @classmethod
    def from_record(cls, row: dict[str, Any]) -> Session:
        meta = _load_payload(row["meta"])
        return cls(
            id=row["id"],
            project_path=row["project_path"],
            title=row["title"],
            status=SessionStatus(row["status"]),
            created_at=_dt_from_text(row["created_at"]),
            ended_at=_dt_from_text(row["ended_at"]),
            meta=SessionMeta.from_dict(meta) if meta else SessionMeta(),
            tags=frozenset(json.loads(row["tags"] or "[]")),
        )


@dataclass(frozen=True)
class Message:
    """One immutable, sequenced turn within a session."""

    id: str
    session_id: str
    role: Role
    content: str
    sequence: int
    timestamp: datetime = field(default_factory=utcnow)
    content_type: ContentType = ContentType.TEXT
    model: str | None = None
    token_count: int | None = None
    tool_call: ToolCall | None = None
    tool_result: ToolResult | None = None

    def for_llm(self) -> dict[str, str]:
        """Return the {role, content} pair sent to a completion backend."""
        return {"role": self.role.value, "content": self.content}

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "role": self.role.value,
            "content": self.content,
            "content_type": self.content_type.value,
            "sequence": self.sequence,
            "timestamp": _dt_to_text(self.timestamp),
            "model": self.model,
            "token_count": self.token_count,
            "tool_call": json.dumps(self.tool_call.to_dict()) if self.tool_call else None,
            "tool_result": json.dumps(self.tool_result.to_dict()) if self.tool_result else None,
        }

    @classmethod
    def from_record(cls, row: dict[str, Any]) -> Message:
        tool_call = _load_payload(row["tool_call"])
        tool_result = _load_payload(row["tool_result"])
        return cls(
            id=row["id"],
            session_id=row["session_id"],
            role=Role(row["role"]),
            content=row["content"],
            sequence=row["sequence"],
            timestamp=_dt_from_text(row["timestamp"]),
            content_type=ContentType(row["content_type"]),
            model=row["model"],
            token_count=row["token_count"],
            tool_call=ToolCall.from_dict(tool_call) if tool_call else None,
            tool_result=ToolResult.from_dict(tool_result) if tool_result else None,
        )


@dataclass(frozen=True)
class Memory:
    """A decayable unit of retained knowledge.

    ``current_strength`` is a cached value; the decay engine recomputes it
    from ``initial_strength``, ``decay_rate`` and the elapsed time since
    ``last_reviewed`` (or ``created_at``).
    """

    id: str
    type: MemoryType
    content: str
    decay_rate: float
    initial_strength: float = 1.0
    current_strength: float = 1.0
    created_at: datetime = field(default_factory=utcnow)
    last_recall: datetime | None = None
    last_reviewed: datetime | None = None
    review_count: int = 0
    level: int = 0
    summary: str | None = None
    session_id: str | None = None
    parent_id: str | None = None
    source_messages: frozenset[str] = frozenset()
    tags: frozenset[str] = frozenset()

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "content": self.content,
            "summary": self.summary,
            "session_id": self.session_id,
            "parent_id": self.parent_id,
            "initial_strength": self.initial_strength,
            "current_strength": self.current_strength,
            "decay_rate": self.decay_rate,
            "created_at": _dt_to_text(self.created_at),
            "last_recall": _dt_to_text(self.last_recall),
            "last_reviewed": _dt_to_text(self.last_reviewed),
            "review_count": self.review_count,
            "level": self.level,
            "source_messages": json.dumps(sorted(self.source_messages)),
            "tags": json.dumps(sorted(self.tags)),
        }

    @classmethod
    def from_record(cls, row: dict[str, Any]) -> Memory:
        return cls(
            id=row["id"],
            type=MemoryType(row["type"]),
            content=row["content"],
            summary=row["summary"],
            session_id=row["session_id"],
            parent_id=row["parent_id"],
            initial_strength=row["initial_strength"],
            current_strength=row["current_strength"],
            decay_rate=row["decay_rate"],
            created_at=_dt_from_text(row["created_at"]),
            last_recall=_dt_from_text(row["last_recall"]),
            last_reviewed=_dt_from_text(row["last_reviewed"]),
            review_count=row["review_count"],
            level=row["level"],
            source_messages=frozenset(json.loads(row["source_messages"] or "[]")),
            tags=frozenset(json.loads(row["tags"] or "[]")),
        )


@dataclass(frozen=True)
class SessionStats:
    """Message counts for one session."""

    session_id: str
    title: str
    total: int = 0
    user: int = 0
    assistant: int = 0
    system: int = 0
    tool: int = 0
    tool_calls: int = 0
