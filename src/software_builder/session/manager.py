"""Session manager: session lifecycle and the sequenced message log."""

import logging
import threading
from dataclasses import replace
from typing import Any

from ..errors import NotFoundError, ValidationError
from ..logging import JSONLLogger, get_logger
from ..models import (
    ContentType,
    Message,
    Role,
    Session,
    SessionMeta,
    SessionStats,
    SessionStatus,
    ToolCall,
    ToolResult,
    new_id,
    utcnow,
)
from ..store import Store

logger = logging.getLogger(__name__)


class SessionManager:
    """Creates sessions and appends messages to them.

    Message sequences are assigned as ``max(sequence) + 1``. The read and
    the insert happen under a per-session lock and inside one immediate
    store transaction, so every session's sequences stay exactly
    ``0..n-1`` even with several concurrent writers.
    """

    def __init__(self, store: Store, event_log: JSONLLogger | None = None) -> None:
        self.store = store
        self.event_log = event_log or get_logger()
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def get_lock(self, session_id: str) -> threading.Lock:
        """Get the write lock for a session."""
        with self._locks_guard:
            if session_id not in self._locks:
                self._locks[session_id] = threading.Lock()
            return self._locks[session_id]

    # Sessions

    def create_session(
        self,
        project_path: str,
        title: str | None = None,
        meta: SessionMeta | None = None,
    ) -> str:
        """Create a new active session for a project path.

        Returns:
            The new session id.
        """
        if not project_path or not project_path.strip():
            raise ValidationError("Project path required")

        session = Session(
            id=new_id(),
            project_path=project_path,
            title=title or f"Session at {project_path}",
            meta=meta or SessionMeta(),
        )
        self.store.put("session", session.to_record())
        logger.debug("Created session %s for %s", session.id, project_path)
        self.event_log.log("session_created", session_id=session.id, project_path=project_path)
        return session.id

    def get_session(self, session_id: str) -> Session | None:
        """Get a session by id, or None if it doesn't exist."""
        row = self.store.get("session", session_id)
        return Session.from_record(row) if row else None

    def require_session(self, session_id: str) -> Session:
        """Get a session by id, raising NotFoundError if it doesn't exist."""
        session = self.get_session(session_id)
        if session is None:
            raise NotFoundError("session", session_id)
        return session

    def get_active_sessions(self) -> list[Session]:
        """All sessions with active status, oldest first."""
        rows = self.store.query(
            "session", where={"status": SessionStatus.ACTIVE.value}, order_by="created_at"
        )
        return [Session.from_record(row) for row in rows]

    def find_active_session(self, project_path: str) -> Session | None:
        """Return the oldest active session opened for a path, if any."""
        rows = self.store.query(
            "session",
            where={"status": SessionStatus.ACTIVE.value, "project_path": project_path},
            order_by="created_at",
        )
        return Session.from_record(rows[0]) if rows else None

    def set_status(self, session_id: str, status: SessionStatus | str) -> Session:
        """Transition a session to a new status.

        Archiving stamps ``ended_at``; reactivating clears it.
        """
        status = SessionStatus(status)
        with self.store.transaction():
            session = self.require_session(session_id)
            ended_at = utcnow() if status is SessionStatus.ARCHIVED else None
            updated = replace(session, status=status, ended_at=ended_at)
            self.store.put("session", updated.to_record())
        self.event_log.log("session_status", session_id=session_id, status=status.value)
        return updated

    def archive_session(self, session_id: str) -> Session:
        return self.set_status(session_id, SessionStatus.ARCHIVED)

    # Messages

    def _next_sequence(self, session_id: str) -> int:
        last = self.store.max_value("message", "sequence", where={"session_id": session_id})
        return 0 if last is None else last + 1

    def store_message(
        self,
        session_id: str,
        role: Role | str,
        content: str,
        *,
        model: str | None = None,
        tool_call: ToolCall | None = None,
        tool_result: ToolResult | None = None,
        content_type: ContentType | str | None = None,
        token_count: int | None = None,
    ) -> str:
        """Append a message to a session.

        Args:
            session_id: Owning session.
            role: user, assistant, system or tool.
            content: Message text.
            model: Model that produced the message, for assistant turns.
            tool_call: Tool call requested by the model.
            tool_result: Result of a tool execution.
            content_type: Defaults to text, or tool_call/tool_result when
                the matching payload is given.
            token_count: Optional token usage for cost tracking.

        Returns:
            The new message id.
        """
        role = Role.parse(role)
        if content is None:
            raise ValidationError("Message content required")

        if content_type is None:
            if tool_call is not None:
                content_type = ContentType.TOOL_CALL
            elif tool_result is not None:
                content_type = ContentType.TOOL_RESULT
            else:
                content_type = ContentType.TEXT
        content_type = ContentType(content_type)

        with self.get_lock(session_id):
            with self.store.transaction():
                if self.store.get("session", session_id) is None:
                    raise NotFoundError("session", session_id)

                message = Message(
                    id=new_id(),
                    session_id=session_id,
                    role=role,
                    content=content,
                    sequence=self._next_sequence(session_id),
                    content_type=content_type,
                    model=model,
                    token_count=token_count,
                    tool_call=tool_call,
                    tool_result=tool_result,
                )
                self.store.put("message", message.to_record())

        self.event_log.log_message_stored(session_id, message.id, role.value, message.sequence)
        return message.id

    def get_session_messages(self, session_id: str, limit: int | None = None) -> list[Message]:
        """All messages of a session in ascending sequence order.

        Args:
            session_id: The session.
            limit: If given, keep only the most recent ``limit`` messages.
        """
        if limit is not None and limit <= 0:
            return []

        rows = self.store.query("message", where={"session_id": session_id}, order_by="sequence")
        messages = [Message.from_record(row) for row in rows]
        if limit is not None:
            messages = messages[-limit:]
        return messages

    def get_history(self, session_id: str, limit: int = 20) -> list[dict[str, Any]]:
        """Recent messages in the {role, content} format completion backends take."""
        return [m.for_llm() for m in self.get_session_messages(session_id, limit=limit)]

    def session_stats(self, session_id: str) -> SessionStats:
        """Count a session's messages in total, by role, and with tool calls."""
        session = self.get_session(session_id)
        messages = self.get_session_messages(session_id)
        by_role = {role: 0 for role in Role}
        for message in messages:
            by_role[message.role] += 1

        return SessionStats(
            session_id=session_id,
            title=session.title if session else "",
            total=len(messages),
            user=by_role[Role.USER],
            assistant=by_role[Role.ASSISTANT],
            system=by_role[Role.SYSTEM],
            tool=by_role[Role.TOOL],
            tool_calls=sum(1 for m in messages if m.tool_call is not None),
        )
