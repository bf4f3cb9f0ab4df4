"""JSONL event log for observability."""

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any


@dataclass
class LogEntry:
    """A single log entry."""

    timestamp: str
    event: str
    session_id: str | None = None
    message_id: str | None = None
    model: str | None = None
    duration_ms: float | None = None
    status: int | None = None
    error: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict, excluding None values."""
        data = asdict(self)
        return {k: v for k, v in data.items() if v is not None and v != {} and v != []}


class JSONLLogger:
    """Logger that writes structured events in JSONL format."""

    def __init__(
        self,
        log_dir: str | Path | None = None,
        filename: str = "events.jsonl",
        max_size_mb: float = 10.0,
    ) -> None:
        if log_dir is None:
            log_dir = Path.home() / ".software-builder" / "logs"
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.filename = filename
        self.max_size_bytes = int(max_size_mb * 1024 * 1024)
        self._current_session_id: str | None = None

    @property
    def log_path(self) -> Path:
        """Current log file path."""
        return self.log_dir / self.filename

    def set_session_id(self, session_id: str | None) -> None:
        """Set the session id attached to all subsequent events."""
        self._current_session_id = session_id

    def _rotate_if_needed(self) -> None:
        """Rotate log file if it exceeds max size."""
        if not self.log_path.exists():
            return

        if self.log_path.stat().st_size >= self.max_size_bytes:
            timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
            rotated_name = f"{self.log_path.stem}_{timestamp}.jsonl"
            self.log_path.rename(self.log_dir / rotated_name)

    def _write(self, entry: LogEntry) -> None:
        self._rotate_if_needed()

        with open(self.log_path, "a", encoding="utf-8") as f:
            f.write(json.dumps(entry.to_dict(), ensure_ascii=False) + "\n")

    def log(
        self,
        event: str,
        *,
        session_id: str | None = None,
        message_id: str | None = None,
        model: str | None = None,
        duration_ms: float | None = None,
        status: int | None = None,
        error: str | None = None,
        **extra: Any,
    ) -> None:
        """Log an event."""
        entry = LogEntry(
            timestamp=datetime.now(timezone.utc).isoformat(),
            event=event,
            session_id=session_id or self._current_session_id,
            message_id=message_id,
            model=model,
            duration_ms=duration_ms,
            status=status,
            error=error,
            extra=extra if extra else {},
        )
        self._write(entry)

    def log_message_stored(
        self,
        session_id: str,
        message_id: str,
        role: str,
        sequence: int,
    ) -> None:
        """Log a persisted message."""
        self.log(
            "message_stored",
            session_id=session_id,
            message_id=message_id,
            role=role,
            sequence=sequence,
        )

    def log_completion_request(
        self,
        model: str | None,
        messages_count: int,
        *,
        session_id: str | None = None,
        epoch: int | None = None,
    ) -> None:
        """Log a completion request leaving for the backend."""
        self.log(
            "completion_request",
            session_id=session_id,
            model=model,
            messages_count=messages_count,
            epoch=epoch,
        )

    def log_completion_result(
        self,
        success: bool,
        *,
        session_id: str | None = None,
        model: str | None = None,
        duration_ms: float | None = None,
        status: int | None = None,
        error: str | None = None,
        finish_reason: str | None = None,
    ) -> None:
        """Log the outcome of a completion request."""
        self.log(
            "completion_result",
            session_id=session_id,
            model=model,
            duration_ms=duration_ms,
            status=status,
            error=error if not success else None,
            success=success,
            finish_reason=finish_reason,
        )


# Global logger instance
_logger: JSONLLogger | None = None


def get_logger() -> JSONLLogger:
    """Get the global logger instance."""
    global _logger
    if _logger is None:
        _logger = JSONLLogger()
    return _logger


def configure_logger(log_dir: str | Path | None = None, max_size_mb: float = 10.0) -> JSONLLogger:
    """Configure and return the global logger."""
    global _logger
    _logger = JSONLLogger(log_dir=log_dir, max_size_mb=max_size_mb)
    return _logger
