"""Session management and persistence."""

from .manager import SessionManager

__all__ = ["SessionManager"]
