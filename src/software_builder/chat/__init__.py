"""Interactive chat loop."""

from .orchestrator import (
    ChatContext,
    ChatOrchestrator,
    ChatState,
    CompletionEvent,
    InputEvent,
    QuitEvent,
)
from .render import Console

__all__ = [
    "ChatContext",
    "ChatOrchestrator",
    "ChatState",
    "CompletionEvent",
    "Console",
    "InputEvent",
    "QuitEvent",
]
