"""Software Builder: a local coding assistant with persistent sessions."""

__version__ = "0.1.0"
