"""Application configuration.

Values are resolved in three layers, later layers winning:

1. Dataclass defaults.
2. ``~/.software-builder/config.json`` (or the path given to load_config).
3. Environment variables (a ``.env`` file is loaded by the entry point).

The config file should have this structure:

```json
{
  "db_path": "~/.local/share/software-builder/software-builder.db",
  "log_dir": "~/.software-builder/logs",
  "completion": {
    "model": "Qwen/Qwen2.5-Coder-32B-Instruct",
    "provider": "hyperbolic",
    "base_url": "https://router.huggingface.co",
    "timeout": 30,
    "max_tokens": 1024,
    "temperature": 0.7
  },
  "chat": {
    "history_limit": 20,
    "system_prompt": "You are a helpful coding assistant."
  }
}
```
"""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .errors import ConfigurationError
from .llm.base import DEFAULT_MAX_TOKENS, DEFAULT_TEMPERATURE
from .llm.http_client import DEFAULT_BASE_URL, DEFAULT_PROVIDER, DEFAULT_TIMEOUT

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".software-builder" / "config.json"
DEFAULT_DB_PATH = Path.home() / ".local" / "share" / "software-builder" / "software-builder.db"
DEFAULT_MODEL = "Qwen/Qwen2.5-Coder-32B-Instruct"
DEFAULT_SYSTEM_PROMPT = (
    "You are a coding assistant working in the user's project directory. "
    "Answer concisely and show code when it helps."
)


@dataclass
class CompletionConfig:
    """Completion backend settings.

    Attributes:
        hf_token: Bearer token for the HTTP router backend.
        groq_api_key: API key for the Groq backend.
        model: Model identifier (backend default if None).
        provider: Inference provider path segment for the HTTP backend.
        base_url: HTTP router base URL.
        timeout: Request timeout in seconds.
        max_tokens: Default completion length.
        temperature: Default sampling temperature.
    """

    hf_token: str | None = None
    groq_api_key: str | None = None
    model: str | None = None
    provider: str = DEFAULT_PROVIDER
    base_url: str = DEFAULT_BASE_URL
    timeout: float = DEFAULT_TIMEOUT
    max_tokens: int = DEFAULT_MAX_TOKENS
    temperature: float = DEFAULT_TEMPERATURE

    @property
    def enabled(self) -> bool:
        """True when some backend has credentials."""
        return bool(self.hf_token or self.groq_api_key)


@dataclass
class ChatConfig:
    history_limit: int = 20
    system_prompt: str = DEFAULT_SYSTEM_PROMPT


@dataclass
class AppConfig:
    """Top-level configuration."""

    db_path: Path = DEFAULT_DB_PATH
    log_dir: Path | None = None
    completion: CompletionConfig = field(default_factory=CompletionConfig)
    chat: ChatConfig = field(default_factory=ChatConfig)

    def __post_init__(self) -> None:
        if self.completion.timeout <= 0:
            raise ConfigurationError("Completion timeout must be positive")
        if self.chat.history_limit < 1:
            raise ConfigurationError("history_limit must be at least 1")


def _parse_file(data: dict[str, Any]) -> AppConfig:
    """Parse config-file dictionary into AppConfig."""
    completion_data = data.get("completion", {})
    if not isinstance(completion_data, dict):
        completion_data = {}
    chat_data = data.get("chat", {})
    if not isinstance(chat_data, dict):
        chat_data = {}

    completion = CompletionConfig(
        model=completion_data.get("model"),
        provider=completion_data.get("provider", DEFAULT_PROVIDER),
        base_url=completion_data.get("base_url", DEFAULT_BASE_URL),
        timeout=float(completion_data.get("timeout", DEFAULT_TIMEOUT)),
        max_tokens=int(completion_data.get("max_tokens", DEFAULT_MAX_TOKENS)),
        temperature=float(completion_data.get("temperature", DEFAULT_TEMPERATURE)),
    )
    chat = ChatConfig(
        history_limit=int(chat_data.get("history_limit", 20)),
        system_prompt=chat_data.get("system_prompt", DEFAULT_SYSTEM_PROMPT),
    )

    db_path = Path(data["db_path"]).expanduser() if data.get("db_path") else DEFAULT_DB_PATH
    log_dir = Path(data["log_dir"]).expanduser() if data.get("log_dir") else None
    return AppConfig(db_path=db_path, log_dir=log_dir, completion=completion, chat=chat)


def _load_file(path: Path) -> AppConfig:
    if not path.exists():
        logger.debug("No config file at %s, using defaults", path)
        return AppConfig()

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        logger.warning("Invalid JSON in %s: %s. Using defaults.", path, e)
        return AppConfig()
    except OSError as e:
        logger.warning("Cannot read %s: %s. Using defaults.", path, e)
        return AppConfig()

    if not isinstance(data, dict):
        logger.warning("Config in %s is not an object. Using defaults.", path)
        return AppConfig()

    try:
        return _parse_file(data)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid value in {path}: {e}") from e


def _apply_env(config: AppConfig, env: dict[str, str]) -> AppConfig:
    completion = config.completion
    chat = config.chat

    try:
        if env.get("HF_TOKEN"):
            completion.hf_token = env["HF_TOKEN"]
        if env.get("GROQ_API_KEY"):
            completion.groq_api_key = env["GROQ_API_KEY"]
        if env.get("SWB_MODEL"):
            completion.model = env["SWB_MODEL"]
        if env.get("SWB_PROVIDER"):
            completion.provider = env["SWB_PROVIDER"]
        if env.get("SWB_BASE_URL"):
            completion.base_url = env["SWB_BASE_URL"]
        if env.get("SWB_TIMEOUT"):
            completion.timeout = float(env["SWB_TIMEOUT"])
        if env.get("SWB_HISTORY_LIMIT"):
            chat.history_limit = int(env["SWB_HISTORY_LIMIT"])
    except ValueError as e:
        raise ConfigurationError(f"Invalid environment value: {e}") from e

    if env.get("SWB_SYSTEM_PROMPT"):
        chat.system_prompt = env["SWB_SYSTEM_PROMPT"]

    return AppConfig(
        db_path=Path(env["SWB_DB_PATH"]).expanduser() if env.get("SWB_DB_PATH") else config.db_path,
        log_dir=Path(env["SWB_LOG_DIR"]).expanduser() if env.get("SWB_LOG_DIR") else config.log_dir,
        completion=completion,
        chat=chat,
    )


def load_config(
    config_path: Path | None = None,
    env: dict[str, str] | None = None,
) -> AppConfig:
    """Load AppConfig from the config file and the environment.

    Args:
        config_path: Path to config file. Uses DEFAULT_CONFIG_PATH if None.
        env: Environment mapping. Uses os.environ if None.

    Returns:
        AppConfig instance with loaded values.
    """
    config = _load_file(config_path or DEFAULT_CONFIG_PATH)
    return _apply_env(config, dict(os.environ) if env is None else env)
