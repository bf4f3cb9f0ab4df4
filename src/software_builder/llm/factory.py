"""Select a completion backend from configuration."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from groq import AsyncGroq

from .base import CompletionClient
from .groq_client import DEFAULT_GROQ_MODEL, GroqCompletionClient
from .http_client import HTTPClientConfig, HTTPCompletionClient

if TYPE_CHECKING:
    from ..config import CompletionConfig

logger = logging.getLogger(__name__)


def create_client(config: CompletionConfig, default_model: str) -> CompletionClient | None:
    """Build the completion client the configured credentials point at.

    The HTTP router token wins over a Groq key. Without either, completion
    is disabled and None is returned.
    """
    if config.hf_token:
        logger.debug("Using HTTP completion backend (%s)", config.provider)
        return HTTPCompletionClient(
            HTTPClientConfig(
                api_token=config.hf_token,
                model=config.model or default_model,
                provider=config.provider,
                base_url=config.base_url,
                timeout=config.timeout,
            )
        )

    if config.groq_api_key:
        logger.debug("Using Groq completion backend")
        return GroqCompletionClient(
            AsyncGroq(api_key=config.groq_api_key, timeout=config.timeout),
            model=config.model or DEFAULT_GROQ_MODEL,
            api_key=config.groq_api_key,
        )

    return None
