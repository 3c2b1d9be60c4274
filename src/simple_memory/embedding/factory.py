"""Factory for creating embedding providers.

This module provides a factory function for creating embedding providers
based on the configured backend. The 'none' backend (and 'auto' without a
Gemini API key) yields no provider, which disables vector search.
"""

import logging
from typing import TYPE_CHECKING, Optional

from simple_memory.config import MemorySettings

if TYPE_CHECKING:
    from simple_memory.embedding.provider import EmbeddingProvider

logger = logging.getLogger(__name__)

__all__ = ["create_embedding_provider"]


def create_embedding_provider(settings: MemorySettings) -> Optional["EmbeddingProvider"]:
    """Create an embedding provider based on the backend configuration.

    Args:
        settings: Loaded settings; embedding_backend selects the provider

    Returns:
        An instance implementing the EmbeddingProvider protocol, or None
        when semantic search is disabled.

    Raises:
        ValueError: If 'gemini' is selected without an API key.

    Example:
        >>> provider = create_embedding_provider(MemorySettings(embedding_backend="ollama"))
    """
    backend = settings.resolved_backend()

    match backend:
        case "gemini":
            from simple_memory.embedding.gemini_provider import GeminiProvider

            if not settings.gemini_api_key:
                raise ValueError(
                    "Gemini embedding backend requires GEMINI_API_KEY "
                    "(or MCP_MEMORY_GEMINI_API_KEY)"
                )
            logger.info(f"Creating GeminiProvider with model={settings.gemini_model}")
            return GeminiProvider(
                api_key=settings.gemini_api_key,
                model=settings.gemini_model,
                timeout=settings.embedding_timeout,
                max_retries=settings.embedding_max_retries,
            )

        case "ollama":
            from simple_memory.embedding.ollama_provider import OllamaProvider

            logger.info(
                f"Creating OllamaProvider with host={settings.ollama_host}, "
                f"model={settings.ollama_model}, timeout={settings.embedding_timeout}"
            )
            return OllamaProvider(
                host=settings.ollama_host,
                model=settings.ollama_model,
                timeout=settings.embedding_timeout,
                max_retries=settings.embedding_max_retries,
            )

        case "none":
            logger.info("No embedding provider configured, semantic search disabled")
            return None

        case _:
            raise ValueError(
                f"Unknown embedding backend: {backend!r}. "
                f"Valid options are: 'auto', 'gemini', 'ollama', 'none'"
            )
