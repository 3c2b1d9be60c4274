"""Failure-absorbing wrapper around an optional embedding provider."""

import logging
from typing import TYPE_CHECKING, Optional

from simple_memory.errors import EmbeddingError

if TYPE_CHECKING:
    from simple_memory.embedding.provider import EmbeddingProvider

logger = logging.getLogger(__name__)


class EmbeddingAdapter:
    """Turns provider failures into "no vector".

    Search and the background worker only ever see a vector or None, so a
    missing API key, an unreachable provider or a malformed response all
    degrade to keyword-only behaviour.

    Args:
        provider: Configured provider, or None when semantic search is off
    """

    def __init__(self, provider: Optional["EmbeddingProvider"] = None):
        self._provider = provider

    @property
    def available(self) -> bool:
        """Whether a provider is configured."""
        return self._provider is not None

    @property
    def provider_name(self) -> Optional[str]:
        return type(self._provider).__name__ if self._provider is not None else None

    def embed(self, text: str) -> Optional[list[float]]:
        """Embed text, returning None when no vector can be produced."""
        if self._provider is None or not text or not text.strip():
            return None
        try:
            return self._provider.embed(text)
        except EmbeddingError as e:
            logger.warning(f"Embedding failed: {e}")
            return None
        except Exception as e:
            logger.error(f"Unexpected embedding failure: {e}", exc_info=True)
            return None

    def close(self) -> None:
        if self._provider is not None:
            self._provider.close()
