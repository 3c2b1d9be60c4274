"""Structural interface shared by the embedding backends.

Gemini and Ollama providers both satisfy EmbeddingProvider without
inheriting from it; the adapter and factory depend only on this shape.
"""

from typing import Protocol, runtime_checkable

from simple_memory.errors import EmbeddingError

__all__ = ["EmbeddingProvider", "coerce_vector"]


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Anything that turns one text into one vector.

    Example:
        >>> class StaticProvider:
        ...     def embed(self, text: str) -> list[float]:
        ...         return [1.0, 0.0]
        ...     def close(self) -> None:
        ...         pass
        >>> isinstance(StaticProvider(), EmbeddingProvider)
        True
    """

    def embed(self, text: str) -> list[float]:
        """Return the embedding of a non-empty text.

        Raises:
            EmbeddingError: If no vector can be produced
        """
        ...

    def close(self) -> None:
        """Release HTTP sessions; calling twice is harmless."""
        ...


def coerce_vector(values: object, backend: str) -> list[float]:
    """Convert a decoded JSON embedding into a list of floats.

    Raises:
        EmbeddingError: If values is empty, not a list or has non-numeric entries
    """
    if not values or not isinstance(values, list):
        raise EmbeddingError(f"No embedding returned from {backend} API")
    try:
        return [float(x) for x in values]
    except (TypeError, ValueError) as e:
        raise EmbeddingError(f"Non-numeric embedding from {backend} API: {e}") from e
