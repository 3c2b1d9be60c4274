"""Error taxonomy for simple-memory.

Validation and not-found errors are converted into tool failures by the tool
layer; they never escape a tool call. Upstream and embedding failures are
non-fatal and degrade to keyword-only behaviour.
"""


class SimpleMemoryError(Exception):
    """Base class for all simple-memory errors."""

    pass


class ValidationError(SimpleMemoryError):
    """Required input is missing or empty."""

    pass


class NoOpError(ValidationError):
    """An update request carried no recognized field."""

    pass


class NotFoundError(SimpleMemoryError):
    """Referenced memory id(s) do not exist."""

    pass


class UpstreamUnavailable(SimpleMemoryError):
    """Embedding provider or remote store could not be reached."""

    pass


class TransportError(SimpleMemoryError):
    """Remote-call or storage I/O failure."""

    pass


class StorageError(TransportError):
    """SQLite operation failed."""

    pass


class EmbeddingError(SimpleMemoryError):
    """Embedding provider returned an error or an unusable response."""

    pass


__all__ = [
    "SimpleMemoryError",
    "ValidationError",
    "NoOpError",
    "NotFoundError",
    "UpstreamUnavailable",
    "TransportError",
    "StorageError",
    "EmbeddingError",
]
