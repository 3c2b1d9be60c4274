"""Ollama embedding provider.

Talks to the /api/embeddings endpoint of a local or remote Ollama server.
Retries are off by default (one attempt per call) and can be enabled through
MCP_MEMORY_EMBEDDING_MAX_RETRIES.
"""

import logging

import requests

from simple_memory.constants import OLLAMA_HOST, OLLAMA_MODEL
from simple_memory.embedding.provider import coerce_vector
from simple_memory.embedding.retry import retry_with_backoff
from simple_memory.errors import EmbeddingError

logger = logging.getLogger(__name__)


class OllamaProvider:
    """EmbeddingProvider backed by an Ollama server.

    Args:
        host: Base URL of the Ollama server
        model: Name of a pulled embedding model
        timeout: Seconds before a request is abandoned
        max_retries: Attempts per request (1 disables retry)

    Example:
        >>> with OllamaProvider(model="nomic-embed-text") as provider:
        ...     vector = provider.embed("deploys run from main")
    """

    def __init__(
        self,
        host: str = OLLAMA_HOST,
        model: str = OLLAMA_MODEL,
        timeout: int = 30,
        max_retries: int = 1,
    ):
        self.host = host.rstrip("/")
        self.model = model
        self.timeout = timeout
        self._session = requests.Session()
        self._post = retry_with_backoff(max_retries=max_retries)(self._post_once)

    def health_check(self) -> bool:
        """Return True when the server answers and has the model pulled."""
        try:
            response = self._session.get(f"{self.host}/api/tags", timeout=self.timeout)
            response.raise_for_status()
            names = [entry.get("name", "") for entry in response.json().get("models", [])]
        except (requests.RequestException, ValueError):
            return False
        return any(name == self.model or name.startswith(f"{self.model}:") for name in names)

    def _post_once(self, text: str) -> requests.Response:
        try:
            response = self._session.post(
                f"{self.host}/api/embeddings",
                json={"model": self.model, "prompt": text},
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.Timeout as e:
            raise EmbeddingError(
                f"Ollama request timeout after {self.timeout}s (model {self.model})"
            ) from e
        except requests.RequestException as e:
            raise EmbeddingError(f"Ollama API request failed: {e}") from e
        return response

    def embed(self, text: str) -> list[float]:
        """Embed one text.

        Raises:
            EmbeddingError: On empty input, HTTP failure or a response without a vector
        """
        if not text or not text.strip():
            raise EmbeddingError("Text cannot be empty")

        response = self._post(text)
        try:
            data = response.json()
        except ValueError as e:
            raise EmbeddingError(f"Invalid JSON from Ollama API: {e}") from e

        embedding = data.get("embedding") if isinstance(data, dict) else None
        return coerce_vector(embedding, "Ollama")

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> "OllamaProvider":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
