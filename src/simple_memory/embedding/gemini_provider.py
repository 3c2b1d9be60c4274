"""Gemini embedding provider.

Calls the Google Generative Language embedContent endpoint:

    POST {base}/models/{model}:embedContent?key=API_KEY
    {"model": "models/{model}", "content": {"parts": [{"text": "..."}]}}

and reads the vector from ``embedding.values`` in the response.
"""

import logging

import requests

from simple_memory.constants import GEMINI_API_BASE, GEMINI_MODEL
from simple_memory.embedding.provider import coerce_vector
from simple_memory.embedding.retry import retry_with_backoff
from simple_memory.errors import EmbeddingError

logger = logging.getLogger(__name__)


class GeminiProvider:
    """HTTP client for the Gemini embedContent API.

    Args:
        api_key: Google Generative Language API key
        model: Embedding model name (default: "gemini-embedding-001")
        timeout: Request timeout in seconds (default: 30)
        max_retries: Attempts per request (default: 1, no retry)
        base_url: API base URL (overridable for tests and proxies)
    """

    def __init__(
        self,
        api_key: str,
        model: str = GEMINI_MODEL,
        timeout: int = 30,
        max_retries: int = 1,
        base_url: str = GEMINI_API_BASE,
    ):
        if not api_key:
            raise ValueError("Gemini API key is required")
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.base_url = base_url.rstrip("/")
        self._session = requests.Session()
        self._request = retry_with_backoff(max_retries=max_retries)(self._request_once)

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/models/{self.model}:embedContent"

    def _request_once(self, text: str) -> dict:
        try:
            response = self._session.post(
                self.endpoint,
                params={"key": self.api_key},
                json={
                    "model": f"models/{self.model}",
                    "content": {"parts": [{"text": text}]},
                },
                timeout=self.timeout,
            )
        except requests.Timeout as e:
            raise EmbeddingError(f"Gemini request timeout after {self.timeout}s") from e
        except requests.RequestException as e:
            raise EmbeddingError(f"Gemini API request failed: {e}") from e

        if not response.ok:
            # Error bodies can echo the request URL, which carries the key
            raise EmbeddingError(f"Gemini API returned HTTP {response.status_code}")

        try:
            return response.json()
        except ValueError as e:
            raise EmbeddingError(f"Invalid JSON from Gemini API: {e}") from e

    def embed(self, text: str) -> list[float]:
        """Generate embedding for a single text.

        Args:
            text: Input text to embed

        Returns:
            Embedding vector (3072 floats for gemini-embedding-001)

        Raises:
            EmbeddingError: If the request fails or the response has no vector
        """
        if not text or not text.strip():
            raise EmbeddingError("Text cannot be empty")

        data = self._request(text)
        embedding = data.get("embedding") if isinstance(data, dict) else None
        values = embedding.get("values") if isinstance(embedding, dict) else None
        return coerce_vector(values, "Gemini")

    def close(self) -> None:
        """Close the HTTP session. Idempotent."""
        if self._session is not None:
            self._session.close()
            logger.debug("GeminiProvider session closed")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
