"""Embedding generation module for simple-memory.

This module provides pluggable embedding backends for semantic search.
Semantic search is optional: without a provider every search is keyword-only.

Available backends:
    - gemini: Google Generative Language API (gemini-embedding-001)
    - ollama: Remote embedding using an Ollama server

Usage:
    >>> from simple_memory.embedding import EmbeddingAdapter, create_embedding_provider
    >>> adapter = EmbeddingAdapter(create_embedding_provider(settings))
    >>> vector = adapter.embed("What is Python?")  # None when unavailable
"""

from .adapter import EmbeddingAdapter
from .factory import create_embedding_provider
from .gemini_provider import GeminiProvider
from .ollama_provider import OllamaProvider
from .provider import EmbeddingProvider
from .retry import retry_with_backoff
from .worker import EmbeddingWorker

__all__ = [
    "EmbeddingAdapter",
    "EmbeddingProvider",
    "EmbeddingWorker",
    "GeminiProvider",
    "OllamaProvider",
    "create_embedding_provider",
    "retry_with_backoff",
]
