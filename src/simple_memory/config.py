"""Configuration settings for the simple-memory server.

This module provides Pydantic Settings for configuration management.
Settings are loaded from environment variables with the MCP_MEMORY_ prefix
(and from a .env file in the working directory). The Gemini API key is also
read from the conventional GEMINI_API_KEY variable.
"""

from pathlib import Path
from typing import Literal, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from simple_memory.constants import (
    DB_FILENAME,
    DEFAULT_API_URL,
    DEFAULT_DATA_DIR,
    DEFAULT_HTTP_HOST,
    DEFAULT_HTTP_PORT,
    DEFAULT_LIMIT,
    GEMINI_MODEL,
    OLLAMA_HOST,
    OLLAMA_MODEL,
)

# Type alias for embedding backend selection
EmbeddingBackend = Literal["auto", "gemini", "ollama", "none"]


class MemorySettings(BaseSettings):
    """Configuration settings for the simple-memory server.

    Attributes:
        data_dir: Directory holding the SQLite database (MCP_MEMORY_DIR)
        db_name: Database file name inside data_dir
        embedding_backend: 'auto' picks gemini when an API key is set, else none
        gemini_api_key: Google Generative Language API key
        gemini_model: Gemini embedding model name
        ollama_host: Ollama server host URL
        ollama_model: Ollama embedding model name
        embedding_timeout: Per-request timeout for embedding calls in seconds
        embedding_max_retries: Attempts per embedding call (1 = no retry)
        default_limit: Result count used when a tool call gives no limit
        log_level: Logging level
        api_url: Base URL of a remote simple-memory HTTP API (proxy mode)
        api_key: Static key sent/expected in the x-api-key header
        http_host: Bind address for the HTTP API
        http_port: Bind port for the HTTP API
    """

    model_config = SettingsConfigDict(
        env_prefix="MCP_MEMORY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",  # Allow extra env vars without error
    )

    # Storage
    data_dir: Path = Field(
        default=DEFAULT_DATA_DIR,
        validation_alias=AliasChoices("data_dir", "MCP_MEMORY_DIR", "MCP_MEMORY_DATA_DIR"),
        description="Directory holding the SQLite database",
    )
    db_name: str = Field(default=DB_FILENAME, description="Database file name")

    # Embedding provider
    embedding_backend: EmbeddingBackend = Field(
        default="auto", description="Embedding backend ('auto', 'gemini', 'ollama', 'none')"
    )
    gemini_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices(
            "gemini_api_key", "MCP_MEMORY_GEMINI_API_KEY", "GEMINI_API_KEY"
        ),
        description="Gemini API key; enables semantic search",
    )
    gemini_model: str = Field(default=GEMINI_MODEL, description="Gemini embedding model")
    ollama_host: str = Field(default=OLLAMA_HOST, description="Ollama server host URL")
    ollama_model: str = Field(default=OLLAMA_MODEL, description="Ollama embedding model")
    embedding_timeout: int = Field(default=30, gt=0, description="Embedding request timeout")
    embedding_max_retries: int = Field(
        default=1, ge=1, description="Attempts per embedding call (1 disables retry)"
    )

    # Search
    default_limit: int = Field(default=DEFAULT_LIMIT, gt=0, description="Default result count")

    # Logging
    log_level: str = Field(
        default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # Remote deployment
    api_url: str = Field(default=DEFAULT_API_URL, description="Remote HTTP API base URL")
    api_key: Optional[str] = Field(default=None, description="Static API key for the HTTP API")
    http_host: str = Field(default=DEFAULT_HTTP_HOST, description="HTTP API bind address")
    http_port: int = Field(default=DEFAULT_HTTP_PORT, description="HTTP API bind port")

    def get_sqlite_path(self) -> Path:
        """Get the SQLite path, expanding user home."""
        return (self.data_dir.expanduser() / self.db_name).resolve()

    def resolved_backend(self) -> EmbeddingBackend:
        """Resolve 'auto' to a concrete backend."""
        if self.embedding_backend == "auto":
            return "gemini" if self.gemini_api_key else "none"
        return self.embedding_backend
