"""simple-memory constants.

Implementation details that do not change between deployments. User-facing
settings live in simple_memory.config.
"""

from pathlib import Path

# =============================================================================
# Storage
# =============================================================================

DEFAULT_DATA_DIR = Path.home() / ".mcp-simple-memory"
DB_FILENAME = "memory.db"

# SQLite connection tuning
BUSY_TIMEOUT_MS = 10000

# =============================================================================
# Record defaults
# =============================================================================

DEFAULT_TYPE = "memory"
DEFAULT_PROJECT = "default"
TITLE_MAX_CHARS = 80

# Known record types (free-form; used for tool descriptions only)
KNOWN_TYPES = ("memory", "decision", "error", "session_summary", "todo", "snippet")

# =============================================================================
# Search
# =============================================================================

DEFAULT_LIMIT = 20

# In auto mode, vector search runs when keyword search finds fewer hits
VECTOR_FALLBACK_THRESHOLD = 3

PREVIEW_CHARS = 200

# =============================================================================
# Embeddings
# =============================================================================

GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta"
GEMINI_MODEL = "gemini-embedding-001"
OLLAMA_HOST = "http://localhost:11434"
OLLAMA_MODEL = "mxbai-embed-large"

# Seconds to wait for queued embedding jobs on shutdown
WORKER_DRAIN_TIMEOUT = 30.0

# =============================================================================
# Remote API
# =============================================================================

API_KEY_HEADER = "x-api-key"
DEFAULT_API_URL = "http://127.0.0.1:3100"
DEFAULT_HTTP_HOST = "127.0.0.1"
DEFAULT_HTTP_PORT = 3100

SERVER_NAME = "mcp-simple-memory"
