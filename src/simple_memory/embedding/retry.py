"""Retry policy for embedding requests."""

import logging
import time
from functools import wraps
from typing import Callable

import requests

from simple_memory.errors import EmbeddingError

logger = logging.getLogger(__name__)


def retry_with_backoff(
    max_retries: int = 3, base_delay: float = 1.0, max_delay: float = 10.0
) -> Callable:
    """Decorator for retrying functions with exponential backoff.

    max_retries counts attempts, so 1 means a single try with no retry.

    Args:
        max_retries: Maximum number of attempts (default: 3)
        base_delay: Initial delay in seconds (default: 1.0)
        max_delay: Maximum delay between retries (default: 10.0)

    Returns:
        Decorated function with retry logic

    Example:
        >>> @retry_with_backoff(max_retries=3)
        ... def fetch_data():
        ...     return requests.get("http://example.com")
    """
    attempts = max(1, max_retries)

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs):
            for attempt in range(attempts):
                try:
                    return func(*args, **kwargs)
                except (requests.RequestException, EmbeddingError) as e:
                    if attempt == attempts - 1:
                        raise

                    delay = min(base_delay * (2**attempt), max_delay)
                    logger.debug(f"Attempt {attempt + 1} failed ({e}), retrying in {delay:.1f}s")
                    time.sleep(delay)

        return wrapper

    return decorator
