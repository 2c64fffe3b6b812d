"""Shared utilities for the Data Inclusion explorer.

config  Environment-driven application settings (``AppConfig``).
http    Pooled ``requests`` sessions with retries, and ``UpstreamError``.
cache   Thread-safe in-memory TTL cache for upstream lookups.
"""

# HTTP utilities
from utils.http import (
    USER_AGENT,
    RetryStrategy,
    SessionManager,
    UpstreamError,
)

# Caching
from utils.cache import TTLCache

# Configuration
from utils.config import (
    AppConfig,
    Config,
)

__all__ = [
    # HTTP
    "USER_AGENT",
    "RetryStrategy",
    "SessionManager",
    "UpstreamError",
    # Cache
    "TTLCache",
    # Config
    "AppConfig",
    "Config",
]
