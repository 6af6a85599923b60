"""
Time-bounded caching of derived discovery data.

ExpiringCacheStore
    (value, timestamp, ttl) envelopes with lazy expiry on read. Absorbs
    every backend failure and reports it as a miss.

Backends
    InMemoryBackend, RedisBackend, FileBackend — byte-level stores selected
    by build_backend(settings).

Usage:
    from services.discovery.cache import ExpiringCacheStore, InMemoryBackend
"""

from __future__ import annotations

from services.discovery.cache.backends import (
    FileBackend,
    InMemoryBackend,
    KeyValueBackend,
    RedisBackend,
    build_backend,
)
from services.discovery.cache.store import ExpiringCacheStore

__all__ = [
    "ExpiringCacheStore",
    "FileBackend",
    "InMemoryBackend",
    "KeyValueBackend",
    "RedisBackend",
    "build_backend",
]
