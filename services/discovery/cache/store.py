"""
ExpiringCacheStore — generic key -> value store with lazily expiring entries.

Values are JSON-encoded and written through a KeyValueBackend. Entries
written with set_cached() carry a (timestamp, expiresIn) envelope; expiry is
checked on read and an expired key is deleted right then. There is no
background sweep: an expired entry only disappears when someone looks it up.

Graceful degradation: every backend or serialization failure is logged and
turned into None / False. To callers a broken cache looks exactly like an
empty one, and both fall through to the live source.

Only JSON-native values are accepted (dict with str keys, list, str, int,
float, bool, None), so whatever comes back from get_cached() is deep-equal
to what was stored. Tuples, sets and non-str keys are refused on write.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Callable, Generic, TypeVar

from services.discovery.cache.backends import KeyValueBackend
from services.discovery.errors import SerializationError, StorageError
from services.discovery.models import CacheEntry

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _now_ms() -> int:
    return int(time.time() * 1000)


_SCALARS = (str, int, float, bool, type(None))


def _check_json_native(value: Any, path: str = "$") -> None:
    """Reject values JSON would silently reshape (tuples, non-str keys, sets)."""
    if isinstance(value, _SCALARS):
        return
    if isinstance(value, list):
        for i, item in enumerate(value):
            _check_json_native(item, f"{path}[{i}]")
        return
    if isinstance(value, dict):
        for key, item in value.items():
            if not isinstance(key, str):
                raise SerializationError(f"non-string key {key!r} at {path}")
            _check_json_native(item, f"{path}.{key}")
        return
    raise SerializationError(f"{type(value).__name__} at {path} is not JSON-native")


def _encode(value: Any) -> bytes:
    _check_json_native(value)
    try:
        return json.dumps(value, ensure_ascii=False, separators=(",", ":")).encode("utf-8")
    except (TypeError, ValueError) as exc:
        raise SerializationError(f"value is not JSON serializable: {exc}") from exc


def _decode(raw: bytes) -> Any:
    try:
        return json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as exc:
        raise SerializationError(f"stored bytes are not valid JSON: {exc}") from exc


class ExpiringCacheStore(Generic[T]):
    """
    Usage:
        cache = ExpiringCacheStore(InMemoryBackend())

        await cache.set_cached("attractions:52.520:13.405", payload, ttl_ms)
        payload = await cache.get_cached("attractions:52.520:13.405")
        if payload is None:
            ...  # miss, expired, or backend failure: fetch live
    """

    def __init__(
        self,
        backend: KeyValueBackend,
        clock: Callable[[], int] | None = None,
    ) -> None:
        """
        Args:
            backend: Byte-level key-value store.
            clock:   Returns the current time in epoch milliseconds.
                     Defaults to the wall clock; tests inject a fake.
        """
        self._backend = backend
        self._clock = clock or _now_ms

    @property
    def backend(self) -> KeyValueBackend:
        return self._backend

    # ------------------------------------------------------------------
    # Raw access (no freshness check)
    # ------------------------------------------------------------------

    async def get(self, key: str) -> T | None:
        """Return the raw stored value, or None if absent or unreadable."""
        try:
            raw = await self._backend.read(key)
            if raw is None:
                return None
            return _decode(raw)
        except StorageError:
            logger.warning("cache get failed: key=%s", key, exc_info=True)
            return None

    async def set(self, key: str, value: T) -> bool:
        """Overwrite key unconditionally. Returns False on failure."""
        try:
            await self._backend.write(key, _encode(value))
            return True
        except StorageError:
            logger.warning("cache set failed: key=%s", key, exc_info=True)
            return False

    async def remove(self, key: str) -> bool:
        """Delete key. Deleting an absent key succeeds."""
        try:
            await self._backend.delete(key)
            return True
        except StorageError:
            logger.warning("cache remove failed: key=%s", key, exc_info=True)
            return False

    async def clear(self) -> bool:
        try:
            await self._backend.clear()
            return True
        except StorageError:
            logger.warning("cache clear failed", exc_info=True)
            return False

    # ------------------------------------------------------------------
    # TTL-aware access
    # ------------------------------------------------------------------

    async def get_cached(self, key: str) -> T | None:
        """
        Return the data of a fresh CacheEntry, or None.

        An entry is stale when now - timestamp > expiresIn; a stale entry is
        removed before returning None. A stored value that is not a valid
        envelope is treated as a miss.
        """
        raw = await self.get(key)
        if raw is None:
            logger.debug("cache miss: key=%s", key)
            return None

        try:
            entry: CacheEntry[T] = CacheEntry.from_dict(raw)
        except (KeyError, TypeError, ValueError, AttributeError):
            logger.warning("cache entry malformed, ignoring: key=%s", key)
            return None

        now = self._clock()
        if entry.is_expired(now):
            logger.debug(
                "cache expired: key=%s age_ms=%d ttl_ms=%d",
                key,
                now - entry.timestamp,
                entry.expires_in,
            )
            await self.remove(key)
            return None

        logger.debug("cache hit: key=%s", key)
        return entry.data

    async def set_cached(self, key: str, data: T, ttl_ms: int) -> bool:
        """Wrap data with the current timestamp and ttl_ms, then write it."""
        entry = CacheEntry(data=data, timestamp=self._clock(), expires_in=int(ttl_ms))
        return await self.set(key, entry.to_dict())
