"""
Key-value persistence backends used under the ExpiringCacheStore.

Every backend speaks bytes and raises StorageError on failure. Nothing here
knows about TTLs or envelopes; that lives one layer up in store.py.

  InMemoryBackend — dict-backed, process lifetime only (default, tests)
  RedisBackend    — redis.asyncio client, keys namespaced by prefix
  FileBackend     — one file per key, survives restarts (offline use)
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
from pathlib import Path
from typing import Any, Protocol

import redis.asyncio as aioredis

from services.discovery.config import Settings
from services.discovery.errors import StorageError

logger = logging.getLogger(__name__)


class KeyValueBackend(Protocol):
    """Protocol for byte-level key-value stores."""

    async def read(self, key: str) -> bytes | None:
        ...

    async def write(self, key: str, value: bytes) -> None:
        ...

    async def delete(self, key: str) -> None:
        ...

    async def clear(self) -> None:
        ...

    async def aclose(self) -> None:
        ...


class InMemoryBackend:
    """Dict-backed backend. Single process, no durability."""

    def __init__(self) -> None:
        self._store: dict[str, bytes] = {}

    async def read(self, key: str) -> bytes | None:
        return self._store.get(key)

    async def write(self, key: str, value: bytes) -> None:
        self._store[key] = value

    async def delete(self, key: str) -> None:
        self._store.pop(key, None)

    async def clear(self) -> None:
        self._store.clear()

    async def aclose(self) -> None:
        return None

    def __contains__(self, key: str) -> bool:
        return key in self._store

    def __len__(self) -> int:
        return len(self._store)


class RedisBackend:
    """
    Redis-backed store.

    Only standard commands are used (GET, SET, DEL, SCAN) so the backend
    works against managed Redis without cluster mode or Lua.
    """

    def __init__(self, redis: Any, prefix: str = "discovery:") -> None:
        """
        Args:
            redis:  An async Redis client (redis.asyncio compatible).
            prefix: Namespace prepended to every key; clear() only
                    touches keys under this prefix.
        """
        self._redis = redis
        self._prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    async def read(self, key: str) -> bytes | None:
        try:
            raw = await self._redis.get(self._key(key))
        except Exception as exc:
            raise StorageError(f"redis GET failed for {key}") from exc
        if raw is None:
            return None
        return raw.encode("utf-8") if isinstance(raw, str) else raw

    async def write(self, key: str, value: bytes) -> None:
        try:
            await self._redis.set(self._key(key), value)
        except Exception as exc:
            raise StorageError(f"redis SET failed for {key}") from exc

    async def delete(self, key: str) -> None:
        try:
            await self._redis.delete(self._key(key))
        except Exception as exc:
            raise StorageError(f"redis DEL failed for {key}") from exc

    async def clear(self) -> None:
        try:
            keys = [k async for k in self._redis.scan_iter(match=f"{self._prefix}*")]
            if keys:
                await self._redis.delete(*keys)
        except Exception as exc:
            raise StorageError("redis clear failed") from exc

    async def aclose(self) -> None:
        await self._redis.aclose()

    @classmethod
    def from_url(cls, url: str, prefix: str = "discovery:") -> "RedisBackend":
        client = aioredis.from_url(url, socket_connect_timeout=5)
        return cls(client, prefix=prefix)


class FileBackend:
    """
    One file per key under a root directory.

    File names are the sha256 of the key, so arbitrary keys are safe on any
    filesystem. Blocking I/O runs in a worker thread.
    """

    _SUFFIX = ".cache"

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)

    def _path(self, key: str) -> Path:
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return self._root / f"{digest}{self._SUFFIX}"

    def _read_sync(self, key: str) -> bytes | None:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_bytes()

    def _write_sync(self, key: str, value: bytes) -> None:
        self._root.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        tmp = path.with_suffix(".tmp")
        tmp.write_bytes(value)
        tmp.replace(path)

    def _delete_sync(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)

    def _clear_sync(self) -> None:
        if not self._root.exists():
            return
        for path in self._root.glob(f"*{self._SUFFIX}"):
            path.unlink(missing_ok=True)

    async def read(self, key: str) -> bytes | None:
        try:
            return await asyncio.to_thread(self._read_sync, key)
        except OSError as exc:
            raise StorageError(f"file read failed for {key}") from exc

    async def write(self, key: str, value: bytes) -> None:
        try:
            await asyncio.to_thread(self._write_sync, key, value)
        except OSError as exc:
            raise StorageError(f"file write failed for {key}") from exc

    async def delete(self, key: str) -> None:
        try:
            await asyncio.to_thread(self._delete_sync, key)
        except OSError as exc:
            raise StorageError(f"file delete failed for {key}") from exc

    async def clear(self) -> None:
        try:
            await asyncio.to_thread(self._clear_sync)
        except OSError as exc:
            raise StorageError("file clear failed") from exc

    async def aclose(self) -> None:
        return None


def build_backend(settings: Settings) -> KeyValueBackend:
    """Construct the backend named by settings.cache_backend."""
    if settings.cache_backend == "redis":
        logger.info("Cache backend: redis (%s)", settings.redis_url)
        return RedisBackend.from_url(settings.redis_url, prefix=settings.cache_key_prefix)
    if settings.cache_backend == "file":
        logger.info("Cache backend: file (%s)", settings.cache_dir)
        return FileBackend(settings.cache_dir)
    logger.info("Cache backend: memory")
    return InMemoryBackend()
