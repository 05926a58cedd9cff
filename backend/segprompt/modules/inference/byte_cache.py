# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
SegPrompt — Model Byte Cache
Opaque key → bytes store for downloaded model weights, keyed by the
model's source URL. Swap backends with zero session-manager changes.

InMemoryByteCache  — tests / single-process use, lost on restart
DiskByteCache      — default; one file per model under storage/models/
RedisByteCache     — shared across workers / hosts

get() returns None on a miss. put() raises on failure; callers that treat
caching as best-effort catch and log it.
"""

from __future__ import annotations

import hashlib
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from segprompt.config import Settings, get_settings
from segprompt.utils.logger import get_logger

log = get_logger(__name__)


# ─── Abstract Interface ──────────────────────────────────────────────────────

class ByteCache(ABC):
    """
    Abstract base class for all model byte cache backends.
    All methods are synchronous; the session manager calls them off the
    event loop via asyncio.to_thread.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[bytes]:
        """Return cached bytes for key, or None on a miss."""

    @abstractmethod
    def put(self, key: str, data: bytes) -> None:
        """Store bytes under key. Raises on failure."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove key if present. Never raises on a missing key."""

    def contains(self, key: str) -> bool:
        return self.get(key) is not None


# ─── In-Memory Implementation ────────────────────────────────────────────────

class InMemoryByteCache(ByteCache):
    """Thread-safe dict + RLock cache."""

    def __init__(self) -> None:
        self._store: dict[str, bytes] = {}
        self._lock = threading.RLock()

    def get(self, key: str) -> Optional[bytes]:
        with self._lock:
            return self._store.get(key)

    def put(self, key: str, data: bytes) -> None:
        with self._lock:
            self._store[key] = bytes(data)
        log.debug("byte_cache_put", key=key, size_bytes=len(data), backend="memory")

    def delete(self, key: str) -> None:
        with self._lock:
            self._store.pop(key, None)

    def count(self) -> int:
        with self._lock:
            return len(self._store)


# ─── Disk Implementation ─────────────────────────────────────────────────────

class DiskByteCache(ByteCache):
    """
    One file per key, named by the SHA-256 of the key.
    Writes go to a temp file in the same directory and are renamed into
    place, so a reader never sees a partially written model.
    """

    _SUFFIX = ".bin"

    def __init__(self, root: Path) -> None:
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def path_for(self, key: str) -> Path:
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return self._root / f"{digest}{self._SUFFIX}"

    def get(self, key: str) -> Optional[bytes]:
        path = self.path_for(key)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None

    def put(self, key: str, data: bytes) -> None:
        self._root.mkdir(parents=True, exist_ok=True)
        dest = self.path_for(key)
        fd, tmp_name = tempfile.mkstemp(dir=self._root, suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
            os.replace(tmp_name, dest)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        log.debug("byte_cache_put", key=key, size_bytes=len(data), path=str(dest))

    def delete(self, key: str) -> None:
        self.path_for(key).unlink(missing_ok=True)


# ─── Redis Implementation ────────────────────────────────────────────────────

class RedisByteCache(ByteCache):
    """
    Redis-backed cache for multi-worker deployments.
    Values are stored raw (binary-safe) with an optional TTL.
    Requires redis-py and a running Redis instance.
    """

    def __init__(self, redis_url: str, ttl_seconds: int = 0) -> None:
        try:
            import redis as redis_lib
        except ImportError as e:
            raise ImportError(
                "redis package required for RedisByteCache. "
                "Install with: pip install redis"
            ) from e

        self._client = redis_lib.from_url(redis_url)
        self._ttl = ttl_seconds
        self._prefix = "segprompt:model:"

        # Verify connection on init
        self._client.ping()
        log.info("redis_byte_cache_connected", url=redis_url)

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    def get(self, key: str) -> Optional[bytes]:
        return self._client.get(self._key(key))

    def put(self, key: str, data: bytes) -> None:
        if self._ttl > 0:
            self._client.setex(self._key(key), self._ttl, data)
        else:
            self._client.set(self._key(key), data)
        log.debug("byte_cache_put", key=key, size_bytes=len(data), backend="redis")

    def delete(self, key: str) -> None:
        self._client.delete(self._key(key))


def make_byte_cache(settings: Settings | None = None) -> ByteCache:
    """Build the cache backend selected by MODEL_CACHE_BACKEND."""
    settings = settings or get_settings()

    if settings.model_cache_backend == "redis":
        log.info("init_byte_cache", backend="redis", url=settings.redis_url)
        return RedisByteCache(
            redis_url=settings.redis_url,
            ttl_seconds=settings.model_cache_ttl_seconds,
        )
    if settings.model_cache_backend == "memory":
        log.info("init_byte_cache", backend="memory")
        return InMemoryByteCache()

    log.info("init_byte_cache", backend="disk", root=str(settings.model_cache_dir))
    return DiskByteCache(settings.model_cache_dir)
