"""
Key-addressed fetch cache.

Every remote retrieval in the pipeline (listing pages, detail documents, the
bulk fund table, per-symbol series) goes through `FetchCache.get_or_fetch`.
The policy is deliberately simple:

- If an artifact already exists for the key, it is returned unchanged and no
  remote call is made. There is no TTL and no checksum invalidation.
- Otherwise the fetcher is called, its raw bytes are persisted verbatim under
  the key, and returned.
- A fetcher that raises leaves nothing behind; the exception propagates.

Re-running a pipeline after a transport failure therefore only re-fetches the
keys that have not succeeded yet.

Backends
--------
- `LocalDiskBackend(root)`: one file per key under `root`. Writes are atomic
  (temp file + `os.replace`) and an existing artifact is never rewritten.
- `InMemoryBackend()`: dictionary-backed, for tests.

Keys are relative, `/`-separated paths. Build them with `cache_key(...)` so
free-text parts such as search queries are encoded safely.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Protocol
from urllib.parse import quote

from uitfkraken.common.file_io import atomic_write_bytes

logger = logging.getLogger(__name__)

Fetcher = Callable[[], bytes]


def cache_key(*parts: str) -> str:
    """Join key parts with '/', percent-encoding each part.

    >>> cache_key("listing", "bdo fund", "page_1.html")
    'listing/bdo%20fund/page_1.html'
    """
    if not parts:
        raise ValueError("cache_key requires at least one part")
    encoded: list[str] = []
    for part in parts:
        if not part:
            raise ValueError("cache_key parts must be non-empty")
        encoded.append(quote(part, safe="._-"))
    return "/".join(encoded)


class CacheBackend(Protocol):
    """Storage behind a `FetchCache`."""

    def exists(self, key: str) -> bool: ...

    def read(self, key: str) -> bytes: ...

    def write(self, key: str, data: bytes) -> None: ...


class LocalDiskBackend:
    """Store each artifact as `<root>/<key>`."""

    def __init__(self, root: Path) -> None:
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def path_for(self, key: str) -> Path:
        rel = Path(key)
        if rel.is_absolute() or ".." in rel.parts:
            raise ValueError(f"cache key must be a relative path: {key!r}")
        return self._root / rel

    def exists(self, key: str) -> bool:
        return self.path_for(key).is_file()

    def read(self, key: str) -> bytes:
        return self.path_for(key).read_bytes()

    def write(self, key: str, data: bytes) -> None:
        target = self.path_for(key)
        if target.exists():
            # Another run got there first; keep the existing artifact.
            return
        atomic_write_bytes(target, data)


class InMemoryBackend:
    """Dictionary-backed backend (tests, dry runs)."""

    def __init__(self) -> None:
        self._store: dict[str, bytes] = {}

    def exists(self, key: str) -> bool:
        return key in self._store

    def read(self, key: str) -> bytes:
        return self._store[key]

    def write(self, key: str, data: bytes) -> None:
        self._store.setdefault(key, data)

    def keys(self) -> list[str]:
        return list(self._store)


class FetchCache:
    """Skip-if-present cache in front of arbitrary fetchers.

    Usage:
        cache = FetchCache(LocalDiskBackend(Path("data/cache")))
        key = cache_key("detail", "AAA:PM.json")
        body = cache.get_or_fetch(key, lambda: http.get(url))
    """

    def __init__(self, backend: CacheBackend) -> None:
        self._backend = backend
        self.hits = 0
        self.misses = 0

    @property
    def backend(self) -> CacheBackend:
        return self._backend

    def contains(self, key: str) -> bool:
        return self._backend.exists(key)

    def get_or_fetch(self, key: str, fetcher: Fetcher) -> bytes:
        """Return the artifact for `key`, fetching and persisting it on a miss.

        Raises:
            Whatever `fetcher` raises; nothing is persisted in that case.
            TypeError: If the fetcher does not return bytes.
        """
        if self._backend.exists(key):
            self.hits += 1
            logger.debug("cache hit: %s", key)
            return self._backend.read(key)

        self.misses += 1
        logger.debug("cache miss: %s", key)
        data = fetcher()
        if not isinstance(data, (bytes, bytearray)):
            raise TypeError(
                f"fetcher for {key!r} returned {type(data).__name__}, expected bytes"
            )
        self._backend.write(key, bytes(data))
        return bytes(data)


__all__ = [
    "CacheBackend",
    "FetchCache",
    "Fetcher",
    "InMemoryBackend",
    "LocalDiskBackend",
    "cache_key",
]
