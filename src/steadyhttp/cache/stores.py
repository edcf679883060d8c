"""Cache stores: where :class:`~steadyhttp.cache.ResponseCache` keeps entries.

Any object with the :class:`CacheStore` shape can be attached to a client.
Two are provided:

* :class:`MemoryCacheStore` -- a process-local dict, guarded by a lock so
  concurrent writers to the same key never corrupt it (last writer wins).
* :class:`DiskCacheStore` -- a persistent :class:`diskcache.Cache`
  directory, shared safely between threads and processes.

``expire`` is in seconds; ``None`` means "keep until the store evicts it".
"""

from __future__ import annotations

import threading
import time
from pathlib import Path
from typing import Any, Callable, Optional, Protocol, runtime_checkable

import diskcache


@runtime_checkable
class CacheStore(Protocol):
    """Minimal key/value store with per-entry expiry."""

    def get(self, key: str, default: Any = None) -> Any: ...

    def set(self, key: str, value: Any, expire: Optional[float] = None) -> Any: ...

    def delete(self, key: str) -> Any: ...

    def clear(self) -> int: ...

    def __len__(self) -> int: ...

    def close(self) -> None: ...


class MemoryCacheStore:
    """In-process store with optional size bound.

    Args:
        max_entries: When set, the oldest entry is evicted once the store
            is full.
        clock: Time source in seconds; injectable for tests.
    """

    def __init__(
        self,
        max_entries: Optional[int] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._entries: dict[str, tuple[Any, Optional[float]]] = {}
        self._lock = threading.Lock()
        self._max_entries = max_entries
        self._clock = clock

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            item = self._entries.get(key)
            if item is None:
                return default
            value, expires_at = item
            if expires_at is not None and self._clock() >= expires_at:
                del self._entries[key]
                return default
            return value

    def set(self, key: str, value: Any, expire: Optional[float] = None) -> bool:
        expires_at = None if expire is None else self._clock() + expire
        with self._lock:
            self._entries.pop(key, None)
            if self._max_entries is not None:
                while len(self._entries) >= self._max_entries:
                    del self._entries[next(iter(self._entries))]
            self._entries[key] = (value, expires_at)
        return True

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> int:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            return count

    def __len__(self) -> int:
        return len(self._entries)

    def close(self) -> None:
        pass


class DiskCacheStore:
    """Persistent store backed by :class:`diskcache.Cache`.

    Entries live in a ``responses/`` directory under *cache_dir*.

    Example::

        store = DiskCacheStore(get_cache_dir())
        client = HttpClient(cache=store)
    """

    def __init__(self, cache_dir: str | Path) -> None:
        self._directory = Path(cache_dir) / "responses"
        self._cache = diskcache.Cache(str(self._directory))

    @property
    def directory(self) -> Path:
        return self._directory

    def get(self, key: str, default: Any = None) -> Any:
        return self._cache.get(key, default)

    def set(self, key: str, value: Any, expire: Optional[float] = None) -> bool:
        return self._cache.set(key, value, expire=expire)

    def delete(self, key: str) -> bool:
        return self._cache.delete(key)

    def clear(self) -> int:
        return self._cache.clear()

    def __len__(self) -> int:
        return len(self._cache)

    def close(self) -> None:
        self._cache.close()
