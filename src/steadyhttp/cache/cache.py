"""Cache keys and TTL handling for handler results.

What gets cached is the *transformed* result of a request (the handler's
return value), so the handler takes part in the key: two requests that
differ only in how the response is transformed must not share an entry.
The key is the SHA-256 of::

    METHOD | URL | lower-cased, sorted headers | handler fingerprint

Entries are wrapped in a :class:`CacheEntry` carrying their own expiry
timestamp and checked against this cache's clock, so an entry is never
served past its TTL even if the store keeps it longer.

Caching only happens when a store is attached and the method is ``GET`` or
``HEAD``.  A ``cache_ttl`` of ``None`` stores the entry without expiry
(store-defined retention); a TTL of zero disables storing.
"""

from __future__ import annotations

import hashlib
import json
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Mapping, Optional

from steadyhttp.cache.stores import CacheStore
from steadyhttp.output import get_output

if TYPE_CHECKING:
    from steadyhttp.options import RequestConfig

CACHEABLE_METHODS = frozenset({"GET", "HEAD"})


@dataclass(frozen=True)
class CacheEntry:
    """A cached value plus its absolute expiry (``None`` = no expiry)."""

    value: Any
    expires_at: Optional[float] = None

    def is_expired(self, now: float) -> bool:
        return self.expires_at is not None and now >= self.expires_at


class ResponseCache:
    """Key derivation and TTL bookkeeping over a :class:`CacheStore`.

    Args:
        store: Where entries live.  ``None`` turns the cache into a no-op.
        clock: Time source in seconds; injectable for tests.
        methods: HTTP methods whose results may be cached.
    """

    def __init__(
        self,
        store: Optional[CacheStore] = None,
        clock: Callable[[], float] = time.time,
        methods: frozenset[str] = CACHEABLE_METHODS,
    ) -> None:
        self._store = store
        self._clock = clock
        self._methods = frozenset(m.upper() for m in methods)

    @property
    def enabled(self) -> bool:
        return self._store is not None

    @property
    def store(self) -> Optional[CacheStore]:
        return self._store

    def make_key(
        self,
        method: str,
        url: str,
        headers: Optional[Mapping[str, str]] = None,
        handler_fingerprint: Optional[str] = None,
    ) -> str:
        """Return the cache key for one request identity.

        Header names are case-insensitive and their order is irrelevant.
        """
        normalised = sorted((name.lower(), value) for name, value in (headers or {}).items())
        raw = json.dumps(
            [method.upper(), url, normalised, handler_fingerprint],
            separators=(",", ":"),
            ensure_ascii=False,
        )
        return hashlib.sha256(raw.encode("utf-8")).hexdigest()

    def is_cacheable(self, method: str, ttl_seconds: Optional[float]) -> bool:
        """Whether a result for *method* with *ttl_seconds* would be stored."""
        if self._store is None or method.upper() not in self._methods:
            return False
        return ttl_seconds is None or ttl_seconds > 0

    def get(self, key: str) -> Optional[CacheEntry]:
        """Return the live entry for *key*, or ``None`` on a miss or expiry."""
        if self._store is None:
            return None
        entry = self._store.get(key, None)
        if not isinstance(entry, CacheEntry):
            return None
        if entry.is_expired(self._clock()):
            self._store.delete(key)
            return None
        return entry

    def set(self, key: str, value: Any, ttl_seconds: Optional[float] = None) -> None:
        """Store *value* under *key* for *ttl_seconds* (``None`` = no expiry)."""
        if self._store is None:
            return
        expires_at = None if ttl_seconds is None else self._clock() + ttl_seconds
        self._store.set(key, CacheEntry(value, expires_at), expire=ttl_seconds)

    async def execute(
        self,
        method: str,
        url: str,
        config: RequestConfig,
        handler_fingerprint: Optional[str],
        do_request: Callable[[], Awaitable[Any]],
    ) -> Any:
        """Return a cached result, or run *do_request* and cache what it returns.

        *do_request* is not called on a live hit.  Failures from
        *do_request* propagate and nothing is stored.
        """
        ttl = config.ttl_seconds
        if not self.is_cacheable(method, ttl):
            return await do_request()

        output = get_output()
        key = self.make_key(method, url, config.headers, handler_fingerprint)
        entry = self.get(key)
        if entry is not None:
            output.debug(f"Cache hit: {method.upper()} {url}")
            return entry.value

        output.debug(f"Cache miss: {method.upper()} {url}")
        value = await do_request()
        self.set(key, value, ttl)
        return value

    def invalidate(self, key: str) -> None:
        if self._store is not None:
            self._store.delete(key)

    def clear(self) -> int:
        """Remove every entry from the store and return how many there were."""
        if self._store is None:
            return 0
        return self._store.clear()

    def stats(self) -> dict[str, Any]:
        """Return ``{"enabled": False}`` or the store's size and type."""
        if self._store is None:
            return {"enabled": False}
        stats: dict[str, Any] = {
            "enabled": True,
            "size": len(self._store),
            "store": type(self._store).__name__,
        }
        directory = getattr(self._store, "directory", None)
        if directory is not None:
            stats["directory"] = str(directory)
        return stats

    def close(self) -> None:
        if self._store is not None:
            self._store.close()
