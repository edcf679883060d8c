"""Configuration surface shared by :class:`AsyncHttpClient` and :class:`HttpClient`.

A client owns a base :class:`~steadyhttp.options.RequestConfig`.  The fluent
setters below swap that base for a new validated snapshot and return the
client, so calls chain::

    client.set_header("DNT", "1").set_proxy("socks5://127.0.0.1:9050")

Requests already in flight keep the snapshot they started with.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import timedelta
from typing import Any, Optional, TypeVar, Union

from steadyhttp.cache import CacheStore, ResponseCache
from steadyhttp.options import Option, RequestConfig, merge

ClientT = TypeVar("ClientT", bound="ConfigurableClient")


def build_cache(cache: Union[ResponseCache, CacheStore, None]) -> ResponseCache:
    """Wrap a bare store in a :class:`ResponseCache`; pass a cache through."""
    if isinstance(cache, ResponseCache):
        return cache
    return ResponseCache(cache)


class ConfigurableClient:
    """Holds the client-wide base options and their fluent setters.

    Args:
        config: Base options, as a snapshot or an option mapping.
    """

    def __init__(self, config: Union[RequestConfig, Mapping[Any, Any], None] = None) -> None:
        if isinstance(config, RequestConfig):
            self._config = config
        else:
            self._config = RequestConfig.from_options(config)

    @property
    def config(self) -> RequestConfig:
        return self._config

    def get_config(self, name: Union[Option, str, None] = None) -> Any:
        """Return one option, or all options as a ``dict`` when *name* is ``None``."""
        if name is None:
            return self._config.get_all()
        return self._config.get(name)

    def merge_config(self: ClientT, options: Union[RequestConfig, Mapping[Any, Any]]) -> ClientT:
        """Overlay *options* onto the base configuration."""
        self._config = merge(self._config, options)
        return self

    def set_header(self: ClientT, name: str, value: Optional[str]) -> ClientT:
        """Set a default header; ``None`` removes it."""
        self._config = self._config.set_header(name, value)
        return self

    def set_proxy(self: ClientT, proxy: Optional[str]) -> ClientT:
        self._config = self._config.set_proxy(proxy)
        return self

    def set_timeout(self: ClientT, seconds: float) -> ClientT:
        self._config = self._config.set_timeout(seconds)
        return self

    def set_connect_timeout(self: ClientT, seconds: float) -> ClientT:
        self._config = self._config.set_connect_timeout(seconds)
        return self

    def set_retry_limit(self: ClientT, retries: int) -> ClientT:
        self._config = self._config.set_retry_limit(retries)
        return self

    def set_cache_ttl(self: ClientT, ttl: Union[timedelta, int, None]) -> ClientT:
        self._config = self._config.set_cache_ttl(ttl)
        return self

    def set_handler(self: ClientT, handler: Any) -> ClientT:
        self._config = self._config.set_handler(handler)
        return self

    def _snapshot(self, options: Union[RequestConfig, Mapping[Any, Any], None]) -> RequestConfig:
        return merge(self._config, options)
