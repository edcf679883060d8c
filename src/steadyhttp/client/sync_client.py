"""Blocking facade over :class:`~steadyhttp.client.async_client.AsyncHttpClient`.

Every call runs on a fresh event loop via :func:`asyncio.run`, so the
facade must not be used from inside a running loop; use
:class:`AsyncHttpClient` there.  The base configuration and the response
cache are shared between calls.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping, Sequence
from typing import Any, Awaitable, Callable, Coroutine, Optional, TypeVar, Union

import httpx

from steadyhttp.cache import CacheStore, ResponseCache
from steadyhttp.client.async_client import AsyncHttpClient, Options
from steadyhttp.client.base import ConfigurableClient, build_cache
from steadyhttp.pool import DEFAULT_CONCURRENCY, RejectCallback, RequestKey

T = TypeVar("T")


class HttpClient(ConfigurableClient):
    """Blocking client with the same options and behaviour as the async one.

    Args:
        config: Base options for every request.
        cache: A :class:`ResponseCache` or a bare :class:`CacheStore`.
        transport: Optional low-level httpx transport (e.g.
            :class:`httpx.MockTransport`).
        sleep: Coroutine used for retry backoff.
    """

    def __init__(
        self,
        config: Options = None,
        cache: Union[ResponseCache, CacheStore, None] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
    ) -> None:
        super().__init__(config)
        self._cache = build_cache(cache)
        self._transport = transport
        self._sleep = sleep

    def __enter__(self) -> HttpClient:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def close(self) -> None:
        self._cache.close()

    @property
    def cache(self) -> ResponseCache:
        return self._cache

    def request(self, method: str, url: str, options: Options = None, **kwargs: Any) -> Any:
        """Run one logical request; see :meth:`AsyncHttpClient.request`."""
        return self._run(lambda client: client.request(method, url, options, **kwargs))

    def get(self, url: str, options: Options = None, **kwargs: Any) -> Any:
        return self.request("GET", url, options, **kwargs)

    def head(self, url: str, options: Options = None, **kwargs: Any) -> Any:
        return self.request("HEAD", url, options, **kwargs)

    def post(self, url: str, options: Options = None, **kwargs: Any) -> Any:
        return self.request("POST", url, options, **kwargs)

    def put(self, url: str, options: Options = None, **kwargs: Any) -> Any:
        return self.request("PUT", url, options, **kwargs)

    def patch(self, url: str, options: Options = None, **kwargs: Any) -> Any:
        return self.request("PATCH", url, options, **kwargs)

    def delete(self, url: str, options: Options = None, **kwargs: Any) -> Any:
        return self.request("DELETE", url, options, **kwargs)

    def request_pool(
        self,
        method: str,
        requests: Union[Mapping[RequestKey, Any], Sequence[Any]],
        options: Options = None,
        concurrency: int = DEFAULT_CONCURRENCY,
        on_reject: Optional[RejectCallback] = None,
    ) -> dict[RequestKey, Any]:
        """Run a keyed batch; see :meth:`AsyncHttpClient.request_pool`."""
        return self._run(
            lambda client: client.request_pool(method, requests, options, concurrency, on_reject)
        )

    def _run(self, call: Callable[[AsyncHttpClient], Coroutine[Any, Any, T]]) -> T:
        async def runner() -> T:
            async with AsyncHttpClient(
                self._config, cache=self._cache, transport=self._transport, sleep=self._sleep,
            ) as client:
                return await call(client)

        return asyncio.run(runner())
