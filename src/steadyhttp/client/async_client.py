"""Asynchronous client -- the primary steadyhttp API.

:class:`AsyncHttpClient` wires the pieces together: a
:class:`~steadyhttp.transport.HttpxTransport`, a
:class:`~steadyhttp.cache.ResponseCache`, the
:class:`~steadyhttp.executor.RequestExecutor` for single requests and the
:class:`~steadyhttp.pool.ConcurrentRequestPool` for batches.

See Also:
    :class:`~steadyhttp.client.sync_client.HttpClient` for the blocking
    facade over the same behaviour.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Awaitable, Callable, Optional, Union

import httpx

from steadyhttp.cache import CacheStore, ResponseCache
from steadyhttp.client.base import ConfigurableClient, build_cache
from steadyhttp.executor import RequestExecutor
from steadyhttp.options import RequestConfig
from steadyhttp.pool import DEFAULT_CONCURRENCY, ConcurrentRequestPool, RejectCallback, RequestKey
from steadyhttp.transport import HttpxTransport, Transport

Options = Union[RequestConfig, Mapping[Any, Any], None]


class AsyncHttpClient(ConfigurableClient):
    """Non-blocking client with retry, caching and bounded batches.

    Best used as an async context manager so the underlying connections are
    closed.

    Args:
        config: Base options for every request (snapshot or option mapping).
        cache: A :class:`ResponseCache`, or a bare :class:`CacheStore` to
            wrap in one.  ``None`` disables caching.
        transport: A :class:`Transport`, or an httpx transport (such as
            :class:`httpx.MockTransport`) to wrap in :class:`HttpxTransport`.
        sleep: Coroutine used for retry backoff.

    Example::

        async with AsyncHttpClient({"retry_limit": 2}, cache=MemoryCacheStore()) as client:
            uuid = await client.get("https://httpbin.org/uuid", {"handler": json_handler})
    """

    def __init__(
        self,
        config: Options = None,
        cache: Union[ResponseCache, CacheStore, None] = None,
        transport: Union[Transport, httpx.AsyncBaseTransport, None] = None,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
    ) -> None:
        super().__init__(config)
        if isinstance(transport, httpx.AsyncBaseTransport):
            transport = HttpxTransport(transport=transport)
        self._transport: Transport = transport or HttpxTransport()
        self._executor = RequestExecutor(self._transport, build_cache(cache), sleep=sleep)
        self._pool = ConcurrentRequestPool(self._executor)

    async def __aenter__(self) -> AsyncHttpClient:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._transport.aclose()

    @property
    def cache(self) -> ResponseCache:
        return self._executor.cache

    # ------------------------------------------------------------------ #
    # Single requests
    # ------------------------------------------------------------------ #

    async def request(
        self,
        method: str,
        url: str,
        options: Options = None,
        params: Optional[dict[str, Any]] = None,
        json: Any = None,
        content: Optional[str | bytes] = None,
        data: Optional[dict[str, Any]] = None,
    ) -> Any:
        """Run one logical request.

        Args:
            method: HTTP method.
            url: Absolute URL.
            options: Per-request options merged over the client's base.
            params: Query parameters appended to *url*.
            json: JSON body.
            content: Raw body.
            data: Form-encoded body.

        Returns:
            The handler's result, or the :class:`httpx.Response` when no
            handler is configured.

        Raises:
            InvalidArgumentError: For invalid per-request options.
            InvalidHandlerError: If the handler cannot be resolved.
            ConnectionError_: When no attempt obtained a response.
            ResponseError: When the final attempt returned an error status.
        """
        config = self._snapshot(options)
        return await self._executor.execute(
            method, url, config, params=params, json=json, content=content, data=data,
        )

    async def get(self, url: str, options: Options = None, **kwargs: Any) -> Any:
        return await self.request("GET", url, options, **kwargs)

    async def head(self, url: str, options: Options = None, **kwargs: Any) -> Any:
        return await self.request("HEAD", url, options, **kwargs)

    async def post(self, url: str, options: Options = None, **kwargs: Any) -> Any:
        return await self.request("POST", url, options, **kwargs)

    async def put(self, url: str, options: Options = None, **kwargs: Any) -> Any:
        return await self.request("PUT", url, options, **kwargs)

    async def patch(self, url: str, options: Options = None, **kwargs: Any) -> Any:
        return await self.request("PATCH", url, options, **kwargs)

    async def delete(self, url: str, options: Options = None, **kwargs: Any) -> Any:
        return await self.request("DELETE", url, options, **kwargs)

    # ------------------------------------------------------------------ #
    # Batches
    # ------------------------------------------------------------------ #

    async def request_pool(
        self,
        method: str,
        requests: Union[Mapping[RequestKey, Any], Sequence[Any]],
        options: Options = None,
        concurrency: int = DEFAULT_CONCURRENCY,
        on_reject: Optional[RejectCallback] = None,
    ) -> dict[RequestKey, Any]:
        """Run a keyed batch with at most *concurrency* requests in flight.

        See :meth:`~steadyhttp.pool.ConcurrentRequestPool.run_all`.
        """
        return await self._pool.run_all(
            method, requests, self._snapshot(options), concurrency, on_reject,
        )
