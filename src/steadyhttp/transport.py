"""The raw transport: one HTTP attempt, no retries, no caching.

:class:`Transport` is the narrow interface the executor depends on;
:class:`HttpxTransport` implements it with :class:`httpx.AsyncClient`.
Its only jobs are applying the per-request options that belong to the wire
(headers, proxy, timeouts) and classifying "no response" failures as
:class:`~steadyhttp.exceptions.ConnectionError_`.  Error statuses are
returned as ordinary responses; deciding whether they are failures is the
executor's business.

Timeouts: ``connect_timeout`` bounds connection setup, ``timeout`` bounds
the whole attempt (and each read).  A value of ``0`` disables that limit.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, Optional, Protocol, runtime_checkable

import httpx

from steadyhttp.exceptions import ConnectionError_, InvalidArgumentError

if TYPE_CHECKING:
    from steadyhttp.options import RequestConfig


@runtime_checkable
class Transport(Protocol):
    """Sends one attempt of a request."""

    async def send(
        self,
        method: str,
        url: str,
        config: RequestConfig,
        **body: Any,
    ) -> httpx.Response: ...

    async def aclose(self) -> None: ...


class HttpxTransport:
    """:class:`Transport` backed by :class:`httpx.AsyncClient`.

    httpx binds proxies to a client, so one client is kept per proxy URI and
    created on first use.

    Args:
        transport: Optional low-level httpx transport (e.g.
            :class:`httpx.MockTransport` in tests).  When given, proxies are
            not applied.
        verify: Verify TLS certificates.
        follow_redirects: Follow 3xx redirects.
    """

    def __init__(
        self,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        verify: bool = True,
        follow_redirects: bool = True,
    ) -> None:
        self._transport = transport
        self._verify = verify
        self._follow_redirects = follow_redirects
        self._clients: dict[Optional[str], httpx.AsyncClient] = {}

    async def __aenter__(self) -> HttpxTransport:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    async def send(
        self,
        method: str,
        url: str,
        config: RequestConfig,
        **body: Any,
    ) -> httpx.Response:
        """Perform one attempt.

        Args:
            method: HTTP method.
            url: Absolute URL.
            config: Options of the logical request.
            **body: ``json``, ``content`` or ``data`` forwarded to httpx.

        Raises:
            ConnectionError_: When no usable response was obtained.
            InvalidArgumentError: When *url* cannot be parsed.
        """
        client = self._client_for(config.proxy)
        try:
            request = client.build_request(
                method,
                url,
                headers=config.headers,
                timeout=httpx.Timeout(
                    config.timeout or None,
                    connect=config.connect_timeout or None,
                ),
                **{key: value for key, value in body.items() if value is not None},
            )
        except httpx.InvalidURL as exc:
            raise InvalidArgumentError(f"Invalid URL {url!r}: {exc}") from exc

        try:
            if config.timeout:
                return await asyncio.wait_for(client.send(request), timeout=config.timeout)
            return await client.send(request)
        except httpx.ConnectTimeout as exc:
            raise ConnectionError_(
                f"Connect timed out after {config.connect_timeout:g}s: {method} {url}",
                request=request,
            ) from exc
        except (httpx.TimeoutException, asyncio.TimeoutError) as exc:
            raise ConnectionError_(
                f"Timed out after {config.timeout:g}s: {method} {url}", request=request
            ) from exc
        except httpx.TransportError as exc:
            raise ConnectionError_(
                f"Connection failed: {method} {url}: {exc}", request=request
            ) from exc
        except httpx.RequestError as exc:
            # Redirect loops and undecodable bodies: nothing usable came back.
            raise ConnectionError_(
                f"Request failed: {method} {url}: {exc}", request=request
            ) from exc

    async def aclose(self) -> None:
        """Close every underlying :class:`httpx.AsyncClient`."""
        clients, self._clients = self._clients, {}
        for client in clients.values():
            await client.aclose()

    def _client_for(self, proxy: Optional[str]) -> httpx.AsyncClient:
        key = None if self._transport is not None else proxy
        client = self._clients.get(key)
        if client is None:
            kwargs: dict[str, Any] = {
                "verify": self._verify,
                "follow_redirects": self._follow_redirects,
            }
            if self._transport is not None:
                kwargs["transport"] = self._transport
            elif proxy:
                kwargs["proxy"] = proxy
            client = httpx.AsyncClient(**kwargs)
            self._clients[key] = client
        return client
