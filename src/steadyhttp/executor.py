"""Execution of one logical request.

:class:`RequestExecutor` layers, from the outside in::

    ResponseCache  ->  RetryPolicy  ->  Transport

1. The handler option is resolved and fingerprinted (an unusable handler
   fails here, before any I/O).
2. :class:`~steadyhttp.cache.ResponseCache` returns a live cached result
   without touching the network.
3. On a miss, :class:`~steadyhttp.retry.RetryPolicy` drives transport
   attempts.  With ``http_errors`` enabled, a 4xx/5xx response becomes a
   :class:`~steadyhttp.exceptions.ResponseError` (retried only when the
   status is retryable).
4. The successful response is passed through the handler, and the handler's
   result is what gets cached and returned.
"""

from __future__ import annotations

import inspect
from typing import Any, Awaitable, Callable, Optional

import httpx

from steadyhttp.cache import ResponseCache
from steadyhttp.exceptions import InvalidArgumentError, ResponseError
from steadyhttp.fingerprint import fingerprint, resolve_callable
from steadyhttp.options import RequestConfig
from steadyhttp.retry import RetryPolicy
from steadyhttp.transport import Transport


class RequestExecutor:
    """Runs single logical requests through cache, retry and transport.

    Args:
        transport: Performs individual attempts.
        cache: Result cache; a storeless :class:`ResponseCache` when omitted.
        sleep: Coroutine used for retry backoff (defaults to
            :func:`asyncio.sleep`).
    """

    def __init__(
        self,
        transport: Transport,
        cache: Optional[ResponseCache] = None,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
    ) -> None:
        self._transport = transport
        self._cache = cache or ResponseCache()
        self._sleep = sleep

    @property
    def cache(self) -> ResponseCache:
        return self._cache

    async def execute(
        self,
        method: str,
        url: str,
        config: RequestConfig,
        params: Optional[dict[str, Any]] = None,
        json: Any = None,
        content: Optional[str | bytes] = None,
        data: Optional[dict[str, Any]] = None,
    ) -> Any:
        """Execute one logical request and return the handler's result.

        Without a handler the :class:`httpx.Response` itself is returned.

        Raises:
            InvalidHandlerError: If the handler option cannot be resolved.
            InvalidArgumentError: If the URL cannot be parsed.
            ConnectionError_: When no attempt obtained a response.
            ResponseError: When the final attempt returned an error status.
        """
        method = method.upper()
        if params:
            try:
                url = str(httpx.URL(url).copy_merge_params(params))
            except httpx.InvalidURL as exc:
                raise InvalidArgumentError(f"Invalid URL {url!r}: {exc}") from exc

        handler = resolve_callable(config.handler) if config.handler is not None else None
        handler_fingerprint = fingerprint(config.handler) if handler is not None else None
        policy = RetryPolicy.from_config(config, sleep=self._sleep)

        async def attempt(ordinal: int) -> httpx.Response:
            response = await self._transport.send(
                method, url, config, json=json, content=content, data=data,
            )
            if config.http_errors and response.is_error:
                raise ResponseError(_error_message(method, url, response), response)
            return response

        async def do_request() -> Any:
            response = await policy.run(attempt, method, url, config.on_attempt)
            return await _transform(handler, response)

        return await self._cache.execute(method, url, config, handler_fingerprint, do_request)


async def _transform(handler: Optional[Callable[..., Any]], response: httpx.Response) -> Any:
    if handler is None:
        return response
    result = handler(response.request, response)
    if inspect.isawaitable(result):
        result = await result
    return result


def _error_message(method: str, url: str, response: httpx.Response) -> str:
    """Build ``HTTP <status>: <detail>`` from a failing response."""
    try:
        detail = response.json()
        if isinstance(detail, dict):
            msg = detail.get("message") or detail.get("error") or detail.get("detail") or ""
        else:
            msg = str(detail)
    except ValueError:
        msg = response.text[:200] if response.text else ""

    prefix = f"HTTP {response.status_code} for {method} {url}"
    return f"{prefix}: {msg}" if msg else prefix
