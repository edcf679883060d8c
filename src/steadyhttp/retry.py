"""Retry-on-failure for a single logical request.

A logical request moves through a small state machine::

    Attempting(0) --success--> Succeeded
         |
       failure, retryable and n < retry_limit --> backoff --> Attempting(n + 1)
         |
       otherwise --> Failed(last error)

``retry_limit = 0`` therefore means exactly one attempt, and a request that
never succeeds makes ``retry_limit + 1`` attempts.  Two failure classes are
retryable:

* :class:`~steadyhttp.exceptions.ConnectionError_` -- no response at all
  (DNS, connect or read failure, attempt timeout);
* :class:`~steadyhttp.exceptions.ResponseError` whose status satisfies the
  policy's ``retry_on_status`` predicate (5xx by default).

Backoff delays are awaited with :func:`asyncio.sleep`, so a request waiting
to retry never blocks other requests on the same event loop.  Attempts of
one request are strictly sequential.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional

import httpx

from steadyhttp.exceptions import ConnectionError_, InvalidArgumentError, ResponseError
from steadyhttp.output import get_output

if TYPE_CHECKING:
    from steadyhttp.options import RequestConfig

DEFAULT_MAX_BACKOFF = 30.0


@dataclass
class AttemptStats:
    """What happened during one attempt; handed to ``on_attempt`` observers.

    Attributes:
        ordinal: 0-based attempt number within the logical request.
        method: HTTP method.
        url: Request URL.
        elapsed: Wall time of the attempt in seconds.
        response: The response, when one was obtained (also for error statuses).
        error: The classified failure, or ``None`` on success.
    """

    ordinal: int
    method: str
    url: str
    elapsed: float
    response: Optional[httpx.Response] = None
    error: Optional[Exception] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None

    @property
    def status_code(self) -> Optional[int]:
        return self.response.status_code if self.response is not None else None


def is_server_error(status_code: int) -> bool:
    """Default retry predicate: retry 5xx responses only."""
    return status_code >= 500


class RetryPolicy:
    """Decides retry-versus-stop for each attempt of a logical request.

    Args:
        retry_limit: Retries allowed after the first attempt.
        backoff_factor: Delay before retry *n* is ``backoff_factor * 2**n``
            seconds.  ``0`` retries immediately.
        max_backoff: Upper bound for a single delay.
        retry_on_status: Predicate choosing which error statuses are retried.
        sleep: Coroutine used to wait between attempts; defaults to
            :func:`asyncio.sleep`.
    """

    def __init__(
        self,
        retry_limit: int = 0,
        backoff_factor: float = 0.5,
        max_backoff: float = DEFAULT_MAX_BACKOFF,
        retry_on_status: Optional[Callable[[int], bool]] = None,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
    ) -> None:
        if retry_limit < 0:
            raise InvalidArgumentError("negative retry limit")
        if backoff_factor < 0:
            raise InvalidArgumentError("negative backoff factor")
        self.retry_limit = retry_limit
        self.backoff_factor = backoff_factor
        self.max_backoff = max_backoff
        self._retry_on_status = retry_on_status or is_server_error
        self._sleep = sleep

    @classmethod
    def from_config(cls, config: RequestConfig, **kwargs: Any) -> RetryPolicy:
        """Build the policy described by a request's options."""
        return cls(
            retry_limit=config.retry_limit,
            backoff_factor=config.backoff_factor,
            retry_on_status=config.retry_on_status,
            **kwargs,
        )

    def is_retryable(self, error: BaseException) -> bool:
        """Whether *error* belongs to a retryable failure class."""
        if isinstance(error, ConnectionError_):
            return True
        if isinstance(error, ResponseError):
            return bool(self._retry_on_status(error.status_code))
        return False

    def should_retry(self, attempt: int, error: BaseException) -> bool:
        """Whether attempt *attempt* (0-based) that failed with *error* gets a successor."""
        return attempt < self.retry_limit and self.is_retryable(error)

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after failed attempt *attempt*: 0.5, 1, 2, ... for the default factor."""
        return min(self.backoff_factor * (2 ** attempt), self.max_backoff)

    async def run(
        self,
        send: Callable[[int], Awaitable[httpx.Response]],
        method: str,
        url: str,
        observer: Optional[Callable[[AttemptStats], Any]] = None,
    ) -> httpx.Response:
        """Drive *send* until it succeeds or the policy gives up.

        Args:
            send: Performs attempt *n* and returns its response, raising
                :class:`ConnectionError_` or :class:`ResponseError` on failure.
            method: HTTP method, for stats and diagnostics.
            url: Request URL, for stats and diagnostics.
            observer: Called once per attempt, whatever the outcome.

        Returns:
            The response of the successful attempt.

        Raises:
            ConnectionError_: When the last attempt obtained no response.
            ResponseError: When the last attempt returned an error status.
        """
        output = get_output()
        attempt = 0
        while True:
            started = time.perf_counter()
            try:
                response = await send(attempt)
            except Exception as exc:
                stats = AttemptStats(
                    ordinal=attempt,
                    method=method,
                    url=url,
                    elapsed=time.perf_counter() - started,
                    response=getattr(exc, "response", None),
                    error=exc,
                )
                if observer is not None:
                    observer(stats)
                if not self.should_retry(attempt, exc):
                    if attempt and self.is_retryable(exc):
                        output.debug(f"Giving up on {method} {url} after {attempt + 1} attempts: {exc}")
                    raise

                delay = self.delay_for(attempt)
                output.debug(
                    f"{exc}; retrying {method} {url} in {delay:g}s "
                    f"(retry {attempt + 1}/{self.retry_limit})"
                )
                if delay > 0:
                    await (self._sleep or asyncio.sleep)(delay)
                attempt += 1
                continue

            if observer is not None:
                observer(
                    AttemptStats(
                        ordinal=attempt,
                        method=method,
                        url=url,
                        elapsed=time.perf_counter() - started,
                        response=response,
                    )
                )
            return response
