"""Exception hierarchy for steadyhttp.

All exceptions inherit from :class:`SteadyError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`steadyhttp.exit_codes`.
The CLI entry point in :func:`steadyhttp.app.main` catches ``SteadyError``
and exits with that code.

Subclass hierarchy::

    SteadyError (exit 1)
    +-- InvalidArgumentError (exit 2)
    +-- InvalidHandlerError  (exit 2)
    +-- ConnectionError_     (exit 6)
    +-- ResponseError        (exit 5)
    +-- AggregateBatchError  (exit 8)
    +-- ConfigError          (exit 1)

Validation errors (:class:`InvalidArgumentError`, :class:`InvalidHandlerError`)
are raised before any network traffic.  :class:`ConnectionError_` and
:class:`ResponseError` only escape a request once its retry budget is spent.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Union

from steadyhttp.exit_codes import (
    EXIT_BATCH_ABORTED,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_RESPONSE_ERROR,
)

if TYPE_CHECKING:
    import httpx


class SteadyError(Exception):
    """Base exception for all steadyhttp errors.

    Args:
        message: Human-readable error description.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidArgumentError(SteadyError):
    """Raised for rejected option values (negative timeouts, bad TTL types, unknown options)."""

    exit_code = EXIT_INVALID_USAGE


class InvalidHandlerError(SteadyError):
    """Raised when the ``handler`` option cannot be resolved to a callable."""

    exit_code = EXIT_INVALID_USAGE


class ConnectionError_(SteadyError):
    """Raised when no response was obtained (DNS, connect, read or attempt timeout).

    Named with a trailing underscore to avoid shadowing the built-in
    ``ConnectionError``.

    Args:
        message: Human-readable error description.
        request: The request that failed, when known.
    """

    exit_code = EXIT_CONNECTION_ERROR

    def __init__(self, message: str, request: Optional[httpx.Request] = None):
        super().__init__(message)
        self.request = request


class ResponseError(SteadyError):
    """Raised when a response was obtained but counts as a failure.

    The full response stays reachable so callers can inspect the status
    code, headers and body of the failing attempt.

    Args:
        message: Human-readable error description.
        response: The failing :class:`httpx.Response`.
    """

    exit_code = EXIT_RESPONSE_ERROR

    def __init__(self, message: str, response: httpx.Response):
        super().__init__(message)
        self.response = response

    @property
    def request(self) -> httpx.Request:
        """The request that produced :attr:`response`."""
        return self.response.request

    @property
    def status_code(self) -> int:
        """Shortcut for ``response.status_code``."""
        return self.response.status_code


class AggregateBatchError(SteadyError):
    """Raised when a batch is aborted by one of its requests.

    Args:
        error: The per-request exception that aborted the batch.
        key: The batch key of the failing request.
    """

    exit_code = EXIT_BATCH_ABORTED

    def __init__(self, error: BaseException, key: Union[str, int]):
        super().__init__(f"Batch aborted by request {key!r}: {error}")
        self.error = error
        self.key = key


class ConfigError(SteadyError):
    """Raised for unreadable or invalid settings files and environment values."""

    exit_code = EXIT_GENERIC_FAILURE
