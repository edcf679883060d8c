"""Request options: the closed, validated configuration of one logical request.

:class:`RequestConfig` is a frozen Pydantic model.  It is never mutated in
place: every setter validates its argument and returns a *new* snapshot, so
a base configuration shared between concurrent requests can never change
under a request that is already running.

Recognised options are enumerated by :class:`Option`; anything else is
rejected with :class:`~steadyhttp.exceptions.InvalidArgumentError`.

Merging (:func:`merge`) overlays scalar options and merges header maps key
by key.  A ``None`` header value removes that header::

    base = RequestConfig().set_header("Accept-Language", "de")
    merged = merge(base, {"headers": {"Accept-Language": None}, "timeout": 5})
    assert "Accept-Language" not in merged.headers
"""

from __future__ import annotations

import enum
from collections.abc import Mapping
from datetime import timedelta
from typing import Any, Callable, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from steadyhttp import __version__
from steadyhttp.exceptions import InvalidArgumentError
from steadyhttp.fingerprint import resolve_callable

DEFAULT_HEADERS: dict[str, str] = {
    "Accept-Language": "en-US,en;q=0.9",
    "User-Agent": f"steadyhttp/{__version__}",
}

INVALID_TTL_MESSAGE = "Invalid cache ttl value. Supported timedelta, int and None."


class Option(str, enum.Enum):
    """Names of every option a :class:`RequestConfig` accepts."""

    HEADERS = "headers"
    PROXY = "proxy"
    TIMEOUT = "timeout"
    CONNECT_TIMEOUT = "connect_timeout"
    RETRY_LIMIT = "retry_limit"
    CACHE_TTL = "cache_ttl"
    HANDLER = "handler"
    HTTP_ERRORS = "http_errors"
    ON_ATTEMPT = "on_attempt"
    BACKOFF_FACTOR = "backoff_factor"
    RETRY_ON_STATUS = "retry_on_status"


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class RequestConfig(BaseModel):
    """Immutable snapshot of the options for one logical request.

    Validators raise :class:`InvalidArgumentError` directly (Pydantic lets
    non-``ValueError`` exceptions bubble up), so a bad value fails with the
    same error whether it arrives through a setter or through
    :meth:`from_options`.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    headers: dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_HEADERS),
        description="Request headers, in insertion order",
    )
    proxy: Optional[str] = Field(default=None, description="Proxy URI, e.g. socks5://127.0.0.1:9050")
    timeout: float = Field(default=30.0, description="Per-attempt timeout in seconds")
    connect_timeout: float = Field(default=10.0, description="Connect timeout in seconds")
    retry_limit: int = Field(default=3, description="Retries after the first attempt")
    cache_ttl: Optional[Union[timedelta, int]] = Field(
        default=None, description="Cache lifetime; None keeps entries for the store's retention"
    )
    handler: Any = Field(default=None, description="Transforms (request, response) into the result")
    http_errors: bool = Field(default=True, description="Raise ResponseError for 4xx/5xx responses")
    on_attempt: Optional[Callable[..., Any]] = Field(
        default=None, description="Observer called once per attempt with AttemptStats"
    )
    backoff_factor: float = Field(default=0.5, description="Retry delay is factor * 2**attempt")
    retry_on_status: Optional[Callable[[int], bool]] = Field(
        default=None, description="Which error statuses are retried; default is 5xx"
    )

    # ------------------------------------------------------------------ #
    # Validation
    # ------------------------------------------------------------------ #

    @field_validator("headers", mode="before")
    @classmethod
    def _check_headers(cls, value: Any) -> Any:
        if not isinstance(value, Mapping):
            raise InvalidArgumentError("headers must be a mapping of name to value")
        return {str(name): str(header) for name, header in value.items() if header is not None}

    @field_validator("proxy", mode="before")
    @classmethod
    def _check_proxy(cls, value: Any) -> Any:
        if value is not None and not isinstance(value, str):
            raise InvalidArgumentError("proxy must be a URI string or None")
        return value or None

    @field_validator("timeout", mode="before")
    @classmethod
    def _check_timeout(cls, value: Any) -> Any:
        return _check_seconds(value, "timeout")

    @field_validator("connect_timeout", mode="before")
    @classmethod
    def _check_connect_timeout(cls, value: Any) -> Any:
        return _check_seconds(value, "connect timeout")

    @field_validator("backoff_factor", mode="before")
    @classmethod
    def _check_backoff(cls, value: Any) -> Any:
        return _check_seconds(value, "backoff factor")

    @field_validator("retry_limit", mode="before")
    @classmethod
    def _check_retry_limit(cls, value: Any) -> Any:
        if not isinstance(value, int) or isinstance(value, bool):
            raise InvalidArgumentError("retry limit must be an integer")
        if value < 0:
            raise InvalidArgumentError("negative retry limit")
        return value

    @field_validator("cache_ttl", mode="before")
    @classmethod
    def _check_cache_ttl(cls, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, timedelta):
            if value < timedelta(0):
                raise InvalidArgumentError("negative cache ttl")
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            if value < 0:
                raise InvalidArgumentError("negative cache ttl")
            return value
        raise InvalidArgumentError(INVALID_TTL_MESSAGE)

    @field_validator("handler", mode="before")
    @classmethod
    def _check_handler(cls, value: Any) -> Any:
        if value is not None:
            resolve_callable(value)
        return value

    @field_validator("http_errors", mode="before")
    @classmethod
    def _check_http_errors(cls, value: Any) -> Any:
        if not isinstance(value, bool):
            raise InvalidArgumentError("http_errors must be a boolean")
        return value

    @field_validator("on_attempt", "retry_on_status", mode="before")
    @classmethod
    def _check_callback(cls, value: Any) -> Any:
        if value is not None and not callable(value):
            raise InvalidArgumentError(f"expected a callable, got {value!r}")
        return value

    # ------------------------------------------------------------------ #
    # Construction and access
    # ------------------------------------------------------------------ #

    @classmethod
    def from_options(cls, options: Optional[Mapping[Any, Any]] = None) -> RequestConfig:
        """Build a snapshot from the defaults overlaid with *options*.

        Raises:
            InvalidArgumentError: For unknown option names or bad values.
        """
        return merge(cls(), options or {})

    @property
    def ttl_seconds(self) -> Optional[float]:
        """``cache_ttl`` as seconds, or ``None`` when no TTL is set."""
        if self.cache_ttl is None:
            return None
        if isinstance(self.cache_ttl, timedelta):
            return self.cache_ttl.total_seconds()
        return float(self.cache_ttl)

    def get(self, name: Union[Option, str]) -> Any:
        """Return the value of one option.

        Raises:
            InvalidArgumentError: If *name* is not a known option.
        """
        value = getattr(self, option_name(name))
        if isinstance(value, dict):
            return dict(value)
        return value

    def get_all(self) -> dict[str, Any]:
        """Return every option as a plain ``dict`` (headers are copied)."""
        return {option.value: self.get(option) for option in Option}

    # ------------------------------------------------------------------ #
    # Fluent setters -- each returns a new validated snapshot
    # ------------------------------------------------------------------ #

    def set_header(self, name: str, value: Optional[str]) -> RequestConfig:
        """Set one header, or remove it when *value* is ``None``."""
        return self._replace(headers=merge_headers(self.headers, {name: value}))

    def set_headers(self, headers: Mapping[str, Optional[str]]) -> RequestConfig:
        """Merge several headers at once; ``None`` values remove headers."""
        return self._replace(headers=merge_headers(self.headers, headers))

    def set_proxy(self, proxy: Optional[str]) -> RequestConfig:
        return self._replace(proxy=proxy)

    def set_timeout(self, seconds: float) -> RequestConfig:
        """Set the per-attempt timeout.

        Raises:
            InvalidArgumentError: ``negative timeout`` for values below zero.
        """
        return self._replace(timeout=seconds)

    def set_connect_timeout(self, seconds: float) -> RequestConfig:
        """Set the connect timeout.

        Raises:
            InvalidArgumentError: ``negative connect timeout`` for values below zero.
        """
        return self._replace(connect_timeout=seconds)

    def set_retry_limit(self, retries: int) -> RequestConfig:
        return self._replace(retry_limit=retries)

    def set_cache_ttl(self, ttl: Union[timedelta, int, None]) -> RequestConfig:
        """Set the cache TTL as a ``timedelta``, whole seconds, or ``None``.

        Raises:
            InvalidArgumentError: For any other type, including strings.
        """
        return self._replace(cache_ttl=ttl)

    def set_handler(self, handler: Any) -> RequestConfig:
        """Set the response handler.

        Raises:
            InvalidHandlerError: If *handler* does not resolve to a callable.
        """
        return self._replace(handler=handler)

    def _replace(self, **changes: Any) -> RequestConfig:
        # model_copy() skips validation, so rebuild through the constructor.
        return _build({**dict(self), **changes})


def option_name(name: Union[Option, str]) -> str:
    """Normalise an :class:`Option` or string to the option's field name.

    Raises:
        InvalidArgumentError: If *name* is not a known option.
    """
    try:
        return Option(name).value
    except ValueError:
        raise InvalidArgumentError(f"Unknown request option: {name!r}") from None


def merge_headers(
    base: Mapping[str, str],
    updates: Mapping[str, Optional[str]],
) -> dict[str, str]:
    """Merge header maps key by key (case-insensitively).

    The base's position is kept for replaced headers, new headers are
    appended, and a ``None`` value drops the header.
    """
    merged = dict(base)
    for name, value in updates.items():
        existing = [key for key in merged if key.lower() == name.lower()]
        if value is None:
            for key in existing:
                del merged[key]
        elif existing:
            merged[existing[0]] = value
        else:
            merged[name] = value
    return merged


def merge(
    base: RequestConfig,
    overrides: Union[RequestConfig, Mapping[Any, Any], None],
) -> RequestConfig:
    """Overlay *overrides* onto *base* and return the merged snapshot.

    Scalar options are replaced; ``headers`` are merged key by key with
    ``None`` meaning "remove".  When *overrides* is itself a
    :class:`RequestConfig`, only the options explicitly set on it apply.

    Raises:
        InvalidArgumentError: For unknown option names or bad values.
    """
    if overrides is None:
        return base
    if isinstance(overrides, RequestConfig):
        changes = {name: getattr(overrides, name) for name in overrides.model_fields_set}
    elif isinstance(overrides, Mapping):
        changes = {option_name(key): value for key, value in overrides.items()}
    else:
        raise InvalidArgumentError(f"Request options must be a mapping, got {type(overrides).__name__}")

    if not changes:
        return base

    data = dict(base)
    for name, value in changes.items():
        if name == Option.HEADERS.value:
            if value is None:
                continue
            if not isinstance(value, Mapping):
                raise InvalidArgumentError("headers must be a mapping of name to value")
            data[name] = merge_headers(base.headers, value)
        else:
            data[name] = value
    return _build(data)


def _build(data: dict[str, Any]) -> RequestConfig:
    try:
        return RequestConfig(**data)
    except ValidationError as exc:
        first = exc.errors()[0]
        location = ".".join(str(part) for part in first.get("loc", ()))
        raise InvalidArgumentError(f"Invalid value for {location}: {first.get('msg')}") from exc


def _check_seconds(value: Any, label: str) -> float:
    if not _is_number(value):
        raise InvalidArgumentError(f"{label} must be a number of seconds")
    if value < 0:
        raise InvalidArgumentError(f"negative {label}")
    return float(value)
