"""Request commands -- one logical request, or a batch of GETs.

Both commands build an :class:`~steadyhttp.client.HttpClient` from the
resolved :class:`~steadyhttp.config.ClientSettings` (CLI flags over
environment over settings file), with the persistent disk cache attached
when ``cache_enabled`` is set.
"""

from __future__ import annotations

import json
from typing import Any, Optional

import typer

from steadyhttp.cache import DiskCacheStore
from steadyhttp.client import HttpClient
from steadyhttp.client.response import print_summary, status_handler, summary_handler
from steadyhttp.config import ClientSettings, resolve_settings
from steadyhttp.exceptions import SteadyError
from steadyhttp.exit_codes import EXIT_INVALID_USAGE
from steadyhttp.output import error, print_table, warning
from steadyhttp.pool import RejectDecision


def build_client(ctx: typer.Context, **overrides: Any) -> tuple[HttpClient, ClientSettings]:
    """Create the CLI's client from settings plus flag *overrides*.

    Raises:
        ConfigError: If the settings are invalid.
    """
    obj = ctx.obj or {}
    settings = resolve_settings(obj.get("config_path"), **overrides)
    store = DiskCacheStore(settings.resolved_cache_dir()) if settings.cache_enabled else None
    client = HttpClient(
        settings.to_request_config(), cache=store, transport=obj.get("transport"),
    )
    return client, settings


def parse_headers(values: Optional[list[str]]) -> dict[str, Optional[str]]:
    """Parse ``Name: value`` flags.  ``Name:`` with no value removes the header.

    Raises:
        typer.Exit: With code 2 for a flag without a colon.
    """
    headers: dict[str, Optional[str]] = {}
    for raw in values or []:
        name, sep, value = raw.partition(":")
        if not sep or not name.strip():
            error(f"Invalid header '{raw}'. Expected 'Name: value'.")
            raise typer.Exit(code=EXIT_INVALID_USAGE)
        headers[name.strip()] = value.strip() or None
    return headers


def _body_kwargs(body: Optional[str]) -> dict[str, Any]:
    """Send *body* as JSON when it parses, else as raw content."""
    if body is None:
        return {}
    try:
        return {"json": json.loads(body)}
    except json.JSONDecodeError:
        return {"content": body}


def request_command(
    ctx: typer.Context,
    method: str = typer.Argument(help="HTTP method, e.g. GET or POST."),
    url: str = typer.Argument(help="Absolute URL."),
    header: Optional[list[str]] = typer.Option(
        None, "--header", "-H", help="Header as 'Name: value' (repeatable)."
    ),
    data: Optional[str] = typer.Option(
        None, "--data", "-d", help="Request body (sent as JSON when it parses)."
    ),
    timeout: Optional[float] = typer.Option(
        None, "--timeout", help="Per-attempt timeout in seconds (0 disables)."
    ),
    retries: Optional[int] = typer.Option(
        None, "--retries", help="Retries after the first attempt."
    ),
    cache_ttl: Optional[int] = typer.Option(
        None, "--cache-ttl", help="Cache GET/HEAD results for this many seconds."
    ),
    no_http_errors: bool = typer.Option(
        False, "--no-http-errors", help="Print 4xx/5xx responses instead of failing."
    ),
) -> None:
    """Send one request with retry and caching, and print the response.

    Example::

        steadyhttp request GET https://httpbin.org/json --retries 2
        steadyhttp request POST https://httpbin.org/post -d '{"a": 1}'
    """
    headers = parse_headers(header)
    try:
        client, _ = build_client(
            ctx, timeout=timeout, retry_limit=retries, cache_ttl=cache_ttl,
        )
        with client:
            options: dict[str, Any] = {
                "handler": summary_handler,
                "http_errors": not no_http_errors,
            }
            if headers:
                options["headers"] = headers
            summary = client.request(method, url, options, **_body_kwargs(data))
    except SteadyError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    print_summary(summary)


def batch_command(
    ctx: typer.Context,
    urls: list[str] = typer.Argument(help="URLs to GET."),
    concurrency: Optional[int] = typer.Option(
        None, "--concurrency", "-c", help="Maximum requests in flight."
    ),
    retries: Optional[int] = typer.Option(
        None, "--retries", help="Retries after the first attempt."
    ),
    timeout: Optional[float] = typer.Option(
        None, "--timeout", help="Per-attempt timeout in seconds (0 disables)."
    ),
    keep_going: bool = typer.Option(
        False, "--keep-going", "-k", help="Report failed URLs and carry on."
    ),
) -> None:
    """GET many URLs concurrently and print a status table.

    Without ``--keep-going`` the first URL that fails for good aborts the
    batch.

    Example::

        steadyhttp batch https://a.example https://b.example -c 2 -k
    """
    failures: dict[int, str] = {}

    def _skip(exc: Exception, key: Any, handle: Any) -> RejectDecision:
        failures[key] = str(exc)
        warning(f"{urls[key]}: {exc}")
        return RejectDecision.SWALLOW

    try:
        client, settings = build_client(
            ctx, timeout=timeout, retry_limit=retries, concurrency=concurrency,
        )
        with client:
            results = client.request_pool(
                "GET",
                urls,
                {"handler": status_handler},
                concurrency=settings.concurrency,
                on_reject=_skip if keep_going else None,
            )
    except SteadyError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    rows = [
        [str(key), url, str(results[key]) if key in results else "failed"]
        for key, url in enumerate(urls)
    ]
    print_table(["key", "url", "status"], rows, title="Batch results")
