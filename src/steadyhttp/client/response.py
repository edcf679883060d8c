"""Built-in response handlers and the CLI's response printer.

A handler receives ``(request, response)`` and returns whatever the caller
wants back from a logical request.  The handlers here are plain
module-level functions, so they have stable fingerprints and can be named
by string, e.g. ``"steadyhttp.client.response.json_handler"``.

See Also:
    :mod:`steadyhttp.output` -- the output manager that renders data.
"""

from __future__ import annotations

from typing import Any

import httpx

from steadyhttp.output import get_output


def extract_response_data(response: httpx.Response) -> Any:
    """Extract the body from an HTTP response.

    Attempts to parse the body as JSON first and falls back to the raw text.
    Returns ``None`` for responses with no content.
    """
    if not response.content:
        return None

    try:
        return response.json()
    except ValueError:
        return response.text


def json_handler(request: httpx.Request, response: httpx.Response) -> Any:
    """Decode the body as JSON (text when it is not JSON)."""
    return extract_response_data(response)


def text_handler(request: httpx.Request, response: httpx.Response) -> str:
    return response.text


def bytes_handler(request: httpx.Request, response: httpx.Response) -> bytes:
    return response.content


def status_handler(request: httpx.Request, response: httpx.Response) -> int:
    return response.status_code


def summary_handler(request: httpx.Request, response: httpx.Response) -> dict[str, Any]:
    """Reduce a response to a plain, cacheable dict.

    Keys: ``status_code``, ``reason``, ``content_type`` and ``data`` (see
    :func:`extract_response_data`).
    """
    return {
        "status_code": response.status_code,
        "reason": response.reason_phrase or "",
        "content_type": response.headers.get("content-type", "application/json"),
        "data": extract_response_data(response),
    }


def print_summary(summary: dict[str, Any]) -> None:
    """Print a :func:`summary_handler` result using the global output system.

    Writes the status line (e.g. ``HTTP 200 OK``) to stderr, then renders
    the body to stdout.
    """
    output = get_output()
    output.info(f"HTTP {summary['status_code']} {summary['reason']}".rstrip())
    if summary["data"] is not None:
        output.format_response(summary["data"], summary["content_type"])


def format_api_response(response: httpx.Response) -> None:
    """Print a response using the global output system."""
    print_summary(summary_handler(response.request, response))
