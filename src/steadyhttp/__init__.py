"""steadyhttp -- a resilient HTTP request layer over httpx.

Every logical request carries a validated, immutable option snapshot and
passes through three layers: a TTL response cache keyed on the request and
the fingerprint of its response handler, a retry policy for connection
failures and server errors, and the httpx transport.  Batches of keyed
requests run with bounded concurrency.

Typical use::

    from steadyhttp.client import HttpClient
    from steadyhttp.client.response import json_handler

    client = HttpClient({"retry_limit": 2, "handler": json_handler})
    data = client.get("https://httpbin.org/json")

Modules:
    client: Async and blocking clients.
    options: Request option snapshots and merging.
    fingerprint: Stable identifiers for response handlers.
    retry: Attempt loop with backoff and per-attempt statistics.
    cache: Response cache and its stores.
    pool: Bounded-concurrency batches.
    config: XDG paths and settings resolution for the CLI.
    app: Typer CLI entry point.
"""

__version__ = "0.1.0"
