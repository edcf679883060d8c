"""HTTP clients for steadyhttp.

Classes:
    :class:`AsyncHttpClient` -- non-blocking client, the primary API.
    :class:`HttpClient` -- blocking facade that runs each call on its own
    event loop.

Both accept the same base options and share the fluent configuration
setters of :class:`~steadyhttp.client.base.ConfigurableClient`.

Example::

    from steadyhttp.client import AsyncHttpClient

    async with AsyncHttpClient({"timeout": 5}) as client:
        resp = await client.get("https://example.com")
"""

from steadyhttp.client.async_client import AsyncHttpClient
from steadyhttp.client.sync_client import HttpClient

__all__ = ["AsyncHttpClient", "HttpClient"]
