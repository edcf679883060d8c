"""Built-in CLI sub-commands for steadyhttp.

* :mod:`~steadyhttp.commands.request` -- single requests and batches.
* :mod:`~steadyhttp.commands.fingerprint` -- print a handler's fingerprint.
* :mod:`~steadyhttp.commands.cache` -- inspect and clear the response cache.

Each module either exports a :class:`typer.Typer` sub-application (for
multi-command groups like ``cache``) or plain callback functions registered
directly on the root app.

Commands read two keys from ``ctx.obj``: ``config_path`` (the ``--config``
flag) and ``transport``, an optional :class:`httpx.AsyncBaseTransport` used
in place of the network.
"""
