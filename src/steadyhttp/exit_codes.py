"""Numeric process exit codes used by the ``steadyhttp`` command line.

Each constant maps to one error category and is referenced by the
corresponding :class:`~steadyhttp.exceptions.SteadyError` subclass, so
shell wrappers can tell a dead host from a failing server without parsing
stderr.

Example::

    $ steadyhttp request GET https://example.invalid/
    $ echo $?
    6   # EXIT_CONNECTION_ERROR -- no response was obtained
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""An option value or handler was rejected before any request was sent."""

EXIT_RESPONSE_ERROR = 5
"""A response was obtained but its status counts as a failure."""

EXIT_CONNECTION_ERROR = 6
"""No response was obtained (timeout, DNS failure, connection refused)."""

EXIT_BATCH_ABORTED = 8
"""A batch was aborted because one of its requests failed."""

EXIT_INTERRUPTED = 130
"""The command was cancelled with Ctrl-C."""
