"""Fingerprint command -- show the identity hashed for a response handler."""

from __future__ import annotations

import typer

from steadyhttp.exceptions import SteadyError
from steadyhttp.fingerprint import fingerprint, resolve_identity
from steadyhttp.output import OutputFormat, error, format_response, get_output, info


def fingerprint_command(
    handler: str = typer.Argument(
        help="Dotted handler path, e.g. 'pkg.mod.func' or 'pkg.mod.Type::method'."
    ),
) -> None:
    """Print the 8-character fingerprint of HANDLER.

    The canonical identity the fingerprint is computed from goes to stderr.

    Example::

        steadyhttp fingerprint steadyhttp.client.response.json_handler
    """
    try:
        identity = resolve_identity(handler)
        digest = fingerprint(handler)
    except SteadyError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    output = get_output()
    if output.format == OutputFormat.JSON:
        format_response(
            {"handler": handler, "canonical": identity.canonical, "fingerprint": digest}
        )
        return
    info(identity.canonical)
    output.print_data(digest)
