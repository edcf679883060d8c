"""Typer application and CLI entry point for steadyhttp.

The root callback turns the global flags into an
:class:`~steadyhttp.output.OutputManager` and records ``--config`` in
``ctx.obj``; the sub-commands live in :mod:`steadyhttp.commands`.

:func:`main` is the console-script entry point.  It maps
:class:`~steadyhttp.exceptions.SteadyError` to its exit code and writes a
crash log under the data directory for anything else.
"""

from __future__ import annotations

import signal
import sys
import traceback
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import typer

from steadyhttp import __version__
from steadyhttp.commands.cache import cache_app
from steadyhttp.commands.fingerprint import fingerprint_command
from steadyhttp.commands.request import batch_command, request_command
from steadyhttp.config import get_data_dir
from steadyhttp.exceptions import SteadyError
from steadyhttp.exit_codes import EXIT_GENERIC_FAILURE, EXIT_INTERRUPTED, EXIT_INVALID_USAGE
from steadyhttp.output import OutputFormat, OutputManager, error, set_output


app = typer.Typer(
    name="steadyhttp",
    help="Resilient HTTP requests with retry, caching and bounded concurrency.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

app.command("request")(request_command)
app.command("batch")(batch_command)
app.command("fingerprint")(fingerprint_command)
app.add_typer(cache_app, name="cache", help="Inspect or clear the response cache.")


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"steadyhttp {__version__}")
        raise typer.Exit()


def _output_format(json_output: bool, plain_output: bool) -> OutputFormat:
    if json_output and plain_output:
        typer.echo("Error: --json and --plain are mutually exclusive.", err=True)
        raise typer.Exit(code=EXIT_INVALID_USAGE)
    if json_output:
        return OutputFormat.JSON
    if plain_output:
        return OutputFormat.PLAIN
    return OutputFormat.AUTO


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True,
        help="Show version and exit.",
    ),
    json_output: bool = typer.Option(False, "--json", help="Print results as JSON."),
    plain_output: bool = typer.Option(False, "--plain", help="Print results as tab-separated text."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable colour output."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only print results, warnings and errors."),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Show retries, cache hits and other debug output."
    ),
    config_path: Optional[Path] = typer.Option(
        None, "--config", help="Settings file (JSON or YAML)."
    ),
) -> None:
    """Send HTTP requests with retry, response caching and bounded concurrency."""
    fmt = _output_format(json_output, plain_output)
    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))

    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


def _setup_signal_handlers() -> None:
    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(EXIT_INTERRUPTED)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> Path:
    """Write the traceback of *exc*, with version and argv, to the logs directory."""
    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    log_path = logs_dir / f"crash-{datetime.now():%Y%m%d-%H%M%S}.log"
    header = f"steadyhttp {__version__}\nargv: {' '.join(sys.argv)}\n\n"
    log_path.write_text(header + "".join(traceback.format_exception(exc)), encoding="utf-8")
    return log_path


def main() -> None:
    """Entry point of the ``steadyhttp`` console script.

    Raises:
        SystemExit: Always, with the command's exit code.
    """
    _setup_signal_handlers()
    try:
        app()
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(EXIT_INTERRUPTED)
    except SteadyError as exc:
        error(str(exc))
        sys.exit(exc.exit_code)
    except Exception as exc:
        log_path = _write_crash_log(exc)
        error(f"Unexpected error. Crash log written to {log_path}")
        sys.exit(EXIT_GENERIC_FAILURE)
