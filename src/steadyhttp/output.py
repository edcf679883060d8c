"""Diagnostics and data output for steadyhttp.

Library code never prints directly.  It reports through the process-wide
:class:`OutputManager` (see :func:`get_output`), which keeps two streams
apart:

* **stdout** -- response data only, so ``steadyhttp request ... | jq`` works.
* **stderr** -- status lines, warnings, errors and ``--verbose`` debug
  messages such as retry scheduling and cache hits.

Rich formatting is used when stdout is a terminal and colour is allowed;
``NO_COLOR`` and ``TERM=dumb`` switch it off.  Module-level helpers
(:func:`info`, :func:`debug`, ...) delegate to the global manager.
"""

from __future__ import annotations

import json
import os
import sys
from collections.abc import Iterable, Sequence
from enum import Enum
from typing import Any, Optional

from rich.console import Console
from rich.markup import escape
from rich.syntax import Syntax
from rich.table import Table


class OutputFormat(str, Enum):
    """Supported data formats.  ``AUTO`` picks ``RICH`` on a colour TTY, else ``PLAIN``."""

    AUTO = "auto"
    JSON = "json"
    PLAIN = "plain"
    RICH = "rich"


class Level(str, Enum):
    DEBUG = "debug"
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


# level -> (plain prefix, rich style)
_LEVEL_STYLES: dict[Level, tuple[str, str]] = {
    Level.DEBUG: ("[debug] ", "dim"),
    Level.INFO: ("", ""),
    Level.SUCCESS: ("", "green"),
    Level.WARNING: ("Warning: ", "yellow"),
    Level.ERROR: ("Error: ", "bold red"),
}

_QUIET_LEVELS = frozenset({Level.INFO, Level.SUCCESS})


class OutputManager:
    """Routes data to stdout and diagnostics to stderr.

    Args:
        format: Desired data format.
        no_color: Disable colour and Rich markup.
        quiet: Suppress info and success messages (warnings and errors
            still show).
        verbose: Show debug messages.
    """

    def __init__(
        self,
        format: OutputFormat = OutputFormat.AUTO,
        no_color: bool = False,
        quiet: bool = False,
        verbose: bool = False,
    ) -> None:
        self._no_color = no_color or _should_disable_color()
        self._quiet = quiet
        self._verbose = verbose
        self._format = _resolve_format(format, self._no_color)

        rich_stdout = self._format == OutputFormat.RICH
        self._stdout = Console(file=sys.stdout, no_color=self._no_color, force_terminal=rich_stdout)
        self._stderr = Console(file=sys.stderr, no_color=self._no_color, stderr=True)

    @property
    def format(self) -> OutputFormat:
        return self._format

    @property
    def is_quiet(self) -> bool:
        return self._quiet

    @property
    def is_verbose(self) -> bool:
        return self._verbose

    # ------------------------------------------------------------------ #
    # Data (stdout)
    # ------------------------------------------------------------------ #

    def format_response(self, data: Any, content_type: str = "application/json") -> None:
        """Render a response payload (or handler result) to stdout."""
        if self._format == OutputFormat.JSON:
            self.print_data(_to_json(data))
        elif self._format == OutputFormat.PLAIN:
            for line in _plain_lines(data):
                self.print_data(line)
        else:
            self._render_rich(data, content_type)

    def print_data(self, text: str) -> None:
        print(text, file=sys.stdout, flush=True)

    def print_table(
        self,
        headers: Sequence[str],
        rows: Iterable[Sequence[Any]],
        title: Optional[str] = None,
    ) -> None:
        """Print *rows* as a Rich table, JSON records, or tab-separated lines.

        Cells are converted with :func:`str`, so status codes and keys can be
        passed as they are.
        """
        cells = [[str(cell) for cell in row] for row in rows]
        if self._format == OutputFormat.JSON:
            self.print_data(_to_json([dict(zip(headers, row)) for row in cells]))
            return
        if self._format == OutputFormat.PLAIN:
            for line in [list(headers), *cells]:
                self.print_data("\t".join(line))
            return

        table = Table(*headers, title=title, header_style="bold cyan")
        for row in cells:
            table.add_row(*(escape(cell) for cell in row))
        self._stdout.print(table)

    # ------------------------------------------------------------------ #
    # Diagnostics (stderr)
    # ------------------------------------------------------------------ #

    def log(self, level: Level, message: str) -> None:
        """Write *message* to stderr unless quiet or verbose mode hides it."""
        if level is Level.DEBUG and not self._verbose:
            return
        if level in _QUIET_LEVELS and self._quiet:
            return

        prefix, style = _LEVEL_STYLES[level]
        if self._no_color:
            print(f"{prefix}{message}", file=sys.stderr, flush=True)
            return
        text = escape(f"{prefix}{message}")
        self._stderr.print(f"[{style}]{text}[/{style}]" if style else text)

    def debug(self, message: str) -> None:
        self.log(Level.DEBUG, message)

    def info(self, message: str) -> None:
        self.log(Level.INFO, message)

    def success(self, message: str) -> None:
        self.log(Level.SUCCESS, message)

    def warning(self, message: str) -> None:
        self.log(Level.WARNING, message)

    def error(self, message: str) -> None:
        self.log(Level.ERROR, message)

    def _render_rich(self, data: Any, content_type: str) -> None:
        if isinstance(data, (bytes, bytearray)):
            data = data.decode("utf-8", errors="replace")
        if isinstance(data, (dict, list)) or "json" in content_type:
            payload = _to_json(data)
            if isinstance(data, (dict, list)) or payload is not data:
                self._stdout.print(Syntax(payload, "json", theme="monokai", word_wrap=True))
                return
        self._stdout.print(str(data), markup=False, highlight=False)


def _resolve_format(requested: OutputFormat, no_color: bool) -> OutputFormat:
    if requested != OutputFormat.AUTO:
        return requested
    return OutputFormat.RICH if _is_tty() and not no_color else OutputFormat.PLAIN


def _plain_lines(data: Any) -> list[str]:
    """Tab-separated lines for dicts and lists of records, ``str()`` otherwise."""
    if data is None:
        return []
    if isinstance(data, dict):
        return [f"{key}\t{value}" for key, value in data.items()]
    if isinstance(data, list):
        return [
            "\t".join(str(v) for v in item.values()) if isinstance(item, dict) else str(item)
            for item in data
        ]
    if isinstance(data, (bytes, bytearray)):
        return [data.decode("utf-8", errors="replace")]
    return [str(data)]


def _to_json(data: Any) -> str:
    """Pretty JSON for *data*.  A string that is not JSON comes back unchanged."""
    if isinstance(data, str):
        try:
            data = json.loads(data)
        except json.JSONDecodeError:
            return data
    return json.dumps(data, indent=2, ensure_ascii=False, default=str)


def _is_tty() -> bool:
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


def _should_disable_color() -> bool:
    """True when ``NO_COLOR`` is set (any value) or ``TERM=dumb``."""
    return "NO_COLOR" in os.environ or os.environ.get("TERM") == "dumb"


# ------------------------------------------------------------------ #
# Global instance
# ------------------------------------------------------------------ #

_output: Optional[OutputManager] = None


def get_output() -> OutputManager:
    """Return the global :class:`OutputManager`, creating a default one lazily."""
    global _output
    if _output is None:
        _output = OutputManager()
    return _output


def set_output(output: OutputManager) -> None:
    global _output
    _output = output


def reset_output() -> None:
    """Forget the global manager (used between tests)."""
    global _output
    _output = None


def format_response(data: Any, content_type: str = "application/json") -> None:
    get_output().format_response(data, content_type)


def print_table(
    headers: Sequence[str], rows: Iterable[Sequence[Any]], title: Optional[str] = None
) -> None:
    get_output().print_table(headers, rows, title)


def info(message: str) -> None:
    get_output().info(message)


def success(message: str) -> None:
    get_output().success(message)


def warning(message: str) -> None:
    get_output().warning(message)


def error(message: str) -> None:
    get_output().error(message)


def debug(message: str) -> None:
    get_output().debug(message)
