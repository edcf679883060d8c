"""Shared test fixtures for steadyhttp.

Provides fixtures for isolated settings directories, output state, mock
transports and running CLI commands.  No test touches the network: HTTP
goes through :class:`httpx.MockTransport`.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import httpx
import pytest

from steadyhttp.output import reset_output


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time.  When Typer's CliRunner redirects those streams and the
    test finishes, the cached references become stale.  Resetting forces a
    fresh manager on next use.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Settings isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate settings and caches to a temporary directory.

    Points the XDG directories at subdirectories of tmp_path, clears every
    STEADYHTTP_* environment variable and changes into tmp_path.
    """
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.setattr("steadyhttp.config._is_xdg_platform", lambda: True)

    for var in [
        "STEADYHTTP_TIMEOUT",
        "STEADYHTTP_CONNECT_TIMEOUT",
        "STEADYHTTP_RETRY_LIMIT",
        "STEADYHTTP_CACHE_TTL",
        "STEADYHTTP_PROXY",
        "STEADYHTTP_CONCURRENCY",
        "STEADYHTTP_CONFIG",
    ]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# HTTP fixtures
# ---------------------------------------------------------------------------


class RecordingHandler:
    """MockTransport handler that replays canned responses and counts calls.

    Args:
        responses: Returned in order; the last one repeats.  An exception
            instance is raised instead of returned.
    """

    def __init__(self, *responses: httpx.Response | Exception) -> None:
        self._responses = list(responses) or [httpx.Response(200, json={"ok": True})]
        self.requests: list[httpx.Request] = []

    @property
    def calls(self) -> int:
        return len(self.requests)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        index = min(len(self.requests), len(self._responses)) - 1
        item = self._responses[index]
        if isinstance(item, Exception):
            raise item
        return httpx.Response(item.status_code, headers=item.headers, content=item.content)


@pytest.fixture
def recording() -> Callable[..., RecordingHandler]:
    """Factory for :class:`RecordingHandler` instances."""
    return RecordingHandler


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
