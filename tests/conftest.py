"""Shared test fixtures for basecrm.

Provides a ready-made :class:`~basecrm.models.Configuration`, a factory for
clients backed by :class:`httpx.MockTransport`, an isolated config
environment, and output-manager resets. Discovered automatically by pytest.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable

import httpx
import pytest

from basecrm.http_client import HttpClient
from basecrm.models import Configuration
from basecrm.output import OutputFormat, OutputManager, reset_output, set_output


TOKEN = "a" * 64
BASE_URL = "https://api.example.com"

Handler = Callable[[httpx.Request], httpx.Response]


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The manager caches Rich consoles bound to the streams that were active
    when it was created; CliRunner swaps those streams per invocation.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Client fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def config() -> Configuration:
    """A configuration pointing at a fake host with tracing disabled."""
    return Configuration(access_token=TOKEN, base_url=BASE_URL, user_agent="basecrm-tests/1.0")


@pytest.fixture
def make_client(config: Configuration) -> Callable[..., HttpClient]:
    """Return a factory building an :class:`HttpClient` around a request handler.

    Example::

        client = make_client(lambda request: httpx.Response(200, json={}))
    """

    def _make(handler: Handler, **overrides: object) -> HttpClient:
        cfg = config.model_copy(update=overrides) if overrides else config
        return HttpClient(cfg, transport=httpx.MockTransport(handler))

    return _make


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Forces XDG resolution, points XDG_CONFIG_HOME and XDG_DATA_HOME into
    tmp_path, clears every BASECRM_* variable and changes the working
    directory to tmp_path so no ``basecrm.json`` leaks in.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setattr("basecrm.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))

    for var in [
        "BASECRM_ACCESS_TOKEN",
        "BASECRM_BASE_URL",
        "BASECRM_USER_AGENT",
        "BASECRM_VERBOSE",
    ]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def plain_output() -> OutputManager:
    """Install an uncoloured PLAIN output manager so stderr text is predictable."""
    output = OutputManager(format=OutputFormat.PLAIN, no_color=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
