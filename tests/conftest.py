"""Shared test fixtures for splunkctl.

Provides isolated config directories, output state management, a sleep
recorder for asserting backoff timing without waiting, and a CLI runner.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable

import httpx
import pytest
from pydantic import SecretStr

from splunkctl.client import SplunkClient
from splunkctl.models import ClientSettings, Credentials, StaticToken
from splunkctl.output import OutputFormat, OutputManager, reset_output, set_output


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager keeps references to sys.stdout/sys.stderr. When the
    CliRunner swaps those streams and the test ends, a cached manager would
    write to closed files.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


SPLUNK_ENV_VARS = [
    "SPLUNK_PROFILE",
    "SPLUNK_BASE_URL",
    "SPLUNK_API_TOKEN",
    "SPLUNK_USERNAME",
    "SPLUNK_PASSWORD",
    "SPLUNK_SKIP_VERIFY",
    "SPLUNK_TIMEOUT",
    "SPLUNK_MAX_RETRIES",
]


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point XDG directories at tmp_path and clear SPLUNK_* variables.

    Returns:
        The tmp_path root directory.
    """
    monkeypatch.setattr("splunkctl.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    for var in SPLUNK_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a quiet, plain, colourless OutputManager."""
    output = OutputManager(format=OutputFormat.PLAIN, no_color=True, quiet=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def verbose_output() -> OutputManager:
    """Install a verbose, colourless OutputManager so debug lines reach stderr."""
    output = OutputManager(format=OutputFormat.PLAIN, no_color=True, verbose=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# Timing
# ---------------------------------------------------------------------------


class SleepRecorder:
    """Async stand-in for :func:`asyncio.sleep` that records requested delays."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.calls.append(delay)


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# ---------------------------------------------------------------------------
# Mock Splunk server
# ---------------------------------------------------------------------------


BASE_URL = "https://splunk.example.com:8089"


def token_settings(token: str = "api-token", **overrides: Any) -> ClientSettings:
    return ClientSettings(
        base_url=BASE_URL,
        auth_strategy=StaticToken(token=SecretStr(token)),
        **overrides,
    )


def credential_settings(**overrides: Any) -> ClientSettings:
    return ClientSettings(
        base_url=BASE_URL,
        auth_strategy=Credentials(username="admin", password=SecretStr("changeme")),
        **overrides,
    )


@pytest.fixture
def mock_client(sleeper: SleepRecorder, clock: FakeClock):
    """Factory building a :class:`SplunkClient` backed by an httpx.MockTransport.

    Usage::

        client = mock_client(handler)                      # static token
        client = mock_client(handler, credentials=True)    # session login
    """

    def factory(
        handler: Callable[[httpx.Request], httpx.Response],
        *,
        credentials: bool = False,
        **overrides: Any,
    ) -> SplunkClient:
        settings = credential_settings(**overrides) if credentials else token_settings(**overrides)
        return SplunkClient.build(
            settings,
            transport=httpx.MockTransport(handler),
            sleep=sleeper,
            clock=clock,
        )

    return factory


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    from typer.testing import CliRunner

    return CliRunner()
