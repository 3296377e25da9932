"""Helpers shared by the command modules.

Commands are synchronous typer callbacks; each one builds a coroutine and
hands it to :func:`run_async`, which drives the event loop and turns
:class:`~splunkctl.exceptions.SplunkctlError` into an error message and the
matching exit code.
"""

from __future__ import annotations

import asyncio
import contextlib
import signal
from typing import Any, Coroutine, Iterator, Optional, TypeVar

import typer

from splunkctl.client import SplunkClient
from splunkctl.config import resolve_profile, settings_from_profile
from splunkctl.exceptions import SplunkctlError
from splunkctl.exit_codes import EXIT_CANCELLED
from splunkctl.models import ClientSettings, Profile
from splunkctl.output import debug, error

T = TypeVar("T")


def build_client(settings: ClientSettings) -> SplunkClient:
    """Construct the client used by every command. Tests replace this."""
    return SplunkClient.build(settings)


def context_options(ctx: typer.Context) -> dict[str, Any]:
    return ctx.obj if isinstance(ctx.obj, dict) else {}


def active_profile(ctx: typer.Context) -> Profile:
    opts = context_options(ctx)
    profile = resolve_profile(opts.get("profile"), opts.get("base_url"))
    debug(f"Using profile '{profile.name}' ({profile.base_url})")
    return profile


def open_client(ctx: typer.Context) -> SplunkClient:
    """Build a client for the active profile (not yet entered)."""
    with handle_errors():
        return build_client(settings_from_profile(active_profile(ctx)))


def install_cancel_handler(cancel: asyncio.Event) -> None:
    """Set *cancel* on SIGINT while the running loop is active.

    Platforms without loop signal handlers keep the default
    ``KeyboardInterrupt`` behaviour.
    """
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancel.set)
    except (NotImplementedError, RuntimeError, ValueError):
        debug("Loop signal handlers unavailable; Ctrl-C raises KeyboardInterrupt")


@contextlib.contextmanager
def handle_errors() -> Iterator[None]:
    """Print splunkctl errors and exit with their code.

    Raises:
        typer.Exit: With the error's ``exit_code`` on failure, or 130 when
            interrupted.
    """
    try:
        yield
    except SplunkctlError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    except KeyboardInterrupt:
        error("Cancelled.")
        raise typer.Exit(code=EXIT_CANCELLED) from None


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Run *coro* to completion under :func:`handle_errors`."""
    with handle_errors():
        return asyncio.run(coro)


def split_csv(value: Optional[str]) -> Optional[list[str]]:
    """Split a comma-separated option, or return ``None`` when unset."""
    if value is None:
        return None
    return value.split(",")
