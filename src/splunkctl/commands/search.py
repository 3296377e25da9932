"""Search commands -- ``splunkctl login`` and ``splunkctl search``.

``search`` dispatches a job, waits for it to finish and prints its results::

    splunkctl search 'index=_internal | head 5'
    splunkctl --json search 'index=main error' --earliest -1h --max-results 200
"""

from __future__ import annotations

from typing import Optional

import typer

from splunkctl.client.endpoints import DEFAULT_MAX_RESULTS, DEFAULT_MAX_WAIT_SECS
from splunkctl.commands.common import open_client, run_async
from splunkctl.output import format_response, info, progress, success


def login_command(ctx: typer.Context) -> None:
    """Verify credentials against the active profile.

    With username/password a session login is performed; with an API
    token the token is checked by fetching server info.
    """
    client = open_client(ctx)

    async def _run() -> None:
        async with client:
            if client.is_api_token_auth:
                info("Profile uses an API token; no session login needed.")
            else:
                await client.login()
                success(f"Logged in to {client.base_url} as {client.session.username}")
            server = await client.get_server_info()
            info(f"Connected to {server.server_name} (Splunk {server.version})")

    run_async(_run())


def search_command(
    ctx: typer.Context,
    query: str = typer.Argument(help="SPL query, e.g. 'index=main error | head 10'."),
    earliest: Optional[str] = typer.Option(
        None, "--earliest", "-e", help="Earliest time, e.g. '-24h'."
    ),
    latest: Optional[str] = typer.Option(None, "--latest", "-l", help="Latest time, e.g. 'now'."),
    max_results: int = typer.Option(
        DEFAULT_MAX_RESULTS, "--max-results", "-m", min=1, help="Maximum rows to return."
    ),
    no_wait: bool = typer.Option(
        False, "--no-wait", help="Return whatever results exist right after dispatch."
    ),
    max_wait: float = typer.Option(
        DEFAULT_MAX_WAIT_SECS, "--max-wait", min=0, help="Seconds to wait for the job."
    ),
) -> None:
    """Run a search and print its results."""
    client = open_client(ctx)

    def _progress(done: float) -> None:
        progress(f"Search progress: {done * 100:.0f}%")

    async def _run() -> list[dict]:
        async with client:
            return await client.search(
                query,
                wait=not no_wait,
                earliest_time=earliest,
                latest_time=latest,
                max_results=max_results,
                max_wait=max_wait,
                on_progress=_progress,
            )

    rows = run_async(_run())
    info(f"{len(rows)} result(s)")
    format_response(rows)
