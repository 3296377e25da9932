"""Job commands -- inspect and manage search jobs.

Provides the ``splunkctl jobs`` sub-command group::

    splunkctl jobs list
    splunkctl jobs status 1700000000.123
    splunkctl jobs results 1700000000.123 --max-results 50
    splunkctl jobs cancel 1700000000.123
    splunkctl jobs delete 1700000000.123
"""

from __future__ import annotations

from typing import Optional

import typer

from splunkctl.commands.common import open_client, run_async
from splunkctl.models import SearchJobStatus
from splunkctl.output import format_response, get_output, print_table, success

jobs_app = typer.Typer(no_args_is_help=True)


def _status_row(job: SearchJobStatus) -> list[str]:
    return [
        job.sid,
        job.dispatch_state or "",
        f"{job.done_progress * 100:.0f}%",
        str(job.event_count),
        str(job.result_count),
        f"{job.run_duration:.2f}",
    ]


_STATUS_HEADERS = ["SID", "State", "Done", "Events", "Results", "Duration (s)"]


@jobs_app.command("list")
def jobs_list(
    ctx: typer.Context,
    count: int = typer.Option(50, "--count", "-c", min=1, help="Maximum jobs to list."),
) -> None:
    """List search jobs."""
    client = open_client(ctx)

    async def _run() -> list[SearchJobStatus]:
        async with client:
            return await client.list_jobs(count=count)

    jobs = run_async(_run())
    print_table(_STATUS_HEADERS, [_status_row(job) for job in jobs], title="Search jobs")


@jobs_app.command("status")
def jobs_status(
    ctx: typer.Context,
    sid: str = typer.Argument(help="Search job id."),
) -> None:
    """Show the status of one job."""
    client = open_client(ctx)

    async def _run() -> SearchJobStatus:
        async with client:
            return await client.get_job_status(sid)

    format_response(run_async(_run()))


@jobs_app.command("results")
def jobs_results(
    ctx: typer.Context,
    sid: str = typer.Argument(help="Search job id."),
    max_results: Optional[int] = typer.Option(
        None, "--max-results", "-m", min=1, help="Stop after this many rows."
    ),
    page_size: int = typer.Option(500, "--page-size", min=1, help="Rows per request."),
) -> None:
    """Print the results of a finished job, fetching page by page."""
    client = open_client(ctx)
    output = get_output()

    async def _run() -> list[dict]:
        rows: list[dict] = []
        async with client:
            async for page in client.iter_search_results(
                sid, page_size=page_size, max_results=max_results
            ):
                output.debug(f"Received {len(page)} row(s)")
                rows.extend(page)
        return rows

    format_response(run_async(_run()))


@jobs_app.command("cancel")
def jobs_cancel(
    ctx: typer.Context,
    sid: str = typer.Argument(help="Search job id."),
) -> None:
    """Cancel a running job."""
    client = open_client(ctx)

    async def _run() -> None:
        async with client:
            await client.cancel_job(sid)

    run_async(_run())
    success(f"Cancelled job {sid}")


@jobs_app.command("delete")
def jobs_delete(
    ctx: typer.Context,
    sid: str = typer.Argument(help="Search job id."),
) -> None:
    """Delete a job and its results."""
    client = open_client(ctx)

    async def _run() -> None:
        async with client:
            await client.delete_job(sid)

    run_async(_run())
    success(f"Deleted job {sid}")
