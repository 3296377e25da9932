"""Index commands -- ``splunkctl indexes list``."""

from __future__ import annotations

from typing import Optional

import typer

from splunkctl.commands.common import open_client, run_async
from splunkctl.models import Index
from splunkctl.output import print_table

indexes_app = typer.Typer(no_args_is_help=True)


@indexes_app.command("list")
def indexes_list(
    ctx: typer.Context,
    count: int = typer.Option(30, "--count", "-c", min=1, help="Maximum indexes to list."),
    offset: Optional[int] = typer.Option(None, "--offset", min=0, help="Skip this many."),
) -> None:
    """List indexes with event counts and sizes."""
    client = open_client(ctx)

    async def _run() -> list[Index]:
        async with client:
            return await client.list_indexes(count=count, offset=offset)

    indexes = run_async(_run())
    rows = [
        [
            index.name,
            str(index.total_event_count),
            f"{index.current_db_size_mb:g}",
            "" if index.max_total_data_size_mb is None else f"{index.max_total_data_size_mb:g}",
            "yes" if index.disabled else "no",
        ]
        for index in indexes
    ]
    print_table(["Name", "Events", "Size (MB)", "Max size (MB)", "Disabled"], rows, title="Indexes")
