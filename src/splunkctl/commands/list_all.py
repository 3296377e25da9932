"""``splunkctl list-all`` -- resource overview across one or more profiles.

Examples::

    splunkctl list-all
    splunkctl list-all --profiles prod,staging --resources indexes,health
    splunkctl --json list-all

Profiles are queried concurrently. A profile that cannot be reached, or a
resource that fails or times out, is reported in the output instead of
aborting the command. Ctrl-C cancels all in-flight requests.
"""

from __future__ import annotations

import asyncio
from typing import Optional

import typer

from splunkctl.aggregate import RESOURCE_TIMEOUT_SECS, fetch_all, normalize_resources
from splunkctl.commands import common
from splunkctl.config import list_profiles, load_profiles, resolve_profile
from splunkctl.models import ListAllOutput, Profile
from splunkctl.output import OutputFormat, format_response, get_output, print_table


def _select_profiles(ctx: typer.Context, names: Optional[list[str]]) -> list[Profile]:
    if names:
        return load_profiles([name.strip() for name in names if name.strip()])
    opts = common.context_options(ctx)
    if opts.get("profile") or not list_profiles():
        return [resolve_profile(opts.get("profile"), opts.get("base_url"))]
    return load_profiles()


def _render(report: ListAllOutput) -> None:
    if get_output().format == OutputFormat.JSON:
        format_response(report)
        return
    rows = []
    for profile in report.profiles:
        if profile.error:
            rows.append([profile.profile_name, "-", "", "error", profile.error])
            continue
        for res in profile.resources:
            rows.append(
                [profile.profile_name, res.resource_type, str(res.count), res.status, res.error or ""]
            )
    print_table(
        ["Profile", "Resource", "Count", "Status", "Error"],
        rows,
        title=f"Splunk resources ({report.timestamp})",
    )


def list_all_command(
    ctx: typer.Context,
    resources: Optional[str] = typer.Option(
        None,
        "--resources",
        "-r",
        help="Comma-separated kinds: indexes, jobs, apps, users, cluster, health, saved-searches.",
    ),
    profiles: Optional[str] = typer.Option(
        None, "--profiles", help="Comma-separated profile names (default: all saved profiles)."
    ),
    timeout: float = typer.Option(
        RESOURCE_TIMEOUT_SECS, "--timeout", min=1, help="Seconds allowed per resource."
    ),
) -> None:
    """Summarise resources from every configured Splunk target."""
    with common.handle_errors():
        kinds = normalize_resources(common.split_csv(resources))
        selected = _select_profiles(ctx, common.split_csv(profiles))

    async def _run() -> ListAllOutput:
        cancel = asyncio.Event()
        common.install_cancel_handler(cancel)
        return await fetch_all(
            selected,
            kinds,
            resource_timeout=timeout,
            cancel=cancel,
            client_factory=common.build_client,
        )

    _render(common.run_async(_run()))
