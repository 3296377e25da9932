"""Config commands -- view and manage connection profiles.

Provides the ``splunkctl config`` sub-command group::

    splunkctl config set-profile prod --base-url https://splunk:8089 \\
        --username admin --password env:SPLUNK_PROD_PASSWORD --default
    splunkctl config list
    splunkctl config show
    splunkctl config delete-profile prod --yes

Credential options accept literal values or the source descriptors
``env:VAR``, ``file:/path`` and ``prompt``, resolved only when a client is
built.
"""

from __future__ import annotations

from typing import Any, Optional

import typer
from pydantic import SecretStr

from splunkctl.commands.common import context_options, handle_errors
from splunkctl.config import (
    delete_profile,
    get_config_dir,
    list_profiles,
    load_global_config,
    load_profile,
    profile_exists,
    resolve_profile_name,
    save_global_config,
    save_profile,
)
from splunkctl.models import Profile
from splunkctl.output import format_response, info, print_table, success, suggest

config_app = typer.Typer(no_args_is_help=True)

_MASK = "********"


def _masked(profile: Profile) -> dict[str, Any]:
    data = profile.model_dump(mode="python", exclude_none=True)
    for key in ("password", "api_token"):
        if key in data:
            data[key] = _MASK
    return data


@config_app.command("show")
def config_show(ctx: typer.Context) -> None:
    """Show the global configuration and the active profile (secrets masked)."""
    with handle_errors():
        global_cfg = load_global_config()
        name = resolve_profile_name(context_options(ctx).get("profile"))
        profile = load_profile(name) if name else None

    info(f"Config directory: {get_config_dir()}")
    format_response(
        {
            "global": global_cfg.model_dump(mode="json"),
            "active_profile": _masked(profile) if profile else None,
        }
    )


@config_app.command("list")
def config_list() -> None:
    """List saved profiles."""
    with handle_errors():
        default = load_global_config().default_profile
        profiles = [load_profile(name) for name in list_profiles()]

    if not profiles:
        info("No profiles configured.")
        suggest("Create one: splunkctl config set-profile NAME --base-url URL ...")
        return

    rows = []
    for profile in profiles:
        auth = "token" if profile.api_token else ("password" if profile.username else "none")
        rows.append(
            [
                profile.name + (" *" if profile.name == default else ""),
                profile.base_url or "",
                auth,
                profile.username or "",
            ]
        )
    print_table(["Profile", "Base URL", "Auth", "Username"], rows, title="Profiles")


@config_app.command("set-profile")
def config_set_profile(
    name: str = typer.Argument(help="Profile name."),
    base_url: Optional[str] = typer.Option(
        None, "--base-url", "-u", help="Management URL, e.g. https://splunk:8089."
    ),
    username: Optional[str] = typer.Option(None, "--username", help="Splunk username."),
    password: Optional[str] = typer.Option(
        None, "--password", help="Password, or env:VAR / file:/path / prompt."
    ),
    api_token: Optional[str] = typer.Option(
        None, "--api-token", help="API token, or env:VAR / file:/path."
    ),
    skip_verify: Optional[bool] = typer.Option(
        None, "--skip-verify/--verify", help="Disable TLS certificate verification."
    ),
    timeout: Optional[float] = typer.Option(
        None, "--timeout", min=0.1, help="Per-request timeout in seconds."
    ),
    max_retries: Optional[int] = typer.Option(
        None, "--max-retries", min=0, help="Retries on transient failures."
    ),
    make_default: bool = typer.Option(
        False, "--default", help="Make this the default profile."
    ),
) -> None:
    """Create a profile or update the given fields of an existing one."""
    updates: dict[str, Any] = {}
    if base_url is not None:
        updates["base_url"] = base_url.rstrip("/")
    if username is not None:
        updates["username"] = username
    if password is not None:
        updates["password"] = SecretStr(password)
    if api_token is not None:
        updates["api_token"] = SecretStr(api_token)
    if skip_verify is not None:
        updates["skip_verify"] = skip_verify
    if timeout is not None:
        updates["timeout_seconds"] = timeout
    if max_retries is not None:
        updates["max_retries"] = max_retries

    with handle_errors():
        existed = profile_exists(name)
        profile = load_profile(name) if existed else Profile(name=name)
        profile = profile.model_copy(update=updates)
        save_profile(profile)

        if make_default:
            global_cfg = load_global_config()
            global_cfg.default_profile = name
            save_global_config(global_cfg)

    success(f"{'Updated' if existed else 'Created'} profile '{name}'")
    if make_default:
        info(f"'{name}' is now the default profile")
    if not existed:
        suggest(f"Verify it: splunkctl --profile {name} login")


@config_app.command("delete-profile")
def config_delete_profile(
    name: str = typer.Argument(help="Profile name."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation."),
) -> None:
    """Delete a saved profile."""
    if not yes and not typer.confirm(f"Delete profile '{name}'?"):
        info("Cancelled.")
        raise typer.Exit()

    with handle_errors():
        delete_profile(name)
        global_cfg = load_global_config()
        if global_cfg.default_profile == name:
            global_cfg.default_profile = None
            save_global_config(global_cfg)

    success(f"Deleted profile '{name}'")
