"""Multi-profile resource overview (the ``list-all`` command).

:func:`fetch_all` queries several Splunk targets concurrently and merges
the outcome into one :class:`~splunkctl.models.ListAllOutput`. Failures are
contained at the narrowest unit:

* a profile without usable settings or credentials yields a
  :class:`~splunkctl.models.ProfileResult` with ``error`` set and no
  resources, and every other profile still runs;
* within a profile each resource kind is fetched under its own deadline and
  a failure or timeout becomes that resource's ``status``.

Only an external cancellation (``cancel`` event, Ctrl-C) aborts the run,
raising :class:`~splunkctl.exceptions.Cancelled`.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Iterable, Optional, TypeVar

from splunkctl.client import SplunkClient
from splunkctl.config import settings_from_profile
from splunkctl.exceptions import (
    ApiError,
    Cancelled,
    InvalidUsageError,
    NotFoundError,
    SplunkctlError,
)
from splunkctl.models import (
    ClientSettings,
    ListAllOutput,
    Profile,
    ProfileResult,
    ResourceSummary,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

VALID_RESOURCES = (
    "indexes",
    "jobs",
    "apps",
    "users",
    "cluster",
    "health",
    "saved-searches",
)

RESOURCE_TIMEOUT_SECS = 30.0

ClientFactory = Callable[[ClientSettings], SplunkClient]


def normalize_resources(resources: Optional[Iterable[str]]) -> list[str]:
    """Trim, lower-case and de-duplicate resource names, keeping first-seen order.

    ``None`` (or only blank names) selects every kind in
    :data:`VALID_RESOURCES`.

    Raises:
        InvalidUsageError: If any name is not a known resource kind.
    """
    if resources is None:
        return list(VALID_RESOURCES)

    seen: list[str] = []
    invalid: list[str] = []
    for raw in resources:
        name = raw.strip().lower()
        if not name or name in seen:
            continue
        if name not in VALID_RESOURCES:
            if name not in invalid:
                invalid.append(name)
            continue
        seen.append(name)

    if invalid:
        raise InvalidUsageError(
            f"Invalid resource type(s): {', '.join(invalid)}. "
            f"Valid types: {', '.join(VALID_RESOURCES)}"
        )
    return seen or list(VALID_RESOURCES)


def format_timestamp(now: Optional[datetime] = None) -> str:
    """RFC 3339 timestamp in UTC, e.g. ``2024-05-01T12:00:00+00:00``."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).isoformat(timespec="seconds")


async def _until_cancelled(awaitable: Awaitable[T], cancel: Optional[asyncio.Event]) -> T:
    """Await *awaitable*, aborting with :class:`Cancelled` once *cancel* is set."""
    if cancel is None:
        return await awaitable
    task = asyncio.ensure_future(awaitable)
    if cancel.is_set():
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        raise Cancelled()

    waiter = asyncio.ensure_future(cancel.wait())
    try:
        done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        waiter.cancel()
        if not task.done():
            task.cancel()
    if task in done:
        return task.result()
    await asyncio.gather(task, return_exceptions=True)
    raise Cancelled()


# ------------------------------------------------------------------ #
# Single resource
# ------------------------------------------------------------------ #


async def _fetch_summary(client: SplunkClient, resource: str) -> ResourceSummary:
    """Fetch one resource kind and summarise it. API errors propagate."""
    summary: dict[str, Any] = {"resource_type": resource}
    if resource == "indexes":
        summary.update(count=len(await client.list_indexes(count=1000)), status="ok")
    elif resource == "jobs":
        summary.update(count=len(await client.list_jobs(count=100)), status="active")
    elif resource == "apps":
        summary.update(count=len(await client.list_apps(count=1000)), status="installed")
    elif resource == "users":
        summary.update(count=len(await client.list_users(count=1000)), status="active")
    elif resource == "saved-searches":
        summary.update(count=len(await client.list_saved_searches()), status="available")
    elif resource == "health":
        health = await client.get_health()
        summary.update(count=1, status=health.health)
    elif resource == "cluster":
        try:
            cluster = await client.get_cluster_info()
        except NotFoundError:
            summary.update(count=0, status="not clustered")
        except ApiError as exc:
            if "not configured" not in exc.message.lower():
                raise
            summary.update(count=0, status="not clustered")
        else:
            summary.update(count=1, status=cluster.mode)
    else:
        raise InvalidUsageError(f"Unknown resource type: {resource}")
    return ResourceSummary(**summary)


async def fetch_resource(
    client: SplunkClient,
    resource: str,
    *,
    timeout: float = RESOURCE_TIMEOUT_SECS,
) -> ResourceSummary:
    """Fetch one resource kind under its own deadline.

    Never raises for API or transport failures: they are reported as
    ``status="error"`` (with the message) or ``status="timeout"``.
    """
    try:
        return await asyncio.wait_for(_fetch_summary(client, resource), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning("Timeout fetching %s from %s", resource, client.base_url)
        return ResourceSummary(
            resource_type=resource,
            status="timeout",
            error=f"Request timeout after {timeout:g} seconds",
        )
    except (Cancelled, InvalidUsageError):
        raise
    except SplunkctlError as exc:
        logger.warning("Failed to fetch %s from %s: %s", resource, client.base_url, exc)
        return ResourceSummary(resource_type=resource, status="error", error=str(exc))


async def fetch_resources(
    client: SplunkClient,
    resources: list[str],
    *,
    timeout: float = RESOURCE_TIMEOUT_SECS,
    cancel: Optional[asyncio.Event] = None,
) -> list[ResourceSummary]:
    """Fetch *resources* one after another from a single client."""
    summaries = []
    for resource in resources:
        summaries.append(
            await _until_cancelled(fetch_resource(client, resource, timeout=timeout), cancel)
        )
    return summaries


# ------------------------------------------------------------------ #
# Single profile
# ------------------------------------------------------------------ #


async def fetch_profile(
    profile: Profile,
    resources: list[str],
    *,
    timeout: float = RESOURCE_TIMEOUT_SECS,
    cancel: Optional[asyncio.Event] = None,
    client_factory: ClientFactory = SplunkClient.build,
) -> ProfileResult:
    """Build a client for *profile* and fetch *resources* from it.

    Configuration and login failures are recorded in
    :attr:`ProfileResult.error` instead of being raised.
    """
    result = ProfileResult(profile_name=profile.name, base_url=profile.base_url or "")
    try:
        client = client_factory(settings_from_profile(profile))
    except SplunkctlError as exc:
        logger.warning("Skipping profile %s: %s", profile.name, exc)
        result.error = str(exc)
        return result

    async with client:
        result.base_url = client.base_url
        if not client.is_api_token_auth:
            try:
                await _until_cancelled(asyncio.wait_for(client.login(), timeout=timeout), cancel)
            except asyncio.TimeoutError:
                result.error = f"Login timeout after {timeout:g} seconds"
                return result
            except Cancelled:
                raise
            except SplunkctlError as exc:
                logger.warning("Login failed for profile %s: %s", profile.name, exc)
                result.error = str(exc)
                return result

        result.resources = await fetch_resources(
            client, resources, timeout=timeout, cancel=cancel
        )
    return result


# ------------------------------------------------------------------ #
# All profiles
# ------------------------------------------------------------------ #


async def fetch_all(
    profiles: list[Profile],
    resources: Optional[Iterable[str]] = None,
    *,
    resource_timeout: float = RESOURCE_TIMEOUT_SECS,
    cancel: Optional[asyncio.Event] = None,
    client_factory: ClientFactory = SplunkClient.build,
) -> ListAllOutput:
    """Fetch a resource overview from every profile concurrently.

    Args:
        profiles: Targets to query. Results keep this order.
        resources: Resource kinds to fetch; ``None`` means all.
        resource_timeout: Deadline in seconds for each profile/resource pair.
        cancel: When set, in-flight fetches are abandoned.
        client_factory: Builds a client from settings (tests inject a
            mock transport here).

    Raises:
        InvalidUsageError: If *resources* names an unknown kind.
        Cancelled: If *cancel* is set before every profile finished.
    """
    kinds = normalize_resources(resources)
    timestamp = format_timestamp()
    logger.debug("Fetching %s from %d profile(s)", ", ".join(kinds), len(profiles))

    results = await asyncio.gather(
        *(
            fetch_profile(
                profile,
                kinds,
                timeout=resource_timeout,
                cancel=cancel,
                client_factory=client_factory,
            )
            for profile in profiles
        )
    )
    return ListAllOutput(timestamp=timestamp, profiles=list(results))
