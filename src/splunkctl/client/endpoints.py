"""Splunk REST resource methods, mixed into :class:`~splunkctl.client.SplunkClient`.

Every method performs each HTTP call through
:meth:`~splunkctl.client.SplunkClient.execute`, so each call gets the
auth-retry wrapper and the transient-failure retry independently. Responses
are requested with ``output_mode=json``.

Search flow::

    sid = await client.create_search_job("index=_internal | head 10")
    await client.wait_for_job(sid)
    rows = await client.fetch_search_results(sid, max_results=500)

or simply ``rows = await client.search("index=_internal | head 10")``.
"""

from __future__ import annotations

import hashlib
from typing import TYPE_CHECKING, Any, AsyncIterator, Awaitable, Callable, Optional, TypeVar
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ValidationError

from splunkctl.client.pagination import Page, iter_pages, paginate
from splunkctl.client.response import extract_entries, extract_entry_content, read_json
from splunkctl.exceptions import InvalidResponse, Timeout
from splunkctl.models import (
    App,
    ClusterInfo,
    HealthStatus,
    Index,
    OutputMode,
    PageRequest,
    SavedSearch,
    SearchJobResults,
    SearchJobStatus,
    ServerInfo,
    User,
)
from splunkctl.output import get_output

if TYPE_CHECKING:
    from splunkctl.client.retry import Sleep

M = TypeVar("M", bound=BaseModel)
T = TypeVar("T")

DEFAULT_MAX_RESULTS = 1000
DEFAULT_RESULTS_PAGE_SIZE = 500
DEFAULT_POLL_INTERVAL_SECS = 0.5
DEFAULT_MAX_WAIT_SECS = 300.0

JOBS_PATH = "/services/search/jobs"


def encode_path_segment(segment: str) -> str:
    """Percent-encode *segment* for use as a single URL path component."""
    return quote(segment, safe="")


def redact_query(query: str) -> str:
    """Describe a search query for logs without revealing its text."""
    digest = hashlib.sha256(query.encode("utf-8")).hexdigest()[:8]
    return f"<{len(query)} chars, hash={digest}>"


def normalize_query(query: str) -> str:
    """Prefix ``search`` unless the query already starts with a command."""
    stripped = query.strip()
    if stripped.startswith("|") or stripped.startswith("search "):
        return stripped
    return f"search {stripped}"


def _parse(model: type[M], data: dict[str, Any], what: str) -> M:
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise InvalidResponse(f"Failed to parse {what}: {exc}") from exc


def _to_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class ResourceEndpoints:
    """Resource-level calls built on ``execute`` and ``request``."""

    if TYPE_CHECKING:
        _sleep: Sleep
        _clock: Callable[[], float]

        async def execute(
            self, operation: Callable[[str], Awaitable[T]], *, replayable: bool = True
        ) -> T: ...

        async def request(
            self, method: str, path: str, *, token: str, **kwargs: Any
        ) -> httpx.Response: ...

    # ------------------------------------------------------------------ #
    # Shared helpers
    # ------------------------------------------------------------------ #

    async def _get_json(self, path: str, params: Optional[dict[str, Any]] = None) -> Any:
        query = {"output_mode": "json", **(params or {})}
        response = await self.execute(
            lambda token: self.request("GET", path, token=token, params=query)
        )
        return read_json(response)

    async def _list(
        self,
        path: str,
        model: type[M],
        count: Optional[int],
        offset: Optional[int],
    ) -> list[M]:
        params: dict[str, Any] = {}
        if count is not None:
            params["count"] = count
        if offset is not None:
            params["offset"] = offset
        payload = await self._get_json(path, params)
        return [_parse(model, item, model.__name__) for item in extract_entries(payload)]

    # ------------------------------------------------------------------ #
    # Collections
    # ------------------------------------------------------------------ #

    async def list_indexes(
        self, count: Optional[int] = None, offset: Optional[int] = None
    ) -> list[Index]:
        return await self._list("/services/data/indexes", Index, count, offset)

    async def list_jobs(
        self, count: Optional[int] = None, offset: Optional[int] = None
    ) -> list[SearchJobStatus]:
        """List search jobs visible to the current user.

        The job SID is taken from the entry name when the content omits it.
        """
        params: dict[str, Any] = {}
        if count is not None:
            params["count"] = count
        if offset is not None:
            params["offset"] = offset
        payload = await self._get_json(JOBS_PATH, params)
        jobs = []
        for item in extract_entries(payload):
            item.setdefault("sid", item.get("name", ""))
            jobs.append(_parse(SearchJobStatus, item, "job"))
        return jobs

    async def list_apps(
        self, count: Optional[int] = None, offset: Optional[int] = None
    ) -> list[App]:
        return await self._list("/services/apps/local", App, count, offset)

    async def list_users(
        self, count: Optional[int] = None, offset: Optional[int] = None
    ) -> list[User]:
        return await self._list("/services/authentication/users", User, count, offset)

    async def list_saved_searches(
        self, count: Optional[int] = None, offset: Optional[int] = None
    ) -> list[SavedSearch]:
        return await self._list("/services/saved/searches", SavedSearch, count, offset)

    # ------------------------------------------------------------------ #
    # Server
    # ------------------------------------------------------------------ #

    async def get_health(self) -> HealthStatus:
        payload = await self._get_json("/services/server/health/splunkd")
        return _parse(HealthStatus, extract_entry_content(payload), "health status")

    async def get_cluster_info(self) -> ClusterInfo:
        """Cluster configuration of this node.

        Raises:
            NotFoundError: When the node is not part of a cluster.
        """
        payload = await self._get_json("/services/cluster/config")
        return _parse(ClusterInfo, extract_entry_content(payload), "cluster info")

    async def get_server_info(self) -> ServerInfo:
        payload = await self._get_json("/services/server/info")
        return _parse(ServerInfo, extract_entry_content(payload), "server info")

    # ------------------------------------------------------------------ #
    # Search jobs
    # ------------------------------------------------------------------ #

    async def create_search_job(
        self,
        query: str,
        *,
        earliest_time: Optional[str] = None,
        latest_time: Optional[str] = None,
        max_count: Optional[int] = None,
        exec_mode: str = "normal",
    ) -> str:
        """Dispatch a search and return its SID.

        Blank ``earliest_time``/``latest_time`` values are omitted because
        Splunk rejects empty time bounds.

        Raises:
            InvalidResponse: If the response carries no SID.
        """
        search = normalize_query(query)
        output = get_output()
        output.debug(f"Creating search job: {redact_query(search)}")

        form: dict[str, Any] = {
            "search": search,
            "output_mode": "json",
            "exec_mode": exec_mode,
        }
        if earliest_time and earliest_time.strip():
            form["earliest_time"] = earliest_time
        if latest_time and latest_time.strip():
            form["latest_time"] = latest_time
        if max_count is not None:
            form["max_count"] = max_count

        response = await self.execute(
            lambda token: self.request("POST", JOBS_PATH, token=token, data=form)
        )
        payload = read_json(response)

        sid = payload.get("sid") if isinstance(payload, dict) else None
        if not sid:
            try:
                sid = extract_entry_content(payload).get("sid")
            except InvalidResponse:
                sid = None
        if not sid:
            raise InvalidResponse("Missing sid in search job response")
        output.debug(f"Created search job {sid}")
        return str(sid)

    async def get_job_status(self, sid: str) -> SearchJobStatus:
        payload = await self._get_json(f"{JOBS_PATH}/{encode_path_segment(sid)}")
        content = dict(extract_entry_content(payload))
        content.setdefault("sid", sid)
        return _parse(SearchJobStatus, content, "job status")

    async def wait_for_job(
        self,
        sid: str,
        *,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECS,
        max_wait: float = DEFAULT_MAX_WAIT_SECS,
        on_progress: Optional[Callable[[float], None]] = None,
    ) -> SearchJobStatus:
        """Poll a job until it is done.

        Args:
            sid: Search job id.
            poll_interval: Seconds between status polls.
            max_wait: Give up after this many seconds.
            on_progress: Called with ``doneProgress`` (0.0 to 1.0) after
                each poll.

        Raises:
            Timeout: If the job is not done within ``max_wait``.
            InvalidResponse: If the job reports failure (``isFailed``).
        """
        started = self._clock()
        while True:
            status = await self.get_job_status(sid)
            if on_progress is not None:
                on_progress(status.done_progress)
            # A failed job is also reported as done.
            if status.is_failed or status.dispatch_state == "FAILED":
                raise InvalidResponse(f"Search job {sid} failed (state={status.dispatch_state})")
            if status.is_done:
                get_output().debug(f"Job {sid} completed")
                return status
            if self._clock() - started >= max_wait:
                raise Timeout("wait_for_job", max_wait)
            await self._sleep(poll_interval)

    async def cancel_job(self, sid: str) -> None:
        path = f"{JOBS_PATH}/{encode_path_segment(sid)}/control"
        form = {"action": "cancel", "output_mode": "json"}
        await self.execute(lambda token: self.request("POST", path, token=token, data=form))

    async def delete_job(self, sid: str) -> None:
        path = f"{JOBS_PATH}/{encode_path_segment(sid)}"
        await self.execute(
            lambda token: self.request(
                "DELETE", path, token=token, params={"output_mode": "json"}
            )
        )

    async def get_search_results(
        self,
        sid: str,
        *,
        count: Optional[int] = None,
        offset: Optional[int] = None,
        output_mode: OutputMode = OutputMode.JSON,
    ) -> SearchJobResults:
        """Fetch one page of results. An empty body means no results yet."""
        params: dict[str, Any] = {"output_mode": output_mode.value}
        if count is not None:
            params["count"] = count
        if offset is not None:
            params["offset"] = offset
        return await self._get_results(sid, params)

    async def _get_results(self, sid: str, params: dict[str, Any]) -> SearchJobResults:
        offset = params.get("offset")
        path = f"{JOBS_PATH}/{encode_path_segment(sid)}/results"

        response = await self.execute(
            lambda token: self.request("GET", path, token=token, params=params)
        )
        if not response.text.strip():
            return SearchJobResults(offset=offset)

        payload = read_json(response)
        if isinstance(payload, list):
            return SearchJobResults(results=payload, offset=offset)
        if not isinstance(payload, dict):
            raise InvalidResponse("Unexpected search results payload")
        results = payload.get("results")
        return SearchJobResults(
            results=results if isinstance(results, list) else [],
            preview=bool(payload.get("preview", False)),
            offset=offset,
            total=_to_int(payload.get("total")),
        )

    def _results_page_fetcher(self, sid: str) -> Callable[[PageRequest], Awaitable[Page[dict[str, Any]]]]:
        async def fetch(page: PageRequest) -> Page[dict[str, Any]]:
            results = await self._get_results(sid, page.params())
            return Page(items=results.results, total=results.total)

        return fetch

    def iter_search_results(
        self,
        sid: str,
        *,
        page_size: int = DEFAULT_RESULTS_PAGE_SIZE,
        max_results: Optional[int] = None,
        page_timeout: Optional[float] = None,
    ) -> AsyncIterator[list[dict[str, Any]]]:
        """Yield result pages one at a time (see :func:`iter_pages`)."""
        return iter_pages(
            self._results_page_fetcher(sid),
            page_size=page_size,
            max_results=max_results,
            page_timeout=page_timeout,
        )

    async def fetch_search_results(
        self,
        sid: str,
        *,
        page_size: int = DEFAULT_RESULTS_PAGE_SIZE,
        max_results: Optional[int] = DEFAULT_MAX_RESULTS,
        page_timeout: Optional[float] = None,
    ) -> list[dict[str, Any]]:
        return await paginate(
            self._results_page_fetcher(sid),
            page_size=page_size,
            max_results=max_results,
            page_timeout=page_timeout,
        )

    async def search(
        self,
        query: str,
        *,
        wait: bool = True,
        earliest_time: Optional[str] = None,
        latest_time: Optional[str] = None,
        max_results: int = DEFAULT_MAX_RESULTS,
        max_wait: float = DEFAULT_MAX_WAIT_SECS,
        on_progress: Optional[Callable[[float], None]] = None,
    ) -> list[dict[str, Any]]:
        """Run a search end to end and return up to ``max_results`` rows.

        With ``wait=False`` whatever results are available right after
        dispatch are returned.
        """
        sid = await self.create_search_job(
            query,
            earliest_time=earliest_time,
            latest_time=latest_time,
            max_count=max_results,
        )
        if wait:
            await self.wait_for_job(sid, max_wait=max_wait, on_progress=on_progress)
        return await self.fetch_search_results(sid, max_results=max_results)


__all__ = [
    "DEFAULT_MAX_RESULTS",
    "ResourceEndpoints",
    "encode_path_segment",
    "normalize_query",
    "redact_query",
]
