"""Offset/count pagination over Splunk collection and results endpoints.

Pages are requested strictly one after another. Each page is fetched by a
separate call to *fetch_page*, which the endpoint layer implements as its
own :meth:`~splunkctl.client.SplunkClient.execute` call. A page that fails
transiently and then recovers is therefore retried on its own; pages that
were already returned are never requested again.

Iteration stops at the first of:

* a page shorter than requested (or empty);
* ``max_results`` items collected;
* the server-reported total reached.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import AsyncIterator, Awaitable, Callable, Generic, Optional, TypeVar

from splunkctl.exceptions import Timeout
from splunkctl.models import OutputMode, PageRequest
from splunkctl.output import get_output

T = TypeVar("T")


@dataclass
class Page(Generic[T]):
    """Items from one page plus the server's total, when it reports one."""

    items: list[T] = field(default_factory=list)
    total: Optional[int] = None


FetchPage = Callable[[PageRequest], Awaitable[Page[T]]]


async def iter_pages(
    fetch_page: FetchPage[T],
    *,
    page_size: int,
    max_results: Optional[int] = None,
    offset: int = 0,
    output_mode: OutputMode = OutputMode.JSON,
    page_timeout: Optional[float] = None,
) -> AsyncIterator[list[T]]:
    """Yield successive non-empty pages.

    Args:
        fetch_page: Coroutine function fetching one :class:`PageRequest`.
        page_size: Items requested per page.
        max_results: Stop after this many items. ``None`` means no cap.
        offset: Offset of the first page.
        output_mode: ``output_mode`` sent with every page.
        page_timeout: Deadline in seconds for each individual page.

    Raises:
        Timeout: If a page exceeds ``page_timeout``.
        ValueError: If ``page_size`` is not positive.
    """
    if page_size <= 0:
        raise ValueError("page_size must be positive")

    collected = 0
    while max_results is None or collected < max_results:
        count = page_size if max_results is None else min(page_size, max_results - collected)
        request = PageRequest(offset=offset, count=count, output_mode=output_mode)
        get_output().debug(f"Fetching page offset={offset} count={count}")

        if page_timeout is None:
            page = await fetch_page(request)
        else:
            try:
                page = await asyncio.wait_for(fetch_page(request), timeout=page_timeout)
            except asyncio.TimeoutError:
                raise Timeout(f"fetch page at offset {offset}", page_timeout) from None

        items = page.items[:count]
        if items:
            yield items
        collected += len(items)
        offset += len(items)

        if len(items) < count:
            break
        if page.total is not None and offset >= page.total:
            break


async def paginate(
    fetch_page: FetchPage[T],
    *,
    page_size: int,
    max_results: Optional[int] = None,
    offset: int = 0,
    output_mode: OutputMode = OutputMode.JSON,
    page_timeout: Optional[float] = None,
) -> list[T]:
    """Collect every page from :func:`iter_pages` into one list."""
    results: list[T] = []
    async for items in iter_pages(
        fetch_page,
        page_size=page_size,
        max_results=max_results,
        offset=offset,
        output_mode=output_mode,
        page_timeout=page_timeout,
    ):
        results.extend(items)
    return results
