"""Splunk REST client for splunkctl.

:class:`SplunkClient` is an asynchronous client backed by
:class:`httpx.AsyncClient`. Every request goes through the retry executor
in :mod:`splunkctl.client.retry`; operations wrapped in
:meth:`SplunkClient.execute` additionally re-authenticate once when a
session token is rejected.

Example::

    from splunkctl.client import SplunkClient

    async with SplunkClient.build(settings) as client:
        rows = await client.search("index=_internal | head 5")
"""

from splunkctl.client.async_client import SplunkClient
from splunkctl.client.pagination import Page, iter_pages, paginate
from splunkctl.client.retry import (
    OutcomeKind,
    RequestOutcome,
    RetryPolicy,
    classify_response,
    execute_with_retry,
    parse_retry_after,
)

__all__ = [
    "OutcomeKind",
    "Page",
    "RequestOutcome",
    "RetryPolicy",
    "SplunkClient",
    "classify_response",
    "execute_with_retry",
    "iter_pages",
    "paginate",
    "parse_retry_after",
]
