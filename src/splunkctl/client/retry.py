"""Retry/backoff executor for a single logical HTTP operation.

:func:`execute_with_retry` issues a request through a zero-argument
coroutine factory, classifies each attempt into a :class:`RequestOutcome`
and retries transient failures with exponential backoff.

Classification (independent of the attempt number):

==========================  ===================================
Outcome                     Trigger
==========================  ===================================
``SUCCESS``                 any 2xx status
``RETRYABLE``               429, 502, 503, 504, transport errors
``AUTH_REJECTED``           401, 403
``TERMINAL``                500, 501 and every other status
==========================  ===================================

Before retry attempt ``n + 1`` the executor sleeps for
``max(base_backoff * 2**n, retry_after)`` where ``retry_after`` comes from
the response's ``Retry-After`` header (delta-seconds or HTTP-date). The wait
is never shorter than either value. Auth rejections are raised straight
away; re-authentication is the client's job (see
:meth:`splunkctl.client.SplunkClient.execute`).
"""

from __future__ import annotations

import asyncio
import enum
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Awaitable, Callable, Optional

import httpx

from splunkctl.client.response import api_error_from_response
from splunkctl.exceptions import ConnectionError_, MaxRetriesExceeded
from splunkctl.output import get_output

RETRYABLE_STATUSES = frozenset({429, 502, 503, 504})
AUTH_REJECTED_STATUSES = frozenset({401, 403})

# Transport failures worth another attempt. Anything else raised by httpx
# (bad URL, unsupported protocol) will not improve by waiting.
RETRYABLE_TRANSPORT_ERRORS = (
    httpx.TimeoutException,
    httpx.NetworkError,
    httpx.RemoteProtocolError,
)

Sleep = Callable[[float], Awaitable[None]]
Send = Callable[[], Awaitable[httpx.Response]]


class OutcomeKind(str, enum.Enum):
    SUCCESS = "success"
    RETRYABLE = "retryable"
    TERMINAL = "terminal"
    AUTH_REJECTED = "auth_rejected"


@dataclass(frozen=True)
class RequestOutcome:
    """Classification of one attempt.

    Exactly one of ``response`` / ``error`` is set: ``response`` for any
    HTTP answer, ``error`` for a transport failure.
    """

    kind: OutcomeKind
    response: Optional[httpx.Response] = None
    error: Optional[Exception] = None
    retry_after: Optional[float] = None

    @property
    def status(self) -> Optional[int]:
        return self.response.status_code if self.response is not None else None


@dataclass(frozen=True)
class RetryPolicy:
    """Immutable retry settings for one client.

    Attributes:
        max_retries: Retries allowed after the initial attempt.
        base_backoff: Delay before the first retry, in seconds; doubled for
            each further retry.
        retryable_statuses: Status codes treated as transient.
    """

    max_retries: int = 3
    base_backoff: float = 1.0
    retryable_statuses: frozenset[int] = RETRYABLE_STATUSES

    def backoff(self, attempt: int) -> float:
        """Exponential backoff for a retry following *attempt* (0-based)."""
        return self.base_backoff * (2 ** attempt)

    def delay(self, attempt: int, retry_after: Optional[float] = None) -> float:
        """The wait before the next attempt: the larger of backoff and hint."""
        return max(self.backoff(attempt), retry_after or 0.0)


def classify_status(status: int, policy: RetryPolicy = RetryPolicy()) -> OutcomeKind:
    """Map an HTTP status code to an :class:`OutcomeKind`."""
    if 200 <= status < 300:
        return OutcomeKind.SUCCESS
    if status in policy.retryable_statuses:
        return OutcomeKind.RETRYABLE
    if status in AUTH_REJECTED_STATUSES:
        return OutcomeKind.AUTH_REJECTED
    return OutcomeKind.TERMINAL


def classify_response(
    response: httpx.Response,
    policy: RetryPolicy = RetryPolicy(),
    now: Optional[datetime] = None,
) -> RequestOutcome:
    kind = classify_status(response.status_code, policy)
    retry_after = None
    if kind is OutcomeKind.RETRYABLE:
        retry_after = parse_retry_after(response.headers.get("Retry-After"), now=now)
    return RequestOutcome(kind=kind, response=response, retry_after=retry_after)


def classify_error(exc: Exception) -> RequestOutcome:
    if isinstance(exc, RETRYABLE_TRANSPORT_ERRORS):
        return RequestOutcome(kind=OutcomeKind.RETRYABLE, error=exc)
    return RequestOutcome(kind=OutcomeKind.TERMINAL, error=exc)


def parse_retry_after(value: Optional[str], now: Optional[datetime] = None) -> Optional[float]:
    """Parse a ``Retry-After`` header into seconds.

    Accepts delta-seconds (``"120"``) or an HTTP-date
    (``"Wed, 21 Oct 2015 07:28:00 GMT"``). Returns ``None`` for a missing or
    unparsable value, and for a date that is not in the future.
    """
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    if value.isdigit():
        return float(int(value))

    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return None
    if when is None:
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    delta = (when - now).total_seconds()
    return delta if delta > 0 else None


def _failure(outcome: RequestOutcome, description: str) -> Exception:
    """The exception describing a failed attempt."""
    if outcome.response is not None:
        return api_error_from_response(outcome.response)
    return ConnectionError_(f"{description} failed: {outcome.error}")


async def execute_with_retry(
    send: Send,
    policy: RetryPolicy,
    *,
    replayable: bool = True,
    sleep: Sleep = asyncio.sleep,
    description: str = "request",
) -> httpx.Response:
    """Run *send* until it succeeds, fails terminally, or the budget runs out.

    Args:
        send: Coroutine factory issuing the request. Called once per attempt.
        policy: Retry budget and backoff settings.
        replayable: ``False`` when the request body can only be consumed
            once (e.g. a stream). Such a request is attempted exactly once
            and a transient failure is surfaced as-is instead of retried.
        sleep: Awaitable sleep used between attempts.
        description: Short label (``"GET /services/..."``) for diagnostics.

    Returns:
        The successful 2xx response.

    Raises:
        UnauthorizedError: On 401/403. Not retried here.
        ApiError: On any terminal status, with status, URL, message and
            request id preserved.
        ConnectionError_: On a non-retryable transport failure, or a
            transient one when the body is not replayable.
        MaxRetriesExceeded: When every attempt failed transiently.
    """
    output = get_output()
    attempt = 0
    while True:
        try:
            response = await send()
        except httpx.HTTPError as exc:
            outcome = classify_error(exc)
        else:
            outcome = classify_response(response, policy)
            if outcome.kind is OutcomeKind.SUCCESS:
                if attempt > 0:
                    output.debug(f"{description} succeeded after {attempt + 1} attempts")
                return response

        error = _failure(outcome, description)
        if outcome.kind is not OutcomeKind.RETRYABLE:
            raise error

        if not replayable:
            output.debug(f"{description}: body is not replayable, not retrying")
            raise error

        if attempt >= policy.max_retries:
            output.debug(f"{description}: retries exhausted after {attempt + 1} attempts")
            raise MaxRetriesExceeded(attempt + 1, error)

        delay = policy.delay(attempt, outcome.retry_after)
        reason = f"status {outcome.status}" if outcome.status else f"{outcome.error!r}"
        output.debug(
            f"{description}: {reason}, retrying in {delay:g}s "
            f"(attempt {attempt + 1}/{policy.max_retries + 1})"
        )
        await sleep(delay)
        attempt += 1
