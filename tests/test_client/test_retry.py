"""Tests for splunkctl.client.retry -- classification, backoff and the executor."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from email.utils import format_datetime
from typing import Any, Optional, Union

import httpx
import pytest

from splunkctl.client.retry import (
    OutcomeKind,
    RetryPolicy,
    classify_error,
    classify_response,
    classify_status,
    execute_with_retry,
    parse_retry_after,
)
from splunkctl.exceptions import (
    ApiError,
    ConnectionError_,
    MaxRetriesExceeded,
    UnauthorizedError,
)

URL = "https://splunk.example.com:8089/services/data/indexes"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _response(
    status: int,
    body: Any = None,
    headers: Optional[dict[str, str]] = None,
) -> httpx.Response:
    return httpx.Response(
        status_code=status,
        json=body if body is not None else {},
        headers=headers,
        request=httpx.Request("GET", URL),
    )


def _sequence(*items: Union[httpx.Response, Exception]):
    """Coroutine factory returning *items* in order, repeating the last one."""
    queue = list(items)
    calls: list[int] = []

    async def send() -> httpx.Response:
        calls.append(len(calls))
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, Exception):
            raise item
        return item

    return send, calls


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


class TestClassifyStatus:
    @pytest.mark.parametrize("status", [200, 201, 204])
    def test_success(self, status: int) -> None:
        assert classify_status(status) is OutcomeKind.SUCCESS

    @pytest.mark.parametrize("status", [429, 502, 503, 504])
    def test_retryable(self, status: int) -> None:
        assert classify_status(status) is OutcomeKind.RETRYABLE

    @pytest.mark.parametrize("status", [401, 403])
    def test_auth_rejected(self, status: int) -> None:
        assert classify_status(status) is OutcomeKind.AUTH_REJECTED

    @pytest.mark.parametrize("status", [400, 404, 409, 500, 501])
    def test_terminal(self, status: int) -> None:
        assert classify_status(status) is OutcomeKind.TERMINAL

    def test_classification_is_stable(self) -> None:
        response = _response(503, headers={"Retry-After": "3"})
        first = classify_response(response)
        second = classify_response(response)
        assert first == second
        assert first.retry_after == 3.0

    def test_transport_errors(self) -> None:
        assert classify_error(httpx.ConnectError("refused")).kind is OutcomeKind.RETRYABLE
        assert classify_error(httpx.ReadTimeout("slow")).kind is OutcomeKind.RETRYABLE
        assert classify_error(httpx.UnsupportedProtocol("ftp")).kind is OutcomeKind.TERMINAL


class TestBackoff:
    def test_doubles(self) -> None:
        policy = RetryPolicy()
        assert [policy.backoff(n) for n in range(4)] == [1.0, 2.0, 4.0, 8.0]

    def test_monotonic(self) -> None:
        policy = RetryPolicy(base_backoff=0.5)
        delays = [policy.backoff(n) for n in range(10)]
        assert delays == sorted(delays)

    def test_hint_dominates_when_larger(self) -> None:
        policy = RetryPolicy()
        assert policy.delay(0, 10.0) == 10.0

    def test_backoff_dominates_when_larger(self) -> None:
        policy = RetryPolicy()
        assert policy.delay(3, 2.0) == 8.0
        assert policy.delay(1, None) == 2.0


class TestParseRetryAfter:
    NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)

    def test_delta_seconds(self) -> None:
        assert parse_retry_after("120") == 120.0
        assert parse_retry_after(" 5 ") == 5.0

    def test_http_date_in_future(self) -> None:
        value = format_datetime(self.NOW + timedelta(seconds=30), usegmt=True)
        assert parse_retry_after(value, now=self.NOW) == 30.0

    def test_http_date_in_past(self) -> None:
        value = format_datetime(self.NOW - timedelta(seconds=30), usegmt=True)
        assert parse_retry_after(value, now=self.NOW) is None

    @pytest.mark.parametrize("value", [None, "", "soon", "-5", "1.5"])
    def test_unparsable(self, value: Optional[str]) -> None:
        assert parse_retry_after(value, now=self.NOW) is None


# ---------------------------------------------------------------------------
# Executor
# ---------------------------------------------------------------------------


class TestExecuteWithRetry:
    @pytest.mark.asyncio()
    async def test_success_first_try(self, sleeper) -> None:
        send, calls = _sequence(_response(200, {"ok": True}))
        response = await execute_with_retry(send, RetryPolicy(), sleep=sleeper)
        assert response.json() == {"ok": True}
        assert len(calls) == 1
        assert sleeper.calls == []

    @pytest.mark.asyncio()
    async def test_retries_transient_status(self, sleeper) -> None:
        send, calls = _sequence(_response(503), _response(502), _response(200))
        response = await execute_with_retry(send, RetryPolicy(max_retries=3), sleep=sleeper)
        assert response.status_code == 200
        assert len(calls) == 3
        assert sleeper.calls == [1.0, 2.0]

    @pytest.mark.asyncio()
    async def test_retry_after_hint_is_honoured(self, sleeper) -> None:
        send, _ = _sequence(_response(429, headers={"Retry-After": "7"}), _response(200))
        await execute_with_retry(send, RetryPolicy(), sleep=sleeper)
        assert sleeper.calls == [7.0]

    @pytest.mark.asyncio()
    async def test_small_hint_does_not_shorten_backoff(self, sleeper) -> None:
        send, _ = _sequence(
            _response(503),
            _response(503, headers={"Retry-After": "1"}),
            _response(200),
        )
        await execute_with_retry(send, RetryPolicy(), sleep=sleeper)
        assert sleeper.calls == [1.0, 2.0]

    @pytest.mark.asyncio()
    @pytest.mark.parametrize("status", [500, 501, 400, 404])
    async def test_terminal_status_not_retried(self, sleeper, status: int) -> None:
        send, calls = _sequence(_response(status, {"messages": [{"type": "ERROR", "text": "no"}]}))
        with pytest.raises(ApiError) as exc_info:
            await execute_with_retry(send, RetryPolicy(), sleep=sleeper)
        assert exc_info.value.status == status
        assert exc_info.value.url == URL
        assert len(calls) == 1
        assert sleeper.calls == []

    @pytest.mark.asyncio()
    @pytest.mark.parametrize("status", [401, 403])
    async def test_auth_rejection_raised_immediately(self, sleeper, status: int) -> None:
        send, calls = _sequence(_response(status))
        with pytest.raises(UnauthorizedError):
            await execute_with_retry(send, RetryPolicy(), sleep=sleeper)
        assert len(calls) == 1
        assert sleeper.calls == []

    @pytest.mark.asyncio()
    async def test_exhaustion_reports_attempts(self, sleeper) -> None:
        send, calls = _sequence(_response(503))
        with pytest.raises(MaxRetriesExceeded) as exc_info:
            await execute_with_retry(send, RetryPolicy(max_retries=2), sleep=sleeper)
        err = exc_info.value
        assert err.attempts == 3
        assert isinstance(err.last_error, ApiError)
        assert err.last_error.status == 503
        assert len(calls) == 3
        assert sleeper.calls == [1.0, 2.0]

    @pytest.mark.asyncio()
    async def test_zero_retries_means_single_attempt(self, sleeper) -> None:
        send, calls = _sequence(_response(504))
        with pytest.raises(MaxRetriesExceeded) as exc_info:
            await execute_with_retry(send, RetryPolicy(max_retries=0), sleep=sleeper)
        assert exc_info.value.attempts == 1
        assert len(calls) == 1
        assert sleeper.calls == []

    @pytest.mark.asyncio()
    async def test_transport_error_retried(self, sleeper) -> None:
        send, calls = _sequence(httpx.ConnectError("refused"), _response(200))
        response = await execute_with_retry(send, RetryPolicy(), sleep=sleeper)
        assert response.status_code == 200
        assert len(calls) == 2
        assert sleeper.calls == [1.0]

    @pytest.mark.asyncio()
    async def test_transport_error_exhaustion(self, sleeper) -> None:
        send, _ = _sequence(httpx.ReadTimeout("slow"))
        with pytest.raises(MaxRetriesExceeded) as exc_info:
            await execute_with_retry(send, RetryPolicy(max_retries=1), sleep=sleeper)
        assert isinstance(exc_info.value.last_error, ConnectionError_)

    @pytest.mark.asyncio()
    async def test_non_transient_transport_error_not_retried(self, sleeper) -> None:
        send, calls = _sequence(httpx.UnsupportedProtocol("ftp"), _response(200))
        with pytest.raises(ConnectionError_, match="GET /x failed: ftp"):
            await execute_with_retry(send, RetryPolicy(), sleep=sleeper, description="GET /x")
        assert len(calls) == 1
        assert sleeper.calls == []

    @pytest.mark.asyncio()
    async def test_returns_the_successful_response(self, sleeper) -> None:
        ok = _response(200)
        send, _ = _sequence(_response(503), ok)
        assert await execute_with_retry(send, RetryPolicy(), sleep=sleeper) is ok

    @pytest.mark.asyncio()
    async def test_single_shot_body_not_retried(self, sleeper) -> None:
        send, calls = _sequence(_response(503), _response(200))
        with pytest.raises(ApiError) as exc_info:
            await execute_with_retry(send, RetryPolicy(), replayable=False, sleep=sleeper)
        assert not isinstance(exc_info.value, MaxRetriesExceeded)
        assert exc_info.value.status == 503
        assert len(calls) == 1
        assert sleeper.calls == []

    @pytest.mark.asyncio()
    async def test_single_shot_transport_error_surfaces(self, sleeper) -> None:
        send, calls = _sequence(httpx.ConnectError("reset"))
        with pytest.raises(ConnectionError_, match="reset"):
            await execute_with_retry(send, RetryPolicy(), replayable=False, sleep=sleeper)
        assert len(calls) == 1

    @pytest.mark.asyncio()
    async def test_error_keeps_request_id_and_message(self, sleeper) -> None:
        send, _ = _sequence(
            _response(
                400,
                {"messages": [{"type": "ERROR", "text": "Unknown search command 'foo'."}]},
                headers={"X-Splunk-Request-Id": "req-42"},
            )
        )
        with pytest.raises(ApiError) as exc_info:
            await execute_with_retry(send, RetryPolicy(), sleep=sleeper)
        err = exc_info.value
        assert err.request_id == "req-42"
        assert err.message == "ERROR: Unknown search command 'foo'."
        assert "[Request ID: req-42]" in str(err)

    @pytest.mark.asyncio()
    async def test_retries_logged_in_verbose_mode(self, sleeper, verbose_output, capsys) -> None:
        send, _ = _sequence(_response(503), _response(200))
        await execute_with_retry(send, RetryPolicy(), sleep=sleeper, description="GET /x")
        err = capsys.readouterr().err
        assert "GET /x: status 503, retrying in 1s" in err
