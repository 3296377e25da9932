"""Tests for the response helpers in splunkctl.client.response."""

from __future__ import annotations

import httpx
import pytest

from splunkctl.client.response import (
    api_error_from_response,
    error_message,
    extract_entries,
    extract_entry_content,
    read_json,
    request_id,
    request_url,
)
from splunkctl.exceptions import ApiError, InvalidResponse, NotFoundError, UnauthorizedError


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


URL = "https://splunk.example.com:8089/services/search/jobs"


def _make_response(
    status_code: int = 200,
    json_data: object | None = None,
    text: str | None = None,
    headers: dict[str, str] | None = None,
) -> httpx.Response:
    """Build an httpx.Response bound to a request."""
    request = httpx.Request("GET", URL)
    if json_data is not None:
        return httpx.Response(status_code, json=json_data, headers=headers, request=request)
    return httpx.Response(status_code, text=text or "", headers=headers, request=request)


# ---------------------------------------------------------------------------
# error_message
# ---------------------------------------------------------------------------


class TestErrorMessage:
    def test_splunk_messages(self) -> None:
        resp = _make_response(
            400,
            {
                "messages": [
                    {"type": "ERROR", "text": "bad query"},
                    {"type": "WARN", "text": "slow"},
                ]
            },
        )
        assert error_message(resp) == "ERROR: bad query; WARN: slow"

    def test_message_key_fallback(self) -> None:
        assert error_message(_make_response(500, {"message": "kaput"})) == "kaput"

    def test_plain_text_truncated(self) -> None:
        resp = _make_response(502, text="x" * 1000)
        assert error_message(resp) == "x" * 500

    def test_empty_body(self) -> None:
        assert error_message(_make_response(503)) == ""


# ---------------------------------------------------------------------------
# api_error_from_response
# ---------------------------------------------------------------------------


class TestApiErrorFromResponse:
    @pytest.mark.parametrize(
        ("status", "cls"),
        [(401, UnauthorizedError), (403, UnauthorizedError), (404, NotFoundError)],
    )
    def test_typed_subclasses(self, status: int, cls: type[ApiError]) -> None:
        err = api_error_from_response(_make_response(status, {}))
        assert type(err) is cls
        assert err.status == status

    def test_generic_error_carries_context(self) -> None:
        resp = _make_response(
            500,
            {"messages": [{"type": "ERROR", "text": "internal"}]},
            headers={"X-Splunk-Request-Id": "abc123"},
        )
        err = api_error_from_response(resp)
        assert type(err) is ApiError
        assert err.url == URL
        assert err.message == "ERROR: internal"
        assert err.request_id == "abc123"
        assert str(err) == f"API error (500) at {URL}: ERROR: internal [Request ID: abc123]"

    def test_reason_phrase_when_body_empty(self) -> None:
        err = api_error_from_response(_make_response(503))
        assert err.message == "Service Unavailable"
        assert err.request_id is None

    def test_request_helpers(self) -> None:
        resp = _make_response(200, {}, headers={"X-Splunk-Request-Id": "r1"})
        assert request_url(resp) == URL
        assert request_id(resp) == "r1"
        assert request_url(httpx.Response(200)) == ""


# ---------------------------------------------------------------------------
# Payload extraction
# ---------------------------------------------------------------------------


class TestReadJson:
    def test_valid(self) -> None:
        assert read_json(_make_response(200, {"a": 1})) == {"a": 1}

    def test_invalid(self) -> None:
        with pytest.raises(InvalidResponse, match="not valid JSON"):
            read_json(_make_response(200, text="<html>"))


class TestExtractEntries:
    def test_flattens_content_and_name(self) -> None:
        payload = {
            "entry": [
                {"name": "main", "content": {"totalEventCount": 5}},
                {"name": "history", "content": {}},
            ]
        }
        assert extract_entries(payload) == [
            {"totalEventCount": 5, "name": "main"},
            {"name": "history"},
        ]

    def test_content_name_wins(self) -> None:
        payload = {"entry": [{"name": "outer", "content": {"name": "inner"}}]}
        assert extract_entries(payload) == [{"name": "inner"}]

    def test_skips_non_dict_entries(self) -> None:
        assert extract_entries({"entry": ["junk", {"name": "a"}]}) == [{"name": "a"}]

    @pytest.mark.parametrize("payload", [{}, {"entry": "x"}, [], None])
    def test_invalid(self, payload: object) -> None:
        with pytest.raises(InvalidResponse):
            extract_entries(payload)


class TestExtractEntryContent:
    def test_first_entry(self) -> None:
        payload = {"entry": [{"content": {"health": "green"}}, {"content": {"health": "red"}}]}
        assert extract_entry_content(payload) == {"health": "green"}

    @pytest.mark.parametrize(
        ("payload", "match"),
        [
            ([], "JSON object"),
            ({"entry": []}, "empty 'entry'"),
            ({"entry": [{"name": "x"}]}, "content"),
        ],
    )
    def test_invalid(self, payload: object, match: str) -> None:
        with pytest.raises(InvalidResponse, match=match):
            extract_entry_content(payload)
