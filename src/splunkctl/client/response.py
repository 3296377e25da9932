"""Response helpers shared by the retry executor and the endpoint layer.

Splunk REST responses follow a small number of shapes:

* errors carry ``{"messages": [{"type": "ERROR", "text": "..."}]}``;
* collection endpoints return ``{"entry": [{"name": ..., "content": {...}}]}``;
* search results return ``{"results": [...], "preview": bool, ...}``.

The functions here turn those shapes into typed errors or plain dicts and
never raise anything outside :mod:`splunkctl.exceptions`.
"""

from __future__ import annotations

from typing import Any, Optional

import httpx

from splunkctl.exceptions import ApiError, InvalidResponse, NotFoundError, UnauthorizedError

REQUEST_ID_HEADER = "X-Splunk-Request-Id"


def request_url(response: httpx.Response) -> str:
    """Return the URL of the request that produced *response*, or ``""``."""
    try:
        return str(response.request.url)
    except RuntimeError:
        return ""


def request_id(response: httpx.Response) -> Optional[str]:
    """Return the server-assigned request id, if any."""
    return response.headers.get(REQUEST_ID_HEADER)


def error_message(response: httpx.Response) -> str:
    """Extract a readable message from an error response body.

    Splunk ``messages`` arrays are rendered as ``TYPE: text`` joined by
    ``"; "``. Other JSON bodies fall back to common ``message``/``error``
    keys, and anything else to the (truncated) raw text.
    """
    try:
        detail = response.json()
    except ValueError:
        return response.text[:500] if response.text else ""

    if isinstance(detail, dict):
        messages = detail.get("messages")
        if isinstance(messages, list) and messages:
            parts = []
            for msg in messages:
                if isinstance(msg, dict):
                    parts.append(f"{msg.get('type', 'ERROR')}: {msg.get('text', '')}")
            if parts:
                return "; ".join(parts)
        for key in ("message", "error", "detail"):
            if detail.get(key):
                return str(detail[key])
    return response.text[:500]


def api_error_from_response(response: httpx.Response) -> ApiError:
    """Build the :class:`ApiError` subclass matching *response*'s status."""
    status = response.status_code
    cls: type[ApiError] = ApiError
    if status in (401, 403):
        cls = UnauthorizedError
    elif status == 404:
        cls = NotFoundError
    return cls(
        status=status,
        url=request_url(response),
        message=error_message(response) or response.reason_phrase,
        request_id=request_id(response),
    )


def read_json(response: httpx.Response) -> Any:
    """Decode a successful response body as JSON.

    Raises:
        InvalidResponse: If the body is not valid JSON.
    """
    try:
        return response.json()
    except ValueError as exc:
        raise InvalidResponse(
            f"Response from {request_url(response)} is not valid JSON: {exc}"
        ) from exc


def extract_entries(payload: Any) -> list[dict[str, Any]]:
    """Flatten an ``entry`` collection into dicts of ``{"name": ..., **content}``.

    Raises:
        InvalidResponse: If ``entry`` is missing or not a list.
    """
    if not isinstance(payload, dict) or not isinstance(payload.get("entry"), list):
        raise InvalidResponse("Missing or invalid 'entry' array in response")
    items: list[dict[str, Any]] = []
    for entry in payload["entry"]:
        if not isinstance(entry, dict):
            continue
        content = entry.get("content")
        item = dict(content) if isinstance(content, dict) else {}
        item.setdefault("name", entry.get("name", ""))
        items.append(item)
    return items


def extract_entry_content(payload: Any) -> dict[str, Any]:
    """Return the ``content`` object of the first entry.

    Raises:
        InvalidResponse: If the entry array is missing, empty, or the first
            entry has no ``content``.
    """
    if not isinstance(payload, dict):
        raise InvalidResponse("Expected a JSON object response")
    entries = payload.get("entry")
    if not isinstance(entries, list) or not entries:
        raise InvalidResponse("Missing or empty 'entry' array in response")
    content = entries[0].get("content") if isinstance(entries[0], dict) else None
    if not isinstance(content, dict):
        raise InvalidResponse("Missing 'content' field in entry")
    return content
