"""Asynchronous Splunk REST client.

:class:`SplunkClient` wraps :class:`httpx.AsyncClient` and layers three
concerns on top of it:

1. **Session management** through :class:`~splunkctl.auth.SessionManager`.
   A bearer token is obtained lazily, and refreshed under an
   :class:`asyncio.Lock` so concurrent tasks sharing a client perform at
   most one login at a time.
2. **Transient-failure retry** through
   :func:`~splunkctl.client.retry.execute_with_retry`, applied to every
   individual HTTP request.
3. **Auth retry** in :meth:`SplunkClient.execute`: when a session token is
   rejected the client logs in once and replays the whole operation once.

Resource-level calls (``list_indexes``, ``search``, ...) live in
:class:`~splunkctl.client.endpoints.ResourceEndpoints`, mixed in here.

Example::

    settings = ClientSettings(base_url="https://splunk:8089", auth_strategy=...)
    async with SplunkClient.build(settings) as client:
        indexes = await client.list_indexes()
"""

from __future__ import annotations

import asyncio
import collections.abc
import time
from typing import Any, Awaitable, Callable, Optional, TypeVar
from urllib.parse import urlsplit

import httpx

from splunkctl.auth.session import LoginResult, SessionManager
from splunkctl.client.endpoints import ResourceEndpoints
from splunkctl.client.response import read_json
from splunkctl.client.retry import RetryPolicy, Sleep, execute_with_retry
from splunkctl.exceptions import ApiError, AuthFailed, ConfigError, UnauthorizedError
from splunkctl.models import (
    DEFAULT_EXPIRY_BUFFER_SECS,
    DEFAULT_MAX_RETRIES,
    DEFAULT_SESSION_TTL_SECS,
    DEFAULT_TIMEOUT_SECS,
    AuthStrategy,
    ClientSettings,
    Credentials,
    StaticToken,
)
from splunkctl.output import get_output

T = TypeVar("T")

LOGIN_PATH = "/services/auth/login"


class SplunkClient(ResourceEndpoints):
    """Authenticated, retrying client for one Splunk management endpoint.

    Prefer :meth:`build`, which validates settings. Must be used as an async
    context manager so the underlying connection pool is closed.

    Args:
        base_url: Management URL without trailing slash, e.g.
            ``https://splunk.example.com:8089``.
        auth_strategy: Static API token or username/password credentials.
        timeout: Per-request timeout in seconds.
        max_retries: Retries per request on transient failures.
        skip_verify: Disable TLS certificate verification.
        session_ttl: Assumed session lifetime when the server states none.
        session_expiry_buffer: Seconds before expiry at which the session is
            refreshed.
        transport: Optional httpx transport (tests pass
            :class:`httpx.MockTransport`).
        sleep: Sleep used between retry attempts and job polls.
        clock: Monotonic clock used for session expiry.
    """

    def __init__(
        self,
        base_url: str,
        auth_strategy: AuthStrategy,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECS,
        max_retries: int = DEFAULT_MAX_RETRIES,
        skip_verify: bool = False,
        session_ttl: float = DEFAULT_SESSION_TTL_SECS,
        session_expiry_buffer: float = DEFAULT_EXPIRY_BUFFER_SECS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Sleep = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._base_url = base_url
        self._timeout = timeout
        self._skip_verify = skip_verify
        self._transport = transport
        self._sleep = sleep
        self._clock = clock
        self._retry_policy = RetryPolicy(max_retries=max_retries)
        self._session = SessionManager(
            auth_strategy,
            ttl=session_ttl,
            expiry_buffer=session_expiry_buffer,
            clock=clock,
        )
        self._auth_lock = asyncio.Lock()
        self._client: Optional[httpx.AsyncClient] = None

    def __repr__(self) -> str:
        return f"SplunkClient(base_url={self._base_url!r}, session={self._session!r})"

    # ------------------------------------------------------------------ #
    # Construction
    # ------------------------------------------------------------------ #

    @classmethod
    def build(
        cls,
        settings: ClientSettings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Sleep = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> SplunkClient:
        """Validate *settings* and construct a client.

        Trailing slashes are stripped from the base URL. No network I/O is
        performed.

        Raises:
            ConfigError: If the base URL is missing or not ``http(s)://``, or
                if no auth strategy is configured.
        """
        base_url = (settings.base_url or "").strip().rstrip("/")
        if not base_url:
            raise ConfigError("Base URL is required")

        parts = urlsplit(base_url)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise ConfigError(
                f"Invalid base URL {base_url!r}: expected http:// or https:// with a host"
            )

        if settings.auth_strategy is None:
            raise ConfigError("Auth strategy is required (API token or username/password)")

        if settings.skip_verify and parts.scheme == "http":
            get_output().warning(
                "skip_verify only applies to https:// URLs; "
                f"{base_url} is plain HTTP and is not encrypted"
            )

        return cls(
            base_url,
            settings.auth_strategy,
            timeout=settings.timeout,
            max_retries=settings.max_retries,
            skip_verify=settings.skip_verify,
            session_ttl=settings.session_ttl,
            session_expiry_buffer=settings.session_expiry_buffer,
            transport=transport,
            sleep=sleep,
            clock=clock,
        )

    @classmethod
    def from_settings(cls, **kwargs: Any) -> SplunkClient:
        """Shorthand for ``build(ClientSettings(**kwargs))``."""
        return cls.build(ClientSettings(**kwargs))

    # ------------------------------------------------------------------ #
    # Async context manager
    # ------------------------------------------------------------------ #

    async def __aenter__(self) -> SplunkClient:
        kwargs: dict[str, Any] = {
            "base_url": self._base_url,
            "timeout": self._timeout,
            "verify": not self._skip_verify,
            "follow_redirects": True,
        }
        if self._transport is not None:
            kwargs["transport"] = self._transport
        self._client = httpx.AsyncClient(**kwargs)
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------ #
    # Properties
    # ------------------------------------------------------------------ #

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._retry_policy

    @property
    def session(self) -> SessionManager:
        return self._session

    @property
    def is_api_token_auth(self) -> bool:
        """True when authenticating with a static API token."""
        return self._session.is_static_token

    # ------------------------------------------------------------------ #
    # Authentication
    # ------------------------------------------------------------------ #

    async def login(self) -> str:
        """Force a fresh session login and return the bearer token.

        With a static API token this is a no-op that returns the token.

        Raises:
            AuthFailed: If the server rejects the credentials or the login
                response carries no session key.
        """
        strategy = self._session.strategy
        if isinstance(strategy, StaticToken):
            return strategy.token.get_secret_value()
        async with self._auth_lock:
            return await self._session.login(self._exchange_credentials)

    async def _exchange_credentials(self, credentials: Credentials) -> LoginResult:
        """POST the credentials to the login endpoint and parse the session key."""
        output = get_output()
        output.debug(f"Logging in to {self._base_url} as {credentials.username}")

        form = {
            "username": credentials.username,
            "password": credentials.password.get_secret_value(),
            "output_mode": "json",
        }
        try:
            response = await execute_with_retry(
                lambda: self._http.post(LOGIN_PATH, data=form),
                self._retry_policy,
                sleep=self._sleep,
                description=f"POST {LOGIN_PATH}",
            )
        except UnauthorizedError as exc:
            raise AuthFailed(f"Login failed for user '{credentials.username}': {exc.message}") from exc
        except ApiError as exc:
            raise AuthFailed(f"Login failed for user '{credentials.username}': {exc}") from exc

        payload = read_json(response)
        token = payload.get("sessionKey") if isinstance(payload, dict) else None
        if not token:
            raise AuthFailed("Login response did not contain a session key")

        ttl: Optional[float] = None
        raw_ttl = payload.get("ttl")
        if raw_ttl is not None:
            try:
                ttl = float(raw_ttl)
            except (TypeError, ValueError):
                output.debug(f"Ignoring unparsable session ttl {raw_ttl!r}")
        output.debug("Login succeeded")
        return LoginResult(token=str(token), ttl=ttl)

    async def _get_auth_token(self) -> str:
        """Return a valid bearer token, logging in first if the session expired."""
        async with self._auth_lock:
            token = self._session.bearer_token()
            if token is None:
                get_output().debug("No valid session, logging in")
                token = await self._session.login(self._exchange_credentials)
            return token

    async def execute(
        self,
        operation: Callable[[str], Awaitable[T]],
        *,
        replayable: bool = True,
    ) -> T:
        """Run *operation* with a bearer token, re-authenticating once on rejection.

        *operation* receives the current token and performs one logical
        request (typically through :meth:`request`, which applies the retry
        executor). If it raises :class:`~splunkctl.exceptions.UnauthorizedError`:

        * with a static API token the error propagates unchanged;
        * with credentials the rejected session is invalidated, a new login
          is performed and *operation* is replayed exactly once. A second
          rejection propagates.

        Args:
            operation: Coroutine function taking the bearer token.
            replayable: ``False`` when *operation* sends a body that can only
                be consumed once. The rejected session is still dropped, but
                the error propagates instead of the operation being replayed.

        Returns:
            Whatever *operation* returns.
        """
        token = await self._get_auth_token()
        try:
            return await operation(token)
        except UnauthorizedError:
            if self._session.is_static_token:
                raise
            async with self._auth_lock:
                self._session.invalidate(token)
            if not replayable:
                get_output().debug("Session token rejected, body is not replayable")
                raise
            get_output().debug("Session token rejected, re-authenticating")
            token = await self._get_auth_token()
            return await operation(token)

    # ------------------------------------------------------------------ #
    # Requests
    # ------------------------------------------------------------------ #

    @property
    def _http(self) -> httpx.AsyncClient:
        assert self._client is not None, "Client not initialised -- use as async context manager"
        return self._client

    async def request(
        self,
        method: str,
        path: str,
        *,
        token: str,
        params: Optional[dict[str, Any]] = None,
        data: Optional[dict[str, Any]] = None,
        json_body: Optional[Any] = None,
        content: Optional[Any] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> httpx.Response:
        """Send one authenticated request through the retry executor.

        A ``content`` body given as an iterator or async iterator can only be
        sent once, so such a request is never retried.

        Args:
            method: HTTP method.
            path: Path relative to the base URL (``/services/...``).
            token: Bearer token, usually supplied by :meth:`execute`.
            params: Query parameters.
            data: Form-encoded body.
            json_body: JSON body.
            content: Raw body (bytes, str or a stream).
            headers: Extra request headers.

        Raises:
            UnauthorizedError: On 401/403.
            ApiError: On any other non-retryable error status.
            MaxRetriesExceeded: When transient failures outlast the budget.
            ConnectionError_: On an unrecoverable transport failure.
        """
        merged_headers = {"Authorization": f"Bearer {token}", **(headers or {})}
        replayable = not _is_single_shot(content)
        http = self._http

        async def send() -> httpx.Response:
            return await http.request(
                method,
                path,
                params=params,
                data=data,
                json=json_body,
                content=content,
                headers=merged_headers,
            )

        return await execute_with_retry(
            send,
            self._retry_policy,
            replayable=replayable,
            sleep=self._sleep,
            description=f"{method} {path}",
        )

    async def call(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """:meth:`request` wrapped in :meth:`execute`."""
        return await self.execute(
            lambda token: self.request(method, path, token=token, **kwargs),
            replayable=not _is_single_shot(kwargs.get("content")),
        )


def _is_single_shot(content: Any) -> bool:
    if content is None or isinstance(content, (bytes, bytearray, str)):
        return False
    return isinstance(content, (collections.abc.Iterator, collections.abc.AsyncIterator))
