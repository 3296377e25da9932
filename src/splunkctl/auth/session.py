"""Session state derived from an :data:`~splunkctl.models.AuthStrategy`.

:class:`SessionManager` owns the only mutable credential material a client
has. For a :class:`~splunkctl.models.StaticToken` there is nothing to manage:
the token is the bearer value and never expires. For
:class:`~splunkctl.models.Credentials` the manager caches the session token
returned by a login exchange together with its issue time, time-to-live and
an expiry safety buffer.

A session is considered expired when no token is cached, or when::

    now >= issued_at + ttl - expiry_buffer

The manager performs no network I/O itself. :meth:`SessionManager.login`
is handed an awaitable *exchange* by the client and only records its result.
Callers that share a manager across tasks must serialise
check-expiry/login/store sequences; :class:`~splunkctl.client.SplunkClient`
does this with an :class:`asyncio.Lock`.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from splunkctl.exceptions import AuthFailed
from splunkctl.models import (
    DEFAULT_EXPIRY_BUFFER_SECS,
    DEFAULT_SESSION_TTL_SECS,
    AuthStrategy,
    Credentials,
    StaticToken,
)


@dataclass(frozen=True)
class LoginResult:
    """What a credential exchange returns.

    ``ttl`` is only set when the server states the session lifetime;
    otherwise the manager's configured TTL applies.
    """

    token: str
    ttl: Optional[float] = None


LoginExchange = Callable[[Credentials], Awaitable[LoginResult]]


class SessionManager:
    """Tracks the bearer token for one client.

    Args:
        strategy: How the client authenticates.
        ttl: Session lifetime assumed when the server does not state one.
        expiry_buffer: Safety margin before the real expiry at which the
            session is already treated as expired, so a token does not lapse
            in the middle of a request.
        clock: Monotonic time source in seconds. Injectable for tests.
    """

    def __init__(
        self,
        strategy: AuthStrategy,
        ttl: float = DEFAULT_SESSION_TTL_SECS,
        expiry_buffer: float = DEFAULT_EXPIRY_BUFFER_SECS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._strategy = strategy
        self._ttl = ttl
        self._expiry_buffer = expiry_buffer
        self._clock = clock
        self._token: Optional[str] = None
        self._issued_at: float = 0.0
        self._token_ttl: float = ttl

    def __repr__(self) -> str:
        state = "static" if self.is_static_token else ("active" if self._token else "empty")
        return f"SessionManager(strategy={type(self._strategy).__name__}, session={state})"

    @property
    def strategy(self) -> AuthStrategy:
        return self._strategy

    @property
    def is_static_token(self) -> bool:
        """True when no session management is needed."""
        return isinstance(self._strategy, StaticToken)

    @property
    def username(self) -> Optional[str]:
        if isinstance(self._strategy, Credentials):
            return self._strategy.username
        return None

    def is_expired(self) -> bool:
        """Whether a login is required before the next request.

        Always ``False`` for a static token.
        """
        if self.is_static_token:
            return False
        if self._token is None:
            return True
        return self._clock() >= self._issued_at + self._token_ttl - self._expiry_buffer

    def bearer_token(self) -> Optional[str]:
        """Return the bearer value, or ``None`` when a login is required."""
        if isinstance(self._strategy, StaticToken):
            return self._strategy.token.get_secret_value()
        if self.is_expired():
            return None
        return self._token

    async def login(self, exchange: LoginExchange) -> str:
        """Run *exchange* with the configured credentials and cache the token.

        Args:
            exchange: Coroutine function performing the HTTP login.

        Returns:
            The new session token.

        Raises:
            AuthFailed: When the strategy is a static token, or when the
                exchange itself fails.
        """
        if not isinstance(self._strategy, Credentials):
            raise AuthFailed("Cannot login with API token auth strategy")
        result = await exchange(self._strategy)
        self.store(result.token, result.ttl)
        return result.token

    def store(self, token: str, ttl: Optional[float] = None) -> None:
        """Record a session token issued now."""
        self._token = token
        self._issued_at = self._clock()
        self._token_ttl = ttl if ttl is not None else self._ttl

    def clear(self) -> None:
        """Drop the cached session token, forcing a login on next use."""
        self._token = None

    def invalidate(self, rejected_token: str) -> bool:
        """Clear the session only if it still holds *rejected_token*.

        A concurrent caller may already have replaced a rejected token with a
        fresh one; that fresh token must survive.

        Returns:
            ``True`` if the session was cleared.
        """
        if self._token is not None and self._token == rejected_token:
            self.clear()
            return True
        return False
