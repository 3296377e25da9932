"""Authentication strategies and session state for splunkctl.

The strategies themselves (:class:`~splunkctl.models.StaticToken` and
:class:`~splunkctl.models.Credentials`) live in :mod:`splunkctl.models`;
this package holds the mutable side:

- :class:`SessionManager` -- caches the session token obtained from a
  login exchange and decides when it has expired.
- :class:`LoginResult` -- the token (and optional server-stated TTL)
  returned by a login exchange.

Typical usage::

    from splunkctl.auth import SessionManager
    from splunkctl.models import StaticToken

    session = SessionManager(StaticToken(token="abc"))
    assert session.bearer_token() == "abc"
"""

from splunkctl.auth.session import LoginExchange, LoginResult, SessionManager

__all__ = ["LoginExchange", "LoginResult", "SessionManager"]
