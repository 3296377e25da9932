"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~splunkctl.exceptions.SplunkctlError` subclass, so
shell scripts wrapping ``splunkctl`` can branch on the failure class
without parsing stderr.

Example::

    $ splunkctl --profile prod indexes list
    $ echo $?
    3   # EXIT_AUTH_FAILURE -- the session login was rejected
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or configuration."""

EXIT_AUTH_FAILURE = 3
"""Authentication or authorisation failed."""

EXIT_NOT_FOUND = 4
"""The requested resource was not found (HTTP 404)."""

EXIT_SERVER_ERROR = 5
"""The server rejected the request or the retry budget was exhausted."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (DNS failure, connection refused, TLS)."""

EXIT_TIMEOUT = 7
"""An operation exceeded its deadline."""

EXIT_CANCELLED = 130
"""The operation was interrupted (SIGINT / external cancellation)."""
