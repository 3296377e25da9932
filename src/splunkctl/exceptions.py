"""Exception hierarchy for splunkctl.

All exceptions inherit from :class:`SplunkctlError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`splunkctl.exit_codes`.
The top-level error handler in :func:`splunkctl.app.main` catches
``SplunkctlError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Subclass hierarchy::

    SplunkctlError (exit 1)
    +-- ConfigError           (exit 2)
    +-- InvalidUsageError     (exit 2)
    +-- AuthFailed            (exit 3)
    +-- ApiError              (exit 5)
    |   +-- UnauthorizedError (exit 3)
    |   +-- NotFoundError     (exit 4)
    +-- MaxRetriesExceeded    (exit 5)
    +-- InvalidResponse       (exit 5)
    +-- ConnectionError_      (exit 6)
    +-- Timeout               (exit 7)
    +-- Cancelled             (exit 130)
"""

from __future__ import annotations

from typing import Optional

from splunkctl.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CANCELLED,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NOT_FOUND,
    EXIT_SERVER_ERROR,
    EXIT_TIMEOUT,
)


class SplunkctlError(Exception):
    """Base exception for all splunkctl errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`splunkctl.exit_codes`. The entry point catches
    this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class ConfigError(SplunkctlError):
    """Raised for configuration problems detected before any network I/O.

    Examples: missing base URL, a profile without credentials, an invalid
    profile file, or an unresolvable credential source.
    """

    exit_code = EXIT_INVALID_USAGE


class InvalidUsageError(SplunkctlError):
    """Raised for invalid CLI arguments (e.g. an unknown resource type)."""

    exit_code = EXIT_INVALID_USAGE


class AuthFailed(SplunkctlError):
    """Raised when the credential exchange fails or is not possible.

    Also raised when :meth:`~splunkctl.client.SplunkClient.login` is asked to
    perform a session login while the client uses a static API token.
    """

    exit_code = EXIT_AUTH_FAILURE


class ApiError(SplunkctlError):
    """Non-retryable rejection returned by the Splunk REST API.

    Carries enough diagnostic context for a human-readable message: the
    HTTP status, the request URL, the server's message text and the value
    of the ``X-Splunk-Request-Id`` response header when present.
    """

    exit_code = EXIT_SERVER_ERROR

    def __init__(
        self,
        status: int,
        url: str,
        message: str,
        request_id: Optional[str] = None,
    ) -> None:
        self.status = status
        self.url = url
        self.message = message
        self.request_id = request_id
        text = f"API error ({status}) at {url}: {message}"
        if request_id:
            text += f" [Request ID: {request_id}]"
        super().__init__(text)


class UnauthorizedError(ApiError):
    """HTTP 401/403 -- the server rejected the bearer token."""

    exit_code = EXIT_AUTH_FAILURE


class NotFoundError(ApiError):
    """HTTP 404 -- the requested resource does not exist."""

    exit_code = EXIT_NOT_FOUND


class MaxRetriesExceeded(SplunkctlError):
    """The retry budget was exhausted on a transient failure.

    Attributes:
        attempts: Total number of attempts made (initial try plus retries).
        last_error: The failure observed on the final attempt.
    """

    exit_code = EXIT_SERVER_ERROR

    def __init__(self, attempts: int, last_error: Exception) -> None:
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Maximum retries exceeded ({attempts} attempts): {last_error}")


class InvalidResponse(SplunkctlError):
    """The server answered 2xx but the payload did not have the expected shape."""

    exit_code = EXIT_SERVER_ERROR


class ConnectionError_(SplunkctlError):
    """Raised on network-level failures (timeout, DNS resolution, connection refused).

    Named with a trailing underscore to avoid shadowing the built-in
    ``ConnectionError``.
    """

    exit_code = EXIT_CONNECTION_ERROR


class Timeout(SplunkctlError):
    """A single operation (a page, or one profile/resource pair) exceeded its deadline."""

    exit_code = EXIT_TIMEOUT

    def __init__(self, operation: str, seconds: float) -> None:
        self.operation = operation
        self.seconds = seconds
        super().__init__(f"Operation '{operation}' timed out after {seconds:g}s")


class Cancelled(SplunkctlError):
    """An external cancellation signal interrupted an in-flight operation."""

    exit_code = EXIT_CANCELLED

    def __init__(self, message: str = "Operation cancelled") -> None:
        super().__init__(message)
