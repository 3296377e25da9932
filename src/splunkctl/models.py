"""Canonical Pydantic models shared across all splunkctl modules.

This is the single source of truth for data shapes in the project. The
models fall into four groups:

**Authentication** -- :class:`StaticToken` and :class:`Credentials`, the two
variants of :data:`AuthStrategy`. Both are frozen and hold their secrets as
:class:`~pydantic.SecretStr` so that tokens and passwords never leak through
``repr()`` or log lines.

**Configuration** -- :class:`ClientSettings` (everything needed to build one
client), :class:`Profile` (a persisted, named connection target) and
:class:`GlobalConfig`.

**Request shapes** -- :class:`PageRequest` and the :class:`OutputMode` enum.

**API payloads and reports** -- models parsed from Splunk REST responses
(:class:`SearchJobStatus`, :class:`Index`, ...) and the multi-profile report
types (:class:`ResourceSummary`, :class:`ProfileResult`,
:class:`ListAllOutput`).

Payload models use ``extra="allow"`` so fields the CLI does not model are
still available through ``model_extra``.
"""

from __future__ import annotations

import enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_serializer

DEFAULT_TIMEOUT_SECS = 30.0
DEFAULT_MAX_RETRIES = 3
DEFAULT_SESSION_TTL_SECS = 3600.0
DEFAULT_EXPIRY_BUFFER_SECS = 60.0


# --- Auth strategies ---


class StaticToken(BaseModel):
    """A pre-issued API token sent as ``Authorization: Bearer <token>``.

    No session management is needed: the token is always considered valid
    and a rejection by the server is final.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["static_token"] = "static_token"
    token: SecretStr


class Credentials(BaseModel):
    """Username/password exchanged for a short-lived session token."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["credentials"] = "credentials"
    username: str
    password: SecretStr


AuthStrategy = Annotated[Union[StaticToken, Credentials], Field(discriminator="kind")]


# --- Configuration ---


class ClientSettings(BaseModel):
    """Resolved connection settings for a single :class:`~splunkctl.client.SplunkClient`.

    Produced by :func:`~splunkctl.config.settings_from_profile` (or built
    directly by library callers) and consumed by
    :meth:`~splunkctl.client.SplunkClient.build`. ``base_url`` and
    ``auth_strategy`` are optional here so that a missing value is reported
    as a :class:`~splunkctl.exceptions.ConfigError` at build time rather
    than as a validation error.
    """

    base_url: Optional[str] = None
    auth_strategy: Optional[AuthStrategy] = None
    skip_verify: bool = False
    timeout: float = Field(default=DEFAULT_TIMEOUT_SECS, gt=0)
    max_retries: int = Field(default=DEFAULT_MAX_RETRIES, ge=0)
    session_ttl: float = Field(default=DEFAULT_SESSION_TTL_SECS, gt=0)
    session_expiry_buffer: float = Field(default=DEFAULT_EXPIRY_BUFFER_SECS, ge=0)


class Profile(BaseModel):
    """A named Splunk target persisted under the ``profiles/`` config directory.

    Credential fields accept either a literal value or a source descriptor
    (``env:VAR``, ``file:/path``) resolved by
    :func:`~splunkctl.config.resolve_credential` at client build time.
    When both ``api_token`` and ``username``/``password`` are present the
    static token wins.

    See Also:
        :func:`~splunkctl.config.load_profile`: Deserialise a profile by name.
        :func:`~splunkctl.config.save_profile`: Persist a profile to disk.
    """

    model_config = ConfigDict(extra="allow")

    name: str
    base_url: Optional[str] = None
    username: Optional[str] = None
    password: Optional[SecretStr] = None
    api_token: Optional[SecretStr] = None
    skip_verify: bool = False
    timeout_seconds: float = DEFAULT_TIMEOUT_SECS
    max_retries: int = DEFAULT_MAX_RETRIES
    session_ttl_seconds: float = DEFAULT_SESSION_TTL_SECS
    session_expiry_buffer_seconds: float = DEFAULT_EXPIRY_BUFFER_SECS

    @field_serializer("password", "api_token", when_used="json")
    def _dump_secret(self, value: Optional[SecretStr]) -> Optional[str]:
        # Profiles are written back to disk, so JSON dumps keep the real value.
        return value.get_secret_value() if value is not None else None


class GlobalConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/splunkctl/config.json``."""

    default_profile: Optional[str] = None
    auto_select_single_profile: bool = True


# --- Request shapes ---


class OutputMode(str, enum.Enum):
    """Values accepted by Splunk's ``output_mode`` query parameter."""

    JSON = "json"
    CSV = "csv"
    XML = "xml"
    RAW = "raw"


class PageRequest(BaseModel):
    """One page of a paginated fetch.

    Stateless and independently retryable: nothing is shared between pages
    except the client's session.
    """

    model_config = ConfigDict(frozen=True)

    offset: int = Field(ge=0)
    count: int = Field(gt=0)
    output_mode: OutputMode = OutputMode.JSON

    def params(self) -> dict[str, Any]:
        """Query parameters for this page."""
        return {
            "offset": self.offset,
            "count": self.count,
            "output_mode": self.output_mode.value,
        }


# --- API payloads ---


class _Payload(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)


class SearchJobStatus(_Payload):
    """Status of a search job (``/services/search/jobs/{sid}``)."""

    sid: str
    is_done: bool = Field(default=False, alias="isDone")
    is_failed: bool = Field(default=False, alias="isFailed")
    done_progress: float = Field(default=0.0, alias="doneProgress")
    dispatch_state: Optional[str] = Field(default=None, alias="dispatchState")
    event_count: int = Field(default=0, alias="eventCount")
    result_count: int = Field(default=0, alias="resultCount")
    run_duration: float = Field(default=0.0, alias="runDuration")


class SearchJobResults(BaseModel):
    """One page of search results."""

    results: list[dict[str, Any]] = Field(default_factory=list)
    preview: bool = False
    offset: Optional[int] = None
    total: Optional[int] = None


class Index(_Payload):
    name: str
    total_event_count: int = Field(default=0, alias="totalEventCount")
    current_db_size_mb: float = Field(default=0.0, alias="currentDBSizeMB")
    max_total_data_size_mb: Optional[float] = Field(default=None, alias="maxTotalDataSizeMB")
    disabled: bool = False


class App(_Payload):
    name: str
    label: Optional[str] = None
    version: Optional[str] = None
    disabled: bool = False


class User(_Payload):
    name: str
    realname: Optional[str] = None
    email: Optional[str] = None
    roles: list[str] = Field(default_factory=list)


class SavedSearch(_Payload):
    name: str
    search: str = ""
    disabled: bool = False


class HealthStatus(_Payload):
    health: str


class ClusterInfo(_Payload):
    mode: str
    label: Optional[str] = None


class ServerInfo(_Payload):
    server_name: str = Field(alias="serverName")
    version: str
    build: Optional[str] = None
    os_name: Optional[str] = None


# --- Multi-profile report ---


class ResourceSummary(BaseModel):
    """Outcome of fetching one resource kind from one profile."""

    resource_type: str
    count: int = 0
    status: str
    error: Optional[str] = None


class ProfileResult(BaseModel):
    """Outcome for one profile in a multi-target run. Never aborts the run."""

    profile_name: str
    base_url: str = ""
    resources: list[ResourceSummary] = Field(default_factory=list)
    error: Optional[str] = None


class ListAllOutput(BaseModel):
    """Merged report produced by :func:`~splunkctl.aggregate.fetch_all`."""

    timestamp: str
    profiles: list[ProfileResult] = Field(default_factory=list)
