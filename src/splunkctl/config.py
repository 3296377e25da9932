"""Configuration management: XDG paths, profiles, precedence and credentials.

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.splunkctl/`` on macOS and Windows. See :func:`get_config_dir`,
  :func:`get_data_dir` and :func:`get_profiles_dir`.
* **Global config** -- one :class:`~splunkctl.models.GlobalConfig` JSON
  file holding the default profile name.
* **Profiles** -- one JSON file per Splunk target, deserialised into a
  :class:`~splunkctl.models.Profile`.
* **Precedence** -- :func:`resolve_profile` layers CLI flags over
  ``SPLUNK_*`` environment variables over the profile file over defaults.
* **Credentials** -- :func:`resolve_credential` accepts literal values or
  ``env:VAR`` / ``file:/path`` / ``prompt`` source descriptors, and
  :func:`build_auth_strategy` turns a profile into an
  :data:`~splunkctl.models.AuthStrategy`.

All file writes go through :func:`_atomic_write` (temp file, then rename).
"""

from __future__ import annotations

import getpass
import json
import os
import platform
import re
import sys
import tempfile
from pathlib import Path
from typing import Any, Callable, Optional

from pydantic import SecretStr

from splunkctl.exceptions import ConfigError
from splunkctl.models import (
    AuthStrategy,
    ClientSettings,
    Credentials,
    GlobalConfig,
    Profile,
    StaticToken,
)

_APP_NAME = "splunkctl"
_CONFIG_FILENAME = "config.json"
_PROFILE_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")

ENV_PROFILE = "SPLUNK_PROFILE"
ENV_BASE_URL = "SPLUNK_BASE_URL"
ENV_API_TOKEN = "SPLUNK_API_TOKEN"
ENV_USERNAME = "SPLUNK_USERNAME"
ENV_PASSWORD = "SPLUNK_PASSWORD"
ENV_SKIP_VERIFY = "SPLUNK_SKIP_VERIFY"
ENV_TIMEOUT = "SPLUNK_TIMEOUT"
ENV_MAX_RETRIES = "SPLUNK_MAX_RETRIES"

# Name given to a profile assembled purely from environment variables.
ENV_PROFILE_NAME = "env"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/splunkctl/`` (default
    ``~/.config/splunkctl/``). Elsewhere: ``~/.splunkctl/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/splunkctl/`` (default
    ``~/.local/share/splunkctl/``). Elsewhere: ``~/.splunkctl/logs/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_profiles_dir() -> Path:
    path = get_config_dir() / "profiles"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str) -> None:
    """Write *data* to *path* atomically.

    The temp file lives in the target directory so ``os.replace`` is a
    same-filesystem rename. Profiles may hold secrets, so the file is
    created with owner-only permissions.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None
        os.chmod(tmp_path, 0o600)
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Global config ---


def _global_config_path() -> Path:
    return get_config_dir() / _CONFIG_FILENAME


def load_global_config() -> GlobalConfig:
    """Load the global configuration, or defaults when the file is absent.

    Raises:
        ConfigError: If the file exists but is not valid JSON or fails
            validation.
    """
    path = _global_config_path()
    if not path.is_file():
        return GlobalConfig()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return GlobalConfig.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid global config at {path}: {exc}") from exc


def save_global_config(config: GlobalConfig) -> None:
    data = config.model_dump(mode="json")
    _atomic_write(_global_config_path(), json.dumps(data, indent=2) + "\n")


# --- Profiles ---


def _profile_path(name: str) -> Path:
    if not _PROFILE_NAME_RE.match(name):
        raise ConfigError(
            f"Invalid profile name '{name}': use letters, digits, '.', '_' or '-'"
        )
    return get_profiles_dir() / f"{name}.json"


def list_profiles() -> list[str]:
    """Return the names of all saved profiles, sorted."""
    return sorted(p.stem for p in get_profiles_dir().glob("*.json") if p.is_file())


def load_profile(name: str) -> Profile:
    """Load and validate a profile from disk.

    Raises:
        ConfigError: If the profile does not exist, is not valid JSON, or
            fails validation.
    """
    path = _profile_path(name)
    if not path.is_file():
        raise ConfigError(f"Profile '{name}' not found at {path}")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return Profile.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid profile '{name}' at {path}: {exc}") from exc


def load_profiles(names: Optional[list[str]] = None) -> list[Profile]:
    """Load the named profiles, or every saved profile when *names* is ``None``."""
    return [load_profile(name) for name in (names if names is not None else list_profiles())]


def save_profile(profile: Profile) -> None:
    """Persist *profile* atomically. Secrets are written in clear text."""
    data = profile.model_dump(mode="json", exclude_none=True)
    _atomic_write(_profile_path(profile.name), json.dumps(data, indent=2) + "\n")


def delete_profile(name: str) -> None:
    """Delete a saved profile.

    Raises:
        ConfigError: If the profile does not exist.
    """
    path = _profile_path(name)
    if not path.is_file():
        raise ConfigError(f"Profile '{name}' not found at {path}")
    path.unlink()


def profile_exists(name: str) -> bool:
    return _profile_path(name).is_file()


# --- Environment overrides ---


def _env_bool(var: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off", ""):
        return False
    raise ConfigError(f"Invalid boolean in {var}: {value!r}")


def _env_number(var: str, value: str, cast: Callable[[str], Any]) -> Any:
    try:
        return cast(value.strip())
    except ValueError as exc:
        raise ConfigError(f"Invalid number in {var}: {value!r}") from exc


def _env_overrides() -> dict[str, Any]:
    """Collect ``SPLUNK_*`` settings present in the environment."""
    overrides: dict[str, Any] = {}
    env = os.environ
    if env.get(ENV_BASE_URL):
        overrides["base_url"] = env[ENV_BASE_URL]
    if env.get(ENV_API_TOKEN):
        overrides["api_token"] = SecretStr(env[ENV_API_TOKEN])
    if env.get(ENV_USERNAME):
        overrides["username"] = env[ENV_USERNAME]
    if env.get(ENV_PASSWORD):
        overrides["password"] = SecretStr(env[ENV_PASSWORD])
    if ENV_SKIP_VERIFY in env:
        overrides["skip_verify"] = _env_bool(ENV_SKIP_VERIFY, env[ENV_SKIP_VERIFY])
    if env.get(ENV_TIMEOUT):
        overrides["timeout_seconds"] = _env_number(ENV_TIMEOUT, env[ENV_TIMEOUT], float)
    if env.get(ENV_MAX_RETRIES):
        overrides["max_retries"] = _env_number(ENV_MAX_RETRIES, env[ENV_MAX_RETRIES], int)
    return overrides


# --- Precedence resolution ---


def resolve_profile_name(cli_profile: Optional[str] = None) -> Optional[str]:
    """Pick the active profile name.

    Precedence (high to low): ``--profile``, ``SPLUNK_PROFILE``, the global
    ``default_profile``, then the only saved profile if exactly one exists
    and ``auto_select_single_profile`` is on.
    """
    if cli_profile:
        return cli_profile
    env_profile = os.environ.get(ENV_PROFILE)
    if env_profile:
        return env_profile

    global_cfg = load_global_config()
    if global_cfg.default_profile:
        return global_cfg.default_profile
    if global_cfg.auto_select_single_profile:
        profiles = list_profiles()
        if len(profiles) == 1:
            return profiles[0]
    return None


def resolve_profile(
    cli_profile: Optional[str] = None,
    cli_base_url: Optional[str] = None,
) -> Profile:
    """Resolve the effective profile for a single-target command.

    Precedence (high to low):
        1. CLI flags (``--profile``, ``--base-url``)
        2. Environment variables (``SPLUNK_*``)
        3. The profile file
        4. Model defaults

    Without any saved profile, a profile named ``env`` is assembled from
    the environment alone.

    Raises:
        ConfigError: If a named profile cannot be loaded, or if nothing at
            all is configured.
    """
    overrides = _env_overrides()
    name = resolve_profile_name(cli_profile)

    if name is not None:
        profile = load_profile(name)
    elif overrides.get("base_url") or cli_base_url:
        profile = Profile(name=ENV_PROFILE_NAME)
    else:
        raise ConfigError(
            "No profile configured. Create one with 'splunkctl config set-profile' "
            f"or set {ENV_BASE_URL}."
        )

    if cli_base_url:
        overrides["base_url"] = cli_base_url
    if overrides:
        profile = profile.model_copy(update=overrides)
    return profile


# --- Credential resolution ---


def resolve_credential(value: str) -> str:
    """Resolve a credential value.

    Supported forms:
        - ``"env:VAR_NAME"`` -- reads ``os.environ["VAR_NAME"]``
        - ``"file:/path/to/file"`` -- reads the file, stripped of whitespace
        - ``"prompt"`` -- asks interactively (requires a TTY)
        - anything else is used literally

    Raises:
        ConfigError: If a source descriptor cannot be resolved.
    """
    if value.startswith("env:"):
        var_name = value[4:]
        resolved = os.environ.get(var_name)
        if resolved is None:
            raise ConfigError(f"Environment variable '{var_name}' is not set (source: {value})")
        return resolved

    if value.startswith("file:"):
        path = Path(value[5:]).expanduser()
        if not path.is_file():
            raise ConfigError(f"Credential file not found: {path}")
        try:
            return path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise ConfigError(f"Cannot read credential file {path}: {exc}") from exc

    if value == "prompt":
        if not sys.stdin.isatty():
            raise ConfigError("Cannot prompt for credentials: stdin is not a TTY")
        return getpass.getpass("Splunk password: ")

    return value


def build_auth_strategy(profile: Profile) -> AuthStrategy:
    """Choose the auth strategy for *profile*.

    An API token wins over username/password when both are configured.

    Raises:
        ConfigError: If neither an API token nor a complete username and
            password pair is configured, or a credential source fails.
    """
    if profile.api_token is not None:
        token = resolve_credential(profile.api_token.get_secret_value())
        if token:
            return StaticToken(token=SecretStr(token))

    if profile.username and profile.password is not None:
        password = resolve_credential(profile.password.get_secret_value())
        return Credentials(username=profile.username, password=SecretStr(password))

    raise ConfigError(
        f"Profile '{profile.name}' has no credentials: "
        "set api_token, or username and password"
    )


def settings_from_profile(profile: Profile) -> ClientSettings:
    """Translate a profile into :class:`~splunkctl.models.ClientSettings`.

    Raises:
        ConfigError: If the profile has no usable credentials or carries an
            out-of-range setting.
    """
    strategy = build_auth_strategy(profile)
    try:
        return ClientSettings(
            base_url=profile.base_url,
            auth_strategy=strategy,
            skip_verify=profile.skip_verify,
            timeout=profile.timeout_seconds,
            max_retries=profile.max_retries,
            session_ttl=profile.session_ttl_seconds,
            session_expiry_buffer=profile.session_expiry_buffer_seconds,
        )
    except ValueError as exc:
        raise ConfigError(f"Invalid settings in profile '{profile.name}': {exc}") from exc
