"""Configuration management with XDG paths, atomic writes, and precedence resolution.

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.basecrm/`` on macOS and Windows. See :func:`get_config_dir` and
  :func:`get_data_dir`.
* **Stored config** -- a single :class:`~basecrm.models.StoredConfig` JSON
  file holding the user's defaults (token, base URL, ...).
* **Precedence resolution** -- :func:`resolve_configuration` merges CLI
  flags, environment variables, project-local config and the stored
  config into the immutable :class:`~basecrm.models.Configuration` handed
  to :class:`~basecrm.http_client.HttpClient`.

File writes go through :func:`_atomic_write` (temp file, then rename).
"""

from __future__ import annotations

import json
import logging
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from basecrm.errors import ConfigurationError
from basecrm.models import Configuration, StoredConfig

logger = logging.getLogger(__name__)

_APP_NAME = "basecrm"
_CONFIG_FILENAME = "config.json"
_PROJECT_CONFIG_FILENAME = "basecrm.json"

ENV_VARS = {
    "access_token": "BASECRM_ACCESS_TOKEN",
    "base_url": "BASECRM_BASE_URL",
    "user_agent": "BASECRM_USER_AGENT",
    "verbose": "BASECRM_VERBOSE",
}
"""Configuration fields that can be set from the environment."""


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True on platforms following the XDG Base Directory spec (Linux/BSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from *env_var*, falling back under ``$HOME``."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    return Path.home().joinpath(*default_segments)


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/basecrm/`` (default ``~/.config/basecrm/``).
    On macOS/Windows: ``~/.basecrm/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/basecrm/`` (default ``~/.local/share/basecrm/``).
    On macOS/Windows: ``~/.basecrm/logs/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str) -> None:
    """Write *data* to *path* atomically using a sibling temp file + ``os.replace``."""
    path.parent.mkdir(parents=True, exist_ok=True)

    tmp_path: Optional[str] = None
    try:
        with tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        ) as fd:
            tmp_path = fd.name
            fd.write(data)
            fd.flush()
            os.fsync(fd.fileno())
        os.replace(tmp_path, path)
        # The file holds a bearer token.
        os.chmod(path, 0o600)
    except BaseException:
        if tmp_path is not None and os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


# --- Stored config ---


def config_file_path() -> Path:
    """Path to the user's stored config file."""
    return get_config_dir() / _CONFIG_FILENAME


def _read_json(path: Path, what: str) -> Optional[dict[str, Any]]:
    if not path.is_file():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError) as exc:
        raise ConfigurationError(f"Invalid {what} at {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"Invalid {what} at {path}: expected a JSON object")
    return data


def load_stored_config() -> StoredConfig:
    """Load the stored config, or an empty one if the file does not exist.

    Raises:
        ConfigurationError: If the file holds invalid JSON or fails validation.
    """
    path = config_file_path()
    data = _read_json(path, "config")
    if data is None:
        return StoredConfig()
    try:
        return StoredConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid config at {path}: {exc}") from exc


def save_stored_config(config: StoredConfig) -> None:
    """Persist *config* atomically, omitting unset fields."""
    data = config.model_dump(mode="json", exclude_none=True)
    _atomic_write(config_file_path(), json.dumps(data, indent=2) + "\n")


def load_project_config() -> Optional[dict[str, Any]]:
    """Load project-local overrides from ``./basecrm.json``, if present."""
    return _read_json(Path.cwd() / _PROJECT_CONFIG_FILENAME, "project config")


# --- Precedence resolution ---


def _env_layer() -> dict[str, Any]:
    layer: dict[str, Any] = {}
    for field, var in ENV_VARS.items():
        value = os.environ.get(var)
        if value:
            layer[field] = value
    return layer


def resolve_configuration(
    cli_token: Optional[str] = None,
    cli_base_url: Optional[str] = None,
    cli_verbose: Optional[bool] = None,
) -> Configuration:
    """Build the effective :class:`~basecrm.models.Configuration`.

    Precedence (high to low):
        1. CLI flags (``cli_token``, ``cli_base_url``, ``cli_verbose``)
        2. Environment variables (``BASECRM_ACCESS_TOKEN``, ``BASECRM_BASE_URL``,
           ``BASECRM_USER_AGENT``, ``BASECRM_VERBOSE``)
        3. Project config (``./basecrm.json``)
        4. Stored config (``~/.config/basecrm/config.json``)
        5. Model defaults

    Raises:
        ConfigurationError: If no access token is configured at any level
            or the merged values fail validation.
    """
    merged: dict[str, Any] = load_stored_config().model_dump(exclude_none=True)

    project = load_project_config()
    if project:
        merged.update({k: v for k, v in project.items() if v is not None})

    merged.update(_env_layer())

    cli = {"access_token": cli_token, "base_url": cli_base_url, "verbose": cli_verbose}
    merged.update({k: v for k, v in cli.items() if v is not None})

    if not merged.get("access_token"):
        raise ConfigurationError(
            "No access token configured. Set BASECRM_ACCESS_TOKEN, pass --token, "
            "or run: basecrm config set access_token <token>"
        )

    try:
        config = Configuration.model_validate(merged)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration: {exc}") from exc

    logger.debug("Resolved configuration for %s", config.base_url)
    return config
