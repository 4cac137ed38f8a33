"""Where stitchkit keeps its files, and how the active profile is chosen.

Layout on Linux and the BSDs (XDG base directories)::

    $XDG_CONFIG_HOME/stitchkit/config.json          global settings
    $XDG_CONFIG_HOME/stitchkit/profiles/<name>.json one file per application
    $XDG_DATA_HOME/stitchkit/sessions/<name>.json   persisted sessions (0600)
    $XDG_DATA_HOME/stitchkit/logs/                  crash logs

macOS and Windows use ``~/.stitchkit/`` for config and
``~/.stitchkit/data/`` for data.

A profile is selected, highest precedence first, by the ``--profile`` flag,
``STITCHKIT_PROFILE``, ``default_profile`` in ``./stitchkit.json``, the
global ``default_profile``, and finally the only profile if exactly one
exists. ``--base-url`` and ``STITCHKIT_BASE_URL`` override the profile's
base URL in the same order.

Every file is replaced atomically through :func:`atomic_write`.
"""

from __future__ import annotations

import getpass
import json
import os
import platform
import sys
import tempfile
from pathlib import Path
from typing import Any, Optional, TypeVar

from pydantic import BaseModel

from stitchkit.exceptions import ConfigError
from stitchkit.models import GlobalConfig, Profile

_APP_NAME = "stitchkit"
_CONFIG_FILENAME = "config.json"
_PROJECT_CONFIG_FILENAME = "stitchkit.json"

PROFILE_ENV = "STITCHKIT_PROFILE"
BASE_URL_ENV = "STITCHKIT_BASE_URL"

ModelT = TypeVar("ModelT", bound=BaseModel)


# --- Directories ---


def _is_xdg_platform() -> bool:
    system = platform.system()
    return system == "Linux" or system.endswith("BSD")


def _app_dir(xdg_var: str, xdg_default: str, fallback: str) -> Path:
    """Resolve and create one of the application directories.

    *xdg_default* is relative to the home directory and used when *xdg_var*
    is unset; *fallback* is relative to ``~/.stitchkit`` on other platforms.
    """
    if _is_xdg_platform():
        base = os.environ.get(xdg_var) or str(Path.home() / xdg_default)
        path = Path(base) / _APP_NAME
    else:
        path = Path.home() / f".{_APP_NAME}" / fallback
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_config_dir() -> Path:
    return _app_dir("XDG_CONFIG_HOME", ".config", "")


def get_data_dir() -> Path:
    return _app_dir("XDG_DATA_HOME", ".local/share", "data")


def get_profiles_dir() -> Path:
    path = get_config_dir() / "profiles"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_sessions_dir() -> Path:
    """Directory of the per-profile session documents."""
    path = get_data_dir() / "sessions"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def atomic_write(path: Path, data: str, mode: Optional[int] = None) -> None:
    """Replace *path* with *data* without exposing a partial file.

    The content goes to a temporary file in the same directory, which is
    then renamed over *path*. When *mode* is given it is applied to the
    temporary file before anything is written, so secrets are never
    readable with looser permissions.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            if mode is not None:
                os.chmod(tmp_name, mode)
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise


def _write_model(path: Path, model: BaseModel) -> None:
    atomic_write(path, json.dumps(model.model_dump(mode="json"), indent=2) + "\n")


def _read_model(path: Path, model: type[ModelT], what: str) -> ModelT:
    try:
        return model.model_validate(json.loads(path.read_text(encoding="utf-8")))
    except ValueError as exc:
        raise ConfigError(f"Invalid {what} at {path}: {exc}") from exc


# --- Global config ---


def load_global_config() -> GlobalConfig:
    """Load the global settings, or defaults when none are saved.

    Raises:
        ConfigError: If the file is not valid JSON or fails validation.
    """
    path = get_config_dir() / _CONFIG_FILENAME
    if not path.is_file():
        return GlobalConfig()
    return _read_model(path, GlobalConfig, "global config")


def save_global_config(config: GlobalConfig) -> None:
    _write_model(get_config_dir() / _CONFIG_FILENAME, config)


# --- Profiles ---


def _profile_path(name: str) -> Path:
    if not name or name != Path(name).name or name.startswith("."):
        raise ConfigError(f"Invalid profile name '{name}'")
    return get_profiles_dir() / f"{name}.json"


def list_profiles() -> list[str]:
    """Names of all saved profiles, sorted."""
    return sorted(p.stem for p in get_profiles_dir().glob("*.json") if p.is_file())


def profile_exists(name: str) -> bool:
    return _profile_path(name).is_file()


def load_profile(name: str) -> Profile:
    """Load the profile called *name*.

    Raises:
        ConfigError: If it does not exist or is invalid.
    """
    path = _profile_path(name)
    if not path.is_file():
        raise ConfigError(f"Profile '{name}' not found at {path}")
    return _read_model(path, Profile, f"profile '{name}'")


def save_profile(profile: Profile) -> None:
    _write_model(_profile_path(profile.name), profile)


def delete_profile(name: str) -> None:
    """Remove a saved profile.

    Raises:
        ConfigError: If it does not exist.
    """
    path = _profile_path(name)
    if not path.is_file():
        raise ConfigError(f"Profile '{name}' not found at {path}")
    path.unlink()


# --- Project-local config ---


def load_project_config() -> Optional[dict[str, Any]]:
    """Read ``./stitchkit.json`` if present.

    A project file usually just pins ``default_profile`` for a checkout.

    Raises:
        ConfigError: If the file is not valid JSON.
    """
    path = Path.cwd() / _PROJECT_CONFIG_FILENAME
    if not path.is_file():
        return None
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except ValueError as exc:
        raise ConfigError(f"Invalid project config at {path}: {exc}") from exc


# --- Precedence resolution ---


def resolve_config(
    cli_profile: Optional[str] = None,
    cli_base_url: Optional[str] = None,
    cli_format: Optional[str] = None,
) -> tuple[GlobalConfig, Optional[Profile]]:
    """Work out the settings and profile for this invocation.

    Args:
        cli_profile: Value of ``--profile``.
        cli_base_url: Value of ``--base-url``.
        cli_format: Output format chosen on the command line.

    Returns:
        ``(global_config, profile)``; the profile is ``None`` when nothing
        selects one.

    Raises:
        ConfigError: If the selected profile does not exist or any of the
            consulted files is invalid.
    """
    global_cfg = load_global_config()
    project = load_project_config() or {}

    # lowest precedence first; the last non-empty candidate wins
    candidates = [
        global_cfg.default_profile,
        project.get("default_profile"),
        os.environ.get(PROFILE_ENV) or None,
        cli_profile,
    ]
    chosen = next((name for name in reversed(candidates) if name is not None), None)
    if chosen is None and global_cfg.auto_select_single_profile:
        names = list_profiles()
        if len(names) == 1:
            chosen = names[0]

    profile = load_profile(chosen) if chosen is not None else None
    if profile is not None:
        base_url = cli_base_url or os.environ.get(BASE_URL_ENV)
        if base_url:
            profile.base_url = base_url

    if cli_format is not None:
        global_cfg.output.format = cli_format
    return global_cfg, profile


# --- Credential sources ---


def resolve_credential(source: str) -> str:
    """Read a password, API key or token from *source*.

    ``env:NAME`` reads an environment variable, ``file:PATH`` reads a file
    (surrounding whitespace stripped) and ``prompt`` asks on the terminal.

    Raises:
        ConfigError: If the source is unknown or yields nothing.
    """
    scheme, _, target = source.partition(":")

    if scheme == "env" and target:
        value = os.environ.get(target)
        if value is None:
            raise ConfigError(f"Environment variable '{target}' is not set (source: {source})")
        return value

    if scheme == "file" and target:
        path = Path(target).expanduser()
        if not path.is_file():
            raise ConfigError(f"Credential file not found: {path} (source: {source})")
        try:
            return path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise ConfigError(f"Cannot read credential file {path}: {exc}") from exc

    if source == "prompt":
        if not sys.stdin.isatty():
            raise ConfigError("Cannot prompt for credentials: stdin is not a TTY (source: prompt)")
        return getpass.getpass("Enter credential: ")

    raise ConfigError(f"Unknown credential source format: {source}")
