"""Configuration loading and merging for gitritual.

Handles TOML loading, config discovery, deep merging, and environment overlay.

Discovery order (later sources override earlier):
1. User config (``~/.gitritual/config.toml``)
2. Project config: ``--config PATH``, else the first ``gitritual.toml`` or
   ``.gitritual/config.toml`` found searching upward from the project path
3. Environment variables (unless ``skip_env``)
4. Explicit overrides (command-line options)
"""

from __future__ import annotations

import copy
import os
import sys
import warnings
from pathlib import Path
from typing import Any, Dict, Optional

# TOML loading: tomllib (3.11+), tomli backport on 3.10
if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from pydantic import ValidationError

from .config_schema import GitRitualConfig
from .errors import ConfigError

# Config file names
CONFIG_FILENAME = "config.toml"
PROJECT_CONFIG_FILENAME = "gitritual.toml"

# Directory names
USER_CONFIG_DIR = ".gitritual"
PROJECT_CONFIG_DIR = ".gitritual"

# Environment variable -> (section, key)
ENV_MAPPING: Dict[str, tuple[str, str]] = {
    "GITRITUAL_CWD": ("globals", "cwd"),
    "GITRITUAL_REMOTE": ("globals", "remote"),
    "GITRITUAL_PUSH": ("globals", "push"),
    "GITRITUAL_PATCH_ID_DEPTH": ("globals", "patch_id_depth"),
    "GITRITUAL_SKIP_SELECTION": ("globals", "skip_selection"),
    "GITRITUAL_LOG_LEVEL": ("logging", "level"),
    "GITRITUAL_LOG_DIR": ("logging", "dir"),
    "GITRITUAL_LOG_DISABLE_FILE": ("logging", "disable_file"),
}

# camelCase spellings accepted for keys the env overlay may also set
_KEY_ALIASES = {
    "patch_id_depth": "patchIdCheckDepth",
    "skip_selection": "skipSelection",
}


def _get_user_config_dir() -> Path:
    """Get user-level config directory (~/.gitritual/)."""
    return Path.home() / USER_CONFIG_DIR


def find_project_config(project_path: Optional[Path] = None) -> Optional[Path]:
    """Search upward from ``project_path`` for a project config file.

    In each directory ``gitritual.toml`` wins over ``.gitritual/config.toml``.
    """
    if project_path is None:
        project_path = Path.cwd()

    if not project_path.is_absolute():
        project_path = project_path.resolve()

    current = project_path
    while True:
        for candidate in (
            current / PROJECT_CONFIG_FILENAME,
            current / PROJECT_CONFIG_DIR / CONFIG_FILENAME,
        ):
            if candidate.is_file():
                return candidate
        if current == current.parent:
            return None
        current = current.parent


def _load_toml(path: Path) -> Dict[str, Any]:
    """Load a TOML file.

    Raises:
        ConfigError: If file cannot be loaded or parsed
    """
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except FileNotFoundError:
        raise ConfigError(f"Config file not found: {path}")
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {path}: {e}")


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Deep merge two dictionaries.

    Override values take precedence. Nested dicts are merged recursively.
    Lists are replaced, not merged.
    """
    result = base.copy()

    for key, value in override.items():
        if (
            key in result
            and isinstance(result[key], dict)
            and isinstance(value, dict)
        ):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def _set_key(config_dict: Dict[str, Any], section: str, key: str, value: Any) -> None:
    target = config_dict.setdefault(section, {})
    alias = _KEY_ALIASES.get(key)
    if alias:
        target.pop(alias, None)
    target[key] = value


def _apply_env_overlay(config_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Apply environment variable overrides to config dict.

    Type conversion happens during Pydantic validation.
    """
    result = copy.deepcopy(config_dict)
    for env_var, (section, key) in ENV_MAPPING.items():
        value = os.getenv(env_var)
        if value is None:
            continue
        _set_key(result, section, key, value)
    return result


def _resolve_relative_cwd(config_dict: Dict[str, Any], base_dir: Path) -> None:
    """Interpret a relative ``globals.cwd`` against the config file's directory."""
    globals_section = config_dict.get("globals")
    if not isinstance(globals_section, dict):
        return
    cwd = globals_section.get("cwd")
    if isinstance(cwd, str) and cwd.strip():
        path = Path(cwd).expanduser()
        if not path.is_absolute():
            globals_section["cwd"] = str((base_dir / path).resolve())


def load_config(
    config_path: Optional[Path] = None,
    project_path: Optional[Path] = None,
    overrides: Optional[Dict[str, Any]] = None,
    skip_env: bool = False,
    skip_user: bool = False,
) -> GitRitualConfig:
    """Load and merge gitritual configuration.

    Args:
        config_path: Explicit project config file (``--config``)
        project_path: Directory to start config discovery from
        overrides: Highest-priority values, e.g. ``{"globals": {"cwd": ...}}``
        skip_env: Skip environment variable overlay
        skip_user: Skip the user config file

    Returns:
        Validated GitRitualConfig

    Raises:
        ConfigError: If no config file is found or the merged config is invalid
    """
    config_dict: Dict[str, Any] = {}

    # 1. User config
    user_config_path = _get_user_config_dir() / CONFIG_FILENAME
    if not skip_user and user_config_path.exists():
        try:
            user_config = _load_toml(user_config_path)
            _resolve_relative_cwd(user_config, user_config_path.parent)
            config_dict = _deep_merge(config_dict, user_config)
        except ConfigError as e:
            # User config is optional, warn but continue
            warnings.warn(
                f"Skipping invalid user config at {user_config_path}: {e}",
                UserWarning,
            )

    # 2. Project config
    if config_path is None:
        config_path = find_project_config(project_path)
        if config_path is None:
            raise ConfigError(
                f"No configuration file found. Create {PROJECT_CONFIG_FILENAME} "
                "or pass --config PATH."
            )
    config_path = Path(config_path).expanduser()
    project_config = _load_toml(config_path)
    _resolve_relative_cwd(project_config, config_path.resolve().parent)
    config_dict = _deep_merge(config_dict, project_config)

    # 3. Environment overlay
    if not skip_env:
        config_dict = _apply_env_overlay(config_dict)

    # 4. Explicit overrides
    for section, values in (overrides or {}).items():
        for key, value in values.items():
            if value is not None:
                _set_key(config_dict, section, key, value)

    # 5. Validate and create config object
    try:
        return GitRitualConfig.model_validate(config_dict)
    except ValidationError as e:
        raise ConfigError(f"Config validation failed:\n{e}")
