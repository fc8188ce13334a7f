"""Settings for bundlelock --- YAML file plus environment overrides.

Settings are resolved in three layers, later layers winning:

1. Built-in defaults (``Settings()``).
2. An optional YAML file (``bundlelock.yaml`` in the working directory
   unless a path is given).
3. ``BUNDLELOCK_*`` environment variables.

Example ``bundlelock.yaml``::

    lockfile_name: prompt-registry.lock.json
    max_cache_size: 500
    user_dir: ~/.bundlelock/user
    workspace_dir: .bundlelock/workspace
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Mapping

import yaml

from bundlelock import _GENERATED_BY
from bundlelock.exceptions import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "bundlelock.yaml"
DEFAULT_LOCKFILE_NAME = "prompt-registry.lock.json"
DEFAULT_MAX_CACHE_SIZE = 1000

_ENV_PREFIX = "BUNDLELOCK_"
_ENV_ALIASES = {"generator": "generated_by"}


@dataclass(frozen=True)
class Settings:
    """Resolved runtime settings.

    Attributes:
        lockfile_name: File name of the lockfile at the repository root.
        max_cache_size: Capacity of the version cache (bundle identities).
        user_dir: Directory holding user-scope installation records.
        workspace_dir: Directory holding workspace-scope installation records.
        generated_by: ``<tool>@<version>`` written into new lockfiles.
    """

    lockfile_name: str = DEFAULT_LOCKFILE_NAME
    max_cache_size: int = DEFAULT_MAX_CACHE_SIZE
    user_dir: Path = Path("~/.bundlelock/user").expanduser()
    workspace_dir: Path = Path(".bundlelock/workspace")
    generated_by: str = _GENERATED_BY


def _env_key(name: str) -> str:
    key = name[len(_ENV_PREFIX):].lower()
    return _ENV_ALIASES.get(key, key)


def _coerce(name: str, value: Any) -> Any:
    if name == "max_cache_size":
        if isinstance(value, bool):
            raise ConfigError(f"max_cache_size must be an integer, got {value!r}")
        try:
            size = int(value)
        except (TypeError, ValueError):
            raise ConfigError(f"max_cache_size must be an integer, got {value!r}") from None
        if size <= 0:
            raise ConfigError(f"max_cache_size must be positive, got {size}")
        return size
    if name in ("user_dir", "workspace_dir"):
        return Path(str(value)).expanduser()
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"{name} must be a non-empty string, got {value!r}")
    return value


def _apply(settings: Settings, values: Mapping[str, Any], origin: str) -> Settings:
    known = {f.name for f in fields(Settings)}
    updates: dict[str, Any] = {}
    for key, value in values.items():
        if key not in known:
            logger.warning("Ignoring unknown setting %r from %s", key, origin)
            continue
        updates[key] = _coerce(key, value)
    return replace(settings, **updates)


def load_settings(
    path: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> Settings:
    """Load settings from YAML and the environment.

    Args:
        path: Explicit YAML file. When given it must exist. When omitted,
            ``bundlelock.yaml`` in the current directory is used if present.
        env: Environment mapping (defaults to ``os.environ``).

    Returns:
        The resolved ``Settings``.

    Raises:
        ConfigError: If the file is missing (explicit path), is not a YAML
            mapping, or any value is invalid.
    """
    settings = Settings()
    env = os.environ if env is None else env

    config_path = path if path is not None else Path(DEFAULT_CONFIG_FILE)
    if config_path.is_file():
        try:
            data = yaml.safe_load(config_path.read_text(encoding="utf-8"))
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in {config_path}: {exc}") from exc
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigError(f"{config_path} must contain a mapping")
        settings = _apply(settings, data, str(config_path))
        logger.debug("Loaded settings from %s", config_path)
    elif path is not None:
        raise ConfigError(f"Config file not found: {path}")

    overrides = {
        _env_key(key): value
        for key, value in env.items()
        if key.startswith(_ENV_PREFIX)
    }
    if overrides:
        settings = _apply(settings, overrides, "environment")

    return settings
