# freeze_dry/config.py
"""
Centralized configuration management.

Handles loading defaults, merging in settings from pyproject.toml,
and applying runtime overrides.
"""
from __future__ import annotations

import copy
import logging
from pathlib import Path
from typing import Any, MutableMapping

try:
    import tomli
except ImportError:
    tomli = None  # type: ignore

from freeze_dry.cache import DEFAULT_DIRECTORY
from freeze_dry.fetcher import DEFAULT_USER_AGENT

log = logging.getLogger(__name__)

DEFAULT_CONFIG: dict[str, Any] = {
    "user_agent": DEFAULT_USER_AGENT,
    "timeout": 10.0,
    # None means the restrictive built-in policy.
    "content_security_policy": None,
    "add_metadata": True,
    "keep_original_attributes": True,
    # inline | files | absolute
    "resolve_policy": "inline",
    # Share one fetch between all resources with the same URL.
    "dedupe_urls": False,
    # --- Live document source ---
    "use_browser": False,
    "browser_timeout_ms": 30_000,
    "cache": {
        "enabled": True,
        "directory": DEFAULT_DIRECTORY,
        "expire_seconds": 24 * 3600,  # 1 day
        "store_errors": False,
    },
}


def _deep_merge_dict(
    base: MutableMapping[str, Any], overrides: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """Recursively merge dicts."""
    for key, value in overrides.items():
        if isinstance(value, MutableMapping) and isinstance(
            base.get(key), MutableMapping
        ):
            base[key] = _deep_merge_dict(base[key], value)
        else:
            base[key] = value
    return base


def load_config(pyproject_path: Path | None = None) -> dict[str, Any]:
    """
    Loads configuration from defaults and merges settings from pyproject.toml.

    1. Starts with DEFAULT_CONFIG.
    2. If `tomli` is installed, it looks for `pyproject.toml`.
    3. If `pyproject.toml` is found, it merges settings from
       `[tool.freeze_dry]` over the defaults.
    """
    config = copy.deepcopy(DEFAULT_CONFIG)

    if tomli is None:
        log.debug("tomli not installed. Skipping pyproject.toml configuration.")
        return config

    if pyproject_path is None:
        pyproject_path = Path.cwd() / "pyproject.toml"

    if not pyproject_path.exists():
        log.debug(
            "No pyproject.toml found at %s. Using default config.", pyproject_path
        )
        return config

    try:
        with pyproject_path.open("rb") as f:
            toml_data = tomli.load(f)

        project_config = toml_data.get("tool", {}).get("freeze_dry", {})
        if project_config:
            log.info("Loading config from %s", pyproject_path)
            config = _deep_merge_dict(config, project_config)  # type: ignore
        else:
            log.debug("No [tool.freeze_dry] section in %s.", pyproject_path)

    except (OSError, tomli.TOMLDecodeError) as e:
        log.warning(
            "Failed to load or parse %s: %s. Using default config.",
            pyproject_path,
            e,
        )

    return config
