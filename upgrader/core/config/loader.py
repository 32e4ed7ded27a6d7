"""
Configuration loader — reads modules.yml into a FleetConfig.

This is the primary entry point for loading fleet configuration.
It reads YAML (JSON is accepted too, being a YAML subset), validates
against Pydantic schemas, and returns typed domain objects.

Two shapes are accepted:

    # a bare list of modules
    - name: admin-app
      remote: acme/admin-app
      kind: microfrontend
      deploy_path: /var/www/deployments/micro-frontends/admin-app

    # or a mapping with settings alongside the module list
    temp_root: /tmp/upgrade
    backup_root: /var/www/backups
    modules:
      - ...

Module entries may also use the camelCase keys of a ``modules.json``
(``repo``, ``type``, ``deployPath``, ``buildCommand``).
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml

from upgrader.core.models.fleet import FleetConfig

logger = logging.getLogger(__name__)

# Default config filename
FLEET_CONFIG_FILE = "modules.yml"

TEMP_ROOT_ENV = "UPGRADER_TEMP_ROOT"
BACKUP_ROOT_ENV = "UPGRADER_BACKUP_ROOT"

_KEY_ALIASES = {
    "repo": "remote",
    "type": "kind",
    "deployPath": "deploy_path",
    "buildCommand": "build_command",
}


class ConfigError(Exception):
    """Raised when fleet configuration is invalid or missing."""


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Search for modules.yml starting from the given directory, walking up.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to modules.yml, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / FLEET_CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def _normalize_module(entry: Any) -> Any:
    if not isinstance(entry, dict):
        return entry
    return {_KEY_ALIASES.get(k, k): v for k, v in entry.items()}


def parse_fleet(data: Any, source: str = "<data>") -> FleetConfig:
    """Validate already-parsed configuration data into a FleetConfig.

    Raises:
        ConfigError: If the data has the wrong shape or fails validation.
    """
    if data is None:
        data = []
    if isinstance(data, list):
        data = {"modules": data}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML list or mapping in {source}, got {type(data).__name__}")

    data = dict(data)
    data["modules"] = [_normalize_module(m) for m in (data.get("modules") or [])]

    for env_name, field in ((TEMP_ROOT_ENV, "temp_root"), (BACKUP_ROOT_ENV, "backup_root")):
        override = os.environ.get(env_name)
        if override:
            data[field] = override

    try:
        return FleetConfig.model_validate(data)
    except Exception as e:
        raise ConfigError(f"Invalid fleet configuration in {source}: {e}") from e


def load_fleet(path: Path | None = None) -> FleetConfig:
    """Load and validate fleet configuration.

    Args:
        path: Explicit path to modules.yml. If None, searches upward.

    Returns:
        Validated FleetConfig model.

    Raises:
        ConfigError: If the file is missing or invalid.
    """
    if path is None:
        path = find_config_file()

    if path is None:
        raise ConfigError(
            f"No {FLEET_CONFIG_FILE} found. "
            "Create one in the current directory, or specify --config."
        )

    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading fleet config from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    fleet = parse_fleet(data, source=str(path))
    logger.info("Loaded %d modules from %s", len(fleet.modules), path)
    return fleet
