"""
Config check use case — validate modules.yml and report issues.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from upgrader.core.config.loader import (
    FLEET_CONFIG_FILE,
    ConfigError,
    find_config_file,
    load_fleet,
)
from upgrader.core.models.fleet import FleetConfig


@dataclass
class ConfigCheckResult:
    """Result of configuration validation."""

    valid: bool = False
    fleet: FleetConfig | None = None
    config_path: Path | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "config_path": str(self.config_path) if self.config_path else None,
            "errors": self.errors,
            "warnings": self.warnings,
            "module_count": len(self.fleet.modules) if self.fleet else 0,
        }


def check_config(config_path: Path | None = None) -> ConfigCheckResult:
    """Validate fleet configuration and report issues.

    Args:
        config_path: Optional explicit path to modules.yml.

    Returns:
        ConfigCheckResult with validation status and any issues.
    """
    result = ConfigCheckResult()

    if config_path is None:
        config_path = find_config_file()
    if config_path is None:
        result.errors.append(f"No {FLEET_CONFIG_FILE} found.")
        return result
    result.config_path = config_path

    try:
        fleet = load_fleet(config_path)
    except ConfigError as e:
        result.errors.append(str(e))
        return result
    result.fleet = fleet

    # Semantic checks
    if not fleet.modules:
        result.warnings.append("No modules defined. There is nothing to upgrade.")

    for mod in fleet.modules:
        if not Path(mod.deploy_path).is_absolute():
            result.warnings.append(
                f"Module '{mod.name}' deploy path is relative and depends on the "
                f"working directory: {mod.deploy_path}"
            )

    deploy_paths = [m.deploy_path for m in fleet.modules]
    shared = {p for p in deploy_paths if deploy_paths.count(p) > 1}
    if shared:
        result.errors.append(f"Modules share a deploy path: {', '.join(sorted(shared))}")

    result.valid = len(result.errors) == 0
    return result
