"""
Fleet model — the root configuration loaded from modules.yml.

This is the canonical list of upgradeable modules plus the filesystem
conventions (temp root, backup root) the pipeline works under. It is
read-only after load and passed explicitly to every component.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from upgrader.core.models.module import ModuleConfig

DEFAULT_TEMP_ROOT = "/tmp/upgrade"
DEFAULT_BACKUP_ROOT = "/var/www/backups"
DEFAULT_REMOTE_BASE = "https://github.com"

MIN_BUILD_OUTPUT = 10 * 1024 * 1024  # 10 MiB


class FleetConfig(BaseModel):
    """All configured modules and the paths they are upgraded through."""

    model_config = ConfigDict(frozen=True)

    modules: tuple[ModuleConfig, ...] = Field(default_factory=tuple)

    temp_root: str = DEFAULT_TEMP_ROOT
    backup_root: str = DEFAULT_BACKUP_ROOT
    remote_base: str = DEFAULT_REMOTE_BASE

    max_build_output: int = MIN_BUILD_OUTPUT
    git_timeout: float | None = None        # pipeline git steps
    remote_query_timeout: float = 30.0       # ls-remote during status

    @field_validator("max_build_output")
    @classmethod
    def _at_least_minimum(cls, value: int) -> int:
        if value < MIN_BUILD_OUTPUT:
            raise ValueError(f"max_build_output must be >= {MIN_BUILD_OUTPUT} bytes")
        return value

    @model_validator(mode="after")
    def _unique_names(self) -> FleetConfig:
        seen: set[str] = set()
        for module in self.modules:
            if module.name in seen:
                raise ValueError(f"duplicate module name: {module.name!r}")
            seen.add(module.name)
        return self

    def get_module(self, name: str) -> ModuleConfig | None:
        """Look up a module by name."""
        for module in self.modules:
            if module.name == name:
                return module
        return None

    def names(self) -> list[str]:
        """Module names in configuration order."""
        return [m.name for m in self.modules]
