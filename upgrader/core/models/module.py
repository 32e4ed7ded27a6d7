"""
Module model — one independently versioned, independently deployed unit.

Modules are declared in modules.yml and never change at run time.
The ``kind`` governs where the pipeline looks for build output.
"""

from __future__ import annotations

import re
from enum import StrEnum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, ValidationInfo, field_validator

DEFAULT_BRANCH = "main"
DEFAULT_BUILD_COMMAND = "npm run build"

# "owner/repo" shorthand, expanded against the configured remote base
_SHORTHAND_RE = re.compile(r"^[\w.-]+/[\w.-]+$")


class ModuleKind(StrEnum):
    """Deployment kind of a module."""

    FRONTEND = "frontend"
    BACKEND = "backend"
    MICROFRONTEND = "microfrontend"


class ModuleConfig(BaseModel):
    """Static configuration of a module (immutable).

    ``name`` is the key used by every operation: workspace paths,
    backup paths, locks and events are all scoped by it.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    remote: str
    kind: ModuleKind
    deploy_path: str
    build_command: str = DEFAULT_BUILD_COMMAND
    branch: str = DEFAULT_BRANCH

    @field_validator("name")
    @classmethod
    def _name_is_path_safe(cls, value: str) -> str:
        if not value or "/" in value or value in (".", ".."):
            raise ValueError(f"invalid module name: {value!r}")
        return value

    @field_validator("branch", "build_command", mode="before")
    @classmethod
    def _blank_means_default(cls, value: str | None, info: ValidationInfo) -> str:
        if value is None or (isinstance(value, str) and not value.strip()):
            return DEFAULT_BRANCH if info.field_name == "branch" else DEFAULT_BUILD_COMMAND
        return value

    def remote_url(self, remote_base: str = "https://github.com") -> str:
        """Resolve the clone URL for this module.

        ``owner/repo`` shorthand expands to ``<remote_base>/owner/repo.git``.
        Full URLs, scp-style addresses and existing local paths are used
        as-is.
        """
        if _SHORTHAND_RE.match(self.remote) and not Path(self.remote).exists():
            return f"{remote_base.rstrip('/')}/{self.remote}.git"
        return self.remote
