"""
Module status — a read-only snapshot of deployed vs. remote version.

Recomputed on every request; never persisted.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel

from upgrader.core.models.module import ModuleKind

UNKNOWN_VERSION = "unknown"


class ModuleStatus(BaseModel):
    """Staleness report for one configured module.

    ``status`` compares the two versions by exact string equality.
    ``1.2.0`` and ``v1.2.0`` are different versions here.
    """

    name: str
    kind: ModuleKind
    current_version: str = UNKNOWN_VERSION
    latest_version: str = UNKNOWN_VERSION
    deploy_path: str
    status: Literal["up-to-date", "outdated"] = "outdated"
    last_updated: str | None = None
    error: str | None = None

    @staticmethod
    def compare(current: str, latest: str) -> Literal["up-to-date", "outdated"]:
        """Exact-match staleness rule."""
        return "up-to-date" if current == latest else "outdated"
