"""
Upgrade outcome — the terminal record of one pipeline run.

An outcome is either a success carrying the resolved version, or a
failure carrying the error kind and the step that failed. Callers read
``success`` / ``error_kind`` and never have to catch exceptions.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class ErrorKind(StrEnum):
    """Failure categories; each pipeline step maps to exactly one."""

    CONFIGURATION = "configuration"
    SOURCE_FETCH = "source_fetch"
    DEPENDENCY_INSTALL = "dependency_install"
    BUILD = "build"
    BACKUP = "backup"
    OUTPUT_NOT_FOUND = "output_not_found"
    DEPLOYMENT = "deployment"
    INTERNAL = "internal"


class PipelineState(StrEnum):
    """States of the upgrade pipeline, in execution order."""

    INIT = "init"
    FETCHING = "fetching"
    INSTALLING = "installing"
    BUILDING = "building"
    BACKING_UP = "backing_up"
    DEPLOYING = "deploying"
    RESOLVING_VERSION = "resolving_version"
    DONE = "done"
    FAILED = "failed"


class UpgradeOutcome(BaseModel):
    """Result of upgrading one module. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    module: str
    success: bool
    message: str
    timestamp: str = Field(default_factory=_now_iso)
    version: str | None = None

    error_kind: ErrorKind | None = None
    failed_step: PipelineState | None = None
    duration_ms: int = 0

    @classmethod
    def succeeded(cls, module: str, version: str, **kwargs: Any) -> UpgradeOutcome:
        """Create a success outcome."""
        return cls(
            module=module,
            success=True,
            message=f"Upgrade succeeded, version: {version}",
            version=version,
            **kwargs,
        )

    @classmethod
    def failed(
        cls,
        module: str,
        kind: ErrorKind,
        detail: str,
        step: PipelineState | None = None,
        **kwargs: Any,
    ) -> UpgradeOutcome:
        """Create a failure outcome."""
        prefix = f"Upgrade failed while {step.value.replace('_', ' ')}" if step else "Upgrade failed"
        return cls(
            module=module,
            success=False,
            message=f"{prefix}: {detail}",
            error_kind=kind,
            failed_step=step,
            **kwargs,
        )

    def to_dict(self) -> dict[str, Any]:
        """JSON-serializable form, omitting empty optional fields."""
        data = self.model_dump(mode="json")
        return {k: v for k, v in data.items() if v is not None}
