"""
Upgrade error taxonomy.

Every pipeline step raises exactly one of these on failure, and the
pipeline raises ``ConfigurationError`` itself for unknown modules. The
pipeline converts them into failed ``UpgradeOutcome`` records, so they
never escape to callers of the service.
"""

from __future__ import annotations

from upgrader.core.models.outcome import ErrorKind


class UpgradeError(Exception):
    """Base class for pipeline step failures."""

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, message: str, *, detail: str = ""):
        super().__init__(message)
        self.detail = detail

    def __str__(self) -> str:
        base = super().__str__()
        return f"{base}\n{self.detail}" if self.detail else base


class ConfigurationError(UpgradeError):
    """Requested module has no configuration; raised before any step runs."""

    kind = ErrorKind.CONFIGURATION


class SourceFetchError(UpgradeError):
    """Clone or update of the module source failed."""

    kind = ErrorKind.SOURCE_FETCH


class DependencyInstallError(UpgradeError):
    """Dependency install exited non-zero."""

    kind = ErrorKind.DEPENDENCY_INSTALL


class BuildError(UpgradeError):
    """Build command failed or produced too much output."""

    kind = ErrorKind.BUILD


class BackupError(UpgradeError):
    """Snapshot of the live deployment could not be written."""

    kind = ErrorKind.BACKUP


class OutputNotFoundError(UpgradeError):
    """No build output directory found for a frontend-type module."""

    kind = ErrorKind.OUTPUT_NOT_FOUND


class DeploymentError(UpgradeError):
    """Filesystem failure while swapping the deploy directory."""

    kind = ErrorKind.DEPLOYMENT
