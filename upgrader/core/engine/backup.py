"""
Backup manager — snapshot the live deployment before it is replaced.

Backups are plain directory copies under
``<backup_root>/<module name>/<timestamp>``. They are kept, never
pruned and never restored automatically.
"""

from __future__ import annotations

import logging
import shutil
from datetime import UTC, datetime
from pathlib import Path

from upgrader.core.errors import BackupError
from upgrader.core.observability.events import EventBus

logger = logging.getLogger(__name__)


def backup_stamp(now: datetime | None = None) -> str:
    """Filesystem-safe UTC timestamp, e.g. ``2026-10-19T08-30-00.123Z``."""
    now = now or datetime.now(UTC)
    return now.strftime("%Y-%m-%dT%H-%M-%S.") + f"{now.microsecond // 1000:03d}Z"


class BackupManager:
    """Copies deploy directories into a timestamped backup tree."""

    def __init__(self, backup_root: str | Path, events: EventBus | None = None):
        self._root = Path(backup_root)
        self._events = events or EventBus()

    @property
    def root(self) -> Path:
        return self._root

    def backup(self, deploy_path: str | Path, module_name: str) -> Path | None:
        """Copy ``deploy_path`` recursively into a new backup directory.

        Returns:
            The backup directory, or None if nothing is deployed yet.

        Raises:
            BackupError: If the copy fails. The deployment is left untouched.
        """
        source = Path(deploy_path)
        if not source.exists():
            logger.info("Nothing deployed at %s, skipping backup", source)
            self._events.publish("backup:skipped", key=module_name, data={"deploy_path": str(source)})
            return None

        target = self._unique_target(module_name)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copytree(source, target, symlinks=True)
        except (OSError, shutil.Error) as e:
            raise BackupError(f"Backup of {source} to {target} failed: {e}") from e

        logger.info("Backed up %s → %s", source, target)
        self._events.publish(
            "backup:created",
            key=module_name,
            data={"deploy_path": str(source), "backup_path": str(target)},
        )
        return target

    def list_backups(self, module_name: str) -> list[Path]:
        """Existing backups for a module, newest first."""
        module_dir = self._root / module_name
        if not module_dir.is_dir():
            return []
        return sorted((p for p in module_dir.iterdir() if p.is_dir()), reverse=True)

    def _unique_target(self, module_name: str) -> Path:
        base = self._root / module_name / backup_stamp()
        target, n = base, 1
        while target.exists():
            target = base.with_name(f"{base.name}-{n}")
            n += 1
        return target
