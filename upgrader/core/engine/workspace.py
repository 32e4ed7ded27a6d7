"""
Workspace manager — scratch directory lifecycle for one pipeline run.

A workspace lives at ``<temp_root>/<module name>``. It is created when
the run starts and removed on every exit path. A run starts from
whatever the directory last contained; if the previous removal failed,
the leftover checkout is updated in place rather than re-cloned.
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from upgrader.core.errors import SourceFetchError
from upgrader.core.observability.events import EventBus

logger = logging.getLogger(__name__)


class WorkspaceManager:
    """Creates and guarantees cleanup of per-module scratch directories."""

    def __init__(self, temp_root: str | Path, events: EventBus | None = None):
        self._root = Path(temp_root)
        self._events = events or EventBus()

    @property
    def root(self) -> Path:
        return self._root

    def path_for(self, module_name: str) -> Path:
        """Workspace location for a module (may not exist)."""
        return self._root / module_name

    @contextmanager
    def acquire(self, module_name: str) -> Iterator[Path]:
        """Create the module's workspace, yield it, always remove it.

        Raises:
            SourceFetchError: If the directory cannot be created.
        """
        path = self.path_for(module_name)
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise SourceFetchError(f"Cannot create workspace {path}: {e}") from e

        logger.debug("Workspace ready: %s", path)
        try:
            yield path
        finally:
            self.release(module_name)

    def release(self, module_name: str) -> bool:
        """Remove a module's workspace. Never raises.

        Returns:
            True if the directory is gone afterwards.
        """
        path = self.path_for(module_name)
        if not path.exists():
            return True
        try:
            shutil.rmtree(path)
        except OSError as e:
            logger.warning("Failed to clean up workspace %s: %s", path, e)
            self._events.publish(
                "workspace:cleanup_failed",
                key=module_name,
                data={"path": str(path)},
                error=str(e),
            )
            return False
        logger.debug("Workspace removed: %s", path)
        return True
