"""
Dependency installer — ``npm ci`` when the workspace has a manifest.
"""

from __future__ import annotations

import logging
from pathlib import Path

from upgrader.adapters.registry import AdapterRegistry
from upgrader.core.errors import DependencyInstallError
from upgrader.core.models.action import Action
from upgrader.core.observability.events import EventBus

logger = logging.getLogger(__name__)

MANIFEST_FILE = "package.json"


class DependencyInstaller:
    """Installs declared dependencies through the node adapter."""

    def __init__(
        self,
        registry: AdapterRegistry,
        events: EventBus | None = None,
        timeout: float | None = None,
    ):
        self._registry = registry
        self._events = events or EventBus()
        self._timeout = timeout

    def install(self, workspace: Path) -> bool:
        """Install dependencies if a manifest is present.

        Returns:
            False when there was nothing to install, True after an install.

        Raises:
            DependencyInstallError: If the install exits non-zero.
        """
        module_name = workspace.name
        if not (workspace / MANIFEST_FILE).is_file():
            logger.info("No %s in %s, skipping install", MANIFEST_FILE, workspace)
            self._events.publish("dependencies:skipped", key=module_name)
            return False

        receipt = self._registry.execute_action(
            Action(
                id=f"{module_name}:install",
                adapter="node",
                for_module=module_name,
                params={"operation": "ci", "timeout": self._timeout},
            ),
            cwd=str(workspace),
        )
        if receipt.failed:
            raise DependencyInstallError(
                f"Dependency install failed (exit code {receipt.return_code})",
                detail=receipt.error or "",
            )

        self._events.publish(
            "dependencies:installed",
            key=module_name,
            data={"duration_ms": receipt.duration_ms},
        )
        return True
