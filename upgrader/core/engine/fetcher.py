"""
Source fetcher — bring a workspace to the tip of the module's branch.

Clone if the workspace has no checkout yet, otherwise fetch, check out
and fast-forward. Local modifications are not reconciled: a dirty
leftover workspace makes the update fail, and that failure propagates.
"""

from __future__ import annotations

import logging
from pathlib import Path

from upgrader.adapters.registry import AdapterRegistry
from upgrader.core.errors import SourceFetchError
from upgrader.core.models.action import Action
from upgrader.core.models.fleet import DEFAULT_REMOTE_BASE
from upgrader.core.models.module import ModuleConfig
from upgrader.core.observability.events import EventBus

logger = logging.getLogger(__name__)


class SourceFetcher:
    """Clone-or-update through the git adapter."""

    def __init__(
        self,
        registry: AdapterRegistry,
        events: EventBus | None = None,
        remote_base: str = DEFAULT_REMOTE_BASE,
        timeout: float | None = None,
    ):
        self._registry = registry
        self._events = events or EventBus()
        self._remote_base = remote_base
        self._timeout = timeout

    def fetch(self, config: ModuleConfig, workspace: Path) -> None:
        """Check out ``config.branch`` at its remote tip inside ``workspace``.

        Raises:
            SourceFetchError: On any git failure (unreachable remote,
                authentication, path conflict, non-fast-forward).
        """
        url = config.remote_url(self._remote_base)
        operation = "update" if (workspace / ".git").exists() else "clone"

        logger.info("git %s %s (branch: %s) → %s", operation, url, config.branch, workspace)
        receipt = self._registry.execute_action(
            Action(
                id=f"{config.name}:fetch",
                adapter="git",
                for_module=config.name,
                params={
                    "operation": operation,
                    "url": url,
                    "branch": config.branch,
                    "timeout": self._timeout,
                },
            ),
            cwd=str(workspace),
        )

        if receipt.failed:
            raise SourceFetchError(
                f"git {operation} of {url} (branch {config.branch}) failed",
                detail=receipt.error or "",
            )

        self._events.publish(
            "source:fetched",
            key=config.name,
            data={"operation": operation, "url": url, "branch": config.branch},
        )
