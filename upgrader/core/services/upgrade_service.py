"""
Upgrade service — the operations exposed to the CLI and the HTTP API.

Wires one adapter registry, one event bus and one lock table into the
pipeline and the status reporter, so every caller in a process shares
the same per-module serialization and the same event history.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from upgrader.adapters.registry import AdapterRegistry
from upgrader.core.engine.pipeline import UpgradePipeline
from upgrader.core.engine.versions import VersionResolver
from upgrader.core.models.fleet import FleetConfig
from upgrader.core.models.outcome import UpgradeOutcome
from upgrader.core.models.status import ModuleStatus
from upgrader.core.observability.events import EventBus
from upgrader.core.use_cases import batch
from upgrader.core.use_cases.status import StatusReporter

logger = logging.getLogger(__name__)


class UpgradeService:
    """Facade over status reporting, single upgrades and batches."""

    def __init__(
        self,
        fleet: FleetConfig,
        pipeline: UpgradePipeline,
        reporter: StatusReporter,
        events: EventBus,
        registry: AdapterRegistry,
    ):
        self.fleet = fleet
        self.pipeline = pipeline
        self.reporter = reporter
        self.events = events
        self.registry = registry

    @classmethod
    def from_config(
        cls,
        fleet: FleetConfig,
        registry: AdapterRegistry | None = None,
        events: EventBus | None = None,
    ) -> UpgradeService:
        registry = registry or AdapterRegistry.default()
        events = events or EventBus()
        pipeline = UpgradePipeline(fleet, registry=registry, events=events)
        reporter = StatusReporter(fleet, VersionResolver(registry, fleet.remote_query_timeout))
        logger.debug("Upgrade service ready for %d modules", len(fleet.modules))
        return cls(fleet, pipeline, reporter, events, registry)

    def get_modules_status(self) -> list[ModuleStatus]:
        return self.reporter.status_all()

    def upgrade_module(self, name: str) -> UpgradeOutcome:
        return self.pipeline.run(name)

    def batch_upgrade(self, names: Iterable[str] | None = None) -> list[UpgradeOutcome]:
        return batch.batch_upgrade(self.pipeline, self.fleet, names)

    def recent_events(self, module: str | None = None, limit: int = 100) -> list[dict[str, Any]]:
        """Buffered pipeline events, oldest first."""
        return self.events.recent(key=module, limit=limit)
