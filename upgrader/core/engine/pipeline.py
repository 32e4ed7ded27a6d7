"""
Upgrade pipeline — the per-module state machine.

Flow:
    init → fetching → installing → building → backing_up → deploying
         → resolving_version → done

Any step failure jumps straight to ``failed`` and skips the remaining
steps. The workspace is removed on every exit path. Runs for the same
module are serialized by a per-module lock held for the whole run.

``run()`` never raises for step failures: every outcome, good or bad,
comes back as an ``UpgradeOutcome``.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any

from upgrader.adapters.registry import AdapterRegistry
from upgrader.core.engine.backup import BackupManager
from upgrader.core.engine.builder import Builder
from upgrader.core.engine.deployer import DeploymentSwapper
from upgrader.core.engine.fetcher import SourceFetcher
from upgrader.core.engine.installer import DependencyInstaller
from upgrader.core.engine.locks import ModuleLocks
from upgrader.core.engine.versions import VersionResolver
from upgrader.core.engine.workspace import WorkspaceManager
from upgrader.core.errors import ConfigurationError, UpgradeError
from upgrader.core.models.fleet import FleetConfig
from upgrader.core.models.module import ModuleConfig
from upgrader.core.models.outcome import ErrorKind, PipelineState, UpgradeOutcome
from upgrader.core.observability.events import EventBus

logger = logging.getLogger(__name__)


class UpgradePipeline:
    """Sequences fetch → install → build → backup → deploy → version.

    Every collaborator can be injected; anything omitted is built from
    the fleet configuration and the adapter registry.
    """

    def __init__(
        self,
        fleet: FleetConfig,
        *,
        registry: AdapterRegistry | None = None,
        events: EventBus | None = None,
        locks: ModuleLocks | None = None,
        workspaces: WorkspaceManager | None = None,
        fetcher: SourceFetcher | None = None,
        installer: DependencyInstaller | None = None,
        builder: Builder | None = None,
        backups: BackupManager | None = None,
        swapper: DeploymentSwapper | None = None,
        resolver: VersionResolver | None = None,
    ):
        registry = registry or AdapterRegistry.default()
        self.fleet = fleet
        self.events = events or EventBus()
        self.locks = locks or ModuleLocks()
        self.workspaces = workspaces or WorkspaceManager(fleet.temp_root, self.events)
        self.fetcher = fetcher or SourceFetcher(
            registry, self.events, remote_base=fleet.remote_base, timeout=fleet.git_timeout
        )
        self.installer = installer or DependencyInstaller(registry, self.events)
        self.builder = builder or Builder(registry, self.events, max_output=fleet.max_build_output)
        self.backups = backups or BackupManager(fleet.backup_root, self.events)
        self.swapper = swapper or DeploymentSwapper(self.events)
        self.resolver = resolver or VersionResolver(registry, fleet.remote_query_timeout)

    def run(self, module_name: str) -> UpgradeOutcome:
        """Upgrade one module and report the outcome.

        Unknown names are rejected before any lock, workspace or
        filesystem access.
        """
        try:
            config = self._config_for(module_name)
        except ConfigurationError as e:
            logger.warning("Upgrade rejected: %s", e)
            self.events.publish("upgrade:rejected", key=module_name, data={"reason": "not configured"})
            return UpgradeOutcome.failed(module_name, e.kind, str(e))

        if self.locks.is_held(config.name):
            self.events.publish("upgrade:queued", key=config.name)

        with self.locks.hold(config.name):
            return self._run_locked(config)

    # ── Internals ───────────────────────────────────────────────

    def _config_for(self, module_name: str) -> ModuleConfig:
        config = self.fleet.get_module(module_name)
        if config is None:
            raise ConfigurationError(f"Module {module_name} is not configured")
        return config

    def _run_locked(self, config: ModuleConfig) -> UpgradeOutcome:
        name = config.name
        start = time.monotonic()
        state = PipelineState.INIT
        version = ""

        logger.info("Starting upgrade of %s", name)
        self.events.publish("upgrade:started", key=name, data={"branch": config.branch})

        try:
            with self.workspaces.acquire(name) as workspace:
                for state, step in self._steps(config, workspace):
                    self.events.publish("step:started", key=name, data={"step": state.value})
                    result = step()
                    self.events.publish("step:succeeded", key=name, data={"step": state.value})
                version = result
        except UpgradeError as e:
            return self._fail(name, e.kind, str(e), state, start)
        except Exception as e:
            logger.exception("Unexpected error upgrading %s during %s", name, state.value)
            return self._fail(name, ErrorKind.INTERNAL, f"Unexpected error: {e}", state, start)

        duration_ms = int((time.monotonic() - start) * 1000)
        logger.info("Upgraded %s to %s in %dms", name, version, duration_ms)
        self.events.publish(
            "upgrade:completed",
            key=name,
            data={"success": True, "version": version, "state": PipelineState.DONE.value},
            duration_ms=duration_ms,
        )
        return UpgradeOutcome.succeeded(name, version, duration_ms=duration_ms)

    def _steps(
        self, config: ModuleConfig, workspace: Path
    ) -> list[tuple[PipelineState, Callable[[], Any]]]:
        return [
            (PipelineState.FETCHING, lambda: self.fetcher.fetch(config, workspace)),
            (PipelineState.INSTALLING, lambda: self.installer.install(workspace)),
            (PipelineState.BUILDING, lambda: self.builder.build(workspace, config.build_command)),
            (PipelineState.BACKING_UP, lambda: self.backups.backup(config.deploy_path, config.name)),
            (
                PipelineState.DEPLOYING,
                lambda: self.swapper.deploy(workspace, config.deploy_path, config.kind),
            ),
            (
                PipelineState.RESOLVING_VERSION,
                lambda: self.resolver.resolve_built_version(workspace),
            ),
        ]

    def _fail(
        self,
        name: str,
        kind: ErrorKind,
        detail: str,
        state: PipelineState,
        start: float,
    ) -> UpgradeOutcome:
        duration_ms = int((time.monotonic() - start) * 1000)
        logger.error("Upgrade of %s failed while %s: %s", name, state.value, detail)
        self.events.publish(
            "step:failed",
            key=name,
            data={"step": state.value, "kind": kind.value},
            error=detail,
        )
        self.events.publish(
            "upgrade:completed",
            key=name,
            data={"success": False, "state": PipelineState.FAILED.value, "failed_step": state.value},
            duration_ms=duration_ms,
        )
        return UpgradeOutcome.failed(name, kind, detail, step=state, duration_ms=duration_ms)
