"""
Status use case — deployed vs. latest version for every module.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from pathlib import Path

from upgrader.core.engine.versions import VersionResolver
from upgrader.core.models.fleet import FleetConfig
from upgrader.core.models.module import ModuleConfig
from upgrader.core.models.status import UNKNOWN_VERSION, ModuleStatus

logger = logging.getLogger(__name__)


def _last_updated(deploy_path: str) -> str | None:
    """Modification time of the deploy directory, or None if absent."""
    try:
        mtime = Path(deploy_path).stat().st_mtime
    except OSError:
        return None
    return datetime.fromtimestamp(mtime, UTC).isoformat()


class StatusReporter:
    """Builds a read-only staleness report for the fleet.

    Nothing here writes to disk or takes module locks; a status request
    may observe a deploy directory mid-swap.
    """

    def __init__(self, fleet: FleetConfig, resolver: VersionResolver):
        self._fleet = fleet
        self._resolver = resolver

    def status_all(self) -> list[ModuleStatus]:
        """One entry per configured module, in configuration order."""
        return [self.status_for(m) for m in self._fleet.modules]

    def status_for(self, module: ModuleConfig) -> ModuleStatus:
        """Status of a single module. Never raises."""
        try:
            current = self._resolver.resolve_deployed_version(module.deploy_path)
            latest = self._resolver.resolve_latest_remote_version(
                module.remote_url(self._fleet.remote_base)
            )
            return ModuleStatus(
                name=module.name,
                kind=module.kind,
                current_version=current,
                latest_version=latest,
                deploy_path=module.deploy_path,
                status=ModuleStatus.compare(current, latest),
                last_updated=_last_updated(module.deploy_path),
            )
        except Exception as e:
            logger.warning("Status of %s could not be determined: %s", module.name, e)
            return ModuleStatus(
                name=module.name,
                kind=module.kind,
                current_version=UNKNOWN_VERSION,
                latest_version=UNKNOWN_VERSION,
                deploy_path=module.deploy_path,
                status="outdated",
                error=str(e),
            )
