"""
Batch use case — upgrade several modules one after another.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from upgrader.core.engine.pipeline import UpgradePipeline
from upgrader.core.models.fleet import FleetConfig
from upgrader.core.models.outcome import ErrorKind, UpgradeOutcome

logger = logging.getLogger(__name__)


@dataclass
class BatchReport:
    """Ordered outcomes of a batch run."""

    outcomes: list[UpgradeOutcome] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.success)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if not o.success)

    @property
    def status(self) -> str:
        if self.failed == 0:
            return "ok"
        if self.succeeded > 0:
            return "partial"
        return "failed"

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "total": self.total,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "results": [o.to_dict() for o in self.outcomes],
        }


def batch_upgrade(
    pipeline: UpgradePipeline,
    fleet: FleetConfig,
    names: Iterable[str] | None = None,
) -> list[UpgradeOutcome]:
    """Upgrade configured modules sequentially, in configuration order.

    Args:
        pipeline: The pipeline each module runs through.
        fleet: Source of the configured module list and its order.
        names: Restrict the batch to these names. None means every
            configured module. Names that match nothing are ignored.

    Returns:
        One outcome per selected module. A failing module never stops
        the ones after it.
    """
    wanted = None if names is None else set(names)
    selected = [m.name for m in fleet.modules if wanted is None or m.name in wanted]

    if wanted:
        ignored = sorted(wanted - set(selected))
        if ignored:
            logger.warning("Ignoring unconfigured modules in batch: %s", ", ".join(ignored))

    logger.info("Batch upgrade of %d module(s): %s", len(selected), ", ".join(selected))
    outcomes: list[UpgradeOutcome] = []
    for name in selected:
        try:
            outcome = pipeline.run(name)
        except Exception as e:
            logger.exception("Pipeline for %s raised", name)
            outcome = UpgradeOutcome.failed(name, ErrorKind.INTERNAL, f"Unexpected error: {e}")
        outcomes.append(outcome)

    report = BatchReport(outcomes)
    logger.info("Batch finished: %d/%d succeeded", report.succeeded, report.total)
    return outcomes
