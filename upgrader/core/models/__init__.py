"""
Domain models — Pydantic types for the upgrader.

All models are re-exported here for convenient access:

    from upgrader.core.models import FleetConfig, ModuleConfig, UpgradeOutcome
"""

from upgrader.core.models.action import Action, Receipt
from upgrader.core.models.fleet import FleetConfig
from upgrader.core.models.module import ModuleConfig, ModuleKind
from upgrader.core.models.outcome import ErrorKind, PipelineState, UpgradeOutcome
from upgrader.core.models.status import UNKNOWN_VERSION, ModuleStatus

__all__ = [
    # action.py
    "Action",
    "ErrorKind",
    # fleet.py
    "FleetConfig",
    # module.py
    "ModuleConfig",
    "ModuleKind",
    # status.py
    "ModuleStatus",
    # outcome.py
    "PipelineState",
    "Receipt",
    "UNKNOWN_VERSION",
    "UpgradeOutcome",
]
