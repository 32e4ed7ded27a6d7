"""Adapters — tool bindings for git, npm and the shell.

Public re-exports for convenient access.
"""

from upgrader.adapters.base import Adapter, ExecutionContext
from upgrader.adapters.mock import MockAdapter
from upgrader.adapters.registry import AdapterRegistry

__all__ = [
    "Adapter",
    "AdapterRegistry",
    "ExecutionContext",
    "MockAdapter",
]
