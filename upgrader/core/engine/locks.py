"""
Per-module mutual exclusion.

Workspace and deploy paths are keyed only by module name, so two runs
for the same module must never overlap. Runs for different modules are
independent.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager


class ModuleLocks:
    """A lazily-populated table of one ``threading.Lock`` per module name."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def lock_for(self, module_name: str) -> threading.Lock:
        """The lock for a module, created on first use."""
        with self._guard:
            lock = self._locks.get(module_name)
            if lock is None:
                lock = self._locks[module_name] = threading.Lock()
            return lock

    def is_held(self, module_name: str) -> bool:
        """Whether a run for this module is currently in progress."""
        return self.lock_for(module_name).locked()

    @contextmanager
    def hold(self, module_name: str) -> Iterator[None]:
        """Block until the module's lock is free, hold it for the block."""
        lock = self.lock_for(module_name)
        lock.acquire()
        try:
            yield
        finally:
            lock.release()
