"""
Shared test fixtures and configuration.

Pipeline tests run against real git repositories created under
``tmp_path``; npm is replaced by a ``MockAdapter`` registered as "node".
"""

from __future__ import annotations

from pathlib import Path

import pytest

from tests.helpers import init_repo, manifest
from upgrader.adapters.mock import MockAdapter
from upgrader.adapters.registry import AdapterRegistry
from upgrader.adapters.shell.command import ShellCommandAdapter
from upgrader.adapters.vcs.git import GitAdapter
from upgrader.core.config.loader import BACKUP_ROOT_ENV, TEMP_ROOT_ENV
from upgrader.core.observability.events import EventBus


@pytest.fixture(autouse=True)
def _no_root_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep environment root overrides from leaking into tests."""
    monkeypatch.delenv(TEMP_ROOT_ENV, raising=False)
    monkeypatch.delenv(BACKUP_ROOT_ENV, raising=False)


@pytest.fixture
def events() -> EventBus:
    return EventBus()


@pytest.fixture
def npm() -> MockAdapter:
    """Stand-in for the node adapter."""
    return MockAdapter(adapter_name="node", default_output="added 0 packages")


@pytest.fixture
def registry(npm: MockAdapter) -> AdapterRegistry:
    """Real git and shell adapters, mocked npm."""
    reg = AdapterRegistry()
    reg.register(GitAdapter())
    reg.register(ShellCommandAdapter())
    reg.register(npm)
    return reg


@pytest.fixture
def frontend_repo(tmp_path: Path) -> Path:
    """Origin repository of a buildable frontend module at version 1.2.0."""
    return init_repo(
        tmp_path / "origin" / "web",
        {"package.json": manifest("1.2.0"), "src/main.js": "console.log('hi')\n"},
    )
