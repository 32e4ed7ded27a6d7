"""
Builder — run the module's build command inside its workspace.
"""

from __future__ import annotations

import logging
from pathlib import Path

from upgrader.adapters.registry import AdapterRegistry
from upgrader.core.errors import BuildError
from upgrader.core.models.action import Action
from upgrader.core.models.fleet import MIN_BUILD_OUTPUT
from upgrader.core.observability.events import EventBus

logger = logging.getLogger(__name__)


class Builder:
    """Executes build commands through the shell adapter.

    Combined stdout+stderr is capped at ``max_output`` bytes; a build
    that passes it is killed on the spot and fails.
    """

    def __init__(
        self,
        registry: AdapterRegistry,
        events: EventBus | None = None,
        max_output: int = MIN_BUILD_OUTPUT,
        timeout: float | None = None,
    ):
        self._registry = registry
        self._events = events or EventBus()
        self._max_output = max_output
        self._timeout = timeout

    def build(self, workspace: Path, build_command: str) -> None:
        """Run ``build_command`` with the workspace as working directory.

        Raises:
            BuildError: On non-zero exit or when output exceeds the cap.
                The exception detail carries the tail of stderr/stdout.
        """
        module_name = workspace.name
        logger.info("Building %s: %s", module_name, build_command)

        receipt = self._registry.execute_action(
            Action(
                id=f"{module_name}:build",
                adapter="shell",
                for_module=module_name,
                params={
                    "command": build_command,
                    "timeout": self._timeout,
                    "max_output_bytes": self._max_output,
                },
            ),
            cwd=str(workspace),
        )

        if receipt.failed:
            stderr = receipt.metadata.get("stderr", "")
            stdout = receipt.metadata.get("stdout", "")
            detail = "\n".join(part for part in (stderr, stdout) if part) or (receipt.error or "")
            if receipt.metadata.get("output_limit_exceeded"):
                raise BuildError(
                    f"Build output exceeded {self._max_output} bytes",
                    detail=detail,
                )
            raise BuildError(
                f"Build command failed (exit code {receipt.return_code}): {build_command}",
                detail=detail,
            )

        self._events.publish(
            "build:finished",
            key=module_name,
            data={
                "command": build_command,
                "output_bytes": receipt.metadata.get("output_bytes", 0),
                "duration_ms": receipt.duration_ms,
            },
        )
