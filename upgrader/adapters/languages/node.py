"""
Node.js adapter — npm dependency installation.

Runs a clean, reproducible, non-interactive install from the lock file
(``npm ci``) through the adapter protocol.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import time

from upgrader.adapters.base import Adapter, ExecutionContext
from upgrader.core.models.action import Receipt

logger = logging.getLogger(__name__)


class NodeAdapter(Adapter):
    """Node.js package manager adapter.

    Action params:
        operation (str): 'ci' (the only supported operation).
        timeout (float | None): Timeout in seconds (default: none).
    """

    @property
    def name(self) -> str:
        return "node"

    def is_available(self) -> bool:
        return shutil.which("npm") is not None

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        operation = context.action.params.get("operation", "")
        if operation != "ci":
            return False, f"Unknown operation '{operation}'. Valid: ci"
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        timeout = context.action.params.get("timeout")
        cmd = ["npm", "ci", "--no-audit", "--no-fund"]
        start = time.monotonic()

        try:
            result = subprocess.run(
                cmd,
                cwd=context.working_dir,
                stdin=subprocess.DEVNULL,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"npm ci timed out after {timeout}s",
            )
        except FileNotFoundError:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error="npm not found on PATH",
            )

        elapsed_ms = int((time.monotonic() - start) * 1000)
        if result.returncode == 0:
            return Receipt.success(
                adapter=self.name,
                action_id=context.action.id,
                output=result.stdout.strip(),
                return_code=0,
                duration_ms=elapsed_ms,
                metadata={"command": " ".join(cmd)},
            )
        return Receipt.failure(
            adapter=self.name,
            action_id=context.action.id,
            error=result.stderr.strip() or f"npm ci exited with code {result.returncode}",
            return_code=result.returncode,
            duration_ms=elapsed_ms,
            metadata={"command": " ".join(cmd), "stdout": result.stdout.strip()},
        )
