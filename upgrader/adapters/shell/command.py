"""
Shell command adapter — execute arbitrary shell commands.

This is the adapter behind the build step: it runs the module's
configured build command and captures its output. Output is spooled
to temporary files rather than memory so that a verbose build cannot
exhaust the process; only the tail is read back for diagnostics.
"""

from __future__ import annotations

import logging
import os
import shutil
import signal
import subprocess
import tempfile
import time
from pathlib import Path
from typing import IO

from upgrader.adapters.base import Adapter, ExecutionContext
from upgrader.core.models.action import Receipt

logger = logging.getLogger(__name__)

DEFAULT_MAX_OUTPUT = 10 * 1024 * 1024  # 10 MiB
TAIL_BYTES = 8 * 1024
POLL_INTERVAL = 0.1


def _size(stream: IO[bytes]) -> int:
    stream.seek(0, os.SEEK_END)
    return stream.tell()


def _tail(stream: IO[bytes], size: int, limit: int = TAIL_BYTES) -> str:
    """Last ``limit`` bytes of a spooled stream, decoded leniently."""
    stream.seek(max(0, size - limit))
    return stream.read().decode("utf-8", errors="replace").strip()


def _kill(proc: subprocess.Popen) -> int:
    """Kill the command's whole process group and reap the shell."""
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except ProcessLookupError:
        pass
    return proc.wait()


def _supervise(
    proc: subprocess.Popen,
    command: str,
    out: IO[bytes],
    err: IO[bytes],
    limit: int,
    timeout: float | None,
    start: float,
) -> tuple[int, bool]:
    """Wait for ``proc`` while watching its spooled output.

    Returns ``(returncode, output_limit_exceeded)``. The command is
    killed as soon as its combined output passes ``limit``, and
    ``TimeoutExpired`` is raised once ``timeout`` seconds have passed.
    """
    while True:
        try:
            return proc.wait(timeout=POLL_INTERVAL), False
        except subprocess.TimeoutExpired:
            pass

        # fstat, not seek: the child shares the file offset
        written = os.fstat(out.fileno()).st_size + os.fstat(err.fileno()).st_size
        if written > limit:
            logger.warning("Killing %r: output passed %d bytes", command, limit)
            return _kill(proc), True

        if timeout is not None and time.monotonic() - start > timeout:
            _kill(proc)
            raise subprocess.TimeoutExpired(command, timeout)


class ShellCommandAdapter(Adapter):
    """Execute shell commands and capture output.

    Action params:
        command (str): The command to execute.
        timeout (float | None): Timeout in seconds (default: none).
        max_output_bytes (int): Combined stdout+stderr limit (default: 10 MiB).
        cwd (str): Override working directory (default: context.working_dir).
    """

    @property
    def name(self) -> str:
        return "shell"

    def is_available(self) -> bool:
        return shutil.which("sh") is not None

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        command = context.action.params.get("command", "")
        if not command:
            return False, "Missing required param: 'command'"

        cwd = context.working_dir
        if cwd and not Path(cwd).is_dir():
            return False, f"Working directory does not exist: {cwd}"

        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        command = context.action.params["command"]
        timeout = context.action.params.get("timeout")
        limit = int(context.action.params.get("max_output_bytes", DEFAULT_MAX_OUTPUT))
        cwd = context.working_dir

        logger.debug("Executing: %s (cwd=%s)", command, cwd)
        start = time.monotonic()

        try:
            with tempfile.TemporaryFile() as out, tempfile.TemporaryFile() as err:
                proc = subprocess.Popen(
                    command,
                    shell=True,
                    cwd=cwd,
                    stdin=subprocess.DEVNULL,
                    stdout=out,
                    stderr=err,
                    start_new_session=True,
                )
                returncode, exceeded = _supervise(proc, command, out, err, limit, timeout, start)
                elapsed_ms = int((time.monotonic() - start) * 1000)
                out_size, err_size = _size(out), _size(err)
                stdout = _tail(out, out_size)
                stderr = _tail(err, err_size)

            metadata = {
                "command": command,
                "stdout": stdout,
                "stderr": stderr,
                "output_bytes": out_size + err_size,
            }

            if exceeded or out_size + err_size > limit:
                return Receipt.failure(
                    adapter=self.name,
                    action_id=context.action.id,
                    error=f"Command output exceeded {limit} bytes",
                    return_code=returncode,
                    duration_ms=elapsed_ms,
                    metadata={**metadata, "output_limit_exceeded": True},
                )

            if returncode == 0:
                return Receipt.success(
                    adapter=self.name,
                    action_id=context.action.id,
                    output=stdout,
                    return_code=0,
                    duration_ms=elapsed_ms,
                    metadata=metadata,
                )
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=stderr or stdout or f"Command exited with code {returncode}",
                return_code=returncode,
                duration_ms=elapsed_ms,
                metadata=metadata,
            )

        except subprocess.TimeoutExpired:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Command timed out after {timeout}s",
                metadata={"command": command, "timeout": timeout},
            )
        except Exception as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Command execution error: {e}",
                metadata={"command": command},
            )
