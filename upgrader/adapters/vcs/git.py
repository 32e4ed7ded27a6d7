"""
Git adapter — version control operations.

Provides the git operations the upgrader needs (clone, update, tag and
revision lookup, remote listing) through the adapter protocol. Uses the
git CLI — never raw API calls. Prompts are disabled so a missing
credential fails fast instead of hanging a request.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess

from upgrader.adapters.base import Adapter, ExecutionContext
from upgrader.core.models.action import Receipt

logger = logging.getLogger(__name__)

_OPERATIONS = {
    "clone",
    "update",
    "describe",
    "short_rev",
    "ls_remote_tags",
    "ls_remote_head",
}
_REMOTE_OPS = {"clone", "ls_remote_tags", "ls_remote_head"}


class GitCommandError(RuntimeError):
    """A git invocation exited non-zero."""

    def __init__(self, message: str, return_code: int):
        super().__init__(message)
        self.return_code = return_code


class GitAdapter(Adapter):
    """Git version control operations.

    Action params:
        operation (str): One of 'clone', 'update', 'describe', 'short_rev',
                         'ls_remote_tags', 'ls_remote_head'.
        url (str): Remote URL (for 'clone' and the ls_remote operations).
        branch (str): Branch to clone or update (default: 'main').
        timeout (float | None): Timeout per git invocation (default: none).
    """

    @property
    def name(self) -> str:
        return "git"

    def is_available(self) -> bool:
        return shutil.which("git") is not None

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        operation = context.action.params.get("operation", "")
        if not operation:
            return False, "Missing required param: 'operation'"

        if operation not in _OPERATIONS:
            return False, f"Unknown operation '{operation}'. Valid: {', '.join(sorted(_OPERATIONS))}"

        if operation in _REMOTE_OPS and not context.action.params.get("url"):
            return False, f"Missing required param: 'url' for {operation} operation"

        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        operation = context.action.params["operation"]
        try:
            if operation == "clone":
                output = self._clone(context)
            elif operation == "update":
                output = self._update(context)
            elif operation == "describe":
                output = self._git(["describe", "--tags", "--abbrev=0"], context)
            elif operation == "short_rev":
                output = self._git(["rev-parse", "--short=7", "HEAD"], context)
            elif operation == "ls_remote_tags":
                url = context.action.params["url"]
                output = self._git(["ls-remote", "--tags", "--sort=v:refname", url], context)
            elif operation == "ls_remote_head":
                output = self._git(["ls-remote", context.action.params["url"], "HEAD"], context)
            else:
                return Receipt.failure(
                    adapter=self.name,
                    action_id=context.action.id,
                    error=f"Unknown operation: {operation}",
                )
        except GitCommandError as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=str(e),
                return_code=e.return_code,
                metadata={"operation": operation},
            )
        except subprocess.TimeoutExpired as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"git timed out after {e.timeout}s",
                metadata={"operation": operation},
            )
        except Exception as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Git error: {e}",
                metadata={"operation": operation},
            )

        return Receipt.success(
            adapter=self.name,
            action_id=context.action.id,
            output=output.strip(),
            return_code=0,
            metadata={"operation": operation},
        )

    # ── Operations ──────────────────────────────────────────────

    def _clone(self, ctx: ExecutionContext) -> str:
        """Fresh clone of a single branch into the working directory."""
        branch = ctx.action.params.get("branch", "main")
        url = ctx.action.params["url"]
        return self._git(
            ["clone", "--branch", branch, "--single-branch", url, "."],
            ctx,
        )

    def _update(self, ctx: ExecutionContext) -> str:
        """Fetch, check out the branch and fast-forward it."""
        branch = ctx.action.params.get("branch", "main")
        outputs = [
            self._git(["fetch", "origin"], ctx),
            self._git(["checkout", branch], ctx),
            self._git(["pull", "--ff-only", "origin", branch], ctx),
        ]
        return "\n".join(o.strip() for o in outputs if o.strip())

    # ── Helpers ─────────────────────────────────────────────────

    def _git(self, args: list[str], ctx: ExecutionContext) -> str:
        """Run a git command and return stdout."""
        result = subprocess.run(
            ["git", *args],
            cwd=ctx.working_dir,
            capture_output=True,
            text=True,
            timeout=ctx.action.params.get("timeout"),
            env={**os.environ, "GIT_TERMINAL_PROMPT": "0"},
        )
        if result.returncode != 0:
            raise GitCommandError(
                result.stderr.strip() or f"git {args[0]} failed",
                result.returncode,
            )
        return result.stdout
