"""
Deployment swapper — replace the live deploy directory with new output.

The build output is located by convention:

    frontend / microfrontend   first of dist, build, out, public
    backend                    dist, else the whole workspace

The swap removes the deploy directory, recreates it empty and copies
the output in. A crash between removal and the end of the copy can
leave the directory empty or partial; the backup taken beforehand is
the only recovery path.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from upgrader.core.errors import DeploymentError, OutputNotFoundError
from upgrader.core.models.module import ModuleKind
from upgrader.core.observability.events import EventBus

logger = logging.getLogger(__name__)

FRONTEND_OUTPUT_DIRS = ("dist", "build", "out", "public")
BACKEND_OUTPUT_DIRS = ("dist",)


class DeploymentSwapper:
    """Discovers build output and swaps it into the deploy path."""

    def __init__(self, events: EventBus | None = None):
        self._events = events or EventBus()

    def find_output(self, workspace: Path, kind: ModuleKind) -> Path:
        """Locate the build output directory for a module kind.

        Raises:
            OutputNotFoundError: No candidate exists for a frontend-type module.
        """
        if kind == ModuleKind.BACKEND:
            for name in BACKEND_OUTPUT_DIRS:
                if (workspace / name).is_dir():
                    return workspace / name
            return workspace

        for name in FRONTEND_OUTPUT_DIRS:
            if (workspace / name).is_dir():
                return workspace / name

        raise OutputNotFoundError(
            f"No build output directory found in {workspace} "
            f"(looked for: {', '.join(FRONTEND_OUTPUT_DIRS)})"
        )

    def deploy(self, workspace: Path, deploy_path: str | Path, kind: ModuleKind) -> Path:
        """Replace the contents of ``deploy_path`` with the build output.

        Returns:
            The output directory that was deployed.

        Raises:
            OutputNotFoundError: See ``find_output``.
            DeploymentError: On any filesystem failure during the swap.
        """
        module_name = workspace.name
        output = self.find_output(workspace, kind)
        target = Path(deploy_path)

        logger.info("Deploying %s → %s", output, target)
        try:
            if target.is_symlink() or target.is_file():
                target.unlink()
            elif target.exists():
                shutil.rmtree(target)
            target.mkdir(parents=True)
            shutil.copytree(output, target, symlinks=True, dirs_exist_ok=True)
        except (OSError, shutil.Error) as e:
            raise DeploymentError(f"Swap of {target} failed: {e}") from e

        self._events.publish(
            "deploy:swapped",
            key=module_name,
            data={"output": str(output), "deploy_path": str(target)},
        )
        return output
