"""
Version resolver — what version was built, deployed, and published.

All three lookups degrade to the literal ``"unknown"`` instead of
raising. Versions are compared elsewhere by exact string equality, so
a tag named ``v1.2.0`` and a manifest saying ``1.2.0`` never match.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any

from upgrader.adapters.registry import AdapterRegistry
from upgrader.core.engine.installer import MANIFEST_FILE
from upgrader.core.models.action import Action, Receipt
from upgrader.core.models.status import UNKNOWN_VERSION

logger = logging.getLogger(__name__)

SHORT_REV_LENGTH = 7

_TAG_REF_RE = re.compile(r"refs/tags/(.+)$")


class ManifestUnreadable(Exception):
    """The manifest exists but could not be read or parsed."""


def read_manifest_version(directory: Path) -> str | None:
    """The ``version`` field of ``<directory>/package.json``.

    Returns:
        The version, ``"unknown"`` if the manifest has no usable version
        field, or None if there is no manifest at all.

    Raises:
        ManifestUnreadable: If the manifest exists but is not valid JSON.
    """
    manifest = directory / MANIFEST_FILE
    if not manifest.is_file():
        return None
    try:
        data = json.loads(manifest.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise ManifestUnreadable(f"{manifest}: {e}") from e

    version = data.get("version") if isinstance(data, dict) else None
    if isinstance(version, str) and version.strip():
        return version.strip()
    return UNKNOWN_VERSION


class VersionResolver:
    """Resolves module versions from manifests and git metadata."""

    def __init__(self, registry: AdapterRegistry, remote_timeout: float | None = 30.0):
        self._registry = registry
        self._remote_timeout = remote_timeout

    def resolve_built_version(self, workspace: Path) -> str:
        """Version of a built checkout.

        Manifest version if a readable manifest exists; otherwise the
        nearest tag; otherwise the 7-character short revision;
        otherwise ``"unknown"``.
        """
        try:
            version = read_manifest_version(workspace)
            if version is not None:
                return version
        except ManifestUnreadable as e:
            logger.debug("Falling back to git metadata: %s", e)

        try:
            for operation in ("describe", "short_rev"):
                receipt = self._git(operation, cwd=workspace)
                if receipt.ok and receipt.output:
                    return receipt.output.splitlines()[0].strip()
        except Exception as e:
            logger.debug("git version lookup failed in %s: %s", workspace, e)
        return UNKNOWN_VERSION

    def resolve_deployed_version(self, deploy_path: str | Path) -> str:
        """Manifest version of whatever is currently deployed."""
        try:
            version = read_manifest_version(Path(deploy_path))
        except (ManifestUnreadable, OSError) as e:
            logger.debug("Deployed manifest unreadable: %s", e)
            return UNKNOWN_VERSION
        return version or UNKNOWN_VERSION

    def resolve_latest_remote_version(self, remote_url: str) -> str:
        """Highest remote tag by version ordering, else remote HEAD short hash."""
        try:
            tags = self._git("ls_remote_tags", url=remote_url)
            if tags.failed:
                return UNKNOWN_VERSION

            lines = [line for line in tags.output.splitlines() if line.strip()]
            if lines:
                match = _TAG_REF_RE.search(lines[-1].strip())
                if match:
                    return match.group(1).removesuffix("^{}")

            head = self._git("ls_remote_head", url=remote_url)
            if head.ok and head.output:
                sha = head.output.split()[0]
                return sha[:SHORT_REV_LENGTH] or UNKNOWN_VERSION
        except Exception as e:
            logger.debug("Remote version lookup failed for %s: %s", remote_url, e)
        return UNKNOWN_VERSION

    # ── Helpers ─────────────────────────────────────────────────

    def _git(self, operation: str, cwd: Path | None = None, url: str | None = None) -> Receipt:
        params: dict[str, Any] = {"operation": operation}
        if url is not None:
            params["url"] = url
            params["timeout"] = self._remote_timeout
        return self._registry.execute_action(
            Action(id=f"version:{operation}", adapter="git", params=params),
            cwd=str(cwd) if cwd else None,
        )
