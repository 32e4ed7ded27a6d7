"""
Test helpers — throwaway git repositories and fleet builders.
"""

from __future__ import annotations

import json
import shutil
import subprocess
from pathlib import Path
from typing import Any

import pytest

from upgrader.core.models.fleet import FleetConfig
from upgrader.core.models.module import ModuleConfig

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")

FRONTEND_BUILD = "mkdir -p dist && cp package.json dist/ && echo built > dist/index.html"


def git(repo: Path, *args: str) -> str:
    """Run git in ``repo`` and return stdout."""
    result = subprocess.run(
        ["git", *args],
        cwd=repo,
        capture_output=True,
        text=True,
        check=True,
    )
    return result.stdout.strip()


def commit(repo: Path, files: dict[str, str], message: str = "update") -> str:
    """Write files, commit them, return the full commit sha."""
    for rel, content in files.items():
        path = repo / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
    git(repo, "add", "-A")
    git(repo, "commit", "-q", "-m", message)
    return git(repo, "rev-parse", "HEAD")


def init_repo(
    path: Path,
    files: dict[str, str] | None = None,
    tag: str | None = None,
) -> Path:
    """Create a repository on branch ``main`` with one commit."""
    path.mkdir(parents=True)
    git(path, "init", "-q")
    git(path, "symbolic-ref", "HEAD", "refs/heads/main")
    git(path, "config", "user.email", "test@example.com")
    git(path, "config", "user.name", "Test")
    git(path, "config", "commit.gpgsign", "false")
    git(path, "config", "tag.gpgsign", "false")
    commit(path, files or {"README.md": "hello\n"}, "initial")
    if tag:
        git(path, "tag", tag)
    return path


def manifest(version: str | None = "1.2.0", name: str = "app") -> str:
    data: dict[str, Any] = {"name": name}
    if version is not None:
        data["version"] = version
    return json.dumps(data)


def make_module(
    tmp_path: Path,
    name: str,
    remote: Path | str,
    kind: str = "frontend",
    build_command: str = FRONTEND_BUILD,
    **kwargs: Any,
) -> ModuleConfig:
    return ModuleConfig(
        name=name,
        remote=str(remote),
        kind=kind,
        deploy_path=str(tmp_path / "www" / name),
        build_command=build_command,
        **kwargs,
    )


def make_fleet(tmp_path: Path, *modules: ModuleConfig, **kwargs: Any) -> FleetConfig:
    return FleetConfig(
        modules=modules,
        temp_root=str(tmp_path / "work"),
        backup_root=str(tmp_path / "backups"),
        **kwargs,
    )
