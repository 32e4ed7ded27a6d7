"""
Tests for pipeline components — workspace, fetch, install, build,
versions, backup and deploy.
"""

from __future__ import annotations

import re
import shutil
import time
from pathlib import Path

import pytest

from tests.helpers import commit, git, init_repo, make_module, manifest, requires_git
from upgrader.adapters.mock import MockAdapter
from upgrader.core.engine.backup import BackupManager, backup_stamp
from upgrader.core.engine.builder import Builder
from upgrader.core.engine.deployer import DeploymentSwapper
from upgrader.core.engine.fetcher import SourceFetcher
from upgrader.core.engine.installer import DependencyInstaller
from upgrader.core.engine.locks import ModuleLocks
from upgrader.core.engine.versions import VersionResolver, read_manifest_version
from upgrader.core.engine.workspace import WorkspaceManager
from upgrader.core.errors import (
    BackupError,
    BuildError,
    DependencyInstallError,
    DeploymentError,
    OutputNotFoundError,
    SourceFetchError,
)
from upgrader.core.models.module import ModuleKind
from upgrader.core.observability.events import EventBus


def _tree(root: Path) -> dict[str, str]:
    """Relative path → content for every file under root."""
    return {
        str(p.relative_to(root)): p.read_text()
        for p in sorted(root.rglob("*"))
        if p.is_file()
    }


# ── Workspace ────────────────────────────────────────────────────────


class TestWorkspaceManager:
    def test_acquire_creates_and_removes(self, tmp_path: Path):
        mgr = WorkspaceManager(tmp_path / "work")
        with mgr.acquire("web") as ws:
            assert ws == tmp_path / "work" / "web"
            assert ws.is_dir()
            (ws / "file").write_text("x")
        assert not ws.exists()

    def test_removed_when_block_raises(self, tmp_path: Path):
        mgr = WorkspaceManager(tmp_path / "work")
        with pytest.raises(RuntimeError):
            with mgr.acquire("web"):
                raise RuntimeError("step failed")
        assert not mgr.path_for("web").exists()

    def test_uncreatable_root(self, tmp_path: Path):
        blocker = tmp_path / "work"
        blocker.write_text("not a directory")
        with pytest.raises(SourceFetchError, match="Cannot create workspace"):
            with WorkspaceManager(blocker).acquire("web"):
                pass

    def test_cleanup_failure_is_reported_not_raised(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch, events: EventBus
    ):
        def refuse(path, *args, **kwargs):
            raise PermissionError("busy")

        mgr = WorkspaceManager(tmp_path / "work", events)
        mgr.path_for("web").mkdir(parents=True)
        monkeypatch.setattr(shutil, "rmtree", refuse)

        assert mgr.release("web") is False
        event = events.recent("web")[-1]
        assert event["type"] == "workspace:cleanup_failed"
        assert "busy" in event["error"]

    def test_release_missing_is_fine(self, tmp_path: Path):
        assert WorkspaceManager(tmp_path).release("never-created") is True


class TestModuleLocks:
    def test_same_name_same_lock(self):
        locks = ModuleLocks()
        assert locks.lock_for("web") is locks.lock_for("web")
        assert locks.lock_for("web") is not locks.lock_for("api")

    def test_hold(self):
        locks = ModuleLocks()
        with locks.hold("web"):
            assert locks.is_held("web")
            assert not locks.is_held("api")
        assert not locks.is_held("web")


# ── Fetch ────────────────────────────────────────────────────────────


@requires_git
class TestSourceFetcher:
    def test_clone_into_fresh_workspace(self, tmp_path: Path, registry, events, frontend_repo):
        ws = tmp_path / "work" / "web"
        ws.mkdir(parents=True)
        SourceFetcher(registry, events).fetch(make_module(tmp_path, "web", frontend_repo), ws)
        assert (ws / "package.json").exists()
        assert events.recent("web")[-1]["data"]["operation"] == "clone"

    def test_leftover_checkout_is_updated(self, tmp_path: Path, registry, events, frontend_repo):
        ws = tmp_path / "work" / "web"
        ws.mkdir(parents=True)
        fetcher = SourceFetcher(registry, events)
        config = make_module(tmp_path, "web", frontend_repo)
        fetcher.fetch(config, ws)

        sha = commit(frontend_repo, {"src/main.js": "console.log('v2')\n"})
        fetcher.fetch(config, ws)
        assert git(ws, "rev-parse", "HEAD") == sha
        assert events.recent("web")[-1]["data"]["operation"] == "update"

    def test_configured_branch(self, tmp_path: Path, registry, events, frontend_repo):
        git(frontend_repo, "checkout", "-q", "-b", "release")
        commit(frontend_repo, {"RELEASE": "yes"})
        git(frontend_repo, "checkout", "-q", "main")

        ws = tmp_path / "work" / "web"
        ws.mkdir(parents=True)
        config = make_module(tmp_path, "web", frontend_repo, branch="release")
        SourceFetcher(registry, events).fetch(config, ws)
        assert (ws / "RELEASE").exists()

    def test_unreachable_remote(self, tmp_path: Path, registry, events):
        ws = tmp_path / "work" / "web"
        ws.mkdir(parents=True)
        config = make_module(tmp_path, "web", tmp_path / "does-not-exist")
        with pytest.raises(SourceFetchError, match="git clone"):
            SourceFetcher(registry, events).fetch(config, ws)


# ── Install ──────────────────────────────────────────────────────────


class TestDependencyInstaller:
    def test_skipped_without_manifest(self, tmp_path: Path, registry, npm: MockAdapter, events):
        assert DependencyInstaller(registry, events).install(tmp_path) is False
        assert npm.call_count == 0
        assert events.types() == ["dependencies:skipped"]

    def test_runs_ci_with_manifest(self, tmp_path: Path, registry, npm: MockAdapter, events):
        (tmp_path / "package.json").write_text(manifest())
        assert DependencyInstaller(registry, events).install(tmp_path) is True
        assert npm.operations() == ["ci"]
        assert npm.call_log[0].cwd == str(tmp_path)

    def test_failure_raises(self, tmp_path: Path, registry, npm: MockAdapter, events):
        (tmp_path / "package.json").write_text(manifest())
        npm.fail_operation("ci", "npm ERR! missing lockfile")
        with pytest.raises(DependencyInstallError) as exc:
            DependencyInstaller(registry, events).install(tmp_path)
        assert "missing lockfile" in str(exc.value)


# ── Build ────────────────────────────────────────────────────────────


class TestBuilder:
    def test_success(self, tmp_path: Path, registry, events):
        Builder(registry, events).build(tmp_path, "mkdir -p dist && echo ok > dist/index.html")
        assert (tmp_path / "dist" / "index.html").exists()
        assert events.types() == ["build:finished"]

    def test_nonzero_exit_carries_diagnostics(self, tmp_path: Path, registry, events):
        with pytest.raises(BuildError) as exc:
            Builder(registry, events).build(tmp_path, "echo compiling; echo 'syntax error' >&2; exit 2")
        assert "exit code 2" in str(exc.value)
        assert "syntax error" in exc.value.detail
        assert "compiling" in exc.value.detail

    def test_output_cap(self, tmp_path: Path, registry, events):
        builder = Builder(registry, events, max_output=1000)
        with pytest.raises(BuildError, match="exceeded 1000 bytes"):
            builder.build(tmp_path, "head -c 5000 /dev/zero | tr '\\0' y")

    def test_output_cap_stops_build_that_keeps_running(self, tmp_path: Path, registry, events):
        builder = Builder(registry, events, max_output=1000)
        start = time.monotonic()
        with pytest.raises(BuildError, match="exceeded 1000 bytes"):
            builder.build(tmp_path, "head -c 5000 /dev/zero; sleep 30")
        assert time.monotonic() - start < 10


# ── Versions ─────────────────────────────────────────────────────────


class TestReadManifestVersion:
    def test_version(self, tmp_path: Path):
        (tmp_path / "package.json").write_text(manifest("2.0.1"))
        assert read_manifest_version(tmp_path) == "2.0.1"

    def test_no_manifest(self, tmp_path: Path):
        assert read_manifest_version(tmp_path) is None

    def test_manifest_without_version(self, tmp_path: Path):
        (tmp_path / "package.json").write_text(manifest(None))
        assert read_manifest_version(tmp_path) == "unknown"


@requires_git
class TestVersionResolver:
    def test_manifest_wins(self, tmp_path: Path, registry):
        repo = init_repo(tmp_path / "repo", {"package.json": manifest("3.1.4")}, tag="v9.9.9")
        assert VersionResolver(registry).resolve_built_version(repo) == "3.1.4"

    def test_tag_when_no_manifest(self, tmp_path: Path, registry):
        repo = init_repo(tmp_path / "repo", tag="v0.5.0")
        assert VersionResolver(registry).resolve_built_version(repo) == "v0.5.0"

    def test_short_revision_when_untagged(self, tmp_path: Path, registry):
        repo = init_repo(tmp_path / "repo")
        version = VersionResolver(registry).resolve_built_version(repo)
        assert len(version) == 7
        assert git(repo, "rev-parse", "HEAD").startswith(version)

    def test_unparseable_manifest_falls_back_to_git(self, tmp_path: Path, registry):
        repo = init_repo(tmp_path / "repo", {"package.json": "{not json"}, tag="v1.0.0")
        assert VersionResolver(registry).resolve_built_version(repo) == "v1.0.0"

    def test_not_a_repository(self, tmp_path: Path, registry):
        assert VersionResolver(registry).resolve_built_version(tmp_path) == "unknown"

    def test_deployed_version(self, tmp_path: Path, registry):
        resolver = VersionResolver(registry)
        assert resolver.resolve_deployed_version(tmp_path / "missing") == "unknown"
        (tmp_path / "package.json").write_text(manifest("1.0.0"))
        assert resolver.resolve_deployed_version(tmp_path) == "1.0.0"
        (tmp_path / "package.json").write_text("garbage")
        assert resolver.resolve_deployed_version(tmp_path) == "unknown"

    def test_latest_remote_highest_tag(self, tmp_path: Path, registry):
        repo = init_repo(tmp_path / "repo")
        for tag in ("v1.2.0", "v1.10.0", "v1.9.3"):
            git(repo, "tag", tag)
        assert VersionResolver(registry).resolve_latest_remote_version(str(repo)) == "v1.10.0"

    def test_latest_remote_annotated_tag(self, tmp_path: Path, registry):
        repo = init_repo(tmp_path / "repo")
        git(repo, "tag", "-a", "v2.0.0", "-m", "release")
        assert VersionResolver(registry).resolve_latest_remote_version(str(repo)) == "v2.0.0"

    def test_latest_remote_head_when_untagged(self, tmp_path: Path, registry):
        repo = init_repo(tmp_path / "repo")
        latest = VersionResolver(registry).resolve_latest_remote_version(str(repo))
        assert latest == git(repo, "rev-parse", "HEAD")[:7]

    def test_latest_remote_unreachable(self, tmp_path: Path, registry):
        resolver = VersionResolver(registry, remote_timeout=10)
        assert resolver.resolve_latest_remote_version(str(tmp_path / "gone")) == "unknown"


# ── Backup ───────────────────────────────────────────────────────────


class TestBackupManager:
    def test_stamp_format(self):
        assert re.fullmatch(r"\d{4}-\d{2}-\d{2}T\d{2}-\d{2}-\d{2}\.\d{3}Z", backup_stamp())

    def test_backup_is_complete_copy(self, tmp_path: Path, events):
        deploy = tmp_path / "www" / "web"
        (deploy / "assets" / "img").mkdir(parents=True)
        (deploy / "index.html").write_text("<html>v1</html>")
        (deploy / "assets" / "app.js").write_text("js")
        (deploy / "assets" / "img" / "logo.svg").write_text("svg")

        target = BackupManager(tmp_path / "backups", events).backup(deploy, "web")

        assert target.parent == tmp_path / "backups" / "web"
        assert re.fullmatch(r"\d{4}-\d{2}-\d{2}T\d{2}-\d{2}-\d{2}\.\d{3}Z(-\d+)?", target.name)
        assert _tree(target) == _tree(deploy)
        assert events.types() == ["backup:created"]

    def test_nothing_deployed(self, tmp_path: Path, events):
        mgr = BackupManager(tmp_path / "backups", events)
        assert mgr.backup(tmp_path / "www" / "web", "web") is None
        assert not (tmp_path / "backups").exists()
        assert events.types() == ["backup:skipped"]

    def test_backups_never_collide(self, tmp_path: Path):
        deploy = tmp_path / "www" / "web"
        deploy.mkdir(parents=True)
        mgr = BackupManager(tmp_path / "backups")
        first = mgr.backup(deploy, "web")
        second = mgr.backup(deploy, "web")
        assert first != second
        assert set(mgr.list_backups("web")) == {first, second}

    def test_failure_raises(self, tmp_path: Path):
        deploy = tmp_path / "www" / "web"
        deploy.mkdir(parents=True)
        blocker = tmp_path / "backups"
        blocker.write_text("not a directory")
        with pytest.raises(BackupError):
            BackupManager(blocker).backup(deploy, "web")


# ── Deploy ───────────────────────────────────────────────────────────


class TestDeploymentSwapper:
    def _workspace(self, tmp_path: Path, *dirs: str) -> Path:
        ws = tmp_path / "work" / "web"
        ws.mkdir(parents=True)
        (ws / "package.json").write_text(manifest())
        for d in dirs:
            (ws / d).mkdir()
            (ws / d / "index.html").write_text(d)
        return ws

    def test_frontend_probe_order(self, tmp_path: Path):
        swapper = DeploymentSwapper()
        ws = self._workspace(tmp_path, "public", "build")
        assert swapper.find_output(ws, ModuleKind.FRONTEND) == ws / "build"
        (ws / "dist").mkdir()
        assert swapper.find_output(ws, ModuleKind.MICROFRONTEND) == ws / "dist"

    def test_frontend_without_output(self, tmp_path: Path):
        ws = self._workspace(tmp_path)
        with pytest.raises(OutputNotFoundError):
            DeploymentSwapper().find_output(ws, ModuleKind.FRONTEND)

    def test_backend_falls_back_to_workspace(self, tmp_path: Path):
        ws = self._workspace(tmp_path, "build")
        assert DeploymentSwapper().find_output(ws, ModuleKind.BACKEND) == ws
        (ws / "dist").mkdir()
        assert DeploymentSwapper().find_output(ws, ModuleKind.BACKEND) == ws / "dist"

    def test_swap_leaves_no_stale_files(self, tmp_path: Path, events):
        ws = self._workspace(tmp_path, "dist")
        (ws / "dist" / "app.js").write_text("new")
        deploy = tmp_path / "www" / "web"
        deploy.mkdir(parents=True)
        (deploy / "stale.js").write_text("old")
        (deploy / "index.html").write_text("old")

        DeploymentSwapper(events).deploy(ws, deploy, ModuleKind.FRONTEND)

        assert _tree(deploy) == {"index.html": "dist", "app.js": "new"}
        assert events.types() == ["deploy:swapped"]

    def test_creates_missing_parents(self, tmp_path: Path):
        ws = self._workspace(tmp_path, "dist")
        deploy = tmp_path / "www" / "nested" / "web"
        DeploymentSwapper().deploy(ws, deploy, ModuleKind.FRONTEND)
        assert (deploy / "index.html").read_text() == "dist"

    def test_replaces_plain_file(self, tmp_path: Path):
        ws = self._workspace(tmp_path, "dist")
        deploy = tmp_path / "www" / "web"
        deploy.parent.mkdir(parents=True)
        deploy.write_text("oops")
        DeploymentSwapper().deploy(ws, deploy, ModuleKind.FRONTEND)
        assert deploy.is_dir()

    def test_filesystem_failure(self, tmp_path: Path):
        ws = self._workspace(tmp_path, "dist")
        blocker = tmp_path / "blocker"
        blocker.write_text("file")
        with pytest.raises(DeploymentError):
            DeploymentSwapper().deploy(ws, blocker / "web", ModuleKind.FRONTEND)
