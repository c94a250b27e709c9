"""Tests for release readiness checks and version planning."""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from shipit.core.config import ReleaseConfig
from shipit.core.result import Err, Ok
from shipit.git.commits import BumpLevel
from shipit.git.repository import Repository
from shipit.output.console import MockConsole
from shipit.release.model import SessionState, new_session
from shipit.release.preflight import plan_release, run_preflight
from shipit.release.semver import SemVer
from shipit.release.store import SessionStore
from shipit.release.vcs import VersionControlAdapter

if TYPE_CHECKING:
    from ..conftest import GitRepo

pytestmark = pytest.mark.skipif(shutil.which("git") is None, reason="git not available")


def _vcs(repo: GitRepo) -> VersionControlAdapter:
    return VersionControlAdapter(Repository(repo.path), MockConsole())


def _store(tmp_path: Path) -> SessionStore:
    return SessionStore(tmp_path / "sessions")


class TestPlanRelease:
    def test_scenario_a(self, git_repo: GitRepo) -> None:
        git_repo.tag("v1.2.0")
        git_repo.commit("fix: resolve crash")
        git_repo.commit("feat(api): add endpoint")

        plan = plan_release(_vcs(git_repo), ReleaseConfig())

        assert isinstance(plan, Ok)
        assert plan.value.previous_tag == "v1.2.0"
        assert plan.value.previous_version == SemVer(1, 2, 0)
        assert plan.value.level is BumpLevel.MINOR
        assert str(plan.value.target) == "1.3.0"
        assert plan.value.tag == "v1.3.0"
        assert len(plan.value.commits) == 2
        assert not plan.value.forced

    def test_no_tag_starts_from_initial_version(self, git_repo: GitRepo) -> None:
        git_repo.commit("feat: first feature")

        plan = plan_release(_vcs(git_repo), ReleaseConfig())

        assert isinstance(plan, Ok)
        assert plan.value.previous_tag == ""
        assert str(plan.value.target) == "0.1.0"

    def test_forced_level(self, git_repo: GitRepo) -> None:
        git_repo.tag("v1.2.0")
        git_repo.commit("docs: typo")

        plan = plan_release(_vcs(git_repo), ReleaseConfig(), BumpLevel.MAJOR)

        assert isinstance(plan, Ok)
        assert plan.value.decision.level is BumpLevel.NONE
        assert plan.value.level is BumpLevel.MAJOR
        assert plan.value.forced
        assert str(plan.value.target) == "2.0.0"

    def test_invalid_initial_version(self, git_repo: GitRepo) -> None:
        plan = plan_release(_vcs(git_repo), ReleaseConfig(initial_version="one"))
        assert isinstance(plan, Err)
        assert plan.error.kind == "invalid_input"
        assert "one" in plan.error.message


class TestRunPreflight:
    def test_ok(self, git_repo: GitRepo, tmp_path: Path) -> None:
        git_repo.tag("v1.2.0")
        git_repo.commit("fix: resolve crash")

        result = run_preflight(_vcs(git_repo), _store(tmp_path), ReleaseConfig())

        assert isinstance(result, Ok)
        plan, branch = result.value
        assert branch == "main"
        assert plan.tag == "v1.2.1"

    def test_configured_branch_wins(self, git_repo: GitRepo, tmp_path: Path) -> None:
        git_repo.commit("fix: resolve crash")
        result = run_preflight(_vcs(git_repo), _store(tmp_path), ReleaseConfig(branch="release"))
        assert isinstance(result, Ok)
        assert result.value[1] == "release"

    def test_dirty_tree(self, git_repo: GitRepo, tmp_path: Path) -> None:
        git_repo.commit("fix: resolve crash")
        git_repo.write("README.md", "changed\n")

        result = run_preflight(_vcs(git_repo), _store(tmp_path), ReleaseConfig())

        assert isinstance(result, Err)
        assert result.error.kind == "preflight_failure"
        assert "README.md" in result.error.message
        assert result.error.hint

    def test_untracked_file_is_dirty(self, git_repo: GitRepo, tmp_path: Path) -> None:
        git_repo.commit("fix: resolve crash")
        git_repo.write("notes.txt", "scratch\n")

        result = run_preflight(_vcs(git_repo), _store(tmp_path), ReleaseConfig())

        assert isinstance(result, Err)
        assert "uncommitted" in result.error.message

    def test_detached_head(self, git_repo: GitRepo, tmp_path: Path) -> None:
        git_repo.commit("fix: resolve crash")
        git_repo.git("checkout", "--detach", "HEAD")

        result = run_preflight(_vcs(git_repo), _store(tmp_path), ReleaseConfig())

        assert isinstance(result, Err)
        assert "detached" in result.error.message

    def test_missing_remote(self, git_repo: GitRepo, tmp_path: Path) -> None:
        git_repo.commit("fix: resolve crash")

        result = run_preflight(_vcs(git_repo), _store(tmp_path), ReleaseConfig(remote="upstream"))

        assert isinstance(result, Err)
        assert "upstream" in result.error.message

    def test_not_a_repository(self, tmp_path: Path) -> None:
        plain = tmp_path / "plain"
        plain.mkdir()
        vcs = VersionControlAdapter(Repository(plain), MockConsole())
        result = run_preflight(vcs, _store(tmp_path), ReleaseConfig())
        assert isinstance(result, Err)
        assert "not a git repository" in result.error.message

    def test_unreconciled_session_blocks(self, git_repo: GitRepo, tmp_path: Path) -> None:
        git_repo.commit("fix: resolve crash")
        store = _store(tmp_path)
        stuck = new_session(
            repo_root=str(git_repo.path),
            tag_prefix="v",
            remote="origin",
            branch="main",
            previous_tag="",
            previous_version="0.0.0",
            target_version="0.0.1",
            bump=BumpLevel.PATCH,
        )
        stuck.state = SessionState.ROLLBACK_FAILED
        store.save(stuck)

        blocked = run_preflight(_vcs(git_repo), store, ReleaseConfig())
        assert isinstance(blocked, Err)
        assert stuck.session_id in blocked.error.message
        assert blocked.error.hint is not None and "shipit rollback" in blocked.error.hint

        # a session never blocks itself
        allowed = run_preflight(_vcs(git_repo), store, ReleaseConfig(), session_id=stuck.session_id)
        assert isinstance(allowed, Ok)

    def test_nothing_to_release(self, git_repo: GitRepo, tmp_path: Path) -> None:
        git_repo.tag("v1.2.0")
        git_repo.commit("docs: typo")
        git_repo.commit("chore: tidy")

        result = run_preflight(_vcs(git_repo), _store(tmp_path), ReleaseConfig())

        assert isinstance(result, Err)
        assert "v1.2.0" in result.error.message
        assert result.error.hint is not None and "--bump" in result.error.hint

    def test_forced_bump_overrides_nothing_to_release(self, git_repo: GitRepo, tmp_path: Path) -> None:
        git_repo.tag("v1.2.0")
        git_repo.commit("docs: typo")

        result = run_preflight(_vcs(git_repo), _store(tmp_path), ReleaseConfig(), forced=BumpLevel.PATCH)

        assert isinstance(result, Ok)
        assert result.value[0].tag == "v1.2.1"

    def test_tag_already_exists(self, git_repo: GitRepo, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """A tag created between planning and tagging is caught before mutating."""
        git_repo.tag("v1.2.0")
        git_repo.commit("fix: resolve crash")
        git_repo.tag("v1.2.1")
        vcs = _vcs(git_repo)
        monkeypatch.setattr(vcs, "last_release_tag", lambda: Ok("v1.2.0"))

        result = run_preflight(vcs, _store(tmp_path), ReleaseConfig())

        assert isinstance(result, Err)
        assert "v1.2.1 already exists" in result.error.message
