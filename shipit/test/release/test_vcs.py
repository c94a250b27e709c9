"""Tests for the Version-Control Adapter against real repositories."""

from __future__ import annotations

import shutil
import stat
import sys
from typing import TYPE_CHECKING

import pytest

from shipit.core.result import Err, Ok
from shipit.git.commits import BumpLevel
from shipit.git.repository import Repository
from shipit.output.console import MockConsole
from shipit.release.vcs import TagRollback, VersionControlAdapter, release_commit_message

if TYPE_CHECKING:
    from ..conftest import GitRepo

pytestmark = pytest.mark.skipif(shutil.which("git") is None, reason="git not available")


def _vcs(repo: GitRepo, console: MockConsole | None = None) -> VersionControlAdapter:
    return VersionControlAdapter(Repository(repo.path), console or MockConsole(), tag_prefix="v")


def test_release_commit_message() -> None:
    assert release_commit_message("chore(release): {version}", "1.3.0") == "chore(release): 1.3.0"


class TestHistory:
    def test_no_tags(self, git_repo: GitRepo) -> None:
        assert _vcs(git_repo).last_release_tag() == Ok("")

    def test_highest_tag_by_version(self, git_repo: GitRepo) -> None:
        for tag in ("v1.9.0", "v1.10.0-rc.1", "v1.10.0", "vnext"):
            git_repo.tag(tag)
        assert _vcs(git_repo).last_release_tag() == Ok("v1.10.0")

    def test_other_prefix_is_ignored(self, git_repo: GitRepo) -> None:
        git_repo.tag("v9.0.0")
        git_repo.tag("tool-1.0.0")
        vcs = VersionControlAdapter(Repository(git_repo.path), MockConsole(), tag_prefix="tool-")
        assert vcs.last_release_tag() == Ok("tool-1.0.0")

    def test_scenario_a(self, git_repo: GitRepo) -> None:
        """fix + feat since v1.2.0 is a minor bump."""
        git_repo.tag("v1.2.0")
        git_repo.commit("fix: resolve crash")
        git_repo.commit("feat(api): add endpoint")

        commits = _vcs(git_repo).commits_since("v1.2.0")
        assert isinstance(commits, Ok)
        assert [c.raw for c in commits.value] == ["feat(api): add endpoint", "fix: resolve crash"]

        decision = _vcs(git_repo).bump_since("v1.2.0")
        assert isinstance(decision, Ok)
        assert decision.value.level is BumpLevel.MINOR

    def test_breaking_footer_in_body(self, git_repo: GitRepo) -> None:
        git_repo.tag("v1.2.0")
        git_repo.commit("fix: parse dates strictly", body="BREAKING CHANGE: ISO-8601 only")

        decision = _vcs(git_repo).bump_since("v1.2.0")
        assert isinstance(decision, Ok)
        assert decision.value.level is BumpLevel.MAJOR

    def test_whole_history_without_tag(self, git_repo: GitRepo) -> None:
        git_repo.commit("feat: first feature")
        commits = _vcs(git_repo).commits_since("")
        assert isinstance(commits, Ok)
        assert [c.raw for c in commits.value] == ["feat: first feature", "chore: initial import"]

    def test_merges_are_skipped(self, git_repo: GitRepo) -> None:
        git_repo.tag("v1.0.0")
        git_repo.git("checkout", "-b", "topic")
        git_repo.commit("fix: on topic", files={"topic.txt": "t"})
        git_repo.git("checkout", "main")
        git_repo.commit("docs: on main", files={"main.txt": "m"})
        git_repo.git("merge", "--no-ff", "--no-edit", "-m", "feat!: merge topic", "topic")

        commits = _vcs(git_repo).commits_since("v1.0.0")
        assert isinstance(commits, Ok)
        assert sorted(c.raw for c in commits.value) == ["docs: on main", "fix: on topic"]

    def test_unknown_tag_is_error(self, git_repo: GitRepo) -> None:
        result = _vcs(git_repo).commits_since("v0.0.9")
        assert isinstance(result, Err)
        assert result.error.kind == "version_control_error"
        assert result.error.command is not None and "log" in result.error.command


class TestCommitAndTag:
    def test_commit_stages_only_release_files(self, git_repo: GitRepo) -> None:
        git_repo.write("VERSION", "1.0.0\n")
        git_repo.commit("chore: add version file", files={"VERSION": "1.0.0"})
        before = git_repo.head()
        git_repo.write("VERSION", "1.1.0\n")
        git_repo.write("scratch.txt", "not part of the release\n")

        result = _vcs(git_repo).commit_release("1.1.0", ["VERSION"])

        assert isinstance(result, Ok)
        assert result.value.previous_head == before
        assert result.value.commit == git_repo.head()
        assert result.value.files == ("VERSION",)
        assert git_repo.git("log", "-1", "--format=%s") == "chore(release): bump version to 1.1.0"
        assert git_repo.status() == "?? scratch.txt"

    @pytest.mark.skipif(sys.platform == "win32", reason="shell hook")
    def test_failed_commit_unstages(self, git_repo: GitRepo) -> None:
        git_repo.commit("chore: add version file", files={"VERSION": "1.0.0"})
        hook = git_repo.path / ".git" / "hooks" / "pre-commit"
        hook.parent.mkdir(parents=True, exist_ok=True)
        hook.write_text("#!/bin/sh\necho 'lint failed' >&2\nexit 1\n", encoding="utf-8")
        hook.chmod(hook.stat().st_mode | stat.S_IXUSR)
        before = git_repo.head()
        git_repo.write("VERSION", "1.1.0\n")

        result = _vcs(git_repo).commit_release("1.1.0", ["VERSION"])

        assert isinstance(result, Err)
        assert result.error.kind == "version_control_error"
        assert result.error.stderr is not None and "lint failed" in result.error.stderr
        assert git_repo.head() == before
        assert git_repo.status() == "M VERSION"

    def test_create_tag_is_annotated(self, git_repo: GitRepo) -> None:
        result = _vcs(git_repo).create_tag("1.3.0")
        assert result == Ok("v1.3.0")
        assert git_repo.git("cat-file", "-t", "v1.3.0") == "tag"
        assert git_repo.git("tag", "-l", "--format=%(contents:subject)", "v1.3.0") == "Release 1.3.0"

    def test_create_existing_tag_fails(self, git_repo: GitRepo) -> None:
        git_repo.tag("v1.3.0")
        result = _vcs(git_repo).create_tag("1.3.0")
        assert isinstance(result, Err)
        assert result.error.command is not None and result.error.command.startswith("git tag")


class TestPush:
    def test_push_branch_then_tag(self, git_repo: GitRepo) -> None:
        git_repo.commit("fix: a")
        vcs = _vcs(git_repo)
        vcs.create_tag("1.0.1")

        assert vcs.push("origin", "main", "v1.0.1") == Ok(None)
        assert git_repo.remote_head() == git_repo.head()
        assert git_repo.remote_tags() == ["v1.0.1"]
        assert vcs.remote_tag_exists("v1.0.1", "origin") == Ok(True)
        assert vcs.remote_branch_head("origin", "main") == Ok(git_repo.head())

    def test_push_failure_is_remote_error(self, git_repo: GitRepo) -> None:
        result = _vcs(git_repo).push("nowhere", "main", "v1.0.1")
        assert isinstance(result, Err)
        assert result.error.kind == "remote_error"
        assert result.error.stderr

    def test_rejected_branch_stops_before_tag(self, git_repo: GitRepo) -> None:
        git_repo.commit("docs: someone else")
        git_repo.push()
        git_repo.git("reset", "--hard", "HEAD~1")
        git_repo.commit("fix: mine")
        vcs = _vcs(git_repo)
        vcs.create_tag("1.0.1")

        result = vcs.push("origin", "main", "v1.0.1")

        assert isinstance(result, Err)
        assert "refs/heads/main" in result.error.message
        assert git_repo.remote_tags() == []


class TestCompensation:
    def test_rollback_local_only_tag_skips_remote_delete(self, git_repo: GitRepo) -> None:
        console = MockConsole()
        vcs = _vcs(git_repo, console)
        vcs.create_tag("1.0.1")

        result = vcs.rollback_tag("v1.0.1", "origin")

        assert result == Ok(TagRollback(local_deleted=True, remote_deleted=False))
        assert git_repo.local_tags() == []
        assert not console.find(":refs/tags/")

    def test_rollback_pushed_tag(self, git_repo: GitRepo) -> None:
        console = MockConsole()
        vcs = _vcs(git_repo, console)
        vcs.create_tag("1.0.1")
        vcs.push("origin", "main", "v1.0.1")

        result = vcs.rollback_tag("v1.0.1", "origin")

        assert result == Ok(TagRollback(local_deleted=True, remote_deleted=True))
        assert git_repo.remote_tags() == []
        assert vcs.remote_tag_exists("v1.0.1", "origin") == Ok(False)

    def test_rollback_absent_tag_is_noop(self, git_repo: GitRepo) -> None:
        assert _vcs(git_repo).rollback_tag("v9.9.9", "origin") == Ok(TagRollback(False, False))

    def test_rollback_commit(self, git_repo: GitRepo) -> None:
        git_repo.commit("chore: add version file", files={"VERSION": "1.0.0"})
        vcs = _vcs(git_repo)
        git_repo.write("VERSION", "1.1.0\n")
        info = vcs.commit_release("1.1.0", ["VERSION"])
        assert isinstance(info, Ok)

        result = vcs.rollback_commit(info.value.previous_head, info.value.commit, ["VERSION"])

        assert result == Ok(True)
        assert git_repo.head() == info.value.previous_head
        # content is the snapshot manager's job; the index is clean again
        assert git_repo.status() == "M VERSION"

    def test_rollback_commit_already_reset(self, git_repo: GitRepo) -> None:
        head = git_repo.head()
        assert _vcs(git_repo).rollback_commit(head, "f" * 40, []) == Ok(False)

    def test_rollback_commit_refuses_when_head_moved(self, git_repo: GitRepo) -> None:
        previous = git_repo.head()
        release = git_repo.commit("chore(release): 1.0.1")
        git_repo.commit("fix: committed on top")

        result = _vcs(git_repo).rollback_commit(previous, release, [])

        assert isinstance(result, Err)
        assert "HEAD moved" in result.error.message
        assert git_repo.head() != release

    def test_reset_remote_branch(self, git_repo: GitRepo) -> None:
        previous = git_repo.head()
        release = git_repo.commit("chore(release): 1.0.1")
        git_repo.push()
        vcs = _vcs(git_repo)

        assert vcs.reset_remote_branch("origin", "main", release, previous) == Ok(True)
        assert git_repo.remote_head() == previous
        assert vcs.reset_remote_branch("origin", "main", release, previous) == Ok(False)

    def test_reset_remote_branch_leaves_advanced_branch(self, git_repo: GitRepo) -> None:
        previous = git_repo.head()
        release = git_repo.commit("chore(release): 1.0.1")
        later = git_repo.commit("fix: after release")
        git_repo.push()

        assert _vcs(git_repo).reset_remote_branch("origin", "main", release, previous) == Ok(False)
        assert git_repo.remote_head() == later
