from __future__ import annotations

import shutil
from typing import TYPE_CHECKING

import pytest
import typer

from shipit.cli.context import CLIContext
from shipit.core.config import Config, FileTarget
from shipit.core.errors import ErrorCode
from shipit.output.console import MockConsole

if TYPE_CHECKING:
    from ..conftest import GitRepo

pytestmark = pytest.mark.skipif(shutil.which("git") is None, reason="git not available")


def _use_repo(monkeypatch: pytest.MonkeyPatch, repo: GitRepo, config: Config | None = None) -> MockConsole:
    import shipit.cli.commands.release_cmd as release_cmd

    console = MockConsole()
    ctx = CLIContext(repo_root=repo.path, config=config or Config(), console=console)
    monkeypatch.setattr(release_cmd, "build_context", lambda: ctx)
    return console


def _feature_since_tag(repo: GitRepo) -> None:
    repo.tag("v1.2.0")
    repo.commit("fix: resolve crash")
    repo.commit("feat(api): add endpoint")


def test_plan_shows_next_version(git_repo: GitRepo, monkeypatch: pytest.MonkeyPatch) -> None:
    import shipit.cli.commands.release_cmd as release_cmd

    _feature_since_tag(git_repo)
    console = _use_repo(monkeypatch, git_repo)

    release_cmd.plan(bump=None)

    assert "last tag: v1.2.0" in console.messages
    assert "commits: 2" in console.messages
    assert console.find("feat(api): add endpoint")
    assert "bump: minor" in console.messages
    assert "next version: 1.2.0 -> 1.3.0" in console.messages
    assert "tag: v1.3.0" in console.messages
    # read-only
    assert git_repo.local_tags() == ["v1.2.0"]


def test_plan_forced_bump(git_repo: GitRepo, monkeypatch: pytest.MonkeyPatch) -> None:
    import shipit.cli.commands.release_cmd as release_cmd

    _feature_since_tag(git_repo)
    console = _use_repo(monkeypatch, git_repo)

    release_cmd.plan(bump="major")

    assert "bump: major (forced)" in console.messages
    assert "tag: v2.0.0" in console.messages


def test_plan_nothing_to_release(git_repo: GitRepo, monkeypatch: pytest.MonkeyPatch) -> None:
    import shipit.cli.commands.release_cmd as release_cmd

    git_repo.tag("v1.2.0")
    git_repo.commit("docs: typo")
    console = _use_repo(monkeypatch, git_repo)

    release_cmd.plan(bump=None)

    assert "info: nothing to release" in console.messages
    assert not console.find("next version")


def test_invalid_bump_is_user_error(git_repo: GitRepo, monkeypatch: pytest.MonkeyPatch) -> None:
    import shipit.cli.commands.release_cmd as release_cmd

    _use_repo(monkeypatch, git_repo)

    with pytest.raises(typer.Exit) as exc:
        release_cmd.plan(bump="huge")

    assert exc.value.exit_code == int(ErrorCode.USER_ERROR)


def test_release_declined(git_repo: GitRepo, monkeypatch: pytest.MonkeyPatch) -> None:
    import shipit.cli.commands.release_cmd as release_cmd

    _feature_since_tag(git_repo)
    console = _use_repo(monkeypatch, git_repo)
    monkeypatch.setattr(typer, "confirm", lambda *_a, **_k: False)

    with pytest.raises(typer.Exit) as exc:
        release_cmd.release(bump=None, yes=False, dry_run=False)

    assert exc.value.exit_code == int(ErrorCode.USER_ERROR)
    assert "release: v1.3.0 (minor)" in console.messages
    assert git_repo.local_tags() == ["v1.2.0"]


def test_release_then_status_then_rollback(git_repo: GitRepo, monkeypatch: pytest.MonkeyPatch) -> None:
    import shipit.cli.commands.release_cmd as release_cmd

    _feature_since_tag(git_repo)
    console = _use_repo(monkeypatch, git_repo)

    with pytest.raises(typer.Exit) as exc:
        release_cmd.release(bump=None, yes=True, dry_run=False)
    assert exc.value.exit_code == int(ErrorCode.OK)
    assert "v1.3.0" in git_repo.remote_tags()
    assert "state: completed" in console.messages

    console.clear()
    release_cmd.status()
    (line,) = [m for m in console.messages if m.startswith("release-")]
    assert "completed" in line
    assert line.endswith("1.3.0")

    console.clear()
    monkeypatch.setattr(typer, "confirm", lambda *_a, **_k: True)
    with pytest.raises(typer.Exit) as exc:
        release_cmd.rollback(session=None, yes=False)
    assert exc.value.exit_code == int(ErrorCode.OK)
    assert console.has_warning()
    assert "v1.3.0" not in git_repo.remote_tags()
    assert "state: rolled_back" in console.messages


def test_status_without_sessions(git_repo: GitRepo, monkeypatch: pytest.MonkeyPatch) -> None:
    import shipit.cli.commands.release_cmd as release_cmd

    console = _use_repo(monkeypatch, git_repo)

    release_cmd.status()

    assert console.messages == ["info: no release sessions"]


def test_rollback_without_sessions(git_repo: GitRepo, monkeypatch: pytest.MonkeyPatch) -> None:
    import shipit.cli.commands.release_cmd as release_cmd

    console = _use_repo(monkeypatch, git_repo)

    with pytest.raises(typer.Exit) as exc:
        release_cmd.rollback(session=None, yes=True)

    assert exc.value.exit_code == int(ErrorCode.USER_ERROR)
    assert console.has_error()


def test_release_dry_run_shows_diff(git_repo: GitRepo, monkeypatch: pytest.MonkeyPatch) -> None:
    import shipit.cli.commands.release_cmd as release_cmd

    git_repo.commit("chore: track version", files={"VERSION": "1.2.0"})
    _feature_since_tag(git_repo)
    head = git_repo.head()
    config = Config(files=(FileTarget(path="VERSION", pattern=r"^(?P<version>\d+\.\d+\.\d+)$"),))
    console = _use_repo(monkeypatch, git_repo, config)

    release_cmd.release(bump=None, yes=False, dry_run=True)

    assert "release: v1.3.0 (minor)" in console.messages
    assert "-1.2.0" in console.messages
    assert "+1.3.0" in console.messages
    assert console.find('$ git commit -m "chore(release): bump version to 1.3.0"')
    assert console.find("$ git tag -a v1.3.0")
    assert "info: dry run: nothing was changed" in console.messages
    assert git_repo.head() == head
    assert git_repo.local_tags() == ["v1.2.0"]
    assert (git_repo.path / "VERSION").read_text(encoding="utf-8") == "1.2.0\n"
    assert not (git_repo.path / ".git" / "shipit" / "sessions").exists()
