from __future__ import annotations

import subprocess
from dataclasses import dataclass
from pathlib import Path

import pytest


def _git(cwd: Path, *args: str) -> str:
    result = subprocess.run(
        ["git", *args],
        cwd=cwd,
        capture_output=True,
        text=True,
        check=False,
    )
    if result.returncode != 0:
        raise RuntimeError(
            f"git {' '.join(args)} failed (code {result.returncode}): {result.stderr.strip()}"
        )
    return result.stdout.strip()


@dataclass
class GitRepo:
    """A work tree cloned from a bare ``remote`` (pushed as origin/main)."""

    path: Path
    remote: Path

    def git(self, *args: str) -> str:
        return _git(self.path, *args)

    def write(self, name: str, content: str) -> Path:
        target = self.path / name
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
        return target

    def commit(self, subject: str, *, body: str = "", files: dict[str, str] | None = None) -> str:
        for name, content in (files or {"CHANGES.txt": subject}).items():
            existing = self.path / name
            previous = existing.read_text(encoding="utf-8") if existing.exists() else ""
            self.write(name, previous + content + "\n")
            self.git("add", "--", name)
        message = ["-m", subject] + (["-m", body] if body else [])
        self.git("commit", *message)
        return self.head()

    def head(self) -> str:
        return self.git("rev-parse", "HEAD")

    def tag(self, name: str, *, push: bool = False) -> None:
        self.git("tag", "-a", name, "-m", name)
        if push:
            self.git("push", "origin", f"refs/tags/{name}")

    def push(self) -> None:
        self.git("push", "origin", "HEAD:refs/heads/main")

    def local_tags(self) -> list[str]:
        return [t for t in self.git("tag", "--list").splitlines() if t]

    def remote_tags(self) -> list[str]:
        out = _git(self.remote, "tag", "--list")
        return [t for t in out.splitlines() if t]

    def remote_head(self, branch: str = "main") -> str:
        return _git(self.remote, "rev-parse", f"refs/heads/{branch}")

    def status(self) -> str:
        return self.git("status", "--porcelain")


@pytest.fixture
def git_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Isolate git from the developer's configuration (signing, hooks, identity)."""
    config = tmp_path / "gitconfig"
    config.write_text(
        "\n".join(
            [
                "[user]",
                "\tname = Release Bot",
                "\temail = release@example.com",
                "[commit]",
                "\tgpgsign = false",
                "[tag]",
                "\tgpgSign = false",
                "[init]",
                "\tdefaultBranch = main",
                "",
            ]
        ),
        encoding="utf-8",
    )
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", str(config))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.delenv("GIT_DIR", raising=False)
    monkeypatch.delenv("GIT_WORK_TREE", raising=False)
    monkeypatch.delenv("SHIPIT_CONFIG", raising=False)
    monkeypatch.delenv("SHIPIT_REPO", raising=False)


@pytest.fixture
def git_repo(tmp_path: Path, git_env: None) -> GitRepo:
    remote = tmp_path / "remote.git"
    work = tmp_path / "work"
    _git(tmp_path, "init", "--bare", "-b", "main", str(remote))

    work.mkdir()
    _git(work, "init", "-b", "main")
    _git(work, "remote", "add", "origin", str(remote))

    repo = GitRepo(path=work, remote=remote)
    repo.commit("chore: initial import", files={"README.md": "# demo"})
    repo.git("push", "-u", "origin", "main")
    return repo
