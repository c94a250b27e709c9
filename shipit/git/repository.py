"""Git repository abstraction.

This module provides the Repository class: thin, one-command-per-method
wrappers around the git CLI. All operations return Result types; none of
them retry. Release semantics (what to stage, when a tag counts as pushed)
live in ``shipit.release.vcs``.

Usage:
    repo = Repository(Path("/path/to/repo"))

    match repo.status():
        case Ok(status):
            print(f"Branch: {status.branch}")
            if status.is_clean:
                print("Working tree clean")
        case Err(e):
            print(f"Error: {e.message}")
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from shipit.core.result import Err, Ok, Result
from shipit.platform.process import NON_INTERACTIVE_ENV, ProcessError
from shipit.platform.process import run as run_process

_GIT_TIMEOUT_SECONDS = 30.0
_GIT_NETWORK_TIMEOUT_SECONDS = 3 * 60.0
_NETWORK_COMMANDS = frozenset({"fetch", "pull", "push", "ls-remote"})

# Separates records in `git log` output; bodies may contain newlines.
LOG_RECORD_SEPARATOR = "\x1e"

__all__ = [
    "LOG_RECORD_SEPARATOR",
    "GitError",
    "GitStatus",
    "Repository",
    "StatusEntry",
]


@dataclass(frozen=True, slots=True)
class GitError:
    """Error from a git operation.

    Attributes:
        command: The git command that failed (without the leading "git")
        message: Error message (first line of stderr, or a fallback)
        returncode: Process return code
        stderr: Raw diagnostic text as git printed it
    """

    command: str
    message: str
    returncode: int = 1
    stderr: str = ""

    def __str__(self) -> str:
        return f"git {self.command}: {self.message}"


@dataclass(frozen=True, slots=True)
class StatusEntry:
    """A single entry in git status.

    Attributes:
        xy: Two-character status code (e.g., "M ", " M", "??")
        path: File path
    """

    xy: str
    path: str


@dataclass(frozen=True, slots=True)
class GitStatus:
    """Parsed ``git status --porcelain=v1 -b``.

    Attributes:
        branch: Current branch name ("HEAD (no branch)" when detached)
        upstream: Upstream branch (e.g., "origin/main"), None if not set
        entries: All status entries (staged, unstaged, untracked)
    """

    branch: str
    upstream: str | None = None
    entries: tuple[StatusEntry, ...] = field(default_factory=tuple)

    @property
    def is_clean(self) -> bool:
        return len(self.entries) == 0


class Repository:
    """Git repository abstraction.

    Attributes:
        path: Path to the repository root (working tree)
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    # -- queries ---------------------------------------------------------

    def exists(self) -> bool:
        """Check if the path is inside a git working tree."""
        result = self._run(["rev-parse", "--is-inside-work-tree"])
        return isinstance(result, Ok) and result.value.strip() == "true"

    def git_dir(self) -> Result[Path, GitError]:
        """Absolute path of the .git directory (works for worktrees too)."""
        return self._git(["rev-parse", "--absolute-git-dir"]).map(lambda out: Path(out.strip()))

    def status(self) -> Result[GitStatus, GitError]:
        """Get repository status."""
        return self._git(["status", "--porcelain=v1", "-b"]).map(self._parse_status)

    def current_branch(self) -> str | None:
        """Get current branch name.

        Returns None if detached HEAD or error.
        """
        result = self._run(["rev-parse", "--abbrev-ref", "HEAD"])
        match result:
            case Ok(stdout):
                branch = stdout.strip()
                return None if branch == "HEAD" else branch
            case Err(_):
                return None

    def head_sha(self) -> Result[str, GitError]:
        """Full SHA of HEAD (fails in a repository without commits)."""
        return self.rev_parse("HEAD")

    def rev_parse(self, rev: str) -> Result[str, GitError]:
        return self._git(["rev-parse", "--verify", "--quiet", f"{rev}^{{commit}}"]).map(str.strip)

    def ref_exists(self, ref: str) -> Result[bool, GitError]:
        """Whether a fully qualified ref (e.g. ``refs/tags/v1.0.0``) exists."""
        args = ["rev-parse", "--verify", "--quiet", ref]
        result = self._run(args)
        match result:
            case Ok(_):
                return Ok(True)
            case Err(e) if e.returncode == 1 and not e.stderr.strip():
                return Ok(False)
            case Err(e):
                return Err(_to_git_error(args, e))

    def subject(self, rev: str) -> Result[str, GitError]:
        """First line of the commit message at ``rev``."""
        return self._git(["log", "-1", "--format=%s", rev]).map(str.strip)

    def remote_url(self, remote: str) -> Result[str, GitError]:
        return self._git(["remote", "get-url", remote]).map(str.strip)

    def tags(self, pattern: str = "*") -> Result[list[str], GitError]:
        """List tag names matching a glob pattern, unordered."""
        return self._git(["tag", "--list", pattern]).map(
            lambda out: [ln.strip() for ln in out.splitlines() if ln.strip()]
        )

    def log(self, revision: str, fmt: str, *, no_merges: bool = True) -> Result[str, GitError]:
        """Raw ``git log`` output for a revision range."""
        args = ["log", f"--format={fmt}"]
        if no_merges:
            args.append("--no-merges")
        args.append(revision)
        return self._git(args)

    def ls_remote_tags(self, remote: str, tag: str) -> Result[list[str], GitError]:
        """Ref names the remote advertises for ``tag`` (including peeled ``^{}``)."""
        result = self._git(["ls-remote", "--tags", remote, f"refs/tags/{tag}"])
        return result.map(_ls_remote_refs)

    def ls_remote_head(self, remote: str, branch: str) -> Result[str | None, GitError]:
        """SHA the remote branch points at, or None if the branch is absent."""

        def first_sha(out: str) -> str | None:
            for line in out.splitlines():
                sha, _, ref = line.partition("\t")
                if ref.strip() == f"refs/heads/{branch}":
                    return sha.strip()
            return None

        return self._git(["ls-remote", "--heads", remote, f"refs/heads/{branch}"]).map(first_sha)

    # -- mutations -------------------------------------------------------

    def add(self, paths: Sequence[str]) -> Result[None, GitError]:
        """Stage exactly the given paths."""
        return self._git(["add", "--", *paths]).map(_none)

    def commit(self, message: str) -> Result[None, GitError]:
        return self._git(["commit", "-m", message]).map(_none)

    def tag_annotated(self, name: str, message: str) -> Result[None, GitError]:
        return self._git(["tag", "-a", name, "-m", message]).map(_none)

    def delete_tag(self, name: str) -> Result[None, GitError]:
        return self._git(["tag", "-d", name]).map(_none)

    def reset_soft(self, rev: str) -> Result[None, GitError]:
        return self._git(["reset", "--soft", rev]).map(_none)

    def unstage(self, rev: str, paths: Sequence[str]) -> Result[None, GitError]:
        """Reset index entries for paths to ``rev`` without touching the tree."""
        return self._git(["reset", "-q", rev, "--", *paths]).map(_none)

    def push(
        self,
        remote: str,
        refspecs: Sequence[str],
        *,
        force_with_lease: str | None = None,
    ) -> Result[None, GitError]:
        """Push refspecs; ``force_with_lease`` is ``"<ref>:<expected sha>"``."""
        args = ["push"]
        if force_with_lease is not None:
            args.append(f"--force-with-lease={force_with_lease}")
        args.extend([remote, *refspecs])
        return self._git(args).map(_none)

    # -- plumbing --------------------------------------------------------

    def _git(self, args: list[str]) -> Result[str, GitError]:
        """Run git and convert a process failure into a GitError."""
        result = self._run(args)
        match result:
            case Ok(stdout):
                return Ok(stdout)
            case Err(e):
                return Err(_to_git_error(args, e))

    def _run(self, args: list[str]) -> Result[str, ProcessError]:
        """Run a git command in this repository."""
        command = args[0] if args else ""
        timeout = _GIT_NETWORK_TIMEOUT_SECONDS if command in _NETWORK_COMMANDS else _GIT_TIMEOUT_SECONDS
        return run_process(
            ["git", "-C", str(self.path), *args],
            cwd=self.path,
            extra_env=NON_INTERACTIVE_ENV,
            timeout=timeout,
        )

    def _parse_status(self, output: str) -> GitStatus:
        """Parse git status --porcelain=v1 -b output."""
        lines = [ln for ln in output.splitlines() if ln.strip()]
        if not lines:
            return GitStatus(branch="")

        branch, upstream = self._parse_branch_line(lines[0])
        entries = [e for e in (self._parse_entry(ln) for ln in lines[1:]) if e is not None]
        return GitStatus(branch=branch, upstream=upstream, entries=tuple(entries))

    def _parse_branch_line(self, line: str) -> tuple[str, str | None]:
        """Parse branch line: ## branch...upstream [info]"""
        s = line.strip()
        if s.startswith("##"):
            s = s[2:].lstrip()

        # Remove [ahead N, behind M] suffix
        s = re.sub(r"\s*\[[^\]]*\]$", "", s)
        if s.startswith("No commits yet on "):
            s = s.removeprefix("No commits yet on ")

        if "..." in s:
            left, right = s.split("...", 1)
            return (left.strip(), right.strip())
        return (s, None)

    def _parse_entry(self, line: str) -> StatusEntry | None:
        if len(line) < 4:
            return None
        return StatusEntry(xy=line[:2], path=line[3:])


def _none(_: str) -> None:
    return None


def _ls_remote_refs(output: str) -> list[str]:
    refs: list[str] = []
    for line in output.splitlines():
        _, _, ref = line.partition("\t")
        if ref.strip():
            refs.append(ref.strip())
    return refs


def _to_git_error(args: list[str], error: ProcessError) -> GitError:
    stderr = error.stderr.strip()
    first = next((ln for ln in stderr.splitlines() if ln.strip()), "")
    return GitError(
        command=" ".join(args),
        message=first or error.stdout.strip() or f"git {args[0]} failed",
        returncode=error.returncode,
        stderr=stderr,
    )
