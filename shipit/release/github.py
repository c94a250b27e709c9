"""GitHub release for a pushed tag, through the gh CLI.

The GitHub release is created after the push, so its failure is reported
as a warning and never undoes the release. Notes are built from the
commits since the previous tag.
"""

from __future__ import annotations

import shutil
from collections.abc import Iterable
from pathlib import Path
from typing import Protocol

from shipit.core.result import Err, Ok, Result
from shipit.git.commits import CommitRecord
from shipit.platform.process import run as run_process

from .errors import ReleaseError

__all__ = [
    "GhCliReleases",
    "GitHubReleases",
    "ensure_gh_available",
    "release_notes",
    "release_title",
]

GH_TIMEOUT_SECONDS = 60.0

# gh must never stop to ask for input or print an upgrade banner.
_GH_ENV = {"GH_PROMPT_DISABLED": "1", "GH_NO_UPDATE_NOTIFIER": "1"}

_SECTIONS = (
    ("feat", "Features"),
    ("fix", "Bug Fixes"),
    ("perf", "Performance"),
    ("security", "Security"),
    ("refactor", "Refactoring"),
    ("revert", "Reverts"),
)
_HOUSEKEEPING = frozenset({"docs", "style", "test", "chore", "build", "ci"})


def release_title(version: str) -> str:
    return f"Release {version}"


def _bullet(commit: CommitRecord) -> str:
    text = commit.description if commit.is_conventional else commit.raw
    if commit.scope:
        text = f"**{commit.scope}:** {text}"
    return f"- {text} ({commit.hash})"


def release_notes(version: str, commits: Iterable[CommitRecord]) -> str:
    """Markdown body for the GitHub release of ``version``.

    Breaking changes come first. Housekeeping commits (docs, tests, chores,
    CI) are left out unless they are breaking; subjects that do not follow
    the conventional format are listed under "Other Changes".
    """
    breaking: list[str] = []
    grouped: dict[str, list[str]] = {}
    other: list[str] = []

    for commit in commits:
        if commit.breaking:
            breaking.append(_bullet(commit))
        elif not commit.is_conventional:
            other.append(_bullet(commit))
        elif commit.type not in _HOUSEKEEPING:
            grouped.setdefault(commit.type, []).append(_bullet(commit))

    blocks: list[tuple[str, list[str]]] = [("Breaking Changes", breaking)]
    blocks.extend((title, grouped.get(type_, [])) for type_, title in _SECTIONS)
    blocks.append(("Other Changes", other))

    lines = [f"## What's Changed in {version}", ""]
    for title, items in blocks:
        if items:
            lines.extend([f"### {title}", *items, ""])
    if len(lines) == 2:
        lines.extend(["Maintenance release.", ""])
    return "\n".join(lines).rstrip() + "\n"


class GitHubReleases(Protocol):
    """The release page of the repository's GitHub project."""

    def create(self, tag: str, title: str, notes: str) -> Result[str, ReleaseError]:
        """Create the release for an already pushed tag; returns its URL."""
        ...

    def available(self) -> Result[None, ReleaseError]:
        """Whether releases can be made at all (tool installed)."""
        ...

    def exists(self, tag: str) -> Result[bool, ReleaseError]: ...

    def delete(self, tag: str) -> Result[None, ReleaseError]:
        """Delete the release page, leaving the git tag alone."""
        ...


def ensure_gh_available() -> Result[None, ReleaseError]:
    if shutil.which("gh") is None:
        return Err(
            ReleaseError(
                kind="github_release_error",
                message="gh: missing",
                hint="Install GitHub CLI: https://cli.github.com/",
            )
        )
    return Ok(None)


class GhCliReleases:
    def __init__(self, repo_root: Path, *, draft: bool = False) -> None:
        self.repo_root = repo_root
        self.draft = draft

    def available(self) -> Result[None, ReleaseError]:
        return ensure_gh_available()

    def create(self, tag: str, title: str, notes: str) -> Result[str, ReleaseError]:
        args = ["release", "create", tag, "--verify-tag", "--title", title, "--notes", notes]
        if self.draft:
            args.append("--draft")
        result = self._gh(args, message=f"cannot create GitHub release {tag}")
        if isinstance(result, Err):
            return result
        lines = [ln.strip() for ln in result.value.splitlines() if ln.strip()]
        return Ok(lines[-1] if lines else tag)

    def exists(self, tag: str) -> Result[bool, ReleaseError]:
        result = self._gh(["release", "view", tag, "--json", "tagName"], message=f"cannot look up GitHub release {tag}")
        match result:
            case Ok(_):
                return Ok(True)
            case Err(e) if "release not found" in (e.stderr or "").lower():
                return Ok(False)
            case Err(e):
                return Err(e)

    def delete(self, tag: str) -> Result[None, ReleaseError]:
        return self._gh(["release", "delete", tag, "--yes"], message=f"cannot delete GitHub release {tag}").map(
            lambda _: None
        )

    def _gh(self, args: list[str], *, message: str) -> Result[str, ReleaseError]:
        available = ensure_gh_available()
        if isinstance(available, Err):
            return available

        result = run_process(["gh", *args], cwd=self.repo_root, extra_env=_GH_ENV, timeout=GH_TIMEOUT_SECONDS)
        if isinstance(result, Err):
            error = result.error
            stderr = error.stderr.strip()
            hint = "Run: gh auth login" if "gh auth login" in stderr else None
            return Err(
                ReleaseError(
                    kind="github_release_error",
                    message=message,
                    hint=hint,
                    command=f"gh {args[0]} {args[1]} {args[2]}",
                    stderr=stderr or None,
                )
            )
        return Ok(result.value)
