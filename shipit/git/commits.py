"""Conventional-commit parsing and bump computation.

Pure functions over ``git log`` text. Nothing here runs git.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import IntEnum

from .repository import LOG_RECORD_SEPARATOR

__all__ = [
    "COMMIT_TYPES",
    "LOG_FORMAT",
    "BumpDecision",
    "BumpLevel",
    "CommitRecord",
    "compute_bump",
    "parse_commit",
    "parse_log",
]

COMMIT_TYPES = (
    "feat",
    "fix",
    "docs",
    "style",
    "refactor",
    "perf",
    "test",
    "chore",
    "build",
    "ci",
    "revert",
    "security",
)

FIELD_SEPARATOR = "|||"
LOG_FORMAT = f"%H{FIELD_SEPARATOR}%ci{FIELD_SEPARATOR}%s{FIELD_SEPARATOR}%b{LOG_RECORD_SEPARATOR}"

_MAX_DESCRIPTION = 100
_SHORT_HASH = 7

_CONVENTIONAL_RE = re.compile(rf"^({'|'.join(COMMIT_TYPES)})(\([^)]+\))?!?:\s*(.+)$")


class BumpLevel(IntEnum):
    """Version increment severity, ordered so ``max()`` picks the winner."""

    NONE = 0
    PATCH = 1
    MINOR = 2
    MAJOR = 3

    def __str__(self) -> str:
        return self.name.lower()

    @classmethod
    def parse(cls, value: str) -> BumpLevel | None:
        try:
            return cls[value.strip().upper()]
        except KeyError:
            return None


@dataclass(frozen=True, slots=True)
class CommitRecord:
    """One parsed commit.

    Attributes:
        hash: Abbreviated commit hash
        date: Commit date (YYYY-MM-DD)
        type: Conventional type token; "chore" for non-conventional subjects
        scope: Parenthesised scope, if any
        description: Subject text after the type prefix (bounded length)
        body: Commit body, stripped ("" when empty)
        breaking: Marked with ``!:`` or a ``BREAKING CHANGE`` footer
        raw: The full cleaned subject line
    """

    hash: str
    date: str
    type: str
    scope: str | None
    description: str
    body: str
    breaking: bool
    raw: str

    @property
    def is_conventional(self) -> bool:
        return _CONVENTIONAL_RE.match(self.raw) is not None


@dataclass(frozen=True, slots=True)
class BumpDecision:
    level: BumpLevel
    commits: tuple[CommitRecord, ...] = ()


def parse_commit(raw_line: str) -> CommitRecord | None:
    """Parse one ``hash|||date|||subject[|||body]`` record.

    Returns None for records with missing fields and for subjects that look
    like body continuation lines (leading "-" or whitespace). Subjects that
    do not follow the conventional grammar are kept as type "chore".
    """
    parts = raw_line.split(FIELD_SEPARATOR, 3)
    if len(parts) < 3:
        return None

    hash_, date, subject = parts[0].strip(), parts[1].strip(), parts[2]
    body = parts[3].strip() if len(parts) > 3 else ""
    if not hash_ or not date or not subject.strip():
        return None

    if subject[:1].isspace() or subject.startswith("-"):
        return None
    clean = subject.strip().split("\n", 1)[0]

    breaking = "!:" in clean or "BREAKING CHANGE" in clean or "BREAKING CHANGE" in body
    short_hash = hash_[:_SHORT_HASH]
    day = date.split(" ", 1)[0]

    match = _CONVENTIONAL_RE.match(clean)
    if match is None:
        return CommitRecord(
            hash=short_hash,
            date=day,
            type="chore",
            scope=None,
            description=clean[:_MAX_DESCRIPTION],
            body=body,
            breaking=breaking,
            raw=clean,
        )

    type_, scope, description = match.groups()
    return CommitRecord(
        hash=short_hash,
        date=day,
        type=type_,
        scope=scope[1:-1] if scope else None,
        description=description[:_MAX_DESCRIPTION],
        body=body,
        breaking=breaking,
        raw=clean,
    )


def parse_log(output: str) -> list[CommitRecord]:
    """Parse ``git log --format=LOG_FORMAT`` output, newest first."""
    commits: list[CommitRecord] = []
    for record in output.split(LOG_RECORD_SEPARATOR):
        record = record.strip("\n")
        if not record.strip():
            continue
        commit = parse_commit(record)
        if commit is not None:
            commits.append(commit)
    return commits


def _level_of(commit: CommitRecord) -> BumpLevel:
    if commit.breaking:
        return BumpLevel.MAJOR
    if commit.type == "feat":
        return BumpLevel.MINOR
    if commit.type in ("fix", "perf"):
        return BumpLevel.PATCH
    return BumpLevel.NONE


def compute_bump(commits: Iterable[CommitRecord]) -> BumpDecision:
    """Maximum severity over all commits; NONE for an empty history."""
    items: Sequence[CommitRecord] = tuple(commits)
    level = max((_level_of(c) for c in items), default=BumpLevel.NONE)
    return BumpDecision(level=level, commits=tuple(items))
