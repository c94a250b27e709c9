"""Git operations module.

- Repository: single-command wrappers around the git CLI
- commits: conventional-commit parsing and bump computation

Usage:
    from shipit.git import Repository, compute_bump, parse_log

    repo = Repository(Path("/path/to/repo"))
    status = repo.status()
    if status.is_ok():
        print(f"Branch: {status.unwrap().branch}")
"""

from shipit.git.commits import (
    LOG_FORMAT,
    BumpDecision,
    BumpLevel,
    CommitRecord,
    compute_bump,
    parse_commit,
    parse_log,
)
from shipit.git.repository import (
    GitError,
    GitStatus,
    Repository,
    StatusEntry,
)

__all__ = [
    # Repository
    "GitError",
    "GitStatus",
    "Repository",
    "StatusEntry",
    # Commits
    "LOG_FORMAT",
    "BumpDecision",
    "BumpLevel",
    "CommitRecord",
    "compute_bump",
    "parse_commit",
    "parse_log",
]
