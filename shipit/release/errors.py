"""Error types for the release engine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from shipit.git.repository import GitError

__all__ = ["ReleaseError", "ReleaseErrorKind", "from_git_error"]

ReleaseErrorKind = Literal[
    "preflight_failure",
    "snapshot_error",
    "file_update_error",
    "version_control_error",
    "remote_error",
    "publish_verification_timeout",
    "github_release_error",
    "rollback_verification_failure",
    "invalid_input",
    "session_error",
]


@dataclass(frozen=True, slots=True)
class ReleaseError:
    """Canonical release error payload.

    ``command`` and ``stderr`` are set when the failure came from git, so
    the operator sees exactly what was run and what git answered.
    """

    kind: ReleaseErrorKind
    message: str
    hint: str | None = None
    command: str | None = None
    stderr: str | None = None

    def pretty(self) -> str:
        if self.hint:
            return f"{self.message} (hint: {self.hint})"
        return self.message

    def to_dict(self) -> dict[str, object]:
        return {
            "kind": self.kind,
            "message": self.message,
            "hint": self.hint,
            "command": self.command,
            "stderr": self.stderr,
        }


def from_git_error(
    error: GitError,
    *,
    remote: bool = False,
    message: str | None = None,
    hint: str | None = None,
) -> ReleaseError:
    """Wrap a GitError, keeping the failing command and raw diagnostics."""
    return ReleaseError(
        kind="remote_error" if remote else "version_control_error",
        message=message or str(error),
        hint=hint,
        command=f"git {error.command}",
        stderr=error.stderr or None,
    )
