"""Release session data model.

A ``ReleaseSession`` is the aggregate root of one release invocation. It is
passed explicitly through the coordinator, ledger and adapters, and is
persisted by ``shipit.release.store`` after every mutation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from uuid import uuid4

from shipit.git.commits import BumpLevel

from .errors import ReleaseError

__all__ = [
    "EntryStatus",
    "LedgerEntry",
    "OperationType",
    "ReleaseSession",
    "SessionState",
    "Snapshot",
    "new_session",
    "utc_now",
]


def utc_now() -> str:
    return datetime.now(tz=UTC).isoformat()


class OperationType(StrEnum):
    FILE_SNAPSHOT = "file_snapshot"
    FILE_WRITE = "file_write"
    COMMIT = "commit"
    TAG_CREATE = "tag_create"
    TAG_PUSH = "tag_push"
    REMOTE_STATE_CHECK = "remote_state_check"
    GITHUB_RELEASE = "github_release"


class EntryStatus(StrEnum):
    PENDING = "pending"
    COMPLETED = "completed"
    ROLLED_BACK = "rolled_back"
    ROLLBACK_FAILED = "rollback_failed"


class SessionState(StrEnum):
    IDLE = "idle"
    PREFLIGHT = "preflight"
    SNAPSHOTTING = "snapshotting"
    FILES_UPDATING = "files_updating"
    COMMITTING = "committing"
    TAGGING = "tagging"
    PUSHING = "pushing"
    GITHUB_RELEASING = "github_releasing"
    PUBLISH_VERIFYING = "publish_verifying"
    COMPLETED = "completed"
    COMPLETED_WITH_WARNING = "completed_with_warning"
    ROLLED_BACK = "rolled_back"
    ROLLBACK_FAILED = "rollback_failed"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL

    @property
    def is_reconciled(self) -> bool:
        """Terminal and needing no operator attention before the next release."""
        return self.is_terminal and self is not SessionState.ROLLBACK_FAILED


_TERMINAL = frozenset(
    {
        SessionState.COMPLETED,
        SessionState.COMPLETED_WITH_WARNING,
        SessionState.ROLLED_BACK,
        SessionState.ROLLBACK_FAILED,
    }
)


@dataclass(frozen=True, slots=True)
class Snapshot:
    """Byte-exact capture of a file taken before it is written.

    ``original_content`` is None when the file did not exist.
    """

    id: str
    path: str
    original_content: bytes | None
    taken_at: str

    @property
    def existed(self) -> bool:
        return self.original_content is not None


def _empty_metadata() -> dict[str, object]:
    return {}


@dataclass(slots=True)
class LedgerEntry:
    """One recorded mutating action.

    Entries are append-only; ``status``, ``error`` and completion facts in
    ``metadata`` are the only fields that change after recording.
    """

    sequence: int
    operation_type: OperationType
    metadata: dict[str, object] = field(default_factory=_empty_metadata)
    status: EntryStatus = EntryStatus.PENDING
    recorded_at: str = field(default_factory=utc_now)
    error: str | None = None

    def meta_str(self, key: str) -> str | None:
        value = self.metadata.get(key)
        return value if isinstance(value, str) else None

    def meta_list(self, key: str) -> list[str]:
        value = self.metadata.get(key)
        if not isinstance(value, list):
            return []
        return [v for v in value if isinstance(v, str)]

    def describe(self) -> str:
        for key in ("path", "tag", "commit"):
            value = self.meta_str(key)
            if value:
                return f"#{self.sequence} {self.operation_type} {value}"
        return f"#{self.sequence} {self.operation_type}"


def _empty_entries() -> list[LedgerEntry]:
    return []


def _empty_snapshots() -> dict[str, Snapshot]:
    return {}


@dataclass(slots=True)
class ReleaseSession:
    session_id: str
    repo_root: str
    tag_prefix: str
    remote: str
    branch: str
    previous_version: str
    target_version: str
    bump: BumpLevel
    previous_tag: str = ""
    entries: list[LedgerEntry] = field(default_factory=_empty_entries)
    snapshots: dict[str, Snapshot] = field(default_factory=_empty_snapshots)
    state: SessionState = SessionState.IDLE
    started_at: str = field(default_factory=utc_now)
    ended_at: str | None = None
    failure: ReleaseError | None = None
    failed_state: SessionState | None = None
    warning: str | None = None

    @property
    def tag(self) -> str:
        return f"{self.tag_prefix}{self.target_version}"

    @property
    def reached_remote(self) -> bool:
        """The branch and tag push finished."""
        return any(
            e.status is EntryStatus.COMPLETED and e.metadata.get("pushed") is True
            for e in self.entries_of(OperationType.TAG_PUSH)
        )

    @property
    def is_reconciled(self) -> bool:
        """Whether the next release may start without operator attention.

        A run that died after its push finished has nothing left that a
        rollback would do on its own, so it does not block the next release.
        """
        return self.state.is_reconciled or (not self.state.is_terminal and self.reached_remote)

    def next_sequence(self) -> int:
        return len(self.entries) + 1

    def entries_of(self, operation_type: OperationType) -> list[LedgerEntry]:
        return [e for e in self.entries if e.operation_type is operation_type]

    def snapshot_for(self, path: str) -> Snapshot | None:
        """Latest snapshot taken for ``path`` in this session."""
        for snap in reversed(self.snapshots.values()):
            if snap.path == path:
                return snap
        return None

    def finish(self, state: SessionState) -> None:
        self.state = state
        self.ended_at = utc_now()


def new_session(
    *,
    repo_root: str,
    tag_prefix: str,
    remote: str,
    branch: str,
    previous_tag: str,
    previous_version: str,
    target_version: str,
    bump: BumpLevel,
) -> ReleaseSession:
    return ReleaseSession(
        session_id=f"release-{uuid4().hex[:12]}",
        repo_root=repo_root,
        tag_prefix=tag_prefix,
        remote=remote,
        branch=branch,
        previous_tag=previous_tag,
        previous_version=previous_version,
        target_version=target_version,
        bump=bump,
    )
