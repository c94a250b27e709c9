"""Operation Ledger: ordered memory of what a release did, and how to undo it.

Every mutating step is recorded (and persisted) as Pending before it runs
and marked Completed with its facts after it succeeds. ``rollback`` walks
the entries from the highest sequence down, compensates each Completed or
Pending entry, then re-queries actual state before calling it RolledBack.
A Pending entry may have taken effect before the run died, so it is
compensated against what git and the filesystem actually hold. The first
entry that cannot be verified halts the walk: lower entries are left as
they are and reported for manual follow-up.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field

from shipit.core.result import Err, Ok, Result
from shipit.output.console import ConsoleProtocol, Style

from .errors import ReleaseError
from .github import GitHubReleases
from .model import EntryStatus, LedgerEntry, OperationType, ReleaseSession, Snapshot
from .snapshots import SnapshotManager
from .vcs import VersionControlAdapter

__all__ = ["OperationLedger", "Persist", "RollbackReport"]

type Persist = Callable[[ReleaseSession], Result[None, ReleaseError]]
type Facts = Mapping[str, object]


def _entries() -> list[LedgerEntry]:
    return []


def _steps() -> list[str]:
    return []


@dataclass(slots=True)
class RollbackReport:
    rolled_back: list[LedgerEntry] = field(default_factory=_entries)
    reverified: list[LedgerEntry] = field(default_factory=_entries)
    untouched: list[LedgerEntry] = field(default_factory=_entries)
    failed: tuple[LedgerEntry, str] | None = None
    manual_steps: list[str] = field(default_factory=_steps)

    @property
    def success(self) -> bool:
        return self.failed is None

    @property
    def attempted(self) -> int:
        return len(self.rolled_back) + len(self.reverified) + (1 if self.failed else 0)


class OperationLedger:
    def __init__(
        self,
        snapshots: SnapshotManager,
        vcs: VersionControlAdapter,
        console: ConsoleProtocol,
        persist: Persist,
        *,
        releases: GitHubReleases | None = None,
    ) -> None:
        self._snapshots = snapshots
        self._vcs = vcs
        self._console = console
        self._persist = persist
        self._releases = releases

    # -- forward pass ----------------------------------------------------

    def record(
        self,
        session: ReleaseSession,
        operation_type: OperationType,
        metadata: Facts,
        status: EntryStatus = EntryStatus.PENDING,
    ) -> Result[LedgerEntry, ReleaseError]:
        """Append an entry and persist the session."""
        entry = LedgerEntry(
            sequence=session.next_sequence(),
            operation_type=operation_type,
            metadata=dict(metadata),
            status=status,
        )
        session.entries.append(entry)
        saved = self._persist(session)
        if isinstance(saved, Err):
            return saved
        return Ok(entry)

    def complete(self, session: ReleaseSession, entry: LedgerEntry, **facts: object) -> Result[None, ReleaseError]:
        entry.metadata.update(facts)
        entry.status = EntryStatus.COMPLETED
        entry.error = None
        return self._persist(session)

    def fail(self, session: ReleaseSession, entry: LedgerEntry, error: ReleaseError) -> Result[None, ReleaseError]:
        """Keep the entry Pending and remember why its action failed."""
        entry.error = error.message
        return self._persist(session)

    def track(
        self,
        session: ReleaseSession,
        operation_type: OperationType,
        metadata: Facts,
        action: Callable[[], Result[Facts, ReleaseError]],
    ) -> Result[LedgerEntry, ReleaseError]:
        """Record, run ``action``, then complete the entry with its facts.

        The entry is durable before the action starts, so a crash mid-action
        still leaves a trace of what was being attempted.
        """
        recorded = self.record(session, operation_type, metadata)
        if isinstance(recorded, Err):
            return recorded
        entry = recorded.value

        outcome = action()
        if isinstance(outcome, Err):
            self.fail(session, entry, outcome.error)
            return outcome

        completed = self.complete(session, entry, **dict(outcome.value))
        if isinstance(completed, Err):
            return completed
        return Ok(entry)

    # -- rollback --------------------------------------------------------

    def rollback(self, session: ReleaseSession) -> RollbackReport:
        report = RollbackReport()
        halted = False

        for entry in sorted(session.entries, key=lambda e: e.sequence, reverse=True):
            if halted:
                if entry.status in (EntryStatus.COMPLETED, EntryStatus.PENDING):
                    report.untouched.append(entry)
                continue

            match entry.status:
                case EntryStatus.ROLLED_BACK:
                    outcome = self._verify(session, entry)
                    if isinstance(outcome, Ok):
                        report.reverified.append(entry)
                        continue
                case EntryStatus.COMPLETED | EntryStatus.PENDING | EntryStatus.ROLLBACK_FAILED:
                    outcome = self._compensate(session, entry)
                    if isinstance(outcome, Ok):
                        outcome = self._verify(session, entry)

            if isinstance(outcome, Ok):
                entry.status = EntryStatus.ROLLED_BACK
                entry.error = None
                report.rolled_back.append(entry)
                self._console.success(f"rolled back {entry.describe()}")
            else:
                entry.status = EntryStatus.ROLLBACK_FAILED
                entry.error = outcome.error.message
                report.failed = (entry, outcome.error.message)
                self._console.error(f"{entry.describe()}: {outcome.error.message}")
                halted = True

            saved = self._persist(session)
            if isinstance(saved, Err) and not halted:
                report.failed = (entry, f"session could not be saved: {saved.error.message}")
                self._console.error(report.failed[1])
                halted = True

        if report.failed is not None:
            report.manual_steps = _manual_steps(report)
        return report

    def _snapshot_of(self, session: ReleaseSession, entry: LedgerEntry) -> Result[Snapshot, ReleaseError]:
        snap_id = entry.meta_str("snapshot_id")
        snap = session.snapshots.get(snap_id) if snap_id else None
        if snap is None:
            return Err(
                ReleaseError(
                    kind="snapshot_error",
                    message=f"snapshot {snap_id or '?'} for {entry.meta_str('path')} is no longer available",
                )
            )
        return Ok(snap)

    def _compensate(self, session: ReleaseSession, entry: LedgerEntry) -> Result[None, ReleaseError]:
        """Run the compensating action for one entry."""
        remote = entry.meta_str("remote") or session.remote
        match entry.operation_type:
            case OperationType.FILE_SNAPSHOT if entry.meta_str("snapshot_id") is None:
                # Never captured, so the file was never written either.
                return Ok(None)

            case OperationType.FILE_SNAPSHOT | OperationType.FILE_WRITE:
                snap = self._snapshot_of(session, entry)
                if isinstance(snap, Err):
                    return snap
                restored = self._snapshots.restore(snap.value)
                if isinstance(restored, Err):
                    return restored
                if restored.value:
                    self._console.print(f"restored {snap.value.path} from {snap.value.id}", Style.DIM)
                return Ok(None)

            case OperationType.COMMIT:
                previous_head = entry.meta_str("previous_head")
                if previous_head is None:
                    return Err(ReleaseError(kind="session_error", message="commit entry lacks its previous head"))
                commit = entry.meta_str("commit")
                if commit is None:
                    landed = self._vcs.landed_release_commit(previous_head, session.target_version)
                    if isinstance(landed, Err):
                        return landed
                    commit = landed.value or previous_head
                    if landed.value is not None:
                        entry.metadata["commit"] = landed.value
                return self._vcs.rollback_commit(previous_head, commit, entry.meta_list("files")).map(_discard)

            case OperationType.TAG_CREATE:
                tag = entry.meta_str("tag") or session.tag
                return self._vcs.rollback_tag(tag, remote).map(_discard)

            case OperationType.TAG_PUSH:
                tag = entry.meta_str("tag") or session.tag
                deleted = self._vcs.rollback_tag(tag, remote)
                if isinstance(deleted, Err):
                    return deleted
                commit = entry.meta_str("commit")
                previous_head = entry.meta_str("previous_head")
                if commit is None or previous_head is None:
                    return Ok(None)
                branch = entry.meta_str("branch") or session.branch
                return self._vcs.reset_remote_branch(remote, branch, commit, previous_head).map(_discard)

            case OperationType.REMOTE_STATE_CHECK:
                # Observation only; nothing to undo.
                return Ok(None)

            case OperationType.GITHUB_RELEASE:
                tag = entry.meta_str("tag") or session.tag
                if self._releases is None:
                    return _no_github_client(tag)
                present = self._releases.exists(tag)
                if isinstance(present, Err):
                    return present
                if not present.value:
                    self._console.print(f"no GitHub release for {tag}; nothing to delete", Style.DIM)
                    return Ok(None)
                self._console.print(f"$ gh release delete {tag} --yes", Style.DIM)
                return self._releases.delete(tag)

    def _verify(self, session: ReleaseSession, entry: LedgerEntry) -> Result[None, ReleaseError]:
        """Re-query actual state to confirm an entry is undone."""
        remote = entry.meta_str("remote") or session.remote
        match entry.operation_type:
            case OperationType.FILE_SNAPSHOT if entry.meta_str("snapshot_id") is None:
                return Ok(None)

            case OperationType.FILE_SNAPSHOT | OperationType.FILE_WRITE:
                snap = self._snapshot_of(session, entry)
                if isinstance(snap, Err):
                    return snap
                if self._snapshots.matches(snap.value):
                    return Ok(None)
                return _unverified(f"{snap.value.path} does not match snapshot {snap.value.id}")

            case OperationType.COMMIT:
                head = self._vcs.head()
                if isinstance(head, Err):
                    return head
                expected = entry.meta_str("previous_head")
                if head.value == expected:
                    return Ok(None)
                return _unverified(f"HEAD is {head.value[:12]}, expected {str(expected)[:12]}")

            case OperationType.TAG_CREATE:
                tag = entry.meta_str("tag") or session.tag
                local = self._vcs.local_tag_exists(tag)
                if isinstance(local, Err):
                    return local
                if local.value:
                    return _unverified(f"tag {tag} still exists locally")
                return self._verify_remote_tag_absent(tag, remote)

            case OperationType.TAG_PUSH:
                tag = entry.meta_str("tag") or session.tag
                absent = self._verify_remote_tag_absent(tag, remote)
                if isinstance(absent, Err):
                    return absent
                commit = entry.meta_str("commit")
                branch = entry.meta_str("branch") or session.branch
                if commit is None:
                    return Ok(None)
                head = self._vcs.remote_branch_head(remote, branch)
                if isinstance(head, Err):
                    return head
                if head.value == commit:
                    return _unverified(f"{remote}/{branch} still points at the release commit")
                return Ok(None)

            case OperationType.REMOTE_STATE_CHECK:
                return Ok(None)

            case OperationType.GITHUB_RELEASE:
                tag = entry.meta_str("tag") or session.tag
                if self._releases is None:
                    return _no_github_client(tag)
                present = self._releases.exists(tag)
                if isinstance(present, Err):
                    return present
                if present.value:
                    return _unverified(f"GitHub release {tag} still exists")
                return Ok(None)

    def _verify_remote_tag_absent(self, tag: str, remote: str) -> Result[None, ReleaseError]:
        exists = self._vcs.remote_tag_exists(tag, remote)
        if isinstance(exists, Err):
            return exists
        if exists.value:
            return _unverified(f"tag {tag} still exists on {remote}")
        return Ok(None)


def _discard(_: object) -> None:
    return None


def _unverified(message: str) -> Err[ReleaseError]:
    return Err(
        ReleaseError(
            kind="rollback_verification_failure",
            message=message,
            hint="manual intervention required",
        )
    )


def _no_github_client(tag: str) -> Err[ReleaseError]:
    return Err(
        ReleaseError(
            kind="github_release_error",
            message=f"cannot check the GitHub release {tag}: no GitHub client configured",
        )
    )


def _manual_step(entry: LedgerEntry) -> str:
    remote = entry.meta_str("remote") or "origin"
    tag = entry.meta_str("tag") or "<tag>"
    match entry.operation_type:
        case OperationType.FILE_SNAPSHOT | OperationType.FILE_WRITE:
            return (
                f"restore {entry.meta_str('path')} to its pre-release content "
                f"(snapshot {entry.meta_str('snapshot_id')} is kept in the session file)"
            )
        case OperationType.COMMIT:
            return f"git reset --soft {entry.meta_str('previous_head')}"
        case OperationType.TAG_CREATE:
            return f"git tag -d {tag} && git push {remote} :refs/tags/{tag}"
        case OperationType.TAG_PUSH:
            step = f"git push {remote} :refs/tags/{tag}"
            if entry.meta_str("commit") and entry.meta_str("previous_head"):
                step += (
                    f" && git push --force-with-lease=refs/heads/{entry.meta_str('branch')}:"
                    f"{entry.meta_str('commit')} {remote} "
                    f"{entry.meta_str('previous_head')}:refs/heads/{entry.meta_str('branch')}"
                )
            return step
        case OperationType.REMOTE_STATE_CHECK:
            return "nothing to undo"
        case OperationType.GITHUB_RELEASE:
            return f"gh release delete {tag} --yes"


def _manual_steps(report: RollbackReport) -> list[str]:
    steps: list[str] = []
    if report.failed is not None:
        entry, message = report.failed
        steps.append(f"{entry.describe()} could not be verified: {message}")
        steps.append(f"  {_manual_step(entry)}")
    for entry in report.untouched:
        steps.append(f"{entry.describe()} was not rolled back")
        steps.append(f"  {_manual_step(entry)}")
    steps.append("then run `shipit rollback` again to re-verify")
    return steps
