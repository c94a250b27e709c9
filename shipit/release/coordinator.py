"""Release Coordinator.

Sequences a release as a state machine over an explicit ``ReleaseSession``:

    Idle -> Preflight -> Snapshotting -> FilesUpdating -> Committing
         -> Tagging -> Pushing -> GithubReleasing -> PublishVerifying -> Completed

A failure before anything was pushed is compensated through the ledger
(RolledBack, or RollbackFailed when a compensation cannot be verified).
Once a push has been attempted nothing is undone automatically: the
session ends CompletedWithWarning and names the explicit rollback command.
The GitHub release and the registry check come after the push, so their
failures are warnings too.
"""

from __future__ import annotations

import difflib
import time
from collections.abc import Callable, Sequence
from contextlib import AbstractContextManager, nullcontext
from dataclasses import dataclass
from pathlib import Path

from shipit.core.config import Config
from shipit.core.errors import ErrorCode
from shipit.core.result import Err, Ok, Result
from shipit.git.commits import BumpLevel
from shipit.git.repository import Repository
from shipit.http.client import HttpClient, RealHttpClient
from shipit.output.console import ConsoleProtocol, Style
from shipit.platform.files import atomic_write_bytes

from .errors import ReleaseError
from .fsm import StepAdvance, StepHandler, advance, run_state_machine
from .github import GhCliReleases, GitHubReleases, release_notes, release_title
from .ledger import OperationLedger, RollbackReport
from .model import EntryStatus, LedgerEntry, OperationType, ReleaseSession, SessionState, new_session
from .preflight import ReleasePlan, plan_release, run_preflight
from .registry import PublishVerifier, VerifierConfig, registry_client_for
from .snapshots import SnapshotManager
from .store import SessionStore
from .updates import FileUpdate, updates_from_config
from .vcs import VersionControlAdapter

__all__ = ["ReleaseCoordinator", "ReleaseOutcome", "ReleasePreview", "build_coordinator"]

type Guard = Callable[[], AbstractContextManager[object]]

_EXIT_CODES: dict[SessionState, ErrorCode] = {
    SessionState.COMPLETED: ErrorCode.OK,
    SessionState.COMPLETED_WITH_WARNING: ErrorCode.PUBLISHED_WITH_WARNING,
    SessionState.ROLLED_BACK: ErrorCode.ROLLED_BACK,
    SessionState.ROLLBACK_FAILED: ErrorCode.ROLLBACK_FAILED,
}


@dataclass(frozen=True, slots=True)
class ReleaseOutcome:
    """Terminal result of ``release`` or ``rollback``.

    ``failure`` says what failed, ``durable`` what was already done and
    still stands, ``manual_steps`` what a human has to do next.
    """

    state: SessionState | None
    session: ReleaseSession | None
    failure: ReleaseError | None = None
    durable: tuple[str, ...] = ()
    manual_steps: tuple[str, ...] = ()
    warning: str | None = None
    rollback: RollbackReport | None = None
    explicit_rollback: bool = False

    @property
    def target_version(self) -> str | None:
        return self.session.target_version if self.session else None

    @property
    def bump(self) -> BumpLevel | None:
        return self.session.bump if self.session else None

    @property
    def exit_code(self) -> ErrorCode:
        if self.state is None:
            return ErrorCode.USER_ERROR
        if self.explicit_rollback:
            return ErrorCode.OK if self.state is SessionState.ROLLED_BACK else ErrorCode.ROLLBACK_FAILED
        return _EXIT_CODES.get(self.state, ErrorCode.ROLLBACK_FAILED)


@dataclass(frozen=True, slots=True)
class ReleasePreview:
    """What ``release`` would do, computed without mutating anything.

    ``diffs`` holds one unified diff per configured file.
    """

    plan: ReleasePlan
    branch: str
    diffs: tuple[tuple[str, str], ...]
    notes: str | None = None


class ReleaseCoordinator:
    def __init__(
        self,
        *,
        config: Config,
        vcs: VersionControlAdapter,
        snapshots: SnapshotManager,
        ledger: OperationLedger,
        store: SessionStore,
        updates: Sequence[FileUpdate],
        verifier: PublishVerifier | None,
        console: ConsoleProtocol,
        guard: Guard = nullcontext,
        releases: GitHubReleases | None = None,
    ) -> None:
        self.config = config
        self.vcs = vcs
        self.snapshots = snapshots
        self.ledger = ledger
        self.store = store
        self.updates = tuple(updates)
        self.verifier = verifier
        self.releases = releases
        self._console = console
        self._guard = guard
        # manual steps collected from post-push warnings of the current run
        self._follow_up: list[str] = []

    # -- read-only -------------------------------------------------------

    def plan(self, forced: BumpLevel | None = None) -> Result[ReleasePlan, ReleaseError]:
        return plan_release(self.vcs, self.config.release, forced)

    def preview(self, forced: BumpLevel | None = None) -> Result[ReleasePreview, ReleaseError]:
        """Run the preflight checks and render every file update in memory."""
        checked = run_preflight(self.vcs, self.store, self.config.release, forced=forced)
        if isinstance(checked, Err):
            return checked
        plan, branch = checked.value
        version = str(plan.target)

        diffs: list[tuple[str, str]] = []
        for update in self.updates:
            target = self.snapshots.resolve(update.path)
            try:
                current = target.read_bytes()
            except FileNotFoundError:
                current = None
            except OSError as e:
                return Err(ReleaseError(kind="snapshot_error", message=f"cannot read {update.path}: {e}"))
            rendered = update.render(current, version)
            if isinstance(rendered, Err):
                return rendered
            diffs.append((update.path, _unified_diff(update.path, current or b"", rendered.value)))

        notes = release_notes(version, plan.commits) if self.releases is not None else None
        return Ok(ReleasePreview(plan=plan, branch=branch, diffs=tuple(diffs), notes=notes))

    # -- release ---------------------------------------------------------

    def release(self, forced: BumpLevel | None = None) -> ReleaseOutcome:
        release_cfg = self.config.release
        self._follow_up = []
        session = new_session(
            repo_root=str(self.vcs.repo.path),
            tag_prefix=release_cfg.tag_prefix,
            remote=release_cfg.remote,
            branch=release_cfg.branch or "",
            previous_tag="",
            previous_version="",
            target_version="",
            bump=BumpLevel.NONE,
        )
        saved = self.store.save(session)
        if isinstance(saved, Err):
            return ReleaseOutcome(state=None, session=None, failure=saved.error)

        result = run_state_machine(
            initial_state=SessionState.IDLE,
            handlers=self._handlers(session, forced),
            enter=lambda state: self._enter(session, state),
            is_terminal=lambda state: state.is_terminal,
        )

        match result:
            case Ok(final):
                return self._finished(session, final)
            case Err(failure):
                return self._failed(session, failure.state, failure.error)

    def _handlers(
        self, session: ReleaseSession, forced: BumpLevel | None
    ) -> dict[SessionState, StepHandler[SessionState]]:
        return {
            SessionState.IDLE: lambda _: advance(SessionState.PREFLIGHT),
            SessionState.PREFLIGHT: lambda _: self._preflight(session, forced),
            SessionState.SNAPSHOTTING: lambda _: self._snapshot_files(session),
            SessionState.FILES_UPDATING: lambda _: self._update_files(session),
            SessionState.COMMITTING: lambda _: self._commit(session),
            SessionState.TAGGING: lambda _: self._tag(session),
            SessionState.PUSHING: lambda _: self._push(session),
            SessionState.GITHUB_RELEASING: lambda _: self._github_release(session),
            SessionState.PUBLISH_VERIFYING: lambda _: self._verify_publish(session),
        }

    def _enter(self, session: ReleaseSession, state: SessionState) -> Result[None, ReleaseError]:
        if state.is_terminal:
            session.finish(state)
        else:
            session.state = state
        self._console.header(state.value.replace("_", " "))
        return self.store.save(session)

    def _preflight(
        self, session: ReleaseSession, forced: BumpLevel | None
    ) -> Result[StepAdvance[SessionState], ReleaseError]:
        checked = run_preflight(
            self.vcs,
            self.store,
            self.config.release,
            forced=forced,
            session_id=session.session_id,
        )
        if isinstance(checked, Err):
            return checked
        plan, branch = checked.value

        session.branch = branch
        session.previous_tag = plan.previous_tag
        session.previous_version = str(plan.previous_version)
        session.target_version = str(plan.target)
        session.bump = plan.level

        since = plan.previous_tag or "(no previous tag)"
        forced_note = " (forced)" if plan.forced else ""
        self._console.info(
            f"{since} -> {plan.tag}: {plan.level}{forced_note}, {len(plan.commits)} commit(s) on {branch}"
        )
        return advance(SessionState.SNAPSHOTTING)

    def _snapshot_files(self, session: ReleaseSession) -> Result[StepAdvance[SessionState], ReleaseError]:
        for update in self.updates:
            tracked = self.ledger.track(
                session,
                OperationType.FILE_SNAPSHOT,
                {"path": update.path},
                lambda path=update.path: self.snapshots.snapshot(session, path).map(
                    lambda snap: {"snapshot_id": snap.id}
                ),
            )
            if isinstance(tracked, Err):
                return tracked
        return advance(SessionState.FILES_UPDATING)

    def _snapshot_entry(self, session: ReleaseSession, path: str) -> LedgerEntry | None:
        for entry in session.entries_of(OperationType.FILE_SNAPSHOT):
            if entry.meta_str("path") == path and entry.status is EntryStatus.COMPLETED:
                return entry
        return None

    def _update_files(self, session: ReleaseSession) -> Result[StepAdvance[SessionState], ReleaseError]:
        for update in self.updates:
            snap_entry = self._snapshot_entry(session, update.path)
            snap_id = snap_entry.meta_str("snapshot_id") if snap_entry else None
            snap = session.snapshots.get(snap_id) if snap_id else None
            if snap is None:
                return Err(
                    ReleaseError(
                        kind="snapshot_error",
                        message=f"refusing to write {update.path}: no snapshot was taken",
                    )
                )

            def write(
                update: FileUpdate = update, current: bytes | None = snap.original_content
            ) -> Result[dict[str, object], ReleaseError]:
                rendered = update.render(current, session.target_version)
                if isinstance(rendered, Err):
                    return rendered
                try:
                    atomic_write_bytes(self.snapshots.resolve(update.path), rendered.value)
                except OSError as e:
                    return Err(ReleaseError(kind="file_update_error", message=f"cannot write {update.path}: {e}"))
                self._console.print(f"updated {update.path}", Style.DIM)
                return Ok({"bytes": len(rendered.value)})

            tracked = self.ledger.track(
                session,
                OperationType.FILE_WRITE,
                {"path": update.path, "snapshot_id": snap.id},
                write,
            )
            if isinstance(tracked, Err):
                return tracked
        return advance(SessionState.COMMITTING)

    def _commit(self, session: ReleaseSession) -> Result[StepAdvance[SessionState], ReleaseError]:
        files = [u.path for u in self.updates]
        if not files:
            self._console.print("no files configured; tagging HEAD", Style.DIM)
            return advance(SessionState.TAGGING)

        head = self.vcs.head()
        if isinstance(head, Err):
            return head

        tracked = self.ledger.track(
            session,
            OperationType.COMMIT,
            {"previous_head": head.value, "files": files},
            lambda: self.vcs.commit_release(session.target_version, files).map(
                lambda info: {"commit": info.commit, "previous_head": info.previous_head}
            ),
        )
        if isinstance(tracked, Err):
            return tracked
        return advance(SessionState.TAGGING)

    def _tag(self, session: ReleaseSession) -> Result[StepAdvance[SessionState], ReleaseError]:
        tracked = self.ledger.track(
            session,
            OperationType.TAG_CREATE,
            {"tag": session.tag, "remote": session.remote},
            lambda: self.vcs.create_tag(session.target_version).map(lambda _: {}),
        )
        if isinstance(tracked, Err):
            return tracked
        return advance(SessionState.PUSHING)

    def _release_commit(self, session: ReleaseSession) -> tuple[str | None, str | None]:
        commits = [e for e in session.entries_of(OperationType.COMMIT) if e.status is EntryStatus.COMPLETED]
        if not commits:
            return (None, None)
        return (commits[-1].meta_str("commit"), commits[-1].meta_str("previous_head"))

    def _push(self, session: ReleaseSession) -> Result[StepAdvance[SessionState], ReleaseError]:
        commit, previous_head = self._release_commit(session)
        recorded = self.ledger.record(
            session,
            OperationType.TAG_PUSH,
            {
                "tag": session.tag,
                "remote": session.remote,
                "branch": session.branch,
                "commit": commit,
                "previous_head": previous_head,
            },
        )
        if isinstance(recorded, Err):
            return recorded
        entry = recorded.value

        pushed = self.vcs.push(session.remote, session.branch, session.tag)
        if isinstance(pushed, Ok):
            completed = self.ledger.complete(session, entry, pushed=True, tag_present=True, branch_pushed=True)
            if isinstance(completed, Err):
                return completed
            if self.releases is not None:
                return advance(SessionState.GITHUB_RELEASING)
            return advance(self._after_github(session))

        self._record_remote_state(session, entry, commit, pushed.error)
        return pushed

    def _record_remote_state(
        self,
        session: ReleaseSession,
        push_entry: LedgerEntry,
        commit: str | None,
        error: ReleaseError,
    ) -> None:
        """After a failed push, find out what actually reached the remote."""
        tag_state = self.vcs.remote_tag_exists(session.tag, session.remote)
        tag_present: bool | None = tag_state.value if isinstance(tag_state, Ok) else None

        branch_pushed: bool | None = False
        if commit is not None:
            head = self.vcs.remote_branch_head(session.remote, session.branch)
            branch_pushed = head.value == commit if isinstance(head, Ok) else None

        if tag_present is False and branch_pushed is False:
            self.ledger.fail(session, push_entry, error)
        else:
            # Something (or possibly something) reached the remote.
            self.ledger.complete(
                session,
                push_entry,
                pushed=False,
                tag_present=tag_present,
                branch_pushed=branch_pushed,
            )
            push_entry.error = error.message

        self.ledger.record(
            session,
            OperationType.REMOTE_STATE_CHECK,
            {
                "tag": session.tag,
                "remote": session.remote,
                "tag_present": tag_present,
                "branch_pushed": branch_pushed,
            },
            status=EntryStatus.COMPLETED,
        )
        known = "unknown" if tag_present is None else ("present" if tag_present else "absent")
        self._console.warning(f"remote state after failed push: tag {session.tag} {known} on {session.remote}")

    def _after_github(self, session: ReleaseSession) -> SessionState:
        if self.verifier is not None:
            return SessionState.PUBLISH_VERIFYING
        return _done(session)

    def _github_release(self, session: ReleaseSession) -> Result[StepAdvance[SessionState], ReleaseError]:
        releases = self.releases
        if releases is None:
            return advance(self._after_github(session))

        manual = f"create it by hand: gh release create {session.tag} --verify-tag"
        available = releases.available()
        if isinstance(available, Err):
            self._warn(session, SessionState.GITHUB_RELEASING, available.error, step=manual)
            return advance(self._after_github(session))

        commits = self.vcs.commits_since(session.previous_tag)
        if isinstance(commits, Err):
            self._warn(session, SessionState.GITHUB_RELEASING, commits.error, step=manual)
            return advance(self._after_github(session))
        notes = release_notes(session.target_version, commits.value)

        self._console.print(f"$ gh release create {session.tag} --verify-tag", Style.DIM)
        tracked = self.ledger.track(
            session,
            OperationType.GITHUB_RELEASE,
            {"tag": session.tag},
            lambda: releases.create(session.tag, release_title(session.target_version), notes).map(
                lambda url: {"url": url}
            ),
        )
        if isinstance(tracked, Err):
            self._warn(session, SessionState.GITHUB_RELEASING, tracked.error, step=manual)
            return advance(self._after_github(session))

        self._console.success(f"GitHub release {tracked.value.meta_str('url')}")
        return advance(self._after_github(session))

    def _verify_publish(self, session: ReleaseSession) -> Result[StepAdvance[SessionState], ReleaseError]:
        registry = self.config.registry
        if self.verifier is None or registry is None:
            return advance(_done(session))

        # The push already happened: anything that stops the wait is a warning.
        try:
            result = self.verifier.verify(registry.package, session.target_version)
        except KeyboardInterrupt:
            reason = f"verification of {registry.package}@{session.target_version} interrupted"
        except Exception as e:  # noqa: BLE001
            reason = f"verification of {registry.package}@{session.target_version} failed: {e}"
        else:
            if result.success:
                self._console.success(result.reason)
                return advance(_done(session))
            reason = result.reason

        self._warn(
            session,
            SessionState.PUBLISH_VERIFYING,
            ReleaseError(
                kind="publish_verification_timeout",
                message=reason,
                hint="the tag stays pushed; check the publish workflow",
            ),
            step=f"check that {registry.package}@{session.target_version} was published",
        )
        return advance(SessionState.COMPLETED_WITH_WARNING)

    def _warn(
        self,
        session: ReleaseSession,
        state: SessionState,
        error: ReleaseError,
        *,
        step: str,
    ) -> None:
        """Record a post-push problem; the first one stays the session's failure."""
        session.warning = f"{session.warning}; {error.message}" if session.warning else error.message
        if session.failure is None:
            session.failure = error
            session.failed_state = state
        self._follow_up.append(step)
        self._console.warning(error.message)

    # -- terminal handling -----------------------------------------------

    def _finished(self, session: ReleaseSession, final: SessionState) -> ReleaseOutcome:
        if final is SessionState.COMPLETED:
            self._prune_older(session)
            return ReleaseOutcome(state=final, session=session, durable=tuple(_durable_facts(session)))

        return ReleaseOutcome(
            state=final,
            session=session,
            failure=session.failure,
            durable=tuple(_durable_facts(session)),
            warning=session.warning,
            manual_steps=(
                *self._follow_up,
                f"run `shipit rollback` only if {session.tag} must be withdrawn",
            ),
        )

    def _failed(self, session: ReleaseSession, state: SessionState, error: ReleaseError) -> ReleaseOutcome:
        session.failure = error
        session.failed_state = state
        self._console.error(f"{state.value.replace('_', ' ')} failed: {error.pretty()}")

        if session.entries_of(OperationType.TAG_PUSH):
            session.warning = f"{error.message}; automatic compensation skipped after push"
            self._enter(session, SessionState.COMPLETED_WITH_WARNING)
            return ReleaseOutcome(
                state=SessionState.COMPLETED_WITH_WARNING,
                session=session,
                failure=error,
                durable=tuple(_durable_facts(session)),
                warning=session.warning,
                manual_steps=(
                    f"inspect {session.remote}: the push of {session.tag} may be partial",
                    "run `shipit rollback` to undo the release, or push again by hand",
                ),
            )

        if not session.entries:
            # Nothing was mutated: the session leaves no trace.
            session.finish(SessionState.ROLLED_BACK)
            self.store.delete(session.session_id)
            return ReleaseOutcome(state=SessionState.ROLLED_BACK, session=session, failure=error)

        self._console.header("rolling back")
        with self._guard():
            report = self.ledger.rollback(session)
            final = SessionState.ROLLED_BACK if report.success else SessionState.ROLLBACK_FAILED
            self._enter(session, final)

        return ReleaseOutcome(
            state=final,
            session=session,
            failure=error,
            durable=tuple(_durable_facts(session)),
            manual_steps=tuple(report.manual_steps),
            rollback=report,
        )

    def _prune_older(self, session: ReleaseSession) -> None:
        """Only the newest release stays reversible: drop older snapshots."""
        listed = self.store.sessions()
        if isinstance(listed, Err):
            self._console.warning(listed.error.message)
            return
        for older in listed.value:
            if older.session_id == session.session_id or not older.is_reconciled:
                continue
            if self.snapshots.discard(older):
                self.store.save(older)

    # -- explicit rollback -----------------------------------------------

    def rollback_candidates(self) -> Result[list[ReleaseSession], ReleaseError]:
        """Sessions an explicit rollback may target, newest first."""
        listed = self.store.sessions()
        if isinstance(listed, Err):
            return listed
        sessions = listed.value
        if not sessions:
            return Ok([])
        candidates = [sessions[-1]]
        for s in reversed(sessions):
            if s.state in (SessionState.COMPLETED, SessionState.COMPLETED_WITH_WARNING):
                if s is not sessions[-1]:
                    candidates.append(s)
                break
        return Ok(candidates)

    def rollback(self, session_id: str | None = None) -> ReleaseOutcome:
        candidates = self.rollback_candidates()
        if isinstance(candidates, Err):
            return ReleaseOutcome(state=None, session=None, failure=candidates.error, explicit_rollback=True)
        if not candidates.value:
            return ReleaseOutcome(
                state=None,
                session=None,
                failure=ReleaseError(kind="invalid_input", message="no release session to roll back"),
                explicit_rollback=True,
            )

        if session_id is None:
            session = candidates.value[0]
        else:
            matching = [s for s in candidates.value if s.session_id == session_id]
            if not matching:
                return ReleaseOutcome(
                    state=None,
                    session=None,
                    failure=ReleaseError(
                        kind="invalid_input",
                        message=f"session {session_id} is not the most recent release",
                        hint="only the latest release can be rolled back",
                    ),
                    explicit_rollback=True,
                )
            session = matching[0]

        self._console.header(f"rolling back {session.session_id} ({session.tag})")
        with self._guard():
            report = self.ledger.rollback(session)
            final = SessionState.ROLLED_BACK if report.success else SessionState.ROLLBACK_FAILED
            self._enter(session, final)

        failure = None
        if report.failed is not None:
            failure = ReleaseError(kind="rollback_verification_failure", message=report.failed[1])
        return ReleaseOutcome(
            state=final,
            session=session,
            failure=failure,
            durable=tuple(_durable_facts(session)),
            manual_steps=tuple(report.manual_steps),
            rollback=report,
            explicit_rollback=True,
        )


def _durable_facts(session: ReleaseSession) -> list[str]:
    """What this session did that is still in effect."""
    facts: list[str] = []
    for entry in session.entries:
        if entry.status not in (EntryStatus.COMPLETED, EntryStatus.ROLLBACK_FAILED):
            continue
        match entry.operation_type:
            case OperationType.FILE_WRITE:
                facts.append(f"{entry.meta_str('path')} rewritten for {session.target_version}")
            case OperationType.COMMIT:
                facts.append(f"release commit {str(entry.meta_str('commit'))[:12]}")
            case OperationType.TAG_CREATE:
                facts.append(f"local tag {entry.meta_str('tag')}")
            case OperationType.TAG_PUSH:
                if entry.metadata.get("tag_present") is not False:
                    facts.append(f"tag {entry.meta_str('tag')} on {entry.meta_str('remote')}")
                if entry.metadata.get("branch_pushed") is not False and entry.meta_str("commit"):
                    facts.append(f"{entry.meta_str('remote')}/{entry.meta_str('branch')} at the release commit")
            case OperationType.GITHUB_RELEASE:
                facts.append(f"GitHub release {entry.meta_str('tag')}")
            case OperationType.FILE_SNAPSHOT | OperationType.REMOTE_STATE_CHECK:
                pass
    return facts


def _done(session: ReleaseSession) -> SessionState:
    return SessionState.COMPLETED_WITH_WARNING if session.warning else SessionState.COMPLETED


def _unified_diff(path: str, before: bytes, after: bytes) -> str:
    lines = difflib.unified_diff(
        before.decode("utf-8", errors="replace").splitlines(keepends=True),
        after.decode("utf-8", errors="replace").splitlines(keepends=True),
        fromfile=f"a/{path}",
        tofile=f"b/{path}",
    )
    return "".join(lines)


def build_coordinator(
    repo_root: Path,
    config: Config,
    console: ConsoleProtocol,
    *,
    http: HttpClient | None = None,
    guard: Guard = nullcontext,
    verifier_clock: Callable[[], float] | None = None,
    verifier_sleep: Callable[[float], None] | None = None,
    releases: GitHubReleases | None = None,
) -> Result[ReleaseCoordinator, ReleaseError]:
    """Wire a coordinator for the repository at ``repo_root``."""
    repo = Repository(repo_root)
    git_dir = repo.git_dir()
    if isinstance(git_dir, Err):
        return Err(
            ReleaseError(
                kind="invalid_input",
                message=f"{repo_root} is not a git repository",
                stderr=git_dir.error.stderr or None,
            )
        )

    store = SessionStore.for_git_dir(git_dir.value)
    vcs = VersionControlAdapter(
        repo,
        console,
        tag_prefix=config.release.tag_prefix,
        commit_message=config.release.commit_message,
    )
    snapshots = SnapshotManager(repo_root, console)
    github = releases if releases is not None else GhCliReleases(repo_root, draft=config.github.draft)
    ledger = OperationLedger(snapshots, vcs, console, persist=store.save, releases=github)

    verifier: PublishVerifier | None = None
    if config.registry is not None:
        client = registry_client_for(config.registry, http or RealHttpClient())
        verifier = PublishVerifier(
            client,
            VerifierConfig.from_registry(config.registry),
            console,
            clock=verifier_clock or time.monotonic,
            sleep=verifier_sleep or time.sleep,
        )

    return Ok(
        ReleaseCoordinator(
            config=config,
            vcs=vcs,
            snapshots=snapshots,
            ledger=ledger,
            store=store,
            updates=updates_from_config(config.files),
            verifier=verifier,
            console=console,
            guard=guard,
            releases=github if config.github.create_release else None,
        )
    )
