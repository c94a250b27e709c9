"""ReleaseSession persistence.

Sessions are JSON files under ``<git-dir>/shipit/sessions/``, one per
release invocation, rewritten atomically after every mutation. Snapshot
bytes travel base64-encoded inside the session file.
"""

from __future__ import annotations

import base64
import binascii
import json
from pathlib import Path
from typing import cast

from shipit.core.result import Err, Ok, Result
from shipit.core.structured import StrDict, as_obj_list, as_str_dict, get_int, get_raw_str, get_str, get_table
from shipit.git.commits import BumpLevel
from shipit.platform.files import atomic_write_text

from .errors import ReleaseError, ReleaseErrorKind
from .model import EntryStatus, LedgerEntry, OperationType, ReleaseSession, SessionState, Snapshot

__all__ = ["SCHEMA_VERSION", "SessionStore", "session_from_dict", "session_to_dict"]

SCHEMA_VERSION = 1

_ERROR_KINDS: frozenset[str] = frozenset(
    {
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
    }
)


def session_to_dict(session: ReleaseSession) -> dict[str, object]:
    return {
        "schema": SCHEMA_VERSION,
        "session_id": session.session_id,
        "repo_root": session.repo_root,
        "tag_prefix": session.tag_prefix,
        "remote": session.remote,
        "branch": session.branch,
        "previous_tag": session.previous_tag,
        "previous_version": session.previous_version,
        "target_version": session.target_version,
        "bump": str(session.bump),
        "state": str(session.state),
        "started_at": session.started_at,
        "ended_at": session.ended_at,
        "failed_state": str(session.failed_state) if session.failed_state else None,
        "failure": session.failure.to_dict() if session.failure else None,
        "warning": session.warning,
        "entries": [
            {
                "sequence": e.sequence,
                "operation_type": str(e.operation_type),
                "metadata": e.metadata,
                "status": str(e.status),
                "recorded_at": e.recorded_at,
                "error": e.error,
            }
            for e in session.entries
        ],
        "snapshots": [
            {
                "id": s.id,
                "path": s.path,
                "original_content": (
                    base64.b64encode(s.original_content).decode("ascii")
                    if s.original_content is not None
                    else None
                ),
                "taken_at": s.taken_at,
            }
            for s in session.snapshots.values()
        ],
    }


def _parse_error(data: StrDict | None) -> ReleaseError | None:
    if data is None:
        return None
    kind = get_str(data, "kind")
    message = get_raw_str(data, "message")
    if kind not in _ERROR_KINDS or message is None:
        return None
    return ReleaseError(
        kind=_error_kind(kind),
        message=message,
        hint=get_raw_str(data, "hint"),
        command=get_raw_str(data, "command"),
        stderr=get_raw_str(data, "stderr"),
    )


def _error_kind(kind: str) -> ReleaseErrorKind:
    return cast(ReleaseErrorKind, kind)


def _parse_entry(data: StrDict) -> LedgerEntry:
    sequence = get_int(data, "sequence")
    op = get_str(data, "operation_type")
    status = get_str(data, "status")
    metadata = get_table(data, "metadata") or {}
    if sequence is None or op is None or status is None:
        raise ValueError("ledger entry missing sequence, operation_type or status")
    entry = LedgerEntry(
        sequence=sequence,
        operation_type=OperationType(op),
        metadata=dict(metadata),
        status=EntryStatus(status),
        error=get_raw_str(data, "error"),
    )
    recorded_at = get_str(data, "recorded_at")
    if recorded_at is not None:
        entry.recorded_at = recorded_at
    return entry


def _parse_snapshot(data: StrDict) -> Snapshot:
    snap_id = get_str(data, "id")
    path = get_raw_str(data, "path")
    taken_at = get_str(data, "taken_at")
    if snap_id is None or path is None or taken_at is None:
        raise ValueError("snapshot missing id, path or taken_at")
    encoded = get_raw_str(data, "original_content")
    content = base64.b64decode(encoded, validate=True) if encoded is not None else None
    return Snapshot(id=snap_id, path=path, original_content=content, taken_at=taken_at)


def session_from_dict(data: StrDict) -> ReleaseSession:
    """Rebuild a session from its JSON form.

    Raises:
        ValueError: On missing fields, unknown enum values or bad base64.
    """
    if data.get("schema") != SCHEMA_VERSION:
        raise ValueError(f"unsupported session schema: {data.get('schema')!r}")

    required = {
        key: get_raw_str(data, key)
        for key in (
            "session_id",
            "repo_root",
            "tag_prefix",
            "remote",
            "branch",
            "previous_version",
            "target_version",
            "bump",
            "state",
            "started_at",
        )
    }
    missing = [k for k, v in required.items() if v is None]
    if missing:
        raise ValueError(f"session missing fields: {', '.join(missing)}")

    bump = BumpLevel.parse(required["bump"] or "")
    if bump is None:
        raise ValueError(f"invalid bump level: {required['bump']!r}")

    entries = [_parse_entry(e) for e in (as_str_dict(o) for o in as_obj_list(data.get("entries")) or []) if e]
    snapshots = [
        _parse_snapshot(s) for s in (as_str_dict(o) for o in as_obj_list(data.get("snapshots")) or []) if s
    ]
    failed_state = get_str(data, "failed_state")

    return ReleaseSession(
        session_id=required["session_id"] or "",
        repo_root=required["repo_root"] or "",
        tag_prefix=required["tag_prefix"] or "",
        remote=required["remote"] or "",
        branch=required["branch"] or "",
        previous_tag=get_raw_str(data, "previous_tag") or "",
        previous_version=required["previous_version"] or "",
        target_version=required["target_version"] or "",
        bump=bump,
        entries=sorted(entries, key=lambda e: e.sequence),
        snapshots={s.id: s for s in snapshots},
        state=SessionState(required["state"]),
        started_at=required["started_at"] or "",
        ended_at=get_str(data, "ended_at"),
        failure=_parse_error(get_table(data, "failure")),
        failed_state=SessionState(failed_state) if failed_state else None,
        warning=get_raw_str(data, "warning"),
    )


class SessionStore:
    """Directory of persisted release sessions."""

    def __init__(self, root: Path) -> None:
        self.root = root

    @classmethod
    def for_git_dir(cls, git_dir: Path) -> SessionStore:
        return cls(git_dir / "shipit" / "sessions")

    def path_for(self, session_id: str) -> Path:
        return self.root / f"{session_id}.json"

    def save(self, session: ReleaseSession) -> Result[None, ReleaseError]:
        path = self.path_for(session.session_id)
        try:
            text = json.dumps(session_to_dict(session), indent=2) + "\n"
            atomic_write_text(path, text, encoding="utf-8")
        except (OSError, TypeError, ValueError) as e:
            return _session_error(f"failed to write release session: {e}", path)
        return Ok(None)

    def load(self, session_id: str) -> Result[ReleaseSession, ReleaseError]:
        return self._load_path(self.path_for(session_id))

    def _load_path(self, path: Path) -> Result[ReleaseSession, ReleaseError]:
        try:
            obj: object = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return _session_error(f"no release session at {path}", path)
        except (OSError, json.JSONDecodeError) as e:
            return _session_error(f"failed to load release session: {e}", path)

        data = as_str_dict(obj)
        if data is None:
            return _session_error("invalid release session format", path)
        try:
            return Ok(session_from_dict(data))
        except (ValueError, binascii.Error) as e:
            return _session_error(f"invalid release session: {e}", path)

    def sessions(self) -> Result[list[ReleaseSession], ReleaseError]:
        """All sessions, oldest first."""
        if not self.root.is_dir():
            return Ok([])
        sessions: list[ReleaseSession] = []
        for path in sorted(self.root.glob("*.json")):
            loaded = self._load_path(path)
            if isinstance(loaded, Err):
                return loaded
            sessions.append(loaded.value)
        sessions.sort(key=lambda s: s.started_at)
        return Ok(sessions)

    def latest(self) -> Result[ReleaseSession | None, ReleaseError]:
        listed = self.sessions()
        if isinstance(listed, Err):
            return listed
        return Ok(listed.value[-1] if listed.value else None)

    def unreconciled(self, *, exclude: str | None = None) -> Result[list[ReleaseSession], ReleaseError]:
        """Sessions that crashed before their push finished, or whose rollback failed."""
        listed = self.sessions()
        if isinstance(listed, Err):
            return listed
        return Ok([s for s in listed.value if s.session_id != exclude and not s.is_reconciled])

    def delete(self, session_id: str) -> Result[None, ReleaseError]:
        path = self.path_for(session_id)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            return _session_error(f"failed to delete release session: {e}", path)
        return Ok(None)


def _session_error(message: str, path: Path) -> Err[ReleaseError]:
    kind: ReleaseErrorKind = "session_error"
    return Err(ReleaseError(kind=kind, message=message, hint=str(path)))
