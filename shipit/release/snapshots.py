"""Snapshot Manager: makes file mutation reversible.

Snapshots live on the ``ReleaseSession`` (and so are persisted with it);
this class only reads, restores and compares file bytes.
"""

from __future__ import annotations

from pathlib import Path

from shipit.core.result import Err, Ok, Result
from shipit.output.console import ConsoleProtocol, Style
from shipit.platform.files import atomic_write_bytes, read_bytes_or_none

from .errors import ReleaseError
from .model import ReleaseSession, Snapshot, utc_now

__all__ = ["SnapshotManager"]


class SnapshotManager:
    def __init__(self, repo_root: Path, console: ConsoleProtocol) -> None:
        self._root = repo_root
        self._console = console

    def resolve(self, path: str) -> Path:
        p = Path(path)
        return p if p.is_absolute() else self._root / p

    def snapshot(self, session: ReleaseSession, path: str) -> Result[Snapshot, ReleaseError]:
        """Capture ``path`` (or its absence) and store it on the session."""
        target = self.resolve(path)
        try:
            content = read_bytes_or_none(target)
        except OSError as e:
            return Err(
                ReleaseError(
                    kind="snapshot_error",
                    message=f"cannot snapshot {path}: {e}",
                    hint=str(target),
                )
            )

        snap = Snapshot(
            id=f"{session.session_id}-snap-{len(session.snapshots) + 1}",
            path=path,
            original_content=content,
            taken_at=utc_now(),
        )
        session.snapshots[snap.id] = snap
        state = f"{len(content)} bytes" if content is not None else "absent"
        self._console.print(f"snapshot {snap.id}: {path} ({state})", Style.DIM)
        return Ok(snap)

    def matches(self, snapshot: Snapshot) -> bool:
        """True when the file on disk is exactly the snapshotted state."""
        try:
            current = read_bytes_or_none(self.resolve(snapshot.path))
        except OSError:
            return False
        return current == snapshot.original_content

    def restore(self, snapshot: Snapshot) -> Result[bool, ReleaseError]:
        """Put the file back as snapshotted.

        Returns Ok(False) when the file already matched and nothing was
        written, Ok(True) when it was rewritten or deleted.
        """
        if self.matches(snapshot):
            return Ok(False)

        target = self.resolve(snapshot.path)
        try:
            if snapshot.original_content is None:
                target.unlink(missing_ok=True)
            else:
                atomic_write_bytes(target, snapshot.original_content)
        except OSError as e:
            return Err(
                ReleaseError(
                    kind="snapshot_error",
                    message=f"cannot restore {snapshot.path} from {snapshot.id}: {e}",
                    hint=str(target),
                )
            )
        return Ok(True)

    def discard(self, session: ReleaseSession) -> int:
        """Drop every snapshot held by ``session``; returns how many."""
        count = len(session.snapshots)
        session.snapshots.clear()
        return count
