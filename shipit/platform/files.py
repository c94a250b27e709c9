"""Filesystem helpers."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

__all__ = ["atomic_write_bytes", "atomic_write_text", "read_bytes_or_none"]


def atomic_write_bytes(path: Path, content: bytes) -> None:
    """Write bytes to path atomically using temp file + replace.

    A crash leaves either the previous content or the new content at
    ``path``, never a torn mix of both.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{path.name}.",
        suffix=".tmp",
        dir=str(path.parent),
    )
    tmp_path = Path(tmp_name)

    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        if path.exists():
            # Keep the target's permission bits (e.g. executable scripts).
            os.chmod(tmp_path, path.stat().st_mode & 0o7777)
        os.replace(tmp_path, path)
    finally:
        if tmp_path.exists():
            tmp_path.unlink(missing_ok=True)


def atomic_write_text(path: Path, content: str, *, encoding: str = "utf-8") -> None:
    """Write text to path atomically (see atomic_write_bytes)."""
    atomic_write_bytes(path, content.encode(encoding))


def read_bytes_or_none(path: Path) -> bytes | None:
    """Return file bytes, or None when the file does not exist.

    Other OS errors (permissions, path is a directory) propagate.
    """
    try:
        return path.read_bytes()
    except FileNotFoundError:
        return None
