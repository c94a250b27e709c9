"""File-update collaborators.

The coordinator knows nothing about file formats: it snapshots a path,
asks its ``FileUpdate`` for the new bytes, and writes them atomically.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

from shipit.core.config import FileTarget
from shipit.core.result import Err, Ok, Result

from .errors import ReleaseError

__all__ = ["FileUpdate", "PatternUpdate", "updates_from_config"]


class FileUpdate(Protocol):
    """Renders the release content of one file."""

    @property
    def path(self) -> str: ...

    def render(self, current: bytes | None, version: str) -> Result[bytes, ReleaseError]:
        """New content for the file given its current bytes (None if absent)."""
        ...


@dataclass(frozen=True, slots=True)
class PatternUpdate:
    """Replace the ``version`` group of the first match of a regex."""

    path: str
    pattern: str
    encoding: str = "utf-8"

    def render(self, current: bytes | None, version: str) -> Result[bytes, ReleaseError]:
        if current is None:
            return Err(ReleaseError(kind="file_update_error", message=f"{self.path} does not exist"))
        try:
            text = current.decode(self.encoding)
            regex = re.compile(self.pattern, re.MULTILINE)
        except UnicodeDecodeError as e:
            return Err(ReleaseError(kind="file_update_error", message=f"{self.path} is not {self.encoding}: {e}"))
        except re.error as e:
            return Err(ReleaseError(kind="file_update_error", message=f"bad pattern for {self.path}: {e}"))

        match = regex.search(text)
        if match is None or "version" not in regex.groupindex:
            return Err(
                ReleaseError(
                    kind="file_update_error",
                    message=f"no version string found in {self.path}",
                    hint=self.pattern,
                )
            )
        start, end = match.span("version")
        return Ok((text[:start] + version + text[end:]).encode(self.encoding))


def updates_from_config(targets: Sequence[FileTarget]) -> list[FileUpdate]:
    return [PatternUpdate(path=t.path, pattern=t.pattern) for t in targets]
