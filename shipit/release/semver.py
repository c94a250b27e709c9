from __future__ import annotations

import re
from dataclasses import dataclass
from functools import total_ordering

from shipit.git.commits import BumpLevel

__all__ = ["SemVer", "highest_tag", "parse_tag", "parse_version"]

_SEMVER_RE = re.compile(
    r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-((?:0|[1-9]\d*|\d*[A-Za-z-][0-9A-Za-z-]*)(?:\.(?:0|[1-9]\d*|\d*[A-Za-z-][0-9A-Za-z-]*))*))?"
    r"(?:\+([0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?$"
)


def _identifier_key(ident: str) -> tuple[int, int, str]:
    # Numeric identifiers sort before alphanumeric ones.
    if ident.isdigit():
        return (0, int(ident), "")
    return (1, 0, ident)


@total_ordering
@dataclass(frozen=True, slots=True)
class SemVer:
    major: int
    minor: int
    patch: int
    prerelease: tuple[str, ...] = ()
    build: str = ""

    def __str__(self) -> str:
        text = f"{self.major}.{self.minor}.{self.patch}"
        if self.prerelease:
            text += "-" + ".".join(self.prerelease)
        if self.build:
            text += "+" + self.build
        return text

    def _key(self) -> tuple[object, ...]:
        core = (self.major, self.minor, self.patch)
        if not self.prerelease:
            # A stable release outranks every prerelease of the same core.
            return (core, 1, ())
        return (core, 0, tuple(_identifier_key(p) for p in self.prerelease))

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, SemVer):
            return NotImplemented
        return self._key() < other._key()

    def bump(self, level: BumpLevel) -> SemVer:
        """Next stable version; prerelease and build metadata are dropped."""
        match level:
            case BumpLevel.MAJOR:
                return SemVer(self.major + 1, 0, 0)
            case BumpLevel.MINOR:
                return SemVer(self.major, self.minor + 1, 0)
            case BumpLevel.PATCH:
                return SemVer(self.major, self.minor, self.patch + 1)
            case BumpLevel.NONE:
                return SemVer(self.major, self.minor, self.patch)


def parse_version(text: str) -> SemVer | None:
    m = _SEMVER_RE.match(text.strip())
    if m is None:
        return None
    pre = tuple(m.group(4).split(".")) if m.group(4) else ()
    return SemVer(int(m.group(1)), int(m.group(2)), int(m.group(3)), pre, m.group(5) or "")


def parse_tag(tag: str, prefix: str) -> SemVer | None:
    if not tag.startswith(prefix):
        return None
    return parse_version(tag[len(prefix) :])


def highest_tag(tags: list[str], prefix: str) -> tuple[str, SemVer] | None:
    """Highest tag by version ordering; tags that do not parse are ignored."""
    best: tuple[str, SemVer] | None = None
    for tag in tags:
        version = parse_tag(tag, prefix)
        if version is None:
            continue
        if best is None or version > best[1]:
            best = (tag, version)
    return best
