"""Typed configuration loading and access.

This module provides dataclasses for the ``shipit.toml`` structure with
full type safety and validation. A repository without a config file gets
the defaults below.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from .result import Err, Ok, Result
from .structured import (
    StrDict,
    as_str_dict,
    get_bool,
    get_float,
    get_int,
    get_list,
    get_raw_str,
    get_str,
    get_table,
)

__all__ = [
    "CONFIG_ENV_VAR",
    "CONFIG_FILE_NAME",
    "Config",
    "ConfigError",
    "FileTarget",
    "GithubConfig",
    "RegistryConfig",
    "ReleaseConfig",
    "config_path_for",
    "load_config",
    "load_config_or_default",
]

CONFIG_FILE_NAME = "shipit.toml"
CONFIG_ENV_VAR = "SHIPIT_CONFIG"

DEFAULT_TAG_PREFIX = "v"
DEFAULT_REMOTE = "origin"
DEFAULT_COMMIT_MESSAGE = "chore(release): bump version to {version}"
DEFAULT_INITIAL_VERSION = "0.0.0"

# Registry polling defaults (seconds)
DEFAULT_GRACE_PERIOD = 30.0
DEFAULT_POLL_INTERVAL = 10.0
DEFAULT_MAX_ATTEMPTS = 30
DEFAULT_VERIFY_TIMEOUT = 600.0

RegistryKind = Literal["jsr", "pypi"]


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Error when config cannot be loaded or parsed."""

    message: str
    path: Path | None = None

    @property
    def hint(self) -> str | None:
        return str(self.path) if self.path is not None else None


@dataclass(frozen=True, slots=True)
class ReleaseConfig:
    """Tagging and push settings."""

    tag_prefix: str = DEFAULT_TAG_PREFIX
    remote: str = DEFAULT_REMOTE
    # None means "whatever branch is checked out"
    branch: str | None = None
    commit_message: str = DEFAULT_COMMIT_MESSAGE
    initial_version: str = DEFAULT_INITIAL_VERSION


@dataclass(frozen=True, slots=True)
class FileTarget:
    """A file whose version string is rewritten on release.

    ``pattern`` is a regular expression (multiline) with a named group
    ``version`` marking the text to replace.
    """

    path: str
    pattern: str


@dataclass(frozen=True, slots=True)
class RegistryConfig:
    """Where (and how patiently) to confirm publication."""

    kind: RegistryKind
    package: str
    base_url: str | None = None
    grace_period: float = DEFAULT_GRACE_PERIOD
    poll_interval: float = DEFAULT_POLL_INTERVAL
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    timeout: float = DEFAULT_VERIFY_TIMEOUT


@dataclass(frozen=True, slots=True)
class GithubConfig:
    """GitHub release created through the gh CLI after the push."""

    create_release: bool = False
    draft: bool = False


def _empty_files() -> tuple[FileTarget, ...]:
    return ()


@dataclass(frozen=True, slots=True)
class Config:
    """Main configuration container."""

    release: ReleaseConfig = field(default_factory=ReleaseConfig)
    files: tuple[FileTarget, ...] = field(default_factory=_empty_files)
    registry: RegistryConfig | None = None
    github: GithubConfig = field(default_factory=GithubConfig)

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> Config:
        """Create Config from a mapping (parsed TOML).

        Raises:
            ValueError: On structurally invalid sections.
        """
        release: StrDict = get_table(data, "release") or {}
        registry = get_table(data, "registry")
        github: StrDict = get_table(data, "github") or {}
        # An empty prefix is legitimate (tags like "1.2.3").
        prefix = get_raw_str(release, "tag_prefix")

        return cls(
            release=ReleaseConfig(
                tag_prefix=DEFAULT_TAG_PREFIX if prefix is None else prefix.strip(),
                remote=get_str(release, "remote") or DEFAULT_REMOTE,
                branch=get_str(release, "branch"),
                commit_message=get_str(release, "commit_message") or DEFAULT_COMMIT_MESSAGE,
                initial_version=get_str(release, "initial_version") or DEFAULT_INITIAL_VERSION,
            ),
            files=_parse_files(data),
            registry=_parse_registry(registry) if registry is not None else None,
            github=GithubConfig(
                create_release=get_bool(github, "create_release") or False,
                draft=get_bool(github, "draft") or False,
            ),
        )


def _parse_files(data: Mapping[str, object]) -> tuple[FileTarget, ...]:
    raw = get_list(data, "files")
    if raw is None:
        return ()

    targets: list[FileTarget] = []
    for i, item in enumerate(raw):
        table = as_str_dict(item)
        if table is None:
            raise ValueError(f"files[{i}] must be a table")
        path = get_str(table, "path")
        pattern = get_raw_str(table, "pattern")
        if path is None or not pattern:
            raise ValueError(f"files[{i}] needs both 'path' and 'pattern'")
        if "(?P<version>" not in pattern:
            raise ValueError(f"files[{i}].pattern must contain a (?P<version>...) group")
        targets.append(FileTarget(path=path, pattern=pattern))
    return tuple(targets)


def _parse_registry(table: StrDict) -> RegistryConfig:
    kind = get_str(table, "kind")
    if kind not in ("jsr", "pypi"):
        raise ValueError(f"registry.kind must be 'jsr' or 'pypi', got {kind!r}")
    package = get_str(table, "package")
    if package is None:
        raise ValueError("registry.package is required")

    max_attempts = get_int(table, "max_attempts")
    if max_attempts is not None and max_attempts < 1:
        raise ValueError("registry.max_attempts must be >= 1")

    return RegistryConfig(
        kind=kind,
        package=package,
        base_url=get_str(table, "base_url"),
        grace_period=_non_negative(table, "grace_period", DEFAULT_GRACE_PERIOD),
        poll_interval=_non_negative(table, "poll_interval", DEFAULT_POLL_INTERVAL),
        max_attempts=max_attempts or DEFAULT_MAX_ATTEMPTS,
        timeout=_non_negative(table, "timeout", DEFAULT_VERIFY_TIMEOUT),
    )


def _non_negative(table: StrDict, key: str, default: float) -> float:
    value = get_float(table, key)
    if value is None:
        return default
    if value < 0:
        raise ValueError(f"registry.{key} must be >= 0")
    return value


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    """Parse a TOML file, handling import and parse errors."""
    import tomllib

    try:
        content = path.read_bytes()
        data_obj: object = tomllib.loads(content.decode("utf-8"))
        data = as_str_dict(data_obj)
        if data is None:
            return Err(ConfigError("Config root must be a TOML table", path=path))
        return Ok(data)
    except FileNotFoundError:
        return Err(ConfigError(f"Config file not found: {path}", path=path))
    except PermissionError:
        return Err(ConfigError(f"Permission denied reading: {path}", path=path))
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"Invalid TOML syntax: {e}", path=path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"Error reading config: {e}", path=path))


def config_path_for(repo_root: Path) -> Path:
    """Config file location: $SHIPIT_CONFIG if set, else <repo>/shipit.toml."""
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return repo_root / CONFIG_FILE_NAME


def load_config(path: Path) -> Result[Config, ConfigError]:
    """Load and parse configuration from a TOML file.

    Args:
        path: Path to shipit.toml

    Returns:
        Ok(Config) on success, Err(ConfigError) on failure
    """
    result = _parse_toml(path)
    if isinstance(result, Err):
        return result

    try:
        config = Config.from_dict(result.value)
        return Ok(config)
    except (KeyError, TypeError, ValueError) as e:
        return Err(ConfigError(f"Invalid config structure: {e}", path=path))


def load_config_or_default(path: Path) -> Result[Config, ConfigError]:
    """Load config if the file exists, else return the defaults.

    Unlike a missing file, an unreadable or invalid file is still an error.
    """
    if not path.exists():
        return Ok(Config())
    return load_config(path)
