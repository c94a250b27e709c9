"""Registry Publish Verifier.

Publication is asynchronous relative to the push that triggers it, so the
verifier waits out a grace period and then polls the registry's read API
under two independent bounds: an attempt budget and a wall-clock timeout.
A failed verification is a warning for the caller, never a rollback.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from shipit.core.config import (
    DEFAULT_GRACE_PERIOD,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_VERIFY_TIMEOUT,
    RegistryConfig,
)
from shipit.core.result import Err
from shipit.core.structured import as_obj_list, as_str_dict, get_str, get_table
from shipit.http.client import HttpClient
from shipit.output.console import ConsoleProtocol, Style

__all__ = [
    "JsrRegistry",
    "PublishVerifier",
    "PypiRegistry",
    "RegistryClient",
    "VerificationResult",
    "VerifierConfig",
    "registry_client_for",
]


@dataclass(frozen=True, slots=True)
class VerifierConfig:
    """Polling bounds, in seconds (``max_attempts`` is a count)."""

    grace_period: float = DEFAULT_GRACE_PERIOD
    poll_interval: float = DEFAULT_POLL_INTERVAL
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    timeout: float = DEFAULT_VERIFY_TIMEOUT

    @classmethod
    def from_registry(cls, config: RegistryConfig) -> VerifierConfig:
        return cls(
            grace_period=config.grace_period,
            poll_interval=config.poll_interval,
            max_attempts=config.max_attempts,
            timeout=config.timeout,
        )


class RegistryClient(Protocol):
    """Read side of a package registry.

    Both queries answer None when the registry has nothing (yet): a
    non-200 response or a missing field means "not published so far".
    ``timeout`` bounds the single request made.
    """

    name: str

    def latest_version(self, package: str, *, timeout: float | None = None) -> str | None: ...

    def versions(self, package: str, *, timeout: float | None = None) -> list[str] | None: ...


class JsrRegistry:
    """jsr.io: ``package`` is ``@scope/name``."""

    name = "jsr"

    def __init__(self, http: HttpClient, base_url: str = "https://jsr.io") -> None:
        self._http = http
        self._base = base_url.rstrip("/")

    def _url(self, package: str) -> str | None:
        scope, _, name = package.removeprefix("@").partition("/")
        if not scope or not name:
            return None
        return f"{self._base}/api/scopes/{scope}/packages/{name}"

    def latest_version(self, package: str, *, timeout: float | None = None) -> str | None:
        url = self._url(package)
        if url is None:
            return None
        result = self._http.get_json(url, timeout=timeout)
        if isinstance(result, Err):
            return None
        data = as_str_dict(result.value)
        return get_str(data, "latestVersion") if data is not None else None

    def versions(self, package: str, *, timeout: float | None = None) -> list[str] | None:
        url = self._url(package)
        if url is None:
            return None
        result = self._http.get_json(f"{url}/versions", timeout=timeout)
        if isinstance(result, Err):
            return None
        items = as_obj_list(result.value)
        if items is None:
            return None
        found: list[str] = []
        for item in items:
            entry = as_str_dict(item)
            version = get_str(entry, "version") if entry is not None else None
            if version is not None:
                found.append(version)
        return found


class PypiRegistry:
    """pypi.org JSON API (one document carries both views)."""

    name = "pypi"

    def __init__(self, http: HttpClient, base_url: str = "https://pypi.org") -> None:
        self._http = http
        self._base = base_url.rstrip("/")

    def _document(self, package: str, timeout: float | None) -> dict[str, object] | None:
        result = self._http.get_json(f"{self._base}/pypi/{package}/json", timeout=timeout)
        if isinstance(result, Err):
            return None
        return as_str_dict(result.value)

    def latest_version(self, package: str, *, timeout: float | None = None) -> str | None:
        doc = self._document(package, timeout)
        if doc is None:
            return None
        info = get_table(doc, "info")
        return get_str(info, "version") if info is not None else None

    def versions(self, package: str, *, timeout: float | None = None) -> list[str] | None:
        doc = self._document(package, timeout)
        if doc is None:
            return None
        releases = get_table(doc, "releases")
        return list(releases) if releases is not None else None


def registry_client_for(config: RegistryConfig, http: HttpClient) -> RegistryClient:
    match config.kind:
        case "jsr":
            return JsrRegistry(http, config.base_url or "https://jsr.io")
        case "pypi":
            return PypiRegistry(http, config.base_url or "https://pypi.org")


@dataclass(frozen=True, slots=True)
class VerificationResult:
    success: bool
    attempts: int
    elapsed: float
    reason: str


class PublishVerifier:
    def __init__(
        self,
        client: RegistryClient,
        config: VerifierConfig,
        console: ConsoleProtocol,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._client = client
        self._config = config
        self._console = console
        self._clock = clock
        self._sleep = sleep

    def _is_visible(self, package: str, version: str, deadline: float) -> bool:
        # Each request is cut to what is left of the overall timeout.
        remaining = deadline - self._clock()
        if self._client.latest_version(package, timeout=remaining) == version:
            return True
        remaining = deadline - self._clock()
        if remaining <= 0:
            return False
        listed = self._client.versions(package, timeout=remaining)
        return listed is not None and version in listed

    def verify(self, package: str, version: str) -> VerificationResult:
        cfg = self._config
        start = self._clock()
        deadline = start + cfg.timeout

        if cfg.grace_period > 0:
            self._console.print(
                f"waiting {cfg.grace_period:g}s for {self._client.name} to process {package}@{version}",
                Style.DIM,
            )
            self._sleep(min(cfg.grace_period, cfg.timeout))

        attempts = 0
        while attempts < cfg.max_attempts and self._clock() < deadline:
            attempts += 1
            if self._is_visible(package, version, deadline):
                return VerificationResult(
                    success=True,
                    attempts=attempts,
                    elapsed=self._clock() - start,
                    reason=f"{package}@{version} is visible on {self._client.name}",
                )
            self._console.print(f"attempt {attempts}/{cfg.max_attempts}: not visible yet", Style.DIM)

            if attempts >= cfg.max_attempts:
                break
            remaining = deadline - self._clock()
            if remaining <= 0:
                break
            self._sleep(min(cfg.poll_interval, remaining))

        elapsed = self._clock() - start
        bound = "timeout" if self._clock() >= deadline else "max attempts reached"
        return VerificationResult(
            success=False,
            attempts=attempts,
            elapsed=elapsed,
            reason=(
                f"{package}@{version} not visible on {self._client.name} after "
                f"{attempts} attempts in {elapsed:.0f}s ({bound})"
            ),
        )
