"""Read-only JSON over HTTP, for querying package registries.

``HttpClient`` is the seam the registry clients depend on; ``RealHttpClient``
talks to the network through urllib and ``MockHttpClient`` replays canned
registry answers in tests.
"""

from __future__ import annotations

import json
import ssl
import urllib.error
import urllib.request
from dataclasses import dataclass
from http.client import HTTPException
from typing import Protocol, runtime_checkable

from shipit import __version__
from shipit.core.result import Err, Ok, Result

__all__ = [
    "HttpClient",
    "HttpError",
    "MockHttpClient",
    "RealHttpClient",
]


@dataclass(frozen=True, slots=True)
class HttpError:
    """A failed registry request; ``status`` is 0 when no response arrived."""

    url: str
    status: int
    message: str

    def __str__(self) -> str:
        if self.status:
            return f"HTTP {self.status}: {self.message} ({self.url})"
        return f"{self.message} ({self.url})"


@runtime_checkable
class HttpClient(Protocol):
    """Protocol for HTTP operations.

    Registry endpoints answer with either a JSON object or a JSON array,
    so the parsed document is returned untyped and narrowed by the caller.
    """

    def get_json(self, url: str, *, timeout: float | None = None) -> Result[object, HttpError]:
        """Fetch URL and parse the body as JSON.

        ``timeout`` caps this request below the client default.
        """
        ...


class RealHttpClient:
    """urllib-backed client using the system certificate store."""

    def __init__(self, timeout: float = 30.0, user_agent: str = f"shipit/{__version__}") -> None:
        self.timeout = timeout
        self.user_agent = user_agent
        self._ssl_context = ssl.create_default_context()

    def _fetch(self, url: str, timeout: float) -> Result[bytes, HttpError]:
        try:
            req = urllib.request.Request(
                url,
                headers={"User-Agent": self.user_agent, "Accept": "application/json"},
            )
            with urllib.request.urlopen(
                req,
                timeout=timeout,
                context=self._ssl_context,
            ) as response:
                return Ok(response.read())
        except urllib.error.HTTPError as e:
            return Err(HttpError(url=url, status=e.code, message=str(e.reason)))
        except urllib.error.URLError as e:
            return Err(HttpError(url=url, status=0, message=str(e.reason)))
        except TimeoutError:
            return Err(HttpError(url=url, status=0, message="Request timed out"))
        except HTTPException as e:
            # Connection dropped mid-body (IncompleteRead, RemoteDisconnected)
            return Err(HttpError(url=url, status=0, message=f"{type(e).__name__}: {e}"))
        except ValueError as e:
            return Err(HttpError(url=url, status=0, message=str(e)))
        except OSError as e:
            return Err(HttpError(url=url, status=0, message=str(e)))

    def get_json(self, url: str, *, timeout: float | None = None) -> Result[object, HttpError]:
        """Fetch URL and parse as JSON."""
        limit = self.timeout if timeout is None else min(self.timeout, timeout)
        result = self._fetch(url, max(limit, 0.1))
        if isinstance(result, Err):
            return result

        try:
            data: object = json.loads(result.value.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            return Err(HttpError(url=url, status=0, message=f"JSON parse error: {e}"))
        return Ok(data)


class MockHttpClient:
    """Mock HTTP client for testing.

    Responses can be fixed per URL, or queued so successive calls see the
    registry change over time (the last queued response repeats).

    Usage:
        client = MockHttpClient()
        client.set_json("https://registry.example/pkg", {"latestVersion": "1.0.0"})
        result = client.get_json("https://registry.example/pkg")
        assert result == Ok({"latestVersion": "1.0.0"})
    """

    def __init__(self) -> None:
        self._responses: dict[str, list[object | HttpError]] = {}
        self.calls: list[str] = []
        self.timeouts: list[float | None] = []

    def set_json(self, url: str, response: object | HttpError) -> None:
        """Set the response for URL, replacing any queued ones."""
        self._responses[url] = [response]

    def queue_json(self, url: str, *responses: object | HttpError) -> None:
        """Append responses served in order for URL."""
        self._responses.setdefault(url, []).extend(responses)

    def calls_to(self, url: str) -> int:
        return sum(1 for u in self.calls if u == url)

    def get_json(self, url: str, *, timeout: float | None = None) -> Result[object, HttpError]:
        """Get mocked JSON response."""
        self.calls.append(url)
        self.timeouts.append(timeout)

        queue = self._responses.get(url)
        if not queue:
            return Err(HttpError(url=url, status=404, message="Not found (mock)"))

        response = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(response, HttpError):
            return Err(response)
        return Ok(response)
