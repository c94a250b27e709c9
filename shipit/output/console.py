"""Where release progress goes.

Services report progress through ``ConsoleProtocol`` rather than printing,
so the release engine can be driven by the rich-backed CLI or by tests
that capture every line (``MockConsole``).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Protocol

__all__ = [
    "ConsoleProtocol",
    "MockConsole",
    "OutputRecord",
    "RichConsole",
    "Style",
]


class Style(Enum):
    """Rich style names a message can be rendered with."""

    DEFAULT = auto()
    SUCCESS = auto()
    ERROR = auto()
    WARNING = auto()
    INFO = auto()
    DIM = auto()  # commands being run, hints
    BOLD = auto()
    HEADER = auto()  # state transitions, section titles

    def __str__(self) -> str:
        return self.name.lower()


class ConsoleProtocol(Protocol):
    """Output sink used by every service.

    Implementations can use Rich, plain text, or capture output for tests.
    """

    def print(self, message: str, style: Style = Style.DEFAULT) -> None:
        """Emit one line, styled when the sink supports it."""
        ...

    def success(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...

    def warning(self, message: str) -> None: ...

    def info(self, message: str) -> None: ...

    def header(self, message: str) -> None:
        """Print a section header (used for state transitions)."""
        ...

    def field(self, label: str, value: str) -> None:
        """Print an aligned ``label: value`` summary line."""
        ...

    def newline(self) -> None: ...


_FIELD_WIDTH = 16


class RichConsole:
    """Terminal sink rendered with rich.

    Markup in messages is escaped: commit subjects and git stderr are
    user-controlled text and may contain square brackets.
    """

    def __init__(self, *, stderr: bool = False, no_color: bool = False) -> None:
        # rich stays out of import time for library users
        from rich.console import Console

        self._console = Console(stderr=stderr, no_color=no_color, highlight=False)
        self._style_map = {
            Style.DEFAULT: "",
            Style.SUCCESS: "green",
            Style.ERROR: "red bold",
            Style.WARNING: "yellow",
            Style.INFO: "cyan",
            Style.DIM: "dim",
            Style.BOLD: "bold",
            Style.HEADER: "blue bold",
        }

    @staticmethod
    def _esc(message: str) -> str:
        from rich.markup import escape

        return escape(message)

    def print(self, message: str, style: Style = Style.DEFAULT) -> None:
        rich_style = self._style_map.get(style, "")
        if rich_style:
            self._console.print(self._esc(message), style=rich_style)
        else:
            self._console.print(self._esc(message))

    def success(self, message: str) -> None:
        self._console.print(f"[green]ok[/green] {self._esc(message)}")

    def error(self, message: str) -> None:
        self._console.print(f"[red bold]error:[/red bold] {self._esc(message)}")

    def warning(self, message: str) -> None:
        self._console.print(f"[yellow]warning:[/yellow] {self._esc(message)}")

    def info(self, message: str) -> None:
        self._console.print(f"[cyan]info:[/cyan] {self._esc(message)}")

    def header(self, message: str) -> None:
        self._console.print(f"\n[blue bold]==> {self._esc(message)}[/blue bold]")

    def field(self, label: str, value: str) -> None:
        self._console.print(f"[bold]{self._esc(label + ':'):<{_FIELD_WIDTH}}[/bold] {self._esc(value)}")

    def newline(self) -> None:
        self._console.print()


@dataclass
class OutputRecord:
    """One captured line with the style it was emitted in."""

    message: str
    style: Style


def _empty_outputs() -> list[OutputRecord]:
    """Factory for empty outputs list (helps type inference)."""
    return []


@dataclass
class MockConsole:
    """Records every line instead of printing, so tests can assert on release output."""

    outputs: list[OutputRecord] = field(default_factory=_empty_outputs)

    def print(self, message: str, style: Style = Style.DEFAULT) -> None:
        self.outputs.append(OutputRecord(message, style))

    def success(self, message: str) -> None:
        self.outputs.append(OutputRecord(f"ok {message}", Style.SUCCESS))

    def error(self, message: str) -> None:
        self.outputs.append(OutputRecord(f"error: {message}", Style.ERROR))

    def warning(self, message: str) -> None:
        self.outputs.append(OutputRecord(f"warning: {message}", Style.WARNING))

    def info(self, message: str) -> None:
        self.outputs.append(OutputRecord(f"info: {message}", Style.INFO))

    def header(self, message: str) -> None:
        self.outputs.append(OutputRecord(message, Style.HEADER))

    def field(self, label: str, value: str) -> None:
        self.outputs.append(OutputRecord(f"{label}: {value}", Style.DEFAULT))

    def newline(self) -> None:
        self.outputs.append(OutputRecord("", Style.DEFAULT))

    # Test helpers

    def clear(self) -> None:
        self.outputs.clear()

    @property
    def messages(self) -> list[str]:
        return [o.message for o in self.outputs]

    @property
    def text(self) -> str:
        return "\n".join(self.messages)

    @property
    def headers(self) -> list[str]:
        return [o.message for o in self.outputs if o.style == Style.HEADER]

    def has_error(self) -> bool:
        return any(o.style == Style.ERROR for o in self.outputs)

    def has_warning(self) -> bool:
        return any(o.style == Style.WARNING for o in self.outputs)

    def find(self, substring: str) -> list[OutputRecord]:
        """Captured lines that contain ``substring``."""
        return [o for o in self.outputs if substring in o.message]
