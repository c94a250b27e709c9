"""Deferred Ctrl-C while a rollback runs.

An interrupted rollback cannot be told apart from a corrupted one, so
SIGINT/SIGTERM are recorded instead of acted on until the block exits.
"""

from __future__ import annotations

import signal
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from types import FrameType

__all__ = ["defer_interrupts"]

_SIGNALS = (signal.SIGINT, signal.SIGTERM)


@contextmanager
def defer_interrupts(on_deferred: Callable[[int], None] | None = None) -> Iterator[list[int]]:
    """Swallow SIGINT/SIGTERM inside the block, reporting each one.

    Yields the list of signals received. Outside the main thread (where
    handlers cannot be installed) this is a no-op.
    """
    received: list[int] = []
    if threading.current_thread() is not threading.main_thread():
        yield received
        return

    def handler(signum: int, _frame: FrameType | None) -> None:
        received.append(signum)
        if on_deferred is not None:
            on_deferred(signum)

    previous = {sig: signal.signal(sig, handler) for sig in _SIGNALS}
    try:
        yield received
    finally:
        for sig, old in previous.items():
            signal.signal(sig, old)
