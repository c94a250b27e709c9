"""Platform abstraction layer: processes and files."""

from .files import atomic_write_bytes, atomic_write_text, read_bytes_or_none
from .process import NON_INTERACTIVE_ENV, ProcessError, run

__all__ = [
    # files
    "atomic_write_bytes",
    "atomic_write_text",
    "read_bytes_or_none",
    # process
    "NON_INTERACTIVE_ENV",
    "ProcessError",
    "run",
]
