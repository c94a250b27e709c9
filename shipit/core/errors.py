"""Process exit codes.

A release ends in one of a small set of terminal states; each maps to a
stable exit code so CI scripts can branch on the outcome without parsing
output.
"""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    """Exit codes for CLI commands.

    These values are used as process exit codes and should remain stable:
    - 0: Release completed (or read-only command succeeded)
    - 1: Release failed before push and was rolled back cleanly
    - 2: Rollback could not be verified; manual intervention required
    - 3: Release pushed, but publication could not be confirmed
    - 4: User error (bad input, bad config); no session was started
    """

    OK = 0
    ROLLED_BACK = 1
    ROLLBACK_FAILED = 2
    PUBLISHED_WITH_WARNING = 3
    USER_ERROR = 4

    def __str__(self) -> str:
        """Return human-readable name."""
        return self.name.lower().replace("_", " ")

    @property
    def is_success(self) -> bool:
        """Check if this code indicates success."""
        return self == ErrorCode.OK

    @property
    def needs_operator(self) -> bool:
        """True when a human has to inspect the repository state."""
        return self in (ErrorCode.ROLLBACK_FAILED, ErrorCode.PUBLISHED_WITH_WARNING)
