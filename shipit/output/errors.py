"""Error and outcome presentation.

Centralized formatting for release errors and terminal outcomes, so every
command reports what failed, what is durable and what is left to do the
same way.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from shipit.output.console import Style

if TYPE_CHECKING:
    from shipit.output.console import ConsoleProtocol
    from shipit.release.coordinator import ReleaseOutcome
    from shipit.release.errors import ReleaseError

__all__ = ["print_outcome", "print_release_error"]


def print_release_error(error: ReleaseError, console: ConsoleProtocol) -> None:
    """Print a release error, including the git command and stderr if any."""
    console.error(f"[{error.kind}] {error.message}")
    if error.command:
        console.print(f"command: {error.command}", Style.DIM)
    if error.stderr:
        for line in error.stderr.splitlines():
            console.print(f"  {line}", Style.DIM)
    if error.hint:
        console.print(f"hint: {error.hint}", Style.DIM)


def print_outcome(outcome: ReleaseOutcome, console: ConsoleProtocol) -> int:
    """Print a terminal outcome and return its process exit code."""
    code = outcome.exit_code
    session = outcome.session

    console.newline()
    if session is not None and outcome.state is not None:
        console.field("session", session.session_id)
        console.field("state", str(outcome.state))
        if session.target_version:
            console.field("version", f"{session.previous_version} -> {session.target_version}")
            console.field("bump", str(session.bump))
            console.field("tag", session.tag)

    if outcome.failure is not None:
        print_release_error(outcome.failure, console)
    elif outcome.warning:
        console.warning(outcome.warning)

    if outcome.rollback is not None:
        report = outcome.rollback
        console.field(
            "rollback",
            f"{len(report.rolled_back)} rolled back, {len(report.reverified)} re-verified, "
            f"{len(report.untouched)} untouched",
        )

    if outcome.durable:
        console.print("still in effect:", Style.BOLD)
        for fact in outcome.durable:
            console.print(f"  - {fact}")

    if outcome.manual_steps:
        console.print("manual steps:", Style.BOLD)
        for step in outcome.manual_steps:
            console.print(f"  {step}")

    if code.is_success:
        console.success(str(code))
    elif code.needs_operator:
        console.warning(f"exit {int(code)}: {code}")
    else:
        console.error(f"exit {int(code)}: {code}")
    return int(code)
