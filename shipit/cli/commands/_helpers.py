"""Shared helpers for CLI commands."""

from __future__ import annotations

from typing import TYPE_CHECKING, NoReturn

import typer

from shipit.cli.interrupts import defer_interrupts
from shipit.core.errors import ErrorCode
from shipit.core.result import Err, Result
from shipit.git.commits import BumpLevel
from shipit.output.errors import print_release_error
from shipit.release.coordinator import ReleaseCoordinator, build_coordinator
from shipit.release.errors import ReleaseError

if TYPE_CHECKING:
    from shipit.cli.context import CLIContext


def exit_on_error[T](
    result: Result[T, ReleaseError],
    ctx: CLIContext,
    error_code: ErrorCode = ErrorCode.USER_ERROR,
) -> T:
    """Return the value of an Ok result, or print the error and exit."""
    if isinstance(result, Err):
        print_release_error(result.error, ctx.console)
        raise typer.Exit(code=int(error_code))
    return result.value


def exit_with_code(code: int) -> NoReturn:
    """Exit with given code. Explicit helper for clarity."""
    raise typer.Exit(code=code)


def parse_bump(value: str | None) -> BumpLevel | None:
    if value is None:
        return None
    level = BumpLevel.parse(value)
    if level is None or level is BumpLevel.NONE:
        typer.echo(f"error: --bump must be major, minor or patch (got {value!r})", err=True)
        exit_with_code(int(ErrorCode.USER_ERROR))
    return level


def coordinator_for(ctx: CLIContext) -> ReleaseCoordinator:
    def notice(_: int) -> None:
        ctx.console.warning("interrupt received; rollback continues until it reaches a terminal state")

    return exit_on_error(
        build_coordinator(
            ctx.repo_root,
            ctx.config,
            ctx.console,
            guard=lambda: defer_interrupts(notice),
        ),
        ctx,
    )
