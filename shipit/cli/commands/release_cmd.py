from __future__ import annotations

import typer

from shipit.cli.commands._helpers import coordinator_for, exit_on_error, exit_with_code, parse_bump
from shipit.cli.context import CLIContext, build_context
from shipit.core.errors import ErrorCode
from shipit.git.commits import BumpLevel
from shipit.output.console import Style
from shipit.output.errors import print_outcome
from shipit.release.coordinator import ReleasePreview
from shipit.release.vcs import release_commit_message


def plan(
    bump: str | None = typer.Option(None, "--bump", help="Force a bump level: major, minor or patch."),
) -> None:
    """Show the last tag, the commits since, and the version a release would create."""
    ctx = build_context()
    coordinator = coordinator_for(ctx)
    release_plan = exit_on_error(coordinator.plan(parse_bump(bump)), ctx)
    console = ctx.console

    console.field("last tag", release_plan.previous_tag or "(none)")
    console.field("commits", str(len(release_plan.commits)))
    for commit in release_plan.commits:
        scope = f"({commit.scope})" if commit.scope else ""
        marker = "!" if commit.breaking else ""
        console.print(f"  {commit.hash} {commit.type}{scope}{marker}: {commit.description}", Style.DIM)

    forced = " (forced)" if release_plan.forced else ""
    console.field("bump", f"{release_plan.level}{forced}")
    if release_plan.level is BumpLevel.NONE:
        console.info("nothing to release")
        return
    console.field("next version", f"{release_plan.previous_version} -> {release_plan.target}")
    console.field("tag", release_plan.tag)


def release(
    bump: str | None = typer.Option(None, "--bump", help="Force a bump level: major, minor or patch."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Print actions without mutating"),
) -> None:
    """Bump, commit, tag, push and confirm publication of the next version."""
    ctx = build_context()
    coordinator = coordinator_for(ctx)
    forced = parse_bump(bump)

    if dry_run:
        _print_preview(exit_on_error(coordinator.preview(forced), ctx), ctx)
        return

    if not yes:
        release_plan = exit_on_error(coordinator.plan(forced), ctx)
        if release_plan.level is not BumpLevel.NONE:
            ctx.console.field("release", f"{release_plan.tag} ({release_plan.level})")
            ctx.console.field("push to", ctx.config.release.remote)
            if not typer.confirm("Proceed?", default=False):
                exit_with_code(int(ErrorCode.USER_ERROR))

    outcome = coordinator.release(forced)
    exit_with_code(print_outcome(outcome, ctx.console))


def _print_preview(preview: ReleasePreview, ctx: CLIContext) -> None:
    console = ctx.console
    release_plan = preview.plan
    remote = ctx.config.release.remote
    message = release_commit_message(ctx.config.release.commit_message, str(release_plan.target))
    console.field("release", f"{release_plan.tag} ({release_plan.level})")
    console.field("branch", preview.branch)
    for path, diff in preview.diffs:
        if not diff:
            console.print(f"{path}: unchanged", Style.DIM)
            continue
        for line in diff.splitlines():
            if line.startswith("+") and not line.startswith("+++"):
                console.print(line, Style.SUCCESS)
            elif line.startswith("-") and not line.startswith("---"):
                console.print(line, Style.ERROR)
            else:
                console.print(line, Style.DIM)
    if preview.diffs:
        console.print(f"$ git commit -m \"{message.splitlines()[0]}\"", Style.DIM)
    console.print(f"$ git tag -a {release_plan.tag}", Style.DIM)
    console.print(f"$ git push {remote} HEAD:refs/heads/{preview.branch}", Style.DIM)
    console.print(f"$ git push {remote} refs/tags/{release_plan.tag}:refs/tags/{release_plan.tag}", Style.DIM)
    if preview.notes is not None:
        console.print(f"$ gh release create {release_plan.tag} --verify-tag", Style.DIM)
        for line in preview.notes.splitlines():
            console.print(f"  {line}", Style.DIM)
    console.info("dry run: nothing was changed")


def rollback(
    session: str | None = typer.Option(None, "--session", help="Session id (defaults to the latest)."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation."),
) -> None:
    """Undo the most recent release, including a pushed tag."""
    ctx = build_context()
    coordinator = coordinator_for(ctx)

    if not yes:
        candidates = exit_on_error(coordinator.rollback_candidates(), ctx)
        target = next((s for s in candidates if session is None or s.session_id == session), None)
        if target is not None:
            ctx.console.field("session", target.session_id)
            ctx.console.field("state", str(target.state))
            ctx.console.field("tag", f"{target.tag} on {target.remote}")
            ctx.console.warning("this deletes the tag (also remotely) and resets the release commit")
            if not typer.confirm("Roll back?", default=False):
                exit_with_code(int(ErrorCode.USER_ERROR))

    outcome = coordinator.rollback(session)
    exit_with_code(print_outcome(outcome, ctx.console))


def status() -> None:
    """List persisted release sessions."""
    ctx = build_context()
    coordinator = coordinator_for(ctx)
    sessions = exit_on_error(coordinator.store.sessions(), ctx)

    if not sessions:
        ctx.console.info("no release sessions")
        return

    for s in sessions:
        version = s.target_version or "?"
        style = Style.DEFAULT if s.is_reconciled else Style.WARNING
        ctx.console.print(f"{s.session_id}  {s.started_at}  {s.state:<22}  {version}", style)
        if s.warning:
            ctx.console.print(f"  {s.warning}", Style.DIM)
        elif s.failure is not None:
            ctx.console.print(f"  {s.failure.message}", Style.DIM)
