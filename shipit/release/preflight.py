"""Release readiness checks and version planning.

``plan_release`` is read-only and also backs ``shipit plan``.
``run_preflight`` adds the checks that must pass before anything is
mutated; every failure is a ``preflight_failure`` with a hint.
"""

from __future__ import annotations

from dataclasses import dataclass

from shipit.core.config import ReleaseConfig
from shipit.core.result import Err, Ok, Result
from shipit.git.commits import BumpDecision, BumpLevel, CommitRecord, compute_bump

from .errors import ReleaseError
from .semver import SemVer, parse_tag, parse_version
from .store import SessionStore
from .vcs import VersionControlAdapter

__all__ = ["ReleasePlan", "plan_release", "run_preflight"]


@dataclass(frozen=True, slots=True)
class ReleasePlan:
    previous_tag: str
    previous_version: SemVer
    decision: BumpDecision
    level: BumpLevel
    target: SemVer
    tag: str

    @property
    def commits(self) -> tuple[CommitRecord, ...]:
        return self.decision.commits

    @property
    def forced(self) -> bool:
        return self.level != self.decision.level


def _fail(message: str, hint: str | None = None) -> Err[ReleaseError]:
    return Err(ReleaseError(kind="preflight_failure", message=message, hint=hint))


def plan_release(
    vcs: VersionControlAdapter,
    config: ReleaseConfig,
    forced: BumpLevel | None = None,
) -> Result[ReleasePlan, ReleaseError]:
    """Derive the next version from the last tag and the commits since."""
    head = vcs.head()
    if isinstance(head, Err):
        return _fail("repository has no commits yet", "commit something before releasing")

    last = vcs.last_release_tag()
    if isinstance(last, Err):
        return last
    previous_tag = last.value

    if previous_tag:
        previous = parse_tag(previous_tag, vcs.tag_prefix)
    else:
        previous = parse_version(config.initial_version)
    if previous is None:
        return Err(
            ReleaseError(
                kind="invalid_input",
                message=f"invalid initial version: {config.initial_version!r}",
                hint="release.initial_version must be MAJOR.MINOR.PATCH",
            )
        )

    commits = vcs.commits_since(previous_tag)
    if isinstance(commits, Err):
        return commits

    decision = compute_bump(commits.value)
    level = forced if forced is not None else decision.level
    target = previous.bump(level)
    return Ok(
        ReleasePlan(
            previous_tag=previous_tag,
            previous_version=previous,
            decision=decision,
            level=level,
            target=target,
            tag=vcs.tag_name(str(target)),
        )
    )


def run_preflight(
    vcs: VersionControlAdapter,
    store: SessionStore,
    config: ReleaseConfig,
    *,
    forced: BumpLevel | None = None,
    session_id: str | None = None,
) -> Result[tuple[ReleasePlan, str], ReleaseError]:
    """Check the repository is ready and plan the release.

    Returns the plan and the branch to push.
    """
    repo = vcs.repo
    if not repo.exists():
        return _fail(f"{repo.path} is not a git repository")

    status = repo.status()
    if isinstance(status, Err):
        return Err(ReleaseError(kind="preflight_failure", message=status.error.message, command="git status"))
    if not status.value.is_clean:
        paths = ", ".join(e.path for e in status.value.entries[:5])
        return _fail(f"working tree has uncommitted changes ({paths})", "commit or stash them first")

    branch = config.branch or repo.current_branch()
    if branch is None:
        return _fail("HEAD is detached", "check out a branch or set release.branch")

    remote = repo.remote_url(config.remote)
    if isinstance(remote, Err):
        return _fail(f"remote {config.remote!r} is not configured", "git remote add, or set release.remote")

    pending = store.unreconciled(exclude=session_id)
    if isinstance(pending, Err):
        return pending
    if pending.value:
        s = pending.value[-1]
        return _fail(
            f"session {s.session_id} is unreconciled (state: {s.state})",
            "run `shipit rollback` to reconcile it first",
        )

    planned = plan_release(vcs, config, forced)
    if isinstance(planned, Err):
        return planned
    plan = planned.value

    if plan.level is BumpLevel.NONE:
        since = plan.previous_tag or "the beginning of history"
        return _fail(f"no commits since {since} require a release", "use --bump to force a level")

    if parse_version(str(plan.target)) is None:
        return _fail(f"computed version {plan.target} is not valid")

    exists = vcs.local_tag_exists(plan.tag)
    if isinstance(exists, Err):
        return exists
    if exists.value:
        return _fail(f"tag {plan.tag} already exists", "delete it or release a different version")

    return Ok((plan, branch))
