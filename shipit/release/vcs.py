"""Version-Control Adapter.

Translates repository state into release decisions (last tag, commits,
bump) and performs the release's git mutations together with their
compensating actions. Nothing here retries: a git failure is returned as a
ReleaseError carrying the command and git's own diagnostics.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from shipit.core.result import Err, Ok, Result
from shipit.git.commits import LOG_FORMAT, BumpDecision, CommitRecord, compute_bump, parse_log
from shipit.git.repository import Repository
from shipit.output.console import ConsoleProtocol, Style

from .errors import ReleaseError, from_git_error
from .semver import highest_tag

__all__ = [
    "CommitInfo",
    "TagRollback",
    "VersionControlAdapter",
    "release_commit_message",
]


def release_commit_message(template: str, version: str) -> str:
    return template.replace("{version}", version)


@dataclass(frozen=True, slots=True)
class CommitInfo:
    previous_head: str
    commit: str
    files: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class TagRollback:
    local_deleted: bool
    remote_deleted: bool


class VersionControlAdapter:
    def __init__(
        self,
        repo: Repository,
        console: ConsoleProtocol,
        *,
        tag_prefix: str = "v",
        commit_message: str = "chore(release): bump version to {version}",
    ) -> None:
        self.repo = repo
        self.tag_prefix = tag_prefix
        self.commit_message = commit_message
        self._console = console

    def tag_name(self, version: str) -> str:
        return f"{self.tag_prefix}{version}"

    # -- history ---------------------------------------------------------

    def last_release_tag(self) -> Result[str, ReleaseError]:
        """Highest ``{prefix}*`` tag by version ordering, "" if there is none."""
        result = self.repo.tags(f"{self.tag_prefix}*")
        if isinstance(result, Err):
            return Err(from_git_error(result.error, message="cannot list tags"))
        best = highest_tag(result.value, self.tag_prefix)
        return Ok(best[0] if best is not None else "")

    def commits_since(self, tag: str) -> Result[list[CommitRecord], ReleaseError]:
        """Non-merge commits after ``tag`` (the whole history when tag is "")."""
        revision = f"{tag}..HEAD" if tag else "HEAD"
        result = self.repo.log(revision, LOG_FORMAT)
        if isinstance(result, Err):
            return Err(from_git_error(result.error, message=f"cannot read history for {revision}"))
        return Ok(parse_log(result.value))

    def bump_since(self, tag: str) -> Result[BumpDecision, ReleaseError]:
        return self.commits_since(tag).map(compute_bump)

    def head(self) -> Result[str, ReleaseError]:
        result = self.repo.head_sha()
        if isinstance(result, Err):
            return Err(from_git_error(result.error, message="cannot resolve HEAD"))
        return Ok(result.value)

    # -- forward operations ----------------------------------------------

    def commit_release(self, version: str, files: Sequence[str]) -> Result[CommitInfo, ReleaseError]:
        """Stage exactly ``files`` and commit them.

        A failed commit unstages what was staged, so the index is left as
        it was found.
        """
        head = self.head()
        if isinstance(head, Err):
            return head
        previous_head = head.value

        self._echo("add", "--", *files)
        added = self.repo.add(files)
        if isinstance(added, Err):
            self._unstage(previous_head, files)
            return Err(from_git_error(added.error, message="cannot stage release files"))

        message = release_commit_message(self.commit_message, version)
        self._echo("commit", "-m", message)
        committed = self.repo.commit(message)
        if isinstance(committed, Err):
            self._unstage(previous_head, files)
            return Err(from_git_error(committed.error, message="release commit failed"))

        new_head = self.head()
        if isinstance(new_head, Err):
            return new_head
        return Ok(CommitInfo(previous_head=previous_head, commit=new_head.value, files=tuple(files)))

    def create_tag(self, version: str) -> Result[str, ReleaseError]:
        tag = self.tag_name(version)
        self._echo("tag", "-a", tag, "-m", f"Release {version}")
        result = self.repo.tag_annotated(tag, f"Release {version}")
        if isinstance(result, Err):
            return Err(from_git_error(result.error, message=f"cannot create tag {tag}"))
        return Ok(tag)

    def push(self, remote: str, branch: str, tag: str) -> Result[None, ReleaseError]:
        """Push the branch head, then the tag."""
        for refspec in (f"HEAD:refs/heads/{branch}", f"refs/tags/{tag}:refs/tags/{tag}"):
            self._echo("push", remote, refspec)
            result = self.repo.push(remote, [refspec])
            if isinstance(result, Err):
                return Err(
                    from_git_error(
                        result.error,
                        remote=True,
                        message=f"push of {refspec} to {remote} failed",
                    )
                )
        return Ok(None)

    # -- queries used for verification -----------------------------------

    def remote_tag_exists(self, tag: str, remote: str) -> Result[bool, ReleaseError]:
        result = self.repo.ls_remote_tags(remote, tag)
        if isinstance(result, Err):
            return Err(from_git_error(result.error, remote=True, message=f"cannot query tags on {remote}"))
        wanted = f"refs/tags/{tag}"
        return Ok(any(ref in (wanted, f"{wanted}^{{}}") for ref in result.value))

    def local_tag_exists(self, tag: str) -> Result[bool, ReleaseError]:
        result = self.repo.ref_exists(f"refs/tags/{tag}")
        if isinstance(result, Err):
            return Err(from_git_error(result.error, message=f"cannot look up tag {tag}"))
        return Ok(result.value)

    def remote_branch_head(self, remote: str, branch: str) -> Result[str | None, ReleaseError]:
        result = self.repo.ls_remote_head(remote, branch)
        if isinstance(result, Err):
            return Err(from_git_error(result.error, remote=True, message=f"cannot query {remote}/{branch}"))
        return Ok(result.value)

    def landed_release_commit(self, previous_head: str, version: str) -> Result[str | None, ReleaseError]:
        """Find a release commit an interrupted run left on HEAD.

        Ok(None) when HEAD is still ``previous_head``. HEAD is taken as the
        release commit only when its parent is ``previous_head`` and its
        subject is the release message; any other HEAD is an error.
        """
        head = self.head()
        if isinstance(head, Err):
            return head
        if head.value == previous_head:
            return Ok(None)

        expected = release_commit_message(self.commit_message, version).splitlines()[0]
        parent = self.repo.rev_parse("HEAD^")
        subject = self.repo.subject("HEAD")
        if (
            isinstance(parent, Ok)
            and parent.value == previous_head
            and isinstance(subject, Ok)
            and subject.value == expected
        ):
            return Ok(head.value)
        return Err(
            ReleaseError(
                kind="version_control_error",
                message=f"HEAD moved to {head.value[:12]} and is not the release commit on {previous_head[:12]}",
                hint="inspect the history and reset manually",
            )
        )

    # -- compensating actions --------------------------------------------

    def rollback_tag(self, tag: str, remote: str) -> Result[TagRollback, ReleaseError]:
        """Delete ``tag`` locally, and remotely only when the remote has it."""
        local = self.local_tag_exists(tag)
        if isinstance(local, Err):
            return local
        local_deleted = False
        if local.value:
            self._echo("tag", "-d", tag)
            deleted = self.repo.delete_tag(tag)
            if isinstance(deleted, Err):
                return Err(from_git_error(deleted.error, message=f"cannot delete local tag {tag}"))
            local_deleted = True

        on_remote = self.remote_tag_exists(tag, remote)
        if isinstance(on_remote, Err):
            return on_remote
        if not on_remote.value:
            self._console.print(f"tag {tag} not on {remote}; nothing to delete remotely", Style.DIM)
            return Ok(TagRollback(local_deleted=local_deleted, remote_deleted=False))

        self._echo("push", remote, f":refs/tags/{tag}")
        pushed = self.repo.push(remote, [f":refs/tags/{tag}"])
        if isinstance(pushed, Err):
            return Err(
                from_git_error(pushed.error, remote=True, message=f"cannot delete tag {tag} on {remote}")
            )
        return Ok(TagRollback(local_deleted=local_deleted, remote_deleted=True))

    def rollback_commit(
        self,
        previous_head: str,
        release_commit: str,
        files: Sequence[str],
    ) -> Result[bool, ReleaseError]:
        """Soft-reset the release commit away and unstage the release files.

        Refuses when HEAD is neither the release commit nor the pre-commit
        head: someone committed on top and resetting would lose work.
        Returns Ok(False) when HEAD was already back at ``previous_head``.
        """
        head = self.head()
        if isinstance(head, Err):
            return head

        if head.value == release_commit:
            self._echo("reset", "--soft", previous_head)
            reset = self.repo.reset_soft(previous_head)
            if isinstance(reset, Err):
                return Err(from_git_error(reset.error, message="cannot reset release commit"))
        elif head.value != previous_head:
            return Err(
                ReleaseError(
                    kind="version_control_error",
                    message=f"HEAD moved to {head.value[:12]} since the release commit {release_commit[:12]}",
                    hint="inspect the history and reset manually",
                )
            )
        else:
            # Index may still hold the release changes after an interrupted run.
            unstaged = self._unstage(previous_head, files)
            if isinstance(unstaged, Err):
                return unstaged
            return Ok(False)

        unstaged = self._unstage(previous_head, files)
        if isinstance(unstaged, Err):
            return unstaged
        return Ok(True)

    def reset_remote_branch(
        self,
        remote: str,
        branch: str,
        release_commit: str,
        previous_head: str,
    ) -> Result[bool, ReleaseError]:
        """Move ``remote/branch`` back from the release commit to ``previous_head``.

        Uses ``--force-with-lease`` pinned to the release commit, so a branch
        someone else has since advanced is never overwritten. Returns
        Ok(False) when the branch is not at the release commit.
        """
        current = self.remote_branch_head(remote, branch)
        if isinstance(current, Err):
            return current
        if current.value != release_commit:
            return Ok(False)

        refspec = f"{previous_head}:refs/heads/{branch}"
        lease = f"refs/heads/{branch}:{release_commit}"
        self._echo("push", f"--force-with-lease={lease}", remote, refspec)
        result = self.repo.push(remote, [refspec], force_with_lease=lease)
        if isinstance(result, Err):
            return Err(
                from_git_error(
                    result.error,
                    remote=True,
                    message=f"cannot reset {remote}/{branch} to {previous_head[:12]}",
                )
            )
        return Ok(True)

    # -- helpers ---------------------------------------------------------

    def _unstage(self, rev: str, files: Sequence[str]) -> Result[None, ReleaseError]:
        if not files:
            return Ok(None)
        self._echo("reset", "-q", rev, "--", *files)
        result = self.repo.unstage(rev, files)
        if isinstance(result, Err):
            return Err(from_git_error(result.error, message="cannot unstage release files"))
        return Ok(None)

    def _echo(self, *args: str) -> None:
        self._console.print(f"$ git {' '.join(args)}", Style.DIM)
