"""Protocol definitions for Branchwise.

GitBackend is the boundary to the external version-control engine. Every
call is a whole operation; nothing relies on streamed partial output.
Implementations raise BackendError when a command fails.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Literal, Protocol, runtime_checkable

if TYPE_CHECKING:
    from branchwise.models.plan import ForceMode
    from branchwise.models.refs import CommitInfo


ResetMode = Literal["soft", "mixed", "hard", "keep"]
InProgress = Literal["cherry-pick", "rebase", "merge"]


@runtime_checkable
class GitBackend(Protocol):
    """Query and mutation operations consumed from the engine."""

    # -- queries -----------------------------------------------------------

    def current_branch(self) -> str | None:
        """Checked-out branch name, or None when HEAD is detached."""
        ...

    def head_commit(self) -> str | None:
        """Commit id HEAD resolves to, or None in an empty repository."""
        ...

    def local_branches(self) -> list[str]: ...

    def remote_branches(self) -> list[str]:
        """Remote-tracking branches (``origin/main``), symbolic HEAD refs excluded."""
        ...

    def remotes(self) -> list[str]: ...

    def remote_default_branch(self, remote: str) -> str | None:
        """Branch ``<remote>/HEAD`` points at, without the remote prefix."""
        ...

    def upstream_of(self, branch: str) -> str | None: ...

    def resolve_commit(self, rev: str) -> str | None:
        """Full commit id for a revision, or None if it does not resolve."""
        ...

    def commit_info(self, rev: str) -> CommitInfo: ...

    def commit_files(self, rev: str) -> list[str]: ...

    def ahead_behind(self, branch: str, upstream: str) -> tuple[int, int]: ...

    def is_ancestor(self, ancestor: str, descendant: str) -> bool: ...

    def rev_list(self, include: list[str], exclude: list[str] | None = None) -> list[str]:
        """Commits reachable from ``include`` and from none of ``exclude``, newest first."""
        ...

    def is_clean(self, *, ignore_untracked: bool = False) -> bool: ...

    def in_progress(self) -> InProgress | None:
        """Multi-step operation the engine is in the middle of, if any."""
        ...

    # -- mutations ---------------------------------------------------------

    def fetch(self, remote: str) -> None: ...

    def checkout(self, ref: str, *, detach: bool = False) -> None: ...

    def set_branch(self, name: str, commit: str) -> None:
        """Create ``name`` at ``commit`` or move it there."""
        ...

    def delete_branch(self, name: str) -> None: ...

    def merge(self, ref: str, *, ff_only: bool = False) -> None: ...

    def rebase(self, onto: str) -> None: ...

    def cherry_pick(self, commit: str) -> None: ...

    def reset(self, commit: str, *, mode: ResetMode = "soft") -> None: ...

    def commit(self, message: str) -> str: ...

    def push(
        self,
        remote: str,
        refspec: str,
        *,
        set_upstream: bool = False,
        force: ForceMode | None = None,
    ) -> None: ...

    def abort(self, operation: InProgress) -> None: ...
