"""Branch state models: divergence, classification and repository snapshots."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field


class BranchClassification(str, enum.Enum):
    """Relationship of a branch to its upstream."""

    UP_TO_DATE = "up-to-date"
    AHEAD = "ahead"
    BEHIND = "behind"
    DIVERGED = "diverged"
    NO_UPSTREAM = "no-upstream"
    DETACHED = "detached"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Divergence:
    """Commits on the branch but not upstream (ahead) and vice versa (behind)."""

    ahead: int = 0
    behind: int = 0

    def __post_init__(self) -> None:
        if self.ahead < 0 or self.behind < 0:
            raise ValueError(
                f"Divergence counts must be non-negative (ahead={self.ahead}, behind={self.behind})"
            )

    def __str__(self) -> str:
        return f"+{self.ahead}/-{self.behind}"


@dataclass(frozen=True)
class BranchState:
    """Classifier output for one branch.

    Attributes:
        name: Branch name, or None when HEAD is detached and the current
            branch was requested.
        classification: The derived BranchClassification.
        divergence: Ahead/behind counts, or None without an upstream.
        upstream: Upstream ref name, or None.
        is_clean: Working tree has no staged or unstaged changes.
        is_detached: HEAD is detached. Always reported, whichever branch
            was inspected.
        tip: Commit the branch points at (HEAD when detached).
    """

    name: str | None
    classification: BranchClassification
    divergence: Divergence | None
    upstream: str | None
    is_clean: bool
    is_detached: bool
    tip: str | None = None

    @property
    def has_upstream(self) -> bool:
        return self.upstream is not None


@dataclass(frozen=True)
class RepoSnapshot:
    """Repository state queried once for a single planning+execution cycle.

    Never reuse a snapshot after a mutation; take a new one instead.
    """

    current_branch: str | None
    head: str | None
    is_clean: bool
    is_clean_tracked: bool  # ignoring untracked files
    local_branches: tuple[str, ...] = ()
    remote_branches: tuple[str, ...] = ()
    remotes: tuple[str, ...] = ()
    upstreams: dict[str, str] = field(default_factory=dict, compare=False)

    @property
    def is_detached(self) -> bool:
        return self.current_branch is None

    def clean(self, *, ignore_untracked: bool = False) -> bool:
        return self.is_clean_tracked if ignore_untracked else self.is_clean

    def has_branch(self, name: str) -> bool:
        return name in self.local_branches

    def has_remote(self, name: str) -> bool:
        return name in self.remotes

    def upstream_of(self, branch: str) -> str | None:
        return self.upstreams.get(branch)
