"""Branch State Classifier.

Takes fresh repository snapshots and classifies branches against their
upstreams. Nothing is cached: a snapshot belongs to one planning cycle.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from branchwise.exceptions import BranchNotFoundError
from branchwise.models.state import (
    BranchClassification,
    BranchState,
    Divergence,
    RepoSnapshot,
)

if TYPE_CHECKING:
    from branchwise.protocols import GitBackend

logger = logging.getLogger(__name__)

CURRENT = "current"


def take_snapshot(backend: GitBackend) -> RepoSnapshot:
    """Query the engine once for everything a planning cycle needs."""
    local = backend.local_branches()
    upstreams: dict[str, str] = {}
    for name in local:
        upstream = backend.upstream_of(name)
        if upstream:
            upstreams[name] = upstream
    snapshot = RepoSnapshot(
        current_branch=backend.current_branch(),
        head=backend.head_commit(),
        is_clean=backend.is_clean(),
        is_clean_tracked=backend.is_clean(ignore_untracked=True),
        local_branches=tuple(local),
        remote_branches=tuple(backend.remote_branches()),
        remotes=tuple(backend.remotes()),
        upstreams=upstreams,
    )
    logger.debug(
        "Snapshot: branch=%s head=%s clean=%s",
        snapshot.current_branch, (snapshot.head or "")[:8], snapshot.is_clean,
    )
    return snapshot


def classify(divergence: Divergence | None, *, detached: bool = False) -> BranchClassification:
    """Pure classification from divergence and HEAD attachment.

    ``divergence`` is None when the branch has no upstream.
    """
    if detached:
        return BranchClassification.DETACHED
    if divergence is None:
        return BranchClassification.NO_UPSTREAM
    if divergence.ahead and divergence.behind:
        return BranchClassification.DIVERGED
    if divergence.ahead:
        return BranchClassification.AHEAD
    if divergence.behind:
        return BranchClassification.BEHIND
    return BranchClassification.UP_TO_DATE


def inspect_branch(
    backend: GitBackend,
    snapshot: RepoSnapshot,
    name: str = CURRENT,
    *,
    ignore_untracked: bool = False,
) -> BranchState:
    """Classify ``name`` (or the checked-out branch) against its upstream.

    Detached HEAD is always reported through ``is_detached``, even when
    a named branch is inspected.

    Raises:
        BranchNotFoundError: If ``name`` is not a local branch.
    """
    is_clean = snapshot.clean(ignore_untracked=ignore_untracked)
    if name == CURRENT:
        if snapshot.is_detached:
            return BranchState(
                name=None,
                classification=BranchClassification.DETACHED,
                divergence=None,
                upstream=None,
                is_clean=is_clean,
                is_detached=True,
                tip=snapshot.head,
            )
        name = snapshot.current_branch  # type: ignore[assignment]

    if not snapshot.has_branch(name):
        raise BranchNotFoundError(name)

    upstream = snapshot.upstream_of(name)
    divergence: Divergence | None = None
    if upstream is not None and backend.resolve_commit(upstream) is not None:
        ahead, behind = backend.ahead_behind(name, upstream)
        divergence = Divergence(ahead=ahead, behind=behind)
    elif upstream is not None:
        # Configured upstream whose ref is gone (e.g. deleted on the remote).
        logger.debug("Upstream %s of %s does not resolve", upstream, name)
        upstream = None

    state = BranchState(
        name=name,
        classification=classify(divergence),
        divergence=divergence,
        upstream=upstream,
        is_clean=is_clean,
        is_detached=snapshot.is_detached,
        tip=backend.resolve_commit(name),
    )
    logger.debug("Classified %s: %s %s", name, state.classification, divergence or "")
    return state
