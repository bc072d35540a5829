"""Operation Planner -- requests to ordered, side-effect-free plans.

The planner only queries the engine; it never mutates. Each ``plan_*``
method turns one request kind plus the current snapshot into a Plan whose
steps are later rendered (dry-run) or executed, unchanged.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from branchwise.exceptions import (
    BranchExistsError,
    BranchNotFoundError,
    CommitNotFoundError,
    InvalidRangeError,
    InvalidStrategyError,
    InvalidTargetError,
    MergeCommitError,
    NothingToRelocateError,
    PlanningError,
    PreconditionError,
    RootCommitError,
    SquashCountError,
)
from branchwise.models.plan import (
    ForceMode,
    OperationKind,
    OrphanCheck,
    Plan,
    PlanStep,
    PreState,
    RewriteSet,
    SkippedBranch,
    StepOp,
)
from branchwise.models.requests import (
    PublishRequest,
    RelocateRequest,
    SquashRequest,
    SyncRequest,
    SyncStrategy,
)
from branchwise.models.safety import SafetyVerdict, VerdictLevel, detached_head_reason
from branchwise.models.state import BranchClassification, BranchState
from branchwise.operations.classify import inspect_branch
from branchwise.operations.patterns import (
    default_branch,
    is_explicitly_named,
    matches_any,
    resolve_patterns,
)

if TYPE_CHECKING:
    from branchwise.models.config import BranchwiseConfig
    from branchwise.models.refs import CommitInfo
    from branchwise.models.requests import OperationRequest
    from branchwise.models.state import RepoSnapshot
    from branchwise.protocols import GitBackend

logger = logging.getLogger(__name__)

_REQUEST_KINDS = {
    SyncRequest: OperationKind.SYNC,
    SquashRequest: OperationKind.SQUASH,
    RelocateRequest: OperationKind.RELOCATE,
    PublishRequest: OperationKind.PUBLISH,
}


def parse_strategy(value: str | SyncStrategy) -> SyncStrategy:
    """Validate a strategy name.

    Raises:
        InvalidStrategyError: For names outside SyncStrategy.
    """
    if isinstance(value, SyncStrategy):
        return value
    try:
        return SyncStrategy(value.strip().lower())
    except ValueError:
        raise InvalidStrategyError(value, SyncStrategy.names()) from None


def parse_range(text: str) -> tuple[str, str]:
    """Split ``A..B`` into its endpoints; ``B`` defaults to HEAD.

    Raises:
        InvalidRangeError: For anything but a two-dot range with a start.
    """
    if "..." in text:
        raise InvalidRangeError(f"Symmetric range '{text}' is not supported; use A..B")
    parts = text.split("..")
    if len(parts) != 2 or not parts[0].strip():
        raise InvalidRangeError(f"Malformed range '{text}' (expected A..B)")
    return parts[0].strip(), parts[1].strip() or "HEAD"


def parse_remote_target(text: str) -> tuple[str, str]:
    """Split ``remote/branch``. The branch part may itself contain slashes.

    Raises:
        InvalidTargetError: If either side is missing.
    """
    remote, sep, branch = text.partition("/")
    if not sep or not remote or not branch:
        raise InvalidTargetError(text)
    return remote, branch


class Planner:
    """Builds plans from requests against one repository snapshot."""

    def __init__(
        self,
        backend: GitBackend,
        config: BranchwiseConfig,
        snapshot: RepoSnapshot,
    ) -> None:
        self.backend = backend
        self.config = config
        self.snapshot = snapshot

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @property
    def pre_state(self) -> PreState:
        return PreState(
            branch=self.snapshot.current_branch,
            commit=self.snapshot.head,
            clean=self.snapshot.is_clean_tracked,
        )

    def _resolve(self, rev: str) -> str:
        sha = self.backend.resolve_commit(rev)
        if sha is None:
            raise CommitNotFoundError(rev)
        return sha

    def _require_branch(self, name: str) -> str:
        if not self.snapshot.has_branch(name):
            raise BranchNotFoundError(name)
        return self._resolve(name)

    def is_protected(self, name: str) -> bool:
        return matches_any(name, self.config.protected_branches)

    def _first_parent_chain(self, tip: str, limit: int | None = None, stop: str | None = None) -> list[CommitInfo]:
        """Walk first parents from ``tip`` (inclusive), newest first."""
        chain: list[CommitInfo] = []
        sha: str | None = tip
        while sha is not None and sha != stop:
            if limit is not None and len(chain) >= limit:
                break
            info = self.backend.commit_info(sha)
            chain.append(info)
            sha = info.parents[0] if info.parents else None
        return chain

    def _check_attached(self, request: OperationRequest) -> None:
        """Fail fast on a detached HEAD, before any ref or range is resolved.

        Only publishing an explicitly named local branch works detached.
        """
        kind = _REQUEST_KINDS.get(type(request))
        if kind is None or not self.snapshot.is_detached:
            return
        if isinstance(request, PublishRequest) and request.local_branch is not None:
            return
        verdict = SafetyVerdict(level=VerdictLevel.BLOCK, reasons=(detached_head_reason(kind),))
        raise PreconditionError(verdict)

    def plan(self, request: OperationRequest) -> Plan:
        """Dispatch on the request type.

        Raises:
            PreconditionError: HEAD is detached and the request needs a branch.
        """
        self._check_attached(request)
        if isinstance(request, SyncRequest):
            return self.plan_sync(request)
        if isinstance(request, SquashRequest):
            return self.plan_squash(request)
        if isinstance(request, RelocateRequest):
            return self.plan_relocate(request)
        if isinstance(request, PublishRequest):
            return self.plan_publish(request)
        raise PlanningError(f"Unsupported request type: {type(request).__name__}")

    # ------------------------------------------------------------------
    # Squash
    # ------------------------------------------------------------------

    def plan_squash(self, request: SquashRequest) -> Plan:
        """reset --soft to the range base, then commit with one message.

        Raises:
            SquashCountError: Fewer than two commits selected.
            InvalidRangeError: Malformed range, range not ending at the tip,
                or fewer commits than requested.
            RootCommitError: The oldest selected commit has no parent.
        """
        if (request.count is None) == (request.range is None):
            raise InvalidRangeError("Specify either a commit count or a range (not both)")
        head = self.snapshot.head
        if head is None:
            raise InvalidRangeError("There are no commits to squash")

        if request.count is not None:
            if request.count < 2:
                raise SquashCountError(request.count)
            commits = self._first_parent_chain(head, limit=request.count)
            if len(commits) < request.count:
                raise InvalidRangeError(
                    f"Cannot squash {request.count} commits: only {len(commits)} on this branch"
                )
        else:
            start, end = parse_range(request.range)  # type: ignore[arg-type]
            start_sha = self._resolve(start)
            end_sha = self._resolve(end)
            if end_sha != head:
                raise InvalidRangeError(f"Range '{request.range}' must end at the current tip")
            if start_sha == head or not self.backend.is_ancestor(start_sha, head):
                raise InvalidRangeError(f"'{start}' is not an ancestor of the current tip")
            commits = self._first_parent_chain(head, stop=start_sha)
            if commits and commits[-1].parents[:1] != [start_sha]:
                raise InvalidRangeError(f"'{start}' is not on the first-parent history of the tip")
            if len(commits) < 2:
                raise SquashCountError(len(commits))

        oldest = commits[-1]
        if oldest.is_root:
            raise RootCommitError(oldest.sha)
        base = oldest.parents[0]
        message = request.message or oldest.message or oldest.subject

        branch = self.snapshot.current_branch
        upstream = self.snapshot.upstream_of(branch) if branch else None
        shas = tuple(c.sha for c in commits)
        steps = (
            PlanStep.make(StepOp.RESET_SOFT, base),
            PlanStep.make(StepOp.COMMIT, message),
        )
        details = (
            ("Branch", branch or "(detached HEAD)"),
            ("Commits", str(len(commits))),
            ("Squashing", "\n".join(c.one_line() for c in commits)),
            ("Base", base[:7]),
            ("Message", message.splitlines()[0] if message else ""),
        )
        logger.debug("Squash plan: %d commits onto %s", len(commits), base[:8])
        return Plan(
            kind=OperationKind.SQUASH,
            title="Squash Plan:",
            steps=steps,
            pre_state=self.pre_state,
            details=details,
            source_branch=branch,
            requires_attached=True,
            requires_clean=True,
            ignore_untracked=True,
            rewrites=(
                RewriteSet(
                    branch=branch,
                    commits=shas,
                    published_refs=(upstream,) if upstream else (),
                ),
            ),
            orphan_check=OrphanCheck(
                branch=branch, tip=head, keep=(base,), carried=shas
            ) if branch else None,
        )

    # ------------------------------------------------------------------
    # Relocate ("snip")
    # ------------------------------------------------------------------

    def _relocate_target(self, request: RelocateRequest) -> str:
        target = request.onto or self.config.default_target
        if target is None:
            target = default_branch(self.backend, self.snapshot, self.config.default_remote)
        if target is None:
            raise PlanningError("No target branch found; pass one explicitly with --onto")
        return target

    def plan_relocate(self, request: RelocateRequest) -> Plan:
        """Cherry-pick a commit onto a target base and move a branch to it.

        Raises:
            CommitNotFoundError / BranchNotFoundError: Unresolvable refs.
            MergeCommitError: The commit is a merge.
            NothingToRelocateError: The commit is already on the target.
            PlanningError: A new branch name without keep-original.
            BranchExistsError: The keep-original branch name is taken.
        """
        if request.new_branch is not None and not request.keep_original:
            raise PlanningError("--branch names the new branch and requires --keep-original")
        source = self.snapshot.current_branch
        commit_sha = self._resolve(request.commit)
        info = self.backend.commit_info(commit_sha)
        if info.is_merge:
            raise MergeCommitError(commit_sha)

        target = self._relocate_target(request)
        target_tip = self._require_branch(target)
        if target != source and self.backend.is_ancestor(commit_sha, target_tip):
            raise NothingToRelocateError(commit_sha, target)

        upstream = self.snapshot.upstream_of(target)
        steps = [PlanStep.make(StepOp.CHECKOUT, target)]
        if request.pull and upstream:
            remote = upstream.split("/", 1)[0]
            if self.snapshot.has_remote(remote):
                steps.append(PlanStep.make(StepOp.FETCH, remote))
            steps.append(PlanStep.make(StepOp.MERGE, upstream, options=("--ff-only",)))
        # Detach so the cherry-pick never advances the target branch itself.
        steps.append(PlanStep.make(StepOp.CHECKOUT, "HEAD", options=("--detach",)))
        steps.append(PlanStep.make(StepOp.CHERRY_PICK, commit_sha))

        source_label = source or (self.snapshot.head or "HEAD")
        if request.keep_original:
            dest = request.new_branch or f"{source or 'HEAD'}{self.config.snip_suffix}"
            if self.snapshot.has_branch(dest):
                raise BranchExistsError(dest)
        else:
            dest = source_label
        steps.append(PlanStep.make(StepOp.MOVE_BRANCH, dest, "HEAD"))
        steps.append(PlanStep.make(StepOp.CHECKOUT, source_label))

        details: list[tuple[str, str]] = [
            ("Current branch", source or "(detached HEAD)"),
            ("Target branch", target),
            ("Commit to snip", info.short_sha),
            ("Commit message", info.subject),
            ("Author", info.author),
            ("Date", info.date.strftime("%Y-%m-%d %H:%M:%S %z") if info.date else ""),
            ("Commit contents", "\n".join(self.backend.commit_files(commit_sha)) or "(empty)"),
        ]
        if request.keep_original:
            details.append(("New branch", f"{dest} (original kept)"))
        else:
            details.append(("Result", f"{source_label} = {target} + {info.short_sha}"))

        orphan_check = None
        rewrites: tuple[RewriteSet, ...] = ()
        if not request.keep_original and source is not None and self.snapshot.head:
            keep = tuple(r for r in (target, upstream) if r)
            orphan_check = OrphanCheck(
                branch=source, tip=self.snapshot.head, keep=keep, carried=(commit_sha,)
            )
            source_upstream = self.snapshot.upstream_of(source)
            if source_upstream:
                moved = self.backend.rev_list([self.snapshot.head], [target_tip])
                rewrites = (
                    RewriteSet(branch=source, commits=tuple(moved), published_refs=(source_upstream,)),
                )

        logger.debug("Relocate plan: %s onto %s -> %s", info.short_sha, target, dest)
        return Plan(
            kind=OperationKind.RELOCATE,
            title="Snip Operation Summary:",
            steps=tuple(steps),
            pre_state=self.pre_state,
            details=tuple(details),
            source_branch=source,
            target_branch=target,
            requires_attached=True,
            requires_clean=True,
            ignore_untracked=False,
            orphan_check=orphan_check,
            rewrites=rewrites,
        )

    # ------------------------------------------------------------------
    # Publish
    # ------------------------------------------------------------------

    def plan_publish(self, request: PublishRequest) -> Plan:
        """Push a local branch, annotating whether a force variant is needed.

        Raises:
            InvalidTargetError: Malformed ``--to`` value.
            BranchNotFoundError: Unknown local branch.
        """
        remote: str | None = None
        remote_branch: str | None = None
        if request.to:
            remote, remote_branch = parse_remote_target(request.to)
        remote = remote or request.remote or self.config.default_remote

        local = request.local_branch or self.snapshot.current_branch
        if request.local_branch:
            self._require_branch(request.local_branch)
        local_label = local or "HEAD"
        remote_branch = remote_branch or request.remote_branch or local_label
        tracking = f"{remote}/{remote_branch}"

        force_required = False
        status = "Remote does not exist"
        if self.snapshot.has_remote(remote):
            local_tip = self._resolve(local_label)
            remote_tip = (
                self.backend.resolve_commit(tracking)
                if tracking in self.snapshot.remote_branches
                else None
            )
            if remote_tip is None:
                status = "New branch"
            elif remote_tip == local_tip:
                status = "Up to date"
            elif self.backend.is_ancestor(remote_tip, local_tip):
                ahead = len(self.backend.rev_list([local_tip], [remote_tip]))
                status = f"Ahead by {ahead} commit(s)"
            else:
                force_required = True
                if self.backend.is_ancestor(local_tip, remote_tip):
                    behind = len(self.backend.rev_list([remote_tip], [local_tip]))
                    status = f"Behind by {behind} commit(s) (force required)"
                else:
                    status = "Diverged (force required)"

        set_upstream = (
            request.set_upstream if request.set_upstream is not None else self.config.set_upstream
        )
        options: list[str] = []
        if set_upstream:
            options.append("--set-upstream")
        if request.force is ForceMode.FORCE:
            options.append("--force")
        elif request.force is ForceMode.FORCE_WITH_LEASE:
            options.append("--force-with-lease")
        steps = (
            PlanStep.make(
                StepOp.PUSH, remote, f"{local_label}:{remote_branch}", options=tuple(options)
            ),
        )

        protected = tuple(
            dict.fromkeys(n for n in (remote_branch, local) if n and self.is_protected(n))
        )
        notes = tuple(f"'{name}' is a protected branch" for name in protected)
        details = (
            ("Local branch", local or "(detached HEAD)"),
            ("Remote", remote),
            ("Target branch", remote_branch),
            ("Status", status),
        )
        logger.debug("Publish plan: %s -> %s (%s)", local_label, tracking, status)
        return Plan(
            kind=OperationKind.PUBLISH,
            title="Publishing Status:",
            steps=steps,
            pre_state=self.pre_state,
            details=details,
            source_branch=local,
            target_branch=remote_branch,
            remote=remote,
            requires_attached=request.local_branch is None,
            requires_clean=False,
            force=request.force,
            force_required=force_required,
            protected_targets=protected,
            notes=notes,
        )

    # ------------------------------------------------------------------
    # Sync
    # ------------------------------------------------------------------

    def _sync_selection(self, request: SyncRequest) -> tuple[list[str], list[SkippedBranch]]:
        if not request.all and not request.patterns:
            current = self.snapshot.current_branch
            return ([current] if current else []), []

        refs = resolve_patterns(
            self.snapshot,
            () if request.all else request.patterns,
            exclude=request.exclude,
        )
        names: list[str] = []
        skipped: list[SkippedBranch] = []
        for ref in refs:
            if self.is_protected(ref.name) and not is_explicitly_named(ref.name, request.patterns):
                # Bulk selections never touch protected branches implicitly.
                logger.debug("Skipping protected branch %s", ref.name)
                skipped.append(SkippedBranch(ref.name, "protected"))
                continue
            names.append(ref.name)
        return names, skipped

    def plan_sync(self, request: SyncRequest) -> Plan:
        """Bring each selected branch up to date with its upstream.

        Raises:
            InvalidStrategyError: Unknown strategy name.
            NoMatchError: A positive selection matched nothing.
            BranchNotFoundError: A selected name is not a local branch.
        """
        strategy = parse_strategy(request.strategy or self.config.sync_strategy)
        names, skipped = self._sync_selection(request)

        original = self.snapshot.current_branch
        here = original
        steps: list[PlanStep] = []
        states: list[BranchState] = []
        high_risk: list[str] = []
        rewrites: list[RewriteSet] = []

        def checkout(name: str) -> None:
            nonlocal here
            if here != name:
                steps.append(PlanStep.make(StepOp.CHECKOUT, name, group=name))
                here = name

        for name in names:
            state = inspect_branch(self.backend, self.snapshot, name)
            states.append(state)
            cls = state.classification
            upstream = state.upstream
            if cls is BranchClassification.UP_TO_DATE:
                steps.append(PlanStep.noop(f"{name}: up to date with {upstream}", group=name))
            elif cls is BranchClassification.AHEAD:
                steps.append(
                    PlanStep.noop(
                        f"{name}: ahead of {upstream} by {state.divergence.ahead}, nothing to pull",  # type: ignore[union-attr]
                        group=name,
                    )
                )
            elif cls is BranchClassification.NO_UPSTREAM:
                steps.append(PlanStep.noop(f"{name}: no upstream configured", group=name))
            elif cls is BranchClassification.BEHIND:
                checkout(name)
                steps.append(
                    PlanStep.make(StepOp.MERGE, upstream, options=("--ff-only",), group=name)  # type: ignore[arg-type]
                )
            elif cls is BranchClassification.DIVERGED:
                high_risk.append(name)
                if strategy is SyncStrategy.FF_ONLY:
                    steps.append(
                        PlanStep.noop(f"{name}: diverged from {upstream}, cannot fast-forward", group=name)
                    )
                    continue
                checkout(name)
                if strategy is SyncStrategy.REBASE:
                    steps.append(PlanStep.make(StepOp.REBASE, upstream, group=name))  # type: ignore[arg-type]
                    local_only = self.backend.rev_list([name], [upstream])  # type: ignore[list-item]
                    rewrites.append(
                        RewriteSet(
                            branch=name,
                            commits=tuple(local_only),
                            published_refs=tuple(
                                r for r in self.snapshot.remote_branches if r != upstream
                            ),
                        )
                    )
                else:
                    steps.append(
                        PlanStep.make(StepOp.MERGE, upstream, options=("--no-edit",), group=name)  # type: ignore[arg-type]
                    )

        if here != original and original is not None:
            steps.append(PlanStep.make(StepOp.CHECKOUT, original))

        details = (
            ("Strategy", strategy.value),
            ("Branches", ", ".join(names) or "(none)"),
        )
        if skipped:
            details += (("Skipped", ", ".join(f"{s.name} ({s.reason})" for s in skipped)),)
        logger.debug("Sync plan: %d branch(es), %d step(s)", len(names), len(steps))
        return Plan(
            kind=OperationKind.SYNC,
            title="Sync Plan:",
            steps=tuple(steps),
            pre_state=self.pre_state,
            details=details,
            source_branch=original,
            requires_attached=True,
            requires_clean=True,
            ignore_untracked=True,
            rewrites=tuple(rewrites),
            skipped=tuple(skipped),
            high_risk=tuple(high_risk),
            branch_states=tuple(states),
            atomic=False,
        )
