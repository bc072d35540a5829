"""Safety Gate -- the single ordered rule list every plan passes through.

Rules run in a fixed order. The first Block ends evaluation and is the
only reason reported; otherwise every Warn is collected. A Warn is moved
to ``accepted`` only by the one Override it names.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable, Iterable, Optional

from branchwise.models.plan import ForceMode, OperationKind
from branchwise.models.safety import (
    Override,
    ReasonCode,
    SafetyReason,
    SafetyVerdict,
    VerdictLevel,
    detached_head_reason,
)

if TYPE_CHECKING:
    from branchwise.models.config import BranchwiseConfig
    from branchwise.models.plan import Plan
    from branchwise.models.state import RepoSnapshot
    from branchwise.protocols import GitBackend

logger = logging.getLogger(__name__)

Rule = Callable[["Plan"], Optional[SafetyReason]]


def _short(shas: Iterable[str]) -> str:
    return ", ".join(sha[:7] for sha in shas)


class SafetyGate:
    """Evaluates plans against one repository snapshot and the configuration."""

    def __init__(
        self,
        backend: GitBackend,
        config: BranchwiseConfig,
        snapshot: RepoSnapshot,
    ) -> None:
        self.backend = backend
        self.config = config
        self.snapshot = snapshot

    @property
    def rules(self) -> list[Rule]:
        return [
            self.check_attached,
            self.check_clean,
            self.check_lost_commits,
            self.check_self_target,
            self.check_pushed_commits,
            self.check_protected,
            self.check_remote,
            self.check_fast_forward,
        ]

    def evaluate(self, plan: Plan, overrides: Iterable[Override | str] = ()) -> SafetyVerdict:
        """Run every rule against ``plan`` and apply ``overrides``."""
        supplied = {Override(o) for o in overrides}
        fingerprint = plan.fingerprint()
        warns: list[SafetyReason] = []
        for rule in self.rules:
            reason = rule(plan)
            if reason is None:
                continue
            if not reason.overridable:
                logger.info("Blocked %s: %s", plan.kind, reason.code)
                return SafetyVerdict(
                    level=VerdictLevel.BLOCK,
                    reasons=(reason,),
                    plan_fingerprint=fingerprint,
                )
            warns.append(reason)

        pending = tuple(r for r in warns if r.override not in supplied)
        accepted = tuple(r for r in warns if r.override in supplied)
        for reason in accepted:
            logger.info("Override %s accepted %s", reason.override, reason.code)
        level = VerdictLevel.WARN if pending else VerdictLevel.ALLOW
        logger.debug("Verdict for %s: %s", plan.kind, level)
        return SafetyVerdict(
            level=level,
            reasons=pending,
            accepted=accepted,
            plan_fingerprint=fingerprint,
        )

    # ------------------------------------------------------------------
    # Rules
    # ------------------------------------------------------------------

    def check_attached(self, plan: Plan) -> SafetyReason | None:
        if plan.requires_attached and self.snapshot.is_detached:
            return detached_head_reason(plan.kind)
        return None

    def check_clean(self, plan: Plan) -> SafetyReason | None:
        if plan.requires_clean and not self.snapshot.clean(ignore_untracked=plan.ignore_untracked):
            scope = "tracked files" if plan.ignore_untracked else "working tree"
            return SafetyReason(
                code=ReasonCode.DIRTY_WORKTREE,
                message=f"Cannot {plan.kind}: {scope} is not clean; commit or stash your changes first",
            )
        return None

    def lost_commits(self, plan: Plan) -> list[str]:
        """Commits the plan would leave reachable from no remaining named branch.

        Reachability is checked against every other local branch and every
        remote-tracking branch, not only the operation's own refs.
        """
        check = plan.orphan_check
        if check is None:
            return []
        exclude = list(check.keep)
        exclude += [b for b in self.snapshot.local_branches if b != check.branch]
        exclude += list(self.snapshot.remote_branches)
        carried = set(check.carried)
        reachable = self.backend.rev_list([check.tip], exclude)
        return [sha for sha in reachable if sha not in carried]

    def check_lost_commits(self, plan: Plan) -> SafetyReason | None:
        lost = self.lost_commits(plan)
        if not lost:
            return None
        return SafetyReason(
            code=ReasonCode.LOST_COMMITS,
            message=(
                f"This would lose {len(lost)} commit(s) not reachable from any other branch "
                f"({_short(lost)}); use --force to proceed anyway"
            ),
            overridable=True,
            override=Override.FORCE,
            commits=tuple(lost),
        )

    def check_self_target(self, plan: Plan) -> SafetyReason | None:
        if plan.kind is not OperationKind.RELOCATE:
            return None
        if plan.target_branch is not None and plan.target_branch == plan.source_branch:
            return SafetyReason(
                code=ReasonCode.SELF_TARGET,
                message=f"Cannot snip '{plan.source_branch}' onto itself",
            )
        return None

    def check_pushed_commits(self, plan: Plan) -> SafetyReason | None:
        pushed: list[str] = []
        on: list[str] = []
        for rewrite in plan.rewrites:
            for ref in rewrite.published_refs:
                ref_tip = self.backend.resolve_commit(ref)
                if ref_tip is None:
                    continue
                hits = [
                    sha for sha in rewrite.commits
                    if sha not in pushed and self.backend.is_ancestor(sha, ref_tip)
                ]
                if hits:
                    pushed.extend(hits)
                    on.append(ref)
        if not pushed:
            return None
        return SafetyReason(
            code=ReasonCode.PUSHED_COMMITS,
            message=(
                f"{len(pushed)} commit(s) being rewritten are already pushed to "
                f"{', '.join(on)}; publishing afterwards will require a force-push"
            ),
            overridable=True,
            override=Override.REWRITE_PUSHED,
            commits=tuple(pushed),
        )

    def check_protected(self, plan: Plan) -> SafetyReason | None:
        # Bulk sync skips protected branches while planning; only force pushes reach here.
        if plan.kind is not OperationKind.PUBLISH or plan.force is ForceMode.NONE:
            return None
        if not plan.protected_targets:
            return None
        names = ", ".join(f"'{n}'" for n in plan.protected_targets)
        return SafetyReason(
            code=ReasonCode.PROTECTED_BRANCH,
            message=f"{names} is protected; force-pushing it requires --allow-protected",
            overridable=True,
            override=Override.ALLOW_PROTECTED,
        )

    def check_remote(self, plan: Plan) -> SafetyReason | None:
        if plan.remote is not None and not self.snapshot.has_remote(plan.remote):
            return SafetyReason(
                code=ReasonCode.REMOTE_NOT_FOUND,
                message=f"Remote '{plan.remote}' does not exist",
            )
        return None

    def check_fast_forward(self, plan: Plan) -> SafetyReason | None:
        if plan.force_required and plan.force is ForceMode.NONE:
            return SafetyReason(
                code=ReasonCode.NON_FAST_FORWARD,
                message=(
                    f"{plan.remote}/{plan.target_branch} has diverged from the local branch; "
                    "use --force or --force-with-lease"
                ),
            )
        return None
