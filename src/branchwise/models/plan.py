"""Plan domain models for Branchwise.

A Plan is the ordered, side-effect-free description of a mutating
operation. The same object drives dry-run rendering and real execution,
so the two can never diverge structurally.
"""

from __future__ import annotations

import enum
import hashlib
import shlex
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from branchwise.models.state import BranchState


class OperationKind(str, enum.Enum):
    """The mutating operations the planner understands."""

    SYNC = "sync"
    SQUASH = "squash"
    RELOCATE = "relocate"
    PUBLISH = "publish"

    def __str__(self) -> str:
        return self.value


class StepOp(str, enum.Enum):
    """Primitive engine operations a PlanStep can name."""

    CHECKOUT = "checkout-branch"
    MOVE_BRANCH = "create-or-move-branch"
    MERGE = "merge-into-current"
    REBASE = "rebase-onto"
    CHERRY_PICK = "cherry-pick-commit"
    RESET_SOFT = "reset-soft-to"
    COMMIT = "commit-with-message"
    PUSH = "push"
    FETCH = "fetch"
    ABORT = "abort-in-progress-operation"
    NOOP = "no-op"

    def __str__(self) -> str:
        return self.value


class ForceMode(str, enum.Enum):
    """Force variants for a push."""

    NONE = "none"
    FORCE = "force"
    FORCE_WITH_LEASE = "force-with-lease"

    def __str__(self) -> str:
        return self.value


# Native command words per primitive, used for human-readable descriptions.
_COMMANDS: dict[StepOp, tuple[str, ...]] = {
    StepOp.CHECKOUT: ("checkout",),
    StepOp.MOVE_BRANCH: ("branch", "-f"),
    StepOp.MERGE: ("merge",),
    StepOp.REBASE: ("rebase",),
    StepOp.CHERRY_PICK: ("cherry-pick",),
    StepOp.RESET_SOFT: ("reset", "--soft"),
    StepOp.COMMIT: ("commit", "-m"),
    StepOp.PUSH: ("push",),
    StepOp.FETCH: ("fetch",),
}


def describe_step(op: StepOp, args: tuple[str, ...], options: tuple[str, ...] = ()) -> str:
    """Render the native command line equivalent of a primitive."""
    if op is StepOp.ABORT:
        return f"git {args[0]} --abort"
    words = ["git", *_COMMANDS[op], *options, *args]
    return " ".join(shlex.quote(w) for w in words)


@dataclass(frozen=True)
class PlanStep:
    """One primitive step of a plan.

    Attributes:
        op: The primitive to run.
        args: Ordered positional arguments (refs, commit ids, messages).
        options: Flags for the primitive (``--ff-only``, ``--detach``, ...).
        description: Human-readable text, identical in dry-run and real runs.
        group: Optional grouping key (the branch a sync step belongs to).
    """

    op: StepOp
    args: tuple[str, ...] = ()
    options: tuple[str, ...] = ()
    description: str = ""
    group: str | None = None

    @classmethod
    def make(
        cls,
        op: StepOp,
        *args: str,
        options: tuple[str, ...] = (),
        group: str | None = None,
    ) -> PlanStep:
        return cls(
            op=op,
            args=tuple(args),
            options=tuple(options),
            description=describe_step(op, tuple(args), tuple(options)),
            group=group,
        )

    @classmethod
    def noop(cls, reason: str, *, group: str | None = None) -> PlanStep:
        return cls(op=StepOp.NOOP, description=f"# {reason}", group=group)

    @property
    def executable(self) -> bool:
        return self.op is not StepOp.NOOP

    def __str__(self) -> str:
        return self.description


@dataclass(frozen=True)
class PreState:
    """Repository state captured before a plan runs, used for rollback.

    ``clean`` refers to tracked files only; it decides between a hard and
    a keep reset when a branch pointer is restored.
    """

    branch: str | None
    commit: str | None
    clean: bool


@dataclass(frozen=True)
class RewriteSet:
    """Commits a plan rewrites, and the refs on which they count as published."""

    branch: str | None
    commits: tuple[str, ...]
    published_refs: tuple[str, ...]


@dataclass(frozen=True)
class OrphanCheck:
    """Input for lost-commit detection.

    Commits reachable from ``tip`` and from none of ``keep`` (nor any
    other named branch than ``branch``) are lost, except ``carried``
    ones whose changes survive in new commits.
    """

    branch: str | None
    tip: str
    keep: tuple[str, ...] = ()
    carried: tuple[str, ...] = ()


@dataclass(frozen=True)
class SkippedBranch:
    """A branch a bulk operation left out, and why."""

    name: str
    reason: str


@dataclass(frozen=True)
class Plan:
    """An ordered sequence of PlanSteps plus the pre-state and safety annotations."""

    kind: OperationKind
    steps: tuple[PlanStep, ...]
    pre_state: PreState
    title: str = ""
    details: tuple[tuple[str, str], ...] = ()
    source_branch: str | None = None
    target_branch: str | None = None
    remote: str | None = None
    requires_attached: bool = True
    requires_clean: bool = True
    ignore_untracked: bool = False
    force: ForceMode = ForceMode.NONE
    force_required: bool = False
    protected_targets: tuple[str, ...] = ()
    rewrites: tuple[RewriteSet, ...] = ()
    orphan_check: OrphanCheck | None = None
    skipped: tuple[SkippedBranch, ...] = ()
    high_risk: tuple[str, ...] = ()
    branch_states: tuple[BranchState, ...] = ()
    atomic: bool = True
    notes: tuple[str, ...] = field(default=())

    @property
    def executable_steps(self) -> tuple[PlanStep, ...]:
        return tuple(s for s in self.steps if s.executable)

    @property
    def is_empty(self) -> bool:
        return not self.executable_steps

    def render(self) -> list[str]:
        """Step descriptions in execution order."""
        return [step.description for step in self.steps]

    def fingerprint(self) -> str:
        """Stable digest identifying this exact plan."""
        h = hashlib.sha256()
        h.update(self.kind.value.encode())
        h.update(repr((self.pre_state.branch, self.pre_state.commit)).encode())
        for step in self.steps:
            h.update(b"\0")
            h.update(step.description.encode())
        return h.hexdigest()
