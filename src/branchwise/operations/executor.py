"""Execution & Recovery Controller.

Runs an approved Plan step by step. When a step fails, the controller
aborts any half-finished engine operation, puts moved branch pointers
back where they were and returns to the original branch. If that fails
too, the report carries the exact commands to finish the job by hand;
nothing is retried automatically.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from branchwise.exceptions import (
    BackendError,
    BranchwiseError,
    SafetyBlockError,
    SafetyWarnError,
    StaleSnapshotError,
)
from branchwise.models.plan import ForceMode, StepOp
from branchwise.models.report import ExecutionReport
from branchwise.models.safety import ReasonCode, SafetyReason, SafetyVerdict, VerdictLevel

if TYPE_CHECKING:
    from branchwise.models.plan import Plan, PlanStep
    from branchwise.protocols import GitBackend

logger = logging.getLogger(__name__)

# Primitives that advance whatever branch is checked out.
_MOVES_CURRENT = frozenset(
    {StepOp.MERGE, StepOp.REBASE, StepOp.CHERRY_PICK, StepOp.RESET_SOFT, StepOp.COMMIT}
)


@dataclass
class _Touched:
    """Original tip of a branch a step moved, first sighting wins."""

    branch: str
    tip: str | None  # None: the plan created the branch
    group: str | None


@dataclass
class _RunState:
    here: str | None
    touched: dict[str, _Touched] = field(default_factory=dict)

    def remember(self, backend: GitBackend, branch: str | None, group: str | None) -> None:
        if branch is None or branch in self.touched:
            return
        self.touched[branch] = _Touched(branch, backend.resolve_commit(branch), group)


def _check_verdict(plan: Plan, verdict: SafetyVerdict) -> None:
    if verdict.blocked:
        raise SafetyBlockError(verdict, plan)
    if verdict.level is VerdictLevel.WARN:
        raise SafetyWarnError(verdict, plan)
    if verdict.plan_fingerprint and verdict.plan_fingerprint != plan.fingerprint():
        raise BranchwiseError("The safety verdict was issued for a different plan")


def _check_pre_state(backend: GitBackend, plan: Plan) -> None:
    branch = backend.current_branch()
    head = backend.head_commit()
    expected = plan.pre_state
    if branch == expected.branch and head == expected.commit:
        return
    reason = SafetyReason(
        code=ReasonCode.STALE_SNAPSHOT,
        message=(
            f"Repository changed since planning (expected {expected.branch or 'detached'}"
            f"@{(expected.commit or '')[:7]}, found {branch or 'detached'}@{(head or '')[:7]}); "
            "plan again"
        ),
    )
    raise StaleSnapshotError(SafetyVerdict(level=VerdictLevel.BLOCK, reasons=(reason,)), plan)


def run_step(backend: GitBackend, step: PlanStep, *, force: ForceMode = ForceMode.NONE) -> None:
    """Dispatch one primitive to the engine."""
    op, args = step.op, step.args
    if op is StepOp.CHECKOUT:
        backend.checkout(args[0], detach="--detach" in step.options)
    elif op is StepOp.MOVE_BRANCH:
        target = args[1]
        if target == "HEAD":
            resolved = backend.head_commit()
            if resolved is None:
                raise BackendError(step.description, stderr="HEAD does not resolve")
            target = resolved
        backend.set_branch(args[0], target)
    elif op is StepOp.MERGE:
        backend.merge(args[0], ff_only="--ff-only" in step.options)
    elif op is StepOp.REBASE:
        backend.rebase(args[0])
    elif op is StepOp.CHERRY_PICK:
        backend.cherry_pick(args[0])
    elif op is StepOp.RESET_SOFT:
        backend.reset(args[0], mode="soft")
    elif op is StepOp.COMMIT:
        backend.commit(args[0])
    elif op is StepOp.PUSH:
        backend.push(
            args[0],
            args[1],
            set_upstream="--set-upstream" in step.options,
            force=force if force is not ForceMode.NONE else None,
        )
    elif op is StepOp.FETCH:
        backend.fetch(args[0])
    elif op is StepOp.ABORT:
        backend.abort(args[0])  # type: ignore[arg-type]
    else:
        raise BranchwiseError(f"Cannot execute step: {step.description}")


def execute_plan(backend: GitBackend, plan: Plan, verdict: SafetyVerdict) -> ExecutionReport:
    """Execute ``plan`` strictly in order under an Allow ``verdict``.

    Returns an ExecutionReport in every case where a step ran; callers
    use ``report.raise_for_status()`` to turn failures into exceptions.

    Raises:
        SafetyBlockError / SafetyWarnError: The verdict does not allow execution.
        StaleSnapshotError: The repository moved since the plan was made.
    """
    _check_verdict(plan, verdict)
    _check_pre_state(backend, plan)

    state = _RunState(here=plan.pre_state.branch)
    completed: list[PlanStep] = []
    for index, step in enumerate(plan.steps, start=1):
        if not step.executable:
            logger.info("Skip: %s", step.description)
            completed.append(step)
            continue

        if step.op in _MOVES_CURRENT:
            state.remember(backend, state.here, step.group)
        elif step.op is StepOp.MOVE_BRANCH:
            state.remember(backend, step.args[0], step.group)

        logger.info("Run [%d/%d]: %s", index, len(plan.steps), step.description)
        try:
            run_step(backend, step, force=plan.force)
        except BackendError as e:
            logger.error("Step %d failed: %s", index, e)
            report = ExecutionReport(
                operation=plan.kind,
                completed_steps=completed,
                failed_step=step,
                failed_index=index,
                error=str(e),
                accepted_risks=list(verdict.accepted),
                updated_groups=_updated_groups(completed, exclude=step.group),
            )
            return _recover(backend, plan, state, step, report)

        if step.op is StepOp.CHECKOUT:
            state.here = None if "--detach" in step.options else step.args[0]
        completed.append(step)

    return ExecutionReport(
        operation=plan.kind,
        completed_steps=completed,
        accepted_risks=list(verdict.accepted),
        updated_groups=_updated_groups(completed),
    )


def _updated_groups(steps: list[PlanStep], exclude: str | None = None) -> list[str]:
    groups: dict[str, None] = {}
    for step in steps:
        if step.executable and step.group is not None and step.group != exclude:
            groups[step.group] = None
    return list(groups)


# ---------------------------------------------------------------------------
# Recovery
# ---------------------------------------------------------------------------


def _to_restore(plan: Plan, state: _RunState, failed: PlanStep) -> list[_Touched]:
    touched = list(state.touched.values())
    if plan.atomic:
        return touched
    return [t for t in touched if t.group == failed.group]


def _recover(
    backend: GitBackend,
    plan: Plan,
    state: _RunState,
    failed: PlanStep,
    report: ExecutionReport,
) -> ExecutionReport:
    original = plan.pre_state.branch
    restore = _to_restore(plan, state, failed)
    reset_mode = "hard" if plan.pre_state.clean else "keep"
    actions: list[str] = []
    pending: str | None = None

    logger.warning("Recovering from failed step: %s", failed.description)
    try:
        pending = backend.in_progress()
        if pending is not None:
            backend.abort(pending)
            actions.append(f"git {pending} --abort")
            pending = None

        if original is not None:
            backend.checkout(original)
            actions.append(f"git checkout {original}")
        elif plan.pre_state.commit is not None:
            backend.checkout(plan.pre_state.commit, detach=True)
            actions.append(f"git checkout --detach {plan.pre_state.commit}")

        for item in restore:
            if item.branch == original:
                if item.tip is not None and backend.head_commit() != item.tip:
                    backend.reset(item.tip, mode=reset_mode)  # type: ignore[arg-type]
                    actions.append(f"git reset --{reset_mode} {item.tip}")
            elif item.tip is None:
                if backend.resolve_commit(item.branch) is not None:
                    backend.delete_branch(item.branch)
                    actions.append(f"git branch -D {item.branch}")
            elif backend.resolve_commit(item.branch) != item.tip:
                backend.set_branch(item.branch, item.tip)
                actions.append(f"git branch -f {item.branch} {item.tip}")

        _verify(backend, plan, restore)
    except BranchwiseError as e:
        logger.error("Recovery failed: %s", e)
        for action in actions:
            logger.warning("Recovery: %s", action)
        return report.model_copy(
            update={
                "rollback_performed": True,
                "rollback_succeeded": False,
                "recovery_actions": actions,
                "error": f"{report.error}; recovery failed: {e}",
                "manual_recovery_hint": manual_recovery_hint(
                    plan, restore, report.completed_steps, in_progress=pending, reset_mode=reset_mode
                ),
            }
        )

    for action in actions:
        logger.warning("Recovery: %s", action)
    return report.model_copy(
        update={
            "rollback_performed": True,
            "rollback_succeeded": True,
            "recovery_actions": actions,
        }
    )


def _verify(backend: GitBackend, plan: Plan, restore: list[_Touched]) -> None:
    current = backend.current_branch()
    if current != plan.pre_state.branch:
        raise BranchwiseError(
            f"HEAD is on {current or 'a detached commit'}, expected {plan.pre_state.branch or 'detached'}"
        )
    for item in restore:
        tip = backend.resolve_commit(item.branch)
        if tip != item.tip:
            raise BranchwiseError(
                f"Branch {item.branch} is at {(tip or 'nothing')[:7]}, expected {(item.tip or 'nothing')[:7]}"
            )


def manual_recovery_hint(
    plan: Plan,
    restore: list[_Touched],
    completed: list[PlanStep],
    *,
    in_progress: str | None = None,
    reset_mode: str = "keep",
) -> str:
    """Native commands that return the repository to its pre-plan state."""
    original = plan.pre_state.branch
    lines = ["Automatic recovery failed. To restore the repository, run:"]
    if in_progress is not None:
        lines.append(
            f"  git {in_progress} --abort"
            f"    (or resolve the conflicts and run: git {in_progress} --continue)"
        )
    else:
        lines.append("  git status    (abort any operation in progress: git cherry-pick/rebase/merge --abort)")
    if original is not None:
        lines.append(f"  git checkout {original}")
    elif plan.pre_state.commit is not None:
        lines.append(f"  git checkout --detach {plan.pre_state.commit}")
    for item in restore:
        if item.branch == original and item.tip is not None:
            lines.append(f"  git reset --{reset_mode} {item.tip}")
        elif item.tip is None:
            lines.append(f"  git branch -D {item.branch}")
        else:
            lines.append(f"  git branch -f {item.branch} {item.tip}")
    if any(step.op is StepOp.PUSH for step in completed):
        lines.append("Note: completed pushes cannot be undone locally.")
    return "\n".join(lines)
