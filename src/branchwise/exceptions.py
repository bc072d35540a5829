"""Branchwise exception hierarchy.

All Branchwise-specific exceptions inherit from BranchwiseError. Each
class carries a stable ``code`` and the ``exit_code`` a front end should
return when the error reaches it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from branchwise.models.plan import Plan
    from branchwise.models.report import ExecutionReport
    from branchwise.models.safety import SafetyVerdict


# 0 is success and 2 is a click usage error; neither has an exception.
EXIT_ERROR = 1
EXIT_BLOCKED = 3
EXIT_UNCONFIRMED = 4
EXIT_EXECUTION_FAILED = 5
EXIT_RECOVERY_FAILED = 6


class BranchwiseError(Exception):
    """Base exception for all Branchwise errors."""

    code = "ERROR"
    exit_code = EXIT_ERROR


class ConfigError(BranchwiseError):
    """Raised when a configuration value is invalid."""

    code = "CONFIG"

    def __init__(self, key: str, source: str, reason: str) -> None:
        self.key = key
        self.source = source
        self.reason = reason
        super().__init__(f"Invalid config '{key}' from {source}: {reason}")


class BackendError(BranchwiseError):
    """Raised when a version-control engine command fails."""

    code = "BACKEND"

    def __init__(self, command: str, stderr: str = "", status: int | None = None) -> None:
        self.command = command
        self.stderr = stderr
        self.status = status
        detail = stderr.strip().splitlines()[-1] if stderr.strip() else "command failed"
        super().__init__(f"'{command}' failed: {detail}")


# ---------------------------------------------------------------------------
# Selection and resolution (raised before any mutation)
# ---------------------------------------------------------------------------


class PatternError(BranchwiseError):
    """Base exception for branch pattern selection errors."""

    code = "PATTERN"


class NoMatchError(PatternError):
    """Raised when a positive branch selection matches nothing."""

    code = "NO_MATCH"

    def __init__(self, patterns: list[str]) -> None:
        self.patterns = list(patterns)
        joined = ", ".join(patterns) if patterns else "(all)"
        super().__init__(f"No branches match: {joined}")


class RefResolutionError(BranchwiseError):
    """Base exception for references that do not resolve.

    Named RefResolutionError (not ReferenceError) to avoid collision
    with the builtin.
    """

    code = "REFERENCE"


class BranchNotFoundError(RefResolutionError):
    """Raised when a branch lookup fails."""

    code = "BRANCH_NOT_FOUND"

    def __init__(self, branch_name: str) -> None:
        self.branch_name = branch_name
        super().__init__(f"Branch '{branch_name}' does not exist")


class CommitNotFoundError(RefResolutionError):
    """Raised when a commit reference does not resolve."""

    code = "COMMIT_NOT_FOUND"

    def __init__(self, rev: str) -> None:
        self.rev = rev
        super().__init__(f"Commit '{rev}' does not exist")


# ---------------------------------------------------------------------------
# Planning
# ---------------------------------------------------------------------------


class PlanningError(BranchwiseError):
    """Base exception for requests that cannot be turned into a plan."""

    code = "PLANNING"


class InvalidRangeError(PlanningError):
    """Raised for malformed or unusable commit ranges."""

    code = "INVALID_RANGE"


class SquashCountError(PlanningError):
    """Raised when fewer than two commits are selected for squashing."""

    code = "SQUASH_COUNT"

    def __init__(self, count: int) -> None:
        self.count = count
        super().__init__(
            f"Cannot squash {count} commit(s): at least 2 commits are required"
        )


class RootCommitError(PlanningError):
    """Raised when a range reaches the root commit and has no base."""

    code = "ROOT_COMMIT"

    def __init__(self, commit: str) -> None:
        self.commit = commit
        super().__init__(
            f"Commit {commit[:8]} is a root commit; there is no parent to reset to"
        )


class InvalidStrategyError(PlanningError):
    """Raised for an unknown integration strategy."""

    code = "INVALID_STRATEGY"

    def __init__(self, strategy: str, valid: list[str]) -> None:
        self.strategy = strategy
        super().__init__(
            f"Invalid strategy '{strategy}' (expected one of: {', '.join(valid)})"
        )


class InvalidTargetError(PlanningError):
    """Raised when a remote/branch target cannot be parsed."""

    code = "INVALID_TARGET"

    def __init__(self, value: str) -> None:
        self.value = value
        super().__init__(f"Invalid --to format '{value}' (expected <remote>/<branch>)")


class NothingToRelocateError(PlanningError):
    """Raised when the commit to relocate is already on the target."""

    code = "NOTHING_TO_RELOCATE"

    def __init__(self, commit: str, target: str) -> None:
        self.commit = commit
        self.target = target
        super().__init__(f"Commit {commit[:8]} is already on '{target}'")


class BranchExistsError(PlanningError):
    """Raised when a branch to be created already exists."""

    code = "BRANCH_EXISTS"

    def __init__(self, branch_name: str) -> None:
        self.branch_name = branch_name
        super().__init__(f"Branch '{branch_name}' already exists")


class MergeCommitError(PlanningError):
    """Raised when asked to relocate a merge commit."""

    code = "MERGE_COMMIT"

    def __init__(self, commit: str) -> None:
        self.commit = commit
        super().__init__(f"Commit {commit[:8]} is a merge commit and cannot be snipped")


# ---------------------------------------------------------------------------
# Safety gate
# ---------------------------------------------------------------------------


class SafetyBlockError(BranchwiseError):
    """Raised when the safety gate blocks a plan. Never overridable."""

    code = "BLOCKED"
    exit_code = EXIT_BLOCKED

    def __init__(self, verdict: SafetyVerdict, plan: Plan | None = None) -> None:
        self.verdict = verdict
        self.plan = plan
        messages = "; ".join(r.message for r in verdict.reasons)
        super().__init__(messages or "Operation blocked")


class PreconditionError(SafetyBlockError):
    """Raised when a repository precondition (attached HEAD, clean tree,
    distinct target) does not hold."""

    code = "PRECONDITION"


class StaleSnapshotError(PreconditionError):
    """Raised when the repository moved between planning and execution."""

    code = "STALE_SNAPSHOT"


class SafetyWarnError(BranchwiseError):
    """Raised when overridable warnings were neither overridden nor confirmed."""

    code = "UNCONFIRMED"
    exit_code = EXIT_UNCONFIRMED

    def __init__(self, verdict: SafetyVerdict, plan: Plan | None = None) -> None:
        self.verdict = verdict
        self.plan = plan
        messages = "; ".join(r.message for r in verdict.reasons)
        super().__init__(messages or "Operation requires confirmation")


# ---------------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------------


class ExecutionError(BranchwiseError):
    """Raised when a plan step failed. The report says whether rollback worked."""

    code = "EXECUTION"
    exit_code = EXIT_EXECUTION_FAILED

    def __init__(self, report: ExecutionReport) -> None:
        self.report = report
        step = report.failed_step.description if report.failed_step else "unknown step"
        super().__init__(f"Step failed: {step}: {report.error}")


class RecoveryError(ExecutionError):
    """Raised when automatic rollback after a failed step did not succeed."""

    code = "RECOVERY"
    exit_code = EXIT_RECOVERY_FAILED
