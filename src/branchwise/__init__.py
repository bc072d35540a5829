"""Branchwise: safe, previewable branch workflows on top of git.

Every mutating command is planned first, checked by a single safety gate,
and either rendered (dry run) or executed with automatic rollback.
"""

from branchwise._version import __version__

# Pipeline entry point
from branchwise.workflow import Outcome, Workflow

# Engine boundary
from branchwise.protocols import GitBackend

# Configuration
from branchwise.config import load_config
from branchwise.models.config import BranchwiseConfig

# Refs and branch state
from branchwise.models.refs import BranchRef, CommitInfo, RefScope
from branchwise.models.state import (
    BranchClassification,
    BranchState,
    Divergence,
    RepoSnapshot,
)

# Requests
from branchwise.models.requests import (
    OperationRequest,
    PublishRequest,
    RelocateRequest,
    SquashRequest,
    SyncRequest,
    SyncStrategy,
)

# Plans, verdicts and reports
from branchwise.models.plan import (
    ForceMode,
    OperationKind,
    Plan,
    PlanStep,
    PreState,
    StepOp,
)
from branchwise.models.safety import (
    Override,
    ReasonCode,
    SafetyReason,
    SafetyVerdict,
    VerdictLevel,
)
from branchwise.models.report import ExecutionReport

# Components
from branchwise.operations.patterns import GlobPattern, resolve_patterns
from branchwise.operations.classify import classify, inspect_branch, take_snapshot
from branchwise.operations.planner import Planner
from branchwise.operations.safety import SafetyGate
from branchwise.operations.executor import execute_plan

# Exceptions
from branchwise.exceptions import (
    BackendError,
    BranchNotFoundError,
    BranchwiseError,
    CommitNotFoundError,
    ConfigError,
    ExecutionError,
    InvalidRangeError,
    InvalidStrategyError,
    NoMatchError,
    PatternError,
    PlanningError,
    PreconditionError,
    RecoveryError,
    RefResolutionError,
    RootCommitError,
    SafetyBlockError,
    SafetyWarnError,
    SquashCountError,
    StaleSnapshotError,
)

__all__ = [
    "__version__",
    "Workflow",
    "Outcome",
    "GitBackend",
    # Configuration
    "BranchwiseConfig",
    "load_config",
    # Refs and state
    "BranchRef",
    "CommitInfo",
    "RefScope",
    "BranchClassification",
    "BranchState",
    "Divergence",
    "RepoSnapshot",
    # Requests
    "OperationRequest",
    "SyncRequest",
    "SquashRequest",
    "RelocateRequest",
    "PublishRequest",
    "SyncStrategy",
    # Plans, verdicts, reports
    "OperationKind",
    "StepOp",
    "PlanStep",
    "PreState",
    "Plan",
    "ForceMode",
    "Override",
    "ReasonCode",
    "SafetyReason",
    "SafetyVerdict",
    "VerdictLevel",
    "ExecutionReport",
    # Components
    "GlobPattern",
    "resolve_patterns",
    "classify",
    "inspect_branch",
    "take_snapshot",
    "Planner",
    "SafetyGate",
    "execute_plan",
    # Exceptions
    "BranchwiseError",
    "ConfigError",
    "BackendError",
    "PatternError",
    "NoMatchError",
    "RefResolutionError",
    "BranchNotFoundError",
    "CommitNotFoundError",
    "PlanningError",
    "InvalidRangeError",
    "InvalidStrategyError",
    "RootCommitError",
    "SquashCountError",
    "SafetyBlockError",
    "PreconditionError",
    "StaleSnapshotError",
    "SafetyWarnError",
    "ExecutionError",
    "RecoveryError",
]
