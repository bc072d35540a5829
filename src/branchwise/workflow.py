"""Workflow -- the pipeline front ends drive.

snapshot -> plan -> evaluate -> (render | execute), with a fresh snapshot
for every cycle. Front ends pick the request; they never re-implement a
safety check.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Iterable, Optional

from branchwise.config import load_config
from branchwise.exceptions import PreconditionError, SafetyBlockError, SafetyWarnError
from branchwise.models.refs import RefScope
from branchwise.models.requests import SyncRequest
from branchwise.models.safety import PRECONDITION_CODES, Override, VerdictLevel
from branchwise.operations.classify import inspect_branch, take_snapshot
from branchwise.operations.executor import execute_plan
from branchwise.operations.patterns import resolve_patterns
from branchwise.operations.planner import Planner
from branchwise.operations.safety import SafetyGate

if TYPE_CHECKING:
    from branchwise.models.config import BranchwiseConfig
    from branchwise.models.plan import Plan
    from branchwise.models.refs import BranchRef
    from branchwise.models.report import ExecutionReport
    from branchwise.models.requests import OperationRequest
    from branchwise.models.safety import SafetyVerdict
    from branchwise.models.state import BranchState, RepoSnapshot
    from branchwise.protocols import GitBackend

logger = logging.getLogger(__name__)

# Receives the plan and its Warn verdict; returns True to accept every warning.
ConfirmCallback = Callable[["Plan", "SafetyVerdict"], bool]


@dataclass
class Outcome:
    """Result of one pipeline run: a rendered plan or an execution report."""

    plan: Plan
    verdict: SafetyVerdict
    report: Optional[ExecutionReport] = None

    @property
    def dry_run(self) -> bool:
        return self.report is None


class Workflow:
    """Entry point tying the resolver, classifier, planner, gate and executor together.

    Usage::

        wf = Workflow.open(".")
        outcome = wf.run(SquashRequest(count=3), dry_run=True)
        print("\\n".join(outcome.plan.render()))
    """

    def __init__(self, backend: GitBackend, config: BranchwiseConfig) -> None:
        self.backend = backend
        self.config = config

    @classmethod
    def open(cls, path: str | Path = ".", config: BranchwiseConfig | None = None) -> Workflow:
        from branchwise.backend import GitPythonBackend

        backend = GitPythonBackend.open(path)
        if config is None:
            config = load_config(backend.root)
        return cls(backend, config)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def snapshot(self) -> RepoSnapshot:
        return take_snapshot(self.backend)

    def status(
        self,
        patterns: Iterable[str] = (),
        *,
        scope: RefScope | None = None,
        exclude: Iterable[str] = (),
    ) -> list[BranchState]:
        """Classify the current branch, or every local branch matching ``patterns``."""
        snapshot = self.snapshot()
        patterns, exclude = list(patterns), list(exclude)
        if not patterns and scope is None and not exclude:
            return [inspect_branch(self.backend, snapshot)]
        refs = resolve_patterns(snapshot, patterns, scope=scope or RefScope.LOCAL, exclude=exclude)
        states = []
        for ref in refs:
            if ref.is_remote:
                continue
            states.append(inspect_branch(self.backend, snapshot, ref.name))
        return states

    def select(
        self,
        patterns: Iterable[str] = (),
        *,
        scope: RefScope = RefScope.LOCAL,
        exclude: Iterable[str] = (),
    ) -> list[BranchRef]:
        return resolve_patterns(self.snapshot(), list(patterns), scope=scope, exclude=list(exclude))

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def plan(self, request: OperationRequest, snapshot: RepoSnapshot | None = None) -> Plan:
        snapshot = snapshot or self.snapshot()
        return Planner(self.backend, self.config, snapshot).plan(request)

    def evaluate(
        self,
        plan: Plan,
        overrides: Iterable[Override | str] = (),
        snapshot: RepoSnapshot | None = None,
    ) -> SafetyVerdict:
        snapshot = snapshot or self.snapshot()
        return SafetyGate(self.backend, self.config, snapshot).evaluate(plan, overrides)

    def execute(self, plan: Plan, verdict: SafetyVerdict) -> ExecutionReport:
        return execute_plan(self.backend, plan, verdict)

    def _refresh(self, request: OperationRequest, fetch: bool | None) -> None:
        if not isinstance(request, SyncRequest):
            return
        if fetch is None:
            fetch = self.config.fetch
        if not fetch:
            return
        for remote in self.backend.remotes():
            logger.info("Fetching %s", remote)
            self.backend.fetch(remote)

    def run(
        self,
        request: OperationRequest,
        *,
        dry_run: bool = False,
        overrides: Iterable[Override | str] = (),
        confirm: ConfirmCallback | None = None,
        fetch: bool | None = None,
    ) -> Outcome:
        """Plan, gate and (unless ``dry_run``) execute one request.

        A dry run returns the plan with its verdict whatever the level.
        A real run raises before any mutation if the verdict is not Allow
        after overrides and ``confirm``.

        Raises:
            PreconditionError: Detached HEAD, dirty tree or self-target.
            SafetyBlockError: Any other Block.
            SafetyWarnError: Warnings neither overridden nor confirmed.
            ExecutionError / RecoveryError: A step failed.
        """
        outcome = self.prepare(request, overrides=overrides, fetch=fetch)
        if dry_run:
            return outcome
        return self.proceed(outcome, confirm=confirm)

    def prepare(
        self,
        request: OperationRequest,
        *,
        overrides: Iterable[Override | str] = (),
        fetch: bool | None = None,
    ) -> Outcome:
        """Refresh, snapshot, plan and evaluate without mutating anything."""
        self._refresh(request, fetch)
        snapshot = self.snapshot()
        plan = self.plan(request, snapshot)
        verdict = self.evaluate(plan, overrides, snapshot)
        return Outcome(plan=plan, verdict=verdict)

    def proceed(self, outcome: Outcome, *, confirm: ConfirmCallback | None = None) -> Outcome:
        """Execute a prepared plan if its verdict allows it (after confirmation)."""
        plan, verdict = outcome.plan, outcome.verdict
        if verdict.blocked:
            if set(verdict.codes) & PRECONDITION_CODES:
                raise PreconditionError(verdict, plan)
            raise SafetyBlockError(verdict, plan)
        if verdict.level is VerdictLevel.WARN:
            if confirm is None or not confirm(plan, verdict):
                raise SafetyWarnError(verdict, plan)
            verdict = verdict.confirm()

        report = self.execute(plan, verdict)
        report.raise_for_status()
        return Outcome(plan=plan, verdict=verdict, report=report)
