"""Execution report model: the terminal artifact of a real run."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel

from branchwise.models.plan import OperationKind, PlanStep
from branchwise.models.safety import SafetyReason


class ExecutionReport(BaseModel):
    """What happened when a plan ran.

    ``completed_steps`` holds every step before ``failed_step`` (no-op
    steps included, since they are reported rather than executed).
    ``failed_index`` is 1-based.
    """

    model_config = {"arbitrary_types_allowed": True}

    operation: OperationKind
    completed_steps: list[PlanStep] = []
    failed_step: Optional[PlanStep] = None
    failed_index: Optional[int] = None
    error: Optional[str] = None
    rollback_performed: bool = False
    rollback_succeeded: bool = False
    recovery_actions: list[str] = []
    manual_recovery_hint: Optional[str] = None
    accepted_risks: list[SafetyReason] = []
    updated_groups: list[str] = []

    @property
    def succeeded(self) -> bool:
        return self.failed_step is None

    @property
    def needs_manual_recovery(self) -> bool:
        return not self.succeeded and not self.rollback_succeeded

    def raise_for_status(self) -> None:
        """Raise ExecutionError or RecoveryError if the run did not succeed."""
        from branchwise.exceptions import ExecutionError, RecoveryError

        if self.succeeded:
            return
        if self.needs_manual_recovery:
            raise RecoveryError(self)
        raise ExecutionError(self)
