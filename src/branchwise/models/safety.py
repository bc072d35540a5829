"""Safety verdict models."""

from __future__ import annotations

import enum
from dataclasses import dataclass, replace


class VerdictLevel(str, enum.Enum):
    ALLOW = "allow"
    WARN = "warn"
    BLOCK = "block"

    def __str__(self) -> str:
        return self.value


class Override(str, enum.Enum):
    """Explicit overrides a caller can supply for specific warnings."""

    FORCE = "force"  # lost commits
    REWRITE_PUSHED = "rewrite-pushed"  # rewriting commits already on the upstream
    ALLOW_PROTECTED = "allow-protected"  # force-pushing a protected branch

    def __str__(self) -> str:
        return self.value


class ReasonCode(str, enum.Enum):
    DETACHED_HEAD = "DETACHED_HEAD"
    DIRTY_WORKTREE = "DIRTY_WORKTREE"
    LOST_COMMITS = "LOST_COMMITS"
    SELF_TARGET = "SELF_TARGET"
    PUSHED_COMMITS = "PUSHED_COMMITS"
    PROTECTED_BRANCH = "PROTECTED_BRANCH"
    REMOTE_NOT_FOUND = "REMOTE_NOT_FOUND"
    NON_FAST_FORWARD = "NON_FAST_FORWARD"
    STALE_SNAPSHOT = "STALE_SNAPSHOT"

    def __str__(self) -> str:
        return self.value


PRECONDITION_CODES = frozenset(
    {
        ReasonCode.DETACHED_HEAD,
        ReasonCode.DIRTY_WORKTREE,
        ReasonCode.SELF_TARGET,
        ReasonCode.STALE_SNAPSHOT,
    }
)


@dataclass(frozen=True)
class SafetyReason:
    """One finding of the safety gate.

    ``override`` names the single Override that accepts this reason;
    it is None for non-overridable reasons.
    """

    code: ReasonCode
    message: str
    overridable: bool = False
    override: Override | None = None
    commits: tuple[str, ...] = ()


@dataclass(frozen=True)
class SafetyVerdict:
    """Outcome of evaluating a plan.

    ``reasons`` holds the findings still in force; ``accepted`` holds
    overridable warnings the caller explicitly accepted.
    """

    level: VerdictLevel
    reasons: tuple[SafetyReason, ...] = ()
    accepted: tuple[SafetyReason, ...] = ()
    plan_fingerprint: str = ""

    @property
    def allowed(self) -> bool:
        return self.level is VerdictLevel.ALLOW

    @property
    def blocked(self) -> bool:
        return self.level is VerdictLevel.BLOCK

    @property
    def codes(self) -> tuple[ReasonCode, ...]:
        return tuple(r.code for r in self.reasons)

    def reason(self, code: ReasonCode) -> SafetyReason | None:
        for r in self.reasons + self.accepted:
            if r.code is code:
                return r
        return None

    def confirm(self) -> SafetyVerdict:
        """Accept every remaining overridable warning (explicit user confirmation).

        A Block verdict cannot be confirmed.
        """
        if self.blocked:
            raise ValueError("A blocked verdict cannot be confirmed")
        return replace(
            self,
            level=VerdictLevel.ALLOW,
            reasons=(),
            accepted=self.accepted + self.reasons,
        )


def detached_head_reason(kind: str) -> SafetyReason:
    return SafetyReason(
        code=ReasonCode.DETACHED_HEAD,
        message=f"Cannot {kind}: you are in a detached HEAD state; check out a branch first",
    )
