"""Request models: what a front end asks the planner for.

Field values are not range-checked here; the planner rejects unusable
requests with dedicated PlanningError subclasses so the failure is named.
"""

from __future__ import annotations

import enum
from typing import Optional, Union

from pydantic import BaseModel

from branchwise.models.plan import ForceMode


class SyncStrategy(str, enum.Enum):
    """How a branch behind or diverged from its upstream is integrated."""

    MERGE = "merge"
    REBASE = "rebase"
    FF_ONLY = "ff-only"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def names(cls) -> list[str]:
        return [s.value for s in cls]


class SyncRequest(BaseModel):
    """Synchronize one or many branches with their upstreams."""

    patterns: list[str] = []
    all: bool = False
    exclude: list[str] = []
    strategy: Optional[str] = None  # None = config default


class SquashRequest(BaseModel):
    """Squash the tip commits of the current branch into one.

    Exactly one of ``count`` and ``range`` must be given.
    """

    count: Optional[int] = None
    range: Optional[str] = None
    message: Optional[str] = None


class RelocateRequest(BaseModel):
    """Move a commit off the current branch onto a target base ("snip")."""

    commit: str = "HEAD"
    onto: Optional[str] = None
    keep_original: bool = False
    new_branch: Optional[str] = None
    pull: bool = True


class PublishRequest(BaseModel):
    """Push a local branch to a remote."""

    local_branch: Optional[str] = None
    remote: Optional[str] = None
    remote_branch: Optional[str] = None
    to: Optional[str] = None  # "<remote>/<branch>" shorthand
    force: ForceMode = ForceMode.NONE
    set_upstream: Optional[bool] = None  # None = config default


OperationRequest = Union[SyncRequest, SquashRequest, RelocateRequest, PublishRequest]
