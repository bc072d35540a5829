"""Reference domain models: branch refs, selection scopes and commits.

BranchRef values are looked up fresh for every planning cycle. A name is
unique within its origin class at one instant but is not an identity that
survives a mutation, so nothing here is cached.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class RefScope(str, enum.Enum):
    """Which branch namespaces a pattern is resolved against."""

    LOCAL = "local"
    REMOTE = "remote"  # remote-tracking only
    ALL = "all"  # local followed by remote-tracking

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class BranchRef:
    """A branch name plus its origin class.

    ``upstream`` is held by name only; resolve it again at use time.
    """

    name: str
    is_remote: bool = False
    upstream: str | None = None

    @property
    def remote(self) -> str | None:
        """Remote name for a remote-tracking ref (``origin`` for ``origin/main``)."""
        if not self.is_remote or "/" not in self.name:
            return None
        return self.name.split("/", 1)[0]

    def __str__(self) -> str:
        return self.name


class CommitInfo(BaseModel):
    """Metadata for a single commit as reported by the engine."""

    sha: str
    parents: list[str] = []
    subject: str = ""
    message: str = ""
    author: str = ""
    date: Optional[datetime] = None

    @property
    def short_sha(self) -> str:
        return self.sha[:7]

    @property
    def is_root(self) -> bool:
        return not self.parents

    @property
    def is_merge(self) -> bool:
        return len(self.parents) > 1

    def one_line(self) -> str:
        return f"{self.short_sha} {self.subject}"
