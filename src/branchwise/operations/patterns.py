"""Ref Pattern Resolver -- glob selection of branch names.

Patterns support a single metacharacter, ``*``, matching any substring
(including the empty one and ``/``). Every other character is literal.
Patterns are parsed into a closed set of segment variants instead of being
compiled to a regular expression, so characters such as ``.``, ``+`` or
``[`` never acquire special meaning.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Union

from branchwise.exceptions import NoMatchError
from branchwise.models.refs import BranchRef, RefScope

if TYPE_CHECKING:
    from branchwise.models.state import RepoSnapshot
    from branchwise.protocols import GitBackend

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LiteralSegment:
    text: str


@dataclass(frozen=True)
class WildcardSegment:
    pass


Segment = Union[LiteralSegment, WildcardSegment]


@dataclass(frozen=True)
class GlobPattern:
    """A parsed ``*``-glob.

    Consecutive wildcards collapse into one; empty literals are dropped.
    """

    source: str
    segments: tuple[Segment, ...]

    @classmethod
    def parse(cls, pattern: str) -> GlobPattern:
        segments: list[Segment] = []
        for i, text in enumerate(pattern.split("*")):
            if i > 0 and not (segments and isinstance(segments[-1], WildcardSegment)):
                segments.append(WildcardSegment())
            if text:
                segments.append(LiteralSegment(text))
        return cls(source=pattern, segments=tuple(segments))

    @property
    def is_literal(self) -> bool:
        """True when the pattern names exactly one string (no wildcard)."""
        return not any(isinstance(s, WildcardSegment) for s in self.segments)

    def matches(self, text: str) -> bool:
        """Case-sensitive full match of ``text`` against the pattern."""
        segments = self.segments
        if not segments:
            return text == ""
        if self.is_literal:
            return text == self.source

        # Anchor the leading and trailing literals, then place the middle
        # literals left to right; leftmost placement is optimal for '*'.
        start, end = 0, len(text)
        first, last = segments[0], segments[-1]
        if isinstance(first, LiteralSegment):
            if not text.startswith(first.text):
                return False
            start = len(first.text)
            segments = segments[1:]
        if segments and isinstance(last, LiteralSegment):
            if not text.endswith(last.text) or end - len(last.text) < start:
                return False
            end -= len(last.text)
            segments = segments[:-1]

        pos = start
        for segment in segments:
            if isinstance(segment, WildcardSegment):
                continue
            found = text.find(segment.text, pos, end)
            if found < 0:
                return False
            pos = found + len(segment.text)
        return True


def match_glob(text: str, pattern: str) -> bool:
    """Convenience wrapper: does ``text`` match ``pattern``?"""
    return GlobPattern.parse(pattern).matches(text)


def candidate_refs(snapshot: RepoSnapshot, scope: RefScope) -> list[BranchRef]:
    """Candidate universe for ``scope``, in engine listing order."""
    refs: list[BranchRef] = []
    if scope in (RefScope.LOCAL, RefScope.ALL):
        refs.extend(
            BranchRef(name, is_remote=False, upstream=snapshot.upstream_of(name))
            for name in snapshot.local_branches
        )
    if scope in (RefScope.REMOTE, RefScope.ALL):
        refs.extend(BranchRef(name, is_remote=True) for name in snapshot.remote_branches)
    return refs


def _dedupe(refs: Iterable[BranchRef]) -> list[BranchRef]:
    seen: set[tuple[str, bool]] = set()
    out: list[BranchRef] = []
    for ref in refs:
        key = (ref.name, ref.is_remote)
        if key not in seen:
            seen.add(key)
            out.append(ref)
    return out


def filter_refs(refs: Sequence[BranchRef], patterns: Sequence[str]) -> list[BranchRef]:
    """Refs matching any of ``patterns``, deduplicated, first-seen order kept."""
    globs = [GlobPattern.parse(p) for p in patterns]
    return _dedupe(ref for ref in refs if any(g.matches(ref.name) for g in globs))


def resolve_patterns(
    snapshot: RepoSnapshot,
    patterns: Sequence[str] = (),
    *,
    scope: RefScope = RefScope.LOCAL,
    exclude: Sequence[str] = (),
) -> list[BranchRef]:
    """Resolve branch patterns against the snapshot's branch set.

    With no patterns every candidate in ``scope`` is selected. Exclusion
    patterns are applied to the same candidate universe.

    Raises:
        NoMatchError: If the selection is empty. An empty selection is
            an error, never a silent empty list.
    """
    candidates = candidate_refs(snapshot, scope)
    selected = filter_refs(candidates, patterns) if patterns else _dedupe(candidates)
    if exclude:
        excluded = {(r.name, r.is_remote) for r in filter_refs(candidates, exclude)}
        selected = [r for r in selected if (r.name, r.is_remote) not in excluded]
    logger.debug(
        "Resolved %s (scope=%s, exclude=%s) -> %s",
        list(patterns) or "(all)", scope, list(exclude), [r.name for r in selected],
    )
    if not selected:
        raise NoMatchError(list(patterns))
    return selected


def is_explicitly_named(name: str, patterns: Sequence[str]) -> bool:
    """True when a wildcard-free pattern names ``name`` exactly."""
    return any(GlobPattern.parse(p).is_literal and p == name for p in patterns)


def matches_any(name: str, patterns: Sequence[str]) -> bool:
    return any(match_glob(name, p) for p in patterns)


@dataclass(frozen=True)
class RevisionRange:
    """Inclusions plus exclude-from-traversal markers for a rev-list walk."""

    include: tuple[str, ...]
    exclude: tuple[str, ...] = ()

    def to_args(self) -> list[str]:
        return [*self.include, *(f"^{name}" for name in self.exclude)]


def build_revision_range(
    inclusions: Sequence[str],
    exclusion_patterns: Sequence[str],
    candidates: Sequence[BranchRef],
) -> RevisionRange:
    """Merge resolved inclusions with exclusion patterns.

    Exclusion patterns are resolved against ``candidates``; patterns that
    match nothing contribute nothing. A name both included and excluded
    stays excluded.
    """
    excluded = [r.name for r in filter_refs(candidates, exclusion_patterns)]
    include = tuple(dict.fromkeys(n for n in inclusions if n not in excluded))
    return RevisionRange(include=include, exclude=tuple(dict.fromkeys(excluded)))


def default_branch(backend: GitBackend, snapshot: RepoSnapshot, remote: str = "origin") -> str | None:
    """Best guess at the repository's main line.

    ``<remote>/HEAD`` target, then ``main``, then ``master``, then the
    first local branch.
    """
    if snapshot.has_remote(remote):
        target = backend.remote_default_branch(remote)
        if target and snapshot.has_branch(target):
            return target
    for name in ("main", "master"):
        if snapshot.has_branch(name):
            return name
    return snapshot.local_branches[0] if snapshot.local_branches else None
