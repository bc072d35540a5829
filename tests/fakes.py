"""In-memory GitBackend for tests.

FakeGit models a commit DAG, local and remote-tracking branches, HEAD,
working-tree cleanliness and in-progress operations. Mutations can be
made to fail on demand to exercise recovery.
"""

from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from branchwise.exceptions import BackendError, CommitNotFoundError
from branchwise.models.plan import ForceMode
from branchwise.models.refs import CommitInfo

_EPOCH = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


@dataclass
class FakeCommit:
    sha: str
    parents: list[str]
    message: str
    author: str
    seq: int
    files: tuple[str, ...] = ()


@dataclass
class Failure:
    """A scheduled failure for one backend method."""

    message: str = "simulated failure"
    in_progress: str | None = None  # operation left half-done
    times: int = 1
    when: str | None = None  # only when this string is among the arguments


@dataclass
class FakeGit:
    commits: dict[str, FakeCommit] = field(default_factory=dict)
    branches: dict[str, str] = field(default_factory=dict)
    remote_refs: dict[str, str] = field(default_factory=dict)
    remote_names: list[str] = field(default_factory=list)
    remote_heads: dict[str, str] = field(default_factory=dict)
    upstreams: dict[str, str] = field(default_factory=dict)
    head_branch: str | None = None
    detached_at: str | None = None
    dirty: bool = False
    untracked: bool = False
    in_progress_op: str | None = None
    failures: dict[str, Failure] = field(default_factory=dict)
    calls: list[tuple] = field(default_factory=list)
    _seq: int = 0

    # ------------------------------------------------------------------
    # Test helpers (not part of the GitBackend protocol)
    # ------------------------------------------------------------------

    def new_commit(
        self,
        message: str,
        parents: list[str],
        *,
        author: str = "Dev <dev@example.com>",
        files: tuple[str, ...] = ("file.txt",),
    ) -> str:
        self._seq += 1
        sha = hashlib.sha1(f"{self._seq}:{message}:{parents}".encode()).hexdigest()
        self.commits[sha] = FakeCommit(sha, list(parents), message, author, self._seq, files)
        return sha

    def commit_on(self, branch: str, message: str, **kwargs) -> str:
        """Append a commit to ``branch``, creating the branch (as a root) if needed."""
        parent = self.branches.get(branch)
        sha = self.new_commit(message, [parent] if parent else [], **kwargs)
        self.branches[branch] = sha
        if self.head_branch is None and self.detached_at is None:
            self.head_branch = branch
        return sha

    def branch_from(self, name: str, start: str) -> str:
        sha = self._must_resolve(start)
        self.branches[name] = sha
        return sha

    def add_remote(self, name: str, default_branch: str | None = None) -> None:
        if name not in self.remote_names:
            self.remote_names.append(name)
        if default_branch is not None:
            self.remote_heads[name] = default_branch

    def track(self, branch: str, remote: str = "origin", at: str | None = None) -> str:
        """Create ``remote/branch`` (at ``at`` or the local tip) and make it the upstream."""
        self.add_remote(remote)
        ref = f"{remote}/{branch}"
        self.remote_refs[ref] = self._must_resolve(at or branch)
        self.upstreams[branch] = ref
        return ref

    def fail(self, method: str, **kwargs) -> None:
        self.failures[method] = Failure(**kwargs)

    def mutations(self) -> list[str]:
        return [c[0] for c in self.calls]

    def message_of(self, rev: str) -> str:
        return self.commits[self._must_resolve(rev)].message

    def parents_of(self, rev: str) -> list[str]:
        return self.commits[self._must_resolve(rev)].parents

    def _must_resolve(self, rev: str) -> str:
        sha = self.resolve_commit(rev)
        if sha is None:
            raise BackendError(f"git rev-parse {rev}", stderr=f"fatal: bad revision '{rev}'", status=128)
        return sha

    def _maybe_fail(self, method: str, *args: object) -> None:
        failure = self.failures.get(method)
        if failure is None or failure.times <= 0:
            return
        if failure.when is not None and failure.when not in [str(a) for a in args]:
            return
        failure.times -= 1
        if failure.in_progress:
            self.in_progress_op = failure.in_progress
        raise BackendError(f"git {method}", stderr=f"error: {failure.message}", status=1)

    def _record(self, method: str, *args: object) -> None:
        self._maybe_fail(method, *args)
        self.calls.append((method, *args))

    def _set_head(self, sha: str) -> None:
        if self.head_branch is not None:
            self.branches[self.head_branch] = sha
        else:
            self.detached_at = sha

    def _ancestors(self, sha: str) -> set[str]:
        seen: set[str] = set()
        stack = [sha]
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            stack.extend(self.commits[current].parents)
        return seen

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def current_branch(self) -> str | None:
        return self.head_branch

    def head_commit(self) -> str | None:
        if self.head_branch is not None:
            return self.branches.get(self.head_branch)
        return self.detached_at

    def local_branches(self) -> list[str]:
        return list(self.branches)

    def remote_branches(self) -> list[str]:
        return list(self.remote_refs)

    def remotes(self) -> list[str]:
        return list(self.remote_names)

    def remote_default_branch(self, remote: str) -> str | None:
        return self.remote_heads.get(remote)

    def upstream_of(self, branch: str) -> str | None:
        return self.upstreams.get(branch)

    def _resolve_base(self, base: str) -> str | None:
        if base == "HEAD":
            return self.head_commit()
        if base in self.branches:
            return self.branches[base]
        if base in self.remote_refs:
            return self.remote_refs[base]
        if base in self.commits:
            return base
        if len(base) >= 4:
            hits = [sha for sha in self.commits if sha.startswith(base)]
            if len(hits) == 1:
                return hits[0]
        return None

    def resolve_commit(self, rev: str) -> str | None:
        m = re.match(r"^(.+?)((?:[~^]\d*)*)$", rev)
        if m is None:
            return None
        sha = self._resolve_base(m.group(1))
        for op, num in re.findall(r"([~^])(\d*)", m.group(2)):
            if sha is None:
                return None
            n = int(num) if num else 1
            parents = self.commits[sha].parents
            if op == "~":
                for _ in range(n):
                    parents = self.commits[sha].parents
                    if not parents:
                        return None
                    sha = parents[0]
            elif n:
                sha = parents[n - 1] if len(parents) >= n else None
        return sha

    def commit_info(self, rev: str) -> CommitInfo:
        sha = self.resolve_commit(rev)
        if sha is None:
            raise CommitNotFoundError(rev)
        c = self.commits[sha]
        return CommitInfo(
            sha=sha,
            parents=list(c.parents),
            subject=c.message.splitlines()[0] if c.message else "",
            message=c.message,
            author=c.author,
            date=_EPOCH + timedelta(minutes=c.seq),
        )

    def commit_files(self, rev: str) -> list[str]:
        return list(self.commits[self._must_resolve(rev)].files)

    def ahead_behind(self, branch: str, upstream: str) -> tuple[int, int]:
        mine = self._ancestors(self._must_resolve(branch))
        theirs = self._ancestors(self._must_resolve(upstream))
        return len(mine - theirs), len(theirs - mine)

    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        return self._must_resolve(ancestor) in self._ancestors(self._must_resolve(descendant))

    def rev_list(self, include: list[str], exclude: list[str] | None = None) -> list[str]:
        reachable: set[str] = set()
        for ref in include:
            reachable |= self._ancestors(self._must_resolve(ref))
        for ref in exclude or []:
            sha = self.resolve_commit(ref)
            if sha is not None:
                reachable -= self._ancestors(sha)
        return sorted(reachable, key=lambda s: self.commits[s].seq, reverse=True)

    def is_clean(self, *, ignore_untracked: bool = False) -> bool:
        return not self.dirty and (ignore_untracked or not self.untracked)

    def in_progress(self) -> str | None:
        return self.in_progress_op

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def fetch(self, remote: str) -> None:
        self._record("fetch", remote)
        if remote not in self.remote_names:
            raise BackendError(f"git fetch {remote}", stderr=f"fatal: '{remote}' does not appear to be a git repository")

    def checkout(self, ref: str, *, detach: bool = False) -> None:
        self._record("checkout", ref, *(["--detach"] if detach else []))
        if not detach and ref in self.branches:
            self.head_branch, self.detached_at = ref, None
            return
        sha = self._must_resolve(ref)
        self.head_branch, self.detached_at = None, sha

    def set_branch(self, name: str, commit: str) -> None:
        self._record("set_branch", name, commit)
        if name == self.head_branch:
            raise BackendError(f"git branch -f {name}", stderr=f"fatal: cannot force update the current branch '{name}'")
        self.branches[name] = self._must_resolve(commit)

    def delete_branch(self, name: str) -> None:
        self._record("delete_branch", name)
        if name == self.head_branch:
            raise BackendError(f"git branch -D {name}", stderr="error: cannot delete the checked out branch")
        del self.branches[name]

    def merge(self, ref: str, *, ff_only: bool = False) -> None:
        self._record("merge", ref, *(["--ff-only"] if ff_only else []))
        target = self._must_resolve(ref)
        head = self.head_commit()
        assert head is not None
        if target in self._ancestors(head):
            return
        if head in self._ancestors(target):
            self._set_head(target)
            return
        if ff_only:
            raise BackendError(f"git merge --ff-only {ref}", stderr="fatal: Not possible to fast-forward, aborting.")
        self._set_head(self.new_commit(f"Merge {ref}", [head, target]))

    def rebase(self, onto: str) -> None:
        self._record("rebase", onto)
        base = self._must_resolve(onto)
        head = self.head_commit()
        assert head is not None
        for sha in reversed(self.rev_list([head], [base])):
            c = self.commits[sha]
            base = self.new_commit(c.message, [base], author=c.author, files=c.files)
        self._set_head(base)

    def cherry_pick(self, commit: str) -> None:
        self._record("cherry_pick", commit)
        c = self.commits[self._must_resolve(commit)]
        head = self.head_commit()
        assert head is not None
        self._set_head(self.new_commit(c.message, [head], author=c.author, files=c.files))

    def reset(self, commit: str, *, mode: str = "soft") -> None:
        self._record("reset", commit, mode)
        self._set_head(self._must_resolve(commit))
        if mode == "hard":
            self.dirty = False

    def commit(self, message: str) -> str:
        self._record("commit", message)
        head = self.head_commit()
        sha = self.new_commit(message, [head] if head else [])
        self._set_head(sha)
        return sha

    def push(
        self,
        remote: str,
        refspec: str,
        *,
        set_upstream: bool = False,
        force: ForceMode | None = None,
    ) -> None:
        self._record("push", remote, refspec, *([str(force)] if force else []))
        local, _, remote_branch = refspec.partition(":")
        src = self._must_resolve(local)
        key = f"{remote}/{remote_branch or local}"
        existing = self.remote_refs.get(key)
        if existing is not None and existing not in self._ancestors(src) and force is None:
            raise BackendError(f"git push {remote} {refspec}", stderr="! [rejected] (non-fast-forward)")
        self.remote_refs[key] = src
        if set_upstream and local in self.branches:
            self.upstreams[local] = key

    def abort(self, operation: str) -> None:
        self._record("abort", operation)
        self.in_progress_op = None
