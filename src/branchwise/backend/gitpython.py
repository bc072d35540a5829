"""GitPython implementation of the GitBackend protocol.

Each method is one whole git invocation through ``Repo.git``. Command
failures surface as BackendError carrying the command line and stderr.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

from git import Repo
from git.exc import GitCommandError, InvalidGitRepositoryError, NoSuchPathError

from branchwise.exceptions import BackendError, BranchwiseError, CommitNotFoundError
from branchwise.models.plan import ForceMode
from branchwise.models.refs import CommitInfo

if TYPE_CHECKING:
    from branchwise.protocols import InProgress, ResetMode

logger = logging.getLogger(__name__)

_FIELD_SEP = "\x00"
_SHOW_FORMAT = "%H%x00%P%x00%an <%ae>%x00%aI%x00%s%x00%B"


class GitPythonBackend:
    """GitBackend backed by a GitPython ``Repo``."""

    def __init__(self, repo: Repo) -> None:
        self.repo = repo
        # Never block on an editor or a credential prompt.
        self.repo.git.update_environment(GIT_EDITOR="true", GIT_TERMINAL_PROMPT="0")

    @classmethod
    def open(cls, path: str | Path = ".") -> GitPythonBackend:
        """Open the repository containing ``path``."""
        try:
            repo = Repo(str(path), search_parent_directories=True)
        except (InvalidGitRepositoryError, NoSuchPathError):
            raise BranchwiseError(f"Not inside a git repository: {path}") from None
        if repo.bare:
            raise BranchwiseError(f"Repository has no working tree: {path}")
        return cls(repo)

    @property
    def root(self) -> Path:
        return Path(self.repo.working_tree_dir or ".")

    def _git(self, *args: str) -> str:
        logger.debug("git %s", " ".join(args))
        try:
            return self.repo.git.execute(["git", *args])
        except GitCommandError as e:
            raise BackendError(
                "git " + " ".join(args), stderr=str(e.stderr or ""), status=e.status
            ) from None

    def _git_optional(self, *args: str) -> str | None:
        """Run a query where a non-zero exit means 'no answer'."""
        try:
            return self.repo.git.execute(["git", *args])
        except GitCommandError:
            return None

    # -- queries -----------------------------------------------------------

    def current_branch(self) -> str | None:
        out = self._git_optional("symbolic-ref", "-q", "--short", "HEAD")
        return out.strip() if out else None

    def head_commit(self) -> str | None:
        return self.resolve_commit("HEAD")

    def _refs(self, prefix: str) -> list[str]:
        out = self._git("for-each-ref", "--format=%(refname) %(symref)", prefix)
        names: list[str] = []
        for line in out.splitlines():
            refname, _, symref = line.partition(" ")
            if symref.strip():
                continue
            names.append(refname[len(prefix):].lstrip("/"))
        return names

    def local_branches(self) -> list[str]:
        return self._refs("refs/heads")

    def remote_branches(self) -> list[str]:
        return [name for name in self._refs("refs/remotes") if not name.endswith("/HEAD")]

    def remotes(self) -> list[str]:
        out = self._git("remote")
        return [line.strip() for line in out.splitlines() if line.strip()]

    def remote_default_branch(self, remote: str) -> str | None:
        out = self._git_optional("symbolic-ref", "-q", f"refs/remotes/{remote}/HEAD")
        if not out:
            return None
        return out.strip().removeprefix(f"refs/remotes/{remote}/")

    def upstream_of(self, branch: str) -> str | None:
        out = self._git_optional("rev-parse", "--abbrev-ref", f"{branch}@{{upstream}}")
        return out.strip() if out else None

    def resolve_commit(self, rev: str) -> str | None:
        out = self._git_optional("rev-parse", "--verify", "--quiet", f"{rev}^{{commit}}")
        return out.strip() if out else None

    def commit_info(self, rev: str) -> CommitInfo:
        sha = self.resolve_commit(rev)
        if sha is None:
            raise CommitNotFoundError(rev)
        out = self._git("show", "-s", f"--format={_SHOW_FORMAT}", sha)
        sha_, parents, author, date, subject, body = out.split(_FIELD_SEP, 5)
        return CommitInfo(
            sha=sha_.strip(),
            parents=parents.split(),
            subject=subject,
            message=body.strip(),
            author=author,
            date=datetime.fromisoformat(date.strip()) if date.strip() else None,
        )

    def commit_files(self, rev: str) -> list[str]:
        out = self._git("diff-tree", "--no-commit-id", "--name-only", "-r", "--root", rev)
        return [line for line in out.splitlines() if line]

    def ahead_behind(self, branch: str, upstream: str) -> tuple[int, int]:
        out = self._git("rev-list", "--left-right", "--count", f"{upstream}...{branch}")
        behind, ahead = (int(n) for n in out.split())
        return ahead, behind

    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        try:
            self.repo.git.execute(["git", "merge-base", "--is-ancestor", ancestor, descendant])
        except GitCommandError as e:
            if e.status == 1:
                return False
            raise BackendError(
                f"git merge-base --is-ancestor {ancestor} {descendant}",
                stderr=str(e.stderr or ""),
                status=e.status,
            ) from None
        return True

    def rev_list(self, include: list[str], exclude: list[str] | None = None) -> list[str]:
        if not include:
            return []
        args = [*include, *(f"^{ref}" for ref in exclude or [])]
        out = self._git("rev-list", *args, "--")
        return [line.strip() for line in out.splitlines() if line.strip()]

    def is_clean(self, *, ignore_untracked: bool = False) -> bool:
        args = ["status", "--porcelain"]
        if ignore_untracked:
            args.append("--untracked-files=no")
        return not self._git(*args).strip()

    def in_progress(self) -> InProgress | None:
        git_dir = Path(self.repo.git_dir)
        if (git_dir / "CHERRY_PICK_HEAD").exists():
            return "cherry-pick"
        if (git_dir / "rebase-merge").exists() or (git_dir / "rebase-apply").exists():
            return "rebase"
        if (git_dir / "MERGE_HEAD").exists():
            return "merge"
        return None

    # -- mutations ---------------------------------------------------------

    def fetch(self, remote: str) -> None:
        self._git("fetch", "--prune", remote)

    def checkout(self, ref: str, *, detach: bool = False) -> None:
        if detach:
            self._git("checkout", "--detach", ref)
        else:
            self._git("checkout", ref)

    def set_branch(self, name: str, commit: str) -> None:
        self._git("branch", "-f", name, commit)

    def delete_branch(self, name: str) -> None:
        self._git("branch", "-D", name)

    def merge(self, ref: str, *, ff_only: bool = False) -> None:
        self._git("merge", "--ff-only" if ff_only else "--no-edit", ref)

    def rebase(self, onto: str) -> None:
        self._git("rebase", onto)

    def cherry_pick(self, commit: str) -> None:
        self._git("cherry-pick", commit)

    def reset(self, commit: str, *, mode: ResetMode = "soft") -> None:
        self._git("reset", f"--{mode}", commit)

    def commit(self, message: str) -> str:
        self._git("commit", "-m", message)
        head = self.head_commit()
        if head is None:
            raise BackendError("git commit -m " + message, stderr="HEAD does not resolve after commit")
        return head

    def push(
        self,
        remote: str,
        refspec: str,
        *,
        set_upstream: bool = False,
        force: ForceMode | None = None,
    ) -> None:
        args = ["push"]
        if set_upstream:
            args.append("--set-upstream")
        if force is ForceMode.FORCE:
            args.append("--force")
        elif force is ForceMode.FORCE_WITH_LEASE:
            args.append("--force-with-lease")
        self._git(*args, remote, refspec)

    def abort(self, operation: InProgress) -> None:
        self._git(operation, "--abort")
