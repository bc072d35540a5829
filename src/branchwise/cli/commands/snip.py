"""branchwise snip -- move a commit off the current branch onto another base."""

from __future__ import annotations

import click

from branchwise.models.requests import RelocateRequest
from branchwise.models.safety import Override


@click.command()
@click.option("-c", "--commit", default="HEAD", show_default=True, help="Commit to snip.")
@click.option("-o", "--onto", default=None, help="Target base branch (default: config or main line).")
@click.option("-k", "--keep-original", is_flag=True, help="Leave the current branch as is; put the result on a new branch.")
@click.option("-b", "--branch", "new_branch", default=None, help="Name for the new branch with --keep-original.")
@click.option("--no-pull", is_flag=True, help="Do not fast-forward the target from its upstream first.")
@click.option("-f", "--force", is_flag=True, help="Proceed even if commits would be lost.")
@click.option("--dry-run", is_flag=True, help="Show the plan without changing anything.")
@click.option("-y", "--yes", is_flag=True, help="Accept warnings without prompting.")
@click.pass_context
def snip(
    ctx: click.Context,
    commit: str,
    onto: str | None,
    keep_original: bool,
    new_branch: str | None,
    no_pull: bool,
    force: bool,
    dry_run: bool,
    yes: bool,
) -> None:
    """Re-apply COMMIT on top of the target branch.

    The current branch ends up as the target plus that one commit (its
    other commits are dropped unless --keep-original is given).
    """
    from branchwise.cli import run_request

    request = RelocateRequest(
        commit=commit,
        onto=onto,
        keep_original=keep_original,
        new_branch=new_branch,
        pull=not no_pull,
    )
    overrides = [Override.FORCE] if force else []
    run_request(ctx, request, dry_run=dry_run, yes=yes, overrides=overrides)
