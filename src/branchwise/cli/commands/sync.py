"""branchwise sync -- bring branches up to date with their upstreams."""

from __future__ import annotations

import click

from branchwise.models.requests import SyncRequest


@click.command()
@click.argument("patterns", nargs=-1)
@click.option("--all", "all_branches", is_flag=True, help="Sync every local branch (protected ones only when named).")
@click.option("--exclude", multiple=True, metavar="PATTERN", help="Leave out branches matching PATTERN.")
@click.option("--strategy", default=None, help="merge, rebase or ff-only (default: from config).")
@click.option("--no-fetch", is_flag=True, help="Do not fetch remotes first.")
@click.option("--dry-run", is_flag=True, help="Show the plan without changing anything.")
@click.option("-y", "--yes", is_flag=True, help="Accept warnings without prompting.")
@click.pass_context
def sync(
    ctx: click.Context,
    patterns: tuple[str, ...],
    all_branches: bool,
    exclude: tuple[str, ...],
    strategy: str | None,
    no_fetch: bool,
    dry_run: bool,
    yes: bool,
) -> None:
    """Sync the current branch, or every branch matching PATTERNS.

    Branches behind their upstream are fast-forwarded; diverged branches
    are integrated with the chosen strategy. Protected branches are only
    touched in bulk runs when named explicitly.
    """
    from branchwise.cli import run_request

    request = SyncRequest(
        patterns=list(patterns),
        all=all_branches,
        exclude=list(exclude),
        strategy=strategy,
    )
    run_request(ctx, request, dry_run=dry_run, yes=yes, fetch=False if no_fetch else None)
