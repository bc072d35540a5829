"""branchwise squash -- fold the tip commits of the current branch into one."""

from __future__ import annotations

import click

from branchwise.models.requests import SquashRequest
from branchwise.models.safety import Override


@click.command()
@click.argument("range_", metavar="[RANGE]", required=False)
@click.option("-n", "--count", type=int, default=None, help="Squash the last N commits (N >= 2).")
@click.option("-m", "--message", default=None, help="Message for the new commit (default: oldest commit's).")
@click.option("--rewrite-pushed", is_flag=True, help="Allow rewriting commits already on the upstream.")
@click.option("--dry-run", is_flag=True, help="Show the plan without changing anything.")
@click.option("-y", "--yes", is_flag=True, help="Accept warnings without prompting.")
@click.pass_context
def squash(
    ctx: click.Context,
    range_: str | None,
    count: int | None,
    message: str | None,
    rewrite_pushed: bool,
    dry_run: bool,
    yes: bool,
) -> None:
    """Squash commits into one.

    RANGE is ``A..B`` (``B`` defaults to HEAD and must be the tip), e.g.
    ``HEAD~3..HEAD``. Alternatively give --count.
    """
    from branchwise.cli import run_request

    request = SquashRequest(count=count, range=range_, message=message)
    overrides = [Override.REWRITE_PUSHED] if rewrite_pushed else []
    run_request(ctx, request, dry_run=dry_run, yes=yes, overrides=overrides)
