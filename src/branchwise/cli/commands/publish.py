"""branchwise publish -- push a local branch to a remote."""

from __future__ import annotations

import click

from branchwise.models.plan import ForceMode
from branchwise.models.requests import PublishRequest
from branchwise.models.safety import Override


@click.command()
@click.option("-r", "--remote", default=None, help="Remote to push to (default: config).")
@click.option("-b", "--branch", "remote_branch", default=None, help="Remote branch name (default: local name).")
@click.option("--to", default=None, metavar="REMOTE/BRANCH", help="Remote and branch in one value.")
@click.option("-l", "--local", "local_branch", default=None, help="Local branch to push (default: current).")
@click.option("--force", "force", flag_value=ForceMode.FORCE.value, help="Overwrite the remote branch.")
@click.option(
    "--force-with-lease",
    "force",
    flag_value=ForceMode.FORCE_WITH_LEASE.value,
    help="Overwrite only if the remote is where we last saw it.",
)
@click.option("--no-set-upstream", is_flag=True, help="Do not record the remote branch as upstream.")
@click.option("--allow-protected", is_flag=True, help="Allow force-pushing a protected branch.")
@click.option("--dry-run", is_flag=True, help="Show the plan without changing anything.")
@click.option("-y", "--yes", is_flag=True, help="Accept warnings without prompting.")
@click.pass_context
def publish(
    ctx: click.Context,
    remote: str | None,
    remote_branch: str | None,
    to: str | None,
    local_branch: str | None,
    force: str | None,
    no_set_upstream: bool,
    allow_protected: bool,
    dry_run: bool,
    yes: bool,
) -> None:
    """Publish a branch, reporting whether it is new, ahead or diverged."""
    from branchwise.cli import run_request

    request = PublishRequest(
        local_branch=local_branch,
        remote=remote,
        remote_branch=remote_branch,
        to=to,
        force=ForceMode(force) if force else ForceMode.NONE,
        set_upstream=False if no_set_upstream else None,
    )
    overrides = [Override.ALLOW_PROTECTED] if allow_protected else []
    run_request(ctx, request, dry_run=dry_run, yes=yes, overrides=overrides)
