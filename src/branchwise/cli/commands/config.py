"""branchwise config -- show the effective configuration."""

from __future__ import annotations

import click

from branchwise.cli.formatting import format_config


@click.command()
@click.pass_context
def config(ctx: click.Context) -> None:
    """Print settings after merging .branchwiserc, the global file and environment."""
    from branchwise.cli import _workflow_session

    with _workflow_session(ctx) as (wf, console):
        format_config(wf.config, console)
