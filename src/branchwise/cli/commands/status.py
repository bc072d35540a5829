"""branchwise status -- classify branches against their upstreams."""

from __future__ import annotations

import click

from branchwise.cli.formatting import format_branch_table
from branchwise.models.refs import RefScope


@click.command()
@click.argument("patterns", nargs=-1)
@click.option("--remotes", "scope", flag_value=RefScope.REMOTE.value, help="Match remote-tracking branches only.")
@click.option("--all-refs", "scope", flag_value=RefScope.ALL.value, help="Match local and remote-tracking branches.")
@click.option("--exclude", multiple=True, metavar="PATTERN", help="Leave out branches matching PATTERN.")
@click.pass_context
def status(ctx: click.Context, patterns: tuple[str, ...], scope: str | None, exclude: tuple[str, ...]) -> None:
    """Show how branches relate to their upstreams.

    With no arguments, shows the checked-out branch. PATTERNS are branch
    names where ``*`` matches any run of characters.
    """
    from branchwise.cli import _workflow_session

    with _workflow_session(ctx) as (wf, console):
        ref_scope = RefScope(scope) if scope else None
        if ref_scope is RefScope.REMOTE:
            refs = wf.select(patterns, scope=ref_scope, exclude=exclude)
            console.print("[bold]Remote-tracking branches:[/bold]")
            for ref in refs:
                console.print(f"  {ref.name}", highlight=False, markup=False)
            return

        states = wf.status(patterns, scope=ref_scope, exclude=exclude)
        format_branch_table(states, console)
        if ref_scope is RefScope.ALL:
            remote = [r for r in wf.select(patterns, scope=ref_scope, exclude=exclude) if r.is_remote]
            if remote:
                console.print("[bold]Remote-tracking branches:[/bold]")
                for ref in remote:
                    console.print(f"  {ref.name}", highlight=False, markup=False)
        if states and states[0].is_detached:
            console.print("[magenta]HEAD is detached.[/magenta]")
        if states and not states[0].is_clean:
            console.print("[yellow]Working tree has uncommitted changes.[/yellow]")
