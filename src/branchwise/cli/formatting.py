"""Rich formatting helpers for the Branchwise CLI.

Rich auto-detects TTY and degrades gracefully when piped (no ANSI codes).
Step descriptions are printed verbatim so dry-run output matches what a
real run executes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from branchwise.models.state import BranchClassification
from branchwise.models.safety import VerdictLevel

if TYPE_CHECKING:
    from branchwise.models.config import BranchwiseConfig
    from branchwise.models.plan import Plan
    from branchwise.models.report import ExecutionReport
    from branchwise.models.safety import SafetyVerdict
    from branchwise.models.state import BranchState

_CLASS_STYLES = {
    BranchClassification.UP_TO_DATE: "green",
    BranchClassification.AHEAD: "cyan",
    BranchClassification.BEHIND: "yellow",
    BranchClassification.DIVERGED: "red",
    BranchClassification.NO_UPSTREAM: "dim",
    BranchClassification.DETACHED: "magenta",
}

_LEVEL_STYLES = {
    VerdictLevel.ALLOW: "green",
    VerdictLevel.WARN: "yellow",
    VerdictLevel.BLOCK: "red",
}


def get_console() -> Console:
    """Create a Rich Console that auto-detects TTY for graceful pipe degradation."""
    return Console(stderr=False, soft_wrap=True)


def format_error(message: str, console: Console) -> None:
    """Display an error message."""
    console.print(f"[red]Error:[/red] {escape(message)}", highlight=False)


def _print_field(label: str, value: str, console: Console) -> None:
    lines = value.splitlines() or [""]
    console.print(f"  [bold]{escape(label)}:[/bold] {escape(lines[0])}", highlight=False)
    for line in lines[1:]:
        console.print(f"      {escape(line)}", highlight=False)


def format_branch_table(states: list[BranchState], console: Console) -> None:
    """Classification, divergence and upstream per branch."""
    if not states:
        console.print("[dim]No branches.[/dim]")
        return

    table = Table(show_header=True, header_style="bold", box=None, pad_edge=False)
    table.add_column("Branch")
    table.add_column("State")
    table.add_column("Ahead", justify="right")
    table.add_column("Behind", justify="right")
    table.add_column("Upstream", style="dim")
    table.add_column("Tip", style="yellow")

    for state in states:
        style = _CLASS_STYLES.get(state.classification, "")
        div = state.divergence
        table.add_row(
            escape(state.name or "(detached HEAD)"),
            f"[{style}]{state.classification.value}[/{style}]" if style else state.classification.value,
            str(div.ahead) if div else "-",
            str(div.behind) if div else "-",
            escape(state.upstream or "-"),
            (state.tip or "")[:8],
        )
    console.print(table)


def format_plan_summary(plan: Plan, console: Console) -> None:
    """Title, labelled details, per-branch states and notes of a plan."""
    console.print(f"[bold]{escape(plan.title or str(plan.kind))}[/bold]", highlight=False)
    for label, value in plan.details:
        _print_field(label, value, console)

    if plan.branch_states:
        console.print()
        console.print("[bold]Branch Status:[/bold]")
        format_branch_table(list(plan.branch_states), console)
    if plan.high_risk:
        console.print(
            f"[yellow]Diverged (higher risk):[/yellow] {escape(', '.join(plan.high_risk))}",
            highlight=False,
        )
    for note in plan.notes:
        console.print(f"[yellow]Note:[/yellow] {escape(note)}", highlight=False)


def format_verdict(verdict: SafetyVerdict, console: Console) -> None:
    """Verdict level plus every reason still in force and every accepted risk."""
    style = _LEVEL_STYLES[verdict.level]
    if verdict.allowed and not verdict.accepted:
        console.print(f"[{style}]Safety check passed[/{style}]")
        return
    console.print(f"[{style}]Safety verdict: {verdict.level.value.upper()}[/{style}]")
    for reason in verdict.reasons:
        console.print(f"  [{style}]{reason.code.value}[/{style}] {escape(reason.message)}", highlight=False)
        for sha in reason.commits:
            console.print(f"      {sha}", highlight=False)
    for reason in verdict.accepted:
        console.print(
            f"  [dim]accepted {reason.code.value} ({reason.override})[/dim] {escape(reason.message)}",
            highlight=False,
        )


def format_dry_run(plan: Plan, console: Console) -> None:
    console.print()
    console.print("[bold]DRY RUN - Would execute:[/bold]")
    if not plan.steps:
        console.print("  [dim](nothing to do)[/dim]")
    for line in plan.render():
        console.print(f"  {escape(line)}", highlight=False)


def format_report(report: ExecutionReport, console: Console) -> None:
    """Completed steps, the failing step and what recovery did."""
    for step in report.completed_steps:
        mark = "[dim]-[/dim]" if not step.executable else "[green]ok[/green]"
        console.print(f"  {mark} {escape(step.description)}", highlight=False)

    if report.succeeded:
        if report.updated_groups:
            console.print(f"Updated: {escape(', '.join(report.updated_groups))}", highlight=False)
        for reason in report.accepted_risks:
            console.print(f"[dim]Accepted risk: {reason.code.value}[/dim]")
        console.print("[green]Done.[/green]")
        return

    failed = report.failed_step.description if report.failed_step else "?"
    console.print(f"  [red]FAILED[/red] step {report.failed_index}: {escape(failed)}", highlight=False)
    if report.error:
        console.print(f"  {escape(report.error)}", highlight=False)
    if report.updated_groups:
        console.print(
            f"Branches already updated: {escape(', '.join(report.updated_groups))}", highlight=False
        )
    if report.rollback_performed:
        for action in report.recovery_actions:
            console.print(f"  [yellow]recovery:[/yellow] {escape(action)}", highlight=False)
        if report.rollback_succeeded:
            console.print("[yellow]Rolled back to the original state.[/yellow]")
    if report.manual_recovery_hint:
        console.print(f"[red]{escape(report.manual_recovery_hint)}[/red]", highlight=False)


def format_config(config: BranchwiseConfig, console: Console) -> None:
    table = Table(show_header=True, header_style="bold", box=None, pad_edge=False)
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    for key, value in config.model_dump(mode="json").items():
        if isinstance(value, list):
            value = ", ".join(value)
        table.add_row(key, escape("" if value is None else str(value)))
    console.print(table)
