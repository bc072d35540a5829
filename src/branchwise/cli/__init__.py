"""Branchwise CLI -- safe branch workflows from the terminal.

This module is NEVER imported from branchwise/__init__.py.
It is only loaded via the ``branchwise`` entry point defined in pyproject.toml.
"""

from __future__ import annotations

import logging
import os
import sys
from contextlib import contextmanager
from typing import TYPE_CHECKING, Iterable

import click
from rich.console import Console
from rich.logging import RichHandler

from branchwise._version import __version__
from branchwise.cli.formatting import (
    format_dry_run,
    format_error,
    format_plan_summary,
    format_report,
    format_verdict,
    get_console,
)
from branchwise.exceptions import (
    EXIT_BLOCKED,
    EXIT_UNCONFIRMED,
    BranchwiseError,
    ExecutionError,
    SafetyBlockError,
    SafetyWarnError,
)
from branchwise.models.safety import VerdictLevel

if TYPE_CHECKING:
    from collections.abc import Iterator

    from branchwise.models.plan import Plan
    from branchwise.models.requests import OperationRequest
    from branchwise.models.safety import Override, SafetyVerdict
    from branchwise.workflow import Workflow


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose or os.environ.get("BRANCHWISE_DEBUG") == "1" else logging.WARNING
    handler = RichHandler(
        console=Console(stderr=True),
        show_time=False,
        show_path=verbose,
        markup=False,
    )
    root = logging.getLogger("branchwise")
    root.handlers[:] = [handler]
    root.setLevel(level)
    root.propagate = False


@click.group()
@click.option(
    "--repo",
    default=".",
    envvar="BRANCHWISE_REPO",
    help="Path inside the git repository to operate on.",
)
@click.option("-v", "--verbose", is_flag=True, help="Show debug logging.")
@click.version_option(version=__version__, prog_name="branchwise")
@click.pass_context
def cli(ctx: click.Context, repo: str, verbose: bool) -> None:
    """Branchwise: previewable, recoverable branch workflows for git."""
    ctx.ensure_object(dict)
    ctx.obj["repo"] = repo
    _setup_logging(verbose)


def _get_workflow(ctx: click.Context) -> Workflow:
    """Build a Workflow from Click context.

    A backend placed in ``ctx.obj["backend"]`` is used as-is, which is how
    the test suite drives the CLI without a real repository.
    """
    from branchwise.models.config import BranchwiseConfig
    from branchwise.workflow import Workflow

    backend = ctx.obj.get("backend")
    if backend is not None:
        return Workflow(backend, ctx.obj.get("config") or BranchwiseConfig())
    return Workflow.open(ctx.obj["repo"], config=ctx.obj.get("config"))


@contextmanager
def _workflow_session(ctx: click.Context) -> Iterator[tuple[Workflow, Console]]:
    """Yield (workflow, console) and turn errors into their exit codes.

    Safety verdicts and execution reports attached to an error are rendered
    before the error line.
    """
    console = get_console()
    try:
        yield _get_workflow(ctx), console
    except SystemExit:
        raise
    except (SafetyBlockError, SafetyWarnError) as e:
        format_verdict(e.verdict, console)
        format_error(str(e), console)
        raise SystemExit(e.exit_code) from None
    except ExecutionError as e:
        format_report(e.report, console)
        format_error(str(e), console)
        raise SystemExit(e.exit_code) from None
    except BranchwiseError as e:
        format_error(str(e), console)
        raise SystemExit(e.exit_code) from None
    except Exception as e:
        logging.getLogger(__name__).debug("Unexpected error", exc_info=True)
        format_error(str(e), console)
        raise SystemExit(1) from None


def _confirmer(yes: bool):
    def confirm(plan: Plan, verdict: SafetyVerdict) -> bool:
        if yes:
            return True
        if not sys.stdin.isatty():
            return False
        return click.confirm("Proceed despite these warnings?", default=False)

    return confirm


def run_request(
    ctx: click.Context,
    request: OperationRequest,
    *,
    dry_run: bool,
    yes: bool,
    overrides: Iterable[Override] = (),
    fetch: bool | None = None,
) -> None:
    """Shared body of every mutating command: summary, verdict, then run or render."""
    with _workflow_session(ctx) as (wf, console):
        outcome = wf.prepare(request, overrides=overrides, fetch=fetch)
        format_plan_summary(outcome.plan, console)
        console.print()
        format_verdict(outcome.verdict, console)

        if dry_run:
            format_dry_run(outcome.plan, console)
            if outcome.verdict.level is VerdictLevel.BLOCK:
                raise SystemExit(EXIT_BLOCKED)
            if outcome.verdict.level is VerdictLevel.WARN:
                raise SystemExit(EXIT_UNCONFIRMED)
            return

        if outcome.plan.is_empty and not outcome.verdict.blocked:
            for line in outcome.plan.render():
                console.print(f"  {line}", highlight=False, markup=False)
            console.print("[green]Nothing to do.[/green]")
            return

        try:
            result = wf.proceed(outcome, confirm=_confirmer(yes))
        except (SafetyBlockError, SafetyWarnError) as e:
            # The verdict was already shown above.
            format_error(str(e), console)
            raise SystemExit(e.exit_code) from None
        if result.report is not None:
            format_report(result.report, console)


# Register subcommands after cli group is defined
from branchwise.cli.commands.status import status  # noqa: E402
from branchwise.cli.commands.sync import sync  # noqa: E402
from branchwise.cli.commands.squash import squash  # noqa: E402
from branchwise.cli.commands.snip import snip  # noqa: E402
from branchwise.cli.commands.publish import publish  # noqa: E402
from branchwise.cli.commands.config import config  # noqa: E402

cli.add_command(status)
cli.add_command(sync)
cli.add_command(squash)
cli.add_command(snip)
cli.add_command(publish)
cli.add_command(config)
