"""
CLI commands for commit-to-commit test maintenance.

Provides the 'testimpact maintenance' command group.
"""

import asyncio
import json
from pathlib import Path

import typer
from rich.console import Console

from testimpact.cli.exit_codes import ExitCode, exit_code_for_error
from testimpact.cli.formatters import format_batch_fix_result, format_code_diff, format_maintenance_result
from testimpact.cli.progress import create_progress, file_progress_callback
from testimpact.lib.backend_client import BackendError
from testimpact.lib.git import GitCommandError, NotAGitRepositoryError
from testimpact.lib.logging import bind_context, clear_context, get_logger
from testimpact.models.maintenance import BatchFixResult, MaintenanceResult, UserDecision
from testimpact.workflows.maintenance import (
    InsufficientHistoryError,
    apply_user_decision,
    get_file_diff,
    run_commit_polling,
    run_maintenance_analysis,
)

logger = get_logger(__name__)
console = Console()

app = typer.Typer(
    name="maintenance",
    help="Commit-to-commit test maintenance commands",
    no_args_is_help=True,
)

WORKFLOW_ERRORS = (
    NotAGitRepositoryError,
    InsufficientHistoryError,
    GitCommandError,
    BackendError,
    ValueError,
    OSError,
)


def _resolve_project(project_path: str) -> Path:
    project_dir = Path(project_path).resolve()
    if not project_dir.exists():
        console.print(f"[red]Error:[/red] Project path not found: {project_path}")
        raise typer.Exit(ExitCode.PROJECT_NOT_FOUND)
    return project_dir


def _fail(error: Exception, event: str) -> typer.Exit:
    message = error.message if isinstance(error, BackendError) else str(error)
    console.print(f"[red]Error:[/red] {message}")
    if isinstance(error, BackendError) and error.detail:
        console.print(f"[dim]{error.detail}[/dim]")
    logger.error(event, error=str(error))
    return typer.Exit(exit_code_for_error(error))


@app.command("analyze")
def analyze(
    project_path: str = typer.Argument(
        ".",
        help="Path to the git repository",
    ),
    previous: str = typer.Option(
        None,
        "--previous",
        help="Baseline commit (defaults to the parent of --current)",
    ),
    current: str = typer.Option(
        None,
        "--current",
        help="Analyzed commit (defaults to HEAD)",
    ),
    output: str = typer.Option(
        None,
        "--output",
        "-o",
        help="Write the JSON report to this file instead of stdout",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Show progress and a readable summary",
    ),
) -> None:
    """
    Analyze which tests are affected by the last commit.

    Compares two commits (HEAD~1 and HEAD by default) and asks the backend
    which tests need maintenance.
    """
    project_dir = _resolve_project(project_path)
    bind_context(command="maintenance_analyze", project_path=str(project_dir))

    async def _run() -> MaintenanceResult:
        if not verbose:
            return await run_maintenance_analysis(project_dir, previous=previous, current=current)
        with create_progress(console) as progress:
            task = progress.add_task("Comparing commits...", total=None)
            result = await run_maintenance_analysis(
                project_dir,
                previous=previous,
                current=current,
                progress_callback=file_progress_callback(progress, task),
            )
            progress.remove_task(task)
        return result

    try:
        result = asyncio.run(_run())
    except KeyboardInterrupt:
        console.print("[yellow]Cancelled.[/yellow]")
        raise typer.Exit(ExitCode.CANCELLED) from None
    except WORKFLOW_ERRORS as e:
        raise _fail(e, "maintenance_analyze_failed") from None
    finally:
        clear_context()

    json_output = json.dumps(result.to_dict(), indent=2)
    if output:
        Path(output).write_text(json_output, encoding="utf-8")
        if verbose:
            console.print(f"[green]Report saved to {output}[/green]")
    else:
        print(json_output)

    if verbose:
        format_maintenance_result(result, console)

    if result.failed_files:
        raise typer.Exit(ExitCode.PARTIAL_FAILURE)


@app.command("fix")
def fix(
    project_path: str = typer.Argument(
        ".",
        help="Path to the git repository",
    ),
    decision: UserDecision = typer.Option(
        ...,
        "--decision",
        "-d",
        help="functionality_changed regenerates tests, refactor_only improves coverage",
    ),
    description: str = typer.Option(
        None,
        "--description",
        help="What changed in the functionality (required for functionality_changed)",
    ),
    previous: str = typer.Option(
        None,
        "--previous",
        help="Baseline commit (defaults to the parent of --current)",
    ),
    current: str = typer.Option(None, "--current", help="Analyzed commit (defaults to HEAD)"),
) -> None:
    """
    Analyze the last commit and fix the affected tests.

    Runs the maintenance analysis, then sends the affected tests to the
    backend for regeneration or coverage improvement.
    """
    if decision == UserDecision.FUNCTIONALITY_CHANGED and not (description or "").strip():
        console.print("[red]Error:[/red] --description is required for functionality_changed")
        raise typer.Exit(ExitCode.INVALID_ARGS)

    if decision == UserDecision.CANCELLED:
        console.print("[yellow]No action taken.[/yellow]")
        raise typer.Exit(ExitCode.CANCELLED)

    project_dir = _resolve_project(project_path)
    bind_context(command="maintenance_fix", project_path=str(project_dir), decision=decision.value)

    async def _run() -> tuple[MaintenanceResult, BatchFixResult]:
        with create_progress(console) as progress:
            task = progress.add_task("Analyzing commits...", total=None)
            result = await run_maintenance_analysis(project_dir, previous=previous, current=current)
            progress.update(task, description="Fixing affected tests...")
            fix_result = await apply_user_decision(result, decision, description=description)
            progress.remove_task(task)
        return result, fix_result

    try:
        result, fix_result = asyncio.run(_run())
    except KeyboardInterrupt:
        console.print("[yellow]Cancelled.[/yellow]")
        raise typer.Exit(ExitCode.CANCELLED) from None
    except WORKFLOW_ERRORS as e:
        raise _fail(e, "maintenance_fix_failed") from None
    finally:
        clear_context()

    format_maintenance_result(result, console)
    format_batch_fix_result(fix_result, console)

    if not fix_result.success or fix_result.failed_count:
        raise typer.Exit(ExitCode.PARTIAL_FAILURE)


@app.command("diff")
def diff(
    file_path: str = typer.Argument(
        ...,
        help="Source file, relative to the repository root",
    ),
    project_path: str = typer.Option(
        ".",
        "--project",
        "-p",
        help="Path to the git repository",
    ),
    previous: str = typer.Option(
        None,
        "--previous",
        help="Baseline commit (defaults to the parent of --current)",
    ),
    current: str = typer.Option(None, "--current", help="Analyzed commit (defaults to HEAD)"),
    backend: bool = typer.Option(
        False,
        "--backend",
        help="Ask the backend for its view of the diff",
    ),
    functions: bool = typer.Option(
        False,
        "--functions",
        "-f",
        help="Also show the source of each changed function",
    ),
    output: str = typer.Option(
        None,
        "--output",
        "-o",
        help="Write the diff as JSON to this file instead of displaying it",
    ),
) -> None:
    """
    Show how one file changed between two commits.

    Prints the unified diff, the changed functions and the line counts the
    maintenance analysis is based on.
    """
    project_dir = _resolve_project(project_path)
    bind_context(command="maintenance_diff", project_path=str(project_dir), file_path=file_path)

    try:
        code_diff = asyncio.run(
            get_file_diff(
                project_dir,
                file_path,
                previous=previous,
                current=current,
                use_backend=backend,
            )
        )
    except KeyboardInterrupt:
        console.print("[yellow]Cancelled.[/yellow]")
        raise typer.Exit(ExitCode.CANCELLED) from None
    except WORKFLOW_ERRORS as e:
        raise _fail(e, "maintenance_diff_failed") from None
    finally:
        clear_context()

    if output:
        Path(output).write_text(json.dumps(code_diff.to_dict(), indent=2), encoding="utf-8")
        console.print(f"[green]Diff saved to {output}[/green]")
        return

    format_code_diff(code_diff, console, show_functions=functions)


@app.command("watch")
def watch(
    project_path: str = typer.Argument(
        ".",
        help="Path to the git repository",
    ),
    interval: float = typer.Option(
        None,
        "--interval",
        "-i",
        min=0.1,
        help="Seconds between polls (defaults to settings)",
    ),
    max_polls: int = typer.Option(
        None,
        "--max-polls",
        min=1,
        help="Stop after this many polls",
    ),
) -> None:
    """
    Watch for new commits and analyze each one.

    Press Ctrl+C to stop watching.
    """
    project_dir = _resolve_project(project_path)
    bind_context(command="maintenance_watch", project_path=str(project_dir))

    def on_result(result: MaintenanceResult) -> None:
        format_maintenance_result(result, console)

    console.print(f"[bold blue]Watching[/bold blue] {project_dir} for new commits (Ctrl+C to stop)")
    try:
        asyncio.run(
            run_commit_polling(
                project_dir,
                on_result,
                interval=interval,
                max_polls=max_polls,
            )
        )
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopped watching.[/yellow]")
    except WORKFLOW_ERRORS as e:
        raise _fail(e, "maintenance_watch_failed") from None
    finally:
        clear_context()
