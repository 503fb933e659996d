"""
CLI command for working-directory impact analysis.

Provides the 'testimpact impact' command.
"""

import asyncio
import json
from pathlib import Path

import typer
from rich.console import Console

from testimpact.cli.exit_codes import ExitCode, exit_code_for_error
from testimpact.cli.formatters import format_impact_result
from testimpact.cli.progress import create_progress, file_progress_callback
from testimpact.lib.backend_client import BackendError
from testimpact.lib.git import GitCommandError, NotAGitRepositoryError
from testimpact.lib.logging import bind_context, clear_context, get_logger
from testimpact.models.impact import ImpactResult
from testimpact.workflows.impact_analysis import run_impact_analysis

logger = get_logger(__name__)
console = Console()

WORKFLOW_ERRORS = (NotAGitRepositoryError, GitCommandError, BackendError, OSError)


def impact(
    project_path: str = typer.Argument(
        ".",
        help="Path to the git repository",
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
    Analyze the impact of uncommitted changes.

    Compares the working directory with HEAD, summarizes which functions
    changed and asks the backend which tests are affected.

    Exit codes:
      0 - Success
      9 - Some files could not be analyzed
    """
    project_dir = Path(project_path).resolve()
    if not project_dir.exists():
        console.print(f"[red]Error:[/red] Project path not found: {project_path}")
        raise typer.Exit(ExitCode.PROJECT_NOT_FOUND)

    if verbose:
        console.print("\n[bold blue]testimpact[/bold blue] - Impact Analysis")
        console.print(f"Project: {project_dir}\n")

    bind_context(command="impact", project_path=str(project_dir))
    try:
        result = asyncio.run(_run(project_dir, verbose))
    except KeyboardInterrupt:
        console.print("[yellow]Cancelled.[/yellow]")
        raise typer.Exit(ExitCode.CANCELLED) from None
    except WORKFLOW_ERRORS as e:
        message = e.message if isinstance(e, BackendError) else str(e)
        console.print(f"[red]Error:[/red] {message}")
        logger.error("impact_command_failed", error=str(e))
        raise typer.Exit(exit_code_for_error(e)) from None
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
        format_impact_result(result, console)

    if result.is_partial:
        raise typer.Exit(ExitCode.PARTIAL_FAILURE)


async def _run(project_dir: Path, verbose: bool) -> ImpactResult:
    """Run the workflow, with a progress bar in verbose mode."""
    if not verbose:
        return await run_impact_analysis(project_dir)

    with create_progress(console) as progress:
        task = progress.add_task("Detecting changes...", total=None)
        result = await run_impact_analysis(
            project_dir,
            progress_callback=file_progress_callback(progress, task),
        )
        progress.remove_task(task)
    return result
