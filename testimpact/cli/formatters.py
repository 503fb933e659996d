"""Rich formatters for CLI output."""

from datetime import datetime

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from testimpact.models.impact import AffectedTest, ChangeSummary, ImpactResult
from testimpact.models.maintenance import BatchFixResult, CodeDiff, MaintenanceResult

DIFF_LINE_STYLES = (
    ("+++", "bold"),
    ("---", "bold"),
    ("@@", "cyan"),
    ("+", "green"),
    ("-", "red"),
)


def format_change_summary(summary: ChangeSummary, console: Console) -> None:
    """Display the aggregated change statistics.

    Args:
        summary: Change summary
        console: Rich console instance
    """
    functions = ", ".join(sorted(summary.changed_functions)) or "-"
    content = (
        f"Change type: {_style_change_type(summary.change_type.value)}\n"
        f"Files changed: {summary.files_changed_count}\n"
        f"Lines: [green]+{summary.lines_added}[/green] [red]-{summary.lines_removed}[/red]\n"
        f"Functions: [cyan]{functions}[/cyan]"
    )
    console.print(Panel(content, title="Change Summary", border_style="blue"))


def format_affected_tests_table(tests: list[AffectedTest], console: Console) -> None:
    """Display affected tests in a Rich table.

    Args:
        tests: Affected tests
        console: Rich console instance
    """
    if not tests:
        console.print("[green]No tests affected.[/green]")
        return

    table = Table(title="Affected Tests")
    table.add_column("Test", style="cyan")
    table.add_column("File", style="dim", max_width=50)
    table.add_column("Impact", style="bold")
    table.add_column("Update", justify="center")
    table.add_column("Reason", style="white", max_width=60)

    for test in tests:
        name = f"{test.test_class}.{test.test_name}" if test.test_class else test.test_name
        location = f"{test.test_path}:{test.line_number}" if test.line_number else test.test_path
        table.add_row(
            name,
            location,
            _style_impact(test.impact_level.value),
            "[yellow]yes[/yellow]" if test.requires_update else "no",
            test.reason,
        )

    console.print(table)


def format_impact_result(result: ImpactResult, console: Console) -> None:
    """Display a working-directory impact result.

    Args:
        result: Impact result
        console: Rich console instance
    """
    format_change_summary(result.change_summary, console)
    format_affected_tests_table(result.affected_tests, console)

    style = "yellow" if result.is_partial else "green"
    console.print(f"[{style}]{result.status_message()}[/{style}]")
    for path in result.failed_files:
        console.print(f"  [red]failed:[/red] {path}")


def format_maintenance_result(result: MaintenanceResult, console: Console) -> None:
    """Display a commit-comparison maintenance result.

    Args:
        result: Maintenance result
        console: Rich console instance
    """
    analyzed = datetime.fromtimestamp(result.timestamp_ms / 1000).strftime("%Y-%m-%d %H:%M:%S")
    console.print(
        Panel(
            f"Commits: [dim]{result.previous_commit_hash[:7]}[/dim] -> "
            f"[cyan]{result.commit_hash[:7]}[/cyan]\n"
            f"Context: {result.context_id}\n"
            f"Analyzed: {analyzed}",
            title="Maintenance Analysis",
        )
    )
    format_change_summary(result.change_summary, console)

    if result.code_changes:
        table = Table(title="Changed Files")
        table.add_column("File", style="cyan")
        table.add_column("Functions", style="magenta")
        table.add_column("+", style="green", justify="right")
        table.add_column("-", style="red", justify="right")
        for change in result.code_changes:
            table.add_row(
                change.file_path,
                ", ".join(change.changed_functions) or "-",
                str(change.lines_added),
                str(change.lines_removed),
            )
        console.print(table)

    format_affected_tests_table(result.affected_tests, console)
    for path in result.failed_files:
        console.print(f"  [red]failed:[/red] {path}")


def format_batch_fix_result(result: BatchFixResult, console: Console) -> None:
    """Display the outcome of a batch fix.

    Args:
        result: Batch fix result
        console: Rich console instance
    """
    if result.action is None:
        console.print("[yellow]No action taken.[/yellow]")
        return

    if result.processed_count == 0 and not result.results:
        console.print(f"[yellow]Nothing to {result.action.value.replace('_', ' ')}.[/yellow]")
        return

    style = "green" if result.success and result.failed_count == 0 else "yellow"
    content = (
        f"Action: {result.action.value}\n"
        f"Processed: {result.processed_count}\n"
        f"Succeeded: {result.success_count}\n"
        f"Failed: {result.failed_count}"
    )
    if result.error:
        content += f"\n\n[red]{result.error}[/red]"
    console.print(Panel(content, title="Batch Fix", border_style=style))

    for fix in result.results:
        if not fix.success:
            console.print(f"  [red]failed:[/red] {fix.test_path}::{fix.test_name} {fix.error or ''}")


def format_code_diff(diff: CodeDiff, console: Console, show_functions: bool = False) -> None:
    """Display a file diff with its changed functions.

    Args:
        diff: File diff
        console: Rich console instance
        show_functions: Also print the current source of each changed function
    """
    functions = ", ".join(diff.changed_functions) or "-"
    previous = diff.previous_commit_hash[:7] or "(none)"
    content = (
        f"Commits: {previous} -> {diff.commit_hash[:7]}\n"
        f"Lines: [green]+{diff.lines_added}[/green] [red]-{diff.lines_removed}[/red]\n"
        f"Functions: [cyan]{functions}[/cyan]"
    )
    console.print(Panel(content, title=diff.file_path, border_style="blue"))

    if not diff.unified_diff:
        console.print("[yellow]No textual diff available.[/yellow]")
    for line in diff.unified_diff.splitlines():
        style = next((s for prefix, s in DIFF_LINE_STYLES if line.startswith(prefix)), "")
        console.print(Text(line, style=style))

    if show_functions:
        for span in diff.function_spans:
            console.print(Panel(Text(span.text.rstrip("\n")), title=span.name, border_style="cyan"))


def _style_impact(level: str) -> str:
    """Apply Rich styling to an impact level."""
    level_colors = {
        "critical": "[bold red]critical[/bold red]",
        "high": "[red]high[/red]",
        "medium": "[yellow]medium[/yellow]",
        "low": "[dim]low[/dim]",
    }
    return level_colors.get(level, level)


def _style_change_type(change_type: str) -> str:
    """Apply Rich styling to a change type."""
    type_colors = {
        "breaking_change": "[bold red]breaking_change[/bold red]",
        "feature_addition": "[green]feature_addition[/green]",
        "refactor": "[blue]refactor[/blue]",
        "bug_fix": "[yellow]bug_fix[/yellow]",
    }
    return type_colors.get(change_type, change_type)
