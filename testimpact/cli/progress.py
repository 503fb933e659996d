"""Progress indicators for the CLI.

Uses plain text columns instead of Unicode spinners so output stays
readable on limited terminals.
"""

from collections.abc import Callable

from rich.console import Console
from rich.progress import BarColumn, Progress, TaskID, TextColumn, TimeElapsedColumn


def create_progress(console: Console | None = None) -> Progress:
    """Create a Progress instance with ASCII-safe columns.

    Args:
        console: Optional Console instance. If None, creates a new one.

    Returns:
        Progress instance
    """
    if console is None:
        console = Console()

    return Progress(
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    )


def file_progress_callback(progress: Progress, task: TaskID) -> Callable[[int, int, str], None]:
    """Build a per-file callback that advances ``task``.

    Returns:
        Callback taking (current, total, file_path)
    """

    def report(current: int, total: int, file_path: str) -> None:
        progress.update(
            task,
            total=total,
            completed=current - 1,
            description=f"Analyzing {file_path} ({current}/{total})",
        )

    return report
