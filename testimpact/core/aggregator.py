"""File-level change analysis and project-level aggregation."""

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field

from testimpact.core.functions import FunctionExtractor, classify_changed_functions
from testimpact.core.metrics import (
    WORKING_DIR_POLICY,
    ChangePolicy,
    classify_change_type,
    estimate_line_delta,
)
from testimpact.lib.git import GitCommandError
from testimpact.lib.logging import get_logger
from testimpact.models.impact import ChangeSummary, CodeChange, SnapshotLoader, SourceSnapshot

logger = get_logger(__name__)


@dataclass
class AnalysisRun:
    """Partial-success result of analyzing a changed-file set.

    Attributes:
        changes: CodeChange records, in input order
        failed_files: Paths that could not be analyzed
        summary: Aggregate over ``changes``
        cancelled: True when the run stopped before the last file
    """

    changes: list[CodeChange] = field(default_factory=list)
    failed_files: list[str] = field(default_factory=list)
    summary: ChangeSummary = field(default_factory=ChangeSummary)
    cancelled: bool = False

    @property
    def changed_files(self) -> list[str]:
        return [change.file_path for change in self.changes]

    @property
    def attempted_count(self) -> int:
        return len(self.changes) + len(self.failed_files)


def analyze_file_change(
    snapshot: SourceSnapshot,
    extractor: FunctionExtractor | None = None,
) -> CodeChange:
    """
    Build the change record of one file.

    Args:
        snapshot: Old and new content of the file
        extractor: Boundary extractor (defaults to the regex heuristic)

    Returns:
        CodeChange with changed functions and estimated line delta
    """
    changed_functions = classify_changed_functions(
        snapshot.old_content, snapshot.new_content, extractor
    )
    delta = estimate_line_delta(snapshot.old_content, snapshot.new_content)

    return CodeChange(
        file_path=snapshot.file_path,
        old_content=snapshot.old_content,
        new_content=snapshot.new_content,
        changed_functions=tuple(changed_functions),
        lines_added=delta.lines_added,
        lines_removed=delta.lines_removed,
    )


def aggregate(
    changes: Iterable[CodeChange],
    policy: ChangePolicy = WORKING_DIR_POLICY,
) -> ChangeSummary:
    """
    Reduce per-file changes into a project-level summary.

    Line counts are summed, function names are deduplicated across files and
    the totals are classified with ``policy``.

    Args:
        changes: Per-file change records
        policy: Call-site classification policy

    Returns:
        ChangeSummary (all zeros and ``bug_fix`` for no changes)
    """
    files_changed = 0
    lines_added = 0
    lines_removed = 0
    functions: set[str] = set()

    for change in changes:
        files_changed += 1
        lines_added += change.lines_added
        lines_removed += change.lines_removed
        functions.update(change.changed_functions)

    return ChangeSummary(
        files_changed_count=files_changed,
        changed_functions=frozenset(functions),
        lines_added=lines_added,
        lines_removed=lines_removed,
        change_type=classify_change_type(lines_added, lines_removed, policy),
    )


async def analyze_snapshots(
    loaders: Mapping[str, SnapshotLoader],
    policy: ChangePolicy = WORKING_DIR_POLICY,
    extractor: FunctionExtractor | None = None,
    should_continue: Callable[[], bool] | None = None,
    progress_callback: Callable[[int, int, str], None] | None = None,
) -> AnalysisRun:
    """
    Analyze a changed-file set one file at a time.

    Files are processed sequentially in the mapping's order. A file whose
    snapshot cannot be loaded is logged, recorded in ``failed_files`` and
    skipped; the remaining files are still analyzed.

    Args:
        loaders: Ordered mapping of file path to an async snapshot loader
        policy: Call-site classification policy
        extractor: Boundary extractor
        should_continue: Checked before each file; returning False stops the run
        progress_callback: Called as (current, total, file_path)

    Returns:
        AnalysisRun with the changes that succeeded
    """
    run = AnalysisRun()
    total = len(loaders)

    for index, (file_path, load) in enumerate(loaders.items(), start=1):
        if should_continue is not None and not should_continue():
            logger.info("analysis_cancelled", processed=index - 1, total=total)
            run.cancelled = True
            break

        if progress_callback:
            progress_callback(index, total, file_path)

        try:
            snapshot = await load()
        except (GitCommandError, OSError, ValueError) as e:
            logger.warning("file_analysis_failed", file_path=file_path, error=str(e))
            run.failed_files.append(file_path)
            continue

        change = analyze_file_change(snapshot, extractor)
        run.changes.append(change)
        logger.debug(
            "file_analyzed",
            file_path=file_path,
            changed_functions=list(change.changed_functions),
            lines_added=change.lines_added,
            lines_removed=change.lines_removed,
        )

    run.summary = aggregate(run.changes, policy)
    logger.info(
        "analysis_aggregated",
        policy=policy.name,
        files_analyzed=len(run.changes),
        files_failed=len(run.failed_files),
        change_type=run.summary.change_type.value,
    )
    return run


__all__ = [
    "AnalysisRun",
    "SnapshotLoader",
    "analyze_file_change",
    "aggregate",
    "analyze_snapshots",
]
