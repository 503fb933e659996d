"""Commit-to-commit maintenance workflow.

Analyzes what changed between two commits, asks the backend which tests
are affected, turns the user's decision into a batch fix request, and
builds per-file diffs for review.
"""

import asyncio
import inspect
from collections.abc import Awaitable, Callable, Sequence
from pathlib import Path

from testimpact.core.aggregator import analyze_file_change, analyze_snapshots
from testimpact.core.functions import extract_function_spans
from testimpact.core.metrics import COMMIT_POLICY
from testimpact.core.request_builder import (
    build_batch_fix_request,
    build_maintenance_request,
    map_batch_fix_response,
    map_code_diff_response,
    map_maintenance_response,
    now_ms,
)
from testimpact.core.watcher import CommitWatcher
from testimpact.lib.backend_client import (
    BackendClient,
    BackendError,
    BackendUnavailableError,
    build_client_metadata,
)
from testimpact.lib.config import Settings, get_settings
from testimpact.lib.git import (
    GitCommandError,
    commit_loaders,
    compare_commits,
    ensure_git_repository,
    get_commit_changed_files,
    get_current_commit_hash,
    get_previous_commit_hash,
    get_unified_diff,
)
from testimpact.lib.logging import get_logger
from testimpact.models.impact import AffectedTest
from testimpact.models.maintenance import (
    BatchFixAction,
    BatchFixResult,
    CodeDiff,
    MaintenanceResult,
    UserDecision,
)

logger = get_logger(__name__)

DECISION_ACTIONS: dict[UserDecision, BatchFixAction] = {
    UserDecision.FUNCTIONALITY_CHANGED: BatchFixAction.REGENERATE,
    UserDecision.REFACTOR_ONLY: BatchFixAction.IMPROVE_COVERAGE,
}

ResultHandler = Callable[[MaintenanceResult], Awaitable[None] | None]


class InsufficientHistoryError(Exception):
    """Raised when the repository has fewer than two commits to compare."""

    def __init__(self, repo_path: str | Path):
        self.repo_path = str(repo_path)
        super().__init__(f"Need at least two commits to compare in {repo_path}")


async def run_maintenance_analysis(
    project_path: str | Path,
    client: BackendClient | None = None,
    settings: Settings | None = None,
    previous: str | None = None,
    current: str | None = None,
    progress_callback: Callable[[int, int, str], None] | None = None,
) -> MaintenanceResult:
    """
    Analyze the changes between two commits.

    Args:
        project_path: Repository root
        client: Backend client (one is created and closed when omitted)
        settings: Application settings
        previous: Baseline commit (defaults to the parent of ``current``)
        current: Analyzed commit (defaults to HEAD)
        progress_callback: Called as (current, total, file_path) per file

    Returns:
        MaintenanceResult

    Raises:
        NotAGitRepositoryError: If ``project_path`` is not a git work tree
        InsufficientHistoryError: If no commit pair can be resolved
        BackendUnavailableError: If the backend health check fails
        BackendError: If the analysis request fails
    """
    settings = settings or get_settings()
    repo_path = Path(project_path).resolve()
    await ensure_git_repository(repo_path, settings)

    current = current or await get_current_commit_hash(repo_path, settings)
    if not current:
        raise InsufficientHistoryError(repo_path)
    previous = previous or await get_previous_commit_hash(repo_path, settings, revision=current)
    if not previous:
        raise InsufficientHistoryError(repo_path)

    logger.info("maintenance_analysis_started", previous=previous[:7], current=current[:7])

    changed = await get_commit_changed_files(repo_path, previous, current, settings)
    run = await analyze_snapshots(
        commit_loaders(repo_path, previous, current, changed, settings),
        policy=COMMIT_POLICY,
        progress_callback=progress_callback,
    )

    if not run.changes:
        logger.info("no_relevant_changes", previous=previous[:7], current=current[:7])
        return map_maintenance_response(
            {}, current, previous, run.summary, run.changes, run.failed_files, now_ms()
        )

    owns_client = client is None
    backend = client or BackendClient(settings)
    try:
        if not await backend.check_health(maintenance=True):
            raise BackendUnavailableError(backend.maintenance_url)

        request = build_maintenance_request(
            current,
            previous,
            run.changes,
            client_metadata=build_client_metadata(str(repo_path)),
        )
        payload = await backend.analyze_maintenance(request)
    finally:
        if owns_client:
            await backend.close()

    result = map_maintenance_response(
        payload, current, previous, run.summary, run.changes, run.failed_files
    )
    logger.info(
        "maintenance_analysis_completed",
        context_id=result.context_id,
        affected_tests=len(result.affected_tests),
        change_type=result.change_summary.change_type.value,
    )
    return result


async def apply_user_decision(
    result: MaintenanceResult,
    decision: UserDecision,
    client: BackendClient | None = None,
    description: str | None = None,
    selected: Sequence[AffectedTest] | None = None,
    settings: Settings | None = None,
) -> BatchFixResult:
    """
    Act on the user's decision about a maintenance result.

    ``functionality_changed`` regenerates the tests and requires a
    description of the new behaviour; ``refactor_only`` asks for coverage
    improvements; ``cancelled`` does nothing.

    Args:
        result: Maintenance result the decision applies to
        decision: User decision
        client: Backend client (one is created and closed when omitted)
        description: Functionality change description
        selected: Subset of affected tests to fix (defaults to all)
        settings: Application settings

    Returns:
        BatchFixResult

    Raises:
        ValueError: If a functionality change has no description
        BackendError: If the batch fix request fails
    """
    if decision == UserDecision.CANCELLED:
        logger.info("user_decision_cancelled", context_id=result.context_id)
        return BatchFixResult(success=True)

    action = DECISION_ACTIONS[decision]
    tests = list(selected) if selected is not None else list(result.affected_tests)
    if not tests:
        logger.info("batch_fix_skipped", reason="no_tests", action=action.value)
        return BatchFixResult(success=True, action=action)

    request = build_batch_fix_request(action, tests, user_description=description)

    owns_client = client is None
    backend = client or BackendClient(settings)
    try:
        payload = await backend.batch_fix_tests(request)
    finally:
        if owns_client:
            await backend.close()

    fix_result = map_batch_fix_response(payload, action)
    logger.info(
        "batch_fix_completed",
        action=action.value,
        processed=fix_result.processed_count,
        succeeded=fix_result.success_count,
        failed=fix_result.failed_count,
    )
    return fix_result


async def get_file_diff(
    project_path: str | Path,
    file_path: str,
    client: BackendClient | None = None,
    settings: Settings | None = None,
    previous: str | None = None,
    current: str | None = None,
    use_backend: bool = False,
) -> CodeDiff:
    """
    Build the diff of one file between two commits.

    The unified diff comes from git (a synthetic all-added diff when there
    is no baseline commit). Changed functions and line counts come from the
    engine, and the current source of every changed function is attached.
    With ``use_backend`` the backend's view of the diff overrides the local
    fields it provides.

    Raises:
        NotAGitRepositoryError: If ``project_path`` is not a git work tree
        InsufficientHistoryError: If HEAD cannot be resolved
        ValueError: If the file exists in neither commit
        BackendUnavailableError: If ``use_backend`` and the health check fails
        BackendError: If the backend request fails
    """
    settings = settings or get_settings()
    repo_path = Path(project_path).resolve()
    await ensure_git_repository(repo_path, settings)

    current = current or await get_current_commit_hash(repo_path, settings)
    if not current:
        raise InsufficientHistoryError(repo_path)
    previous = previous or await get_previous_commit_hash(repo_path, settings, revision=current)

    snapshot = await commit_loaders(repo_path, previous, current, [file_path], settings)[file_path]()
    if not snapshot.old_content and not snapshot.new_content:
        raise ValueError(f"{file_path} does not exist in {previous or 'the baseline'} or {current}")

    change = analyze_file_change(snapshot)
    diff = CodeDiff(
        file_path=file_path,
        previous_commit_hash=previous or "",
        commit_hash=current,
        unified_diff=await get_unified_diff(repo_path, previous, current, file_path, settings),
        changed_functions=change.changed_functions,
        lines_added=change.lines_added,
        lines_removed=change.lines_removed,
        function_spans=[
            span
            for span in extract_function_spans(snapshot.new_content)
            if span.name in change.changed_functions
        ],
    )
    logger.info(
        "file_diff_built",
        file_path=file_path,
        changed_functions=list(diff.changed_functions),
        lines_added=diff.lines_added,
        lines_removed=diff.lines_removed,
    )
    if not use_backend:
        return diff

    owns_client = client is None
    backend = client or BackendClient(settings)
    try:
        if not await backend.check_health(maintenance=True):
            raise BackendUnavailableError(backend.maintenance_url)
        payload = await backend.get_code_diff(file_path, snapshot.old_content, snapshot.new_content)
    finally:
        if owns_client:
            await backend.close()

    return map_code_diff_response(payload, diff)


async def run_commit_polling(
    project_path: str | Path,
    on_result: ResultHandler,
    client: BackendClient | None = None,
    settings: Settings | None = None,
    interval: float | None = None,
    watcher: CommitWatcher | None = None,
    max_polls: int | None = None,
) -> None:
    """
    Poll HEAD and run a maintenance analysis for every new commit.

    Runs until the watcher is stopped, ``max_polls`` polls have been made,
    or the task is cancelled. Backend and git failures for one commit are
    logged and polling continues.

    Args:
        project_path: Repository root
        on_result: Called with each MaintenanceResult (may be async)
        client: Backend client shared by all analyses
        settings: Application settings
        interval: Seconds between polls (defaults to settings)
        watcher: Commit watcher to drive
        max_polls: Stop after this many polls
    """
    settings = settings or get_settings()
    repo_path = Path(project_path).resolve()
    await ensure_git_repository(repo_path, settings)

    interval = interval if interval is not None else settings.poll_interval_seconds
    watcher = watcher or CommitWatcher()
    if not watcher.start(await get_current_commit_hash(repo_path, settings)):
        return

    polls = 0
    try:
        while watcher.is_watching and (max_polls is None or polls < max_polls):
            await asyncio.sleep(interval)
            polls += 1

            current = await get_current_commit_hash(repo_path, settings)
            has_changes = True
            if current and watcher.last_hash and current != watcher.last_hash:
                try:
                    comparison = await compare_commits(repo_path, watcher.last_hash, current, settings)
                    has_changes = comparison.has_changes
                except (GitCommandError, OSError) as e:
                    logger.warning("commit_comparison_failed", current_hash=current, error=str(e))

            transition = watcher.tick(current, has_changes)
            if transition is None:
                continue

            try:
                result = await run_maintenance_analysis(
                    repo_path,
                    client=client,
                    settings=settings,
                    previous=transition.previous_hash,
                    current=transition.current_hash,
                )
            except BackendError as e:
                logger.error(
                    "commit_analysis_failed",
                    current_hash=transition.current_hash,
                    kind=e.kind.value,
                    message=e.message,
                )
                continue
            except (GitCommandError, OSError) as e:
                logger.error("commit_analysis_failed", current_hash=transition.current_hash, error=str(e))
                continue

            outcome = on_result(result)
            if inspect.isawaitable(outcome):
                await outcome
    finally:
        watcher.stop()


__all__ = [
    "InsufficientHistoryError",
    "run_maintenance_analysis",
    "apply_user_decision",
    "get_file_diff",
    "run_commit_polling",
]
