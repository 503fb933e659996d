"""Working-directory impact analysis workflow.

Compares the working directory with HEAD, summarizes the change locally
and asks the backend which tests are affected.
"""

from collections.abc import Callable
from pathlib import Path

from testimpact.core.aggregator import analyze_snapshots
from testimpact.core.metrics import WORKING_DIR_POLICY
from testimpact.core.request_builder import build_request, map_response, now_ms
from testimpact.lib.backend_client import (
    BackendClient,
    BackendError,
    BackendUnavailableError,
    build_client_metadata,
)
from testimpact.lib.config import Settings, get_settings
from testimpact.lib.git import (
    ensure_git_repository,
    find_test_files,
    get_diff_for_files,
    get_working_dir_changed_files,
    working_dir_loaders,
)
from testimpact.lib.logging import get_logger
from testimpact.models.impact import ChangeSummary, ImpactResult

logger = get_logger(__name__)


def _empty_result() -> ImpactResult:
    timestamp_ms = now_ms()
    return ImpactResult(
        context_id=f"analysis-{timestamp_ms}",
        affected_tests=[],
        change_summary=ChangeSummary(),
        timestamp_ms=timestamp_ms,
    )


async def run_impact_analysis(
    project_path: str | Path,
    client: BackendClient | None = None,
    settings: Settings | None = None,
    progress_callback: Callable[[int, int, str], None] | None = None,
    should_continue: Callable[[], bool] | None = None,
) -> ImpactResult:
    """
    Analyze uncommitted changes and report the affected tests.

    A backend failure after the local analysis does not raise: the result
    carries no affected tests and lists every changed file as failed.

    Args:
        project_path: Repository root
        client: Backend client (one is created and closed when omitted)
        settings: Application settings
        progress_callback: Called as (current, total, file_path) per file
        should_continue: Checked before each file to support cancellation

    Returns:
        ImpactResult

    Raises:
        NotAGitRepositoryError: If ``project_path`` is not a git work tree
        BackendUnavailableError: If the backend health check fails
    """
    settings = settings or get_settings()
    repo_path = Path(project_path).resolve()
    await ensure_git_repository(repo_path, settings)

    owns_client = client is None
    backend = client or BackendClient(settings)

    try:
        if not await backend.check_health():
            raise BackendUnavailableError(backend.backend_url)

        changed = await get_working_dir_changed_files(repo_path, settings)
        if not changed:
            logger.info("no_changes_detected", project_path=str(repo_path))
            return _empty_result()

        logger.info("impact_analysis_started", project_path=str(repo_path), files=len(changed))

        run = await analyze_snapshots(
            working_dir_loaders(repo_path, changed, settings),
            policy=WORKING_DIR_POLICY,
            should_continue=should_continue,
            progress_callback=progress_callback,
        )
        attempted = set(run.changed_files) | set(run.failed_files)
        changed_files = [path for path in changed if path in attempted]

        if not run.changes:
            logger.warning("no_files_analyzed", failed=len(run.failed_files))
            return map_response({}, run.summary, changed_files, run.failed_files)

        diff = await get_diff_for_files(repo_path, run.changed_files, settings)
        request = build_request(
            run.changes,
            find_test_files(repo_path, settings),
            diff=diff,
            project_id=settings.project_id,
            client_metadata=build_client_metadata(str(repo_path)),
        )

        try:
            payload = await backend.detect_code_changes(request)
        except BackendError as e:
            logger.error(
                "impact_backend_failed",
                kind=e.kind.value,
                message=e.message,
                detail=e.detail,
            )
            return map_response({}, run.summary, changed_files, failed_files=changed_files)

        result = map_response(payload, run.summary, changed_files, run.failed_files)
        logger.info(
            "impact_analysis_completed",
            context_id=result.context_id,
            affected_tests=len(result.affected_tests),
            change_type=result.change_summary.change_type.value,
        )
        return result
    finally:
        if owns_client:
            await backend.close()


__all__ = ["run_impact_analysis", "BackendUnavailableError"]
