"""Backend request building and response mapping.

Turns aggregated change records into the payloads the impact backend
expects, and folds the backend's per-test verdicts back into the internal
result models. Backend payloads are treated as untrusted: missing or
malformed fields fall back to safe defaults instead of failing the run.
"""

import time
from collections.abc import Iterable, Sequence
from dataclasses import replace
from pathlib import PurePosixPath
from typing import Any

from testimpact.lib.logging import get_logger
from testimpact.models.impact import (
    AffectedTest,
    ChangeKind,
    ChangeSummary,
    CodeChange,
    ImpactLevel,
    ImpactResult,
)
from testimpact.models.maintenance import (
    BatchFixAction,
    BatchFixResult,
    CodeDiff,
    MaintenanceResult,
    TestFixResult,
)

logger = get_logger(__name__)

SEVERITY_MAP: dict[str, ImpactLevel] = {
    "critical": ImpactLevel.CRITICAL,
    "high": ImpactLevel.HIGH,
    "medium": ImpactLevel.MEDIUM,
    "low": ImpactLevel.LOW,
}

DEFAULT_IMPACT_LEVEL = ImpactLevel.MEDIUM
DEFAULT_REASON = "Test affected due to code changes"
UNKNOWN_TEST_NAME = "unknown_test"

# impact_score strictly above this marks a test as requiring an update
REQUIRES_UPDATE_SCORE = 0.5


def now_ms() -> int:
    """Current time in milliseconds since the epoch."""
    return int(time.time() * 1000)


def map_severity(severity: Any) -> ImpactLevel:
    """Map a backend severity string to an ImpactLevel (unknown -> medium)."""
    if isinstance(severity, str):
        return SEVERITY_MAP.get(severity, DEFAULT_IMPACT_LEVEL)
    return DEFAULT_IMPACT_LEVEL


def extract_test_name(test_path: str) -> str:
    """Derive a test name from its file path ("tests/test_api.py" -> "test_api")."""
    if not test_path:
        return UNKNOWN_TEST_NAME
    filename = PurePosixPath(test_path.replace("\\", "/")).name
    return filename.replace(".py", "", 1) or UNKNOWN_TEST_NAME


def _requires_update(verdict: dict[str, Any]) -> bool:
    score = verdict.get("impact_score")
    if isinstance(score, (int, float)) and not isinstance(score, bool):
        return score > REQUIRES_UPDATE_SCORE
    return verdict.get("requires_update") is True


def _reason(verdict: dict[str, Any]) -> str:
    reasons = verdict.get("reasons")
    if isinstance(reasons, list):
        text = [str(r) for r in reasons if r]
        if text:
            return ", ".join(text)
    reason = verdict.get("reason")
    if isinstance(reason, str) and reason:
        return reason
    return DEFAULT_REASON


def _optional_str(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


def map_affected_test(verdict: dict[str, Any]) -> AffectedTest:
    """
    Convert one backend test verdict into an AffectedTest.

    Accepts both the impact endpoint shape (``test_path``, ``severity``,
    ``reasons``, ``impact_score``) and the maintenance shape (``test_file``,
    ``impact_level``, ``reason``, ``requires_update``).
    """
    test_path = (
        _optional_str(verdict.get("test_path"))
        or _optional_str(verdict.get("test_file"))
        or _optional_str(verdict.get("file_path"))
        or ""
    )
    test_name = _optional_str(verdict.get("test_name")) or extract_test_name(test_path)
    severity = verdict.get("severity", verdict.get("impact_level"))
    line_number = verdict.get("line_number")
    if not isinstance(line_number, int) or isinstance(line_number, bool):
        line_number = None

    return AffectedTest(
        test_path=test_path,
        test_name=test_name,
        impact_level=map_severity(severity),
        reason=_reason(verdict),
        requires_update=_requires_update(verdict),
        line_number=line_number,
        source_file=_optional_str(verdict.get("source_file")),
        source_function=_optional_str(verdict.get("source_function")),
        test_class=_optional_str(verdict.get("test_class")),
    )


def map_affected_tests(entries: Any) -> list[AffectedTest]:
    """Map a list of verdicts, skipping entries that are not objects."""
    if not isinstance(entries, list):
        return []
    tests: list[AffectedTest] = []
    for entry in entries:
        if not isinstance(entry, dict):
            logger.warning("malformed_test_verdict_skipped", entry_type=type(entry).__name__)
            continue
        tests.append(map_affected_test(entry))
    return tests


def build_wire_payload(
    changes: Sequence[CodeChange],
    known_test_paths: Iterable[str],
    diff: str = "",
) -> dict[str, Any]:
    """
    Build the flat change description sent to the backend.

    Every changed file is tagged ``modified``; the change extractors never
    produce additions or removals.

    Returns:
        ``{"files_changed": [...], "related_tests": [...], "diff": ...}``
    """
    return {
        "files_changed": [
            {"path": change.file_path, "change_type": ChangeKind.MODIFIED.value}
            for change in changes
        ],
        "related_tests": list(known_test_paths),
        "diff": diff,
    }


def build_request(
    changes: Sequence[CodeChange],
    known_test_paths: Iterable[str],
    diff: str = "",
    project_id: str = "default",
    client_metadata: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Build the request body of the code-change detection endpoint.

    Args:
        changes: Per-file change records, in input order
        known_test_paths: Test files known in the workspace
        diff: Raw unified diff of the changed files, for traceability
        project_id: Backend project identifier
        client_metadata: Optional client tracking data

    Returns:
        JSON-serializable request body
    """
    wire = build_wire_payload(changes, known_test_paths, diff)
    request: dict[str, Any] = {
        "project_context": {
            "files_changed": wire["files_changed"],
            "related_tests": wire["related_tests"],
        },
        "git_diff": wire["diff"],
        "project_id": project_id,
    }
    if client_metadata:
        request["client_metadata"] = client_metadata
    return request


def map_response(
    payload: Any,
    summary: ChangeSummary,
    changed_files: Sequence[str],
    failed_files: Sequence[str] = (),
    timestamp_ms: int | None = None,
) -> ImpactResult:
    """
    Fold a backend response into an ImpactResult.

    The change summary is the locally aggregated one; the backend's own
    ``summary`` block is only logged.

    Args:
        payload: Decoded backend response
        summary: Locally aggregated change summary
        changed_files: All changed file paths, in input order
        failed_files: Files that failed locally or at the backend
        timestamp_ms: Completion time (defaults to now)

    Returns:
        ImpactResult
    """
    timestamp_ms = timestamp_ms if timestamp_ms is not None else now_ms()
    data = payload if isinstance(payload, dict) else {}

    context_id = _optional_str(data.get("context_id")) or f"analysis-{timestamp_ms}"
    affected_tests = map_affected_tests(data.get("impacted_tests"))

    backend_summary = data.get("summary")
    if isinstance(backend_summary, dict):
        logger.debug(
            "backend_summary_received",
            change_type=backend_summary.get("change_type"),
            lines_changed=backend_summary.get("lines_changed"),
        )

    return ImpactResult(
        context_id=context_id,
        affected_tests=affected_tests,
        change_summary=summary,
        timestamp_ms=timestamp_ms,
        changed_files=list(changed_files),
        failed_files=list(failed_files),
    )


def build_maintenance_request(
    commit_hash: str,
    previous_commit_hash: str,
    changes: Sequence[CodeChange],
    client_metadata: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Build the request body of the maintenance analysis endpoint."""
    request: dict[str, Any] = {
        "commit_hash": commit_hash,
        "previous_commit_hash": previous_commit_hash,
        "changes": [change.to_dict() for change in changes],
    }
    if client_metadata:
        request["client_metadata"] = client_metadata
    return request


def map_maintenance_response(
    payload: Any,
    commit_hash: str,
    previous_commit_hash: str,
    summary: ChangeSummary,
    changes: Sequence[CodeChange],
    failed_files: Sequence[str] = (),
    timestamp_ms: int | None = None,
) -> MaintenanceResult:
    """Fold a maintenance analysis response into a MaintenanceResult."""
    timestamp_ms = timestamp_ms if timestamp_ms is not None else now_ms()
    data = payload if isinstance(payload, dict) else {}

    return MaintenanceResult(
        context_id=_optional_str(data.get("context_id")) or f"maintenance-{timestamp_ms}",
        commit_hash=commit_hash,
        previous_commit_hash=previous_commit_hash,
        affected_tests=map_affected_tests(data.get("affected_tests")),
        change_summary=summary,
        code_changes=list(changes),
        failed_files=list(failed_files),
        timestamp_ms=timestamp_ms,
    )


def build_batch_fix_request(
    action: BatchFixAction,
    tests: Sequence[AffectedTest],
    user_description: str | None = None,
    client_metadata: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Build the request body of the batch fix endpoint.

    Raises:
        ValueError: If ``regenerate`` is requested without a description
    """
    if action == BatchFixAction.REGENERATE and not user_description:
        raise ValueError("A description of the functionality change is required to regenerate tests")

    request: dict[str, Any] = {
        "action": action.value,
        "tests": [
            {
                "test_file": test.test_path,
                "test_name": test.test_name,
                "test_class": test.test_class,
                "function_name": test.source_function or "",
                "source_file": test.source_file or "",
            }
            for test in tests
        ],
    }
    if user_description:
        request["user_description"] = user_description
    if client_metadata:
        request["client_metadata"] = client_metadata
    return request


def map_batch_fix_response(payload: Any, action: BatchFixAction) -> BatchFixResult:
    """Fold a batch fix response into a BatchFixResult."""
    data = payload if isinstance(payload, dict) else {}
    results: list[TestFixResult] = []
    entries = data.get("results")
    for entry in entries if isinstance(entries, list) else []:
        if not isinstance(entry, dict):
            logger.warning("malformed_fix_result_skipped", entry_type=type(entry).__name__)
            continue
        test_path = _optional_str(entry.get("test_file")) or ""
        results.append(
            TestFixResult(
                test_path=test_path,
                test_name=_optional_str(entry.get("test_name")) or extract_test_name(test_path),
                success=entry.get("success") is True,
                new_code=_optional_str(entry.get("new_code")),
                error=_optional_str(entry.get("error")),
            )
        )

    processed_count = data.get("processed_count")
    if not isinstance(processed_count, int) or isinstance(processed_count, bool):
        processed_count = len(results)

    return BatchFixResult(
        success=data.get("success") is True,
        action=action,
        processed_count=processed_count,
        results=results,
        error=_optional_str(data.get("error")),
    )


def _count(value: Any, fallback: int) -> int:
    if isinstance(value, int) and not isinstance(value, bool) and value >= 0:
        return value
    return fallback


def map_code_diff_response(payload: Any, local: CodeDiff) -> CodeDiff:
    """
    Overlay the backend's view of a file diff on the locally computed one.

    Fields the backend omits or sends malformed keep their local values.
    Function spans are always local.
    """
    data = payload if isinstance(payload, dict) else {}

    functions = data.get("changed_functions")
    if isinstance(functions, list) and all(isinstance(name, str) for name in functions):
        changed_functions = tuple(dict.fromkeys(functions))
    else:
        changed_functions = local.changed_functions

    return replace(
        local,
        unified_diff=_optional_str(data.get("unified_diff")) or local.unified_diff,
        changed_functions=changed_functions,
        lines_added=_count(data.get("lines_added"), local.lines_added),
        lines_removed=_count(data.get("lines_removed"), local.lines_removed),
    )


__all__ = [
    "SEVERITY_MAP",
    "map_severity",
    "extract_test_name",
    "map_affected_test",
    "map_affected_tests",
    "build_wire_payload",
    "build_request",
    "map_response",
    "build_maintenance_request",
    "map_maintenance_response",
    "build_batch_fix_request",
    "map_batch_fix_response",
    "map_code_diff_response",
    "now_ms",
]
