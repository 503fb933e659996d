"""Commit-comparison maintenance models.

A maintenance run compares two commits, asks the backend which tests are
affected, and ends in a user decision that may trigger a batch fix.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from testimpact.models.impact import AffectedTest, ChangeSummary, CodeChange, FunctionSpan


class UserDecision(str, Enum):
    """Outcome of the decision step after a maintenance analysis."""

    FUNCTIONALITY_CHANGED = "functionality_changed"
    REFACTOR_ONLY = "refactor_only"
    CANCELLED = "cancelled"


class BatchFixAction(str, Enum):
    """Batch fix operation requested from the backend."""

    REGENERATE = "regenerate"
    IMPROVE_COVERAGE = "improve_coverage"


@dataclass(frozen=True)
class GitCommit:
    """Commit metadata."""

    hash: str
    short_hash: str
    message: str
    author: str
    timestamp_ms: int

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "hash": self.hash,
            "short_hash": self.short_hash,
            "message": self.message,
            "author": self.author,
            "timestamp": self.timestamp_ms,
        }


@dataclass(frozen=True)
class CommitComparison:
    """Result of comparing two commits."""

    current_commit: GitCommit
    previous_commit: GitCommit | None
    changed_files: tuple[str, ...] = ()

    @property
    def has_changes(self) -> bool:
        """True when at least one relevant file differs."""
        return bool(self.changed_files)


@dataclass
class MaintenanceResult:
    """Result of one commit-to-commit maintenance analysis.

    Attributes:
        context_id: Backend context identifier
        commit_hash: Analyzed (current) commit
        previous_commit_hash: Baseline commit
        affected_tests: Tests reported by the backend
        change_summary: Aggregated change statistics
        code_changes: Per-file change records sent to the backend
        failed_files: Files that could not be analyzed
        timestamp_ms: Completion time in milliseconds since the epoch
    """

    context_id: str
    commit_hash: str
    previous_commit_hash: str
    affected_tests: list[AffectedTest]
    change_summary: ChangeSummary
    code_changes: list[CodeChange] = field(default_factory=list)
    failed_files: list[str] = field(default_factory=list)
    timestamp_ms: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization.

        File contents are omitted; only per-file statistics are emitted.
        """
        return {
            "context_id": self.context_id,
            "commit_hash": self.commit_hash,
            "previous_commit_hash": self.previous_commit_hash,
            "timestamp": self.timestamp_ms,
            "change_summary": self.change_summary.to_dict(),
            "code_changes": [
                {
                    "file_path": change.file_path,
                    "changed_functions": list(change.changed_functions),
                    "lines_added": change.lines_added,
                    "lines_removed": change.lines_removed,
                }
                for change in self.code_changes
            ],
            "failed_files": self.failed_files,
            "affected_tests": [test.to_dict() for test in self.affected_tests],
        }


@dataclass
class CodeDiff:
    """Diff of one file between two commits, for review before a batch fix.

    Attributes:
        file_path: Path relative to the repository root
        previous_commit_hash: Baseline commit ("" for a first commit)
        commit_hash: Analyzed commit
        unified_diff: Unified diff text
        changed_functions: New or modified function names
        lines_added: Estimated added non-blank lines
        lines_removed: Estimated removed non-blank lines
        function_spans: Current source of each changed function
    """

    file_path: str
    previous_commit_hash: str
    commit_hash: str
    unified_diff: str
    changed_functions: tuple[str, ...] = ()
    lines_added: int = 0
    lines_removed: int = 0
    function_spans: list[FunctionSpan] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "file_path": self.file_path,
            "previous_commit_hash": self.previous_commit_hash,
            "commit_hash": self.commit_hash,
            "unified_diff": self.unified_diff,
            "changed_functions": list(self.changed_functions),
            "lines_added": self.lines_added,
            "lines_removed": self.lines_removed,
            "function_spans": [{"name": span.name, "text": span.text} for span in self.function_spans],
        }


@dataclass
class TestFixResult:
    """Outcome of fixing one test."""

    __test__ = False  # not a pytest test class

    test_path: str
    test_name: str
    success: bool
    new_code: str | None = None
    error: str | None = None


@dataclass
class BatchFixResult:
    """Outcome of a batch fix request."""

    success: bool
    action: BatchFixAction | None = None
    processed_count: int = 0
    results: list[TestFixResult] = field(default_factory=list)
    error: str | None = None

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed_count(self) -> int:
        return sum(1 for r in self.results if not r.success)


__all__ = [
    "UserDecision",
    "BatchFixAction",
    "GitCommit",
    "CommitComparison",
    "MaintenanceResult",
    "CodeDiff",
    "TestFixResult",
    "BatchFixResult",
]
