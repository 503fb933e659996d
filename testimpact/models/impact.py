"""Change impact data models.

Defines the entities flowing through the detection engine: per-file
snapshots and changes, the project-level change summary, and the
backend-supplied test verdicts folded into an impact result.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ChangeType(str, Enum):
    """Overall classification of a change set."""

    REFACTOR = "refactor"
    FEATURE_ADDITION = "feature_addition"
    BUG_FIX = "bug_fix"
    BREAKING_CHANGE = "breaking_change"


class ImpactLevel(str, Enum):
    """Severity of the impact on a single test."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ChangeKind(str, Enum):
    """Kind tag attached to each changed file sent to the backend."""

    MODIFIED = "modified"
    ADDED = "added"
    REMOVED = "removed"


@dataclass(frozen=True)
class SourceSnapshot:
    """Old and new content of one file at two points in history.

    Attributes:
        file_path: Path relative to the repository root
        old_content: Previous content ("" when the file is new)
        new_content: Current content
    """

    file_path: str
    old_content: str
    new_content: str

    @property
    def is_new_file(self) -> bool:
        """True when there is no previous content to compare against."""
        return not self.old_content.strip()


# Async callable producing the snapshot of one file
SnapshotLoader = Callable[[], Awaitable[SourceSnapshot]]


@dataclass(frozen=True)
class FunctionSpan:
    """Literal source text of one function definition."""

    name: str
    text: str


@dataclass(frozen=True)
class CodeChange:
    """Function-level change record for a single file.

    Attributes:
        file_path: Path relative to the repository root
        old_content: Previous content
        new_content: Current content
        changed_functions: New or modified function names, in the order
            they appear in the new content
        lines_added: Estimated added non-blank lines
        lines_removed: Estimated removed non-blank lines
    """

    file_path: str
    old_content: str
    new_content: str
    changed_functions: tuple[str, ...] = ()
    lines_added: int = 0
    lines_removed: int = 0

    def __post_init__(self) -> None:
        if self.lines_added < 0 or self.lines_removed < 0:
            raise ValueError(
                f"Line counts must be non-negative for {self.file_path}: "
                f"+{self.lines_added}/-{self.lines_removed}"
            )
        if len(set(self.changed_functions)) != len(self.changed_functions):
            raise ValueError(f"Duplicate changed functions for {self.file_path}")

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "file_path": self.file_path,
            "old_content": self.old_content,
            "new_content": self.new_content,
            "changed_functions": list(self.changed_functions),
            "lines_added": self.lines_added,
            "lines_removed": self.lines_removed,
        }


@dataclass(frozen=True)
class ChangeSummary:
    """Aggregate statistics over a set of CodeChange records."""

    files_changed_count: int = 0
    changed_functions: frozenset[str] = frozenset()
    lines_added: int = 0
    lines_removed: int = 0
    change_type: ChangeType = ChangeType.BUG_FIX

    @property
    def lines_changed(self) -> int:
        """Total of added and removed lines."""
        return self.lines_added + self.lines_removed

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "files_changed_count": self.files_changed_count,
            "changed_functions": sorted(self.changed_functions),
            "lines_added": self.lines_added,
            "lines_removed": self.lines_removed,
            "change_type": self.change_type.value,
        }


@dataclass
class AffectedTest:
    """A test the backend judged to be affected by the change.

    Attributes:
        test_path: Path of the test file
        test_name: Test (or test module) name
        impact_level: Severity mapped from the backend verdict
        reason: Human-readable rationale
        requires_update: Whether the test most likely needs to be rewritten
        line_number: Optional line of the test definition
        source_file: Source file the verdict relates to (maintenance only)
        source_function: Source function the verdict relates to (maintenance only)
        test_class: Enclosing test class, if any
    """

    test_path: str
    test_name: str
    impact_level: ImpactLevel
    reason: str
    requires_update: bool = False
    line_number: int | None = None
    source_file: str | None = None
    source_function: str | None = None
    test_class: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "test_path": self.test_path,
            "test_name": self.test_name,
            "impact_level": self.impact_level.value,
            "reason": self.reason,
            "requires_update": self.requires_update,
        }
        if self.line_number is not None:
            result["line_number"] = self.line_number
        if self.source_file:
            result["source_file"] = self.source_file
        if self.source_function:
            result["source_function"] = self.source_function
        if self.test_class:
            result["test_class"] = self.test_class
        return result


@dataclass
class ImpactResult:
    """Terminal artifact of one working-directory analysis run.

    Attributes:
        context_id: Backend context identifier
        affected_tests: Tests reported by the backend
        change_summary: Aggregated change statistics
        timestamp_ms: Completion time in milliseconds since the epoch
        changed_files: All files considered changed, in input order
        failed_files: Files that could not be analyzed
    """

    context_id: str
    affected_tests: list[AffectedTest]
    change_summary: ChangeSummary
    timestamp_ms: int
    changed_files: list[str] = field(default_factory=list)
    failed_files: list[str] = field(default_factory=list)

    @property
    def analyzed_count(self) -> int:
        """Number of changed files that were analyzed successfully."""
        return len(self.changed_files) - len(self.failed_files)

    @property
    def is_partial(self) -> bool:
        """True when at least one file failed."""
        return bool(self.failed_files)

    def status_message(self) -> str:
        """Render the partial-success line, e.g. "3/4 files analyzed, 2 tests affected"."""
        message = f"{self.analyzed_count}/{len(self.changed_files)} files analyzed"
        if self.affected_tests:
            message += f", {len(self.affected_tests)} tests affected"
        else:
            message += ", no tests affected"
        return message

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "context_id": self.context_id,
            "timestamp": self.timestamp_ms,
            "changed_files": self.changed_files,
            "failed_files": self.failed_files,
            "change_summary": self.change_summary.to_dict(),
            "affected_tests": [test.to_dict() for test in self.affected_tests],
        }


__all__ = [
    "ChangeType",
    "ImpactLevel",
    "ChangeKind",
    "SourceSnapshot",
    "SnapshotLoader",
    "FunctionSpan",
    "CodeChange",
    "ChangeSummary",
    "AffectedTest",
    "ImpactResult",
]
