"""Data models for testimpact."""

from testimpact.models.impact import (
    AffectedTest,
    ChangeKind,
    ChangeSummary,
    ChangeType,
    CodeChange,
    FunctionSpan,
    ImpactLevel,
    ImpactResult,
    SourceSnapshot,
)
from testimpact.models.maintenance import (
    BatchFixAction,
    BatchFixResult,
    CodeDiff,
    CommitComparison,
    GitCommit,
    MaintenanceResult,
    TestFixResult,
    UserDecision,
)

__all__ = [
    "ChangeType",
    "ImpactLevel",
    "ChangeKind",
    "SourceSnapshot",
    "FunctionSpan",
    "CodeChange",
    "ChangeSummary",
    "AffectedTest",
    "ImpactResult",
    "UserDecision",
    "BatchFixAction",
    "GitCommit",
    "CommitComparison",
    "MaintenanceResult",
    "TestFixResult",
    "BatchFixResult",
    "CodeDiff",
]
