"""Change impact detection engine."""

from testimpact.core.aggregator import AnalysisRun, aggregate, analyze_file_change, analyze_snapshots
from testimpact.core.functions import (
    FunctionExtractor,
    RegexFunctionExtractor,
    classify_changed_functions,
    extract_all_function_names,
    extract_function_span,
)
from testimpact.core.metrics import (
    COMMIT_POLICY,
    WORKING_DIR_POLICY,
    ChangePolicy,
    classify_change_type,
    estimate_line_delta,
)
from testimpact.core.request_builder import build_request, map_response
from testimpact.core.watcher import CommitWatcher

__all__ = [
    "FunctionExtractor",
    "RegexFunctionExtractor",
    "extract_all_function_names",
    "extract_function_span",
    "classify_changed_functions",
    "ChangePolicy",
    "WORKING_DIR_POLICY",
    "COMMIT_POLICY",
    "estimate_line_delta",
    "classify_change_type",
    "AnalysisRun",
    "analyze_file_change",
    "aggregate",
    "analyze_snapshots",
    "build_request",
    "map_response",
    "CommitWatcher",
]
