"""Function boundary extraction and change classification.

Function boundaries are found with an indentation heuristic rather than a
parser: a span starts at a ``def`` line and runs over every following line
that is blank or indented deeper than the definition. Strings or comments
that look like definitions, decorators, and signatures spanning several
physical lines are not treated specially.
"""

import re
from typing import Protocol

from testimpact.lib.logging import get_logger
from testimpact.models.impact import FunctionSpan

logger = get_logger(__name__)

IDENTIFIER = r"[a-zA-Z_][a-zA-Z0-9_]*"

# Matches "def name(" at the start of any line (leading whitespace allowed)
FUNCTION_DEF_PATTERN = re.compile(rf"^\s*def\s+({IDENTIFIER})\s*\(", re.MULTILINE)


def _definition_pattern(name: str) -> re.Pattern[str]:
    """Pattern matching the definition line of one named function."""
    return re.compile(rf"^\s*def\s+{re.escape(name)}\s*\(")


def _indentation(line: str) -> int:
    """Column of the first non-whitespace character."""
    return len(line) - len(line.lstrip())


class FunctionExtractor(Protocol):
    """Capability interface for function boundary extraction.

    A syntax-tree based implementation can replace the regex heuristic
    without touching the classifier or the aggregator.
    """

    def extract_all_function_names(self, code: str) -> list[str]: ...

    def extract_function_span(self, code: str, name: str) -> str: ...


def extract_all_function_names(code: str) -> list[str]:
    """
    Extract every function name defined in ``code``.

    Names are returned in document order; a name defined twice appears
    twice.

    Args:
        code: Source text

    Returns:
        Function names (empty list when none are found)
    """
    if not code:
        return []
    return FUNCTION_DEF_PATTERN.findall(code)


def extract_function_span(code: str, name: str) -> str:
    """
    Extract the source text of the first definition of ``name``.

    The span is the definition line plus every following line that is blank
    or indented deeper than the definition, up to (not including) the first
    non-blank line at the same or lesser indentation. Each collected line is
    terminated with a newline.

    Args:
        code: Source text
        name: Function name

    Returns:
        The span text, or "" when no definition of ``name`` exists
    """
    if not code or not name:
        return ""

    pattern = _definition_pattern(name)
    collected: list[str] = []
    base_indent: int | None = None

    for line in code.split("\n"):
        if base_indent is None:
            if pattern.match(line):
                base_indent = _indentation(line)
                collected.append(line)
            continue

        if line.strip() == "" or _indentation(line) > base_indent:
            collected.append(line)
        else:
            break

    return "".join(f"{line}\n" for line in collected)


def extract_function_spans(code: str) -> list[FunctionSpan]:
    """Extract the span of every distinct function name, in document order."""
    spans: list[FunctionSpan] = []
    for name in dict.fromkeys(extract_all_function_names(code)):
        spans.append(FunctionSpan(name=name, text=extract_function_span(code, name)))
    return spans


class RegexFunctionExtractor:
    """Default extractor built on the ``def`` line heuristic."""

    def extract_all_function_names(self, code: str) -> list[str]:
        return extract_all_function_names(code)

    def extract_function_span(self, code: str, name: str) -> str:
        return extract_function_span(code, name)


DEFAULT_EXTRACTOR: FunctionExtractor = RegexFunctionExtractor()


def classify_changed_functions(
    old_code: str,
    new_code: str,
    extractor: FunctionExtractor | None = None,
) -> list[str]:
    """
    Determine which functions of ``new_code`` are new or modified.

    A function is reported when its name is absent from ``old_code`` or when
    its span differs from the old span (exact, whitespace-sensitive
    comparison). When ``old_code`` is empty or whitespace-only every function
    of ``new_code`` is reported. Functions removed from ``new_code`` are never
    reported; use :func:`find_removed_functions` for those.

    Args:
        old_code: Previous source text
        new_code: Current source text
        extractor: Boundary extractor (defaults to the regex heuristic)

    Returns:
        Names in the order first encountered in ``new_code``, without duplicates
    """
    extractor = extractor or DEFAULT_EXTRACTOR
    new_names = extractor.extract_all_function_names(new_code)

    if not old_code or not old_code.strip():
        return list(dict.fromkeys(new_names))

    old_names = set(extractor.extract_all_function_names(old_code))
    changed: dict[str, None] = {}

    for name in new_names:
        if name in changed:
            continue
        if name not in old_names:
            changed[name] = None
            continue

        old_span = extractor.extract_function_span(old_code, name)
        new_span = extractor.extract_function_span(new_code, name)
        if old_span != new_span:
            changed[name] = None

    logger.debug(
        "functions_classified",
        new_function_count=len(new_names),
        changed_count=len(changed),
    )
    return list(changed)


def find_removed_functions(
    old_code: str,
    new_code: str,
    extractor: FunctionExtractor | None = None,
) -> list[str]:
    """
    List functions defined in ``old_code`` but no longer in ``new_code``.

    Not used by the classifier or the aggregator: deletions are not part of
    ``CodeChange.changed_functions``.
    """
    extractor = extractor or DEFAULT_EXTRACTOR
    new_names = set(extractor.extract_all_function_names(new_code))
    removed = [
        name for name in extractor.extract_all_function_names(old_code) if name not in new_names
    ]
    return list(dict.fromkeys(removed))


__all__ = [
    "FUNCTION_DEF_PATTERN",
    "FunctionExtractor",
    "RegexFunctionExtractor",
    "DEFAULT_EXTRACTOR",
    "extract_all_function_names",
    "extract_function_span",
    "extract_function_spans",
    "classify_changed_functions",
    "find_removed_functions",
]
