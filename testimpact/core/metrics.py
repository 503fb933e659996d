"""Line-delta estimation and change-type classification.

The line delta is a length heuristic over non-blank lines, not an aligned
diff: ten lines removed and ten different lines added report 0/0. The
change-type thresholds below are calibrated against these numbers.
"""

from dataclasses import dataclass

from testimpact.models.impact import ChangeType

# Total changed lines above which a change is always a feature addition
LARGE_CHANGE_THRESHOLD = 100

# One side must exceed the other by this factor to dominate
DOMINANCE_RATIO = 2


@dataclass(frozen=True)
class LineDelta:
    """Estimated added/removed line counts."""

    lines_added: int = 0
    lines_removed: int = 0


@dataclass(frozen=True)
class ChangePolicy:
    """Classification policy of one call site.

    Attributes:
        name: Policy label used in logs
        enable_breaking_change_rule: Report ``breaking_change`` for pure
            removals (commit comparison only)
    """

    name: str
    enable_breaking_change_rule: bool = False


WORKING_DIR_POLICY = ChangePolicy(name="working_dir", enable_breaking_change_rule=False)
COMMIT_POLICY = ChangePolicy(name="commit", enable_breaking_change_rule=True)


def _count_non_blank(content: str) -> int:
    return sum(1 for line in content.split("\n") if line.strip() != "")


def estimate_line_delta(old_content: str, new_content: str) -> LineDelta:
    """
    Estimate added and removed lines from non-blank line counts.

    Args:
        old_content: Previous content
        new_content: Current content

    Returns:
        LineDelta with both counts >= 0
    """
    old_count = _count_non_blank(old_content or "")
    new_count = _count_non_blank(new_content or "")
    return LineDelta(
        lines_added=max(0, new_count - old_count),
        lines_removed=max(0, old_count - new_count),
    )


def classify_change_type(
    lines_added: int,
    lines_removed: int,
    policy: ChangePolicy = WORKING_DIR_POLICY,
) -> ChangeType:
    """
    Map aggregate line counts to a change category.

    Rules are evaluated in order, first match wins:

    1. more than 100 lines changed -> feature addition
    2. removals exceed twice the additions -> refactor
    3. additions exceed twice the removals -> feature addition
    4. pure removal, when the policy enables it -> breaking change
    5. anything else -> bug fix

    Rule 4 can only be reached when rule 2 does not match; with integer
    counts a pure removal always matches rule 2 first.

    Args:
        lines_added: Total added lines
        lines_removed: Total removed lines
        policy: Call-site policy

    Returns:
        ChangeType
    """
    if lines_added + lines_removed > LARGE_CHANGE_THRESHOLD:
        return ChangeType.FEATURE_ADDITION
    if lines_removed > DOMINANCE_RATIO * lines_added:
        return ChangeType.REFACTOR
    if lines_added > DOMINANCE_RATIO * lines_removed:
        return ChangeType.FEATURE_ADDITION
    if policy.enable_breaking_change_rule and lines_removed > 0 and lines_added == 0:
        return ChangeType.BREAKING_CHANGE
    return ChangeType.BUG_FIX


__all__ = [
    "LineDelta",
    "ChangePolicy",
    "WORKING_DIR_POLICY",
    "COMMIT_POLICY",
    "estimate_line_delta",
    "classify_change_type",
]
