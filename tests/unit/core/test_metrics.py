"""Unit tests for line-delta estimation and change-type classification."""

import pytest

from testimpact.core.metrics import (
    COMMIT_POLICY,
    WORKING_DIR_POLICY,
    ChangePolicy,
    LineDelta,
    classify_change_type,
    estimate_line_delta,
)
from testimpact.models.impact import ChangeType


class TestEstimateLineDelta:
    """Tests for estimate_line_delta."""

    @pytest.mark.parametrize(
        "content",
        ["", "\n\n", "x = 1\n", "def f():\n    return 1\n\n\ndef g():\n    pass\n"],
    )
    def test_identical_content_is_zero(self, content):
        assert estimate_line_delta(content, content) == LineDelta(0, 0)

    def test_blank_lines_are_ignored(self):
        """Adding only blank or whitespace lines changes nothing."""
        assert estimate_line_delta("a\nb\n", "a\n\n   \nb\n\n") == LineDelta(0, 0)

    def test_growth_counts_as_added(self, calculator_sources):
        old, new = calculator_sources
        assert estimate_line_delta(old, new) == LineDelta(lines_added=3, lines_removed=0)

    def test_shrink_counts_as_removed(self, calculator_sources):
        old, new = calculator_sources
        assert estimate_line_delta(new, old) == LineDelta(lines_added=0, lines_removed=3)

    def test_replacement_of_equal_length_is_zero(self):
        """Counts are compared, not aligned."""
        assert estimate_line_delta("a\nb\n", "c\nd\n") == LineDelta(0, 0)

    def test_new_file_counts_every_non_blank_line(self):
        assert estimate_line_delta("", "a\n\nb\nc") == LineDelta(lines_added=3, lines_removed=0)

    def test_at_most_one_side_is_non_zero(self):
        delta = estimate_line_delta("a\nb\nc\n", "a\n")
        assert delta.lines_added == 0 or delta.lines_removed == 0


class TestClassifyChangeType:
    """Tests for classify_change_type rule ordering."""

    @pytest.mark.parametrize(
        ("added", "removed", "expected"),
        [
            (150, 0, ChangeType.FEATURE_ADDITION),
            (0, 150, ChangeType.FEATURE_ADDITION),
            (60, 50, ChangeType.FEATURE_ADDITION),
            (5, 20, ChangeType.REFACTOR),
            (20, 5, ChangeType.FEATURE_ADDITION),
            (0, 0, ChangeType.BUG_FIX),
            (10, 10, ChangeType.BUG_FIX),
            (10, 20, ChangeType.BUG_FIX),
            (20, 10, ChangeType.BUG_FIX),
            (1, 0, ChangeType.FEATURE_ADDITION),
            (0, 1, ChangeType.REFACTOR),
        ],
    )
    def test_working_dir_policy(self, added, removed, expected):
        assert classify_change_type(added, removed) == expected

    def test_large_change_threshold_is_exclusive(self):
        """Exactly 100 lines is not a large change."""
        assert classify_change_type(50, 50) == ChangeType.BUG_FIX
        assert classify_change_type(51, 50) == ChangeType.FEATURE_ADDITION

    def test_default_policy_is_working_dir(self):
        assert classify_change_type(3, 3) == classify_change_type(3, 3, WORKING_DIR_POLICY)

    @pytest.mark.parametrize(("added", "removed"), [(0, 1), (0, 40), (0, 100), (0, 0), (7, 7)])
    def test_commit_policy_never_reports_breaking_change(self, added, removed):
        """Pure removals are caught by the refactor rule before the breaking-change rule."""
        assert classify_change_type(added, removed, COMMIT_POLICY) != ChangeType.BREAKING_CHANGE

    def test_policies_agree(self):
        for added, removed in [(0, 0), (0, 30), (30, 0), (10, 12), (200, 3)]:
            assert classify_change_type(added, removed, WORKING_DIR_POLICY) == classify_change_type(
                added, removed, COMMIT_POLICY
            )


class TestChangePolicy:
    """Tests for the predefined policies."""

    def test_working_dir_policy_disables_breaking_rule(self):
        assert WORKING_DIR_POLICY.enable_breaking_change_rule is False

    def test_commit_policy_enables_breaking_rule(self):
        assert COMMIT_POLICY.enable_breaking_change_rule is True

    def test_policy_is_immutable(self):
        policy = ChangePolicy(name="custom")
        with pytest.raises(AttributeError):
            policy.name = "other"
