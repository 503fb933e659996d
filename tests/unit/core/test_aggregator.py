"""Unit tests for file-level analysis and aggregation."""

from unittest.mock import MagicMock

import pytest

from testimpact.core.aggregator import AnalysisRun, aggregate, analyze_file_change, analyze_snapshots
from testimpact.core.metrics import COMMIT_POLICY
from testimpact.lib.git import GitCommandError
from testimpact.models.impact import ChangeSummary, ChangeType, CodeChange, SourceSnapshot


def _loader(snapshot: SourceSnapshot):
    async def load() -> SourceSnapshot:
        return snapshot

    return load


def _failing_loader(error: Exception):
    async def load() -> SourceSnapshot:
        raise error

    return load


def _change(path: str, functions: tuple[str, ...], added: int, removed: int) -> CodeChange:
    return CodeChange(
        file_path=path,
        old_content="",
        new_content="",
        changed_functions=functions,
        lines_added=added,
        lines_removed=removed,
    )


class TestAnalyzeFileChange:
    """Tests for analyze_file_change."""

    def test_new_file_reports_every_function(self):
        """An empty old file makes every function new."""
        new = "def add(a, b):\n    return a + b\n\n\ndef sub(a, b):\n    return a - b\n"
        change = analyze_file_change(SourceSnapshot("calc.py", "", new))

        assert change.changed_functions == ("add", "sub")
        assert change.lines_added == 4
        assert change.lines_removed == 0

    def test_modified_and_added_functions(self):
        old = "def f():\n    return 1\n"
        new = "def f():\n    return 2\n\n\ndef g():\n    return 3\n"
        change = analyze_file_change(SourceSnapshot("mod.py", old, new))

        assert change.changed_functions == ("f", "g")
        assert change.lines_added == 2

    def test_contents_are_carried_over(self, calculator_sources):
        old, new = calculator_sources
        change = analyze_file_change(SourceSnapshot("app/calculator.py", old, new))

        assert change.file_path == "app/calculator.py"
        assert change.old_content == old
        assert change.new_content == new


class TestAggregate:
    """Tests for aggregate."""

    def test_empty_input(self):
        """No changes produce the zero summary."""
        summary = aggregate([])

        assert summary == ChangeSummary()
        assert summary.files_changed_count == 0
        assert summary.changed_functions == frozenset()
        assert summary.lines_added == 0
        assert summary.lines_removed == 0
        assert summary.change_type == ChangeType.BUG_FIX

    def test_sums_lines_and_unions_functions(self):
        changes = [
            _change("a.py", ("f", "g"), 10, 2),
            _change("b.py", ("g", "h"), 5, 1),
        ]
        summary = aggregate(changes)

        assert summary.files_changed_count == 2
        assert summary.changed_functions == frozenset({"f", "g", "h"})
        assert summary.lines_added == 15
        assert summary.lines_removed == 3
        assert summary.change_type == ChangeType.FEATURE_ADDITION

    def test_classification_uses_totals(self):
        """Each file alone is a bug fix; together they cross the large-change threshold."""
        changes = [_change(f"m{i}.py", (), 30, 25) for i in range(2)]
        assert aggregate(changes).change_type == ChangeType.FEATURE_ADDITION

    def test_refactor_when_removals_dominate(self):
        assert aggregate([_change("a.py", (), 2, 9)]).change_type == ChangeType.REFACTOR

    def test_accepts_generators(self):
        summary = aggregate(_change(f"{i}.py", (), 1, 1) for i in range(3))
        assert summary.files_changed_count == 3


class TestAnalyzeSnapshots:
    """Tests for analyze_snapshots."""

    @pytest.mark.asyncio
    async def test_processes_files_in_order(self, calculator_sources):
        old, new = calculator_sources
        loaders = {
            "b.py": _loader(SourceSnapshot("b.py", old, new)),
            "a.py": _loader(SourceSnapshot("a.py", "", "def z():\n    pass\n")),
        }
        run = await analyze_snapshots(loaders)

        assert run.changed_files == ["b.py", "a.py"]
        assert run.failed_files == []
        assert run.summary.files_changed_count == 2
        assert run.summary.changed_functions == frozenset({"add", "mul", "z"})
        assert not run.cancelled

    @pytest.mark.asyncio
    async def test_failed_file_is_recorded_and_skipped(self, calculator_sources):
        """One unreadable file does not stop the run."""
        old, new = calculator_sources
        loaders = {
            "broken.py": _failing_loader(OSError("permission denied")),
            "ok.py": _loader(SourceSnapshot("ok.py", old, new)),
        }
        run = await analyze_snapshots(loaders)

        assert run.failed_files == ["broken.py"]
        assert run.changed_files == ["ok.py"]
        assert run.attempted_count == 2
        assert run.summary.files_changed_count == 1

    @pytest.mark.asyncio
    async def test_all_files_failing_gives_empty_summary(self):
        loaders = {"x.py": _failing_loader(ValueError("binary"))}
        run = await analyze_snapshots(loaders)

        assert run.changes == []
        assert run.failed_files == ["x.py"]
        assert run.summary == ChangeSummary()

    @pytest.mark.asyncio
    async def test_git_failure_is_recorded(self):
        loaders = {"x.py": _failing_loader(GitCommandError(["show", "HEAD:x.py"], 128, "fatal"))}
        run = await analyze_snapshots(loaders)

        assert run.failed_files == ["x.py"]

    @pytest.mark.asyncio
    async def test_programming_error_propagates(self):
        loaders = {"x.py": _failing_loader(TypeError("unexpected None"))}

        with pytest.raises(TypeError):
            await analyze_snapshots(loaders)

    @pytest.mark.asyncio
    async def test_cancellation_between_files(self):
        """should_continue is checked before each file."""
        answers = iter([True, False])
        loaders = {
            "a.py": _loader(SourceSnapshot("a.py", "", "def a():\n    pass\n")),
            "b.py": _loader(SourceSnapshot("b.py", "", "def b():\n    pass\n")),
        }
        run = await analyze_snapshots(loaders, should_continue=lambda: next(answers))

        assert run.cancelled is True
        assert run.changed_files == ["a.py"]
        assert run.summary.changed_functions == frozenset({"a"})

    @pytest.mark.asyncio
    async def test_progress_callback_reports_each_file(self):
        callback = MagicMock()
        loaders = {
            "a.py": _loader(SourceSnapshot("a.py", "", "")),
            "b.py": _failing_loader(OSError("gone")),
        }
        await analyze_snapshots(loaders, progress_callback=callback)

        assert [c.args for c in callback.call_args_list] == [(1, 2, "a.py"), (2, 2, "b.py")]

    @pytest.mark.asyncio
    async def test_empty_input(self):
        run = await analyze_snapshots({}, policy=COMMIT_POLICY)
        assert run == AnalysisRun()
