"""Unit tests for backend request building and response mapping."""

import pytest

from testimpact.core.request_builder import (
    DEFAULT_REASON,
    build_batch_fix_request,
    build_maintenance_request,
    build_request,
    build_wire_payload,
    extract_test_name,
    map_affected_test,
    map_affected_tests,
    map_batch_fix_response,
    map_code_diff_response,
    map_maintenance_response,
    map_response,
    map_severity,
)
from testimpact.models.impact import ChangeSummary, ChangeType, FunctionSpan, ImpactLevel
from testimpact.models.maintenance import BatchFixAction, CodeDiff


class TestBuildRequest:
    """Tests for the impact request payload."""

    def test_wire_payload_shape(self, sample_change):
        payload = build_wire_payload([sample_change], ["tests/test_calculator.py"], diff="@@")

        assert payload == {
            "files_changed": [{"path": "app/calculator.py", "change_type": "modified"}],
            "related_tests": ["tests/test_calculator.py"],
            "diff": "@@",
        }

    def test_request_shape(self, sample_change):
        request = build_request(
            [sample_change],
            ["tests/test_calculator.py"],
            diff="diff --git",
            project_id="demo",
        )

        assert request == {
            "project_context": {
                "files_changed": [{"path": "app/calculator.py", "change_type": "modified"}],
                "related_tests": ["tests/test_calculator.py"],
            },
            "git_diff": "diff --git",
            "project_id": "demo",
        }

    def test_client_metadata_is_optional(self, sample_change):
        request = build_request([sample_change], [], client_metadata={"client_version": "0.1.0"})
        assert request["client_metadata"] == {"client_version": "0.1.0"}
        assert "client_metadata" not in build_request([sample_change], [])

    def test_defaults(self):
        request = build_request([], [])
        assert request["project_id"] == "default"
        assert request["git_diff"] == ""
        assert request["project_context"]["files_changed"] == []

    def test_every_file_is_tagged_modified(self, sample_change):
        request = build_request([sample_change, sample_change], [])
        kinds = {f["change_type"] for f in request["project_context"]["files_changed"]}
        assert kinds == {"modified"}


class TestSeverityAndNames:
    """Tests for severity mapping and test name derivation."""

    @pytest.mark.parametrize(
        ("severity", "expected"),
        [
            ("critical", ImpactLevel.CRITICAL),
            ("high", ImpactLevel.HIGH),
            ("medium", ImpactLevel.MEDIUM),
            ("low", ImpactLevel.LOW),
            ("HIGH", ImpactLevel.MEDIUM),
            ("catastrophic", ImpactLevel.MEDIUM),
            (None, ImpactLevel.MEDIUM),
            (3, ImpactLevel.MEDIUM),
        ],
    )
    def test_map_severity(self, severity, expected):
        assert map_severity(severity) == expected

    @pytest.mark.parametrize(
        ("path", "expected"),
        [
            ("tests/test_api.py", "test_api"),
            ("tests\\unit\\test_models.py", "test_models"),
            ("test_x", "test_x"),
            ("", "unknown_test"),
        ],
    )
    def test_extract_test_name(self, path, expected):
        assert extract_test_name(path) == expected


class TestMapAffectedTest:
    """Tests for mapping one backend verdict."""

    def test_impact_endpoint_shape(self):
        test = map_affected_test(
            {
                "test_path": "tests/test_calculator.py",
                "severity": "high",
                "reasons": ["add changed", "new branch"],
                "impact_score": 0.8,
            }
        )

        assert test.test_path == "tests/test_calculator.py"
        assert test.test_name == "test_calculator"
        assert test.impact_level == ImpactLevel.HIGH
        assert test.reason == "add changed, new branch"
        assert test.requires_update is True

    def test_maintenance_endpoint_shape(self):
        test = map_affected_test(
            {
                "test_file": "tests/test_calculator.py",
                "test_name": "test_add",
                "test_class": "TestCalculator",
                "impact_level": "critical",
                "reason": "signature changed",
                "requires_update": True,
                "line_number": 12,
                "source_file": "app/calculator.py",
                "source_function": "add",
            }
        )

        assert test.test_path == "tests/test_calculator.py"
        assert test.test_name == "test_add"
        assert test.test_class == "TestCalculator"
        assert test.impact_level == ImpactLevel.CRITICAL
        assert test.reason == "signature changed"
        assert test.requires_update is True
        assert test.line_number == 12
        assert test.source_function == "add"

    @pytest.mark.parametrize(("score", "expected"), [(0.5, False), (0.51, True), (0, False), (1, True)])
    def test_requires_update_threshold(self, score, expected):
        assert map_affected_test({"test_path": "t.py", "impact_score": score}).requires_update is expected

    def test_missing_fields_fall_back_to_defaults(self):
        test = map_affected_test({})

        assert test.test_path == ""
        assert test.test_name == "unknown_test"
        assert test.impact_level == ImpactLevel.MEDIUM
        assert test.reason == DEFAULT_REASON
        assert test.requires_update is False
        assert test.line_number is None

    def test_malformed_values_are_ignored(self):
        test = map_affected_test(
            {
                "test_path": 42,
                "reasons": [],
                "impact_score": "high",
                "requires_update": "yes",
                "line_number": True,
            }
        )

        assert test.test_path == ""
        assert test.reason == DEFAULT_REASON
        assert test.requires_update is False
        assert test.line_number is None

    def test_non_dict_entries_are_skipped(self):
        tests = map_affected_tests([{"test_path": "tests/test_a.py"}, "garbage", None, 3])
        assert [t.test_path for t in tests] == ["tests/test_a.py"]

    def test_non_list_is_empty(self):
        assert map_affected_tests({"test_path": "x"}) == []
        assert map_affected_tests(None) == []


class TestMapResponse:
    """Tests for mapping the impact response."""

    def test_maps_tests_and_keeps_local_summary(self):
        summary = ChangeSummary(files_changed_count=1, lines_added=3, change_type=ChangeType.FEATURE_ADDITION)
        payload = {
            "context_id": "ctx-1",
            "impacted_tests": [{"test_path": "tests/test_a.py", "severity": "low"}],
            "summary": {"change_type": "refactor", "lines_changed": 99},
        }
        result = map_response(payload, summary, ["a.py"], timestamp_ms=1000)

        assert result.context_id == "ctx-1"
        assert result.change_summary is summary
        assert result.timestamp_ms == 1000
        assert result.changed_files == ["a.py"]
        assert result.failed_files == []
        assert [t.impact_level for t in result.affected_tests] == [ImpactLevel.LOW]

    def test_missing_context_id_is_generated(self):
        result = map_response({}, ChangeSummary(), [], timestamp_ms=1234)
        assert result.context_id == "analysis-1234"
        assert result.affected_tests == []

    def test_non_dict_payload(self):
        result = map_response(["unexpected"], ChangeSummary(), ["a.py"], ["a.py"], timestamp_ms=5)
        assert result.affected_tests == []
        assert result.is_partial
        assert result.status_message() == "0/1 files analyzed, no tests affected"

    def test_status_message_counts_tests(self):
        payload = {"impacted_tests": [{"test_path": "tests/test_a.py"}, {"test_path": "tests/test_b.py"}]}
        result = map_response(payload, ChangeSummary(), ["a.py", "b.py"], timestamp_ms=1)
        assert result.status_message() == "2/2 files analyzed, 2 tests affected"


class TestMaintenancePayloads:
    """Tests for the maintenance request and response."""

    def test_maintenance_request_shape(self, sample_change):
        request = build_maintenance_request("b" * 40, "a" * 40, [sample_change])

        assert request["commit_hash"] == "b" * 40
        assert request["previous_commit_hash"] == "a" * 40
        assert request["changes"] == [sample_change.to_dict()]
        assert "client_metadata" not in request

    def test_maintenance_response(self, sample_change):
        payload = {
            "affected_tests": [
                {"test_file": "tests/test_calculator.py", "test_name": "test_add", "impact_level": "high"}
            ]
        }
        result = map_maintenance_response(
            payload, "b" * 40, "a" * 40, ChangeSummary(), [sample_change], timestamp_ms=77
        )

        assert result.context_id == "maintenance-77"
        assert result.code_changes == [sample_change]
        assert result.affected_tests[0].test_name == "test_add"
        assert result.affected_tests[0].impact_level == ImpactLevel.HIGH

    def test_batch_fix_request_shape(self, sample_affected_test):
        request = build_batch_fix_request(BatchFixAction.IMPROVE_COVERAGE, [sample_affected_test])

        assert request == {
            "action": "improve_coverage",
            "tests": [
                {
                    "test_file": "tests/test_calculator.py",
                    "test_name": "test_add",
                    "test_class": "TestCalculator",
                    "function_name": "add",
                    "source_file": "app/calculator.py",
                }
            ],
        }

    def test_regenerate_requires_description(self, sample_affected_test):
        with pytest.raises(ValueError):
            build_batch_fix_request(BatchFixAction.REGENERATE, [sample_affected_test])

    def test_regenerate_carries_description(self, sample_affected_test):
        request = build_batch_fix_request(
            BatchFixAction.REGENERATE, [sample_affected_test], user_description="add now rounds"
        )
        assert request["user_description"] == "add now rounds"

    def test_batch_fix_response(self):
        payload = {
            "success": True,
            "processed_count": 2,
            "results": [
                {"test_file": "tests/test_a.py", "test_name": "test_one", "success": True, "new_code": "def test_one(): ..."},
                {"test_file": "tests/test_a.py", "success": False, "error": "timeout"},
                "junk",
            ],
        }
        result = map_batch_fix_response(payload, BatchFixAction.IMPROVE_COVERAGE)

        assert result.success is True
        assert result.action == BatchFixAction.IMPROVE_COVERAGE
        assert result.processed_count == 2
        assert result.success_count == 1
        assert result.failed_count == 1
        assert result.results[1].test_name == "test_a"
        assert result.results[1].error == "timeout"

    def test_batch_fix_response_defaults(self):
        result = map_batch_fix_response(None, BatchFixAction.REGENERATE)

        assert result.success is False
        assert result.processed_count == 0
        assert result.results == []


class TestMapCodeDiffResponse:
    """Tests for overlaying the backend diff on the local one."""

    @pytest.fixture
    def local_diff(self):
        return CodeDiff(
            file_path="app/calculator.py",
            previous_commit_hash="a" * 40,
            commit_hash="b" * 40,
            unified_diff="+def mul(a, b):\n",
            changed_functions=("add", "mul"),
            lines_added=3,
            function_spans=[FunctionSpan("mul", "def mul(a, b):\n    return a * b\n")],
        )

    def test_backend_fields_win(self, local_diff):
        payload = {
            "unified_diff": "@@ -1 +1 @@\n",
            "changed_functions": ["mul", "mul"],
            "lines_added": 2,
            "lines_removed": 1,
        }
        result = map_code_diff_response(payload, local_diff)

        assert result.unified_diff == "@@ -1 +1 @@\n"
        assert result.changed_functions == ("mul",)
        assert (result.lines_added, result.lines_removed) == (2, 1)
        assert result.function_spans == local_diff.function_spans
        assert result.commit_hash == "b" * 40

    def test_malformed_fields_keep_local_values(self, local_diff):
        payload = {"unified_diff": "", "changed_functions": "mul", "lines_added": -1, "lines_removed": True}
        result = map_code_diff_response(payload, local_diff)

        assert result == local_diff

    def test_non_dict_payload(self, local_diff):
        assert map_code_diff_response(["unexpected"], local_diff) == local_diff
