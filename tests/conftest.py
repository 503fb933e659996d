"""Pytest configuration and fixtures."""

import shutil
import subprocess
from pathlib import Path

import pytest
from dotenv import load_dotenv

from testimpact.lib.config import Settings
from testimpact.models.impact import AffectedTest, ChangeSummary, ChangeType, CodeChange, ImpactLevel
from testimpact.models.maintenance import MaintenanceResult

# Load .env file before running tests
env_path = Path(__file__).parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path, override=True)


CALCULATOR_V1 = """\
def add(a, b):
    return a + b


def sub(a, b):
    return a - b
"""

CALCULATOR_V2 = """\
def add(a, b):
    result = a + b
    return result


def mul(a, b):
    return a * b


def sub(a, b):
    return a - b
"""


@pytest.fixture
def settings():
    """Settings pointing at a fake backend."""
    return Settings(
        backend_url="http://backend.test",
        request_timeout=5.0,
        maintenance_timeout=5.0,
        health_timeout=1.0,
        poll_interval_seconds=0.01,
    )


@pytest.fixture
def calculator_sources():
    """Two versions of a small module."""
    return CALCULATOR_V1, CALCULATOR_V2


@pytest.fixture
def sample_change():
    """A single-file change record."""
    return CodeChange(
        file_path="app/calculator.py",
        old_content=CALCULATOR_V1,
        new_content=CALCULATOR_V2,
        changed_functions=("add", "mul"),
        lines_added=3,
        lines_removed=0,
    )


@pytest.fixture
def sample_affected_test():
    """An affected test as returned by the maintenance endpoint."""
    return AffectedTest(
        test_path="tests/test_calculator.py",
        test_name="test_add",
        impact_level=ImpactLevel.HIGH,
        reason="add changed",
        requires_update=True,
        source_file="app/calculator.py",
        source_function="add",
        test_class="TestCalculator",
    )


@pytest.fixture
def sample_maintenance_result(sample_change, sample_affected_test):
    """A maintenance result with one affected test."""
    return MaintenanceResult(
        context_id="maintenance-1",
        commit_hash="b" * 40,
        previous_commit_hash="a" * 40,
        affected_tests=[sample_affected_test],
        change_summary=ChangeSummary(
            files_changed_count=1,
            changed_functions=frozenset({"add", "mul"}),
            lines_added=3,
            lines_removed=0,
            change_type=ChangeType.FEATURE_ADDITION,
        ),
        code_changes=[sample_change],
        timestamp_ms=1_700_000_000_000,
    )


def _git(repo: Path, *args: str) -> str:
    completed = subprocess.run(
        ["git", *args],
        cwd=repo,
        check=True,
        capture_output=True,
        text=True,
    )
    return completed.stdout.strip()


@pytest.fixture
def git_repo(tmp_path):
    """A git repository with two commits touching a source and a test file."""
    if shutil.which("git") is None:
        pytest.skip("git is not installed")

    repo = tmp_path / "repo"
    (repo / "app").mkdir(parents=True)
    (repo / "tests").mkdir()
    _git(repo, "init", "-q")
    _git(repo, "config", "user.email", "dev@example.com")
    _git(repo, "config", "user.name", "Dev")
    _git(repo, "config", "commit.gpgsign", "false")

    (repo / "app" / "calculator.py").write_text(CALCULATOR_V1, encoding="utf-8")
    (repo / "tests" / "test_calculator.py").write_text(
        "from app.calculator import add\n\n\ndef test_add():\n    assert add(1, 2) == 3\n",
        encoding="utf-8",
    )
    _git(repo, "add", ".")
    _git(repo, "commit", "-q", "-m", "Initial calculator")

    (repo / "app" / "calculator.py").write_text(CALCULATOR_V2, encoding="utf-8")
    _git(repo, "add", ".")
    _git(repo, "commit", "-q", "-m", "Add mul")

    return repo


@pytest.fixture
def git_head(git_repo):
    """HEAD and HEAD~1 of the git_repo fixture."""
    return _git(git_repo, "rev-parse", "HEAD"), _git(git_repo, "rev-parse", "HEAD~1")


@pytest.fixture
def deleting_commit(git_repo):
    """Add a helper module, then delete it in HEAD; returns (HEAD, HEAD~1)."""
    (git_repo / "app" / "legacy.py").write_text(
        "def old_helper():\n    return 1\n\n\ndef older_helper():\n    return 2\n",
        encoding="utf-8",
    )
    _git(git_repo, "add", ".")
    _git(git_repo, "commit", "-q", "-m", "Add legacy helpers")

    _git(git_repo, "rm", "-q", "app/legacy.py")
    _git(git_repo, "commit", "-q", "-m", "Drop legacy helpers")

    return _git(git_repo, "rev-parse", "HEAD"), _git(git_repo, "rev-parse", "HEAD~1")
