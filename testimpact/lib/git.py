"""Version-control collaborator backed by the git command line.

Runs git as an async subprocess and returns raw text. Source filtering
(suffix and test-file marker) is applied here; the engine assumes the
changed-file sets it receives never include test files.
"""

import asyncio
import re
import subprocess
import time
from collections.abc import Iterable, Sequence
from pathlib import Path

from testimpact.lib.config import Settings, get_settings
from testimpact.lib.diff import format_new_file_diff, is_binary_content
from testimpact.lib.logging import get_logger
from testimpact.models.impact import SnapshotLoader, SourceSnapshot
from testimpact.models.maintenance import CommitComparison, GitCommit

logger = get_logger(__name__)

# Porcelain status lines for modified (index or worktree) and added files
PORCELAIN_CHANGE_PATTERN = re.compile(r"^(M.|.M|A.) (.+)$")

# Directories never searched for test files
IGNORED_DIRS = {".git", "node_modules", ".venv", "venv", "__pycache__", ".tox"}

# Separator for multi-field git log output
FIELD_SEPARATOR = "\x1f"


class GitCommandError(Exception):
    """Raised when a git command exits with a non-zero status."""

    def __init__(self, args: Sequence[str], returncode: int, stderr: str = ""):
        self.command = list(args)
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(f"git {' '.join(self.command)} failed ({returncode}): {stderr}")


class NotAGitRepositoryError(Exception):
    """Raised when the project path is not inside a git work tree."""

    def __init__(self, repo_path: str | Path):
        self.repo_path = str(repo_path)
        super().__init__(f"Not a git repository: {repo_path}")


async def run_git(
    repo_path: str | Path,
    *args: str,
    settings: Settings | None = None,
) -> str:
    """
    Run a git command and return its standard output.

    Args:
        repo_path: Working directory for the command
        *args: Arguments after the git executable
        settings: Settings providing the git executable

    Returns:
        Decoded stdout

    Raises:
        GitCommandError: If git exits with a non-zero status
    """
    settings = settings or get_settings()
    process = await asyncio.create_subprocess_exec(
        settings.git_binary,
        *args,
        cwd=str(repo_path),
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
    )
    stdout, stderr = await process.communicate()

    if process.returncode != 0:
        error_msg = stderr.decode("utf-8", errors="replace").strip()
        logger.debug("git_command_failed", args=list(args), returncode=process.returncode)
        raise GitCommandError(args, process.returncode or 1, error_msg)

    return stdout.decode("utf-8", errors="replace")


async def is_git_repository(repo_path: str | Path, settings: Settings | None = None) -> bool:
    """Check whether ``repo_path`` is inside a git work tree."""
    try:
        await run_git(repo_path, "rev-parse", "--is-inside-work-tree", settings=settings)
        return True
    except (GitCommandError, OSError):
        return False


async def ensure_git_repository(repo_path: str | Path, settings: Settings | None = None) -> None:
    """Raise NotAGitRepositoryError unless ``repo_path`` is a git work tree."""
    if not await is_git_repository(repo_path, settings):
        raise NotAGitRepositoryError(repo_path)


def is_source_file(path: str, settings: Settings | None = None) -> bool:
    """True for analyzed source files (right suffix, not a test file)."""
    settings = settings or get_settings()
    return path.endswith(settings.source_suffix) and settings.test_file_marker not in path


def filter_source_files(paths: Iterable[str], settings: Settings | None = None) -> list[str]:
    """Keep source files, preserving order and dropping duplicates."""
    settings = settings or get_settings()
    kept = [p for p in (path.strip() for path in paths) if p and is_source_file(p, settings)]
    return list(dict.fromkeys(kept))


def parse_porcelain_status(output: str) -> list[str]:
    """
    Extract modified and added paths from ``git status --porcelain`` output.

    Only ``M.``, ``.M`` and ``A.`` entries are kept; untracked, deleted and
    renamed entries are ignored.
    """
    files: list[str] = []
    for line in output.split("\n"):
        if not line.strip():
            continue
        match = PORCELAIN_CHANGE_PATTERN.match(line)
        if match:
            files.append(match.group(2).strip())
    return files


async def get_working_dir_changed_files(
    repo_path: str | Path,
    settings: Settings | None = None,
) -> list[str]:
    """List changed source files in the working directory (vs HEAD)."""
    settings = settings or get_settings()
    output = await run_git(repo_path, "status", "--porcelain", settings=settings)
    return filter_source_files(parse_porcelain_status(output), settings)


async def get_commit_changed_files(
    repo_path: str | Path,
    previous_hash: str | None,
    current_hash: str,
    settings: Settings | None = None,
) -> list[str]:
    """
    List changed source files between two commits.

    With no previous commit, every file touched by ``current_hash`` is
    listed.
    """
    settings = settings or get_settings()
    if previous_hash:
        args = ["diff", "--name-only", previous_hash, current_hash]
    else:
        args = ["show", "--name-only", "--pretty=format:", current_hash]

    output = await run_git(repo_path, *args, settings=settings)
    return filter_source_files(output.split("\n"), settings)


async def show_file(
    repo_path: str | Path,
    revision: str,
    file_path: str,
    settings: Settings | None = None,
) -> str:
    """
    Get the content of ``file_path`` at ``revision``.

    Returns:
        File content, or "" when the file does not exist at that revision
    """
    try:
        return await run_git(repo_path, "show", f"{revision}:{file_path}", settings=settings)
    except GitCommandError:
        return ""


async def read_working_file(repo_path: str | Path, file_path: str) -> str:
    """
    Read the working-directory content of ``file_path``.

    Raises:
        OSError: If the file cannot be read
        ValueError: If the file looks binary
    """
    absolute_path = Path(repo_path) / file_path
    content = absolute_path.read_text(encoding="utf-8")
    if is_binary_content(content):
        raise ValueError(f"Binary content in {file_path}")
    return content


def working_dir_loaders(
    repo_path: str | Path,
    file_paths: Sequence[str],
    settings: Settings | None = None,
) -> dict[str, SnapshotLoader]:
    """Build ordered snapshot loaders comparing HEAD with the working directory."""

    def make_loader(file_path: str) -> SnapshotLoader:
        async def load() -> SourceSnapshot:
            old_content = await show_file(repo_path, "HEAD", file_path, settings)
            new_content = await read_working_file(repo_path, file_path)
            return SourceSnapshot(file_path, old_content, new_content)

        return load

    return {file_path: make_loader(file_path) for file_path in file_paths}


def commit_loaders(
    repo_path: str | Path,
    previous_hash: str | None,
    current_hash: str,
    file_paths: Sequence[str],
    settings: Settings | None = None,
) -> dict[str, SnapshotLoader]:
    """Build ordered snapshot loaders comparing two commits."""

    def make_loader(file_path: str) -> SnapshotLoader:
        async def load() -> SourceSnapshot:
            old_content = (
                await show_file(repo_path, previous_hash, file_path, settings) if previous_hash else ""
            )
            # A file deleted by the current commit reads as empty
            new_content = await show_file(repo_path, current_hash, file_path, settings)
            return SourceSnapshot(file_path, old_content, new_content)

        return load

    return {file_path: make_loader(file_path) for file_path in file_paths}


async def get_diff_for_files(
    repo_path: str | Path,
    file_paths: Sequence[str],
    settings: Settings | None = None,
) -> str:
    """Get ``git diff HEAD`` for the given files ("" on failure or no files)."""
    if not file_paths:
        return ""
    try:
        return await run_git(repo_path, "diff", "HEAD", "--no-color", "--", *file_paths, settings=settings)
    except (GitCommandError, OSError) as e:
        logger.warning("git_diff_failed", error=str(e), file_count=len(file_paths))
        return ""


async def get_unified_diff(
    repo_path: str | Path,
    previous_hash: str | None,
    current_hash: str,
    file_path: str,
    settings: Settings | None = None,
) -> str:
    """Get the diff of one file between two commits ("" on failure)."""
    try:
        if not previous_hash:
            content = await run_git(repo_path, "show", f"{current_hash}:{file_path}", settings=settings)
            return format_new_file_diff(file_path, content)
        return await run_git(
            repo_path, "diff", "--no-color", previous_hash, current_hash, "--", file_path, settings=settings
        )
    except (GitCommandError, OSError) as e:
        logger.warning("git_diff_failed", file_path=file_path, error=str(e))
        return ""


async def get_current_commit_hash(repo_path: str | Path, settings: Settings | None = None) -> str | None:
    """HEAD commit hash, or None for an empty repository."""
    try:
        output = await run_git(repo_path, "rev-parse", "HEAD", settings=settings)
    except GitCommandError:
        return None
    return output.strip() or None


async def get_previous_commit_hash(
    repo_path: str | Path,
    settings: Settings | None = None,
    revision: str = "HEAD",
) -> str | None:
    """Parent of ``revision`` (HEAD by default), or None for a first commit."""
    try:
        output = await run_git(repo_path, "rev-parse", "--verify", f"{revision}~1", settings=settings)
    except GitCommandError:
        return None
    return output.strip() or None


async def get_commit_info(
    repo_path: str | Path,
    commit_hash: str,
    settings: Settings | None = None,
) -> GitCommit:
    """
    Get commit metadata.

    Falls back to minimal information when git cannot describe the commit.
    """
    pretty = FIELD_SEPARATOR.join(["%h", "%s", "%an", "%at"])
    try:
        output = await run_git(repo_path, "log", "-1", f"--pretty=format:{pretty}", commit_hash, settings=settings)
        short_hash, message, author, timestamp = output.strip().split(FIELD_SEPARATOR)
        return GitCommit(
            hash=commit_hash,
            short_hash=short_hash,
            message=message,
            author=author,
            timestamp_ms=int(timestamp) * 1000,
        )
    except (GitCommandError, ValueError) as e:
        logger.warning("commit_info_unavailable", commit_hash=commit_hash, error=str(e))
        return GitCommit(
            hash=commit_hash,
            short_hash=commit_hash[:7],
            message="Unknown",
            author="Unknown",
            timestamp_ms=int(time.time() * 1000),
        )


async def compare_commits(
    repo_path: str | Path,
    previous_hash: str,
    current_hash: str,
    settings: Settings | None = None,
) -> CommitComparison:
    """Compare two commits by their changed source files."""
    current_commit = await get_commit_info(repo_path, current_hash, settings)
    previous_commit = await get_commit_info(repo_path, previous_hash, settings)
    try:
        changed = await get_commit_changed_files(repo_path, previous_hash, current_hash, settings)
    except GitCommandError as e:
        logger.warning("changed_files_unavailable", error=str(e))
        changed = []

    return CommitComparison(
        current_commit=current_commit,
        previous_commit=previous_commit,
        changed_files=tuple(changed),
    )


def find_test_files(repo_path: str | Path, settings: Settings | None = None) -> list[str]:
    """
    Find test files in the project.

    Returns:
        Sorted POSIX paths relative to ``repo_path``
    """
    settings = settings or get_settings()
    root = Path(repo_path)
    found: list[str] = []
    for path in root.rglob(settings.test_file_glob):
        relative = path.relative_to(root)
        if any(part in IGNORED_DIRS for part in relative.parts):
            continue
        if path.is_file():
            found.append(relative.as_posix())
    return sorted(found)


__all__ = [
    "GitCommandError",
    "NotAGitRepositoryError",
    "run_git",
    "is_git_repository",
    "ensure_git_repository",
    "is_source_file",
    "filter_source_files",
    "parse_porcelain_status",
    "get_working_dir_changed_files",
    "get_commit_changed_files",
    "show_file",
    "read_working_file",
    "working_dir_loaders",
    "commit_loaders",
    "get_diff_for_files",
    "get_unified_diff",
    "get_current_commit_hash",
    "get_previous_commit_hash",
    "get_commit_info",
    "compare_commits",
    "find_test_files",
]
