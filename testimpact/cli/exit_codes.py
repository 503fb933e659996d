"""CLI exit codes for consistent error reporting.

| Code | Meaning                 | Recommended Action                          |
|------|-------------------------|---------------------------------------------|
| 0    | Success                 | -                                           |
| 1    | General error           | Check logs                                  |
| 2    | Invalid arguments       | Check command syntax                        |
| 3    | Project not found       | Check project path                          |
| 4    | Not a git repository    | Run inside a git work tree                  |
| 5    | Backend error           | Check backend URL and availability          |
| 6    | Git error               | Check the repository state and git binary   |
| 8    | Timeout                 | Increase timeout or retry later             |
| 9    | Partial failure         | Some files could not be analyzed            |
| 33   | Cancelled               | -                                           |
"""

from testimpact.lib.backend_client import BackendError, BackendErrorKind
from testimpact.lib.git import GitCommandError, NotAGitRepositoryError


class ExitCode:
    """Standard exit codes for the testimpact CLI."""

    SUCCESS = 0
    """Command completed successfully."""

    ERROR = 1
    """General error occurred. Check logs for details."""

    INVALID_ARGS = 2
    """Invalid arguments provided. Check command syntax."""

    PROJECT_NOT_FOUND = 3
    """Project not found. Check the project path."""

    NOT_A_REPOSITORY = 4
    """Project path is not inside a git work tree."""

    BACKEND_ERROR = 5
    """Backend unavailable or returned an error."""

    GIT_ERROR = 6
    """A git command failed."""

    TIMEOUT = 8
    """Backend request timed out."""

    PARTIAL_FAILURE = 9
    """Analysis finished but some files failed."""

    CANCELLED = 33
    """Operation was cancelled by user."""


# Convenience exports for common codes
SUCCESS = ExitCode.SUCCESS
ERROR = ExitCode.ERROR
INVALID_ARGS = ExitCode.INVALID_ARGS
PROJECT_NOT_FOUND = ExitCode.PROJECT_NOT_FOUND
NOT_A_REPOSITORY = ExitCode.NOT_A_REPOSITORY
BACKEND_ERROR = ExitCode.BACKEND_ERROR
GIT_ERROR = ExitCode.GIT_ERROR
TIMEOUT = ExitCode.TIMEOUT
PARTIAL_FAILURE = ExitCode.PARTIAL_FAILURE
CANCELLED = ExitCode.CANCELLED


def get_exit_code_description(code: int) -> str:
    """
    Get a human-readable description for an exit code.

    Args:
        code: Exit code number

    Returns:
        Description string
    """
    descriptions = {
        0: "Success",
        1: "General error - check logs",
        2: "Invalid arguments - check command syntax",
        3: "Project not found - check project path",
        4: "Not a git repository - run inside a git work tree",
        5: "Backend error - check backend URL and availability",
        6: "Git error - check the repository state and git binary",
        8: "Timeout - retry later or increase the timeout",
        9: "Partial failure - some files could not be analyzed",
        33: "Cancelled by user",
    }
    return descriptions.get(code, f"Unknown exit code: {code}")


def exit_code_for_error(error: Exception) -> int:
    """
    Map a workflow exception to an exit code.

    Args:
        error: Exception raised by a workflow

    Returns:
        Exit code
    """
    if isinstance(error, NotAGitRepositoryError):
        return ExitCode.NOT_A_REPOSITORY
    if isinstance(error, GitCommandError):
        return ExitCode.GIT_ERROR
    if isinstance(error, BackendError):
        if error.kind == BackendErrorKind.TIMEOUT:
            return ExitCode.TIMEOUT
        return ExitCode.BACKEND_ERROR
    if isinstance(error, ValueError):
        return ExitCode.INVALID_ARGS
    return ExitCode.ERROR


__all__ = [
    "ExitCode",
    "SUCCESS",
    "ERROR",
    "INVALID_ARGS",
    "PROJECT_NOT_FOUND",
    "NOT_A_REPOSITORY",
    "BACKEND_ERROR",
    "GIT_ERROR",
    "TIMEOUT",
    "PARTIAL_FAILURE",
    "CANCELLED",
    "get_exit_code_description",
    "exit_code_for_error",
]
