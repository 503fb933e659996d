"""Client for the remote test impact backend.

Wraps the impact and maintenance endpoints and turns every transport or
HTTP failure into a typed :class:`BackendError`. Nothing is retried here;
retry policy belongs to the caller.
"""

import hashlib
import json
import platform
from enum import Enum
from typing import Any

import httpx

from testimpact import __version__
from testimpact.lib.config import Settings, get_settings
from testimpact.lib.http_client import HTTPClient, TimeoutConfig
from testimpact.lib.logging import get_logger

logger = get_logger(__name__)


class Endpoints:
    """Backend endpoint paths."""

    HEALTH = "/health"
    DETECT_CODE_CHANGES = "/workflows/detect-code-changes"
    MAINTENANCE_ANALYZE = "/maintenance/analyze"
    MAINTENANCE_BATCH_FIX = "/maintenance/batch-fix"
    MAINTENANCE_CODE_DIFF = "/maintenance/code-diff"


HEALTHY_STATUSES = {"ok", "healthy"}


class BackendErrorKind(str, Enum):
    """Failure classes of a backend call."""

    NETWORK = "network"
    TIMEOUT = "timeout"
    VALIDATION = "validation"
    SERVER = "server"
    HTTP = "http"
    UNKNOWN = "unknown"


class BackendError(Exception):
    """Backend call failure with a kind, a user-facing message and details."""

    def __init__(
        self,
        kind: BackendErrorKind,
        message: str,
        detail: str = "",
        status_code: int = 0,
    ):
        self.kind = kind
        self.message = message
        self.detail = detail
        self.status_code = status_code
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.kind.value,
            "message": self.message,
            "detail": self.detail,
            "status_code": self.status_code,
        }


class BackendUnavailableError(BackendError):
    """Raised when the backend health check fails."""

    def __init__(self, base_url: str):
        super().__init__(
            BackendErrorKind.NETWORK,
            "Backend is not responding",
            detail=f"Health check failed for {base_url}",
        )


def _response_detail(response: httpx.Response) -> str:
    try:
        return json.dumps(response.json())
    except ValueError:
        return response.text or response.reason_phrase


def error_from_response(response: httpx.Response) -> BackendError:
    """Map a non-success HTTP response to a BackendError."""
    status_code = response.status_code

    if status_code == 404:
        return BackendError(
            BackendErrorKind.VALIDATION,
            "API endpoint not found (404)",
            detail=_response_detail(response) or "Not Found",
            status_code=404,
        )
    if 400 <= status_code < 500:
        return BackendError(
            BackendErrorKind.VALIDATION,
            "Invalid request",
            detail=_response_detail(response),
            status_code=status_code,
        )
    if status_code >= 500:
        return BackendError(
            BackendErrorKind.SERVER,
            "Backend server error",
            detail=_response_detail(response),
            status_code=status_code,
        )
    return BackendError(
        BackendErrorKind.HTTP,
        f"HTTP error {status_code}",
        detail=response.reason_phrase,
        status_code=status_code,
    )


def error_from_exception(error: Exception) -> BackendError:
    """Map a transport-level exception to a BackendError."""
    if isinstance(error, BackendError):
        return error
    if isinstance(error, httpx.TimeoutException):
        return BackendError(
            BackendErrorKind.TIMEOUT,
            "Backend request timed out",
            detail="The server took too long to respond",
        )
    if isinstance(error, httpx.TransportError):
        return BackendError(
            BackendErrorKind.NETWORK,
            "Cannot connect to backend",
            detail=str(error),
        )
    return BackendError(
        BackendErrorKind.UNKNOWN,
        "Unknown error occurred",
        detail=str(error),
    )


def build_client_metadata(workspace_path: str | None = None) -> dict[str, str]:
    """Client tracking data attached to analysis requests."""
    workspace_hash = (
        hashlib.sha256(workspace_path.encode("utf-8")).hexdigest()[:8] if workspace_path else "unknown"
    )
    return {
        "client_version": __version__,
        "python_version": platform.python_version(),
        "platform": platform.system().lower(),
        "workspace_hash": workspace_hash,
    }


class BackendClient:
    """
    Async client for the impact and maintenance endpoints.

    Example:
        >>> async with BackendClient() as client:
        ...     payload = await client.detect_code_changes(request)
    """

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize the backend client.

        Args:
            settings: Settings providing URLs and timeouts
            transport: Optional httpx transport shared by both endpoints
        """
        self._settings = settings or get_settings()
        headers = {"Content-Type": "application/json"}
        self._impact_http = HTTPClient(
            base_url=self._settings.backend_url,
            timeout=TimeoutConfig.uniform(self._settings.request_timeout),
            headers=headers,
            transport=transport,
        )
        self._maintenance_http = HTTPClient(
            base_url=self._settings.get_maintenance_url(),
            timeout=TimeoutConfig.uniform(self._settings.maintenance_timeout),
            headers=headers,
            transport=transport,
        )

    @property
    def backend_url(self) -> str:
        return self._settings.backend_url

    @property
    def maintenance_url(self) -> str:
        return self._settings.get_maintenance_url()

    async def check_health(self, maintenance: bool = False) -> bool:
        """
        Check backend health.

        Args:
            maintenance: Check the maintenance base URL instead of the impact one

        Returns:
            True when the backend reports ``ok`` or ``healthy``
        """
        http = self._maintenance_http if maintenance else self._impact_http
        try:
            response = await http.get(
                Endpoints.HEALTH,
                timeout=TimeoutConfig.uniform(self._settings.health_timeout),
            )
        except httpx.HTTPError as e:
            logger.warning("health_check_failed", base_url=http.base_url, error=str(e))
            return False

        if not response.is_success:
            logger.warning("health_check_failed", base_url=http.base_url, status_code=response.status_code)
            return False

        try:
            status = response.json().get("status")
        except (ValueError, AttributeError):
            return False
        return status in HEALTHY_STATUSES

    async def _post(self, http: HTTPClient, endpoint: str, body: dict[str, Any]) -> dict[str, Any]:
        """POST ``body`` and return the decoded JSON object."""
        try:
            response = await http.post(endpoint, json=body)
        except httpx.HTTPError as e:
            error = error_from_exception(e)
            logger.error("backend_request_failed", endpoint=endpoint, kind=error.kind.value, detail=error.detail)
            raise error from e

        if not response.is_success:
            error = error_from_response(response)
            logger.error(
                "backend_request_failed",
                endpoint=endpoint,
                kind=error.kind.value,
                status_code=error.status_code,
            )
            raise error

        try:
            data = response.json()
        except ValueError as e:
            raise BackendError(
                BackendErrorKind.UNKNOWN,
                "Backend returned invalid JSON",
                detail=response.text[:200],
                status_code=response.status_code,
            ) from e

        return data if isinstance(data, dict) else {}

    async def detect_code_changes(self, request: dict[str, Any]) -> dict[str, Any]:
        """Send working-directory changes and get the affected tests."""
        logger.info(
            "detect_code_changes_request",
            files_changed=len(request.get("project_context", {}).get("files_changed", [])),
        )
        data = await self._post(self._impact_http, Endpoints.DETECT_CODE_CHANGES, request)
        logger.info(
            "detect_code_changes_response",
            context_id=data.get("context_id"),
            impacted_tests=len(data.get("impacted_tests") or []),
        )
        return data

    async def analyze_maintenance(self, request: dict[str, Any]) -> dict[str, Any]:
        """Send commit-to-commit changes and get the affected tests."""
        logger.info(
            "maintenance_analyze_request",
            commit_hash=request.get("commit_hash"),
            previous_commit_hash=request.get("previous_commit_hash"),
            changes_count=len(request.get("changes", [])),
        )
        data = await self._post(self._maintenance_http, Endpoints.MAINTENANCE_ANALYZE, request)
        logger.info(
            "maintenance_analyze_response",
            context_id=data.get("context_id"),
            affected_tests=len(data.get("affected_tests") or []),
        )
        return data

    async def batch_fix_tests(self, request: dict[str, Any]) -> dict[str, Any]:
        """Request regeneration or coverage improvement for a set of tests."""
        logger.info(
            "batch_fix_request",
            action=request.get("action"),
            tests_count=len(request.get("tests", [])),
            has_description=bool(request.get("user_description")),
        )
        return await self._post(self._maintenance_http, Endpoints.MAINTENANCE_BATCH_FIX, request)

    async def get_code_diff(self, file_path: str, old_content: str, new_content: str) -> dict[str, Any]:
        """Ask the backend for its view of one file's diff."""
        body = {"file_path": file_path, "old_content": old_content, "new_content": new_content}
        return await self._post(self._maintenance_http, Endpoints.MAINTENANCE_CODE_DIFF, body)

    async def close(self) -> None:
        await self._impact_http.close()
        await self._maintenance_http.close()

    async def __aenter__(self) -> "BackendClient":
        return self

    async def __aexit__(self, exc_type: Any, _exc_val: Any, _exc_tb: Any) -> None:
        await self.close()


__all__ = [
    "Endpoints",
    "BackendErrorKind",
    "BackendError",
    "BackendUnavailableError",
    "error_from_response",
    "error_from_exception",
    "build_client_metadata",
    "BackendClient",
]
