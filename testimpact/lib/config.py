"""Application configuration using pydantic-settings."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

MAINTENANCE_API_SUFFIX = "/api/v1"


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables and .env file.

    Environment variables (prefixed ``TESTIMPACT_``) take precedence over
    .env file values.
    """

    model_config = SettingsConfigDict(
        env_prefix="TESTIMPACT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Logging settings
    log_level: str = Field(default="INFO", description="Logging level")
    log_dir: str | None = Field(
        default=None,
        description="Directory for rotating JSON log files (disabled when unset)",
    )

    # Backend settings
    backend_url: str = Field(
        default="https://cs5351.efan.dev",
        description="Base URL of the test impact backend",
    )
    maintenance_backend_url: str | None = Field(
        default=None,
        description="Base URL for maintenance endpoints (defaults to backend_url + /api/v1)",
    )
    project_id: str = Field(default="default", description="Project identifier sent to the backend")

    # Timeout settings (seconds)
    request_timeout: float = Field(default=30.0, description="Impact request timeout")
    maintenance_timeout: float = Field(default=60.0, description="Maintenance request timeout")
    health_timeout: float = Field(default=10.0, description="Health check timeout")

    # Changed-file filtering (version-control collaborator policy)
    source_suffix: str = Field(default=".py", description="Suffix of analyzed source files")
    test_file_marker: str = Field(
        default="test_",
        description="Paths containing this marker are treated as tests, not sources",
    )
    test_file_glob: str = Field(default="test_*.py", description="Glob used to discover test files")

    # Commit watching
    poll_interval_seconds: float = Field(default=5.0, description="Commit polling interval")

    git_binary: str = Field(default="git", description="Git executable")

    def get_maintenance_url(self) -> str:
        """
        Get the base URL for maintenance endpoints.

        Uses ``maintenance_backend_url`` when configured, otherwise the main
        backend URL with the ``/api/v1`` suffix appended if it is missing.

        Returns:
            Maintenance base URL
        """
        if self.maintenance_backend_url:
            return self.maintenance_backend_url

        base = self.backend_url
        if base.endswith(MAINTENANCE_API_SUFFIX):
            return base
        return f"{base.rstrip('/')}{MAINTENANCE_API_SUFFIX}"


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns:
        Settings instance (cached for performance)

    Example:
        >>> settings = get_settings()
        >>> print(settings.source_suffix)
        '.py'
    """
    return Settings()


__all__ = ["Settings", "get_settings"]
