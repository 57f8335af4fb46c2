"""Service configuration using pydantic-settings.

This module defines the LearningSettings class that reads configuration
from environment variables with the OSLEARN_ prefix. Every field has a
default so a learner can start the service locally without any setup;
credentials are never part of the settings, they belong to the session.
"""

from pathlib import Path
from typing import List

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LearningSettings(BaseSettings):
    """Learning platform configuration from environment variables.

    All environment variables are prefixed with OSLEARN_ (e.g.,
    OSLEARN_UPSTREAM_OWNER).
    """

    model_config = SettingsConfigDict(
        env_prefix="OSLEARN_",
        case_sensitive=False,
    )

    # -------------------------------------------------------------------------
    # GitHub Configuration
    # -------------------------------------------------------------------------
    # Base URL for GitHub API (supports GitHub Enterprise)
    github_base_url: str = "https://api.github.com"

    # Repository learners fork and open their pull request against
    upstream_owner: str = "AnaPcode"
    upstream_repo: str = "Learning-Platform-Project-for-Open-Source-Hackfest"

    # Ledger file inside the upstream repository
    ledger_path: str = "CONTRIBUTORS.md"

    # Branch used both as the PR head (on the fork) and base (upstream)
    default_branch: str = "main"

    # Timeout in seconds for a single GitHub API request
    request_timeout_seconds: float = 30.0

    # -------------------------------------------------------------------------
    # Fork Readiness Configuration
    # -------------------------------------------------------------------------
    # Initial wait after the fork call before the ledger is first read
    propagation_delay_seconds: float = 2.0

    # Give up waiting for the fork's ledger after this many seconds
    readiness_timeout_seconds: float = 60.0

    # Exponential backoff between ledger reads while the fork propagates
    readiness_backoff_base_seconds: float = 1.0
    readiness_backoff_max_seconds: float = 8.0

    # -------------------------------------------------------------------------
    # Progress Persistence
    # -------------------------------------------------------------------------
    progress_path: str = str(Path.home() / ".oslearn" / "progress.json")

    # -------------------------------------------------------------------------
    # Observability
    # -------------------------------------------------------------------------
    # Event sinks to enable ("logging", "metrics")
    event_sinks: List[str] = ["logging", "metrics"]

    # -------------------------------------------------------------------------
    # Server Configuration
    # -------------------------------------------------------------------------
    host: str = "127.0.0.1"
    port: int = 8080

    # -------------------------------------------------------------------------
    # Validators
    # -------------------------------------------------------------------------
    @field_validator("github_base_url")
    @classmethod
    def validate_github_base_url(cls, v: str) -> str:
        """Validate that the GitHub URL is an http(s) URL."""
        if not v or not v.strip():
            raise ValueError("github_base_url cannot be empty")
        if not v.startswith(("http://", "https://")):
            raise ValueError("github_base_url must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("upstream_owner", "upstream_repo", "ledger_path", "default_branch")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        """Validate that repository coordinates are not empty."""
        if not v or not v.strip():
            raise ValueError("value cannot be empty")
        return v.strip()

    @field_validator("propagation_delay_seconds", "readiness_timeout_seconds")
    @classmethod
    def validate_non_negative(cls, v: float) -> float:
        """Validate that delays are not negative."""
        if v < 0:
            raise ValueError("delays must not be negative")
        return v

    @field_validator("readiness_backoff_base_seconds", "readiness_backoff_max_seconds")
    @classmethod
    def validate_backoff(cls, v: float) -> float:
        """Validate that backoff delays are positive."""
        if v <= 0:
            raise ValueError("backoff delays must be positive")
        return v

    @field_validator("request_timeout_seconds")
    @classmethod
    def validate_request_timeout(cls, v: float) -> float:
        """Validate that the request timeout is positive."""
        if v <= 0:
            raise ValueError("request_timeout_seconds must be positive")
        return v

    @field_validator("event_sinks")
    @classmethod
    def validate_event_sinks(cls, v: List[str]) -> List[str]:
        """Validate that only known event sinks are requested."""
        known = {"logging", "metrics"}
        unknown = [sink for sink in v if sink not in known]
        if unknown:
            raise ValueError(f"unknown event sinks: {', '.join(unknown)}")
        return v

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate that port is in valid range."""
        if not 1 <= v <= 65535:
            raise ValueError("port must be between 1 and 65535")
        return v

    @property
    def upstream_full_name(self) -> str:
        """Upstream repository in "{owner}/{repo}" form."""
        return f"{self.upstream_owner}/{self.upstream_repo}"


def get_settings() -> LearningSettings:
    """Create and return a LearningSettings instance.

    Returns:
        LearningSettings: Configured settings instance.

    Raises:
        pydantic.ValidationError: If a value is invalid.
    """
    return LearningSettings()
