"""Unit tests for service configuration."""

import os

import pytest
from pydantic import ValidationError

from oslearn.config import LearningSettings, get_settings
from oslearn.workflow import WorkflowConfig


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Remove any OSLEARN_ variables inherited from the environment."""
    for key in list(os.environ):
        if key.startswith("OSLEARN_"):
            monkeypatch.delenv(key)


class TestDefaults:
    def test_defaults_need_no_environment(self):
        settings = get_settings()

        assert settings.github_base_url == "https://api.github.com"
        assert settings.upstream_full_name == (
            "AnaPcode/Learning-Platform-Project-for-Open-Source-Hackfest"
        )
        assert settings.ledger_path == "CONTRIBUTORS.md"
        assert settings.default_branch == "main"
        assert settings.event_sinks == ["logging", "metrics"]


class TestEnvironment:
    def test_prefixed_variables_override(self, monkeypatch):
        monkeypatch.setenv("OSLEARN_UPSTREAM_OWNER", "acme")
        monkeypatch.setenv("OSLEARN_UPSTREAM_REPO", "course")
        monkeypatch.setenv("OSLEARN_PROPAGATION_DELAY_SECONDS", "0")
        monkeypatch.setenv("OSLEARN_EVENT_SINKS", '["logging"]')
        monkeypatch.setenv("OSLEARN_PORT", "9000")

        settings = LearningSettings()

        assert settings.upstream_full_name == "acme/course"
        assert settings.propagation_delay_seconds == 0
        assert settings.event_sinks == ["logging"]
        assert settings.port == 9000

    def test_base_url_trailing_slash_removed(self, monkeypatch):
        monkeypatch.setenv("OSLEARN_GITHUB_BASE_URL", "https://ghe.example.com/api/v3/")

        assert LearningSettings().github_base_url == "https://ghe.example.com/api/v3"


class TestValidation:
    @pytest.mark.parametrize(
        "field, value",
        [
            ("github_base_url", "ftp://example.com"),
            ("upstream_owner", "   "),
            ("ledger_path", ""),
            ("propagation_delay_seconds", -1),
            ("readiness_backoff_base_seconds", 0),
            ("request_timeout_seconds", 0),
            ("event_sinks", ["logging", "kafka"]),
            ("port", 70000),
        ],
    )
    def test_invalid_values_rejected(self, field, value):
        with pytest.raises(ValidationError):
            LearningSettings(**{field: value})


class TestWorkflowConfig:
    def test_from_settings(self):
        settings = LearningSettings(
            upstream_owner="acme",
            upstream_repo="course",
            readiness_timeout_seconds=10,
        )

        config = WorkflowConfig.from_settings(settings)

        assert config.upstream_owner == "acme"
        assert config.upstream_repo == "course"
        assert config.readiness_timeout_seconds == 10
        assert config.ledger_path == "CONTRIBUTORS.md"
