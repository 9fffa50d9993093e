"""Unit tests for TriageSettings."""

import pytest
from pydantic import ValidationError

from src.triage.config import TriageSettings, get_settings
from src.triage.events import EventSinkType


@pytest.fixture
def required_env(monkeypatch):
    for name in ("GITHUB_TOKEN", "OPENAI_API_KEY"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("TRIAGE_GITHUB_TOKEN", "ghp_test")
    monkeypatch.setenv("TRIAGE_OPENAI_API_KEY", "sk-test")
    return monkeypatch


class TestTriageSettings:
    def test_defaults(self, required_env):
        settings = get_settings()

        assert settings.github_token == "ghp_test"
        assert settings.github_base_url == "https://api.github.com"
        assert settings.llm_model == "gpt-4o-mini"
        assert settings.llm_base_url is None
        assert settings.apply_labels is True
        assert settings.guard_enabled is True
        assert settings.label_page_size == 100
        assert settings.event_sinks == "logging"
        assert settings.sink_types == [EventSinkType.LOGGING]
        assert settings.effective_guard_model == "gpt-4o-mini"
        assert settings.log_level == "INFO"

    def test_actions_secret_names_accepted(self, monkeypatch):
        for name in ("TRIAGE_GITHUB_TOKEN", "TRIAGE_OPENAI_API_KEY"):
            monkeypatch.delenv(name, raising=False)
        monkeypatch.setenv("GITHUB_TOKEN", "ghp_actions")
        monkeypatch.setenv("OPENAI_API_KEY", "sk-actions")

        settings = TriageSettings()

        assert settings.github_token == "ghp_actions"
        assert settings.openai_api_key == "sk-actions"

    def test_missing_token_rejected(self, monkeypatch):
        for name in ("TRIAGE_GITHUB_TOKEN", "GITHUB_TOKEN"):
            monkeypatch.delenv(name, raising=False)
        monkeypatch.setenv("TRIAGE_OPENAI_API_KEY", "sk-test")

        with pytest.raises(ValidationError):
            TriageSettings()

    def test_blank_api_key_rejected(self, required_env):
        required_env.setenv("TRIAGE_OPENAI_API_KEY", "   ")
        with pytest.raises(ValidationError):
            TriageSettings()

    def test_event_sinks_parsed(self, required_env):
        required_env.setenv("TRIAGE_EVENT_SINKS", "logging, metrics")
        assert TriageSettings().sink_types == [
            EventSinkType.LOGGING,
            EventSinkType.METRICS,
        ]

    def test_unknown_event_sink_rejected(self, required_env):
        required_env.setenv("TRIAGE_EVENT_SINKS", "logging,statsd")
        with pytest.raises(ValidationError):
            TriageSettings()

    @pytest.mark.parametrize(
        "name,value",
        [
            ("TRIAGE_LABEL_PAGE_SIZE", "0"),
            ("TRIAGE_LABEL_PAGE_SIZE", "101"),
            ("TRIAGE_LLM_TEMPERATURE", "2.5"),
            ("TRIAGE_LLM_BASE_URL", "localhost:8000"),
            ("TRIAGE_LOG_LEVEL", "verbose"),
        ],
    )
    def test_invalid_values_rejected(self, required_env, name, value):
        required_env.setenv(name, value)
        with pytest.raises(ValidationError):
            TriageSettings()

    def test_guard_model_override(self, required_env):
        required_env.setenv("TRIAGE_GUARD_MODEL", "gpt-4o")
        assert TriageSettings().effective_guard_model == "gpt-4o"
