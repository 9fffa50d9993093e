"""Triage configuration using pydantic-settings.

This module defines the TriageSettings class that reads configuration
from environment variables with the TRIAGE_ prefix. The two secrets also
accept the names GitHub Actions workflows conventionally export
(GITHUB_TOKEN, OPENAI_API_KEY).
"""

from typing import List, Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.triage.events.emitter import EventSinkType


LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class TriageSettings(BaseSettings):
    """Issue triage configuration from environment variables.

    All environment variables are prefixed with TRIAGE_ (e.g., TRIAGE_LLM_MODEL).

    Required fields (must be set via environment variables):
    - github_token: GitHub API token for reading issues and adding labels
    - openai_api_key: API key for the triager and guard models
    """

    model_config = SettingsConfigDict(
        env_prefix="TRIAGE_",
        case_sensitive=False,
        populate_by_name=True,
    )

    # -------------------------------------------------------------------------
    # GitHub Configuration
    # -------------------------------------------------------------------------
    github_token: str = Field(
        validation_alias=AliasChoices("TRIAGE_GITHUB_TOKEN", "GITHUB_TOKEN"),
    )

    # Base URL for GitHub API (supports GitHub Enterprise)
    github_base_url: str = "https://api.github.com"

    # Labels requested per page when listing the catalog (GitHub caps at 100)
    label_page_size: int = 100

    # Set to false to report recommended labels without applying them
    apply_labels: bool = True

    # -------------------------------------------------------------------------
    # LLM Configuration
    # -------------------------------------------------------------------------
    openai_api_key: str = Field(
        validation_alias=AliasChoices("TRIAGE_OPENAI_API_KEY", "OPENAI_API_KEY"),
    )

    llm_model: str = "gpt-4o-mini"

    # Optional OpenAI-compatible endpoint; the OpenAI API when unset
    llm_base_url: Optional[str] = None

    llm_temperature: float = 0.0

    # -------------------------------------------------------------------------
    # Injection Guard Configuration
    # -------------------------------------------------------------------------
    guard_enabled: bool = True

    # Detection model; llm_model when unset
    guard_model: Optional[str] = None

    # -------------------------------------------------------------------------
    # Observability Configuration
    # -------------------------------------------------------------------------
    # Comma-separated event sinks: logging, metrics
    event_sinks: str = "logging"

    log_level: str = "INFO"

    # -------------------------------------------------------------------------
    # Validators
    # -------------------------------------------------------------------------
    @field_validator("github_token")
    @classmethod
    def validate_github_token(cls, v: str) -> str:
        """Validate that GitHub token is not empty."""
        if not v or not v.strip():
            raise ValueError("github_token cannot be empty")
        return v

    @field_validator("openai_api_key")
    @classmethod
    def validate_openai_api_key(cls, v: str) -> str:
        """Validate that the model API key is not empty."""
        if not v or not v.strip():
            raise ValueError("openai_api_key cannot be empty")
        return v

    @field_validator("github_base_url")
    @classmethod
    def validate_github_base_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("github_base_url must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("llm_base_url")
    @classmethod
    def validate_llm_base_url(cls, v: Optional[str]) -> Optional[str]:
        """Validate that the LLM URL, when set, is a valid URL format."""
        if v is None or not v.strip():
            return None
        if not v.startswith(("http://", "https://")):
            raise ValueError("llm_base_url must start with http:// or https://")
        return v

    @field_validator("llm_temperature")
    @classmethod
    def validate_llm_temperature(cls, v: float) -> float:
        if not 0.0 <= v <= 2.0:
            raise ValueError("llm_temperature must be between 0.0 and 2.0")
        return v

    @field_validator("label_page_size")
    @classmethod
    def validate_label_page_size(cls, v: int) -> int:
        if not 1 <= v <= 100:
            raise ValueError("label_page_size must be between 1 and 100")
        return v

    @field_validator("event_sinks")
    @classmethod
    def validate_event_sinks(cls, v: str) -> str:
        """Validate that every listed sink is known."""
        valid = {sink.value for sink in EventSinkType}
        for name in (part.strip().lower() for part in v.split(",")):
            if name and name not in valid:
                raise ValueError(
                    f"unknown event sink {name!r}; expected one of {sorted(valid)}"
                )
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {sorted(LOG_LEVELS)}")
        return level

    @property
    def sink_types(self) -> List[EventSinkType]:
        """Configured event sinks, in the order listed."""
        return [
            EventSinkType(name)
            for name in (part.strip().lower() for part in self.event_sinks.split(","))
            if name
        ]

    @property
    def effective_guard_model(self) -> str:
        return self.guard_model or self.llm_model


def get_settings() -> TriageSettings:
    """Create and return TriageSettings instance.

    Raises:
        pydantic.ValidationError: If required fields are missing or invalid.
    """
    return TriageSettings()
