"""Configuration management for datelens."""

from pathlib import Path
from typing import Literal

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"


class Settings(BaseSettings):
    """Analysis settings, loaded from env vars and optionally overridden by a YAML config file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # API keys
    openrouter_api_key: str = ""
    openai_api_key: str = ""

    # Completion endpoint
    openai_base_url: str = ""
    openrouter_site_url: str = ""
    openrouter_app_name: str = "datelens"
    client_max_retries: int = Field(default=4, ge=1)
    client_backoff_seconds: float = Field(default=1.0, ge=0.0)
    request_timeout_seconds: float = Field(default=120.0, gt=0.0)

    # Per-stage models
    safety_model: str = "openai/gpt-4o-mini"
    pattern_model: str = "openai/gpt-4o"
    chronology_model: str = "openai/gpt-4o"
    risk_model: str = "openai/gpt-4o"
    attachment_model: str = "openai/gpt-4o"
    growth_model: str = "openai/gpt-4o"
    crisis_model: str = "openai/gpt-4o"
    significance_model: str = "openai/gpt-4o-mini"
    safety_temperature: float = Field(default=0.2, ge=0.0, le=2.0)
    analysis_temperature: float = Field(default=0.4, ge=0.0, le=2.0)
    expected_output_tokens: int = Field(default=800, ge=0)

    # Sampling
    recency_window_days: int = Field(default=90, gt=0)
    safety_max_messages: int = Field(default=200, gt=0)
    recent_message_weight: float = Field(default=0.7, gt=0.0, le=1.0)
    max_conversations: int = Field(default=20, gt=0)
    max_messages_per_conversation: int = Field(default=50, gt=0)
    risk_max_messages: int = Field(default=300, gt=0)
    segment_sample_size: int = Field(default=50, gt=0)

    # Chunking
    max_tokens_per_chunk: int = Field(default=6000, gt=0)
    chars_per_token: int = Field(default=4, gt=0)

    # Escalation thresholds
    risk_escalation_level: Literal["green", "yellow", "orange", "red"] = "yellow"
    complexity_threshold: float = Field(default=0.3, ge=0.0, le=1.0)
    min_months_for_growth: int = Field(default=18, ge=0)

    # Significance scoring
    significance_min_messages: int = Field(default=3, ge=1)
    significance_sample_size: int = Field(default=15, ge=3)
    significance_batch_size: int = Field(default=5, gt=0)
    significance_batch_delay_seconds: float = Field(default=0.5, ge=0.0)
    significance_fallback_min_messages: int = Field(default=20, ge=1)
    significance_fallback_length_ratio: float = Field(default=2.0, gt=0.0)
    significance_fallback_score: int = Field(default=50, ge=0, le=100)

    # Budget
    budget_limit_usd: float = Field(default=2000.0, ge=0.0)

    # Paths
    input_path: Path = Field(default=Path("data/messages.jsonl"))
    output_dir: Path = Field(default=Path("reports"))

    @classmethod
    def from_yaml(cls, config_path: str | Path, **overrides) -> "Settings":
        """Load settings from a YAML config file, with env vars and overrides applied on top."""
        path = Path(config_path)
        if path.exists():
            with open(path) as f:
                yaml_config = yaml.safe_load(f) or {}
        else:
            yaml_config = {}
        merged = {**yaml_config, **overrides}
        return cls(**merged)

    def uses_openrouter(self) -> bool:
        """Return whether requests go to OpenRouter rather than OpenAI directly."""

        explicit = self.openai_base_url.strip()
        if explicit:
            return "openrouter.ai" in explicit.lower()
        return bool(self.openrouter_api_key.strip()) or not self.openai_api_key.strip()

    def resolved_base_url(self) -> str:
        """Resolve effective base URL, preferring an explicit override."""

        explicit = self.openai_base_url.strip()
        if explicit:
            return explicit.rstrip("/") + "/"
        if self.uses_openrouter():
            return f"{OPENROUTER_BASE_URL}/"
        return ""

    def resolved_api_key(self) -> str:
        """Resolve API key for the effective endpoint."""

        if self.uses_openrouter():
            return self.openrouter_api_key.strip()
        return self.openai_api_key.strip()

    def resolved_key_source(self) -> str:
        """Return non-secret key source label for diagnostics."""

        if self.uses_openrouter():
            if self.openrouter_api_key.strip():
                return "OPENROUTER_API_KEY"
            return "OPENROUTER_API_KEY (missing)"
        return "OPENAI_API_KEY"

    def default_headers(self) -> dict[str, str]:
        """Attribution headers OpenRouter uses for app analytics."""

        if not self.uses_openrouter():
            return {}
        headers: dict[str, str] = {}
        if self.openrouter_site_url.strip():
            headers["HTTP-Referer"] = self.openrouter_site_url.strip()
        if self.openrouter_app_name.strip():
            headers["X-Title"] = self.openrouter_app_name.strip()
        return headers
