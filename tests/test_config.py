"""Tests for configuration loading."""

import pytest
from pydantic import ValidationError

from datelens.config import OPENROUTER_BASE_URL, Settings


def _settings(**overrides) -> Settings:
    values = {
        "openrouter_api_key": "",
        "openai_api_key": "",
        "openai_base_url": "",
    }
    values.update(overrides)
    return Settings(**values)


class TestSettings:
    def test_defaults(self):
        settings = _settings(openrouter_api_key="or-test")
        assert settings.safety_model == "openai/gpt-4o-mini"
        assert settings.pattern_model == "openai/gpt-4o"
        assert settings.significance_model == "openai/gpt-4o-mini"
        assert settings.recency_window_days == 90
        assert settings.safety_max_messages == 200
        assert settings.recent_message_weight == 0.7
        assert settings.max_conversations == 20
        assert settings.max_messages_per_conversation == 50
        assert settings.max_tokens_per_chunk == 6000
        assert settings.chars_per_token == 4
        assert settings.risk_escalation_level == "yellow"
        assert settings.complexity_threshold == 0.3
        assert settings.min_months_for_growth == 18
        assert settings.significance_min_messages == 3
        assert settings.significance_batch_size == 5
        assert settings.significance_batch_delay_seconds == 0.5
        assert settings.budget_limit_usd == 2000.0
        assert settings.client_max_retries == 4
        assert settings.output_dir.as_posix() == "reports"

    def test_from_yaml_missing_file(self, tmp_path):
        settings = Settings.from_yaml(tmp_path / "nonexistent.yaml", openrouter_api_key="x")
        assert settings.safety_model == "openai/gpt-4o-mini"

    def test_from_yaml_with_overrides(self, tmp_path):
        config_file = tmp_path / "test.yaml"
        config_file.write_text(
            "safety_model: openai/gpt-4o\nrecency_window_days: 30\nbudget_limit_usd: 5\n",
            encoding="utf-8",
        )
        settings = Settings.from_yaml(config_file, recency_window_days=14)
        assert settings.safety_model == "openai/gpt-4o"
        assert settings.recency_window_days == 14
        assert settings.budget_limit_usd == 5.0

    def test_empty_yaml_file_yields_defaults(self, tmp_path):
        config_file = tmp_path / "empty.yaml"
        config_file.write_text("", encoding="utf-8")
        settings = Settings.from_yaml(config_file)
        assert settings.max_conversations == 20

    def test_rejects_unknown_risk_threshold(self):
        with pytest.raises(ValidationError):
            _settings(risk_escalation_level="purple")

    def test_rejects_non_positive_chunk_budget(self):
        with pytest.raises(ValidationError):
            _settings(max_tokens_per_chunk=0)


class TestEndpointResolution:
    def test_openrouter_is_default_without_keys(self):
        settings = _settings()
        assert settings.uses_openrouter() is True
        assert settings.resolved_base_url() == f"{OPENROUTER_BASE_URL}/"
        assert settings.resolved_key_source() == "OPENROUTER_API_KEY (missing)"
        assert settings.resolved_api_key() == ""

    def test_openai_key_alone_targets_openai(self):
        settings = _settings(openai_api_key="sk-test")
        assert settings.uses_openrouter() is False
        assert settings.resolved_base_url() == ""
        assert settings.resolved_api_key() == "sk-test"
        assert settings.resolved_key_source() == "OPENAI_API_KEY"
        assert settings.default_headers() == {}

    def test_explicit_base_url_wins(self):
        settings = _settings(openai_api_key="sk-test", openai_base_url="http://localhost:8000/v1")
        assert settings.uses_openrouter() is False
        assert settings.resolved_base_url() == "http://localhost:8000/v1/"

    def test_openrouter_attribution_headers(self):
        settings = _settings(
            openrouter_api_key="or-test",
            openrouter_site_url="https://example.test",
            openrouter_app_name="datelens",
        )
        assert settings.resolved_api_key() == "or-test"
        assert settings.default_headers() == {
            "HTTP-Referer": "https://example.test",
            "X-Title": "datelens",
        }
