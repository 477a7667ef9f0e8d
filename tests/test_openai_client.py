from __future__ import annotations

from types import SimpleNamespace

import httpx
import pytest
from openai import BadRequestError, RateLimitError

from datelens.config import Settings
from datelens.models import OpenAIJsonClient


def _response(content: str | None) -> SimpleNamespace:
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        usage=SimpleNamespace(prompt_tokens=10, completion_tokens=5, total_tokens=15),
    )


def _api_error(error_type, status: int, message: str):
    request = httpx.Request("POST", "https://example.test/v1/chat/completions")
    return error_type(message, response=httpx.Response(status, request=request), body=None)


class _FakeCompletions:
    def __init__(self, outcomes: list):
        self.outcomes = list(outcomes)
        self.calls: list[dict] = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def _client(outcomes: list) -> tuple[OpenAIJsonClient, _FakeCompletions]:
    client = OpenAIJsonClient(
        api_key="test", model="openai/gpt-4o-mini", max_retries=3, backoff_seconds=0.0
    )
    completions = _FakeCompletions(outcomes)
    client._client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return client, completions


def test_parses_json_object_and_tracks_usage():
    client, completions = _client([_response('{"riskLevel": "green"}')])

    payload = client.complete_json(system_prompt="s", user_prompt="u", temperature=0.2)

    assert payload == {"riskLevel": "green"}
    call = completions.calls[0]
    assert call["model"] == "openai/gpt-4o-mini"
    assert call["temperature"] == 0.2
    assert call["response_format"] == {"type": "json_object"}
    metrics = client.metrics_snapshot()
    assert metrics["request_count"] == 1
    assert metrics["total_tokens"] == 15


def test_retries_rate_limits():
    client, completions = _client(
        [_api_error(RateLimitError, 429, "slow down"), _response('{"ok": true}')]
    )
    assert client.complete_json(system_prompt="s", user_prompt="u") == {"ok": True}
    assert len(completions.calls) == 2
    assert client.metrics_snapshot()["retry_count"] == 1


def test_schema_rejection_falls_back_to_json_object():
    client, completions = _client(
        [
            _api_error(BadRequestError, 400, "response_format json_schema is not supported"),
            _response('{"score": 1}'),
        ]
    )
    payload = client.complete_json(
        system_prompt="s",
        user_prompt="u",
        schema_name="Score",
        json_schema={"type": "object"},
    )
    assert payload == {"score": 1}
    assert completions.calls[0]["response_format"]["type"] == "json_schema"
    assert completions.calls[1]["response_format"] == {"type": "json_object"}
    assert client.metrics_snapshot()["schema_fallback_count"] == 1


def test_other_bad_requests_are_not_retried():
    client, completions = _client([_api_error(BadRequestError, 400, "context too long")])
    with pytest.raises(BadRequestError):
        client.complete_json(system_prompt="s", user_prompt="u")
    assert len(completions.calls) == 1


@pytest.mark.parametrize("content", ["not json", "[1, 2]", None])
def test_rejects_non_object_content(content):
    client, _ = _client([_response(content)])
    with pytest.raises(ValueError):
        client.complete_json(system_prompt="s", user_prompt="u")


def test_from_settings_targets_openrouter():
    settings = Settings(openrouter_api_key="or-key", openrouter_site_url="https://datelens.test")
    client = OpenAIJsonClient.from_settings(settings)
    assert client.metrics_snapshot()["model"] == settings.safety_model
    assert str(client._client.base_url).startswith("https://openrouter.ai/api/v1")


def test_gives_up_after_configured_attempts():
    client, completions = _client([_api_error(RateLimitError, 429, "slow down")] * 3)
    with pytest.raises(RateLimitError):
        client.complete_json(system_prompt="s", user_prompt="u")
    assert len(completions.calls) == 3
    assert client.metrics_snapshot()["request_count"] == 0
