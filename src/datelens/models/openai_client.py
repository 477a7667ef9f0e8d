"""OpenAI-compatible completion client used by the analysis stages."""

from __future__ import annotations

import json
import logging
import threading
from typing import Protocol

from openai import APIError, APITimeoutError, BadRequestError, OpenAI, RateLimitError
from tenacity import Retrying, retry_if_exception, stop_after_attempt, wait_exponential, wait_random

from datelens.config import Settings
from datelens.observability import maybe_wrap_openai_client

logger = logging.getLogger(__name__)

JSON_OBJECT_FORMAT = {"type": "json_object"}

# Substrings of a 400 response that mean the provider cannot honor `json_schema`.
_SCHEMA_REJECTION_MARKERS = (
    "json_schema",
    "response_format",
    "unsupported",
    "not supported",
    "invalid schema",
)


class LLMJsonClient(Protocol):
    def complete_json(
        self,
        *,
        system_prompt: str,
        user_prompt: str,
        schema_name: str | None = None,
        json_schema: dict | None = None,
        strict_schema: bool = False,
        model: str | None = None,
        temperature: float | None = None,
    ) -> dict: ...


def _transient(exc: BaseException) -> bool:
    if isinstance(exc, BadRequestError):
        return False
    return isinstance(exc, (RateLimitError, APITimeoutError, APIError))


def _rejects_schema(exc: BadRequestError) -> bool:
    text = str(exc).lower()
    return any(marker in text for marker in _SCHEMA_REJECTION_MARKERS)


def _parse_object(content: str | None) -> dict:
    if content is None:
        raise ValueError("Model returned empty content for JSON response.")
    try:
        payload = json.loads(content)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Model response was not valid JSON: {content}") from exc
    if not isinstance(payload, dict):
        raise ValueError(f"Expected JSON object, got {type(payload).__name__}.")
    return payload


class OpenAIJsonClient:
    """Chat completions against OpenRouter (or OpenAI) that always answer with a JSON object.

    Transient API failures are retried with jittered exponential backoff. The SDK's
    own retries are disabled so attempts are counted in one place.
    """

    def __init__(
        self,
        *,
        api_key: str,
        model: str,
        base_url: str | None = None,
        default_headers: dict[str, str] | None = None,
        temperature: float = 0.0,
        max_retries: int = 4,
        backoff_seconds: float = 1.0,
        timeout_seconds: float = 120.0,
    ) -> None:
        sdk_client = OpenAI(
            api_key=api_key,
            base_url=base_url or None,
            default_headers=default_headers or None,
            timeout=timeout_seconds,
            max_retries=0,
        )
        self._client, self._traced = maybe_wrap_openai_client(sdk_client)
        self._model = model
        self._temperature = temperature
        self._attempts = max(1, max_retries)
        self._backoff = backoff_seconds
        self._lock = threading.Lock()
        self._usage = {
            "request_count": 0,
            "retry_count": 0,
            "schema_fallback_count": 0,
            "prompt_tokens": 0,
            "completion_tokens": 0,
            "total_tokens": 0,
        }

    @classmethod
    def from_settings(cls, settings: Settings, *, model: str | None = None) -> OpenAIJsonClient:
        return cls(
            api_key=settings.resolved_api_key(),
            model=model or settings.safety_model,
            base_url=settings.resolved_base_url() or None,
            default_headers=settings.default_headers(),
            temperature=settings.analysis_temperature,
            max_retries=settings.client_max_retries,
            backoff_seconds=settings.client_backoff_seconds,
            timeout_seconds=settings.request_timeout_seconds,
        )

    def _record(self, **increments: int) -> None:
        with self._lock:
            for key, amount in increments.items():
                self._usage[key] += amount

    def _send(self, messages: list[dict], response_format: dict, model: str, temperature: float):
        retryer = Retrying(
            retry=retry_if_exception(_transient),
            wait=wait_exponential(
                multiplier=self._backoff, min=self._backoff, max=self._backoff * 8
            )
            + wait_random(0.0, 0.25),
            stop=stop_after_attempt(self._attempts),
            reraise=True,
        )
        tries = 0
        for attempt in retryer:
            with attempt:
                tries += 1
                response = self._client.chat.completions.create(
                    model=model,
                    temperature=temperature,
                    response_format=response_format,
                    messages=messages,
                )

        usage = getattr(response, "usage", None)
        self._record(
            request_count=1,
            retry_count=tries - 1,
            prompt_tokens=int(getattr(usage, "prompt_tokens", 0) or 0),
            completion_tokens=int(getattr(usage, "completion_tokens", 0) or 0),
            total_tokens=int(getattr(usage, "total_tokens", 0) or 0),
        )
        return response

    def complete_json(
        self,
        *,
        system_prompt: str,
        user_prompt: str,
        schema_name: str | None = None,
        json_schema: dict | None = None,
        strict_schema: bool = False,
        model: str | None = None,
        temperature: float | None = None,
    ) -> dict:
        model = model or self._model
        if temperature is None:
            temperature = self._temperature
        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]
        logger.debug("Requesting %s from %s", schema_name or "JSON object", model)

        if json_schema is None:
            response = self._send(messages, JSON_OBJECT_FORMAT, model, temperature)
        else:
            schema_format = {
                "type": "json_schema",
                "json_schema": {
                    "name": schema_name or "structured_output",
                    "schema": json_schema,
                    "strict": strict_schema,
                },
            }
            try:
                response = self._send(messages, schema_format, model, temperature)
            except BadRequestError as exc:
                if not _rejects_schema(exc):
                    raise
                logger.info("%s rejected json_schema output; retrying as json_object", model)
                self._record(schema_fallback_count=1)
                response = self._send(messages, JSON_OBJECT_FORMAT, model, temperature)

        return _parse_object(response.choices[0].message.content)

    def metrics_snapshot(self) -> dict:
        with self._lock:
            return {**self._usage, "model": self._model, "langsmith_wrapped": self._traced}
