"""Optional LangSmith tracing for completion calls."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

_TRACING_ENV_KEYS = {
    "LANGSMITH_TRACING",
    "LANGSMITH_ENDPOINT",
    "LANGSMITH_API_KEY",
    "LANGSMITH_PROJECT",
    "LANGCHAIN_TRACING_V2",
    "LANGCHAIN_ENDPOINT",
    "LANGCHAIN_API_KEY",
    "LANGCHAIN_PROJECT",
}


def _read_dotenv(path: Path) -> dict[str, str]:
    if not path.exists():
        return {}

    values: dict[str, str] = {}
    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, raw_value = line.split("=", 1)
        values[key.strip()] = raw_value.strip().strip('"').strip("'")
    return values


def _is_truthy(value: str | None) -> bool:
    return (value or "").strip().lower() in {"1", "true", "yes", "on"}


def load_tracing_env(path: str | Path = ".env") -> None:
    """Copy tracing keys from a dotenv file into the process env when unset."""

    for key, value in _read_dotenv(Path(path)).items():
        if key in _TRACING_ENV_KEYS and not os.getenv(key):
            os.environ[key] = value


def tracing_status(path: str | Path = ".env") -> dict[str, Any]:
    """Return the effective LangSmith tracing status."""

    load_tracing_env(path)
    tracing_value = os.getenv("LANGSMITH_TRACING") or os.getenv("LANGCHAIN_TRACING_V2") or ""
    api_key = os.getenv("LANGSMITH_API_KEY") or os.getenv("LANGCHAIN_API_KEY") or ""
    return {
        "enabled": _is_truthy(tracing_value),
        "project": os.getenv("LANGSMITH_PROJECT") or os.getenv("LANGCHAIN_PROJECT") or "",
        "endpoint": os.getenv("LANGSMITH_ENDPOINT") or os.getenv("LANGCHAIN_ENDPOINT") or "",
        "api_key_present": bool(api_key),
    }


def maybe_wrap_openai_client(client: Any, path: str | Path = ".env") -> tuple[Any, bool]:
    """Wrap the OpenAI client with the LangSmith tracer when tracing is enabled."""

    status = tracing_status(path)
    if not status["enabled"] or not status["api_key_present"]:
        return client, False

    try:
        from langsmith.wrappers import wrap_openai
    except ImportError:
        logger.warning(
            "LANGSMITH_TRACING is set but langsmith is not installed; tracing disabled."
        )
        return client, False

    return wrap_openai(client), True
