"""Observability helpers."""

from datelens.observability.langsmith import (
    load_tracing_env,
    maybe_wrap_openai_client,
    tracing_status,
)
from datelens.observability.logs import LOG_FORMAT, configure_logging

__all__ = [
    "LOG_FORMAT",
    "configure_logging",
    "load_tracing_env",
    "maybe_wrap_openai_client",
    "tracing_status",
]
