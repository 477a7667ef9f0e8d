"""Completion client abstractions."""

from datelens.models.openai_client import LLMJsonClient, OpenAIJsonClient

__all__ = [
    "LLMJsonClient",
    "OpenAIJsonClient",
]
