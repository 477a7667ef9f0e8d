"""I/O utilities for reading message datasets and writing reports."""

from datelens.io.load import (
    INPUT_JSONL_SCHEMA_VERSION,
    ConversationDatasetError,
    DatasetSummary,
    InputValidationReport,
    ValidationErrorRecord,
    derive_matches,
    infer_user_id,
    load_dataset_jsonl,
    summarize_messages,
    validate_dataset_jsonl,
)
from datelens.io.save import save_json, save_jsonl, save_text

__all__ = [
    "INPUT_JSONL_SCHEMA_VERSION",
    "ConversationDatasetError",
    "DatasetSummary",
    "InputValidationReport",
    "ValidationErrorRecord",
    "derive_matches",
    "infer_user_id",
    "load_dataset_jsonl",
    "save_json",
    "save_jsonl",
    "save_text",
    "summarize_messages",
    "validate_dataset_jsonl",
]
