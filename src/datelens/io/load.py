"""Loaders for normalized message datasets.

A dataset file is JSONL with one normalized message per line, e.g.::

    {"id": "m1", "matchId": "match-1", "senderId": "user-1",
     "sentAt": "2024-05-01T18:30:00Z", "body": "Hi!", "direction": "user"}

Keys may be camelCase or snake_case. Matches are derived from the message match ids.
"""

from __future__ import annotations

import json
from collections import Counter
from dataclasses import asdict, dataclass
from pathlib import Path

from pydantic import ValidationError

from datelens.schemas import Dataset, MatchContext, Message

INPUT_JSONL_SCHEMA_VERSION = "1.0.0"


class ConversationDatasetError(ValueError):
    """Raised when a message dataset fails schema or integrity checks."""


@dataclass(frozen=True)
class DatasetSummary:
    """Aggregate summary for a set of messages."""

    message_count: int
    match_count: int
    sender_count: int
    user_message_count: int
    match_message_count: int
    avg_messages_per_match: float
    min_messages_per_match: int
    max_messages_per_match: int


@dataclass(frozen=True)
class ValidationErrorRecord:
    """One validation error discovered while scanning a JSONL input file."""

    line_number: int
    code: str
    message: str


@dataclass(frozen=True)
class InputValidationReport:
    """Validation results for a message JSONL file."""

    schema_version: str
    input_path: str
    total_lines: int
    non_empty_lines: int
    valid_message_count: int
    invalid_line_count: int
    duplicate_message_id_count: int
    error_count: int
    dropped_error_count: int
    is_valid: bool
    summary: DatasetSummary
    errors: list[ValidationErrorRecord]

    def to_dict(self) -> dict:
        """Render report as a JSON-serializable dictionary."""

        payload = asdict(self)
        payload["errors"] = [asdict(item) for item in self.errors]
        return payload


def _parse_line(line_number: int, stripped: str, file_path: Path) -> Message:
    try:
        payload = json.loads(stripped)
    except json.JSONDecodeError as exc:
        raise ConversationDatasetError(
            f"Invalid JSON on line {line_number} of {file_path}: {exc.msg}"
        ) from exc

    if not isinstance(payload, dict):
        raise ConversationDatasetError(
            f"Expected object on line {line_number} of {file_path}, "
            f"got {type(payload).__name__}."
        )

    try:
        return Message.model_validate(payload)
    except ValidationError as exc:
        raise ConversationDatasetError(
            f"Message schema validation failed on line {line_number} of {file_path}: {exc}"
        ) from exc


def validate_dataset_jsonl(path: str | Path, *, max_errors: int = 100) -> InputValidationReport:
    """Scan a JSONL file and return a detailed validation report.

    Unlike `load_dataset_jsonl`, this keeps scanning past errors and reports
    aggregate counts plus line-level details.
    """

    if max_errors < 0:
        raise ValueError(f"max_errors must be >= 0, got {max_errors}.")

    file_path = Path(path)
    if not file_path.exists():
        raise ConversationDatasetError(f"Dataset file does not exist: {file_path}")

    total_lines = 0
    non_empty_lines = 0
    duplicate_count = 0
    total_error_count = 0
    dropped_error_count = 0
    errors: list[ValidationErrorRecord] = []
    messages: list[Message] = []
    seen_ids: set[str] = set()

    def _record_error(*, line_number: int, code: str, message: str) -> None:
        nonlocal total_error_count, dropped_error_count
        total_error_count += 1
        if len(errors) < max_errors:
            errors.append(
                ValidationErrorRecord(line_number=line_number, code=code, message=message)
            )
        else:
            dropped_error_count += 1

    with file_path.open(encoding="utf-8") as handle:
        for line_number, line in enumerate(handle, start=1):
            total_lines += 1
            stripped = line.strip()
            if not stripped:
                continue
            non_empty_lines += 1

            try:
                payload = json.loads(stripped)
            except json.JSONDecodeError as exc:
                _record_error(line_number=line_number, code="invalid_json", message=exc.msg)
                continue

            if not isinstance(payload, dict):
                _record_error(
                    line_number=line_number,
                    code="non_object_line",
                    message=f"Expected JSON object, got {type(payload).__name__}.",
                )
                continue

            try:
                message = Message.model_validate(payload)
            except ValidationError as exc:
                _record_error(
                    line_number=line_number,
                    code="schema_validation_failed",
                    message=str(exc),
                )
                continue

            if message.id in seen_ids:
                duplicate_count += 1
                _record_error(
                    line_number=line_number,
                    code="duplicate_message_id",
                    message=f"Duplicate message id '{message.id}' in dataset.",
                )
                continue

            seen_ids.add(message.id)
            messages.append(message)

    if non_empty_lines == 0:
        _record_error(
            line_number=0,
            code="empty_dataset",
            message=f"No non-empty JSONL lines found in {file_path}.",
        )

    invalid_line_count = non_empty_lines - len(messages)
    return InputValidationReport(
        schema_version=INPUT_JSONL_SCHEMA_VERSION,
        input_path=str(file_path),
        total_lines=total_lines,
        non_empty_lines=non_empty_lines,
        valid_message_count=len(messages),
        invalid_line_count=invalid_line_count,
        duplicate_message_id_count=duplicate_count,
        error_count=total_error_count,
        dropped_error_count=dropped_error_count,
        is_valid=non_empty_lines > 0 and invalid_line_count == 0,
        summary=summarize_messages(messages),
        errors=errors,
    )


def infer_user_id(messages: list[Message]) -> str:
    """Most frequent sender among messages marked as sent by the user."""

    senders = Counter(message.sender_id for message in messages if message.direction == "user")
    if not senders:
        raise ConversationDatasetError(
            "Cannot infer the user id: no message has direction 'user'. Pass it explicitly."
        )
    return senders.most_common(1)[0][0]


def derive_matches(messages: list[Message], user_id: str) -> list[MatchContext]:
    """One match per match id, created at its first message."""

    matches: dict[str, MatchContext] = {}
    for message in sorted(messages, key=lambda item: item.sent_at):
        if message.match_id not in matches:
            participants = sorted(
                {item.sender_id for item in messages if item.match_id == message.match_id}
                | {user_id}
            )
            matches[message.match_id] = MatchContext(
                id=message.match_id,
                created_at=message.sent_at,
                participants=participants,
            )
    return list(matches.values())


def load_dataset_jsonl(
    path: str | Path,
    *,
    user_id: str | None = None,
    platform: str = "unknown",
) -> Dataset:
    """Load and validate a message dataset from a JSONL file.

    Stops at the first invalid line. Message ids must be unique within the file.
    """

    file_path = Path(path)
    if not file_path.exists():
        raise ConversationDatasetError(f"Dataset file does not exist: {file_path}")

    messages: list[Message] = []
    seen_ids: set[str] = set()
    with file_path.open(encoding="utf-8") as handle:
        for line_number, line in enumerate(handle, start=1):
            stripped = line.strip()
            if not stripped:
                continue
            message = _parse_line(line_number, stripped, file_path)
            if message.id in seen_ids:
                raise ConversationDatasetError(
                    f"Duplicate message id '{message.id}' found on line {line_number} "
                    f"of {file_path}."
                )
            seen_ids.add(message.id)
            messages.append(message)

    if not messages:
        raise ConversationDatasetError(f"No messages found in file: {file_path}")

    resolved_user_id = user_id or infer_user_id(messages)
    return Dataset(
        user_id=resolved_user_id,
        platform=platform,
        messages=messages,
        matches=derive_matches(messages, resolved_user_id),
    )


def summarize_messages(messages: list[Message]) -> DatasetSummary:
    """Compute basic summary stats for a message list."""

    if not messages:
        return DatasetSummary(
            message_count=0,
            match_count=0,
            sender_count=0,
            user_message_count=0,
            match_message_count=0,
            avg_messages_per_match=0.0,
            min_messages_per_match=0,
            max_messages_per_match=0,
        )

    per_match = Counter(message.match_id for message in messages)
    user_count = sum(1 for message in messages if message.direction == "user")
    return DatasetSummary(
        message_count=len(messages),
        match_count=len(per_match),
        sender_count=len({message.sender_id for message in messages}),
        user_message_count=user_count,
        match_message_count=len(messages) - user_count,
        avg_messages_per_match=len(messages) / len(per_match),
        min_messages_per_match=min(per_match.values()),
        max_messages_per_match=max(per_match.values()),
    )
