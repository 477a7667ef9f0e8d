"""Writers for analysis results and markdown reports.

Every writer replaces its target atomically, so an interrupted run never leaves a
half-written report behind.
"""

from __future__ import annotations

import json
import logging
import os
import uuid
from pathlib import Path
from typing import Any

from pydantic import BaseModel

logger = logging.getLogger(__name__)


def _sync_parent(directory: Path) -> None:
    try:
        fd = os.open(directory, os.O_RDONLY)
    except OSError:
        logger.debug("Skipping directory sync for %s", directory)
        return
    try:
        os.fsync(fd)
    except OSError:
        logger.debug("Directory sync failed for %s", directory)
    finally:
        os.close(fd)


def _replace_file(path: str | Path, content: str) -> Path:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    staging = target.with_name(f".{target.name}.{uuid.uuid4().hex}.tmp")
    try:
        with staging.open("w", encoding="utf-8") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(staging, target)
    except BaseException:
        staging.unlink(missing_ok=True)
        raise
    _sync_parent(target.parent)
    return target


def _jsonable(record: dict[str, Any] | BaseModel) -> Any:
    # Models are written with their camelCase aliases.
    if isinstance(record, BaseModel):
        return record.model_dump(mode="json", by_alias=True)
    return record


def save_json(path: str | Path, payload: dict[str, Any] | BaseModel) -> Path:
    return _replace_file(path, json.dumps(_jsonable(payload), ensure_ascii=True, indent=2) + "\n")


def save_jsonl(path: str | Path, rows: list[dict[str, Any] | BaseModel]) -> Path:
    lines = [json.dumps(_jsonable(row), ensure_ascii=True) + "\n" for row in rows]
    return _replace_file(path, "".join(lines))


def save_text(path: str | Path, content: str) -> Path:
    return _replace_file(path, content)
