"""Logging setup for analysis runs."""

from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str | int = "INFO") -> None:
    """Install one timestamped stream handler on the `datelens` logger."""

    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        if not isinstance(resolved, int):
            raise ValueError(f"Unknown log level: {level}")
        level = resolved

    package_logger = logging.getLogger("datelens")
    package_logger.setLevel(level)
    for handler in list(package_logger.handlers):
        if getattr(handler, "_datelens_handler", False):
            package_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._datelens_handler = True  # type: ignore[attr-defined]
    package_logger.addHandler(handler)
