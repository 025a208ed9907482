# SPDX-License-Identifier: MIT
# Copyright (c) 2026 MCPLookup Contributors

"""Structured logging configuration for the trust engine.

Two output shapes: one JSON object per line for aggregation, and a
compact single line for operators at a terminal. Both carry the trace id
of the verification in progress, so the votes of one resolver fan-out
can be grouped, plus any trust context passed with ``extra=``::

    logger.info("Challenge created", extra={"domain": domain, "challenge_id": cid})
"""

from __future__ import annotations

import json
import logging
import sys
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any

_trace_id: ContextVar[str | None] = ContextVar("mcplookup_trace_id", default=None)

# Record attributes copied into structured output when a caller supplies them
CONTEXT_FIELDS = ("domain", "challenge_id", "resolver", "endpoint")

# Libraries whose INFO output drowns out verification events
NOISY_LOGGERS = ("aiohttp", "asyncio", "urllib3", "redis")


def get_correlation_id() -> str | None:
    return _trace_id.get()


def set_correlation_id(correlation_id: str | None) -> None:
    _trace_id.set(correlation_id)


@contextmanager
def correlation_context(correlation_id: str | None = None) -> Iterator[str]:
    """Tag every record logged inside the block with one trace id.

    Example:
        with correlation_context() as trace:
            await service.verify_ownership_challenge(challenge_id)
    """
    token = _trace_id.set(correlation_id or str(uuid.uuid4()))
    try:
        yield _trace_id.get()
    finally:
        _trace_id.reset(token)


def _trust_context(record: logging.LogRecord) -> dict[str, Any]:
    return {name: getattr(record, name) for name in CONTEXT_FIELDS if getattr(record, name, None) is not None}


class JSONFormatter(logging.Formatter):
    """Machine-readable records for log shipping."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        trace = get_correlation_id()
        if trace:
            entry["correlation_id"] = trace
        context = _trust_context(record)
        if context:
            entry["context"] = context
        if record.levelno >= logging.WARNING:
            entry["at"] = f"{record.module}:{record.funcName}:{record.lineno}"
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """``HH:MM:SS LEVEL logger [trace] message (domain=...)``, colored on a TTY."""

    LEVEL_COLORS = {
        logging.DEBUG: "\033[2m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[1;31m",
    }
    RESET = "\033[0m"

    def __init__(self, use_colors: bool = True):
        super().__init__(datefmt="%H:%M:%S")
        self.use_colors = use_colors and sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:
        level = f"{record.levelname:<7}"
        if self.use_colors:
            level = f"{self.LEVEL_COLORS.get(record.levelno, '')}{level}{self.RESET}"

        parts = [self.formatTime(record, self.datefmt), level, record.name]
        trace = get_correlation_id()
        if trace:
            parts.append(f"[{trace[:8]}]")
        parts.append(record.getMessage())
        context = _trust_context(record)
        if context:
            parts.append("(" + " ".join(f"{k}={v}" for k, v in context.items()) + ")")

        line = " ".join(parts)
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def _resolve_level(level: str | int) -> int:
    if isinstance(level, int):
        return level
    return logging.getLevelNamesMapping().get(level.upper(), logging.INFO)


def configure_logging(
    level: str | int | None = None,
    json_format: bool | None = None,
    log_file: str | None = None,
) -> None:
    """Install trust engine logging on the root logger.

    Arguments left as None come from MCPLOOKUP_LOG_LEVEL,
    MCPLOOKUP_LOG_FORMAT (``json``, ``text`` or ``auto``) and
    MCPLOOKUP_LOG_FILE. ``auto`` picks JSON unless stderr is a terminal.
    Any handlers already on the root logger are replaced.
    """
    from .config import get_config

    config = get_config()
    if json_format is None:
        chosen = config.log_format.lower()
        json_format = chosen == "json" or (chosen not in ("json", "text") and not sys.stderr.isatty())

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    handlers[0].setFormatter(JSONFormatter() if json_format else ConsoleFormatter())

    log_file = config.log_file if log_file is None else log_file
    if log_file:
        # Always JSON
        to_file = logging.FileHandler(log_file)
        to_file.setFormatter(JSONFormatter())
        handlers.append(to_file)

    root = logging.getLogger()
    for old in list(root.handlers):
        root.removeHandler(old)
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(_resolve_level(level if level is not None else config.log_level))

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
