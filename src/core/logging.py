"""Structured logging for Gravi Agent.

Every module logs under the "gravi" root:
    - gravi.log: JSON lines, rotated at 10 MB, 5 backups
    - console: one human-readable line per record

Scheduler records carry a context dict (index, total, attempt,
silence_seconds, ...) which the JSON file keeps as an object and the
console appends as key=value pairs. Prompt text is never logged in full;
pass it through preview() first.

Usage:
    from src.core.logging import get_logger, preview, setup_logging

    setup_logging(config.log_path)  # Once, from gravi.py
    logger = get_logger(__name__)

    logger.info(
        f"Executing [1/3]: \"{preview(prompt)}\"",
        extra={"context": {"index": 0, "total": 3}},
    )
"""

import json
import logging
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Optional

ROOT_LOGGER_NAME = "gravi"
LOG_FILE_NAME = "gravi.log"
MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUPS = 5
PREVIEW_CHARS = 60

_handlers: list[logging.Handler] = []


def preview(text: str, limit: int = PREVIEW_CHARS) -> str:
    """Shorten prompt text for log lines, marking the cut with '...'."""
    text = " ".join(text.split())
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


def _context(record: logging.LogRecord) -> dict[str, Any]:
    context = getattr(record, "context", None)
    return context if isinstance(context, dict) else {}


class JSONFormatter(logging.Formatter):
    """One JSON object per line for gravi.log."""

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        log_data: dict[str, Any] = {
            "timestamp": created.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "module": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }

        context = _context(record)
        if context:
            log_data["context"] = context

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False, default=str)


class ConsoleFormatter(logging.Formatter):
    """Compact console line: time, level, logger, message, [context]."""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        message = record.getMessage()

        context = _context(record)
        if context:
            message += " [" + ", ".join(f"{k}={v}" for k, v in context.items()) + "]"

        line = f"{timestamp} {record.levelname[:4]:4s} {record.name}: {message}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(
    log_dir: Optional[Path] = None,
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> None:
    """Attach the console and rotating file handlers to the gravi root.

    Later calls are ignored until reset_logging().

    Args:
        log_dir: Directory for gravi.log. Defaults to ~/.gravi/logs
        console_level: Minimum console level (DEBUG with --debug)
        file_level: Minimum file level
    """
    if _handlers:
        return

    if log_dir is None:
        log_dir = Path.home() / ".gravi" / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(logging.DEBUG)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(console_level)
    console_handler.setFormatter(ConsoleFormatter())

    file_handler = RotatingFileHandler(
        log_dir / LOG_FILE_NAME,
        maxBytes=MAX_LOG_BYTES,
        backupCount=LOG_BACKUPS,
        encoding="utf-8",
    )
    file_handler.setLevel(file_level)
    file_handler.setFormatter(JSONFormatter())

    for handler in (console_handler, file_handler):
        root_logger.addHandler(handler)
        _handlers.append(handler)

    root_logger.info("Logging initialized", extra={"context": {"log_dir": str(log_dir)}})


def reset_logging() -> None:
    """Detach and close the handlers installed by setup_logging()."""
    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    while _handlers:
        handler = _handlers.pop()
        root_logger.removeHandler(handler)
        handler.close()


def get_logger(name: str) -> logging.Logger:
    """Get logger for module.

    Args:
        name: Module name (typically __name__)

    Returns:
        Logger under the gravi root ("src.scheduler.executor" -> "gravi.scheduler.executor")
    """
    if name.startswith("src."):
        name = name[4:]
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
