from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from core.config import LoggingConfig

# Keys passed through ``extra=`` by ticket handlers.
CONTEXT_FIELDS = ("guild_id", "channel_id", "user_id", "panel_id", "action")

LIBRARY_LEVELS = {
    "discord": logging.INFO,
    "discord.http": logging.WARNING,
    "discord.gateway": logging.WARNING,
    "uvicorn.access": logging.WARNING,
    "aiosqlite": logging.WARNING,
}


def _record_context(record: logging.LogRecord) -> dict[str, str]:
    return {
        key: str(value)
        for key in CONTEXT_FIELDS
        if (value := getattr(record, key, None)) is not None
    }


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, UTC).isoformat(timespec="seconds"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_record_context(record),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


class ContextFormatter(logging.Formatter):
    """Plain text with any ticket context appended as ``key=value`` pairs."""

    def __init__(self) -> None:
        super().__init__(fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s", datefmt="%Y-%m-%d %H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = _record_context(record)
        if not context:
            return line
        pairs = " ".join(f"{key}={value}" for key, value in context.items())
        head, sep, tail = line.partition("\n")
        return f"{head} [{pairs}]{sep}{tail}"


def _file_handler(config: LoggingConfig) -> logging.Handler:
    log_dir = Path(config.directory)
    log_dir.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        filename=log_dir / config.file_name,
        maxBytes=config.max_bytes,
        backupCount=config.backup_count,
        encoding="utf-8",
    )
    handler.setFormatter(ContextFormatter())
    return handler


def configure_logging(config: LoggingConfig) -> None:
    console = logging.StreamHandler()
    console.setFormatter(JsonFormatter() if config.json_console else ContextFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(logging.getLevelNamesMapping().get(config.level.upper(), logging.INFO))
    root_logger.addHandler(console)
    root_logger.addHandler(_file_handler(config))

    for name, level in LIBRARY_LEVELS.items():
        logging.getLogger(name).setLevel(level)
