"""
Logging configuration for the API process and the session supervisor.

JSON lines in production, a readable text format for local development.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from app.config import get_settings


class JSONFormatter(logging.Formatter):
    """Render a record as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        extra_data = getattr(record, "extra_data", None)
        if isinstance(extra_data, dict):
            log_data.update(extra_data)
        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s | %(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )


class LoggingConfig:
    """Install a single stdout handler on the root logger."""

    def __init__(
        self, level: Optional[str] = None, log_format: Optional[str] = None
    ) -> None:
        settings = get_settings()
        self.level = (level or settings.log_level).upper()
        self.log_format = (log_format or settings.log_format).lower()
        self.configure()

    def configure(self) -> None:
        root = logging.getLogger()
        root.setLevel(getattr(logging, self.level, logging.INFO))
        for handler in list(root.handlers):
            if getattr(handler, "_tracker_handler", False):
                root.removeHandler(handler)
        handler = logging.StreamHandler(sys.stdout)
        handler._tracker_handler = True  # type: ignore[attr-defined]
        if self.log_format == "json":
            handler.setFormatter(JSONFormatter())
        else:
            handler.setFormatter(TextFormatter())
        root.addHandler(handler)


def get_logger(name: str = "app") -> logging.Logger:
    return logging.getLogger(name)
