"""
Logging utilities for the infrastructure catalog fetcher.

Structured logging with two renderings: one JSON document per line for log
collectors (Lambda/CloudWatch, or ``CATALOG_LOG_FORMAT=json``) and a compact text
line for terminal runs. Keyword context passed to the logger is merged into the
JSON document or appended as ``[key=value]`` pairs.
"""

import json
import logging
import os
import sys
import time
from contextlib import contextmanager
from typing import Any, Dict, Optional

ROOT_LOGGER_NAME = "aws_infra_catalog"


def _json_logs_requested() -> bool:
    if os.environ.get("AWS_LAMBDA_FUNCTION_NAME"):
        return True
    return os.environ.get("CATALOG_LOG_FORMAT", "").lower() == "json"


def _default_level() -> int:
    level_name = os.environ.get("LOG_LEVEL", "INFO").upper()
    return getattr(logging, level_name, logging.INFO)


class StructuredFormatter(logging.Formatter):
    """Render records as JSON for collectors or as text for a terminal."""

    def __init__(self, include_extra: bool = True):
        super().__init__()
        self.include_extra = include_extra
        self.use_json = _json_logs_requested()

    def _context(self, record: logging.LogRecord) -> Dict[str, Any]:
        if not self.include_extra:
            return {}
        return getattr(record, "extra_data", None) or {}

    def format(self, record: logging.LogRecord) -> str:
        if self.use_json:
            return self._format_json(record)
        return self._format_text(record)

    def _format_json(self, record: logging.LogRecord) -> str:
        document = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        document.update(self._context(record))
        if record.exc_info:
            document["exception"] = self.formatException(record.exc_info)
        return json.dumps(document, default=str)

    def _format_text(self, record: logging.LogRecord) -> str:
        line = (
            f"{self.formatTime(record, '%Y-%m-%d %H:%M:%S')} - "
            f"{record.levelname:8} - {record.getMessage()}"
        )
        context = self._context(record)
        if context:
            line += " [" + ", ".join(f"{k}={v}" for k, v in context.items()) + "]"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class CatalogLogger:
    """Thin wrapper over a stdlib logger that accepts keyword context."""

    def __init__(self, name: str = ROOT_LOGGER_NAME, level: Optional[str] = None):
        self.logger = logging.getLogger(name)
        self._configure(level)

    def _configure(self, level: Optional[str]):
        if level:
            self.set_level(level)
        elif self.logger.level == logging.NOTSET:
            # Children follow the package logger set up by setup_logging()
            root_level = logging.getLogger(ROOT_LOGGER_NAME).level
            self.logger.setLevel(root_level or _default_level())

        if not self.logger.handlers:
            handler = logging.StreamHandler(sys.stdout)
            handler.setFormatter(StructuredFormatter())
            self.logger.addHandler(handler)
            self.logger.propagate = False

    def set_level(self, level: str):
        self.logger.setLevel(getattr(logging, level.upper()))

    def debug(self, message: str, **extra):
        self._emit(logging.DEBUG, message, extra)

    def info(self, message: str, **extra):
        self._emit(logging.INFO, message, extra)

    def warning(self, message: str, **extra):
        self._emit(logging.WARNING, message, extra)

    def error(self, message: str, exc_info: bool = False, **extra):
        self._emit(logging.ERROR, message, extra, exc_info=exc_info)

    def _emit(
        self, level: int, message: str, extra: Dict[str, Any], exc_info: bool = False
    ):
        if self.logger.isEnabledFor(level):
            self.logger.log(
                level, message, exc_info=exc_info, extra={"extra_data": extra}
            )

    @contextmanager
    def timer(self, operation: str):
        """Log the start, the duration and the outcome of an operation."""
        self.info(f"Starting {operation}")
        started = time.perf_counter()
        try:
            yield
        except Exception as e:
            self.error(
                f"Failed {operation}",
                duration_seconds=f"{time.perf_counter() - started:.2f}",
                error=str(e),
            )
            raise
        self.info(
            f"Completed {operation}",
            duration_seconds=f"{time.perf_counter() - started:.2f}",
        )


def setup_logging(level: str = "INFO") -> CatalogLogger:
    """
    Set up logging for the application.

    Loggers already created through :func:`get_logger` are moved to the new level;
    later ones inherit it.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)

    Returns:
        Package-level CatalogLogger
    """
    root = CatalogLogger(ROOT_LOGGER_NAME, level=level)
    prefix = ROOT_LOGGER_NAME + "."
    for name, existing in logging.Logger.manager.loggerDict.items():
        if name.startswith(prefix) and isinstance(existing, logging.Logger):
            existing.setLevel(root.logger.level)
    return root


def get_logger(name: str = ROOT_LOGGER_NAME) -> CatalogLogger:
    """
    Get a logger namespaced under the package logger.

    Args:
        name: Logger name, e.g. ``"discovery"``

    Returns:
        CatalogLogger instance
    """
    if name != ROOT_LOGGER_NAME and not name.startswith(ROOT_LOGGER_NAME + "."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return CatalogLogger(name)
