"""Structured logging configuration for the flow engine.

This module wires the stdlib ``logging`` package for the engine and API:
- JSON structured logs for machine parsing
- Colored console output when DEBUG is enabled
- Optional rotating file handler (10MB max, 5 backups)
- Redaction of credentials passed through node parameters

Structured data is attached to records through ``extra={"context": {...}}``.
Engine components put ``execution_id`` and ``node_id`` into that context so
a single run can be followed across the log stream.
"""

from __future__ import annotations

import json
import logging
import re
import sys
from contextvars import ContextVar, Token
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, ClassVar

from flowengine.core.config import settings


class SensitiveDataFilter(logging.Filter):
    """Redact credentials from log messages and structured context.

    HTTP request nodes receive passwords and bearer tokens as parameters,
    and those parameters end up in log context when a node fails. Both the
    formatted message and any ``context`` mapping on the record are scrubbed.

    Examples:
        >>> logger = logging.getLogger("flowengine")
        >>> logger.addFilter(SensitiveDataFilter())
        >>> logger.info("token=abc123")
        # Logs: "token: [REDACTED]"
    """

    SENSITIVE_KEYS: ClassVar[tuple[str, ...]] = (
        "password",
        "passwd",
        "secret",
        "token",
        "api_key",
        "apikey",
        "authorization",
        "credential",
    )
    REDACTED: ClassVar[str] = "[REDACTED]"

    def __init__(self) -> None:
        super().__init__()
        self._patterns = [
            (key, re.compile(rf"{key}[:=]\s*[\"']?[^\s\"',}}]+", re.IGNORECASE))
            for key in self.SENSITIVE_KEYS
        ]

    def filter(self, record: logging.LogRecord) -> bool:
        """Scrub the record in place. Always lets the record through."""
        record.msg = self.redact_text(str(record.msg))
        if record.args and isinstance(record.args, tuple):
            record.args = tuple(
                self.redact_text(arg) if isinstance(arg, str) else arg
                for arg in record.args
            )
        context = getattr(record, "context", None)
        if isinstance(context, dict):
            record.context = self.redact_mapping(context)
        return True

    def redact_text(self, text: str) -> str:
        for key, pattern in self._patterns:
            text = pattern.sub(f"{key}: {self.REDACTED}", text)
        return text

    def redact_mapping(self, data: dict[str, Any]) -> dict[str, Any]:
        """Return a copy of ``data`` with sensitive keys masked, recursively."""
        redacted: dict[str, Any] = {}
        for key, value in data.items():
            if any(marker in str(key).lower() for marker in self.SENSITIVE_KEYS):
                redacted[key] = self.REDACTED
            elif isinstance(value, dict):
                redacted[key] = self.redact_mapping(value)
            else:
                redacted[key] = value
        return redacted


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging.

    Format:
        {
            "timestamp": "2025-01-12T10:30:45.123Z",
            "level": "INFO",
            "logger": "flowengine.services.workflow.engine",
            "message": "Workflow execution completed",
            "service": "FlowEngineAPI",
            "context": {"execution_id": "...", "status": "completed"}
        }
    """

    def __init__(
        self,
        service_name: str = "FlowEngineAPI",
        service_version: str = "0.1.0",
    ) -> None:
        super().__init__()
        self.service_name = service_name
        self.service_version = service_version

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC)
            .isoformat()
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service_name,
            "version": self.service_version,
        }

        if hasattr(record, "context"):
            log_entry["context"] = record.context

        if record.exc_info:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info),
            }

        if record.levelno >= logging.ERROR:
            log_entry["source"] = {
                "function": record.funcName,
                "line": record.lineno,
                "file": record.pathname,
            }

        return json.dumps(log_entry, default=str, ensure_ascii=False)


class ColoredConsoleFormatter(logging.Formatter):
    """Colored console formatter for development environments."""

    COLORS: ClassVar[dict[str, str]] = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[41m",  # Red background
    }
    RESET: ClassVar[str] = "\033[0m"

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        # Work on a copy so other handlers see the unmodified record
        record = logging.makeLogRecord(record.__dict__)
        color = self.COLORS.get(record.levelname, self.RESET)
        record.levelname = f"{color}{record.levelname}{self.RESET}"

        context = getattr(record, "context", None)
        if context:
            record.msg = f"{record.msg} | {json.dumps(context, default=str)}"

        return super().format(record)


def setup_logging(
    log_level: str | None = None,
    log_file: str | None = None,
    service_name: str = "FlowEngineAPI",
    enable_json: bool = True,
    enable_console: bool = True,
    enable_sensitive_filter: bool | None = None,
) -> logging.Logger:
    """Configure the root logger.

    Args:
        log_level: Logging level name. Defaults to ``settings.LOG_LEVEL``.
        log_file: Path of a rotating log file. No file handler when None.
        service_name: Service name stamped on JSON records.
        enable_json: Use JSON for the file handler and non-debug console.
        enable_console: Attach a stdout handler.
        enable_sensitive_filter: Attach ``SensitiveDataFilter`` to handlers.
            Defaults to ``settings.LOG_SENSITIVE_FILTER``.

    Returns:
        The configured root logger.

    Examples:
        >>> logger = setup_logging(log_level="INFO")
        >>> logger.info("Engine ready", extra={"context": {"nodes": 4}})
    """
    if log_level is None:
        log_level = settings.LOG_LEVEL
    if enable_sensitive_filter is None:
        enable_sensitive_filter = settings.LOG_SENSITIVE_FILTER
    level = getattr(logging, log_level.upper(), logging.INFO)

    logger = logging.getLogger()
    logger.setLevel(level)
    logger.handlers.clear()

    context_filter = ContextInjectionFilter()
    sensitive_filter = SensitiveDataFilter() if enable_sensitive_filter else None

    if log_file is not None:
        log_file_path = Path(log_file)
        log_file_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            filename=str(log_file_path),
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)
        if enable_json:
            file_handler.setFormatter(JSONFormatter(service_name=service_name))
        else:
            file_handler.setFormatter(
                logging.Formatter(
                    "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                    datefmt="%Y-%m-%d %H:%M:%S",
                )
            )
        file_handler.addFilter(context_filter)
        if sensitive_filter:
            file_handler.addFilter(sensitive_filter)
        logger.addHandler(file_handler)

    if enable_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        if settings.DEBUG or not enable_json:
            console_handler.setFormatter(ColoredConsoleFormatter())
        else:
            console_handler.setFormatter(JSONFormatter(service_name=service_name))
        console_handler.addFilter(context_filter)
        if sensitive_filter:
            console_handler.addFilter(sensitive_filter)
        logger.addHandler(console_handler)

    logger.info(
        f"Logging initialized - Level: {log_level}",
        extra={
            "context": {
                "log_level": log_level,
                "log_file": log_file,
                "service": service_name,
            }
        },
    )
    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance with the specified name.

    Examples:
        >>> from flowengine.core.logging import get_logger
        >>> logger = get_logger(__name__)
    """
    return logging.getLogger(name)


_log_context: ContextVar[dict[str, Any] | None] = ContextVar("log_context", default=None)


class ContextInjectionFilter(logging.Filter):
    """Merge the active ``LogContext`` into each record's ``context``."""

    def filter(self, record: logging.LogRecord) -> bool:
        scoped = _log_context.get()
        if scoped:
            existing = getattr(record, "context", None) or {}
            record.context = {**scoped, **existing}
        return True


class LogContext:
    """Attach structured context to every record logged inside a block.

    The context lives in a ``ContextVar`` so concurrent node tasks each
    see their own values.

    Examples:
        >>> logger = get_logger(__name__)
        >>> with LogContext(execution_id="abc", node_id="http_1"):
        ...     logger.info("Calling remote endpoint")
    """

    def __init__(self, **context: Any) -> None:
        self.context = context
        self._token: Token[dict[str, Any] | None] | None = None

    def __enter__(self) -> LogContext:
        current = _log_context.get() or {}
        self._token = _log_context.set({**current, **self.context})
        return self

    def __exit__(self, *args: Any) -> None:
        if self._token is not None:
            _log_context.reset(self._token)
            self._token = None


__all__ = [
    "ColoredConsoleFormatter",
    "ContextInjectionFilter",
    "JSONFormatter",
    "LogContext",
    "SensitiveDataFilter",
    "get_logger",
    "setup_logging",
]
