#!/usr/bin/env python3
"""
Structured logging for voxmode with context management.

Features:
- Environment-driven configuration (LOG_LEVEL, LOG_OUTPUT)
- JSON lines in production, readable lines in development
- Context propagation (session/utterance/mode) through contextvars
- Console routing: DEBUG/INFO to stdout, WARNING and above to stderr
"""
from __future__ import annotations

import json
import logging
import logging.handlers
import os
import sys
from contextvars import ContextVar
from pathlib import Path
from typing import Any, Dict, Optional

# Context variables for automatic context propagation
_log_context: ContextVar[Dict[str, Any]] = ContextVar("log_context", default={})

_RECORD_ATTRIBUTES = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "context"}


class StructuredFormatter(logging.Formatter):
    """
    Formatter that outputs JSON for production or readable format for development.
    """

    def __init__(self, use_json: bool = False):
        self.use_json = use_json
        super().__init__()

    def format(self, record: logging.LogRecord) -> str:
        context = _log_context.get({})

        # Merge context from record if available
        if getattr(record, "context", None):
            context = {**context, **record.context}

        if self.use_json:
            return self._format_json(record, context)
        return self._format_readable(record, context)

    def _format_json(self, record: logging.LogRecord, context: Dict[str, Any]) -> str:
        """Format log record as JSON."""
        log_entry = {
            "timestamp": self.formatTime(record, datefmt="%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "module": record.name,
            "message": record.getMessage(),
        }

        if context:
            log_entry["context"] = context

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        # Add any extra fields
        for key, value in record.__dict__.items():
            if key not in _RECORD_ATTRIBUTES:
                log_entry[key] = value

        return json.dumps(log_entry, default=str)

    def _format_readable(self, record: logging.LogRecord, context: Dict[str, Any]) -> str:
        """Format log record in human-readable format."""
        timestamp = self.formatTime(record, datefmt="%Y-%m-%d %H:%M:%S")

        context_str = ""
        if context:
            context_parts = [f"{k}={v}" for k, v in context.items()]
            context_str = f" | {' '.join(context_parts)}"

        base_msg = f"{timestamp} | {record.levelname:5} | {record.name} | {record.getMessage()}{context_str}"

        if record.exc_info:
            base_msg += f"\n{self.formatException(record.exc_info)}"

        return base_msg


class ContextLogger(logging.LoggerAdapter):
    """
    Logger adapter that automatically includes context in log messages.
    """

    def __init__(self, logger: logging.Logger, extra: Optional[Dict[str, Any]] = None):
        super().__init__(logger, extra or {})

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple[str, Dict[str, Any]]:
        context = _log_context.get({})

        if self.extra:
            context = {**context, **self.extra}

        if kwargs.get("extra"):
            call_context = kwargs["extra"].pop("context", {})
            context = {**context, **call_context}

        kwargs.setdefault("extra", {})
        kwargs["extra"]["context"] = context
        return msg, kwargs


def get_log_level() -> str:
    """Get log level from environment or default to INFO."""
    return os.environ.get("LOG_LEVEL", "INFO").upper()


def get_log_output() -> str:
    """Get log output mode from environment or default to console."""
    return os.environ.get("LOG_OUTPUT", "console").lower()


def is_production_env() -> bool:
    """Detect if running in production environment."""
    env_indicators = [
        os.environ.get("ENVIRONMENT") == "production",
        os.environ.get("VOXMODE_ENV") == "production",
        # Docker/Kubernetes indicators
        os.path.exists("/.dockerenv"),
        os.environ.get("KUBERNETES_SERVICE_HOST") is not None,
    ]
    return any(env_indicators)


def setup_structured_logging(
    name: str,
    log_level: Optional[str] = None,
    log_output: Optional[str] = None,
    log_directory: Optional[str | Path] = None,
    force_json: Optional[bool] = None,
    context: Optional[Dict[str, Any]] = None,
) -> ContextLogger:
    """
    Setup standardized structured logging.

    Environment variables take precedence over the values passed in, so a
    user can always turn on ``LOG_LEVEL=DEBUG`` without editing config.

    Args:
        name: Logger name (usually the package name so all modules inherit it)
        log_level: Log level (DEBUG, INFO, WARNING, ERROR)
        log_output: Output mode (console, file, both)
        log_directory: Directory for the rotating log file
        force_json: Force JSON output regardless of environment detection
        context: Default context to include in all log messages

    Returns:
        ContextLogger instance with structured logging configured

    """
    logger = logging.getLogger(name)

    level = os.environ.get("LOG_LEVEL", log_level or get_log_level()).upper()
    output = os.environ.get("LOG_OUTPUT", log_output or get_log_output()).lower()
    use_json = force_json if force_json is not None else is_production_env()

    # Reconfiguring (e.g. after a reload) replaces the previous handlers
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    logger.setLevel(getattr(logging, level, logging.INFO))
    formatter = StructuredFormatter(use_json=use_json)

    if output in ("console", "both"):
        _setup_console_handlers(logger, formatter)

    if output in ("file", "both"):
        _setup_file_handler(logger, formatter, name, log_directory)

    # Prevent propagation to avoid duplicate messages
    logger.propagate = False

    return ContextLogger(logger, context)


def _setup_console_handlers(logger: logging.Logger, formatter: StructuredFormatter) -> None:
    """Setup console handlers with proper stream routing."""
    # INFO and DEBUG to stdout
    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(formatter)
    stdout_handler.setLevel(logging.DEBUG)
    stdout_handler.addFilter(lambda record: record.levelno < logging.WARNING)
    logger.addHandler(stdout_handler)

    # WARN and ERROR to stderr
    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setFormatter(formatter)
    stderr_handler.setLevel(logging.WARNING)
    logger.addHandler(stderr_handler)


def _setup_file_handler(
    logger: logging.Logger, formatter: StructuredFormatter, name: str, log_directory: Optional[str | Path]
) -> None:
    """Setup rotating file handler."""
    logs_dir = Path(log_directory).expanduser() if log_directory else Path.cwd() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)

    module_basename = name.split(".")[-1]
    log_file = logs_dir / f"{module_basename}.log"

    # 5MB max, 3 backups
    file_handler = logging.handlers.RotatingFileHandler(log_file, maxBytes=5 * 1024 * 1024, backupCount=3)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)


def set_context(**kwargs: Any) -> None:
    """Set logging context for the current execution context."""
    _log_context.set({**_log_context.get({}), **kwargs})


def clear_context() -> None:
    """Clear all logging context for the current execution context."""
    _log_context.set({})


def get_context() -> Dict[str, Any]:
    """Get current logging context."""
    return _log_context.get({}).copy()


class LogContext:
    """
    Context manager for temporary logging context.

    Usage:
        with LogContext(utterance=2, mode="firefox"):
            logger.info("Listening")  # Will include context
    """

    def __init__(self, **kwargs: Any):
        self.new_context = kwargs
        self.old_context: Dict[str, Any] = {}

    def __enter__(self):
        self.old_context = get_context()
        set_context(**self.new_context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        _log_context.set(self.old_context)


def get_logger(name: str, context: Optional[Dict[str, Any]] = None) -> ContextLogger:
    """
    Context-aware adapter over ``logging.getLogger(name)``.

    Does not add handlers; configure the package logger once with
    ``setup_structured_logging("voxmode", ...)``.
    """
    return ContextLogger(logging.getLogger(name), context)
