"""
Structured logging configuration for the page generator.

Provides consistent logging format across all modules with:
- Structured JSON output for production
- Human-readable format for development
- Request ID tracking for debugging (async-safe)
"""

import logging
import sys
from datetime import datetime, timezone
from typing import Optional, Dict, Any
import json
import contextvars

# Context variable to hold log context (async-safe)
_log_context: contextvars.ContextVar[Dict[str, Any]] = contextvars.ContextVar("log_context", default={})

# Numeric fields passed via `extra=` that both formatters render
COUNT_FIELDS = ("new_images", "cache_hits", "failed_images", "tokens", "response_length")


class ContextFilter(logging.Filter):
    """Filter to inject context variables into log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        context = _log_context.get()
        for key, value in context.items():
            setattr(record, key, value)
        return True


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging in production."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if hasattr(record, "request_id"):
            log_data["request_id"] = record.request_id
        if hasattr(record, "prompt"):
            log_data["prompt"] = self._truncate(record.prompt)
        if hasattr(record, "provider"):
            log_data["provider"] = record.provider
        if hasattr(record, "duration_ms"):
            log_data["duration_ms"] = record.duration_ms
        for key in COUNT_FIELDS:
            if hasattr(record, key):
                log_data[key] = getattr(record, key)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False)

    @staticmethod
    def _truncate(value: str, limit: int = 60) -> str:
        """Keep image prompts short in log lines."""
        if not value or len(value) <= limit:
            return value
        return value[:limit] + "..."


class DevelopmentFormatter(logging.Formatter):
    """Human-readable formatter for development."""

    COLORS = {
        "DEBUG": "\033[36m",     # Cyan
        "INFO": "\033[32m",      # Green
        "WARNING": "\033[33m",   # Yellow
        "ERROR": "\033[31m",     # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)

        timestamp = datetime.now().strftime("%H:%M:%S.%f")[:-3]
        base = f"{color}{timestamp} [{record.levelname:8}]{self.RESET} {record.name}: {record.getMessage()}"

        context_parts = []
        if hasattr(record, "request_id"):
            context_parts.append(f"req={record.request_id[:8]}")
        if hasattr(record, "prompt"):
            context_parts.append(f"prompt={record.prompt[:24]!r}")
        if hasattr(record, "provider"):
            context_parts.append(f"provider={record.provider}")
        if hasattr(record, "duration_ms"):
            context_parts.append(f"took={record.duration_ms}ms")
        for key in COUNT_FIELDS:
            if hasattr(record, key):
                context_parts.append(f"{key}={getattr(record, key)}")

        if context_parts:
            base += f" ({', '.join(context_parts)})"

        if record.exc_info:
            base += f"\n{self.formatException(record.exc_info)}"

        return base


def setup_logging(
    level: str = "INFO",
    json_output: bool = False,
    logger_name: Optional[str] = None
) -> logging.Logger:
    """
    Configure and return a logger instance.
    """
    logger = logging.getLogger(logger_name or "webgen")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(logger.level)

    if json_output:
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(DevelopmentFormatter())

    handler.addFilter(ContextFilter())

    logger.addHandler(handler)

    # Prevent propagation to root logger
    logger.propagate = False

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a child logger for a specific module."""
    return logging.getLogger(f"webgen.{name}")


class LogContext:
    """Context manager for adding extra fields to log records using contextvars."""

    def __init__(self, logger: logging.Logger, **kwargs):
        self.new_context = kwargs
        self.token = None

    def __enter__(self):
        current_context = _log_context.get()
        updated_context = current_context.copy()
        updated_context.update(self.new_context)

        self.token = _log_context.set(updated_context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.token:
            _log_context.reset(self.token)
        return False


# Create default logger on import
logger = setup_logging()
