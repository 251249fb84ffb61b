"""Utils package initialization."""

from webgen.utils.logger import get_logger, setup_logging, LogContext, logger

__all__ = ["get_logger", "setup_logging", "LogContext", "logger"]
