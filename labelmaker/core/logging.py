"""
Logging configuration for the webhook registry with structured logging support.
"""

import logging
import logging.handlers
import sys
import json
import uuid
import contextvars
from datetime import datetime, timezone
from typing import Optional

# Module-level flag to track if logging has been initialized
_logging_initialized = False

# Context variable for request tracking
request_id_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    'request_id', default=None
)

# Attributes present on every LogRecord; anything else was passed via extra=
_RESERVED_ATTRS = frozenset([
    'name', 'msg', 'args', 'created', 'filename', 'funcName', 'levelname',
    'levelno', 'lineno', 'module', 'msecs', 'relativeCreated', 'exc_info',
    'exc_text', 'stack_info', 'pathname', 'processName', 'process',
    'threadName', 'thread', 'taskName', 'message', 'request_id',
])


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }

        request_id = request_id_var.get()
        if request_id:
            log_data['request_id'] = request_id

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        # Add any extra fields
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_data[key] = value

        return json.dumps(log_data, default=str)


class ConsoleFormatter(logging.Formatter):
    """Console formatter with request ID support."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record for console output."""
        request_id = request_id_var.get()
        if request_id:
            record.request_id = f"[{request_id[:8]}]"
        else:
            record.request_id = ""

        return super().format(record)


def setup_logging(level=None, force_reinit=False):
    """
    Configure logging for the registry.

    Args:
        level: Root logging level; defaults to the configured log level
        force_reinit: Force re-initialization of logging (default: False)
    """
    global _logging_initialized

    if _logging_initialized and not force_reinit:
        return logging.getLogger()

    # Import settings here to avoid circular imports
    from labelmaker.core.settings import get_settings
    settings = get_settings().logging

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(level or settings.log_level.upper())

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(settings.console_log_level.upper())

    if settings.log_format in ['structured', 'json']:
        console_handler.setFormatter(StructuredFormatter())
    else:
        console_handler.setFormatter(ConsoleFormatter(
            '%(asctime)s %(request_id)s %(name)s - %(levelname)s - %(message)s',
            datefmt='%H:%M:%S'
        ))
    root_logger.addHandler(console_handler)

    # File handler with rotation, only when a log directory is configured
    if settings.log_dir is not None:
        settings.log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            settings.log_dir / settings.log_file_name,
            maxBytes=settings.max_log_size_mb * 1024 * 1024,
            backupCount=settings.backup_count
        )
        file_handler.setLevel(settings.file_log_level.upper())
        file_handler.setFormatter(StructuredFormatter())
        root_logger.addHandler(file_handler)

    # Quiet chatty libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    _logging_initialized = True

    return root_logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance with the given name."""
    return logging.getLogger(name)


def set_request_id(request_id: Optional[str] = None) -> str:
    """Set the request ID for the current context."""
    if request_id is None:
        request_id = str(uuid.uuid4())
    request_id_var.set(request_id)
    return request_id


def get_request_id() -> Optional[str]:
    """Get the current request ID."""
    return request_id_var.get()


def mask(value: str, visible: int = 4) -> str:
    """Shorten a capability token so it can appear in logs."""
    if not value:
        return ""
    return value[:visible] + "..."
