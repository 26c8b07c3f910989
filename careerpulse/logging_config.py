"""
Centralized logging configuration for CareerPulse.

Provides structured logging with proper levels, file rotation,
and JSON formatting for production use.
"""

import logging
import logging.handlers
import os
import json
import threading
from datetime import datetime
from pathlib import Path
from typing import Optional

# Log directory (created on first file handler)
LOGS_DIR = Path(__file__).parent.parent / "logs"

# Log levels by environment
LOG_LEVELS = {
    "development": logging.DEBUG,
    "production": logging.INFO,
    "testing": logging.WARNING,
}


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_obj = {
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        # Fields attached by LogContext
        if hasattr(record, "extra_data"):
            log_obj["data"] = record.extra_data

        return json.dumps(log_obj, default=str)


class ConsoleFormatter(logging.Formatter):
    """Colored console formatter for development."""

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)
        timestamp = datetime.now().strftime("%H:%M:%S")

        message = record.getMessage()
        if len(message) > 500:
            message = message[:500] + "..."

        context = ""
        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            context = " " + " ".join(f"{k}={v}" for k, v in extra_data.items())

        line = f"{color}[{timestamp}] {record.levelname:8}{self.RESET} {record.name}: {message}{context}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(
    level: Optional[str] = None,
    json_logs: bool = False,
    log_file: Optional[str] = None,
) -> logging.Logger:
    """
    Configure application-wide logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_logs: Use JSON formatting (for production)
        log_file: Optional log file path (enables file logging)

    Returns:
        Root logger configured for the application
    """
    env = os.environ.get("FLASK_ENV", "development")
    if level:
        log_level = getattr(logging, level.upper(), logging.INFO)
    else:
        log_level = LOG_LEVELS.get(env, logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)

    if json_logs:
        console_handler.setFormatter(JSONFormatter())
    else:
        console_handler.setFormatter(ConsoleFormatter())

    root_logger.addHandler(console_handler)

    # File handler with rotation
    if log_file or env == "production":
        if log_file:
            file_path = log_file
        else:
            LOGS_DIR.mkdir(exist_ok=True)
            file_path = str(LOGS_DIR / "careerpulse.log")
        file_handler = logging.handlers.RotatingFileHandler(
            file_path,
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setLevel(log_level)
        file_handler.setFormatter(JSONFormatter())
        root_logger.addHandler(file_handler)

    # Reduce noise from third-party libraries
    for noisy in ("urllib3", "httpcore", "httpx", "werkzeug", "google", "googleapiclient", "anthropic"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return root_logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for a specific module.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured logger instance
    """
    return logging.getLogger(name)


class LogContext:
    """
    Context manager for adding extra data to log messages.

    Every record created on the current thread inside the block carries the
    given fields as ``record.extra_data``. Contexts nest; inner fields win.
    """

    def __init__(self, logger: logging.Logger, **kwargs):
        self.logger = logger
        self.extra_data = kwargs

    def __enter__(self):
        _install_record_factory()
        stack = getattr(_context, "stack", None)
        if stack is None:
            stack = _context.stack = []
        stack.append(self.extra_data)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        _context.stack.pop()


_context = threading.local()
_factory_lock = threading.Lock()
_factory_installed = False


def _install_record_factory():
    """Install (once) a record factory that attaches the current thread's LogContext fields."""
    global _factory_installed
    with _factory_lock:
        if _factory_installed:
            return
        base_factory = logging.getLogRecordFactory()

        def record_factory(*args, **kwargs):
            record = base_factory(*args, **kwargs)
            stack = getattr(_context, "stack", None)
            if stack:
                merged = {}
                for data in stack:
                    merged.update(data)
                record.extra_data = merged
            return record

        logging.setLogRecordFactory(record_factory)
        _factory_installed = True
