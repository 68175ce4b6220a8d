"""
Logging setup for the multi-store migrator.

This module provides console logging through Rich, an optional rotating
run log file, structured JSON formatting, and a phase-aware logger used by
the orchestrator.
"""

import json
import logging
import logging.handlers
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional
from dataclasses import dataclass, field, asdict
from enum import Enum

from rich.console import Console
from rich.logging import RichHandler


ROOT_LOGGER_NAME = "multistore_migrator"


class LogLevel(str, Enum):
    """Log levels for structured logging."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogCategory(str, Enum):
    """Categories for structured logging."""
    SYSTEM = "system"
    MIGRATION = "migration"
    VALIDATION = "validation"
    DATABASE = "database"
    BACKUP = "backup"
    REPORT = "report"


@dataclass
class LogEntry:
    """Structured log entry with metadata."""
    timestamp: datetime = field(default_factory=datetime.now)
    level: LogLevel = LogLevel.INFO
    category: LogCategory = LogCategory.SYSTEM
    message: str = ""
    run_id: Optional[str] = None
    phase: Optional[str] = None
    duration: Optional[float] = None
    error_code: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert log entry to dictionary."""
        data = asdict(self)
        data['timestamp'] = self.timestamp.isoformat()
        return data

    def to_json(self) -> str:
        """Convert log entry to JSON string."""
        return json.dumps(self.to_dict(), default=str)


_RESERVED_RECORD_KEYS = {
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname', 'filename',
    'module', 'lineno', 'funcName', 'created', 'msecs', 'relativeCreated',
    'thread', 'threadName', 'processName', 'process', 'getMessage',
    'exc_info', 'exc_text', 'stack_info', 'taskName', 'log_entry', 'message',
}


class StructuredFormatter(logging.Formatter):
    """Formatter for structured JSON logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as structured JSON."""
        log_entry = getattr(record, 'log_entry', None)

        if log_entry and isinstance(log_entry, LogEntry):
            return log_entry.to_json()

        log_entry = LogEntry(
            timestamp=datetime.fromtimestamp(record.created),
            level=LogLevel(record.levelname),
            message=record.getMessage(),
            metadata={
                'logger': record.name,
                'module': record.module,
                'function': record.funcName,
                'line': record.lineno,
            }
        )

        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_KEYS:
                log_entry.metadata[key] = value

        if record.exc_info:
            log_entry.metadata['exception'] = self.formatException(record.exc_info)

        return log_entry.to_json()


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    rich_console: bool = True,
    structured_logging: bool = False,
    log_rotation: bool = True,
    max_log_size: int = 50 * 1024 * 1024,  # 50MB
    backup_count: int = 5
) -> logging.Logger:
    """
    Set up logging for a migration run.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional run log file path
        rich_console: Whether to use the Rich console handler
        structured_logging: Whether to emit structured JSON lines
        log_rotation: Whether to enable log rotation
        max_log_size: Maximum log file size before rotation
        backup_count: Number of rotated log files to keep

    Returns:
        Configured package logger
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(getattr(logging, level.upper()))

    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()

    plain_formatter = logging.Formatter(
        fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    if rich_console and not structured_logging:
        console_handler = RichHandler(
            console=Console(stderr=True),
            show_time=True,
            show_path=False,
            rich_tracebacks=True
        )
    else:
        console_handler = logging.StreamHandler(sys.stderr)
        if structured_logging:
            console_handler.setFormatter(StructuredFormatter())
        else:
            console_handler.setFormatter(plain_formatter)

    logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        if log_rotation:
            file_handler = logging.handlers.RotatingFileHandler(
                log_file,
                maxBytes=max_log_size,
                backupCount=backup_count
            )
        else:
            file_handler = logging.FileHandler(log_file)

        if structured_logging:
            file_handler.setFormatter(StructuredFormatter())
        else:
            file_handler.setFormatter(plain_formatter)

        logger.addHandler(file_handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for a specific component."""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


class MigrationLogger:
    """Phase-aware logger for one migration run."""

    def __init__(self, run_id: str, structured: bool = False):
        self.run_id = run_id
        self.structured = structured
        self.logger = get_logger("run")

    def _log(
        self,
        level: LogLevel,
        message: str,
        category: LogCategory = LogCategory.MIGRATION,
        phase: Optional[str] = None,
        duration: Optional[float] = None,
        error_code: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None
    ):
        log_method = getattr(self.logger, level.value.lower())
        if self.structured:
            log_entry = LogEntry(
                level=level,
                category=category,
                message=message,
                run_id=self.run_id,
                phase=phase,
                duration=duration,
                error_code=error_code,
                metadata=metadata or {}
            )
            log_method(message, extra={'log_entry': log_entry})
        else:
            log_method(message)

    def info(self, message: str, **kwargs):
        self._log(LogLevel.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs):
        self._log(LogLevel.WARNING, message, **kwargs)

    def error(self, message: str, **kwargs):
        self._log(LogLevel.ERROR, message, **kwargs)

    def phase_start(self, phase: str):
        """Log phase start."""
        self.info(
            f"Starting phase: {phase}",
            phase=phase,
            metadata={'phase_status': 'started'}
        )

    def phase_complete(self, phase: str, duration: float):
        """Log phase completion."""
        self.info(
            f"Completed phase: {phase} (took {duration:.2f}s)",
            phase=phase,
            duration=duration,
            metadata={'phase_status': 'completed'}
        )

    def phase_failed(self, phase: str, error: str, error_code: Optional[str] = None):
        """Log phase failure."""
        self.error(
            f"Failed phase: {phase} - {error}",
            phase=phase,
            error_code=error_code,
            metadata={'phase_status': 'failed', 'error_details': error}
        )
