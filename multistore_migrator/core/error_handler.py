"""
Error handling helpers for the multi-store migrator.

This module provides categorized error information for the structured
failure log written at each phase boundary, and retry logic with
exponential backoff applied at the per-batch boundary of the migrators.
"""

import asyncio
import inspect
import logging
import random
import traceback
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Type
from dataclasses import dataclass, field

from .exceptions import (
    ConfigurationError,
    ConnectivityError,
    BackupError,
    DatabaseError,
    DataIntegrityError,
    UnsupportedValueTypeError,
    StateError,
)


class ErrorCategory(str, Enum):
    """Categories of errors for better handling and reporting."""
    CONFIGURATION = "configuration"
    CONNECTIVITY = "connectivity"
    BACKUP = "backup"
    DATABASE = "database"
    VERIFICATION = "verification"
    STATE = "state"
    UNKNOWN = "unknown"


class ErrorSeverity(str, Enum):
    """Severity levels for errors."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass
class ErrorContext:
    """Context information for an error occurrence."""
    timestamp: datetime = field(default_factory=datetime.now)
    operation: Optional[str] = None
    phase: Optional[str] = None
    run_id: Optional[str] = None
    additional_data: Dict[str, Any] = field(default_factory=dict)


@dataclass
class RetryConfig:
    """Configuration for retry logic."""
    max_attempts: int = 1
    base_delay: float = 5.0
    max_delay: float = 60.0
    exponential_base: float = 2.0
    jitter: bool = True
    retryable_exceptions: List[Type[Exception]] = field(default_factory=list)


@dataclass
class ErrorInfo:
    """Categorized error information."""
    error: Exception
    category: ErrorCategory
    severity: ErrorSeverity
    context: ErrorContext
    remediation_steps: List[str]
    traceback_str: str
    retry_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_type": type(self.error).__name__,
            "error_code": getattr(self.error, "code", type(self.error).__name__),
            "error_message": str(self.error),
            "category": self.category.value,
            "severity": self.severity.value,
            "operation": self.context.operation,
            "phase": self.context.phase,
            "run_id": self.context.run_id,
            "retry_count": self.retry_count,
            "details": getattr(self.error, "details", {}),
            "timestamp": self.context.timestamp.isoformat(),
        }


class ErrorHandler:
    """
    Error handler that categorizes exceptions and logs them with context.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self._error_mappings = self._build_error_mappings()
        self._remediation_guides = self._build_remediation_guides()

    def _build_error_mappings(self) -> Dict[Type[Exception], Dict[str, Any]]:
        """Build mapping of exception types to error categories and severities.

        Order matters: subclasses are listed before their parents so the
        first ``isinstance`` match wins.
        """
        return {
            ConfigurationError: {
                "category": ErrorCategory.CONFIGURATION,
                "severity": ErrorSeverity.HIGH,
            },
            ConnectivityError: {
                "category": ErrorCategory.CONNECTIVITY,
                "severity": ErrorSeverity.CRITICAL,
            },
            BackupError: {
                "category": ErrorCategory.BACKUP,
                "severity": ErrorSeverity.CRITICAL,
            },
            DataIntegrityError: {
                "category": ErrorCategory.VERIFICATION,
                "severity": ErrorSeverity.CRITICAL,
            },
            UnsupportedValueTypeError: {
                "category": ErrorCategory.DATABASE,
                "severity": ErrorSeverity.HIGH,
            },
            DatabaseError: {
                "category": ErrorCategory.DATABASE,
                "severity": ErrorSeverity.HIGH,
            },
            StateError: {
                "category": ErrorCategory.STATE,
                "severity": ErrorSeverity.HIGH,
            },
            TimeoutError: {
                "category": ErrorCategory.CONNECTIVITY,
                "severity": ErrorSeverity.MEDIUM,
            },
            OSError: {
                "category": ErrorCategory.BACKUP,
                "severity": ErrorSeverity.MEDIUM,
            },
        }

    def _build_remediation_guides(self) -> Dict[ErrorCategory, List[str]]:
        """Build remediation guides for each error category."""
        return {
            ErrorCategory.CONFIGURATION: [
                "Check configuration file syntax and required fields",
                "Ensure all required environment variables are set",
            ],
            ErrorCategory.CONNECTIVITY: [
                "Check network connectivity to source and target stores",
                "Verify firewall rules and port accessibility",
                "Confirm authentication credentials are correct",
            ],
            ErrorCategory.BACKUP: [
                "Ensure sufficient storage space for backups",
                "Check that pg_dump and mongodump are installed and on PATH",
                "Verify write permissions on the backups directory",
            ],
            ErrorCategory.DATABASE: [
                "Check store server status and resources",
                "Ensure the target user has insert privileges",
                "Verify the target schema matches the source schema",
            ],
            ErrorCategory.VERIFICATION: [
                "Confirm the source was frozen for writes during migration",
                "Compare conflicting primary keys between source and target",
                "Restore the target from the pre-migration backup and rerun",
            ],
            ErrorCategory.STATE: [
                "Review phase ordering in the orchestrator log",
            ],
            ErrorCategory.UNKNOWN: [
                "Review error logs for additional context",
            ],
        }

    def categorize_error(self, error: Exception, context: Optional[ErrorContext] = None) -> ErrorInfo:
        """
        Categorize an error and create error information.

        Args:
            error: The exception that occurred
            context: Optional context information

        Returns:
            ErrorInfo object with categorized error details
        """
        mapping = None
        for exc_type, exc_mapping in self._error_mappings.items():
            if isinstance(error, exc_type):
                mapping = exc_mapping
                break

        if not mapping:
            mapping = {
                "category": ErrorCategory.UNKNOWN,
                "severity": ErrorSeverity.MEDIUM,
            }

        category = mapping["category"]
        return ErrorInfo(
            error=error,
            category=category,
            severity=mapping["severity"],
            context=context or ErrorContext(),
            remediation_steps=self._remediation_guides.get(category, []),
            traceback_str="".join(
                traceback.format_exception(type(error), error, error.__traceback__)
            ),
            retry_count=getattr(error, "_retry_count", 0),
        )

    def handle_error(
        self,
        error: Exception,
        context: Optional[ErrorContext] = None,
    ) -> ErrorInfo:
        """
        Categorize and log an error.

        Args:
            error: The exception that occurred
            context: Optional context information

        Returns:
            ErrorInfo object with error details
        """
        error_info = self.categorize_error(error, context)
        self._log_error(error_info)
        return error_info

    def _log_error(self, error_info: ErrorInfo) -> None:
        """Log error information with appropriate level."""
        log_data = error_info.to_dict()
        message = f"{log_data['error_type']}: {log_data['error_message']}"

        if error_info.severity == ErrorSeverity.CRITICAL:
            self.logger.critical(message, extra={"error_info": log_data})
        elif error_info.severity == ErrorSeverity.HIGH:
            self.logger.error(message, extra={"error_info": log_data})
        elif error_info.severity == ErrorSeverity.MEDIUM:
            self.logger.warning(message, extra={"error_info": log_data})
        else:
            self.logger.info(message, extra={"error_info": log_data})

        self.logger.debug("Error traceback:\n%s", error_info.traceback_str)


class RetryHandler:
    """
    Handles retry logic with exponential backoff and jitter.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

    async def retry_with_backoff(
        self,
        func: Callable,
        *args,
        retry_config: Optional[RetryConfig] = None,
        description: str = "operation",
        **kwargs
    ) -> Any:
        """
        Execute a function with retry logic and exponential backoff.

        Args:
            func: Function or coroutine function to execute
            *args: Positional arguments for the function
            retry_config: Retry configuration
            description: Label used in retry log lines
            **kwargs: Keyword arguments for the function

        Returns:
            Result of the function execution

        Raises:
            The last exception if all retries are exhausted
        """
        config = retry_config or RetryConfig()
        attempts = max(1, config.max_attempts)

        for attempt in range(attempts):
            try:
                if inspect.iscoroutinefunction(func):
                    return await func(*args, **kwargs)
                return func(*args, **kwargs)

            except Exception as e:
                setattr(e, '_retry_count', attempt)

                if not is_retryable(e, config):
                    raise

                if attempt == attempts - 1:
                    raise

                delay = min(
                    config.base_delay * (config.exponential_base ** attempt),
                    config.max_delay
                )
                if config.jitter:
                    delay *= (0.5 + random.random() * 0.5)

                self.logger.warning(
                    f"{description} failed ({e}); retrying in {delay:.2f} seconds "
                    f"(attempt {attempt + 2}/{attempts})"
                )
                await asyncio.sleep(delay)


def create_batch_retry_config(max_attempts: int = 1, base_delay: float = 5.0) -> RetryConfig:
    """Create the retry configuration applied to each transfer batch.

    Verification failures are never retried: a count mismatch does not
    change on a second attempt.
    """
    return RetryConfig(
        max_attempts=max_attempts,
        base_delay=base_delay,
        max_delay=60.0,
        retryable_exceptions=[DatabaseError, ConnectionError, TimeoutError, OSError],
    )


def is_retryable(error: Exception, config: RetryConfig) -> bool:
    """Return True if ``error`` may be retried under ``config``."""
    if isinstance(error, (DataIntegrityError, UnsupportedValueTypeError)):
        return False
    if not config.retryable_exceptions:
        return True
    return any(isinstance(error, exc_type) for exc_type in config.retryable_exceptions)
