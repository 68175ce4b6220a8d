"""
Custom exceptions for the multi-store migrator.

This module defines the exception hierarchy raised by the phases of a
migration run. Every phase failure surfaces as one of these types so the
orchestrator can log and report it with a stable error code.
"""

from typing import Any, Dict, List, Optional


class MigrationError(Exception):
    """Base exception class for migrator errors."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}


class ConfigurationError(MigrationError):
    """Raised when there's an error in configuration."""
    pass


class ConnectivityError(MigrationError):
    """Raised when one or more stores cannot be reached."""

    def __init__(
        self,
        message: str,
        failed_checks: Optional[List[str]] = None,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        self.failed_checks = failed_checks or []


class BackupError(MigrationError):
    """Raised when backup operations fail."""
    pass


class DatabaseError(MigrationError):
    """Raised when a store read or write fails during transfer."""
    pass


class DataIntegrityError(DatabaseError):
    """Raised when post-transfer verification finds a count mismatch."""
    pass


class UnsupportedValueTypeError(DatabaseError):
    """Raised when a key-value entry has a type tag with no transfer handler."""
    pass


class StateError(MigrationError):
    """Raised on an illegal mutation of the migration state."""
    pass
