"""
Core module for the multi-store migrator.

This module contains the exception hierarchy and the error handling
helpers used throughout the application.
"""

from multistore_migrator.core.exceptions import (
    MigrationError,
    ConfigurationError,
    ConnectivityError,
    BackupError,
    DatabaseError,
    DataIntegrityError,
    UnsupportedValueTypeError,
    StateError,
)

__all__ = [
    "MigrationError",
    "ConfigurationError",
    "ConnectivityError",
    "BackupError",
    "DatabaseError",
    "DataIntegrityError",
    "UnsupportedValueTypeError",
    "StateError",
]
