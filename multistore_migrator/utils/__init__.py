"""
Utilities module for the multi-store migrator.

This module contains helper functions and the logging setup
used throughout the application.
"""

from multistore_migrator.utils.helpers import (
    generate_run_id,
    chunked,
    format_duration,
    load_config_file,
    run_command,
)
from multistore_migrator.utils.logging import (
    setup_logging,
    get_logger,
    MigrationLogger,
)

__all__ = [
    # Helper functions
    "generate_run_id",
    "chunked",
    "format_duration",
    "load_config_file",
    "run_command",
    # Logging utilities
    "setup_logging",
    "get_logger",
    "MigrationLogger",
]
