"""
Data models for the multi-store migrator.

This module contains the Pydantic models used for connection settings,
run options and the per-run migration state.
"""

from multistore_migrator.models.config import (
    StoreKind,
    StoreConfig,
    PostgreSQLConfig,
    RedisConfig,
    MongoConfig,
    StoreEndpoints,
    MigrationOptions,
    MigrationSettings,
)
from multistore_migrator.models.state import (
    MigrationPhase,
    MigrationStatistics,
    MigrationState,
    TableTransferUnit,
)

__all__ = [
    # Configuration models
    "StoreKind",
    "StoreConfig",
    "PostgreSQLConfig",
    "RedisConfig",
    "MongoConfig",
    "StoreEndpoints",
    "MigrationOptions",
    "MigrationSettings",
    # State models
    "MigrationPhase",
    "MigrationStatistics",
    "MigrationState",
    "TableTransferUnit",
]
