"""
Multi-Store Migrator

Moves the contents of a PostgreSQL database, a Redis keyspace and an
optional MongoDB database from a source deployment to a target deployment,
with backups, count verification and an auditable run report.
"""

__version__ = "0.1.0"

from multistore_migrator.models.config import MigrationSettings, MigrationOptions
from multistore_migrator.models.state import MigrationState, MigrationPhase

__all__ = [
    "MigrationSettings",
    "MigrationOptions",
    "MigrationState",
    "MigrationPhase",
]
