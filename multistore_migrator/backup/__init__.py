"""
Backup system for the multi-store migrator.

This module produces the pre-migration backup of every source store and
the content digests recorded for each artifact.
"""

from multistore_migrator.backup.integrity import digest, file_checksum, directory_checksum
from multistore_migrator.backup.manager import BackupManager
from multistore_migrator.backup.strategies import (
    BackupArtifact,
    BackupStrategy,
    PostgreSQLBackupStrategy,
    RedisBackupStrategy,
    MongoBackupStrategy,
)

__all__ = [
    "digest",
    "file_checksum",
    "directory_checksum",
    "BackupManager",
    "BackupArtifact",
    "BackupStrategy",
    "PostgreSQLBackupStrategy",
    "RedisBackupStrategy",
    "MongoBackupStrategy",
]
