"""
Backup strategies for the source stores of a migration.

Each strategy writes one artifact for one source store into the directory
it is given and returns a ``BackupArtifact`` describing it.
"""

import asyncio
import json
from abc import ABC, abstractmethod
from datetime import datetime, UTC
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel
from redis.exceptions import RedisError

from multistore_migrator.core.exceptions import BackupError
from multistore_migrator.database.migrators.redis_migrator import create_client, read_keys, scan_keys
from multistore_migrator.models.config import (
    MigrationOptions,
    MongoConfig,
    PostgreSQLConfig,
    RedisConfig,
    StoreConfig,
    StoreKind,
)
from multistore_migrator.utils.helpers import run_command
from .integrity import artifact_size, directory_checksum, file_checksum


class BackupArtifact(BaseModel):
    """A backup written for one store."""
    store: StoreKind
    path: str
    size: int
    checksum: str
    created_at: datetime


class BackupStrategy(ABC):
    """Abstract base class for backup strategies."""

    store_kind: StoreKind
    # Key of the artifact digest in the run checksums
    checksum_name: str

    def __init__(self, config: StoreConfig, options: Optional[MigrationOptions] = None):
        self.config = config
        self.options = options or MigrationOptions()

    @abstractmethod
    async def create_backup(self, destination: Path) -> BackupArtifact:
        """Write the artifact under ``destination`` and describe it."""

    def _describe_file(self, path: Path) -> BackupArtifact:
        return BackupArtifact(
            store=self.store_kind,
            path=str(path),
            size=artifact_size(path),
            checksum=file_checksum(path),
            created_at=datetime.now(UTC),
        )


class PostgreSQLBackupStrategy(BackupStrategy):
    """Full SQL dump with pg_dump, restorable into an empty server."""

    store_kind = StoreKind.POSTGRESQL
    checksum_name = "postgres_backup"
    config: PostgreSQLConfig

    async def create_backup(self, destination: Path) -> BackupArtifact:
        destination.mkdir(parents=True, exist_ok=True)
        backup_path = destination / "backup.sql"

        cmd = [
            self.options.pg_dump_command,
            f"--host={self.config.host}",
            f"--port={self.config.port}",
            f"--username={self.config.username}",
            f"--dbname={self.config.database}",
            "--clean",
            "--create",
            "--if-exists",
            "--no-password",
        ]
        env = {"PGPASSWORD": self.config.password} if self.config.password else None

        try:
            returncode, stderr = await run_command(cmd, stdout_path=backup_path, env=env)
        except OSError as e:
            raise BackupError(f"Cannot run pg_dump: {e}") from e
        if returncode != 0:
            raise BackupError(f"pg_dump failed: {stderr.strip()}", details={'returncode': returncode})

        return await asyncio.to_thread(self._describe_file, backup_path)


class RedisBackupStrategy(BackupStrategy):
    """JSON inventory of every key with its type, TTL and value."""

    store_kind = StoreKind.REDIS
    checksum_name = "redis_backup"
    config: RedisConfig

    def __init__(self, config: RedisConfig, options: Optional[MigrationOptions] = None, client: Any = None):
        super().__init__(config, options)
        self._client = client

    async def create_backup(self, destination: Path) -> BackupArtifact:
        destination.mkdir(parents=True, exist_ok=True)
        backup_path = destination / "backup.json"
        try:
            return await asyncio.to_thread(self._write_inventory, backup_path)
        except RedisError as e:
            raise BackupError(f"Failed to read Redis keys for backup: {e}") from e

    def _write_inventory(self, backup_path: Path) -> BackupArtifact:
        client = self._client or create_client(self.config)
        try:
            units = read_keys(client, scan_keys(client))
        finally:
            if self._client is None:
                client.close()

        inventory = {
            'source': self.config.describe(),
            'keyCount': len(units),
            'entries': [unit.to_json() for unit in units],
        }
        with open(backup_path, 'w', encoding='utf-8') as f:
            json.dump(inventory, f, indent=2)

        return self._describe_file(backup_path)


class MongoBackupStrategy(BackupStrategy):
    """Directory dump with mongodump."""

    store_kind = StoreKind.MONGODB
    checksum_name = "mongodb_backup"
    config: MongoConfig

    async def create_backup(self, destination: Path) -> BackupArtifact:
        dump_dir = destination / "dump"
        dump_dir.mkdir(parents=True, exist_ok=True)

        cmd = [
            self.options.mongodump_command,
            f"--uri={self.config.connection_uri()}",
            f"--out={dump_dir}",
        ]
        try:
            returncode, stderr = await run_command(cmd)
        except OSError as e:
            raise BackupError(f"Cannot run mongodump: {e}") from e
        if returncode != 0:
            raise BackupError(f"mongodump failed: {stderr.strip()}", details={'returncode': returncode})

        return await asyncio.to_thread(self._describe_directory, dump_dir)

    def _describe_directory(self, dump_dir: Path) -> BackupArtifact:
        return BackupArtifact(
            store=self.store_kind,
            path=str(dump_dir),
            size=artifact_size(dump_dir),
            checksum=directory_checksum(dump_dir),
            created_at=datetime.now(UTC),
        )
