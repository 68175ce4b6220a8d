"""
Backup manager for the pre-migration snapshot of every source store.

The manager lays out the run's backup directory, runs one strategy per
configured source store, records each artifact's digest into the run state
and writes the run's checksum ledger next to the logs.
"""

import asyncio
import json
import logging
from datetime import datetime, UTC
from pathlib import Path
from typing import Any, Dict, List, Optional

from multistore_migrator.core.exceptions import BackupError, MigrationError
from multistore_migrator.models.config import MigrationSettings, StoreKind
from multistore_migrator.models.state import MigrationState
from .strategies import (
    BackupArtifact,
    BackupStrategy,
    MongoBackupStrategy,
    PostgreSQLBackupStrategy,
    RedisBackupStrategy,
)

logger = logging.getLogger(__name__)

CHECKSUM_LEDGER_NAME = "migration-checksums.json"

STORE_DIRS = {
    StoreKind.POSTGRESQL: "postgres",
    StoreKind.REDIS: "redis",
    StoreKind.MONGODB: "mongodb",
}


class BackupManager:
    """Creates the backup artifacts for one run."""

    def __init__(
        self,
        settings: MigrationSettings,
        run_id: str,
        strategies: Optional[List[BackupStrategy]] = None
    ):
        self.settings = settings
        self.run_id = run_id
        self._strategies = strategies
        self.artifacts: List[BackupArtifact] = []

    @property
    def backup_root(self) -> Path:
        return Path(self.settings.options.backups_dir) / f"migration-{self.run_id}"

    @property
    def ledger_path(self) -> Path:
        return Path(self.settings.options.logs_dir) / CHECKSUM_LEDGER_NAME

    def store_dir(self, kind: StoreKind) -> Path:
        return self.backup_root / STORE_DIRS[kind]

    def _create_strategies(self) -> List[BackupStrategy]:
        source = self.settings.source
        options = self.settings.options
        strategies: List[BackupStrategy] = [
            PostgreSQLBackupStrategy(source.postgres, options),
            RedisBackupStrategy(source.redis, options),
        ]
        if source.mongodb is not None:
            strategies.append(MongoBackupStrategy(source.mongodb, options))
        return strategies

    @property
    def strategies(self) -> List[BackupStrategy]:
        if self._strategies is None:
            self._strategies = self._create_strategies()
        return self._strategies

    def prepare_directories(self) -> None:
        """Create the logs directory, the run's backup root and one directory per store."""
        Path(self.settings.options.logs_dir).mkdir(parents=True, exist_ok=True)
        for strategy in self.strategies:
            self.store_dir(strategy.store_kind).mkdir(parents=True, exist_ok=True)
        logger.info(f"Backup directory prepared: {self.backup_root}")

    async def create_all(self, state: MigrationState) -> List[BackupArtifact]:
        """Back up every configured source store.

        Any failure aborts the remaining backups and is raised as
        ``BackupError``.
        """
        self.artifacts = []
        for strategy in self.strategies:
            store = strategy.store_kind.value
            logger.info(f"Creating {store} backup...")
            try:
                artifact = await strategy.create_backup(self.store_dir(strategy.store_kind))
            except BackupError:
                raise
            except (MigrationError, OSError, ValueError) as e:
                raise BackupError(
                    f"Failed to create {store} backup: {e}",
                    details={'store': store}
                ) from e

            state.record_checksum(strategy.checksum_name, artifact.checksum)
            self.artifacts.append(artifact)
            logger.info(
                f"{store} backup created: {artifact.path} "
                f"({artifact.size} bytes, sha256 {artifact.checksum[:12]})"
            )

        await asyncio.to_thread(self.write_ledger, state)
        return self.artifacts

    def write_ledger(self, state: MigrationState) -> Path:
        """Write the run's checksums to the ledger file."""
        ledger: Dict[str, Any] = {
            'runId': self.run_id,
            'createdAt': datetime.now(UTC).isoformat(),
            'backupLocation': str(self.backup_root),
            'checksums': dict(state.checksums),
            'artifacts': [
                {
                    'store': artifact.store.value,
                    'path': artifact.path,
                    'size': artifact.size,
                    'checksum': artifact.checksum,
                }
                for artifact in self.artifacts
            ],
        }
        try:
            self.ledger_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.ledger_path, 'w', encoding='utf-8') as f:
                json.dump(ledger, f, indent=2)
        except OSError as e:
            raise BackupError(f"Failed to write checksum ledger {self.ledger_path}: {e}") from e
        logger.info(f"Checksums written to {self.ledger_path}")
        return self.ledger_path
