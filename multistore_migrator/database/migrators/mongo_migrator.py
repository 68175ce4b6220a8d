"""MongoDB store migrator using mongodump/mongorestore and pymongo."""

import asyncio
import logging
import tempfile
from pathlib import Path
from typing import Dict, List, Optional

from pymongo import MongoClient
from pymongo.errors import PyMongoError

from multistore_migrator.core.exceptions import DatabaseError, DataIntegrityError
from multistore_migrator.models.config import MongoConfig, StoreKind
from multistore_migrator.models.state import MigrationState
from multistore_migrator.utils.helpers import run_command
from ..base import StoreMigrator, UnitResult


logger = logging.getLogger(__name__)


def create_client(config: MongoConfig) -> MongoClient:
    timeout_ms = config.connection_timeout * 1000
    return MongoClient(
        config.connection_uri(),
        serverSelectionTimeoutMS=timeout_ms,
        connectTimeoutMS=timeout_ms,
        **config.extra_params
    )


def database_name(config: MongoConfig, client: MongoClient) -> str:
    """Name of the database the migration reads from or writes to."""
    if config.database:
        return config.database
    try:
        return client.get_default_database().name
    except PyMongoError as e:
        raise DatabaseError(
            f"No database name in {config.describe()}; set one in the URI or config",
            details={'store': config.describe()}
        ) from e


def count_documents(client: MongoClient, database: str) -> Dict[str, int]:
    """Count documents in every non-system collection of ``database``."""
    db = client[database]
    return {
        name: db[name].count_documents({})
        for name in sorted(db.list_collection_names())
        if not name.startswith('system.')
    }


class MongoMigrator(StoreMigrator):
    """Copies the source document database to the target with the MongoDB tools."""

    store_kind = StoreKind.MONGODB

    def __init__(self, source_config: MongoConfig, target_config: MongoConfig,
                 options=None, scheduler=None, source_client=None, target_client=None):
        super().__init__(source_config, target_config, options, scheduler)
        self._source_client: Optional[MongoClient] = source_client
        self._target_client: Optional[MongoClient] = target_client

    async def connect(self) -> None:
        try:
            if self._source_client is None:
                self._source_client = create_client(self.source_config)
            if self._target_client is None:
                self._target_client = create_client(self.target_config)
            await asyncio.to_thread(self._source_client.admin.command, 'ping')
            await asyncio.to_thread(self._target_client.admin.command, 'ping')
        except PyMongoError as e:
            raise DatabaseError(f"Failed to connect to MongoDB: {e}") from e
        logger.info(
            f"Connected to MongoDB: source {self.source_config.describe()}, "
            f"target {self.target_config.describe()}"
        )

    async def disconnect(self) -> None:
        for client in (self._source_client, self._target_client):
            if client is not None:
                await asyncio.to_thread(client.close)
        self._source_client = None
        self._target_client = None
        logger.info("Disconnected from MongoDB databases")

    async def migrate(self, state: MigrationState) -> None:
        if self._source_client is None or self._target_client is None:
            raise DatabaseError("MongoDB connections not established")

        source_db = database_name(self.source_config, self._source_client)
        target_db = database_name(self.target_config, self._target_client)

        source_counts = await self._count(self._source_client, source_db)
        total = sum(source_counts.values())
        logger.info(
            f"Found {len(source_counts)} collections with {total} documents in {source_db}"
        )

        with tempfile.TemporaryDirectory(prefix="mongo_transfer_") as temp_dir:
            archive = Path(temp_dir) / f"{source_db}.archive"
            await self._dump(archive)
            await self._restore(archive, source_db, target_db)

        target_counts = await self._count(self._target_client, target_db)
        self.results = self._verify(source_counts, target_counts)

        state.increment('documents_processed', total)
        logger.info(f"Migrated {total} documents from {source_db} to {target_db}")

    async def _count(self, client: MongoClient, database: str) -> Dict[str, int]:
        try:
            return await asyncio.to_thread(count_documents, client, database)
        except PyMongoError as e:
            raise DatabaseError(
                f"Failed to count documents in {database}: {e}",
                details={'database': database}
            ) from e

    async def _dump(self, archive: Path) -> None:
        cmd = [
            self.options.mongodump_command,
            f"--uri={self.source_config.connection_uri()}",
            f"--archive={archive}",
        ]
        returncode, stderr = await run_command(cmd)
        if returncode != 0:
            raise DatabaseError(f"mongodump failed: {stderr.strip()}", details={'returncode': returncode})

    async def _restore(self, archive: Path, source_db: str, target_db: str) -> None:
        cmd = [
            self.options.mongorestore_command,
            f"--uri={self.target_config.connection_uri()}",
            f"--archive={archive}",
        ]
        if source_db != target_db:
            cmd.extend([f"--nsFrom={source_db}.*", f"--nsTo={target_db}.*"])
        returncode, stderr = await run_command(cmd)
        if returncode != 0:
            raise DatabaseError(f"mongorestore failed: {stderr.strip()}", details={'returncode': returncode})

    def _verify(self, source_counts: Dict[str, int], target_counts: Dict[str, int]) -> List[UnitResult]:
        results = []
        mismatches = {}
        for collection, expected in source_counts.items():
            actual = target_counts.get(collection, 0)
            results.append(UnitResult(
                name=collection,
                source_count=expected,
                target_count=actual,
                transferred=expected,
            ))
            if actual != expected:
                mismatches[collection] = {'source_count': expected, 'target_count': actual}

        if mismatches:
            raise DataIntegrityError(
                f"Document count mismatch in {len(mismatches)} collection(s): "
                f"{', '.join(sorted(mismatches))}",
                details={'collections': mismatches}
            )
        return results
