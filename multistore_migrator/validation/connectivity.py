"""
Connectivity validation for the source and target stores.

Every configured store is pinged with one trivial command over a
short-lived connection before any backup or transfer starts.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List

import psycopg2
import redis
from pymongo.errors import PyMongoError

from multistore_migrator.core.exceptions import ConnectivityError
from multistore_migrator.database.migrators.mongo_migrator import create_client as create_mongo_client
from multistore_migrator.database.migrators.postgresql_migrator import create_connection_string
from multistore_migrator.database.migrators.redis_migrator import create_client as create_redis_client
from multistore_migrator.models.config import (
    MigrationSettings,
    MongoConfig,
    PostgreSQLConfig,
    RedisConfig,
    StoreConfig,
    StoreKind,
)

logger = logging.getLogger(__name__)


@dataclass
class ConnectivityCheck:
    """Result of a connectivity check"""
    name: str
    kind: StoreKind
    role: str
    passed: bool
    message: str
    details: Dict[str, Any] = field(default_factory=dict)
    remediation: str = ""


def ping_postgresql(config: PostgreSQLConfig) -> None:
    connection = psycopg2.connect(create_connection_string(config))
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
    finally:
        connection.close()


def ping_redis(config: RedisConfig) -> None:
    client = create_redis_client(config)
    try:
        client.ping()
    finally:
        client.close()


def ping_mongodb(config: MongoConfig) -> None:
    client = create_mongo_client(config)
    try:
        client.admin.command('ping')
    finally:
        client.close()


class ConnectionValidator:
    """
    Validates connectivity to the PostgreSQL, Redis and MongoDB stores on
    both sides of a migration.
    """

    PINGS: Dict[StoreKind, Callable[[Any], None]] = {
        StoreKind.POSTGRESQL: ping_postgresql,
        StoreKind.REDIS: ping_redis,
        StoreKind.MONGODB: ping_mongodb,
    }

    DRIVER_ERRORS = (psycopg2.Error, redis.RedisError, PyMongoError, OSError)

    REMEDIATION = {
        StoreKind.POSTGRESQL: "Check PostgreSQL credentials, host, and database permissions",
        StoreKind.REDIS: "Check Redis credentials, host, and network connectivity",
        StoreKind.MONGODB: "Check MongoDB credentials, host, and network connectivity",
    }

    def __init__(self, pings: Dict[StoreKind, Callable[[Any], None]] = None):
        self.pings = dict(self.PINGS)
        if pings:
            self.pings.update(pings)

    async def validate(self, config: StoreConfig, kind: StoreKind, role: str) -> ConnectivityCheck:
        """
        Ping one store.

        Args:
            config: Store connection descriptor
            kind: Store kind, selects the ping command
            role: "source" or "target"

        Returns:
            ConnectivityCheck with the outcome; never raises for a failed ping
        """
        name = f"{kind.value} ({role})"
        target = config.describe()
        try:
            await asyncio.to_thread(self.pings[kind], config)
        except self.DRIVER_ERRORS as e:
            return ConnectivityCheck(
                name=name,
                kind=kind,
                role=role,
                passed=False,
                message=f"Connection to {target} failed: {e}",
                details={'store': target, 'error': type(e).__name__},
                remediation=self.REMEDIATION[kind],
            )
        except Exception as e:
            return ConnectivityCheck(
                name=name,
                kind=kind,
                role=role,
                passed=False,
                message=f"Unexpected error connecting to {target}: {e}",
                details={'store': target, 'error': type(e).__name__},
            )

        return ConnectivityCheck(
            name=name,
            kind=kind,
            role=role,
            passed=True,
            message=f"Connected to {target}",
            details={'store': target},
        )

    async def validate_all(self, settings: MigrationSettings) -> List[ConnectivityCheck]:
        """
        Ping source and target of every configured store kind.

        Raises:
            ConnectivityError: listing every failed check, if any failed
        """
        targets = []
        for role, endpoints in (('source', settings.source), ('target', settings.target)):
            targets.append((endpoints.postgres, StoreKind.POSTGRESQL, role))
            targets.append((endpoints.redis, StoreKind.REDIS, role))
            if endpoints.mongodb is not None:
                targets.append((endpoints.mongodb, StoreKind.MONGODB, role))

        checks = await asyncio.gather(
            *(self.validate(config, kind, role) for config, kind, role in targets)
        )

        for check in checks:
            if check.passed:
                logger.info(f"Connectivity OK: {check.name} - {check.message}")
            else:
                logger.error(f"Connectivity FAILED: {check.name} - {check.message}")

        failed = [check for check in checks if not check.passed]
        if failed:
            raise ConnectivityError(
                f"{len(failed)} of {len(checks)} connectivity checks failed: "
                f"{', '.join(check.name for check in failed)}",
                failed_checks=[f"{check.name}: {check.message}" for check in failed],
                details={'checks': [check.name for check in failed]}
            )
        return list(checks)
