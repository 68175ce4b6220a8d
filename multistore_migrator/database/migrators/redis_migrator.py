"""Redis store migrator implementation using redis-py."""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import redis
from redis.exceptions import RedisError

from multistore_migrator.core.exceptions import DatabaseError
from multistore_migrator.models.config import RedisConfig, StoreKind
from multistore_migrator.models.state import MigrationState
from multistore_migrator.utils.helpers import chunked
from ..base import StoreMigrator, UnitResult
from ..redis_values import KeyTransferUnit, RedisData as RedisKey, as_text


logger = logging.getLogger(__name__)


def create_client(config: RedisConfig) -> redis.Redis:
    """Create a redis-py client for ``config``."""
    options: Dict[str, Any] = {
        'host': config.host,
        'port': config.port,
        'db': config.db,
        'decode_responses': config.decode_responses,
        'socket_timeout': config.connection_timeout,
        'socket_connect_timeout': config.connection_timeout,
        'health_check_interval': 30,
    }

    if config.username:
        options['username'] = config.username
    if config.password:
        options['password'] = config.password

    options.update(config.extra_params)

    return redis.Redis(**options)


def scan_keys(client: redis.Redis) -> List[RedisKey]:
    """Enumerate every key with SCAN, without blocking the server like KEYS."""
    return list(client.scan_iter(match='*'))


def read_keys(client: redis.Redis, keys: List[RedisKey]) -> List[KeyTransferUnit]:
    """Read type, TTL and value of each key, dropping keys that have vanished."""
    units = []
    for key in keys:
        unit = KeyTransferUnit.read(client, key)
        if unit is not None:
            units.append(unit)
    return units


class RedisMigrator(StoreMigrator):
    """Copies every key of the source Redis database to the target."""

    store_kind = StoreKind.REDIS

    def __init__(self, source_config: RedisConfig, target_config: RedisConfig,
                 options=None, scheduler=None, source_client=None, target_client=None):
        super().__init__(source_config, target_config, options, scheduler)
        self._source_client: Optional[redis.Redis] = source_client
        self._target_client: Optional[redis.Redis] = target_client

    async def connect(self) -> None:
        try:
            if self._source_client is None:
                self._source_client = create_client(self.source_config)
            if self._target_client is None:
                self._target_client = create_client(self.target_config)
            await asyncio.to_thread(self._source_client.ping)
            await asyncio.to_thread(self._target_client.ping)
        except RedisError as e:
            raise DatabaseError(f"Failed to connect to Redis: {e}") from e
        logger.info(
            f"Connected to Redis: source {self.source_config.describe()}, "
            f"target {self.target_config.describe()}"
        )

    async def disconnect(self) -> None:
        for client in (self._source_client, self._target_client):
            if client is not None:
                await asyncio.to_thread(client.close)
        self._source_client = None
        self._target_client = None
        logger.info("Disconnected from Redis databases")

    async def migrate(self, state: MigrationState) -> None:
        if self._source_client is None or self._target_client is None:
            raise DatabaseError("Redis connections not established")

        try:
            keys = await asyncio.to_thread(scan_keys, self._source_client)
        except RedisError as e:
            raise DatabaseError(f"Failed to enumerate source keys: {e}") from e

        total_keys = len(keys)
        logger.info(f"Found {total_keys} Redis keys to migrate")

        processed = 0
        self.results = []
        # Batches run in order, one target pipeline each
        for number, batch in enumerate(chunked(keys, self.batch_size), start=1):
            written = await self.scheduler.run_batch(
                self._copy_batch, batch,
                description=f"Redis key batch {number}"
            )
            processed += len(batch)
            state.increment('keys_processed', len(batch))
            self.results.append(UnitResult(
                name=f"batch-{number}",
                source_count=len(batch),
                transferred=written,
            ))
            logger.info(f"Migrated {processed}/{total_keys} Redis keys")

        logger.info(f"Redis migration finished: {processed} keys")

    def _copy_batch(self, keys: List[RedisKey]) -> int:
        try:
            units = read_keys(self._source_client, keys)
            pipe = self._target_client.pipeline(transaction=False)
            for unit in units:
                unit.write(pipe)
            pipe.execute()
        except RedisError as e:
            raise DatabaseError(
                f"Failed to copy Redis batch starting at key {as_text(keys[0])}: {e}",
                details={'first_key': as_text(keys[0]), 'batch_size': len(keys)}
            ) from e
        return len(units)
