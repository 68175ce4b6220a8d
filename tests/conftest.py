"""
Pytest configuration and fixtures for the multi-store migrator tests.

This module provides settings fixtures and in-memory stand-ins for the
PostgreSQL and Redis stores, so migrators can be exercised end to end
without running servers.
"""

from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

import pytest

from multistore_migrator.models.config import (
    MigrationOptions,
    MigrationSettings,
    MongoConfig,
    PostgreSQLConfig,
    RedisConfig,
    StoreEndpoints,
)


class FakeTableGateway:
    """In-memory table store with the PostgreSQL gateway interface.

    Rows are keyed by their first column, which acts as the primary key
    for conflict detection.
    """

    def __init__(self, tables: Optional[Dict[str, Tuple[List[str], List[tuple]]]] = None):
        self.tables: Dict[str, Dict[str, Any]] = {}
        self.insert_calls: List[Tuple[str, int]] = []
        self.fetch_calls: List[Tuple[str, int, int]] = []
        self.fail_inserts = 0
        self.opened = False
        for name, (columns, rows) in (tables or {}).items():
            self.add_table(name, columns, rows)

    def add_table(self, name: str, columns: List[str], rows: Sequence[tuple] = ()) -> None:
        self.tables[name] = {'columns': list(columns), 'rows': {row[0]: tuple(row) for row in rows}}

    def rows(self, name: str) -> List[tuple]:
        return [self.tables[name]['rows'][key] for key in sorted(self.tables[name]['rows'])]

    def open(self) -> None:
        self.opened = True

    def close(self) -> None:
        self.opened = False

    @contextmanager
    def connection(self) -> Iterator[object]:
        yield object()

    def list_tables(self, conn) -> List[str]:
        return sorted(self.tables)

    def count_rows(self, conn, table: str) -> int:
        return len(self.tables[table]['rows'])

    def fetch_batch(self, conn, table: str, limit: int, offset: int):
        self.fetch_calls.append((table, limit, offset))
        return list(self.tables[table]['columns']), self.rows(table)[offset:offset + limit]

    def insert_batch(self, conn, table: str, columns, rows) -> int:
        from multistore_migrator.core.exceptions import DatabaseError

        if self.fail_inserts:
            self.fail_inserts -= 1
            raise DatabaseError(f"Simulated write failure on {table}")
        self.insert_calls.append((table, len(rows)))
        stored = self.tables[table]['rows']
        inserted = 0
        for row in rows:
            if row[0] not in stored:
                stored[row[0]] = tuple(row)
                inserted += 1
        return inserted


class FakePipeline:
    """Buffers commands and applies them to a FakeRedis on execute()."""

    def __init__(self, client: "FakeRedis"):
        self.client = client
        self.commands: List[Tuple[str, tuple, dict]] = []

    def __getattr__(self, name):
        def queue(*args, **kwargs):
            self.commands.append((name, args, kwargs))
            return self
        return queue

    def execute(self) -> List[Any]:
        self.client.executed_pipelines += 1
        results = [getattr(self.client, name)(*args, **kwargs) for name, args, kwargs in self.commands]
        self.commands = []
        return results


class FakeRedis:
    """In-memory Redis covering the commands the migrator uses.

    With ``decode_responses=False`` the TYPE reply is bytes, as redis-py
    returns it; stored keys and values are kept exactly as written.
    """

    def __init__(self, decode_responses: bool = True):
        self.decode_responses = decode_responses
        self.data: Dict[str, Tuple[str, Any]] = {}
        self.expiry: Dict[str, int] = {}
        self.executed_pipelines = 0
        self.closed = False

    def ping(self) -> bool:
        return True

    def close(self) -> None:
        self.closed = True

    def scan_iter(self, match: str = '*'):
        return iter(sorted(self.data))

    def type(self, key):
        tag = self.data[key][0] if key in self.data else 'none'
        return tag if self.decode_responses else tag.encode()

    def ttl(self, key: str) -> int:
        if key not in self.data:
            return -2
        return self.expiry.get(key, -1)

    def expire(self, key: str, seconds: int) -> bool:
        if key not in self.data:
            return False
        self.expiry[key] = int(seconds)
        return True

    def persist(self, key: str) -> bool:
        return self.expiry.pop(key, None) is not None

    def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                removed += 1
            self.expiry.pop(key, None)
        return removed

    def set(self, key: str, value: str, ex: Optional[int] = None) -> bool:
        self.data[key] = ('string', value)
        self.expiry.pop(key, None)
        if ex:
            self.expiry[key] = ex
        return True

    def get(self, key: str) -> Optional[str]:
        return self.data[key][1] if key in self.data else None

    def rpush(self, key: str, *values: str) -> int:
        items = self.data.setdefault(key, ('list', []))[1]
        items.extend(values)
        return len(items)

    def lrange(self, key: str, start: int, end: int) -> List[str]:
        items = self.data.get(key, ('list', []))[1]
        return list(items[start:] if end == -1 else items[start:end + 1])

    def sadd(self, key: str, *members: str) -> int:
        items = self.data.setdefault(key, ('set', set()))[1]
        before = len(items)
        items.update(members)
        return len(items) - before

    def smembers(self, key: str) -> set:
        return set(self.data.get(key, ('set', set()))[1])

    def hset(self, key: str, field: Optional[str] = None, value: Optional[str] = None,
             mapping: Optional[Dict[str, str]] = None) -> int:
        items = self.data.setdefault(key, ('hash', {}))[1]
        updates = dict(mapping or {})
        if field is not None:
            updates[field] = value
        added = len(set(updates) - set(items))
        items.update(updates)
        return added

    def hgetall(self, key: str) -> Dict[str, str]:
        return dict(self.data.get(key, ('hash', {}))[1])

    def zadd(self, key: str, mapping: Dict[str, float]) -> int:
        items = self.data.setdefault(key, ('zset', {}))[1]
        added = len(set(mapping) - set(items))
        items.update({member: float(score) for member, score in mapping.items()})
        return added

    def zrange(self, key: str, start: int, end: int, withscores: bool = False):
        items = self.data.get(key, ('zset', {}))[1]
        ordered = sorted(items.items(), key=lambda item: (item[1], item[0]))
        ordered = ordered[start:] if end == -1 else ordered[start:end + 1]
        if withscores:
            return ordered
        return [member for member, _ in ordered]

    def pipeline(self, transaction: bool = True) -> FakePipeline:
        return FakePipeline(self)


@pytest.fixture
def fake_redis_pair() -> Tuple[FakeRedis, FakeRedis]:
    """Empty source and target Redis stand-ins."""
    return FakeRedis(), FakeRedis()


@pytest.fixture
def migration_options(tmp_path) -> MigrationOptions:
    """Run options writing logs and backups under a temporary directory."""
    return MigrationOptions(
        batch_size=1000,
        logs_dir=str(tmp_path / "logs"),
        backups_dir=str(tmp_path / "backups"),
        retry_delay=0.0,
    )


@pytest.fixture
def source_endpoints() -> StoreEndpoints:
    return StoreEndpoints(
        postgres=PostgreSQLConfig(host="source-db", database="sap_db", password="secret"),
        redis=RedisConfig(host="source-cache"),
    )


@pytest.fixture
def target_endpoints() -> StoreEndpoints:
    return StoreEndpoints(
        postgres=PostgreSQLConfig(host="target-db", database="sap_main", username="sap_app_user"),
        redis=RedisConfig(host="target-cache"),
    )


@pytest.fixture
def migration_settings(source_endpoints, target_endpoints, migration_options) -> MigrationSettings:
    """Settings without a document store."""
    return MigrationSettings(
        source=source_endpoints,
        target=target_endpoints,
        options=migration_options,
    )


@pytest.fixture
def settings_with_documents(source_endpoints, target_endpoints, migration_options) -> MigrationSettings:
    """Settings with MongoDB configured on both sides."""
    source = source_endpoints.model_copy(
        update={'mongodb': MongoConfig(uri="mongodb://admin:pw@source-docs:27017/sap-db")}
    )
    target = target_endpoints.model_copy(
        update={'mongodb': MongoConfig(uri="mongodb://target-docs:27017/sap-main")}
    )
    return MigrationSettings(source=source, target=target, options=migration_options)
