"""Store migrators package."""

from .postgresql_migrator import PostgreSQLMigrator
from .redis_migrator import RedisMigrator
from .mongo_migrator import MongoMigrator

__all__ = [
    'PostgreSQLMigrator',
    'RedisMigrator',
    'MongoMigrator',
]
