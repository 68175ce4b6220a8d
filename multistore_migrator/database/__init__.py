"""Store migration module for the multi-store migrator."""

from .base import StoreMigrator, UnitResult
from .scheduler import BatchScheduler
from .redis_values import (
    RedisValue,
    StringValue,
    ListValue,
    SetValue,
    HashValue,
    SortedSetValue,
    KeyTransferUnit,
    VALUE_TYPES,
    value_type_for,
)

__all__ = [
    'StoreMigrator',
    'UnitResult',
    'BatchScheduler',
    'RedisValue',
    'StringValue',
    'ListValue',
    'SetValue',
    'HashValue',
    'SortedSetValue',
    'KeyTransferUnit',
    'VALUE_TYPES',
    'value_type_for',
]
