"""
Typed Redis values.

Each Redis data type handled by the migrator has one value class with a
reader (source client) and a writer (target pipeline). ``VALUE_TYPES`` maps
the tag returned by ``TYPE`` to its class; a tag missing from the table is
rejected with ``UnsupportedValueTypeError``.

Keys, members and values are passed through as the client returns them, so
with ``decode_responses=False`` arbitrary bytes round-trip unchanged. Only
the JSON inventory needs text; it falls back to base64 for entries that are
not valid UTF-8.
"""

import base64
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, ClassVar, Dict, List, Optional, Set, Tuple, Type, Union

import redis

from multistore_migrator.core.exceptions import UnsupportedValueTypeError

logger = logging.getLogger(__name__)

# TYPE reply for a key that expired or was deleted after it was scanned
MISSING_KEY_TAG = "none"

RedisData = Union[str, bytes]
Encoder = Callable[[RedisData], str]


def as_text(data: RedisData) -> str:
    """Decode a client reply that is known to be ASCII (type tags, key labels)."""
    if isinstance(data, bytes):
        return data.decode('utf-8', errors='backslashreplace')
    return data


def encode_utf8(data: RedisData) -> str:
    """Inventory encoder for UTF-8 payloads. Raises UnicodeDecodeError otherwise."""
    if isinstance(data, bytes):
        return data.decode('utf-8')
    return data


def encode_base64(data: RedisData) -> str:
    if isinstance(data, str):
        data = data.encode('utf-8')
    return base64.b64encode(data).decode('ascii')


class RedisValue(ABC):
    """A value read from one Redis key."""
    type_tag: ClassVar[str]

    @classmethod
    @abstractmethod
    def read(cls, client: redis.Redis, key: RedisData) -> Optional["RedisValue"]:
        """Read the value stored at ``key``, or None if the key is gone."""

    @abstractmethod
    def write(self, pipe: "redis.client.Pipeline", key: RedisData) -> None:
        """Queue the commands that store this value at ``key``."""

    @abstractmethod
    def to_json(self, encode: Encoder) -> Any:
        """JSON-serializable form used in the backup inventory."""

    @property
    @abstractmethod
    def is_empty(self) -> bool:
        """True if writing this value leaves the target key absent."""


@dataclass
class StringValue(RedisValue):
    type_tag: ClassVar[str] = "string"
    data: RedisData

    @classmethod
    def read(cls, client, key):
        data = client.get(key)
        if data is None:
            return None
        return cls(data)

    def write(self, pipe, key):
        pipe.set(key, self.data)

    def to_json(self, encode):
        return encode(self.data)

    @property
    def is_empty(self):
        return False


@dataclass
class ListValue(RedisValue):
    type_tag: ClassVar[str] = "list"
    data: List[RedisData]

    @classmethod
    def read(cls, client, key):
        return cls(client.lrange(key, 0, -1))

    def write(self, pipe, key):
        pipe.delete(key)
        if self.data:
            pipe.rpush(key, *self.data)

    def to_json(self, encode):
        return [encode(item) for item in self.data]

    @property
    def is_empty(self):
        return not self.data


@dataclass
class SetValue(RedisValue):
    type_tag: ClassVar[str] = "set"
    data: Set[RedisData]

    @classmethod
    def read(cls, client, key):
        return cls(set(client.smembers(key)))

    def write(self, pipe, key):
        pipe.delete(key)
        if self.data:
            pipe.sadd(key, *self.data)

    def to_json(self, encode):
        return sorted(encode(member) for member in self.data)

    @property
    def is_empty(self):
        return not self.data


@dataclass
class HashValue(RedisValue):
    """Hash fields are upserted; fields only present on the target survive."""
    type_tag: ClassVar[str] = "hash"
    data: Dict[RedisData, RedisData]

    @classmethod
    def read(cls, client, key):
        return cls(dict(client.hgetall(key)))

    def write(self, pipe, key):
        if self.data:
            pipe.hset(key, mapping=self.data)

    def to_json(self, encode):
        return {encode(field): encode(value) for field, value in self.data.items()}

    @property
    def is_empty(self):
        return not self.data


@dataclass
class SortedSetValue(RedisValue):
    type_tag: ClassVar[str] = "zset"
    data: List[Tuple[RedisData, float]]

    @classmethod
    def read(cls, client, key):
        return cls([(member, float(score)) for member, score in client.zrange(key, 0, -1, withscores=True)])

    def write(self, pipe, key):
        pipe.delete(key)
        if self.data:
            pipe.zadd(key, {member: score for member, score in self.data})

    def to_json(self, encode):
        return [[encode(member), score] for member, score in self.data]

    @property
    def is_empty(self):
        return not self.data


VALUE_TYPES: Dict[str, Type[RedisValue]] = {
    cls.type_tag: cls
    for cls in (StringValue, ListValue, SetValue, HashValue, SortedSetValue)
}


def value_type_for(type_tag: str, key: Optional[RedisData] = None) -> Type[RedisValue]:
    """Return the value class for a ``TYPE`` reply."""
    try:
        return VALUE_TYPES[type_tag]
    except KeyError:
        label = as_text(key) if key is not None else None
        raise UnsupportedValueTypeError(
            f"Unsupported Redis type '{type_tag}' for key {label}",
            details={'key': label, 'type': type_tag, 'supported': sorted(VALUE_TYPES)}
        ) from None


@dataclass
class KeyTransferUnit:
    """One key read from the source, ready to be written to the target.

    ``ttl`` is the remaining time to live in seconds, or None for a
    persistent key.
    """
    key: RedisData
    value: RedisValue
    ttl: Optional[int] = None

    @classmethod
    def read(cls, client: redis.Redis, key: RedisData) -> Optional["KeyTransferUnit"]:
        """Read type, TTL and value of ``key``.

        Returns None if the key no longer exists on the source, either
        before TYPE or between TYPE and the value read.
        """
        type_tag = as_text(client.type(key))
        if type_tag == MISSING_KEY_TAG:
            logger.warning(f"Key {as_text(key)} disappeared from the source before it was read")
            return None
        value_cls = value_type_for(type_tag, key)
        ttl = client.ttl(key)
        value = value_cls.read(client, key)
        if value is None:
            logger.warning(f"Key {as_text(key)} expired on the source while it was read")
            return None
        return cls(key=key, value=value, ttl=ttl if ttl > 0 else None)

    def write(self, pipe: "redis.client.Pipeline") -> None:
        self.value.write(pipe, self.key)
        if self.value.is_empty:
            return
        if self.ttl:
            pipe.expire(self.key, self.ttl)
        else:
            # An upserted hash keeps any expiry the target key already had
            pipe.persist(self.key)

    def to_json(self) -> Dict[str, Any]:
        """Inventory entry; ``encoding`` says how key and payload are written."""
        try:
            return self._entry(encode_utf8, 'utf-8')
        except UnicodeDecodeError:
            return self._entry(encode_base64, 'base64')

    def _entry(self, encode: Encoder, encoding: str) -> Dict[str, Any]:
        return {
            'key': encode(self.key),
            'type': self.value.type_tag,
            'ttl': self.ttl,
            'encoding': encoding,
            'value': self.value.to_json(encode),
        }
