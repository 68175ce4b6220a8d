"""
Configuration models for the multi-store migrator.

This module defines Pydantic models for store connection descriptors,
the source/target endpoint sets, and run options. Settings are built from
environment defaults or from a YAML/JSON file; resolving secrets from an
external secret manager happens before the settings reach the orchestrator.
"""

import os
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from multistore_migrator.core.exceptions import ConfigurationError
from multistore_migrator.utils.helpers import load_config_file


class StoreKind(str, Enum):
    """Store kinds handled by the migrator."""
    POSTGRESQL = "postgresql"
    REDIS = "redis"
    MONGODB = "mongodb"


class StoreConfig(BaseModel):
    """Base connection descriptor for one store."""
    model_config = ConfigDict(use_enum_values=False)

    kind: StoreKind
    host: str = "localhost"
    port: Optional[int] = None
    username: Optional[str] = None
    password: Optional[str] = None
    database: Optional[str] = None
    connection_timeout: int = Field(default=30, ge=1, le=300)
    extra_params: Dict[str, Any] = Field(default_factory=dict)

    @field_validator('port')
    @classmethod
    def validate_port(cls, v):
        if v is not None and not (1 <= v <= 65535):
            raise ValueError('Port must be between 1 and 65535')
        return v

    def describe(self) -> str:
        """Return a credential-free label for logs."""
        return f"{self.kind.value}://{self.host}:{self.port}/{self.database or ''}"


class PostgreSQLConfig(StoreConfig):
    """PostgreSQL connection descriptor."""
    kind: StoreKind = StoreKind.POSTGRESQL
    port: int = 5432
    database: str = "postgres"
    username: str = "postgres"
    sslmode: str = "prefer"

    @field_validator('sslmode')
    @classmethod
    def validate_sslmode(cls, v):
        valid_modes = ['disable', 'allow', 'prefer', 'require', 'verify-ca', 'verify-full']
        if v not in valid_modes:
            raise ValueError(f'sslmode must be one of: {", ".join(valid_modes)}')
        return v


class RedisConfig(StoreConfig):
    """Redis connection descriptor."""
    kind: StoreKind = StoreKind.REDIS
    port: int = 6379
    db: int = 0
    # Values are binary-safe; decoding is only safe when every value is UTF-8
    decode_responses: bool = False

    @field_validator('db')
    @classmethod
    def validate_db(cls, v):
        if not (0 <= v <= 15):
            raise ValueError('Redis db must be between 0 and 15')
        return v

    def describe(self) -> str:
        return f"redis://{self.host}:{self.port}/{self.db}"


class MongoConfig(StoreConfig):
    """MongoDB connection descriptor.

    ``uri`` takes precedence over the discrete host/port/credential fields.
    """
    kind: StoreKind = StoreKind.MONGODB
    port: int = 27017
    uri: Optional[str] = None
    auth_source: str = "admin"

    def connection_uri(self) -> str:
        if self.uri:
            return self.uri
        auth_part = ""
        if self.username and self.password:
            auth_part = f"{self.username}:{self.password}@"
        database = self.database or ""
        return f"mongodb://{auth_part}{self.host}:{self.port}/{database}?authSource={self.auth_source}"

    def describe(self) -> str:
        if self.uri:
            # Strip credentials from the URI before logging it
            scheme, _, rest = self.uri.partition("://")
            return f"{scheme}://{rest.rpartition('@')[2]}"
        return super().describe()


class StoreEndpoints(BaseModel):
    """The set of stores on one side (source or target) of a migration."""
    postgres: PostgreSQLConfig
    redis: RedisConfig
    mongodb: Optional[MongoConfig] = None


class MigrationOptions(BaseModel):
    """Run options."""
    batch_size: int = Field(default=1000, ge=1)
    max_workers: int = Field(default=1, ge=1, le=32)
    retry_attempts: int = Field(default=1, ge=1, le=10)
    retry_delay: float = Field(default=5.0, ge=0)
    logs_dir: str = "logs"
    backups_dir: str = "backups"
    log_level: str = "INFO"
    structured_logging: bool = False
    pg_dump_command: str = "pg_dump"
    mongodump_command: str = "mongodump"
    mongorestore_command: str = "mongorestore"

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v):
        level = v.upper()
        if level not in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
            raise ValueError(f'Unknown log level: {v}')
        return level


class MigrationSettings(BaseModel):
    """Complete configuration for one migration run."""
    source: StoreEndpoints
    target: StoreEndpoints
    options: MigrationOptions = Field(default_factory=MigrationOptions)

    @model_validator(mode='after')
    def check_document_store_pairing(self):
        if (self.source.mongodb is None) != (self.target.mongodb is None):
            raise ValueError(
                'A document store must be configured on both source and target, or on neither'
            )
        return self

    @property
    def document_store_configured(self) -> bool:
        return self.source.mongodb is not None

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        options: Optional[MigrationOptions] = None
    ) -> "MigrationSettings":
        """Build settings from environment variables.

        Source stores fall back to local defaults. Target hosts have no
        default and must be provided by the caller's environment.
        """
        env = os.environ if environ is None else environ

        missing = [
            name for name in ('TARGET_POSTGRES_HOST', 'TARGET_REDIS_HOST')
            if not env.get(name)
        ]
        if missing:
            raise ConfigurationError(
                f"Missing target configuration: {', '.join(missing)}",
                details={'missing': missing}
            )

        data: Dict[str, Any] = {
            'source': {
                'postgres': {
                    'host': env.get('POSTGRES_HOST', 'localhost'),
                    'port': env.get('POSTGRES_PORT', 5432),
                    'database': env.get('POSTGRES_DB', 'sap_db'),
                    'username': env.get('POSTGRES_USER', 'postgres'),
                    'password': env.get('POSTGRES_PASSWORD', 'postgres'),
                },
                'redis': {
                    'host': env.get('REDIS_HOST', 'localhost'),
                    'port': env.get('REDIS_PORT', 6379),
                    'password': env.get('REDIS_PASSWORD') or None,
                },
            },
            'target': {
                'postgres': {
                    'host': env['TARGET_POSTGRES_HOST'],
                    'port': env.get('TARGET_POSTGRES_PORT', 5432),
                    'database': env.get('TARGET_POSTGRES_DB', 'sap_main'),
                    'username': env.get('TARGET_POSTGRES_USER', 'sap_app_user'),
                    'password': env.get('TARGET_POSTGRES_PASSWORD') or None,
                },
                'redis': {
                    'host': env['TARGET_REDIS_HOST'],
                    'port': env.get('TARGET_REDIS_PORT', 6379),
                    'password': env.get('TARGET_REDIS_PASSWORD') or None,
                },
            },
        }

        if env.get('MONGO_URI'):
            data['source']['mongodb'] = {'uri': env['MONGO_URI']}
        if env.get('TARGET_MONGO_URI'):
            data['target']['mongodb'] = {'uri': env['TARGET_MONGO_URI']}

        if options is not None:
            data['options'] = options.model_dump()

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MigrationSettings":
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(
                f"Invalid migration settings: {e.error_count()} error(s)",
                details={'errors': e.errors(include_url=False)}
            ) from e

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "MigrationSettings":
        """Load settings from a YAML or JSON file."""
        try:
            data = load_config_file(path)
        except (OSError, ValueError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Cannot load settings from {path}: {e}") from e
        return cls.from_dict(data)
