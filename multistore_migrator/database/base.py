"""Base store migrator abstract class and related models."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from multistore_migrator.core.error_handler import create_batch_retry_config
from multistore_migrator.models.config import MigrationOptions, StoreConfig, StoreKind
from multistore_migrator.models.state import MigrationState
from .scheduler import BatchScheduler


class UnitResult(BaseModel):
    """Outcome of transferring one unit (a table, a collection, a key batch)."""
    name: str
    source_count: int = 0
    target_count: int = 0
    transferred: int = 0
    metadata: Dict[str, Any] = Field(default_factory=dict)


class StoreMigrator(ABC):
    """Abstract base class for per-store migrators.

    A migrator owns its source and target connections for the duration of
    one phase. Use it as an async context manager so connections are
    released even when the phase fails.
    """

    store_kind: StoreKind

    def __init__(
        self,
        source_config: StoreConfig,
        target_config: StoreConfig,
        options: Optional[MigrationOptions] = None,
        scheduler: Optional[BatchScheduler] = None
    ):
        """Initialize the migrator with source and target configurations.

        Args:
            source_config: Source store configuration
            target_config: Target store configuration
            options: Run options (batch size, workers, retry policy)
            scheduler: Scheduler for units and batches; built from options if omitted
        """
        self.source_config = source_config
        self.target_config = target_config
        self.options = options or MigrationOptions()
        self.scheduler = scheduler or BatchScheduler(
            max_workers=self.options.max_workers,
            retry_config=create_batch_retry_config(
                max_attempts=self.options.retry_attempts,
                base_delay=self.options.retry_delay
            )
        )
        self.results: List[UnitResult] = []

    @property
    def batch_size(self) -> int:
        return self.options.batch_size

    @abstractmethod
    async def connect(self) -> None:
        """Open source and target connections."""

    @abstractmethod
    async def disconnect(self) -> None:
        """Close source and target connections."""

    @abstractmethod
    async def migrate(self, state: MigrationState) -> None:
        """Transfer all data of this store kind, recording counts into ``state``."""

    async def __aenter__(self) -> "StoreMigrator":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.disconnect()
