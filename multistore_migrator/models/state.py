"""
Run state for a multi-store migration.

A ``MigrationState`` is created by the orchestrator at the start of a run,
passed explicitly to every phase, and read once by the report generator.
Nothing in this module is process-global, so independent runs (for
example in tests) never share state.
"""

import threading
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, PrivateAttr

from multistore_migrator.core.exceptions import StateError


class MigrationPhase(str, Enum):
    """Ordered phases of a migration run."""
    INITIALIZATION = "initialization"
    BACKUP = "backup"
    POSTGRES_MIGRATION = "postgres_migration"
    REDIS_MIGRATION = "redis_migration"
    DOCUMENT_MIGRATION = "document_migration"
    REPORTING = "reporting"

    @property
    def order(self) -> int:
        return list(MigrationPhase).index(self)


class MigrationStatistics(BaseModel):
    """Counters accumulated over a run. Never decremented."""
    tables_processed: int = 0
    rows_migrated: int = 0
    keys_processed: int = 0
    documents_processed: int = 0


class MigrationState(BaseModel):
    """Mutable record of one run's progress."""
    phase: MigrationPhase = MigrationPhase.INITIALIZATION
    completed: List[str] = Field(default_factory=list)
    failed: List[str] = Field(default_factory=list)
    checksums: Dict[str, str] = Field(default_factory=dict)
    statistics: MigrationStatistics = Field(default_factory=MigrationStatistics)
    backup_location: Optional[str] = None

    # Counters may be bumped from worker threads when units run in parallel
    _lock: threading.Lock = PrivateAttr(default_factory=threading.Lock)

    def advance_to(self, phase: MigrationPhase) -> None:
        """Move to ``phase``. Moving backwards is an error."""
        if phase.order < self.phase.order:
            raise StateError(
                f"Cannot move from phase {self.phase.value} back to {phase.value}",
                details={'current': self.phase.value, 'requested': phase.value}
            )
        self.phase = phase

    def mark_completed(self, phase: MigrationPhase) -> None:
        if phase.value not in self.completed:
            self.completed.append(phase.value)

    def mark_failed(self, phase: MigrationPhase) -> None:
        if phase.value not in self.failed:
            self.failed.append(phase.value)

    def record_checksum(self, name: str, checksum: str) -> None:
        """Record the digest of a backup artifact.

        Artifacts are written once per run, so a name can only be recorded once.
        """
        with self._lock:
            if name in self.checksums:
                raise StateError(
                    f"Checksum for {name} already recorded in this run",
                    details={'artifact': name}
                )
            self.checksums[name] = checksum

    def increment(self, counter: str, amount: int = 1) -> None:
        """Add ``amount`` to one of the statistics counters."""
        if amount < 0:
            raise StateError(
                f"Counters only increase; got {amount} for {counter}",
                details={'counter': counter, 'amount': amount}
            )
        if counter not in MigrationStatistics.model_fields:
            raise StateError(f"Unknown counter: {counter}", details={'counter': counter})
        with self._lock:
            setattr(self.statistics, counter, getattr(self.statistics, counter) + amount)

    @property
    def succeeded(self) -> bool:
        return not self.failed

    def snapshot(self) -> "MigrationState":
        """Return an independent copy for read-only consumers."""
        with self._lock:
            return MigrationState.model_validate(self.model_dump())


class TableTransferUnit(BaseModel):
    """Transfer cursor for one table.

    ``total_rows`` is captured once when the table's transfer starts and is
    never re-queried; ``offset`` only moves forward by whole batches.
    """
    table: str
    total_rows: int = Field(ge=0)
    offset: int = 0

    @property
    def done(self) -> bool:
        return self.offset >= self.total_rows

    @property
    def processed(self) -> int:
        return min(self.offset, self.total_rows)

    def advance(self, batch_size: int) -> None:
        if batch_size < 1:
            raise StateError(f"Batch size must be positive, got {batch_size}")
        self.offset += batch_size
