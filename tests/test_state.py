"""
Tests for the per-run migration state.
"""

import pytest

from multistore_migrator.core.exceptions import StateError
from multistore_migrator.models.state import (
    MigrationPhase,
    MigrationState,
    TableTransferUnit,
)


class TestMigrationState:
    """Test cases for MigrationState."""

    def test_starts_zeroed(self):
        state = MigrationState()

        assert state.phase == MigrationPhase.INITIALIZATION
        assert state.completed == []
        assert state.failed == []
        assert state.checksums == {}
        assert state.statistics.rows_migrated == 0
        assert state.succeeded is True

    def test_phase_advances_forward(self):
        state = MigrationState()
        state.advance_to(MigrationPhase.BACKUP)
        state.advance_to(MigrationPhase.BACKUP)
        state.advance_to(MigrationPhase.REDIS_MIGRATION)

        assert state.phase == MigrationPhase.REDIS_MIGRATION

    def test_phase_cannot_rewind(self):
        state = MigrationState()
        state.advance_to(MigrationPhase.POSTGRES_MIGRATION)

        with pytest.raises(StateError):
            state.advance_to(MigrationPhase.BACKUP)
        assert state.phase == MigrationPhase.POSTGRES_MIGRATION

    def test_completed_and_failed_are_deduplicated(self):
        state = MigrationState()
        state.mark_completed(MigrationPhase.INITIALIZATION)
        state.mark_completed(MigrationPhase.BACKUP)
        state.mark_completed(MigrationPhase.INITIALIZATION)
        state.mark_failed(MigrationPhase.POSTGRES_MIGRATION)
        state.mark_failed(MigrationPhase.POSTGRES_MIGRATION)

        assert state.completed == ["initialization", "backup"]
        assert state.failed == ["postgres_migration"]
        assert state.succeeded is False

    def test_checksum_recorded_once(self):
        state = MigrationState()
        state.record_checksum("postgres_backup", "abc123")

        with pytest.raises(StateError):
            state.record_checksum("postgres_backup", "def456")
        assert state.checksums == {"postgres_backup": "abc123"}

    def test_increment_counters(self):
        state = MigrationState()
        state.increment("rows_migrated", 1000)
        state.increment("rows_migrated", 500)
        state.increment("tables_processed")

        assert state.statistics.rows_migrated == 1500
        assert state.statistics.tables_processed == 1

    def test_increment_rejects_negative_amount(self):
        state = MigrationState()
        with pytest.raises(StateError):
            state.increment("keys_processed", -1)
        assert state.statistics.keys_processed == 0

    def test_increment_rejects_unknown_counter(self):
        with pytest.raises(StateError):
            MigrationState().increment("bytes_copied", 10)

    def test_snapshot_is_independent(self):
        state = MigrationState()
        state.increment("keys_processed", 5)
        state.mark_completed(MigrationPhase.INITIALIZATION)

        snapshot = state.snapshot()
        state.increment("keys_processed", 5)
        state.mark_completed(MigrationPhase.BACKUP)

        assert snapshot.statistics.keys_processed == 5
        assert snapshot.completed == ["initialization"]

    def test_runs_do_not_share_state(self):
        first, second = MigrationState(), MigrationState()
        first.increment("rows_migrated", 10)
        first.mark_failed(MigrationPhase.BACKUP)

        assert second.statistics.rows_migrated == 0
        assert second.failed == []


class TestTableTransferUnit:
    """Test cases for the per-table transfer cursor."""

    def test_uneven_batches(self):
        unit = TableTransferUnit(table="public.users", total_rows=2500)
        progress = []
        while not unit.done:
            unit.advance(1000)
            progress.append(unit.processed)

        assert progress == [1000, 2000, 2500]
        assert unit.offset == 3000

    def test_empty_table_is_done_immediately(self):
        assert TableTransferUnit(table="public.empty", total_rows=0).done

    def test_rejects_non_positive_batch(self):
        unit = TableTransferUnit(table="public.users", total_rows=10)
        with pytest.raises(StateError):
            unit.advance(0)
