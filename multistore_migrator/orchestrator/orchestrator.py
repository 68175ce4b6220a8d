"""
Main migration orchestrator for coordinating a multi-store migration.

This module provides the MigrationOrchestrator class that runs the phases
of a migration in order (initialization, backup, PostgreSQL, Redis and the
optional document store), stops at the first failing phase and always
finishes with a run report.
"""

import logging
import time
from datetime import datetime, UTC
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from rich.console import Console

from multistore_migrator.backup.manager import BackupManager
from multistore_migrator.core.error_handler import ErrorContext, ErrorHandler
from multistore_migrator.database.base import StoreMigrator
from multistore_migrator.database.migrators import MongoMigrator, PostgreSQLMigrator, RedisMigrator
from multistore_migrator.models.config import MigrationSettings, StoreKind
from multistore_migrator.models.state import MigrationPhase, MigrationState
from multistore_migrator.monitoring.report_generator import ReportGenerator
from multistore_migrator.utils.helpers import generate_run_id
from multistore_migrator.utils.logging import MigrationLogger
from multistore_migrator.validation.connectivity import ConnectionValidator

logger = logging.getLogger(__name__)

MigratorFactory = Callable[[], StoreMigrator]


class MigrationOrchestrator:
    """
    Main orchestrator for one migration run.

    The orchestrator owns the run's ``MigrationState`` and hands it to each
    phase in turn. A failing phase is recorded and ends the run; the report
    is generated either way.
    """

    def __init__(
        self,
        settings: MigrationSettings,
        run_id: Optional[str] = None,
        console: Optional[Console] = None,
        validator: Optional[ConnectionValidator] = None,
        backup_manager: Optional[BackupManager] = None,
        report_generator: Optional[ReportGenerator] = None,
        migrator_factories: Optional[Dict[StoreKind, MigratorFactory]] = None,
        skip_documents: bool = False
    ):
        """
        Initialize the migration orchestrator.

        Args:
            settings: Connection settings and run options
            run_id: Run identifier; generated from the current time if omitted
            console: Rich console for the summary panel
            validator: Connectivity validator (optional)
            backup_manager: Backup manager instance (optional)
            report_generator: Report generator instance (optional)
            migrator_factories: Per-store factories overriding the default migrators
            skip_documents: Skip the document store phase even if one is configured
        """
        self.settings = settings
        self.run_id = run_id or generate_run_id()
        self.console = console or Console()
        self.state = MigrationState()

        options = settings.options
        self.validator = validator or ConnectionValidator()
        self.backup_manager = backup_manager or BackupManager(settings, self.run_id)
        self.report_generator = report_generator or ReportGenerator(
            options.logs_dir, self.run_id, console=self.console
        )
        self.migrator_factories = self._default_factories()
        if migrator_factories:
            self.migrator_factories.update(migrator_factories)
        self.skip_documents = skip_documents

        self.error_handler = ErrorHandler(logger)
        self.run_logger = MigrationLogger(self.run_id, structured=options.structured_logging)

    def _default_factories(self) -> Dict[StoreKind, MigratorFactory]:
        source, target, options = self.settings.source, self.settings.target, self.settings.options
        factories: Dict[StoreKind, MigratorFactory] = {
            StoreKind.POSTGRESQL: lambda: PostgreSQLMigrator(source.postgres, target.postgres, options),
            StoreKind.REDIS: lambda: RedisMigrator(source.redis, target.redis, options),
        }
        if self.settings.document_store_configured:
            factories[StoreKind.MONGODB] = lambda: MongoMigrator(source.mongodb, target.mongodb, options)
        return factories

    def _phases(self) -> List[Tuple[MigrationPhase, Callable[[], Awaitable[None]]]]:
        phases = [
            (MigrationPhase.INITIALIZATION, self._initialize),
            (MigrationPhase.BACKUP, self._backup),
            (MigrationPhase.POSTGRES_MIGRATION, lambda: self._migrate_store(StoreKind.POSTGRESQL)),
            (MigrationPhase.REDIS_MIGRATION, lambda: self._migrate_store(StoreKind.REDIS)),
        ]
        if self.settings.document_store_configured and not self.skip_documents:
            phases.append(
                (MigrationPhase.DOCUMENT_MIGRATION, lambda: self._migrate_store(StoreKind.MONGODB))
            )
        return phases

    async def run(self) -> int:
        """
        Execute the migration.

        Returns:
            0 if every phase completed, 1 otherwise
        """
        start_time = datetime.now(UTC)
        self.run_logger.info(f"Starting migration run {self.run_id}")
        crashed = False

        try:
            for phase, step in self._phases():
                if not await self._run_phase(phase, step):
                    logger.error(f"Aborting migration after failed phase: {phase.value}")
                    break
        except Exception:
            crashed = True
            logger.exception("Migration failed outside of a phase")

        try:
            self.state.advance_to(MigrationPhase.REPORTING)
        except Exception:
            crashed = True
            logger.exception("Could not enter the reporting phase")

        report = self.report_generator.generate_and_save(self.state, start_time)

        if crashed or not self.state.succeeded:
            logger.warning("Migration completed with failures. Check the report for details.")
            return 1
        logger.info(f"Migration completed successfully ({report.status.value})")
        return 0

    async def _run_phase(self, phase: MigrationPhase, step: Callable[[], Awaitable[None]]) -> bool:
        """Run one phase and record its outcome. Returns False if it failed."""
        self.state.advance_to(phase)
        self.run_logger.phase_start(phase.value)
        started = time.monotonic()

        try:
            await step()
        except Exception as e:
            self.state.mark_failed(phase)
            logger.exception(f"Phase {phase.value} failed: {e}")
            error_info = self.error_handler.handle_error(
                e,
                ErrorContext(
                    operation=phase.value,
                    phase=phase.value,
                    run_id=self.run_id,
                    additional_data=dict(getattr(e, 'details', {}) or {})
                )
            )
            self.run_logger.phase_failed(
                phase.value, str(e), error_code=error_info.to_dict()['error_code']
            )
            return False

        self.state.mark_completed(phase)
        self.run_logger.phase_complete(phase.value, time.monotonic() - started)
        return True

    async def _initialize(self) -> None:
        self.backup_manager.prepare_directories()
        self.state.backup_location = str(self.backup_manager.backup_root)
        await self.validator.validate_all(self.settings)

    async def _backup(self) -> None:
        await self.backup_manager.create_all(self.state)

    async def _migrate_store(self, kind: StoreKind) -> None:
        migrator = self.migrator_factories[kind]()
        async with migrator:
            await migrator.migrate(self.state)
