"""
Run report generation for migration operations.

This module projects the final migration state into a ``MigrationReport``,
saves it as JSON (the auditable record of the run) plus a Markdown summary,
and prints a summary panel to the console.
"""

import json
import logging
from datetime import datetime, UTC
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

from jinja2 import Environment, BaseLoader
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from multistore_migrator.models.state import MigrationState
from multistore_migrator.utils.helpers import format_duration

logger = logging.getLogger(__name__)


class ReportStatus(str, Enum):
    """Overall outcome of a run."""
    SUCCESS = "SUCCESS"
    PARTIAL_FAILURE = "PARTIAL_FAILURE"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ReportStatistics(_CamelModel):
    tables_processed: int = 0
    rows_migrated: int = 0
    keys_processed: int = 0
    documents_processed: int = 0


class MigrationReport(_CamelModel):
    """Persisted summary of one migration run."""
    start_time: datetime
    end_time: datetime
    duration_seconds: float
    status: ReportStatus
    statistics: ReportStatistics = Field(default_factory=ReportStatistics)
    completed: List[str] = Field(default_factory=list)
    failed: List[str] = Field(default_factory=list)
    checksums: Dict[str, str] = Field(default_factory=dict)
    backup_location: Optional[str] = None

    def to_json_dict(self) -> dict:
        return self.model_dump(mode='json', by_alias=True)


MARKDOWN_TEMPLATE = """# Migration Report {{ run_id }}

**Status:** {{ report.status.value }}
**Started:** {{ report.start_time.isoformat() }}
**Finished:** {{ report.end_time.isoformat() }}
**Duration:** {{ duration }}

## Statistics

| Counter | Value |
|---|---|
| Tables processed | {{ report.statistics.tables_processed }} |
| Rows migrated | {{ report.statistics.rows_migrated }} |
| Redis keys processed | {{ report.statistics.keys_processed }} |
| Documents processed | {{ report.statistics.documents_processed }} |

## Phases

{% for phase in report.completed %}- {{ phase }}: completed
{% endfor %}{% for phase in report.failed %}- {{ phase }}: **failed**
{% endfor %}
## Backup checksums

{% if report.checksums %}{% for name, checksum in report.checksums | dictsort %}- `{{ name }}`: `{{ checksum }}`
{% endfor %}{% else %}No backups were recorded.
{% endif %}
{% if report.backup_location %}Backups are stored in `{{ report.backup_location }}`.
{% endif %}"""


class ReportGenerator:
    """
    Builds, saves and displays the report of one run.
    """

    def __init__(self, logs_dir: str, run_id: str, console: Optional[Console] = None):
        """
        Initialize report generator.

        Args:
            logs_dir: Directory where report files are written
            run_id: Identifier of the run, used in report file names
            console: Rich console for the summary panel
        """
        self.logs_dir = Path(logs_dir)
        self.run_id = run_id
        self.console = console or Console()
        self.template_env = Environment(loader=BaseLoader(), autoescape=False)

    @property
    def report_path(self) -> Path:
        return self.logs_dir / f"migration-report-{self.run_id}.json"

    @property
    def markdown_path(self) -> Path:
        return self.logs_dir / f"migration-report-{self.run_id}.md"

    def generate(self, state: MigrationState, start_time: datetime, end_time: datetime) -> MigrationReport:
        """Project a snapshot of ``state`` into a report."""
        snapshot = state.snapshot()
        return MigrationReport(
            start_time=start_time,
            end_time=end_time,
            duration_seconds=round((end_time - start_time).total_seconds(), 3),
            status=ReportStatus.SUCCESS if not snapshot.failed else ReportStatus.PARTIAL_FAILURE,
            statistics=ReportStatistics(**snapshot.statistics.model_dump()),
            completed=list(snapshot.completed),
            failed=list(snapshot.failed),
            checksums=dict(snapshot.checksums),
            backup_location=snapshot.backup_location,
        )

    def save(self, report: MigrationReport) -> Path:
        """Write the report as JSON and return its path."""
        self.logs_dir.mkdir(parents=True, exist_ok=True)
        with open(self.report_path, 'w', encoding='utf-8') as f:
            json.dump(report.to_json_dict(), f, indent=2)
        logger.info(f"Report saved to: {self.report_path}")
        return self.report_path

    def render_markdown(self, report: MigrationReport) -> str:
        template = self.template_env.from_string(MARKDOWN_TEMPLATE)
        return template.render(
            report=report,
            run_id=self.run_id,
            duration=format_duration(report.duration_seconds),
        )

    def save_markdown(self, report: MigrationReport) -> Path:
        self.logs_dir.mkdir(parents=True, exist_ok=True)
        with open(self.markdown_path, 'w', encoding='utf-8') as f:
            f.write(self.render_markdown(report))
        return self.markdown_path

    def render_console(self, report: MigrationReport, report_path: Optional[Path] = None) -> None:
        """Print the summary panel."""
        succeeded = report.status == ReportStatus.SUCCESS

        table = Table(show_header=False, box=None, padding=(0, 2))
        table.add_column("Field", style="bold")
        table.add_column("Value")
        table.add_row("Status", f"[{'green' if succeeded else 'yellow'}]{report.status.value}[/]")
        table.add_row("Duration", format_duration(report.duration_seconds))
        table.add_row("Tables Processed", str(report.statistics.tables_processed))
        table.add_row("Rows Migrated", str(report.statistics.rows_migrated))
        table.add_row("Redis Keys Processed", str(report.statistics.keys_processed))
        table.add_row("Documents Processed", str(report.statistics.documents_processed))
        if report.failed:
            table.add_row("Failed Phases", ", ".join(report.failed))
        if report_path is not None:
            table.add_row("Report", str(report_path))

        self.console.print(Panel(
            table,
            title="Migration Report",
            border_style="green" if succeeded else "yellow",
            padding=(1, 2)
        ))

    def generate_and_save(self, state: MigrationState, start_time: datetime,
                          end_time: Optional[datetime] = None) -> MigrationReport:
        """Generate, save and display the report. Never raises.

        If the report cannot be built from ``state``, a report with empty
        counters and a PARTIAL_FAILURE status is returned instead.
        """
        end_time = end_time or datetime.now(UTC)
        try:
            report = self.generate(state, start_time, end_time)
        except Exception:
            logger.exception("Failed to build the migration report; emitting an empty report")
            report = MigrationReport(
                start_time=start_time,
                end_time=end_time,
                duration_seconds=max(0.0, (end_time - start_time).total_seconds()),
                status=ReportStatus.PARTIAL_FAILURE,
            )

        report_path = None
        try:
            report_path = self.save(report)
            self.save_markdown(report)
        except Exception:
            logger.exception(f"Failed to save the migration report to {self.logs_dir}")

        try:
            self.render_console(report, report_path)
        except Exception:
            logger.exception("Failed to display the migration report")

        return report
