"""
Reporting for the multi-store migrator.
"""

from multistore_migrator.monitoring.report_generator import (
    ReportGenerator,
    MigrationReport,
    ReportStatistics,
    ReportStatus,
)

__all__ = [
    "ReportGenerator",
    "MigrationReport",
    "ReportStatistics",
    "ReportStatus",
]
