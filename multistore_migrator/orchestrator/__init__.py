"""
Orchestration of a multi-store migration run.
"""

from multistore_migrator.orchestrator.orchestrator import MigrationOrchestrator

__all__ = [
    "MigrationOrchestrator",
]
