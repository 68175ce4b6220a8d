"""
Command-line entry point for the multi-store migrator.

This module provides the ``multistore-migrate`` command using Click with
Rich output.
"""

import asyncio
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import click
from pydantic import ValidationError
from rich.console import Console

from multistore_migrator import __version__
from multistore_migrator.core.exceptions import ConfigurationError
from multistore_migrator.models.config import MigrationOptions, MigrationSettings
from multistore_migrator.orchestrator.orchestrator import MigrationOrchestrator
from multistore_migrator.utils.helpers import generate_run_id
from multistore_migrator.utils.logging import setup_logging

console = Console()


def load_settings(config_path: Optional[str], overrides: Dict[str, Any]) -> MigrationSettings:
    """Build settings from a file or the environment, then apply option overrides."""
    if config_path:
        settings = MigrationSettings.from_file(config_path)
    else:
        settings = MigrationSettings.from_env()

    if not overrides:
        return settings

    try:
        options = MigrationOptions.model_validate({**settings.options.model_dump(), **overrides})
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid command-line options: {e.error_count()} error(s)",
            details={'errors': e.errors(include_url=False)}
        ) from e
    return settings.model_copy(update={'options': options})


@click.command()
@click.option('--config', '-c', 'config_path', type=click.Path(exists=True, dir_okay=False),
              help='Settings file (YAML or JSON); the environment is used if omitted')
@click.option('--batch-size', type=int, help='Rows or keys per batch')
@click.option('--workers', type=int, help='Tables transferred in parallel')
@click.option('--retry-attempts', type=int, help='Attempts per batch before the phase fails')
@click.option('--log-level', type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR'], case_sensitive=False),
              help='Logging level')
@click.option('--structured-logs', is_flag=True, help='Emit JSON log lines')
@click.option('--skip-documents', is_flag=True, help='Skip the MongoDB phase even if configured')
@click.version_option(__version__, prog_name='multistore-migrate')
def main(
    config_path: Optional[str],
    batch_size: Optional[int],
    workers: Optional[int],
    retry_attempts: Optional[int],
    log_level: Optional[str],
    structured_logs: bool,
    skip_documents: bool
):
    """Migrate PostgreSQL, Redis and MongoDB data from a source to a target deployment."""
    overrides = {
        key: value for key, value in {
            'batch_size': batch_size,
            'max_workers': workers,
            'retry_attempts': retry_attempts,
            'log_level': log_level,
            'structured_logging': structured_logs or None,
        }.items() if value is not None
    }

    try:
        settings = load_settings(config_path, overrides)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {e.message}")
        for error in e.details.get('errors', []):
            location = '.'.join(str(part) for part in error.get('loc', ()))
            console.print(f"  [dim]{location}[/dim]: {error.get('msg')}")
        sys.exit(1)

    options = settings.options
    run_id = generate_run_id()
    setup_logging(
        level=options.log_level,
        log_file=str(Path(options.logs_dir) / f"migration-{run_id}.log"),
        structured_logging=options.structured_logging,
    )

    orchestrator = MigrationOrchestrator(
        settings,
        run_id=run_id,
        console=console,
        skip_documents=skip_documents,
    )
    sys.exit(asyncio.run(orchestrator.run()))


if __name__ == '__main__':
    main()
