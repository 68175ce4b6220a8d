"""
Helper utilities for the multi-store migrator.
"""

import asyncio
import json
import os
from datetime import datetime, UTC
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple, TypeVar, Union

import yaml

T = TypeVar("T")


def generate_run_id(now: Optional[datetime] = None) -> str:
    """Generate the run identifier used to name backups, logs and reports.

    Millisecond resolution, so two runs started in the same second still
    get distinct artifact names.
    """
    now = now or datetime.now(UTC)
    return now.strftime("%Y%m%d%H%M%S") + f"{now.microsecond // 1000:03d}"


def chunked(items: Sequence[T], size: int) -> Iterator[List[T]]:
    """Yield consecutive slices of ``items`` with at most ``size`` elements."""
    if size < 1:
        raise ValueError("Chunk size must be at least 1")
    for start in range(0, len(items), size):
        yield list(items[start:start + size])


def format_duration(seconds: float) -> str:
    """Format duration in seconds to human-readable string."""
    if seconds < 60:
        return f"{seconds:.1f}s"
    elif seconds < 3600:
        minutes = seconds / 60
        return f"{minutes:.1f}m"
    else:
        hours = seconds / 3600
        return f"{hours:.1f}h"


def load_config_file(file_path: Union[str, Path]) -> Dict[str, Any]:
    """
    Load configuration from YAML or JSON file.

    Args:
        file_path: Path to configuration file

    Returns:
        Configuration dictionary
    """
    file_path = Path(file_path)

    if not file_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {file_path}")

    with open(file_path, 'r', encoding='utf-8') as f:
        if file_path.suffix.lower() in ['.yaml', '.yml']:
            return yaml.safe_load(f) or {}
        elif file_path.suffix.lower() == '.json':
            return json.load(f)
        else:
            raise ValueError(f"Unsupported configuration file format: {file_path.suffix}")


async def run_command(
    cmd: List[str],
    stdout_path: Optional[Union[str, Path]] = None,
    env: Optional[Mapping[str, str]] = None
) -> Tuple[int, str]:
    """
    Run an external tool and wait for it to finish.

    Args:
        cmd: Program and arguments
        stdout_path: File that receives the tool's standard output, if any
        env: Extra environment variables on top of the current environment

    Returns:
        Tuple of (return code, decoded stderr)
    """
    full_env = None
    if env:
        full_env = os.environ.copy()
        full_env.update(env)

    if stdout_path is not None:
        with open(stdout_path, "wb") as f:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=f,
                stderr=asyncio.subprocess.PIPE,
                env=full_env
            )
            _, stderr = await process.communicate()
    else:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
            env=full_env
        )
        _, stderr = await process.communicate()

    return process.returncode, (stderr or b"").decode(errors="replace")
