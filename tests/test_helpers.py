"""
Tests for helper utilities.
"""

import sys
from datetime import datetime, UTC

import pytest

from multistore_migrator.utils.helpers import chunked, format_duration, generate_run_id, run_command


class TestHelpers:
    """Test cases for helper functions."""

    def test_run_id_has_millisecond_resolution(self):
        now = datetime(2025, 3, 4, 5, 6, 7, 891000, tzinfo=UTC)
        assert generate_run_id(now) == "20250304050607891"

    def test_chunked(self):
        assert list(chunked(list(range(5)), 2)) == [[0, 1], [2, 3], [4]]
        assert list(chunked([], 3)) == []
        with pytest.raises(ValueError):
            list(chunked([1], 0))

    def test_format_duration(self):
        assert format_duration(5) == "5.0s"
        assert format_duration(90) == "1.5m"
        assert format_duration(5400) == "1.5h"

    @pytest.mark.asyncio
    async def test_run_command_captures_stdout_and_stderr(self, tmp_path):
        out = tmp_path / "out.txt"
        code = "import os, sys; print(os.environ['DUMP_LABEL']); sys.stderr.write('warn')"

        returncode, stderr = await run_command(
            [sys.executable, "-c", code], stdout_path=out, env={"DUMP_LABEL": "snapshot"}
        )

        assert returncode == 0
        assert stderr == "warn"
        assert out.read_text().strip() == "snapshot"

    @pytest.mark.asyncio
    async def test_run_command_nonzero_exit(self):
        returncode, _ = await run_command([sys.executable, "-c", "raise SystemExit(3)"])
        assert returncode == 3
