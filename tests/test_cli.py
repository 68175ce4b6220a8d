"""
Tests for the command-line entry point.
"""

from unittest.mock import AsyncMock, patch

import pytest
import yaml
from click.testing import CliRunner

from multistore_migrator.cli.main import main


SETTINGS = {
    'source': {
        'postgres': {'host': "source-db", 'database': "sap_db"},
        'redis': {'host': "source-cache"},
    },
    'target': {
        'postgres': {'host': "target-db", 'database': "sap_main"},
        'redis': {'host': "target-cache"},
    },
}

TARGET_ENV = ("TARGET_POSTGRES_HOST", "TARGET_REDIS_HOST", "MONGO_URI", "TARGET_MONGO_URI")


class TestCli:
    """Test cases for the multistore-migrate command."""

    @pytest.fixture(autouse=True)
    def patched(self):
        with patch("multistore_migrator.cli.main.MigrationOrchestrator") as orchestrator_cls, \
                patch("multistore_migrator.cli.main.setup_logging") as setup_logging:
            orchestrator_cls.return_value.run = AsyncMock(return_value=0)
            self.orchestrator_cls = orchestrator_cls
            self.setup_logging = setup_logging
            yield

    def write_settings(self, tmp_path, data):
        data = dict(data, options={'logs_dir': str(tmp_path / "logs"),
                                   'backups_dir': str(tmp_path / "backups")})
        path = tmp_path / "settings.yaml"
        path.write_text(yaml.safe_dump(data), encoding="utf-8")
        return str(path)

    def test_runs_with_config_file(self, tmp_path):
        result = CliRunner().invoke(main, ["--config", self.write_settings(tmp_path, SETTINGS)])

        assert result.exit_code == 0, result.output
        settings = self.orchestrator_cls.call_args.args[0]
        assert settings.target.postgres.host == "target-db"
        assert self.orchestrator_cls.call_args.kwargs['skip_documents'] is False
        log_file = self.setup_logging.call_args.kwargs['log_file']
        assert log_file.startswith(str(tmp_path / "logs"))

    def test_option_overrides(self, tmp_path):
        result = CliRunner().invoke(main, [
            "--config", self.write_settings(tmp_path, SETTINGS),
            "--batch-size", "500",
            "--workers", "4",
            "--retry-attempts", "3",
            "--log-level", "debug",
            "--structured-logs",
            "--skip-documents",
        ])

        assert result.exit_code == 0, result.output
        options = self.orchestrator_cls.call_args.args[0].options
        assert options.batch_size == 500
        assert options.max_workers == 4
        assert options.retry_attempts == 3
        assert options.log_level == "DEBUG"
        assert options.structured_logging is True
        assert self.orchestrator_cls.call_args.kwargs['skip_documents'] is True

    def test_failed_run_exit_code(self, tmp_path):
        self.orchestrator_cls.return_value.run = AsyncMock(return_value=1)

        result = CliRunner().invoke(main, ["--config", self.write_settings(tmp_path, SETTINGS)])

        assert result.exit_code == 1

    def test_invalid_settings(self, tmp_path):
        bad = dict(SETTINGS, target={'postgres': {'host': "target-db", 'port': 70000},
                                     'redis': {'host': "target-cache"}})

        result = CliRunner().invoke(main, ["--config", self.write_settings(tmp_path, bad)])

        assert result.exit_code == 1
        assert "Configuration error" in result.output
        self.orchestrator_cls.assert_not_called()

    def test_invalid_override(self, tmp_path):
        result = CliRunner().invoke(main, [
            "--config", self.write_settings(tmp_path, SETTINGS), "--batch-size", "0"
        ])

        assert result.exit_code == 1
        assert "Configuration error" in result.output

    def test_environment_settings(self):
        env = {name: None for name in TARGET_ENV}
        env.update(TARGET_POSTGRES_HOST="target-db", TARGET_REDIS_HOST="target-cache")

        result = CliRunner().invoke(main, [], env=env)

        assert result.exit_code == 0, result.output
        settings = self.orchestrator_cls.call_args.args[0]
        assert settings.target.redis.host == "target-cache"
        assert settings.source.mongodb is None

    def test_missing_target_environment(self):
        result = CliRunner().invoke(main, [], env={name: None for name in TARGET_ENV})

        assert result.exit_code == 1
        assert "TARGET_POSTGRES_HOST" in result.output
