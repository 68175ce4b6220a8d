"""
Unit tests for the error handling system.
"""

import logging
from unittest.mock import Mock

import pytest

from multistore_migrator.core.error_handler import (
    ErrorCategory,
    ErrorContext,
    ErrorHandler,
    ErrorSeverity,
    RetryConfig,
    RetryHandler,
    create_batch_retry_config,
    is_retryable,
)
from multistore_migrator.core.exceptions import (
    BackupError,
    ConfigurationError,
    ConnectivityError,
    DatabaseError,
    DataIntegrityError,
    StateError,
    UnsupportedValueTypeError,
)


class TestErrorHandler:
    """Test cases for ErrorHandler class."""

    def setup_method(self):
        """Set up test fixtures."""
        self.logger = Mock(spec=logging.Logger)
        self.error_handler = ErrorHandler(logger=self.logger)

    @pytest.mark.parametrize("error, category, severity", [
        (ConfigurationError("bad"), ErrorCategory.CONFIGURATION, ErrorSeverity.HIGH),
        (ConnectivityError("down"), ErrorCategory.CONNECTIVITY, ErrorSeverity.CRITICAL),
        (BackupError("disk full"), ErrorCategory.BACKUP, ErrorSeverity.CRITICAL),
        (DataIntegrityError("mismatch"), ErrorCategory.VERIFICATION, ErrorSeverity.CRITICAL),
        (UnsupportedValueTypeError("stream"), ErrorCategory.DATABASE, ErrorSeverity.HIGH),
        (DatabaseError("write failed"), ErrorCategory.DATABASE, ErrorSeverity.HIGH),
        (StateError("rewind"), ErrorCategory.STATE, ErrorSeverity.HIGH),
        (ValueError("other"), ErrorCategory.UNKNOWN, ErrorSeverity.MEDIUM),
    ])
    def test_categorize(self, error, category, severity):
        error_info = self.error_handler.categorize_error(error)

        assert error_info.category == category
        assert error_info.severity == severity
        assert error_info.remediation_steps

    def test_context_in_error_dict(self):
        error = DataIntegrityError(
            "Row count mismatch for public.users",
            details={'table': 'public.users'}
        )
        context = ErrorContext(operation="postgres_migration", phase="postgres_migration", run_id="r1")

        data = self.error_handler.categorize_error(error, context).to_dict()

        assert data['error_code'] == 'DataIntegrityError'
        assert data['phase'] == 'postgres_migration'
        assert data['run_id'] == 'r1'
        assert data['details'] == {'table': 'public.users'}

    def test_handle_error_logs_by_severity(self):
        self.error_handler.handle_error(BackupError("pg_dump failed"))
        self.logger.critical.assert_called_once()

        self.error_handler.handle_error(ValueError("odd"))
        self.logger.warning.assert_called_once()


class TestRetryHandler:
    """Test cases for RetryHandler class."""

    def setup_method(self):
        self.retry_handler = RetryHandler(logger=Mock(spec=logging.Logger))

    @pytest.mark.asyncio
    async def test_default_is_single_attempt(self):
        func = Mock(side_effect=DatabaseError("boom"))

        with pytest.raises(DatabaseError):
            await self.retry_handler.retry_with_backoff(func)
        assert func.call_count == 1

    @pytest.mark.asyncio
    async def test_retries_until_success(self):
        func = Mock(side_effect=[DatabaseError("once"), DatabaseError("twice"), "ok"])
        config = create_batch_retry_config(max_attempts=3, base_delay=0.0)

        result = await self.retry_handler.retry_with_backoff(func, retry_config=config)

        assert result == "ok"
        assert func.call_count == 3

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self):
        func = Mock(side_effect=DatabaseError("always"))
        config = create_batch_retry_config(max_attempts=2, base_delay=0.0)

        with pytest.raises(DatabaseError):
            await self.retry_handler.retry_with_backoff(func, retry_config=config)
        assert func.call_count == 2

    @pytest.mark.asyncio
    async def test_integrity_errors_are_not_retried(self):
        func = Mock(side_effect=DataIntegrityError("mismatch"))
        config = create_batch_retry_config(max_attempts=5, base_delay=0.0)

        with pytest.raises(DataIntegrityError):
            await self.retry_handler.retry_with_backoff(func, retry_config=config)
        assert func.call_count == 1

    @pytest.mark.asyncio
    async def test_coroutine_function(self):
        calls = []

        async def flaky(value):
            calls.append(value)
            if len(calls) < 2:
                raise ConnectionError("reset")
            return value * 2

        config = create_batch_retry_config(max_attempts=3, base_delay=0.0)
        assert await self.retry_handler.retry_with_backoff(flaky, 21, retry_config=config) == 42


class TestIsRetryable:
    """Test cases for the retry predicate."""

    def test_batch_config(self):
        config = create_batch_retry_config()
        assert is_retryable(DatabaseError("x"), config)
        assert is_retryable(TimeoutError(), config)
        assert not is_retryable(UnsupportedValueTypeError("x"), config)
        assert not is_retryable(ValueError("x"), config)

    def test_empty_list_retries_everything_but_verification(self):
        config = RetryConfig(max_attempts=3)
        assert is_retryable(ValueError("x"), config)
        assert not is_retryable(DataIntegrityError("x"), config)
