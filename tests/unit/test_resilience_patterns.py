"""
Tests for the error taxonomy and caller-side retry decorator
"""

from unittest.mock import Mock, patch

import pytest

from resilience_patterns import (
    BackupStoreError, DecodeError, ExecutionError, ExecutionTimeoutError,
    IntegrityMismatchError, MountCleanupError, MountProbeError,
    MountTypeMismatchError, NonRetryableError, RetryableError, RetryConfig,
    UnsupportedAlgorithmError, with_retry
)


class TestErrorTaxonomy:
    """Error classification and formatting"""

    @pytest.mark.parametrize("error, base, code", [
        (UnsupportedAlgorithmError("xz"), NonRetryableError, "UNSUPPORTED_ALGORITHM"),
        (DecodeError("gzip"), RetryableError, "DECODE_FAILED"),
        (IntegrityMismatchError("lz4", "aa", "bb"), NonRetryableError, "INTEGRITY_MISMATCH"),
        (ExecutionTimeoutError("sleep 5", 1.0), RetryableError, "EXECUTION_TIMEOUT"),
        (ExecutionError("false", returncode=1), NonRetryableError, "EXECUTION_FAILED"),
        (MountProbeError("probe failed", "/mnt"), NonRetryableError, "MOUNT_PROBE_FAILED"),
        (MountTypeMismatchError("/mnt", "ext4", "nfs"), NonRetryableError, "MOUNT_TYPE_MISMATCH"),
        (MountCleanupError("cleanup failed", "/mnt"), NonRetryableError, "MOUNT_CLEANUP_FAILED"),
    ])
    def test_classification(self, error, base, code):
        assert isinstance(error, BackupStoreError)
        assert isinstance(error, base)
        assert error.error_code == code

    def test_str_includes_code_and_cause(self):
        error = DecodeError("gzip", cause=EOFError("stream ended"))
        assert str(error) == "[DECODE_FAILED] failed to decompress gzip block (caused by EOFError: stream ended)"

    def test_explicit_error_code_wins(self):
        error = BackupStoreError("custom", error_code="CUSTOM")
        assert str(error) == "[CUSTOM] custom"

    def test_log_context(self):
        error = IntegrityMismatchError("zstd", "expected", "actual")
        context = error.log_context()

        assert context['error_type'] == 'non_retryable'
        assert context['error_code'] == 'INTEGRITY_MISMATCH'
        assert context['details'] == {'method': 'zstd', 'expected': 'expected', 'actual': 'actual'}
        assert context['cause'] is None

    def test_timeout_message_carries_output(self):
        error = ExecutionTimeoutError("mount -t nfs", 60.0, output="mount.nfs: timed out")
        assert "timeout executing: mount -t nfs" in str(error)
        assert "mount.nfs: timed out" in str(error)

    def test_repr(self):
        assert repr(MountProbeError("probe failed", "/mnt")).startswith("MountProbeError(message='probe failed'")


class TestRetryConfig:
    """RetryConfig validation and backoff"""

    def test_invalid_attempts(self):
        with pytest.raises(ValueError, match="max_attempts must be positive"):
            RetryConfig(max_attempts=0)

    def test_negative_delay(self):
        with pytest.raises(ValueError, match="delays cannot be negative"):
            RetryConfig(initial_delay=-1)

    def test_exponential_backoff(self):
        config = RetryConfig(initial_delay=1.0, exponential_base=2.0, max_delay=5.0, jitter=False)
        assert [config.calculate_delay(n) for n in (1, 2, 3, 4)] == [1.0, 2.0, 4.0, 5.0]

    def test_jitter_bounds(self):
        config = RetryConfig(initial_delay=2.0, jitter=True)
        for _ in range(50):
            assert 1.0 <= config.calculate_delay(1) <= 3.0


class TestWithRetry:
    """Caller-side retry decorator"""

    def test_retries_retryable_errors(self):
        func = Mock(side_effect=[ExecutionTimeoutError("umount /mnt", 1.0), "ok"])
        func.__name__ = "unmount"

        with patch('resilience_patterns.time.sleep') as mock_sleep:
            assert with_retry(RetryConfig(jitter=False))(func)() == "ok"

        assert func.call_count == 2
        mock_sleep.assert_called_once_with(1.0)

    def test_gives_up_after_max_attempts(self):
        func = Mock(side_effect=DecodeError("lz4"))
        func.__name__ = "read_block"

        with patch('resilience_patterns.time.sleep'):
            with pytest.raises(DecodeError):
                with_retry(RetryConfig(max_attempts=3))(func)()

        assert func.call_count == 3

    def test_non_retryable_raised_immediately(self):
        func = Mock(side_effect=IntegrityMismatchError("lz4", "a", "b"))
        func.__name__ = "read_block"

        with pytest.raises(IntegrityMismatchError):
            with_retry()(func)()

        assert func.call_count == 1

    def test_unrelated_errors_propagate(self):
        func = Mock(side_effect=KeyError("missing"))
        func.__name__ = "lookup"

        with pytest.raises(KeyError):
            with_retry()(func)()

        assert func.call_count == 1

    @pytest.mark.asyncio
    async def test_async_retry(self):
        attempts = []

        @with_retry(RetryConfig(initial_delay=0, jitter=False))
        async def flaky():
            attempts.append(1)
            if len(attempts) < 2:
                raise ExecutionTimeoutError("mount", 1.0)
            return "mounted"

        assert await flaky() == "mounted"
        assert len(attempts) == 2

    @pytest.mark.asyncio
    async def test_async_non_retryable(self):
        @with_retry()
        async def broken():
            raise UnsupportedAlgorithmError("xz")

        with pytest.raises(UnsupportedAlgorithmError):
            await broken()
