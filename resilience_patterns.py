"""
Resilience Patterns for the Backup Store Integrity Layer
========================================================

Error taxonomy shared by the compression pipeline, the command executor and
the mount reconciler, plus a retry decorator for orchestration code.

Nothing in this layer retries on its own. Errors are split into
``RetryableError`` and ``NonRetryableError`` so callers can decide between
retrying, quarantining a block, or aborting.
"""

import asyncio
import inspect
import random
import time
import traceback
from dataclasses import dataclass
from functools import wraps
from typing import Any, Callable, Dict, Optional, Sequence, TypeVar
import logging

logger = logging.getLogger(__name__)

T = TypeVar('T')


class BackupStoreError(Exception):
    """Base class for every error raised by the integrity layer"""

    default_code: Optional[str] = None

    def __init__(self, message: str, cause: Optional[BaseException] = None,
                 error_code: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        """
        Initialize the error.

        Args:
            message: Error description
            cause: Original exception that caused this error
            error_code: Specific error code for categorization
            details: Additional error context
        """
        super().__init__(message)
        self.message = message
        self.cause = cause
        self.error_code = error_code or self.default_code
        self.details = details or {}
        self.timestamp = time.time()
        self.traceback = traceback.format_exc() if cause else None

    def __str__(self) -> str:
        base_msg = self.message
        if self.error_code:
            base_msg = f"[{self.error_code}] {base_msg}"
        if self.cause:
            return f"{base_msg} (caused by {type(self.cause).__name__}: {self.cause})"
        return base_msg

    def __repr__(self) -> str:
        return (f"{type(self).__name__}(message={self.message!r}, "
                f"cause={self.cause!r}, error_code={self.error_code!r}, "
                f"details={self.details!r})")

    def log_context(self) -> Dict[str, Any]:
        """Get error context for structured logging"""
        return {
            'error_type': 'retryable' if isinstance(self, RetryableError) else 'non_retryable',
            'error_code': self.error_code,
            'message': str(self),
            'timestamp': self.timestamp,
            'details': self.details,
            'cause': str(self.cause) if self.cause else None
        }


class RetryableError(BackupStoreError):
    """Failures a caller may reasonably retry (slow tools, damaged transfers)"""


class NonRetryableError(BackupStoreError):
    """Failures that will not go away by trying again"""


class UnsupportedAlgorithmError(NonRetryableError):
    """No codec is registered under the requested name"""

    default_code = 'UNSUPPORTED_ALGORITHM'

    def __init__(self, method: str, direction: str = "compression"):
        super().__init__(f"unsupported {direction} method: {method}",
                         details={'method': method, 'direction': direction})
        self.method = method


class DecodeError(RetryableError):
    """The compressed stream is malformed, truncated or otherwise corrupt"""

    default_code = 'DECODE_FAILED'

    def __init__(self, method: str, cause: Optional[BaseException] = None):
        super().__init__(f"failed to decompress {method} block", cause=cause,
                         details={'method': method})
        self.method = method


class IntegrityMismatchError(NonRetryableError):
    """Decompressed bytes do not match the checksum recorded for the block"""

    default_code = 'INTEGRITY_MISMATCH'

    def __init__(self, method: str, expected: str, actual: str):
        super().__init__("checksum verification failed for block",
                         details={'method': method, 'expected': expected, 'actual': actual})
        self.method = method
        self.expected = expected
        self.actual = actual


class ExecutionTimeoutError(RetryableError):
    """An external command did not finish within its time budget"""

    default_code = 'EXECUTION_TIMEOUT'

    def __init__(self, command_line: str, timeout: float, output: str = ""):
        super().__init__(f"timeout executing: {command_line}, output {output!r}",
                         details={'command': command_line, 'timeout': timeout})
        self.command_line = command_line
        self.timeout = timeout
        self.output = output


class ExecutionError(NonRetryableError):
    """An external command could not be started or exited with failure"""

    default_code = 'EXECUTION_FAILED'

    def __init__(self, command_line: str, output: str = "",
                 returncode: Optional[int] = None,
                 cause: Optional[BaseException] = None):
        message = f"failed to execute: {command_line}, output {output!r}"
        if returncode is not None:
            message += f", exit status {returncode}"
        super().__init__(message, cause=cause,
                         details={'command': command_line, 'returncode': returncode})
        self.command_line = command_line
        self.output = output
        self.returncode = returncode


class MountProbeError(NonRetryableError):
    """The mount state of a path could not be determined"""

    default_code = 'MOUNT_PROBE_FAILED'

    def __init__(self, message: str, mount_dir: str,
                 cause: Optional[BaseException] = None):
        super().__init__(message, cause=cause, details={'mount_dir': mount_dir})
        self.mount_dir = mount_dir


class MountTypeMismatchError(NonRetryableError):
    """A stale mount of the wrong filesystem type could not be cleaned up"""

    default_code = 'MOUNT_TYPE_MISMATCH'

    def __init__(self, mount_dir: str, filesystem_type: str, expected_kind: str,
                 cause: Optional[BaseException] = None):
        super().__init__(
            f"Failed to unmount mountpoint {mount_dir} ({filesystem_type}) "
            f"for {expected_kind} protocol",
            cause=cause,
            details={'mount_dir': mount_dir, 'filesystem_type': filesystem_type,
                     'expected_kind': expected_kind})
        self.mount_dir = mount_dir
        self.filesystem_type = filesystem_type
        self.expected_kind = expected_kind


class MountCleanupError(NonRetryableError):
    """Unmounting or removing a mount point failed"""

    default_code = 'MOUNT_CLEANUP_FAILED'

    def __init__(self, message: str, mount_dir: str,
                 cause: Optional[BaseException] = None):
        super().__init__(message, cause=cause, details={'mount_dir': mount_dir})
        self.mount_dir = mount_dir


@dataclass
class RetryConfig:
    """Configuration for caller-side retry behavior"""
    max_attempts: int = 3
    initial_delay: float = 1.0
    max_delay: float = 60.0
    exponential_base: float = 2.0
    jitter: bool = True
    retryable_exceptions: Sequence[type] = (RetryableError,)

    def __post_init__(self) -> None:
        if self.max_attempts <= 0:
            raise ValueError("max_attempts must be positive")
        if self.initial_delay < 0 or self.max_delay < 0:
            raise ValueError("delays cannot be negative")
        self.retryable_exceptions = tuple(self.retryable_exceptions)

    def calculate_delay(self, attempt: int) -> float:
        """Calculate delay with exponential backoff and optional jitter"""
        delay = min(self.initial_delay * (self.exponential_base ** (attempt - 1)), self.max_delay)
        if self.jitter:
            delay *= (0.5 + random.random())
        return delay


def with_retry(config: Optional[RetryConfig] = None):
    """Decorator for adding retry logic to caller-side operations"""
    if config is None:
        config = RetryConfig()

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def sync_wrapper(*args, **kwargs) -> T:
            for attempt in range(1, config.max_attempts + 1):
                try:
                    return func(*args, **kwargs)
                except NonRetryableError:
                    logger.error(f"Non-retryable error in {func.__name__}")
                    raise
                except config.retryable_exceptions as e:
                    if attempt == config.max_attempts:
                        logger.error(f"Failed after {config.max_attempts} attempts: {func.__name__}")
                        raise

                    delay = config.calculate_delay(attempt)
                    logger.warning(f"Attempt {attempt} failed: {e}. Retrying in {delay:.2f}s...")
                    time.sleep(delay)

        @wraps(func)
        async def async_wrapper(*args, **kwargs) -> T:
            for attempt in range(1, config.max_attempts + 1):
                try:
                    return await func(*args, **kwargs)
                except NonRetryableError:
                    logger.error(f"Non-retryable error in {func.__name__}")
                    raise
                except config.retryable_exceptions as e:
                    if attempt == config.max_attempts:
                        logger.error(f"Failed after {config.max_attempts} attempts: {func.__name__}")
                        raise

                    delay = config.calculate_delay(attempt)
                    logger.warning(f"Attempt {attempt} failed: {e}. Retrying in {delay:.2f}s...")
                    await asyncio.sleep(delay)

        return async_wrapper if inspect.iscoroutinefunction(func) else sync_wrapper
    return decorator
