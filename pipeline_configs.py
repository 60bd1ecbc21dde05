"""
Integrity Layer Configurations
==============================

This module provides the configuration values threaded into the command
executor and the mount reconciler, together with presets for common
deployments.
"""

from dataclasses import dataclass
from typing import Mapping, Optional
import logging
import math
import os

logger = logging.getLogger(__name__)


DEFAULT_COMMAND_TIMEOUT = 60.0        # one minute
DEFAULT_FORCE_CLEANUP_TIMEOUT = 30.0


@dataclass
class IntegrityConfig:
    """Configuration settings for the integrity layer"""

    # Command execution settings
    command_timeout: float = DEFAULT_COMMAND_TIMEOUT
    output_read_size: int = 4096

    # Mount cleanup settings
    force_cleanup_timeout: float = DEFAULT_FORCE_CLEANUP_TIMEOUT

    # Compression settings
    default_compression_method: str = 'lz4'

    # Checksum settings
    checksum_chunk_size: int = 64 * 1024  # 64KB

    def __post_init__(self) -> None:
        """Validate configuration parameters"""
        if not math.isfinite(self.command_timeout):
            raise ValueError("command_timeout must be a finite number of seconds")
        if not math.isfinite(self.force_cleanup_timeout):
            raise ValueError("force_cleanup_timeout must be a finite number of seconds")
        if self.command_timeout <= 0:
            raise ValueError("command_timeout must be positive")
        if self.force_cleanup_timeout <= 0:
            raise ValueError("force_cleanup_timeout must be positive")
        if self.force_cleanup_timeout > self.command_timeout:
            raise ValueError("force_cleanup_timeout cannot exceed command_timeout")
        if self.output_read_size <= 0:
            raise ValueError("output_read_size must be positive")
        if self.checksum_chunk_size <= 0:
            raise ValueError("checksum_chunk_size must be positive")
        if not self.default_compression_method:
            raise ValueError("default_compression_method cannot be empty")
        if self.default_compression_method != self.default_compression_method.lower():
            raise ValueError(f"Invalid default_compression_method: {self.default_compression_method}")


class ConfigPresets:
    """Pre-configured settings for common use cases"""

    @staticmethod
    def default() -> IntegrityConfig:
        """Stock budgets: one minute per command, 30s for forced cleanup"""
        return IntegrityConfig()

    @staticmethod
    def fast_fail() -> IntegrityConfig:
        """
        Tight budgets for interactive tools and test suites
        - Commands give up after 5s
        - Forced cleanup gives up after 2s
        """
        return IntegrityConfig(
            command_timeout=5.0,
            force_cleanup_timeout=2.0,
        )

    @staticmethod
    def slow_network() -> IntegrityConfig:
        """
        Generous budgets for NFS/CIFS backends on high-latency links
        - Larger read sizes for chatty tools
        - Gzip as the most widely readable format
        """
        return IntegrityConfig(
            command_timeout=300.0,
            force_cleanup_timeout=120.0,
            output_read_size=64 * 1024,
            default_compression_method='gzip',
        )

    @staticmethod
    def from_environment(environ: Optional[Mapping[str, str]] = None) -> IntegrityConfig:
        """Build a config from BACKUPSTORE_* environment variables"""
        env = os.environ if environ is None else environ
        kwargs = {}

        if env.get('BACKUPSTORE_CMD_TIMEOUT'):
            kwargs['command_timeout'] = _parse_seconds(env, 'BACKUPSTORE_CMD_TIMEOUT')
        if env.get('BACKUPSTORE_FORCE_CLEANUP_TIMEOUT'):
            kwargs['force_cleanup_timeout'] = _parse_seconds(env, 'BACKUPSTORE_FORCE_CLEANUP_TIMEOUT')
        elif 'command_timeout' in kwargs:
            # A short command budget caps the default forced-cleanup budget
            kwargs['force_cleanup_timeout'] = min(DEFAULT_FORCE_CLEANUP_TIMEOUT, kwargs['command_timeout'])
        if env.get('BACKUPSTORE_COMPRESSION_METHOD'):
            kwargs['default_compression_method'] = env['BACKUPSTORE_COMPRESSION_METHOD'].strip().lower()

        config = IntegrityConfig(**kwargs)
        logger.debug(f"Loaded integrity config from environment: {config}")
        return config


def _parse_seconds(env: Mapping[str, str], key: str) -> float:
    try:
        return float(env[key])
    except ValueError:
        raise ValueError(f"{key} must be a number of seconds, got {env[key]!r}") from None
