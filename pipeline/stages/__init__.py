"""
Pipeline stages for the backup store integrity layer.
"""

from .compression import CompressionPipeline, compress_data, decompress_and_verify
from .mount import (
    MountReconciler,
    SystemMountProbe,
    ForceSystemMountProbe,
    check_and_cleanup_mount_point,
    cleanup_mount_point,
    cleanup_mount_with_force,
    is_mounted,
)

__all__ = [
    'CompressionPipeline',
    'compress_data',
    'decompress_and_verify',
    'MountReconciler',
    'SystemMountProbe',
    'ForceSystemMountProbe',
    'check_and_cleanup_mount_point',
    'cleanup_mount_point',
    'cleanup_mount_with_force',
    'is_mounted',
]
