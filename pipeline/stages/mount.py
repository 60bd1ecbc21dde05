"""
Mount Point Reconciliation
==========================

Validates that a backup target mount point is bound to the expected kind of
filesystem, and cleans up mounts that are stale or unreadable.

Cleanup is two-tiered. Probes implementing ForceUnmounter are unmounted with
force under the (shorter) force cleanup timeout; NFS mounts left half
detached only let go that way. Other probes get a plain unmount.
"""

import logging
import os
from pathlib import Path
from typing import List, Optional, Union

import psutil

from base_classes import ForceUnmounter, MountInfo, MountProbe
from pipeline.workers.executor import CommandExecutor
from pipeline_configs import IntegrityConfig
from resilience_patterns import (
    BackupStoreError, ExecutionTimeoutError, MountCleanupError,
    MountProbeError, MountTypeMismatchError
)

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def _unmount_and_remove(mount_path: str, probe: MountProbe, unmount) -> None:
    if not os.path.exists(mount_path):
        logger.warning(f"Unmount skipped because path does not exist: {mount_path}")
        return

    try:
        mounted = probe.is_mount_point(mount_path)
    except Exception as e:
        # An unreadable mount is treated as mounted so it still gets unmounted
        logger.warning(f"Treating {mount_path} as a corrupted mount: {e}")
        mounted = True

    if mounted:
        try:
            unmount()
        except BackupStoreError:
            raise
        except Exception as e:
            raise MountCleanupError(f"Failed to unmount {mount_path}", mount_path, cause=e) from e

        try:
            still_mounted = probe.is_mount_point(mount_path)
        except Exception as e:
            raise MountCleanupError(f"Failed to check {mount_path} after unmount", mount_path, cause=e) from e
        if still_mounted:
            raise MountCleanupError(f"Failed to unmount path {mount_path}: still mounted", mount_path)

    try:
        os.rmdir(mount_path)
    except FileNotFoundError:
        pass
    except OSError as e:
        raise MountCleanupError(f"Failed to remove mount point {mount_path}", mount_path, cause=e) from e
    logger.info(f"Cleaned up mount point {mount_path}")


def cleanup_mount_point(mount_path: PathLike, probe: MountProbe) -> None:
    """Unmount ``mount_path`` if needed and remove the directory"""
    mount_path = os.fspath(mount_path)
    _unmount_and_remove(mount_path, probe, lambda: probe.unmount(mount_path))


def cleanup_mount_with_force(mount_path: PathLike, probe: ForceUnmounter, timeout: float) -> None:
    """Same as cleanup_mount_point, unmounting with force within ``timeout``"""
    mount_path = os.fspath(mount_path)
    _unmount_and_remove(mount_path, probe, lambda: probe.unmount_with_force(mount_path, timeout))


class MountReconciler:
    """Checks mount points against the expected filesystem kind"""

    def __init__(self, config: Optional[IntegrityConfig] = None):
        self.config = config or IntegrityConfig()

    def cleanup(self, mount_dir: str, probe: MountProbe) -> None:
        if isinstance(probe, ForceUnmounter):
            logger.info(f"Trying to force clean up mountpoint {mount_dir}")
            cleanup_mount_with_force(mount_dir, probe, self.config.force_cleanup_timeout)
            return

        logger.info(f"Trying to clean up mountpoint {mount_dir}")
        cleanup_mount_point(mount_dir, probe)

    def check_and_cleanup(self, expected_kind: str, mount_dir: PathLike, probe: MountProbe) -> bool:
        """
        Validate the mount at ``mount_dir`` and clean it up when stale.

        Args:
            expected_kind: Substring the live filesystem type must contain (e.g. "nfs")
            mount_dir: Mount point path
            probe: Mount probe capability; ForceUnmounter enables forced cleanup

        Returns:
            True if a healthy mount of the expected kind is in place, False if
            nothing is mounted or a stale mount was cleaned up

        Raises:
            MountProbeError: mount state could not be read (cleanup was attempted)
            MountTypeMismatchError: a mount of the wrong kind could not be cleaned up
        """
        mount_dir = os.fspath(mount_dir)

        try:
            mounted = probe.is_mount_point(mount_dir)
        except Exception as probe_error:
            try:
                self.cleanup(mount_dir, probe)
            except Exception as cleanup_error:
                logger.error(f"Failed to unmount corrupted mountpoint {mount_dir}: {cleanup_error}")
            raise MountProbeError(f"Failed to determine mount state of {mount_dir}",
                                  mount_dir, cause=probe_error) from probe_error

        if not mounted:
            return False

        try:
            filesystem_type = probe.filesystem_type(mount_dir)
        except Exception as e:
            raise MountProbeError(f"Failed to get mount for {mount_dir}", mount_dir, cause=e) from e

        if expected_kind in filesystem_type:
            return True

        logger.info(f"Mountpoint {mount_dir} is {filesystem_type}, expected {expected_kind}")
        try:
            self.cleanup(mount_dir, probe)
        except Exception as cleanup_error:
            logger.error(f"Failed to unmount mountpoint {mount_dir} ({filesystem_type}) "
                         f"for {expected_kind} protocol: {cleanup_error}")
            raise MountTypeMismatchError(mount_dir, filesystem_type, expected_kind,
                                         cause=cleanup_error) from cleanup_error

        return False


def check_and_cleanup_mount_point(expected_kind: str, mount_dir: PathLike, probe: MountProbe) -> bool:
    """Reconcile a mount point with the default configuration"""
    return MountReconciler().check_and_cleanup(expected_kind, mount_dir, probe)


def is_mounted(mount_point: str, executor: Optional[CommandExecutor] = None) -> bool:
    """Whether ``mount_point`` shows up in the output of ``mount``"""
    executor = executor or CommandExecutor()
    try:
        output = executor.run("mount", [])
    except BackupStoreError as e:
        logger.debug(f"Unable to list mounts: {e}")
        return False
    needle = f" {mount_point} "
    return any(needle in line for line in output.splitlines())


class SystemMountProbe(MountProbe):
    """
    Mount probe backed by the live mount table.

    Mount points are matched against psutil.disk_partitions(all=True). The
    path is stat'ed first so a stale handle (ESTALE, ENOTCONN, EIO) surfaces
    as an OSError instead of a silent "not mounted".
    """

    def __init__(self, executor: Optional[CommandExecutor] = None):
        self.executor = executor or CommandExecutor()

    def mounts(self) -> List[MountInfo]:
        return [
            MountInfo(
                device=partition.device,
                mount_point=partition.mountpoint,
                filesystem_type=partition.fstype,
                options=partition.opts.split(',') if partition.opts else [],
            )
            for partition in psutil.disk_partitions(all=True)
        ]

    def get_mount(self, path: str) -> Optional[MountInfo]:
        """Most recent mount table entry for ``path``"""
        path = os.path.realpath(path)
        found = None
        for mount in self.mounts():
            if mount.mount_point == path:
                found = mount
        return found

    def is_mount_point(self, path: str) -> bool:
        try:
            os.stat(path)
        except FileNotFoundError:
            return False
        return self.get_mount(path) is not None

    def filesystem_type(self, path: str) -> str:
        mount = self.get_mount(path)
        if mount is None:
            raise MountProbeError(f"No mount table entry for {path}", path)
        return mount.filesystem_type

    def unmount(self, path: str) -> None:
        self.executor.run("umount", [path])


class ForceSystemMountProbe(SystemMountProbe, ForceUnmounter):
    """System probe that falls back to ``umount -f`` when ``umount`` hangs"""

    def unmount_with_force(self, path: str, timeout: float) -> None:
        try:
            self.executor.run("umount", [path], timeout=timeout)
        except ExecutionTimeoutError:
            logger.warning(f"Unmount of {path} timed out after {timeout}s, forcing")
            self.executor.run("umount", ["-f", path], timeout=timeout)
