"""
Base Classes for the Backup Store Integrity Layer
=================================================

Contains the capability contracts the integrity layer adapts to: compression
codecs and mount probes.
"""

import io
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import BinaryIO, List


@dataclass
class MountInfo:
    """One entry of the live mount table"""
    device: str
    mount_point: str
    filesystem_type: str
    options: List[str] = field(default_factory=list)


class Compressor(ABC):
    """Abstract base class for block compression codecs.

    Implementations must be stateless so a single instance can be shared by
    every caller of the registry.
    """

    # Short lowercase algorithm name the codec is registered under
    ALGO_NAME: str = ""

    @abstractmethod
    def compress_data(self, data: bytes) -> io.BytesIO:
        """Compress ``data`` and return the whole result positioned at 0."""
        pass

    @abstractmethod
    def decompress_data(self, src: BinaryIO) -> bytes:
        """Decompress everything readable from ``src``."""
        pass


class MountProbe(ABC):
    """Answers whether a path is a mount point and what filesystem backs it"""

    @abstractmethod
    def is_mount_point(self, path: str) -> bool:
        pass

    @abstractmethod
    def filesystem_type(self, path: str) -> str:
        pass

    @abstractmethod
    def unmount(self, path: str) -> None:
        pass


class ForceUnmounter(MountProbe):
    """Mount probe that can also unmount while bypassing busy checks"""

    @abstractmethod
    def unmount_with_force(self, path: str, timeout: float) -> None:
        pass
