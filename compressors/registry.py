"""
Pluggable Compressor Registry
=============================

Maps algorithm names to compressor instances. Built-in codecs are registered
first, then plugins published under the ``backupstore.compressors`` entry
point group. Once loaded the registry is frozen and read-only, so it can be
shared between threads without locking.
"""

import logging
from dataclasses import dataclass
from importlib.metadata import entry_points
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional

from base_classes import Compressor

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = 'backupstore.compressors'

# Identity transform handled by the pipeline; never registered
NONE_METHOD = 'none'


class RegistryFrozenError(RuntimeError):
    """Raised when registering a compressor after the registry was loaded"""


@dataclass
class CompressorInfo:
    """Information about a registered compressor"""
    name: str
    compressor: Compressor
    priority: int = 0  # Higher priority compressors override lower priority ones
    source: str = "builtin"  # "builtin", "plugin", "custom"
    description: str = ""


class CompressorRegistry:
    """
    Central registry for block compressors with plugin support.

    Supports compressor discovery via:
    1. Built-in compressors (hardcoded)
    2. Entry points (setuptools plugins)
    3. Registration before loading (custom compressors)
    """

    def __init__(self):
        self._compressors: Dict[str, CompressorInfo] = {}
        self._loaded = False

    @property
    def loaded(self) -> bool:
        return self._loaded

    @property
    def compressors(self) -> Mapping[str, CompressorInfo]:
        """Read-only view of the registrations"""
        return MappingProxyType(self._compressors)

    def _load_builtin_compressors(self):
        """Load built-in compressors"""
        builtin = []

        # Gzip (standard library, always available)
        from .gzip_compressor import GzipCompressor
        builtin.append(CompressorInfo(
            name=GzipCompressor.ALGO_NAME,
            compressor=GzipCompressor(),
            description="Built-in gzip compressor"
        ))

        try:
            from .lz4_compressor import LZ4Compressor
            builtin.append(CompressorInfo(
                name=LZ4Compressor.ALGO_NAME,
                compressor=LZ4Compressor(),
                description="LZ4 frame compressor"
            ))
        except ImportError:
            logger.info("LZ4 compressor not available")

        try:
            from .zstd_compressor import ZstdCompressor
            builtin.append(CompressorInfo(
                name=ZstdCompressor.ALGO_NAME,
                compressor=ZstdCompressor(),
                description="Zstandard compressor"
            ))
        except ImportError:
            logger.info("Zstandard compressor not available")

        try:
            from .brotli_compressor import BrotliCompressor
            builtin.append(CompressorInfo(
                name=BrotliCompressor.ALGO_NAME,
                compressor=BrotliCompressor(),
                description="Brotli compressor"
            ))
        except ImportError:
            logger.info("Brotli compressor not available")

        for info in builtin:
            self._register(info)

    def _load_plugin_compressors(self):
        """Load compressors from entry points"""
        for ep in entry_points(group=ENTRY_POINT_GROUP):
            try:
                plugin = ep.load()
                compressor = plugin() if isinstance(plugin, type) else plugin

                if not isinstance(compressor, Compressor):
                    logger.error(f"Plugin compressor {ep.name} is not a Compressor")
                    continue

                info = CompressorInfo(
                    name=ep.name,
                    compressor=compressor,
                    priority=getattr(compressor, 'PRIORITY', 10),  # Plugins have higher priority
                    source="plugin",
                    description=getattr(compressor, 'DESCRIPTION', f"Plugin compressor {ep.name}")
                )
                self._register(info)
                logger.info(f"Loaded plugin compressor: {ep.name}")

            except Exception as e:
                logger.error(f"Failed to load plugin compressor {ep.name}: {e}")

    def _register(self, info: CompressorInfo):
        """Register a compressor, honouring priorities on name conflicts"""
        name = info.name

        if name in self._compressors:
            existing = self._compressors[name]
            if info.priority <= existing.priority:
                logger.warning(f"Compressor {name} already registered with higher priority")
                return
            logger.info(f"Replacing compressor {name} (priority {existing.priority} -> {info.priority})")

        self._compressors[name] = info

    def register_custom_compressor(self,
                                   name: str,
                                   compressor: Compressor,
                                   priority: int = 20,
                                   description: str = ""):
        """Register a custom compressor; only allowed before loading"""
        if self._loaded:
            raise RegistryFrozenError(f"Cannot register compressor {name}: registry already loaded")
        if not name or name != name.lower():
            raise ValueError(f"Compressor names must be non-empty lowercase strings, got {name!r}")
        if name == NONE_METHOD:
            raise ValueError(f"'{NONE_METHOD}' is reserved for the identity transform")
        if not isinstance(compressor, Compressor):
            raise TypeError(f"{type(compressor).__name__} is not a Compressor")

        self._register(CompressorInfo(
            name=name,
            compressor=compressor,
            priority=priority,
            source="custom",
            description=description or f"Custom {name} compressor"
        ))
        logger.info(f"Registered custom compressor: {name}")

    def load_compressors(self):
        """Load all available compressors and freeze the registry"""
        if self._loaded:
            return

        logger.info("Loading compressors...")
        self._load_builtin_compressors()
        self._load_plugin_compressors()
        self._loaded = True
        logger.info(f"Loaded {len(self._compressors)} compressors: {', '.join(sorted(self._compressors))}")

    def lookup(self, name: str) -> Optional[Compressor]:
        """Get the compressor registered under ``name``, or None"""
        if not self._loaded:
            self.load_compressors()

        info = self._compressors.get(name)
        return info.compressor if info else None

    def list_compressors(self) -> List[CompressorInfo]:
        """List all registered compressors"""
        if not self._loaded:
            self.load_compressors()
        return list(self._compressors.values())

    def supported_methods(self) -> List[str]:
        """Every method name accepted by the pipeline, including 'none'"""
        if not self._loaded:
            self.load_compressors()
        return [NONE_METHOD] + sorted(self._compressors)

    def get_registry_stats(self) -> Dict[str, Any]:
        """Get registry statistics"""
        if not self._loaded:
            self.load_compressors()

        stats = {
            "total_compressors": len(self._compressors),
            "by_source": {},
            "compressors": []
        }

        for info in self._compressors.values():
            stats["by_source"][info.source] = stats["by_source"].get(info.source, 0) + 1
            stats["compressors"].append({
                "name": info.name,
                "source": info.source,
                "priority": info.priority,
                "description": info.description
            })

        return stats


# Global registry instance
_global_registry = CompressorRegistry()


def get_compressor_registry() -> CompressorRegistry:
    """Get the global compressor registry"""
    return _global_registry


def get_compressor(name: str) -> Optional[Compressor]:
    """Convenience function to look up a compressor in the global registry"""
    return _global_registry.lookup(name)
