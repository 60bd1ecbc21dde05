"""
Block compressors for the backup store integrity layer.

Compressors are looked up by algorithm name through the registry:
- Built-in: gzip, lz4, zstd, brotli
- Plugins: entry points in the ``backupstore.compressors`` group
- Use get_compressor_registry() for listings and statistics
"""

from .base import StreamingCompressorBase
from .registry import (
    CompressorRegistry,
    CompressorInfo,
    RegistryFrozenError,
    NONE_METHOD,
    get_compressor_registry,
    get_compressor,
)
from .gzip_compressor import GzipCompressor

__all__ = [
    'StreamingCompressorBase',
    'CompressorRegistry',
    'CompressorInfo',
    'RegistryFrozenError',
    'NONE_METHOD',
    'get_compressor_registry',
    'get_compressor',
    'GzipCompressor',
]

# Initialize the global registry on import
_registry = get_compressor_registry()
_registry.load_compressors()
