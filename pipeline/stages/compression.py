"""
Block compression with read-after-verify decompression.
"""

import io
import logging
from pathlib import Path
from typing import BinaryIO, Optional, Tuple, Union

from base_classes import Compressor
from compressors.registry import CompressorRegistry, NONE_METHOD, get_compressor_registry
from pipeline_configs import IntegrityConfig
from resilience_patterns import DecodeError, IntegrityMismatchError, UnsupportedAlgorithmError
from secure_utils import block_checksum, file_checksum

logger = logging.getLogger(__name__)

Source = Union[BinaryIO, bytes, bytearray, memoryview]


class CompressionPipeline:
    """
    Compresses blocks under a named algorithm and verifies them on the way back.

    Decompression is two-phase: the whole block is decompressed into memory
    and checked against its block checksum before anything is handed back, so
    callers never see bytes that failed verification. Three failure kinds
    stay distinct: UnsupportedAlgorithmError (unknown name), DecodeError
    (the compressed stream is damaged) and IntegrityMismatchError (decoding
    worked but the content is wrong).
    """

    def __init__(self, registry: Optional[CompressorRegistry] = None,
                 config: Optional[IntegrityConfig] = None):
        self.registry = registry or get_compressor_registry()
        self.config = config or IntegrityConfig()

    def _resolve(self, method: str, direction: str) -> Compressor:
        compressor = self.registry.lookup(method)
        if compressor is None:
            raise UnsupportedAlgorithmError(method, direction)
        return compressor

    def compress_data(self, method: str, data: bytes) -> io.BytesIO:
        """
        Compress ``data`` with the codec registered as ``method``.

        Args:
            method: Algorithm name, or 'none' for passthrough
            data: Block contents

        Returns:
            Seekable stream positioned at the start of the compressed block,
            so a failed send can be retried from the beginning
        """
        if method == NONE_METHOD:
            return io.BytesIO(data)

        compressor = self._resolve(method, "compression")
        return compressor.compress_data(data)

    def compress_block(self, data: bytes) -> Tuple[str, io.BytesIO, str]:
        """
        Compress a block with the configured default method.

        Returns:
            (method, compressed stream, block checksum) to record alongside
            the stored block
        """
        method = self.config.default_compression_method
        return method, self.compress_data(method, data), block_checksum(data)

    def file_checksum(self, file_path: Union[str, Path]) -> str:
        return file_checksum(file_path, chunk_size=self.config.checksum_chunk_size)

    def decompress_and_verify(self, method: str, src: Source, expected_checksum: str) -> io.BytesIO:
        """
        Decompress a block and check it against its recorded checksum.

        Args:
            method: Algorithm name the block was compressed with
            src: Stream (or raw bytes) holding the compressed block
            expected_checksum: block_checksum() of the original block

        Returns:
            Fresh stream over the verified block contents

        Raises:
            UnsupportedAlgorithmError: no codec for ``method``; ``src`` is not read
            DecodeError: the compressed stream could not be decoded
            IntegrityMismatchError: the decoded block does not match the checksum
        """
        compressor = None
        if method != NONE_METHOD:
            compressor = self._resolve(method, "decompression")

        if isinstance(src, (bytes, bytearray, memoryview)):
            src = io.BytesIO(src)

        if compressor is None:
            try:
                block = src.read()
            except OSError as e:
                raise DecodeError(method, cause=e) from e
        else:
            block = compressor.decompress_data(src)

        actual = block_checksum(block)
        if actual != expected_checksum:
            logger.warning(f"Checksum mismatch for {method} block: expected {expected_checksum}, got {actual}")
            raise IntegrityMismatchError(method, expected_checksum, actual)

        logger.debug(f"Verified {method} block of {len(block)} bytes")
        return io.BytesIO(block)


_default_pipeline: Optional[CompressionPipeline] = None


def _get_default_pipeline() -> CompressionPipeline:
    global _default_pipeline
    if _default_pipeline is None:
        _default_pipeline = CompressionPipeline()
    return _default_pipeline


def compress_data(method: str, data: bytes) -> io.BytesIO:
    """Compress a block using the global compressor registry"""
    return _get_default_pipeline().compress_data(method, data)


def decompress_and_verify(method: str, src: Source, expected_checksum: str) -> io.BytesIO:
    """Decompress and verify a block using the global compressor registry"""
    return _get_default_pipeline().decompress_and_verify(method, src, expected_checksum)
