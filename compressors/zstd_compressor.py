"""
Zstandard block compressor.
"""

import io
from typing import BinaryIO

import zstandard

from .base import StreamingCompressorBase


class ZstdCompressor(StreamingCompressorBase):
    """Zstandard frames carrying content size and checksum"""

    ALGO_NAME = "zstd"
    DECODE_ERRORS = (zstandard.ZstdError,)

    def __init__(self, level: int = 3):
        self.level = level

    def _write_stream(self, data: bytes, buffer: BinaryIO) -> None:
        compressor = zstandard.ZstdCompressor(level=self.level, write_checksum=True)
        compressor.copy_stream(io.BytesIO(data), buffer, size=len(data))

    def _read_stream(self, src: BinaryIO) -> bytes:
        decompressor = zstandard.ZstdDecompressor().decompressobj()
        block = bytearray()
        for chunk in self.iter_chunks(src):
            if decompressor.eof:
                raise zstandard.ZstdError(f"{len(chunk)} unexpected bytes after the zstd frame")
            block += decompressor.decompress(chunk)
        if not decompressor.eof:
            raise zstandard.ZstdError("zstd stream ended before the end of the frame was reached")
        if decompressor.unused_data:
            raise zstandard.ZstdError(f"{len(decompressor.unused_data)} unexpected bytes after the zstd frame")
        return bytes(block)
