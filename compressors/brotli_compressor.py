"""
Brotli block compressor.
"""

from typing import BinaryIO

import brotli

from .base import StreamingCompressorBase


class BrotliCompressor(StreamingCompressorBase):
    """Brotli streams; no built-in checksum, so integrity relies on block checksums"""

    ALGO_NAME = "brotli"
    DECODE_ERRORS = (brotli.error,)

    def __init__(self, quality: int = 5):
        self.quality = quality

    def _write_stream(self, data: bytes, buffer: BinaryIO) -> None:
        compressor = brotli.Compressor(quality=self.quality)
        buffer.write(compressor.process(data))
        buffer.write(compressor.finish())

    def _read_stream(self, src: BinaryIO) -> bytes:
        decompressor = brotli.Decompressor()
        block = bytearray()
        for chunk in self.iter_chunks(src):
            block += decompressor.process(chunk)
        if not decompressor.is_finished():
            raise brotli.error("brotli stream ended before the end-of-stream marker was reached")
        return bytes(block)
