"""
LZ4 frame compressor.
"""

from typing import BinaryIO

import lz4.frame

from .base import StreamingCompressorBase


class LZ4Compressor(StreamingCompressorBase):
    """LZ4 frame format with content checksum enabled"""

    ALGO_NAME = "lz4"
    # The lz4 bindings report corrupt frames as RuntimeError
    DECODE_ERRORS = (RuntimeError, EOFError, OSError)

    def __init__(self, compression_level: int = 0):
        self.compression_level = compression_level

    def _write_stream(self, data: bytes, buffer: BinaryIO) -> None:
        with lz4.frame.LZ4FrameCompressor(compression_level=self.compression_level,
                                          content_checksum=True) as compressor:
            buffer.write(compressor.begin(len(data)))
            buffer.write(compressor.compress(data))
            buffer.write(compressor.flush())

    def _read_stream(self, src: BinaryIO) -> bytes:
        decompressor = lz4.frame.LZ4FrameDecompressor()
        block = bytearray()
        for chunk in self.iter_chunks(src):
            block += decompressor.decompress(chunk)
        if not decompressor.eof:
            raise EOFError("lz4 stream ended before the end-of-frame marker was reached")
        if decompressor.unused_data:
            raise RuntimeError(f"{len(decompressor.unused_data)} unexpected bytes after the lz4 frame")
        return bytes(block)
