"""
Gzip block compressor backed by the standard library.
"""

import gzip
import zlib
from typing import BinaryIO

from .base import StreamingCompressorBase


class GzipCompressor(StreamingCompressorBase):
    """RFC 1952 gzip members; readable by any gzip tool"""

    ALGO_NAME = "gzip"
    # gzip.BadGzipFile is an OSError subclass
    DECODE_ERRORS = (OSError, EOFError, zlib.error)

    def _write_stream(self, data: bytes, buffer: BinaryIO) -> None:
        # mtime=0 keeps the output identical for identical blocks
        with gzip.GzipFile(fileobj=buffer, mode='wb', mtime=0) as writer:
            writer.write(data)

    def _read_stream(self, src: BinaryIO) -> bytes:
        with gzip.GzipFile(fileobj=src, mode='rb') as reader:
            return reader.read()
