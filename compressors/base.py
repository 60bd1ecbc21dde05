"""
Shared streaming logic for block compressors.
"""

import io
import logging
from typing import BinaryIO, Tuple, Type

from base_classes import Compressor
from resilience_patterns import DecodeError

logger = logging.getLogger(__name__)

# Read size used when pulling compressed bytes from a source stream
READ_CHUNK_SIZE = 64 * 1024


class StreamingCompressorBase(Compressor):
    """
    Compressor built from a stream writer and a stream reader.

    Subclasses implement ``_write_stream`` (compress, flush and finalize into
    a buffer) and ``_read_stream`` (decompress a whole source stream), and
    list the library exceptions that mean "this input is not valid" in
    ``DECODE_ERRORS``. Those are reported as DecodeError so callers never see
    codec-specific exception types.
    """

    DECODE_ERRORS: Tuple[Type[BaseException], ...] = (OSError, EOFError)

    def compress_data(self, data: bytes) -> io.BytesIO:
        buffer = io.BytesIO()
        self._write_stream(data, buffer)
        buffer.seek(0)
        logger.debug(f"{self.ALGO_NAME}: compressed {len(data)} -> {buffer.getbuffer().nbytes} bytes")
        return buffer

    def decompress_data(self, src: BinaryIO) -> bytes:
        try:
            return self._read_stream(src)
        except self.DECODE_ERRORS as e:
            raise DecodeError(self.ALGO_NAME, cause=e) from e

    def _write_stream(self, data: bytes, buffer: BinaryIO) -> None:
        raise NotImplementedError

    def _read_stream(self, src: BinaryIO) -> bytes:
        raise NotImplementedError

    @staticmethod
    def iter_chunks(src: BinaryIO, chunk_size: int = READ_CHUNK_SIZE):
        """Yield successive reads from ``src`` until it is exhausted"""
        return iter(lambda: src.read(chunk_size), b'')
