"""
Unit tests for the block compression pipeline
=============================================

Tests for pipeline/stages/compression.py including:
- Round trips for every registered method and 'none'
- Corruption detection (decode vs integrity failures)
- Unsupported methods failing before any work is done
- Module-level helpers bound to the global registry
"""

import io
import os
import random
from unittest.mock import MagicMock, Mock, patch

import pytest

from compressors import get_compressor_registry
from compressors.registry import CompressorRegistry
from pipeline.stages.compression import (
    CompressionPipeline, compress_data, decompress_and_verify
)
from resilience_patterns import (
    DecodeError, IntegrityMismatchError, UnsupportedAlgorithmError,
    NonRetryableError, RetryableError
)
from pipeline_configs import IntegrityConfig
from secure_utils import block_checksum


ALL_METHODS = get_compressor_registry().supported_methods()

LARGE_BLOCK = os.urandom(768 * 1024) + b"backup store block " * 40000  # > 1MB


@pytest.fixture
def pipeline():
    return CompressionPipeline()


class TestRoundTrip:
    """decompress_and_verify(compress_data(data)) returns data"""

    @pytest.mark.parametrize("method", ALL_METHODS)
    @pytest.mark.parametrize("data", [b"", b"x", b"hello backup world " * 64],
                             ids=["empty", "single-byte", "text"])
    def test_roundtrip(self, pipeline, method, data):
        stream = pipeline.compress_data(method, data)
        verified = pipeline.decompress_and_verify(method, stream, block_checksum(data))

        assert verified.read() == data

    @pytest.mark.slow
    @pytest.mark.parametrize("method", ALL_METHODS)
    def test_roundtrip_large_block(self, pipeline, method):
        assert len(LARGE_BLOCK) > 1024 * 1024

        stream = pipeline.compress_data(method, LARGE_BLOCK)
        verified = pipeline.decompress_and_verify(method, stream, block_checksum(LARGE_BLOCK))

        assert verified.getvalue() == LARGE_BLOCK

    @pytest.mark.parametrize("method", ALL_METHODS)
    def test_compressed_stream_is_rewound_and_rereadable(self, pipeline, method):
        """A failed send can be retried from the start of the stream"""
        data = b"resend me " * 30
        stream = pipeline.compress_data(method, data)

        assert stream.tell() == 0
        first = stream.read()
        stream.seek(0)
        assert stream.read() == first

    @pytest.mark.parametrize("method", ALL_METHODS)
    def test_verified_stream_is_independent(self, pipeline, method):
        """Each verification returns a fresh stream positioned at 0"""
        data = b"independent " * 10
        compressed = pipeline.compress_data(method, data).getvalue()
        checksum = block_checksum(data)

        first = pipeline.decompress_and_verify(method, io.BytesIO(compressed), checksum)
        first.read()
        second = pipeline.decompress_and_verify(method, io.BytesIO(compressed), checksum)

        assert second.tell() == 0
        assert second.read() == data

    def test_none_is_passthrough(self, pipeline):
        data = b"stored verbatim"
        assert pipeline.compress_data("none", data).getvalue() == data

    @pytest.mark.parametrize("method", ["gzip", "lz4"])
    def test_accepts_raw_bytes_source(self, pipeline, method):
        data = b"raw source " * 5
        compressed = pipeline.compress_data(method, data).getvalue()

        assert pipeline.decompress_and_verify(method, compressed, block_checksum(data)).read() == data
        assert pipeline.decompress_and_verify(method, bytearray(compressed), block_checksum(data)).read() == data


class TestCorruptionDetection:
    """Damaged blocks never come back as wrong bytes"""

    DATA = b"Corruption must never go unnoticed. " * 8

    @pytest.mark.parametrize("method", ALL_METHODS)
    def test_single_byte_flip(self, pipeline, method):
        """Every single-byte flip is a DecodeError, an IntegrityMismatchError, or harmless"""
        compressed = pipeline.compress_data(method, self.DATA).getvalue()
        checksum = block_checksum(self.DATA)

        for position in range(len(compressed)):
            damaged = bytearray(compressed)
            damaged[position] ^= 0xFF
            try:
                result = pipeline.decompress_and_verify(method, io.BytesIO(bytes(damaged)), checksum)
            except (DecodeError, IntegrityMismatchError):
                continue
            # Flips in fields the codec ignores (e.g. gzip OS byte) are harmless
            assert result.read() == self.DATA, f"wrong bytes returned for flip at {position}"

    @pytest.mark.parametrize("method", ALL_METHODS)
    def test_random_multi_byte_damage(self, pipeline, method):
        rng = random.Random(1234)
        compressed = pipeline.compress_data(method, self.DATA).getvalue()
        checksum = block_checksum(self.DATA)

        for _ in range(20):
            damaged = bytearray(compressed)
            for position in rng.sample(range(len(damaged)), k=min(3, len(damaged))):
                damaged[position] = rng.randrange(256)
            try:
                result = pipeline.decompress_and_verify(method, io.BytesIO(bytes(damaged)), checksum)
            except (DecodeError, IntegrityMismatchError):
                continue
            assert result.read() == self.DATA

    @pytest.mark.parametrize("method", [m for m in ALL_METHODS if m != "none"])
    def test_truncated_block_is_decode_error(self, pipeline, method):
        """A block cut short is a retryable decode failure for every codec"""
        data = b"truncate this block " * 500
        compressed = pipeline.compress_data(method, data).getvalue()

        with pytest.raises(DecodeError) as exc_info:
            pipeline.decompress_and_verify(method, compressed[:len(compressed) // 2], block_checksum(data))

        assert not isinstance(exc_info.value, IntegrityMismatchError)
        assert isinstance(exc_info.value, RetryableError)

    def test_none_corruption_is_integrity_error(self, pipeline):
        """Passthrough blocks can only fail verification"""
        damaged = b"X" + self.DATA[1:]

        with pytest.raises(IntegrityMismatchError) as exc_info:
            pipeline.decompress_and_verify("none", io.BytesIO(damaged), block_checksum(self.DATA))

        assert exc_info.value.expected == block_checksum(self.DATA)
        assert exc_info.value.actual == block_checksum(damaged)
        assert exc_info.value.method == "none"

    @pytest.mark.parametrize("method", ALL_METHODS)
    def test_wrong_checksum_is_integrity_error(self, pipeline, method):
        """Intact stream with the wrong expected checksum"""
        stream = pipeline.compress_data(method, self.DATA)

        with pytest.raises(IntegrityMismatchError) as exc_info:
            pipeline.decompress_and_verify(method, stream, block_checksum(b"some other block"))

        assert exc_info.value.error_code == "INTEGRITY_MISMATCH"

    def test_checksum_comparison_is_exact(self, pipeline):
        """Upper-cased checksums do not match"""
        stream = pipeline.compress_data("gzip", self.DATA)

        with pytest.raises(IntegrityMismatchError):
            pipeline.decompress_and_verify("gzip", stream, block_checksum(self.DATA).upper())

    def test_decode_error_is_distinct_from_integrity_error(self, pipeline):
        with pytest.raises(DecodeError) as exc_info:
            pipeline.decompress_and_verify("gzip", io.BytesIO(b"not gzip"), block_checksum(b""))

        assert not isinstance(exc_info.value, IntegrityMismatchError)
        assert isinstance(exc_info.value, RetryableError)

    def test_integrity_error_is_not_retryable(self, pipeline):
        with pytest.raises(NonRetryableError):
            pipeline.decompress_and_verify("none", io.BytesIO(b"a"), block_checksum(b"b"))

    def test_mismatch_is_logged(self, pipeline, caplog):
        stream = pipeline.compress_data("lz4", self.DATA)

        with pytest.raises(IntegrityMismatchError):
            pipeline.decompress_and_verify("lz4", stream, "0" * 64)

        assert "Checksum mismatch for lz4 block" in caplog.text


class TestUnsupportedMethods:
    """Unknown names fail fast"""

    def test_compress_unknown_method(self, pipeline):
        with pytest.raises(UnsupportedAlgorithmError) as exc_info:
            pipeline.compress_data("bogus", b"data")

        assert exc_info.value.method == "bogus"
        assert "unsupported compression method: bogus" in str(exc_info.value)

    def test_decompress_unknown_method_reads_nothing(self, pipeline):
        src = MagicMock()

        with pytest.raises(UnsupportedAlgorithmError) as exc_info:
            pipeline.decompress_and_verify("bogus", src, block_checksum(b"data"))

        src.read.assert_not_called()
        assert "unsupported decompression method: bogus" in str(exc_info.value)

    def test_compress_unknown_method_does_no_work(self):
        registry = Mock(spec=CompressorRegistry)
        registry.lookup.return_value = None
        pipeline = CompressionPipeline(registry=registry)

        with pytest.raises(UnsupportedAlgorithmError):
            pipeline.compress_data("bogus", b"data")
        registry.lookup.assert_called_once_with("bogus")

    def test_method_names_are_case_sensitive(self, pipeline):
        with pytest.raises(UnsupportedAlgorithmError):
            pipeline.compress_data("GZIP", b"data")


class TestInjectedRegistry:
    """Pipelines can be bound to their own registry"""

    def test_uses_given_registry(self):
        codec = Mock()
        codec.compress_data.return_value = io.BytesIO(b"compressed")
        registry = Mock(spec=CompressorRegistry)
        registry.lookup.return_value = codec

        result = CompressionPipeline(registry=registry).compress_data("custom", b"data")

        assert result.getvalue() == b"compressed"
        codec.compress_data.assert_called_once_with(b"data")

    def test_codec_decode_errors_propagate(self):
        codec = Mock()
        codec.decompress_data.side_effect = DecodeError("custom", cause=ValueError("bad frame"))
        registry = Mock(spec=CompressorRegistry)
        registry.lookup.return_value = codec

        with pytest.raises(DecodeError) as exc_info:
            CompressionPipeline(registry=registry).decompress_and_verify("custom", io.BytesIO(b""), "")

        assert isinstance(exc_info.value.cause, ValueError)


class TestConfiguredPipeline:
    """Defaults taken from IntegrityConfig"""

    def test_compress_block_uses_default_method(self):
        pipeline = CompressionPipeline(config=IntegrityConfig(default_compression_method="zstd"))
        data = b"default method block " * 20

        method, stream, checksum = pipeline.compress_block(data)

        assert method == "zstd"
        assert checksum == block_checksum(data)
        assert pipeline.decompress_and_verify(method, stream, checksum).read() == data

    def test_compress_block_unknown_default(self):
        pipeline = CompressionPipeline(config=IntegrityConfig(default_compression_method="xz2"))

        with pytest.raises(UnsupportedAlgorithmError):
            pipeline.compress_block(b"data")

    def test_file_checksum_uses_configured_chunk_size(self, tmp_path):
        path = tmp_path / "block.blk"
        path.write_bytes(b"abc")
        pipeline = CompressionPipeline(config=IntegrityConfig(checksum_chunk_size=1))

        with patch("pipeline.stages.compression.file_checksum", return_value="digest") as mock_checksum:
            assert pipeline.file_checksum(path) == "digest"

        mock_checksum.assert_called_once_with(path, chunk_size=1)


class TestModuleHelpers:
    """Module-level functions use the global registry"""

    def test_compress_and_verify(self):
        data = b"module level helpers"
        stream = compress_data("zstd", data)
        assert decompress_and_verify("zstd", stream, block_checksum(data)).read() == data

    def test_unknown_method(self):
        with pytest.raises(UnsupportedAlgorithmError):
            compress_data("bogus", b"")
        with pytest.raises(UnsupportedAlgorithmError):
            decompress_and_verify("bogus", io.BytesIO(b""), "")
