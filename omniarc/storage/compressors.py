"""
omniarc.storage.compressors - single-stream compression formats

(c) 2019--2024 Rob Hagemans
licence: https://opensource.org/licenses/MIT
"""

import gzip
import bz2
import lzma
import zlib

from ..base import safe_import
from .magic import Magic, MatchResult, match_name
from .formats import Compression
from .streams import read_at_most, EncoderStream, DecoderStream

zstandard = safe_import('zstandard')
brotli = safe_import('brotli')
lz4_frame = safe_import('lz4.frame')
snappy = safe_import('snappy')


class Compressor(Compression):
    """Compression format recognised by name and signature."""

    # signature at start of stream; None to match on name only
    magic = None

    def __init__(self, *, compression_level=None):
        if compression_level is not None:
            self.compression_level = compression_level

    def match(self, filename, stream):
        return MatchResult(
            by_name=match_name(filename, self.name),
            by_stream=self.magic is not None and self.magic.fits(stream),
        )


class Gz(Compressor):
    name = '.gz'
    magic = Magic(b'\x1f\x8b\x08')
    compression_level = 9

    def open_writer(self, sink):
        # empty filename: don't record the sink's name in the header
        return gzip.GzipFile(
            filename='', fileobj=sink, mode='wb',
            compresslevel=self.compression_level,
        )

    def open_reader(self, source):
        return gzip.GzipFile(fileobj=source, mode='rb')


class Bz2(Compressor):
    name = '.bz2'
    magic = Magic(b'BZh')
    compression_level = 9

    def open_writer(self, sink):
        return bz2.BZ2File(
            sink, mode='wb', compresslevel=self.compression_level
        )

    def open_reader(self, source):
        return bz2.BZ2File(source, mode='rb')


class Xz(Compressor):
    name = '.xz'
    magic = Magic(b'\xfd7zXZ\x00')
    # lzma preset
    compression_level = 6

    def open_writer(self, sink):
        return lzma.LZMAFile(
            sink, mode='wb', format=lzma.FORMAT_XZ,
            preset=self.compression_level,
        )

    def open_reader(self, source):
        return lzma.LZMAFile(source, mode='rb', format=lzma.FORMAT_XZ)


class Zlib(Compressor):
    name = '.zz'
    compression_level = zlib.Z_DEFAULT_COMPRESSION

    def match(self, filename, stream):
        by_stream = False
        if stream is not None:
            header = read_at_most(stream, 2)
            # deflate with 32K window, header checksum must divide by 31
            by_stream = (
                len(header) == 2 and header[0] == 0x78
                and (header[0] * 256 + header[1]) % 31 == 0
            )
        return MatchResult(
            by_name=match_name(filename, self.name), by_stream=by_stream,
        )

    def open_writer(self, sink):
        encoder = zlib.compressobj(self.compression_level)
        return EncoderStream(sink, encoder.compress, encoder.flush)

    def open_reader(self, source):
        decoder = zlib.decompressobj()
        return DecoderStream(
            source, decoder.decompress, lambda: decoder.eof
        )


FORMATS = [Gz, Bz2, Xz, Zlib]


if zstandard:

    class Zstd(Compressor):
        name = '.zst'
        magic = Magic(b'\x28\xb5\x2f\xfd')
        compression_level = 3

        def open_writer(self, sink):
            compressor = zstandard.ZstdCompressor(level=self.compression_level)
            return compressor.stream_writer(sink, closefd=False)

        def open_reader(self, source):
            decompressor = zstandard.ZstdDecompressor()
            return decompressor.stream_reader(source, closefd=False)

    FORMATS.append(Zstd)


if brotli:

    class Brotli(Compressor):
        """Brotli streams have no signature, only the name is matched."""

        name = '.br'

        def __init__(self, *, quality=11):
            self.quality = quality

        def open_writer(self, sink):
            encoder = brotli.Compressor(quality=self.quality)
            return EncoderStream(sink, encoder.process, encoder.finish)

        def open_reader(self, source):
            decoder = brotli.Decompressor()
            return DecoderStream(source, decoder.process, decoder.is_finished)

    FORMATS.append(Brotli)


if lz4_frame:

    class Lz4(Compressor):
        name = '.lz4'
        magic = Magic(b'\x04\x22\x4d\x18')
        compression_level = 0

        def open_writer(self, sink):
            return lz4_frame.LZ4FrameFile(
                sink, mode='wb', compression_level=self.compression_level
            )

        def open_reader(self, source):
            return lz4_frame.LZ4FrameFile(source, mode='rb')

    FORMATS.append(Lz4)


if snappy:

    class Sz(Compressor):
        """Snappy framing format."""

        name = '.sz'
        magic = Magic(b'\xff\x06\x00\x00sNaPpY')

        def open_writer(self, sink):
            compressor = snappy.StreamCompressor()
            return EncoderStream(sink, compressor.add_chunk, compressor.flush)

        def open_reader(self, source):
            # framing has no end marker
            decompressor = snappy.StreamDecompressor()
            return DecoderStream(source, decompressor.decompress)

    FORMATS.append(Sz)
