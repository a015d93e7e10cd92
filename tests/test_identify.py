"""
omniarc test suite
format identification tests
"""

import io
import bz2
import unittest

from omniarc.storage import (
    identify, default_registry, FormatRegistry, Compression,
    NoMatchError, ProbeError, CompressedArchive,
)
from .base import BaseTester, NonSeekable, has_format, memory_file


# signatures and the format each should be identified as
HEADERS = {
    '.gz': b'\x1f\x8b\x08',
    '.bz2': b'BZh',
    '.xz': b'\xfd7zXZ\x00',
    '.zz': b'\x78\x9c',
    '.zip': b'PK\x03\x04',
    '.rar': b'Rar!\x1a\x07\x01\x00',
    '.7z': b'7z\xbc\xaf\x27\x1c',
    '.zst': b'\x28\xb5\x2f\xfd',
    '.lz4': b'\x04\x22\x4d\x18',
    '.sz': b'\xff\x06\x00\x00sNaPpY',
}


class Exploding(Compression):
    """Format whose matcher fails."""
    name = '.boom'

    def match(self, filename, stream):
        raise ValueError('read error')


class Truncating(Compression):
    """Format whose matcher runs out of input."""
    name = '.short'

    def match(self, filename, stream):
        raise EOFError('unexpected end of input')


class TestIdentify(BaseTester):
    """Test format identification."""

    def _test_header(self, name, header):
        format, stream = identify('', io.BytesIO(header))
        self.assertEqual(format.name, name)
        self.assertEqual(stream.read(), header)

    def test_signatures(self):
        """Identify by signature alone."""
        for name, header in HEADERS.items():
            if not has_format(name):
                continue
            with self.subTest(format=name):
                self._test_header(name, header)

    def test_rar_v1_5(self):
        """Identify old-style rar signature."""
        if not has_format('rar'):
            self.skipTest('rar support not available')
        format, _ = identify('', io.BytesIO(b'Rar!\x1a\x07\x00'))
        self.assertEqual(format.name, '.rar')

    def test_truncated(self):
        """Signatures ending in a zero byte don't match without it."""
        for header in (b'\xfd7zXZ\x00', b'Rar!\x1a\x07\x00', b'Rar!\x1a\x07\x01\x00'):
            with self.subTest(header=header):
                with self.assertRaises(NoMatchError):
                    identify('', io.BytesIO(header[:-1]))

    def test_name_flag(self):
        """Name matches independently of contents."""
        for format in default_registry().all():
            with self.subTest(format=format.name):
                result = format.match(f'file{format.name}', io.BytesIO(b''))
                self.assertTrue(result.by_name)
                self.assertFalse(result.by_stream)

    def test_no_match(self):
        """Empty, very short and plain text streams are not identified."""
        for data in (b'', b'x', b'This is just some text.\n'):
            with self.subTest(data=data):
                with self.assertRaises(NoMatchError) as cm:
                    identify('', io.BytesIO(data))
                # the stream is still readable from the start
                self.assertEqual(cm.exception.stream.read(), data)

    def test_by_name(self):
        """Identify by name without a stream."""
        for name in ('notes.txt.gz', 'archive.zip', 'data.bz2'):
            with self.subTest(name=name):
                format, _ = identify(name, None)
                self.assertTrue(name.endswith(format.name))

    def test_compressed_archive_by_name(self):
        """Identify a compressed tar by name."""
        format, _ = identify('backup.tar.gz', None)
        self.assertIsInstance(format, CompressedArchive)
        self.assertEqual(format.name, '.tar.gz')

    def test_compressed_archive_by_content(self):
        """Identify a compressed tar by content."""
        registry = default_registry()
        archive = CompressedArchive(
            compression=registry.get('gz'), archival=registry.get('tar'),
        )
        sink = io.BytesIO()
        archive.archive(sink, [memory_file('payload.bin', self.payload)])
        format, stream = identify('', io.BytesIO(sink.getvalue()))
        self.assertEqual(format.name, '.tar.gz')
        self.assertEqual(stream.read(), sink.getvalue())

    def test_compressed_content(self):
        """Identify compressed data by signature."""
        registry = default_registry()
        for format in registry.all():
            if not format.is_compression() or format.name == '.br':
                continue
            with self.subTest(format=format.name):
                sink = io.BytesIO()
                with format.open_writer(sink) as writer:
                    writer.write(self.payload)
                found, stream = identify('', io.BytesIO(sink.getvalue()))
                self.assertIs(found, format)
                self.assertEqual(stream.read(), sink.getvalue())

    def test_non_seekable(self):
        """Identification on a non-seekable stream keeps all data."""
        data = bz2.compress(self.payload)
        format, stream = identify('', NonSeekable(data))
        self.assertEqual(format.name, '.bz2')
        self.assertEqual(stream.read(), data)

    def test_probe_error(self):
        """Failing matcher aborts identification."""
        registry = FormatRegistry([Exploding()])
        with self.assertRaises(ProbeError) as cm:
            identify('', io.BytesIO(b'data'), registry)
        self.assertEqual(cm.exception.format_name, '.boom')

    def test_end_of_input(self):
        """Matcher running out of input counts as no match."""
        registry = FormatRegistry([Truncating()])
        with self.assertRaises(NoMatchError):
            identify('', io.BytesIO(b'data'), registry)


if __name__ == '__main__':
    unittest.main()
