"""
omniarc test suite
compressed archive tests
"""

import io
import unittest

from omniarc.storage import (
    CompressedArchive, default_registry, ConfigurationError, UnsupportedError,
)
from .base import BaseTester, Collector, has_format, memory_file


class TestCompressedArchive(BaseTester):
    """Test archives in compressed streams."""

    def _composite(self, compression, archival):
        registry = default_registry()
        return CompressedArchive(
            compression=registry.get(compression) if compression else None,
            archival=registry.get(archival) if archival else None,
        )

    def test_name(self):
        """Name combines archive and compression."""
        self.assertEqual(self._composite('gz', 'tar').name, '.tar.gz')
        self.assertEqual(self._composite('xz', None).name, '.xz')
        self.assertEqual(self._composite(None, 'zip').name, '.zip')

    def test_no_layers(self):
        """Composite without any layer is a configuration error."""
        with self.assertRaises(ConfigurationError):
            CompressedArchive()

    def test_capabilities(self):
        """Capabilities follow the layers."""
        both = self._composite('bz2', 'tar')
        self.assertTrue(both.can_compress())
        self.assertTrue(both.can_extract())
        self.assertFalse(both.can_insert())
        archive_only = self._composite(None, 'tar')
        self.assertFalse(archive_only.can_decompress())
        self.assertTrue(archive_only.can_archive())
        compression_only = self._composite('gz', None)
        self.assertFalse(compression_only.can_extract())

    def _test_round_trip(self, compression):
        if not has_format(compression):
            self.skipTest(f'{compression} support not available')
        format = self._composite(compression, 'tar')
        output = io.BytesIO()
        format.archive(output, [
            memory_file('payload.bin', self.payload),
            memory_file('other.txt', b'other'),
        ])
        collector = Collector()
        format.extract(io.BytesIO(output.getvalue()), None, collector)
        self.assertEqual(collector.names, ['payload.bin', 'other.txt'])
        self.assertEqual(collector.contents['payload.bin'], self.payload)

    def test_tar_gz(self):
        """Test gzip compressed tar."""
        self._test_round_trip('gz')

    def test_tar_bz2(self):
        """Test bzip2 compressed tar."""
        self._test_round_trip('bz2')

    def test_tar_xz(self):
        """Test xz compressed tar."""
        self._test_round_trip('xz')

    def test_tar_zst(self):
        """Test zstandard compressed tar."""
        self._test_round_trip('zst')

    def test_missing_layer(self):
        """Operations of a missing layer are not supported."""
        with self.assertRaises(UnsupportedError):
            self._composite('gz', None).extract(io.BytesIO(), None, Collector())
        with self.assertRaises(UnsupportedError):
            self._composite(None, 'tar').open_reader(io.BytesIO())

    def test_insert(self):
        """Appending to a compressed archive is not supported."""
        with self.assertRaises(UnsupportedError):
            self._composite('gz', 'tar').insert(io.BytesIO(), [])

    def test_match(self):
        """Match by name and through the compression layer."""
        format = self._composite('gz', 'tar')
        self.assertTrue(format.match('backup.tar.gz', None).by_name)
        output = io.BytesIO()
        format.archive(output, [memory_file('a.txt', b'a')])
        result = format.match('', io.BytesIO(output.getvalue()))
        self.assertTrue(result.by_stream)

    def test_match_uncompressed_archive(self):
        """A plain tar is not a compressed tar."""
        tar = default_registry().get('tar')
        output = io.BytesIO()
        tar.archive(output, [memory_file('a.txt', b'a')])
        format = self._composite('gz', 'tar')
        result = format.match('plain.tar', io.BytesIO(output.getvalue()))
        self.assertFalse(result.matched)

    def test_match_compressed_text(self):
        """Compressed data that is not an archive is not a compressed tar."""
        gz = default_registry().get('gz')
        output = io.BytesIO()
        with gz.open_writer(output) as writer:
            writer.write(b'This is just some text.\n')
        format = self._composite('gz', 'tar')
        result = format.match('', io.BytesIO(output.getvalue()))
        self.assertFalse(result.matched)

    def test_match_archive_only(self):
        """Without a compression layer, the archive layer decides."""
        format = self._composite(None, 'tar')
        self.assertTrue(format.match('x.tar', None).by_name)
        self.assertFalse(format.match('x.txt', None).matched)


if __name__ == '__main__':
    unittest.main()
