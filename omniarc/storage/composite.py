"""
omniarc.storage.composite - archive inside a compressed stream

(c) 2019--2024 Rob Hagemans
licence: https://opensource.org/licenses/MIT
"""

from .formats import Format
from .streams import RewindableStream
from .errors import ConfigurationError, UnsupportedError


class CompressedArchive(Format):
    """
    Composite format, e.g. .tar.gz, made of a compression layer and an
    archival layer. Either layer may be absent, but not both.
    """

    def __init__(self, compression=None, archival=None):
        if compression is None and archival is None:
            raise ConfigurationError(
                'Composite format needs a compression or archival layer.'
            )
        self.compression = compression
        self.archival = archival

    @property
    def name(self):
        """Archival name followed by compression name, e.g. .tar.gz"""
        names = (
            _layer.name for _layer in (self.archival, self.compression)
            if _layer is not None
        )
        return ''.join(names)

    def __repr__(self):
        return (
            f'<{type(self).__name__} {self.name!r} '
            f'compression={self.compression!r} archival={self.archival!r}>'
        )

    def match(self, filename, stream):
        """
        Match compression layer first, then archival on the decompressed stream.
        Matches only if every layer that is present matches.
        """
        if self.compression is None:
            return self.archival.match(filename, stream)
        if stream is not None:
            # both layers read from the start
            stream = RewindableStream(stream)
        result = self.compression.match(filename, stream)
        if not result.matched or self.archival is None:
            return result
        if stream is None or not result.by_stream:
            # not compressed with this layer, archive can only match by name
            archived = self.archival.match(filename, None)
        else:
            stream.rewind()
            with self.compression.open_reader(stream) as decompressed:
                archived = self.archival.match(filename, decompressed)
        if not archived.matched:
            return archived
        return result | archived

    # capabilities depend on the layers that are present

    def can_compress(self):
        return self.compression is not None and self.compression.can_compress()

    def can_decompress(self):
        return self.compression is not None and self.compression.can_decompress()

    def can_archive(self):
        return self.archival is not None and self.archival.can_archive()

    def can_archive_async(self):
        return self.archival is not None and self.archival.can_archive_async()

    def can_extract(self):
        return self.archival is not None and self.archival.can_extract()

    def can_insert(self):
        return False

    def _require(self, layer, kind):
        if layer is None:
            raise UnsupportedError(f'{self.name} has no {kind} layer.')
        return layer

    def open_writer(self, sink):
        """Compressing writer of the compression layer."""
        return self._require(self.compression, 'compression').open_writer(sink)

    def open_reader(self, source):
        """Decompressing reader of the compression layer."""
        return self._require(self.compression, 'compression').open_reader(source)

    def archive(self, output, files, cancel=None):
        archival = self._require(self.archival, 'archival')
        if self.compression is None:
            return archival.archive(output, files, cancel=cancel)
        with self.compression.open_writer(output) as compressed:
            archival.archive(compressed, files, cancel=cancel)

    def archive_async(self, output, queue, cancel=None):
        archival = self._require(self.archival, 'archival')
        if self.compression is None:
            return archival.archive_async(output, queue, cancel=cancel)
        with self.compression.open_writer(output) as compressed:
            archival.archive_async(compressed, queue, cancel=cancel)

    def extract(self, source, paths, handler, cancel=None):
        archival = self._require(self.archival, 'archival')
        if self.compression is None:
            return archival.extract(source, paths, handler, cancel=cancel)
        with self.compression.open_reader(source) as decompressed:
            archival.extract(decompressed, paths, handler, cancel=cancel)

    def insert(self, into, files, cancel=None):
        raise UnsupportedError(
            f'Inserting into compressed archive {self.name} is not supported.'
        )
