"""
omniarc.storage.uselibarchive - archive formats supported by libarchive

(c) 2019--2024 Rob Hagemans
licence: https://opensource.org/licenses/MIT
"""

import io
import stat
import logging
import posixpath
from functools import partial

from ..base import safe_import
from .magic import Magic, MatchResult, match_name
from .formats import Archival, ReadOnlyArchival
from .files import File, FileInfo
from .streams import read_at_most, is_seekable
from .errors import FileFormatError, StructuralError, UnsupportedError

libarchive = safe_import('libarchive')


# read size for copying entry contents into the writer
_CHUNK_SIZE = 64 * 1024


if libarchive:

    class LibArchiveFormat(Archival):
        """Archive format read through libarchive."""

        # libarchive writer format name; empty if writing is not supported
        libarchive_format = ''
        # source must be seekable for extraction
        needs_seek = False

        def __init__(self, *, password='', continue_on_error=False):
            """
            password: passphrase for encrypted archives
            continue_on_error: log and skip entries that fail to be read or written
            """
            super().__init__(continue_on_error=continue_on_error)
            self.password = password

        def extract(self, source, paths, handler, cancel=None):
            if self.needs_seek and not is_seekable(source):
                raise StructuralError(
                    f'Reading a {self.name} archive requires a seekable stream.'
                )
            try:
                with libarchive.stream_reader(
                        source, passphrase=self.password or None
                    ) as archive:
                    self._handle_entries(
                        _iter_entries(archive), paths, handler, cancel
                    )
            except libarchive.ArchiveError as e:
                raise FileFormatError(f'Reading {self.name} archive: {e}') from e

        def archive(self, output, files, cancel=None):
            with libarchive.custom_writer(
                    output.write, self.libarchive_format
                ) as archive:
                self._write_entries(
                    files, partial(_write_entry, archive), cancel
                )


    def _iter_entries(archive):
        """Generate File entries from a libarchive reader."""
        for entry in archive:
            name = entry.pathname
            info = FileInfo(
                name=posixpath.basename(name.rstrip('/')),
                size=entry.size or 0,
                mode=entry.mode,
                mtime=entry.mtime or 0,
            )
            opener = None
            if entry.isreg:
                # blocks can only be read while the reader is on this entry
                opener = partial(_read_entry, entry)
            yield File(
                info, name,
                header=entry, link_target=entry.linkpath or '', opener=opener,
            )


    def _read_entry(entry):
        """Read entry contents into a stream."""
        return io.BytesIO(b''.join(entry.get_blocks()))


    def _write_entry(archive, file):
        """Add a File to a libarchive writer."""
        logging.debug("Writing '%s' to archive.", file.file_name)
        if file.is_dir():
            archive.add_file_from_memory(
                file.file_name, 0, b'',
                filetype=stat.S_IFDIR, permission=file.permissions,
                mtime=file.mtime,
            )
        elif file.is_regular():
            with file.open() as instream:
                archive.add_file_from_memory(
                    file.file_name, file.size,
                    iter(partial(instream.read, _CHUNK_SIZE), b''),
                    filetype=stat.S_IFREG, permission=file.permissions,
                    mtime=file.mtime,
                )
        else:
            raise UnsupportedError(
                f"'{file.file_name}': cannot store {stat.filemode(file.mode)} in archive"
            )


    class Rar(ReadOnlyArchival, LibArchiveFormat):
        """RAR archive. Proprietary format; reading only."""

        name = '.rar'
        magic_v1_5 = Magic(b'Rar!\x1a\x07\x00')
        magic_v5_0 = Magic(b'Rar!\x1a\x07\x01\x00')

        def match(self, filename, stream):
            by_stream = False
            if stream is not None:
                # allow for the longer of the two signatures
                header = read_at_most(stream, len(self.magic_v5_0))
                by_stream = (
                    self.magic_v1_5.matches(header)
                    or self.magic_v5_0.matches(header)
                )
            return MatchResult(
                by_name=match_name(filename, self.name), by_stream=by_stream,
            )


    class SevenZip(LibArchiveFormat):
        """7-Zip archive. Reading requires a seekable stream."""

        name = '.7z'
        magic = Magic(b'7z\xbc\xaf\x27\x1c')
        libarchive_format = '7zip'
        needs_seek = True

        def match(self, filename, stream):
            return MatchResult(
                by_name=match_name(filename, self.name),
                by_stream=self.magic.fits(stream),
            )


    FORMATS = [Rar, SevenZip]

else:
    FORMATS = []
