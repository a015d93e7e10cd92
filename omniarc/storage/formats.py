"""
omniarc.storage.formats - format descriptor base classes

(c) 2019--2024 Rob Hagemans
licence: https://opensource.org/licenses/MIT
"""

import logging
import posixpath

from .magic import MatchResult, match_name
from .files import SkipList, file_is_included
from .errors import (
    UnsupportedError, EntryError, CancelledError, SkipDir, StopExtraction,
    check_cancelled, is_cancelled,
)


class Format:
    """
    Base class for format descriptors.

    A descriptor is a named bundle of capabilities. Which capabilities it
    offers is answered by the can_* methods.
    """

    # unique name of the format, e.g. '.gz'
    name = ''

    def __repr__(self):
        return f'<{type(self).__name__} {self.name!r}>'

    def match(self, filename, stream):
        """
        Check if filename and/or stream are recognised as this format.
        Either may be empty. Reads only as much of the stream as needed.
        """
        return MatchResult(by_name=match_name(filename, self.name))

    # capability queries

    def can_compress(self):
        """Format provides open_writer()."""
        return False

    def can_decompress(self):
        """Format provides open_reader()."""
        return False

    def can_archive(self):
        """Format provides archive()."""
        return False

    def can_archive_async(self):
        """Format provides archive_async()."""
        return False

    def can_extract(self):
        """Format provides extract()."""
        return False

    def can_insert(self):
        """Format provides insert()."""
        return False

    def is_compression(self):
        """Format is a single-stream compression format."""
        return self.can_compress() and self.can_decompress()

    def is_archival(self):
        """Format is a multi-file archive format."""
        return self.can_archive() and self.can_extract()


class Compression(Format):
    """Single-stream compression format."""

    def can_compress(self):
        return True

    def can_decompress(self):
        return True

    def open_writer(self, sink):
        """
        Get a writable stream that compresses into sink.
        Closing it finishes the compressed stream; sink stays open.
        """
        raise NotImplementedError()

    def open_reader(self, source):
        """Get a readable stream that decompresses from source."""
        raise NotImplementedError()


class Archival(Format):
    """Multi-file archive format."""

    def __init__(self, *, continue_on_error=False):
        """
        continue_on_error: log and skip entries that fail to be read or written
        """
        self.continue_on_error = continue_on_error

    def can_archive(self):
        return True

    def can_archive_async(self):
        return True

    def can_extract(self):
        return True

    def archive(self, output, files, cancel=None):
        """Write File entries to output as a new archive."""
        raise NotImplementedError()

    def archive_async(self, output, queue, cancel=None):
        """
        Write File entries to output as they arrive on a queue.
        A None item on the queue ends the archive.
        """
        return self.archive(output, iter(queue.get, None), cancel=cancel)

    def extract(self, source, paths, handler, cancel=None):
        """
        Call handler on each entry in the archive, in archive order.

        paths: entry names (and their descendants) to include; None for all
        handler: callable taking a File; may raise SkipDir or StopExtraction
        """
        raise NotImplementedError()

    def _write_entries(self, files, write_one, cancel):
        """Write File entries one by one with write_one(file)."""
        for index, file in enumerate(files):
            check_cancelled(cancel)
            try:
                write_one(file)
            except Exception as e:
                self._entry_failed(e, cancel, 'writing file', index, file.file_name)

    def _handle_entries(self, entries, paths, handler, cancel):
        """
        Pass File entries to handler, applying the path filter and skip list.

        entries: iterable of File, consumed lazily so that streaming formats
            keep the current entry readable while the handler runs
        """
        skip_dirs = SkipList()
        for index, file in enumerate(entries):
            check_cancelled(cancel)
            name = file.file_name
            if not file_is_included(paths, name):
                continue
            if file_is_included(skip_dirs, name):
                continue
            try:
                handler(file)
            except SkipDir:
                # a directory skips itself, a file skips its parent
                if file.is_dir():
                    skip_dirs.add(name)
                else:
                    skip_dirs.add(posixpath.dirname(name) + '/')
            except StopExtraction:
                logging.debug('Extraction stopped at %s', name)
                return
            except Exception as e:
                self._entry_failed(e, cancel, 'handling file', index, name)

    def _entry_failed(self, error, cancel, action, index, name):
        """Log and carry on if so configured; otherwise raise with context."""
        if isinstance(error, CancelledError):
            raise error
        if self.continue_on_error and not is_cancelled(cancel):
            logging.warning('%s %d: %s: %s', action, index, name, error)
            return
        raise EntryError(
            f'{action} {index}: {name}: {error}', index=index, name=name
        ) from error


class Inserter(Format):
    """Archive format that can append to an existing archive."""

    def can_insert(self):
        return True

    def insert(self, into, files, cancel=None):
        """Append File entries to the seekable archive stream `into`."""
        raise NotImplementedError()


class ReadOnlyArchival(Archival):
    """Archive format that can be read but not written."""

    def can_archive_async(self):
        return False

    def archive(self, output, files, cancel=None):
        raise UnsupportedError(f'Creating {self.name} archives is not supported.')

    def archive_async(self, output, queue, cancel=None):
        raise UnsupportedError(f'Creating {self.name} archives is not supported.')
