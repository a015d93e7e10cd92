"""
omniarc.storage.filesystem - archives, directories and files as read-only file systems

(c) 2019--2024 Rob Hagemans
licence: https://opensource.org/licenses/MIT
"""

import io
import os
import bisect
import logging
import posixpath
from contextlib import contextmanager

from .files import File, FileInfo, implicit_dir, path_without_top_dir
from .streams import SectionReader
from .identify import identify
from .errors import InvalidPathError, NoMatchError, StopExtraction


###############################################################################
# paths

def valid_path(name):
    """
    Path is a valid file system name: slash-separated, relative, no empty,
    '.' or '..' elements, except for the root which is '.' by itself.
    Backslashes and colons are not allowed.
    """
    if name == '.':
        return True
    if not name or '\\' in name or ':' in name:
        return False
    return all(_elem not in ('', '.', '..') for _elem in name.split('/'))


def check_path(op, name):
    """Raise InvalidPathError if the path is not valid."""
    if not valid_path(name):
        raise InvalidPathError(op, name)


def _split(name):
    """Split path into parent directory and base name; '.' for top level."""
    name = name.removesuffix('/')
    parent, sep, base = name.rpartition('/')
    if not sep:
        return '.', base
    return parent, base


###############################################################################
# implicit directories and sorted lookup

def fill_implicit(files):
    """
    Add entries for directories that are implied by entry paths but not
    stored, and sort by (parent directory, base name).
    """
    dirs = set()
    known_dirs = set()
    for file in files:
        parent = posixpath.dirname(file.file_name)
        while parent:
            dirs.add(parent)
            parent = posixpath.dirname(parent)
        if file.is_dir():
            known_dirs.add(file.file_name)
    entries = list(files)
    entries.extend(implicit_dir(_dir) for _dir in dirs - known_dirs)
    # lookups below depend on this order
    entries.sort(key=lambda _f: _split(_f.file_name))
    return entries


def search(name, entries):
    """Find entry by name in sorted entries; None if not found."""
    keys = [_split(_e.file_name) for _e in entries]
    index = bisect.bisect_left(keys, _split(name))
    if index < len(entries):
        found_name = entries[index].file_name
        if found_name == name or found_name == name + '/':
            return entries[index]
    return None


def open_read_dir(dir, entries):
    """Entries directly in dir, from sorted entries."""
    parents = [_split(_e.file_name)[0] for _e in entries]
    start = bisect.bisect_left(parents, dir)
    end = bisect.bisect_right(parents, dir)
    return entries[start:end]


###############################################################################
# opened files

class OpenedFile(io.RawIOBase):
    """Readable file opened from a file system, with its metadata."""

    def __init__(self, stream, info, close_also=()):
        """
        stream: readable binary stream with the contents
        info: FileInfo for the file
        close_also: further streams to close along with this one
        """
        super().__init__()
        self._stream = stream
        self._info = info
        self._close_also = close_also
        self.name = info.name

    def __repr__(self):
        return f"<{type(self).__name__} name='{self.name}'>"

    def readable(self):
        return True

    def readinto(self, b):
        view = memoryview(b).cast('B')
        data = self._stream.read(len(view))
        view[:len(data)] = data
        return len(data)

    def stat(self):
        """Metadata of the opened file."""
        return self._info

    def close(self):
        if not self.closed:
            try:
                self._stream.close()
            finally:
                for stream in self._close_also:
                    stream.close()
                super().close()


class DirFile:
    """Opened directory."""

    def __init__(self, info, entries):
        self._info = info.as_dir()
        self._entries = list(entries)
        self._entries_read = 0
        self.name = info.name

    def __repr__(self):
        return f"<{type(self).__name__} name='{self.name}' entries={len(self._entries)}>"

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    def stat(self):
        """Metadata of the directory."""
        return self._info

    def is_dir(self):
        return True

    def read(self, size=-1):
        raise IsADirectoryError(f"'{self.name}' is a directory.")

    def readinto(self, b):
        raise IsADirectoryError(f"'{self.name}' is a directory.")

    def read_dir(self, n=-1):
        """
        Get directory entries. With n > 0, get the next n entries; an empty
        list means there are no more. Otherwise, get all entries.
        """
        if n <= 0:
            return list(self._entries)
        entries = self._entries[self._entries_read:self._entries_read+n]
        self._entries_read += len(entries)
        return entries

    def close(self):
        pass


###############################################################################
# archive file system

class ArchiveFS:
    """
    Archive contents as a read-only file system.

    Every call scans the archive from the start; listing each directory in a
    full recursive walk therefore costs time quadratic in the number of
    directories. To go through all entries once, use the format's extract()
    directly, which visits entries in archive order.
    """

    def __init__(self, path=None, data=None, format=None, prefix='', cancel=None):
        """
        path: location of archive on disk; opened anew for every call
        data: bytes-like object holding the archive, alternatively to path
        format: archival format (or CompressedArchive) of the archive
        prefix: directory in the archive that is the root of the file system
        cancel: cancellation signal with is_set(), e.g. threading.Event
        """
        if (path is None) == (data is None):
            raise ValueError('Specify one of `path` or `data`.')
        if format is None:
            raise ValueError('Archive format must be given.')
        self.path = path
        self.data = data
        self.format = format
        self.prefix = prefix
        self.cancel = cancel

    def __repr__(self):
        source = self.path if self.path is not None else f'<{len(self.data)} bytes>'
        return (
            f"<{type(self).__name__} {source} format={self.format.name!r}"
            f"{f' prefix={self.prefix!r}' if self.prefix else ''}>"
        )

    def _full_name(self, name):
        """Apply prefix if the file system is rooted in a subtree."""
        if not self.prefix:
            return name
        return posixpath.normpath(posixpath.join(self.prefix, name))

    @contextmanager
    def _open_source(self):
        """Open the archive for a single call."""
        if self.path is not None:
            with open(self.path, 'rb') as source:
                yield source
        else:
            # independent reader on shared data
            with SectionReader(self.data) as source:
                yield source

    def _collect(self, paths, is_target, read_target=False):
        """
        Scan archive, collecting entries until one satisfies is_target.
        Returns the list of entries and the target, or None if not reached.
        """
        files = []
        target = None

        def _handler(file):
            nonlocal target
            file = file.renamed(file.file_name.strip('/'))
            if is_target(file):
                if read_target and file.is_regular():
                    file = _load_contents(file)
                files.append(file)
                target = file
                raise StopExtraction()
            files.append(file)

        with self._open_source() as source:
            self.format.extract(source, paths, _handler, cancel=self.cancel)
        return files, target

    def _stat_root(self):
        """Metadata for the archive root."""
        if self.path is not None:
            return FileInfo.from_stat(
                os.path.basename(self.path), os.stat(self.path)
            ).as_dir()
        return implicit_dir('.').info()

    def open(self, name):
        """
        Open file or directory in the archive.
        Regular files return a readable stream, directories a DirFile.
        """
        check_path('open', name)
        name = self._full_name(name)
        if name == '.':
            return DirFile(self._stat_root(), self._read_dir('.'))
        # stop at an exact file match, but not at a folder
        files, found = self._collect(
            [name], lambda _f: _f.file_name == name and not _f.is_dir(),
            read_target=True,
        )
        if not files:
            raise FileNotFoundError(f"'{name}' not found in archive.")
        if found or (len(files) == 1 and files[0].file_name == name):
            file = files[-1]
            if file.is_dir():
                return DirFile(file, ())
        else:
            # implicit directory, or directory with contents
            entries = fill_implicit(files)
            file = search(name, entries)
            if file is None:
                raise FileNotFoundError(f"'{name}' not found in archive.")
            if file.is_dir():
                return DirFile(file, open_read_dir(name, entries))
        logging.debug("Opening '%s' on %r", name, self)
        if file.is_regular():
            return OpenedFile(file.open(), file.info())
        # links and other special files have no contents
        return OpenedFile(io.BytesIO(), file.info())

    def read_dir(self, name):
        """List directory entries, sorted by name."""
        check_path('readdir', name)
        return self._read_dir(self._full_name(name))

    def _read_dir(self, name):
        paths = None if name == '.' else [name]
        # a full listing needs a full scan, unless the target turns out to be a file
        files, found = self._collect(
            paths, lambda _f: _f.file_name == name and not _f.is_dir()
        )
        if found:
            raise NotADirectoryError(f"'{name}' is not a directory.")
        entries = fill_implicit(files)
        if name == '.':
            return open_read_dir(name, entries)
        file = search(name, entries)
        if file is None:
            raise FileNotFoundError(f"'{name}' not found in archive.")
        if not file.is_dir():
            raise NotADirectoryError(f"'{name}' is not a directory.")
        return open_read_dir(name, entries)

    def stat(self, name):
        """Get metadata for file or directory in the archive."""
        check_path('stat', name)
        name = self._full_name(name)
        if name == '.':
            return self._stat_root()
        files, found = self._collect([name], lambda _f: _f.file_name == name)
        if found:
            return found.info()
        file = search(name, fill_implicit(files))
        if file is None:
            raise FileNotFoundError(f"'{name}' not found in archive.")
        return file.info()

    def sub(self, dir):
        """File system rooted at a directory in this one."""
        check_path('sub', dir)
        if not self.stat(dir).is_dir():
            raise NotADirectoryError(f"'{dir}' is not a directory.")
        return ArchiveFS(
            path=self.path, data=self.data, format=self.format,
            prefix=self._full_name(dir), cancel=self.cancel,
        )


def _load_contents(file):
    """Copy of a File entry with its contents read into memory."""
    # streaming readers can't go back to an entry once they have moved on
    with file.open() as stream:
        data = stream.read()
    return File(
        file, file.file_name, header=file.header,
        link_target=file.link_target, opener=lambda: io.BytesIO(data),
    )


###############################################################################
# pass-through file systems

class DirFS:
    """Directory on disk as a file system."""

    def __init__(self, root):
        self.root = root

    def __repr__(self):
        return f"<{type(self).__name__} '{self.root}'>"

    def _path(self, name):
        return os.path.join(self.root, *name.split('/'))

    def open(self, name):
        check_path('open', name)
        path = self._path(name)
        if os.path.isdir(path):
            return DirFile(self.stat(name), self.read_dir(name))
        return OpenedFile(open(path, 'rb'), self.stat(name))

    def read_dir(self, name):
        check_path('readdir', name)
        with os.scandir(self._path(name)) as entries:
            return sorted(
                (
                    File(
                        FileInfo.from_stat(_e.name, _e.stat(follow_symlinks=False)),
                        _e.name if name == '.' else f'{name}/{_e.name}',
                    )
                    for _e in entries
                ),
                key=lambda _f: _f.name,
            )

    def stat(self, name):
        check_path('stat', name)
        path = self._path(name)
        base = os.path.basename(os.path.normpath(path))
        return FileInfo.from_stat(base, os.stat(path))

    def sub(self, dir):
        check_path('sub', dir)
        if not self.stat(dir).is_dir():
            raise NotADirectoryError(f"'{dir}' is not a directory.")
        return DirFS(self._path(dir))


class FileFS:
    """
    Single file on disk as a file system, in which it is the only entry.
    It can be accessed as '.' or by its base name.
    """

    def __init__(self, path, compression=None):
        """
        path: location of the file
        compression: compression format to decompress reads with, if any
        """
        self.path = path
        self.compression = compression

    def __repr__(self):
        return f"<{type(self).__name__} '{self.path}' compression={self.compression!r}>"

    def _check(self, op, name):
        check_path(op, name)
        if name not in ('.', os.path.basename(self.path)):
            raise FileNotFoundError(f"'{name}' not found in {self!r}.")

    def open(self, name):
        self._check('open', name)
        info = self.stat(name)
        file = open(self.path, 'rb')
        if self.compression is None:
            return OpenedFile(file, info)
        try:
            stream = self.compression.open_reader(file)
        except BaseException:
            file.close()
            raise
        return OpenedFile(stream, info, close_also=(file,))

    def read_dir(self, name):
        self._check('readdir', name)
        return [File(self.stat(name), os.path.basename(self.path))]

    def stat(self, name):
        self._check('stat', name)
        return FileInfo.from_stat(os.path.basename(self.path), os.stat(self.path))


def file_system(root, registry=None, cancel=None):
    """
    Get a read-only file system for a directory, an archive (compressed or
    not), a compressed file, or any other file on disk.
    """
    if os.path.isdir(root):
        return DirFS(root)
    with open(root, 'rb') as stream:
        try:
            format, _ = identify(os.path.basename(root), stream, registry)
        except NoMatchError:
            # any other file is the only one in its file system
            return FileFS(root)
    if format.can_extract():
        return ArchiveFS(path=root, format=format, cancel=cancel)
    return FileFS(root, compression=format)


###############################################################################
# traversal

def walk(fsys, top='.'):
    """
    Generate (dirpath, dirnames, filenames) for each directory, top-down,
    like os.walk. Entries removed from dirnames are not visited.
    """
    entries = fsys.read_dir(top)
    dirnames = [_e.name for _e in entries if _e.is_dir()]
    filenames = [_e.name for _e in entries if not _e.is_dir()]
    yield top, dirnames, filenames
    for name in dirnames:
        yield from walk(fsys, name if top == '.' else f'{top}/{name}')


def top_dir_open(fsys, name):
    """Open name; if that fails, try again without the first path element."""
    try:
        return fsys.open(name)
    except (OSError, ValueError):
        return fsys.open(path_without_top_dir(name))


def top_dir_stat(fsys, name):
    """Stat name; if that fails, try again without the first path element."""
    try:
        return fsys.stat(name)
    except (OSError, ValueError):
        return fsys.stat(path_without_top_dir(name))


def top_dir_read_dir(fsys, name):
    """List name; if that fails, try again without the first path element."""
    try:
        return fsys.read_dir(name)
    except (OSError, ValueError):
        return fsys.read_dir(path_without_top_dir(name))
