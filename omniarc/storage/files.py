"""
omniarc.storage.files - file entries flowing into and out of archives

(c) 2019--2024 Rob Hagemans
licence: https://opensource.org/licenses/MIT
"""

import os
import stat
import shutil
import logging
import posixpath
from functools import partial


class FileInfo:
    """File metadata, similar to a stat result."""

    def __init__(self, name='', size=0, mode=0, mtime=0.0, sys=None):
        """
        name: base name
        size: size in bytes
        mode: type and permission bits as in the stat module
        mtime: modification time as POSIX timestamp
        sys: underlying data source, if any
        """
        self.name = name
        self.size = size
        self.mode = mode
        self.mtime = mtime
        self.sys = sys

    def __repr__(self):
        return (
            f"<{type(self).__name__} name='{self.name}' size={self.size} "
            f"mode={stat.filemode(self.mode)}>"
        )

    @classmethod
    def from_stat(cls, name, stat_result):
        """Create from os.stat_result."""
        return cls(
            name=name,
            size=stat_result.st_size,
            mode=stat_result.st_mode,
            mtime=stat_result.st_mtime,
            sys=stat_result,
        )

    def is_dir(self):
        return stat.S_ISDIR(self.mode)

    def is_regular(self):
        return stat.S_ISREG(self.mode)

    def is_symlink(self):
        return stat.S_ISLNK(self.mode)

    @property
    def permissions(self):
        """Permission bits only."""
        return stat.S_IMODE(self.mode)

    def as_dir(self):
        """Same metadata presented as a directory: zero size, directory bit set."""
        return FileInfo(
            name=self.name,
            size=0,
            mode=stat.S_IFDIR | stat.S_IMODE(self.mode),
            mtime=self.mtime,
            sys=self.sys,
        )

    def without_attributes(self):
        """Keep name, size, type and permissions; clear everything else."""
        return FileInfo(
            name=self.name,
            size=self.size,
            mode=stat.S_IFMT(self.mode) | stat.S_IMODE(self.mode),
            mtime=0.0,
        )


class File(FileInfo):
    """An entry in an archive, or one to be written to an archive."""

    def __init__(
            self, info, file_name, *,
            header=None, link_target='', opener=None
        ):
        """
        info: FileInfo with metadata
        file_name: path of the entry as it is in the archive
        header: format-specific header object
        link_target: target of symbolic or hard link
        opener: callable returning a readable binary stream on the contents
        """
        super().__init__(
            name=info.name, size=info.size, mode=info.mode,
            mtime=info.mtime, sys=info.sys,
        )
        self.file_name = file_name
        self.header = header
        self.link_target = link_target
        self._opener = opener

    def __repr__(self):
        return (
            f"<{type(self).__name__} '{self.file_name}' size={self.size} "
            f"mode={stat.filemode(self.mode)}>"
        )

    def info(self):
        """Metadata as plain FileInfo."""
        return FileInfo(
            name=self.name, size=self.size, mode=self.mode,
            mtime=self.mtime, sys=self.sys,
        )

    def open(self):
        """Open the contents for reading. The caller must close the stream."""
        if self._opener is None:
            raise IsADirectoryError(f"'{self.file_name}' has no content to open.")
        return self._opener()

    def renamed(self, file_name):
        """Copy of this entry under a different archive path."""
        return File(
            self, file_name,
            header=self.header, link_target=self.link_target,
            opener=self._opener,
        )


def implicit_dir(path):
    """Synthetic entry for a directory that is not stored in the archive."""
    info = FileInfo(
        name=posixpath.basename(path),
        size=0,
        mode=stat.S_IFDIR | 0o755,
        mtime=0.0,
    )
    return File(info, path)


def open_and_copy(file, outstream):
    """Copy the contents of a File entry to a stream."""
    with file.open() as instream:
        shutil.copyfileobj(instream, outstream)


###############################################################################
# include and skip lists

class SkipList(list):
    """
    List of non-overlapping paths.
    Duplicates and paths below an existing entry are not added;
    an added path replaces existing entries below it.
    Trailing slashes are ignored when comparing.
    """

    def add(self, path):
        """Add path, keeping the list minimal."""
        trimmed = path.removesuffix('/')
        dont_add = False
        index = 0
        while index < len(self):
            element = self[index].removesuffix('/')
            if trimmed == element:
                return
            # a broader path is already in the list
            if trimmed.startswith(element + '/'):
                dont_add = True
            # new path is broader, remove the more specific one
            elif element.startswith(trimmed + '/'):
                del self[index]
                continue
            index += 1
        if not dont_add:
            self.append(path)


def file_is_included(paths, name):
    """
    Entry name is in the list or below a path in the list.
    A list of None includes everything.
    """
    if paths is None:
        return True
    for path in paths:
        if name == path:
            return True
        if name.startswith(path.removesuffix('/') + '/'):
            return True
    return False


###############################################################################
# path helpers

def _path_join(*elements):
    """Join and clean slash-separated path elements; empty if all are empty."""
    joined = '/'.join(_e for _e in elements if _e)
    if not joined:
        return ''
    cleaned = posixpath.normpath(joined)
    # posix allows a leading double slash, we don't
    if cleaned.startswith('//'):
        cleaned = '/' + cleaned.lstrip('/')
    return cleaned


def top_dir(path):
    """First element of a slash-separated path: a/b/c -> a"""
    return path.removeprefix('/').partition('/')[0]


def trim_top_dir(path):
    """Remove the first element of a slash-separated path: a/b/c -> b/c"""
    path = path.removeprefix('/')
    _, sep, tail = path.partition('/')
    if sep:
        return tail
    return path


def path_without_top_dir(path):
    """Path without its first element; unchanged if it has only one."""
    _, sep, tail = path.partition('/')
    if sep:
        return tail
    return path


def name_on_disk_to_name_in_archive(name_on_disk, root_on_disk, root_in_archive):
    """Convert a path on disk to its path in the archive, see files_from_disk."""
    root_base = os.path.basename(root_on_disk.rstrip(os.sep)) or root_on_disk
    if root_on_disk.endswith(os.sep):
        root_in_archive = trim_top_dir(root_in_archive)
    elif root_in_archive == '':
        root_in_archive = root_base
    if root_in_archive.endswith('/'):
        root_in_archive += root_base
    truncated = name_on_disk.removeprefix(root_on_disk)
    return _path_join(root_in_archive, truncated.replace(os.sep, '/'))


def _walk_disk(root):
    """Yield root and everything below it, in lexical order."""
    yield root
    if os.path.isdir(root) and not os.path.islink(root):
        for name in sorted(os.listdir(root)):
            yield from _walk_disk(os.path.join(root, name))


def files_from_disk(filenames, follow_symlinks=False, clear_attributes=False):
    """
    Get File entries by walking the disk.

    filenames: mapping of paths on disk to paths in the archive.
        Directories are added recursively. A disk path ending in a separator
        adds the contents of the directory but not the directory itself.
        An empty archive path puts the item under its base name at the root;
        an archive path ending in / puts it under its base name in that folder.
    follow_symlinks: add what links point to, instead of the links
    clear_attributes: keep only name, size, type and permissions
    """
    files = []
    for root_on_disk, root_in_archive in filenames.items():
        for filename in _walk_disk(root_on_disk):
            name_in_archive = name_on_disk_to_name_in_archive(
                filename, root_on_disk, root_in_archive
            )
            stat_result = os.lstat(filename)
            # the root folder itself is not added if only contents are wanted
            if stat.S_ISDIR(stat_result.st_mode) and not name_in_archive:
                continue
            link_target = ''
            source = filename
            if stat.S_ISLNK(stat_result.st_mode):
                target = os.readlink(filename)
                if follow_symlinks:
                    source = os.path.join(os.path.dirname(filename), target)
                    try:
                        stat_result = os.stat(source)
                    except OSError as e:
                        raise OSError(
                            f'{filename}: statting dereferenced symlink: {e}'
                        ) from e
                else:
                    link_target = target
            info = FileInfo.from_stat(
                os.path.basename(filename.rstrip(os.sep)), stat_result
            )
            if clear_attributes:
                info = info.without_attributes()
            logging.debug("Adding '%s' as '%s'", filename, name_in_archive)
            files.append(File(
                info, name_in_archive,
                link_target=link_target,
                # bind the path now, not the loop variable
                opener=partial(open, source, 'rb'),
            ))
    return files
