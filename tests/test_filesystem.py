"""
omniarc test suite
archive file system tests
"""

import io
import gzip
import zipfile
import unittest

from omniarc.storage import (
    ArchiveFS, DirFS, FileFS, file_system, walk, default_registry,
    top_dir_open, top_dir_stat, top_dir_read_dir, InvalidPathError,
)
from omniarc.storage.filesystem import valid_path, DirFile
from .base import BaseTester, memory_file, memory_dir


def zip_data(entries):
    """Zip archive with the given names and contents, in that order."""
    output = io.BytesIO()
    with zipfile.ZipFile(output, 'w') as zf:
        for name, data in entries:
            zf.writestr(name, data)
    return output.getvalue()


def names(entries):
    return [_e.name for _e in entries]


class TestValidPath(BaseTester):

    def test_valid(self):
        """Relative slash-separated paths are valid."""
        for path in ('.', 'a', 'a/b', 'a.txt', 'a/b/c.d'):
            with self.subTest(path=path):
                self.assertTrue(valid_path(path))

    def test_invalid(self):
        """Absolute, unclean and non-slash paths are invalid."""
        for path in ('', '/a', 'a/', 'a//b', './a', 'a/.', 'a/../b', '..', 'a\\b', 'c:a'):
            with self.subTest(path=path):
                self.assertFalse(valid_path(path))


class TestArchiveFS(BaseTester):
    """Test archives as file systems."""

    def setUp(self):
        super().setUp()
        # no directory entries; a and a/b exist only implicitly
        self.fsys = ArchiveFS(
            data=zip_data([('a/b/c', b'c contents'), ('a/d', b'd contents')]),
            format=default_registry().get('zip'),
        )

    def test_root(self):
        """List the root."""
        self.assertEqual(names(self.fsys.read_dir('.')), ['a'])
        self.assertTrue(self.fsys.stat('.').is_dir())

    def test_implicit_dirs(self):
        """Directories implied by entry paths."""
        self.assertEqual(names(self.fsys.read_dir('a')), ['b', 'd'])
        self.assertEqual(names(self.fsys.read_dir('a/b')), ['c'])
        self.assertTrue(self.fsys.stat('a').is_dir())
        self.assertTrue(self.fsys.stat('a/b').is_dir())

    def test_unordered(self):
        """Entries from different directories mixed up."""
        fsys = ArchiveFS(
            data=zip_data([('1/2', b''), ('2/1', b''), ('1/1', b'')]),
            format=default_registry().get('zip'),
        )
        self.assertEqual(names(fsys.read_dir('.')), ['1', '2'])
        self.assertEqual(names(fsys.read_dir('1')), ['1', '2'])
        self.assertEqual(names(fsys.read_dir('2')), ['1'])

    def test_open_file(self):
        """Open a file and read its contents."""
        with self.fsys.open('a/b/c') as stream:
            self.assertEqual(stream.read(), b'c contents')
            self.assertEqual(stream.stat().name, 'c')
            self.assertEqual(stream.stat().size, len(b'c contents'))

    def test_open_dir(self):
        """Open a directory and page through its entries."""
        with self.fsys.open('a') as dir:
            self.assertIsInstance(dir, DirFile)
            self.assertTrue(dir.stat().is_dir())
            self.assertEqual(names(dir.read_dir(1)), ['b'])
            self.assertEqual(names(dir.read_dir(1)), ['d'])
            self.assertEqual(dir.read_dir(1), [])
            self.assertEqual(names(dir.read_dir()), ['b', 'd'])

    def test_read_dir_contents(self):
        """An opened directory has no contents to read."""
        with self.fsys.open('a') as dir:
            with self.assertRaises(IsADirectoryError):
                dir.read()
            with self.assertRaises(IsADirectoryError):
                dir.readinto(bytearray(4))

    def test_open_root(self):
        """Open the root directory."""
        with self.fsys.open('.') as dir:
            self.assertEqual(names(dir.read_dir()), ['a'])

    def test_stat(self):
        """Metadata of a file."""
        info = self.fsys.stat('a/d')
        self.assertEqual(info.name, 'd')
        self.assertEqual(info.size, len(b'd contents'))
        self.assertTrue(info.is_regular())

    def test_not_found(self):
        """Missing entries."""
        with self.assertRaises(FileNotFoundError):
            self.fsys.open('nothing')
        with self.assertRaises(FileNotFoundError):
            self.fsys.stat('a/nothing')
        with self.assertRaises(FileNotFoundError):
            self.fsys.read_dir('a/nothing')

    def test_not_a_directory(self):
        """Listing a file."""
        with self.assertRaises(NotADirectoryError):
            self.fsys.read_dir('a/d')
        with self.assertRaises(NotADirectoryError):
            self.fsys.sub('a/d')

    def test_invalid_path(self):
        """Invalid paths are rejected before reading the archive."""
        for path in ('/a', 'a/../a', 'a/', ''):
            with self.subTest(path=path):
                with self.assertRaises(InvalidPathError):
                    self.fsys.open(path)
                with self.assertRaises(InvalidPathError):
                    self.fsys.stat(path)
                with self.assertRaises(ValueError):
                    self.fsys.read_dir(path)

    def test_sub(self):
        """File system rooted in a subdirectory."""
        sub = self.fsys.sub('a')
        self.assertEqual(names(sub.read_dir('.')), ['b', 'd'])
        with sub.open('b/c') as stream:
            self.assertEqual(stream.read(), b'c contents')
        subsub = sub.sub('b')
        self.assertEqual(names(subsub.read_dir('.')), ['c'])
        self.assertTrue(subsub.stat('.').is_dir())

    def test_walk(self):
        """Walk the whole tree."""
        self.assertEqual(list(walk(self.fsys)), [
            ('.', ['a'], []),
            ('a', ['b'], ['d']),
            ('a/b', [], ['c']),
        ])

    def test_top_dir(self):
        """Retry without the first path element."""
        with top_dir_open(self.fsys, 'top/a/d') as stream:
            self.assertEqual(stream.read(), b'd contents')
        self.assertEqual(top_dir_stat(self.fsys, 'top/a/d').name, 'd')
        self.assertEqual(names(top_dir_read_dir(self.fsys, 'top/a')), ['b', 'd'])

    def test_arguments(self):
        """Exactly one source and a format must be given."""
        zip = default_registry().get('zip')
        with self.assertRaises(ValueError):
            ArchiveFS(format=zip)
        with self.assertRaises(ValueError):
            ArchiveFS(path='x.zip', data=b'', format=zip)
        with self.assertRaises(ValueError):
            ArchiveFS(data=b'')


class TestTarFS(BaseTester):
    """Test streamed archives as file systems."""

    def setUp(self):
        super().setUp()
        registry = default_registry()
        self.archive_file = self.temp_path / 'test.tar.gz'
        with open(self.archive_file, 'wb') as outstream:
            with registry.get('gz').open_writer(outstream) as gz:
                registry.get('tar').archive(gz, [
                    memory_dir('dir'),
                    memory_file('dir/payload.bin', self.payload),
                    memory_file('dir/other.txt', b'other'),
                ])

    def test_file_system(self):
        """Compressed tar on disk is opened as archive file system."""
        fsys = file_system(str(self.archive_file))
        self.assertIsInstance(fsys, ArchiveFS)
        self.assertEqual(fsys.format.name, '.tar.gz')
        self.assertEqual(names(fsys.read_dir('dir')), ['other.txt', 'payload.bin'])
        with fsys.open('dir/payload.bin') as stream:
            self.assertEqual(stream.read(), self.payload)
        self.assertTrue(fsys.stat('dir').is_dir())
        self.assertTrue(fsys.stat('.').is_dir())


class TestPassThroughFS(BaseTester):
    """Test directories and plain files as file systems."""

    def test_dir(self):
        """Directory on disk."""
        (self.temp_path / 'sub').mkdir()
        (self.temp_path / 'sub' / 'b.txt').write_bytes(b'b')
        (self.temp_path / 'a.txt').write_bytes(b'a')
        fsys = file_system(str(self.temp_path))
        self.assertIsInstance(fsys, DirFS)
        self.assertEqual(names(fsys.read_dir('.')), ['a.txt', 'sub'])
        with fsys.open('sub/b.txt') as stream:
            self.assertEqual(stream.read(), b'b')
        self.assertEqual(names(fsys.sub('sub').read_dir('.')), ['b.txt'])
        self.assertEqual(list(walk(fsys)), [
            ('.', ['sub'], ['a.txt']),
            ('sub', [], ['b.txt']),
        ])

    def test_plain_file(self):
        """Unrecognised file is the only entry of its file system."""
        path = self.temp_path / 'notes.txt'
        path.write_bytes(b'plain text\n')
        fsys = file_system(str(path))
        self.assertIsInstance(fsys, FileFS)
        self.assertEqual(names(fsys.read_dir('.')), ['notes.txt'])
        with fsys.open('notes.txt') as stream:
            self.assertEqual(stream.read(), b'plain text\n')
        with self.assertRaises(FileNotFoundError):
            fsys.open('other.txt')

    def test_compressed_file(self):
        """Compressed file reads decompressed."""
        path = self.temp_path / 'payload.bin.gz'
        path.write_bytes(gzip.compress(self.payload))
        fsys = file_system(str(path))
        self.assertIsInstance(fsys, FileFS)
        with fsys.open('payload.bin.gz') as stream:
            self.assertEqual(stream.read(), self.payload)


if __name__ == '__main__':
    unittest.main()
