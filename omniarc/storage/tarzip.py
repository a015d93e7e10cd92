"""
omniarc.storage.tarzip - tar and zip archives

(c) 2019--2024 Rob Hagemans
licence: https://opensource.org/licenses/MIT
"""

import time
import stat
import shutil
import logging
import calendar
import posixpath
import tarfile
import zipfile
from functools import partial

from .magic import Magic, MatchResult, match_name
from .formats import Archival, Inserter
from .files import File, FileInfo
from .streams import read_at_most, is_seekable
from .textcodec import find_codec, decode_legacy_name
from .errors import FileFormatError, StructuralError, UnsupportedError


###############################################################################
# tar

# file type bits for tar member types
_TAR_TYPES = {
    tarfile.REGTYPE: stat.S_IFREG,
    tarfile.AREGTYPE: stat.S_IFREG,
    tarfile.CONTTYPE: stat.S_IFREG,
    tarfile.DIRTYPE: stat.S_IFDIR,
    tarfile.SYMTYPE: stat.S_IFLNK,
    tarfile.CHRTYPE: stat.S_IFCHR,
    tarfile.BLKTYPE: stat.S_IFBLK,
    tarfile.FIFOTYPE: stat.S_IFIFO,
}


class Tar(Archival, Inserter):
    """Tape archive. Read and written as a stream."""

    name = '.tar'

    def match(self, filename, stream):
        by_stream = False
        if stream is not None:
            block = read_at_most(stream, tarfile.BLOCKSIZE)
            if len(block) == tarfile.BLOCKSIZE:
                try:
                    tarfile.TarInfo.frombuf(
                        block, tarfile.ENCODING, 'surrogateescape'
                    )
                except tarfile.HeaderError:
                    pass
                else:
                    by_stream = True
        return MatchResult(
            by_name=match_name(filename, self.name), by_stream=by_stream,
        )

    def archive(self, output, files, cancel=None):
        with tarfile.open(fileobj=output, mode='w|') as tar:
            self._write_entries(files, partial(_write_tar_member, tar), cancel)

    def insert(self, into, files, cancel=None):
        if not is_seekable(into):
            raise StructuralError('Appending to a tar archive requires a seekable stream.')
        try:
            tar = tarfile.open(fileobj=into, mode='a')
        except tarfile.TarError as e:
            raise FileFormatError(f'Not a valid tar archive: {e}') from e
        with tar:
            self._write_entries(files, partial(_write_tar_member, tar), cancel)

    def extract(self, source, paths, handler, cancel=None):
        try:
            tar = tarfile.open(fileobj=source, mode='r|')
        except tarfile.TarError as e:
            raise FileFormatError(f'Not a valid tar archive: {e}') from e
        with tar:
            self._handle_entries(_iter_tar_files(tar), paths, handler, cancel)


def _iter_tar_files(tar):
    """Generate File entries from a streaming tar reader."""
    # pax global headers are consumed by tarfile and never show up as members
    try:
        for member in tar:
            yield _file_from_member(tar, member)
    except tarfile.TarError as e:
        raise FileFormatError(f'Reading tar archive: {e}') from e


def _file_from_member(tar, member):
    """Convert TarInfo to File."""
    mode = _TAR_TYPES.get(member.type, 0) | stat.S_IMODE(member.mode)
    info = FileInfo(
        name=posixpath.basename(member.name.rstrip('/')),
        size=member.size,
        mode=mode,
        mtime=member.mtime,
    )
    opener = None
    if member.isreg():
        # only valid while the reader is positioned on this member
        opener = partial(tar.extractfile, member)
    return File(
        info, member.name,
        header=member, link_target=member.linkname, opener=opener,
    )


def _write_tar_member(tar, file):
    """Write a File to a tar archive."""
    tarinfo = tarfile.TarInfo(file.file_name)
    tarinfo.mtime = int(file.mtime)
    tarinfo.mode = file.permissions
    if file.is_dir():
        tarinfo.type = tarfile.DIRTYPE
    elif file.is_symlink():
        tarinfo.type = tarfile.SYMTYPE
        tarinfo.linkname = file.link_target
    elif file.is_regular():
        tarinfo.size = file.size
    else:
        raise UnsupportedError(
            f"'{file.file_name}': cannot store {stat.filemode(file.mode)} in tar archive"
        )
    logging.debug("Writing '%s' to tar archive.", file.file_name)
    if tarinfo.isreg():
        with file.open() as instream:
            tar.addfile(tarinfo, instream)
    else:
        tar.addfile(tarinfo)


###############################################################################
# zip

# extensions of file types that are normally already compressed
COMPRESSED_FORMATS = {
    '.7z', '.avi', '.br', '.bz2', '.cab', '.docx', '.gif', '.gz', '.jar',
    '.jpeg', '.jpg', '.lz', '.lz4', '.lzma', '.m4v', '.mov', '.mp3', '.mp4',
    '.mpeg', '.mpg', '.png', '.pptx', '.rar', '.sz', '.tbz2', '.tgz', '.tsz',
    '.txz', '.xlsx', '.xz', '.zip', '.zipx',
}

# general purpose flag: names are utf-8
_UTF8_FLAG = 0x800
# earliest timestamp representable in zip
_ZIP_EPOCH = (1980, 1, 1, 0, 0, 0)


class Zip(Archival, Inserter):
    """Zip archive. Reading requires a seekable stream."""

    name = '.zip'
    magic = Magic(b'PK\x03\x04')

    def __init__(
            self, *, compression=zipfile.ZIP_DEFLATED,
            selective_compression=False, text_encoding='',
            continue_on_error=False,
        ):
        """
        compression: zipfile compression method for stored files
        selective_compression: don't compress files that are already compressed
        text_encoding: encoding of entry names not marked as utf-8
        continue_on_error: log and skip entries that fail to be read or written
        """
        super().__init__(continue_on_error=continue_on_error)
        self.compression = compression
        self.selective_compression = selective_compression
        self.text_encoding = text_encoding
        self._codec = find_codec(text_encoding) if text_encoding else None

    def match(self, filename, stream):
        return MatchResult(
            by_name=match_name(filename, self.name),
            by_stream=self.magic.fits(stream),
        )

    def archive(self, output, files, cancel=None):
        with zipfile.ZipFile(output, mode='w', compression=self.compression) as zf:
            self._write_entries(files, partial(self._write_member, zf), cancel)

    def insert(self, into, files, cancel=None):
        if not is_seekable(into):
            raise StructuralError('Appending to a zip archive requires a seekable stream.')
        try:
            zf = zipfile.ZipFile(into, mode='a', compression=self.compression)
        except zipfile.BadZipFile as e:
            raise FileFormatError(f'Not a valid zip archive: {e}') from e
        with zf:
            self._write_entries(files, partial(self._write_member, zf), cancel)

    def extract(self, source, paths, handler, cancel=None):
        if not is_seekable(source):
            raise StructuralError(
                'Reading a zip archive requires a seekable stream.'
            )
        try:
            zf = zipfile.ZipFile(source, mode='r')
        except zipfile.BadZipFile as e:
            raise FileFormatError(f'Not a valid zip archive: {e}') from e
        with zf:
            self._handle_entries(self._iter_files(zf), paths, handler, cancel)

    def _iter_files(self, zf):
        """Generate File entries from a zip archive, in central directory order."""
        for zinfo in zf.infolist():
            name = zinfo.filename
            if self._codec and not zinfo.flag_bits & _UTF8_FLAG:
                name = decode_legacy_name(name, self._codec)
            info = FileInfo(
                name=posixpath.basename(name.rstrip('/')),
                size=zinfo.file_size,
                mode=_zip_mode(zinfo),
                mtime=calendar.timegm(zinfo.date_time),
            )
            opener = None
            if not zinfo.is_dir():
                opener = partial(zf.open, zinfo)
            yield File(info, name, header=zinfo, opener=opener)

    def _write_member(self, zf, file):
        """Write a File to a zip archive."""
        name = file.file_name
        if file.is_dir() and not name.endswith('/'):
            name += '/'
        date_time = time.gmtime(file.mtime)[:6]
        zinfo = zipfile.ZipInfo(name, date_time=max(date_time, _ZIP_EPOCH))
        zinfo.external_attr = (file.mode & 0xFFFF) << 16
        logging.debug("Writing '%s' to zip archive.", name)
        if file.is_dir():
            zinfo.compress_type = zipfile.ZIP_STORED
            # ms-dos directory attribute
            zinfo.external_attr |= 0x10
            zf.writestr(zinfo, b'')
            return
        ext = posixpath.splitext(name)[1].lower()
        if self.selective_compression and ext in COMPRESSED_FORMATS:
            zinfo.compress_type = zipfile.ZIP_STORED
        else:
            zinfo.compress_type = self.compression
        if file.is_symlink():
            # link target is stored as contents, as Info-ZIP does
            zf.writestr(zinfo, file.link_target.encode('utf-8'))
            return
        zinfo.file_size = file.size
        with file.open() as instream, zf.open(zinfo, mode='w') as outstream:
            shutil.copyfileobj(instream, outstream)


def _zip_mode(zinfo):
    """Get stat mode bits for a zip entry, with defaults for ms-dos archives."""
    mode = zinfo.external_attr >> 16
    permissions = stat.S_IMODE(mode)
    if zinfo.is_dir():
        return stat.S_IFDIR | (permissions or 0o755)
    if stat.S_IFMT(mode):
        return mode
    return stat.S_IFREG | (permissions or 0o644)


FORMATS = [Tar, Zip]
