"""
omniarc.scripts.arc - identify, list, extract and create archives

(c) 2019--2024 Rob Hagemans
licence: https://opensource.org/licenses/MIT
"""

import os
import sys
import stat
import shutil
import logging
import argparse
import posixpath
from pathlib import Path

from ..constants import VERSION, PROGRAM_NAME
from ..plumbing import wrap_main
from ..storage import (
    identify, default_registry, file_system, walk, files_from_disk,
    NoMatchError, UnsupportedError,
)
from ..storage.files import open_and_copy


def _open_format(filename):
    """Identify a file on disk; return format and stream reading from the start."""
    stream = open(filename, 'rb')
    try:
        return identify(Path(filename).name, stream)
    except BaseException:
        stream.close()
        raise


def cmd_identify(args):
    """Print the format of each file."""
    for filename in args.files:
        try:
            format, stream = _open_format(filename)
        except NoMatchError:
            print(f'{filename}: unknown')
            continue
        stream.close()
        print(f'{filename}: {format.name}')


def cmd_ls(args):
    """List a directory in an archive."""
    fsys = file_system(args.archive)
    if args.recursive:
        for dirpath, dirnames, filenames in walk(fsys, args.path):
            # no leading ./ for the root
            prefix = '' if dirpath == '.' else dirpath
            for name in dirnames:
                print(posixpath.join(prefix, name) + '/')
            for name in filenames:
                print(posixpath.join(prefix, name))
        return
    for entry in fsys.read_dir(args.path):
        suffix = '/' if entry.is_dir() else ''
        print(f'{stat.filemode(entry.mode)} {entry.size:>12} {entry.name}{suffix}')


def cmd_cat(args):
    """Write a file in an archive to standard output."""
    fsys = file_system(args.archive)
    with fsys.open(args.path) as instream:
        shutil.copyfileobj(instream, sys.stdout.buffer)
    sys.stdout.buffer.flush()


def _is_below(root, path):
    """Path resolves to a location inside root."""
    real = os.path.realpath(path)
    return os.path.commonpath([root, real]) == root


def _extract_entry(dest, file):
    """Create a File entry on disk below dest."""
    name = file.file_name.strip('/')
    if not name or any(_elem == '..' for _elem in name.split('/')):
        logging.warning("Skipping unsafe entry name '%s'", file.file_name)
        return
    target = os.path.join(dest, *name.split('/'))
    root = os.path.realpath(dest)
    # a new link may itself point anywhere, but nothing may be written through one
    checked = os.path.dirname(target) if file.is_symlink() else target
    if not _is_below(root, checked):
        logging.warning("Skipping entry '%s' outside destination", name)
        return
    logging.info("Extracting '%s'", name)
    if file.is_dir():
        os.makedirs(target, exist_ok=True)
        return
    os.makedirs(os.path.dirname(target), exist_ok=True)
    if file.is_symlink():
        os.symlink(file.link_target, target)
    elif file.is_regular():
        with open(target, 'wb') as outstream:
            open_and_copy(file, outstream)
    else:
        logging.warning("Skipping special file '%s'", name)


def cmd_extract(args):
    """Extract all or selected entries from an archive."""
    format, stream = _open_format(args.archive)
    with stream:
        if not format.can_extract():
            raise UnsupportedError(f'{args.archive}: {format.name} is not an archive.')
        format.extract(
            stream, args.paths or None,
            lambda _file: _extract_entry(args.dest, _file),
        )


def cmd_archive(args):
    """Create an archive from files on disk, format given by the output name."""
    try:
        format, _ = identify(Path(args.output).name, None)
    except NoMatchError:
        raise UnsupportedError(f'{args.output}: archive format not recognised.') from None
    if not format.can_archive():
        raise UnsupportedError(f'{args.output}: cannot create {format.name} archives.')
    files = files_from_disk(
        {_name: '' for _name in args.files},
        follow_symlinks=args.follow_symlinks,
        clear_attributes=args.clear_attributes,
    )
    with open(args.output, 'wb') as outstream:
        format.archive(outstream, files)


def cmd_compress(args):
    """Compress a single file."""
    try:
        format = default_registry().get(args.format)
    except KeyError:
        raise UnsupportedError(f'Unknown format `{args.format}`.') from None
    if not format.can_compress():
        raise UnsupportedError(f'{format.name} is not a compression format.')
    output = args.output or args.file + format.name
    with open(args.file, 'rb') as instream, open(output, 'wb') as outstream:
        with format.open_writer(outstream) as writer:
            shutil.copyfileobj(instream, writer)


def cmd_decompress(args):
    """Decompress a single file."""
    format, stream = _open_format(args.file)
    with stream:
        if not format.can_decompress():
            raise UnsupportedError(f'{args.file}: {format.name} is not compressed.')
        output = args.output
        if not output:
            output = args.file.removesuffix(format.name)
            if output == args.file:
                output = args.file + '.out'
        with format.open_reader(stream) as reader, open(output, 'wb') as outstream:
            shutil.copyfileobj(reader, outstream)


def _get_parser():
    parser = argparse.ArgumentParser(
        prog='arc',
        description='Identify, list, extract and create archives and compressed files.',
    )
    parser.add_argument(
        '--debug', action='store_true', default=False,
        help='enable debugging output'
    )
    parser.add_argument(
        '--version', action='version', version=f'{PROGRAM_NAME} v{VERSION}'
    )
    subparsers = parser.add_subparsers(dest='command', required=True)

    sub = subparsers.add_parser('identify', help='show the format of files')
    sub.add_argument('files', nargs='+', metavar='FILE')
    sub.set_defaults(func=cmd_identify)

    sub = subparsers.add_parser('ls', help='list a directory in an archive')
    sub.add_argument('archive', metavar='ARCHIVE')
    sub.add_argument('path', nargs='?', default='.', metavar='PATH')
    sub.add_argument(
        '-r', '--recursive', action='store_true', default=False,
        help='list subdirectories too'
    )
    sub.set_defaults(func=cmd_ls)

    sub = subparsers.add_parser('cat', help='write a file in an archive to stdout')
    sub.add_argument('archive', metavar='ARCHIVE')
    sub.add_argument('path', metavar='PATH')
    sub.set_defaults(func=cmd_cat)

    sub = subparsers.add_parser('extract', help='extract an archive')
    sub.add_argument('archive', metavar='ARCHIVE')
    sub.add_argument('dest', nargs='?', default='.', metavar='DEST')
    sub.add_argument(
        '--path', dest='paths', action='append', metavar='PATH',
        help='extract only this path and what is below it; may be repeated'
    )
    sub.set_defaults(func=cmd_extract)

    sub = subparsers.add_parser('archive', help='create an archive')
    sub.add_argument('output', metavar='OUTPUT')
    sub.add_argument('files', nargs='+', metavar='FILE')
    sub.add_argument(
        '--follow-symlinks', action='store_true', default=False,
        help='store what links point to instead of the links'
    )
    sub.add_argument(
        '--clear-attributes', action='store_true', default=False,
        help='store only names, sizes, types and permissions'
    )
    sub.set_defaults(func=cmd_archive)

    sub = subparsers.add_parser('compress', help='compress a file')
    sub.add_argument('file', metavar='FILE')
    sub.add_argument(
        '-f', '--format', default='.gz',
        help='compression format, e.g. gz, bz2, xz, zst (default: gz)'
    )
    sub.add_argument('-o', '--output', default='', metavar='OUTFILE')
    sub.set_defaults(func=cmd_compress)

    sub = subparsers.add_parser('decompress', help='decompress a file')
    sub.add_argument('file', metavar='FILE')
    sub.add_argument('-o', '--output', default='', metavar='OUTFILE')
    sub.set_defaults(func=cmd_decompress)
    return parser


def main(argv=None):
    args = _get_parser().parse_args(argv)
    with wrap_main(args.debug):
        args.func(args)


if __name__ == '__main__':
    main()
