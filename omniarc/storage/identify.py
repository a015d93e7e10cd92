"""
omniarc.storage.identify - recognise compression and archive formats

(c) 2019--2024 Rob Hagemans
licence: https://opensource.org/licenses/MIT
"""

import logging

from .registry import default_registry
from .streams import RewindableStream
from .composite import CompressedArchive
from .errors import NoMatchError, ProbeError


def identify(filename, stream, registry=None):
    """
    Identify the format of a file from its name and/or contents.

    filename: name of the file; may be empty
    stream: readable binary stream at the start of the file; may be None
    registry: FormatRegistry to use; default is the built-in formats

    Returns the format (a compression, an archive, or a CompressedArchive
    combining both) and a stream that reads the file from the start.
    Raises NoMatchError if nothing matches; its .stream still reads the file.
    """
    if registry is None:
        registry = default_registry()
    rewindable = RewindableStream(stream)
    compression = _find_compression(filename, rewindable, registry)
    # without a stream there is nothing to decompress, match names only
    archival = _find_archival(
        filename, rewindable, registry,
        compression if stream is not None else None,
    )
    rewindable.rewind()
    finalized = rewindable.finalize()
    if compression is not None and archival is not None:
        format = CompressedArchive(compression=compression, archival=archival)
    elif compression is not None:
        format = compression
    elif archival is not None:
        format = archival
    else:
        logging.info("No format matched '%s'", filename)
        raise NoMatchError(stream=finalized)
    logging.info("Identified '%s' as %s", filename, format.name)
    return format, finalized


def _find_compression(filename, rewindable, registry):
    """First compression format that matches the name or stream."""
    for format in registry.all():
        if not format.is_compression():
            continue
        rewindable.rewind()
        if _probe(format, filename, rewindable):
            return format
    return None


def _find_archival(filename, rewindable, registry, compression):
    """First archive format that matches, looking through the compression if any."""
    for format in registry.all():
        if not format.is_archival():
            continue
        rewindable.rewind()
        if compression is None:
            if _probe(format, filename, rewindable):
                return format
            continue
        # a fresh decoder for every probe, as decoder state can't be rewound
        decompressed = _open_decompressed(format, compression, rewindable)
        with decompressed:
            if _probe(format, filename, decompressed):
                return format
    return None


def _open_decompressed(format, compression, rewindable):
    """Open a decompressing reader on the rewound stream for a probe."""
    try:
        return compression.open_reader(rewindable)
    except Exception as e:
        raise ProbeError(
            f'matching {format.name} in {compression.name}: {e}', format.name
        ) from e


def _probe(format, filename, stream):
    """Match one format; end of input means no match, other errors abort."""
    try:
        result = format.match(filename, stream)
    except EOFError as e:
        logging.debug('Probing %s: no match (%s)', format.name, e)
        return False
    except Exception as e:
        raise ProbeError(f'matching {format.name}: {e}', format.name) from e
    logging.debug(
        'Probing %s: by name %s, by stream %s',
        format.name, result.by_name, result.by_stream
    )
    return result.matched
