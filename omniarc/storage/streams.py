"""
omniarc.storage.streams - stream tools

(c) 2019--2024 Rob Hagemans
licence: https://opensource.org/licenses/MIT
"""

import io
import logging
from collections import deque


# read size for incremental decoders
_CHUNK_SIZE = 64 * 1024


def get_name(stream):
    """Get stream name, if available."""
    try:
        name = stream.name
    except AttributeError:
        # not all streams have one (e.g. BytesIO)
        return ''
    # file descriptors are ints
    if not isinstance(name, str):
        return ''
    return name


def is_seekable(stream):
    """Stream supports random access."""
    try:
        return stream.seekable()
    except (AttributeError, ValueError):
        return False


def read_at_most(instream, size):
    """
    Read up to `size` bytes, fewer only if the stream ends.
    A short read followed by end of input is not an error.
    """
    chunks = []
    remaining = size
    while remaining > 0:
        data = instream.read(remaining)
        # None means no data available on a non-blocking stream
        if not data:
            break
        chunks.append(data)
        remaining -= len(data)
    return b''.join(chunks)


###############################################################################
# rewindable stream for format probing

class RewindableStream(io.RawIOBase):
    """
    Read-only stream that records everything it delivers so that the
    same bytes can be served again after rewind().
    """

    def __init__(self, stream):
        """Wrap a readable binary stream, which may be None."""
        super().__init__()
        self._stream = stream
        self.name = get_name(stream)
        # everything delivered so far
        self._buffer = bytearray()
        # read position in buffer while rewound
        self._cursor = 0
        self._rewound = False
        self._finalized = False
        # position to seek back to on finalize, if the source allows
        self._origin = None
        if stream is not None and is_seekable(stream):
            try:
                self._origin = stream.tell()
            except OSError as e:
                logging.debug('Cannot determine position of %r: %s', stream, e)

    def __repr__(self):
        return (
            f"<{type(self).__name__} name='{self.name}' "
            f"buffered={len(self._buffer)}"
            f"{' [rewound]' if self._rewound else ''}"
            f"{' [finalized]' if self._finalized else ''}>"
        )

    def readable(self):
        return True

    def readinto(self, b):
        """Read into buffer, serving recorded bytes first if rewound."""
        if self._finalized:
            raise ValueError('Cannot read from finalized stream.')
        view = memoryview(b).cast('B')
        size = len(view)
        if not size:
            return 0
        if self._rewound:
            chunk = self._buffer[self._cursor:self._cursor+size]
            self._cursor += len(chunk)
            if self._cursor >= len(self._buffer):
                self._rewound = False
            if chunk:
                view[:len(chunk)] = chunk
                return len(chunk)
        if self._stream is None:
            return 0
        data = self._stream.read(size)
        if not data:
            return 0
        view[:len(data)] = data
        self._buffer.extend(data)
        return len(data)

    def rewind(self):
        """Serve subsequent reads from the start of the recorded bytes."""
        if self._finalized:
            raise ValueError('Cannot rewind finalized stream.')
        self._cursor = 0
        self._rewound = True

    def finalize(self):
        """
        Get a plain reader that yields the unread part of the record,
        followed by the rest of the source. No rewinding after this.
        """
        if self._finalized:
            raise ValueError('Stream has already been finalized.')
        self._finalized = True
        if self._origin is not None:
            try:
                self._stream.seek(self._origin)
            except OSError as e:
                logging.debug('Could not seek back on %r: %s', self._stream, e)
            else:
                return self._stream
        head = b''
        if self._rewound:
            head = bytes(self._buffer[self._cursor:])
        # release the record; the chained stream holds its own copy
        self._buffer = bytearray()
        return io.BufferedReader(
            ChainedStream(io.BytesIO(head), self._stream, name=self.name)
        )


class ChainedStream(io.RawIOBase):
    """Read streams one after the other. Does not close its parts."""

    def __init__(self, *streams, name=''):
        super().__init__()
        self._streams = deque(_s for _s in streams if _s is not None)
        self.name = name

    def readable(self):
        return True

    def readinto(self, b):
        view = memoryview(b).cast('B')
        if not len(view):
            return 0
        while self._streams:
            data = self._streams[0].read(len(view))
            if data:
                view[:len(data)] = data
                return len(data)
            self._streams.popleft()
        return 0


class SectionReader(io.RawIOBase):
    """
    Independent seekable reader on a section of a shared bytes-like object.
    Multiple readers on the same data do not affect each other.
    """

    def __init__(self, data, offset=0, size=None, name=''):
        super().__init__()
        self._data = memoryview(data).cast('B')
        self._start = min(offset, len(self._data))
        if size is None:
            self._end = len(self._data)
        else:
            self._end = min(self._start + size, len(self._data))
        self._pos = self._start
        self.name = name

    @property
    def size(self):
        """Length of the section."""
        return self._end - self._start

    def readable(self):
        return True

    def seekable(self):
        return True

    def readinto(self, b):
        view = memoryview(b).cast('B')
        count = max(0, min(len(view), self._end - self._pos))
        view[:count] = self._data[self._pos:self._pos+count]
        self._pos += count
        return count

    def seek(self, offset, whence=io.SEEK_SET):
        if whence == io.SEEK_SET:
            pos = self._start + offset
        elif whence == io.SEEK_CUR:
            pos = self._pos + offset
        elif whence == io.SEEK_END:
            pos = self._end + offset
        else:
            raise ValueError(f'Invalid whence value {whence}.')
        if pos < self._start:
            raise OSError('Seek before start of section.')
        self._pos = pos
        return self._pos - self._start

    def tell(self):
        return self._pos - self._start

    def close(self):
        if not self.closed:
            self._data.release()
        super().close()


###############################################################################
# adapters for incremental codec objects

class EncoderStream(io.RawIOBase):
    """
    Writable stream feeding an incremental encoder.
    Closing finishes the encoded stream but leaves the sink open.
    """

    def __init__(self, sink, process, finish, name=''):
        super().__init__()
        self._sink = sink
        self._process = process
        self._finish = finish
        self.name = name or get_name(sink)

    def writable(self):
        return True

    def write(self, b):
        data = self._process(bytes(b))
        if data:
            self._sink.write(data)
        return len(b)

    def close(self):
        if not self.closed:
            try:
                tail = self._finish()
                if tail:
                    self._sink.write(tail)
            finally:
                super().close()


class DecoderStream(io.RawIOBase):
    """
    Readable stream pulling from an incremental decoder.
    Closing leaves the source open.
    """

    def __init__(self, source, process, is_finished=None, name=''):
        super().__init__()
        self._source = source
        self._process = process
        self._is_finished = is_finished
        self._pending = b''
        self._eof = False
        self.name = name or get_name(source)

    def readable(self):
        return True

    def readinto(self, b):
        view = memoryview(b).cast('B')
        if not len(view):
            return 0
        while not self._pending:
            if self._eof:
                return 0
            chunk = self._source.read(_CHUNK_SIZE)
            if not chunk:
                self._eof = True
                if self._is_finished is not None and not self._is_finished():
                    raise EOFError(
                        'Compressed stream ended before the '
                        'end-of-stream marker was reached'
                    )
                return 0
            self._pending = self._process(chunk)
        count = min(len(view), len(self._pending))
        view[:count] = self._pending[:count]
        self._pending = self._pending[count:]
        return count
