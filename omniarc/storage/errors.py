"""
omniarc.storage.errors - exception types

(c) 2019--2024 Rob Hagemans
licence: https://opensource.org/licenses/MIT
"""


class FileFormatError(Exception):
    """Incorrect file format."""


class NoMatchError(FileFormatError):
    """No registered format matched the name or stream."""

    def __init__(self, message='no formats matched', stream=None):
        super().__init__(message)
        # finalized stream, still readable from the start
        self.stream = stream


class ProbeError(FileFormatError):
    """Reading the stream failed while trying to match a format."""

    def __init__(self, message, format_name=''):
        super().__init__(message)
        self.format_name = format_name


class StructuralError(FileFormatError):
    """Source stream lacks a capability the format requires, e.g. seeking."""


class EntryError(FileFormatError):
    """Failure while reading or writing a single archive entry."""

    def __init__(self, message, index=None, name=''):
        super().__init__(message)
        self.index = index
        self.name = name


class UnsupportedError(FileFormatError):
    """Operation is not supported by this format."""


class ConfigurationError(Exception):
    """Invalid set-up of formats; not to be caught."""


class CancelledError(Exception):
    """Operation was cancelled by the caller."""


class InvalidPathError(ValueError):
    """Path is not valid on an archive file system."""

    def __init__(self, op, path):
        super().__init__(f"{op} '{path}': invalid argument")
        self.op = op
        self.path = path


class SkipDir(Exception):
    """Raised by an entry handler to skip the entry's directory."""


class StopExtraction(Exception):
    """Raised by an entry handler to end extraction early, without error."""


def check_cancelled(cancel):
    """Raise CancelledError if the cancellation signal is set."""
    if cancel is not None and cancel.is_set():
        raise CancelledError('operation cancelled')


def is_cancelled(cancel):
    """Cancellation signal is set."""
    return cancel is not None and cancel.is_set()
