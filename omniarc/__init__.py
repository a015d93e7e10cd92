"""
omniarc - identify, compress, archive and browse files in many formats

(c) 2019--2024 Rob Hagemans
licence: https://opensource.org/licenses/MIT
"""

import sys as _sys
assert _sys.version_info >= (3, 9)

from .constants import VERSION as __version__
from .storage import (
    FileFormatError, NoMatchError, ProbeError, StructuralError, EntryError,
    UnsupportedError, ConfigurationError, CancelledError, InvalidPathError,
    SkipDir, StopExtraction,
    File, FileInfo, files_from_disk,
    FormatRegistry, default_registry, CompressedArchive, identify,
    ArchiveFS, DirFS, FileFS, file_system, walk,
)
