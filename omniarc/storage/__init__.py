"""
omniarc.storage - recognise, compress, archive and browse files

(c) 2019--2024 Rob Hagemans
licence: https://opensource.org/licenses/MIT
"""

from .errors import (
    FileFormatError, NoMatchError, ProbeError, StructuralError, EntryError,
    UnsupportedError, ConfigurationError, CancelledError, InvalidPathError,
    SkipDir, StopExtraction,
)
from .magic import MatchResult, Magic
from .streams import RewindableStream, SectionReader, read_at_most
from .formats import Format, Compression, Archival, Inserter
from .registry import FormatRegistry, default_registry
from .files import File, FileInfo, SkipList, files_from_disk, file_is_included
from .composite import CompressedArchive
from .identify import identify
from .filesystem import (
    ArchiveFS, DirFS, FileFS, file_system, walk,
    top_dir_open, top_dir_stat, top_dir_read_dir,
)
