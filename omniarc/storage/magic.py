"""
omniarc.storage.magic - file type recognition

(c) 2019--2024 Rob Hagemans
licence: https://opensource.org/licenses/MIT
"""

from pathlib import PurePath
from typing import NamedTuple

from .streams import read_at_most


class MatchResult(NamedTuple):
    """Format was recognised by filename, by stream contents, or both."""
    by_name: bool = False
    by_stream: bool = False

    @property
    def matched(self):
        """Matched by either name or stream."""
        return self.by_name or self.by_stream

    def __or__(self, other):
        """Combine results from two layers."""
        return MatchResult(
            self.by_name or other.by_name,
            self.by_stream or other.by_stream,
        )


def match_name(filename, suffix):
    """Filename contains the format suffix, case-insensitively."""
    if not filename or not suffix:
        return False
    # only the final path element counts
    name = PurePath(str(filename)).name
    return suffix.lower() in name.lower()


###############################################################################
# file signature matchers

class Magic:
    """Match file contents against bytes mask."""

    def __init__(self, value, offset=0):
        """Initialise bytes mask from bytes or Magic object."""
        if isinstance(value, Magic):
            self._mask = tuple(
                (_item[0] + offset, _item[1])
                for _item in value._mask
            )
        elif not isinstance(value, bytes):
            raise TypeError(
                'Initialiser must be bytes or Magic,'
                f' not {type(value).__name__}'
            )
        else:
            self._mask = ((offset, value),)

    def __len__(self):
        """Mask length."""
        return max(_item[0] + len(_item[1]) for _item in self._mask)

    def __repr__(self):
        return f'{type(self).__name__}({self._mask!r})'

    def __add__(self, other):
        """Concatenate masks."""
        other = Magic(other, offset=len(self))
        new = Magic(self)
        new._mask += other._mask
        return new

    def __radd__(self, other):
        """Concatenate masks."""
        other = Magic(other)
        return other + self

    def matches(self, target):
        """Target bytes match the mask."""
        # short data never matches, even if the missing bytes would be zero
        if len(target) < len(self):
            return False
        for offset, value in self._mask:
            if target[offset:offset+len(value)] != value:
                return False
        return True

    def fits(self, instream):
        """Binary stream starts with the signature. Consumes the bytes read."""
        if instream is None:
            return False
        return self.matches(read_at_most(instream, len(self)))

    @classmethod
    def offset(cls, offset=0):
        """Represent offset in concatenated mask."""
        return cls(value=b'', offset=offset)
