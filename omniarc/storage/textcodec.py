"""
omniarc.storage.textcodec - decoding of legacy entry names

(c) 2019--2024 Rob Hagemans
licence: https://opensource.org/licenses/MIT
"""

import codecs
import logging

from .errors import ConfigurationError


# encoding names as accepted by other archivers, mapped to python codecs
_ALIASES = {
    'ibm866': 'cp866',
    'iso88592': 'iso8859_2',
    'iso88593': 'iso8859_3',
    'iso88594': 'iso8859_4',
    'iso88595': 'iso8859_5',
    'iso88596': 'iso8859_6',
    'iso88597': 'iso8859_7',
    'iso88598': 'iso8859_8',
    # logical-order hebrew; python has no separate codec for it
    'iso88598i': 'iso8859_8',
    'iso885910': 'iso8859_10',
    'iso885913': 'iso8859_13',
    'iso885914': 'iso8859_14',
    'iso885915': 'iso8859_15',
    'iso885916': 'iso8859_16',
    'koi8r': 'koi8_r',
    'koi8u': 'koi8_u',
    'macintosh': 'mac_roman',
    'macintoshcyrillic': 'mac_cyrillic',
    'windows874': 'cp874',
    'windows1250': 'cp1250',
    'windows1251': 'cp1251',
    'windows1252': 'cp1252',
    'windows1253': 'cp1253',
    'windows1254': 'cp1254',
    'windows1255': 'cp1255',
    'windows1256': 'cp1256',
    'windows1257': 'cp1257',
    'windows1258': 'cp1258',
    'gbk': 'gbk',
    'gb18030': 'gb18030',
    'big5': 'big5',
    'eucjp': 'euc_jp',
    'iso2022jp': 'iso2022_jp',
    'shiftjis': 'shift_jis',
    'euckr': 'euc_kr',
    'utf16be': 'utf_16_be',
    'utf16le': 'utf_16_le',
}


def _normalise_for_match(name):
    """Lowercase and drop punctuation: ISO-8859-2 -> iso88592"""
    return ''.join(_c for _c in name.lower() if _c.isalnum())


def find_codec(name):
    """Get python codec name for an encoding name; raise ConfigurationError if unknown."""
    normname = _normalise_for_match(name)
    try:
        codec = _ALIASES[normname]
    except KeyError:
        # not in our table; maybe python knows it directly
        codec = name
    try:
        return codecs.lookup(codec).name
    except LookupError as e:
        raise ConfigurationError(f"Unknown text encoding '{name}'.") from e


def decode_legacy_name(name, codec):
    """
    Re-decode an entry name that was read as code page 437.
    Returns the name unchanged if it does not decode.
    """
    try:
        return name.encode('cp437').decode(codec)
    except (UnicodeEncodeError, UnicodeDecodeError) as e:
        logging.debug('Could not decode name %r as %s: %s', name, codec, e)
        return name
