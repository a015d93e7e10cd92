"""
omniarc.storage.registry - registry of known formats

(c) 2019--2024 Rob Hagemans
licence: https://opensource.org/licenses/MIT
"""

import logging

from .errors import ConfigurationError


def normalise_name(name):
    """Registry key for a format name: lowercase, without leading dot."""
    name = str(name).lower()
    if name.startswith('.'):
        name = name[1:]
    return name


class FormatRegistry:
    """Append-only collection of format descriptors, keyed by name."""

    def __init__(self, formats=()):
        """Set up registry, optionally with initial formats."""
        self._formats = {}
        for format in formats:
            self.register(format)

    def __repr__(self):
        return f'<{type(self).__name__} {self.get_names()}>'

    def __len__(self):
        return len(self._formats)

    def __contains__(self, name):
        return normalise_name(name) in self._formats

    def register(self, format):
        """Add a format descriptor. Duplicate names are a configuration error."""
        key = normalise_name(format.name)
        if not key:
            raise ConfigurationError(f'No registration name given for {format!r}')
        if key in self._formats:
            raise ConfigurationError(
                f'Registration name `{key}` '
                f'already in use for {self._formats[key]!r}'
            )
        logging.debug('Registering format `%s`: %r', key, format)
        self._formats[key] = format
        return format

    def get(self, name):
        """Get format descriptor by name. Raises KeyError if not found."""
        return self._formats[normalise_name(name)]

    def get_names(self):
        """Get tuple of all registered format names."""
        return tuple(_f.name for _f in self._formats.values())

    def all(self):
        """
        Snapshot of registered formats.
        The order is not significant; identification takes the first match.
        """
        return tuple(self._formats.values())


_default_registry = None


def default_registry():
    """Get the process-wide registry of built-in formats, building it once."""
    global _default_registry
    if _default_registry is None:
        _default_registry = build_registry()
    return _default_registry


def build_registry():
    """Create a registry holding all built-in formats whose libraries are available."""
    # late imports: codec libraries are only loaded when formats are needed
    from . import compressors, tarzip, uselibarchive
    registry = FormatRegistry()
    for module in (compressors, tarzip, uselibarchive):
        for format_class in module.FORMATS:
            registry.register(format_class())
    return registry
