"""Error kinds raised by the dithering core."""

from __future__ import annotations


class DitherError(Exception):
    """Base class for every error raised by :mod:`ditherkit`."""


class ConfigurationError(DitherError, ValueError):
    """Unknown identifier or a scalar outside its declared range."""


class InvalidPaletteError(ConfigurationError):
    """Empty palette where one is required, or an out-of-range colour count."""


class DimensionMismatch(DitherError, ValueError):
    """Two buffers that must share dimensions do not."""


class SourceFetchError(DitherError):
    """A remote source image could not be retrieved or decoded."""
