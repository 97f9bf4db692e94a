from __future__ import annotations

import logging
from typing import Optional

from ..buffer import PixelBuffer, luminance
from ..errors import ConfigurationError, InvalidPaletteError
from ..settings import ColorMode, ColorModeSettings, parse_enum
from .dither import quantize
from .palette import Palette

LOGGER = logging.getLogger(__name__)

DEFAULT_SHADES = 16


def to_mono(buffer: PixelBuffer, threshold: int = 128) -> PixelBuffer:
    out = buffer.copy()
    data = out.data
    for idx in range(0, len(data), 4):
        value = 255 if luminance(data[idx], data[idx + 1], data[idx + 2]) >= threshold else 0
        data[idx] = data[idx + 1] = data[idx + 2] = value
    return out


def to_tonal(buffer: PixelBuffer, shades: int) -> PixelBuffer:
    """Posterize luminance into ``shades`` evenly spaced gray levels."""
    if isinstance(shades, bool) or not isinstance(shades, int) or not 2 <= shades <= 256:
        raise InvalidPaletteError(f"shades must be an integer in [2, 256], got {shades!r}")
    step = 255.0 / (shades - 1)
    levels = [int(round(step * i)) for i in range(shades)]
    out = buffer.copy()
    data = out.data
    for idx in range(0, len(data), 4):
        level = int(luminance(data[idx], data[idx + 1], data[idx + 2]) / step + 0.5)
        data[idx] = data[idx + 1] = data[idx + 2] = levels[min(level, shades - 1)]
    return out


def reduce(
    buffer: PixelBuffer,
    mode: ColorMode,
    palette: Optional[Palette] = None,
    *,
    shades: Optional[int] = DEFAULT_SHADES,
    mono_threshold: int = 128,
) -> PixelBuffer:
    """Colour reduction that runs ahead of dithering.

    ``indexed`` needs a non-empty palette; ``tonal`` rejects an empty one if
    given. ``rgb`` returns an untouched copy.
    """
    mode = parse_enum(ColorMode, mode, "color mode")
    LOGGER.debug("Reducing %dx%d buffer in %s mode", buffer.width, buffer.height, mode.value)

    if mode is ColorMode.MONO:
        return to_mono(buffer, mono_threshold)
    if mode is ColorMode.TONAL:
        if palette is not None:
            palette.require_colors()
        return to_tonal(buffer, DEFAULT_SHADES if shades is None else shades)
    if mode is ColorMode.INDEXED:
        if palette is None:
            raise InvalidPaletteError("Indexed mode needs a palette")
        return quantize(buffer, palette)
    if mode is ColorMode.RGB:
        return buffer.copy()
    raise ConfigurationError(f"Unsupported color mode {mode!r}")


def apply_color_mode(buffer: PixelBuffer, settings: ColorModeSettings, palette: Optional[Palette] = None) -> PixelBuffer:
    if not isinstance(settings, ColorModeSettings):
        raise ConfigurationError(f"Expected ColorModeSettings, got {type(settings).__name__}")
    return reduce(
        buffer,
        settings.mode,
        palette,
        shades=settings.shades,
        mono_threshold=settings.mono_threshold,
    )
