"""Dithering, colour quantization and keyframe animation for raster images."""

from . import processing
from .buffer import Color, PixelBuffer
from .errors import ConfigurationError, DimensionMismatch, DitherError, InvalidPaletteError, SourceFetchError
from .keyframes import AnimatedSettings, Easing, Keyframe, TransitionMode, resolve
from .settings import (
    AdjustmentSettings,
    ColorMode,
    ColorModeSettings,
    DitherAlgorithm,
    DitherFamily,
    DitheringSettings,
    ExtractionAlgorithm,
    HalftoneShape,
)

__version__ = "1.0.0"

__all__ = [
    "__version__",
    "processing",
    "Color",
    "PixelBuffer",
    "ConfigurationError",
    "DimensionMismatch",
    "DitherError",
    "InvalidPaletteError",
    "SourceFetchError",
    "AnimatedSettings",
    "Easing",
    "Keyframe",
    "TransitionMode",
    "resolve",
    "AdjustmentSettings",
    "ColorMode",
    "ColorModeSettings",
    "DitherAlgorithm",
    "DitherFamily",
    "DitheringSettings",
    "ExtractionAlgorithm",
    "HalftoneShape",
]
