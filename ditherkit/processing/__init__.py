"""Image processing stages: adjustments, colour modes, dithering, extraction."""

from .adjust import apply as apply_adjustments
from .color_modes import apply_color_mode, reduce
from .dither import dither, quantize
from .extract import extract
from .palette import (
    BUILT_IN_PALETTES,
    Palette,
    PaletteMatcher,
    custom_palette,
    get_palette,
    grayscale_palette,
    nearest_palette_index,
)
from .pipeline import (
    AnimationPlan,
    FrameSettings,
    VideoInfo,
    estimate_processing_seconds,
    process_frame,
    process_frames,
)

__all__ = [
    "apply_adjustments",
    "apply_color_mode",
    "reduce",
    "dither",
    "quantize",
    "extract",
    "BUILT_IN_PALETTES",
    "Palette",
    "PaletteMatcher",
    "custom_palette",
    "get_palette",
    "grayscale_palette",
    "nearest_palette_index",
    "AnimationPlan",
    "FrameSettings",
    "VideoInfo",
    "estimate_processing_seconds",
    "process_frame",
    "process_frames",
]
