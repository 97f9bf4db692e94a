from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, List, NamedTuple, Optional, Sequence

from ..buffer import PixelBuffer
from ..errors import ConfigurationError, DimensionMismatch
from ..keyframes import AnimatedSettings, resolve
from ..settings import AdjustmentSettings, ColorMode, ColorModeSettings, DitheringSettings
from .adjust import apply as apply_adjustments
from .color_modes import apply_color_mode
from .dither import dither
from .extract import extract
from .palette import Palette

LOGGER = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]
CancelCheck = Callable[[], bool]

# Rough cost of one VGA frame, used for progress estimates only.
_SECONDS_PER_VGA_FRAME = 0.05
_VGA_PIXELS = 640 * 480


class FrameSettings(NamedTuple):
    adjustments: AdjustmentSettings
    color_mode: ColorModeSettings
    dithering: DitheringSettings


@dataclass(frozen=True)
class VideoInfo:
    fps: float
    total_frames: int
    duration: float

    def __post_init__(self) -> None:
        if not self.fps or self.fps <= 0:
            raise ConfigurationError(f"fps must be positive, got {self.fps!r}")
        if self.total_frames < 0:
            raise ConfigurationError(f"total_frames must be >= 0, got {self.total_frames!r}")
        if self.duration < 0:
            raise ConfigurationError(f"duration must be >= 0, got {self.duration!r}")

    @classmethod
    def from_frame_count(cls, total_frames: int, fps: float) -> "VideoInfo":
        return cls(fps=fps, total_frames=total_frames, duration=total_frames / fps if fps else 0.0)

    def frame_at(self, seconds: float) -> int:
        if self.total_frames == 0:
            return 0
        return min(self.total_frames - 1, max(0, int(seconds * self.fps)))

    def time_of(self, frame: int) -> float:
        return frame / self.fps


@dataclass(frozen=True)
class AnimationPlan:
    """Static settings plus an optional animation track per settings group."""

    adjustments: AdjustmentSettings = field(default_factory=AdjustmentSettings)
    color_mode: ColorModeSettings = field(default_factory=ColorModeSettings)
    dithering: DitheringSettings = field(default_factory=DitheringSettings)
    animated_adjustments: AnimatedSettings = field(default_factory=AnimatedSettings)
    animated_color_mode: AnimatedSettings = field(default_factory=AnimatedSettings)
    animated_dithering: AnimatedSettings = field(default_factory=AnimatedSettings)

    @property
    def is_animated(self) -> bool:
        return (
            self.animated_adjustments.is_active
            or self.animated_color_mode.is_active
            or self.animated_dithering.is_active
        )

    @property
    def static(self) -> FrameSettings:
        return FrameSettings(self.adjustments, self.color_mode, self.dithering)

    def settings_for_frame(self, frame: int) -> FrameSettings:
        return FrameSettings(
            adjustments=resolve(self.animated_adjustments, frame, self.adjustments),
            color_mode=resolve(self.animated_color_mode, frame, self.color_mode),
            dithering=resolve(self.animated_dithering, frame, self.dithering),
        )


def process_frame(
    buffer: PixelBuffer,
    palette: Palette,
    settings: FrameSettings,
    *,
    palette_source: Optional[PixelBuffer] = None,
) -> PixelBuffer:
    """Adjust, reduce and dither one buffer.

    In ``indexed`` mode with a quantization method set, the palette is
    extracted from ``palette_source`` (or the adjusted frame) instead of using
    ``palette``.
    """
    adjusted = apply_adjustments(buffer, settings.adjustments)
    color_mode = settings.color_mode
    working = palette
    if color_mode.mode is ColorMode.INDEXED and color_mode.quantization_method is not None:
        source = adjusted
        if palette_source is not None:
            adjusted.require_same_size(palette_source)
            source = palette_source
        working = extract(source, color_mode.palette_size, color_mode.quantization_method)
    reduced = apply_color_mode(adjusted, color_mode, working)
    return dither(reduced, working, settings.dithering, mode=color_mode.mode)


def process_frames(
    frames: Sequence[PixelBuffer],
    palette: Palette,
    plan: Optional[AnimationPlan] = None,
    on_progress: Optional[ProgressCallback] = None,
    *,
    should_cancel: Optional[CancelCheck] = None,
) -> List[PixelBuffer]:
    """Process video frames in order, resolving settings per frame index.

    ``should_cancel`` is checked between frames only; the frames finished so
    far are returned when it reports true.
    """
    if plan is None:
        plan = AnimationPlan()
    frames = list(frames)
    if not frames:
        return []
    first = frames[0]
    for index, frame in enumerate(frames[1:], start=1):
        if not first.same_size(frame):
            raise DimensionMismatch(
                f"Frame {index} is {frame.width}x{frame.height}, expected {first.width}x{first.height}"
            )

    total = len(frames)
    LOGGER.debug("Processing %d frames (%dx%d), animated=%s", total, first.width, first.height, plan.is_animated)
    processed: List[PixelBuffer] = []
    for index, frame in enumerate(frames):
        if should_cancel is not None and should_cancel():
            LOGGER.info("Frame processing cancelled after %d/%d frames", index, total)
            break
        processed.append(process_frame(frame, palette, plan.settings_for_frame(index)))
        if on_progress is not None:
            on_progress(index + 1, total)
    return processed


def estimate_processing_seconds(frame_count: int, width: int, height: int) -> float:
    """Coarse wall-clock estimate scaled from a VGA baseline."""
    if frame_count <= 0 or width <= 0 or height <= 0:
        return 0.0
    return _SECONDS_PER_VGA_FRAME * (width * height) / _VGA_PIXELS * frame_count
