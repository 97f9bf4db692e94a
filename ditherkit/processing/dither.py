from __future__ import annotations

import logging
import math
import random
from typing import Callable, Dict, List, Optional, Tuple

from ..buffer import PixelBuffer, clamp_channel, luminance
from ..errors import ConfigurationError
from ..settings import ColorMode, DitherAlgorithm, DitherFamily, DitheringSettings, HalftoneShape, parse_enum
from .matrices import DIFFUSION_KERNELS, threshold_matrix
from .palette import Palette, PaletteMatcher

LOGGER = logging.getLogger(__name__)

ThresholdSource = Callable[[int, int], float]

_LUMINANCE_MODES = (ColorMode.MONO, ColorMode.TONAL)
_WHITE_NOISE_SPREAD = 128.0
_DIFFUSION_NOISE_SPREAD = 128.0
# Full channel range: a threshold of 0 or 1 shifts a channel by half of it.
_THRESHOLD_SPREAD = 255.0


def quantize(buffer: PixelBuffer, palette: Palette, *, use_alpha: bool = False) -> PixelBuffer:
    """Nearest-colour mapping with no spatial dithering.

    Idempotent: a buffer whose colours all come from ``palette`` maps to itself.
    """
    matcher = PaletteMatcher(palette, use_alpha=use_alpha)
    colors = matcher.colors
    out = buffer.copy()
    data = out.data
    for idx in range(0, len(data), 4):
        color = colors[matcher.nearest(data[idx], data[idx + 1], data[idx + 2], data[idx + 3])]
        data[idx] = color.r
        data[idx + 1] = color.g
        data[idx + 2] = color.b
    return out


def dither(
    buffer: PixelBuffer,
    palette: Palette,
    settings: Optional[DitheringSettings] = None,
    *,
    mode: ColorMode = ColorMode.RGB,
) -> PixelBuffer:
    """Map ``buffer`` onto ``palette`` with the algorithm named in ``settings``.

    ``mode`` selects how the threshold families compare a pixel: by luminance
    for ``mono``/``tonal`` input, per channel otherwise. Error diffusion always
    works per channel. Output keeps the source alpha.
    """
    if settings is None:
        settings = DitheringSettings()
    if not isinstance(settings, DitheringSettings):
        raise ConfigurationError(f"Expected DitheringSettings, got {type(settings).__name__}")
    mode = parse_enum(ColorMode, mode, "color mode")
    matcher = PaletteMatcher(palette)
    algorithm = settings.algorithm
    family = algorithm.family
    LOGGER.debug(
        "Dithering %dx%d with %s (%s) against %d colours",
        buffer.width,
        buffer.height,
        algorithm.value,
        family.value,
        len(matcher.colors),
    )

    if family is DitherFamily.ERROR_DIFFUSION:
        return error_diffusion(buffer, matcher, settings)
    if family is DitherFamily.ORDERED:
        return threshold_dither(buffer, matcher, _matrix_source(threshold_matrix(algorithm)), mode)
    if family is DitherFamily.NOISE:
        if algorithm is DitherAlgorithm.BLUE_NOISE:
            return threshold_dither(buffer, matcher, _matrix_source(threshold_matrix(algorithm)), mode)
        if algorithm is DitherAlgorithm.RANDOM_THRESHOLD:
            rng = random.Random(settings.seed)
            return threshold_dither(buffer, matcher, lambda x, y: rng.random(), mode)
        return white_noise(buffer, matcher, settings.seed)
    if family is DitherFamily.HALFTONE:
        return clustered_dot(buffer, matcher, settings)
    raise ConfigurationError(f"Unsupported dithering algorithm {algorithm!r}")


def error_diffusion(buffer: PixelBuffer, matcher: PaletteMatcher, settings: DitheringSettings) -> PixelBuffer:
    width, height = buffer.size
    src = buffer.data
    out = bytearray(src)
    colors = matcher.colors
    kernel = DIFFUSION_KERNELS[settings.algorithm]
    attenuation = settings.error_attenuation
    noise = settings.random_noise * _DIFFUSION_NOISE_SPREAD
    rng = random.Random(settings.seed) if noise > 0 else None

    # Accumulated error per pixel and channel, local to this call.
    errors: List[float] = [0.0] * (width * height * 3)

    for y in range(height):
        reverse = settings.serpentine and y % 2 == 1
        step = -1 if reverse else 1
        x_range = range(width - 1, -1, -1) if reverse else range(width)
        for x in x_range:
            pos = y * width + x
            idx = pos * 4
            eidx = pos * 3
            r = src[idx] + errors[eidx]
            g = src[idx + 1] + errors[eidx + 1]
            b = src[idx + 2] + errors[eidx + 2]
            if rng is not None:
                jitter = (rng.random() - 0.5) * noise
                r += jitter
                g += jitter
                b += jitter
            r = min(255.0, max(0.0, r))
            g = min(255.0, max(0.0, g))
            b = min(255.0, max(0.0, b))

            chosen = colors[matcher.nearest(r, g, b)]
            out[idx] = chosen.r
            out[idx + 1] = chosen.g
            out[idx + 2] = chosen.b

            err_r = (r - chosen.r) * attenuation
            err_g = (g - chosen.g) * attenuation
            err_b = (b - chosen.b) * attenuation
            if not (err_r or err_g or err_b):
                continue
            for dx, dy, weight in kernel:
                nx = x + dx * step
                ny = y + dy
                if nx < 0 or nx >= width or ny >= height:
                    continue
                target = (ny * width + nx) * 3
                errors[target] += err_r * weight
                errors[target + 1] += err_g * weight
                errors[target + 2] += err_b * weight

    return PixelBuffer(width, height, out)


def _matrix_source(matrix) -> ThresholdSource:
    rows = len(matrix)
    cols = len(matrix[0])
    return lambda x, y: matrix[y % rows][x % cols]


def threshold_dither(
    buffer: PixelBuffer,
    matcher: PaletteMatcher,
    threshold_at: ThresholdSource,
    mode: ColorMode,
) -> PixelBuffer:
    """Apply a per-coordinate threshold in ``[0, 1)`` to every pixel.

    In ``mono``/``tonal`` mode the pixel's luminance is bracketed by two
    palette levels and the lighter one wins when the pixel's position between
    them exceeds the threshold. In colour mode each channel is offset by
    ``(threshold - 0.5) * 255`` and the nearest palette entry is taken.
    """
    if mode in _LUMINANCE_MODES:
        return _threshold_luminance(buffer, matcher, threshold_at)

    width, height = buffer.size
    src = buffer.data
    out = bytearray(src)
    colors = matcher.colors
    for y in range(height):
        for x in range(width):
            idx = (y * width + x) * 4
            offset = (threshold_at(x, y) - 0.5) * _THRESHOLD_SPREAD
            chosen = colors[
                matcher.nearest(
                    clamp_channel(src[idx] + offset),
                    clamp_channel(src[idx + 1] + offset),
                    clamp_channel(src[idx + 2] + offset),
                )
            ]
            out[idx] = chosen.r
            out[idx + 1] = chosen.g
            out[idx + 2] = chosen.b

    return PixelBuffer(width, height, out)


def _threshold_luminance(buffer: PixelBuffer, matcher: PaletteMatcher, threshold_at: ThresholdSource) -> PixelBuffer:
    width, height = buffer.size
    src = buffer.data
    out = bytearray(src)
    colors = matcher.colors
    brackets: Dict[Tuple[int, int, int], Tuple[int, int, float]] = {}

    for y in range(height):
        for x in range(width):
            idx = (y * width + x) * 4
            key = (src[idx], src[idx + 1], src[idx + 2])
            bracket = brackets.get(key)
            if bracket is None:
                bracket = brackets[key] = matcher.bracket_luminance(luminance(*key))
            dark, light, fraction = bracket
            chosen = colors[light if fraction > threshold_at(x, y) else dark]
            out[idx] = chosen.r
            out[idx + 1] = chosen.g
            out[idx + 2] = chosen.b

    return PixelBuffer(width, height, out)


def white_noise(buffer: PixelBuffer, matcher: PaletteMatcher, seed: Optional[int] = None) -> PixelBuffer:
    width, height = buffer.size
    src = buffer.data
    out = bytearray(src)
    colors = matcher.colors
    rng = random.Random(seed)
    for idx in range(0, len(src), 4):
        jitter = (rng.random() - 0.5) * _WHITE_NOISE_SPREAD
        chosen = colors[
            matcher.nearest(
                min(255.0, max(0.0, src[idx] + jitter)),
                min(255.0, max(0.0, src[idx + 1] + jitter)),
                min(255.0, max(0.0, src[idx + 2] + jitter)),
            )
        ]
        out[idx] = chosen.r
        out[idx + 1] = chosen.g
        out[idx + 2] = chosen.b
    return PixelBuffer(width, height, out)


def clustered_dot(buffer: PixelBuffer, matcher: PaletteMatcher, settings: DitheringSettings) -> PixelBuffer:
    """Print-style halftone on a rotated grid of cells.

    Each cell gets one ink dot whose size follows the cell's mean darkness.
    Ink is the darkest palette entry and paper the lightest.
    """
    width, height = buffer.size
    src = buffer.data
    out = bytearray(src)
    colors = matcher.colors
    cell = float(settings.halftone_cell_size)
    angle = math.radians(settings.halftone_angle)
    cos_a = math.cos(angle)
    sin_a = math.sin(angle)
    ink = colors[matcher.darkest()]
    paper = colors[matcher.lightest()]
    ink_luma = matcher.luma(matcher.darkest())
    paper_luma = matcher.luma(matcher.lightest())
    span = paper_luma - ink_luma

    def cell_coords(x: int, y: int) -> Tuple[float, float]:
        px = x + 0.5
        py = y + 0.5
        return (px * cos_a + py * sin_a) / cell, (-px * sin_a + py * cos_a) / cell

    totals: Dict[Tuple[int, int], List[float]] = {}
    for y in range(height):
        for x in range(width):
            idx = (y * width + x) * 4
            u, v = cell_coords(x, y)
            key = (math.floor(u), math.floor(v))
            entry = totals.get(key)
            if entry is None:
                entry = totals[key] = [0.0, 0]
            entry[0] += luminance(src[idx], src[idx + 1], src[idx + 2])
            entry[1] += 1

    darkness: Dict[Tuple[int, int], float] = {}
    for key, (total, count) in totals.items():
        if span <= 0:
            darkness[key] = 0.0
        else:
            darkness[key] = min(1.0, max(0.0, (paper_luma - total / count) / span))

    diamond = settings.halftone_shape is HalftoneShape.DIAMOND
    max_radius = math.sqrt(0.5)
    for y in range(height):
        for x in range(width):
            idx = (y * width + x) * 4
            u, v = cell_coords(x, y)
            cu = math.floor(u)
            cv = math.floor(v)
            du = u - cu - 0.5
            dv = v - cv - 0.5
            level = darkness[(cu, cv)]
            if diamond:
                inside = abs(du) + abs(dv) < level
            else:
                inside = math.hypot(du, dv) < level * max_radius
            chosen = ink if inside else paper
            out[idx] = chosen.r
            out[idx + 1] = chosen.g
            out[idx + 2] = chosen.b

    return PixelBuffer(width, height, out)
