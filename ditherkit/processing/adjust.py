from __future__ import annotations

import colorsys
import logging
import math
from typing import Callable, Dict, List, Tuple

from PIL import Image, ImageChops, ImageFilter

from ..buffer import PixelBuffer, clamp_channel, luminance
from ..errors import ConfigurationError
from ..settings import AdjustmentSettings

LOGGER = logging.getLogger(__name__)

RGB = Tuple[int, int, int]

# Hue band (degrees) treated as skin when protecting faces from vibrance.
SKIN_HUE_RANGE = (0.0, 50.0)
# Largest channel shift applied by temperature/tint at +/-100.
BALANCE_SPAN = 30.0
# Largest offset applied by highlights/shadows at +/-100.
TONE_SPAN = 50.0


def _lut(fn: Callable[[int], float]) -> List[int]:
    return [clamp_channel(fn(value)) for value in range(256)]


def apply_exposure(img: Image.Image, stops: float) -> Image.Image:
    factor = 2.0 ** stops
    return img.point(_lut(lambda v: v * factor) * 3)


def apply_brightness(img: Image.Image, amount: float) -> Image.Image:
    offset = amount * 2.55
    return img.point(_lut(lambda v: v + offset) * 3)


def apply_contrast(img: Image.Image, amount: float) -> Image.Image:
    scale = (100.0 + amount) / 100.0
    return img.point(_lut(lambda v: 128 + (v - 128) * scale) * 3)


def apply_gamma(img: Image.Image, gamma: float) -> Image.Image:
    if abs(gamma - 1.0) < 1e-3:
        return img
    inv = 1.0 / gamma
    return img.point(_lut(lambda v: ((v / 255.0) ** inv) * 255) * 3)


def apply_temperature(img: Image.Image, amount: float) -> Image.Image:
    """Warm (positive) pushes red and some green up and blue down."""
    shift = amount / 100.0 * BALANCE_SPAN
    red = _lut(lambda v: v + shift)
    green = _lut(lambda v: v + shift * 0.4)
    blue = _lut(lambda v: v - shift)
    return img.point(red + green + blue)


def apply_tint(img: Image.Image, amount: float) -> Image.Image:
    """Positive tint moves towards magenta, negative towards green."""
    shift = amount / 100.0 * BALANCE_SPAN
    red = _lut(lambda v: v + shift * 0.5)
    green = _lut(lambda v: v - shift)
    blue = _lut(lambda v: v + shift * 0.5)
    return img.point(red + green + blue)


def _in_skin_band(hue: float) -> bool:
    degrees = hue * 360.0
    return SKIN_HUE_RANGE[0] <= degrees <= SKIN_HUE_RANGE[1]


def _map_pixels(img: Image.Image, fn: Callable[[RGB], RGB]) -> Image.Image:
    width, height = img.size
    cache: Dict[RGB, RGB] = {}
    src = img.load()
    out = Image.new("RGB", img.size)
    dst = out.load()
    for y in range(height):
        for x in range(width):
            pixel = src[x, y]
            result = cache.get(pixel)
            if result is None:
                result = cache[pixel] = fn(pixel)
            dst[x, y] = result
    return out


def apply_hsl(img: Image.Image, hue: float, saturation: float, vibrance: float) -> Image.Image:
    """Hue rotation, then saturation scale, then vibrance, in HLS space."""
    rotation = hue / 360.0
    sat_scale = 1.0 + saturation / 100.0
    vib = vibrance / 100.0

    def convert(pixel: RGB) -> RGB:
        h, l, s = colorsys.rgb_to_hls(pixel[0] / 255.0, pixel[1] / 255.0, pixel[2] / 255.0)
        if rotation:
            h = (h + rotation) % 1.0
        if sat_scale != 1.0:
            s = min(1.0, max(0.0, s * sat_scale))
        if vib:
            boost = vib * (1.0 - s)
            if boost > 0 and _in_skin_band(h):
                boost *= 0.5
            s = min(1.0, max(0.0, s * (1.0 + boost)))
        r, g, b = colorsys.hls_to_rgb(h, l, s)
        return clamp_channel(r * 255), clamp_channel(g * 255), clamp_channel(b * 255)

    return _map_pixels(img, convert)


def apply_tones(img: Image.Image, highlights: float, shadows: float) -> Image.Image:
    """Luminance-weighted offsets for the bright and dark halves."""
    high = highlights / 100.0 * TONE_SPAN
    low = shadows / 100.0 * TONE_SPAN

    def convert(pixel: RGB) -> RGB:
        r, g, b = pixel
        if high:
            weight = max(0.0, (luminance(r, g, b) - 128) / 127)
            offset = high * weight
            r, g, b = clamp_channel(r + offset), clamp_channel(g + offset), clamp_channel(b + offset)
        if low:
            weight = max(0.0, (128 - luminance(r, g, b)) / 128)
            offset = low * weight
            r, g, b = clamp_channel(r + offset), clamp_channel(g + offset), clamp_channel(b + offset)
        return r, g, b

    return _map_pixels(img, convert)


def apply_blur(img: Image.Image, radius: float) -> Image.Image:
    return img.filter(ImageFilter.BoxBlur(radius))


def apply_sharpen(img: Image.Image, amount: float) -> Image.Image:
    # Extrapolating past the original is an unsharp mask: orig + k * (orig - blurred).
    blurred = img.filter(ImageFilter.BoxBlur(1))
    return Image.blend(blurred, img, 1.0 + amount / 100.0)


def apply_denoise(img: Image.Image, strength: float) -> Image.Image:
    """Average each pixel with the neighbours whose colour is close to it."""
    width, height = img.size
    radius = max(1, math.ceil(strength / 20))
    threshold = strength * 2.55
    pixels = img.load()
    src = [pixels[x, y] for y in range(height) for x in range(width)]
    out = list(src)
    for y in range(height):
        y0 = max(0, y - radius)
        y1 = min(height - 1, y + radius)
        for x in range(width):
            cr, cg, cb = src[y * width + x]
            sum_r = sum_g = sum_b = 0
            count = 0
            for ny in range(y0, y1 + 1):
                row = ny * width
                for nx in range(max(0, x - radius), min(width - 1, x + radius) + 1):
                    nr, ng, nb = src[row + nx]
                    if abs(nr - cr) + abs(ng - cg) + abs(nb - cb) < threshold:
                        sum_r += nr
                        sum_g += ng
                        sum_b += nb
                        count += 1
            if count:
                out[y * width + x] = (
                    clamp_channel(sum_r / count),
                    clamp_channel(sum_g / count),
                    clamp_channel(sum_b / count),
                )
    result = Image.new("RGB", img.size)
    result.putdata(out)
    return result


def vignette_mask(size: Tuple[int, int], strength: float) -> Image.Image:
    """``L`` mask, 255 at the centre falling off with squared radius."""
    width, height = size
    cx = (width - 1) / 2.0
    cy = (height - 1) / 2.0
    max_dist_sq = cx * cx + cy * cy or 1.0
    amount = strength / 100.0
    values = []
    for y in range(height):
        dy_sq = (y - cy) ** 2
        for x in range(width):
            falloff = ((x - cx) ** 2 + dy_sq) / max_dist_sq
            values.append(clamp_channel(255 * (1.0 - amount * falloff)))
    mask = Image.new("L", size)
    mask.putdata(values)
    return mask


def apply_vignette(img: Image.Image, strength: float) -> Image.Image:
    return ImageChops.multiply(img, vignette_mask(img.size, strength).convert("RGB"))


def apply(buffer: PixelBuffer, settings: AdjustmentSettings) -> PixelBuffer:
    """Run every non-neutral adjustment in the fixed pipeline order.

    Returns a new buffer of the same size; alpha passes through untouched.
    """
    if not isinstance(settings, AdjustmentSettings):
        raise ConfigurationError(f"Expected AdjustmentSettings, got {type(settings).__name__}")
    if settings.is_neutral():
        return buffer.copy()

    LOGGER.debug("Adjusting %dx%d buffer: %s", buffer.width, buffer.height, settings)
    source = buffer.to_image()
    alpha = source.getchannel("A")
    img = source.convert("RGB")

    if settings.exposure:
        img = apply_exposure(img, settings.exposure)
    if settings.brightness:
        img = apply_brightness(img, settings.brightness)
    if settings.contrast:
        img = apply_contrast(img, settings.contrast)
    if settings.hue or settings.saturation or settings.vibrance:
        img = apply_hsl(img, settings.hue, settings.saturation, settings.vibrance)
    if settings.temperature:
        img = apply_temperature(img, settings.temperature)
    if settings.tint:
        img = apply_tint(img, settings.tint)
    if settings.highlights or settings.shadows:
        img = apply_tones(img, settings.highlights, settings.shadows)
    img = apply_gamma(img, settings.gamma)
    if settings.blur:
        img = apply_blur(img, settings.blur)
    if settings.sharpen:
        img = apply_sharpen(img, settings.sharpen)
    if settings.denoise:
        img = apply_denoise(img, settings.denoise)
    if settings.vignette:
        img = apply_vignette(img, settings.vignette)

    out = img.convert("RGBA")
    out.putalpha(alpha)
    return PixelBuffer.from_image(out)
