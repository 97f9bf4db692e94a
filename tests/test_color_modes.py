import pytest

from ditherkit.buffer import PixelBuffer
from ditherkit.errors import ConfigurationError, InvalidPaletteError
from ditherkit.processing.color_modes import apply_color_mode, reduce, to_tonal
from ditherkit.processing.palette import Palette, get_palette
from ditherkit.settings import ColorMode, ColorModeSettings


def _grays(*values, alpha=255) -> PixelBuffer:
    buffer = PixelBuffer.blank(len(values), 1)
    for x, value in enumerate(values):
        buffer.set_pixel(x, 0, (value, value, value, alpha))
    return buffer


def _reds(buffer: PixelBuffer):
    return [pixel.r for pixel in buffer.pixels()]


def test_mono_splits_on_threshold() -> None:
    assert _reds(reduce(_grays(20, 100, 200), ColorMode.MONO)) == [0, 0, 255]
    assert _reds(reduce(_grays(20, 100, 200), ColorMode.MONO, mono_threshold=50)) == [0, 255, 255]


def test_mono_keeps_alpha() -> None:
    out = reduce(_grays(200, alpha=40), ColorMode.MONO)

    assert out.pixel(0, 0) == (255, 255, 255, 40)


def test_tonal_snaps_to_even_levels() -> None:
    assert _reds(reduce(_grays(0, 100, 200, 255), ColorMode.TONAL, shades=2)) == [0, 0, 255, 255]
    assert _reds(reduce(_grays(0, 100, 200, 255), ColorMode.TONAL, shades=3)) == [0, 128, 255, 255]


@pytest.mark.parametrize("shades", [1, 0, 257])
def test_tonal_rejects_bad_shade_counts(shades) -> None:
    with pytest.raises(InvalidPaletteError):
        to_tonal(_grays(10), shades)


def test_tonal_rejects_empty_palette() -> None:
    with pytest.raises(InvalidPaletteError):
        reduce(_grays(10), ColorMode.TONAL, Palette(name="Empty"))


def test_indexed_maps_to_palette_entries() -> None:
    out = reduce(_grays(30, 220), ColorMode.INDEXED, get_palette("bw"))

    assert _reds(out) == [0, 255]


def test_indexed_needs_a_palette() -> None:
    with pytest.raises(InvalidPaletteError):
        reduce(_grays(10), ColorMode.INDEXED)
    with pytest.raises(InvalidPaletteError):
        reduce(_grays(10), ColorMode.INDEXED, Palette(name="Empty"))


def test_rgb_is_an_untouched_copy() -> None:
    source = _grays(1, 2, 3)

    out = reduce(source, "rgb")

    assert out is not source
    assert out.data == source.data


def test_unknown_mode_is_rejected() -> None:
    with pytest.raises(ConfigurationError):
        reduce(_grays(1), "sepia")


def test_apply_color_mode_reads_settings() -> None:
    settings = ColorModeSettings(mode="mono", mono_threshold=10)

    assert _reds(apply_color_mode(_grays(5, 50), settings)) == [0, 255]


def test_apply_color_mode_rejects_other_types() -> None:
    with pytest.raises(ConfigurationError):
        apply_color_mode(_grays(5), {"mode": "mono"})
