import pytest
from PIL import Image

from ditherkit.buffer import Color, PixelBuffer, clamp_channel, luminance
from ditherkit.errors import ConfigurationError, DimensionMismatch


def test_buffer_rejects_wrong_length() -> None:
    with pytest.raises(DimensionMismatch):
        PixelBuffer(2, 2, bytearray(15))


@pytest.mark.parametrize("width, height", [(0, 1), (1, 0), (-3, 2), (2.0, 2)])
def test_buffer_rejects_bad_dimensions(width, height) -> None:
    with pytest.raises(ConfigurationError):
        PixelBuffer(width, height, bytearray(16))


def test_image_conversion_keeps_rgba() -> None:
    img = Image.new("RGBA", (3, 2), color=(10, 20, 30, 40))

    buffer = PixelBuffer.from_image(img)

    assert buffer.size == (3, 2)
    assert len(buffer.data) == 3 * 2 * 4
    assert buffer.pixel(2, 1) == Color(10, 20, 30, 40)
    assert buffer.to_image().getpixel((0, 0)) == (10, 20, 30, 40)


def test_from_image_converts_palette_mode() -> None:
    buffer = PixelBuffer.from_image(Image.new("P", (4, 4)))

    assert buffer.pixel(0, 0).a == 255


def test_copy_is_independent() -> None:
    original = PixelBuffer.blank(2, 2, (1, 2, 3))
    clone = original.copy()

    clone.set_pixel(0, 0, (9, 9, 9))

    assert original.pixel(0, 0) == Color(1, 2, 3, 255)
    assert clone.pixel(0, 0) == Color(9, 9, 9, 255)


def test_require_same_size() -> None:
    a = PixelBuffer.blank(2, 2)
    b = PixelBuffer.blank(3, 2)

    a.require_same_size(PixelBuffer.blank(2, 2))
    with pytest.raises(DimensionMismatch):
        a.require_same_size(b)


def test_hex_round_trip_and_short_form() -> None:
    assert Color.from_hex("#0f380f") == Color(15, 56, 15)
    assert Color.from_hex("fff") == Color(255, 255, 255)
    assert Color(15, 56, 15).to_hex() == "#0f380f"
    with pytest.raises(ConfigurationError):
        Color.from_hex("#12")


def test_luminance_and_clamp() -> None:
    assert luminance(255, 255, 255) == pytest.approx(255)
    assert luminance(0, 0, 0) == 0
    assert clamp_channel(-5) == 0
    assert clamp_channel(300) == 255
    assert clamp_channel(127.5) == 128
