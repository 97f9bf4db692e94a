from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, NamedTuple, Tuple

from PIL import Image

from .errors import ConfigurationError, DimensionMismatch


class Color(NamedTuple):
    r: int
    g: int
    b: int
    a: int = 255

    @classmethod
    def from_hex(cls, value: str) -> "Color":
        text = value.strip().lstrip("#")
        if len(text) == 3:
            text = "".join(ch * 2 for ch in text)
        if len(text) not in (6, 8):
            raise ConfigurationError(f"Invalid hex colour: {value!r}")
        try:
            channels = [int(text[i : i + 2], 16) for i in range(0, len(text), 2)]
        except ValueError as exc:
            raise ConfigurationError(f"Invalid hex colour: {value!r}") from exc
        return cls(*channels)

    def to_hex(self) -> str:
        return f"#{self.r:02x}{self.g:02x}{self.b:02x}"

    @property
    def rgb(self) -> Tuple[int, int, int]:
        return (self.r, self.g, self.b)


def luminance(r: float, g: float, b: float) -> float:
    """Rec. 601 luma on the 0-255 scale."""
    return 0.299 * r + 0.587 * g + 0.114 * b


def clamp_channel(value: float) -> int:
    if value <= 0:
        return 0
    if value >= 255:
        return 255
    return int(value + 0.5)


@dataclass
class PixelBuffer:
    """Interleaved RGBA bytes plus dimensions.

    ``len(data)`` always equals ``width * height * 4``. Transforms in this
    package return new buffers of identical dimensions and never resize.
    """

    width: int
    height: int
    data: bytearray

    def __post_init__(self) -> None:
        for name in ("width", "height"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ConfigurationError(f"{name} must be a positive integer, got {value!r}")
        if not isinstance(self.data, bytearray):
            self.data = bytearray(self.data)
        expected = self.width * self.height * 4
        if len(self.data) != expected:
            raise DimensionMismatch(
                f"Buffer holds {len(self.data)} bytes, expected {expected} for "
                f"{self.width}x{self.height} RGBA"
            )

    @classmethod
    def blank(cls, width: int, height: int, color: Tuple[int, ...] = (0, 0, 0, 255)) -> "PixelBuffer":
        rgba = tuple(color) + (255,) * (4 - len(color))
        if width <= 0 or height <= 0:
            raise ConfigurationError(f"Invalid dimensions {width}x{height}")
        return cls(width, height, bytearray(bytes(rgba[:4]) * (width * height)))

    @classmethod
    def from_image(cls, img: Image.Image) -> "PixelBuffer":
        rgba = img.convert("RGBA")
        width, height = rgba.size
        return cls(width, height, bytearray(rgba.tobytes()))

    def to_image(self) -> Image.Image:
        return Image.frombytes("RGBA", (self.width, self.height), bytes(self.data))

    def copy(self) -> "PixelBuffer":
        return PixelBuffer(self.width, self.height, bytearray(self.data))

    @property
    def size(self) -> Tuple[int, int]:
        return (self.width, self.height)

    def pixel(self, x: int, y: int) -> Color:
        idx = (y * self.width + x) * 4
        return Color(*self.data[idx : idx + 4])

    def set_pixel(self, x: int, y: int, color: Tuple[int, ...]) -> None:
        idx = (y * self.width + x) * 4
        rgba = tuple(color) + (255,) * (4 - len(color))
        self.data[idx : idx + 4] = bytes(rgba[:4])

    def pixels(self) -> Iterator[Color]:
        data = self.data
        for idx in range(0, len(data), 4):
            yield Color(data[idx], data[idx + 1], data[idx + 2], data[idx + 3])

    def same_size(self, other: "PixelBuffer") -> bool:
        return self.width == other.width and self.height == other.height

    def require_same_size(self, other: "PixelBuffer") -> None:
        if not self.same_size(other):
            raise DimensionMismatch(
                f"Expected {self.width}x{self.height}, got {other.width}x{other.height}"
            )
