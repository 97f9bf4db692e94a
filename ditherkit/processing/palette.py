from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Sequence, Tuple

from ..buffer import Color, luminance
from ..errors import InvalidPaletteError


def _coerce_color(value: Any) -> Color:
    if isinstance(value, Color):
        return value
    if isinstance(value, str):
        return Color.from_hex(value)
    if isinstance(value, Mapping):
        try:
            channels = [value["r"], value["g"], value["b"], value.get("a", 255)]
        except KeyError as exc:
            raise InvalidPaletteError(f"Colour mapping missing channel {exc}") from None
    else:
        channels = list(value)
        if len(channels) == 3:
            channels.append(255)
    if len(channels) != 4:
        raise InvalidPaletteError(f"Colour needs 3 or 4 channels, got {value!r}")
    out = []
    for channel in channels:
        try:
            number = int(channel)
        except (TypeError, ValueError):
            raise InvalidPaletteError(f"Invalid colour channel {channel!r}") from None
        if number < 0 or number > 255:
            raise InvalidPaletteError(f"Colour channel {number} outside [0, 255]")
        out.append(number)
    return Color(*out)


@dataclass(frozen=True)
class Palette:
    """Ordered colour set plus a name/category tag.

    A palette may be built empty, but every operation that quantizes against it
    calls :meth:`require_colors` first.
    """

    name: str
    colors: Tuple[Color, ...] = ()
    category: str = "custom"
    description: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "colors", tuple(_coerce_color(c) for c in self.colors))

    def __len__(self) -> int:
        return len(self.colors)

    def __iter__(self) -> Iterator[Color]:
        return iter(self.colors)

    def require_colors(self) -> Tuple[Color, ...]:
        if not self.colors:
            raise InvalidPaletteError(f"Palette {self.name!r} has no colours")
        return self.colors

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "category": self.category,
            "description": self.description,
            "colors": [{"r": c.r, "g": c.g, "b": c.b, "a": c.a} for c in self.colors],
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Palette":
        try:
            colors = payload["colors"]
        except (KeyError, TypeError):
            raise InvalidPaletteError("Palette payload needs a 'colors' list") from None
        return cls(
            name=str(payload.get("name", "Custom")),
            colors=tuple(colors),
            category=str(payload.get("category", payload.get("type", "custom"))),
            description=str(payload.get("description") or ""),
        )


def nearest_palette_index(rgb: Sequence[float], colors: Sequence[Color], use_alpha: bool = False) -> int:
    """Index of the closest colour by squared Euclidean distance.

    Ties keep the lowest index. With ``use_alpha`` the alpha channel joins the
    distance and ``rgb`` must carry four channels.
    """
    best_index = 0
    best_distance = float("inf")
    r, g, b = rgb[0], rgb[1], rgb[2]
    a = rgb[3] if use_alpha else 0
    for index, color in enumerate(colors):
        distance = (color[0] - r) ** 2 + (color[1] - g) ** 2 + (color[2] - b) ** 2
        if use_alpha:
            distance += (color[3] - a) ** 2
        if distance < best_distance:
            best_distance = distance
            best_index = index
    return best_index


class PaletteMatcher:
    """Nearest-colour and luminance bracketing lookups against one palette.

    Results for integral inputs are memoised, which keeps repeated lookups in
    the per-pixel loops cheap on photographs with large flat regions.
    """

    def __init__(self, palette: Palette, use_alpha: bool = False) -> None:
        self.colors: Tuple[Color, ...] = palette.require_colors()
        self.use_alpha = use_alpha
        self._nearest_cache: Dict[Tuple[int, ...], int] = {}
        self._lumas = [luminance(c.r, c.g, c.b) for c in self.colors]
        by_luma: List[Tuple[float, int]] = []
        for index in sorted(range(len(self.colors)), key=lambda i: (self._lumas[i], i)):
            if by_luma and by_luma[-1][0] == self._lumas[index]:
                continue
            by_luma.append((self._lumas[index], index))
        self._luma_levels = [level for level, _ in by_luma]
        self._luma_indices = [index for _, index in by_luma]

    def nearest(self, r: float, g: float, b: float, a: float = 255) -> int:
        key = (r, g, b, a) if self.use_alpha else (r, g, b)
        if all(type(v) is int for v in key):
            cached = self._nearest_cache.get(key)
            if cached is None:
                cached = nearest_palette_index(key, self.colors, self.use_alpha)
                self._nearest_cache[key] = cached
            return cached
        return nearest_palette_index(key, self.colors, self.use_alpha)

    def bracket_luminance(self, value: float) -> Tuple[int, int, float]:
        """``(dark, light, fraction)`` for the entries whose luma brackets ``value``."""
        levels = self._luma_levels
        indices = self._luma_indices
        if value <= levels[0]:
            return indices[0], indices[0], 0.0
        if value >= levels[-1]:
            return indices[-1], indices[-1], 0.0
        pos = bisect_right(levels, value) - 1
        low, high = levels[pos], levels[pos + 1]
        return indices[pos], indices[pos + 1], (value - low) / (high - low)

    def darkest(self) -> int:
        return self._luma_indices[0]

    def lightest(self) -> int:
        return self._luma_indices[-1]

    def luma(self, index: int) -> float:
        return self._lumas[index]


def grayscale_palette(shades: int) -> Palette:
    if shades < 2 or shades > 256:
        raise InvalidPaletteError(f"Grayscale palette needs 2-256 shades, got {shades}")
    colors = []
    for i in range(shades):
        value = int(round(255 / (shades - 1) * i))
        colors.append(Color(value, value, value))
    return Palette(
        name=f"{shades} Shades",
        colors=tuple(colors),
        category="grayscale",
        description=f"{shades}-level grayscale",
    )


def custom_palette(colors: Iterable[Any], name: str = "Custom", description: str = "") -> Palette:
    return Palette(name=name, colors=tuple(colors), category="custom", description=description)


BUILT_IN_PALETTES: Dict[str, Palette] = {
    "bw": Palette("Black & White", ((0, 0, 0), (255, 255, 255)), "bw", "Pure black and white"),
    "warm-bw": Palette("Warm B&W", ((40, 26, 13), (255, 250, 240)), "warm-bw", "Sepia-toned black and white"),
    "cool-bw": Palette("Cool B&W", ((13, 26, 40), (240, 250, 255)), "cool-bw", "Blue-toned black and white"),
    "grayscale-2": grayscale_palette(2),
    "grayscale-4": grayscale_palette(4),
    "grayscale-8": grayscale_palette(8),
    "grayscale-16": grayscale_palette(16),
    "gameboy": Palette(
        "Game Boy",
        ((15, 56, 15), (48, 98, 48), (139, 172, 15), (155, 188, 15)),
        "gameboy",
        "Classic Game Boy greens",
    ),
    "cga": Palette(
        "CGA",
        ((0, 0, 0), (0, 255, 255), (255, 0, 255), (255, 255, 255)),
        "cga",
        "IBM CGA mode 4, palette 1",
    ),
}


def get_palette(key: str) -> Palette:
    try:
        return BUILT_IN_PALETTES[key]
    except KeyError:
        known = ", ".join(BUILT_IN_PALETTES)
        raise InvalidPaletteError(f"Unknown palette {key!r}; expected one of: {known}") from None
