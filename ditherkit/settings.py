"""Settings records consumed by the processing stages.

Each record is a frozen dataclass that validates itself on construction, so an
invalid value fails at the point where it is introduced rather than deep inside
a pixel loop. Every record also declares ``INTERPOLATION``: the per-field
description the keyframe engine uses to decide what can be blended.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, ClassVar, Dict, Mapping, Optional, Tuple, Type, TypeVar

from .errors import ConfigurationError, InvalidPaletteError

E = TypeVar("E", bound=Enum)
S = TypeVar("S")


class FieldKind(str, Enum):
    NUMERIC = "numeric"
    INTEGER = "integer"
    DISCRETE = "discrete"


class ColorMode(str, Enum):
    MONO = "mono"
    TONAL = "tonal"
    INDEXED = "indexed"
    RGB = "rgb"


class DitherFamily(str, Enum):
    ERROR_DIFFUSION = "error-diffusion"
    ORDERED = "ordered"
    NOISE = "noise"
    HALFTONE = "halftone"


class DitherAlgorithm(str, Enum):
    FLOYD_STEINBERG = "floyd-steinberg"
    ATKINSON = "atkinson"
    JARVIS_JUDICE_NINKE = "jarvis-judice-ninke"
    STUCKI = "stucki"
    BURKES = "burkes"
    SIERRA = "sierra"
    SIERRA_2ROW = "sierra-2row"
    SIERRA_LITE = "sierra-lite"
    FALSE_FLOYD_STEINBERG = "false-floyd-steinberg"
    FAN = "fan"
    SHIAU_FAN = "shiau-fan"
    BAYER_2X2 = "bayer-2x2"
    BAYER_4X4 = "bayer-4x4"
    BAYER_8X8 = "bayer-8x8"
    BAYER_16X16 = "bayer-16x16"
    ORDERED_3X3 = "ordered-3x3"
    SIMPLE_2X2 = "simple-2x2"
    RANDOM_THRESHOLD = "random-threshold"
    BLUE_NOISE = "blue-noise"
    WHITE_NOISE = "white-noise"
    CLUSTERED_DOT = "clustered-dot"

    @property
    def family(self) -> DitherFamily:
        return _ALGORITHM_FAMILIES[self]


_ALGORITHM_FAMILIES: Dict[DitherAlgorithm, DitherFamily] = {
    DitherAlgorithm.FLOYD_STEINBERG: DitherFamily.ERROR_DIFFUSION,
    DitherAlgorithm.ATKINSON: DitherFamily.ERROR_DIFFUSION,
    DitherAlgorithm.JARVIS_JUDICE_NINKE: DitherFamily.ERROR_DIFFUSION,
    DitherAlgorithm.STUCKI: DitherFamily.ERROR_DIFFUSION,
    DitherAlgorithm.BURKES: DitherFamily.ERROR_DIFFUSION,
    DitherAlgorithm.SIERRA: DitherFamily.ERROR_DIFFUSION,
    DitherAlgorithm.SIERRA_2ROW: DitherFamily.ERROR_DIFFUSION,
    DitherAlgorithm.SIERRA_LITE: DitherFamily.ERROR_DIFFUSION,
    DitherAlgorithm.FALSE_FLOYD_STEINBERG: DitherFamily.ERROR_DIFFUSION,
    DitherAlgorithm.FAN: DitherFamily.ERROR_DIFFUSION,
    DitherAlgorithm.SHIAU_FAN: DitherFamily.ERROR_DIFFUSION,
    DitherAlgorithm.BAYER_2X2: DitherFamily.ORDERED,
    DitherAlgorithm.BAYER_4X4: DitherFamily.ORDERED,
    DitherAlgorithm.BAYER_8X8: DitherFamily.ORDERED,
    DitherAlgorithm.BAYER_16X16: DitherFamily.ORDERED,
    DitherAlgorithm.ORDERED_3X3: DitherFamily.ORDERED,
    DitherAlgorithm.SIMPLE_2X2: DitherFamily.ORDERED,
    DitherAlgorithm.RANDOM_THRESHOLD: DitherFamily.NOISE,
    DitherAlgorithm.BLUE_NOISE: DitherFamily.NOISE,
    DitherAlgorithm.WHITE_NOISE: DitherFamily.NOISE,
    DitherAlgorithm.CLUSTERED_DOT: DitherFamily.HALFTONE,
}


class HalftoneShape(str, Enum):
    CIRCLE = "circle"
    DIAMOND = "diamond"


class ExtractionAlgorithm(str, Enum):
    MEDIAN_CUT = "median-cut"
    OCTREE = "octree"
    KMEANS = "kmeans"


def parse_enum(enum_cls: Type[E], value: Any, label: str) -> E:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        known = ", ".join(member.value for member in enum_cls)
        raise ConfigurationError(f"Unknown {label} {value!r}; expected one of: {known}") from None


def _number(name: str, value: Any, low: float, high: float, *, clamp: bool = False) -> float:
    if isinstance(value, bool):
        raise ConfigurationError(f"{name} must be a number, got {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be a number, got {value!r}") from None
    if math.isnan(number) or math.isinf(number):
        raise ConfigurationError(f"{name} must be finite, got {value!r}")
    if number < low or number > high:
        if clamp:
            return min(high, max(low, number))
        raise ConfigurationError(f"{name}={number} outside [{low}, {high}]")
    return number


def _integer(name: str, value: Any, low: int, high: int, error=ConfigurationError) -> int:
    if isinstance(value, bool):
        raise error(f"{name} must be an integer, got {value!r}")
    if isinstance(value, int):
        number = value
    else:
        try:
            as_float = float(value)
        except (TypeError, ValueError):
            raise error(f"{name} must be an integer, got {value!r}") from None
        if math.isnan(as_float) or math.isinf(as_float) or as_float != int(as_float):
            raise error(f"{name} must be an integer, got {value!r}")
        number = int(as_float)
    if number < low or number > high:
        raise error(f"{name}={number} outside [{low}, {high}]")
    return number


def parse_bool(name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)) and value in (0, 1):
        return bool(value)
    text = str(value).strip().lower()
    if text in ("1", "true", "yes", "on"):
        return True
    if text in ("0", "false", "no", "off"):
        return False
    raise ConfigurationError(f"{name} must be a boolean, got {value!r}")


_CAMEL = re.compile(r"(?<!^)(?=[A-Z])")


def snake_key(key: str) -> str:
    return _CAMEL.sub("_", key).replace("-", "_").lower()


def record_to_dict(record: Any) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for field in fields(record):
        value = getattr(record, field.name)
        out[field.name] = value.value if isinstance(value, Enum) else value
    return out


def record_from_dict(cls: Type[S], payload: Mapping[str, Any]) -> S:
    if not isinstance(payload, Mapping):
        raise ConfigurationError(f"{cls.__name__} expects a mapping, got {type(payload).__name__}")
    known = {field.name for field in fields(cls)}
    kwargs: Dict[str, Any] = {}
    for key, value in payload.items():
        name = snake_key(str(key))
        if name not in known:
            raise ConfigurationError(f"Unknown {cls.__name__} field {key!r}")
        kwargs[name] = value
    return cls(**kwargs)


def _set(record: Any, name: str, value: Any) -> None:
    object.__setattr__(record, name, value)


_ADJUSTMENT_RANGES: Dict[str, Tuple[float, float]] = {
    "exposure": (-2.0, 2.0),
    "brightness": (-100.0, 100.0),
    "contrast": (-100.0, 100.0),
    "hue": (-180.0, 180.0),
    "saturation": (-100.0, 100.0),
    "vibrance": (-100.0, 100.0),
    "temperature": (-100.0, 100.0),
    "tint": (-100.0, 100.0),
    "highlights": (-100.0, 100.0),
    "shadows": (-100.0, 100.0),
    "gamma": (0.5, 2.0),
    "blur": (0.0, 20.0),
    "sharpen": (0.0, 100.0),
    "denoise": (0.0, 100.0),
    "vignette": (0.0, 100.0),
}

# Percent knobs are clamped into range instead of rejected.
_PERCENT_FIELDS = frozenset({"sharpen", "denoise", "vignette"})


@dataclass(frozen=True)
class AdjustmentSettings:
    exposure: float = 0.0
    brightness: float = 0.0
    contrast: float = 0.0
    hue: float = 0.0
    saturation: float = 0.0
    vibrance: float = 0.0
    temperature: float = 0.0
    tint: float = 0.0
    highlights: float = 0.0
    shadows: float = 0.0
    gamma: float = 1.0
    blur: float = 0.0
    sharpen: float = 0.0
    denoise: float = 0.0
    vignette: float = 0.0

    INTERPOLATION: ClassVar[Mapping[str, FieldKind]] = {
        name: FieldKind.NUMERIC for name in _ADJUSTMENT_RANGES
    }

    def __post_init__(self) -> None:
        for name, (low, high) in _ADJUSTMENT_RANGES.items():
            value = _number(name, getattr(self, name), low, high, clamp=name in _PERCENT_FIELDS)
            _set(self, name, value)

    def is_neutral(self) -> bool:
        return self == AdjustmentSettings()

    def to_dict(self) -> Dict[str, Any]:
        return record_to_dict(self)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "AdjustmentSettings":
        return record_from_dict(cls, payload)


@dataclass(frozen=True)
class ColorModeSettings:
    mode: ColorMode = ColorMode.RGB
    shades: Optional[int] = 16
    mono_threshold: int = 128
    quantization_method: Optional[ExtractionAlgorithm] = None
    palette_size: int = 16

    INTERPOLATION: ClassVar[Mapping[str, FieldKind]] = {
        "mode": FieldKind.DISCRETE,
        "shades": FieldKind.INTEGER,
        "mono_threshold": FieldKind.INTEGER,
        "quantization_method": FieldKind.DISCRETE,
        "palette_size": FieldKind.INTEGER,
    }

    def __post_init__(self) -> None:
        _set(self, "mode", parse_enum(ColorMode, self.mode, "color mode"))
        if self.shades is not None:
            _set(self, "shades", _integer("shades", self.shades, 2, 256, InvalidPaletteError))
        _set(self, "mono_threshold", _integer("mono_threshold", self.mono_threshold, 0, 255))
        if self.quantization_method is not None:
            method = parse_enum(ExtractionAlgorithm, self.quantization_method, "quantization method")
            _set(self, "quantization_method", method)
        _set(self, "palette_size", _integer("palette_size", self.palette_size, 1, 256, InvalidPaletteError))

    def to_dict(self) -> Dict[str, Any]:
        return record_to_dict(self)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ColorModeSettings":
        return record_from_dict(cls, payload)


@dataclass(frozen=True)
class DitheringSettings:
    algorithm: DitherAlgorithm = DitherAlgorithm.FLOYD_STEINBERG
    serpentine: bool = True
    error_attenuation: float = 1.0
    random_noise: float = 0.0
    seed: Optional[int] = None
    halftone_cell_size: int = 6
    halftone_angle: float = 45.0
    halftone_shape: HalftoneShape = HalftoneShape.CIRCLE

    INTERPOLATION: ClassVar[Mapping[str, FieldKind]] = {
        "algorithm": FieldKind.DISCRETE,
        "serpentine": FieldKind.DISCRETE,
        "error_attenuation": FieldKind.NUMERIC,
        "random_noise": FieldKind.NUMERIC,
        "seed": FieldKind.DISCRETE,
        "halftone_cell_size": FieldKind.INTEGER,
        "halftone_angle": FieldKind.NUMERIC,
        "halftone_shape": FieldKind.DISCRETE,
    }

    def __post_init__(self) -> None:
        _set(self, "algorithm", parse_enum(DitherAlgorithm, self.algorithm, "dithering algorithm"))
        _set(self, "serpentine", parse_bool("serpentine", self.serpentine))
        _set(self, "error_attenuation", _number("error_attenuation", self.error_attenuation, 0.0, 1.0))
        _set(self, "random_noise", _number("random_noise", self.random_noise, 0.0, 1.0))
        if self.seed is not None:
            _set(self, "seed", _integer("seed", self.seed, 0, 2**63 - 1))
        _set(self, "halftone_cell_size", _integer("halftone_cell_size", self.halftone_cell_size, 2, 64))
        _set(self, "halftone_angle", _number("halftone_angle", self.halftone_angle, -360.0, 360.0))
        _set(self, "halftone_shape", parse_enum(HalftoneShape, self.halftone_shape, "halftone shape"))

    @property
    def family(self) -> DitherFamily:
        return self.algorithm.family

    def to_dict(self) -> Dict[str, Any]:
        return record_to_dict(self)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "DitheringSettings":
        return record_from_dict(cls, payload)
