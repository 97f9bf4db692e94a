from __future__ import annotations

import json
import logging
import os
import re
import time
import uuid
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Mapping, Optional

from .errors import ConfigurationError
from .processing.palette import Palette, get_palette
from .settings import AdjustmentSettings, ColorModeSettings, DitheringSettings

LOGGER = logging.getLogger(__name__)

CATEGORIES = ("retro", "print", "artistic", "custom")

_REQUIRED_KEYS = ("id", "name", "ditheringSettings", "adjustmentSettings", "colorModeSettings")


@dataclass(frozen=True)
class DitherPreset:
    id: str
    name: str
    description: str = ""
    category: str = "custom"
    dithering: DitheringSettings = field(default_factory=DitheringSettings)
    adjustments: AdjustmentSettings = field(default_factory=AdjustmentSettings)
    color_mode: ColorModeSettings = field(default_factory=ColorModeSettings)
    palette_key: str = "bw"

    def __post_init__(self) -> None:
        if not self.id or not self.name:
            raise ConfigurationError("Preset needs a non-empty id and name")
        if self.category not in CATEGORIES:
            raise ConfigurationError(f"Unknown preset category {self.category!r}")

    @property
    def palette(self) -> Palette:
        return get_palette(self.palette_key)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "ditheringSettings": self.dithering.to_dict(),
            "adjustmentSettings": self.adjustments.to_dict(),
            "colorModeSettings": self.color_mode.to_dict(),
            "paletteType": self.palette_key,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "DitherPreset":
        if not isinstance(payload, Mapping):
            raise ConfigurationError("Preset payload must be a JSON object")
        missing = [key for key in _REQUIRED_KEYS if not payload.get(key)]
        if missing:
            raise ConfigurationError(f"Invalid preset format, missing: {', '.join(missing)}")
        return cls(
            id=str(payload["id"]),
            name=str(payload["name"]),
            description=str(payload.get("description") or ""),
            category=str(payload.get("category") or "custom"),
            dithering=DitheringSettings.from_dict(payload["ditheringSettings"]),
            adjustments=AdjustmentSettings.from_dict(payload["adjustmentSettings"]),
            color_mode=ColorModeSettings.from_dict(payload["colorModeSettings"]),
            palette_key=str(payload.get("paletteType") or "bw"),
        )


DEFAULT_PRESETS: List[DitherPreset] = [
    DitherPreset(
        id="newspaper",
        name="Newspaper",
        description="Classic newspaper look with high contrast",
        category="print",
        dithering=DitheringSettings(algorithm="floyd-steinberg", error_attenuation=0.8),
        adjustments=AdjustmentSettings(contrast=30, sharpen=50),
        color_mode=ColorModeSettings(mode="mono", shades=2),
        palette_key="bw",
    ),
    DitherPreset(
        id="retro-game",
        name="Retro Game",
        description="Handheld console greens with Atkinson dithering",
        category="retro",
        dithering=DitheringSettings(algorithm="atkinson", serpentine=False),
        adjustments=AdjustmentSettings(saturation=20),
        color_mode=ColorModeSettings(mode="indexed", shades=16),
        palette_key="gameboy",
    ),
    DitherPreset(
        id="cga-ordered",
        name="CGA Ordered",
        description="Four-colour CGA palette with a Bayer pattern",
        category="retro",
        dithering=DitheringSettings(algorithm="bayer-4x4", serpentine=False),
        adjustments=AdjustmentSettings(saturation=10, contrast=10),
        color_mode=ColorModeSettings(mode="indexed", shades=16),
        palette_key="cga",
    ),
    DitherPreset(
        id="print-ready",
        name="Print Ready",
        description="Wide-kernel diffusion tuned for printing",
        category="print",
        dithering=DitheringSettings(algorithm="jarvis-judice-ninke"),
        adjustments=AdjustmentSettings(sharpen=30, contrast=10),
        color_mode=ColorModeSettings(mode="rgb", shades=16),
        palette_key="grayscale-8",
    ),
    DitherPreset(
        id="halftone-press",
        name="Halftone Press",
        description="Rotated clustered-dot screen",
        category="print",
        dithering=DitheringSettings(algorithm="clustered-dot", halftone_cell_size=8, halftone_angle=45),
        adjustments=AdjustmentSettings(contrast=15),
        color_mode=ColorModeSettings(mode="rgb"),
        palette_key="bw",
    ),
    DitherPreset(
        id="risograph",
        name="Risograph",
        description="Grainy diffusion with a touch of noise",
        category="artistic",
        dithering=DitheringSettings(algorithm="floyd-steinberg", error_attenuation=0.85, random_noise=0.05),
        adjustments=AdjustmentSettings(saturation=25, contrast=20),
        color_mode=ColorModeSettings(mode="indexed", quantization_method="median-cut", palette_size=8),
        palette_key="bw",
    ),
    DitherPreset(
        id="monochrome-tonal",
        name="Monochrome Tonal",
        description="Smooth grayscale with subtle gradations",
        category="print",
        dithering=DitheringSettings(algorithm="sierra"),
        color_mode=ColorModeSettings(mode="tonal", shades=16),
        palette_key="grayscale-16",
    ),
]


def get_preset(preset_id: str, extra: Optional[List[DitherPreset]] = None) -> DitherPreset:
    for preset in list(DEFAULT_PRESETS) + list(extra or []):
        if preset.id == preset_id:
            return preset
    raise ConfigurationError(f"Unknown preset {preset_id!r}")


def preset_to_json(preset: DitherPreset) -> str:
    return json.dumps(preset.to_dict(), indent=2)


def preset_from_json(text: str) -> DitherPreset:
    try:
        payload = json.loads(text)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Failed to import preset: {exc}") from None
    return DitherPreset.from_dict(payload)


def generate_preset_id(name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-") or "preset"
    return f"{slug}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:6]}"


def preset_from_settings(
    name: str,
    dithering: DitheringSettings,
    adjustments: AdjustmentSettings,
    color_mode: ColorModeSettings,
    palette_key: str = "bw",
    description: str = "",
) -> DitherPreset:
    return DitherPreset(
        id=generate_preset_id(name),
        name=name,
        description=description,
        category="custom",
        dithering=dithering,
        adjustments=adjustments,
        color_mode=color_mode,
        palette_key=palette_key,
    )


class PresetLibrary:
    """Custom presets persisted as a JSON list on disk.

    Built-in presets are always listed first and can not be overwritten.
    """

    def __init__(self, path: Optional[str] = None) -> None:
        self.path = path

    def custom(self) -> List[DitherPreset]:
        if not self.path or not os.path.exists(self.path):
            return []
        try:
            with open(self.path, "r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except (OSError, ValueError) as exc:
            LOGGER.warning("Could not load custom presets from %s: %s", self.path, exc)
            return []
        if not isinstance(payload, list):
            LOGGER.warning("Ignoring custom presets file %s: expected a list", self.path)
            return []
        presets = []
        for item in payload:
            try:
                presets.append(DitherPreset.from_dict(item))
            except ConfigurationError as exc:
                LOGGER.warning("Skipping invalid custom preset: %s", exc)
        return presets

    def all(self) -> List[DitherPreset]:
        return list(DEFAULT_PRESETS) + self.custom()

    def get(self, preset_id: str) -> DitherPreset:
        return get_preset(preset_id, self.custom())

    def save(self, preset: DitherPreset) -> DitherPreset:
        if any(p.id == preset.id for p in DEFAULT_PRESETS):
            raise ConfigurationError(f"Preset id {preset.id!r} is reserved")
        if not self.path:
            raise ConfigurationError("No preset storage path configured")
        preset = replace(preset, category="custom")
        presets = [p for p in self.custom() if p.id != preset.id]
        presets.append(preset)
        self._write(presets)
        return preset

    def delete(self, preset_id: str) -> bool:
        presets = self.custom()
        kept = [p for p in presets if p.id != preset_id]
        if len(kept) == len(presets):
            return False
        self._write(kept)
        return True

    def _write(self, presets: List[DitherPreset]) -> None:
        tmp_path = f"{self.path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as handle:
            json.dump([p.to_dict() for p in presets], handle, indent=2)
        os.replace(tmp_path, self.path)
