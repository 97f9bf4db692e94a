import math
from dataclasses import fields

import pytest

from ditherkit.errors import ConfigurationError, InvalidPaletteError
from ditherkit.settings import (
    AdjustmentSettings,
    ColorMode,
    ColorModeSettings,
    DitherAlgorithm,
    DitherFamily,
    DitheringSettings,
    ExtractionAlgorithm,
    FieldKind,
    HalftoneShape,
)


def test_adjustment_defaults_are_neutral() -> None:
    settings = AdjustmentSettings()

    assert settings.is_neutral()
    assert settings.gamma == 1.0
    assert settings.exposure == 0.0


@pytest.mark.parametrize(
    "field, value",
    [("exposure", 2.5), ("brightness", -101), ("gamma", 0.4), ("hue", 181), ("blur", 21)],
)
def test_adjustment_out_of_range_fails(field, value) -> None:
    with pytest.raises(ConfigurationError):
        AdjustmentSettings(**{field: value})


def test_adjustment_rejects_nan() -> None:
    with pytest.raises(ConfigurationError):
        AdjustmentSettings(contrast=math.nan)


def test_percent_fields_are_clamped() -> None:
    settings = AdjustmentSettings(sharpen=150, vignette=-4)

    assert settings.sharpen == 100
    assert settings.vignette == 0


def test_every_field_has_an_interpolation_kind() -> None:
    for cls in (AdjustmentSettings, ColorModeSettings, DitheringSettings):
        names = {f.name for f in fields(cls)}
        assert names == set(cls.INTERPOLATION)


def test_color_mode_shades_range() -> None:
    assert ColorModeSettings(mode="tonal", shades=256).shades == 256
    with pytest.raises(InvalidPaletteError):
        ColorModeSettings(mode="tonal", shades=1)
    with pytest.raises(InvalidPaletteError):
        ColorModeSettings(mode="tonal", shades=257)


def test_color_mode_parses_strings() -> None:
    settings = ColorModeSettings(mode="Indexed", quantization_method="octree", shades="8")

    assert settings.mode is ColorMode.INDEXED
    assert settings.quantization_method is ExtractionAlgorithm.OCTREE
    assert settings.shades == 8
    assert ColorModeSettings.INTERPOLATION["shades"] is FieldKind.INTEGER


def test_unknown_algorithm_fails() -> None:
    with pytest.raises(ConfigurationError):
        DitheringSettings(algorithm="not-a-dither")


def test_every_algorithm_has_a_family() -> None:
    assert len(DitherAlgorithm) == 21
    for algorithm in DitherAlgorithm:
        assert isinstance(algorithm.family, DitherFamily)
    assert DitherAlgorithm.BLUE_NOISE.family is DitherFamily.NOISE
    assert DitherAlgorithm.CLUSTERED_DOT.family is DitherFamily.HALFTONE


@pytest.mark.parametrize("field, value", [("error_attenuation", 1.5), ("random_noise", -0.1)])
def test_dithering_ranges(field, value) -> None:
    with pytest.raises(ConfigurationError):
        DitheringSettings(**{field: value})


def test_dithering_from_camel_case_dict() -> None:
    settings = DitheringSettings.from_dict(
        {"algorithm": "atkinson", "serpentine": "false", "errorAttenuation": 0.5, "halftoneShape": "diamond"}
    )

    assert settings.algorithm is DitherAlgorithm.ATKINSON
    assert settings.serpentine is False
    assert settings.error_attenuation == 0.5
    assert settings.halftone_shape is HalftoneShape.DIAMOND
    assert DitheringSettings.from_dict(settings.to_dict()) == settings


def test_from_dict_rejects_unknown_fields() -> None:
    with pytest.raises(ConfigurationError):
        AdjustmentSettings.from_dict({"sparkle": 3})


def test_large_seed_is_exact() -> None:
    seed = 2**62 + 1

    assert DitheringSettings(seed=seed).seed == seed
