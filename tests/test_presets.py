import json

import pytest

from ditherkit.errors import ConfigurationError
from ditherkit.presets import (
    DEFAULT_PRESETS,
    DitherPreset,
    PresetLibrary,
    get_preset,
    preset_from_json,
    preset_from_settings,
    preset_to_json,
)
from ditherkit.settings import AdjustmentSettings, ColorModeSettings, DitheringSettings


def _custom(preset_id="soft-mono", name="Soft Mono") -> DitherPreset:
    return DitherPreset(
        id=preset_id,
        name=name,
        dithering=DitheringSettings(algorithm="sierra-lite"),
        color_mode=ColorModeSettings(mode="mono"),
    )


def test_default_presets_are_unique_and_resolve_palettes() -> None:
    ids = [preset.id for preset in DEFAULT_PRESETS]

    assert len(ids) == len(set(ids))
    for preset in DEFAULT_PRESETS:
        assert len(preset.palette) >= 2


def test_get_preset_looks_in_extra_list() -> None:
    assert get_preset("newspaper").name == "Newspaper"
    assert get_preset("soft-mono", [_custom()]).name == "Soft Mono"
    with pytest.raises(ConfigurationError):
        get_preset("missing")


def test_json_round_trip() -> None:
    preset = get_preset("halftone-press")

    text = preset_to_json(preset)

    assert json.loads(text)["ditheringSettings"]["algorithm"] == "clustered-dot"
    assert preset_from_json(text) == preset


@pytest.mark.parametrize(
    "text",
    [
        "not json",
        "[]",
        json.dumps({"id": "x", "name": "X"}),
    ],
)
def test_invalid_imports_raise(text) -> None:
    with pytest.raises(ConfigurationError):
        preset_from_json(text)


def test_unknown_category_is_rejected() -> None:
    with pytest.raises(ConfigurationError):
        DitherPreset(id="x", name="X", category="video")


def test_preset_from_settings_builds_custom_slug_id() -> None:
    preset = preset_from_settings(
        "My Look!",
        DitheringSettings(),
        AdjustmentSettings(contrast=5),
        ColorModeSettings(),
        palette_key="gameboy",
    )

    assert preset.id.startswith("my-look-")
    assert preset.category == "custom"
    assert preset.adjustments.contrast == 5


def test_library_without_path_lists_defaults_only() -> None:
    library = PresetLibrary()

    assert library.all() == DEFAULT_PRESETS
    with pytest.raises(ConfigurationError):
        library.save(_custom())


def test_library_save_get_delete(tmp_path) -> None:
    library = PresetLibrary(str(tmp_path / "presets.json"))

    saved = library.save(_custom())
    library.save(_custom(name="Soft Mono v2"))

    assert saved.category == "custom"
    assert [p.id for p in library.custom()] == ["soft-mono"]
    assert library.get("soft-mono").name == "Soft Mono v2"
    assert len(library.all()) == len(DEFAULT_PRESETS) + 1

    assert library.delete("soft-mono")
    assert not library.delete("soft-mono")
    assert library.custom() == []


def test_library_refuses_builtin_ids(tmp_path) -> None:
    library = PresetLibrary(str(tmp_path / "presets.json"))

    with pytest.raises(ConfigurationError):
        library.save(_custom(preset_id="newspaper"))


def test_library_skips_unreadable_files(tmp_path) -> None:
    path = tmp_path / "presets.json"
    path.write_text("{broken", encoding="utf-8")

    assert PresetLibrary(str(path)).custom() == []
