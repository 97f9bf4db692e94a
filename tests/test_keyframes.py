import pytest

from ditherkit.errors import ConfigurationError
from ditherkit.keyframes import (
    AnimatedSettings,
    Easing,
    Keyframe,
    TransitionMode,
    apply_easing,
    interpolate,
    resolve,
)
from ditherkit.settings import AdjustmentSettings, DitherAlgorithm, DitheringSettings

STATIC = DitheringSettings(algorithm="bayer-4x4")
START = DitheringSettings(algorithm="floyd-steinberg", error_attenuation=0.0, halftone_cell_size=4)
END = DitheringSettings(algorithm="atkinson", error_attenuation=1.0, halftone_cell_size=7)


def _track(transition=None, easing=Easing.LINEAR, enabled=True) -> AnimatedSettings:
    return AnimatedSettings(
        enabled=enabled,
        keyframes=(
            Keyframe(0, START),
            Keyframe(10, END, easing=easing, transition_mode=transition),
        ),
    )


@pytest.mark.parametrize(
    "easing,expected",
    [
        (Easing.LINEAR, 0.5),
        (Easing.EASE_IN, 0.25),
        (Easing.EASE_OUT, 0.75),
        (Easing.EASE_IN_OUT, 0.5),
    ],
)
def test_easing_curves(easing, expected) -> None:
    assert apply_easing(easing, 0.5) == pytest.approx(expected)
    assert apply_easing(easing, 0.0) == 0.0
    assert apply_easing(easing, 1.0) == 1.0


def test_easing_clamps_input() -> None:
    assert apply_easing("ease-in", -3) == 0.0
    assert apply_easing("ease-out", 4) == 1.0


def test_step_transition_holds_until_next_keyframe() -> None:
    track = _track(transition=TransitionMode.STEP)

    assert resolve(track, 5, STATIC).algorithm is DitherAlgorithm.FLOYD_STEINBERG
    assert resolve(track, 9, STATIC).algorithm is DitherAlgorithm.FLOYD_STEINBERG
    assert resolve(track, 10, STATIC).algorithm is DitherAlgorithm.ATKINSON


def test_keyframe_frames_return_stored_settings() -> None:
    track = _track()

    assert resolve(track, 0, STATIC) is START
    assert resolve(track, 10, STATIC) is END


def test_frames_outside_range_clamp_to_ends() -> None:
    track = AnimatedSettings(enabled=True, keyframes=(Keyframe(5, START), Keyframe(8, END)))

    assert resolve(track, 0, STATIC) is START
    assert resolve(track, 100, STATIC) is END


def test_inactive_tracks_use_static_settings() -> None:
    assert resolve(_track(enabled=False), 5, STATIC) is STATIC
    assert resolve(AnimatedSettings(enabled=True), 5, STATIC) is STATIC


def test_blend_interpolates_numbers_and_holds_discrete_fields() -> None:
    middle = resolve(_track(), 5, STATIC)

    assert middle.error_attenuation == pytest.approx(0.5)
    assert middle.halftone_cell_size == 6
    assert middle.algorithm is DitherAlgorithm.FLOYD_STEINBERG


def test_easing_comes_from_the_later_keyframe() -> None:
    middle = resolve(_track(easing=Easing.EASE_IN), 5, STATIC)

    assert middle.error_attenuation == pytest.approx(0.25)


def test_interpolate_adjustments() -> None:
    start = AdjustmentSettings(contrast=-20, gamma=1.0)
    end = AdjustmentSettings(contrast=40, gamma=2.0)

    out = interpolate(start, end, 0.25)

    assert out.contrast == pytest.approx(-5)
    assert out.gamma == pytest.approx(1.25)


def test_interpolate_rejects_mixed_types() -> None:
    with pytest.raises(ConfigurationError):
        interpolate(START, AdjustmentSettings(), 0.5)


def test_duplicate_frames_are_rejected() -> None:
    with pytest.raises(ConfigurationError):
        AnimatedSettings(keyframes=(Keyframe(3, START), Keyframe(3, END)))


@pytest.mark.parametrize("frame", [-1, 2.5, True])
def test_bad_keyframe_frames(frame) -> None:
    with pytest.raises(ConfigurationError):
        Keyframe(frame, START)


def test_keyframes_are_kept_sorted() -> None:
    track = AnimatedSettings(keyframes=(Keyframe(9, END), Keyframe(2, START)))

    assert track.frames == (2, 9)
    assert track.previous_keyframe(9).frame == 2
    assert track.next_keyframe(2).frame == 9
    assert track.next_keyframe(9) is None
    assert track.keyframe_at(4) is None


def test_editing_helpers_return_updated_copies() -> None:
    track = _track()

    replaced = track.with_keyframe(Keyframe(10, STATIC))
    assert replaced.keyframe_at(10).settings is STATIC
    assert track.keyframe_at(10).settings is END

    assert track.without_keyframe(0).frames == (10,)
    assert track.with_easing(10, "ease-out").keyframe_at(10).easing is Easing.EASE_OUT
    stepped = track.with_transition(10, "step").keyframe_at(10)
    assert stepped.effective_transition is TransitionMode.STEP
    assert not track.with_enabled(False).is_active
    assert len(track.cleared()) == 0


def test_editing_missing_keyframe_raises() -> None:
    with pytest.raises(ConfigurationError):
        _track().with_easing(4, Easing.EASE_IN)


def test_dict_round_trip() -> None:
    track = _track(transition=TransitionMode.STEP, easing=Easing.EASE_IN_OUT)

    payload = track.to_dict()

    assert payload["keyframes"][1]["transitionMode"] == "step"
    assert AnimatedSettings.from_dict(payload, DitheringSettings) == track


def test_from_dict_rejects_malformed_keyframes() -> None:
    with pytest.raises(ConfigurationError):
        AnimatedSettings.from_dict({"enabled": True, "keyframes": [{"frame": 1}]}, DitheringSettings)
