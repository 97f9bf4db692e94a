import pytest

from ditherkit.buffer import PixelBuffer
from ditherkit.errors import ConfigurationError, DimensionMismatch
from ditherkit.keyframes import AnimatedSettings, Keyframe, TransitionMode
from ditherkit.processing.palette import get_palette
from ditherkit.processing.pipeline import (
    AnimationPlan,
    FrameSettings,
    VideoInfo,
    estimate_processing_seconds,
    process_frame,
    process_frames,
)
from ditherkit.settings import (
    AdjustmentSettings,
    ColorModeSettings,
    DitherAlgorithm,
    DitheringSettings,
)


def _gradient(width=8, height=4) -> PixelBuffer:
    buffer = PixelBuffer.blank(width, height)
    for y in range(height):
        for x in range(width):
            value = x * 255 // (width - 1)
            buffer.set_pixel(x, y, (value, value, value))
    return buffer


def _two_tone(top, bottom, width=4) -> PixelBuffer:
    buffer = PixelBuffer.blank(width, 2, tuple(top) + (255,))
    for x in range(width):
        buffer.set_pixel(x, 1, bottom)
    return buffer


def _defaults(**color_mode) -> FrameSettings:
    return FrameSettings(AdjustmentSettings(), ColorModeSettings(**color_mode), DitheringSettings())


def test_process_frame_outputs_palette_colours() -> None:
    out = process_frame(_gradient(), get_palette("bw"), _defaults())

    assert out.size == (8, 4)
    assert {pixel.rgb for pixel in out.pixels()} <= {(0, 0, 0), (255, 255, 255)}


def test_indexed_mode_extracts_palette_from_frame() -> None:
    frame = _two_tone((200, 30, 30), (30, 30, 200))
    settings = _defaults(mode="indexed", quantization_method="median-cut", palette_size=2)

    out = process_frame(frame, get_palette("bw"), settings)

    assert {pixel.rgb for pixel in out.pixels()} == {(200, 30, 30), (30, 30, 200)}


def test_indexed_mode_can_extract_from_another_buffer() -> None:
    frame = _two_tone((200, 30, 30), (30, 30, 200))
    source = _two_tone((0, 255, 0), (255, 255, 0))
    settings = _defaults(mode="indexed", quantization_method="octree", palette_size=2)

    out = process_frame(frame, get_palette("bw"), settings, palette_source=source)

    assert {pixel.rgb for pixel in out.pixels()} <= {(0, 255, 0), (255, 255, 0)}


def test_palette_source_must_match_frame_size() -> None:
    settings = _defaults(mode="indexed", quantization_method="kmeans", palette_size=2)

    with pytest.raises(DimensionMismatch):
        process_frame(_gradient(), get_palette("bw"), settings, palette_source=_gradient(4, 4))


def test_frames_must_share_dimensions() -> None:
    with pytest.raises(DimensionMismatch):
        process_frames([_gradient(), _gradient(6, 4)], get_palette("bw"))


def test_progress_is_reported_per_frame() -> None:
    calls = []

    out = process_frames(
        [_gradient()] * 3,
        get_palette("bw"),
        on_progress=lambda done, total: calls.append((done, total)),
    )

    assert len(out) == 3
    assert calls == [(1, 3), (2, 3), (3, 3)]


def test_cancel_stops_between_frames() -> None:
    calls = []

    out = process_frames(
        [_gradient()] * 4,
        get_palette("bw"),
        on_progress=lambda done, total: calls.append(done),
        should_cancel=lambda: len(calls) >= 2,
    )

    assert len(out) == 2
    assert calls == [1, 2]


def test_no_frames_is_empty() -> None:
    assert process_frames([], get_palette("bw")) == []


def test_animated_plan_changes_settings_per_frame() -> None:
    track = AnimatedSettings(
        enabled=True,
        keyframes=(
            Keyframe(0, DitheringSettings(algorithm="floyd-steinberg")),
            Keyframe(2, DitheringSettings(algorithm="bayer-2x2"), transition_mode=TransitionMode.STEP),
        ),
    )
    plan = AnimationPlan(animated_dithering=track)
    palette = get_palette("bw")

    assert plan.is_animated
    assert plan.settings_for_frame(1).dithering.algorithm is DitherAlgorithm.FLOYD_STEINBERG
    assert plan.settings_for_frame(2).dithering.algorithm is DitherAlgorithm.BAYER_2X2
    assert plan.settings_for_frame(5).adjustments is plan.adjustments

    out = process_frames([_gradient()] * 3, palette, plan)
    expected = process_frame(_gradient(), palette, plan.settings_for_frame(2))
    assert out[2].data == expected.data


def test_static_plan_is_not_animated() -> None:
    plan = AnimationPlan()

    assert not plan.is_animated
    assert plan.settings_for_frame(7) == plan.static


def test_processing_estimate_scales_with_pixels() -> None:
    assert estimate_processing_seconds(10, 640, 480) == pytest.approx(0.5)
    assert estimate_processing_seconds(1, 1280, 960) == pytest.approx(0.2)
    assert estimate_processing_seconds(0, 640, 480) == 0.0


def test_video_info_frame_mapping() -> None:
    info = VideoInfo.from_frame_count(30, 15.0)

    assert info.duration == pytest.approx(2.0)
    assert info.frame_at(1.0) == 15
    assert info.frame_at(99) == 29
    assert info.frame_at(-1) == 0
    assert info.time_of(15) == pytest.approx(1.0)


def test_video_info_rejects_bad_rates() -> None:
    with pytest.raises(ConfigurationError):
        VideoInfo(fps=0, total_frames=10, duration=1.0)
