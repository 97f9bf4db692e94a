from __future__ import annotations

from dataclasses import asdict, fields, replace
from typing import Any, Dict, Mapping, Optional, Tuple

from flask import Flask, jsonify, request
from PIL import Image, UnidentifiedImageError

from . import __version__
from .buffer import PixelBuffer
from .config import SETTINGS, ServiceSettings, configure_logging
from .errors import ConfigurationError, DimensionMismatch, SourceFetchError
from .infrastructure.cache import CACHE, cache_key, last_good_png
from .infrastructure.network import FETCHER
from .infrastructure.responses import png_bytes, send_png, send_png_bytes
from .presets import DitherPreset, PresetLibrary
from .processing.extract import extract
from .processing.palette import BUILT_IN_PALETTES, Palette, custom_palette, get_palette
from .processing.pipeline import FrameSettings, process_frame
from .settings import (
    AdjustmentSettings,
    ColorModeSettings,
    DitherAlgorithm,
    DitheringSettings,
    ExtractionAlgorithm,
    parse_enum,
    snake_key,
)

APP_VERSION = __version__

_GROUP_FIELDS = {
    "adjustments": {f.name for f in fields(AdjustmentSettings)},
    "color_mode": {f.name for f in fields(ColorModeSettings)},
    "dithering": {f.name for f in fields(DitheringSettings)},
}

_RESERVED_PARAMS = {"preset", "palette", "colors", "source_url"}


def _request_params() -> Dict[str, str]:
    params = {key: value for key, value in request.args.items()}
    params.update({key: value for key, value in request.form.items()})
    return params


def _frame_settings(params: Mapping[str, str], library: PresetLibrary) -> Tuple[FrameSettings, Palette]:
    """Resolve a preset (or service defaults) plus per-field request overrides."""
    preset_id = params.get("preset")
    if preset_id:
        preset = library.get(preset_id)
        base = FrameSettings(preset.adjustments, preset.color_mode, preset.dithering)
        palette_key = preset.palette_key
    else:
        dithering = DitheringSettings(algorithm=SETTINGS.default_algorithm, seed=SETTINGS.dither_seed)
        base = FrameSettings(AdjustmentSettings(), ColorModeSettings(), dithering)
        palette_key = SETTINGS.default_palette

    overrides: Dict[str, Dict[str, Any]] = {group: {} for group in _GROUP_FIELDS}
    for raw_key, value in params.items():
        if raw_key in _RESERVED_PARAMS:
            continue
        name = snake_key(raw_key)
        for group, names in _GROUP_FIELDS.items():
            if name in names:
                overrides[group][name] = value
                break

    settings = FrameSettings(
        adjustments=replace(base.adjustments, **overrides["adjustments"]),
        color_mode=replace(base.color_mode, **overrides["color_mode"]),
        dithering=replace(base.dithering, **overrides["dithering"]),
    )

    if params.get("colors"):
        colors = [c for c in params["colors"].split(",") if c.strip()]
        palette = custom_palette(colors, name="Request")
    else:
        palette = get_palette(params.get("palette") or palette_key)
    return settings, palette


def _check_size(buffer: PixelBuffer) -> PixelBuffer:
    if buffer.width * buffer.height > SETTINGS.max_pixels:
        raise ConfigurationError(
            f"Image {buffer.width}x{buffer.height} exceeds MAX_PIXELS={SETTINGS.max_pixels}"
        )
    return buffer


def _uploaded_buffer() -> Optional[PixelBuffer]:
    upload = request.files.get("image")
    if upload is None:
        return None
    try:
        image = Image.open(upload.stream)
        image.load()
    except (UnidentifiedImageError, OSError) as exc:
        raise ConfigurationError(f"Uploaded file is not a readable image: {exc}") from None
    return _check_size(PixelBuffer.from_image(image))


def _coerce_setting(field_type: Any, raw_value: Any) -> Any:
    if field_type is int:
        return int(raw_value)
    if field_type is float:
        return float(raw_value)
    if field_type == Optional[int]:
        return None if raw_value in (None, "") else int(raw_value)
    return str(raw_value)


def _validate_setting(name: str, value: Any) -> Any:
    if name == "default_algorithm":
        return parse_enum(DitherAlgorithm, value, "dithering algorithm").value
    if name == "default_palette":
        key = str(value).lower()
        get_palette(key)
        return key
    if name == "log_level":
        return str(value).upper()
    return value


def create_app(library: Optional[PresetLibrary] = None) -> Flask:
    logger = configure_logging()
    app = Flask(__name__)
    presets = library or PresetLibrary(SETTINGS.presets_path or None)

    @app.errorhandler(ConfigurationError)
    @app.errorhandler(DimensionMismatch)
    def bad_request(exc: Exception):
        return jsonify(error=str(exc), kind=type(exc).__name__), 400

    @app.route("/")
    def index():
        return jsonify(
            name="ditherkit",
            version=APP_VERSION,
            endpoints=[
                "/health",
                "/algorithms",
                "/palettes",
                "/presets",
                "/settings",
                "/dither",
                "/palette/extract",
                "/raw",
            ],
        )

    @app.route("/health")
    def health():
        return jsonify(
            ok=True,
            version=APP_VERSION,
            default_algorithm=SETTINGS.default_algorithm,
            default_palette=SETTINGS.default_palette,
        )

    @app.route("/algorithms")
    def algorithms():
        return jsonify(
            algorithms=[{"id": a.value, "family": a.family.value} for a in DitherAlgorithm],
            extraction=[a.value for a in ExtractionAlgorithm],
        )

    @app.route("/palettes")
    def palettes():
        return jsonify(palettes={key: palette.to_dict() for key, palette in BUILT_IN_PALETTES.items()})

    @app.route("/presets", methods=["GET", "POST"])
    def presets_view():
        if request.method == "GET":
            return jsonify(presets=[p.to_dict() for p in presets.all()])
        payload = request.get_json(silent=True)
        saved = presets.save(DitherPreset.from_dict(payload or {}))
        logger.info("Saved custom preset %s", saved.id)
        return jsonify(preset=saved.to_dict()), 201

    @app.route("/presets/<preset_id>", methods=["GET", "DELETE"])
    def preset_view(preset_id: str):
        if request.method == "GET":
            return jsonify(preset=presets.get(preset_id).to_dict())
        if not presets.delete(preset_id):
            return jsonify(error=f"No custom preset {preset_id!r}", kind="NotFound"), 404
        return jsonify(deleted=preset_id)

    @app.route("/dither", methods=["POST"])
    def dither_view():
        params = _request_params()
        settings, palette = _frame_settings(params, presets)

        buffer = _uploaded_buffer()
        key = None
        if buffer is None:
            source_url = params.get("source_url") or SETTINGS.source_url
            key = cache_key(source_url, params)
            cached = CACHE.get(key)
            if cached:
                return send_png_bytes(cached)
            try:
                buffer = _check_size(FETCHER.fetch_source(source_url or None))
            except SourceFetchError as exc:
                logger.error("Source fetch failed: %s", exc)
                fallback = last_good_png()
                if fallback:
                    return send_png_bytes(fallback)
                return jsonify(error=str(exc), kind=type(exc).__name__), 502

        out = process_frame(buffer, palette, settings)
        logger.info(
            "Dithered %dx%d with %s against %s",
            out.width,
            out.height,
            settings.dithering.algorithm.value,
            palette.name,
        )
        if key is not None:
            CACHE.put(key, png_bytes(out.to_image()))
        return send_png(out)

    @app.route("/palette/extract", methods=["POST"])
    def extract_view():
        params = _request_params()
        buffer = _uploaded_buffer()
        if buffer is None:
            try:
                buffer = _check_size(FETCHER.fetch_source(params.get("source_url") or None))
            except SourceFetchError as exc:
                logger.error("Source fetch failed: %s", exc)
                return jsonify(error=str(exc), kind=type(exc).__name__), 502
        try:
            count = int(params.get("count", "8"))
        except ValueError:
            raise ConfigurationError(f"count must be an integer, got {params.get('count')!r}") from None
        method = params.get("method", ExtractionAlgorithm.MEDIAN_CUT.value)
        palette = extract(buffer, count, method)
        return jsonify(colors=[c.to_hex() for c in palette.colors], palette=palette.to_dict())

    @app.route("/raw")
    def raw():
        try:
            return send_png(FETCHER.fetch_source(request.args.get("source_url") or None), remember=False)
        except SourceFetchError as exc:
            logger.error("Source fetch failed: %s", exc)
            return jsonify(error=str(exc), kind=type(exc).__name__), 502

    @app.route("/settings", methods=["GET", "PATCH"])
    def settings_view():
        if request.method == "GET":
            return jsonify(asdict(SETTINGS))

        payload = request.get_json(silent=True) or {}
        errors: Dict[str, str] = {}
        applied: Dict[str, object] = {}

        for field in fields(ServiceSettings):
            if field.name not in payload:
                continue
            try:
                coerced = _coerce_setting(field.type, payload[field.name])
                coerced = _validate_setting(field.name, coerced)
            except (TypeError, ValueError) as exc:
                errors[field.name] = str(exc)
                continue
            setattr(SETTINGS, field.name, coerced)
            applied[field.name] = coerced

        unknown = sorted(set(payload) - {f.name for f in fields(ServiceSettings)})
        for name in unknown:
            errors[name] = "Unknown setting"

        status = 400 if errors else 200
        return jsonify(updated=applied, errors=errors, settings=asdict(SETTINGS)), status

    return app


# Module-level application for WSGI servers, e.g. ``gunicorn ditherkit.app:app``.
app = create_app()
application = app
