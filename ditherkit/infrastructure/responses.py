from __future__ import annotations

import io

from flask import send_file
from PIL import Image

from ..buffer import PixelBuffer
from .cache import remember_last_good


def png_bytes(image: Image.Image) -> bytes:
    out = io.BytesIO()
    image.save(out, "PNG", optimize=True)
    return out.getvalue()


def send_png_bytes(data: bytes):
    return send_file(io.BytesIO(data), mimetype="image/png")


def send_png(buffer: PixelBuffer, *, remember: bool = True):
    """PNG response for ``buffer``; successful renders become the fallback image."""
    data = png_bytes(buffer.to_image())
    if remember:
        remember_last_good(data)
    return send_png_bytes(data)
