"""Infrastructure helpers for networking, caching and PNG responses."""

from .cache import CACHE, ResponseCache, cache_key, last_good_png, remember_last_good
from .network import FETCHER, SourceFetcher
from .responses import png_bytes, send_png

__all__ = [
    "CACHE",
    "ResponseCache",
    "cache_key",
    "last_good_png",
    "remember_last_good",
    "FETCHER",
    "SourceFetcher",
    "png_bytes",
    "send_png",
]
