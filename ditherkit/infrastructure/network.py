from __future__ import annotations

import io
import logging
import time
from typing import Callable, Mapping, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import requests
from PIL import Image, UnidentifiedImageError

from ..buffer import PixelBuffer
from ..config import SETTINGS
from ..errors import ConfigurationError, SourceFetchError

LOGGER = logging.getLogger(__name__)

SessionFactory = Callable[[], requests.Session]
Sleeper = Callable[[float], None]

USER_AGENT = "ditherkit/1.0"


def with_query(url: str, overrides: Optional[Mapping[str, Optional[str]]]) -> str:
    """Return ``url`` with ``overrides`` merged into its query; ``None`` drops a key."""
    if not overrides:
        return url
    parts = urlsplit(url)
    query = dict(parse_qsl(parts.query, keep_blank_values=True))
    for key, value in overrides.items():
        if value is None:
            query.pop(key, None)
        else:
            query[key] = value
    return urlunsplit(parts._replace(query=urlencode(query, doseq=True)))


def _validate_url(url: str) -> str:
    parts = urlsplit(url)
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise ConfigurationError(f"Source URL must be http(s), got {url!r}")
    return url


class SourceFetcher:
    """Downloads source images with retry and linear back-off."""

    def __init__(
        self,
        session_factory: Optional[SessionFactory] = None,
        sleep: Sleeper = time.sleep,
    ) -> None:
        self._session_factory = session_factory or requests.Session
        self._sleep = sleep
        self._session = self._create_session()

    def _create_session(self) -> requests.Session:
        session = self._session_factory()
        session.headers.update({"User-Agent": USER_AGENT})
        return session

    def fetch_image(
        self,
        source_url: Optional[str] = None,
        *,
        overrides: Optional[Mapping[str, Optional[str]]] = None,
    ) -> Image.Image:
        target = source_url or SETTINGS.source_url
        if not target:
            raise ConfigurationError("No source URL given and SOURCE_URL is not set")
        target = with_query(_validate_url(target), overrides)

        last_exception: Optional[Exception] = None
        attempts = max(0, SETTINGS.retries) + 1
        for attempt in range(1, attempts + 1):
            try:
                response = self._session.get(target, timeout=SETTINGS.timeout)
                response.raise_for_status()
                image = Image.open(io.BytesIO(response.content))
                image.load()
                return image
            except (requests.RequestException, UnidentifiedImageError, OSError) as exc:
                last_exception = exc
                LOGGER.warning("Fetch %s failed (attempt %d/%d): %s", target, attempt, attempts, exc)
                if attempt < attempts:
                    self._sleep(0.4 * attempt)
        raise SourceFetchError(f"Could not fetch {target}: {last_exception}") from last_exception

    def fetch_source(
        self,
        source_url: Optional[str] = None,
        *,
        overrides: Optional[Mapping[str, Optional[str]]] = None,
    ) -> PixelBuffer:
        return PixelBuffer.from_image(self.fetch_image(source_url, overrides=overrides))


FETCHER = SourceFetcher()
