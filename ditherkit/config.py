import logging
import os
from dataclasses import dataclass
from typing import Optional


def _optional_int(value: Optional[str]) -> Optional[int]:
    if value is None or not value.strip():
        return None
    return int(value)


@dataclass
class ServiceSettings:
    source_url: str
    port: int
    timeout: float
    retries: int
    cache_ttl: float
    default_algorithm: str
    default_palette: str
    max_pixels: int
    dither_seed: Optional[int]
    presets_path: str
    log_level: str

    @classmethod
    def from_env(cls) -> "ServiceSettings":
        return cls(
            source_url=os.getenv("SOURCE_URL", ""),
            port=int(os.getenv("PORT", "5500")),
            timeout=float(os.getenv("SOURCE_TIMEOUT", "10.0")),
            retries=int(os.getenv("SOURCE_RETRIES", "2")),
            cache_ttl=float(os.getenv("CACHE_TTL", "5")),
            default_algorithm=os.getenv("DEFAULT_ALGORITHM", "floyd-steinberg").lower(),
            default_palette=os.getenv("DEFAULT_PALETTE", "bw").lower(),
            max_pixels=int(os.getenv("MAX_PIXELS", str(4096 * 4096))),
            dither_seed=_optional_int(os.getenv("DITHER_SEED")),
            presets_path=os.getenv("PRESETS_PATH", ""),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )


SETTINGS = ServiceSettings.from_env()


def configure_logging() -> logging.Logger:
    logging.basicConfig(level=SETTINGS.log_level)
    return logging.getLogger("ditherkit")
