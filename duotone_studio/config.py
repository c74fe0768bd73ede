import logging
import os
from dataclasses import dataclass
from typing import Dict, Tuple


@dataclass(frozen=True)
class StudioSettings:
    port: int
    log_level: str
    max_upload_mb: float
    debounce_ms: int
    cache_ttl: float
    session_ttl: float
    timeout: float
    retries: int

    @classmethod
    def from_env(cls) -> "StudioSettings":
        return cls(
            port=int(os.getenv("PORT", "5500")),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            max_upload_mb=float(os.getenv("MAX_UPLOAD_MB", "25")),
            debounce_ms=int(os.getenv("DEBOUNCE_MS", "200")),
            cache_ttl=float(os.getenv("CACHE_TTL", "30")),
            session_ttl=float(os.getenv("SESSION_TTL", "900")),
            timeout=float(os.getenv("SOURCE_TIMEOUT", "10.0")),
            retries=int(os.getenv("SOURCE_RETRIES", "2")),
        )

    @property
    def max_upload_bytes(self) -> int:
        return int(self.max_upload_mb * 1024 * 1024)

    @property
    def debounce_seconds(self) -> float:
        return max(0, self.debounce_ms) / 1000.0


SETTINGS = StudioSettings.from_env()


RGB = Tuple[int, int, int]

# #1b602f and #f784c5
SHADOW_COLOR: RGB = (27, 96, 47)
HIGHLIGHT_COLOR: RGB = (247, 132, 197)

MAX_DIMENSION = 3000
CONTRAST_EXPONENT = 1.8

# Rec. 709 luma weights
LUMA_WEIGHTS: Tuple[float, float, float] = (0.2126, 0.7152, 0.0722)

ACCEPTED_FORMATS: Dict[str, str] = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
    "WEBP": "image/webp",
}

DOWNLOAD_SUFFIX = "_brave-pink-hero-green-1312.png"


def configure_logging() -> logging.Logger:
    logging.basicConfig(level=SETTINGS.log_level)
    return logging.getLogger("duotone-studio")
