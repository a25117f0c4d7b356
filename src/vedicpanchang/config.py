"""Runtime settings read from the environment (populated from .env by entry points)."""

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

_ROOT = Path(__file__).parent.parent.parent

# Hyderabad — used by callers when geolocation is unavailable
DEFAULT_LATITUDE = 17.38333
DEFAULT_LONGITUDE = 78.4666
DEFAULT_TIMEZONE_OFFSET = 5.5


@dataclass(frozen=True)
class Settings:
    database_url: str
    ephemeris_dir: Path
    ephemeris_file: str
    ephemeris_timeout: float  # Seconds allowed for loading (or downloading) the kernel
    log_level: str
    default_latitude: float
    default_longitude: float
    default_timezone_offset: float


def _float_env(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {raw!r}") from e


def load_settings() -> Settings:
    """Build Settings from the current environment."""
    return Settings(
        database_url=os.environ.get("PANCHANG_DATABASE_URL", "sqlite:///panchang.db"),
        ephemeris_dir=Path(
            os.environ.get("PANCHANG_EPHEMERIS_DIR", str(_ROOT / "resources"))
        ),
        ephemeris_file=os.environ.get("PANCHANG_EPHEMERIS_FILE", "de421.bsp"),
        ephemeris_timeout=_float_env("PANCHANG_EPHEMERIS_TIMEOUT", 60.0),
        log_level=os.environ.get("PANCHANG_LOG_LEVEL", "INFO").upper(),
        default_latitude=_float_env("PANCHANG_DEFAULT_LATITUDE", DEFAULT_LATITUDE),
        default_longitude=_float_env("PANCHANG_DEFAULT_LONGITUDE", DEFAULT_LONGITUDE),
        default_timezone_offset=_float_env(
            "PANCHANG_DEFAULT_TIMEZONE_OFFSET", DEFAULT_TIMEZONE_OFFSET
        ),
    )


@lru_cache
def get_settings() -> Settings:
    """Process-wide Settings, read once."""
    return load_settings()
